"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status

from product_resolver.api.admin import router as admin_router
from product_resolver.api.models import ProductResponse
from product_resolver.app_logging import configure_logging
from product_resolver.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Product resolver starting (%s tier(s), environment=%s)",
            len(app.state.container.orchestrator.tiers),
            app.state.container.settings.environment,
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/products/{barcode}")
    async def get_product(
        barcode: str,
        request: Request,
        premium: bool = False,
        offline: bool = False,
    ) -> ProductResponse:
        """Resolve a scanned barcode into a scored product."""
        state_container: AppContainer = request.app.state.container
        try:
            scored = await state_container.resolver.resolve(
                barcode, is_premium=premium, is_offline=offline
            )
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        if scored is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not available offline",
            )
        return ProductResponse.from_scored(scored)

    @app.post("/products/{barcode}/refresh")
    async def refresh_product(
        barcode: str, request: Request, premium: bool = False
    ) -> ProductResponse:
        """Resolve a barcode again, bypassing and rewriting the cache."""
        state_container: AppContainer = request.app.state.container
        try:
            scored = await state_container.resolver.refresh(barcode, is_premium=premium)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        if scored is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return ProductResponse.from_scored(scored)

    return app
