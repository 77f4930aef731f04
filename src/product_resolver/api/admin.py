"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from product_resolver.api.models import CacheEntryResponse, CacheSizeResponse

if TYPE_CHECKING:
    from product_resolver.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/cache", dependencies=[Depends(require_admin)])
async def cache_size(request: Request) -> CacheSizeResponse:
    """Return the number of cached products."""
    container: AppContainer = request.app.state.container
    return CacheSizeResponse(entries=container.cache.size())


@router.get("/cache/{barcode}", dependencies=[Depends(require_admin)])
async def cache_entry(barcode: str, request: Request) -> CacheEntryResponse:
    """Return the raw cache entry for a barcode, expired or not."""
    container: AppContainer = request.app.state.container
    entry = container.cache.inspect(barcode)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return CacheEntryResponse(barcode=barcode, entry=entry)


@router.delete(
    "/cache/{barcode}",
    dependencies=[Depends(require_admin)],
    status_code=status.HTTP_204_NO_CONTENT,
)
async def evict_cache_entry(barcode: str, request: Request) -> None:
    """Evict a barcode from the cache under every key it may be stored at."""
    container: AppContainer = request.app.state.container
    try:
        container.resolver.evict(barcode)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
