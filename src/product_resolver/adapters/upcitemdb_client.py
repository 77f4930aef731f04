"""UPCitemdb lookup adapter."""

import logging
from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from product_resolver.adapters.http_support import check_response, json_or_none
from product_resolver.adapters.normalization import clean_text, estimate_quality
from product_resolver.domain.product import ProductRecord

_logger = logging.getLogger(__name__)

PROVIDER_ID = "upcitemdb"


class _Item(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ean: str | None = None
    upc: str | None = None
    title: str | None = None
    description: str | None = None
    brand: str | None = None
    category: str | None = None
    size: str | None = None
    weight: str | None = None
    dimension: str | None = None
    images: list[str] = []


class _LookupResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: str | None = None
    items: list[_Item] = []


@dataclass
class HttpxUpcItemDbClient:
    """HTTPX-backed UPCitemdb client (trial endpoint by default)."""

    base_url: str
    http_client: httpx.AsyncClient
    provider_id: str = PROVIDER_ID
    timeout: float = 10.0

    @classmethod
    def create(cls, base_url: str) -> "HttpxUpcItemDbClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient())

    async def fetch_by_identifier(self, identifier: str) -> ProductRecord | None:
        response = await self.http_client.get(
            f"{self.base_url}/lookup",
            params={"upc": identifier},
            timeout=self.timeout,
        )
        if not check_response(self.provider_id, response):
            return None
        payload = json_or_none(response)
        if payload is None:
            return None
        try:
            parsed = _LookupResponse.model_validate(payload)
        except ValidationError as exc:
            _logger.debug("Malformed UPCitemdb payload for %s: %s", identifier, exc)
            return None
        if not parsed.items:
            return None

        item = parsed.items[0]
        name = clean_text(item.title)
        brand = clean_text(item.brand)
        description = clean_text(item.description)
        image = next((url for url in item.images if url.startswith("http")), None)
        category = clean_text(item.category)
        quality, completion = estimate_quality(
            name=name,
            brand=brand,
            description=description,
            image=image,
            category=category,
        )
        return ProductRecord(
            barcode=identifier,
            name=name,
            brand=brand,
            generic_name=description,
            categories=category,
            image_url=image,
            quantity=clean_text(item.weight) or clean_text(item.size),
            packaging=clean_text(item.dimension),
            source=self.provider_id,
            quality=quality,
            completion=completion,
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
