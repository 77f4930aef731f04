"""Provider adapter contract shared by the orchestration layer."""

from typing import Protocol

from product_resolver.domain.product import ProductRecord


class ProviderError(Exception):
    """Raised when a provider call fails for reasons other than not found."""

    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id


class ProviderRateLimitedError(ProviderError):
    """Raised when a provider signals throttling (HTTP 429 or equivalent)."""


class ProductProvider(Protocol):
    """Interface for an external product data source."""

    provider_id: str

    async def fetch_by_identifier(self, identifier: str) -> ProductRecord | None:
        """Return a normalized partial record, or None when not found."""
