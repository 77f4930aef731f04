"""Shared HTTP response handling for provider adapters."""

import httpx

from product_resolver.services.providers import ProviderError, ProviderRateLimitedError


def check_response(provider_id: str, response: httpx.Response) -> bool:
    """Return False for not found, raise on throttling and other failures."""
    if response.status_code == 404:
        return False
    if response.status_code == 429:
        raise ProviderRateLimitedError(provider_id, "rate limited (HTTP 429)")
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise ProviderError(
            provider_id, f"HTTP {response.status_code} from {response.url}"
        ) from exc
    return True


def json_or_none(response: httpx.Response) -> object | None:
    """Decode a JSON body, treating an undecodable body as no answer."""
    try:
        return response.json()
    except ValueError:
        return None
