"""DuckDuckGo instant-answer adapter, the guaranteed last resort."""

import logging
import re
from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from product_resolver.adapters.http_support import check_response, json_or_none
from product_resolver.adapters.normalization import (
    clean_text,
    estimate_web_search_quality,
    per_100_units,
    serving_grams,
)
from product_resolver.domain.product import ProductRecord, placeholder_record
from product_resolver.services.providers import ProviderError, ProviderRateLimitedError

_logger = logging.getLogger(__name__)

PROVIDER_ID = "web_search"

_DDG_ORIGIN = "https://duckduckgo.com"

_NUTRIENT_PATTERNS = {
    "energy-kcal": (
        re.compile(r"(\d+(?:\.\d+)?)\s*(?:kcal|calories?)", re.I),
        re.compile(r"calories?[:\s]*(\d+(?:\.\d+)?)", re.I),
    ),
    "proteins": (
        re.compile(r"(?:protein|prot)[:\s]*(\d+(?:\.\d+)?)\s*g", re.I),
        re.compile(r"(\d+(?:\.\d+)?)\s*g(?:rams?)?\s*(?:of\s*)?protein", re.I),
    ),
    "carbohydrates": (
        re.compile(r"(?:carbohydrates?|carbs?)[:\s]*(\d+(?:\.\d+)?)\s*g", re.I),
    ),
    "fat": (re.compile(r"\bfat[:\s]*(\d+(?:\.\d+)?)\s*g", re.I),),
    "sugars": (re.compile(r"sugars?[:\s]*(\d+(?:\.\d+)?)\s*g", re.I),),
}

_PER_100 = re.compile(r"(?:\bper|/)\s*100\s*(?:g|ml)\b", re.I)
_SERVING = re.compile(
    r"(\d+(?:[.,]\d+)?\s*(?:g|ml))\s+serving"
    r"|serving(?:\s+size)?\s*(?:of|:)?\s*(\d+(?:[.,]\d+)?\s*(?:g|ml))",
    re.I,
)

_INGREDIENTS = re.compile(r"ingredients?\s*:\s*([^.]{5,})", re.I)
_QUOTED_NAME = re.compile(r'"([^"]{3,50})"')


class _InstantAnswer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    Heading: str = ""
    AbstractText: str = ""
    Image: str = ""


@dataclass
class HttpxWebSearchClient:
    """Turns a DuckDuckGo instant answer into a best-effort record.

    Always returns a record: when the search yields nothing the identifier-only
    placeholder comes back instead.
    """

    base_url: str
    http_client: httpx.AsyncClient
    provider_id: str = PROVIDER_ID
    timeout: float = 10.0

    @classmethod
    def create(cls, base_url: str) -> "HttpxWebSearchClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient())

    async def fetch_by_identifier(self, identifier: str) -> ProductRecord:
        try:
            answer = await self._search(identifier)
        except ProviderRateLimitedError:
            raise
        except (httpx.HTTPError, ProviderError) as exc:
            _logger.debug("Web search failed for %s: %s", identifier, exc)
            answer = None
        if answer is None:
            return placeholder_record(identifier)
        return _to_record(identifier, answer) or placeholder_record(identifier)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _search(self, identifier: str) -> _InstantAnswer | None:
        response = await self.http_client.get(
            self.base_url,
            params={
                "q": identifier,
                "format": "json",
                "no_html": "1",
                "skip_disambig": "1",
            },
            timeout=self.timeout,
        )
        if not check_response(self.provider_id, response):
            return None
        payload = json_or_none(response)
        if payload is None:
            return None
        try:
            return _InstantAnswer.model_validate(payload)
        except ValidationError:
            return None


def _to_record(identifier: str, answer: _InstantAnswer) -> ProductRecord | None:
    abstract = answer.AbstractText.strip()
    name = _product_name(identifier, answer.Heading, abstract)
    if name is None and not abstract:
        return None

    nutrients, serving_size = _per_100_nutrients(abstract)
    ingredients_match = _INGREDIENTS.search(abstract)
    ingredients = clean_text(ingredients_match.group(1)) if ingredients_match else None
    image = _absolute_image(answer.Image)
    quality, completion = estimate_web_search_quality(
        has_image=bool(image),
        has_nutrients=bool(nutrients),
        has_ingredients=bool(ingredients),
    )
    return ProductRecord(
        barcode=identifier,
        name=name or f"Product {identifier}",
        generic_name=abstract or None,
        image_url=image,
        serving_size=serving_size,
        nutrients=nutrients,
        ingredients_text=ingredients,
        source=PROVIDER_ID,
        quality=quality,
        completion=completion,
    )


def _product_name(identifier: str, heading: str, abstract: str) -> str | None:
    heading = heading.strip()
    if (
        len(heading) > 2
        and heading != identifier
        and "barcode" not in heading.lower()
    ):
        return heading
    quoted = _QUOTED_NAME.search(abstract)
    return quoted.group(1) if quoted else None


def _per_100_nutrients(text: str) -> tuple[dict[str, float], str | None]:
    """Return nutrients on a per-100 basis and the serving size they came from.

    Values quoted without a stated basis are dropped.
    """
    values = _parse_nutrients(text)
    if not values or _PER_100.search(text):
        return values, None
    serving = _SERVING.search(text)
    if serving is None:
        return {}, None
    serving_size = serving.group(1) or serving.group(2)
    return per_100_units(values, serving_grams(serving_size)), serving_size


def _parse_nutrients(text: str) -> dict[str, float]:
    nutrients: dict[str, float] = {}
    for key, patterns in _NUTRIENT_PATTERNS.items():
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                nutrients[key] = float(match.group(1))
                break
    return nutrients


def _absolute_image(image: str) -> str | None:
    image = image.strip()
    if not image:
        return None
    if image.startswith("http"):
        return image
    if image.startswith("/"):
        return f"{_DDG_ORIGIN}{image}"
    return None
