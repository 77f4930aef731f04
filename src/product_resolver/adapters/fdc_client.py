"""USDA FoodData Central API client and product adapter."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from product_resolver.adapters.http_support import check_response, json_or_none
from product_resolver.adapters.normalization import clean_text
from product_resolver.domain.product import ProductRecord

_logger = logging.getLogger(__name__)

PROVIDER_ID = "usda_fooddata"

# FDC nutrient ids mapped to canonical nutrient keys. Branded food values in
# search results are already per 100 g.
_NUTRIENT_IDS = {
    1008: "energy-kcal",
    1003: "proteins",
    1004: "fat",
    1258: "saturated-fat",
    1005: "carbohydrates",
    2000: "sugars",
    1079: "fiber",
    1093: "sodium",
}

# Sodium is reported in milligrams.
_MILLIGRAM_NUTRIENTS = {"sodium"}
_SALT_PER_SODIUM = 2.5


class FdcClient(Protocol):
    """Interface for FoodData Central API interactions."""

    async def search_foods(
        self, query: str, page_size: int = 10
    ) -> dict[str, object] | None:
        """Search branded foods by query and return raw API data."""


@dataclass
class HttpxFdcClient(FdcClient):
    """HTTPX-backed FDC client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxFdcClient":
        """Create an FDC client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def search_foods(
        self, query: str, page_size: int = 10
    ) -> dict[str, object] | None:
        """Search branded foods by query."""
        url = f"{self.base_url}/foods/search"
        response = await self.http_client.post(
            url,
            params={"api_key": self.api_key},
            json={"query": query, "pageSize": page_size, "dataType": ["Branded"]},
            timeout=15,
        )
        if not check_response(PROVIDER_ID, response):
            return None
        payload = json_or_none(response)
        return payload if isinstance(payload, dict) else None

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


class _FoodNutrient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    nutrient_id: int | None = Field(default=None, alias="nutrientId")
    value: float | None = None


class _Food(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    description: str | None = None
    brand_owner: str | None = Field(default=None, alias="brandOwner")
    brand_name: str | None = Field(default=None, alias="brandName")
    gtin_upc: str | None = Field(default=None, alias="gtinUpc")
    ingredients: str | None = None
    food_category: str | None = Field(default=None, alias="foodCategory")
    serving_size: float | None = Field(default=None, alias="servingSize")
    serving_size_unit: str | None = Field(default=None, alias="servingSizeUnit")
    food_nutrients: list[_FoodNutrient] = Field(default=[], alias="foodNutrients")


class _SearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    foods: list[_Food] = []


def _digits(value: str) -> str:
    return "".join(char for char in value if char.isdigit())


def gtin_matches(gtin: str | None, identifier: str) -> bool:
    """Compare GTINs ignoring separators and leading zero padding."""
    if not gtin:
        return False
    left = _digits(gtin).lstrip("0")
    right = _digits(identifier).lstrip("0")
    return bool(left) and left == right


@dataclass
class FdcProductProvider:
    """Resolves barcodes against FDC branded foods by GTIN/UPC."""

    client: FdcClient
    provider_id: str = PROVIDER_ID

    async def fetch_by_identifier(self, identifier: str) -> ProductRecord | None:
        payload = await self.client.search_foods(identifier, page_size=10)
        if payload is None:
            return None
        try:
            result = _SearchResult.model_validate(payload)
        except ValidationError as exc:
            _logger.debug("Malformed FDC payload for %s: %s", identifier, exc)
            return None

        food = next(
            (item for item in result.foods if gtin_matches(item.gtin_upc, identifier)),
            None,
        )
        if food is None:
            return None
        return ProductRecord(
            barcode=identifier,
            name=clean_text(food.description),
            brand=clean_text(food.brand_owner) or clean_text(food.brand_name),
            categories=clean_text(food.food_category),
            serving_size=_serving_label(food),
            nutrients=_extract_nutrients(food.food_nutrients),
            ingredients_text=clean_text(food.ingredients),
            source=self.provider_id,
            quality=90,
            completion=85,
        )


def _serving_label(food: _Food) -> str | None:
    if food.serving_size is None:
        return None
    unit = (food.serving_size_unit or "g").lower()
    return f"{food.serving_size:g} {unit}"


def _extract_nutrients(food_nutrients: list[_FoodNutrient]) -> dict[str, float]:
    values: dict[str, float] = {}
    for nutrient in food_nutrients:
        key = _NUTRIENT_IDS.get(nutrient.nutrient_id or -1)
        if key is None or nutrient.value is None:
            continue
        amount = float(nutrient.value)
        if key in _MILLIGRAM_NUTRIENTS:
            amount = amount / 1000
        values[key] = amount
    if "sodium" in values:
        values["salt"] = round(values["sodium"] * _SALT_PER_SODIUM, 4)
    return values
