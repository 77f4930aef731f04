"""Open Food / Beauty / Pet Food / Products Facts adapters."""

import logging
from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from product_resolver.adapters.http_support import check_response, json_or_none
from product_resolver.adapters.normalization import (
    clean_text,
    estimate_quality,
    per_100_units,
    serving_grams,
)
from product_resolver.domain.product import (
    Certification,
    PackagingComponent,
    ProductRecord,
)

_logger = logging.getLogger(__name__)

OPEN_FACTS_BASE_URLS = {
    "openfoodfacts": "https://world.openfoodfacts.org",
    "openbeautyfacts": "https://world.openbeautyfacts.org",
    "openpetfoodfacts": "https://world.openpetfoodfacts.org",
    "openproductsfacts": "https://world.openproductsfacts.org",
}

_CERTIFICATION_NAMES = {
    "en:organic": "Organic",
    "en:eu-organic": "EU Organic",
    "en:fair-trade": "Fair Trade",
    "en:fairtrade-international": "Fairtrade International",
    "en:rainforest-alliance": "Rainforest Alliance",
    "en:msc": "Marine Stewardship Council",
    "en:asc": "Aquaculture Stewardship Council",
    "en:dolphin-safe": "Dolphin Safe",
    "en:rspca-assured": "RSPCA Assured",
    "en:vegan": "Vegan",
    "en:cruelty-free": "Cruelty Free",
    "en:utz-certified": "UTZ Certified",
}


def _tag_id(value: object) -> object:
    # API v3 returns taxonomy objects where v2 returns plain ids.
    if isinstance(value, dict):
        return value.get("id") or value.get("lc_name")
    return value


class _Packaging(BaseModel):
    model_config = ConfigDict(extra="ignore")

    material: str | None = None
    shape: str | None = None
    recycling: str | None = None

    @field_validator("material", "shape", "recycling", mode="before")
    @classmethod
    def _flatten(cls, value: object) -> object:
        return _tag_id(value)


class _Product(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_name: str | None = None
    brands: str | None = None
    categories: str | None = None
    generic_name: str | None = None
    image_url: str | None = None
    image_front_url: str | None = None
    quantity: str | None = None
    packaging: str | None = None
    serving_size: str | None = None
    nutriments: dict[str, object] = {}
    ingredients_text: str | None = None
    nutriscore_grade: str | None = None
    ecoscore_grade: str | None = None
    nova_group: int | None = None
    additives_tags: list[str] = []
    allergens_tags: list[str] = []
    labels_tags: list[str] = []
    ingredients_analysis_tags: list[str] = []
    packagings: list[_Packaging] = []
    origins: str | None = None
    manufacturing_places: str | None = None
    completeness: float | None = None

    @field_validator("nova_group", mode="before")
    @classmethod
    def _blank_nova_group(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip().isdigit():
            return None
        return value


class _ProductResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: int = 0
    product: _Product | None = None


@dataclass
class HttpxOpenFactsClient:
    """HTTPX-backed adapter for one Open Facts database."""

    provider_id: str
    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient
    timeout: float = 10.0

    @classmethod
    def create(
        cls, provider_id: str, user_agent: str, base_url: str | None = None
    ) -> "HttpxOpenFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            provider_id=provider_id,
            base_url=base_url or OPEN_FACTS_BASE_URLS[provider_id],
            user_agent=user_agent,
            http_client=httpx.AsyncClient(),
        )

    async def fetch_by_identifier(self, identifier: str) -> ProductRecord | None:
        """Look a barcode up in this database."""
        response = await self.http_client.get(
            f"{self.base_url}/api/v2/product/{identifier}.json",
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        if not check_response(self.provider_id, response):
            return None
        payload = json_or_none(response)
        if payload is None:
            return None
        try:
            parsed = _ProductResponse.model_validate(payload)
        except ValidationError as exc:
            _logger.debug("Malformed %s payload for %s: %s", self.provider_id, identifier, exc)
            return None
        if parsed.status != 1 or parsed.product is None:
            return None
        return self._to_record(identifier, parsed.product)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _to_record(self, barcode: str, product: _Product) -> ProductRecord:
        name = clean_text(product.product_name)
        brand = clean_text(product.brands)
        generic_name = clean_text(product.generic_name)
        ingredients = clean_text(product.ingredients_text)
        image = clean_text(product.image_url) or clean_text(product.image_front_url)
        categories = clean_text(product.categories)
        quality, completion = estimate_quality(
            name=name,
            brand=brand,
            description=generic_name,
            ingredients=ingredients,
            image=image,
            category=categories,
        )
        if product.completeness is not None:
            completion = max(0, min(100, round(product.completeness * 100)))

        labels = tuple(tag.lower() for tag in product.labels_tags)
        return ProductRecord(
            barcode=barcode,
            name=name,
            brand=brand,
            categories=categories,
            generic_name=generic_name,
            image_url=image,
            quantity=clean_text(product.quantity),
            packaging=clean_text(product.packaging),
            serving_size=clean_text(product.serving_size),
            nutrients=_nutrients(product),
            ingredients_text=ingredients,
            nutriscore_grade=clean_text(product.nutriscore_grade),
            ecoscore_grade=clean_text(product.ecoscore_grade),
            nova_group=product.nova_group,
            additives_tags=tuple(product.additives_tags),
            allergens_tags=tuple(product.allergens_tags),
            labels_tags=labels,
            ingredients_analysis_tags=tuple(product.ingredients_analysis_tags),
            packagings=tuple(
                PackagingComponent(**item.model_dump()) for item in product.packagings
            ),
            origins=clean_text(product.origins),
            manufacturing_places=clean_text(product.manufacturing_places),
            certifications=tuple(
                Certification(tag=tag, name=_CERTIFICATION_NAMES[tag])
                for tag in labels
                if tag in _CERTIFICATION_NAMES
            ),
            source=self.provider_id,
            quality=quality,
            completion=completion,
        )


def _nutrients(product: _Product) -> dict[str, float]:
    per_100: dict[str, float] = {}
    per_serving: dict[str, float] = {}
    for key, value in product.nutriments.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if key.endswith("_100g"):
            per_100[key.removesuffix("_100g")] = float(value)
        elif key.endswith("_serving"):
            per_serving[key.removesuffix("_serving")] = float(value)
    if per_100:
        return per_100
    return per_100_units(per_serving, serving_grams(product.serving_size))
