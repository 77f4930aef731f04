"""Canonical product record models."""

from pydantic import BaseModel, ConfigDict, Field

from product_resolver.domain.recalls import RecallEntry

PLACEHOLDER_NAME_PREFIX = "Product "


class Certification(BaseModel):
    """A certification label attached to a product."""

    model_config = ConfigDict(frozen=True)

    tag: str
    name: str


class PackagingComponent(BaseModel):
    """One packaging component and its recycling instruction."""

    model_config = ConfigDict(frozen=True)

    material: str | None = None
    shape: str | None = None
    recycling: str | None = None


class ProductRecord(BaseModel):
    """Fused product representation shared by every pipeline stage.

    Provider adapters build partial records with the same shape, so fusion and
    scoring never see provider-specific field names. Nutrient values are
    always per 100 g (or 100 ml).
    """

    model_config = ConfigDict(frozen=True)

    barcode: str = Field(min_length=1)
    name: str | None = None
    brand: str | None = None
    categories: str | None = None
    generic_name: str | None = None
    image_url: str | None = None
    quantity: str | None = None
    packaging: str | None = None
    serving_size: str | None = None

    nutrients: dict[str, float] = Field(default_factory=dict)
    ingredients_text: str | None = None

    nutriscore_grade: str | None = None
    ecoscore_grade: str | None = None
    nova_group: int | None = None
    additives_tags: tuple[str, ...] = ()
    allergens_tags: tuple[str, ...] = ()
    labels_tags: tuple[str, ...] = ()
    ingredients_analysis_tags: tuple[str, ...] = ()
    packagings: tuple[PackagingComponent, ...] = ()
    origins: str | None = None
    manufacturing_places: str | None = None

    certifications: tuple[Certification, ...] = ()

    source: str | None = None
    quality: int | None = Field(default=None, ge=0, le=100)
    completion: int | None = Field(default=None, ge=0, le=100)

    recalls: tuple[RecallEntry, ...] = ()

    def has_nutrients(self) -> bool:
        """Return True when at least one nutrient value is present."""
        return bool(self.nutrients)

    def has_ingredients(self) -> bool:
        """Return True when a non-blank ingredient list is present."""
        return bool(self.ingredients_text and self.ingredients_text.strip())

    def has_origin(self) -> bool:
        """Return True when an origin or manufacturing place is known."""
        for value in (self.origins, self.manufacturing_places):
            if value and value.strip() and "unknown" not in value.lower():
                return True
        return False

    def has_placeholder_name(self) -> bool:
        """Return True when the name is missing or a generated stub."""
        return not self.name or self.name.startswith(PLACEHOLDER_NAME_PREFIX)

    def is_usable(self) -> bool:
        """Return True when the record carries any real product information."""
        return bool(
            self.name
            or self.brand
            or self.image_url
            or self.nutrients
            or self.has_ingredients()
        )


def placeholder_record(barcode: str) -> ProductRecord:
    """Identifier-only record used when no provider knows the product."""
    return ProductRecord(
        barcode=barcode,
        name=f"{PLACEHOLDER_NAME_PREFIX}{barcode}",
        source="web_search",
        quality=5,
        completion=10,
    )
