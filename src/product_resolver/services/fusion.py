"""Weighted multi-source fusion of partial product records."""

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from typing import TypeVar

from product_resolver.domain.product import Certification, ProductRecord

_logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WEIGHT = 0.10

DEFAULT_SOURCE_WEIGHTS: dict[str, float] = {
    # Government and official registries
    "fsanz": 0.40,
    "fsanz_au": 0.40,
    "fsanz_nz": 0.40,
    "usda_fooddata": 0.40,
    "gs1_datasource": 0.40,
    # Community open databases
    "openfoodfacts": 0.40,
    "openbeautyfacts": 0.35,
    "openpetfoodfacts": 0.35,
    "openproductsfacts": 0.35,
    # Retailer APIs
    "woolworths_au": 0.30,
    "coles_au": 0.30,
    "iga_au": 0.30,
    "woolworths_nz": 0.30,
    "paknsave": 0.30,
    "newworld": 0.30,
    "nz_store_api": 0.30,
    "spoonacular": 0.25,
    # Generic lookup APIs
    "go_upc": 0.20,
    "buycott": 0.20,
    "open_gtin": 0.20,
    "barcode_monster": 0.20,
    "upcitemdb": 0.20,
    "barcode_spider": 0.20,
    # Best-effort web search
    "web_search": 0.10,
}

# Nutrients reconciled between their bare and per-100g keys.
_RECONCILED_NUTRIENTS = (
    "energy",
    "energy-kcal",
    "energy-kj",
    "fat",
    "saturated-fat",
    "carbohydrates",
    "sugars",
    "fiber",
    "proteins",
    "salt",
    "sodium",
)

# Fields resolved by "first non-empty value in weight order".
_FIRST_BY_WEIGHT = (
    "name",
    "brand",
    "categories",
    "image_url",
    "quantity",
    "packaging",
    "serving_size",
    "nutriscore_grade",
    "ecoscore_grade",
    "nova_group",
    "additives_tags",
    "allergens_tags",
    "labels_tags",
    "ingredients_analysis_tags",
    "packagings",
    "origins",
    "manufacturing_places",
    "recalls",
)

# Text fields judged by completeness: the longest candidate wins.
_LONGEST_TEXT = ("ingredients_text", "generic_name")


class FusionError(ValueError):
    """Raised when fusion is asked to merge nothing."""


def source_weight(source: str | None, weights: Mapping[str, float]) -> float:
    """Return the configured weight for a source, or the low default."""
    if not source:
        return DEFAULT_WEIGHT
    return weights.get(source, DEFAULT_WEIGHT)


def merge(
    records: Sequence[ProductRecord],
    weights: Mapping[str, float] | None = None,
    *,
    barcode: str | None = None,
    reconcile_nutrients: bool = False,
) -> ProductRecord:
    """Fuse partial records into one using source-weighted precedence.

    The output depends only on the set of records and the weight table, never
    on input order.
    """
    if not records:
        raise FusionError("Cannot merge an empty list of records")

    table = weights if weights is not None else DEFAULT_SOURCE_WEIGHTS
    ordered = sorted(
        records,
        key=lambda record: (
            -source_weight(record.source, table),
            record.source or "",
            record.model_dump_json(),
        ),
    )
    raw_weights = [source_weight(record.source, table) for record in ordered]
    total = math.fsum(raw_weights)
    normalized = [weight / total for weight in raw_weights]
    base = ordered[0]

    fields: dict[str, object] = {
        "barcode": barcode or base.barcode,
        "source": base.source,
    }
    for name in _FIRST_BY_WEIGHT:
        fields[name] = _first_present(ordered, lambda r, n=name: getattr(r, n))
    for name in _LONGEST_TEXT:
        fields[name] = _longest_text(ordered, lambda r, n=name: getattr(r, n))

    nutrients = _merge_nutrients(ordered, normalized)
    if reconcile_nutrients:
        nutrients = reconcile_per_100g(nutrients)
    fields["nutrients"] = nutrients
    fields["certifications"] = _merge_certifications(ordered)
    fields["quality"] = _weighted_score(ordered, normalized, lambda r: r.quality)
    fields["completion"] = _weighted_score(
        ordered, normalized, lambda r: r.completion
    )

    merged = ProductRecord(**{k: v for k, v in fields.items() if v is not None})
    if len(records) > 1:
        _logger.debug(
            "Merged %s records for %s from sources: %s",
            len(records),
            merged.barcode,
            ", ".join(record.source or "unknown" for record in ordered),
        )
    return merged


def reconcile_per_100g(nutrients: Mapping[str, float]) -> dict[str, float]:
    """Fill bare and ``_100g`` nutrient keys from whichever one is present."""
    reconciled = dict(nutrients)
    for nutrient in _RECONCILED_NUTRIENTS:
        per_100g_key = f"{nutrient}_100g"
        bare = reconciled.get(nutrient)
        per_100g = reconciled.get(per_100g_key)
        if bare is not None and per_100g is None:
            reconciled[per_100g_key] = bare
        elif per_100g is not None and bare is None:
            reconciled[nutrient] = per_100g
    return reconciled


def _first_present(
    ordered: Sequence[ProductRecord], getter: Callable[[ProductRecord], T]
) -> T | None:
    for record in ordered:
        value = getter(record)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        if isinstance(value, tuple) and not value:
            continue
        return value
    return None


def _longest_text(
    ordered: Sequence[ProductRecord], getter: Callable[[ProductRecord], str | None]
) -> str | None:
    longest: str | None = None
    for record in ordered:
        value = getter(record)
        if value and value.strip() and (longest is None or len(value) > len(longest)):
            longest = value
    return longest


def _merge_nutrients(
    ordered: Sequence[ProductRecord], normalized: Sequence[float]
) -> dict[str, float]:
    contributions: dict[str, list[tuple[float, float]]] = {}
    for record, weight in zip(ordered, normalized, strict=True):
        for key, value in record.nutrients.items():
            if value is None or math.isnan(value):
                continue
            contributions.setdefault(key, []).append((float(value), weight))

    merged: dict[str, float] = {}
    for key in sorted(contributions):
        pairs = contributions[key]
        values = {value for value, _ in pairs}
        if len(values) == 1:
            merged[key] = pairs[0][0]
            continue
        total_weight = math.fsum(weight for _, weight in pairs)
        if total_weight <= 0:
            continue
        merged[key] = (
            math.fsum(value * weight for value, weight in pairs) / total_weight
        )
    return merged


def _merge_certifications(ordered: Sequence[ProductRecord]) -> tuple[Certification, ...]:
    seen: dict[str, Certification] = {}
    for record in ordered:
        for certification in record.certifications:
            key = certification.tag or certification.name
            if key and key not in seen:
                seen[key] = certification
    return tuple(seen.values())


def _weighted_score(
    ordered: Sequence[ProductRecord],
    normalized: Sequence[float],
    getter: Callable[[ProductRecord], int | None],
) -> int | None:
    pairs = [
        (value, weight)
        for record, weight in zip(ordered, normalized, strict=True)
        if (value := getter(record)) is not None
    ]
    if not pairs:
        return None
    total_weight = math.fsum(weight for _, weight in pairs)
    average = math.fsum(value * weight for value, weight in pairs) / total_weight
    return max(0, min(100, round(average)))
