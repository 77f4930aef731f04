"""Helpers that bring provider payloads onto the canonical record shape."""

import re
from collections.abc import Mapping

_QUANTITY = re.compile(r"(\d+(?:[.,]\d+)?)\s*(g|gr|grams?|ml|millilit(?:er|re)s?)\b", re.I)

# Quality points per field present, capped at 100.
_QUALITY_POINTS = (
    ("name", 30),
    ("brand", 20),
    ("description", 15),
    ("ingredients", 15),
    ("image", 10),
    ("category", 10),
)


def serving_grams(serving_size: str | None) -> float | None:
    """Parse a serving size such as ``"30 g"`` or ``"250ml"`` into units."""
    if not serving_size:
        return None
    match = _QUANTITY.search(serving_size)
    if match is None:
        return None
    amount = float(match.group(1).replace(",", "."))
    return amount if amount > 0 else None


def per_100_units(
    values: Mapping[str, float], serving_amount: float | None
) -> dict[str, float]:
    """Convert per-serving nutrient values to a per-100-unit basis.

    Returns an empty mapping when the serving amount is unknown, since an
    unscaled per-serving value must never be stored as per-100.
    """
    if not serving_amount or serving_amount <= 0:
        return {}
    factor = 100.0 / serving_amount
    return {key: round(value * factor, 3) for key, value in values.items()}


def estimate_quality(
    *,
    name: str | None = None,
    brand: str | None = None,
    description: str | None = None,
    ingredients: str | None = None,
    image: str | None = None,
    category: str | None = None,
) -> tuple[int, int]:
    """Return ``(quality, completion)`` for a generic lookup payload."""
    present = {
        "name": bool(name),
        "brand": bool(brand),
        "description": bool(description),
        "ingredients": bool(ingredients),
        "image": bool(image),
        "category": bool(category),
    }
    quality = sum(points for field, points in _QUALITY_POINTS if present[field])
    completion = round(sum(present.values()) / len(present) * 100)
    return min(quality, 100), completion


def estimate_web_search_quality(
    *, has_image: bool, has_nutrients: bool, has_ingredients: bool
) -> tuple[int, int]:
    """Web search results start low and stay below the trusted threshold
    unless they carry real product data."""
    quality = 30
    completion = 30
    if has_image:
        quality += 20
    if has_nutrients:
        quality += 15
        completion += 20
    if has_ingredients:
        quality += 10
        completion += 20
    return min(quality, 70), min(completion, 70)


def clean_text(value: object) -> str | None:
    """Strip a text field, mapping blanks and non-strings to None."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None

