"""Barcode normalization into lookup variants."""

import re
from collections.abc import Sequence

_NON_DIGITS = re.compile(r"\D")

# GS1 prefixes tried for EAN-8 codes that were printed without one.
_EAN8_COUNTRY_PREFIXES = ("94", "93")


def ean13_check_digit(first_twelve: str) -> str:
    """Compute the EAN-13 check digit for a 12-digit prefix."""
    total = 0
    for index, char in enumerate(first_twelve[:12]):
        digit = int(char)
        total += digit if index % 2 == 0 else digit * 3
    return str((10 - total % 10) % 10)


def normalize_barcode(raw: str) -> list[str]:
    """Return the identifier variants worth querying, the raw digits first."""
    cleaned = _NON_DIGITS.sub("", raw)
    if not cleaned:
        cleaned = raw.strip()
        return [cleaned] if cleaned else []

    variants = [cleaned]
    if len(cleaned) == 8:
        # Zero padding keeps an EAN-8 check digit valid as EAN-13.
        variants.append("00000" + cleaned)
        for prefix in _EAN8_COUNTRY_PREFIXES:
            body = prefix + "000" + cleaned[:7]
            variants.append(body + ean13_check_digit(body))
    elif len(cleaned) == 12:
        variants.append("0" + cleaned)
    elif len(cleaned) < 8:
        to_eight = cleaned.zfill(8)
        variants.append(to_eight)
        variants.append("00000" + to_eight)

    return list(dict.fromkeys(variants))


def longest_variant(variants: Sequence[str]) -> str:
    """Return the canonical variant, the longest one (usually EAN-13)."""
    return max(variants, key=len)


def primary_barcode(raw: str) -> str:
    variants = normalize_barcode(raw)
    if not variants:
        return raw
    return longest_variant(variants)
