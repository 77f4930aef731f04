"""Tests for barcode normalization."""

from product_resolver.services.barcodes import (
    ean13_check_digit,
    longest_variant,
    normalize_barcode,
    primary_barcode,
)


def test_check_digit() -> None:
    assert ean13_check_digit("400638133393") == "1"
    assert ean13_check_digit("501234567890") == "0"


def test_ean13_is_kept_as_is() -> None:
    assert normalize_barcode("4006381333931") == ["4006381333931"]


def test_upc_a_gains_leading_zero() -> None:
    assert normalize_barcode("012345678905") == ["012345678905", "0012345678905"]
    assert primary_barcode("012345678905") == "0012345678905"


def test_ean8_expands_to_thirteen_digit_variants() -> None:
    variants = normalize_barcode("96385074")

    assert variants[0] == "96385074"
    assert variants[1] == "0000096385074"
    assert variants[2].startswith("94000")
    assert variants[3].startswith("93000")
    assert all(len(v) == 13 for v in variants[1:])
    for variant in variants[1:]:
        assert ean13_check_digit(variant[:12]) == variant[12]


def test_short_codes_are_zero_padded() -> None:
    assert normalize_barcode("12345") == ["12345", "00012345", "0000000012345"]


def test_separators_are_stripped() -> None:
    assert normalize_barcode(" 4006-3813 33931 ") == ["4006381333931"]


def test_non_numeric_identifier_passes_through() -> None:
    assert normalize_barcode("  ABC  ") == ["ABC"]
    assert normalize_barcode("   ") == []
    assert primary_barcode("   ") == "   "


def test_longest_variant_is_canonical() -> None:
    assert longest_variant(normalize_barcode("012345678905")) == "0012345678905"
    assert longest_variant(["12345678", "0000012345670"]) == "0000012345670"
    assert primary_barcode("0123-4567-8905") == "0012345678905"
