import math

import pytest

from extraction.boilerplate import has_state_and_zip, is_boilerplate, is_valid_address
from extraction.parsing import (
    coerce_value,
    normalize_identifier,
    parse_amount,
    preprocess_ocr_text,
    sniff_value,
)
from schemas.profile import ValueKind


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,200.00", 1200.0),
        ("", 0.0),
        ("0", 0.0),
        ("0.00", 0.0),
        ("  $ 45.10 ", 45.1),
        ("(250.00)", 250.0),
        ("-45.5", 45.5),
        ("USD 1,000", 1000.0),
        ("N/A", 0.0),
        ("1e5", 0.0),
        ("inf", 0.0),
        (None, 0.0),
        (True, 0.0),
        (1500, 1500.0),
        (float("nan"), 0.0),
        ({"amount": 12.5, "currencyCode": "USD"}, 12.5),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_parse_amount_is_total_over_odd_strings():
    for raw in ["$", ",", ".", "..", "$$1", "12.3.4", "--", "()", " ", "1,2,3", "abc123", "$ -"]:
        value = parse_amount(raw)
        assert isinstance(value, float)
        assert math.isfinite(value)
        assert value >= 0


def test_normalize_identifier_only_trims():
    assert normalize_identifier("  12-3456789 \n") == "12-3456789"
    assert normalize_identifier(None) == ""
    assert normalize_identifier("Jane  Doe") == "Jane  Doe"


def test_sniff_value_and_coerce():
    assert sniff_value("1,234.50") == 1234.5
    assert sniff_value(42) == 42.0
    assert sniff_value("12-3456789") == "12-3456789"
    assert sniff_value("ACME INC") == "ACME INC"
    assert sniff_value({"amount": 7}) == 7.0
    assert coerce_value("$10", ValueKind.AMOUNT) == 10.0
    assert coerce_value(" 000123 ", ValueKind.IDENTIFIER) == "000123"


def test_preprocess_repairs_ocr_damage():
    text = "lnterest income: $ 1,2O0.00\r\nFederal income tax wlthheld: $5, 000"
    cleaned = preprocess_ocr_text(text)
    assert "Interest income: $1,200.00" in cleaned
    assert "Federal income tax Withheld: $5,000" in cleaned
    assert "\r" not in cleaned
    assert preprocess_ocr_text("") == ""


def test_boilerplate_detection():
    assert is_boilerplate("Street address (including apt. no.)")
    assert is_boilerplate("City or town, state or province, country, and ZIP or foreign postal code")
    assert is_boilerplate("PAYER'S TIN")
    assert is_boilerplate("ab")
    assert is_boilerplate("123456789")
    assert not is_boilerplate("123456789", allow_numeric=True)
    assert not is_boilerplate("JANE Q TAXPAYER")
    assert not is_boilerplate("FIRST NATIONAL BANK")


def test_address_shape():
    assert is_valid_address("456 Main Street, Austin, TX 73301")
    assert is_valid_address("PO Box 12, Reno, NV 89501-1234")
    assert not is_valid_address("Street address (including apt. no.)")
    assert not is_valid_address("City or town, state or province, country, and ZIP or foreign postal code")
    assert not is_valid_address("456 Main Street, Austin")
    assert not is_valid_address("456 Main Street, Austin, ZZ 73301")
    assert not is_valid_address("")
    assert has_state_and_zip("Austin, TX 73301")
