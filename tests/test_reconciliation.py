import pytest

from extraction.boilerplate import is_boilerplate
from loader import build_profile
from reconciliation import MIN_CONFIDENCE, confidence_warnings, plausibility_warnings, reconcile, to_entries
from schemas.document_types import DocumentTypeId
from schemas.field_set import FieldSet, FieldSource


PROFILE = build_profile(
    {
        "document_type": "FORM_1099_NEC",
        "fields": {
            "a": {"kind": "amount", "label": "Box 1 - A", "range": [10, 10000]},
            "b": {"kind": "amount", "label": "Box 2 - B"},
            "c": {"kind": "amount"},
            "d": {"kind": "amount"},
            "name": {"kind": "free_text", "label": "Recipient Name"},
            "tin": {"kind": "identifier"},
            "extra": {"kind": "free_text"},
        },
        "critical_fields": ["a", "b", "name", "tin"],
        "adjacent_pairs": [["a", "b"], ["c", "d"]],
    }
)


def _structured(**values):
    return FieldSet(
        document_type=DocumentTypeId.FORM_1099_NEC,
        values=values,
        sources={name: FieldSource.STRUCTURED for name in values},
    )


def _ocr(**values):
    return FieldSet(
        document_type=DocumentTypeId.FORM_1099_NEC,
        values=values,
        sources={name: FieldSource.OCR for name in values},
    )


def test_missing_amount_is_filled_from_ocr_including_zero():
    result = reconcile(_structured(b=5.0), _ocr(a=0.0, b=5.0), PROFILE)
    assert result["a"] == 0.0
    assert result.source_of("a") == FieldSource.OCR_FILL
    assert result.source_of("b") == FieldSource.STRUCTURED


def test_zero_structured_amount_counts_as_missing():
    result = reconcile(_structured(a=0.0), _ocr(a=12.0), PROFILE)
    assert result["a"] == 12.0
    assert result.source_of("a") == FieldSource.OCR_FILL


def test_disagreeing_amount_is_overridden():
    result = reconcile(_structured(a=100.0), _ocr(a=5000.0), PROFILE)
    assert result["a"] == 5000.0
    assert result.source_of("a") == FieldSource.OCR_OVERRIDE
    assert any("replaced by OCR value" in warning for warning in result.warnings)


def test_amount_within_tolerance_keeps_structured_value():
    result = reconcile(_structured(a=100.0), _ocr(a=105.0), PROFILE)
    assert result["a"] == 100.0
    assert result.source_of("a") == FieldSource.STRUCTURED


def test_absolute_tolerance():
    profile = build_profile(
        {
            "document_type": "FORM_1099_NEC",
            "tolerance": {"absolute": 50},
            "fields": {"a": {"kind": "amount"}},
            "critical_fields": ["a"],
        }
    )
    assert reconcile(_structured(a=100.0), _ocr(a=140.0), profile)["a"] == 100.0
    assert reconcile(_structured(a=100.0), _ocr(a=151.0), profile)["a"] == 151.0


def test_text_fill_and_boilerplate_replacement():
    result = reconcile(_structured(name="RECIPIENT'S name"), _ocr(name="JANE DOE", tin="123-45-6789"), PROFILE)
    assert result["name"] == "JANE DOE"
    assert result.source_of("name") == FieldSource.BOILERPLATE_REPLACED
    assert result["tin"] == "123-45-6789"
    assert result.source_of("tin") == FieldSource.OCR_FILL


def test_boilerplate_is_not_replaced_by_boilerplate():
    result = reconcile(_structured(name="Street address (including apt. no.)"), _ocr(name="City or town"), PROFILE)
    assert result["name"] == "Street address (including apt. no.)"
    assert result.source_of("name") == FieldSource.STRUCTURED


def test_numeric_identifier_is_not_treated_as_boilerplate():
    result = reconcile(_structured(tin="123456789"), _ocr(tin="987654321"), PROFILE)
    assert result["tin"] == "123456789"
    assert result.source_of("tin") == FieldSource.STRUCTURED


def test_short_structured_name_is_kept():
    result = reconcile(_structured(name="3M"), _ocr(name="THREE M COMPANY"), PROFILE)
    assert result["name"] == "3M"
    assert result.source_of("name") == FieldSource.STRUCTURED
    assert is_boilerplate("3M")
    assert not is_boilerplate("3M", allow_short=True)
    assert is_boilerplate(" ", allow_short=True)


def test_swapped_pair_is_corrected():
    result = reconcile(_structured(c=100.0, d=3.0), _ocr(c=3.0, d=100.0), PROFILE)
    assert (result["c"], result["d"]) == (3.0, 100.0)
    assert result.source_of("c") == FieldSource.SWAP_CORRECTED
    assert result.source_of("d") == FieldSource.SWAP_CORRECTED
    assert any("swapped" in warning for warning in result.warnings)


def test_swapped_critical_pair_ends_with_ocr_assignment():
    result = reconcile(_structured(a=100.0, b=3.0), _ocr(a=3.0, b=100.0), PROFILE)
    assert (result["a"], result["b"]) == (3.0, 100.0)


def test_no_swap_when_a_value_is_zero_or_assignment_matches():
    result = reconcile(_structured(c=100.0, d=0.0), _ocr(c=0.0, d=100.0), PROFILE)
    assert (result["c"], result["d"]) == (100.0, 0.0)

    result = reconcile(_structured(c=100.0, d=100.0), _ocr(c=100.0, d=100.0), PROFILE)
    assert result.source_of("c") == FieldSource.STRUCTURED


def test_ocr_only_fields_are_merged():
    result = reconcile(_structured(a=50.0), _ocr(a=50.0, extra="note", c=7.0), PROFILE)
    assert result["extra"] == "note"
    assert result.source_of("extra") == FieldSource.OCR_FILL
    assert result["c"] == 7.0


def test_missing_critical_fields_and_plausibility_warnings():
    result = reconcile(_structured(a=20000.0), _ocr(), PROFILE)
    assert "Critical field b missing" in result.warnings
    assert "Critical field name missing" in result.warnings
    assert "Critical field a missing" not in result.warnings
    assert any(warning.startswith("a: value 20000.00 outside expected range") for warning in result.warnings)


def test_zero_values_are_not_flagged_as_implausible():
    assert plausibility_warnings({"a": 0.0}, PROFILE) == []
    assert plausibility_warnings({"a": 5.0}, PROFILE) == ["a: value 5.00 outside expected range 10.00-10000.00"]


@pytest.mark.parametrize(
    "structured, ocr",
    [
        (dict(a=100.0, b=3.0, name="RECIPIENT'S name"), dict(a=3.0, b=100.0, name="JANE DOE")),
        (dict(c=100.0, d=3.0, tin="123456789"), dict(c=3.0, d=100.0, extra="x")),
        (dict(), dict(a=0.0, b=12.5, name="ACME", tin="12-3456789")),
        (dict(a=20000.0), dict()),
    ],
)
def test_reconcile_is_idempotent(structured, ocr):
    ocr_set = _ocr(**ocr)
    once = reconcile(_structured(**structured), ocr_set, PROFILE)
    twice = reconcile(once, ocr_set, PROFILE)
    assert dict(twice.values) == dict(once.values)
    assert dict(twice.sources) == dict(once.sources)
    assert twice.warnings == once.warnings


def test_confidence_follows_the_chosen_source():
    structured = FieldSet(
        document_type=DocumentTypeId.FORM_1099_NEC,
        values={"a": 100.0, "b": 7.0, "name": "JANE DOE"},
        sources={"a": FieldSource.STRUCTURED, "b": FieldSource.STRUCTURED, "name": FieldSource.STRUCTURED},
        confidences={"a": 0.99, "b": 0.55, "name": 0.9},
    )
    ocr = FieldSet(
        document_type=DocumentTypeId.FORM_1099_NEC,
        values={"a": 5000.0, "b": 7.0, "extra": "note"},
        sources={"a": FieldSource.OCR, "b": FieldSource.OCR, "extra": FieldSource.OCR},
        confidences={"a": 0.85, "b": 0.95},
    )
    result = reconcile(structured, ocr, PROFILE)
    assert result.confidence_of("a") == 0.85
    assert result.confidence_of("b") == 0.55
    assert result.confidence_of("name") == 0.9
    assert result.confidence_of("extra") is None
    assert "Low confidence (55%) for field: b" in result.warnings
    assert not any("field: a" in warning for warning in result.warnings)

    twice = reconcile(result, ocr, PROFILE)
    assert dict(twice.confidences) == dict(result.confidences)
    assert twice.warnings == result.warnings


def test_confidence_warnings_threshold():
    assert confidence_warnings({"a": 0.69, "b": 0.7}) == ["Low confidence (69%) for field: a"]
    assert confidence_warnings({"a": 0.69}, min_confidence=0.5) == []
    assert MIN_CONFIDENCE == 0.7


def test_mismatched_document_types_raise():
    other = FieldSet(document_type=DocumentTypeId.W2, values={"a": 1.0})
    with pytest.raises(ValueError):
        reconcile(_structured(a=1.0), other, PROFILE)


def test_to_entries_orders_by_profile_and_fills_defaults():
    result = reconcile(_structured(a=50.0, zzz="kept"), _ocr(name="JANE DOE"), PROFILE)
    entries = to_entries(result, PROFILE)
    assert [entry["field"] for entry in entries] == ["a", "name", "zzz"]
    assert entries[0] == {"field": "a", "label": "Box 1 - A", "value": 50.0, "source": "structured", "confidence": None}
    assert entries[1]["label"] == "Recipient Name"
    assert entries[2]["label"] == "zzz"

    with_defaults = to_entries(result, PROFILE, include_defaults=True)
    assert [entry["field"] for entry in with_defaults] == ["a", "b", "c", "d", "name", "zzz"]
    assert with_defaults[1] == {"field": "b", "label": "Box 2 - B", "value": 0.0, "source": None, "confidence": None}
