"""Merge the structured and OCR views of one document into a single field set."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from extraction.boilerplate import is_boilerplate
from extraction.parsing import has_value
from schemas.field_set import FieldSet, FieldSource
from schemas.profile import FormProfile, ValueKind

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.7


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _amount_missing(value: Any) -> bool:
    return value is None or (_is_number(value) and value == 0)


def _non_zero(value: Any) -> bool:
    return _is_number(value) and value != 0


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _resolve_amount(name: str, current: Any, ocr_value: Any, profile: FormProfile, notes: List[str]) -> Optional[FieldSource]:
    """Return the provenance for taking ``ocr_value``, or None to keep ``current``."""
    if ocr_value is None:
        return None
    if _amount_missing(current):
        return FieldSource.OCR_FILL
    if _is_number(current) and _is_number(ocr_value) and profile.tolerance.exceeded(current, ocr_value):
        notes.append(f"{name}: structured value {current:.2f} replaced by OCR value {ocr_value:.2f}")
        return FieldSource.OCR_OVERRIDE
    return None


def _resolve_text(name: str, kind: ValueKind, current: Any, ocr_value: Any, notes: List[str]) -> Optional[FieldSource]:
    if not has_value(ocr_value):
        return None
    if not has_value(current):
        return FieldSource.OCR_FILL
    allow_numeric = kind == ValueKind.IDENTIFIER
    current_is_wording = is_boilerplate(current, allow_numeric=allow_numeric, allow_short=True)
    if current_is_wording and not is_boilerplate(ocr_value, allow_numeric=allow_numeric):
        notes.append(f"{name}: form wording {current!r} replaced by OCR value")
        return FieldSource.BOILERPLATE_REPLACED
    return None


def _is_transposed(profile: FormProfile, s_a: Any, s_b: Any, o_a: Any, o_b: Any) -> bool:
    if not all(_non_zero(v) for v in (s_a, s_b, o_a, o_b)):
        return False
    tol = profile.tolerance
    crossed = tol.matches(s_a, o_b) and tol.matches(s_b, o_a)
    straight = tol.matches(s_a, o_a) and tol.matches(s_b, o_b)
    return crossed and not straight


def plausibility_warnings(values: Dict[str, Any], profile: FormProfile) -> List[str]:
    warnings = []
    for spec in profile.fields:
        value = values.get(spec.name)
        if spec.plausible_range is None or not _non_zero(value):
            continue
        low, high = spec.plausible_range
        if value < low or value > high:
            warnings.append(f"{spec.name}: value {value:.2f} outside expected range {low:.2f}-{high:.2f}")
    return warnings


def _set_confidence(confidences: Dict[str, float], name: str, confidence: Optional[float]) -> None:
    if confidence is None:
        confidences.pop(name, None)
    else:
        confidences[name] = confidence


def confidence_warnings(confidences: Mapping[str, float], min_confidence: float = MIN_CONFIDENCE) -> List[str]:
    return [
        f"Low confidence ({round(score * 100)}%) for field: {name}"
        for name, score in confidences.items()
        if score < min_confidence
    ]


def reconcile(
    structured: FieldSet,
    ocr: FieldSet,
    profile: FormProfile,
    min_confidence: float = MIN_CONFIDENCE,
) -> FieldSet:
    """Fill, override and swap-correct the critical fields, then merge OCR-only fields.

    Critical fields are visited in declared order and the first applicable
    rule wins. Swap detection reads the original structured values. Running
    this again on its own output with the same OCR set changes nothing.
    Each field keeps the confidence of the source its value came from, and
    known confidences below ``min_confidence`` are reported as warnings.
    """
    if structured.document_type != ocr.document_type:
        raise ValueError(
            f"Cannot reconcile {structured.document_type.value} with {ocr.document_type.value} field sets"
        )

    values: Dict[str, Any] = dict(structured.values)
    sources: Dict[str, FieldSource] = {name: structured.sources.get(name, FieldSource.STRUCTURED) for name in values}
    notes: List[str] = []
    confidences: Dict[str, float] = dict(structured.confidences)

    def take_ocr(name: str, source: FieldSource) -> None:
        ocr_value = ocr.get(name)
        if values.get(name) == ocr_value and name in values:
            return
        values[name] = ocr_value
        sources[name] = source
        _set_confidence(confidences, name, ocr.confidence_of(name))

    for name in profile.critical_fields:
        kind = profile.kind_of(name)
        current = structured.get(name)
        ocr_value = ocr.get(name)
        if kind == ValueKind.AMOUNT:
            source = _resolve_amount(name, current, ocr_value, profile, notes)
        else:
            source = _resolve_text(name, kind, current, ocr_value, notes)
        if source is not None:
            take_ocr(name, source)

    for first, second in profile.adjacent_pairs:
        s_a, s_b = structured.get(first), structured.get(second)
        o_a, o_b = ocr.get(first), ocr.get(second)
        if _is_transposed(profile, s_a, s_b, o_a, o_b):
            notes.append(f"{first}/{second}: structured values look swapped; using OCR assignment")
            take_ocr(first, FieldSource.SWAP_CORRECTED)
            take_ocr(second, FieldSource.SWAP_CORRECTED)

    for name, ocr_value in ocr.values.items():
        if name not in values:
            values[name] = ocr_value
            sources[name] = FieldSource.OCR_FILL
            _set_confidence(confidences, name, ocr.confidence_of(name))

    missing = [f"Critical field {name} missing" for name in profile.critical_fields if name not in values]
    low = confidence_warnings(confidences, min_confidence)
    warnings = _dedupe(list(structured.warnings) + notes + missing + plausibility_warnings(values, profile) + low)
    for note in notes:
        logger.info("Reconciliation %s: %s", profile.document_type.value, note)

    return FieldSet(
        document_type=structured.document_type,
        values=values,
        raw_text=structured.raw_text or ocr.raw_text,
        corrected_document_type=structured.corrected_document_type,
        sources=sources,
        confidences=confidences,
        warnings=tuple(warnings),
    )
