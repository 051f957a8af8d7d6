"""Rule-chain field extraction from the OCR transcript."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from extraction.checks import CheckContext, run_checks
from extraction.parsing import coerce_value, digits_only, has_value, preprocess_ocr_text
from extraction.personal_info import extract_parties
from schemas.field_set import FieldSet, FieldSource
from schemas.profile import FieldSpec, FormProfile, ValueKind

logger = logging.getLogger(__name__)

# Masked TINs keep only their last four digits; too short to tell from an amount.
MIN_IDENTIFIER_DIGITS = 6
# Party captures are label-anchored and shape-checked.
PARTY_CONFIDENCE = 0.85


def match_field(text: str, spec: FieldSpec, context: CheckContext) -> Optional[Tuple[Any, float]]:
    """Run a field's rules in order; the first capture passing its checks wins.

    Returns the value with the winning rule's confidence, or ``None`` when no
    rule produced an acceptable value. ``0.0`` is an accepted amount.
    """
    field_context = CheckContext(text=context.text, spec=spec, identifiers=context.identifiers)
    for rule in spec.rules:
        for match in rule.pattern.finditer(text):
            raw = match.group(rule.group)
            if raw is None or not raw.strip():
                continue
            value = coerce_value(raw, spec.kind)
            if spec.kind != ValueKind.AMOUNT and not has_value(value):
                continue
            if run_checks(rule.checks, raw, value, field_context):
                logger.debug("%s matched by %s: %r", spec.name, rule.description or rule.pattern.pattern, raw)
                return value, rule.confidence
    return None


def extract_from_text(raw_text: str, profile: FormProfile, target_name: Optional[str] = None) -> FieldSet:
    """Build a second, independent field set from OCR text alone.

    Party fields go first, then identifier and text fields, then amounts so
    the amount checks can reject captures equal to an identifier already seen.
    """
    source_text = raw_text if isinstance(raw_text, str) else ""
    if not source_text.strip() or profile.passthrough:
        return FieldSet(document_type=profile.document_type, raw_text=source_text)

    text = preprocess_ocr_text(source_text)
    values: Dict[str, Any] = dict(extract_parties(text, profile, target_name))
    confidences: Dict[str, float] = {name: PARTY_CONFIDENCE for name in values}

    context = CheckContext(text=text)
    for spec in profile.fields:
        if spec.kind == ValueKind.AMOUNT or spec.name in values or not spec.rules:
            continue
        matched = match_field(text, spec, context)
        if matched is not None:
            values[spec.name], confidences[spec.name] = matched

    for name, value in values.items():
        if profile.kind_of(name) == ValueKind.IDENTIFIER:
            digits = digits_only(value)
            if len(digits) >= MIN_IDENTIFIER_DIGITS:
                context.identifiers.add(digits)

    for spec in profile.fields:
        if spec.kind != ValueKind.AMOUNT:
            continue
        matched = match_field(text, spec, context)
        if matched is not None:
            values[spec.name], confidences[spec.name] = matched

    logger.debug("OCR extraction for %s: %d fields", profile.document_type.value, len(values))
    return FieldSet(
        document_type=profile.document_type,
        values=values,
        raw_text=source_text,
        sources={name: FieldSource.OCR for name in values},
        confidences=confidences,
    )
