"""Map a vendor field bag onto a profile's canonical fields."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from extraction.parsing import coerce_value, has_value, sniff_value
from schemas.field_set import FieldSet, FieldSource
from schemas.profile import FormProfile

logger = logging.getLogger(__name__)


def map_structured(
    field_bag: Optional[Mapping[str, Any]],
    profile: FormProfile,
    raw_text: str = "",
    confidences: Optional[Mapping[str, float]] = None,
) -> FieldSet:
    """Apply the profile's vendor-key table.

    The first alias carrying a non-blank value wins; later aliases for the
    same canonical field are ignored. Pass-through profiles keep every key.
    A canonical field takes the confidence reported for the winning key.
    """
    bag: Mapping[str, Any] = field_bag or {}
    reported: Mapping[str, float] = confidences or {}
    values: Dict[str, Any] = {}
    scores: Dict[str, float] = {}

    if profile.passthrough:
        for key, raw in bag.items():
            if has_value(raw):
                values[str(key)] = sniff_value(raw)
                if key in reported:
                    scores[str(key)] = reported[key]
    else:

        def get_first(*keys: str) -> Tuple[Optional[str], Any]:
            for key in keys:
                if key in bag and has_value(bag[key]):
                    return key, bag[key]
            return None, None

        for spec in profile.fields:
            key, raw = get_first(*spec.vendor_keys)
            if key is None:
                continue
            values[spec.name] = coerce_value(raw, spec.kind)
            if key in reported:
                scores[spec.name] = reported[key]

    logger.debug("Structured mapping for %s: %d fields", profile.document_type.value, len(values))
    return FieldSet(
        document_type=profile.document_type,
        values=values,
        raw_text=raw_text,
        sources={name: FieldSource.STRUCTURED for name in values},
        confidences=scores,
    )
