"""Flatten a reconciled field set into labelled display entries."""

from __future__ import annotations

from typing import Any, Dict, List

from schemas.field_set import FieldSet
from schemas.profile import FormProfile, ValueKind


def to_entries(field_set: FieldSet, profile: FormProfile, include_defaults: bool = False) -> List[Dict[str, Any]]:
    """Entries in the profile's field order, then any undeclared fields.

    With ``include_defaults`` absent amount fields are shown as ``0.0``.
    """
    entries: List[Dict[str, Any]] = []
    for spec in profile.fields:
        if spec.name in field_set:
            value = field_set[spec.name]
            source = field_set.source_of(spec.name)
        elif include_defaults and spec.kind == ValueKind.AMOUNT:
            value, source = 0.0, None
        else:
            continue
        entries.append(
            {
                "field": spec.name,
                "label": spec.label or spec.name,
                "value": value,
                "source": source.value if source else None,
                "confidence": field_set.confidence_of(spec.name),
            }
        )

    declared = set(profile.field_names)
    for name in field_set:
        if name in declared:
            continue
        source = field_set.source_of(name)
        entries.append(
            {
                "field": name,
                "label": name,
                "value": field_set[name],
                "source": source.value if source else None,
                "confidence": field_set.confidence_of(name),
            }
        )
    return entries
