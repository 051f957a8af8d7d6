"""Result containers returned by the extraction pipeline."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from schemas.document_types import DocumentTypeId


class FieldSource(str, Enum):
    STRUCTURED = "structured"
    OCR = "ocr"
    OCR_FILL = "ocr_fill"
    OCR_OVERRIDE = "ocr_override"
    BOILERPLATE_REPLACED = "boilerplate_replaced"
    SWAP_CORRECTED = "swap_corrected"


class ExtractionSource(str, Enum):
    STRUCTURED_MODEL = "structured_model"
    OCR_FALLBACK = "ocr_fallback"


@dataclass(frozen=True)
class FieldSet:
    """Canonical field values for one document.

    Unobserved fields are absent from ``values``; ``None`` is never stored.
    ``confidences`` holds a 0-1 score for the fields whose source reported one.
    """

    document_type: DocumentTypeId
    values: Mapping[str, Any] = field(default_factory=dict)
    raw_text: str = ""
    corrected_document_type: Optional[DocumentTypeId] = None
    sources: Mapping[str, FieldSource] = field(default_factory=dict)
    confidences: Mapping[str, float] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    metrics: Mapping[str, Any] = field(default_factory=dict, compare=False)
    attempts: Tuple["ExtractionAttempt", ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        values = {k: v for k, v in dict(self.values).items() if v is not None}
        sources = {k: FieldSource(v) for k, v in dict(self.sources).items() if k in values}
        object.__setattr__(self, "values", MappingProxyType(values))
        object.__setattr__(self, "sources", MappingProxyType(sources))
        confidences = {k: float(v) for k, v in dict(self.confidences).items() if k in values and v is not None}
        object.__setattr__(self, "confidences", MappingProxyType(confidences))
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "attempts", tuple(self.attempts))

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def confidence_of(self, name: str) -> Optional[float]:
        return self.confidences.get(name)

    def source_of(self, name: str) -> Optional[FieldSource]:
        return self.sources.get(name)

    def replace(self, **changes: Any) -> "FieldSet":
        return dataclasses.replace(self, **changes)

    def to_dict(self, include_text: bool = False) -> Dict[str, Any]:
        """Plain-JSON view used by the CLI and callers that persist results."""
        data: Dict[str, Any] = {
            "document_type": self.document_type.value,
            "fields": dict(self.values),
            "sources": {k: v.value for k, v in self.sources.items()},
            "confidences": dict(self.confidences),
            "warnings": list(self.warnings),
            "metrics": dict(self.metrics),
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }
        if self.corrected_document_type is not None:
            data["corrected_document_type"] = self.corrected_document_type.value
        if include_text:
            data["raw_text"] = self.raw_text
        return data


@dataclass(frozen=True)
class ExtractionAttempt:
    """Outcome of one pass against one extraction source."""

    source: ExtractionSource
    model_id: str
    document_type: DocumentTypeId
    success: bool
    reason: str = ""
    field_set: Optional[FieldSet] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "model_id": self.model_id,
            "document_type": self.document_type.value,
            "success": self.success,
            "reason": self.reason,
            "field_count": len(self.field_set) if self.field_set is not None else 0,
        }
