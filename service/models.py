"""Contract types for the external document-understanding service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    MODEL_NOT_FOUND = "model_not_found"
    UNAVAILABLE = "unavailable"
    OTHER = "other"


@dataclass(frozen=True)
class AnalysisResult:
    """Raw OCR text plus the vendor's flattened field bag and per-key confidences."""

    raw_text: str = ""
    fields: Mapping[str, Any] = field(default_factory=dict)
    model_id: str = ""
    confidences: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ServiceFailure:
    kind: FailureKind
    message: str = ""
    status_code: Optional[int] = None
    model_id: str = ""

    @property
    def model_unavailable(self) -> bool:
        return self.kind in (FailureKind.MODEL_NOT_FOUND, FailureKind.UNAVAILABLE)


AnalysisOutcome = Union[AnalysisResult, ServiceFailure]


# ---------- Document Intelligence REST payloads ----------
class CurrencyValue(BaseModel):
    amount: Optional[float] = None
    currencySymbol: Optional[str] = None
    currencyCode: Optional[str] = None


class DocumentFieldPayload(BaseModel):
    type: Optional[str] = None
    content: Optional[str] = None
    confidence: Optional[float] = None
    valueString: Optional[str] = None
    valueNumber: Optional[float] = None
    valueInteger: Optional[int] = None
    valueDate: Optional[str] = None
    valueCurrency: Optional[CurrencyValue] = None
    valueObject: Optional[Dict[str, "DocumentFieldPayload"]] = None
    valueArray: Optional[List["DocumentFieldPayload"]] = None


DocumentFieldPayload.model_rebuild()


class AnalyzedDocumentPayload(BaseModel):
    docType: Optional[str] = None
    fields: Dict[str, DocumentFieldPayload] = Field(default_factory=dict)
    confidence: Optional[float] = None


class AnalyzeResultPayload(BaseModel):
    modelId: Optional[str] = None
    content: str = ""
    documents: List[AnalyzedDocumentPayload] = Field(default_factory=list)


class ErrorPayload(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None
    innererror: Optional["ErrorPayload"] = None

    def codes(self) -> List[str]:
        out = [self.code] if self.code else []
        if self.innererror is not None:
            out.extend(self.innererror.codes())
        return out


ErrorPayload.model_rebuild()


class ErrorEnvelope(BaseModel):
    error: ErrorPayload


class AnalyzeOperationPayload(BaseModel):
    status: str
    analyzeResult: Optional[AnalyzeResultPayload] = None
    error: Optional[ErrorPayload] = None
