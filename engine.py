"""Extraction orchestrator: source selection, reconciliation and reclassification."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from extraction.classifier import classify
from extraction.ocr import extract_from_text
from extraction.structured import map_structured
from reconciliation.core import reconcile
from registry import FormProfileRegistry, default_registry
from schemas.document_types import DocumentTypeId
from schemas.field_set import ExtractionAttempt, ExtractionSource, FieldSet, FieldSource
from service.client import DocumentAnalysisClient
from service.models import AnalysisResult, ServiceFailure


class ExtractionError(Exception):
    """Raised when a document cannot be extracted."""


class ServiceFatalError(ExtractionError):
    """The analysis service failed in a way no fallback can recover from."""

    def __init__(self, message: str, model_id: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self.model_id = model_id
        self.status_code = status_code
        prefix = f"[{model_id}] " if model_id else ""
        super().__init__(f"{prefix}{message}")


class ExtractionState(str, Enum):
    START = "START"
    STRUCTURED_CALL = "STRUCTURED_CALL"
    STRUCTURED_OK = "STRUCTURED_OK"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    CLASSIFY_CHECK = "CLASSIFY_CHECK"
    DONE = "DONE"
    FATAL_ERROR = "FATAL_ERROR"


_CORRECTION_SOURCES = {FieldSource.OCR_OVERRIDE, FieldSource.BOILERPLATE_REPLACED, FieldSource.SWAP_CORRECTED}


@dataclass(frozen=True)
class _Pass:
    field_set: FieldSet
    structured_count: int
    ocr_count: int


class ExtractionEngine:
    """Single entry point: ``extract(document_bytes, declared_type)``.

    One service call per attempt; the structured model first, then the generic
    text model when the declared type's model is unavailable. A classifier
    disagreement triggers exactly one re-extraction on the same analysis.
    """

    def __init__(
        self,
        client: DocumentAnalysisClient,
        registry: Optional[FormProfileRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.registry = registry or default_registry()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def generic_model_id(self) -> str:
        return self.registry.generic_model_id

    def extract(
        self,
        document_bytes: bytes,
        declared_type: DocumentTypeId | str,
        target_name: Optional[str] = None,
    ) -> FieldSet:
        started = time.perf_counter()
        declared = DocumentTypeId.parse(declared_type)
        states: List[ExtractionState] = [ExtractionState.START]
        attempts: List[ExtractionAttempt] = []

        model_id = self.registry.model_id_for(declared)
        states.append(ExtractionState.STRUCTURED_CALL)
        self.logger.info("Extracting %s with model %s", declared.value, model_id)
        outcome = self.client.analyze(model_id, document_bytes)

        if isinstance(outcome, AnalysisResult):
            states.append(ExtractionState.STRUCTURED_OK)
            source = ExtractionSource.STRUCTURED_MODEL
            analysis = outcome
        elif isinstance(outcome, ServiceFailure) and outcome.model_unavailable:
            states.append(ExtractionState.MODEL_UNAVAILABLE)
            attempts.append(
                ExtractionAttempt(ExtractionSource.STRUCTURED_MODEL, model_id, declared, False, reason=outcome.message)
            )
            if model_id == self.generic_model_id:
                states.append(ExtractionState.FATAL_ERROR)
                raise ServiceFatalError(f"Generic model unavailable: {outcome.message}", model_id, outcome.status_code)
            self.logger.warning(
                "Model %s unavailable (%s); falling back to %s", model_id, outcome.message, self.generic_model_id
            )
            model_id = self.generic_model_id
            fallback = self.client.analyze(model_id, document_bytes)
            if not isinstance(fallback, AnalysisResult):
                states.append(ExtractionState.FATAL_ERROR)
                message = getattr(fallback, "message", "") or "fallback analysis failed"
                raise ServiceFatalError(message, model_id, getattr(fallback, "status_code", None))
            source = ExtractionSource.OCR_FALLBACK
            analysis = fallback
        else:
            states.append(ExtractionState.FATAL_ERROR)
            message = getattr(outcome, "message", "") or "analysis failed"
            self.logger.error("Analysis with %s failed: %s", model_id, message)
            raise ServiceFatalError(message, model_id, getattr(outcome, "status_code", None))

        current = self._run_pass(analysis, declared, source, target_name)
        attempts.append(ExtractionAttempt(source, model_id, declared, True, field_set=current.field_set))

        states.append(ExtractionState.CLASSIFY_CHECK)
        detected = classify(analysis.raw_text, self.registry)
        corrected: Optional[DocumentTypeId] = None
        if detected != DocumentTypeId.UNKNOWN and detected != declared:
            self.logger.info("Document type corrected: %s -> %s", declared.value, detected.value)
            corrected = detected
            current = self._run_pass(analysis, detected, source, target_name)
            attempts.append(ExtractionAttempt(source, model_id, detected, True, field_set=current.field_set))

        states.append(ExtractionState.DONE)
        result = current.field_set
        metrics = self._metrics(current, source, states, started)
        return result.replace(corrected_document_type=corrected, metrics=metrics, attempts=tuple(attempts))

    def _run_pass(
        self,
        analysis: AnalysisResult,
        document_type: DocumentTypeId,
        source: ExtractionSource,
        target_name: Optional[str],
    ) -> _Pass:
        profile = self.registry.resolve(document_type)
        if source == ExtractionSource.STRUCTURED_MODEL:
            structured = map_structured(
                analysis.fields, profile, raw_text=analysis.raw_text, confidences=analysis.confidences
            )
        else:
            structured = FieldSet(document_type=profile.document_type, raw_text=analysis.raw_text)
        ocr = extract_from_text(analysis.raw_text, profile, target_name=target_name)
        reconciled = reconcile(structured, ocr, profile)
        self.logger.debug(
            "%s pass for %s: structured=%d ocr=%d final=%d",
            source.value,
            document_type.value,
            len(structured),
            len(ocr),
            len(reconciled),
        )
        return _Pass(field_set=reconciled, structured_count=len(structured), ocr_count=len(ocr))

    def _metrics(
        self,
        current: _Pass,
        source: ExtractionSource,
        states: List[ExtractionState],
        started: float,
    ) -> Dict[str, Any]:
        sources = list(current.field_set.sources.values())
        scores = list(current.field_set.confidences.values())
        return {
            "structured_fields_extracted": current.structured_count,
            "ocr_fields_extracted": current.ocr_count,
            "ocr_fills": sum(1 for s in sources if s == FieldSource.OCR_FILL),
            "corrections_applied": sum(1 for s in sources if s in _CORRECTION_SOURCES),
            "validation_warnings": len(current.field_set.warnings),
            "confidence": round(sum(scores) / len(scores), 2) if scores else None,
            "ocr_fallback_used": source == ExtractionSource.OCR_FALLBACK,
            "states": [state.value for state in states],
            "total_processing_ms": int((time.perf_counter() - started) * 1000),
        }
