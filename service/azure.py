"""Azure Document Intelligence REST adapter.

Submits the document to ``documentModels/{model}:analyze``, polls the
``Operation-Location`` until the operation settles, and flattens the first
analyzed document's fields into dotted keys (``Payer.Name``,
``Transactions[0].Box1``). Failures are returned as :class:`ServiceFailure`
values, never raised.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError
from requests.exceptions import RequestException

from service.models import (
    AnalysisOutcome,
    AnalysisResult,
    AnalyzeOperationPayload,
    DocumentFieldPayload,
    ErrorEnvelope,
    ErrorPayload,
    FailureKind,
    ServiceFailure,
)
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

MODEL_NOT_FOUND_CODES = {"ModelNotFound", "NotFound"}
MODEL_UNAVAILABLE_CODES = {"ModelNotReady", "ModelUnavailable", "UnsupportedModel", "ModelNotSupported"}
PENDING_STATUSES = {"notStarted", "running"}


def field_value(payload: DocumentFieldPayload) -> Any:
    """Scalar value of one vendor field; text content when no typed value is set."""
    if payload.valueCurrency is not None and payload.valueCurrency.amount is not None:
        return payload.valueCurrency.amount
    for value in (payload.valueNumber, payload.valueInteger, payload.valueString, payload.valueDate):
        if value is not None:
            return value
    return payload.content


def flatten_fields(
    fields: Dict[str, DocumentFieldPayload],
    prefix: str = "",
    confidences: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """Dotted/indexed keys for nested objects and arrays.

    When ``confidences`` is given, each kept key's reported confidence is
    recorded in it under the same key.
    """
    flat: Dict[str, Any] = {}

    def keep(key: str, payload: DocumentFieldPayload) -> None:
        value = field_value(payload)
        if value is None:
            return
        flat[key] = value
        if confidences is not None and payload.confidence is not None:
            confidences[key] = payload.confidence

    for name, payload in fields.items():
        key = f"{prefix}.{name}" if prefix else name
        if payload.valueObject is not None:
            flat.update(flatten_fields(payload.valueObject, key, confidences))
            continue
        if payload.valueArray is not None:
            for index, item in enumerate(payload.valueArray):
                item_key = f"{key}[{index}]"
                if item.valueObject is not None:
                    flat.update(flatten_fields(item.valueObject, item_key, confidences))
                else:
                    keep(item_key, item)
            continue
        keep(key, payload)
    return flat


def classify_failure(status_code: Optional[int], error: Optional[ErrorPayload], model_id: str, fallback_message: str = "") -> ServiceFailure:
    codes = set(error.codes()) if error is not None else set()
    message = (error.message if error is not None else None) or fallback_message or f"HTTP {status_code}"
    if status_code == 404 or codes & MODEL_NOT_FOUND_CODES:
        kind = FailureKind.MODEL_NOT_FOUND
    elif codes & MODEL_UNAVAILABLE_CODES:
        kind = FailureKind.UNAVAILABLE
    else:
        kind = FailureKind.OTHER
    if status_code in (401, 403):
        message = f"Authentication failed: {message}"
    return ServiceFailure(kind=kind, message=message, status_code=status_code, model_id=model_id)


class AzureDocumentIntelligenceClient:
    def __init__(
        self,
        endpoint: str,
        api_key: str,
        api_version: str = "2023-07-31",
        poll_interval: float = 1.0,
        timeout: float = 120.0,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.api_version = api_version
        self.poll_interval = poll_interval
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AzureDocumentIntelligenceClient":
        settings = settings or get_settings()
        settings.require_service()
        return cls(
            endpoint=settings.endpoint or "",
            api_key=settings.api_key or "",
            api_version=settings.api_version,
            poll_interval=settings.poll_interval,
            timeout=settings.timeout,
        )

    def _analyze_url(self, model_id: str) -> str:
        return f"{self.endpoint}/formrecognizer/documentModels/{model_id}:analyze?api-version={self.api_version}"

    def _error_from_response(self, resp: Any, model_id: str) -> ServiceFailure:
        error = None
        try:
            error = ErrorEnvelope.model_validate(resp.json()).error
        except (ValueError, ValidationError):
            logger.debug("Error response without a JSON error body: %s", resp.text[:500])
        return classify_failure(resp.status_code, error, model_id, fallback_message=resp.text[:500])

    def analyze(self, model_id: str, document_bytes: bytes) -> AnalysisOutcome:
        headers = {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Content-Type": "application/octet-stream",
        }
        logger.info("Submitting document to model %s", model_id)
        try:
            resp = requests.post(self._analyze_url(model_id), headers=headers, data=document_bytes, timeout=self.timeout)
        except RequestException as exc:
            logger.error("Analyze request failed: %s", exc)
            return ServiceFailure(FailureKind.OTHER, f"Request failed: {exc}", None, model_id)

        if resp.status_code not in (200, 202):
            return self._error_from_response(resp, model_id)
        location = resp.headers.get("Operation-Location") or resp.headers.get("operation-location")
        if not location:
            return ServiceFailure(FailureKind.OTHER, "Analyze response carried no Operation-Location", resp.status_code, model_id)
        return self._poll(location, model_id)

    def _poll(self, location: str, model_id: str) -> AnalysisOutcome:
        deadline = time.monotonic() + self.timeout
        headers = {"Ocp-Apim-Subscription-Key": self.api_key}
        while True:
            try:
                resp = requests.get(location, headers=headers, timeout=self.timeout)
            except RequestException as exc:
                logger.error("Polling %s failed: %s", location, exc)
                return ServiceFailure(FailureKind.OTHER, f"Request failed: {exc}", None, model_id)
            if resp.status_code != 200:
                return self._error_from_response(resp, model_id)
            try:
                operation = AnalyzeOperationPayload.model_validate(resp.json())
            except (ValueError, ValidationError) as exc:
                logger.error("Analyze operation returned an invalid payload: %s", resp.text[:500])
                return ServiceFailure(FailureKind.OTHER, f"Invalid analyze payload: {exc}", resp.status_code, model_id)

            if operation.status == "succeeded":
                return self._to_result(operation, model_id)
            if operation.status not in PENDING_STATUSES:
                return classify_failure(None, operation.error, model_id, fallback_message=f"Analyze {operation.status}")
            if time.monotonic() >= deadline:
                return ServiceFailure(FailureKind.OTHER, f"Analyze timed out after {self.timeout:.0f}s", None, model_id)
            time.sleep(self.poll_interval)

    def _to_result(self, operation: AnalyzeOperationPayload, model_id: str) -> AnalysisResult:
        result = operation.analyzeResult
        if result is None:
            return AnalysisResult(raw_text="", fields={}, model_id=model_id)
        fields: Dict[str, Any] = {}
        confidences: Dict[str, float] = {}
        if result.documents:
            fields = flatten_fields(result.documents[0].fields, confidences=confidences)
        logger.info("Model %s returned %d fields", model_id, len(fields))
        return AnalysisResult(
            raw_text=result.content or "", fields=fields, model_id=model_id, confidences=confidences
        )
