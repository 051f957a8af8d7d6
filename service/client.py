"""Client protocol and an in-memory client replaying recorded analyses."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from service.models import AnalysisOutcome, AnalysisResult, FailureKind, ServiceFailure

logger = logging.getLogger(__name__)

ANY_MODEL = "*"


class DocumentAnalysisClient(Protocol):
    def analyze(self, model_id: str, document_bytes: bytes) -> AnalysisOutcome:
        ...


def analysis_from_dict(data: Mapping[str, Any], model_id: str = "") -> AnalysisOutcome:
    """Build an outcome from ``{"raw_text", "fields", "confidences"}`` or ``{"failure": {"kind", "message"}}``."""
    failure = data.get("failure")
    if failure is not None:
        return ServiceFailure(
            kind=FailureKind(str(failure.get("kind", FailureKind.OTHER.value)).lower()),
            message=str(failure.get("message") or ""),
            status_code=failure.get("status_code"),
            model_id=model_id,
        )
    return AnalysisResult(
        raw_text=str(data.get("raw_text") or ""),
        fields=dict(data.get("fields") or {}),
        confidences={str(k): float(v) for k, v in (data.get("confidences") or {}).items()},
        model_id=model_id,
    )


class RecordedAnalysisClient:
    """Returns canned outcomes keyed by model id (``"*"`` matches any model).

    Unknown model ids yield a ``MODEL_NOT_FOUND`` failure, like the live service.
    """

    def __init__(self, outcomes: Mapping[str, AnalysisOutcome | Mapping[str, Any]]) -> None:
        self._outcomes: Dict[str, AnalysisOutcome] = {}
        for model_id, outcome in outcomes.items():
            if isinstance(outcome, (AnalysisResult, ServiceFailure)):
                self._outcomes[model_id] = outcome
            else:
                self._outcomes[model_id] = analysis_from_dict(outcome, model_id)
        self.calls: List[Tuple[str, int]] = []

    @classmethod
    def from_file(cls, path: str | Path) -> "RecordedAnalysisClient":
        """Load a recording: a single analysis for every model, or ``{"models": {...}}``."""
        with Path(path).open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if isinstance(data, dict) and isinstance(data.get("models"), dict):
            return cls(data["models"])
        return cls({ANY_MODEL: data})

    def analyze(self, model_id: str, document_bytes: bytes) -> AnalysisOutcome:
        self.calls.append((model_id, len(document_bytes or b"")))
        outcome: Optional[AnalysisOutcome] = self._outcomes.get(model_id) or self._outcomes.get(ANY_MODEL)
        if outcome is None:
            logger.debug("No recorded analysis for model %s", model_id)
            return ServiceFailure(FailureKind.MODEL_NOT_FOUND, f"Model {model_id} not found", 404, model_id)
        return outcome
