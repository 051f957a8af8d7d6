"""Document-understanding service clients."""

from .client import DocumentAnalysisClient, RecordedAnalysisClient, analysis_from_dict
from .models import AnalysisOutcome, AnalysisResult, FailureKind, ServiceFailure

__all__ = [
    "AnalysisOutcome",
    "AnalysisResult",
    "DocumentAnalysisClient",
    "FailureKind",
    "RecordedAnalysisClient",
    "ServiceFailure",
    "analysis_from_dict",
]
