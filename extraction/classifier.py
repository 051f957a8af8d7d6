"""Document type detection from OCR text."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from registry import FormProfileRegistry, default_registry
from schemas.document_types import DocumentTypeId

logger = logging.getLogger(__name__)


def score_document_types(raw_text: str, registry: Optional[FormProfileRegistry] = None) -> Dict[DocumentTypeId, int]:
    """Count the distinct indicator phrases present, per registered document type.

    A phrase printed several times counts once.
    """
    if not isinstance(raw_text, str) or not raw_text:
        return {}
    registry = registry or default_registry()
    lowered = raw_text.lower()
    scores: Dict[DocumentTypeId, int] = {}
    for profile in registry.profiles:
        scores[profile.document_type] = sum(1 for phrase in profile.indicators if phrase in lowered)
    return scores


def classify(raw_text: str, registry: Optional[FormProfileRegistry] = None) -> DocumentTypeId:
    """Return the best-scoring document type, or ``UNKNOWN`` when nothing matches.

    Ties go to the type declared first in :class:`DocumentTypeId`.
    """
    scores = score_document_types(raw_text, registry)
    best = DocumentTypeId.UNKNOWN
    best_score = 0
    for doc_type in sorted(scores, key=lambda t: t.priority):
        if scores[doc_type] > best_score:
            best, best_score = doc_type, scores[doc_type]
    logger.debug("Classified text as %s (score=%s)", best.value, best_score)
    return best
