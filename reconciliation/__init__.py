"""Structured/OCR reconciliation and result presentation."""

from .core import MIN_CONFIDENCE, confidence_warnings, plausibility_warnings, reconcile
from .presentation import to_entries

__all__ = ["MIN_CONFIDENCE", "confidence_warnings", "plausibility_warnings", "reconcile", "to_entries"]
