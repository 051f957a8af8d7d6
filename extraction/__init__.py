"""Field extraction from vendor field bags and OCR transcripts.

Only the leaf helpers are re-exported here; import ``extraction.classifier``,
``extraction.structured`` and ``extraction.ocr`` directly since they depend on
the profile registry.
"""

from .boilerplate import is_boilerplate, is_valid_address
from .parsing import normalize_identifier, parse_amount, preprocess_ocr_text, sniff_value

__all__ = [
    "is_boilerplate",
    "is_valid_address",
    "normalize_identifier",
    "parse_amount",
    "preprocess_ocr_text",
    "sniff_value",
]
