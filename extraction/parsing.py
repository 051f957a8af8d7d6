"""Value normalization helpers shared by the structured and OCR extractors."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Mapping

from schemas.profile import ValueKind

logger = logging.getLogger(__name__)

_CURRENCY_WORD_RE = re.compile(r"\b(?:USD|US\$)", flags=re.IGNORECASE)
_STRIP_RE = re.compile(r"[\s$€£¥,]")
_DECIMAL_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_NUMERIC_LOOKING_RE = re.compile(r"\(?[-+]?\$?\s*(?:\d{1,3}(?:,\d{3})+|\d+)?(?:\.\d+)?\)?")

# Frequent OCR misreads of box labels on scanned 1099/W-2 forms.
_WORD_CORRECTIONS = (
    ("lnterest", "Interest"),
    ("Eariy", "Early"),
    ("Forelgn", "Foreign"),
    ("Wlthheld", "Withheld"),
    ("Wlthdrawal", "Withdrawal"),
    ("Penaliy", "Penalty"),
    ("Treasu ry", "Treasury"),
    ("Obllgatlons", "Obligations"),
    ("lnvestment", "Investment"),
    ("Dlscount", "Discount"),
    ("Premlum", "Premium"),
    ("Compensatlon", "Compensation"),
    ("Dlvidends", "Dividends"),
)
_WORD_CORRECTION_RES = tuple(
    (re.compile(re.escape(wrong), flags=re.IGNORECASE), right) for wrong, right in _WORD_CORRECTIONS
)
_MONEY_TOKEN_RE = re.compile(r"\$([0-9OoIlSsZB][0-9OoIlSsZB,.]*)")
_DIGIT_CONFUSIONS = str.maketrans({"O": "0", "o": "0", "I": "1", "l": "1", "S": "5", "s": "5", "Z": "2", "B": "8"})


def parse_amount(raw: Any) -> float:
    """Parse a money value; anything unparseable becomes ``0.0``.

    The result is always finite and non-negative, rounded to cents. Vendor
    currency objects (``{"amount": 12.5}``) are unwrapped.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, Mapping):
        return parse_amount(raw.get("amount"))
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = _CURRENCY_WORD_RE.sub("", str(raw))
        cleaned = _STRIP_RE.sub("", text)
        if cleaned.startswith("(") and cleaned.endswith(")"):
            cleaned = cleaned[1:-1]
        cleaned = cleaned.lstrip("+-")
        if not _DECIMAL_RE.fullmatch(cleaned):
            if cleaned:
                logger.debug("Unparseable amount %r; treating as 0", raw)
            return 0.0
        value = float(cleaned)
    if not math.isfinite(value):
        return 0.0
    return round(abs(value), 2)


def normalize_identifier(raw: Any) -> str:
    """Trim surrounding whitespace only; identifiers are compared verbatim."""
    if raw is None:
        return ""
    return str(raw).strip()


def has_value(raw: Any) -> bool:
    if raw is None:
        return False
    if isinstance(raw, str):
        return bool(raw.strip())
    return True


def looks_numeric(raw: Any) -> bool:
    if isinstance(raw, bool):
        return False
    if isinstance(raw, (int, float)):
        return True
    text = str(raw).strip()
    return bool(text) and any(ch.isdigit() for ch in text) and bool(_NUMERIC_LOOKING_RE.fullmatch(text))


def sniff_value(raw: Any) -> Any:
    """Coerce a vendor value without a declared kind: number if numeric-looking, else text."""
    if isinstance(raw, Mapping) and "amount" in raw:
        return parse_amount(raw)
    if looks_numeric(raw):
        return parse_amount(raw)
    return normalize_identifier(raw)


def coerce_value(raw: Any, kind: ValueKind) -> Any:
    if kind == ValueKind.AMOUNT:
        return parse_amount(raw)
    return normalize_identifier(raw)


def digits_only(value: Any) -> str:
    return re.sub(r"\D", "", str(value or ""))


def _fix_money_token(match: "re.Match[str]") -> str:
    token = match.group(1)
    if not any(ch.isdigit() for ch in token):
        return match.group(0)
    return "$" + token.translate(_DIGIT_CONFUSIONS)


def preprocess_ocr_text(text: str) -> str:
    """Repair common OCR damage before the rule chains run."""
    if not text:
        return ""
    processed = text.replace("\r\n", "\n").replace("\r", "\n")
    processed = processed.replace("’", "'").replace("‘", "'").replace("`", "'")
    for pattern, right in _WORD_CORRECTION_RES:
        processed = pattern.sub(right, processed)
    processed = re.sub(r"\$[ \t]+(?=\d)", "$", processed)
    processed = _MONEY_TOKEN_RE.sub(_fix_money_token, processed)
    processed = re.sub(r"(\d),[ \t]+(\d{3})\b", r"\1,\2", processed)
    return processed
