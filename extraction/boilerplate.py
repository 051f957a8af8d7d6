"""Heuristics that tell filled-in data apart from static form wording."""

from __future__ import annotations

import re
from typing import Any

_BOILERPLATE_PATTERNS = [
    r"see\s+(?:the\s+)?(?:separate\s+)?instructions",
    r"street\s+address.*(?:zip|telephone|apt\.?\s+no)",
    r"including\s+apt\.?\s+no",
    r"city\s+or\s+town",
    r"state\s+or\s+province",
    r"foreign\s+postal\s+code",
    r"telephone\s+(?:no|number)",
    r"\bcopy\s+(?:[a-c]|[12])\b",
    r"department\s+of\s+the\s+treasury",
    r"internal\s+revenue\s+service",
    r"\birs\b",
    r"\bomb\s+no\b",
    r"\bfor\s+(?:recipient|payer|employee|borrower|student|participant)\b",
    r"\b(?:payer|recipient|employer|employee|filer|lender|borrower|trustee|participant)'?s\s+"
    r"(?:name|tin|federal|identification|social|address|ssn)\b",
    r"employer\s+identification\s+number",
    r"this\s+is\s+important\s+tax\s+information",
    r"\bform\s+(?:w-?2|1099|1098|5498)\b",
    r"wage\s+and\s+tax\s+statement",
    r"\bcontrol\s+number\b",
    r"^(?:void|corrected|calendar\s+year|name|address|tin)$",
]
_BOILERPLATE_RE = re.compile("|".join(f"(?:{p})" for p in _BOILERPLATE_PATTERNS), flags=re.IGNORECASE)
_NO_LETTERS_RE = re.compile(r"[\d\W_]+")

_STREET_NUMBER_RE = re.compile(r"^\s*\d{1,6}[A-Za-z]?\b")
_STREET_WORD_RE = re.compile(
    r"\b(?:street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr|court|ct|way|place|pl|"
    r"parkway|pkwy|highway|hwy|circle|cir|terrace|ter|trail|trl|suite|ste|apt|unit|p\.?\s*o\.?\s+box)\b",
    flags=re.IGNORECASE,
)
_STATE_ZIP_RE = re.compile(r"\b([A-Z]{2})\s*,?\s+\d{5}(?:-\d{4})?\b")

US_STATE_CODES = frozenset(
    """
    AL AK AZ AR CA CO CT DE DC FL GA HI ID IL IN IA KS KY LA ME MD MA MI MN MS MO MT NE NV NH NJ
    NM NY NC ND OH OK OR PA RI SC SD TN TX UT VT VA WA WV WI WY PR VI GU AS MP AA AE AP
    """.split()
)


def is_boilerplate(value: Any, allow_numeric: bool = False, allow_short: bool = False) -> bool:
    """Return True when ``value`` looks like form wording rather than data.

    Short strings and strings without letters count as boilerplate unless
    ``allow_short`` or ``allow_numeric`` is set (identifiers such as TINs are
    all digits; a vendor-parsed name such as ``3M`` can be two characters).
    """
    text = " ".join(str(value or "").split())
    if not text:
        return True
    if len(text) < 3 and not allow_short:
        return True
    if _BOILERPLATE_RE.search(text):
        return True
    if not allow_numeric and _NO_LETTERS_RE.fullmatch(text):
        return True
    return False


def has_state_and_zip(value: str) -> bool:
    return any(match.group(1) in US_STATE_CODES for match in _STATE_ZIP_RE.finditer(value))


def is_valid_address(value: Any) -> bool:
    """Street number or street-type word, plus a state code and ZIP, and no boilerplate."""
    text = " ".join(str(value or "").split())
    if not text:
        return False
    if not (_STREET_NUMBER_RE.search(text) or _STREET_WORD_RE.search(text)):
        return False
    if not has_state_and_zip(text):
        return False
    return not is_boilerplate(text)
