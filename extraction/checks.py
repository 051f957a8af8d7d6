"""Named validity checks applied to OCR captures.

Profiles reference checks by name; each check receives the raw capture, the
coerced value and a :class:`CheckContext`, and returns False to reject the
capture so the next rule in the chain is tried.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Set

from extraction.boilerplate import US_STATE_CODES, is_boilerplate, is_valid_address
from extraction.parsing import digits_only
from schemas.profile import FieldSpec, ValueKind


@dataclass
class CheckContext:
    text: str
    spec: Optional[FieldSpec] = None
    identifiers: Set[str] = field(default_factory=set)


CheckFn = Callable[[str, Any, CheckContext], bool]

RULE_CHECKS: Dict[str, CheckFn] = {}

_TIN_RE = re.compile(r"\d{2}-?\d{7}|\d{3}-?\d{2}-?\d{4}|[X*]{3}-?[X*]{2}-?\d{4}", flags=re.IGNORECASE)


def register_check(name: str) -> Callable[[CheckFn], CheckFn]:
    def _wrap(fn: CheckFn) -> CheckFn:
        RULE_CHECKS[name] = fn
        return fn

    return _wrap


def unknown_checks(names: Iterable[str]) -> Set[str]:
    return {name for name in names if name not in RULE_CHECKS}


def run_checks(names: Iterable[str], raw: str, value: Any, context: CheckContext) -> bool:
    for name in names:
        if not RULE_CHECKS[name](raw, value, context):
            return False
    return True


@register_check("not_identifier")
def check_not_identifier(raw: str, value: Any, context: CheckContext) -> bool:
    """Reject a numeric capture that is really an account number or TIN seen elsewhere.

    Comma grouping marks a money amount, so only ungrouped captures are
    compared on their integer part.
    """
    if not context.identifiers:
        return True
    whole = digits_only(raw)
    if not whole:
        return True
    if whole in context.identifiers:
        return False
    if "," in raw:
        return True
    return digits_only(raw.split(".")[0]) not in context.identifiers


@register_check("not_tax_year")
def check_not_tax_year(raw: str, value: Any, context: CheckContext) -> bool:
    text = raw.strip()
    if re.fullmatch(r"(?:19|20)\d{2}", text):
        return False
    return True


@register_check("not_boilerplate")
def check_not_boilerplate(raw: str, value: Any, context: CheckContext) -> bool:
    allow_numeric = context.spec is not None and context.spec.kind == ValueKind.IDENTIFIER
    return not is_boilerplate(raw, allow_numeric=allow_numeric)


@register_check("tin_shape")
def check_tin_shape(raw: str, value: Any, context: CheckContext) -> bool:
    return bool(_TIN_RE.fullmatch(raw.strip()))


@register_check("has_digit")
def check_has_digit(raw: str, value: Any, context: CheckContext) -> bool:
    return any(ch.isdigit() for ch in raw)


@register_check("address_shape")
def check_address_shape(raw: str, value: Any, context: CheckContext) -> bool:
    return is_valid_address(raw)


@register_check("state_code")
def check_state_code(raw: str, value: Any, context: CheckContext) -> bool:
    return raw.strip().upper() in US_STATE_CODES
