"""Closed set of tax document types handled by the extraction engine."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any


class DocumentTypeId(str, Enum):
    """Supported document types.

    Declaration order doubles as the classifier's tie-break priority.
    """

    W2 = "W2"
    FORM_1099_INT = "FORM_1099_INT"
    FORM_1099_DIV = "FORM_1099_DIV"
    FORM_1099_MISC = "FORM_1099_MISC"
    FORM_1099_NEC = "FORM_1099_NEC"
    FORM_1099_R = "FORM_1099_R"
    FORM_1099_G = "FORM_1099_G"
    FORM_1099_K = "FORM_1099_K"
    FORM_1098 = "FORM_1098"
    FORM_1098_T = "FORM_1098_T"
    FORM_1098_E = "FORM_1098_E"
    FORM_5498 = "FORM_5498"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "DocumentTypeId":
        """Accept enum members, enum names and common spellings like ``1099-INT``."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        raw = str(value).strip().upper()
        if raw in cls.__members__:
            return cls[raw]
        compact = re.sub(r"[^A-Z0-9]", "", raw)
        if compact.startswith("FORM"):
            compact = compact[4:]
        return _COMPACT_ALIASES.get(compact, cls.UNKNOWN)

    @property
    def priority(self) -> int:
        return list(DocumentTypeId).index(self)


_COMPACT_ALIASES = {
    "W2": DocumentTypeId.W2,
    "1099INT": DocumentTypeId.FORM_1099_INT,
    "1099DIV": DocumentTypeId.FORM_1099_DIV,
    "1099MISC": DocumentTypeId.FORM_1099_MISC,
    "1099NEC": DocumentTypeId.FORM_1099_NEC,
    "1099R": DocumentTypeId.FORM_1099_R,
    "1099G": DocumentTypeId.FORM_1099_G,
    "1099K": DocumentTypeId.FORM_1099_K,
    "1098": DocumentTypeId.FORM_1098,
    "1098T": DocumentTypeId.FORM_1098_T,
    "1098E": DocumentTypeId.FORM_1098_E,
    "5498": DocumentTypeId.FORM_5498,
}
