"""Declarative per-document-type configuration consumed by the extractors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Pattern, Tuple, Union

from schemas.document_types import DocumentTypeId


class ValueKind(str, Enum):
    AMOUNT = "amount"
    IDENTIFIER = "identifier"
    FREE_TEXT = "free_text"


@dataclass(frozen=True)
class ExtractionRule:
    """One OCR pattern plus the named checks its capture must pass.

    ``confidence`` is attached to every value the rule produces; specific
    box-and-label patterns rank above bare box numbers.
    """

    pattern: Pattern[str]
    checks: Tuple[str, ...] = ()
    group: Union[int, str] = 1
    description: str = ""
    confidence: float = 0.85


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: ValueKind
    label: str = ""
    vendor_keys: Tuple[str, ...] = ()
    rules: Tuple[ExtractionRule, ...] = ()
    plausible_range: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class PartySpec:
    """Canonical field names for one party role (payer, recipient, employer, employee).

    ``aliases`` are extra role words printed on the form (``LENDER'S`` next to
    ``RECIPIENT'S``). ``taxpayer`` marks the role a target name applies to.
    """

    role: str
    name_field: Optional[str] = None
    tin_field: Optional[str] = None
    address_field: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    taxpayer: bool = False

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f for f in (self.name_field, self.tin_field, self.address_field) if f)

    @property
    def role_words(self) -> Tuple[str, ...]:
        return (self.role,) + tuple(self.aliases)


@dataclass(frozen=True)
class Tolerance:
    """Disagreement threshold between structured and OCR amounts.

    When both limits are set, a difference must exceed both to count.
    """

    relative: Optional[float] = 0.10
    absolute: Optional[float] = None

    def exceeded(self, first: float, second: float) -> bool:
        diff = abs(first - second)
        if diff == 0:
            return False
        if self.relative is None and self.absolute is None:
            return True
        if self.relative is not None:
            scale = max(abs(first), abs(second))
            if diff / scale <= self.relative:
                return False
        if self.absolute is not None and diff <= self.absolute:
            return False
        return True

    def matches(self, first: float, second: float) -> bool:
        return not self.exceeded(first, second)


@dataclass(frozen=True)
class FormProfile:
    document_type: DocumentTypeId
    fields: Tuple[FieldSpec, ...] = ()
    indicators: Tuple[str, ...] = ()
    critical_fields: Tuple[str, ...] = ()
    adjacent_pairs: Tuple[Tuple[str, str], ...] = ()
    parties: Tuple[PartySpec, ...] = ()
    model_id: Optional[str] = None
    tolerance: Tolerance = field(default_factory=Tolerance)
    passthrough: bool = False
    _by_name: Dict[str, FieldSpec] = field(init=False, repr=False, compare=False, default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {spec.name: spec for spec in self.fields})

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def field(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    def kind_of(self, name: str) -> Optional[ValueKind]:
        spec = self._by_name.get(name)
        return spec.kind if spec else None

    def party_field_names(self) -> Tuple[str, ...]:
        names = []
        for party in self.parties:
            names.extend(party.field_names)
        return tuple(names)


def generic_profile(document_type: DocumentTypeId = DocumentTypeId.UNKNOWN) -> FormProfile:
    """Pass-through profile for types without a registered configuration."""
    return FormProfile(document_type=document_type, passthrough=True)
