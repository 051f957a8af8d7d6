"""Typed data model shared by the extraction and reconciliation layers."""

from .document_types import DocumentTypeId
from .field_set import ExtractionAttempt, ExtractionSource, FieldSet, FieldSource
from .profile import (
    ExtractionRule,
    FieldSpec,
    FormProfile,
    PartySpec,
    Tolerance,
    ValueKind,
    generic_profile,
)

__all__ = [
    "DocumentTypeId",
    "ExtractionAttempt",
    "ExtractionRule",
    "ExtractionSource",
    "FieldSet",
    "FieldSource",
    "FieldSpec",
    "FormProfile",
    "PartySpec",
    "Tolerance",
    "ValueKind",
    "generic_profile",
]
