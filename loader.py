"""Loader utilities for form profile YAML files."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import yaml

from extraction.checks import unknown_checks
from schemas.document_types import DocumentTypeId
from schemas.profile import (
    ExtractionRule,
    FieldSpec,
    FormProfile,
    PartySpec,
    Tolerance,
    ValueKind,
)


PACKAGE_ROOT = Path(__file__).resolve().parent
PROFILES_DIR = PACKAGE_ROOT / "profiles"

RULE_FLAGS = re.IGNORECASE | re.MULTILINE

# A money value that is not the head of a date, TIN or longer number.
AMOUNT_PATTERN = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{1,2})?(?![\-/,.]?\d)"
_INLINE_VALUE = r"[ \t]*[:\-]?[ \t]*\$?[ \t]*(" + AMOUNT_PATTERN + r")"
_NEXT_LINE_VALUE = r"[ \t]*[:\-]?[ \t]*\n[ \t]*\$?[ \t]*(" + AMOUNT_PATTERN + r")[ \t]*$"
_PERMISSIVE_CHECKS = ("not_identifier", "not_tax_year")
_AMOUNT_CHECKS = ("not_identifier",)

# Confidence of each generated rule kind, most specific first.
RULE_CONFIDENCE = {
    "box_label": 0.95,
    "box_label_next_line": 0.9,
    "box": 0.85,
    "label": 0.85,
    "label_next_line": 0.8,
    "bare_box": 0.7,
}
EXPLICIT_RULE_CONFIDENCE = 0.85

TAXPAYER_ROLES = frozenset({"recipient", "employee", "student", "borrower", "participant", "payee"})


class ProfileError(ValueError):
    """Raised when a profile YAML file is malformed."""


def _load_yaml_file(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def phrase_pattern(phrase: str) -> str:
    """Escape a label phrase, tolerating OCR variation in spacing and hyphens."""
    tokens = [re.escape(token) for token in re.split(r"[\s\-]+", phrase.strip()) if token]
    return r"[\s\-]+".join(tokens)


def build_amount_rules(box: Optional[str], labels: Sequence[str]) -> Tuple[ExtractionRule, ...]:
    """Generate the ordered rule chain for an amount box.

    Most specific first: box number with label, ``Box N``, label alone, and
    finally a bare box number at the start of a line.
    """
    label_patterns = [phrase_pattern(label) for label in labels if label]
    rules: List[ExtractionRule] = []
    box_re = re.escape(str(box)) if box else None

    if box_re:
        for label in label_patterns:
            head = r"(?<![\w.,$])(?:Box[ \t]*)?" + box_re + r"\.?[ \t]+" + label
            rules.append(_rule(head + _INLINE_VALUE, _AMOUNT_CHECKS, f"box {box} + label", "box_label"))
            rules.append(
                _rule(head + _NEXT_LINE_VALUE, _AMOUNT_CHECKS, f"box {box} + label, next line", "box_label_next_line")
            )
        rules.append(_rule(r"\bBox[ \t]*" + box_re + r"\b" + _INLINE_VALUE, _AMOUNT_CHECKS, f"Box {box}", "box"))

    for label in label_patterns:
        head = r"(?<!\w)" + label
        rules.append(_rule(head + _INLINE_VALUE, _AMOUNT_CHECKS, "label", "label"))
        rules.append(_rule(head + _NEXT_LINE_VALUE, _AMOUNT_CHECKS, "label, next line", "label_next_line"))

    if box_re:
        bare = r"^[ \t]*" + box_re + r"\.?[ \t]+\$?[ \t]*(" + AMOUNT_PATTERN + r")[ \t]*$"
        rules.append(_rule(bare, _PERMISSIVE_CHECKS, f"bare box {box}", "bare_box"))
    return tuple(rules)


def _rule(pattern: str, checks: Iterable[str], description: str, kind: str) -> ExtractionRule:
    return ExtractionRule(
        pattern=re.compile(pattern, RULE_FLAGS),
        checks=tuple(checks),
        description=description,
        confidence=RULE_CONFIDENCE[kind],
    )


def _build_explicit_rules(source: str, field_name: str, raw_rules: Any) -> Tuple[ExtractionRule, ...]:
    if raw_rules is None:
        return ()
    if not isinstance(raw_rules, list):
        raise ProfileError(f"{source}: rules for {field_name} must be a list")
    rules: List[ExtractionRule] = []
    for raw in raw_rules:
        if isinstance(raw, str):
            raw = {"pattern": raw}
        if not isinstance(raw, Mapping) or "pattern" not in raw:
            raise ProfileError(f"{source}: rule for {field_name} needs a pattern")
        checks = tuple(raw.get("checks") or ())
        missing = unknown_checks(checks)
        if missing:
            raise ProfileError(f"{source}: unknown checks {sorted(missing)} on {field_name}")
        try:
            compiled = re.compile(str(raw["pattern"]), RULE_FLAGS)
        except re.error as exc:
            raise ProfileError(f"{source}: invalid pattern for {field_name}: {exc}") from exc
        confidence = raw.get("confidence", EXPLICIT_RULE_CONFIDENCE)
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool) or not 0 <= confidence <= 1:
            raise ProfileError(f"{source}: rule confidence for {field_name} must be between 0 and 1")
        rules.append(
            ExtractionRule(
                pattern=compiled,
                checks=checks,
                group=raw.get("group", 1),
                description=str(raw.get("description") or "explicit"),
                confidence=float(confidence),
            )
        )
    return tuple(rules)


def _build_field(source: str, name: str, raw: Mapping[str, Any]) -> FieldSpec:
    try:
        kind = ValueKind(str(raw.get("kind", "")).lower())
    except ValueError as exc:
        raise ProfileError(f"{source}: field {name} has invalid kind {raw.get('kind')!r}") from exc

    rules = _build_explicit_rules(source, name, raw.get("rules"))
    if kind == ValueKind.AMOUNT:
        labels = raw.get("labels") or []
        if isinstance(labels, str):
            labels = [labels]
        rules = rules + build_amount_rules(raw.get("box"), labels)

    bounds = raw.get("range")
    plausible_range = None
    if bounds is not None:
        if not isinstance(bounds, list) or len(bounds) != 2:
            raise ProfileError(f"{source}: range for {name} must be [low, high]")
        plausible_range = (float(bounds[0]), float(bounds[1]))

    vendor_keys = raw.get("vendor_keys") or []
    if isinstance(vendor_keys, str):
        vendor_keys = [vendor_keys]
    return FieldSpec(
        name=name,
        kind=kind,
        label=str(raw.get("label") or name),
        vendor_keys=tuple(str(k) for k in vendor_keys),
        rules=rules,
        plausible_range=plausible_range,
    )


def _build_tolerance(source: str, raw: Any) -> Tolerance:
    if raw is None:
        return Tolerance()
    if not isinstance(raw, Mapping):
        raise ProfileError(f"{source}: tolerance must be a mapping")
    relative = raw.get("relative")
    absolute = raw.get("absolute")
    return Tolerance(
        relative=float(relative) if relative is not None else None,
        absolute=float(absolute) if absolute is not None else None,
    )


def build_profile(raw: Mapping[str, Any], source: str = "<memory>") -> FormProfile:
    """Validate one profile mapping and turn it into a :class:`FormProfile`."""
    if not isinstance(raw, Mapping):
        raise ProfileError(f"{source}: profile must be a mapping")
    document_type = DocumentTypeId.parse(raw.get("document_type"))
    if document_type == DocumentTypeId.UNKNOWN:
        raise ProfileError(f"{source}: unknown document_type {raw.get('document_type')!r}")

    raw_fields = raw.get("fields") or {}
    if not isinstance(raw_fields, Mapping) or not raw_fields:
        raise ProfileError(f"{source}: fields must be a non-empty mapping")
    fields = tuple(_build_field(source, str(name), spec or {}) for name, spec in raw_fields.items())
    by_name: Dict[str, FieldSpec] = {spec.name: spec for spec in fields}

    parties: List[PartySpec] = []
    for role, attrs in (raw.get("parties") or {}).items():
        attrs = attrs or {}
        role_name = str(role).lower()
        party = PartySpec(
            role=role_name,
            name_field=attrs.get("name"),
            tin_field=attrs.get("tin"),
            address_field=attrs.get("address"),
            aliases=tuple(str(a).lower() for a in attrs.get("aliases") or []),
            taxpayer=bool(attrs.get("taxpayer", role_name in TAXPAYER_ROLES)),
        )
        for field_name in party.field_names:
            if field_name not in by_name:
                raise ProfileError(f"{source}: party {role} references undeclared field {field_name}")
        parties.append(party)

    critical = tuple(str(name) for name in raw.get("critical_fields") or [])
    for name in critical:
        if name not in by_name:
            raise ProfileError(f"{source}: critical field {name} is not declared")

    pairs: List[Tuple[str, str]] = []
    for pair in raw.get("adjacent_pairs") or []:
        if not isinstance(pair, list) or len(pair) != 2:
            raise ProfileError(f"{source}: adjacent pair {pair!r} must have two fields")
        first, second = str(pair[0]), str(pair[1])
        for name in (first, second):
            spec = by_name.get(name)
            if spec is None or spec.kind != ValueKind.AMOUNT:
                raise ProfileError(f"{source}: adjacent pair field {name} must be a declared amount")
        pairs.append((first, second))

    indicators = tuple(str(phrase).strip().lower() for phrase in raw.get("indicators") or [] if str(phrase).strip())

    return FormProfile(
        document_type=document_type,
        fields=fields,
        indicators=indicators,
        critical_fields=critical,
        adjacent_pairs=tuple(pairs),
        parties=tuple(parties),
        model_id=raw.get("model_id"),
        tolerance=_build_tolerance(source, raw.get("tolerance")),
    )


@lru_cache(maxsize=4)
def load_all_profiles(profiles_dir: Path | str | None = None) -> Tuple[FormProfile, ...]:
    """Load every ``*.yaml`` profile, ordered by document type priority."""
    directory = Path(profiles_dir) if profiles_dir else PROFILES_DIR
    if not directory.exists():
        raise FileNotFoundError(f"Profiles directory not found: {directory}")

    profiles: Dict[DocumentTypeId, FormProfile] = {}
    for path in sorted(directory.glob("*.yaml")):
        profile = build_profile(_load_yaml_file(path), source=path.name)
        if profile.document_type in profiles:
            raise ProfileError(f"{path.name}: duplicate profile for {profile.document_type.value}")
        profiles[profile.document_type] = profile
    if not profiles:
        raise ProfileError(f"No profile files found in {directory}")
    return tuple(sorted(profiles.values(), key=lambda p: p.document_type.priority))


def reload_caches() -> None:
    """Clear cached loaders (useful for tests)."""
    load_all_profiles.cache_clear()
