"""Party identity extraction (name, TIN, address) from OCR text.

Values are anchored on the printed party labels (``PAYER'S name``,
``b Employer identification number (EIN)``) and never read past the next
known label or a blank line. Captured text that is really form wording is
rejected by the boilerplate filter; addresses must also look like an address.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Pattern, Tuple

from rapidfuzz.distance import Levenshtein

from extraction.boilerplate import is_boilerplate, is_valid_address
from extraction.parsing import normalize_identifier
from schemas.profile import FormProfile, PartySpec, ValueKind

logger = logging.getLogger(__name__)

NAME_SIMILARITY_THRESHOLD = 0.7
MAX_LABEL_CONTINUATION_LINES = 2
MAX_ADDRESS_LINES = 4

TIN_VALUE_RE = re.compile(r"(?<![\w-])(?:\d{2}-\d{7}|\d{3}-\d{2}-\d{4}|[X*]{3}-[X*]{2}-\d{4}|\d{9})(?![\w-])", re.IGNORECASE)
_TIN_WORDS = r"(?:TIN|federal\s+identification\s+number|identification\s+number|social\s+security\s+number|SSN)"
_LABEL_WORDS = r"(?:name|first\s+name|TIN|address|federal|identification|social\s+security|SSN|street)"
_BOX_PREFIX_RE = re.compile(r"^\s*Box\s+\w+\s*-\s*", re.IGNORECASE)


@dataclass(frozen=True)
class _PartyPatterns:
    party: PartySpec
    name_label: Pattern[str]
    name_inline: Pattern[str]
    address_inline: Pattern[str]
    address_label: Pattern[str]
    tin_label: Pattern[str]


@dataclass(frozen=True)
class _ProfilePatterns:
    parties: Tuple[_PartyPatterns, ...]
    stop_line: Pattern[str]


def _role_pattern(party: PartySpec) -> str:
    words = "|".join(re.escape(word) for word in party.role_words)
    single = rf"(?:{words})(?:'?s)?"
    return rf"\b{single}(?:\s*(?:/|or)\s*{single})?"


def _phrase(label: str) -> str:
    return r"[\s\-]+".join(re.escape(token) for token in re.split(r"[\s\-]+", label.strip()) if token)


@lru_cache(maxsize=64)
def _compile(profile: FormProfile) -> _ProfilePatterns:
    flags = re.IGNORECASE | re.MULTILINE
    parties = []
    role_alternatives = []
    for party in profile.parties:
        role = _role_pattern(party)
        role_alternatives.append(role)
        parties.append(
            _PartyPatterns(
                party=party,
                name_label=re.compile(role + r"\s+(?:first\s+)?name\b[^\n]*$", flags),
                name_inline=re.compile(role + r"\s+name[ \t]*:[ \t]*([^\n]+?)[ \t]*$", flags),
                address_inline=re.compile(role + r"\s+address[ \t]*:[ \t]*([^\n]+?)[ \t]*$", flags),
                address_label=re.compile(role + r"\s+(?:street\s+)?address\b[^\n]*$", flags),
                tin_label=re.compile(role + r"\s+" + _TIN_WORDS + r"(?:\s*\([A-Z]+\))?", flags),
            )
        )

    box_phrases = []
    for spec in profile.fields:
        if spec.kind == ValueKind.AMOUNT and spec.label:
            stripped = _BOX_PREFIX_RE.sub("", spec.label)
            if stripped:
                box_phrases.append(_phrase(stripped))
    stop_parts = []
    if role_alternatives:
        stop_parts.append(r"(?:" + "|".join(role_alternatives) + r")\s+" + _LABEL_WORDS + r"\b")
    if box_phrases:
        stop_parts.append(
            r"^\W*(?:Box\s*)?(?:\d{1,2}[a-z]?\.?\s+)?(?:" + "|".join(box_phrases) + r")\b"
        )
    stop_line = re.compile("|".join(stop_parts) if stop_parts else r"(?!x)x", re.IGNORECASE)
    return _ProfilePatterns(parties=tuple(parties), stop_line=stop_line)


def name_similarity(candidate: str, target: str) -> float:
    """Normalized edit-distance similarity, case and spacing insensitive."""
    a = " ".join(candidate.lower().split())
    b = " ".join(target.lower().split())
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


def _is_name_candidate(value: str) -> bool:
    if is_boilerplate(value):
        return False
    return not TIN_VALUE_RE.fullmatch(value.strip())


def _following_lines(text: str, pos: int) -> List[Tuple[int, str]]:
    """Lines after the one containing ``pos``, with their start offsets."""
    line_end = text.find("\n", pos)
    if line_end == -1:
        return []
    out: List[Tuple[int, str]] = []
    offset = line_end + 1
    for line in text[offset:].split("\n"):
        out.append((offset, line))
        offset += len(line) + 1
    return out


def _name_after_label(text: str, label_end: int, stop_line: Pattern[str]) -> Optional[Tuple[str, int]]:
    """First data line below a name label; returns the value and the end offset of its line."""
    skipped = 0
    for offset, line in _following_lines(text, label_end):
        stripped = line.strip()
        if not stripped or stop_line.search(line):
            return None
        if not _is_name_candidate(stripped):
            skipped += 1
            if skipped > MAX_LABEL_CONTINUATION_LINES:
                return None
            continue
        return stripped, offset + len(line)
    return None


def _address_after(text: str, pos: int, stop_line: Pattern[str]) -> Optional[str]:
    collected: List[str] = []
    for _, line in _following_lines(text, pos):
        stripped = line.strip()
        if not stripped or stop_line.search(line):
            break
        if is_boilerplate(stripped):
            continue
        collected.append(stripped.rstrip(","))
        if len(collected) >= MAX_ADDRESS_LINES:
            break
    # Shortest run of lines that forms a full address.
    for count in range(1, len(collected) + 1):
        candidate = ", ".join(collected[:count])
        if is_valid_address(candidate):
            return candidate
    return None


def _tin_in_segment(text: str, start: int, stop_line: Pattern[str]) -> Optional[str]:
    line_end = text.find("\n", start)
    head = text[start:] if line_end == -1 else text[start:line_end]
    match = TIN_VALUE_RE.search(head)
    if match:
        return match.group(0)
    if line_end == -1:
        return None
    for _, line in _following_lines(text, start)[:MAX_LABEL_CONTINUATION_LINES + 1]:
        if not line.strip() or stop_line.search(line):
            return None
        match = TIN_VALUE_RE.search(line)
        if match:
            return match.group(0)
    return None


def _paired_tins(text: str, compiled: _ProfilePatterns) -> Dict[str, str]:
    """Handle ``PAYER'S TIN  RECIPIENT'S TIN`` printed side by side above both values."""
    found: Dict[str, str] = {}
    for line_match in re.finditer(r"^[^\n]*$", text, flags=re.MULTILINE):
        line = line_match.group(0)
        positions = []
        for patterns in compiled.parties:
            label = patterns.tin_label.search(line)
            if label:
                positions.append((label.start(), patterns.party.role))
        if len(positions) < 2:
            continue
        for _, next_line in _following_lines(text, line_match.start()):
            if not next_line.strip():
                continue
            values = TIN_VALUE_RE.findall(next_line)
            if len(values) >= len(positions):
                for (_, role), value in zip(sorted(positions), values):
                    found.setdefault(role, value)
            break
    return found


def _name_candidates(text: str, patterns: _PartyPatterns, stop_line: Pattern[str]) -> List[Tuple[int, str, int]]:
    """(label start, captured name, end of the captured line) in document order.

    Inline ``Payer name: ...`` captures come first; when none exist the value
    is read from the line below each printed name label.
    """
    found: List[Tuple[int, str, int]] = []
    for inline in patterns.name_inline.finditer(text):
        candidate = normalize_identifier(inline.group(1))
        if _is_name_candidate(candidate):
            found.append((inline.start(), candidate, inline.end()))
    if found:
        return found
    for label in patterns.name_label.finditer(text):
        captured = _name_after_label(text, label.end(), stop_line)
        if captured is not None:
            found.append((label.start(), captured[0], captured[1]))
    return found


def _extract_party(
    text: str,
    patterns: _PartyPatterns,
    compiled: _ProfilePatterns,
    target_name: Optional[str],
) -> Dict[str, str]:
    party = patterns.party
    use_target = bool(target_name) and party.taxpayer
    candidates = _name_candidates(text, patterns, compiled.stop_line)
    result: Dict[str, str] = {}
    scope = text
    address_anchor: Optional[int] = None

    for index, (start, candidate, line_end) in enumerate(candidates):
        if use_target:
            score = name_similarity(candidate, target_name or "")
            if score < NAME_SIMILARITY_THRESHOLD:
                logger.debug("Skipping %s candidate %r (similarity %.2f)", party.role, candidate, score)
                continue
            # The record runs from the previous record's name line to the next record's label.
            block_start = candidates[index - 1][2] if index > 0 else 0
            block_end = candidates[index + 1][0] if index + 1 < len(candidates) else len(text)
            scope = text[block_start:block_end]
            address_anchor = line_end - block_start
        else:
            address_anchor = line_end
        result["name"] = candidate
        break

    if use_target and "name" not in result:
        logger.info("No %s matched target name %r", party.role, target_name)
        return {}

    if party.tin_field:
        tin = _paired_tins(scope, compiled).get(party.role)
        if tin is None:
            for label in patterns.tin_label.finditer(scope):
                tin = _tin_in_segment(scope, label.end(), compiled.stop_line)
                if tin:
                    break
        if tin:
            result["tin"] = tin

    if party.address_field:
        address = None
        for inline in patterns.address_inline.finditer(scope):
            candidate = normalize_identifier(inline.group(1))
            if is_valid_address(candidate):
                address = candidate
                break
        if address is None and address_anchor is not None:
            address = _address_after(scope, address_anchor, compiled.stop_line)
        if address is None:
            # W-2 style: the address has its own label below the name.
            for label in patterns.address_label.finditer(scope):
                address = _address_after(scope, label.end(), compiled.stop_line)
                if address:
                    break
        if address:
            result["address"] = address
    return result


def extract_parties(text: str, profile: FormProfile, target_name: Optional[str] = None) -> Dict[str, str]:
    """Extract every declared party's name, TIN and address as canonical fields."""
    if not text or not profile.parties:
        return {}
    compiled = _compile(profile)
    values: Dict[str, str] = {}
    for patterns in compiled.parties:
        party = patterns.party
        found = _extract_party(text, patterns, compiled, target_name)
        for attr, field_name in (("name", party.name_field), ("tin", party.tin_field), ("address", party.address_field)):
            if field_name and found.get(attr):
                values[field_name] = found[attr]
    return values
