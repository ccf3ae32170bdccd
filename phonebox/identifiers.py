"""Slot identifier codec.

Two textual forms are accepted:

* grade box: ``<grade><letter><slot>`` such as ``9A23`` or ``10F12``
* standalone box: ``SM2<slot>`` with an optional hyphen, such as ``SM2-23``

Text is trimmed, upper-cased and stripped of internal whitespace before matching.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

GRADE_BOX = "grade_box"
STANDALONE_BOX = "standalone_box"

VALID_BOX_LETTERS = "ABCDEFGH"
STANDALONE_BOX_CODES = ("SM2",)

GRADE_BOX_PATTERN = re.compile(r"^(\d{1,2})([" + VALID_BOX_LETTERS + r"])(\d{1,3})$")
STANDALONE_PATTERN = re.compile(
    r"^(" + "|".join(re.escape(code) for code in STANDALONE_BOX_CODES) + r")-?(\d{1,3})$"
)


@dataclass(frozen=True)
class SlotIdentifier:
    category: str
    grade: Optional[int]
    box_code: str
    slot: int

    @property
    def text(self) -> str:
        return build_identifier(self.grade, self.box_code, self.slot)


@dataclass(frozen=True)
class Parsed:
    identifier: SlotIdentifier


@dataclass(frozen=True)
class Unparseable:
    text: str
    reason: str


ParseResult = Union[Parsed, Unparseable]


def _clean(text: str) -> str:
    return re.sub(r"\s+", "", text.strip().upper())


def parse_identifier(text: Optional[str]) -> ParseResult:
    """Parse identifier text into a structured value or an explicit failure."""
    if text is None:
        return Unparseable("", "empty")
    cleaned = _clean(str(text))
    if not cleaned:
        return Unparseable(cleaned, "empty")

    match = GRADE_BOX_PATTERN.match(cleaned)
    if match:
        grade, box, slot = int(match.group(1)), match.group(2), int(match.group(3))
        if slot <= 0:
            return Unparseable(cleaned, "slot must be positive")
        return Parsed(SlotIdentifier(GRADE_BOX, grade, box, slot))

    match = STANDALONE_PATTERN.match(cleaned)
    if match:
        box, slot = match.group(1), int(match.group(2))
        if slot <= 0:
            return Unparseable(cleaned, "slot must be positive")
        return Parsed(SlotIdentifier(STANDALONE_BOX, None, box, slot))

    return Unparseable(cleaned, "no matching grammar")


def try_parse_identifier(text: Optional[str]) -> Optional[SlotIdentifier]:
    result = parse_identifier(text)
    if isinstance(result, Parsed):
        return result.identifier
    return None


def build_identifier(grade: Optional[int], box_code: str, slot: int) -> str:
    """Render an identifier; standalone boxes carry no grade component."""
    box = _clean(box_code or "")
    if slot is None or int(slot) <= 0 or int(slot) > 999:
        raise ValueError(f"Slot must be within 1..999, got {slot!r}")
    slot = int(slot)
    if box in STANDALONE_BOX_CODES:
        if grade is not None:
            raise ValueError(f"Standalone box {box} does not take a grade")
        return f"{box}-{slot}"
    if len(box) != 1 or box not in VALID_BOX_LETTERS:
        raise ValueError(
            f"Invalid box code '{box_code}'; use one of {', '.join(VALID_BOX_LETTERS)} "
            f"or {', '.join(STANDALONE_BOX_CODES)}"
        )
    if grade is None or not 0 <= int(grade) <= 99:
        raise ValueError(f"Grade box {box} requires a grade within 0..99, got {grade!r}")
    return f"{int(grade)}{box}{slot}"


@dataclass(frozen=True)
class BoxSelector:
    """The physical box being scanned: a grade plus letter, or a standalone code."""

    grade: Optional[int]
    box_code: str

    def validate(self) -> None:
        build_identifier(self.grade, self.box_code, 1)

    def identifier_for(self, slot: int) -> str:
        return build_identifier(self.grade, self.box_code, slot)

    @property
    def label(self) -> str:
        box = _clean(self.box_code)
        return box if self.grade is None else f"{self.grade}{box}"


def normalize_identifier(text: Optional[str]) -> str:
    """Canonical identifier text; unparseable input is only trimmed and upper-cased."""
    result = parse_identifier(text)
    if isinstance(result, Parsed):
        return result.identifier.text
    return "" if text is None else str(text).strip().upper()
