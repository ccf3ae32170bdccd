"""Roster loading helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping

import pandas as pd

from phonebox.types import RosterEntry

LOGGER = logging.getLogger("phonebox.roster")

# Canonical field -> accepted column headings (first present wins).
FIELD_ALIASES = {
    "person_id": ("personId", "Person ID"),
    "full_name": ("fullName", "Full Name"),
    "security_number": ("securityNumber", "Security Number"),
    "current_grade": ("currentGrade", "Current Grade"),
}


def _cell(record: Mapping[str, Any], aliases: Iterable[str]) -> str:
    for name in aliases:
        if name not in record:
            continue
        value = record[name]
        if value is None or (isinstance(value, float) and value != value):
            return ""
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value)
    return ""


def normalize_roster(records: Iterable[Mapping[str, Any]]) -> List[RosterEntry]:
    """Coerce raw records into :class:`RosterEntry` values."""
    entries: List[RosterEntry] = []
    for record in records:
        entries.append(
            RosterEntry(
                person_id=_cell(record, FIELD_ALIASES["person_id"]),
                full_name=_cell(record, FIELD_ALIASES["full_name"]),
                security_number=_cell(record, FIELD_ALIASES["security_number"]).strip().upper(),
                current_grade=_cell(record, FIELD_ALIASES["current_grade"]),
            )
        )
    return entries


def load_roster(path: Path) -> List[RosterEntry]:
    """Read a roster from CSV or the first sheet of an Excel workbook."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif suffix in {".xlsx", ".xls"}:
        df = pd.read_excel(path, sheet_name=0, dtype=str, keep_default_na=False)
    else:
        raise ValueError(f"Unsupported roster format '{suffix}' for {path}")
    entries = normalize_roster(df.to_dict(orient="records"))
    LOGGER.info("Loaded roster %s: %d entries", path, len(entries))
    return entries
