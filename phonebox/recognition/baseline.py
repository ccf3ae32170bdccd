"""Learned per-slot color baselines: persistence, auto-learning and import merging."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from phonebox.identifiers import normalize_identifier
from phonebox.io_utils import dump_json, load_json
from phonebox.types import COLOR_LABELS, DeviceColorProfile, ReconciledRow

LOGGER = logging.getLogger("phonebox.recognition.baseline")

BaselineMap = Dict[str, DeviceColorProfile]


class BaselineImportError(ValueError):
    """Raised when an imported baseline payload is structurally invalid."""


class BaselineStoreError(RuntimeError):
    """Raised when the persisted baseline file cannot be read or written."""


class BaselineStore(Protocol):
    def load(self) -> BaselineMap:
        ...

    def save(self, baselines: Mapping[str, DeviceColorProfile]) -> None:
        ...


@dataclass
class LearningOutcome:
    rows: List[ReconciledRow]
    baselines: BaselineMap
    learned: List[str]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def profiles_to_records(baselines: Mapping[str, DeviceColorProfile]) -> List[Dict[str, str]]:
    return [baselines[key].to_dict() for key in sorted(baselines)]


def _validate_records(records: Any) -> List[Mapping[str, Any]]:
    if not isinstance(records, list):
        raise BaselineImportError(
            f"Baseline payload must be a list of records, got {type(records).__name__}"
        )
    for idx, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise BaselineImportError(f"Record {idx} is not an object")
        security_number = record.get("securityNumber")
        if not isinstance(security_number, str) or not security_number.strip():
            raise BaselineImportError(f"Record {idx} is missing a securityNumber")
        color = record.get("color")
        if not isinstance(color, str) or color not in COLOR_LABELS:
            raise BaselineImportError(f"Record {idx} has invalid color {color!r}")
        last_updated = record.get("lastUpdated")
        if last_updated is not None and not isinstance(last_updated, str):
            raise BaselineImportError(f"Record {idx} has a non-string lastUpdated")
    return records


def records_to_profiles(records: Any, now: Optional[str] = None) -> BaselineMap:
    """Convert persisted records into a map keyed by normalized identifier.

    The whole payload is validated before anything is converted.
    """
    stamp = now or utc_timestamp()
    profiles: BaselineMap = {}
    for record in _validate_records(records):
        key = normalize_identifier(record["securityNumber"])
        profiles[key] = DeviceColorProfile(
            security_number=key,
            color=record["color"],
            last_updated=record.get("lastUpdated") or stamp,
        )
    return profiles


def merge_imported_baselines(
    baselines: Mapping[str, DeviceColorProfile],
    records: Any,
    now: Optional[str] = None,
) -> BaselineMap:
    """Return a new map with imported records overwriting existing entries."""
    imported = records_to_profiles(records, now=now)
    merged: BaselineMap = dict(baselines)
    merged.update(imported)
    LOGGER.info("Imported %d baseline(s); %d total", len(imported), len(merged))
    return merged


def learn_baselines(
    rows: Sequence[ReconciledRow],
    baselines: Mapping[str, DeviceColorProfile],
    now: Optional[str] = None,
) -> LearningOutcome:
    """Record a baseline for assigned, occupied slots that do not have one yet.

    Existing baselines are never replaced here and statuses are left untouched.
    """
    stamp = now or utc_timestamp()
    updated: BaselineMap = dict(baselines)
    learned: List[str] = []
    out_rows: List[ReconciledRow] = []
    for row in rows:
        key = normalize_identifier(row.identifier)
        if row.assigned and row.phone_present and key not in updated:
            updated[key] = DeviceColorProfile(security_number=key, color=row.color_label, last_updated=stamp)
            learned.append(key)
            row = replace(row, expected_color=row.color_label)
        out_rows.append(row)
    if learned:
        LOGGER.info("Learned %d new baseline(s): %s", len(learned), learned)
    return LearningOutcome(rows=out_rows, baselines=updated, learned=learned)


class MemoryBaselineStore:
    """In-process store, handy for tests and embedding."""

    def __init__(self, baselines: Optional[Mapping[str, DeviceColorProfile]] = None) -> None:
        self._baselines: BaselineMap = dict(baselines or {})
        self.saves = 0

    def load(self) -> BaselineMap:
        return dict(self._baselines)

    def save(self, baselines: Mapping[str, DeviceColorProfile]) -> None:
        self._baselines = dict(baselines)
        self.saves += 1


class JsonBaselineStore:
    """Baselines persisted as a JSON array of {securityNumber, color, lastUpdated}."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> BaselineMap:
        if not self.path.exists():
            LOGGER.info("No baseline file at %s; starting empty", self.path)
            return {}
        try:
            payload = load_json(self.path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise BaselineStoreError(f"Failed to read {self.path}: {exc}") from exc
        try:
            baselines = records_to_profiles(payload)
        except BaselineImportError as exc:
            raise BaselineStoreError(f"Invalid baseline file {self.path}: {exc}") from exc
        LOGGER.info("Loaded %d baseline(s) from %s", len(baselines), self.path)
        return baselines

    def save(self, baselines: Mapping[str, DeviceColorProfile]) -> None:
        try:
            dump_json(self.path, profiles_to_records(baselines))
        except OSError as exc:
            raise BaselineStoreError(f"Failed to write {self.path}: {exc}") from exc
        LOGGER.debug("Saved %d baseline(s) to %s", len(baselines), self.path)
