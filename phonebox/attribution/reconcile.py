"""Join per-slot detections against the roster and derive a status for each slot."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from phonebox.identifiers import normalize_identifier
from phonebox.types import (
    RECORD_FIELDS,
    STATUS_MISSING,
    STATUS_SUSPICIOUS,
    STATUS_TURNED_IN,
    STATUS_UNASSIGNED,
    STATUSES,
    DetectionResult,
    DeviceColorProfile,
    ReconciledRow,
    RosterEntry,
)

LOGGER = logging.getLogger("phonebox.attribution.reconcile")


def build_roster_index(roster: Iterable[RosterEntry]) -> Dict[str, RosterEntry]:
    """Index roster entries by normalized identifier; later duplicates shadow earlier ones."""
    index: Dict[str, RosterEntry] = {}
    duplicates: List[str] = []
    for entry in roster:
        key = normalize_identifier(entry.security_number)
        if not key:
            continue
        if key in index:
            duplicates.append(key)
        index[key] = entry
    if duplicates:
        LOGGER.warning(
            "Roster lists %d duplicate identifiers; keeping the last entry for each: %s",
            len(duplicates),
            sorted(set(duplicates)),
        )
    return index


def derive_status(
    entry: Optional[RosterEntry],
    present: bool,
    detected_color: str,
    baseline: Optional[DeviceColorProfile],
) -> str:
    if entry is None:
        return STATUS_UNASSIGNED
    if not present:
        return STATUS_MISSING
    if baseline is not None and baseline.color != detected_color:
        return STATUS_SUSPICIOUS
    return STATUS_TURNED_IN


def reconcile(
    detections: Sequence[DetectionResult],
    roster: Iterable[RosterEntry],
    baselines: Mapping[str, DeviceColorProfile],
) -> List[ReconciledRow]:
    """Produce one reconciled row per detection, in detection order."""
    index = build_roster_index(roster)
    rows: List[ReconciledRow] = []
    for det in detections:
        key = normalize_identifier(det.identifier)
        entry = index.get(key)
        baseline = baselines.get(key)
        status = derive_status(entry, det.phone_present, det.color_label, baseline)
        if status == STATUS_SUSPICIOUS:
            LOGGER.info(
                "Slot %d (%s) color mismatch: detected %s, baseline %s",
                det.slot,
                key,
                det.color_label,
                baseline.color,
            )
        rows.append(
            ReconciledRow(
                slot=det.slot,
                identifier=det.identifier,
                phone_present=det.phone_present,
                presence_score=det.presence_score,
                saturation_score=det.saturation_score,
                confidence=det.confidence,
                color_label=det.color_label,
                status=status,
                person_id=entry.person_id if entry else None,
                full_name=entry.full_name if entry else None,
                current_grade=entry.current_grade if entry else None,
                expected_color=baseline.color if baseline else None,
            )
        )
    return rows


def status_counts(rows: Iterable[ReconciledRow]) -> Dict[str, int]:
    counts = Counter(row.status for row in rows)
    return {status: counts.get(status, 0) for status in STATUSES}


def rows_to_frame(rows: Iterable[ReconciledRow]) -> pd.DataFrame:
    """Tabular export view in fixed column order."""
    records = [row.to_record() for row in rows]
    return pd.DataFrame(records, columns=list(RECORD_FIELDS))
