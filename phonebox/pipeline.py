"""Scan orchestration: grid -> photometry -> classification -> roster join -> baselines."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

from phonebox.analysis.classify import classify_cell
from phonebox.analysis.photometry import DEFAULT_STRIDE, analyze_region
from phonebox.attribution.reconcile import reconcile, status_counts
from phonebox.identifiers import BoxSelector
from phonebox.layout.grid import map_grid
from phonebox.recognition.baseline import (
    BaselineMap,
    BaselineStore,
    learn_baselines,
    merge_imported_baselines,
)
from phonebox.types import (
    CropRect,
    DetectionResult,
    DeviceColorProfile,
    ReconciledRow,
    RosterEntry,
    Thresholds,
)

LOGGER = logging.getLogger("phonebox.pipeline")


@dataclass
class ScanConfig:
    rows: int = 5
    columns: int = 12
    sample_stride: int = DEFAULT_STRIDE
    crop: CropRect = CropRect()
    thresholds: Thresholds = Thresholds()

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any]) -> "ScanConfig":
        """Build from a pipeline YAML mapping; missing keys keep defaults."""
        defaults = cls()
        crop_cfg = cfg.get("crop") or {}
        crop = CropRect(
            top=float(crop_cfg.get("top", defaults.crop.top)),
            left=float(crop_cfg.get("left", defaults.crop.left)),
            right=float(crop_cfg.get("right", defaults.crop.right)),
            bottom=float(crop_cfg.get("bottom", defaults.crop.bottom)),
        )
        thresholds = Thresholds(
            min_dark_ratio=float(cfg.get("min_dark_ratio", defaults.thresholds.min_dark_ratio)),
            min_saturation=float(cfg.get("min_saturation", defaults.thresholds.min_saturation)),
        )
        config = cls(
            rows=int(cfg.get("rows", defaults.rows)),
            columns=int(cfg.get("columns", defaults.columns)),
            sample_stride=int(cfg.get("sample_stride", defaults.sample_stride)),
            crop=crop,
            thresholds=thresholds,
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.rows < 1 or self.columns < 1:
            raise ValueError(f"Grid must be at least 1x1, got {self.rows}x{self.columns}")
        if self.sample_stride < 1:
            raise ValueError(f"sample_stride must be positive, got {self.sample_stride}")


def _check_image(image: np.ndarray) -> None:
    if image.ndim != 3 or image.shape[2] < 3:
        raise ValueError(f"Expected an HxWx3 RGB image, got shape {image.shape}")


def detect_slots(
    image: np.ndarray,
    crop: CropRect,
    box: BoxSelector,
    thresholds: Thresholds,
    rows: int = 5,
    columns: int = 12,
    stride: int = DEFAULT_STRIDE,
) -> List[DetectionResult]:
    """Classify every grid cell of one box photo."""
    _check_image(image)
    box.validate()
    height, width = image.shape[:2]
    detections: List[DetectionResult] = []
    for cell in map_grid(width, height, crop, rows, columns):
        stats = analyze_region(image, cell.inner, stride)
        result = classify_cell(stats, thresholds)
        LOGGER.debug(
            "Slot %d: samples=%d dark=%.3f sat=%.3f conf=%.3f color=%s present=%s",
            cell.slot,
            stats.total,
            result.dark_ratio,
            result.saturation,
            result.confidence,
            result.color_label,
            result.present,
        )
        detections.append(
            DetectionResult(
                slot=cell.slot,
                identifier=box.identifier_for(cell.slot),
                phone_present=result.present,
                presence_score=result.dark_ratio,
                saturation_score=result.saturation,
                confidence=result.confidence,
                color_label=result.color_label,
            )
        )
    return detections


class SlotScanner:
    """Runs scans for one session against a fixed roster and a baseline store.

    Baselines are loaded once at construction and written back whenever a scan
    learns something new or an import succeeds. Writes are last-writer-wins.
    """

    def __init__(
        self,
        roster: Iterable[RosterEntry],
        store: BaselineStore,
        rows: int = 5,
        columns: int = 12,
        stride: int = DEFAULT_STRIDE,
    ) -> None:
        self.roster = list(roster)
        self.store = store
        self.rows = rows
        self.columns = columns
        self.stride = stride
        self._baselines: BaselineMap = store.load()

    @classmethod
    def from_config(
        cls,
        roster: Iterable[RosterEntry],
        store: BaselineStore,
        config: ScanConfig,
    ) -> "SlotScanner":
        return cls(roster, store, rows=config.rows, columns=config.columns, stride=config.sample_stride)

    @property
    def baselines(self) -> BaselineMap:
        return dict(self._baselines)

    def scan(
        self,
        image: np.ndarray,
        crop: CropRect,
        box: BoxSelector,
        thresholds: Thresholds,
        now: Optional[str] = None,
    ) -> List[ReconciledRow]:
        detections = detect_slots(image, crop, box, thresholds, self.rows, self.columns, self.stride)
        rows = reconcile(detections, self.roster, self._baselines)
        outcome = learn_baselines(rows, self._baselines, now=now)
        if outcome.learned:
            self._baselines = outcome.baselines
            self.store.save(self._baselines)
        LOGGER.info("Scanned box %s: %s", box.label, status_counts(outcome.rows))
        return outcome.rows

    def export_baselines(self) -> List[DeviceColorProfile]:
        return [self._baselines[key] for key in sorted(self._baselines)]

    def import_baselines(self, records: Any, now: Optional[str] = None) -> Dict[str, DeviceColorProfile]:
        """Merge imported records; a malformed payload raises and leaves state untouched."""
        merged = merge_imported_baselines(self._baselines, records, now=now)
        self.store.save(merged)
        self._baselines = merged
        return dict(merged)
