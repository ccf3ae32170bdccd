"""Common dataclasses and constants used across the phonebox package."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

# Bounding box order: x1, y1, x2, y2 (pixel coordinates)
BBox = Tuple[int, int, int, int]

STATUS_TURNED_IN = "TURNED_IN"
STATUS_MISSING = "MISSING"
STATUS_UNASSIGNED = "UNASSIGNED"
STATUS_SUSPICIOUS = "SUSPICIOUS"
STATUSES = (STATUS_TURNED_IN, STATUS_MISSING, STATUS_UNASSIGNED, STATUS_SUSPICIOUS)

UNKNOWN_COLOR = "unknown"
COLOR_LABELS = (
    "black",
    "gray",
    "red",
    "orange/brown",
    "yellow/gold",
    "green",
    "blue",
    "purple",
    UNKNOWN_COLOR,
)

# Column order of the flat export record.
RECORD_FIELDS = (
    "slot",
    "identifier",
    "name",
    "person_id",
    "grade",
    "present",
    "dark_ratio",
    "saturation",
    "confidence",
    "detected_color",
    "expected_color",
    "status",
)


@dataclass(frozen=True)
class PixelRect:
    """Axis-aligned pixel rectangle anchored at its top-left corner."""

    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)


@dataclass(frozen=True)
class CropRect:
    """Scan area expressed as percentages of the image size."""

    top: float = 9.0
    left: float = 19.0
    right: float = 83.0
    bottom: float = 92.0

    def validate(self) -> None:
        for name in ("top", "left", "right", "bottom"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"Crop {name}={value} must lie within [0, 100]")
        if self.top >= self.bottom:
            raise ValueError(f"Crop top ({self.top}) must be above bottom ({self.bottom})")
        if self.left >= self.right:
            raise ValueError(f"Crop left ({self.left}) must be left of right ({self.right})")


@dataclass(frozen=True)
class Thresholds:
    """Presence thresholds: dark-pixel ratio and average saturation, both in [0, 1]."""

    min_dark_ratio: float = 0.40
    min_saturation: float = 0.20


@dataclass(frozen=True)
class CellSample:
    """Pixel geometry backing one grid position."""

    slot: int
    row: int
    column: int
    outer: PixelRect
    inner: PixelRect


@dataclass(frozen=True)
class RosterEntry:
    person_id: str
    full_name: str
    security_number: str
    current_grade: str = ""


@dataclass(frozen=True)
class DetectionResult:
    """Per-slot classification produced by a single scan."""

    slot: int
    identifier: str
    phone_present: bool
    presence_score: float
    saturation_score: float
    confidence: float
    color_label: str


@dataclass(frozen=True)
class ReconciledRow:
    """Detection joined with its roster entry and derived status."""

    slot: int
    identifier: str
    phone_present: bool
    presence_score: float
    saturation_score: float
    confidence: float
    color_label: str
    status: str
    person_id: Optional[str] = None
    full_name: Optional[str] = None
    current_grade: Optional[str] = None
    expected_color: Optional[str] = None

    @property
    def assigned(self) -> bool:
        return bool(self.full_name)

    def to_record(self) -> Dict:
        """Flat record in export column order."""
        return OrderedDict(
            [
                ("slot", self.slot),
                ("identifier", self.identifier),
                ("name", self.full_name or ""),
                ("person_id", self.person_id or ""),
                ("grade", self.current_grade or ""),
                ("present", self.phone_present),
                ("dark_ratio", round(self.presence_score, 3)),
                ("saturation", round(self.saturation_score, 3)),
                ("confidence", round(self.confidence, 3)),
                ("detected_color", self.color_label),
                ("expected_color", self.expected_color or ""),
                ("status", self.status),
            ]
        )


@dataclass(frozen=True)
class DeviceColorProfile:
    """Learned color fingerprint for one identifier."""

    security_number: str
    color: str
    last_updated: str

    def to_dict(self) -> Dict:
        return {
            "securityNumber": self.security_number,
            "color": self.color,
            "lastUpdated": self.last_updated,
        }


def clamp01(value: float) -> float:
    """Clamp a float to the closed unit interval."""
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded away from zero."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
