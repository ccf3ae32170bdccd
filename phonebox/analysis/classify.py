"""Presence decision, confidence and coarse color label for a sampled cell."""

from __future__ import annotations

import math
from dataclasses import dataclass

from phonebox.analysis.photometry import PhotometricStats
from phonebox.types import UNKNOWN_COLOR, Thresholds, clamp01

DARK_WEIGHT = 0.6
SATURATION_WEIGHT = 0.4


@dataclass(frozen=True)
class Classification:
    present: bool
    dark_ratio: float
    saturation: float
    confidence: float
    color_label: str


def is_present(dark_ratio: float, saturation: float, thresholds: Thresholds) -> bool:
    """Either a dark phone or a vividly colored one counts as an occupied slot."""
    return dark_ratio >= thresholds.min_dark_ratio or saturation >= thresholds.min_saturation


def _relative(value: float, threshold: float) -> float:
    if threshold <= 0:
        return 1.0
    return value / threshold


def presence_confidence(dark_ratio: float, saturation: float, thresholds: Thresholds) -> float:
    """Relative strength of the presence evidence, capped at 1 (not a probability)."""
    score = DARK_WEIGHT * _relative(dark_ratio, thresholds.min_dark_ratio) + SATURATION_WEIGHT * _relative(
        saturation, thresholds.min_saturation
    )
    return clamp01(score)


def color_label_from_hsv(avg_h: float, avg_s: float, avg_v: float) -> str:
    """Bucket 8-bit-scale HSV (H 0..180, S/V 0..255) into a coarse color name."""
    if math.isnan(avg_h) or math.isnan(avg_s) or math.isnan(avg_v):
        return UNKNOWN_COLOR
    if avg_s < 40 and avg_v < 120:
        return "black"
    if avg_s < 40:
        return "gray"
    if avg_h < 10 or avg_h > 170:
        return "red"
    if avg_h < 25:
        return "orange/brown"
    if avg_h < 35:
        return "yellow/gold"
    if avg_h < 85:
        return "green"
    if avg_h < 130:
        return "blue"
    return "purple"


def classify_cell(stats: PhotometricStats, thresholds: Thresholds) -> Classification:
    if stats.total == 0:
        return Classification(
            present=False,
            dark_ratio=0.0,
            saturation=0.0,
            confidence=0.0,
            color_label=UNKNOWN_COLOR,
        )
    ratio = stats.dark_ratio
    saturation = stats.avg_s
    return Classification(
        present=is_present(ratio, saturation, thresholds),
        dark_ratio=ratio,
        saturation=saturation,
        confidence=presence_confidence(ratio, saturation, thresholds),
        color_label=color_label_from_hsv(stats.avg_h, stats.avg_s * 255.0, stats.avg_v * 255.0),
    )
