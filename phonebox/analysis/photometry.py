"""Per-cell photometric statistics: grayscale histogram, Otsu threshold, HSV averages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from phonebox.types import PixelRect

LOGGER = logging.getLogger("phonebox.analysis.photometry")

HISTOGRAM_BINS = 256
DEFAULT_THRESHOLD = 128
DEFAULT_STRIDE = 2


@dataclass
class PhotometricStats:
    """Histogram and running HSV sums for one sampled region.

    Hue sums are on the 0..180 scale, saturation and value sums on 0..1.
    """

    histogram: np.ndarray = field(default_factory=lambda: np.zeros(HISTOGRAM_BINS, dtype=np.int64))
    total: int = 0
    sum_h: float = 0.0
    sum_s: float = 0.0
    sum_v: float = 0.0

    @property
    def avg_h(self) -> float:
        return self.sum_h / self.total if self.total else float("nan")

    @property
    def avg_s(self) -> float:
        return self.sum_s / self.total if self.total else float("nan")

    @property
    def avg_v(self) -> float:
        return self.sum_v / self.total if self.total else float("nan")

    @property
    def threshold(self) -> int:
        return otsu_threshold(self.histogram, self.total)

    @property
    def dark_ratio(self) -> float:
        return dark_ratio(self.histogram, self.total, self.threshold)


def grayscale(pixels: np.ndarray) -> np.ndarray:
    """Luma of an (..., 3) RGB array rounded half-up to 0..255 integers."""
    rgb = pixels.astype(np.float64)
    gray = 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]
    return np.clip(np.floor(gray + 0.5), 0, 255).astype(np.int64)


def rgb_to_hsv(pixels: np.ndarray):
    """Return (hue 0..180, saturation 0..1, value 0..1) arrays for RGB input."""
    rgb = pixels.astype(np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    mx = rgb.max(axis=-1)
    mn = rgb.min(axis=-1)
    diff = mx - mn

    value = mx / 255.0
    saturation = np.divide(diff, mx, out=np.zeros_like(mx), where=mx > 0)

    safe = np.where(diff == 0, 1.0, diff)
    hue = np.zeros_like(mx)
    red_max = (diff != 0) & (mx == r)
    green_max = (diff != 0) & (mx == g) & ~red_max
    blue_max = (diff != 0) & ~red_max & ~green_max
    hue = np.where(red_max, np.mod(60.0 * ((g - b) / safe) + 360.0, 360.0), hue)
    hue = np.where(green_max, 60.0 * ((b - r) / safe + 2.0), hue)
    hue = np.where(blue_max, 60.0 * ((r - g) / safe + 4.0), hue)
    return hue / 2.0, saturation, value


def sample_region(image: np.ndarray, rect: PixelRect, stride: int = DEFAULT_STRIDE) -> np.ndarray:
    """Subsampled (N, 3) RGB pixels of ``rect`` clipped to the image bounds."""
    if stride < 1:
        raise ValueError(f"Sampling stride must be >= 1, got {stride}")
    height, width = image.shape[:2]
    x0, y0 = max(0, rect.left), max(0, rect.top)
    x1, y1 = min(width, rect.right), min(height, rect.bottom)
    if x1 <= x0 or y1 <= y0:
        return np.empty((0, 3), dtype=image.dtype)
    region = image[y0:y1:stride, x0:x1:stride, :3]
    return region.reshape(-1, 3)


def analyze_region(image: np.ndarray, rect: PixelRect, stride: int = DEFAULT_STRIDE) -> PhotometricStats:
    pixels = sample_region(image, rect, stride)
    stats = PhotometricStats()
    if pixels.shape[0] == 0:
        LOGGER.debug("Region %s yielded no samples", rect)
        return stats

    gray = grayscale(pixels)
    stats.histogram = np.bincount(gray, minlength=HISTOGRAM_BINS).astype(np.int64)
    stats.total = int(pixels.shape[0])
    hue, saturation, value = rgb_to_hsv(pixels)
    stats.sum_h = float(hue.sum())
    stats.sum_s = float(saturation.sum())
    stats.sum_v = float(value.sum())
    return stats


def otsu_threshold(histogram: Sequence[int], total: int) -> int:
    """Binary Otsu threshold over a 256-bin histogram; lowest t wins ties."""
    if total <= 0:
        return DEFAULT_THRESHOLD
    counts = [int(c) for c in histogram]
    sum_all = sum(t * c for t, c in enumerate(counts))

    # A single populated level has no split, so the mid-level default stands.
    threshold = DEFAULT_THRESHOLD
    best_variance = 0.0
    weight_bg = 0
    sum_bg = 0
    for t, count in enumerate(counts):
        weight_bg += count
        if weight_bg == 0:
            continue
        weight_fg = total - weight_bg
        if weight_fg <= 0:
            break
        sum_bg += t * count
        mean_bg = sum_bg / weight_bg
        mean_fg = (sum_all - sum_bg) / weight_fg
        variance = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
        if variance > best_variance:
            best_variance = variance
            threshold = t
    return threshold


def dark_ratio(histogram: Sequence[int], total: int, threshold: int) -> float:
    """Fraction of samples with gray level at or below ``threshold``."""
    if total <= 0:
        return 0.0
    dark = int(np.sum(np.asarray(histogram[: threshold + 1], dtype=np.int64)))
    return dark / total
