import math

import numpy as np
import pytest

from phonebox.analysis.photometry import (
    DEFAULT_THRESHOLD,
    analyze_region,
    dark_ratio,
    grayscale,
    otsu_threshold,
    rgb_to_hsv,
)
from phonebox.types import PixelRect


def solid_image(color, width=20, height=20) -> np.ndarray:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


def test_otsu_picks_lowest_threshold_between_two_modes():
    hist = np.zeros(256, dtype=np.int64)
    hist[20] = 100
    hist[200] = 100
    threshold = otsu_threshold(hist, 200)
    assert threshold == 20
    assert dark_ratio(hist, 200, threshold) == pytest.approx(0.5)


def test_otsu_is_invariant_to_histogram_scaling():
    rng = np.random.default_rng(7)
    for _ in range(20):
        hist = rng.integers(0, 50, size=256)
        total = int(hist.sum())
        assert otsu_threshold(hist, total) == otsu_threshold(hist * 2, total * 2)


def test_otsu_defaults_for_empty_and_single_bucket_histograms():
    empty = np.zeros(256, dtype=np.int64)
    assert otsu_threshold(empty, 0) == DEFAULT_THRESHOLD
    assert dark_ratio(empty, 0, DEFAULT_THRESHOLD) == 0.0

    single = np.zeros(256, dtype=np.int64)
    single[50] = 10
    assert otsu_threshold(single, 10) == DEFAULT_THRESHOLD
    assert dark_ratio(single, 10, DEFAULT_THRESHOLD) == 1.0


def test_grayscale_rounds_luma():
    pixels = np.array([[0, 0, 0], [255, 255, 255], [100, 100, 100], [255, 0, 0]], dtype=np.uint8)
    # 0.299 * 255 = 76.245
    assert grayscale(pixels).tolist() == [0, 255, 100, 76]


def test_rgb_to_hsv_uses_half_degree_hue_scale():
    pixels = np.array(
        [[255, 0, 0], [0, 255, 0], [0, 0, 255], [255, 128, 0], [0, 0, 0], [128, 128, 128]],
        dtype=np.uint8,
    )
    hue, sat, val = rgb_to_hsv(pixels)
    assert hue[:3].tolist() == pytest.approx([0.0, 60.0, 120.0])
    assert hue[3] == pytest.approx(60.0 * (128 / 255) / 2.0)
    assert sat.tolist() == pytest.approx([1.0, 1.0, 1.0, 1.0, 0.0, 0.0])
    assert val[4] == 0.0
    assert val[5] == pytest.approx(128 / 255)


def test_analyze_region_subsamples_every_second_pixel():
    stats = analyze_region(solid_image((0, 0, 0)), PixelRect(0, 0, 20, 20), stride=2)
    assert stats.total == 100
    assert stats.histogram[0] == 100
    assert stats.avg_s == 0.0
    assert stats.avg_v == 0.0
    assert stats.dark_ratio == 1.0


def test_analyze_region_averages_hsv():
    stats = analyze_region(solid_image((255, 0, 0)), PixelRect(2, 2, 10, 10), stride=1)
    assert stats.total == 100
    assert stats.avg_h == pytest.approx(0.0)
    assert stats.avg_s == pytest.approx(1.0)
    assert stats.avg_v == pytest.approx(1.0)


def test_analyze_region_outside_image_has_no_samples():
    stats = analyze_region(solid_image((10, 10, 10)), PixelRect(50, 50, 10, 10))
    assert stats.total == 0
    assert math.isnan(stats.avg_h)
    assert stats.dark_ratio == 0.0


def test_analyze_region_clips_to_image_bounds():
    stats = analyze_region(solid_image((10, 10, 10)), PixelRect(15, 15, 10, 10), stride=1)
    assert stats.total == 25


def test_dark_ratio_counts_samples_at_threshold():
    image = solid_image((255, 255, 255), width=10, height=10)
    image[:5, :] = (30, 30, 30)
    stats = analyze_region(image, PixelRect(0, 0, 10, 10), stride=1)
    assert stats.threshold == 30
    assert stats.dark_ratio == pytest.approx(0.5)
