"""
Border color classification and voting on synthetic rasters.
"""
from __future__ import annotations

import numpy as np
import cv2
import pytest

from cardscan.color.border import detect_border_color
from cardscan.color.classify import LABEL_COLORS, classify_array, classify_pixel, luminance
from cardscan.core.contracts import BorderColor
from cardscan.io.raster import from_array

GREEN = (40, 140, 60)   # classifies as unknown: saturated mid-luminance


def _boxed_scene(w: int, h: int, box_frac: float, color, bg=GREEN, noise: float = 4.0) -> np.ndarray:
    img = np.zeros((h, w, 3), np.uint8)
    img[:] = bg
    x0, y0 = int(w * box_frac), int(h * box_frac)
    cv2.rectangle(img, (x0, y0), (w - 1 - x0, h - 1 - y0), color, thickness=-1)
    rng = np.random.default_rng(7)
    noisy = img.astype(np.float64) + rng.normal(0.0, noise, img.shape)
    return np.clip(noisy, 0, 255).astype(np.uint8)


@pytest.mark.parametrize("rgb, expected", [
    ((230, 200, 40), BorderColor.YELLOW),
    ((160, 160, 165), BorderColor.SILVER),
    ((245, 245, 240), BorderColor.WHITE),
    ((20, 25, 20), BorderColor.BLACK),
    (GREEN, BorderColor.UNKNOWN),
    ((200, 60, 60), BorderColor.UNKNOWN),
])
def test_classify_pixel_categories(rgb, expected):
    assert classify_pixel(*rgb) is expected


def test_luminance_weights():
    assert luminance(255, 255, 255) == pytest.approx(255.0)
    assert luminance(100, 0, 0) == pytest.approx(29.9)


def test_silver_band_limits():
    # low spread but too bright for silver -> white; too dark -> black
    assert classify_pixel(230, 230, 230) is BorderColor.WHITE
    assert classify_pixel(40, 40, 40) is BorderColor.BLACK
    assert classify_pixel(100, 100, 100) is BorderColor.UNKNOWN


def test_classify_array_agrees_with_scalar_rules():
    rng = np.random.default_rng(3)
    px = rng.integers(0, 256, size=(40, 50, 3), dtype=np.uint8)
    # sprinkle in values near the thresholds
    px[0, :5] = [(171, 151, 119), (170, 151, 100), (120, 120, 120), (211, 211, 211), (59, 60, 61)]
    labels = classify_array(px)
    for (y, x), code in np.ndenumerate(labels):
        r, g, b = (int(v) for v in px[y, x])
        assert LABEL_COLORS[code] is classify_pixel(r, g, b), (r, g, b)


def test_border_color_black_box_on_contrasting_background():
    img = from_array(_boxed_scene(400, 560, 0.03, (10, 10, 10)))
    reading = detect_border_color(img)
    assert reading.color is BorderColor.BLACK
    assert reading.confidence > 0.5


def test_border_color_yellow_box():
    img = from_array(_boxed_scene(400, 560, 0.03, (235, 205, 45), bg=(30, 60, 160)))
    reading = detect_border_color(img)
    assert reading.color is BorderColor.YELLOW
    assert reading.confidence > 0.5


def test_border_color_weak_majority_reports_unknown():
    rng = np.random.default_rng(11)
    noise = rng.integers(0, 256, size=(300, 400, 3), dtype=np.uint8)
    reading = detect_border_color(from_array(noise))
    assert reading.color is BorderColor.UNKNOWN
    assert 0.0 <= reading.confidence <= 0.2
    assert reading.total > 0


def test_border_color_counts_are_consistent():
    img = from_array(_boxed_scene(200, 280, 0.03, (245, 245, 245), bg=(20, 20, 120)))
    reading = detect_border_color(img)
    assert reading.color is BorderColor.WHITE
    best = max(reading.counts[c] for c in (BorderColor.BLACK, BorderColor.WHITE,
                                            BorderColor.YELLOW, BorderColor.SILVER))
    assert reading.confidence == pytest.approx(best / reading.total)
