import numpy as np
import pytest

from cardscan.core.contracts import Edges
from cardscan.geometry.subpixel import refine_edges_subpixel, subpixel_peak


def test_hard_step_lands_between_the_two_pixels():
    strip = [0.0] * 10 + [100.0] * 10
    assert abs(subpixel_peak(strip) - 9.5) <= 0.5


def test_blurred_step_is_located_off_the_pixel_grid():
    # 3-tap blur of a step between index 9 and 10
    strip = [0.0] * 9 + [25.0, 75.0] + [100.0] * 9
    pos = subpixel_peak(strip)
    assert 9.0 <= pos <= 10.5
    assert pos != int(pos)


def test_offset_is_limited_to_half_a_pixel():
    for strip in ([0, 0, 0, 100, 100], [0, 50, 100, 100, 100], [100, 100, 100, 0, 0]):
        pos = subpixel_peak(strip)
        nearest = round(pos)
        assert abs(pos - nearest) <= 0.5


def test_short_strip_returns_midpoint():
    assert subpixel_peak([5.0, 9.0]) == 1.0
    assert subpixel_peak([]) == 0.0


def test_flat_strip_returns_zero():
    assert subpixel_peak([42.0] * 12) == 0.0


def _smoothed_box(w: int, h: int, box) -> np.ndarray:
    """Dark box on a bright field, blurred with the same 3x3 kernel as the pipeline."""
    x0, y0, x1, y1 = box
    a = np.full((h, w), 200.0)
    a[y0:y1 + 1, x0:x1 + 1] = 0.0
    k = np.array([1.0, 2.0, 1.0]) / 4.0
    a = np.apply_along_axis(lambda r: np.convolve(r, k, mode="same"), 1, a)
    a = np.apply_along_axis(lambda c: np.convolve(c, k, mode="same"), 0, a)
    return a


def test_refine_edges_recovers_box_within_a_pixel():
    smoothed = _smoothed_box(300, 400, (60, 80, 240, 330))
    fine = refine_edges_subpixel(smoothed, Edges(58, 242, 78, 332))
    assert fine.left == pytest.approx(59.5, abs=1.0)
    assert fine.right == pytest.approx(240.5, abs=1.0)
    assert fine.top == pytest.approx(79.5, abs=1.0)
    assert fine.bottom == pytest.approx(330.5, abs=1.0)


def test_refine_edges_near_image_border_clips_strips():
    smoothed = _smoothed_box(120, 160, (3, 5, 110, 150))
    fine = refine_edges_subpixel(smoothed, Edges(3, 110, 5, 150), samples=10, half_width=20)
    assert 0 <= fine.left <= 8
    assert 105 <= fine.right <= 119
