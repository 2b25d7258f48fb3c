import numpy as np
import pytest

from cardscan.analysis.centering import centering_percent, measure_centering
from cardscan.core.contracts import BorderColor, Edges
from cardscan.io.raster import from_array

GREEN = (40, 140, 60)
BLACK = (0, 0, 0)
ART = (200, 60, 60)


def _bordered_card(widths, w: int = 700, h: int = 900, box=(100, 100, 579, 771)) -> np.ndarray:
    """Black-bordered card with art inside; widths = (left, right, top, bottom) in px."""
    bl, br, bt, bb = widths
    x0, y0, x1, y1 = box
    img = np.zeros((h, w, 3), np.uint8)
    img[:] = GREEN
    img[y0:y1 + 1, x0:x1 + 1] = BLACK
    img[y0 + bt:y1 + 1 - bb, x0 + bl:x1 + 1 - br] = ART
    return img


OUTER = Edges(99.5, 579.5, 99.5, 771.5)


def test_centering_percent():
    assert centering_percent(20, 20) == 100.0
    assert centering_percent(20, 40) == pytest.approx(100 - 20 / 60 * 100)
    assert centering_percent(0, 0) == 100.0
    assert centering_percent(0, 10) == 0.0


def test_perfectly_centered_card():
    img = from_array(_bordered_card((25, 25, 30, 30)))
    m = measure_centering(img, OUTER, BorderColor.BLACK)
    assert m is not None
    assert m.left == pytest.approx(25.0)
    assert m.right == pytest.approx(25.0)
    assert m.top == pytest.approx(30.0)
    assert m.bottom == pytest.approx(30.0)
    assert m.overall == pytest.approx(100.0)


def test_off_center_card():
    img = from_array(_bordered_card((20, 40, 30, 30)))
    m = measure_centering(img, OUTER, BorderColor.BLACK)
    assert m.left == pytest.approx(20.0)
    assert m.right == pytest.approx(40.0)
    assert m.horizontal == pytest.approx(66.6667, abs=1e-3)
    assert m.vertical == pytest.approx(100.0)
    assert m.overall == pytest.approx((m.horizontal + m.vertical) / 2)


def test_unknown_border_gives_no_measurement():
    img = from_array(_bordered_card((25, 25, 30, 30)))
    assert measure_centering(img, OUTER, BorderColor.UNKNOWN) is None


def test_borderless_side_gives_no_measurement():
    # no border run starts near the right edge
    img = _bordered_card((25, 25, 30, 30))
    img[:, 540:] = GREEN
    assert measure_centering(from_array(img), OUTER, BorderColor.BLACK) is None
