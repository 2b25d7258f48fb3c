import numpy as np
import pytest

from cardscan.geometry.gradient import build_gradient_field, smooth, to_grayscale
from cardscan.io.raster import from_array


def _vertical_step(w: int = 40, h: int = 30, at: int = 20, lo: int = 0, hi: int = 200) -> np.ndarray:
    img = np.full((h, w, 3), lo, np.uint8)
    img[:, at:] = hi
    return img


def test_grayscale_uses_luma_weights():
    img = np.zeros((2, 3, 3), np.uint8)
    img[0, 0] = (255, 0, 0)
    img[0, 1] = (0, 255, 0)
    img[0, 2] = (0, 0, 255)
    gray = to_grayscale(from_array(img))
    assert gray[0, 0] == pytest.approx(0.299 * 255)
    assert gray[0, 1] == pytest.approx(0.587 * 255)
    assert gray[0, 2] == pytest.approx(0.114 * 255)


def test_smooth_keeps_outer_ring_and_blurs_interior():
    rng = np.random.default_rng(5)
    gray = rng.uniform(0, 255, size=(12, 15))
    out = smooth(gray)

    np.testing.assert_array_equal(out[0, :], gray[0, :])
    np.testing.assert_array_equal(out[-1, :], gray[-1, :])
    np.testing.assert_array_equal(out[:, 0], gray[:, 0])
    np.testing.assert_array_equal(out[:, -1], gray[:, -1])

    y, x = 6, 7
    k = np.array([[1, 2, 1], [2, 4, 2], [1, 2, 1]]) / 16.0
    expected = float((gray[y - 1:y + 2, x - 1:x + 2] * k).sum())
    assert out[y, x] == pytest.approx(expected)


def test_gradient_ring_is_zero():
    rng = np.random.default_rng(9)
    img = rng.integers(0, 256, size=(20, 25, 3), dtype=np.uint8)
    field = build_gradient_field(from_array(img))
    for arr in (field.magnitude, field.horizontal, field.vertical):
        assert not arr[0, :].any() and not arr[-1, :].any()
        assert not arr[:, 0].any() and not arr[:, -1].any()


def test_vertical_step_responds_in_vertical_strength_only():
    field = build_gradient_field(from_array(_vertical_step()))
    assert field.shape == (30, 40)

    interior = (slice(2, -2), slice(2, -2))
    col = int(np.argmax(field.vertical[15]))
    assert col in (19, 20)
    assert field.vertical[15, col] > 100
    assert np.allclose(field.horizontal[interior], 0.0)
    np.testing.assert_allclose(field.magnitude, np.hypot(field.horizontal, field.vertical))


def test_flat_image_has_no_gradient():
    img = np.full((10, 10, 3), 128, np.uint8)
    field = build_gradient_field(from_array(img))
    assert np.allclose(field.magnitude, 0.0, atol=1e-9)


def test_tiny_raster_yields_zero_field():
    img = np.full((2, 5, 3), 90, np.uint8)
    field = build_gradient_field(from_array(img))
    assert field.shape == (2, 5)
    assert not field.magnitude.any()
    np.testing.assert_array_equal(field.smoothed, field.gray)
