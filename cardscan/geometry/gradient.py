# cardscan/geometry/gradient.py
from __future__ import annotations
import cv2
import numpy as np

from cardscan.color.classify import luminance
from cardscan.core.contracts import GradientField, RasterImage

_GAUSS_3x3 = np.array([[1, 2, 1],
                       [2, 4, 2],
                       [1, 2, 1]], dtype=np.float64) / 16.0


def to_grayscale(image: RasterImage) -> np.ndarray:
    rgb = image.rgb.astype(np.float64)
    return luminance(rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2])


def smooth(gray: np.ndarray) -> np.ndarray:
    """3x3 Gaussian; the outermost ring of pixels is copied through unfiltered."""
    out = np.array(gray, dtype=np.float64, copy=True)
    if out.shape[0] < 3 or out.shape[1] < 3:
        return out
    blurred = cv2.filter2D(out, cv2.CV_64F, _GAUSS_3x3, borderType=cv2.BORDER_CONSTANT)
    out[1:-1, 1:-1] = blurred[1:-1, 1:-1]
    return out


def _zero_ring(a: np.ndarray) -> np.ndarray:
    a[0, :] = 0.0
    a[-1, :] = 0.0
    a[:, 0] = 0.0
    a[:, -1] = 0.0
    return a


def build_gradient_field(image: RasterImage) -> GradientField:
    """
    Grayscale -> Gaussian 3x3 -> Sobel 3x3.

    Sobel needs a full 3x3 neighbourhood, so the outermost ring of every
    output array is zero.
    """
    gray = to_grayscale(image)
    smoothed = smooth(gray)
    H, W = smoothed.shape
    if H < 3 or W < 3:
        zeros = np.zeros_like(smoothed)
        return GradientField(gray, smoothed, zeros, zeros.copy(), zeros.copy())

    gx = _zero_ring(cv2.Sobel(smoothed, cv2.CV_64F, 1, 0, ksize=3))
    gy = _zero_ring(cv2.Sobel(smoothed, cv2.CV_64F, 0, 1, ksize=3))
    return GradientField(
        gray=gray,
        smoothed=smoothed,
        magnitude=np.hypot(gx, gy),
        horizontal=np.abs(gy),
        vertical=np.abs(gx),
    )
