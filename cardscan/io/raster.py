"""
Raster I/O capability.

The detector only ever sees RasterImage (RGBA8). Platforms plug in their own
decoder by implementing RasterIO; two are provided, one per imaging stack.
"""

from __future__ import annotations
import io
from typing import Protocol
import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from cardscan.core.contracts import ImageAcquisitionError, RasterImage


class RasterIO(Protocol):
    def decode(self, data: bytes) -> RasterImage: ...
    def allocate(self, width: int, height: int) -> RasterImage: ...
    def get_pixels(self, image: RasterImage) -> np.ndarray: ...
    def put_pixels(self, image: RasterImage, pixels: np.ndarray) -> RasterImage: ...


def from_array(array: np.ndarray) -> RasterImage:
    """
    Wrap an in-memory gray (H, W), RGB (H, W, 3) or RGBA (H, W, 4) array.
    Raises ImageAcquisitionError for anything else or for an empty raster.
    """
    a = np.asarray(array)
    if a.ndim == 2:
        a = np.dstack([a, a, a])
    if a.ndim != 3 or a.shape[2] not in (3, 4):
        raise ImageAcquisitionError(f"Expected a gray, RGB or RGBA raster, got shape {a.shape}")
    if a.shape[0] == 0 or a.shape[1] == 0:
        raise ImageAcquisitionError(f"Raster has zero dimension: {a.shape[1]}x{a.shape[0]}")
    if a.dtype != np.uint8:
        a = np.clip(a, 0, 255).astype(np.uint8)
    if a.shape[2] == 3:
        alpha = np.full(a.shape[:2] + (1,), 255, np.uint8)
        a = np.concatenate([a, alpha], axis=2)
    return RasterImage(pixels=np.ascontiguousarray(a))


class _ArrayRasterIO:
    """allocate/get/put are plain numpy regardless of the decoder."""

    def allocate(self, width: int, height: int) -> RasterImage:
        if width <= 0 or height <= 0:
            raise ImageAcquisitionError(f"Cannot allocate a {width}x{height} raster")
        return RasterImage(pixels=np.zeros((height, width, 4), np.uint8))

    def get_pixels(self, image: RasterImage) -> np.ndarray:
        return image.pixels

    def put_pixels(self, image: RasterImage, pixels: np.ndarray) -> RasterImage:
        p = np.asarray(pixels)
        if p.shape != image.pixels.shape:
            raise ValueError(f"Pixel buffer {p.shape} does not match raster {image.pixels.shape}")
        return RasterImage(pixels=p.astype(np.uint8, copy=True))


class OpenCVRasterIO(_ArrayRasterIO):
    """Decode with cv2.imdecode; OpenCV hands back BGR(A), we convert to RGBA."""

    def decode(self, data: bytes) -> RasterImage:
        if not data:
            raise ImageAcquisitionError("Empty image buffer")
        buf = np.frombuffer(data, dtype=np.uint8)
        img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
        if img is None:
            raise ImageAcquisitionError("Could not decode image buffer")
        if img.dtype != np.uint8:
            # 16-bit PNG/TIFF
            img = (img / 257.0).astype(np.uint8)
        if img.ndim == 2:
            rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
        elif img.shape[2] == 4:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
        return from_array(rgba)


class PillowRasterIO(_ArrayRasterIO):
    """Decode with Pillow (covers formats OpenCV may be built without)."""

    def decode(self, data: bytes) -> RasterImage:
        if not data:
            raise ImageAcquisitionError("Empty image buffer")
        try:
            with Image.open(io.BytesIO(data)) as im:
                rgba = np.array(im.convert("RGBA"))
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageAcquisitionError(f"Could not decode image buffer: {exc}") from exc
        return from_array(rgba)
