"""
Simple I/O helpers for reading images from disk into RGBA rasters.
"""

from __future__ import annotations
from pathlib import Path
from typing import Optional, Union

from cardscan.core.contracts import RasterImage
from cardscan.io.raster import OpenCVRasterIO, RasterIO


def load_raster(path: Union[str, Path], raster_io: Optional[RasterIO] = None) -> RasterImage:
    """
    Load an image from disk as RGBA.
    Raises FileNotFoundError if not found, ImageAcquisitionError if undecodable.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Could not read image at: {p}")
    codec = raster_io if raster_io is not None else OpenCVRasterIO()
    return codec.decode(p.read_bytes())
