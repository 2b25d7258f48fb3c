"""
Core contracts and simple data types shared across stages.

Everything here is created fresh for a single detection call and handed
downstream explicitly; no stage keeps state on a long-lived object.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple
import numpy as np


class ImageAcquisitionError(ValueError):
    """The input could not be turned into a usable raster (undecodable or empty)."""


class BorderColor(str, Enum):
    BLACK = "black"
    WHITE = "white"
    YELLOW = "yellow"
    SILVER = "silver"
    UNKNOWN = "unknown"


# Concrete colors in tie-break order; UNKNOWN never wins a vote.
KNOWN_BORDER_COLORS: Tuple[BorderColor, ...] = (
    BorderColor.BLACK,
    BorderColor.WHITE,
    BorderColor.YELLOW,
    BorderColor.SILVER,
)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Edges:
    """Card boundary in pixel coordinates of the raster it was measured on."""
    left: float
    right: float
    top: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def aspect(self) -> float:
        """Width / height; 0.0 for a degenerate box."""
        return self.width / self.height if self.height > 0 else 0.0

    def clamped(self, width: int, height: int) -> "Edges":
        return Edges(
            left=float(np.clip(self.left, 0, width - 1)),
            right=float(np.clip(self.right, 0, width - 1)),
            top=float(np.clip(self.top, 0, height - 1)),
            bottom=float(np.clip(self.bottom, 0, height - 1)),
        )

    def shifted(self, left: float = 0.0, right: float = 0.0,
                top: float = 0.0, bottom: float = 0.0) -> "Edges":
        return replace(
            self,
            left=self.left + left,
            right=self.right + right,
            top=self.top + top,
            bottom=self.bottom + bottom,
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.left, self.right, self.top, self.bottom)


@dataclass
class Corners:
    """
    The four card corners in image coordinates (pixels), ordered clockwise:
    [top-left, top-right, bottom-right, bottom-left].

    pts: np.ndarray with shape (4, 2), dtype float32
    """
    pts: np.ndarray

    @classmethod
    def from_edges(cls, edges: Edges) -> "Corners":
        return cls(pts=np.array([
            [edges.left, edges.top],
            [edges.right, edges.top],
            [edges.right, edges.bottom],
            [edges.left, edges.bottom],
        ], dtype=np.float32))

    def as_tuple(self) -> Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float], Tuple[float, float]]:
        return tuple(map(tuple, self.pts.astype(float)))  # type: ignore[return-value]


@dataclass
class GradientField:
    """
    Per-pass gradient data; all arrays are float64 with the raster's (H, W) shape.

    horizontal: strength of horizontal edges (|gy|)
    vertical:   strength of vertical edges (|gx|)
    """
    gray: np.ndarray
    smoothed: np.ndarray
    magnitude: np.ndarray
    horizontal: np.ndarray
    vertical: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return self.magnitude.shape  # type: ignore[return-value]


@dataclass(frozen=True)
class CenteringMeasurement:
    """Border widths (px) and centering percentages (100 = perfectly centered)."""
    left: float
    right: float
    top: float
    bottom: float
    horizontal: float
    vertical: float
    overall: float


@dataclass
class RasterImage:
    """Decoded RGBA8 raster; pixels has shape (H, W, 4), dtype uint8."""
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]


@dataclass
class DetectionResult:
    """
    Outcome of one detection call.

    When perspective_corrected is True, `edges` are measured on `rectified`
    while `corners` stay in the coordinates of the input raster.
    """
    edges: Edges
    corners: Corners
    border_color: BorderColor
    confidence: float
    color_confidence: float
    edge_confidence: float
    perspective_corrected: bool
    method: str
    rectified: Optional[RasterImage] = None
    background_recommendation: Optional[str] = None
    centering: Optional[CenteringMeasurement] = None
