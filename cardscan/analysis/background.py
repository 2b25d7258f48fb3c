"""
Background contrast check: average the scene outside the card and suggest a
better backdrop when it sits in a band that washes out the border.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import math
import numpy as np

from cardscan.color.classify import classify_pixel, luminance
from cardscan.core.contracts import BorderColor, Edges, RasterImage


@dataclass(frozen=True)
class BackgroundReading:
    luminance: float
    color: BorderColor
    samples: int


# (low, high) exclusive luminance band that hurts contrast, and the advice for it
_BANDS: Dict[BorderColor, Tuple[float, float, str]] = {
    BorderColor.BLACK: (-math.inf, 100.0, "Use a white or light-colored background for black-bordered cards"),
    BorderColor.WHITE: (180.0, math.inf, "Use a dark background for white-bordered cards"),
    BorderColor.YELLOW: (140.0, 220.0, "Use a darker background for better yellow border contrast"),
    BorderColor.SILVER: (130.0, 200.0, "Use a very dark or very light background for silver-bordered cards"),
}


def sample_background(
    image: RasterImage,
    edges: Edges,
    *,
    shrink: float = 0.2,
    target_samples: int = 100,
) -> Optional[BackgroundReading]:
    """
    Mean color of the four image-corner regions outside the card box.

    Each region stops `shrink` of the way from the image side to the card
    edge, so blur around the card boundary is not counted. Returns None when
    the card fills the frame and nothing is left to sample.
    """
    W, H = image.width, image.height
    stride = max(2, min(W, H) // max(1, int(target_samples)))
    near_x = int(math.floor(edges.left * (1 - shrink)))
    near_y = int(math.floor(edges.top * (1 - shrink)))
    far_x = int(math.ceil(edges.right + (W - edges.right) * shrink))
    far_y = int(math.ceil(edges.bottom + (H - edges.bottom) * shrink))

    regions = [
        (0, 0, near_x, near_y),
        (far_x, 0, W, near_y),
        (0, far_y, near_x, H),
        (far_x, far_y, W, H),
    ]
    rgb = image.rgb
    total = np.zeros(3, dtype=np.float64)
    count = 0
    for x1, y1, x2, y2 in regions:
        block = rgb[max(0, y1):min(H, y2):stride, max(0, x1):min(W, x2):stride]
        if block.size == 0:
            continue
        total += block.reshape(-1, 3).sum(axis=0, dtype=np.float64)
        count += block.shape[0] * block.shape[1]

    if count == 0:
        return None
    r, g, b = total / count
    color = classify_pixel(float(np.floor(r + 0.5)), float(np.floor(g + 0.5)), float(np.floor(b + 0.5)))
    return BackgroundReading(luminance=float(luminance(r, g, b)), color=color, samples=count)


def recommend_background(border_color: BorderColor, reading: Optional[BackgroundReading]) -> Optional[str]:
    if reading is None:
        return None
    band = _BANDS.get(border_color)
    if band is None:
        return None
    low, high, advice = band
    lum = round(reading.luminance)
    return advice if low < lum < high else None
