"""
Pixel color -> border color category.

Rules are tried in a fixed order (yellow, silver, white, black) and the
first match wins.
"""

from __future__ import annotations
import numpy as np

from cardscan.core.contracts import BorderColor, KNOWN_BORDER_COLORS

# Integer codes used by label maps; index == position in LABEL_COLORS.
LABEL_COLORS = KNOWN_BORDER_COLORS + (BorderColor.UNKNOWN,)
LABEL_OF = {c: i for i, c in enumerate(LABEL_COLORS)}
UNKNOWN_LABEL = LABEL_OF[BorderColor.UNKNOWN]


def luminance(r, g, b):
    """ITU-R BT.601 luma; works on scalars and numpy arrays alike."""
    return 0.299 * r + 0.587 * g + 0.114 * b


def classify_pixel(r: float, g: float, b: float) -> BorderColor:
    lum = luminance(r, g, b)

    if r > 170 and g > 150 and b < 120 and r > b * 1.5 and g > b * 1.3:
        return BorderColor.YELLOW

    spread = max(r, g, b) - min(r, g, b)
    if spread < 35 and 120 < lum < 210:
        return BorderColor.SILVER
    if lum > 210 and spread < 50:
        return BorderColor.WHITE
    if lum < 60:
        return BorderColor.BLACK
    return BorderColor.UNKNOWN


def classify_array(rgb: np.ndarray) -> np.ndarray:
    """Vectorized classify_pixel over an (..., 3) array; returns int8 labels (see LABEL_COLORS)."""
    px = np.asarray(rgb, dtype=np.float64)
    r, g, b = px[..., 0], px[..., 1], px[..., 2]
    lum = luminance(r, g, b)
    spread = px[..., :3].max(axis=-1) - px[..., :3].min(axis=-1)

    yellow = (r > 170) & (g > 150) & (b < 120) & (r > b * 1.5) & (g > b * 1.3)
    silver = (spread < 35) & (lum > 120) & (lum < 210)
    white = (lum > 210) & (spread < 50)
    black = lum < 60

    labels = np.select(
        [yellow, silver, white, black],
        [LABEL_OF[BorderColor.YELLOW], LABEL_OF[BorderColor.SILVER],
         LABEL_OF[BorderColor.WHITE], LABEL_OF[BorderColor.BLACK]],
        default=UNKNOWN_LABEL,
    )
    return labels.astype(np.int8)
