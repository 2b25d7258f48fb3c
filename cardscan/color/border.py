"""
Dominant border color by voting over the expected border zone.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional
import logging
import numpy as np

from cardscan.color.classify import LABEL_COLORS, classify_array
from cardscan.core.contracts import BorderColor, KNOWN_BORDER_COLORS, RasterImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BorderReading:
    color: BorderColor
    confidence: float
    counts: Dict[BorderColor, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def _axis(lo: float, hi: float, stride: int) -> np.ndarray:
    # integer coordinates c with floor(lo) <= c < hi, stepping by stride
    return np.arange(int(np.floor(lo)), int(np.ceil(hi)), stride)


def detect_border_color(
    image: RasterImage,
    *,
    outer: float = 0.05,
    inner: float = 0.15,
    target_samples: int = 200,
    min_confidence: float = 0.2,
    labels: Optional[np.ndarray] = None,
) -> BorderReading:
    """
    Sample the outer 5-15% band on each side and vote a border color.

    The stride keeps roughly `target_samples` samples across the shorter image
    side. A dominant color with confidence <= min_confidence is reported as
    UNKNOWN (with that confidence) rather than promoted.
    `labels` may carry a precomputed classify_array() map of the raster.
    """
    W, H = image.width, image.height
    stride = max(1, min(W, H) // max(1, int(target_samples)))
    if labels is None:
        labels = classify_array(image.rgb)

    # (rows, cols) of the four strips; left/right span most of the height,
    # top/bottom only the middle so corners are not counted twice
    rows_full = _axis(H * outer, H * (1 - outer), stride)
    strips = [
        (rows_full, _axis(W * outer, W * inner, stride)),
        (rows_full, _axis(W * (1 - inner), W * (1 - outer), stride)),
        (_axis(H * outer, H * inner, stride), _axis(W * inner, W * (1 - inner), stride)),
        (_axis(H * (1 - inner), H * (1 - outer), stride), _axis(W * inner, W * (1 - inner), stride)),
    ]

    tally = np.zeros(len(LABEL_COLORS), np.int64)
    for rows, cols in strips:
        rows = rows[(rows >= 0) & (rows < H)]
        cols = cols[(cols >= 0) & (cols < W)]
        if rows.size == 0 or cols.size == 0:
            continue
        tally += np.bincount(labels[np.ix_(rows, cols)].ravel(), minlength=len(LABEL_COLORS))

    counts = {c: int(tally[i]) for i, c in enumerate(LABEL_COLORS)}
    total = int(tally.sum())
    if total == 0:
        return BorderReading(BorderColor.UNKNOWN, 0.0, counts)

    best, best_count = BorderColor.UNKNOWN, 0
    for c in KNOWN_BORDER_COLORS:
        if counts[c] > best_count:
            best, best_count = c, counts[c]

    confidence = best_count / total
    color = best if confidence > min_confidence else BorderColor.UNKNOWN
    logger.debug("[border] counts=%s total=%d -> %s (%.3f)",
                 {c.value: n for c, n in counts.items()}, total, color.value, confidence)
    return BorderReading(color, confidence, counts)
