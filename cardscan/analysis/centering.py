# cardscan/analysis/centering.py
from __future__ import annotations
from typing import List, Optional
import logging
import math
import numpy as np

from cardscan.color.classify import LABEL_OF, classify_array
from cardscan.core.contracts import BorderColor, CenteringMeasurement, Edges, RasterImage
from cardscan.geometry.edges import median

logger = logging.getLogger(__name__)


def centering_percent(a: float, b: float) -> float:
    """100 when opposite borders are equal, falling toward 0 as one vanishes."""
    total = a + b
    if total <= 0:
        return 100.0
    return 100.0 - abs(a - b) / total * 100.0


def _inner_run(line: np.ndarray, slack: int) -> Optional[int]:
    """
    Index of the first non-border pixel after the border run that starts
    within the first `slack + 1` pixels of `line`; None if there is no run or
    it never ends inside the line.
    """
    starts = np.flatnonzero(line[:slack + 1])
    if starts.size == 0:
        return None
    s0 = int(starts[0])
    ends = np.flatnonzero(~line[s0:])
    if ends.size == 0:
        return None
    return s0 + int(ends[0])


def _side_widths(match: np.ndarray, lines: np.ndarray, outer: float, depth: int,
                 slack: int, inward: int, along_rows: bool) -> List[float]:
    """Border widths along one side; inward is +1 (left/top) or -1 (right/bottom)."""
    limit = match.shape[1] if along_rows else match.shape[0]
    first = int(math.ceil(outer)) if inward > 0 else int(math.floor(outer))
    last = first + inward * depth
    last = min(max(last, -1), limit)
    idx = np.arange(first, last, inward)
    idx = idx[(idx >= 0) & (idx < limit)]
    if idx.size == 0:
        return []
    widths = []
    for line in lines:
        seg = match[line, idx] if along_rows else match[idx, line]
        k = _inner_run(seg, slack)
        if k is None:
            continue
        inner = idx[k]
        widths.append((inner - 0.5 - outer) if inward > 0 else (outer - inner - 0.5))
    return widths


def measure_centering(
    image: RasterImage,
    edges: Edges,
    border_color: BorderColor,
    *,
    labels: Optional[np.ndarray] = None,
    max_fraction: float = 0.40,
    start_slack: int = 3,
    min_lines: int = 6,
    line_step: int = 2,
) -> Optional[CenteringMeasurement]:
    """
    Border width on each side and the resulting centering percentages.

    From the outer edge, each scan line walks inward across consecutive
    border-colored pixels (the run must begin within `start_slack` px of the
    edge and end within `max_fraction` of the card size); the side's width is
    the median run. Scan lines cover the middle 60% of the opposite
    dimension. Returns None for an unknown border color or when a side has
    fewer than `min_lines` usable lines.
    """
    if border_color is BorderColor.UNKNOWN or edges.width <= 0 or edges.height <= 0:
        return None
    if labels is None:
        labels = classify_array(image.rgb)
    match = labels == LABEL_OF[border_color]
    H, W = match.shape
    step = max(1, int(line_step))

    rows = np.arange(int(edges.top + 0.2 * edges.height), int(edges.top + 0.8 * edges.height), step)
    cols = np.arange(int(edges.left + 0.2 * edges.width), int(edges.left + 0.8 * edges.width), step)
    rows = rows[(rows >= 0) & (rows < H)]
    cols = cols[(cols >= 0) & (cols < W)]
    depth_x = max(1, int(max_fraction * edges.width))
    depth_y = max(1, int(max_fraction * edges.height))

    sides = {
        "left": _side_widths(match, rows, edges.left, depth_x, start_slack, +1, along_rows=True),
        "right": _side_widths(match, rows, edges.right, depth_x, start_slack, -1, along_rows=True),
        "top": _side_widths(match, cols, edges.top, depth_y, start_slack, +1, along_rows=False),
        "bottom": _side_widths(match, cols, edges.bottom, depth_y, start_slack, -1, along_rows=False),
    }
    short = [name for name, w in sides.items() if len(w) < min_lines]
    if short:
        logger.debug("[centering] not enough border runs on %s", ", ".join(short))
        return None

    left, right = max(0.0, median(sides["left"])), max(0.0, median(sides["right"]))
    top, bottom = max(0.0, median(sides["top"])), max(0.0, median(sides["bottom"]))
    horizontal = centering_percent(left, right)
    vertical = centering_percent(top, bottom)
    return CenteringMeasurement(
        left=left, right=right, top=top, bottom=bottom,
        horizontal=horizontal, vertical=vertical,
        overall=(horizontal + vertical) / 2.0,
    )
