# cardscan/geometry/subpixel.py
from __future__ import annotations
from typing import Sequence
import numpy as np

from cardscan.core.contracts import Edges
from cardscan.geometry.edges import median, round_half_up


def subpixel_peak(strip: Sequence[float]) -> float:
    """
    Position (in strip indices) of the steepest transition in a 1-D profile.

    Picks the largest |s[i+1] - s[i-1]| (first one wins ties), then shifts it
    by a parabolic fit of the two one-sided differences, at most half a pixel.
    """
    s = np.asarray(strip, dtype=np.float64)
    n = s.size
    if n < 3:
        return n / 2.0

    central = np.abs(s[2:] - s[:-2])
    if central.max() <= 0:
        return 0.0
    idx = int(np.argmax(central)) + 1

    g_prev = abs(s[idx] - s[idx - 1])
    g_next = abs(s[idx + 1] - s[idx])
    denom = g_prev + g_next
    if denom < 0.01:
        return float(idx)
    offset = (g_next - g_prev) / (2.0 * denom)
    return idx + float(np.clip(offset, -0.5, 0.5))


def _strip_positions(lo: float, hi: float, samples: int) -> np.ndarray:
    i = np.arange(1, samples + 1, dtype=np.float64)
    return np.floor(lo + (hi - lo) * i / (samples + 1)).astype(np.int64)


def _fit_side(smoothed: np.ndarray, at: float, lines: np.ndarray, half_width: int, vertical_edge: bool) -> float:
    H, W = smoothed.shape
    limit = W if vertical_edge else H
    center = round_half_up(at)
    start = max(0, center - half_width)
    end = min(limit - 1, center + half_width)
    estimates = []
    for line in lines:
        if vertical_edge:
            strip = smoothed[line, start:end + 1]
        else:
            strip = smoothed[start:end + 1, line]
        estimates.append(start + subpixel_peak(strip))
    return median(estimates) if estimates else float(at)


def refine_edges_subpixel(smoothed: np.ndarray, edges: Edges, *, samples: int = 30, half_width: int = 20) -> Edges:
    """
    Floating-point edges from `samples` perpendicular strips per side.

    Each strip spans +-half_width px around the coarse edge on the smoothed
    grayscale field; the side's position is the median of its strip estimates.
    """
    H, W = smoothed.shape
    rows = np.clip(_strip_positions(edges.top, edges.bottom, samples), 0, H - 1)
    cols = np.clip(_strip_positions(edges.left, edges.right, samples), 0, W - 1)
    return Edges(
        left=_fit_side(smoothed, edges.left, rows, half_width, vertical_edge=True),
        right=_fit_side(smoothed, edges.right, rows, half_width, vertical_edge=True),
        top=_fit_side(smoothed, edges.top, cols, half_width, vertical_edge=False),
        bottom=_fit_side(smoothed, edges.bottom, cols, half_width, vertical_edge=False),
    )
