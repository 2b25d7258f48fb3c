# cardscan/geometry/edges.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Optional
import logging
import math
import numpy as np

from cardscan.color.classify import LABEL_OF
from cardscan.core.config import CARD_ASPECT
from cardscan.core.contracts import BorderColor, Edges, GradientField

logger = logging.getLogger(__name__)

# Fallback proportions when a side has too few supporting points
_DEFAULT_NEAR = 0.05
_DEFAULT_FAR = 0.95


@dataclass(frozen=True)
class EdgeEstimate:
    edges: Edges
    confidence: float
    counts: Dict[str, int]
    threshold: float

    @property
    def total_points(self) -> int:
        return sum(self.counts.values())


def round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def median(values: Iterable[float]) -> float:
    """Median with the mean of the middle pair for even lengths; 0.0 when empty."""
    arr = np.asarray(list(values), dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(np.median(arr))


def adaptive_threshold(magnitude: np.ndarray, percentile: float = 85.0, fallback: float = 30.0) -> float:
    """Value at rank floor(n * p / 100) of the sorted non-zero magnitudes."""
    nz = magnitude[magnitude > 0]
    if nz.size == 0:
        return float(fallback)
    ordered = np.sort(nz, axis=None)
    idx = min(int(math.floor(ordered.size * percentile / 100.0)), ordered.size - 1)
    return float(ordered[idx])


def _first_hits(strong: np.ndarray, colour_ok: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """
    strong / colour_ok: (lines, steps) booleans in scan order along axis 1.
    Returns the scan position of the first qualifying step on each line that has one.
    """
    if strong.size == 0:
        return np.empty(0, dtype=np.float64)
    hit = strong & colour_ok
    found = hit.any(axis=1)
    first = hit.argmax(axis=1)
    return positions[first[found]].astype(np.float64)


def locate_edges(
    field: GradientField,
    labels: Optional[np.ndarray],
    border_color: BorderColor,
    *,
    percentile: float = 85.0,
    fallback_threshold: float = 30.0,
    margin: float = 0.03,
    scan_extent: float = 0.40,
    line_step: int = 2,
    neighbor_offset: int = 2,
    min_points: int = 6,
    card_aspect: float = CARD_ASPECT,
    aspect_tol: float = 0.15,
) -> EdgeEstimate:
    """
    Coarse left/right/top/bottom by scanning from each image side toward the center.

    On every `line_step`-th line the first pixel whose directional gradient
    strength exceeds the adaptive threshold, and whose neighbour
    `neighbor_offset` px further toward the center is classified as the
    border color, is that line's edge point. Left/top scans stop at
    `scan_extent` of the dimension, right/bottom scans at 1 - scan_extent.
    """
    H, W = field.shape
    thr = adaptive_threshold(field.magnitude, percentile, fallback_threshold)

    if border_color is BorderColor.UNKNOWN or labels is None:
        match = np.ones((H, W), dtype=bool)
    else:
        match = labels == LABEL_OF[border_color]

    mx = int(math.floor(W * margin))
    my = int(math.floor(H * margin))
    step = max(1, int(line_step))
    off = int(neighbor_offset)

    rows = np.arange(my, H - my, step)
    cols = np.arange(mx, W - mx, step)

    # left / right: lines are rows, scan along x
    left_xs = np.arange(mx, int(math.ceil(W * scan_extent)))
    right_xs = np.arange(W - mx - 1, int(math.floor(W * (1 - scan_extent))), -1)
    left_pts = _first_hits(
        field.vertical[np.ix_(rows, left_xs)] > thr,
        match[np.ix_(rows, np.clip(left_xs + off, 0, W - 1))],
        left_xs,
    )
    right_pts = _first_hits(
        field.vertical[np.ix_(rows, right_xs)] > thr,
        match[np.ix_(rows, np.clip(right_xs - off, 0, W - 1))],
        right_xs,
    )

    # top / bottom: lines are columns, scan along y (transpose so axis 1 is the scan)
    top_ys = np.arange(my, int(math.ceil(H * scan_extent)))
    bottom_ys = np.arange(H - my - 1, int(math.floor(H * (1 - scan_extent))), -1)
    top_pts = _first_hits(
        (field.horizontal[np.ix_(top_ys, cols)] > thr).T,
        match[np.ix_(np.clip(top_ys + off, 0, H - 1), cols)].T,
        top_ys,
    )
    bottom_pts = _first_hits(
        (field.horizontal[np.ix_(bottom_ys, cols)] > thr).T,
        match[np.ix_(np.clip(bottom_ys - off, 0, H - 1), cols)].T,
        bottom_ys,
    )

    def _side(pts: np.ndarray, default: float) -> float:
        return median(pts) if pts.size >= min_points else default

    left = _side(left_pts, W * _DEFAULT_NEAR)
    right = _side(right_pts, W * _DEFAULT_FAR)
    top = _side(top_pts, H * _DEFAULT_NEAR)
    bottom = _side(bottom_pts, H * _DEFAULT_FAR)

    # Pull the weaker axis toward the card aspect; the axis with more points is kept.
    horiz_support = left_pts.size + right_pts.size
    vert_support = top_pts.size + bottom_pts.size
    measured = (right - left) / (bottom - top) if bottom != top else 0.0
    if abs(measured - card_aspect) > aspect_tol:
        if horiz_support > vert_support:
            expected_h = (right - left) / card_aspect
            cy = (top + bottom) / 2.0
            top, bottom = cy - expected_h / 2.0, cy + expected_h / 2.0
        else:
            expected_w = (bottom - top) * card_aspect
            cx = (left + right) / 2.0
            left, right = cx - expected_w / 2.0, cx + expected_w / 2.0
        logger.debug("[edges] aspect %.3f off target %.3f; adjusted %s axis",
                     measured, card_aspect, "vertical" if horiz_support > vert_support else "horizontal")

    edges = Edges(*(float(round_half_up(v)) for v in (left, right, top, bottom))).clamped(W, H)
    if edges.right <= edges.left:
        edges = Edges(float(round_half_up(W * _DEFAULT_NEAR)), float(round_half_up(W * _DEFAULT_FAR)), edges.top, edges.bottom)
    if edges.bottom <= edges.top:
        edges = Edges(edges.left, edges.right, float(round_half_up(H * _DEFAULT_NEAR)), float(round_half_up(H * _DEFAULT_FAR)))

    counts = {"left": int(left_pts.size), "right": int(right_pts.size),
              "top": int(top_pts.size), "bottom": int(bottom_pts.size)}
    expected = (H + W) / 2.0
    confidence = float(np.clip(sum(counts.values()) / expected, 0.0, 1.0)) if expected > 0 else 0.0
    logger.debug("[edges] thr=%.2f counts=%s edges=%s conf=%.3f", thr, counts, edges.as_tuple(), confidence)
    return EdgeEstimate(edges=edges, confidence=confidence, counts=counts, threshold=thr)
