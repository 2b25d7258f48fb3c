# cardscan/geometry/corners.py
from __future__ import annotations
import numpy as np

from cardscan.core.contracts import Corners, Edges


def corners_from_edges(edges: Edges) -> Corners:
    return Corners.from_edges(edges)


def refine_corners(corners: Corners, magnitude: np.ndarray, radius: int = 15) -> Corners:
    """
    Snap each corner to the strongest gradient inside a (2r+1)^2 window.

    Window pixels are the corner position plus integer offsets, rounded half
    up, so a corner at x.5 still gets 2r+1 contiguous columns. Scan order is
    row-major from the window's top-left, and only a strictly greater value
    replaces the current best, so the first maximum wins ties. A window with
    no positive magnitude leaves the corner where it was.
    """
    H, W = magnitude.shape
    out = np.array(corners.pts, dtype=np.float32, copy=True)
    offsets = np.arange(-radius, radius + 1)
    for i, (cx, cy) in enumerate(corners.pts):
        xs = np.floor(cx + offsets + 0.5).astype(np.int64)
        ys = np.floor(cy + offsets + 0.5).astype(np.int64)
        xs = xs[(xs >= 0) & (xs < W)]
        ys = ys[(ys >= 0) & (ys < H)]
        if xs.size == 0 or ys.size == 0:
            continue
        window = magnitude[np.ix_(ys, xs)]
        flat = int(np.argmax(window))       # first occurrence in row-major order
        r, c = divmod(flat, window.shape[1])
        if window[r, c] > 0:
            out[i] = (xs[c], ys[r])
    return Corners(pts=out)
