"""
4-point projective transform: direct linear transform + Gaussian elimination.

H maps src -> dst in homogeneous coordinates with h[8] fixed to 1:

    x' = (h0 x + h1 y + h2) / (h6 x + h7 y + 1)
    y' = (h3 x + h4 y + h5) / (h6 x + h7 y + 1)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple, Union
import numpy as np

from cardscan.core.contracts import Corners, Point

_EPS = 1e-12

PointsLike = Union[Corners, np.ndarray, Sequence[Point], Sequence[Tuple[float, float]]]


@dataclass(frozen=True)
class Homography:
    matrix: np.ndarray  # (3, 3) float64, matrix[2, 2] == 1

    @property
    def flat(self) -> np.ndarray:
        return self.matrix.reshape(9)

    def apply(self, x: float, y: float) -> Point:
        return apply_homography(self, x, y)

    def apply_many(self, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorized apply(); degenerate (|w| < 1e-12) entries map to (0, 0)."""
        h = self.flat
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        w = h[6] * xs + h[7] * ys + h[8]
        ok = np.abs(w) >= _EPS
        safe_w = np.where(ok, w, 1.0)
        u = np.where(ok, (h[0] * xs + h[1] * ys + h[2]) / safe_w, 0.0)
        v = np.where(ok, (h[3] * xs + h[4] * ys + h[5]) / safe_w, 0.0)
        return u, v

    def is_singular(self) -> bool:
        if not np.isfinite(self.matrix).all():
            return True
        return abs(float(np.linalg.det(self.matrix))) < _EPS


def _as_xy(points: PointsLike) -> np.ndarray:
    if isinstance(points, Corners):
        return np.asarray(points.pts, dtype=np.float64).reshape(4, 2)
    if isinstance(points, np.ndarray):
        return points.astype(np.float64).reshape(4, 2)
    rows = [(p.x, p.y) if isinstance(p, Point) else (p[0], p[1]) for p in points]
    return np.asarray(rows, dtype=np.float64).reshape(4, 2)


def _solve_linear(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Gaussian elimination with partial pivoting on a square system.
    Columns whose pivot is below 1e-12 are left unsolved and their
    coefficient comes out as 0.
    """
    n = a.shape[0]
    aug = np.hstack([a.astype(np.float64), b.reshape(n, 1).astype(np.float64)])

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]
        pivot = aug[col, col]
        if abs(pivot) < _EPS:
            continue
        factors = aug[col + 1:, col] / pivot
        aug[col + 1:, col:] -= np.outer(factors, aug[col, col:])

    x = np.zeros(n, dtype=np.float64)
    for row in range(n - 1, -1, -1):
        diag = aug[row, row]
        if abs(diag) <= _EPS:
            continue
        x[row] = (aug[row, n] - aug[row, row + 1:n] @ x[row + 1:]) / diag
    return x


def solve_homography(src: PointsLike, dst: PointsLike) -> Homography:
    """Homography mapping the four src points onto the four dst points (same order)."""
    s = _as_xy(src)
    d = _as_xy(dst)

    a = np.zeros((8, 8), dtype=np.float64)
    b = np.zeros(8, dtype=np.float64)
    for i in range(4):
        sx, sy = s[i]
        dx, dy = d[i]
        a[2 * i] = [-sx, -sy, -1.0, 0.0, 0.0, 0.0, dx * sx, dx * sy]
        b[2 * i] = -dx
        a[2 * i + 1] = [0.0, 0.0, 0.0, -sx, -sy, -1.0, dy * sx, dy * sy]
        b[2 * i + 1] = -dy

    h = np.append(_solve_linear(a, b), 1.0)
    return Homography(matrix=h.reshape(3, 3))


def apply_homography(H: Homography, x: float, y: float) -> Point:
    h = H.flat
    w = h[6] * x + h[7] * y + h[8]
    if abs(w) < _EPS:
        return Point(0.0, 0.0)
    return Point(
        float((h[0] * x + h[1] * y + h[2]) / w),
        float((h[3] * x + h[4] * y + h[5]) / w),
    )
