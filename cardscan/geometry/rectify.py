# cardscan/geometry/rectify.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math
import numpy as np

from cardscan.core.config import CARD_ASPECT
from cardscan.core.contracts import Corners, RasterImage
from cardscan.geometry.edges import round_half_up
from cardscan.geometry.homography import Homography, solve_homography
from cardscan.io.raster import OpenCVRasterIO, RasterIO

logger = logging.getLogger(__name__)

APPLIED = "applied"
NOT_NEEDED = "not_needed"
FAILED = "failed"


@dataclass(frozen=True)
class RectifyOutcome:
    """
    Result of a rectification attempt. Only status == "applied" carries an image;
    "not_needed" and "failed" both mean: keep working on the input raster.
    """
    status: str
    skew: float
    image: Optional[RasterImage] = None
    size: Optional[Tuple[int, int]] = None
    reason: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.status == APPLIED


def max_skew(corners: Corners) -> float:
    """Largest angular deviation (radians) of the four sides from the image axes."""
    tl, tr, br, bl = np.asarray(corners.pts, dtype=np.float64)
    top = abs(math.atan2(tr[1] - tl[1], tr[0] - tl[0]))
    bottom = abs(math.atan2(br[1] - bl[1], br[0] - bl[0]))
    # vertical sides measure the x drift against y
    left = abs(math.atan2(bl[0] - tl[0], bl[1] - tl[1]))
    right = abs(math.atan2(br[0] - tr[0], br[1] - tr[1]))
    return max(top, bottom, left, right)


def compute_target_size(
    corners: Corners,
    *,
    aspect: float = CARD_ASPECT,
    max_height_ratio: float = 1.3,
) -> Tuple[int, int]:
    """
    Pick (W, H) for the rectified card.

    Width is the mean of the top/bottom side lengths and height follows the
    card aspect (W/H); if that height overshoots the measured mean height by
    more than `max_height_ratio`, height is taken from the measurement instead
    and width is derived from it.
    """
    tl, tr, br, bl = np.asarray(corners.pts, dtype=np.float64)
    avg_w = (np.linalg.norm(tr - tl) + np.linalg.norm(br - bl)) / 2.0
    avg_h = (np.linalg.norm(bl - tl) + np.linalg.norm(br - tr)) / 2.0

    out_w = round_half_up(avg_w)
    out_h = round_half_up(out_w / max(1e-6, aspect))
    if out_h > avg_h * max_height_ratio:
        out_h = round_half_up(avg_h)
        out_w = round_half_up(out_h * aspect)
    return out_w, out_h


def _bilinear_backward(src: np.ndarray, inv: Homography, out_w: int, out_h: int) -> Tuple[np.ndarray, int]:
    """
    Fill an (out_h, out_w, 4) buffer by mapping every destination pixel through
    `inv` into `src`. Pixels whose source lies outside [0, W-1) x [0, H-1) stay zero.
    Returns (buffer, number of pixels written).
    """
    src_h, src_w = src.shape[:2]
    out = np.zeros((out_h, out_w, src.shape[2]), dtype=np.uint8)
    ys, xs = np.mgrid[0:out_h, 0:out_w]
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        u, v = inv.apply_many(xs.ravel(), ys.ravel())
    valid = np.isfinite(u) & np.isfinite(v) & (u >= 0) & (u < src_w - 1) & (v >= 0) & (v < src_h - 1)
    if not valid.any():
        return out, 0

    u, v = u[valid], v[valid]
    x0 = np.floor(u).astype(np.int64)
    y0 = np.floor(v).astype(np.int64)
    fx = (u - x0)[:, None]
    fy = (v - y0)[:, None]

    s = src.astype(np.float64)
    p00 = s[y0, x0]
    p10 = s[y0, x0 + 1]
    p01 = s[y0 + 1, x0]
    p11 = s[y0 + 1, x0 + 1]
    blended = (p00 * (1 - fx) * (1 - fy) + p10 * fx * (1 - fy)
               + p01 * (1 - fx) * fy + p11 * fx * fy)

    flat = out.reshape(-1, src.shape[2])
    flat[valid] = np.clip(np.floor(blended + 0.5), 0, 255).astype(np.uint8)
    return out, int(valid.sum())


def rectify(
    image: RasterImage,
    corners: Corners,
    *,
    min_skew: float = 0.035,
    aspect: float = CARD_ASPECT,
    max_height_ratio: float = 1.3,
    min_size: int = 8,
    raster_io: Optional[RasterIO] = None,
) -> RectifyOutcome:
    """
    Perspective-warp the detected quad into an upright card raster.

    Near-rectangular input (max side skew below `min_skew`, ~2 degrees) is left
    alone. Degenerate geometry is reported as status "failed" instead of raising.
    """
    if not np.isfinite(corners.pts).all():
        return RectifyOutcome(FAILED, math.nan, reason="non-finite corners")
    skew = max_skew(corners)
    if skew < min_skew:
        logger.debug("[rectify] skew %.4f rad below %.4f; not needed", skew, min_skew)
        return RectifyOutcome(NOT_NEEDED, skew)

    out_w, out_h = compute_target_size(corners, aspect=aspect, max_height_ratio=max_height_ratio)
    if out_w < min_size or out_h < min_size:
        return RectifyOutcome(FAILED, skew, size=(out_w, out_h), reason=f"output too small ({out_w}x{out_h})")

    dst = np.array([[0, 0], [out_w, 0], [out_w, out_h], [0, out_h]], dtype=np.float64)
    inv = solve_homography(dst, corners)
    if inv.is_singular():
        return RectifyOutcome(FAILED, skew, size=(out_w, out_h), reason="singular homography")

    codec = raster_io if raster_io is not None else OpenCVRasterIO()
    target = codec.allocate(out_w, out_h)
    pixels, written = _bilinear_backward(codec.get_pixels(image), inv, out_w, out_h)
    if written == 0:
        return RectifyOutcome(FAILED, skew, size=(out_w, out_h), reason="quad maps outside the source")

    logger.debug("[rectify] skew=%.4f rad -> %dx%d (%d px sampled)", skew, out_w, out_h, written)
    return RectifyOutcome(
        APPLIED, skew,
        image=codec.put_pixels(target, pixels),
        size=(out_w, out_h),
    )
