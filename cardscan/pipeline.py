"""
pipeline.py - one detection call, start to finish.

    RASTERIZE -> CLASSIFY_BORDER -> BUILD_GRADIENT -> LOCATE_EDGES
      -> REFINE_SUBPIXEL -> REFINE_CORNERS -> ATTEMPT_RECTIFY
         (applied: BUILD_GRADIENT -> LOCATE_EDGES -> REFINE_SUBPIXEL on the
          rectified raster; skipped/failed: keep the edges we have)
      -> ANALYZE_BACKGROUND -> COMPOSE_RESULT

Every call allocates its own buffers and returns a fresh DetectionResult;
nothing is cached between calls, so independent images can be processed
concurrently. The async entry point just moves the call onto a worker thread.
"""

from __future__ import annotations
import asyncio
import dataclasses
import logging
from typing import Dict, Optional, Tuple, Union
import numpy as np

from cardscan.analysis.background import recommend_background, sample_background
from cardscan.analysis.centering import measure_centering
from cardscan.color.border import detect_border_color
from cardscan.color.classify import classify_array
from cardscan.core.config import merge_cfg
from cardscan.core.contracts import (
    BorderColor,
    DetectionResult,
    Edges,
    ImageAcquisitionError,
    RasterImage,
)
from cardscan.geometry.corners import corners_from_edges, refine_corners
from cardscan.geometry.edges import EdgeEstimate, locate_edges
from cardscan.geometry.gradient import build_gradient_field
from cardscan.geometry.rectify import FAILED, rectify
from cardscan.geometry.subpixel import refine_edges_subpixel
from cardscan.io.raster import OpenCVRasterIO, RasterIO, from_array

logger = logging.getLogger(__name__)

METHOD_EDGE_SCAN = "edge-scan"
METHOD_RECTIFIED = "perspective-corrected"

Source = Union[RasterImage, np.ndarray, bytes, bytearray, memoryview]


def _rasterize(source: Source, raster_io: RasterIO) -> RasterImage:
    if isinstance(source, RasterImage):
        image = source
    elif isinstance(source, np.ndarray):
        image = from_array(source)
    elif isinstance(source, (bytes, bytearray, memoryview)):
        image = raster_io.decode(bytes(source))
    else:
        raise ImageAcquisitionError(f"Unsupported image source: {type(source).__name__}")
    if image.width == 0 or image.height == 0:
        raise ImageAcquisitionError(f"Raster has zero dimension: {image.width}x{image.height}")
    return image


def _measure(image: RasterImage, labels: np.ndarray, border: BorderColor, cfg: Dict) -> Tuple[EdgeEstimate, Edges, np.ndarray]:
    """BUILD_GRADIENT -> LOCATE_EDGES -> REFINE_SUBPIXEL on one raster."""
    field = build_gradient_field(image)
    coarse = locate_edges(field, labels, border, **cfg["edges"])
    fine = refine_edges_subpixel(field.smoothed, coarse.edges, **cfg["subpixel"]).clamped(image.width, image.height)
    if fine.left >= fine.right or fine.top >= fine.bottom:
        # strips from opposite sides crossed over; the coarse box is still ordered
        fine = coarse.edges
    return coarse, fine, field.magnitude


def _report(cfg: Dict, msg: str, *args) -> None:
    (logger.info if cfg.get("debug") else logger.debug)(msg, *args)


def detect_card_sync(
    source: Source,
    cfg: Optional[Dict] = None,
    raster_io: Optional[RasterIO] = None,
) -> DetectionResult:
    """
    Locate the card in `source` and return edges, corners, confidence and,
    when the card was skewed, a rectified raster.

    `source` is a RasterImage, a gray/RGB/RGBA uint8 array or encoded image
    bytes (decoded with `raster_io`, OpenCV by default). Raises
    ImageAcquisitionError for undecodable or empty input; every later stage
    degrades through the confidence score instead of raising.
    """
    cfg = merge_cfg(cfg)
    codec = raster_io if raster_io is not None else OpenCVRasterIO()

    image = _rasterize(source, codec)
    _report(cfg, "[rasterize] %dx%d", image.width, image.height)

    labels = classify_array(image.rgb)
    border = detect_border_color(image, labels=labels, **cfg["border"])
    _report(cfg, "[border] %s conf=%.3f", border.color.value, border.confidence)

    coarse, edges, magnitude = _measure(image, labels, border.color, cfg)
    _report(cfg, "[edges] coarse=%s fine=%s conf=%.3f",
            coarse.edges.as_tuple(), edges.as_tuple(), coarse.confidence)

    corners = refine_corners(corners_from_edges(edges), magnitude, cfg["corners"]["search_radius"])
    _report(cfg, "[corners] %s", corners.as_tuple())

    rectified: Optional[RasterImage] = None
    measured_on = image
    measured_labels = labels
    rcfg = cfg["rectify"]
    if rcfg.get("enabled", True):
        outcome = rectify(
            image, corners,
            min_skew=rcfg["min_skew"],
            aspect=rcfg["card_aspect"],
            max_height_ratio=rcfg["max_height_ratio"],
            min_size=rcfg["min_size"],
            raster_io=codec,
        )
        if outcome.applied:
            rectified = outcome.image
            measured_on = rectified
            measured_labels = classify_array(rectified.rgb)
            _, edges, _ = _measure(rectified, measured_labels, border.color, cfg)
            _report(cfg, "[rectify] applied skew=%.4f size=%s edges=%s",
                    outcome.skew, outcome.size, edges.as_tuple())
        elif outcome.status == FAILED:
            logger.warning("[rectify] skipped: %s", outcome.reason)
        else:
            _report(cfg, "[rectify] not needed (skew=%.4f)", outcome.skew)

    reading = sample_background(image, coarse.edges, **cfg["background"])
    advice = recommend_background(border.color, reading)
    if reading is not None:
        _report(cfg, "[background] lum=%.1f color=%s advice=%s",
                reading.luminance, reading.color.value, advice)

    centering = None
    ccfg = cfg["centering"]
    if ccfg.get("enabled", True):
        centering = measure_centering(
            measured_on, edges, border.color,
            labels=measured_labels,
            max_fraction=ccfg["max_fraction"],
            start_slack=ccfg["start_slack"],
            min_lines=ccfg["min_lines"],
        )

    wcfg = cfg["confidence"]
    confidence = float(np.clip(
        wcfg["color_weight"] * border.confidence + wcfg["edge_weight"] * coarse.confidence, 0.0, 1.0))

    return DetectionResult(
        edges=edges,
        corners=corners,
        border_color=border.color,
        confidence=confidence,
        color_confidence=float(border.confidence),
        edge_confidence=float(coarse.confidence),
        perspective_corrected=rectified is not None,
        method=METHOD_RECTIFIED if rectified is not None else METHOD_EDGE_SCAN,
        rectified=rectified,
        background_recommendation=advice,
        centering=centering,
    )


async def detect_card(
    source: Source,
    cfg: Optional[Dict] = None,
    raster_io: Optional[RasterIO] = None,
) -> DetectionResult:
    """Awaitable detect_card_sync(); the pixel loops run on a worker thread."""
    return await asyncio.to_thread(detect_card_sync, source, cfg, raster_io)


def adjust_edges(
    result: DetectionResult,
    image: Optional[RasterImage] = None,
    *,
    left: float = 0.0,
    right: float = 0.0,
    top: float = 0.0,
    bottom: float = 0.0,
) -> DetectionResult:
    """
    Return a copy of `result` with its edges nudged by the given deltas (px).

    Pass the raster the edges were measured on (the rectified one when the
    result was perspective-corrected) to clamp the edges to it and refresh
    the centering measurement. `result` itself is left untouched.

    Raises ValueError when the nudged (and clamped) edges cross.
    """
    edges = result.edges.shifted(left=left, right=right, top=top, bottom=bottom)
    if image is not None:
        edges = edges.clamped(image.width, image.height)
    if edges.left >= edges.right or edges.top >= edges.bottom:
        raise ValueError(f"adjusted edges cross: {edges.as_tuple()}")
    if image is None:
        return dataclasses.replace(result, edges=edges)

    return dataclasses.replace(
        result,
        edges=edges,
        centering=measure_centering(image, edges, result.border_color),
    )
