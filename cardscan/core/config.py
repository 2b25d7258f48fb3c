"""
Detection configuration: defaults, shallow merge of overrides, YAML loading.
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional, Union
import yaml

# Standard trading card: 2.5" x 3.5" (width / height)
CARD_ASPECT = 5.0 / 7.0

DEFAULT_CFG: Dict = {
    "border": {"outer": 0.05, "inner": 0.15, "target_samples": 200, "min_confidence": 0.2},
    "edges": {
        "percentile": 85.0,
        "fallback_threshold": 30.0,
        "margin": 0.03,
        "scan_extent": 0.40,        # left/top scans stop at 40%, right/bottom at 60%
        "line_step": 2,
        "neighbor_offset": 2,
        "min_points": 6,
        "card_aspect": CARD_ASPECT,
        "aspect_tol": 0.15,
    },
    "corners": {"search_radius": 15},
    "rectify": {
        "enabled": True,
        "min_skew": 0.035,          # ~2 degrees
        "card_aspect": CARD_ASPECT,
        "max_height_ratio": 1.3,
        "min_size": 8,
    },
    "subpixel": {"samples": 30, "half_width": 20},
    "background": {"shrink": 0.2, "target_samples": 100},
    "centering": {"enabled": True, "max_fraction": 0.40, "start_slack": 3, "min_lines": 6},
    "confidence": {"color_weight": 0.3, "edge_weight": 0.7},
    "debug": False,
}


def merge_cfg(cfg: Optional[Dict]) -> Dict:
    """Overlay `cfg` on DEFAULT_CFG; nested sections merge one level deep."""
    merged = {k: (dict(v) if isinstance(v, dict) else v) for k, v in DEFAULT_CFG.items()}
    if not cfg:
        return merged
    for k, v in cfg.items():
        if isinstance(v, dict) and k in merged and isinstance(merged[k], dict):
            merged[k] = {**merged[k], **v}
        else:
            merged[k] = v
    return merged


def load_cfg(path: Union[str, Path]) -> Dict:
    """
    Load overrides from a YAML file and merge them over the defaults.
    Raises FileNotFoundError if the file is missing.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Config not found at: {p}")
    with open(p, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config at {p} must be a mapping, got {type(data).__name__}")
    return merge_cfg(data)
