"""Configuration management for 2-D normal estimation."""

from typing import Dict

import torch

# Numerical constants
SENTINEL_NORMAL = (0.0, 1.0)

# kNN search
FAISS_MIN_POINTS = 50_000
KNN_CHUNK_ELEMENTS = 1 << 22

DTYPES = {
    "float32": torch.float32,
    "float64": torch.float64,
}

REFINE_MODES = ("snapshot", "sequential")
KNN_BACKENDS = ("auto", "torch", "faiss")

DEFAULT_CONFIG = {
    "k": 16,
    "refine": True,
    "refine_mode": "snapshot",
    "backend": "auto",
    "dtype": "float64",
    "device": "cpu",
}

EXPORT_CONFIG = {
    "ply": True,
    "npz": True,
    "png": False,
    "dpi": 160,
    "ptsize": 4.0,
    "arrow_scale": 0.05,
}


def default_cfg() -> Dict:
    """Default configuration for the normal estimation pipeline."""
    config = DEFAULT_CONFIG.copy()
    config["export"] = EXPORT_CONFIG.copy()
    return config


def merge_cfg(base: Dict, user: Dict) -> Dict:
    """Overlay a user config (e.g. parsed YAML) on top of ``base``."""
    merged = dict(base)
    for key, value in (user or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def validate_config(cfg: Dict) -> None:
    """Validate pipeline configuration fields."""
    k = cfg.get("k")
    if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
        raise ValueError(f"'k' must be a positive integer, got {k!r}")
    if cfg.get("refine_mode") not in REFINE_MODES:
        raise ValueError(f"'refine_mode' must be one of {REFINE_MODES}, got {cfg.get('refine_mode')!r}")
    if cfg.get("backend") not in KNN_BACKENDS:
        raise ValueError(f"'backend' must be one of {KNN_BACKENDS}, got {cfg.get('backend')!r}")
    if cfg.get("dtype") not in DTYPES:
        raise ValueError(f"'dtype' must be one of {tuple(DTYPES)}, got {cfg.get('dtype')!r}")


def resolve_dtype(name) -> torch.dtype:
    """Map a config dtype name (or a torch dtype) to a floating torch dtype."""
    if isinstance(name, torch.dtype):
        dtype = name
    elif name in DTYPES:
        dtype = DTYPES[name]
    else:
        raise ValueError(f"Unknown dtype: {name!r}")
    if not dtype.is_floating_point:
        raise TypeError(f"Normal estimation requires a floating dtype, got {dtype}")
    return dtype
