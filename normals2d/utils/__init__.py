"""
Common utilities and configuration.
"""

# ============================================================================
# Configuration
# ============================================================================
from .config import (
    # Main config functions
    default_cfg,
    merge_cfg,
    validate_config,
    resolve_dtype,

    # Numerical constants
    SENTINEL_NORMAL,
    FAISS_MIN_POINTS,
    KNN_CHUNK_ELEMENTS,

    # Config dictionaries
    DEFAULT_CONFIG,
    EXPORT_CONFIG,
    DTYPES,
    REFINE_MODES,
    KNN_BACKENDS,
)

# ============================================================================
# Utilities
# ============================================================================
from .utils import (
    ensure_torch,
    as_numpy,
    ensure_points,
    ensure_weights,
    check_k,
)


__all__ = [
    # Configuration
    "default_cfg",
    "merge_cfg",
    "validate_config",
    "resolve_dtype",

    # Constants
    "SENTINEL_NORMAL",
    "FAISS_MIN_POINTS",
    "KNN_CHUNK_ELEMENTS",

    # Config dictionaries
    "DEFAULT_CONFIG",
    "EXPORT_CONFIG",
    "DTYPES",
    "REFINE_MODES",
    "KNN_BACKENDS",

    # Utilities - Conversion
    "ensure_torch",
    "as_numpy",

    # Utilities - Validation
    "ensure_points",
    "ensure_weights",
    "check_k",
]
