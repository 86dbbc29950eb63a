"""
normals2d - PCA Normal Estimation for 2-D Point Clouds

Estimates a normal direction at every point of a planar point cloud by
weighted PCA over k-nearest-neighbor sets, with an optional single-pass
orientation-aware refinement.

Components:
    - Analysis: KNN indices, weighted PCA, neighborhood normals, refinement
    - IO: Point loading, PLY/NPZ/PNG export
    - Utils: Configuration and helper functions

Example:
    >>> from normals2d import build_index, estimate_normals, refine_orientation
    >>>
    >>> index = build_index(points)            # (n, 2) array-like
    >>> normals = estimate_normals(index, k=16)
    >>> refine_orientation(index, 16, normals)  # in place
    >>>
    >>> save_ply_xy_normals("normals.ply", points, normals)
"""

__version__ = "1.0.0"

# ============================================================================
# Analysis
# ============================================================================
from .analysis import (
    # KNN
    SpatialIndex,
    TorchKNNIndex,
    FaissKNNIndex,
    build_index,
    FAISS_AVAILABLE,

    # PCA
    compute_weighted_centroid,
    compute_weighted_covariance,
    minor_eigenvector,
    estimate_normals_batched,
    weighted_covariance,
    estimate_normal,

    # Normals
    estimate_normals,
    refine_orientation,
    estimate_normals_from_points,
    refine_orientation_from_points,
)

# ============================================================================
# IO
# ============================================================================
from .io import (
    load_points,
    load_ply_points_ascii,
    save_ply_xy_normals,
    save_normals_npz,
    save_normals_png,
)

# ============================================================================
# Utils
# ============================================================================
from .utils import (
    # Configuration
    default_cfg,
    merge_cfg,
    validate_config,
    resolve_dtype,

    # Constants
    SENTINEL_NORMAL,
    DEFAULT_CONFIG,
    EXPORT_CONFIG,

    # Utilities
    ensure_torch,
    as_numpy,
)


__all__ = [
    "__version__",

    # ========================================================================
    # Analysis - KNN
    # ========================================================================
    "SpatialIndex",
    "TorchKNNIndex",
    "FaissKNNIndex",
    "build_index",
    "FAISS_AVAILABLE",

    # ========================================================================
    # Analysis - PCA
    # ========================================================================
    "compute_weighted_centroid",
    "compute_weighted_covariance",
    "minor_eigenvector",
    "estimate_normals_batched",
    "weighted_covariance",
    "estimate_normal",

    # ========================================================================
    # Analysis - Normals
    # ========================================================================
    "estimate_normals",
    "refine_orientation",
    "estimate_normals_from_points",
    "refine_orientation_from_points",

    # ========================================================================
    # IO
    # ========================================================================
    "load_points",
    "load_ply_points_ascii",
    "save_ply_xy_normals",
    "save_normals_npz",
    "save_normals_png",

    # ========================================================================
    # Utils
    # ========================================================================
    "default_cfg",
    "merge_cfg",
    "validate_config",
    "resolve_dtype",
    "SENTINEL_NORMAL",
    "DEFAULT_CONFIG",
    "EXPORT_CONFIG",
    "ensure_torch",
    "as_numpy",
]
