"""
Point cloud analysis for 2-D normal estimation.

Includes:
- K-nearest neighbors search (torch brute force, FAISS)
- Weighted PCA and the closed-form minor eigenvector
- Neighborhood normal estimation and orientation-aware refinement
"""

# ============================================================================
# KNN
# ============================================================================
from .knn import (
    SpatialIndex,
    TorchKNNIndex,
    FaissKNNIndex,
    build_index,
    FAISS_AVAILABLE,
)

# ============================================================================
# PCA
# ============================================================================
from .pca import (
    compute_weighted_centroid,
    compute_weighted_covariance,
    minor_eigenvector,
    estimate_normals_batched,
    weighted_covariance,
    estimate_normal,
)

# ============================================================================
# Normals (Neighborhood estimation + refinement)
# ============================================================================
from .normals import (
    estimate_normals,
    refine_orientation,
    estimate_normals_from_points,
    refine_orientation_from_points,
)


__all__ = [
    # KNN
    "SpatialIndex",
    "TorchKNNIndex",
    "FaissKNNIndex",
    "build_index",
    "FAISS_AVAILABLE",

    # PCA
    "compute_weighted_centroid",
    "compute_weighted_covariance",
    "minor_eigenvector",
    "estimate_normals_batched",
    "weighted_covariance",
    "estimate_normal",

    # Normals
    "estimate_normals",
    "refine_orientation",
    "estimate_normals_from_points",
    "refine_orientation_from_points",
]
