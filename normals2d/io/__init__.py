"""
Input/Output utilities for 2-D point clouds and normals.

Includes:
- Point loading (NPY, text, ASCII PLY)
- Point + normal export (PLY, NPZ)
- Visualization export (PNG)
"""

from .export import (
    # Loading
    load_points,
    load_ply_points_ascii,

    # Export
    save_ply_xy_normals,
    save_normals_npz,

    # Visualization
    save_normals_png,
    setup_matplotlib,
    compute_plot_bounds,
)

__all__ = [
    # Loading
    "load_points",
    "load_ply_points_ascii",

    # Export
    "save_ply_xy_normals",
    "save_normals_npz",

    # Visualization
    "save_normals_png",
    "setup_matplotlib",
    "compute_plot_bounds",
]
