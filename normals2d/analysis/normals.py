"""Neighbourhood normal estimation and orientation-aware refinement."""

import numpy as np
import torch
from typing import Tuple

from ..utils.config import REFINE_MODES
from ..utils.utils import check_k, ensure_points
from .knn import SpatialIndex, build_index
from .pca import estimate_normals_batched


def _neighbor_table(index: SpatialIndex, P: torch.Tensor, k: int) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Query the k nearest neighbours of every indexed point.

    Returns (n, k') neighbour indices and a validity mask; backends that
    only answer single queries may return fewer than k' neighbours, the
    missing slots are padded and marked invalid.
    """
    if hasattr(index, "knn_indices"):
        idx = torch.as_tensor(index.knn_indices(P, k), dtype=torch.long, device=P.device)
        return idx, torch.ones_like(idx, dtype=torch.bool)

    rows = [torch.as_tensor(index.find_k_nearest_neighbors(p, k), dtype=torch.long, device=P.device).reshape(-1)
            for p in P]
    width = max(1, max(int(r.numel()) for r in rows))
    idx = torch.zeros((len(rows), width), dtype=torch.long, device=P.device)
    valid = torch.zeros((len(rows), width), dtype=torch.bool, device=P.device)
    for i, r in enumerate(rows):
        idx[i, :r.numel()] = r
        valid[i, :r.numel()] = True
    return idx, valid


def _index_points(index: SpatialIndex) -> torch.Tensor:
    """The indexed points as an (n, 2) floating tensor, whatever container the index returns."""
    return ensure_points(index.points())


def _checked_size(index: SpatialIndex, k) -> Tuple[int, int]:
    n = int(index.size())
    if n == 0:
        raise ValueError("Spatial index is empty.")
    return n, min(check_k(k), n)


def estimate_normals(index: SpatialIndex, k: int) -> torch.Tensor:
    """
    PCA normal of every indexed point over its k nearest neighbours.

    The neighbourhood of point i includes i itself. ``k`` is clamped to the
    number of points. Orientation of each normal is arbitrary.

    Returns:
        normals: (n, 2) tensor aligned with ``index.points()``
    """
    n, k = _checked_size(index, k)
    P = _index_points(index)
    idx, valid = _neighbor_table(index, P, k)
    return estimate_normals_batched(P[idx], valid.to(P.dtype))


def _as_normal_buffer(normals, n: int) -> torch.Tensor:
    """View the caller's normals as a tensor sharing its memory."""
    if isinstance(normals, np.ndarray):
        buf = torch.from_numpy(normals)
    elif torch.is_tensor(normals):
        buf = normals
    else:
        raise TypeError(f"normals must be a torch.Tensor or numpy.ndarray, got {type(normals).__name__}")
    if buf.ndim != 2 or buf.shape[1] != 2:
        raise ValueError(f"Expected normals of shape (n, 2), got {tuple(buf.shape)}")
    if buf.shape[0] != n:
        raise ValueError(f"Got {buf.shape[0]} normals for an index of {n} points.")
    if not buf.dtype.is_floating_point:
        raise TypeError(f"normals must be floating point, got {buf.dtype}")
    return buf


def _refine_snapshot(P: torch.Tensor, idx: torch.Tensor, valid: torch.Tensor, buf: torch.Tensor) -> None:
    ref = buf.detach().clone().to(P.dtype)

    agree = (ref[idx] * ref.unsqueeze(1)).sum(-1) >= 0
    keep = (valid & agree).to(P.dtype)
    fresh = estimate_normals_batched(P[idx], keep)

    flip = (fresh * ref).sum(-1) < 0
    fresh = torch.where(flip.unsqueeze(-1), -fresh, fresh)
    buf.copy_(fresh)


def _refine_sequential(P: torch.Tensor, idx: torch.Tensor, valid: torch.Tensor, buf: torch.Tensor) -> None:
    for i in range(P.shape[0]):
        row = idx[i][valid[i]]
        own = buf[i].to(P.dtype)
        agree = (buf[row].to(P.dtype) @ own) >= 0
        subset = P[row[agree]]
        if subset.shape[0] == 0:
            subset = P[i:i + 1]

        fresh = estimate_normals_batched(subset.unsqueeze(0))[0]
        if torch.dot(fresh, own) < 0:
            fresh = -fresh
        buf[i].copy_(fresh)


def refine_orientation(index: SpatialIndex, k: int, normals, mode: str = "snapshot"):
    """
    Orientation-aware re-estimation of existing normals, one pass.

    For each point i the normal is recomputed from the neighbours j whose
    current normal satisfies ``normals[i] . normals[j] >= 0`` and is then
    flipped to agree in sign with the previous ``normals[i]``.

    Modes:
        snapshot   -- all reads come from a copy taken before the sweep, so
                      the result does not depend on processing order
        sequential -- in-place sweep in index order; neighbours j < i are
                      read after their own refinement, j > i before it

    ``normals`` (torch tensor or numpy array, shape (n, 2)) is overwritten in
    place and returned.
    """
    if mode not in REFINE_MODES:
        raise ValueError(f"Unknown refine mode {mode!r}; expected one of {REFINE_MODES}")
    n = int(index.size())
    buf = _as_normal_buffer(normals, n)
    n, k = _checked_size(index, k)

    P = _index_points(index)
    idx, valid = _neighbor_table(index, P, k)

    with torch.no_grad():
        if mode == "snapshot":
            _refine_snapshot(P, idx, valid, buf)
        else:
            _refine_sequential(P, idx, valid, buf)
    return normals


def estimate_normals_from_points(points, k: int, backend: str = "auto", device=None, dtype=None) -> torch.Tensor:
    """Build a spatial index over ``points`` and run :func:`estimate_normals`."""
    return estimate_normals(build_index(points, backend=backend, device=device, dtype=dtype), k)


def refine_orientation_from_points(points, k: int, normals, mode: str = "snapshot",
                                   backend: str = "auto", device=None, dtype=None):
    """Build a spatial index over ``points`` and run :func:`refine_orientation`."""
    index = build_index(points, backend=backend, device=device, dtype=dtype)
    return refine_orientation(index, k, normals, mode=mode)
