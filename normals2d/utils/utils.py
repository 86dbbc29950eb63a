"""Common utility functions."""

import numpy as np
import torch
from .config import resolve_dtype


def ensure_torch(x, device='cpu', dtype=torch.float64):
    """Convert array-like to torch tensor on the given device/dtype."""
    if torch.is_tensor(x):
        if x.device == torch.device(device) and x.dtype == dtype:
            return x
        return x.to(device=device, dtype=dtype)
    return torch.as_tensor(np.asarray(x), device=device).to(dtype=dtype)


def as_numpy(a):
    """Convert to numpy array."""
    if isinstance(a, torch.Tensor):
        return a.detach().cpu().numpy()
    return np.asarray(a)


def _resolve(x, dtype):
    if dtype is not None:
        return resolve_dtype(dtype)
    if torch.is_tensor(x) and x.dtype.is_floating_point:
        return x.dtype
    return torch.float64


def ensure_points(points, device=None, dtype=None) -> torch.Tensor:
    """Convert a point set to an ``(n, 2)`` floating tensor.

    Raises ``ValueError`` for an empty set or a wrong shape. Tensor inputs
    keep their floating dtype and device unless overridden.
    """
    dtype = _resolve(points, dtype)
    if device is None:
        device = points.device if torch.is_tensor(points) else 'cpu'
    P = ensure_torch(points, device=device, dtype=dtype)
    if P.ndim == 1 and P.numel() == 0:
        raise ValueError("Point set must not be empty.")
    if P.ndim != 2 or P.shape[1] != 2:
        raise ValueError(f"Expected points of shape (n, 2), got {tuple(P.shape)}")
    if P.shape[0] == 0:
        raise ValueError("Point set must not be empty.")
    return P


def ensure_weights(weights, n: int, device, dtype) -> torch.Tensor:
    """Convert weights to an ``(n,)`` tensor matching the point set."""
    w = ensure_torch(weights, device=device, dtype=dtype)
    if w.ndim != 1 or w.shape[0] != n:
        raise ValueError(f"Expected {n} weights (one per point), got shape {tuple(w.shape)}")
    return w


def check_k(k) -> int:
    """Validate a neighbour count requested by the caller."""
    if isinstance(k, bool) or int(k) != k or k <= 0:
        raise ValueError(f"k must be a positive integer, got {k!r}")
    return int(k)
