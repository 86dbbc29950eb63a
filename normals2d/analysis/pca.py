"""PCA-based normal estimation for 2-D neighbourhoods."""

import torch
from typing import Optional, Tuple
from ..utils.config import SENTINEL_NORMAL
from ..utils.utils import ensure_points, ensure_weights


def compute_weighted_centroid(neighbors: torch.Tensor, weights: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
    """Weighted centroid of (m, k, 2) neighbourhoods and their total weight."""
    total = weights.sum(dim=1)
    safe = torch.where(total == 0, torch.ones_like(total), total)
    centroid = torch.einsum('mk,mkd->md', weights, neighbors) / safe.unsqueeze(-1)
    return centroid, total


def compute_weighted_covariance(
    neighbors: torch.Tensor,
    weights: torch.Tensor
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Weighted 2x2 covariance of each neighbourhood.

    Returns:
        centroid: (m, 2) weighted centroids
        a, b, c: (m,) entries of [[a, b], [b, c]], divided by the total weight
        degenerate: (m,) bool, True where the total weight is exactly zero
    """
    centroid, total = compute_weighted_centroid(neighbors, weights)
    centered = neighbors - centroid.unsqueeze(1)
    x = centered[..., 0]
    y = centered[..., 1]

    a = (weights * x * x).sum(dim=1)
    b = (weights * x * y).sum(dim=1)
    c = (weights * y * y).sum(dim=1)

    degenerate = total == 0
    t = 1 / torch.where(degenerate, torch.ones_like(total), total)
    return centroid, a * t, b * t, c * t, degenerate


def minor_eigenvector(a: torch.Tensor, b: torch.Tensor, c: torch.Tensor) -> torch.Tensor:
    """
    Unit eigenvector of [[a, b], [b, c]] for the smaller eigenvalue.

    Closed-form rotation that always divides by the larger of ``cs`` and
    ``2b`` so nearly diagonal and nearly isotropic matrices keep their
    precision:

        [ a  b ]  =  [ cs  -sn ] [ rt1   0  ] [  cs  sn ]
        [ b  c ]     [ sn   cs ] [  0   rt2 ] [ -sn  cs ]

    The zero matrix maps to (0, 1).
    """
    df = a - c
    rt = torch.sqrt(df * df + b * b * 4)
    cs = torch.where(df > 0, df + rt, df - rt)

    use_cs = cs.abs() > b.abs() * 2
    diagonal = ~use_cs & (b.abs() == 0)

    # |cs| > 2|b|
    t1 = -b * 2 / cs
    sn1 = 1 / torch.sqrt(t1 * t1 + 1)
    cs1 = t1 * sn1

    # |cs| <= 2|b|, b != 0
    t3 = -cs / b / 2
    cs3 = 1 / torch.sqrt(t3 * t3 + 1)
    sn3 = t3 * cs3

    one = torch.ones_like(cs)
    zero = torch.zeros_like(cs)
    cs_out = torch.where(use_cs, cs1, torch.where(diagonal, one, cs3))
    sn_out = torch.where(use_cs, sn1, torch.where(diagonal, zero, sn3))

    swap = df > 0
    cs_out, sn_out = torch.where(swap, -sn_out, cs_out), torch.where(swap, cs_out, sn_out)

    return torch.stack([-sn_out, cs_out], dim=-1)


def sentinel_normal(like: torch.Tensor) -> torch.Tensor:
    """The (0, 1) normal used for degenerate neighbourhoods."""
    return torch.tensor(SENTINEL_NORMAL, dtype=like.dtype, device=like.device)


def estimate_normals_batched(neighbors: torch.Tensor, weights: Optional[torch.Tensor] = None) -> torch.Tensor:
    """
    Normals of (m, k, 2) neighbourhoods, orientation arbitrary.

    ``weights`` is (m, k); ``None`` means uniform unit weights. A zero entry
    drops that neighbour exactly as if it were absent.
    """
    if weights is None:
        weights = torch.ones(neighbors.shape[:2], dtype=neighbors.dtype, device=neighbors.device)

    _, a, b, c, degenerate = compute_weighted_covariance(neighbors, weights)
    normals = minor_eigenvector(a, b, c)
    return torch.where(degenerate.unsqueeze(-1), sentinel_normal(normals), normals)


def weighted_covariance(points, weights=None, dtype=None):
    """
    Weighted centroid and covariance entries of a single point set.

    Returns ``(centroid, (a, b, c), degenerate)``. Raises ``ValueError`` for
    an empty point set or mismatched weights.
    """
    P = ensure_points(points, dtype=dtype)
    if weights is None:
        w = torch.ones(P.shape[0], dtype=P.dtype, device=P.device)
    else:
        w = ensure_weights(weights, P.shape[0], P.device, P.dtype)

    centroid, a, b, c, degenerate = compute_weighted_covariance(P.unsqueeze(0), w.unsqueeze(0))
    return centroid[0], (a[0], b[0], c[0]), bool(degenerate[0])


def estimate_normal(points, weights=None, dtype=None) -> torch.Tensor:
    """
    Estimate the normal of one point set by weighted PCA.

    The result has unit length and arbitrary sign, except that a zero total
    weight (or a zero covariance) yields exactly (0, 1).

    Args:
        points: (n, 2) array-like, n >= 1
        weights: optional (n,) non-negative weights; uniform when omitted
        dtype: floating dtype to compute in; defaults to the input's

    Raises:
        ValueError: empty ``points`` or ``len(weights) != len(points)``
    """
    P = ensure_points(points, dtype=dtype)
    w = None
    if weights is not None:
        w = ensure_weights(weights, P.shape[0], P.device, P.dtype).unsqueeze(0)
    return estimate_normals_batched(P.unsqueeze(0), w)[0]
