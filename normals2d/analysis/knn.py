"""K-nearest-neighbour spatial indices over 2-D point sets."""

import numpy as np
import torch
from typing import Protocol, runtime_checkable
import warnings

from ..utils.config import FAISS_MIN_POINTS, KNN_BACKENDS, KNN_CHUNK_ELEMENTS
from ..utils.utils import ensure_points, check_k

try:
    import faiss
    FAISS_AVAILABLE = True
except Exception:
    faiss = None
    FAISS_AVAILABLE = False


@runtime_checkable
class SpatialIndex(Protocol):
    """
    Read-only nearest-neighbour structure over an ordered point set.

    Neighbours come back ordered by non-decreasing Euclidean distance, ties
    broken by lower point index. A query equal to a stored point gets that
    point (or an equal point with a lower index) as its first neighbour.
    ``points()`` may hand back a tensor, a numpy array or a list of pairs.
    """

    def size(self) -> int:
        ...

    def points(self) -> torch.Tensor:
        ...

    def find_k_nearest_neighbors(self, query: torch.Tensor, k: int) -> torch.Tensor:
        ...

    def knn_indices(self, queries: torch.Tensor, k: int) -> torch.Tensor:
        ...


def _squared_distances(queries: torch.Tensor, data: torch.Tensor) -> torch.Tensor:
    """Exact squared distances, (m, 2) x (n, 2) -> (m, n)."""
    dx = queries[:, 0:1] - data[None, :, 0]
    dy = queries[:, 1:2] - data[None, :, 1]
    return dx * dx + dy * dy


def _rank_candidates(queries: torch.Tensor, data: torch.Tensor, cand: torch.Tensor, k: int) -> torch.Tensor:
    """Re-rank candidate indices by exact distance, lower index first on ties."""
    cand, _ = torch.sort(cand, dim=1)
    diff = data[cand] - queries.unsqueeze(1)
    d2 = (diff * diff).sum(-1)
    order = torch.sort(d2, dim=1, stable=True).indices
    return torch.gather(cand, 1, order)[:, :k]


class _IndexBase:
    """Shared bookkeeping for the concrete backends."""

    def __init__(self, points, device=None, dtype=None):
        self._points = ensure_points(points, device=device, dtype=dtype)

    def size(self) -> int:
        return int(self._points.shape[0])

    def points(self) -> torch.Tensor:
        return self._points

    def __len__(self):
        return self.size()

    def find_k_nearest_neighbors(self, query, k: int) -> torch.Tensor:
        """Indices of the k nearest stored points to a single query point."""
        q = torch.as_tensor(query, dtype=self._points.dtype, device=self._points.device).reshape(1, 2)
        return self.knn_indices(q, k)[0]

    def _prepare(self, queries, k: int):
        k = min(check_k(k), self.size())
        Q = torch.as_tensor(queries, dtype=self._points.dtype, device=self._points.device)
        if Q.ndim != 2 or Q.shape[1] != 2:
            raise ValueError(f"Expected queries of shape (m, 2), got {tuple(Q.shape)}")
        return Q, k


class TorchKNNIndex(_IndexBase):
    """
    Brute-force exact kNN in torch.

    Distances are evaluated in chunks of query rows so that memory stays
    bounded; a stable sort gives the lower-index-first tie-break.
    """

    def __init__(self, points, device=None, dtype=None, chunk_elements: int = KNN_CHUNK_ELEMENTS):
        super().__init__(points, device=device, dtype=dtype)
        self.chunk_elements = int(chunk_elements)

    def knn_indices(self, queries, k: int) -> torch.Tensor:
        Q, k = self._prepare(queries, k)
        n = self.size()
        rows = max(1, self.chunk_elements // n)

        out = []
        for start in range(0, Q.shape[0], rows):
            d2 = _squared_distances(Q[start:start + rows], self._points)
            order = torch.sort(d2, dim=1, stable=True).indices
            out.append(order[:, :k])
        if not out:
            return torch.empty((0, k), dtype=torch.long, device=self._points.device)
        return torch.cat(out, dim=0)


class FaissKNNIndex(_IndexBase):
    """
    FAISS flat-L2 candidate search followed by exact re-ranking.

    FAISS searches in float32, so a pool of ``2k`` candidates is fetched and
    re-ranked with exact distances in the index dtype.
    """

    def __init__(self, points, device=None, dtype=None):
        if not FAISS_AVAILABLE:
            raise RuntimeError("FAISS is not installed; use TorchKNNIndex instead.")
        super().__init__(points, device=device, dtype=dtype)
        data_np = np.ascontiguousarray(self._points.detach().cpu().numpy(), dtype=np.float32)
        self._index = faiss.IndexFlatL2(2)
        self._index.add(data_np)

    def knn_indices(self, queries, k: int) -> torch.Tensor:
        Q, k = self._prepare(queries, k)
        pool = min(2 * k, self.size())

        q_np = np.ascontiguousarray(Q.detach().cpu().numpy(), dtype=np.float32)
        _, i_np = self._index.search(q_np, pool)
        cand = torch.from_numpy(i_np).to(self._points.device, dtype=torch.long)
        return _rank_candidates(Q, self._points, cand, k)


def build_index(points, backend: str = "auto", device=None, dtype=None) -> SpatialIndex:
    """
    Build a spatial index over ``points``.

    ``auto`` picks FAISS for large clouds when it is installed and the exact
    torch search otherwise. Asking for ``faiss`` without FAISS installed
    falls back to torch with a warning.
    """
    if backend not in KNN_BACKENDS:
        raise ValueError(f"Unknown kNN backend {backend!r}; expected one of {KNN_BACKENDS}")

    if backend == "faiss" and not FAISS_AVAILABLE:
        warnings.warn("FAISS not available - fallback to pure torch (slower)")
        backend = "torch"

    if backend == "auto":
        P = ensure_points(points, device=device, dtype=dtype)
        use_faiss = FAISS_AVAILABLE and P.shape[0] >= FAISS_MIN_POINTS
        backend = "faiss" if use_faiss else "torch"
        points = P

    if backend == "faiss":
        return FaissKNNIndex(points, device=device, dtype=dtype)
    return TorchKNNIndex(points, device=device, dtype=dtype)
