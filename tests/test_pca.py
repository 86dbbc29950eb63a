# ============================================================================
# Weighted PCA / minor eigenvector tests
# ============================================================================
import math

import numpy as np
import pytest
import torch

from normals2d import (
    estimate_normal,
    estimate_normals_batched,
    minor_eigenvector,
    weighted_covariance,
)


def _random_cloud(n=40, seed=0):
    g = torch.Generator().manual_seed(seed)
    # anisotropic blob so the minor direction is well defined
    pts = torch.randn(n, 2, generator=g, dtype=torch.float64) * torch.tensor([3.0, 0.4], dtype=torch.float64)
    return pts


def _rotation(theta):
    c, s = math.cos(theta), math.sin(theta)
    return torch.tensor([[c, -s], [s, c]], dtype=torch.float64)


def test_collinear_points_give_exact_perpendicular():
    n = estimate_normal([(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)])
    assert n.abs().tolist() == [0.0, 1.0]


def test_single_point_returns_sentinel():
    n = estimate_normal([(5.0, 3.0)])
    assert n.tolist() == [0.0, 1.0]


def test_coincident_points_return_sentinel():
    n = estimate_normal([(2.0, -1.0)] * 6)
    assert n.tolist() == [0.0, 1.0]


def test_zero_total_weight_returns_sentinel():
    n = estimate_normal([(0.0, 0.0), (1.0, 2.0), (3.0, -1.0)], [0.0, 0.0, 0.0])
    assert torch.equal(n, torch.tensor([0.0, 1.0], dtype=torch.float64))


def test_zero_weight_point_is_ignored():
    pts = [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (1.0, 5.0)]
    n = estimate_normal(pts, [1.0, 1.0, 1.0, 0.0])
    assert n.abs().tolist() == [0.0, 1.0]


def test_weights_change_the_estimate():
    pts = [(0.0, 0.0), (1.0, 0.1), (2.0, 0.0), (1.0, 3.0)]
    uniform = estimate_normal(pts)
    weighted = estimate_normal(pts, [10.0, 10.0, 10.0, 0.01])
    assert abs(float(weighted[1])) > 0.99
    assert not torch.allclose(uniform.abs(), weighted.abs())


def test_unit_length_on_random_clouds():
    for seed in range(5):
        n = estimate_normal(_random_cloud(seed=seed))
        assert torch.isclose(n.norm(), torch.tensor(1.0, dtype=torch.float64), atol=1e-12)


def test_translation_invariance():
    pts = _random_cloud(seed=1)
    n0 = estimate_normal(pts)
    n1 = estimate_normal(pts + torch.tensor([3.5, -7.25], dtype=torch.float64))
    assert torch.allclose(n0, n1, atol=1e-9)


def test_rotation_equivariance():
    pts = _random_cloud(seed=2)
    n0 = estimate_normal(pts)
    for theta in (0.3, 1.1, 2.5, -0.8):
        R = _rotation(theta)
        n1 = estimate_normal(pts @ R.T)
        assert abs(float(torch.dot(n1, R @ n0))) == pytest.approx(1.0, abs=1e-9)


def test_scale_invariance():
    pts = _random_cloud(seed=3)
    n0 = estimate_normal(pts)
    for s in (1e-3, 0.5, 20.0, 1e4):
        n1 = estimate_normal(pts * s)
        assert abs(float(torch.dot(n0, n1))) == pytest.approx(1.0, abs=1e-9)


def test_line_direction():
    t = torch.linspace(-2.0, 3.0, 9, dtype=torch.float64)
    pts = torch.stack([t, 2.0 * t + 1.0], dim=1)
    n = estimate_normal(pts)
    expected = torch.tensor([2.0, -1.0], dtype=torch.float64) / math.sqrt(5.0)
    assert abs(float(torch.dot(n, expected))) == pytest.approx(1.0, abs=1e-12)


def test_minor_eigenvector_branches():
    # |cs| > 2|b|, df > 0: x-variance dominates
    n = minor_eigenvector(*(torch.tensor([v], dtype=torch.float64) for v in (2.0, 0.0, 1.0)))[0]
    assert n.abs().tolist() == [0.0, 1.0]

    # |cs| > 2|b|, df < 0: y-variance dominates
    n = minor_eigenvector(*(torch.tensor([v], dtype=torch.float64) for v in (1.0, 0.0, 2.0)))[0]
    assert n.abs().tolist() == [1.0, 0.0]

    # |cs| <= 2|b|, b != 0: equal diagonal
    n = minor_eigenvector(*(torch.tensor([v], dtype=torch.float64) for v in (1.0, 0.5, 1.0)))[0]
    r = 1.0 / math.sqrt(2.0)
    assert torch.allclose(n, torch.tensor([-r, r], dtype=torch.float64), atol=1e-15)

    # zero matrix
    n = minor_eigenvector(*(torch.zeros(1, dtype=torch.float64) for _ in range(3)))[0]
    assert n.tolist() == [0.0, 1.0]


def test_minor_eigenvector_matches_eigh():
    g = torch.Generator().manual_seed(7)
    a = torch.rand(200, generator=g, dtype=torch.float64) * 4
    c = torch.rand(200, generator=g, dtype=torch.float64) * 4
    b = (torch.rand(200, generator=g, dtype=torch.float64) - 0.5) * 3
    normals = minor_eigenvector(a, b, c)

    M = torch.stack([torch.stack([a, b], -1), torch.stack([b, c], -1)], -2)
    evals, evecs = torch.linalg.eigh(M)
    ref = evecs[:, :, 0]

    assert torch.allclose(normals.norm(dim=-1), torch.ones(200, dtype=torch.float64), atol=1e-12)
    dots = (normals * ref).sum(-1).abs()
    assert torch.allclose(dots, torch.ones(200, dtype=torch.float64), atol=1e-9)


def test_nearly_diagonal_matrix_keeps_precision():
    a = torch.tensor([1.0], dtype=torch.float64)
    b = torch.tensor([1e-12], dtype=torch.float64)
    c = torch.tensor([0.5], dtype=torch.float64)
    n = minor_eigenvector(a, b, c)[0]
    # eigenvector of the 0.5 eigenvalue is (2e-12, -1) up to sign and first order
    assert abs(float(n[1])) == pytest.approx(1.0, abs=1e-15)
    assert abs(float(n[0])) == pytest.approx(2e-12, rel=1e-6)


def test_weighted_covariance_entries():
    pts = [(0.0, 0.0), (2.0, 0.0), (0.0, 2.0), (2.0, 2.0)]
    centroid, (a, b, c), degenerate = weighted_covariance(pts, [1.0, 1.0, 1.0, 1.0])
    assert not degenerate
    assert centroid.tolist() == [1.0, 1.0]
    assert float(a) == pytest.approx(1.0)
    assert float(b) == pytest.approx(0.0)
    assert float(c) == pytest.approx(1.0)

    _, _, degenerate = weighted_covariance(pts, [0.0, 0.0, 0.0, 0.0])
    assert degenerate


def test_batched_matches_single():
    g = torch.Generator().manual_seed(11)
    neigh = torch.randn(8, 6, 2, generator=g, dtype=torch.float64)
    w = torch.rand(8, 6, generator=g, dtype=torch.float64)
    batched = estimate_normals_batched(neigh, w)
    for i in range(8):
        assert torch.allclose(batched[i], estimate_normal(neigh[i], w[i]), atol=1e-12)


def test_dtype_parameter():
    pts = np.array([(0.0, 0.0), (1.0, 0.2), (2.0, 0.1)])
    assert estimate_normal(pts, dtype=torch.float32).dtype == torch.float32
    assert estimate_normal(pts).dtype == torch.float64
    assert estimate_normal(torch.tensor(pts, dtype=torch.float32)).dtype == torch.float32
    with pytest.raises(TypeError):
        estimate_normal(pts, dtype=torch.int64)


def test_preconditions():
    with pytest.raises(ValueError):
        estimate_normal([])
    with pytest.raises(ValueError):
        estimate_normal(torch.empty(0, 2))
    with pytest.raises(ValueError):
        estimate_normal([(0.0, 0.0), (1.0, 1.0)], [1.0])
    with pytest.raises(ValueError):
        estimate_normal([(0.0, 0.0, 0.0)])
