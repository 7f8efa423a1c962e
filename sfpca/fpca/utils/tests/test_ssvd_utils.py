import numpy as np
import pytest
from numpy.testing import assert_allclose

from sfpca.fpca.utils import gcv_criterion, penalized_rank_one_svd, select_smoothing_parameter
from sfpca.smooth import DifferencePenalty

ALPHA_GRID = 1.5 ** np.arange(-20, 41, dtype=np.float64)


def test_gcv_criterion_known_value():
    assert np.isclose(gcv_criterion(1.0, np.array([1.0, 1.0]), np.array([0.0, 1.0])), 2.0)


def test_gcv_criterion_evaluates_candidate_vector():
    rng = np.random.default_rng(2)
    w = rng.standard_normal(20)
    eig_lambda = np.linspace(0.0, 5.0, 20)
    scores = gcv_criterion(ALPHA_GRID, w, eig_lambda)
    assert scores.shape == ALPHA_GRID.shape
    assert_allclose(scores, [gcv_criterion(a, w, eig_lambda) for a in ALPHA_GRID], rtol=1e-12)
    assert isinstance(gcv_criterion(2.0, w, eig_lambda), float)


def test_select_smoothing_parameter_grid_returns_first_minimizer():
    rng = np.random.default_rng(0)
    w = rng.standard_normal(20)
    eig_lambda = np.linspace(0.0, 5.0, 20)
    alpha = select_smoothing_parameter(w, eig_lambda, "grid", ALPHA_GRID)
    scores = gcv_criterion(ALPHA_GRID, w, eig_lambda)
    assert alpha == ALPHA_GRID[np.argmin(scores)]


def test_select_smoothing_parameter_bounded_within_bounds():
    rng = np.random.default_rng(1)
    w = rng.standard_normal(20)
    eig_lambda = np.linspace(0.0, 5.0, 20)
    alpha = select_smoothing_parameter(w, eig_lambda, "bounded", lower_alpha=1e-3, upper_alpha=1e3)
    assert 1e-3 <= alpha <= 1e3


@pytest.mark.parametrize("method", ["grid", "bounded"])
def test_penalized_rank_one_svd_recovers_smooth_vector(smooth_rank_one_matrix, method):
    residual, u, v = smooth_rank_one_matrix
    penalty = DifferencePenalty.from_order(2, residual.shape[1])
    component = penalized_rank_one_svd(residual, penalty, method=method, alpha_grid=ALPHA_GRID)
    assert 1 <= component.n_iter <= 15
    assert np.isclose(np.linalg.norm(component.u), 1.0)
    assert np.isclose(np.linalg.norm(component.v), 1.0)
    assert abs(component.v @ v) > 0.99
    assert abs(component.u @ u) > 0.99
    assert np.isclose(component.d, 10.0, rtol=0.05)
    assert component.alpha > 0


def test_penalized_rank_one_svd_does_not_modify_residual(smooth_rank_one_matrix):
    residual, _, _ = smooth_rank_one_matrix
    before = residual.copy()
    penalized_rank_one_svd(residual, DifferencePenalty.from_order(3, residual.shape[1]), alpha_grid=ALPHA_GRID)
    assert_allclose(residual, before)


def test_penalized_rank_one_svd_reports_non_convergence(smooth_rank_one_matrix):
    residual, _, _ = smooth_rank_one_matrix
    penalty = DifferencePenalty.from_order(3, residual.shape[1])
    component = penalized_rank_one_svd(residual, penalty, max_iter=1, tol=1e-15, alpha_grid=ALPHA_GRID)
    assert component.n_iter == 1
    assert not component.converged
    assert component.rel_diff > 1e-15
