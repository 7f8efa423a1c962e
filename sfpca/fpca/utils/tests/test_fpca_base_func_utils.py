import numpy as np
import pytest
from numpy.testing import assert_allclose

from sfpca.fpca.utils import get_eigen_analysis_results, get_fpca_phi, select_num_pcs_pve
from sfpca.utils import quad_weights


def test_get_eigen_analysis_results_sorted_descending():
    eig_lambda, eig_vector = get_eigen_analysis_results(np.diag([1.0, 3.0, 2.0]), np.ones(3))
    assert_allclose(eig_lambda, [3.0, 2.0, 1.0])
    assert_allclose(np.abs(eig_vector), [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], atol=1e-12)


def test_get_eigen_analysis_results_clamps_negative_values():
    cov = np.array([[1.0, 2.0], [2.0, 1.0]])
    eig_lambda, _ = get_eigen_analysis_results(cov, np.ones(2))
    assert_allclose(eig_lambda, [3.0, 0.0])


def test_get_eigen_analysis_results_uses_weights():
    weights = np.array([0.5, 2.0])
    eig_lambda, _ = get_eigen_analysis_results(np.eye(2), weights)
    assert_allclose(eig_lambda, [2.0, 0.5])


@pytest.mark.parametrize("weights", [np.array([0.0, 1.0, 1.0]), np.array([1.0, -1.0, 1.0])])
def test_get_eigen_analysis_results_nonpositive_weights(weights):
    with pytest.raises(ValueError, match="quadrature weights must be positive"):
        get_eigen_analysis_results(np.eye(3), weights)


def test_get_eigen_analysis_results_shape_mismatch():
    with pytest.raises(ValueError, match="cov must have shape"):
        get_eigen_analysis_results(np.eye(3), np.ones(4))


@pytest.mark.parametrize(
    "pve, expected",
    [(0.5, 1), (0.6, 2), (0.8, 3), (0.85, 3), (0.95, 4)],
)
def test_select_num_pcs_pve(pve, expected):
    cumulative_pve, num_pcs = select_num_pcs_pve(np.array([3.0, 1.0, 0.5, 0.5]), pve)
    assert_allclose(cumulative_pve, [0.6, 0.8, 0.9, 1.0])
    assert num_pcs == expected


def test_select_num_pcs_pve_all_zero():
    with pytest.raises(ValueError, match="All eigenvalues"):
        select_num_pcs_pve(np.zeros(3), 0.9)


def test_get_fpca_phi_orthonormal_and_sign_aligned():
    argvals = np.linspace(0.0, 1.0, 30)
    weights = quad_weights(argvals)
    phi_true = np.column_stack((np.sqrt(2) * np.sin(np.pi * argvals), np.sqrt(2) * np.cos(np.pi * argvals)))
    cov = phi_true @ np.diag([2.0, 0.5]) @ phi_true.T
    _, eig_vector = get_eigen_analysis_results(cov, weights)
    mu = 1.0 + argvals
    phi = get_fpca_phi(2, weights, eig_vector, mu)
    assert phi.shape == (30, 2)
    assert_allclose(phi.T @ np.diag(weights) @ phi, np.eye(2), atol=1e-10)
    assert np.all(np.sum(phi * (weights * mu)[:, None], axis=0) >= 0.0)


def test_get_fpca_phi_sign_flip_follows_mean():
    weights = np.ones(2)
    eig_vector = np.eye(2)
    phi = get_fpca_phi(2, weights, eig_vector, np.array([-1.0, 0.0]))
    assert_allclose(phi, [[-1.0, 0.0], [0.0, 1.0]])
