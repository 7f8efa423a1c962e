import dataclasses

import numpy as np
import pytest
from numpy.testing import assert_allclose

from sfpca.smooth import DifferencePenalty, make_diff_operator


@pytest.mark.parametrize("order", [0, 1, 2, 3])
def test_diff_operator_shape(order):
    d = make_diff_operator(order, 12)
    assert d.shape == (12 - order, 12)


def test_diff_operator_known_values():
    assert_allclose(make_diff_operator(0, 3), np.eye(3))
    assert_allclose(make_diff_operator(1, 3), [[-1.0, 1.0, 0.0], [0.0, -1.0, 1.0]])
    assert_allclose(make_diff_operator(2, 4), [[1.0, -2.0, 1.0, 0.0], [0.0, 1.0, -2.0, 1.0]])


@pytest.mark.parametrize("order", [1, 2, 3])
def test_diff_operator_annihilates_low_degree_polynomials(order):
    x = np.linspace(-1.0, 1.0, 20)
    d = make_diff_operator(order, x.size)
    for degree in range(order):
        assert_allclose(d @ x**degree, 0.0, atol=1e-12)
    assert np.max(np.abs(d @ x**order)) > 1e-8


@pytest.mark.parametrize("order, dim", [(-1, 5), (5, 5), (6, 5), (1.5, 5)])
def test_diff_operator_invalid(order, dim):
    with pytest.raises(ValueError):
        make_diff_operator(order, dim)


@pytest.mark.parametrize("order", [1, 2, 3])
def test_difference_penalty_eigen_decomposition(order):
    penalty = DifferencePenalty.from_order(order, 15)
    d = make_diff_operator(order, 15)
    assert penalty.dim == 15
    assert penalty.order == order
    assert_allclose(penalty.omega, d.T @ d)
    assert np.all(np.diff(penalty.eigenvalues) <= 1e-12)
    assert np.all(penalty.eigenvalues > -1e-10)
    # the null space of D has dimension `order`
    assert np.sum(penalty.eigenvalues < 1e-10) == order
    reconstructed = penalty.eigenvectors @ np.diag(penalty.eigenvalues) @ penalty.eigenvectors.T
    assert_allclose(reconstructed, penalty.omega, atol=1e-10)
    assert_allclose(penalty.eigenvectors.T @ penalty.eigenvectors, np.eye(15), atol=1e-10)


def test_difference_penalty_is_read_only():
    penalty = DifferencePenalty.from_order(2, 8)
    with pytest.raises(ValueError):
        penalty.eigenvalues[0] = 1.0
    with pytest.raises(ValueError):
        penalty.omega[0, 0] = 1.0
    with pytest.raises(dataclasses.FrozenInstanceError):
        penalty.order = 3
