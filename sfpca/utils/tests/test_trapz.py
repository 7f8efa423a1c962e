import numpy as np
import pytest
from numpy.testing import assert_allclose

from sfpca.utils import trapz


@pytest.mark.parametrize("dtype", [np.float64, np.float32])
def test_trapz_1d(dtype):
    x = np.linspace(0, 1, 5).astype(dtype)
    y = x**2
    val = trapz(y, x)
    assert np.isclose(val, 0.34375)


@pytest.mark.parametrize("order", ["F", "C"])
def test_trapz_2d(order):
    x = np.linspace(0, 1, 5)
    y = np.asarray(np.vstack([x**2, x**3]), order=order)
    val = trapz(y, x)
    assert val.shape == (2,)
    assert_allclose(val, np.array([0.34375, 0.265625]))


def test_trapz_int_dtype():
    x = np.array([1, 2, 3, 4, 5])
    y = x**2
    val = trapz(y, x)
    assert np.isclose(val, 42.0)


def test_trapz_not_enough_points():
    x = np.array([1.0])
    y = np.array([2.0])
    val = trapz(y, x)
    assert np.isclose(val, 0.0)


def test_trapz_exceptions():
    x = np.linspace(0, 1, 5)
    # shape mismatch
    with pytest.raises(ValueError):
        trapz(np.ones(4), x)
    with pytest.raises(ValueError):
        trapz(np.ones((2, 4)), x)
    # wrong dimension of y
    with pytest.raises(ValueError):
        trapz(np.ones((2, 2, 2)), x)
