import numpy as np
import pytest


@pytest.fixture
def small_y():
    return np.array([[1.0, 2.0, np.nan], [3.0, np.nan, 5.0]])


@pytest.fixture
def rank_one_curves():
    # y_i(t) = c_i * t with centered c, so the covariance surface is var(c) * s * t
    argvals = np.linspace(0.0, 1.0, 15)
    c = np.array([-2.0, -1.0, 0.5, 1.0, 1.5])
    return argvals, np.outer(c, argvals), float(np.mean(c**2))


@pytest.fixture
def smooth_rank_one_matrix():
    rng = np.random.default_rng(11)
    t = np.linspace(0.0, 1.0, 50)
    v = np.sin(np.pi * t)
    v /= np.linalg.norm(v)
    u = rng.standard_normal(30)
    u /= np.linalg.norm(u)
    residual = 10.0 * np.outer(u, v) + 0.05 * rng.standard_normal((30, 50))
    return residual, u, v
