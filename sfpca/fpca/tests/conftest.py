import numpy as np
import pytest

from sfpca.fpca import FunctionalDataGenerator, orthonormal_polynomials


def _make_true_model(n=100, m=100, seed=1267575, error_var=0.0):
    argvals = np.linspace(0.0, 1.0, m)
    efunctions = orthonormal_polynomials(argvals, 3)
    evalues = np.exp(-np.linspace(0.0, 1.0, 3))
    fdg = FunctionalDataGenerator(argvals, lambda t: np.ones_like(t), efunctions, evalues, error_var=error_var)
    y, scores = fdg.generate(n, seed)
    return argvals, efunctions, evalues, y, scores


@pytest.fixture(scope="package")
def true_model():
    """Noise-free curves from three known eigenfunctions with exactly orthogonal scores."""
    return _make_true_model()


@pytest.fixture(scope="package")
def true_model_noisy():
    """The same eigenstructure observed with Gaussian measurement error of variance 0.05."""
    return _make_true_model(error_var=0.05)


@pytest.fixture(scope="package")
def true_model_irregular(true_model):
    argvals, efunctions, evalues, y, scores = true_model
    y_irreg = FunctionalDataGenerator.make_missing(y, 0.05, seed=42)
    return argvals, efunctions, evalues, y_irreg, scores


@pytest.fixture
def small_noisy_data():
    rng = np.random.default_rng(0)
    argvals = np.linspace(0.0, 1.0, 40)
    efunctions = orthonormal_polynomials(argvals, 2)
    fdg = FunctionalDataGenerator(argvals, np.sin, efunctions, np.array([1.0, 0.4]), error_var=0.01)
    y, _ = fdg.generate(60, int(rng.integers(0, 1000)))
    return argvals, y
