"""Utility functions used for FPCA"""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
from typing import Tuple

import numpy as np
from scipy.linalg import LinAlgError, solve


def get_fpca_blup_score(
    y: np.ndarray,
    mu: np.ndarray,
    efunctions: np.ndarray,
    evalues: np.ndarray,
    sigma2: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute shrinkage (BLUP) FPCA scores and fitted curves.

    For every curve with observed index set O, the scores solve

    .. math::
        (Z_O^T Z_O + \\sigma^2 D^{-1})\\, \\xi = Z_O^T (y_O - \\mu_O),

    where ``Z_O`` holds the rows of `efunctions` at O and ``D = diag(evalues)``.

    Parameters
    ----------
    y : np.ndarray of shape (n, m)
        Curves to score; missing cells are NaN.
    mu : np.ndarray of shape (m,)
        Mean function.
    efunctions : np.ndarray of shape (m, k)
        Eigenfunctions on the grid.
    evalues : np.ndarray of shape (k,)
        Positive eigenvalues.
    sigma2 : float
        Measurement error variance.

    Returns
    -------
    xi : np.ndarray of shape (n, k)
        Estimated scores.
    fitted_y : np.ndarray of shape (n, m)
        ``mu + xi @ efunctions.T`` on the full grid.

    Raises
    ------
    ValueError
        If shapes are inconsistent, an eigenvalue is not positive, or a curve has
        fewer observed points than components while `sigma2` is zero (or its
        system is otherwise singular). No partial result is returned.
    """
    n, m = y.shape
    num_pcs = evalues.size
    if mu.shape != (m,):
        raise ValueError(f"mu must have shape ({m},), got {mu.shape}.")
    if efunctions.shape != (m, num_pcs):
        raise ValueError(f"efunctions must have shape ({m}, {num_pcs}), got {efunctions.shape}.")
    if np.any(evalues <= 0):
        raise ValueError("All eigenvalues used for scoring must be positive.")

    mask = ~np.isnan(y)
    d_inv = np.diag(1.0 / evalues)
    xi = np.zeros((n, num_pcs))
    for i in range(n):
        obs = mask[i]
        if sigma2 == 0.0 and np.count_nonzero(obs) < num_pcs:
            raise ValueError(
                f"Measurement error estimated to be zero and curve {i} has fewer observed points "
                f"({np.count_nonzero(obs)}) than principal components ({num_pcs}); scores cannot be estimated."
            )
        z_cur = efunctions[obs, :]
        try:
            xi[i, :] = solve(z_cur.T @ z_cur + sigma2 * d_inv, z_cur.T @ (y[i, obs] - mu[obs]), assume_a="sym")
        except LinAlgError as e:
            raise ValueError(f"Score system for curve {i} is singular: {e!s}") from e
    fitted_y = mu + xi @ efunctions.T
    return xi, fitted_y
