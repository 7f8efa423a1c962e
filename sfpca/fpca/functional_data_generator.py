"""Functional data generation utilities.

This module provides a class to synthesize curves on a common grid from a
known mean function and a finite-rank eigenbasis, plus helpers to build
orthonormal bases and to drop observations at random.
"""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

from math import sqrt
from typing import Callable, List, Optional, Union

import numpy as np
from sklearn.utils.validation import check_array

from sfpca.utils.utility import check_argvals, quad_weights, trapz


def orthonormal_polynomials(argvals: Union[np.ndarray, List[float]], degree: int, include_constant: bool = False) -> np.ndarray:
    """Build polynomial functions orthonormal under trapezoidal quadrature.

    Parameters
    ----------
    argvals : array_like of shape (m,)
        Strictly increasing grid.
    degree : int
        Highest polynomial degree, at least 1 and smaller than ``m``.
    include_constant : bool, default=False
        Whether the constant function is part of the basis. When False, the
        returned functions are orthogonal to constants, as with R's ``poly``.

    Returns
    -------
    np.ndarray of shape (m, degree) or (m, degree + 1)
        Columns ``phi_j`` with ``phi.T @ diag(w) @ phi = I`` for the trapezoidal
        weights ``w`` of `argvals`.
    """
    argvals = check_argvals(argvals, len(argvals))
    if not isinstance(degree, (int, np.integer)) or degree < 1 or degree >= argvals.size:
        raise ValueError("degree must be a positive integer smaller than the number of grid points.")
    w_sqrt = np.sqrt(quad_weights(argvals))
    centered = argvals - np.mean(argvals)
    vander = np.vander(centered, degree + 1, increasing=True)
    q, r = np.linalg.qr(w_sqrt[:, None] * vander)
    # fix the sign so that each function has a positive leading coefficient
    q = q * np.sign(np.diag(r))
    basis = q / w_sqrt[:, None]
    return basis if include_constant else basis[:, 1:]


class FunctionalDataGenerator:
    """Generator for synthetic functional data with a known eigenstructure.

    Curves are ``mean_func(argvals) + scores @ eigenfunctions.T + noise`` where
    the score columns are exactly orthogonal, centered and scaled so that their
    sample variances (``ddof=1``) equal `eigenvalues`.

    Parameters
    ----------
    argvals : np.ndarray of shape (m,)
        Strictly increasing grid.
    mean_func : Callable[[np.ndarray], np.ndarray]
        Mean function evaluated on `argvals`, returns shape (m,).
    eigenfunctions : np.ndarray of shape (m, k)
        Eigenfunctions evaluated on `argvals` (columns).
    eigenvalues : np.ndarray of shape (k,)
        Positive eigenvalues.
    error_var : float, default=0.0
        Gaussian measurement noise variance.

    Attributes
    ----------
    argvals : np.ndarray of shape (m,)
        Validated grid.
    num_pcs : int
        Number of components ``k``.
    """

    def __init__(
        self,
        argvals: np.ndarray,
        mean_func: Callable[[np.ndarray], np.ndarray],
        eigenfunctions: np.ndarray,
        eigenvalues: np.ndarray,
        error_var: float = 0.0,
    ):
        """Initialize the generator and validate its inputs.

        Raises
        ------
        ValueError
            If the eigenfunctions do not match the grid, the eigenvalues are not
            positive, or `error_var` is negative.
        """
        self.argvals = check_argvals(argvals, len(argvals))
        eigenfunctions = check_array(eigenfunctions, ensure_2d=False, dtype=np.float64)
        if eigenfunctions.ndim == 1:
            eigenfunctions = eigenfunctions.reshape(-1, 1)
        eigenvalues = np.atleast_1d(check_array(eigenvalues, ensure_2d=False, dtype=np.float64))
        if eigenfunctions.shape[0] != self.argvals.size:
            raise ValueError("eigenfunctions must have one row per grid point.")
        if eigenvalues.ndim != 1 or eigenvalues.size != eigenfunctions.shape[1]:
            raise ValueError("eigenvalues must have one entry per eigenfunction.")
        if np.any(eigenvalues <= 0):
            raise ValueError("eigenvalues must be positive.")
        if not isinstance(error_var, (int, float)) or error_var < 0:
            raise ValueError("error_var must be a non-negative scalar.")
        self.mean_func = mean_func
        self.eigenfunctions = eigenfunctions
        self.eigenvalues = eigenvalues
        self.error_var = float(error_var)

    @property
    def num_pcs(self) -> int:
        return self.eigenvalues.size

    def get_fpca_phi(self) -> np.ndarray:
        """Return the eigenfunctions on the grid."""
        return self.eigenfunctions

    def get_fpca_phi_norms(self) -> np.ndarray:
        """Return the trapezoidal L2 norms of the eigenfunctions."""
        return np.sqrt(trapz((self.eigenfunctions**2).T, self.argvals))

    def generate_scores(self, n: int, seed: Optional[int] = None) -> np.ndarray:
        """Draw exactly orthogonal scores with the requested sample variances.

        Parameters
        ----------
        n : int
            Number of curves; must exceed the number of components.
        seed : int, optional
            Random seed for reproducibility.

        Returns
        -------
        np.ndarray of shape (n, k)
            Centered, mutually orthogonal score columns with
            ``np.var(scores, axis=0, ddof=1) == eigenvalues``.
        """
        if not isinstance(n, (int, np.integer)) or n <= self.num_pcs:
            raise ValueError("n must be an integer larger than the number of components.")
        rng = np.random.default_rng(seed)
        raw = rng.standard_normal((n, self.num_pcs))
        raw -= raw.mean(axis=0)
        q, _ = np.linalg.qr(raw)
        q -= q.mean(axis=0)
        q /= q.std(axis=0, ddof=1)
        return q * np.sqrt(self.eigenvalues)

    def generate(self, n: int, seed: Optional[int] = None) -> np.ndarray:
        """Generate functional data samples.

        Parameters
        ----------
        n : int
            Number of curves.
        seed : int, optional
            Random seed for reproducibility.

        Returns
        -------
        y : np.ndarray of shape (n, m)
            Generated curves in rows.
        scores : np.ndarray of shape (n, k)
            The true scores used to build `y`.
        """
        rng = np.random.default_rng(seed)
        scores = self.generate_scores(n, int(rng.integers(0, 2**31 - 1)))
        y = self.mean_func(self.argvals) + scores @ self.eigenfunctions.T
        if self.error_var > 0:
            y = y + rng.normal(0.0, sqrt(self.error_var), y.shape)
        return y, scores

    @staticmethod
    def make_missing(y: np.ndarray, dropout: float, seed: Optional[int] = None) -> np.ndarray:
        """Set observations to NaN independently with probability `dropout`.

        Parameters
        ----------
        y : np.ndarray of shape (n, m)
            Fully observed curves.
        dropout : float
            Probability in [0, 1) that a cell is dropped.
        seed : int, optional
            Random seed for reproducibility.

        Returns
        -------
        np.ndarray of shape (n, m)
            Copy of `y` with dropped cells set to NaN. Every curve keeps at
            least one observed cell.

        Raises
        ------
        ValueError
            If `dropout` is not in [0, 1) or `y` already contains NaN values.
        """
        if not (0 <= dropout < 1):
            raise ValueError("dropout must be in [0, 1).")
        y = check_array(y, dtype=np.float64, ensure_all_finite=False)
        if np.isnan(y).any():
            raise ValueError("y contains NaN values.")
        rng = np.random.default_rng(seed)
        drop = rng.random(y.shape) < dropout
        fully_dropped = np.nonzero(drop.all(axis=1))[0]
        for i in fully_dropped:
            drop[i, rng.integers(0, y.shape[1])] = False
        new_y = y.copy()
        new_y[drop] = np.nan
        return new_y
