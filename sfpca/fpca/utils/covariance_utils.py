"""Utility functions for covariance estimation on functional data."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
import logging
from typing import List, Literal, Optional, Tuple

import numpy as np
from scipy.linalg import eigh
from sklearn.exceptions import ConvergenceWarning

from sfpca.smooth import PSpline2DModel
from sfpca.utils.utility import quad_weights, warn_and_record

logger = logging.getLogger(__name__)


def get_raw_cov(y_tilde: np.ndarray, mask: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Accumulate the pointwise raw covariance of demeaned curves.

    Every curve contributes the outer product of its demeaned, observed values
    to a running sum and a one to a running count for each pair of grid points
    it observes jointly. Both reductions are computed as matrix products over
    the zero-filled data and the observed mask.

    Parameters
    ----------
    y_tilde : np.ndarray of shape (n, m)
        Demeaned observations; values at unobserved cells are ignored.
    mask : np.ndarray of shape (n, m)
        Boolean observed mask.

    Returns
    -------
    cov_sum : np.ndarray of shape (m, m)
        Sum of products over curves observing both grid points.
    cov_count : np.ndarray of shape (m, m)
        Number of curves observing both grid points.
    raw_cov : np.ndarray of shape (m, m)
        ``cov_sum / cov_count``, NaN where the count is zero.

    Raises
    ------
    ValueError
        If `y_tilde` and `mask` have different shapes.
    """
    if y_tilde.shape != mask.shape:
        raise ValueError(f"y_tilde and mask must have the same shape, got {y_tilde.shape} and {mask.shape}.")
    y_zero = np.where(mask, y_tilde, 0.0)
    observed = mask.astype(np.float64)
    cov_sum = y_zero.T @ y_zero
    cov_count = observed.T @ observed
    raw_cov = np.full_like(cov_sum, np.nan)
    np.divide(cov_sum, cov_count, out=raw_cov, where=cov_count > 0)
    return cov_sum, cov_count, raw_cov


def _pair_products(y_tilde: np.ndarray, mask: np.ndarray, argvals: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Collect every off-diagonal within-curve product with its grid-pair location."""
    m = argvals.size
    coords = []
    values = []
    off_diagonal = ~np.eye(m, dtype=bool)
    for y_i, obs_i in zip(y_tilde, mask):
        pair_mask = np.outer(obs_i, obs_i) & off_diagonal
        rows, cols = np.nonzero(pair_mask)
        if rows.size == 0:
            continue
        coords.append(np.column_stack((argvals[rows], argvals[cols])))
        values.append(y_i[rows] * y_i[cols])
    if len(coords) == 0:
        raise ValueError("No curve has two or more observed points; the covariance surface cannot be estimated.")
    return np.vstack(coords), np.concatenate(values)


def smooth_covariance(
    y_tilde: np.ndarray,
    mask: np.ndarray,
    argvals: np.ndarray,
    cov_count: np.ndarray,
    raw_cov: np.ndarray,
    cov_est_method: Literal[1, 2] = 2,
    use_symm: bool = False,
    nbasis: int = 10,
) -> np.ndarray:
    """
    Smooth the raw covariance into a symmetric surface on `argvals` x `argvals`.

    Parameters
    ----------
    y_tilde : np.ndarray of shape (n, m)
        Demeaned observations (used by the direct strategy only).
    mask : np.ndarray of shape (n, m)
        Boolean observed mask.
    argvals : np.ndarray of shape (m,)
        Grid of argument values.
    cov_count : np.ndarray of shape (m, m)
        Pair counts from `get_raw_cov`.
    raw_cov : np.ndarray of shape (m, m)
        Pointwise averaged raw covariance from `get_raw_cov`.
    cov_est_method : {1, 2}, default=2
        1 smooths every off-diagonal product ``y_i(s) y_i(t)`` directly.
        2 smooths the averaged raw covariance with the pair counts as weights.
    use_symm : bool, default=False
        With method 2, fit the upper triangle only and mirror the prediction.
    nbasis : int, default=10
        Number of B-spline basis functions per margin.

    Returns
    -------
    np.ndarray of shape (m, m)
        Smoothed, symmetric covariance.

    Notes
    -----
    The diagonal of the raw covariance carries the measurement error variance
    and is always excluded from the smoother inputs. With `use_symm`, the two
    entries just below the diagonal in the first column and the last row enter
    with zero weight so the basis spans the whole grid in both directions.
    """
    m = argvals.size
    rows, cols = np.meshgrid(np.arange(m), np.arange(m), indexing="ij")
    model = PSpline2DModel(nbasis=nbasis)
    if cov_est_method == 1:
        coords, values = _pair_products(y_tilde, mask, argvals)
        model.fit(coords, values)
    elif cov_est_method == 2:
        raw_off_diag = raw_cov.copy()
        np.fill_diagonal(raw_off_diag, np.nan)
        weights = cov_count.copy()
        if use_symm:
            use = rows <= cols
            use[1, 0] = use[m - 1, m - 2] = True
            weights[1, 0] = weights[m - 1, m - 2] = 0.0
        else:
            use = np.ones((m, m), dtype=bool)
        # cells without an estimate (unobserved pairs, diagonal) are dropped; zero-weight corners stay
        use &= np.isfinite(raw_off_diag) | (weights == 0.0)
        values = np.where(np.isfinite(raw_off_diag), raw_off_diag, 0.0)[use]
        coords = np.column_stack((argvals[rows[use]], argvals[cols[use]]))
        model.fit(coords, values, sample_weight=weights[use])
    else:
        raise ValueError(f"cov_est_method must be 1 or 2, got {cov_est_method!r}.")
    logger.debug("Covariance smoother (method %s) selected lambda=%.4g", cov_est_method, model.lambda_)

    smoothed = model.predict_grid(argvals, argvals)
    if cov_est_method == 2 and use_symm:
        upper = np.triu(smoothed)
        smoothed = upper + np.triu(smoothed, 1).T
    return (smoothed + smoothed.T) / 2.0


def nearest_psd(
    A: np.ndarray,
    eig_tol: float = 1e-6,
    conv_tol: float = 1e-7,
    posd_tol: float = 1e-8,
    max_iter: int = 100,
    diagnostics: Optional[List[str]] = None,
) -> np.ndarray:
    """
    Project a symmetric matrix onto the nearest positive semi-definite matrix.

    Higham's (2002) alternating projections with Dykstra's correction, without
    keeping the diagonal, followed by a final eigenvalue floor so the result is
    numerically positive definite.

    Parameters
    ----------
    A : np.ndarray of shape (m, m)
        Input matrix; it is symmetrized first.
    eig_tol : float, default=1e-6
        Eigenvalues below ``eig_tol * largest eigenvalue`` are treated as zero.
    conv_tol : float, default=1e-7
        Convergence tolerance on the relative change in the infinity norm.
    posd_tol : float, default=1e-8
        Eigenvalues are floored at ``posd_tol * |largest eigenvalue|`` at the end.
    max_iter : int, default=100
        Maximum number of projection iterations.
    diagnostics : list of str, optional
        Collects the warning message when the projection does not converge.

    Returns
    -------
    np.ndarray of shape (m, m)
        Symmetric matrix with non-negative spectrum.

    Raises
    ------
    ValueError
        If `A` is not square or has no positive eigenvalue.

    Warns
    -----
    sklearn.exceptions.ConvergenceWarning
        If the projection does not converge within `max_iter` iterations.

    References
    ----------
    Higham, N. J. (2002). Computing the nearest correlation matrix, a problem
    from finance. IMA Journal of Numerical Analysis, 22, 329-343.
    """
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError("A must be a square matrix.")
    n = A.shape[0]
    X = (A + A.T) / 2.0
    dykstra = np.zeros_like(X)
    converged = False
    num_iter = 0
    conv = np.inf
    while num_iter < max_iter and not converged:
        Y = X
        R = Y - dykstra
        eig_lambda, eig_vector = eigh(R)
        eig_lambda, eig_vector = eig_lambda[::-1], eig_vector[:, ::-1]
        positive = eig_lambda > eig_tol * eig_lambda[0]
        if not np.any(positive):
            raise ValueError("Matrix seems negative semi-definite; no positive eigenvalue remains.")
        Q = eig_vector[:, positive]
        X = (Q * eig_lambda[positive]) @ Q.T
        dykstra = X - R
        conv = np.linalg.norm(Y - X, ord=np.inf) / np.linalg.norm(Y, ord=np.inf)
        num_iter += 1
        converged = conv <= conv_tol
    logger.debug("nearest_psd stopped after %d iterations (relative change %.3g)", num_iter, conv)
    if not converged:
        warn_and_record(
            f"nearest_psd did not converge in {max_iter} iterations; relative change was {conv:.3g}.",
            ConvergenceWarning,
            diagnostics,
        )

    eig_lambda, eig_vector = eigh(X)
    eig_lambda, eig_vector = eig_lambda[::-1], eig_vector[:, ::-1]
    eps = posd_tol * abs(eig_lambda[0])
    if eig_lambda[n - 1] < eps:
        eig_lambda = np.maximum(eig_lambda, eps)
        original_diag = np.diagonal(X).copy()
        X = (eig_vector * eig_lambda) @ eig_vector.T
        scale = np.sqrt(np.maximum(eps, original_diag) / np.diagonal(X))
        X = scale[:, None] * X * scale[None, :]
    return (X + X.T) / 2.0


def get_measurement_error_variance(
    raw_diag: np.ndarray,
    fitted_cov: np.ndarray,
    argvals: np.ndarray,
    integration: Literal["trapezoidal", "midpoint"] = "trapezoidal",
    diagnostics: Optional[List[str]] = None,
) -> float:
    """
    Estimate the measurement error variance from the raw covariance diagonal.

    The difference between the raw pointwise variance and the diagonal of the
    covariance reconstructed from the retained eigenpairs is averaged with
    quadrature weights over the central half of the domain, i.e. the indices
    with ``argvals`` in ``[a + T/4, b - T/4]``, and floored at zero.

    Parameters
    ----------
    raw_diag : np.ndarray of shape (m,)
        Diagonal of the raw covariance, NaN where no curve is observed.
    fitted_cov : np.ndarray of shape (m, m)
        Covariance reconstructed from the retained eigenpairs.
    argvals : np.ndarray of shape (m,)
        Grid of argument values.
    integration : {"trapezoidal", "midpoint"}, default="trapezoidal"
        Quadrature rule for the weighted mean.
    diagnostics : list of str, optional
        Collects the warning message when no diagonal entry is available.

    Returns
    -------
    float
        Non-negative noise variance estimate.
    """
    m = argvals.size
    total_length = argvals[-1] - argvals[0]
    left = int(np.nonzero(argvals >= argvals[0] + 0.25 * total_length)[0][0])
    right = int(np.nonzero(argvals <= argvals[-1] - 0.25 * total_length)[0][-1])
    diff = (raw_diag - np.diagonal(fitted_cov))[left : right + 1]
    if right > left:
        weights = quad_weights(argvals[left : right + 1], method=integration)
    else:
        weights = np.ones(1)
    available = np.isfinite(diff)
    if not np.any(available) or np.sum(weights[available]) <= 0:
        warn_and_record(
            "No raw variance is available on the central part of the domain; the measurement error variance is set to 0.",
            UserWarning,
            diagnostics,
        )
        return 0.0
    sigma2 = float(np.sum(diff[available] * weights[available]) / np.sum(weights[available]))
    logger.debug("Measurement error variance over grid indices [%d, %d] of %d: %.6g", left, right, m, sigma2)
    return max(sigma2, 0.0)
