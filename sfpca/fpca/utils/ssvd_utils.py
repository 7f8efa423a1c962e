"""Penalized rank one SVD building blocks (Huang, Shen and Buja, 2008)."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
import logging
from dataclasses import dataclass
from typing import Literal, Optional, Union

import numpy as np
from scipy.linalg import svd
from scipy.optimize import minimize_scalar

from sfpca.smooth.penalty import DifferencePenalty

logger = logging.getLogger(__name__)


def gcv_criterion(alpha: Union[float, np.ndarray], w: np.ndarray, eig_lambda: np.ndarray) -> Union[float, np.ndarray]:
    """
    Generalized cross-validation criterion of the penalized rank one update.

    .. math::
        GCV(\\alpha) = \\frac{\\sqrt{\\sum_j (w_j \\alpha\\lambda_j / (1 + \\alpha\\lambda_j))^2}}
                            {1 - \\frac{1}{m}\\sum_j 1 / (1 + \\alpha\\lambda_j)}

    Parameters
    ----------
    alpha : float or np.ndarray of shape (k,)
        Smoothing parameter, or a vector of candidates evaluated at once.
    w : np.ndarray of shape (m,)
        Projection of the current left vector onto the penalty eigenbasis.
    eig_lambda : np.ndarray of shape (m,)
        Eigenvalues of the penalty matrix.

    Returns
    -------
    float or np.ndarray of shape (k,)
        Criterion value per candidate; smaller is better.
    """
    alpha = np.asarray(alpha, dtype=np.float64)
    scaled = alpha[..., None] * eig_lambda
    shrink = 1.0 / (1.0 + scaled)
    numerator = np.sqrt(np.sum((w * scaled * shrink) ** 2, axis=-1))
    value = numerator / (1.0 - np.mean(shrink, axis=-1))
    return float(value) if value.ndim == 0 else value


def select_smoothing_parameter(
    w: np.ndarray,
    eig_lambda: np.ndarray,
    method: Literal["grid", "bounded"] = "grid",
    alpha_grid: Optional[np.ndarray] = None,
    lower_alpha: float = 1e-5,
    upper_alpha: float = 1e7,
) -> float:
    """Pick the smoothing parameter minimizing `gcv_criterion`.

    With ``method="grid"`` the first minimizer over `alpha_grid` is returned;
    with ``method="bounded"`` a bounded scalar search over
    ``[lower_alpha, upper_alpha]`` is used.
    """
    if method == "grid":
        scores = gcv_criterion(np.asarray(alpha_grid), w, eig_lambda)
        return float(alpha_grid[int(np.argmin(scores))])
    result = minimize_scalar(gcv_criterion, bounds=(lower_alpha, upper_alpha), args=(w, eig_lambda), method="bounded")
    return float(result.x)


@dataclass
class RankOneComponent:
    """One smoothed singular triple extracted by `penalized_rank_one_svd`.

    Attributes
    ----------
    u : np.ndarray of shape (n,)
        Unit-length left vector.
    v : np.ndarray of shape (m,)
        Unit-length smooth right vector.
    d : float
        Singular value, the norm of the unnormalized left vector.
    n_iter : int
        Number of power iterations performed.
    rel_diff : float
        Relative squared change of `v` at the last iteration.
    alpha : float
        Smoothing parameter chosen at the last iteration.
    converged : bool
        Whether `rel_diff` dropped to the tolerance.
    """

    u: np.ndarray
    v: np.ndarray
    d: float
    n_iter: int
    rel_diff: float
    alpha: float
    converged: bool


def penalized_rank_one_svd(
    residual: np.ndarray,
    penalty: DifferencePenalty,
    max_iter: int = 15,
    tol: float = 1e-4,
    method: Literal["grid", "bounded"] = "grid",
    alpha_grid: Optional[np.ndarray] = None,
    lower_alpha: float = 1e-5,
    upper_alpha: float = 1e7,
) -> RankOneComponent:
    """
    Extract one smooth rank one component by the regularized power algorithm.

    Starting from the leading right singular vector of `residual`, alternate
    ``u = residual @ v`` and ``v = S(alpha) residual.T @ u`` (normalized) where
    ``S(alpha) = (I + alpha Omega)^{-1}`` is applied in the eigenbasis of the
    penalty, re-selecting ``alpha`` by GCV at every step.

    Parameters
    ----------
    residual : np.ndarray of shape (n, m)
        Current residual matrix; not modified.
    penalty : DifferencePenalty
        Penalty with its precomputed eigen decomposition.
    max_iter : int, default=15
        Maximum number of updates of the right vector.
    tol : float, default=1e-4
        Tolerance on ``sum((v_old - v_new)^2) / sum(v_old^2)``.
    method, alpha_grid, lower_alpha, upper_alpha
        Smoothing parameter search, see `select_smoothing_parameter`.

    Returns
    -------
    RankOneComponent
        The extracted triple with iteration diagnostics.
    """
    gamma = penalty.eigenvectors
    eig_lambda = penalty.eigenvalues
    residual_gamma = residual @ gamma
    v_old = svd(residual, full_matrices=False)[2][0]
    u = residual @ v_old
    num_iter = 0
    rel_diff = tol + 1.0
    alpha = np.nan
    v_new = v_old
    while rel_diff > tol and num_iter < max_iter:
        w = residual_gamma.T @ u
        alpha = select_smoothing_parameter(w, eig_lambda, method, alpha_grid, lower_alpha, upper_alpha)
        v_new = gamma @ (w / (1.0 + alpha * eig_lambda))
        v_new = v_new / np.sqrt(np.sum(v_new**2))
        rel_diff = float(np.sum((v_old - v_new) ** 2) / np.sum(v_old**2))
        num_iter += 1
        v_old = v_new
        u = residual @ v_old
    d = float(np.sqrt(np.sum(u**2)))
    logger.debug("Rank one component after %d iterations: d=%.6g, alpha=%.4g, rel_diff=%.3g", num_iter, d, alpha, rel_diff)
    return RankOneComponent(
        u=u / d,
        v=v_new,
        d=d,
        n_iter=num_iter,
        rel_diff=rel_diff,
        alpha=float(alpha),
        converged=rel_diff <= tol,
    )
