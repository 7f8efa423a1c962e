"""Base class for penalized B-spline (P-spline) regression with GCV smoothing selection."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

import logging
from typing import Dict, Optional, Tuple

import numpy as np
from scipy.linalg import LinAlgError, solve
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.preprocessing import SplineTransformer
from sklearn.utils.validation import check_array

from sfpca.smooth.penalty import make_diff_operator

logger = logging.getLogger(__name__)


class PSplineModel(BaseEstimator, RegressorMixin):
    """
    Shared machinery for penalized cubic B-spline regression.

    Subclasses build the design matrix and the penalty; this class aggregates
    repeated coordinates into sufficient statistics, solves the penalized
    weighted least squares problem and selects the smoothing parameter by
    generalized cross-validation (GCV).

    Parameters
    ----------
    nbasis : int, default=10
        Number of cubic B-spline basis functions per dimension (>= 4).
    penalty_order : int, default=2
        Order of the difference penalty on adjacent coefficients.
    num_lambda_candidates : int, default=41
        Number of smoothing parameter candidates for GCV.
    """

    def __init__(self, nbasis: int = 10, penalty_order: int = 2, num_lambda_candidates: int = 41) -> None:
        if not isinstance(nbasis, (int, np.integer)) or nbasis < 4:
            raise ValueError("Number of basis functions, nbasis, must be an integer of at least 4.")
        if not isinstance(penalty_order, (int, np.integer)) or penalty_order < 0 or penalty_order >= nbasis:
            raise ValueError("penalty_order must be a non-negative integer smaller than nbasis.")
        if not isinstance(num_lambda_candidates, (int, np.integer)) or num_lambda_candidates < 2:
            raise ValueError("num_lambda_candidates must be an integer of at least 2.")
        self.nbasis = nbasis
        self.penalty_order = penalty_order
        self.num_lambda_candidates = num_lambda_candidates

    def _make_spline_transformer(self, x: np.ndarray) -> SplineTransformer:
        """Fit a cubic B-spline basis with uniform knots on the range of `x`."""
        lo, hi = float(np.min(x)), float(np.max(x))
        if not hi > lo:
            raise ValueError("Input coordinates must span a non-degenerate range.")
        transformer = SplineTransformer(n_knots=self.nbasis - 2, degree=3, knots="uniform", extrapolation="linear", include_bias=True)
        transformer.fit(np.array([[lo], [hi]]))
        return transformer

    def _marginal_penalty(self) -> np.ndarray:
        diff_op = make_diff_operator(self.penalty_order, self.nbasis)
        return diff_op.T @ diff_op

    @staticmethod
    def _check_fit_inputs(X: np.ndarray, y: np.ndarray, sample_weight: Optional[np.ndarray], num_features: int) -> Tuple[np.ndarray, ...]:
        X = check_array(X, ensure_2d=False, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if X.shape[1] != num_features:
            raise ValueError(f"X must have exactly {num_features} feature(s), got {X.shape[1]}")
        y = check_array(y, ensure_2d=False, dtype=np.float64)
        if y.ndim != 1 or y.size != X.shape[0]:
            raise ValueError("y must be a 1D array with the same number of rows as X.")
        if sample_weight is None:
            sample_weight = np.ones_like(y)
        else:
            sample_weight = check_array(sample_weight, ensure_2d=False, dtype=np.float64)
            if sample_weight.ndim != 1 or sample_weight.size != y.size:
                raise ValueError(f"sample_weight must have the same length as y, got {sample_weight.size} vs {y.size}")
            if np.any(sample_weight < 0):
                raise ValueError("All sample weights must be non-negative")
        if not np.any(sample_weight > 0):
            raise ValueError("At least one sample weight must be positive.")
        return X, y, sample_weight

    @staticmethod
    def _aggregate(keys: np.ndarray, y: np.ndarray, w: np.ndarray) -> Tuple[np.ndarray, ...]:
        """Collapse observations that share the same key into weighted sufficient statistics.

        Returns
        -------
        unique_keys : np.ndarray of shape (n_cells, n_key_cols)
        sum_w, sum_wy, sum_wyy : np.ndarray of shape (n_cells,)
        """
        unique_keys, inverse = np.unique(keys, axis=0, return_inverse=True)
        inverse = inverse.ravel()
        sum_w = np.bincount(inverse, weights=w, minlength=unique_keys.shape[0])
        sum_wy = np.bincount(inverse, weights=w * y, minlength=unique_keys.shape[0])
        sum_wyy = np.bincount(inverse, weights=w * y * y, minlength=unique_keys.shape[0])
        return unique_keys, sum_w, sum_wy, sum_wyy

    @staticmethod
    def _solve_penalized(xtwx: np.ndarray, xtwy: np.ndarray, penalty: np.ndarray) -> Tuple[np.ndarray, float]:
        """Solve (X'WX + penalty) beta = X'Wy and return beta with tr(hat matrix)."""
        lhs = xtwx + penalty
        try:
            coef = solve(lhs, xtwy, assume_a="sym")
            edf = float(np.trace(solve(lhs, xtwx, assume_a="sym")))
        except LinAlgError as e:
            raise ValueError(f"Penalized least squares system is singular: {e!s}") from e
        return coef, edf

    @staticmethod
    def _gcv_score(fitted: np.ndarray, edf: float, stats: Tuple[np.ndarray, ...], num_obs: int) -> float:
        # GCV = N * RSS / (N - tr(A))^2 with RSS recovered from the aggregated statistics
        sum_w, sum_wy, sum_wyy = stats
        rss = max(float(np.sum(sum_wyy - 2.0 * fitted * sum_wy + sum_w * fitted**2)), 0.0)
        denominator = (num_obs - edf) ** 2
        return num_obs * rss / denominator if num_obs - edf > 0 else np.inf

    def _lambda_candidates(self, xtwx: np.ndarray, penalty: np.ndarray) -> np.ndarray:
        scale = np.trace(xtwx) / max(np.trace(penalty), np.finfo(np.float64).eps)
        return scale * np.logspace(-8.0, 4.0, self.num_lambda_candidates)

    def _fit_coefficients(
        self,
        design: np.ndarray,
        stats: Tuple[np.ndarray, ...],
        penalties: Tuple[np.ndarray, ...],
        num_obs: int,
        fixed_lambdas: Tuple[Optional[float], ...],
        candidate_grids: Tuple[Optional[np.ndarray], ...],
    ) -> Dict[str, object]:
        """Select smoothing parameters by GCV over the Cartesian grid of candidates and fit.

        Each entry of `penalties` is a full-size penalty block scaled by its own
        smoothing parameter. A fixed value in `fixed_lambdas` skips the search for
        that block.
        """
        sum_w, sum_wy, _ = stats
        xtwx = design.T @ (sum_w[:, None] * design)
        xtwy = design.T @ sum_wy

        grids = []
        for penalty, fixed, grid in zip(penalties, fixed_lambdas, candidate_grids):
            if fixed is not None:
                grids.append(np.array([float(fixed)]))
            elif grid is not None:
                grids.append(grid)
            else:
                grids.append(self._lambda_candidates(xtwx, penalty))

        mesh = np.meshgrid(*grids, indexing="ij")
        candidates = np.column_stack([m.ravel() for m in mesh])
        gcv_scores = np.full(candidates.shape[0], np.inf)
        for idx, lams in enumerate(candidates):
            total_penalty = sum(lam * penalty for lam, penalty in zip(lams, penalties))
            try:
                coef, edf = self._solve_penalized(xtwx, xtwy, total_penalty)
            except ValueError:
                continue
            gcv_scores[idx] = self._gcv_score(design @ coef, edf, stats, num_obs)
        if candidates.shape[0] > 1 and (~np.isfinite(gcv_scores)).all():
            raise ValueError("All GCV scores are non-finite. Check your data and the number of basis functions.")

        best = int(np.argmin(gcv_scores)) if candidates.shape[0] > 1 else 0
        best_lams = candidates[best]
        coef, edf = self._solve_penalized(xtwx, xtwy, sum(lam * penalty for lam, penalty in zip(best_lams, penalties)))
        logger.debug("%s selected smoothing parameters %s (edf=%.3f)", type(self).__name__, best_lams, edf)
        return {
            "coef": coef,
            "edf": edf,
            "lambdas": best_lams,
            "lambda_candidates": candidates,
            "gcv_scores": gcv_scores,
            "best_gcv_score": gcv_scores[best],
        }
