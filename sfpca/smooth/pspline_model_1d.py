"""P-spline model for 1D smoothing with optional random intercepts."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

import logging
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from scipy.linalg import LinAlgError, solve
from sklearn.utils.validation import check_array, check_is_fitted

from sfpca.smooth.pspline_model import PSplineModel

logger = logging.getLogger(__name__)


class PSpline1DModel(PSplineModel):
    """
    1D penalized cubic B-spline regression with GCV smoothing selection.

    With `groups` supplied at fit time, each group additionally receives its own
    intercept, shrunk towards zero by a ridge penalty (a Gaussian random intercept
    in mixed-model terms). The ridge parameter is selected jointly with the
    smoothing parameter by GCV, and predictions are made at the population level,
    i.e. with all random intercepts set to zero.

    Parameters
    ----------
    nbasis : int, default=10
        Number of cubic B-spline basis functions (>= 4).
    penalty_order : int, default=2
        Order of the difference penalty.
    num_lambda_candidates : int, default=41
        Number of smoothing parameter candidates for GCV.
    num_ridge_candidates : int, default=13
        Number of random-intercept ridge candidates for GCV (used only with groups).

    Attributes
    ----------
    spline_transformer_ : sklearn.preprocessing.SplineTransformer
        Fitted basis on the range of the training inputs.
    coef_ : np.ndarray of shape (nbasis,)
        Spline coefficients.
    group_effects_ : np.ndarray of shape (n_groups,) or None
        Predicted random intercepts when groups were supplied.
    lambda_ : float
        Selected (or given) smoothing parameter.
    ridge_ : float or None
        Selected ridge parameter for the random intercepts.
    edf_ : float
        Effective degrees of freedom, the trace of the hat matrix.
    lambda_selection_results_ : dict
        Candidates, GCV scores and the chosen values.
    n_features_in_ : int
        Always 1.

    See Also
    --------
    PSpline2DModel : Tensor-product P-spline regression in 2D.
    """

    def __init__(
        self,
        nbasis: int = 10,
        penalty_order: int = 2,
        num_lambda_candidates: int = 41,
        num_ridge_candidates: int = 13,
    ) -> None:
        super().__init__(nbasis=nbasis, penalty_order=penalty_order, num_lambda_candidates=num_lambda_candidates)
        if not isinstance(num_ridge_candidates, (int, np.integer)) or num_ridge_candidates < 1:
            raise ValueError("num_ridge_candidates must be a positive integer.")
        self.num_ridge_candidates = num_ridge_candidates

    def fit(
        self,
        X: Union[np.ndarray, List[float]],
        y: Union[np.ndarray, List[float]],
        sample_weight: Optional[Union[np.ndarray, List[float]]] = None,
        groups: Optional[Union[np.ndarray, List[int]]] = None,
        lam: Optional[float] = None,
    ) -> "PSpline1DModel":
        """Fit the 1D P-spline.

        Parameters
        ----------
        X : array-like of shape (n_samples,) or (n_samples, 1)
            Training inputs.
        y : array-like of shape (n_samples,)
            Training targets.
        sample_weight : array-like of shape (n_samples,), optional
            Non-negative sample weights.
        groups : array-like of shape (n_samples,), optional
            Group labels receiving random intercepts.
        lam : float, optional
            Fixed smoothing parameter; selected by GCV if None.

        Returns
        -------
        PSpline1DModel
            Fitted estimator (self).

        Raises
        ------
        ValueError
            If inputs are invalid or `lam` is not a positive number.
        """
        if lam is not None and (not isinstance(lam, (int, float)) or np.isnan(lam) or lam <= 0):
            raise ValueError("lam must be a positive number.")
        X, y, sample_weight = self._check_fit_inputs(X, y, sample_weight, num_features=1)
        x = X.ravel()
        self.n_features_in_ = 1

        self.spline_transformer_ = self._make_spline_transformer(x)
        penalty = self._marginal_penalty()

        if groups is None:
            stats_keys, *stats = self._aggregate(x.reshape(-1, 1), y, sample_weight)
            design = self.spline_transformer_.transform(stats_keys[:, [0]])
            results = self._fit_coefficients(
                design,
                tuple(stats),
                (penalty,),
                int(np.sum(sample_weight > 0)),
                (lam,),
                (None,),
            )
            self.coef_ = results["coef"]
            self.group_effects_ = None
            self.ridge_ = None
        else:
            groups = np.asarray(groups).ravel()
            if groups.size != y.size:
                raise ValueError("groups must have the same length as y.")
            self.groups_, group_idx = np.unique(groups, return_inverse=True)
            keys = np.column_stack((x, group_idx.ravel().astype(np.float64)))
            stats_keys, *stats = self._aggregate(keys, y, sample_weight)
            basis = self.spline_transformer_.transform(stats_keys[:, [0]])
            results = self._fit_random_intercepts(
                basis,
                stats_keys[:, 1].astype(np.int64),
                self.groups_.size,
                tuple(stats),
                penalty,
                int(np.sum(sample_weight > 0)),
                lam,
            )
            self.coef_ = results["coef"]
            self.group_effects_ = results["group_effects"]
            self.ridge_ = float(results["lambdas"][1])

        self.lambda_ = float(results["lambdas"][0])
        self.edf_ = results["edf"]
        self.lambda_selection_results_ = {
            "lambda_candidates": results["lambda_candidates"],
            "gcv_scores": results["gcv_scores"],
            "best_lambda": self.lambda_,
            "best_ridge": self.ridge_,
            "best_gcv_score": results["best_gcv_score"],
        }
        return self

    def predict(self, X: Union[np.ndarray, List[float]]) -> np.ndarray:
        """Predict population-level responses at new inputs.

        Parameters
        ----------
        X : array-like of shape (m,) or (m, 1)
            Query points.

        Returns
        -------
        np.ndarray of shape (m,)
            Predicted values.

        Raises
        ------
        sklearn.exceptions.NotFittedError
            If the model is not fitted.
        """
        check_is_fitted(self, ["coef_", "spline_transformer_"])
        X = check_array(X, ensure_2d=False, dtype=np.float64)
        if X.ndim == 2:
            if X.shape[1] != 1:
                raise ValueError(f"X must have exactly 1 feature, got {X.shape[1]}")
            X = X.ravel()
        return self.spline_transformer_.transform(X.reshape(-1, 1)) @ self.coef_

    def _fit_random_intercepts(
        self,
        basis: np.ndarray,
        cell_group: np.ndarray,
        num_groups: int,
        stats: Tuple[np.ndarray, ...],
        penalty: np.ndarray,
        num_obs: int,
        lam: Optional[float],
    ) -> Dict[str, object]:
        """Select the smoothing and ridge parameters by GCV with the intercepts profiled out.

        The intercept block of the normal equations is diagonal, so each
        candidate pair only needs an ``nbasis x nbasis`` Schur complement solve.
        """
        sum_w, sum_wy, _ = stats
        btwb = basis.T @ (sum_w[:, None] * basis)
        btwy = basis.T @ sum_wy
        group_w = np.bincount(cell_group, weights=sum_w, minlength=num_groups)
        group_wy = np.bincount(cell_group, weights=sum_wy, minlength=num_groups)
        # cross[:, j] = B' W z_j for the indicator z_j of group j
        weighted_basis = sum_w[:, None] * basis
        cross = np.stack([np.bincount(cell_group, weights=weighted_basis[:, k], minlength=num_groups) for k in range(self.nbasis)])

        if lam is not None:
            lambda_grid = np.array([float(lam)])
        else:
            scale = (np.trace(btwb) + np.sum(group_w)) / max(np.trace(penalty), np.finfo(np.float64).eps)
            lambda_grid = scale * np.logspace(-8.0, 4.0, self.num_lambda_candidates)
        ridge_grid = np.sum(group_w) / num_groups * np.logspace(-3.0, 3.0, self.num_ridge_candidates)
        mesh = np.meshgrid(lambda_grid, ridge_grid, indexing="ij")
        candidates = np.column_stack([m.ravel() for m in mesh])

        def solve_candidate(lam_k: float, ridge_k: float) -> Tuple[np.ndarray, np.ndarray, float]:
            diag = group_w + ridge_k
            cross_scaled = cross / diag
            schur = btwb + lam_k * penalty - cross_scaled @ cross.T
            try:
                schur_inv = solve(schur, np.eye(self.nbasis), assume_a="sym")
            except LinAlgError as e:
                raise ValueError(f"Penalized least squares system is singular: {e!s}") from e
            coef = schur_inv @ (btwy - cross_scaled @ group_wy)
            effects = (group_wy - cross.T @ coef) / diag
            # tr(A) = p - tr(M^-1 S) with the block inverse of M written through the Schur complement
            edf = (
                self.nbasis
                + num_groups
                - lam_k * np.sum(schur_inv * penalty)
                - ridge_k * (np.sum(1.0 / diag) + np.sum(schur_inv * (cross_scaled @ cross_scaled.T)))
            )
            return coef, effects, float(edf)

        gcv_scores = np.full(candidates.shape[0], np.inf)
        for idx, (lam_k, ridge_k) in enumerate(candidates):
            try:
                coef, effects, edf = solve_candidate(lam_k, ridge_k)
            except ValueError:
                continue
            gcv_scores[idx] = self._gcv_score(basis @ coef + effects[cell_group], edf, stats, num_obs)
        if candidates.shape[0] > 1 and (~np.isfinite(gcv_scores)).all():
            raise ValueError("All GCV scores are non-finite. Check your data and the number of basis functions.")

        best = int(np.argmin(gcv_scores)) if candidates.shape[0] > 1 else 0
        coef, effects, edf = solve_candidate(*candidates[best])
        logger.debug("PSpline1DModel selected smoothing and ridge parameters %s (edf=%.3f)", candidates[best], edf)
        return {
            "coef": coef,
            "group_effects": effects,
            "edf": edf,
            "lambdas": candidates[best],
            "lambda_candidates": candidates,
            "gcv_scores": gcv_scores,
            "best_gcv_score": gcv_scores[best],
        }
