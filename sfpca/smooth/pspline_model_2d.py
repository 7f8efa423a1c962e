"""Tensor-product P-spline model for bivariate smoothing."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

from typing import List, Optional, Union

import numpy as np
from sklearn.utils.validation import check_array, check_is_fitted

from sfpca.smooth.pspline_model import PSplineModel


class PSpline2DModel(PSplineModel):
    """
    2D tensor-product penalized cubic B-spline regression.

    The surface is ``f(x1, x2) = B1(x1) C B2(x2)'`` with a coefficient matrix C of
    shape (nbasis, nbasis). Roughness is penalized along both margins by
    ``P (x) I + I (x) P`` with a single smoothing parameter selected by GCV.
    Observations sharing the same coordinates are aggregated before solving, so
    inputs made of many repeated grid points (e.g. raw covariance products) stay
    cheap.

    Parameters
    ----------
    nbasis : int, default=10
        Number of cubic B-spline basis functions per margin (>= 4).
    penalty_order : int, default=2
        Order of the difference penalty along each margin.
    num_lambda_candidates : int, default=41
        Number of smoothing parameter candidates for GCV.

    Attributes
    ----------
    spline_transformers_ : tuple of sklearn.preprocessing.SplineTransformer
        Fitted marginal bases on the ranges of the two inputs.
    coef_ : np.ndarray of shape (nbasis, nbasis)
        Tensor-product coefficients.
    lambda_ : float
        Selected (or given) smoothing parameter.
    edf_ : float
        Effective degrees of freedom.
    lambda_selection_results_ : dict
        Candidates, GCV scores and the chosen value.
    n_features_in_ : int
        Always 2.

    See Also
    --------
    PSpline1DModel : P-spline regression in 1D.
    """

    def _row_tensor(self, X: np.ndarray) -> np.ndarray:
        b1 = self.spline_transformers_[0].transform(X[:, [0]])
        b2 = self.spline_transformers_[1].transform(X[:, [1]])
        return (b1[:, :, None] * b2[:, None, :]).reshape(X.shape[0], self.nbasis * self.nbasis)

    def fit(
        self,
        X: Union[np.ndarray, List[List[float]]],
        y: Union[np.ndarray, List[float]],
        sample_weight: Optional[Union[np.ndarray, List[float]]] = None,
        lam: Optional[float] = None,
    ) -> "PSpline2DModel":
        """Fit the tensor-product P-spline.

        Parameters
        ----------
        X : array-like of shape (n_samples, 2)
            Training coordinates.
        y : array-like of shape (n_samples,)
            Training targets.
        sample_weight : array-like of shape (n_samples,), optional
            Non-negative sample weights.
        lam : float, optional
            Fixed smoothing parameter; selected by GCV if None.

        Returns
        -------
        PSpline2DModel
            Fitted estimator (self).

        Raises
        ------
        ValueError
            If inputs are invalid or `lam` is not a positive number.
        """
        if lam is not None and (not isinstance(lam, (int, float)) or np.isnan(lam) or lam <= 0):
            raise ValueError("lam must be a positive number.")
        X, y, sample_weight = self._check_fit_inputs(X, y, sample_weight, num_features=2)
        self.n_features_in_ = 2

        self.spline_transformers_ = (self._make_spline_transformer(X[:, 0]), self._make_spline_transformer(X[:, 1]))
        marginal = self._marginal_penalty()
        eye = np.eye(self.nbasis)
        penalty = np.kron(marginal, eye) + np.kron(eye, marginal)

        cells, *stats = self._aggregate(X, y, sample_weight)
        design = self._row_tensor(cells)
        results = self._fit_coefficients(design, tuple(stats), (penalty,), int(np.sum(sample_weight > 0)), (lam,), (None,))

        self.coef_ = results["coef"].reshape(self.nbasis, self.nbasis)
        self.lambda_ = float(results["lambdas"][0])
        self.edf_ = results["edf"]
        self.lambda_selection_results_ = {
            "lambda_candidates": results["lambda_candidates"][:, 0],
            "gcv_scores": results["gcv_scores"],
            "best_lambda": self.lambda_,
            "best_gcv_score": results["best_gcv_score"],
        }
        return self

    def predict(self, X: Union[np.ndarray, List[List[float]]]) -> np.ndarray:
        """Predict the surface at arbitrary coordinate pairs.

        Parameters
        ----------
        X : array-like of shape (m, 2)
            Query coordinates.

        Returns
        -------
        np.ndarray of shape (m,)
            Predicted values.

        Raises
        ------
        sklearn.exceptions.NotFittedError
            If the model is not fitted.
        """
        check_is_fitted(self, ["coef_", "spline_transformers_"])
        X = check_array(X, ensure_2d=True, dtype=np.float64)
        if X.shape[1] != 2:
            raise ValueError(f"X must have exactly 2 features, got {X.shape[1]}")
        return self._row_tensor(X) @ self.coef_.ravel()

    def predict_grid(self, x1: Union[np.ndarray, List[float]], x2: Union[np.ndarray, List[float]]) -> np.ndarray:
        """Evaluate the surface on the Cartesian product of two grids.

        Parameters
        ----------
        x1 : array-like of shape (m1,)
            Grid for the first coordinate.
        x2 : array-like of shape (m2,)
            Grid for the second coordinate.

        Returns
        -------
        np.ndarray of shape (m1, m2)
            Surface values with ``out[i, j] = f(x1[i], x2[j])``.
        """
        check_is_fitted(self, ["coef_", "spline_transformers_"])
        x1 = check_array(x1, ensure_2d=False, dtype=np.float64).reshape(-1, 1)
        x2 = check_array(x2, ensure_2d=False, dtype=np.float64).reshape(-1, 1)
        return self.spline_transformers_[0].transform(x1) @ self.coef_ @ self.spline_transformers_[1].transform(x2).T
