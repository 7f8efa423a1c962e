"""Functional Principal Component Analysis by smoothed covariance."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

import logging
import time
from typing import List, Literal, Optional, Tuple, Union

import numpy as np
from sklearn.base import BaseEstimator
from sklearn.utils.validation import check_is_fitted

from sfpca.fpca.fpca_result_class import FpcaResult
from sfpca.fpca.utils import (
    get_eigen_analysis_results,
    get_fpca_blup_score,
    get_fpca_phi,
    get_measurement_error_variance,
    get_raw_cov,
    nearest_psd,
    select_num_pcs_pve,
    smooth_covariance,
)
from sfpca.smooth import PSpline1DModel
from sfpca.utils import check_argvals, check_observation_matrix, quad_weights, warn_and_record

logger = logging.getLogger(__name__)


class CovarianceSmoothingParams:
    """
    Parameters for the mean and covariance smoothers of `SmoothedCovarianceFPCA`.

    Parameters
    ----------
    nbasis : int, default=10
        Number of B-spline basis functions for the mean smoother and per margin
        of the covariance smoother.
    cov_est_method : {1, 2}, default=2
        1 smooths the products ``y_i(s) y_i(t)`` directly (slow for large data);
        2 smooths the pointwise averaged raw covariance weighted by pair counts.
    use_symm : bool, default=False
        With ``cov_est_method=2``, smooth only the upper triangle of the raw
        covariance and mirror the result.
    make_pd : bool, default=False
        Whether to project the smoothed covariance onto the nearest positive
        semi-definite matrix.
    random_int : bool, default=False
        Whether the mean smoother includes a random intercept per curve.
    """

    def __init__(
        self,
        nbasis: int = 10,
        cov_est_method: Literal[1, 2] = 2,
        use_symm: bool = False,
        make_pd: bool = False,
        random_int: bool = False,
    ):
        """Validate and store smoothing-related parameters.

        Raises
        ------
        ValueError
            If any parameter violates its expected type or range.
        """
        if not isinstance(nbasis, int) or isinstance(nbasis, bool) or nbasis < 4:
            raise ValueError("Number of basis functions, nbasis, must be an integer of at least 4.")
        if cov_est_method not in [1, 2] or isinstance(cov_est_method, bool):
            raise ValueError("cov_est_method must be either 1 (direct) or 2 (two-step).")
        if not isinstance(use_symm, bool):
            raise ValueError("use_symm must be a boolean value.")
        if not isinstance(make_pd, bool):
            raise ValueError("make_pd must be a boolean value.")
        if not isinstance(random_int, bool):
            raise ValueError("random_int must be a boolean value.")
        self.nbasis = nbasis
        self.cov_est_method = cov_est_method
        self.use_symm = use_symm
        self.make_pd = make_pd
        self.random_int = random_int

    def __repr__(self):
        """Return a concise representation of parameters for logging/debugging."""
        return (
            f"CovarianceSmoothingParams(nbasis={self.nbasis}, cov_est_method={self.cov_est_method}, "
            f"use_symm={self.use_symm}, make_pd={self.make_pd}, random_int={self.random_int})"
        )


class SmoothedCovarianceFPCA(BaseEstimator):
    """
    Functional PCA by smoothed covariance for curves observed on a common grid.

    The mean is estimated by a P-spline fit to the pooled observations, the raw
    covariance of the demeaned curves is smoothed by a tensor-product P-spline,
    and the smoothed surface is decomposed under quadrature weighting. Scores are
    the best linear unbiased predictors given the estimated eigenstructure and
    measurement error variance, so curves with missing cells are handled.

    Parameters
    ----------
    center : bool, default=True
        Whether to estimate and subtract a smooth mean function.
    pve : float, default=0.99
        Proportion of variance explained used to choose the number of components.
    npc : int, optional
        Number of components, at most ``min(n, m)``; overrides `pve` when given.
        A `pve`-selected count is capped at the number of curves.
    integration : {"trapezoidal", "midpoint"}, default="trapezoidal"
        Quadrature rule.
    cov_params : CovarianceSmoothingParams, default=CovarianceSmoothingParams()
        Smoother settings.
    verbose : bool, default=False
        If True, log the timing diagnostics stored in `elapsed_time_`.

    Attributes
    ----------
    argvals_ : np.ndarray of shape (m,)
        Grid of argument values.
    mu_ : np.ndarray of shape (m,)
        Estimated mean function.
    raw_cov_ : np.ndarray of shape (m, m)
        Pointwise averaged raw covariance (NaN where no curve observes a pair).
    smoothed_cov_ : np.ndarray of shape (m, m)
        Smoothed (and optionally projected) covariance surface.
    eigen_results_ : dict
        ``{"eig_lambda": all clamped eigenvalues, "eig_vector": weighted eigenvectors,
        "cumulative_pve": cumulative proportion of variance explained}``.
    npc_ : int
        Number of retained components.
    efunctions_ : np.ndarray of shape (m, npc_)
        Eigenfunctions, orthonormal under the quadrature inner product.
    evalues_ : np.ndarray of shape (npc_,)
        Eigenvalues.
    error_var_ : float
        Measurement error variance.
    scores_ : np.ndarray of shape (n_pred, npc_)
        Scores of the scored curves (`Y_pred` if given, else `Y`).
    fitted_y_ : np.ndarray of shape (n_pred, m)
        ``mu_ + scores_ @ efunctions_.T``.
    result_ : FpcaResult
        Immutable bundle of the fit, including emitted warnings.
    elapsed_time_ : Dict[str, float]
        Timings (seconds) per pipeline stage.

    See Also
    --------
    PenalizedSVDFPCA : FPCA by penalized rank one SVDs for fully observed data.

    References
    ----------
    Di, C., Crainiceanu, C., Caffo, B., and Punjabi, N. (2009). Multilevel
    functional principal component analysis. Annals of Applied Statistics, 3, 458-488.

    Goldsmith, J., Greven, S., and Crainiceanu, C. (2013). Corrected confidence
    bands for functional data using principal components. Biometrics, 69(1), 41-51.
    """

    def __init__(
        self,
        center: bool = True,
        pve: float = 0.99,
        npc: Optional[int] = None,
        integration: Literal["trapezoidal", "midpoint"] = "trapezoidal",
        cov_params: CovarianceSmoothingParams = CovarianceSmoothingParams(),
        verbose: bool = False,
    ) -> None:
        """Initialize estimator and validate top-level configuration.

        Raises
        ------
        ValueError
            If any parameter violates expected type/range consistency.
        """
        if not isinstance(center, bool):
            raise ValueError("center must be a boolean value.")
        if not isinstance(pve, float) or not (0 < pve < 1):
            raise ValueError("pve must be a float between 0 and 1.")
        if npc is not None and (not isinstance(npc, (int, np.integer)) or isinstance(npc, bool) or npc < 1):
            raise ValueError("npc must be a positive integer.")
        if integration not in ["trapezoidal", "midpoint"]:
            raise ValueError(f"Unsupported quadrature rule '{integration}'; must be one of ['trapezoidal', 'midpoint'].")
        if not isinstance(cov_params, CovarianceSmoothingParams):
            raise ValueError("cov_params must be an instance of CovarianceSmoothingParams.")
        self.center = center
        self.pve = pve
        self.npc = npc
        self.integration = integration
        self.cov_params = cov_params
        self.verbose = verbose

    def _estimate_mean(self, Y: np.ndarray, mask: np.ndarray, argvals: np.ndarray) -> np.ndarray:
        if not self.center:
            return np.zeros(argvals.size)
        rows, cols = np.nonzero(mask)
        model = PSpline1DModel(nbasis=self.cov_params.nbasis)
        model.fit(argvals[cols], Y[mask], groups=rows if self.cov_params.random_int else None)
        logger.debug("Mean smoother selected lambda=%.4g (random intercepts: %s)", model.lambda_, self.cov_params.random_int)
        return model.predict(argvals)

    def fit(
        self,
        Y: Union[np.ndarray, List[List[float]]],
        argvals: Optional[Union[np.ndarray, List[float]]] = None,
        Y_pred: Optional[Union[np.ndarray, List[List[float]]]] = None,
    ) -> "SmoothedCovarianceFPCA":
        """Fit the mean, covariance, eigenstructure, and scores.

        Parameters
        ----------
        Y : array-like of shape (n, m)
            Curves in rows; missing cells are NaN.
        argvals : array-like of shape (m,), optional
            Strictly increasing grid; defaults to ``linspace(0, 1, m)``.
        Y_pred : array-like of shape (n_pred, m), optional
            Curves to score with the estimated eigenstructure; defaults to `Y`.

        Returns
        -------
        SmoothedCovarianceFPCA
            The fitted estimator.

        Raises
        ------
        ValueError
            If inputs or options are invalid, the selected components include a
            zero eigenvalue, or scores are ill-posed (zero measurement error and
            a curve with fewer observed points than components).
        """
        init_start_time = time.time_ns()
        diagnostics: List[str] = []
        Y = check_observation_matrix(Y, allow_missing=True)
        n, m = Y.shape
        argvals = check_argvals(argvals, m)
        Y_pred = Y if Y_pred is None else check_observation_matrix(Y_pred, allow_missing=True, name="Y_pred")
        if Y_pred.shape[1] != m:
            raise ValueError(f"Y_pred must have {m} columns to match Y, got {Y_pred.shape[1]}.")
        if self.npc is not None and self.npc > min(n, m):
            raise ValueError(f"npc must be between 1 and min(n, m) = {min(n, m)}, got {self.npc}.")
        weights = quad_weights(argvals, method=self.integration)
        if np.any(weights <= 0):
            raise ValueError(f"The '{self.integration}' rule gives a zero weight on this grid; eigenfunctions cannot be recovered.")
        if n <= 3:
            warn_and_record(
                "The number of curves is less than or equal to 3. This may lead to unreliable results in functional PCA.",
                UserWarning,
                diagnostics,
            )
        mask = ~np.isnan(Y)
        init_time = (time.time_ns() - init_start_time) / 1e9

        start_time = time.time_ns()
        mu = self._estimate_mean(Y, mask, argvals)
        mu_time = (time.time_ns() - start_time) / 1e9

        start_time = time.time_ns()
        y_tilde = Y - mu
        _, cov_count, raw_cov = get_raw_cov(y_tilde, mask)
        smoothed_cov = smooth_covariance(
            y_tilde,
            mask,
            argvals,
            cov_count,
            raw_cov,
            cov_est_method=self.cov_params.cov_est_method,
            use_symm=self.cov_params.use_symm,
            nbasis=self.cov_params.nbasis,
        )
        if self.cov_params.make_pd:
            smoothed_cov = nearest_psd(smoothed_cov, diagnostics=diagnostics)
        cov_time = (time.time_ns() - start_time) / 1e9

        start_time = time.time_ns()
        eig_lambda, eig_vector = get_eigen_analysis_results(smoothed_cov, weights)
        cumulative_pve, npc_pve = select_num_pcs_pve(eig_lambda, self.pve)
        npc = min(npc_pve, n) if self.npc is None else int(self.npc)
        if eig_lambda[npc - 1] <= 0:
            raise ValueError(
                f"Only {np.count_nonzero(eig_lambda)} positive eigenvalues are available; npc={npc} would select a zero eigenvalue."
            )
        efunctions = get_fpca_phi(npc, weights, eig_vector, mu)
        evalues = eig_lambda[:npc]
        logger.debug("Selected %d principal components (pve=%.4f)", npc, cumulative_pve[npc - 1])
        eigen_time = (time.time_ns() - start_time) / 1e9

        start_time = time.time_ns()
        fitted_cov = efunctions @ np.diag(evalues) @ efunctions.T
        sigma2 = get_measurement_error_variance(np.diagonal(raw_cov).copy(), fitted_cov, argvals, self.integration, diagnostics)
        sigma2_time = (time.time_ns() - start_time) / 1e9

        start_time = time.time_ns()
        scores, fitted_y = get_fpca_blup_score(Y_pred, mu, efunctions, evalues, sigma2)
        score_time = (time.time_ns() - start_time) / 1e9

        self.result_ = FpcaResult(
            method="fpca_sc",
            argvals=argvals,
            mu=mu,
            efunctions=efunctions,
            evalues=evalues,
            scores=scores,
            npc=npc,
            error_var=sigma2,
            yhat=fitted_y,
            warnings=tuple(diagnostics),
        )
        self.argvals_ = self.result_.argvals
        self.mu_ = self.result_.mu
        self.raw_cov_ = raw_cov
        self.smoothed_cov_ = smoothed_cov
        self.eigen_results_ = {"eig_lambda": eig_lambda, "eig_vector": eig_vector, "cumulative_pve": cumulative_pve}
        self.npc_ = npc
        self.efunctions_ = self.result_.efunctions
        self.evalues_ = self.result_.evalues
        self.error_var_ = self.result_.error_var
        self.scores_ = self.result_.scores
        self.fitted_y_ = self.result_.yhat
        self.elapsed_time_ = {
            "initialization": init_time,
            "mu_estimation": mu_time,
            "cov_estimation": cov_time,
            "eigen_decomposition": eigen_time,
            "measurement_error_variance": sigma2_time,
            "score_computation": score_time,
            "fit_total_time": (time.time_ns() - init_start_time) / 1e9,
        }
        if self.verbose:
            logger.info("SmoothedCovarianceFPCA timings (seconds): %s", self.elapsed_time_)
        return self

    def fitted_values(self) -> np.ndarray:
        """Return fitted curves of the scored data.

        Returns
        -------
        np.ndarray of shape (n_pred, m)
            ``mu_ + scores_ @ efunctions_.T``.

        Raises
        ------
        sklearn.exceptions.NotFittedError
            If called before fitting.
        """
        check_is_fitted(self, ["result_", "fitted_y_"])
        return self.fitted_y_

    def predict(self, Y_new: Union[np.ndarray, List[List[float]]]) -> Tuple[np.ndarray, np.ndarray]:
        """Predict scores and fitted curves for new curves on the same grid.

        Parameters
        ----------
        Y_new : array-like of shape (k, m)
            New curves; missing cells are NaN.

        Returns
        -------
        scores : np.ndarray of shape (k, npc_)
            Predicted scores.
        fitted_y : np.ndarray of shape (k, m)
            ``mu_ + scores @ efunctions_.T``.

        Raises
        ------
        sklearn.exceptions.NotFittedError
            If called before fitting.
        ValueError
            If `Y_new` does not match the grid or its scores are ill-posed.
        """
        check_is_fitted(self, ["result_", "fitted_y_"])
        Y_new = check_observation_matrix(Y_new, allow_missing=True, name="Y_new")
        if Y_new.shape[1] != self.argvals_.size:
            raise ValueError(f"Y_new must have {self.argvals_.size} columns, got {Y_new.shape[1]}.")
        start_time = time.time_ns()
        scores, fitted_y = get_fpca_blup_score(Y_new, self.mu_, self.efunctions_, self.evalues_, self.error_var_)
        self.elapsed_time_["prediction"] = (time.time_ns() - start_time) / 1e9
        return scores, fitted_y


def fpca_sc(
    Y: Union[np.ndarray, List[List[float]]],
    Y_pred: Optional[Union[np.ndarray, List[List[float]]]] = None,
    argvals: Optional[Union[np.ndarray, List[float]]] = None,
    random_int: bool = False,
    nbasis: int = 10,
    pve: float = 0.99,
    npc: Optional[int] = None,
    use_symm: bool = False,
    make_pd: bool = False,
    center: bool = True,
    cov_est_method: Literal[1, 2] = 2,
    integration: Literal["trapezoidal", "midpoint"] = "trapezoidal",
) -> FpcaResult:
    """Functional principal components analysis by smoothed covariance.

    Functional wrapper around `SmoothedCovarianceFPCA`; see that class for the
    meaning of every option.

    Returns
    -------
    FpcaResult
        Result tagged ``method="fpca_sc"`` with `error_var` and `yhat` set.

    Examples
    --------
    >>> import numpy as np
    >>> from sfpca.fpca import fpca_sc
    >>> t = np.linspace(0, 1, 50)
    >>> rng = np.random.default_rng(0)
    >>> Y = rng.standard_normal((40, 1)) * np.sin(np.pi * t) + 0.1 * rng.standard_normal((40, 50))
    >>> res = fpca_sc(Y, argvals=t, npc=1)
    >>> res.efunctions.shape
    (50, 1)
    """
    cov_params = CovarianceSmoothingParams(
        nbasis=nbasis,
        cov_est_method=cov_est_method,
        use_symm=use_symm,
        make_pd=make_pd,
        random_int=random_int,
    )
    estimator = SmoothedCovarianceFPCA(center=center, pve=pve, npc=npc, integration=integration, cov_params=cov_params)
    return estimator.fit(Y, argvals=argvals, Y_pred=Y_pred).result_
