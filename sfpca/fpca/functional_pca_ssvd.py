"""Functional Principal Component Analysis by penalized rank one SVDs."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

import logging
import time
from typing import List, Literal, Optional, Union

import numpy as np
from scipy.interpolate import make_smoothing_spline
from scipy.linalg import svdvals
from sklearn.base import BaseEstimator
from sklearn.exceptions import ConvergenceWarning

from sfpca.fpca.fpca_result_class import FpcaResult
from sfpca.fpca.utils import get_npc_donoho_gavish, penalized_rank_one_svd
from sfpca.smooth import DifferencePenalty
from sfpca.utils import check_argvals, check_observation_matrix, warn_and_record

logger = logging.getLogger(__name__)


class SmoothingParameterSearchParams:
    """
    Search settings for the smoothing parameter of each power iteration.

    Parameters
    ----------
    method : {"grid", "bounded"}, default="grid"
        "grid" evaluates the GCV criterion on every value of `alpha_grid` and keeps
        the first minimizer; "bounded" runs a bounded scalar minimization over
        ``[lower_alpha, upper_alpha]``.
    alpha_grid : array-like, optional
        Candidate smoothing parameters; defaults to ``1.5 ** arange(-20, 41)``.
        Every value must be numeric and at least machine epsilon.
    lower_alpha : float, default=1e-5
        Lower bound of the bounded search.
    upper_alpha : float, default=1e7
        Upper bound of the bounded search.
    """

    def __init__(
        self,
        method: Literal["grid", "bounded"] = "grid",
        alpha_grid: Optional[Union[np.ndarray, List[float]]] = None,
        lower_alpha: float = 1e-5,
        upper_alpha: float = 1e7,
    ):
        """Validate and store the search settings.

        Raises
        ------
        ValueError
            If the method is unknown, the grid is invalid, or the bounds are not
            ``0 < lower_alpha < upper_alpha``.
        """
        if method not in ["grid", "bounded"]:
            raise ValueError("method must be either 'grid' or 'bounded'.")
        if alpha_grid is None:
            alpha_grid = 1.5 ** np.arange(-20, 41, dtype=np.float64)
        try:
            alpha_grid = np.asarray(alpha_grid, dtype=np.float64).ravel()
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid alpha_grid: values must be numeric ({e!s}).") from e
        if alpha_grid.size == 0 or np.any(np.isnan(alpha_grid)) or np.any(alpha_grid < np.finfo(np.float64).eps):
            raise ValueError("Invalid alpha_grid: it must be non-empty, without NaN, and every value at least machine epsilon.")
        for name, value in [("lower_alpha", lower_alpha), ("upper_alpha", upper_alpha)]:
            if not isinstance(value, (int, float)) or isinstance(value, bool) or not np.isfinite(value):
                raise ValueError(f"{name} must be a finite number.")
        if lower_alpha <= 0 or lower_alpha >= upper_alpha:
            raise ValueError("Smoothing parameter bounds must satisfy 0 < lower_alpha < upper_alpha.")
        self.method = method
        self.alpha_grid = alpha_grid
        self.lower_alpha = float(lower_alpha)
        self.upper_alpha = float(upper_alpha)

    def __repr__(self):
        """Return a concise representation of parameters for logging/debugging."""
        return (
            f"SmoothingParameterSearchParams(method='{self.method}', alpha_grid=<{self.alpha_grid.size} values in "
            f"[{self.alpha_grid.min():.4g}, {self.alpha_grid.max():.4g}]>, lower_alpha={self.lower_alpha}, "
            f"upper_alpha={self.upper_alpha})"
        )


def is_irregular_grid(argvals: np.ndarray, rel_tol: float = 0.05) -> bool:
    """Whether any gap of `argvals` deviates from the mean gap by more than `rel_tol` (relative)."""
    gaps = np.diff(argvals)
    ratio = gaps / np.mean(gaps)
    return bool(np.any((ratio > 1.0 + rel_tol) | (ratio < 1.0 - rel_tol)))


class PenalizedSVDFPCA(BaseEstimator):
    """
    Functional PCA by iterative penalized rank one SVDs for fully observed curves.

    Components are extracted one at a time from the (centered) data matrix by a
    regularized power algorithm whose right singular vectors are smoothed with a
    difference penalty; the smoothing parameter is re-selected by GCV at each
    step. Each component is removed from the residual before the next is
    extracted.

    Parameters
    ----------
    npc : int, optional
        Number of components; chosen by `get_npc_donoho_gavish` when None.
    center : bool, default=True
        Whether to subtract a smoothing spline fit of the column means.
    max_iter : int, default=15
        Maximum number of power iterations per component.
    tol : float, default=1e-4
        Convergence tolerance on the relative squared change of the right vector.
    diff_penalty : int, default=3
        Order of the difference penalty.
    alpha_params : SmoothingParameterSearchParams, default=SmoothingParameterSearchParams()
        Smoothing parameter search settings.
    verbose : bool, default=False
        If True, log the timing diagnostics stored in `elapsed_time_`.

    Attributes
    ----------
    argvals_ : np.ndarray of shape (m,)
        Grid of argument values.
    irregular_ : bool
        Whether the grid was detected as non-equidistant. Then `efunctions_` are
        orthonormal vectors of the function evaluations rather than evaluations
        of orthonormal functions.
    mu_ : np.ndarray of shape (m,)
        Estimated mean function.
    npc_ : int
        Number of extracted components.
    efunctions_ : np.ndarray of shape (m, npc_)
        Smooth right singular vectors, rescaled on regular grids.
    singular_values_ : np.ndarray of shape (npc_,)
        Singular values, rescaled on regular grids.
    scores_ : np.ndarray of shape (n, npc_)
        Left singular vectors times singular values.
    evalues_ : np.ndarray of shape (npc_,)
        Sample variances (``ddof=1``) of the score columns.
    n_iter_ : np.ndarray of shape (npc_,)
        Power iterations performed per component.
    alphas_ : np.ndarray of shape (npc_,)
        Last selected smoothing parameter per component.
    result_ : FpcaResult
        Immutable bundle of the fit, including emitted warnings.
    elapsed_time_ : Dict[str, float]
        Timings (seconds) per pipeline stage.

    Notes
    -----
    `evalues_` are the variances of the scores, not the squared singular values
    divided by ``n - 1``; the two differ in general and the former is kept for
    compatibility with existing analyses.

    References
    ----------
    Huang, J. Z., Shen, H., and Buja, A. (2008). Functional principal components
    analysis via penalized rank one approximation. Electronic Journal of
    Statistics, 2, 678-695.
    """

    def __init__(
        self,
        npc: Optional[int] = None,
        center: bool = True,
        max_iter: int = 15,
        tol: float = 1e-4,
        diff_penalty: int = 3,
        alpha_params: SmoothingParameterSearchParams = SmoothingParameterSearchParams(),
        verbose: bool = False,
    ) -> None:
        """Initialize estimator and validate top-level configuration.

        Raises
        ------
        ValueError
            If any parameter violates expected type/range consistency.
        """
        if npc is not None and (not isinstance(npc, (int, np.integer)) or isinstance(npc, bool) or npc < 1):
            raise ValueError("Invalid npc: it must be a positive integer.")
        if not isinstance(center, bool):
            raise ValueError("center must be a boolean value.")
        if not isinstance(max_iter, (int, np.integer)) or isinstance(max_iter, bool) or max_iter < 1:
            raise ValueError("max_iter must be a positive integer.")
        if not isinstance(tol, (int, float)) or isinstance(tol, bool) or not tol > 0:
            raise ValueError("tol must be a positive number.")
        if not isinstance(diff_penalty, (int, np.integer)) or isinstance(diff_penalty, bool) or diff_penalty < 0:
            raise ValueError("diff_penalty must be a non-negative integer.")
        if not isinstance(alpha_params, SmoothingParameterSearchParams):
            raise ValueError("alpha_params must be an instance of SmoothingParameterSearchParams.")
        self.npc = npc
        self.center = center
        self.max_iter = max_iter
        self.tol = tol
        self.diff_penalty = diff_penalty
        self.alpha_params = alpha_params
        self.verbose = verbose

    def fit(
        self,
        Y: Union[np.ndarray, List[List[float]]],
        argvals: Optional[Union[np.ndarray, List[float]]] = None,
    ) -> "PenalizedSVDFPCA":
        """Extract smooth principal components from a fully observed matrix.

        Parameters
        ----------
        Y : array-like of shape (n, m)
            Curves in rows; missing values are not allowed.
        argvals : array-like of shape (m,), optional
            Strictly increasing grid; defaults to ``linspace(0, 1, m)``.

        Returns
        -------
        PenalizedSVDFPCA
            The fitted estimator.

        Raises
        ------
        ValueError
            If `Y` has missing values, `argvals` is malformed, `npc` is not in
            ``[1, min(n, m)]``, or `diff_penalty` is not smaller than ``m``.

        Warns
        -----
        UserWarning
            If the grid is not equidistant, or if the leading singular value of
            the residual exceeds 1.1 times that of an extracted component.
        sklearn.exceptions.ConvergenceWarning
            If a component does not converge within `max_iter` iterations.
        """
        init_start_time = time.time_ns()
        diagnostics: List[str] = []
        Y = check_observation_matrix(Y, allow_missing=False)
        n, m = Y.shape
        irregular = False
        if argvals is not None:
            argvals = check_argvals(argvals, m)
            if is_irregular_grid(argvals):
                warn_and_record(
                    "Non-equidistant argvals grid detected: PenalizedSVDFPCA will return orthonormal eigenvectors of the "
                    "function evaluations, not evaluations of the orthonormal eigenfunctions. Use SmoothedCovarianceFPCA "
                    "for the latter instead.",
                    UserWarning,
                    diagnostics,
                )
                irregular = True
        else:
            argvals = check_argvals(None, m)
        if self.diff_penalty >= m:
            raise ValueError(f"diff_penalty must be smaller than the number of grid points ({m}), got {self.diff_penalty}.")

        npc = self.npc
        if npc is None:
            npc = get_npc_donoho_gavish(Y, diagnostics=diagnostics)
        if npc > min(n, m):
            raise ValueError(f"Invalid npc: it must be between 1 and min(n, m) = {min(n, m)}, got {npc}.")
        npc = int(npc)
        penalty = DifferencePenalty.from_order(int(self.diff_penalty), m)
        init_time = (time.time_ns() - init_start_time) / 1e9

        start_time = time.time_ns()
        if self.center and m >= 5:
            grid_index = np.arange(1, m + 1, dtype=np.float64)
            mu = make_smoothing_spline(grid_index, Y.mean(axis=0))(grid_index)
        elif self.center:
            # too few grid points for a GCV smoothing spline
            mu = Y.mean(axis=0)
        else:
            mu = np.zeros(m)
        residual = Y - mu
        mu_time = (time.time_ns() - start_time) / 1e9

        start_time = time.time_ns()
        U = np.zeros((n, npc))
        V = np.zeros((m, npc))
        d = np.zeros(npc)
        n_iter = np.zeros(npc, dtype=np.int64)
        alphas = np.zeros(npc)
        suspicious = []
        for k in range(npc):
            component = penalized_rank_one_svd(
                residual,
                penalty,
                max_iter=self.max_iter,
                tol=self.tol,
                method=self.alpha_params.method,
                alpha_grid=self.alpha_params.alpha_grid,
                lower_alpha=self.alpha_params.lower_alpha,
                upper_alpha=self.alpha_params.upper_alpha,
            )
            if not component.converged:
                warn_and_record(
                    f"Not converged for SV {k + 1}; relative difference was {component.rel_diff:.6g}.",
                    ConvergenceWarning,
                    diagnostics,
                )
            U[:, k], V[:, k], d[k] = component.u, component.v, component.d
            n_iter[k], alphas[k] = component.n_iter, component.alpha

            residual -= d[k] * np.outer(U[:, k], V[:, k])
            noise_sv = svdvals(residual)[0]
            if noise_sv > 1.1 * d[k]:
                suspicious.append(k + 1)
        if len(suspicious) > 0:
            warn_and_record(
                "First SV for remaining un-smooth signal larger than SV found for smooth signal for component(s) "
                + ",".join(str(k) for k in suspicious),
                UserWarning,
                diagnostics,
            )
        svd_time = (time.time_ns() - start_time) / 1e9

        # rescale so that the right vectors approximate orthonormal functions under the L2 inner product
        scale = 1.0 if irregular else float(np.sqrt(np.mean(np.diff(argvals))))
        V = V / scale
        d = d * scale
        scores = U * d
        evalues = np.var(scores, axis=0, ddof=1) if n > 1 else np.zeros(npc)
        logger.debug("Extracted %d components with %s power iterations", npc, n_iter.tolist())

        self.result_ = FpcaResult(
            method="fpca_ssvd",
            argvals=argvals,
            mu=mu,
            efunctions=V,
            evalues=evalues,
            scores=scores,
            npc=npc,
            warnings=tuple(diagnostics),
        )
        self.argvals_ = self.result_.argvals
        self.irregular_ = irregular
        self.mu_ = self.result_.mu
        self.npc_ = npc
        self.efunctions_ = self.result_.efunctions
        self.singular_values_ = d
        self.scores_ = self.result_.scores
        self.evalues_ = self.result_.evalues
        self.n_iter_ = n_iter
        self.alphas_ = alphas
        self.elapsed_time_ = {
            "initialization": init_time,
            "mu_estimation": mu_time,
            "rank_one_extraction": svd_time,
            "fit_total_time": (time.time_ns() - init_start_time) / 1e9,
        }
        if self.verbose:
            logger.info("PenalizedSVDFPCA timings (seconds): %s", self.elapsed_time_)
        return self


def fpca_ssvd(
    Y: Union[np.ndarray, List[List[float]]],
    argvals: Optional[Union[np.ndarray, List[float]]] = None,
    npc: Optional[int] = None,
    center: bool = True,
    max_iter: int = 15,
    tol: float = 1e-4,
    diff_penalty: int = 3,
    grid_search: bool = True,
    alpha_grid: Optional[Union[np.ndarray, List[float]]] = None,
    lower_alpha: float = 1e-5,
    upper_alpha: float = 1e7,
) -> FpcaResult:
    """Smooth functional principal components by penalized rank one SVDs.

    Functional wrapper around `PenalizedSVDFPCA`; ``grid_search=False`` selects
    the bounded search over ``[lower_alpha, upper_alpha]``.

    Returns
    -------
    FpcaResult
        Result tagged ``method="fpca_ssvd"``.
    """
    alpha_params = SmoothingParameterSearchParams(
        method="grid" if grid_search else "bounded",
        alpha_grid=alpha_grid,
        lower_alpha=lower_alpha,
        upper_alpha=upper_alpha,
    )
    estimator = PenalizedSVDFPCA(npc=npc, center=center, max_iter=max_iter, tol=tol, diff_penalty=diff_penalty, alpha_params=alpha_params)
    return estimator.fit(Y, argvals=argvals).result_
