"""Utility functions for numerical integration, input validation and fit diagnostics"""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
import warnings
from typing import List, Literal, Optional, Type, Union

import numpy as np
from sklearn.utils.validation import check_array


def trapz(y: np.ndarray, x: np.ndarray) -> Union[np.ndarray, float]:
    """
    Compute the integrated area using the trapezoidal rule.

    Parameters
    ----------
    y : array_like
        1D or 2D array of function values with respect to `x`.
        Accepted shapes:
        - (n_features,) for a single curve.
        - (n_samples, n_features) for multiple curves.
    x : array_like of shape (n_features,)
        1D array of x-coordinates corresponding to the function values.

    Returns
    -------
    np.ndarray or float
        If `y` was 1D, returns a scalar float.
        If `y` was 2D, returns a 1D array of shape (n_samples,) with the integral
        per row of `y`.

    Raises
    ------
    ValueError
        If `y` is not 1D or 2D, or if the number of points in `x` does not match
        the last dimension of `y`.

    Mathematical definition
    -----------------------
    For a single curve ``y`` of length ``n`` and ``x`` of the same length:

    .. math::
        T(y, x) = \\sum_{i=0}^{n-2} \\frac{x_{i+1}-x_i}{2}\\,\\big(y_i + y_{i+1}\\big).

    See Also
    --------
    quad_weights : The same rule expressed as a weight vector.
    """
    y = np.asarray(y, dtype=np.float64)
    x = np.asarray(x, dtype=np.float64)
    if y.ndim == 1:
        if y.shape[0] != x.shape[0]:
            raise ValueError("y and x must have the same length.")
        return float(np.dot(y[:-1] + y[1:], np.diff(x)) * 0.5)
    elif y.ndim == 2:
        if y.shape[1] != x.shape[0]:
            raise ValueError("The number of columns of y must match the size of x.")
        return np.matmul(y[:, :-1] + y[:, 1:], np.diff(x)) * 0.5
    else:
        raise ValueError("y must be 1D or 2D.")


def quad_weights(argvals: Union[np.ndarray, List[float]], method: Literal["trapezoidal", "midpoint"] = "trapezoidal") -> np.ndarray:
    """
    Compute quadrature weights on a 1D grid.

    Parameters
    ----------
    argvals : array_like of shape (m,)
        Ordered grid points, at least two.
    method : {"trapezoidal", "midpoint"}, default="trapezoidal"
        Quadrature rule. For the trapezoidal rule, interior points get the average
        of their two adjacent gaps and the endpoints half of their single gap.
        The midpoint rule assigns each gap to its right endpoint.

    Returns
    -------
    w : np.ndarray of shape (m,)
        Non-negative weights such that ``np.sum(w * f)`` approximates the integral
        of ``f`` over ``[argvals[0], argvals[-1]]``.

    Raises
    ------
    ValueError
        If `method` is not a supported rule or `argvals` is not a 1D grid with at
        least two points.
    """
    if method not in ["trapezoidal", "midpoint"]:
        raise ValueError(f"Unsupported quadrature rule '{method}'; must be one of ['trapezoidal', 'midpoint'].")
    argvals = check_array(argvals, ensure_2d=False, dtype=np.float64)
    if argvals.ndim != 1:
        raise ValueError("argvals must be a 1D array.")
    if argvals.size < 2:
        raise ValueError("argvals must have at least 2 points.")

    gaps = np.diff(argvals)
    if method == "trapezoidal":
        w = np.zeros_like(argvals)
        w[:-1] += 0.5 * gaps
        w[1:] += 0.5 * gaps
    else:
        w = np.concatenate(([0.0], gaps))
    return w


def check_argvals(argvals: Optional[Union[np.ndarray, List[float]]], num_points: int) -> np.ndarray:
    """Validate a grid of argument values or build the default one.

    Parameters
    ----------
    argvals : array_like of shape (m,), optional
        Strictly increasing, finite grid. If None, an equidistant grid on [0, 1]
        with `num_points` points is returned.
    num_points : int
        Required length of the grid (number of columns of the data).

    Returns
    -------
    np.ndarray of shape (num_points,)
        Validated float64 grid.

    Raises
    ------
    ValueError
        If the grid has the wrong length, is not finite or is not strictly increasing.
    """
    if argvals is None:
        return np.linspace(0.0, 1.0, num_points)
    argvals = check_array(argvals, ensure_2d=False, dtype=np.float64)
    if argvals.ndim != 1:
        raise ValueError("argvals must be a 1D array.")
    if argvals.size != num_points:
        raise ValueError(f"argvals must have length {num_points} to match the number of columns of the data, got {argvals.size}.")
    if np.any(np.diff(argvals) <= 0):
        raise ValueError("argvals must be strictly increasing.")
    return argvals


def check_observation_matrix(Y: Union[np.ndarray, List[List[float]]], allow_missing: bool = True, name: str = "Y") -> np.ndarray:
    """Validate a curves-by-grid observation matrix.

    Parameters
    ----------
    Y : array_like of shape (n, m)
        Rows are curves and columns are grid points. Missing cells are NaN.
    allow_missing : bool, default=True
        If False, any NaN is a precondition failure.
    name : str, default="Y"
        Name used in error messages.

    Returns
    -------
    np.ndarray of shape (n, m)
        Validated float64 matrix.

    Raises
    ------
    ValueError
        If `Y` is not 2D, contains infinite values, or contains NaN when
        `allow_missing` is False.
    """
    if Y is None:
        raise ValueError(f"{name} must be provided.")
    Y = check_array(Y, ensure_2d=False, dtype=np.float64, ensure_all_finite=False)
    if Y.ndim != 2:
        raise ValueError(f"{name} must be a 2D array with curves in rows and grid points in columns.")
    if Y.shape[0] < 1 or Y.shape[1] < 2:
        raise ValueError(f"{name} must have at least one curve and two grid points, got shape {Y.shape}.")
    if np.isinf(Y).any():
        raise ValueError(f"{name} must not contain infinite values.")
    if not allow_missing and np.isnan(Y).any():
        raise ValueError(f"No missing values in {name} allowed.")
    if np.isnan(Y).all():
        raise ValueError(f"All values in {name} are missing.")
    return Y


def warn_and_record(message: str, category: Type[Warning] = UserWarning, diagnostics: Optional[List[str]] = None) -> None:
    """Emit a warning and append its message to a diagnostics list.

    Parameters
    ----------
    message : str
        Warning message.
    category : type of Warning, default=UserWarning
        Warning category passed to `warnings.warn`.
    diagnostics : list of str, optional
        List collecting the messages of a fit; left untouched when None.
    """
    if diagnostics is not None:
        diagnostics.append(message)
    warnings.warn(message, category, stacklevel=3)
