"""Utility functions used for FPCA"""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
from typing import Tuple

import numpy as np
from scipy.linalg import eigh


def get_eigen_analysis_results(cov: np.ndarray, weights: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Eigen decomposition of a covariance surface under quadrature weighting.

    Parameters
    ----------
    cov : np.ndarray of shape (m, m)
        Symmetric covariance surface on the grid.
    weights : np.ndarray of shape (m,)
        Positive quadrature weights of the grid.

    Returns
    -------
    eig_lambda : np.ndarray of shape (m,)
        Eigenvalues of ``diag(sqrt(w)) cov diag(sqrt(w))`` in descending order,
        with non-positive values clamped to zero.
    eig_vector : np.ndarray of shape (m, m)
        Corresponding orthonormal eigenvectors (columns) of the weighted matrix.

    Raises
    ------
    ValueError
        If shapes do not match or a quadrature weight is not positive.

    Notes
    -----
    The eigenvalues approximate those of the covariance operator (Ramsay and
    Silverman, 2005, chapter 8) and eigenfunctions are recovered by
    ``eig_vector / sqrt(w)``, see `get_fpca_phi`.
    """
    m = weights.size
    if cov.shape != (m, m):
        raise ValueError(f"cov must have shape ({m}, {m}), got {cov.shape}.")
    if np.any(weights <= 0):
        raise ValueError("All quadrature weights must be positive to recover eigenfunctions.")
    w_sqrt = np.sqrt(weights)
    eig_lambda, eig_vector = eigh(w_sqrt[:, None] * cov * w_sqrt[None, :])
    ord_idx = np.argsort(eig_lambda)[::-1]
    eig_lambda = np.where(eig_lambda[ord_idx] > 0.0, eig_lambda[ord_idx], 0.0)
    return eig_lambda, eig_vector[:, ord_idx]


def select_num_pcs_pve(eig_lambda: np.ndarray, pve: float) -> Tuple[np.ndarray, int]:
    """
    Select the number of principal components by proportion of variance explained.

    Parameters
    ----------
    eig_lambda : np.ndarray of shape (k,)
        Non-negative eigenvalues in descending order.
    pve : float
        Target proportion in (0, 1).

    Returns
    -------
    cumulative_pve : np.ndarray of shape (k,)
        Cumulative proportion of variance explained.
    num_pcs : int
        Smallest number of components whose cumulative proportion strictly exceeds `pve`.

    Raises
    ------
    ValueError
        If all eigenvalues are zero.
    """
    total = np.sum(eig_lambda)
    if not total > 0:
        raise ValueError("All eigenvalues of the covariance are zero; no principal component can be selected.")
    cumulative_pve = np.cumsum(eig_lambda) / total
    above = np.nonzero(cumulative_pve > pve)[0]
    num_pcs = int(above[0]) + 1 if above.size > 0 else int(np.count_nonzero(eig_lambda))
    return cumulative_pve, num_pcs


def get_fpca_phi(num_pcs: int, weights: np.ndarray, eig_vector: np.ndarray, mu: np.ndarray) -> np.ndarray:
    """
    Recover eigenfunctions on the grid from weighted eigenvectors.

    Parameters
    ----------
    num_pcs : int
        Number of components to return (first `num_pcs`).
    weights : np.ndarray of shape (m,)
        Positive quadrature weights.
    eig_vector : np.ndarray of shape (m, k)
        Eigenvectors of the weighted covariance (columns).
    mu : np.ndarray of shape (m,)
        Mean function, used for sign alignment.

    Returns
    -------
    np.ndarray of shape (m, num_pcs)
        Eigenfunctions, orthonormal under the quadrature inner product
        (``phi.T @ diag(w) @ phi = I``), with signs chosen so that
        ``<phi_j, mu> >= 0``.
    """
    phi = eig_vector[:, :num_pcs] / np.sqrt(weights)[:, None]
    signs = np.sign(np.sum(phi * (weights * mu)[:, None], axis=0))
    signs[signs == 0] = 1.0
    return phi * signs
