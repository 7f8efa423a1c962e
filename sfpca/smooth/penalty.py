"""Discrete difference penalties for roughness regularization."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
from dataclasses import dataclass

import numpy as np
from scipy.linalg import eigh


def make_diff_operator(order: int, dim: int) -> np.ndarray:
    """Build the discrete difference operator of a given order.

    The operator is defined recursively: order 0 is the identity of size `dim`,
    and order d is the first difference (along rows) of the order d-1 operator.

    Parameters
    ----------
    order : int
        Non-negative difference order.
    dim : int
        Number of grid points; must be larger than `order`.

    Returns
    -------
    np.ndarray of shape (dim - order, dim)
        Difference operator D such that ``D @ f`` holds the `order`-th differences of ``f``.

    Raises
    ------
    ValueError
        If `order` is negative or not smaller than `dim`.
    """
    if not isinstance(order, (int, np.integer)) or order < 0:
        raise ValueError("order must be a non-negative integer.")
    if not isinstance(dim, (int, np.integer)) or dim <= order:
        raise ValueError(f"dim must be an integer larger than order ({order}), got {dim}.")
    if order == 0:
        return np.eye(dim)
    return np.diff(make_diff_operator(order - 1, dim), axis=0)


@dataclass(frozen=True)
class DifferencePenalty:
    """Gram matrix of a difference operator and its eigen decomposition.

    Attributes
    ----------
    order : int
        Difference order.
    omega : np.ndarray of shape (dim, dim)
        Penalty matrix ``D.T @ D``.
    eigenvalues : np.ndarray of shape (dim,)
        Eigenvalues of `omega` in descending order.
    eigenvectors : np.ndarray of shape (dim, dim)
        Orthonormal eigenvectors of `omega` (columns) aligned with `eigenvalues`.

    Notes
    -----
    The decomposition is computed once and shared read-only by every component
    and every power iteration of the penalized SVD.
    """

    order: int
    omega: np.ndarray
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray

    @classmethod
    def from_order(cls, order: int, dim: int) -> "DifferencePenalty":
        diff_op = make_diff_operator(order, dim)
        omega = diff_op.T @ diff_op
        eig_lambda, eig_vector = eigh(omega)
        ord_idx = np.argsort(eig_lambda)[::-1]
        eig_lambda = eig_lambda[ord_idx]
        eig_vector = eig_vector[:, ord_idx]
        for arr in (omega, eig_lambda, eig_vector):
            arr.flags.writeable = False
        return cls(order=order, omega=omega, eigenvalues=eig_lambda, eigenvectors=eig_vector)

    @property
    def dim(self) -> int:
        return self.omega.shape[0]
