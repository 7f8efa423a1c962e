"""The classes to save the results for FPCA fitting"""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

import numpy as np


def _read_only_copy(arr: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if arr is None:
        return None
    arr = np.array(arr, dtype=np.float64, copy=True)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class FpcaResult:
    """Immutable FPCA decomposition produced by one of the engines.

    Attributes
    ----------
    method : {"fpca_sc", "fpca_ssvd"}
        Engine that produced the result.
    argvals : np.ndarray of shape (m,)
        Grid on which all functions are evaluated.
    mu : np.ndarray of shape (m,)
        Estimated mean function (zeros if centering was disabled).
    efunctions : np.ndarray of shape (m, npc)
        Estimated eigenfunctions (columns).
    evalues : np.ndarray of shape (npc,)
        Non-negative eigenvalue estimates.
    scores : np.ndarray of shape (n, npc)
        Estimated scores of the scored curves.
    npc : int
        Number of retained components.
    error_var : float, optional
        Measurement error variance (smoothed covariance engine only).
    yhat : np.ndarray of shape (n, m), optional
        Fitted curves ``mu + scores @ efunctions.T`` when computed by the engine.
    warnings : tuple of str
        Messages of every warning emitted during the fit, in order.

    Notes
    -----
    Arrays are copied and flagged read-only on construction. Shape and sign
    invariants are checked in ``__post_init__``.
    """

    method: Literal["fpca_sc", "fpca_ssvd"]
    argvals: np.ndarray
    mu: np.ndarray
    efunctions: np.ndarray
    evalues: np.ndarray
    scores: np.ndarray
    npc: int
    error_var: Optional[float] = None
    yhat: Optional[np.ndarray] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.method not in ["fpca_sc", "fpca_ssvd"]:
            raise ValueError("method must be either 'fpca_sc' or 'fpca_ssvd'.")
        for name in ["argvals", "mu", "efunctions", "evalues", "scores", "yhat"]:
            object.__setattr__(self, name, _read_only_copy(getattr(self, name)))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        if not isinstance(self.npc, (int, np.integer)) or self.npc < 1:
            raise ValueError("npc must be a positive integer.")
        object.__setattr__(self, "npc", int(self.npc))

        m = self.argvals.size
        if self.mu.shape != (m,):
            raise ValueError(f"mu must have shape ({m},), got {self.mu.shape}.")
        if self.efunctions.shape != (m, self.npc):
            raise ValueError(f"efunctions must have shape ({m}, {self.npc}), got {self.efunctions.shape}.")
        if self.evalues.shape != (self.npc,):
            raise ValueError(f"evalues must have shape ({self.npc},), got {self.evalues.shape}.")
        if np.any(self.evalues < 0):
            raise ValueError("evalues must be non-negative.")
        if self.scores.ndim != 2 or self.scores.shape[1] != self.npc:
            raise ValueError(f"scores must have {self.npc} columns, got shape {self.scores.shape}.")
        if self.yhat is not None and self.yhat.shape != (self.scores.shape[0], m):
            raise ValueError(f"yhat must have shape ({self.scores.shape[0]}, {m}), got {self.yhat.shape}.")
        if self.error_var is not None:
            if self.error_var < 0:
                raise ValueError("error_var must be non-negative.")
            object.__setattr__(self, "error_var", float(self.error_var))

    @property
    def num_samples(self) -> int:
        return self.scores.shape[0]

    def reconstruct(self, scores: Optional[np.ndarray] = None) -> np.ndarray:
        """Rebuild curves from scores.

        Parameters
        ----------
        scores : np.ndarray of shape (k, npc), optional
            Scores to use; defaults to the stored `scores`.

        Returns
        -------
        np.ndarray of shape (k, m)
            ``mu + scores @ efunctions.T``.
        """
        scores = self.scores if scores is None else np.asarray(scores, dtype=np.float64)
        if scores.ndim != 2 or scores.shape[1] != self.npc:
            raise ValueError(f"scores must be a 2D array with {self.npc} columns.")
        return self.mu + scores @ self.efunctions.T
