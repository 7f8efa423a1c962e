"""Rank selection for noisy low-rank matrices."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
import logging
from typing import List, Optional, Union

import numpy as np
from scipy.linalg import svdvals
from sklearn.utils.validation import check_array

from sfpca.utils.utility import warn_and_record

logger = logging.getLogger(__name__)


def get_npc_donoho_gavish(X: Union[np.ndarray, List[List[float]]], diagnostics: Optional[List[str]] = None) -> int:
    """
    Estimate the number of signal components by singular value hard thresholding.

    Uses the approximation of Gavish and Donoho (2014) to the optimal hard
    threshold for a matrix with unknown noise level: singular values above
    ``omega(beta) * median(singular values)`` count as signal, where
    ``omega(beta) = 0.56 beta^3 - 0.95 beta^2 + 1.82 beta + 1.43`` and
    ``beta = n / m``.

    Parameters
    ----------
    X : array-like of shape (n, m)
        Fully observed data matrix.
    diagnostics : list of str, optional
        Collects the warning message when `beta` lies outside ``[1e-3, 1]``.

    Returns
    -------
    int
        ``min(max(1, #{d > omega * median(d)}), rank)`` where rank is the smallest
        number of singular values carrying more than 99.5% of their total.

    Raises
    ------
    ValueError
        If `X` contains NaN or has no positive singular value.

    Warns
    -----
    UserWarning
        If ``n / m`` lies outside ``[1e-3, 1]``, where the approximation of the
        threshold is not validated.

    References
    ----------
    Gavish, M. and Donoho, D. L. (2014). The optimal hard threshold for singular
    values is 4/sqrt(3). IEEE Transactions on Information Theory, 60(8), 5040-5053.
    """
    X = check_array(X, dtype=np.float64, ensure_all_finite=False)
    if np.isnan(X).any():
        raise ValueError("X must not contain missing values for rank selection.")
    n, m = X.shape
    beta = n / m
    if beta > 1 or beta < 1e-3:
        warn_and_record(
            f"Approximation for beta = {beta:.4g} may be invalid; the threshold is only validated for 1e-3 <= n/m <= 1.",
            UserWarning,
            diagnostics,
        )
    omega = 0.56 * beta**3 - 0.95 * beta**2 + 1.82 * beta + 1.43

    sv = svdvals(X)
    positive = sv > 0
    if not np.any(positive):
        raise ValueError("X has no positive singular value; the rank cannot be estimated.")
    sv_pos = sv[positive]
    rank = int(np.nonzero(np.cumsum(sv_pos) / np.sum(sv_pos) > 0.995)[0][0]) + 1
    num_above = int(np.sum(sv > omega * np.median(sv)))
    npc = min(max(1, num_above), rank)
    logger.debug("Donoho-Gavish rank selection: beta=%.4g, rank=%d, above threshold=%d, npc=%d", beta, rank, num_above, npc)
    return npc
