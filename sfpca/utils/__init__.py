"""Utilities to help with functional data analysis."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT
from sfpca.utils.utility import check_argvals, check_observation_matrix, quad_weights, trapz, warn_and_record

__all__ = [
    "check_argvals",
    "check_observation_matrix",
    "quad_weights",
    "trapz",
    "warn_and_record",
]
