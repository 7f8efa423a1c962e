"""Smooth utilities for sfpca."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

from sfpca.smooth.penalty import DifferencePenalty, make_diff_operator
from sfpca.smooth.pspline_model_1d import PSpline1DModel
from sfpca.smooth.pspline_model_2d import PSpline2DModel

__all__ = [
    "DifferencePenalty",
    "PSpline1DModel",
    "PSpline2DModel",
    "make_diff_operator",
]
