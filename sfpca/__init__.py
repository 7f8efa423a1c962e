"""Configure global settings and get information about the working environment."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

# Smoothed Functional Principal Component Analysis (sfpca) for Python
# ===================================================================
#
# sfpca estimates a low-dimensional basis of eigenfunctions for a sample of noisy,
# possibly incompletely observed curves on a common grid. Two engines are provided:
# FPCA by smoothed covariance (penalized spline smoothing of the covariance surface
# followed by a quadrature-weighted eigen decomposition) and FPCA by iterative
# penalized rank one SVDs (Huang, Shen and Buja, 2008).
#
# The estimators follow scikit-learn's interface and utilities so that they are easy to
# integrate with other machine learning workflows.

import importlib as _importlib
import logging

logger = logging.getLogger(__name__)


# PEP0440 compatible formatted version, see:
# https://www.python.org/dev/peps/pep-0440/
#
# Generic release markers:
#   X.Y.0   # For first release after an increment in Y
#   X.Y.Z   # For bugfix releases
#
# Admissible pre-release markers:
#   X.Y.ZaN   # Alpha release
#   X.Y.ZbN   # Beta release
#   X.Y.ZrcN  # Release Candidate
#   X.Y.Z     # Final release
#
# Dev branch marker is: 'X.Y.dev' or 'X.Y.devN' where N is an integer.
# 'X.Y.dev0' is the canonical version of 'X.Y.dev'

__version__ = "0.1.0.dev0"

from sfpca.fpca import (  # noqa: F401 E402
    FpcaResult,
    FunctionalDataGenerator,
    PenalizedSVDFPCA,
    SmoothedCovarianceFPCA,
    fpca_sc,
    fpca_ssvd,
)

_submodules = [
    "fpca",
    "smooth",
    "utils",
]

__all__ = _submodules + [
    "FpcaResult",
    "FunctionalDataGenerator",
    "PenalizedSVDFPCA",
    "SmoothedCovarianceFPCA",
    "fpca_sc",
    "fpca_ssvd",
]


def __dir__():
    return __all__ + ["__version__"]


def __getattr__(name):
    if name in _submodules:
        return _importlib.import_module(f"sfpca.{name}")
    else:
        try:
            return globals()[name]
        except KeyError:
            raise AttributeError(f"Module 'sfpca' has no attribute '{name}'")
