"""Functional principal component analysis engines."""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

from sfpca.fpca.fpca_result_class import FpcaResult
from sfpca.fpca.functional_data_generator import FunctionalDataGenerator, orthonormal_polynomials
from sfpca.fpca.functional_pca_sc import CovarianceSmoothingParams, SmoothedCovarianceFPCA, fpca_sc
from sfpca.fpca.functional_pca_ssvd import PenalizedSVDFPCA, SmoothingParameterSearchParams, fpca_ssvd, is_irregular_grid
from sfpca.fpca.utils import get_npc_donoho_gavish, nearest_psd

__all__ = [
    "CovarianceSmoothingParams",
    "FpcaResult",
    "FunctionalDataGenerator",
    "PenalizedSVDFPCA",
    "SmoothedCovarianceFPCA",
    "SmoothingParameterSearchParams",
    "fpca_sc",
    "fpca_ssvd",
    "get_npc_donoho_gavish",
    "is_irregular_grid",
    "nearest_psd",
    "orthonormal_polynomials",
]
