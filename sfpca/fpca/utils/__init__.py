"""FPCA utilities"""

# Authors: Ching-Chuan Chen
# SPDX-License-Identifier: MIT

from sfpca.fpca.utils.covariance_utils import get_measurement_error_variance, get_raw_cov, nearest_psd, smooth_covariance
from sfpca.fpca.utils.fpca_base_func_utils import get_eigen_analysis_results, get_fpca_phi, select_num_pcs_pve
from sfpca.fpca.utils.fpca_score_utils import get_fpca_blup_score
from sfpca.fpca.utils.rank_selection import get_npc_donoho_gavish
from sfpca.fpca.utils.ssvd_utils import RankOneComponent, gcv_criterion, penalized_rank_one_svd, select_smoothing_parameter

__all__ = [
    "RankOneComponent",
    "gcv_criterion",
    "get_eigen_analysis_results",
    "get_fpca_blup_score",
    "get_fpca_phi",
    "get_measurement_error_variance",
    "get_npc_donoho_gavish",
    "get_raw_cov",
    "nearest_psd",
    "penalized_rank_one_svd",
    "select_num_pcs_pve",
    "select_smoothing_parameter",
    "smooth_covariance",
]
