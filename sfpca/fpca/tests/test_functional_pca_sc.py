import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose
from sklearn.exceptions import NotFittedError

from sfpca.fpca import CovarianceSmoothingParams, FpcaResult, SmoothedCovarianceFPCA, fpca_sc
from sfpca.utils import quad_weights


@pytest.fixture(scope="module")
def fitted_regular(true_model):
    argvals, _, _, y, _ = true_model
    return SmoothedCovarianceFPCA().fit(y, argvals=argvals)


@pytest.fixture(scope="module")
def fitted_irregular(true_model_irregular):
    argvals, _, _, y, _ = true_model_irregular
    return SmoothedCovarianceFPCA(npc=3).fit(y, argvals=argvals)


def _efunctions_close(est, true):
    return np.mean(np.abs(np.abs(est) - np.abs(true))) < np.mean(np.abs(true)) / 10


def _mean_relative_difference(target, current):
    return np.mean(np.abs(target - current)) / np.mean(np.abs(target))


def test_fpca_sc_regular_eigenvalues(fitted_regular, true_model):
    _, _, evalues, _, _ = true_model
    assert fitted_regular.npc_ == 3
    assert np.all(np.abs(fitted_regular.evalues_ / evalues - 1.0) < 0.05)


def test_fpca_sc_regular_efunctions(fitted_regular, true_model):
    argvals, efunctions, _, _, _ = true_model
    assert _efunctions_close(fitted_regular.efunctions_, efunctions)
    w = quad_weights(argvals)
    assert_allclose(fitted_regular.efunctions_.T @ np.diag(w) @ fitted_regular.efunctions_, np.eye(3), atol=1e-8)
    alignment = np.sum(fitted_regular.efunctions_ * (w * fitted_regular.mu_)[:, None], axis=0)
    assert np.all(alignment >= 0.0)


def test_fpca_sc_regular_scores(fitted_regular, true_model):
    _, _, _, _, scores = true_model
    assert _mean_relative_difference(np.abs(scores), np.abs(fitted_regular.scores_)) < 0.05


def test_fpca_sc_regular_mean(fitted_regular, true_model):
    _, _, _, y, _ = true_model
    mu = fitted_regular.mu_
    assert _mean_relative_difference(y.mean(axis=0), mu) < 0.01 * np.max(np.abs(mu))
    assert_allclose(mu, 1.0, atol=1e-6)


def test_fpca_sc_regular_small_error_variance(fitted_regular):
    assert 0.0 <= fitted_regular.error_var_ < 1e-3


def test_fpca_sc_fitted_values_are_reconstruction(fitted_regular):
    expected = fitted_regular.mu_ + fitted_regular.scores_ @ fitted_regular.efunctions_.T
    assert np.array_equal(fitted_regular.fitted_values(), expected)
    assert np.array_equal(fitted_regular.result_.reconstruct(), expected)


def test_fpca_sc_attributes(fitted_regular):
    m = fitted_regular.argvals_.size
    assert fitted_regular.raw_cov_.shape == (m, m)
    assert_allclose(fitted_regular.smoothed_cov_, fitted_regular.smoothed_cov_.T)
    eig_lambda = fitted_regular.eigen_results_["eig_lambda"]
    assert eig_lambda.shape == (m,)
    assert np.all(eig_lambda >= 0.0)
    assert np.all(np.diff(eig_lambda) <= 0.0)
    assert isinstance(fitted_regular.result_, FpcaResult)
    assert fitted_regular.result_.method == "fpca_sc"
    for key in ["initialization", "mu_estimation", "cov_estimation", "eigen_decomposition", "score_computation", "fit_total_time"]:
        assert fitted_regular.elapsed_time_[key] >= 0.0


def test_fpca_sc_pve_selection(fitted_regular):
    cumulative_pve = fitted_regular.eigen_results_["cumulative_pve"]
    npc = fitted_regular.npc_
    assert cumulative_pve[npc - 1] > 0.99
    assert npc == 1 or cumulative_pve[npc - 2] <= 0.99


@pytest.fixture(scope="module")
def fitted_noisy(true_model_noisy):
    argvals, _, _, y, _ = true_model_noisy
    return SmoothedCovarianceFPCA(npc=3).fit(y, argvals=argvals)


def test_fpca_sc_noisy_eigenstructure(fitted_noisy, true_model_noisy):
    _, efunctions, evalues, _, _ = true_model_noisy
    assert np.all(np.abs(fitted_noisy.evalues_ / evalues - 1.0) < 0.05)
    assert _efunctions_close(fitted_noisy.efunctions_, efunctions)


def test_fpca_sc_noisy_error_variance(fitted_noisy):
    assert abs(fitted_noisy.error_var_ - 0.05) < 0.01


def test_fpca_sc_noisy_mean_and_scores(fitted_noisy, true_model_noisy):
    _, _, _, y, scores = true_model_noisy
    mu = fitted_noisy.mu_
    assert _mean_relative_difference(np.ones_like(mu), mu) < 0.01
    assert _mean_relative_difference(y.mean(axis=0), mu) < 0.03
    # BLUP scores with a positive error variance stay close to the truth
    assert _mean_relative_difference(np.abs(scores), np.abs(fitted_noisy.scores_)) < 0.1
    residual = y - fitted_noisy.fitted_y_
    assert abs(np.var(residual) / 0.05 - 1.0) < 0.2


def test_fpca_sc_irregular_eigenvalues(fitted_irregular, true_model_irregular):
    _, efunctions, evalues, _, _ = true_model_irregular
    assert np.all(np.abs(fitted_irregular.evalues_ / evalues - 1.0) < 0.1)
    assert _efunctions_close(fitted_irregular.efunctions_, efunctions)


def test_fpca_sc_irregular_scores(fitted_irregular, true_model_irregular):
    _, _, _, _, scores = true_model_irregular
    ratio = np.abs(fitted_irregular.scores_) / np.abs(scores)
    assert np.mean(np.abs(ratio - 1.0) <= 0.15) >= 0.85


def test_fpca_sc_irregular_mean(fitted_irregular, true_model_irregular):
    _, _, _, y, _ = true_model_irregular
    mu = fitted_irregular.mu_
    assert _mean_relative_difference(np.nanmean(y, axis=0), mu) < 0.05 * np.max(np.abs(mu))
    assert np.array_equal(fitted_irregular.fitted_y_, mu + fitted_irregular.scores_ @ fitted_irregular.efunctions_.T)


def test_fpca_sc_is_deterministic(true_model_irregular, fitted_irregular):
    argvals, _, _, y, _ = true_model_irregular
    refit = SmoothedCovarianceFPCA(npc=3).fit(y, argvals=argvals)
    assert np.array_equal(refit.efunctions_, fitted_irregular.efunctions_)
    assert np.array_equal(refit.scores_, fitted_irregular.scores_)
    assert refit.error_var_ == fitted_irregular.error_var_


def test_fpca_sc_fixed_npc(true_model):
    argvals, _, _, y, _ = true_model
    res = fpca_sc(y, argvals=argvals, npc=1)
    assert res.npc == 1
    assert res.efunctions.shape == (100, 1)
    assert res.evalues.shape == (1,)
    assert res.scores.shape == (100, 1)
    assert res.yhat.shape == (100, 100)


def test_fpca_sc_y_pred_and_predict(true_model, true_model_irregular):
    argvals, _, _, y, _ = true_model
    y_new = true_model_irregular[3][:10]
    model = SmoothedCovarianceFPCA().fit(y, argvals=argvals, Y_pred=y_new)
    assert model.scores_.shape == (10, model.npc_)
    assert model.fitted_y_.shape == (10, 100)
    scores, fitted_y = model.predict(y_new)
    assert_allclose(scores, model.scores_)
    assert_allclose(fitted_y, model.fitted_y_)
    assert model.elapsed_time_["prediction"] >= 0.0


def test_fpca_sc_default_argvals(small_noisy_data):
    _, y = small_noisy_data
    model = SmoothedCovarianceFPCA(npc=2).fit(y)
    assert_allclose(model.argvals_, np.linspace(0.0, 1.0, y.shape[1]))


@pytest.mark.parametrize(
    "cov_params",
    [
        CovarianceSmoothingParams(cov_est_method=1),
        CovarianceSmoothingParams(use_symm=True),
        CovarianceSmoothingParams(make_pd=True),
        CovarianceSmoothingParams(random_int=True),
        CovarianceSmoothingParams(nbasis=6),
    ],
)
def test_fpca_sc_smoother_options(small_noisy_data, cov_params):
    argvals, y = small_noisy_data
    baseline = SmoothedCovarianceFPCA(npc=2).fit(y, argvals=argvals)
    model = SmoothedCovarianceFPCA(npc=2, cov_params=cov_params).fit(y, argvals=argvals)
    assert model.efunctions_.shape == (40, 2)
    assert_allclose(model.smoothed_cov_, model.smoothed_cov_.T)
    w = quad_weights(argvals)
    assert_allclose(model.efunctions_.T @ np.diag(w) @ model.efunctions_, np.eye(2), atol=1e-8)
    assert np.all(model.evalues_ > 0.0)
    assert np.isclose(model.evalues_[0], baseline.evalues_[0], rtol=0.1)
    if cov_params.make_pd:
        assert np.min(np.linalg.eigvalsh(model.smoothed_cov_)) >= -1e-10


def test_fpca_sc_without_centering(small_noisy_data):
    argvals, y = small_noisy_data
    model = SmoothedCovarianceFPCA(npc=2, center=False).fit(y, argvals=argvals)
    assert np.array_equal(model.mu_, np.zeros(40))


def test_fpca_sc_few_curves_warning(small_noisy_data):
    argvals, y = small_noisy_data
    with pytest.warns(UserWarning, match="less than or equal to 3"):
        model = SmoothedCovarianceFPCA(npc=1).fit(y[:3], argvals=argvals)
    assert any("less than or equal to 3" in msg for msg in model.result_.warnings)


def test_fpca_sc_all_zero_curves():
    with pytest.raises(ValueError, match="All eigenvalues"):
        SmoothedCovarianceFPCA(center=False).fit(np.zeros((10, 20)))


def test_fpca_sc_midpoint_rule_rejected(small_noisy_data):
    argvals, y = small_noisy_data
    with pytest.raises(ValueError, match="zero weight"):
        SmoothedCovarianceFPCA(integration="midpoint").fit(y, argvals=argvals)


def test_fpca_sc_invalid_inputs(small_noisy_data):
    argvals, y = small_noisy_data
    with pytest.raises(ValueError, match="npc must be between 1"):
        SmoothedCovarianceFPCA(npc=41).fit(y, argvals=argvals)
    with pytest.raises(ValueError, match="Y_pred must have 40 columns"):
        SmoothedCovarianceFPCA().fit(y, argvals=argvals, Y_pred=y[:, :10])
    with pytest.raises(ValueError):
        SmoothedCovarianceFPCA().fit(y, argvals=argvals[:-1])
    with pytest.raises(ValueError, match="All values in Y are missing"):
        SmoothedCovarianceFPCA().fit(np.full((5, 10), np.nan))


def test_fpca_sc_npc_bounded_by_number_of_curves():
    rng = np.random.default_rng(3)
    argvals = np.linspace(0.0, 1.0, 30)
    y = np.sin(2.0 * np.pi * argvals) + rng.standard_normal((4, 1)) * argvals + 0.1 * rng.standard_normal((4, 30))
    with pytest.raises(ValueError, match=r"min\(n, m\) = 4"):
        fpca_sc(y, argvals=argvals, npc=10)
    with pytest.raises(ValueError, match=r"min\(n, m\) = 4"):
        SmoothedCovarianceFPCA(npc=5).fit(y, argvals=argvals)


def test_fpca_sc_predict_wrong_grid(small_noisy_data):
    argvals, y = small_noisy_data
    model = SmoothedCovarianceFPCA(npc=2).fit(y, argvals=argvals)
    with pytest.raises(ValueError, match="Y_new must have 40 columns"):
        model.predict(y[:, :5])


def test_fpca_sc_not_fitted():
    model = SmoothedCovarianceFPCA()
    with pytest.raises(NotFittedError):
        model.fitted_values()
    with pytest.raises(NotFittedError):
        model.predict(np.ones((2, 5)))


def test_fpca_sc_verbose_logs_timings(small_noisy_data, caplog):
    argvals, y = small_noisy_data
    with caplog.at_level(logging.INFO, logger="sfpca.fpca.functional_pca_sc"):
        SmoothedCovarianceFPCA(npc=2, verbose=True).fit(y, argvals=argvals)
    assert "timings" in caplog.text


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"center": 1}, "center must be a boolean"),
        ({"pve": 1}, "pve must be a float"),
        ({"pve": 1.5}, "pve must be a float"),
        ({"npc": 0}, "npc must be a positive integer"),
        ({"npc": 2.0}, "npc must be a positive integer"),
        ({"integration": "simpson"}, "Unsupported quadrature rule"),
        ({"cov_params": {"nbasis": 10}}, "cov_params must be an instance"),
    ],
)
def test_fpca_sc_invalid_params(kwargs, match):
    with pytest.raises(ValueError, match=match):
        SmoothedCovarianceFPCA(**kwargs)


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"nbasis": 3}, "nbasis"),
        ({"nbasis": 10.0}, "nbasis"),
        ({"cov_est_method": 3}, "cov_est_method"),
        ({"cov_est_method": True}, "cov_est_method"),
        ({"use_symm": "yes"}, "use_symm"),
        ({"make_pd": 1}, "make_pd"),
        ({"random_int": None}, "random_int"),
    ],
)
def test_covariance_smoothing_params_invalid(kwargs, match):
    with pytest.raises(ValueError, match=match):
        CovarianceSmoothingParams(**kwargs)


def test_covariance_smoothing_params_repr():
    text = repr(CovarianceSmoothingParams(nbasis=8, use_symm=True))
    assert text.startswith("CovarianceSmoothingParams(")
    assert "nbasis=8" in text
    assert "use_symm=True" in text
