import numpy as np
import pytest

from sfpca.fpca.utils import get_npc_donoho_gavish


def _low_rank(n, m, singular_values, noise_sd, seed):
    rng = np.random.default_rng(seed)
    u, _ = np.linalg.qr(rng.standard_normal((n, len(singular_values))))
    v, _ = np.linalg.qr(rng.standard_normal((m, len(singular_values))))
    return (u * singular_values) @ v.T + noise_sd * rng.standard_normal((n, m))


def test_donoho_gavish_noise_free_rank():
    X = _low_rank(40, 80, [10.0, 6.0, 4.0], 0.0, 1)
    assert get_npc_donoho_gavish(X) == 3


def test_donoho_gavish_noisy_low_rank():
    X = _low_rank(50, 100, [100.0, 60.0], 1.0, 2)
    assert get_npc_donoho_gavish(X) == 2


def test_donoho_gavish_pure_noise_returns_at_least_one():
    X = np.random.default_rng(3).standard_normal((30, 60))
    npc = get_npc_donoho_gavish(X)
    assert 1 <= npc <= 30


@pytest.mark.parametrize("shape", [(60, 30), (2, 3000)])
def test_donoho_gavish_beta_out_of_range_warns(shape):
    X = np.random.default_rng(4).standard_normal(shape)
    diagnostics = []
    with pytest.warns(UserWarning, match="Approximation for beta"):
        npc = get_npc_donoho_gavish(X, diagnostics=diagnostics)
    assert 1 <= npc <= min(shape)
    assert len(diagnostics) == 1


def test_donoho_gavish_rejects_missing_values():
    X = np.ones((5, 10))
    X[0, 0] = np.nan
    with pytest.raises(ValueError, match="missing values"):
        get_npc_donoho_gavish(X)


def test_donoho_gavish_rejects_zero_matrix():
    with pytest.raises(ValueError, match="no positive singular value"):
        get_npc_donoho_gavish(np.zeros((5, 10)))
