import numpy as np
import pytest

from numpy.testing import assert_allclose
from unittest import TestCase

from statespace.augmentation import augment_states_with_shocks
from statespace.errors import DimensionMismatch
from statespace.filters import kalman_filter
from statespace.regimes import RegimeSchedule
from statespace.smoothers import _carter_kohn, carter_kohn_smoother
from statespace.system import StateSpaceSystem


def _system(scale=1.0):
    return StateSpaceSystem(
        TTT=scale * np.array([[0.7, 0.1], [0.0, 0.5]]),
        RRR=np.array([[1.0, 0.0], [0.3, 1.0]]),
        CCC=np.array([0.2, -0.1]),
        QQ=np.diag([0.5, 0.8]),
        ZZ=np.array([[1.0, 0.5]]),
        DD=np.array([0.1]),
        EE=np.array([[0.2]]),
    )


def _data(nobs, seed, ny=1):
    rng = np.random.default_rng(seed)
    return rng.normal(size=(ny, nobs))


def _rts_smoother(y, system, z0, P0):
    # Fixed-interval (Rauch-Tung-Striebel) smoother of the original system,
    # T x Ny data, ordinary inverses.
    T, R, C = system.TTT, system.RRR, system.CCC
    Z, D, H, Q = system.ZZ, system.DD, system.EE, system.QQ
    nobs = y.shape[0]
    s_pred, P_pred, s_filt, P_filt = [], [], [], []
    st, Pt = z0, P0
    for t in range(nobs):
        st = C + T @ st
        Pt = T @ Pt @ T.T + R @ Q @ R.T
        s_pred.append(st)
        P_pred.append(Pt)
        F = Z @ Pt @ Z.T + H
        K = Pt @ Z.T @ np.linalg.inv(F)
        st = st + K @ (y[t] - D - Z @ st)
        Pt = Pt - K @ Z @ Pt
        s_filt.append(st)
        P_filt.append(Pt)

    smoothed = [s_filt[-1]]
    for t in range(nobs - 2, -1, -1):
        J = P_filt[t] @ T.T @ np.linalg.inv(P_pred[t + 1])
        smoothed.insert(0, s_filt[t] + J @ (smoothed[0] - s_pred[t + 1]))
    return np.array(smoothed)


class TestCarterKohn(TestCase):

    def setUp(self):
        self.nobs = 40
        self.y = _data(self.nobs, seed=0)
        self.system = _system()
        self.z0 = np.array([0.5, -0.2])
        self.P0 = np.array([[1.0, 0.2], [0.2, 0.5]])

    def test_mean_matches_fixed_interval_smoother(self):
        states, shocks = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                              draw_states=False)
        expected = _rts_smoother(self.y.T, self.system, self.z0, self.P0)
        assert_allclose(states, expected.T, atol=1e-8)

    def test_dimensions(self):
        regimes = RegimeSchedule.from_breakpoints(self.nobs, [15])
        states, shocks = carter_kohn_smoother(regimes, self.y, [self.system, _system(0.5)],
                                              self.z0, self.P0, n_presample_periods=4, rng=0)
        self.assertEqual(states.shape, (2, self.nobs - 4))
        self.assertEqual(shocks.shape, (2, self.nobs - 4))

    def test_terminal_identity(self):
        states, shocks = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                              draw_states=False)
        systems_aug, z0_aug, P0_aug = augment_states_with_shocks(None, self.system,
                                                                 self.z0, self.P0)
        kal = kalman_filter(None, self.y, systems_aug, z0_aug, P0_aug)
        assert_allclose(states[:, -1], kal.s_T[:2])
        assert_allclose(shocks[:, -1], kal.s_T[2:])

    def test_draws_satisfy_transition(self):
        # RRR is invertible, so drawn shocks are pinned down by drawn states.
        states, shocks = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                              rng=np.random.default_rng(11))
        s = self.system
        for t in range(1, self.nobs):
            assert_allclose(states[:, t],
                            s.CCC + s.TTT @ states[:, t - 1] + s.RRR @ shocks[:, t],
                            atol=1e-6)

    def test_mean_shocks_satisfy_transition(self):
        states, shocks = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                              draw_states=False)
        s = self.system
        for t in range(1, self.nobs):
            assert_allclose(states[:, t],
                            s.CCC + s.TTT @ states[:, t - 1] + s.RRR @ shocks[:, t],
                            atol=1e-8)

    def test_regime_split_consistency(self):
        one = carter_kohn_smoother(RegimeSchedule.single(self.nobs), self.y, [self.system],
                                   self.z0, self.P0, rng=3)
        regimes = RegimeSchedule.from_breakpoints(self.nobs, [13, 27])
        three = carter_kohn_smoother(regimes, self.y, [self.system] * 3,
                                     self.z0, self.P0, rng=3)
        assert_allclose(one[0], three[0], atol=1e-12)
        assert_allclose(one[1], three[1], atol=1e-12)

    def test_single_regime_overload(self):
        a = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0, rng=5)
        b = carter_kohn_smoother([range(self.nobs)], self.y, [self.system],
                                 self.z0, self.P0, rng=5)
        assert_allclose(a[0], b[0])
        assert_allclose(a[1], b[1])

    def test_presample_trimming(self):
        full = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0, rng=9)
        trimmed = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                       n_presample_periods=6, rng=9)
        assert_allclose(trimmed[0], full[0][:, 6:])
        assert_allclose(trimmed[1], full[1][:, 6:])

    def test_reproducible_draws(self):
        a = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0, rng=123)
        b = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                 rng=np.random.default_rng(123))
        c = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0, rng=124)
        assert_allclose(a[0], b[0])
        assert_allclose(a[1], b[1])
        self.assertFalse(np.allclose(a[0], c[0]))

    def test_draws_are_centered_on_mean(self):
        mean, _ = carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                       draw_states=False)
        rng = np.random.default_rng(0)
        draws = np.mean([carter_kohn_smoother(None, self.y, self.system, self.z0, self.P0,
                                              rng=rng)[0] for _ in range(400)], axis=0)
        assert_allclose(draws, mean, atol=0.3)

    def test_stationary_initialization(self):
        states, shocks = carter_kohn_smoother(None, self.y, self.system, rng=1)
        self.assertTrue(np.all(np.isfinite(states)))
        self.assertTrue(np.all(np.isfinite(shocks)))

    def test_missing_data(self):
        y = self.y.copy()
        y[0, 10:15] = np.nan
        states, shocks = carter_kohn_smoother(None, y, self.system, self.z0, self.P0,
                                              draw_states=False)
        self.assertTrue(np.all(np.isfinite(states)))
        s = self.system
        for t in range(10, 15):
            assert_allclose(states[:, t],
                            s.CCC + s.TTT @ states[:, t - 1] + s.RRR @ shocks[:, t],
                            atol=1e-8)


def _backward_mean(kal, TTTs, regime_of):
    # Mean backward pass over a filtered augmented system; TTTs[t] is the
    # transition used in the step from t+1 back to t.
    nobs = kal.s_filt.shape[0]
    smoothed = kal.s_filt.copy()
    for t in range(nobs - 2, -1, -1):
        TT = TTTs[regime_of[t]]
        J = kal.P_filt[t] @ TT.T @ np.linalg.pinv(kal.P_pred[t + 1])
        smoothed[t] = kal.s_filt[t] + J @ (smoothed[t + 1] - kal.s_pred[t + 1])
    return smoothed


def test_backward_step_uses_regime_of_current_period():
    nobs = 20
    y = _data(nobs, seed=8)
    regimes = RegimeSchedule.from_breakpoints(nobs, [10])
    first = _system()
    TTT = first.TTT.copy()
    TTT[0, 0] = -0.4
    second = StateSpaceSystem(TTT, first.RRR, first.CCC, first.QQ, first.ZZ, first.DD, first.EE)
    z0, P0 = np.zeros(2), np.eye(2)

    states, shocks = carter_kohn_smoother(regimes, y, [first, second], z0, P0,
                                          draw_states=False)

    systems_aug, z0_aug, P0_aug = augment_states_with_shocks(regimes, [first, second], z0, P0)
    kal = kalman_filter(regimes, y, systems_aug, z0_aug, P0_aug)
    TTTs = [s.TTT for s in systems_aug]
    regime_of = regimes.period_regimes()

    expected = _backward_mean(kal, TTTs, regime_of)
    assert_allclose(states, expected[:, :2].T, atol=1e-8)
    assert_allclose(shocks, expected[:, 2:].T, atol=1e-8)

    # The next period's regime gives a different answer at the boundary.
    shifted = _backward_mean(kal, TTTs, np.r_[regime_of[1:], regime_of[-1]])
    assert np.max(np.abs(shifted[:, :2].T - states)) > 1e-3


def test_trivial_deterministic_system():
    # z_{t+1} = 0.5 z_t with observation y_t = z_t: the smoothed states
    # approach the observations as the measurement noise shrinks.
    nobs = 8
    y = (0.5 ** np.arange(1, nobs + 1) * 0.8)[None, :]
    errors = []
    for ee in [1e-2, 1e-4, 1e-6]:
        system = StateSpaceSystem(TTT=0.5, RRR=0.0, CCC=0.0, QQ=1.0, ZZ=1.0, DD=0.0, EE=ee)
        states, _ = carter_kohn_smoother(None, y, system, np.zeros(1), np.ones((1, 1)),
                                         draw_states=False)
        errors.append(np.max(np.abs(states - y)))
    assert errors[0] > errors[1] > errors[2]
    assert errors[2] < 1e-4


def test_smoother_numba_matches_python():
    rng = np.random.default_rng(2)
    y = _data(25, seed=2)
    systems_aug, z0_aug, P0_aug = augment_states_with_shocks(
        None, _system(), np.zeros(2), np.eye(2))
    kal = kalman_filter(None, y, systems_aug, z0_aug, P0_aug)
    TTT = np.ascontiguousarray(systems_aug[0].TTT[None])
    eps = rng.standard_normal((25, 4))
    regime_of = np.zeros(25, dtype=np.int64)

    args = (regime_of, TTT, kal.s_pred, kal.P_pred, kal.s_filt, kal.P_filt, eps, True, 1e-12)
    assert_allclose(_carter_kohn(*args), _carter_kohn.py_func(*args), atol=1e-6)


def test_schedule_length_mismatch():
    with pytest.raises(DimensionMismatch):
        carter_kohn_smoother(RegimeSchedule.single(10), _data(12, seed=0), _system())


@pytest.mark.parametrize("n_presample_periods", [-1, 12])
def test_presample_out_of_range(n_presample_periods):
    with pytest.raises(DimensionMismatch):
        carter_kohn_smoother(None, _data(12, seed=0), _system(),
                             n_presample_periods=n_presample_periods)
