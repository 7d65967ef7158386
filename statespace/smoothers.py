"""
Carter-Kohn simulation smoother on the shock-augmented state space.

Carter and Kohn, "On Gibbs Sampling for State Space Models" (Biometrika,
1994). The states are sampled recursively backwards from their distribution
conditional on the full sample and on the states already drawn for t+1..T.
Unlike the Durbin-Koopman simulation smoother this recursion inverts
potentially singular covariance matrices, which is done with an SVD
pseudoinverse.
"""

from __future__ import annotations

import numpy as np

from numba import jit

from .augmentation import augment_states_with_shocks
from .errors import DimensionMismatch, NumericalError
from .filters import _as_data, kalman_filter
from .linalg import PINV_RTOL, _pinv, _sqrt_psd
from .logging_config import get_logger
from .regimes import as_regime_schedule
from .system import as_system_list, check_conforming_systems

logger = get_logger("smoothers")


@jit(nopython=True)
def _carter_kohn(regime_of, TTT, s_pred, P_pred, s_filt, P_filt, eps, draw_states, rtol):
    nobs, ns = s_filt.shape
    smoothed = np.zeros((nobs, ns))

    # The smoothed state in the last period is the filtered state.
    s = s_filt[nobs - 1].copy()
    if draw_states:
        s = s + _sqrt_psd(P_filt[nobs - 1]) @ eps[nobs - 1]
    smoothed[nobs - 1] = s

    for t in range(nobs - 2, -1, -1):
        # Transition of the regime containing t, also at a regime change.
        TT = TTT[regime_of[t]]
        Pt = P_filt[t]

        J = Pt @ TT.T @ _pinv(P_pred[t + 1], rtol)
        mu = s_filt[t] + J @ (smoothed[t + 1] - s_pred[t + 1])
        if draw_states:
            Sigma = Pt - J @ TT @ Pt
            smoothed[t] = mu + _sqrt_psd(Sigma) @ eps[t]
        else:
            smoothed[t] = mu

    return smoothed


def carter_kohn_smoother(regimes, data, systems, z0=None, P0=None, *,
                         n_presample_periods=0, draw_states=True, rng=None,
                         pinv_rtol=PINV_RTOL):
    """
    Draw (or average) states and shocks given the full sample.

    The state space before augmentation is

        z_{t+1} = CCC + TTT z_t + RRR e_{t+1},   e ~ N(0, QQ)
        y_t     = DD  + ZZ  z_t + u_t,           u ~ N(0, EE)

    It is augmented with the shocks, Kalman filtered, and smoothed backwards;
    states and shocks are then indexed out of the augmented smoothed states.

    Parameters
    ----------
    regimes : RegimeSchedule, sequence of ranges, or None
        ``None`` with a single system smooths the whole sample as one regime.
    data : array_like
        ``Ny x T`` observations, NaN for missing.
    systems : StateSpaceSystem or sequence of StateSpaceSystem
        One system per regime, all with the same (Nz, Ne, Ny).
    z0, P0 : array_like, optional
        Initial state mean and covariance; stationary distribution of the
        first regime when omitted.
    n_presample_periods : int
        Number of leading periods dropped from the output.
    draw_states : bool
        Draw from N(z_{t|T}, P_{t|T}) when True; return the smoothed mean
        (the fixed-interval smoother) when False.
    rng : numpy.random.Generator or int, optional
        Source of the standard normal draws. An int is used as a seed.
    pinv_rtol : float
        Relative tolerance of the pseudoinverses.

    Returns
    -------
    smoothed_states : numpy.ndarray
        ``Nz x (T - n_presample_periods)``.
    smoothed_shocks : numpy.ndarray
        ``Ne x (T - n_presample_periods)``.
    """
    systems = as_system_list(systems)
    nz, ne, ny = check_conforming_systems(systems)
    nobs = _as_data(data, ny).shape[0]

    regimes = as_regime_schedule(regimes, nobs)
    if regimes.n_periods != nobs:
        raise DimensionMismatch(
            f"Regime schedule covers {regimes.n_periods} periods but data has {nobs}."
        )
    n_presample_periods = int(n_presample_periods)
    if n_presample_periods < 0 or n_presample_periods >= nobs:
        raise DimensionMismatch(
            f"n_presample_periods must be in [0, {nobs}), got {n_presample_periods}."
        )

    systems_aug, z0_aug, P0_aug = augment_states_with_shocks(regimes, systems, z0, P0)
    kal = kalman_filter(regimes, data, systems_aug, z0_aug, P0_aug, pinv_rtol=pinv_rtol)

    if draw_states:
        if not isinstance(rng, np.random.Generator):
            rng = np.random.default_rng(rng)
        eps = rng.standard_normal((nobs, nz + ne))
    else:
        eps = np.zeros((0, nz + ne))

    logger.debug(
        f"Carter-Kohn smoother: T={nobs}, regimes={regimes.n_regimes}, draw_states={draw_states}"
    )

    TTT = np.ascontiguousarray(np.stack([s.TTT for s in systems_aug]))
    try:
        smoothed = _carter_kohn(
            regimes.period_regimes(),
            TTT,
            kal.s_pred,
            kal.P_pred,
            kal.s_filt,
            kal.P_filt,
            eps,
            bool(draw_states),
            float(pinv_rtol),
        )
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"Carter-Kohn smoother decomposition failed: {e}") from e

    smoothed_states = np.ascontiguousarray(smoothed[n_presample_periods:, :nz].T)
    smoothed_shocks = np.ascontiguousarray(smoothed[n_presample_periods:, nz:].T)
    return smoothed_states, smoothed_shocks


__all__ = ["carter_kohn_smoother"]
