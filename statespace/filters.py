from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from numba import jit

from .augmentation import initial_conditions
from .errors import DimensionMismatch, NumericalError
from .linalg import PINV_RTOL, _pinv_logdet
from .logging_config import get_logger
from .regimes import as_regime_schedule
from .system import as_system_list, check_conforming_systems, stack_systems

logger = get_logger("filters")


@jit(nopython=True)
def _kalman_filter(y, regime_of, CCC, TTT, RRR, QQ, DD, ZZ, EE, s0, P0, rtol):
    nobs, ny = y.shape
    ns = TTT.shape[1]

    s_pred = np.zeros((nobs, ns))
    P_pred = np.zeros((nobs, ns, ns))
    s_filt = np.zeros((nobs, ns))
    P_filt = np.zeros((nobs, ns, ns))
    loglh = np.zeros(nobs)

    st = s0.copy()
    Pt = P0.copy()

    for t in range(nobs):
        r = regime_of[t]
        TT = TTT[r]
        RR = RRR[r]
        ZZr = ZZ[r]

        # forecast
        st = CCC[r] + TT @ st
        Pt = TT @ Pt @ TT.T + RR @ QQ[r] @ RR.T
        Pt = 0.5 * (Pt + Pt.T)

        s_pred[t] = st
        P_pred[t] = Pt

        observed = np.isfinite(y[t])
        nact = np.sum(observed)

        if nact > 0:
            Zt = ZZr[observed, :]
            nut = y[t][observed] - DD[r][observed] - Zt @ st

            Ft = Zt @ Pt @ Zt.T + EE[r][observed, :][:, observed]
            Ft = 0.5 * (Ft + Ft.T)
            iFt, logdetFt = _pinv_logdet(Ft, rtol)

            Kt = Pt @ Zt.T @ iFt
            st = st + Kt @ nut
            Pt = Pt - Kt @ Zt @ Pt
            Pt = 0.5 * (Pt + Pt.T)

            loglh[t] = (
                - 0.5 * nact * np.log(2 * np.pi)
                - 0.5 * logdetFt
                - 0.5 * np.dot(nut, iFt @ nut)
            )

        s_filt[t] = st
        P_filt[t] = Pt

    return s_pred, P_pred, s_filt, P_filt, loglh


@dataclass(frozen=True)
class KalmanOutput:
    """
    Output of a forward Kalman pass.

    Arrays are time-first: ``s_pred[t]``/``P_pred[t]`` are z_{t|t-1} and
    P_{t|t-1}, ``s_filt[t]``/``P_filt[t]`` are z_{t|t} and P_{t|t}, and
    ``loglh[t]`` is the log density of the observed part of y_t.
    """

    s_pred: np.ndarray
    P_pred: np.ndarray
    s_filt: np.ndarray
    P_filt: np.ndarray
    loglh: np.ndarray
    s_0: np.ndarray
    P_0: np.ndarray

    @property
    def n_periods(self) -> int:
        return int(self.s_filt.shape[0])

    @property
    def s_T(self) -> np.ndarray:
        return self.s_filt[-1]

    @property
    def P_T(self) -> np.ndarray:
        return self.P_filt[-1]

    @property
    def log_lik(self) -> float:
        return float(self.loglh.sum())

    def remove_presample(self, n_presample_periods: int) -> "KalmanOutput":
        """
        Drop the first ``n_presample_periods`` periods.

        ``s_0``/``P_0`` become the filtered moments of the last dropped
        period, so the trimmed output still describes a filter started at
        its own first period.
        """
        n = int(n_presample_periods)
        if n == 0:
            return self
        if n < 0 or n >= self.n_periods:
            raise DimensionMismatch(
                f"n_presample_periods must be in [0, {self.n_periods}), got {n}."
            )
        return replace(
            self,
            s_pred=self.s_pred[n:],
            P_pred=self.P_pred[n:],
            s_filt=self.s_filt[n:],
            P_filt=self.P_filt[n:],
            loglh=self.loglh[n:],
            s_0=self.s_filt[n - 1],
            P_0=self.P_filt[n - 1],
        )


def _as_data(data, ny: int) -> np.ndarray:
    # Ny x T in, T x Ny (contiguous) out.
    y = np.asarray(data, dtype=float)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    if y.ndim != 2:
        raise DimensionMismatch(f"data must be an Ny x T matrix, got {y.ndim} dimensions.")
    if y.shape[0] != ny:
        raise DimensionMismatch(
            f"data has {y.shape[0]} series but the measurement equation has {ny}."
        )
    if y.shape[1] == 0:
        raise DimensionMismatch("data must contain at least one period.")
    return np.ascontiguousarray(y.T)


def kalman_filter(regimes, data, systems, z0=None, P0=None, *, pinv_rtol=PINV_RTOL):
    """
    Regime-switching Kalman filter.

    Parameters
    ----------
    regimes : RegimeSchedule, sequence of ranges, or None
        Partition of the sample; ``None`` treats the whole sample as one
        regime (``systems`` must then hold a single system).
    data : array_like
        ``Ny x T`` observations. Non-finite entries (NaN) are missing; a
        period with no finite entries skips the update step.
    systems : StateSpaceSystem or sequence of StateSpaceSystem
        One system per regime.
    z0, P0 : array_like, optional
        z_{0|0} and P_{0|0}. Defaults to the stationary distribution of the
        first regime.
    pinv_rtol : float
        Relative tolerance of the pseudoinverse of the innovation covariance.

    Returns
    -------
    KalmanOutput

    Raises
    ------
    DimensionMismatch
        If regimes, systems, data and initial conditions disagree in shape.
    NumericalError
        If an input is non-finite or a decomposition fails.
    """
    systems = as_system_list(systems)
    nz, ne, ny = check_conforming_systems(systems)
    y = _as_data(data, ny)
    nobs = y.shape[0]

    regimes = as_regime_schedule(regimes, nobs)
    if regimes.n_periods != nobs:
        raise DimensionMismatch(
            f"Regime schedule covers {regimes.n_periods} periods but data has {nobs}."
        )
    if regimes.n_regimes != len(systems):
        raise DimensionMismatch(
            f"Got {regimes.n_regimes} regimes but {len(systems)} regime systems."
        )

    for system in systems:
        system.check_finite()
    z0, P0 = initial_conditions(systems[0], z0, P0)
    if not (np.all(np.isfinite(z0)) and np.all(np.isfinite(P0))):
        raise NumericalError("Initial state mean or covariance contains non-finite entries.")

    logger.debug(
        f"Kalman filter: T={nobs}, Nz={nz}, Ne={ne}, Ny={ny}, regimes={regimes.n_regimes}"
    )

    mats = stack_systems(systems)
    try:
        s_pred, P_pred, s_filt, P_filt, loglh = _kalman_filter(
            y,
            regimes.period_regimes(),
            mats["CCC"],
            mats["TTT"],
            mats["RRR"],
            mats["QQ"],
            mats["DD"],
            mats["ZZ"],
            mats["EE"],
            np.ascontiguousarray(z0, dtype=float),
            np.ascontiguousarray(P0, dtype=float),
            float(pinv_rtol),
        )
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"Kalman filter decomposition failed: {e}") from e

    if not (np.all(np.isfinite(s_filt)) and np.all(np.isfinite(P_filt))):
        raise NumericalError("Kalman filter produced non-finite state moments.")

    return KalmanOutput(s_pred, P_pred, s_filt, P_filt, loglh, z0, P0)


__all__ = ["KalmanOutput", "kalman_filter"]
