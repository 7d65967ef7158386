import numpy as np
import pandas as p

from .augmentation import initial_conditions
from .errors import DimensionMismatch
from .filters import kalman_filter
from .linalg import sqrt_psd
from .logging_config import get_logger
from .regimes import as_regime_schedule
from .smoothers import carter_kohn_smoother
from .system import StateSpaceSystem

logger = get_logger("model")


def _frame(yy, columns=None):
    # T x Ny frame; a 1-D array is a single series.
    if isinstance(yy, p.DataFrame):
        return yy
    yy = np.asarray(yy, dtype=float)
    if len(yy.shape) < 2:
        yy = np.swapaxes(np.atleast_2d(yy), 0, 1)
    if columns is not None and len(columns) != yy.shape[1]:
        raise DimensionMismatch(f"Observations have {yy.shape[1]} series but {len(columns)} names.")
    return p.DataFrame(yy, columns=columns)


class StateSpaceModel(object):
    """
    A data panel together with parameterized, regime-switching system matrices.

    ``yy`` is a T x Ny DataFrame (or array). Each of ``TTT, RRR, CCC, QQ, ZZ,
    DD, EE`` is a callable ``f(para, regime)`` returning that matrix for the
    parameter vector ``para`` and the 0-based regime index. ``regimes``
    partitions the rows of ``yy``; ``None`` means a single regime. ``t0``
    periods at the start of the sample are treated as presample.
    """

    def __init__(self, yy, TTT, RRR, CCC, QQ, ZZ, DD, EE, regimes=None, t0=0,
                 shock_names=None, state_names=None, obs_names=None):

        yy = _frame(yy, columns=obs_names)

        self.yy = yy

        self.TTT = TTT
        self.RRR = RRR
        self.CCC = CCC
        self.QQ = QQ
        self.ZZ = ZZ
        self.DD = DD
        self.EE = EE

        self.regimes = as_regime_schedule(regimes, yy.shape[0])
        if self.regimes.n_periods != yy.shape[0]:
            raise DimensionMismatch(
                f"Regime schedule covers {self.regimes.n_periods} periods but yy has {yy.shape[0]} rows."
            )

        self.t0 = t0

        self.shock_names = shock_names
        self.state_names = state_names
        self.obs_names = obs_names if obs_names is not None else [str(c) for c in yy.columns]

    def system_matrices(self, para, regime=0):
        return StateSpaceSystem(
            TTT=self.TTT(para, regime),
            RRR=self.RRR(para, regime),
            CCC=self.CCC(para, regime),
            QQ=self.QQ(para, regime),
            ZZ=self.ZZ(para, regime),
            DD=self.DD(para, regime),
            EE=self.EE(para, regime),
        )

    def regime_systems(self, para):
        return [self.system_matrices(para, i) for i in range(self.regimes.n_regimes)]

    def _names(self, system):
        if self.state_names is None:
            self.state_names = ['state_' + str(i) for i in range(system.Nz)]
        if self.shock_names is None:
            self.shock_names = ['shock_' + str(i) for i in range(system.Ne)]
        return self.state_names, self.shock_names

    def _observations(self, yy):
        # Observations passed to a method override the model's own.
        if yy is None:
            return self.yy
        return _frame(yy, columns=self.obs_names)

    def _data(self, yy):
        # T x Ny frame -> Ny x T array
        return np.asarray(yy, dtype=float).T

    def log_lik(self, para, *args, **kwargs):

        t0 = kwargs.pop('t0', self.t0)
        yy = self._observations(kwargs.pop('y', None))
        P0 = kwargs.pop('P0', 'unconditional')
        z0 = kwargs.pop('z0', None)

        systems = self.regime_systems(para)
        if isinstance(P0, str) and P0 == 'unconditional':
            P0 = None

        kal = kalman_filter(self.regimes, self._data(yy), systems, z0, P0)
        loglh = float(kal.loglh[t0:].sum())
        logger.debug(f"log_lik = {loglh:.6f} over {kal.n_periods - t0} periods")
        return loglh

    def kf_everything(self, para, *args, **kwargs):
        yy = self._observations(kwargs.pop('y', None))

        systems = self.regime_systems(para)
        state_names, _ = self._names(systems[0])
        kal = kalman_filter(self.regimes, self._data(yy), systems)

        results = {}
        results['log_lik'] = p.DataFrame(kal.loglh, columns=['log_lik'], index=yy.index)
        results['predicted_states'] = p.DataFrame(kal.s_pred, columns=state_names, index=yy.index)
        results['filtered_states'] = p.DataFrame(kal.s_filt, columns=state_names, index=yy.index)
        return results

    def simulation_smoother(self, para, draw_states=True, seed=None, *args, **kwargs):
        t0 = kwargs.pop('t0', self.t0)
        yy = self._observations(kwargs.pop('y', None))

        systems = self.regime_systems(para)
        state_names, shock_names = self._names(systems[0])

        states, shocks = carter_kohn_smoother(self.regimes, self._data(yy), systems,
                                              n_presample_periods=t0,
                                              draw_states=draw_states,
                                              rng=seed)

        index = yy.index[t0:]
        results = {}
        results['smoothed_states'] = p.DataFrame(states.T, columns=state_names, index=index)
        results['smoothed_shocks'] = p.DataFrame(shocks.T, columns=shock_names, index=index)
        return results

    def simulate(self, para, seed=None, *args, **kwargs):
        """
        Simulate observables, states and shocks over the regime schedule,
        starting from the stationary distribution of the first regime.
        """
        rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)

        systems = self.regime_systems(para)
        state_names, shock_names = self._names(systems[0])
        nobs = self.regimes.n_periods
        first = systems[0]

        z0, P0 = initial_conditions(first, kwargs.pop('z0', None), kwargs.pop('P0', None))
        At = z0 + sqrt_psd(P0) @ rng.standard_normal(first.Nz)

        ysim = np.zeros((nobs, first.Ny))
        states = np.zeros((nobs, first.Nz))
        shocks = np.zeros((nobs, first.Ne))

        logger.debug(f"Simulating {nobs} periods over {self.regimes.n_regimes} regime(s)")
        regime_of = self.regimes.period_regimes()
        for i in range(nobs):
            s = systems[regime_of[i]]
            e = sqrt_psd(s.QQ) @ rng.standard_normal(s.Ne)
            At = s.CCC + s.TTT @ At + s.RRR @ e

            u = sqrt_psd(s.EE) @ rng.standard_normal(s.Ny)
            ysim[i, :] = s.DD + s.ZZ @ At + u
            states[i] = At
            shocks[i] = e

        index = self.yy.index
        results = {}
        results['observables'] = p.DataFrame(ysim, columns=self.obs_names, index=index)
        results['states'] = p.DataFrame(states, columns=state_names, index=index)
        results['shocks'] = p.DataFrame(shocks, columns=shock_names, index=index)
        return results


__all__ = ["StateSpaceModel"]
