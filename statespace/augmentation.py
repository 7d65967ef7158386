"""
Augment a regime-switching state space with its contemporaneous shocks.

The augmented state is [z_t; e_t]. Shocks are serially independent, so the
shock block has no own-lag dynamics: its value at t+1 is the fresh draw
loaded through the identity block of the augmented RRR. Filtering and
smoothing the augmented system therefore delivers states and shocks jointly.
"""

from __future__ import annotations

import numpy as np
from scipy.linalg import block_diag

from .errors import DimensionMismatch
from .initialization import init_stationary_states
from .logging_config import get_logger
from .system import StateSpaceSystem, as_system_list, check_conforming_systems

logger = get_logger("augmentation")


def _is_empty(x) -> bool:
    return x is None or np.asarray(x).size == 0


def initial_conditions(system: StateSpaceSystem, z0=None, P0=None):
    """
    Validate ``z0``/``P0`` against ``system``, deriving both from its
    stationary distribution when either one is missing or empty.
    """
    if _is_empty(z0) or _is_empty(P0):
        return init_stationary_states(system)

    nz = system.Nz
    z0 = np.asarray(z0, dtype=float).reshape(-1)
    P0 = np.atleast_2d(np.asarray(P0, dtype=float))
    if z0.shape != (nz,):
        raise DimensionMismatch(f"z0 must have shape ({nz},), got {z0.shape}.")
    if P0.shape != (nz, nz):
        raise DimensionMismatch(f"P0 must have shape ({nz}, {nz}), got {P0.shape}.")
    return z0, P0


def augment_system(system: StateSpaceSystem) -> StateSpaceSystem:
    nz, ne, ny = system.dims
    TTT = np.zeros((nz + ne, nz + ne))
    TTT[:nz, :nz] = system.TTT
    RRR = np.vstack([system.RRR, np.eye(ne)])
    CCC = np.concatenate([system.CCC, np.zeros(ne)])
    ZZ = np.hstack([system.ZZ, np.zeros((ny, ne))])
    return StateSpaceSystem(TTT, RRR, CCC, system.QQ, ZZ, system.DD, system.EE)


def augment_states_with_shocks(regimes, systems, z0=None, P0=None):
    """
    Augment every regime's system with the shocks.

    Parameters
    ----------
    regimes : RegimeSchedule, sequence of ranges, or None
        Only its number of regimes is used, to check it against ``systems``.
    systems : StateSpaceSystem or sequence of StateSpaceSystem
        One system per regime, all with the same (Nz, Ne, Ny).
    z0, P0 : array_like, optional
        Initial state mean (Nz) and covariance (Nz x Nz). When either is
        missing or empty, the stationary distribution of the first regime is
        used.

    Returns
    -------
    systems_aug : list of StateSpaceSystem
        Systems of dimension Nz + Ne.
    z0_aug : numpy.ndarray
        ``[z0; 0]``.
    P0_aug : numpy.ndarray
        ``blockdiag(P0, QQ)`` with the first regime's QQ: the period-1 shock
        is a priori N(0, QQ) and independent of the initial state.
    """
    systems = as_system_list(systems)
    if regimes is not None and len(regimes) != len(systems):
        raise DimensionMismatch(
            f"Got {len(regimes)} regimes but {len(systems)} regime systems."
        )
    nz, ne, _ = check_conforming_systems(systems)

    z0, P0 = initial_conditions(systems[0], z0, P0)

    systems_aug = [augment_system(s) for s in systems]
    z0_aug = np.concatenate([z0, np.zeros(ne)])
    P0_aug = block_diag(P0, systems[0].QQ)

    logger.debug(f"Augmented {len(systems)} regime(s): Nz={nz}, Ne={ne} -> {nz + ne} states")
    return systems_aug, z0_aug, P0_aug


__all__ = ["augment_states_with_shocks", "augment_system", "initial_conditions"]
