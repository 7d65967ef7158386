import numpy as np
from scipy.linalg import solve, solve_discrete_lyapunov

from .errors import NumericalError
from .logging_config import get_logger
from .system import StateSpaceSystem

logger = get_logger("initialization")


def init_stationary_states(system: StateSpaceSystem):
    """
    Unconditional mean and covariance of the state of a stationary system.

    Solves z0 = CCC + TTT z0 and P0 = TTT P0 TTT' + RRR QQ RRR'.

    Raises
    ------
    NumericalError
        If ``TTT`` has an eigenvalue on or outside the unit circle, in which
        case there is no stationary distribution to start the filter from.
    """
    system.check_finite()
    TTT, RRR, CCC, QQ = system.TTT, system.RRR, system.CCC, system.QQ

    rho = float(np.max(np.abs(np.linalg.eigvals(TTT))))
    if rho >= 1.0:
        raise NumericalError(
            f"TTT has spectral radius {rho:.6g} >= 1; supply z0 and P0 explicitly "
            "for a nonstationary system."
        )

    nz = TTT.shape[0]
    z0 = solve(np.eye(nz) - TTT, CCC)
    RQR = RRR @ QQ @ RRR.T
    P0 = solve_discrete_lyapunov(TTT, RQR)
    P0 = 0.5 * (P0 + P0.T)

    logger.debug(f"Stationary initialization with spectral radius {rho:.4f}")
    return z0, P0


__all__ = ["init_stationary_states"]
