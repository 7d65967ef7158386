from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple, Union

import numpy as np

from .errors import DimensionMismatch, NumericalError


def _as_matrix(x) -> np.ndarray:
    return np.ascontiguousarray(np.atleast_2d(np.asarray(x, dtype=float)))


def _as_vector(x) -> np.ndarray:
    return np.ascontiguousarray(np.atleast_1d(np.asarray(x, dtype=float)).reshape(-1))


@dataclass(frozen=True)
class StateSpaceSystem:
    """
    System matrices of one regime.

    z_{t+1} = CCC + TTT z_t + RRR e_{t+1},  e ~ N(0, QQ)   (transition)
    y_t     = DD  + ZZ  z_t + u_t,          u ~ N(0, EE)   (measurement)

    Scalars are promoted to 1x1 matrices and intercepts are flattened, so a
    univariate system can be written with plain floats.
    """

    TTT: np.ndarray
    RRR: np.ndarray
    CCC: np.ndarray
    QQ: np.ndarray
    ZZ: np.ndarray
    DD: np.ndarray
    EE: np.ndarray

    def __post_init__(self):
        for name in ("TTT", "RRR", "QQ", "ZZ", "EE"):
            object.__setattr__(self, name, _as_matrix(getattr(self, name)))
        for name in ("CCC", "DD"):
            object.__setattr__(self, name, _as_vector(getattr(self, name)))
        self._check_shapes()

    @property
    def Nz(self) -> int:
        return int(self.TTT.shape[0])

    @property
    def Ne(self) -> int:
        return int(self.RRR.shape[1])

    @property
    def Ny(self) -> int:
        return int(self.ZZ.shape[0])

    @property
    def dims(self) -> Tuple[int, int, int]:
        return self.Nz, self.Ne, self.Ny

    def _check_shapes(self) -> None:
        nz = self.TTT.shape[0]
        ne = self.RRR.shape[1]
        ny = self.ZZ.shape[0]
        expected = {
            "TTT": (nz, nz),
            "RRR": (nz, ne),
            "CCC": (nz,),
            "QQ": (ne, ne),
            "ZZ": (ny, nz),
            "DD": (ny,),
            "EE": (ny, ny),
        }
        for name, shape in expected.items():
            actual = getattr(self, name).shape
            if actual != shape:
                raise DimensionMismatch(f"{name} must have shape {shape}, got {actual}.")

    def check_finite(self) -> None:
        for name in ("TTT", "RRR", "CCC", "QQ", "ZZ", "DD", "EE"):
            if not np.all(np.isfinite(getattr(self, name))):
                raise NumericalError(f"{name} contains non-finite entries.")

    def as_dict(self) -> Dict[str, np.ndarray]:
        return {
            "TTT": self.TTT,
            "RRR": self.RRR,
            "CCC": self.CCC,
            "QQ": self.QQ,
            "ZZ": self.ZZ,
            "DD": self.DD,
            "EE": self.EE,
        }


def as_system_list(systems: Union[StateSpaceSystem, Sequence[StateSpaceSystem]]) -> list:
    if isinstance(systems, StateSpaceSystem):
        return [systems]
    systems = list(systems)
    if not systems:
        raise DimensionMismatch("At least one regime system is required.")
    for i, s in enumerate(systems):
        if not isinstance(s, StateSpaceSystem):
            raise TypeError(f"Regime {i} system must be a StateSpaceSystem, got {type(s).__name__}.")
    return systems


def check_conforming_systems(systems: Sequence[StateSpaceSystem]) -> Tuple[int, int, int]:
    """
    Check that every regime has the same (Nz, Ne, Ny).

    The number of shocks is required to be constant across regimes, because
    the augmented state carries one slot per shock for the whole sample.
    """
    dims = systems[0].dims
    for i, s in enumerate(systems[1:], start=1):
        if s.dims != dims:
            raise DimensionMismatch(
                f"Regime {i} has (Nz, Ne, Ny) = {s.dims}, but regime 0 has {dims}."
            )
    return dims


def stack_systems(systems: Sequence[StateSpaceSystem]) -> Dict[str, np.ndarray]:
    """Stack per-regime matrices along a leading regime axis (contiguous float64)."""
    return {
        name: np.ascontiguousarray(np.stack([getattr(s, name) for s in systems]), dtype=float)
        for name in ("TTT", "RRR", "CCC", "QQ", "ZZ", "DD", "EE")
    }


__all__ = [
    "StateSpaceSystem",
    "as_system_list",
    "check_conforming_systems",
    "stack_systems",
]
