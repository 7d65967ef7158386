from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError

IntervalLike = Union[range, Tuple[int, int]]


def _as_interval(interval: IntervalLike, i: int) -> range:
    if isinstance(interval, range):
        if interval.step != 1:
            raise ConfigurationError(f"Regime {i} must have unit step, got {interval!r}.")
        return interval
    try:
        start, stop = interval
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Regime {i} must be a range or a (start, stop) pair, got {interval!r}."
        ) from e
    return range(int(start), int(stop))


@dataclass(frozen=True)
class RegimeSchedule:
    """
    Contiguous partition of the sample ``range(T)`` into regimes.

    Periods are 0-based and each regime is a half-open ``range``; the first
    regime starts at 0 and every regime starts where the previous one stopped.
    """

    intervals: Tuple[range, ...]

    def __post_init__(self):
        raw = list(self.intervals)
        if not raw:
            raise ConfigurationError("A regime schedule needs at least one regime.")

        intervals = tuple(_as_interval(x, i) for i, x in enumerate(raw))
        if intervals[0].start != 0:
            raise ConfigurationError(
                f"The first regime must start at period 0, got {intervals[0].start}."
            )
        for i, interval in enumerate(intervals):
            if len(interval) == 0:
                raise ConfigurationError(f"Regime {i} is empty: {interval!r}.")
            if i > 0 and interval.start != intervals[i - 1].stop:
                raise ConfigurationError(
                    f"Regime {i} starts at {interval.start} but regime {i - 1} "
                    f"stops at {intervals[i - 1].stop}; regimes must be contiguous "
                    "and increasing."
                )
        object.__setattr__(self, "intervals", intervals)

    @classmethod
    def single(cls, n_periods: int) -> "RegimeSchedule":
        return cls((range(0, int(n_periods)),))

    @classmethod
    def from_breakpoints(cls, n_periods: int, breakpoints: Sequence[int]) -> "RegimeSchedule":
        """Build a schedule whose regimes start at 0 and at each breakpoint."""
        edges = [0, *[int(b) for b in breakpoints], int(n_periods)]
        return cls(tuple(range(a, b) for a, b in zip(edges[:-1], edges[1:])))

    @property
    def n_regimes(self) -> int:
        return len(self.intervals)

    @property
    def n_periods(self) -> int:
        return self.intervals[-1].stop

    @property
    def last_periods(self) -> Tuple[int, ...]:
        return tuple(interval.stop - 1 for interval in self.intervals)

    def last_period(self, i: int) -> int:
        return self.intervals[i].stop - 1

    def regime_of(self, t: int) -> int:
        t = int(t)
        if t < 0 or t >= self.n_periods:
            raise IndexError(f"Period {t} is outside the sample range(0, {self.n_periods}).")
        stops = np.array([interval.stop for interval in self.intervals])
        return int(np.searchsorted(stops, t, side="right"))

    def period_regimes(self) -> np.ndarray:
        """Regime index of every period, as an int64 array of length ``n_periods``."""
        out = np.empty(self.n_periods, dtype=np.int64)
        for i, interval in enumerate(self.intervals):
            out[interval.start:interval.stop] = i
        return out

    def __len__(self) -> int:
        return self.n_regimes

    def __iter__(self) -> Iterator[range]:
        return iter(self.intervals)

    def __getitem__(self, i: int) -> range:
        return self.intervals[i]


def as_regime_schedule(regimes, n_periods: int) -> RegimeSchedule:
    """Coerce ``None``, a schedule, or a sequence of intervals to a ``RegimeSchedule``."""
    if regimes is None:
        return RegimeSchedule.single(n_periods)
    if isinstance(regimes, RegimeSchedule):
        return regimes
    return RegimeSchedule(tuple(regimes))


__all__ = ["RegimeSchedule", "as_regime_schedule"]
