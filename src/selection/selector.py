"""
Selectors: which prototype systems are eligible to run on a given date.

**Conceptual**: A selector owns the universe of prototype systems. The
portfolio asks it once, during preparation, for the full universe (to build
one live clone per prototype), and then on every tick for the subset selected
that day. Selectors only ever hand out their own prototype objects; mapping
them to live systems is the portfolio's job.

**Contract**:
  - `full_universe()` returns the prototypes in a stable order.
  - `selected(date)` returns a subset of `full_universe()`.
  - `reset()` clears any state accumulated during a run.
  - `clone()` returns an independent selector over cloned prototypes.
"""

from typing import Callable, Iterable, Mapping, Protocol, Sequence

import numpy as np

from src.data.prices import PriceTable
from src.strategies.system import System
from src.utils.math import compute_trailing_return
from src.utils.time import to_timestamp


class Selector(Protocol):

    def full_universe(self) -> list[System]: ...

    def selected(self, date) -> list[System]: ...

    def reset(self) -> None: ...

    def clone(self) -> "Selector": ...


class FixedSelector:
    """
    Selects every system in the universe on every date.

    Args:
        systems: Prototype systems, in the order they should be scheduled.
    """

    def __init__(self, systems: Iterable[System]):
        self._systems = list(systems)

    def full_universe(self) -> list[System]:
        return list(self._systems)

    def selected(self, date) -> list[System]:
        return list(self._systems)

    def reset(self) -> None:
        pass

    def clone(self) -> "FixedSelector":
        return FixedSelector([s.clone() for s in self._systems])


class ScheduleSelector:
    """
    Selects systems from an explicit date -> indices table.

    **Usage**:
        ScheduleSelector(systems, {"2024-01-02": [0, 1], "2024-01-03": [1]})

    Dates absent from the schedule select `default` (no system unless given).
    A callable schedule is also accepted: it receives the normalized date and
    returns universe indices.

    Args:
        systems: Prototype systems.
        schedule: Mapping date -> sequence of universe indices, or a callable.
        default: Indices selected on dates not in the schedule.

    Raises:
        IndexError: At selection time, if an index is outside the universe.
    """

    def __init__(
        self,
        systems: Iterable[System],
        schedule: Mapping | Callable,
        default: Sequence[int] = (),
    ):
        self._systems = list(systems)
        if callable(schedule):
            self._schedule = schedule
        else:
            self._schedule = {to_timestamp(d): list(ix) for d, ix in schedule.items()}
        self._default = list(default)

    def full_universe(self) -> list[System]:
        return list(self._systems)

    def selected(self, date) -> list[System]:
        ts = to_timestamp(date)
        if callable(self._schedule):
            indices = list(self._schedule(ts))
        else:
            indices = self._schedule.get(ts, self._default)
        for i in indices:
            if not 0 <= i < len(self._systems):
                raise IndexError(
                    f"Schedule index {i} on {ts.date()} outside universe of {len(self._systems)} systems."
                )
        return [self._systems[i] for i in indices]

    def reset(self) -> None:
        pass

    def clone(self) -> "ScheduleSelector":
        schedule = self._schedule if callable(self._schedule) else dict(self._schedule)
        return ScheduleSelector([s.clone() for s in self._systems], schedule, self._default)


class MomentumSelector:
    """
    Selects the systems whose tradables have the strongest trailing return.

    **Conceptual**: On each date, every system's tradable is scored by its
    simple return over the last `lookback` bars (using only prices up to that
    date). The best `top_n` with a strictly positive score are selected.
    Ties keep universe order, so selection is deterministic.

    Args:
        systems: Prototype systems.
        prices: Price table used for scoring.
        lookback: Number of bars for the trailing return.
        top_n: Maximum number of systems selected per date.

    Raises:
        ValueError: If lookback < 1 or top_n < 1.
    """

    def __init__(
        self,
        systems: Iterable[System],
        prices: PriceTable,
        lookback: int = 20,
        top_n: int = 1,
    ):
        if lookback < 1:
            raise ValueError(f"lookback must be >= 1, got {lookback}")
        if top_n < 1:
            raise ValueError(f"top_n must be >= 1, got {top_n}")
        self._systems = list(systems)
        self._prices = prices
        self.lookback = lookback
        self.top_n = top_n

    def full_universe(self) -> list[System]:
        return list(self._systems)

    def score(self, system: System, date) -> float:
        """Trailing return of `system`'s tradable as of `date` (NaN when unavailable)."""
        if system.tradable not in self._prices:
            return float("nan")
        closes = self._prices.closes(system.tradable)
        closes = closes[closes.index <= to_timestamp(date)]
        return compute_trailing_return(closes, self.lookback)

    def selected(self, date) -> list[System]:
        scored = []
        for position, system in enumerate(self._systems):
            value = self.score(system, date)
            if not np.isnan(value) and value > 0:
                scored.append((-value, position, system))
        scored.sort(key=lambda item: (item[0], item[1]))
        return [system for _, _, system in scored[:self.top_n]]

    def reset(self) -> None:
        pass

    def clone(self) -> "MomentumSelector":
        return MomentumSelector(
            [s.clone() for s in self._systems],
            self._prices,
            lookback=self.lookback,
            top_n=self.top_n,
        )
