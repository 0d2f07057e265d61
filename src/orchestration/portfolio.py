"""
Portfolio orchestrator: runs a fleet of trading systems on one capital base.

**Conceptual**: A portfolio combines three collaborators:
  - a master ledger (the capital and the consolidated trade log),
  - a selector (the universe of prototype systems and the daily selection),
  - an allocator (moves capital between the portfolio's pool and systems),
and drives them through a trading calendar one date at a time.

**Accounts**:
  - Master ledger: the visible account. Every trade made by any system is
    booked here too, so its trade list is the fleet's trade log in execution
    order.
  - Shadow ledger: a clone of the master taken at preparation. It is the pool
    of capital not currently held by any system. Allocators fund systems from
    it; dust swept from retiring systems returns to it.
  - Sub-ledgers: each live system owns a zero-funded account created from the
    master's configuration.

**Per-date control loop** (`run_moment`):
  1. selector -> prototypes selected today -> their live systems
  2. allocator adjusts capital (shadow <-> system accounts)
  3. retire running systems with no position and only dust cash (dust swept)
  4. admit selected systems that now hold cash
  5. execute running systems in admission order; book trades in the master

Retirement is evaluated before admission, so a system that is defunded and
reselected on the same date re-enters at the back of the running sequence.

**Live systems vs prototypes**: prototypes belong to the selector and are never
executed by the portfolio. During preparation each prototype is cloned into a
live system; the clones sit in an arena (list) indexed by integer handle, and
the running set/sequence hold handles. The prototype -> handle table is fixed
until the next preparation or reset.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from src.allocation.allocator import AllocateFunds
from src.config.settings import PortfolioSettings
from src.data.calendar import Query, TradingCalendar
from src.execution.ledger import FundsRecord, TradeManager
from src.orchestration.errors import PortfolioConsistencyError, PortfolioNotReadyError
from src.selection.selector import Selector
from src.strategies.system import System, SystemExecutionError
from src.utils.time import Clock, RealClock, date_range_until_now, to_timestamp

logger = logging.getLogger(__name__)


class Portfolio:
    """
    Multi-system portfolio.

    Any collaborator may be omitted at construction and assigned later;
    assigning a ledger, selector or allocator clears readiness, so the next
    run must go through `prepare_run()` again.

    Args:
        ledger: Master ledger (initial capital, cost model, inception date).
        selector: System selector.
        allocator: Fund allocator.
        name: Portfolio name.
        trace: Log selections and allocations at INFO on every tick.
        calendar: Default trading calendar for `run()`.
        clock: Source of "now" for default reporting ranges.
    """

    def __init__(
        self,
        ledger: Optional[TradeManager] = None,
        selector: Optional[Selector] = None,
        allocator: Optional[AllocateFunds] = None,
        name: str = "Portfolio",
        trace: bool = False,
        calendar: Optional[TradingCalendar] = None,
        clock: Optional[Clock] = None,
    ):
        self.name = name
        self.trace = trace
        self._ledger = ledger
        self._selector = selector
        self._allocator = allocator
        self._calendar = calendar
        self._clock = clock or RealClock()

        self._shadow: Optional[TradeManager] = None
        self._query: Optional[Query] = None
        self._is_ready = False

        # Arena of live systems; handle = position in these lists.
        self._prototypes: list[System] = []
        self._live: list[System] = []
        self._handles: dict[int, int] = {}  # id(prototype) -> handle
        self._live_handles: dict[int, int] = {}  # id(live system) -> handle

        self._running: list[int] = []
        self._running_set: set[int] = set()

    @classmethod
    def from_settings(
        cls,
        settings: PortfolioSettings,
        ledger: Optional[TradeManager] = None,
        selector: Optional[Selector] = None,
        allocator: Optional[AllocateFunds] = None,
        calendar: Optional[TradingCalendar] = None,
        clock: Optional[Clock] = None,
    ) -> "Portfolio":
        return cls(
            ledger=ledger,
            selector=selector,
            allocator=allocator,
            name=settings.name,
            trace=settings.trace,
            calendar=calendar,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> Optional[TradeManager]:
        return self._ledger

    @ledger.setter
    def ledger(self, ledger: Optional[TradeManager]) -> None:
        self._ledger = ledger
        self._is_ready = False

    @property
    def selector(self) -> Optional[Selector]:
        return self._selector

    @selector.setter
    def selector(self, selector: Optional[Selector]) -> None:
        self._selector = selector
        self._is_ready = False

    @property
    def allocator(self) -> Optional[AllocateFunds]:
        return self._allocator

    @allocator.setter
    def allocator(self, allocator: Optional[AllocateFunds]) -> None:
        self._allocator = allocator
        self._is_ready = False

    @property
    def calendar(self) -> Optional[TradingCalendar]:
        return self._calendar

    @calendar.setter
    def calendar(self, calendar: Optional[TradingCalendar]) -> None:
        self._calendar = calendar

    @property
    def shadow_ledger(self) -> Optional[TradeManager]:
        return self._shadow

    @property
    def query(self) -> Optional[Query]:
        return self._query

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    # ------------------------------------------------------------------
    # Run state inspection
    # ------------------------------------------------------------------

    @property
    def live_systems(self) -> list[System]:
        """Live systems in universe order."""
        return list(self._live)

    @property
    def running_systems(self) -> list[System]:
        """Running live systems in execution order."""
        return [self._live[h] for h in self._running]

    def live_system(self, prototype: System) -> Optional[System]:
        """Live counterpart of `prototype`, or None if it is not part of the current run."""
        handle = self._handles.get(id(prototype))
        return None if handle is None else self._live[handle]

    def is_running(self, system: System) -> bool:
        """Whether live `system` is in the running set."""
        handle = self._live_handles.get(id(system))
        return handle is not None and handle in self._running_set

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """
        Clear all run state and reset every collaborator that is set.

        Safe to call repeatedly and with missing collaborators.
        """
        self._clear_run_state()
        for collaborator in (self._ledger, self._shadow, self._selector, self._allocator):
            if collaborator is not None:
                collaborator.reset()

    def _clear_run_state(self) -> None:
        self._is_ready = False
        self._running = []
        self._running_set = set()
        self._handles = {}
        self._live_handles = {}
        self._live = []
        self._prototypes = []

    def clone(self) -> "Portfolio":
        """
        Structurally independent copy.

        Collaborators (selector, allocator, master and shadow ledgers) are
        cloned; the live-system arena, mapping and running collections are
        copied shallowly and still refer to this portfolio's live systems.
        Call `prepare_run()` on the clone before running it.
        """
        other = Portfolio(
            name=self.name,
            trace=self.trace,
            calendar=self._calendar,
            clock=self._clock,
        )
        other._query = self._query
        other._is_ready = self._is_ready
        other._prototypes = list(self._prototypes)
        other._live = list(self._live)
        other._handles = dict(self._handles)
        other._live_handles = dict(self._live_handles)
        other._running = list(self._running)
        other._running_set = set(self._running_set)

        if self._selector is not None:
            other._selector = self._selector.clone()
        if self._allocator is not None:
            other._allocator = self._allocator.clone()
        if self._ledger is not None:
            other._ledger = self._ledger.clone()
        if self._shadow is not None:
            other._shadow = self._shadow.clone()

        if other._allocator is not None and other._ledger is not None and other._shadow is not None:
            other._allocator.bind(other._ledger, other._shadow)
            other._allocator.bind_query(other._query)
        return other

    def prepare_run(self, query: Optional[Query] = None) -> bool:
        """
        Build the live fleet and bind the accounts for a new run.

        Returns:
            True when the portfolio is ready. False (with a warning logged) if
            the ledger, selector or allocator is missing; in that case no
            collaborator is touched.
        """
        missing = [
            label for label, collaborator in (
                ("selector", self._selector),
                ("ledger", self._ledger),
                ("allocator", self._allocator),
            )
            if collaborator is None
        ]
        if missing:
            logger.warning("%s: cannot prepare run, missing %s.", self.name, ", ".join(missing))
            self._clear_run_state()
            return False

        self.reset()
        self._query = query

        self._shadow = self._ledger.clone()
        self._shadow.name = f"{self._ledger.name}_SHADOW"
        self._allocator.bind(self._ledger, self._shadow)
        self._allocator.bind_query(query)

        for index, prototype in enumerate(self._selector.full_universe()):
            if id(prototype) in self._handles:
                logger.warning("%s: system %s appears twice in the universe, ignoring duplicate.",
                               self.name, prototype.name)
                continue

            live = prototype.clone()
            self._handles[id(prototype)] = len(self._live)
            self._live_handles[id(live)] = len(self._live)
            self._prototypes.append(prototype)
            self._live.append(live)

            # The prototype never trades here, but gets an account so it can still be run on its own.
            if prototype.ledger is None:
                prototype.bind_ledger(self._ledger.clone())

            live.bind_ledger(self._ledger.sub_ledger(f"TM_SUB{index}"))

            if live.prepare_run() and prototype.prepare_run():
                if query is not None:
                    window = live.price_window(query)
                    live.set_output_window(window)
                    prototype.set_output_window(window)
            else:
                logger.warning("%s: system %s (#%d) is invalid and could not be prepared for run.",
                               self.name, prototype.name, index)

        self._is_ready = True
        logger.debug("%s: prepared %d live systems.", self.name, len(self._live))
        return True

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def run_moment(self, date) -> None:
        """
        Process one date of the simulation.

        Raises:
            PortfolioNotReadyError: If prepare_run() has not succeeded.
            PortfolioConsistencyError: If the selector returns an unknown prototype.
        """
        if not self._is_ready:
            raise PortfolioNotReadyError(
                f"{self.name}: not ready to run, call prepare_run() first."
            )

        ts = to_timestamp(date)
        if ts < self._shadow.init_date:
            return

        precision = self._shadow.precision

        if self.trace:
            logger.info("=" * 72)
            logger.info("%s %s", self.name, ts.date())

        selected = []
        for prototype in self._selector.selected(ts):
            handle = self._handles.get(id(prototype))
            if handle is None:
                raise PortfolioConsistencyError(
                    f"{self.name}: selected system {prototype.name} has no live counterpart."
                )
            selected.append(handle)
            if self.trace:
                live = self._live[handle]
                logger.info("select: %s, cash: %.2f", live.tradable, live.ledger.current_cash())

        self._allocator.allocate(ts, [self._live[h] for h in selected], self.running_systems)

        if self.trace:
            for handle in selected:
                live = self._live[handle]
                logger.info("allocate --> select: %s, cash: %.2f", live.tradable, live.ledger.current_cash())

        # Retire running systems left with no position and only dust cash.
        retired = set()
        for handle in self._running:
            system = self._live[handle]
            ledger = system.ledger
            position = ledger.position(system.tradable)
            cash = ledger.current_cash()
            if position.quantity == 0 and cash <= precision:
                if cash != 0:
                    ledger.withdraw(ts, cash)
                    self._shadow.deposit(ts, cash)
                retired.add(handle)

        if retired:
            self._running = [h for h in self._running if h not in retired]
            self._running_set -= retired
            logger.debug("%s %s: retired %s", self.name, ts.date(),
                         [self._live[h].name for h in sorted(retired)])

        for handle in selected:
            if handle in self._running_set:
                continue
            if self._live[handle].ledger.current_cash() > 0:
                self._running.append(handle)
                self._running_set.add(handle)

        # Trades are booked in running-sequence order.
        for handle in list(self._running):
            system = self._live[handle]
            try:
                record = system.run_moment(ts)
            except SystemExecutionError as e:
                logger.warning("%s %s: %s", self.name, ts.date(), e)
                continue
            if record is not None:
                self._ledger.add_trade_record(record)

    def run(self, query: Query, calendar: Optional[TradingCalendar] = None) -> None:
        """
        Prepare and run the portfolio over every trading date of `query`.

        Args:
            query: Date range to simulate.
            calendar: Trading calendar; defaults to the one given at construction.

        Raises:
            ValueError: If no calendar is available.
            PortfolioNotReadyError: If preparation fails (missing collaborator).
        """
        calendar = calendar or self._calendar
        if calendar is None:
            raise ValueError(f"{self.name}: no trading calendar given for run().")

        if not self.prepare_run(query):
            raise PortfolioNotReadyError(
                f"{self.name}: prepare_run() failed, check that a ledger, selector "
                f"and allocator have been set."
            )

        dates = calendar.trading_days(query)
        logger.info("%s: running %d dates from %s to %s", self.name, len(dates),
                    query.start.date(), query.end.date())
        for date in dates:
            self.run_moment(date)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _require_shadow(self) -> TradeManager:
        if self._shadow is None:
            raise PortfolioNotReadyError(f"{self.name}: no run prepared, nothing to report.")
        return self._shadow

    def _report_dates(self, dates, granularity: str) -> pd.DatetimeIndex:
        shadow = self._require_shadow()
        if dates is None:
            return pd.DatetimeIndex(date_range_until_now(shadow.init_date, self._clock, granularity))
        if isinstance(dates, Query):
            return pd.date_range(dates.start, dates.end, freq=granularity, inclusive='left')
        return pd.DatetimeIndex([to_timestamp(d) for d in dates])

    def get_funds(self, date=None) -> FundsRecord:
        """
        Consolidated funds of all live systems plus the shadow pool.

        Args:
            date: As-of date; None for the current state.
        """
        shadow = self._require_shadow()
        total = FundsRecord()
        for system in self._live:
            total = total + system.ledger.funds(date)
        return total + shadow.funds(date)

    def get_funds_curve(self, dates=None, granularity: str = "D") -> pd.Series:
        """
        Consolidated total assets per date.

        Args:
            dates: Iterable of dates, a Query, or None for [inception, now).
            granularity: pandas frequency alias used when dates is a Query or None.
        """
        index = self._report_dates(dates, granularity)
        values = np.zeros(len(index))
        for system in self._live:
            values += system.ledger.funds_curve(index).to_numpy()
        values += self._shadow.funds_curve(index).to_numpy()
        return pd.Series(values, index=index, name='funds')

    def get_profit_curve(self, dates=None, granularity: str = "D") -> pd.Series:
        """Consolidated profit per date (same date handling as get_funds_curve)."""
        index = self._report_dates(dates, granularity)
        values = np.zeros(len(index))
        for system in self._live:
            values += system.ledger.profit_curve(index).to_numpy()
        values += self._shadow.profit_curve(index).to_numpy()
        return pd.Series(values, index=index, name='profit')

    def __repr__(self) -> str:
        return f"Portfolio(name={self.name!r}, trace={self.trace}, ready={self._is_ready})"
