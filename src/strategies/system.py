"""
Trading systems: one tradable, one ledger, one strategy.

**Conceptual**: A system is the unit the portfolio schedules. It is bound to
exactly one instrument and one capital ledger (its own sub-account). On each
tick the system asks its strategy for a target weight, compares it with what
the account currently holds, and places at most one trade to close the gap.
The trade record is returned so the portfolio can book it in its master
account as well.

**Lifecycle**:
  1. Construct with symbol, strategy and price table (configuration only).
  2. `bind_ledger()` gives it an account.
  3. `prepare_run()` checks it can run (ledger bound, prices available).
  4. `run_moment(date)` once per tick while the portfolio keeps it running.

`clone()` copies configuration only: the clone has no ledger, no output
window and is not prepared. The portfolio relies on this to create one live
system per prototype.
"""

import copy
import logging
from typing import Optional, Protocol

import pandas as pd

from src.data.calendar import Query
from src.data.prices import PriceTable
from src.execution.ledger import FundsRecord, TradeManager, TradeRecord, TradeSide
from src.strategies.base import Strategy
from src.utils.time import to_timestamp

logger = logging.getLogger(__name__)

# Quantities below this are floating-point noise, not trades.
_MIN_QUANTITY = 1e-9


class SystemExecutionError(RuntimeError):
    """A system could not execute its tick (not prepared, or its strategy failed on the data)."""
    pass


class System(Protocol):
    """Contract the portfolio, selectors and allocators rely on."""

    name: str

    @property
    def tradable(self) -> str: ...

    @property
    def ledger(self) -> Optional[TradeManager]: ...

    @property
    def output_window(self) -> Optional[pd.DataFrame]: ...

    def bind_ledger(self, ledger: TradeManager) -> None: ...

    def prepare_run(self) -> bool: ...

    def clone(self) -> "System": ...

    def price_window(self, query: Query) -> pd.DataFrame: ...

    def set_output_window(self, frame: pd.DataFrame) -> None: ...

    def run_moment(self, date) -> Optional[TradeRecord]: ...


class SignalSystem:
    """
    Long-only system driven by a target-weight strategy.

    **Execution rule** (per tick, only on dates where the symbol has a bar):
      - equity = cash + position * close
      - target = clamp(weight, 0, 1) * equity
      - target above holdings: buy with the available cash (net of the fee)
      - target below holdings: sell the excess; a weight of 0 sells everything
    Differences at or below the ledger's precision are ignored.

    Args:
        symbol: The tradable this system is bound to.
        strategy: Target-weight strategy.
        prices: Price table providing the history of `symbol`.
        name: Display name (defaults to "SYS_<symbol>").
    """

    def __init__(
        self,
        symbol: str,
        strategy: Strategy,
        prices: PriceTable,
        name: Optional[str] = None,
    ):
        self.name = name or f"SYS_{symbol}"
        self._symbol = symbol
        self._strategy = strategy
        self._prices = prices
        self._ledger: Optional[TradeManager] = None
        self._output_window: Optional[pd.DataFrame] = None
        self._ready = False

    @property
    def tradable(self) -> str:
        return self._symbol

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    @property
    def ledger(self) -> Optional[TradeManager]:
        return self._ledger

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def output_window(self) -> Optional[pd.DataFrame]:
        return self._output_window

    def bind_ledger(self, ledger: TradeManager) -> None:
        self._ledger = ledger
        self._ready = False

    def set_output_window(self, frame: pd.DataFrame) -> None:
        self._output_window = frame

    def price_window(self, query: Query) -> pd.DataFrame:
        """Bars of this system's tradable inside `query` (empty frame if the symbol is unknown)."""
        if self._symbol not in self._prices:
            return pd.DataFrame(columns=['timestamp', 'closing_price'])
        return self._prices.window(self._symbol, query.start, query.end)

    def prepare_run(self) -> bool:
        self._ready = False
        if self._ledger is None:
            logger.warning("%s: no ledger bound, cannot run.", self.name)
            return False
        if self._symbol not in self._prices:
            logger.warning("%s: no price history for %s, cannot run.", self.name, self._symbol)
            return False
        self._ready = True
        return True

    def clone(self) -> "SignalSystem":
        return SignalSystem(
            symbol=self._symbol,
            strategy=copy.deepcopy(self._strategy),
            prices=self._prices,
            name=self.name,
        )

    def run_moment(self, date) -> Optional[TradeRecord]:
        """
        Execute one tick.

        Returns:
            The trade placed on this system's ledger, or None.

        Raises:
            SystemExecutionError: If the system is not prepared or the strategy
                                  fails on the data.
        """
        if not self._ready:
            raise SystemExecutionError(f"{self.name}: run_moment called before a successful prepare_run().")

        ts = to_timestamp(date)
        if not self._prices.has_bar(self._symbol, ts):
            return None

        price = self._prices.price_on(self._symbol, ts)
        ledger = self._ledger
        cash = ledger.current_cash()
        quantity_held = ledger.position(self._symbol).quantity
        holding_value = quantity_held * price
        equity = cash + holding_value

        state = FundsRecord(
            cash=cash,
            market_value=holding_value,
            base_cash=ledger.funds().base_cash,
        )
        try:
            weights = self._strategy.generate_target_weights(
                dt=ts,
                data={self._symbol: self._prices.history(self._symbol, ts)},
                portfolio_state=state,
            )
        except (KeyError, ValueError, IndexError) as e:
            raise SystemExecutionError(f"{self.name}: strategy failed on {ts.date()}: {e}") from e

        weight = min(max(float(weights.get(self._symbol, 0.0)), 0.0), 1.0)
        gap = weight * equity - holding_value

        if gap > ledger.precision:
            budget = min(gap, cash - ledger.cost_model.fee_per_trade)
            if budget <= ledger.precision:
                return None
            quantity = budget / ledger.cost_model.fill_price(price, TradeSide.BUY)
            if quantity < _MIN_QUANTITY:
                return None
            return ledger.buy(ts, self._symbol, price, quantity)

        if quantity_held > 0 and (weight == 0.0 or -gap > ledger.precision):
            quantity = quantity_held if weight == 0.0 else min(-gap / price, quantity_held)
            if quantity < _MIN_QUANTITY:
                return None
            # Proceeds must cover the fee; otherwise keep the position.
            proceeds = quantity * ledger.cost_model.fill_price(price, TradeSide.SELL)
            if cash + proceeds - ledger.cost_model.fee_per_trade < 0:
                logger.debug("%s: %.2f proceeds do not cover the fee on %s, sale skipped.",
                             self.name, proceeds, ts.date())
                return None
            return ledger.sell(ts, self._symbol, price, quantity)

        return None

    def __repr__(self) -> str:
        return f"SignalSystem(name={self.name!r}, symbol={self._symbol!r})"
