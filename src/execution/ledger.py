"""
Capital ledger ("trade manager") for one account owner.

**Conceptual**: A TradeManager is the bookkeeping behind every account in the
simulation: the portfolio's master account, its shadow capital pool, and the
sub-account of each running system. It tracks:
  - cash, with an explicit log of deposits and withdrawals (cash flows),
  - positions per symbol,
  - the trade log (every buy and sell, with effective price and cost),
and can reconstruct its funds at any past date from those logs, which is how
funds and profit curves are produced after a run.

**Cost model**: trades fill at the requested price adjusted by a symmetric
slippage in basis points (buy: pay more, sell: receive less), plus a flat fee
per trade. Fractional quantities are allowed.

**Funds vs profit**:
  - total assets = cash + market value of positions
  - base cash    = initial cash + deposits - withdrawals (capital put in)
  - profit       = total assets - base cash
Moving cash between two ledgers therefore never shows up as profit in the sum
of both, which is what lets the portfolio add curves across accounts.

**Valuation**: positions are priced through the optional `price_source`
(anything with `price_on(symbol, date)`); without one, or when the source has
no price yet, the last traded price up to that date is used.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd

from src.utils.time import to_timestamp

logger = logging.getLogger(__name__)

# Quantities and cash amounts within this distance of zero are treated as zero.
_EPSILON = 1e-9


class LedgerError(ValueError):
    """Raised for invalid ledger operations (bad amounts, overdrafts, oversells, bad dates)."""
    pass


class TradeSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class CostModel:
    """
    Execution cost model shared by a master ledger and every ledger derived from it.

    Attributes:
        slippage_bps: Slippage in basis points applied to the fill price.
        fee_per_trade: Flat fee charged on every trade.
    """
    slippage_bps: float = 0.0
    fee_per_trade: float = 0.0

    def __post_init__(self):
        if self.slippage_bps < 0:
            raise ValueError(f"slippage_bps must be non-negative, got {self.slippage_bps}")
        if self.fee_per_trade < 0:
            raise ValueError(f"fee_per_trade must be non-negative, got {self.fee_per_trade}")

    def fill_price(self, price: float, side: TradeSide) -> float:
        """Effective price after slippage for a trade on `side`."""
        if side is TradeSide.BUY:
            return price * (1 + self.slippage_bps / 10000)
        return price * (1 - self.slippage_bps / 10000)


@dataclass(frozen=True)
class TradeRecord:
    """
    One executed trade.

    Attributes:
        symbol: Traded instrument.
        date: Trade date (naive, normalized).
        side: BUY or SELL.
        quantity: Positive quantity traded.
        price: Effective fill price (slippage included).
        cost: Fee charged for the trade.
    """
    symbol: str
    date: pd.Timestamp
    side: TradeSide
    quantity: float
    price: float
    cost: float = 0.0

    @property
    def notional(self) -> float:
        return self.quantity * self.price

    @property
    def cash_delta(self) -> float:
        """Change in cash caused by this trade (negative for buys)."""
        if self.side is TradeSide.BUY:
            return -(self.notional + self.cost)
        return self.notional - self.cost

    @property
    def signed_quantity(self) -> float:
        return self.quantity if self.side is TradeSide.BUY else -self.quantity


@dataclass
class PositionRecord:
    """
    Holding in a single instrument.

    Attributes:
        symbol: Instrument symbol.
        quantity: Units held (zero when flat).
        last_price: Last known price, used to value the position.
    """
    symbol: str
    quantity: float = 0.0
    last_price: float = 0.0

    @property
    def market_value(self) -> float:
        return self.quantity * self.last_price


@dataclass(frozen=True)
class FundsRecord:
    """
    Funds snapshot of an account (or a sum of accounts).

    Attributes:
        cash: Cash balance.
        market_value: Market value of all positions.
        base_cash: Net capital contributed (initial cash + deposits - withdrawals).
    """
    cash: float = 0.0
    market_value: float = 0.0
    base_cash: float = 0.0

    @property
    def total_assets(self) -> float:
        return self.cash + self.market_value

    @property
    def profit(self) -> float:
        return self.total_assets - self.base_cash

    def __add__(self, other: "FundsRecord") -> "FundsRecord":
        if not isinstance(other, FundsRecord):
            return NotImplemented
        return FundsRecord(
            cash=self.cash + other.cash,
            market_value=self.market_value + other.market_value,
            base_cash=self.base_cash + other.base_cash,
        )


@dataclass(frozen=True)
class CashFlow:
    """Deposit (positive amount) or withdrawal (negative amount)."""
    date: pd.Timestamp
    amount: float


class TradeManager:
    """
    Cash, positions and trade log for one account.

    Args:
        init_date: Account inception date. No event may be dated earlier.
        initial_cash: Cash at inception (>= 0).
        cost_model: Slippage/fee model (defaults to a cost-free model).
        precision: Cash amounts at or below this are considered dust.
        price_source: Optional object with `price_on(symbol, date)` used for valuation.
        name: Account name, used in logs.

    Raises:
        ValueError: If initial_cash or precision is negative.
    """

    def __init__(
        self,
        init_date,
        initial_cash: float = 0.0,
        cost_model: Optional[CostModel] = None,
        precision: float = 0.01,
        price_source=None,
        name: str = "TM",
    ):
        if initial_cash < 0:
            raise ValueError(f"initial_cash must be non-negative, got {initial_cash}")
        if precision < 0:
            raise ValueError(f"precision must be non-negative, got {precision}")

        self._init_date = to_timestamp(init_date)
        self._initial_cash = float(initial_cash)
        self._cost_model = cost_model or CostModel()
        self._precision = float(precision)
        self._price_source = price_source
        self._name = name

        self._cash = self._initial_cash
        self._positions: Dict[str, PositionRecord] = {}
        self._cash_flows: List[CashFlow] = []
        self._trades: List[TradeRecord] = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @property
    def init_date(self) -> pd.Timestamp:
        return self._init_date

    @property
    def initial_cash(self) -> float:
        return self._initial_cash

    @property
    def cost_model(self) -> CostModel:
        return self._cost_model

    @property
    def precision(self) -> float:
        return self._precision

    @property
    def price_source(self):
        return self._price_source

    def reset(self) -> None:
        """Return to the inception state: initial cash, no positions, empty logs."""
        self._cash = self._initial_cash
        self._positions = {}
        self._cash_flows = []
        self._trades = []

    def clone(self) -> "TradeManager":
        """Independent copy with the same configuration and the same current state."""
        other = TradeManager(
            init_date=self._init_date,
            initial_cash=self._initial_cash,
            cost_model=self._cost_model,
            precision=self._precision,
            price_source=self._price_source,
            name=self._name,
        )
        other._cash = self._cash
        other._positions = {s: replace(p) for s, p in self._positions.items()}
        other._cash_flows = list(self._cash_flows)
        other._trades = list(self._trades)
        return other

    def sub_ledger(self, name: str) -> "TradeManager":
        """Fresh zero-cash ledger sharing this ledger's inception date, cost model, precision and price source."""
        return TradeManager(
            init_date=self._init_date,
            initial_cash=0.0,
            cost_model=self._cost_model,
            precision=self._precision,
            price_source=self._price_source,
            name=name,
        )

    # ------------------------------------------------------------------
    # Cash movements
    # ------------------------------------------------------------------

    def _check_date(self, date) -> pd.Timestamp:
        ts = to_timestamp(date)
        if ts < self._init_date:
            raise LedgerError(
                f"{self._name}: date {ts.date()} is before account inception {self._init_date.date()}."
            )
        return ts

    def deposit(self, date, amount: float) -> None:
        """
        Add cash to the account.

        Raises:
            LedgerError: If amount <= 0 or date precedes inception.
        """
        ts = self._check_date(date)
        if not amount > 0:
            raise LedgerError(f"{self._name}: deposit amount must be positive, got {amount}")
        self._cash += amount
        self._cash_flows.append(CashFlow(ts, float(amount)))
        logger.debug("%s deposit %.6f on %s -> cash %.6f", self._name, amount, ts.date(), self._cash)

    def withdraw(self, date, amount: float) -> None:
        """
        Remove cash from the account.

        A request exceeding the balance by less than floating-point noise is
        clamped to the balance.

        Raises:
            LedgerError: If amount <= 0, exceeds available cash, or date precedes inception.
        """
        ts = self._check_date(date)
        if not amount > 0:
            raise LedgerError(f"{self._name}: withdrawal amount must be positive, got {amount}")
        if amount > self._cash:
            if amount - self._cash > _EPSILON:
                raise LedgerError(
                    f"{self._name}: cannot withdraw {amount:.6f}, only {self._cash:.6f} available."
                )
            amount = self._cash
        self._cash -= amount
        self._cash_flows.append(CashFlow(ts, -float(amount)))
        logger.debug("%s withdraw %.6f on %s -> cash %.6f", self._name, amount, ts.date(), self._cash)

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    def buy(self, date, symbol: str, price: float, quantity: float) -> TradeRecord:
        """
        Buy `quantity` of `symbol` at `price` (before slippage).

        Returns:
            The recorded TradeRecord.

        Raises:
            LedgerError: On non-positive price/quantity or insufficient cash.
        """
        ts = self._check_date(date)
        if not price > 0 or not quantity > 0:
            raise LedgerError(f"{self._name}: invalid buy {quantity} {symbol} @ {price}")

        fill = self._cost_model.fill_price(price, TradeSide.BUY)
        record = TradeRecord(
            symbol=symbol,
            date=ts,
            side=TradeSide.BUY,
            quantity=float(quantity),
            price=fill,
            cost=self._cost_model.fee_per_trade,
        )
        if -record.cash_delta - self._cash > _EPSILON:
            raise LedgerError(
                f"{self._name}: insufficient cash to buy {quantity} {symbol} "
                f"(needs {-record.cash_delta:.6f}, has {self._cash:.6f})."
            )
        self._apply(record)
        return record

    def sell(self, date, symbol: str, price: float, quantity: float) -> TradeRecord:
        """
        Sell `quantity` of `symbol` at `price` (before slippage). Long-only: cannot sell more than held.

        Raises:
            LedgerError: On non-positive price/quantity, quantity above the held
                         position, or proceeds too small to cover the fee.
        """
        ts = self._check_date(date)
        if not price > 0 or not quantity > 0:
            raise LedgerError(f"{self._name}: invalid sell {quantity} {symbol} @ {price}")

        held = self.position(symbol).quantity
        if held <= _EPSILON or quantity - held > _EPSILON:
            raise LedgerError(
                f"{self._name}: cannot sell {quantity} {symbol}, only {held} held."
            )
        record = TradeRecord(
            symbol=symbol,
            date=ts,
            side=TradeSide.SELL,
            quantity=float(min(quantity, held)),
            price=self._cost_model.fill_price(price, TradeSide.SELL),
            cost=self._cost_model.fee_per_trade,
        )
        if -(self._cash + record.cash_delta) > _EPSILON:
            raise LedgerError(
                f"{self._name}: selling {record.quantity} {symbol} would leave negative cash "
                f"(proceeds {record.notional:.6f}, fee {record.cost:.6f}, has {self._cash:.6f})."
            )
        self._apply(record)
        return record

    def add_trade_record(self, record: TradeRecord) -> None:
        """
        Book a trade executed elsewhere (e.g. by a system's sub-account).

        The trade's cash and position effects are applied without a funds
        check: the account that executed it already enforced one.

        Raises:
            LedgerError: If the record is dated before inception.
        """
        self._check_date(record.date)
        self._apply(record)

    def _apply(self, record: TradeRecord) -> None:
        self._cash += record.cash_delta
        position = self._positions.get(record.symbol) or PositionRecord(record.symbol)
        new_quantity = position.quantity + record.signed_quantity
        if abs(new_quantity) < _EPSILON:
            self._positions.pop(record.symbol, None)
        else:
            self._positions[record.symbol] = PositionRecord(
                symbol=record.symbol,
                quantity=new_quantity,
                last_price=record.price,
            )
        self._trades.append(record)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_cash(self) -> float:
        return self._cash

    def trade_list(self) -> List[TradeRecord]:
        return list(self._trades)

    def cash_flows(self) -> List[CashFlow]:
        return list(self._cash_flows)

    def positions(self) -> Dict[str, PositionRecord]:
        """Current non-zero positions (copies)."""
        return {s: replace(p) for s, p in self._positions.items()}

    def position(self, symbol: str, date=None) -> PositionRecord:
        """
        Position in `symbol`, currently or as of the end of `date`.

        Returns a zero-quantity record when nothing is held.
        """
        if date is None:
            current = self._positions.get(symbol)
            return replace(current) if current else PositionRecord(symbol)

        ts = to_timestamp(date)
        quantity = 0.0
        last_price = 0.0
        for trade in self._trades:
            if trade.symbol == symbol and trade.date <= ts:
                quantity += trade.signed_quantity
                last_price = trade.price
        if abs(quantity) < _EPSILON:
            quantity = 0.0
        return PositionRecord(symbol, quantity, last_price)

    def cash_at(self, date) -> float:
        """Cash at the end of `date` (0.0 before inception)."""
        ts = to_timestamp(date)
        if ts < self._init_date:
            return 0.0
        cash = self._initial_cash
        cash += sum(flow.amount for flow in self._cash_flows if flow.date <= ts)
        cash += sum(trade.cash_delta for trade in self._trades if trade.date <= ts)
        return cash

    def base_cash_at(self, date) -> float:
        """Net capital contributed up to the end of `date` (0.0 before inception)."""
        ts = to_timestamp(date)
        if ts < self._init_date:
            return 0.0
        return self._initial_cash + sum(flow.amount for flow in self._cash_flows if flow.date <= ts)

    def _valuation_price(self, symbol: str, ts: pd.Timestamp, fallback: float) -> float:
        if self._price_source is not None:
            price = self._price_source.price_on(symbol, ts)
            if price is not None:
                return price
        return fallback

    def funds(self, date=None) -> FundsRecord:
        """
        Funds now (date=None) or at the end of `date`.

        Current funds value positions at their last traded price; dated funds
        use the price source when one is configured.
        """
        if date is None:
            market_value = sum(p.market_value for p in self._positions.values())
            base_cash = self._initial_cash + sum(flow.amount for flow in self._cash_flows)
            return FundsRecord(cash=self._cash, market_value=market_value, base_cash=base_cash)

        ts = to_timestamp(date)
        if ts < self._init_date:
            return FundsRecord()

        market_value = 0.0
        for symbol in {trade.symbol for trade in self._trades if trade.date <= ts}:
            position = self.position(symbol, ts)
            if position.quantity != 0:
                price = self._valuation_price(symbol, ts, position.last_price)
                market_value += position.quantity * price
        return FundsRecord(
            cash=self.cash_at(ts),
            market_value=market_value,
            base_cash=self.base_cash_at(ts),
        )

    def funds_curve(self, dates) -> pd.Series:
        """Total assets at the end of each date in `dates`."""
        index = pd.DatetimeIndex([to_timestamp(d) for d in dates])
        values = [self.funds(d).total_assets for d in index]
        return pd.Series(values, index=index, name='funds', dtype=float)

    def profit_curve(self, dates) -> pd.Series:
        """Profit (total assets - base cash) at the end of each date in `dates`."""
        index = pd.DatetimeIndex([to_timestamp(d) for d in dates])
        values = [self.funds(d).profit for d in index]
        return pd.Series(values, index=index, name='profit', dtype=float)

    def __repr__(self) -> str:
        return (
            f"TradeManager(name={self._name!r}, init_date={self._init_date.date()}, "
            f"cash={self._cash:.2f}, positions={len(self._positions)})"
        )
