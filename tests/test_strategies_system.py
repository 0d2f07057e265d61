"""
Tests for SignalSystem: one tradable, one ledger, one strategy.

Each test binds a system to a small ledger and steps it by hand, checking the
single trade (or no trade) produced per tick.
"""

import pandas as pd
import pytest

from src.data.calendar import Query
from src.data.prices import PriceTable
from src.execution.ledger import CostModel, TradeManager, TradeSide
from src.strategies.base import AlwaysCashStrategy, AlwaysLongStrategy
from src.strategies.system import SignalSystem, SystemExecutionError


class WeightScript:
    """Returns a scripted weight per date (default 0)."""

    def __init__(self, symbol, weights):
        self.symbol = symbol
        self.weights = {pd.Timestamp(d): w for d, w in weights.items()}
        self.seen_rows = []

    def generate_target_weights(self, dt, data, portfolio_state=None):
        self.seen_rows.append(data[self.symbol]['timestamp'].max())
        return {self.symbol: self.weights.get(dt, 0.0)}


class BrokenStrategy:
    def generate_target_weights(self, dt, data, portfolio_state=None):
        raise KeyError("missing column")


@pytest.fixture
def prices():
    # Bars on Mon-Wed and Fri; no bar on Thursday 2024-01-04
    df = pd.DataFrame({
        'timestamp': pd.to_datetime(["2024-01-05", "2024-01-03", "2024-01-02", "2024-01-01"]),
        'closing_price': [20.0, 10.0, 10.0, 10.0],
    })
    return PriceTable({"AAA": df})


def make_system(prices, strategy, cash=1000.0, cost_model=None):
    system = SignalSystem("AAA", strategy, prices)
    ledger = TradeManager("2024-01-01", initial_cash=cash, cost_model=cost_model, price_source=prices)
    system.bind_ledger(ledger)
    assert system.prepare_run()
    return system


def test_default_name_and_tradable(prices):
    system = SignalSystem("AAA", AlwaysCashStrategy(), prices)
    assert system.name == "SYS_AAA"
    assert system.tradable == "AAA"
    assert system.ledger is None
    assert system.is_ready is False


def test_prepare_run_requires_ledger_and_prices(prices):
    system = SignalSystem("AAA", AlwaysCashStrategy(), prices)
    assert system.prepare_run() is False

    unknown = SignalSystem("ZZZ", AlwaysCashStrategy(), prices)
    unknown.bind_ledger(TradeManager("2024-01-01"))
    assert unknown.prepare_run() is False


def test_run_moment_before_prepare_raises(prices):
    system = SignalSystem("AAA", AlwaysLongStrategy("AAA"), prices)
    system.bind_ledger(TradeManager("2024-01-01", initial_cash=100.0))
    with pytest.raises(SystemExecutionError):
        system.run_moment("2024-01-01")


def test_always_long_buys_with_all_cash(prices):
    system = make_system(prices, AlwaysLongStrategy("AAA"))

    record = system.run_moment("2024-01-01")

    assert record.side is TradeSide.BUY
    assert record.quantity == pytest.approx(100.0)
    assert system.ledger.current_cash() == pytest.approx(0.0)
    # Fully invested: nothing more to do on the next bar
    assert system.run_moment("2024-01-02") is None


def test_buy_leaves_room_for_fee(prices):
    system = make_system(prices, AlwaysLongStrategy("AAA"), cost_model=CostModel(fee_per_trade=5.0))

    record = system.run_moment("2024-01-01")

    assert record.quantity == pytest.approx(99.5)
    assert system.ledger.current_cash() == pytest.approx(0.0)


def test_no_trade_without_bar(prices):
    system = make_system(prices, AlwaysLongStrategy("AAA"))
    assert system.run_moment("2024-01-04") is None
    assert system.ledger.trade_list() == []


def test_weight_zero_sells_everything(prices):
    strategy = WeightScript("AAA", {"2024-01-01": 1.0, "2024-01-02": 0.0})
    system = make_system(prices, strategy)

    system.run_moment("2024-01-01")
    record = system.run_moment("2024-01-02")

    assert record.side is TradeSide.SELL
    assert record.quantity == pytest.approx(100.0)
    assert system.ledger.position("AAA").quantity == 0.0
    assert system.ledger.current_cash() == pytest.approx(1000.0)


def test_sale_skipped_when_proceeds_do_not_cover_fee():
    """The holding is kept rather than sold into negative cash."""
    falling = PriceTable({"AAA": pd.DataFrame({
        'timestamp': pd.to_datetime(["2024-01-02", "2024-01-01"]),
        'closing_price': [5.0, 10.0],
    })})
    strategy = WeightScript("AAA", {"2024-01-01": 1.0, "2024-01-02": 0.0})
    system = make_system(falling, strategy, cash=10.0, cost_model=CostModel(fee_per_trade=5.0))

    bought = system.run_moment("2024-01-01")
    assert bought.quantity == pytest.approx(0.5)

    assert system.run_moment("2024-01-02") is None
    assert system.ledger.position("AAA").quantity == pytest.approx(0.5)
    assert system.ledger.current_cash() == pytest.approx(0.0)


def test_partial_rebalance_down(prices):
    """Weight 1.0 then 0.5 at a doubled price: sell half the holding value."""
    strategy = WeightScript("AAA", {"2024-01-01": 1.0, "2024-01-05": 0.5})
    system = make_system(prices, strategy)

    system.run_moment("2024-01-01")
    record = system.run_moment("2024-01-05")

    # equity = 100 * 20 = 2000, target 1000 -> sell 50 units
    assert record.side is TradeSide.SELL
    assert record.quantity == pytest.approx(50.0)
    assert system.ledger.current_cash() == pytest.approx(1000.0)


def test_weights_are_clamped(prices):
    strategy = WeightScript("AAA", {"2024-01-01": 3.0})
    system = make_system(prices, strategy)

    record = system.run_moment("2024-01-01")

    assert record.quantity == pytest.approx(100.0)


def test_strategy_sees_no_future_rows(prices):
    strategy = WeightScript("AAA", {})
    system = make_system(prices, strategy)

    system.run_moment("2024-01-02")

    assert strategy.seen_rows == [pd.Timestamp("2024-01-02")]


def test_strategy_failure_is_wrapped(prices):
    system = make_system(prices, BrokenStrategy())
    with pytest.raises(SystemExecutionError):
        system.run_moment("2024-01-01")


def test_clone_copies_configuration_only(prices):
    system = make_system(prices, WeightScript("AAA", {"2024-01-01": 1.0}))
    system.set_output_window(system.price_window(Query("2024-01-01", "2024-01-06")))

    twin = system.clone()

    assert twin.name == system.name
    assert twin.tradable == "AAA"
    assert twin.ledger is None
    assert twin.output_window is None
    assert twin.is_ready is False
    assert twin.strategy is not system.strategy


def test_price_window(prices):
    system = SignalSystem("AAA", AlwaysCashStrategy(), prices)

    window = system.price_window(Query("2024-01-02", "2024-01-05"))

    assert list(window['timestamp']) == [pd.Timestamp("2024-01-03"), pd.Timestamp("2024-01-02")]

    unknown = SignalSystem("ZZZ", AlwaysCashStrategy(), prices)
    assert unknown.price_window(Query("2024-01-02", "2024-01-05")).empty
