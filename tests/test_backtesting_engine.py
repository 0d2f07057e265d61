"""
Tests for the portfolio backtest driver.

The portfolios here are small enough that the funds curve can be written
down by hand: always-long systems on prices that compound 1% per day.
"""

import math

import pandas as pd
import pytest

from src.allocation.allocator import EqualWeightAllocator
from src.backtesting.engine import PortfolioBacktestResult, run_portfolio_backtest, summarize_funds
from src.data.calendar import BusinessDayCalendar, PriceHistoryCalendar, Query
from src.execution.ledger import TradeManager
from src.orchestration.errors import PortfolioNotReadyError
from src.orchestration.portfolio import Portfolio
from src.selection.selector import FixedSelector
from src.strategies.base import AlwaysCashStrategy, AlwaysLongStrategy
from src.strategies.system import SignalSystem

QUERY = Query("2024-01-01", "2024-01-13")


def make_portfolio(prices, strategy_factory, calendar=None):
    systems = [SignalSystem(s, strategy_factory(s), prices) for s in ("AAA", "BBB", "CCC")]
    ledger = TradeManager("2024-01-01", initial_cash=9000.0, price_source=prices)
    return Portfolio(ledger, FixedSelector(systems), EqualWeightAllocator(), calendar=calendar)


def test_backtest_always_long_tracks_prices(rising_prices, trading_days):
    """
    Scenario:
      - 9000 split equally across three always-long systems on day 1
      - every symbol compounds 1% per trading day

    Expected:
      - funds on day i = 9000 * 1.01**i
      - three trades (one buy per system), ten trading days
    """
    portfolio = make_portfolio(rising_prices, AlwaysLongStrategy)

    result = run_portfolio_backtest(portfolio, QUERY, PriceHistoryCalendar(rising_prices))

    assert isinstance(result, PortfolioBacktestResult)
    assert list(result.funds_curve.index) == trading_days
    assert result.funds_curve.iloc[0] == pytest.approx(9000.0)
    assert result.funds_curve.iloc[-1] == pytest.approx(9000.0 * 1.01 ** 9)
    assert result.profit_curve.iloc[-1] == pytest.approx(9000.0 * (1.01 ** 9 - 1))

    metrics = result.metrics
    assert metrics['total_return'] == pytest.approx(1.01 ** 9 - 1)
    assert metrics['max_drawdown'] == pytest.approx(0.0)
    assert metrics['num_trades'] == 3
    assert metrics['num_trading_days'] == 10
    assert metrics['final_funds'] == pytest.approx(9000.0 * 1.01 ** 9)
    assert result.query == QUERY


def test_backtest_always_cash_keeps_capital(flat_prices):
    portfolio = make_portfolio(flat_prices, lambda s: AlwaysCashStrategy(),
                               calendar=PriceHistoryCalendar(flat_prices))

    result = run_portfolio_backtest(portfolio, QUERY)

    assert (result.funds_curve == 9000.0).all()
    assert (result.profit_curve == 0.0).all()
    assert result.trades == []
    assert result.metrics['total_return'] == 0.0
    assert result.trades_frame().empty


def test_trades_frame_columns(rising_prices):
    portfolio = make_portfolio(rising_prices, AlwaysLongStrategy)

    result = run_portfolio_backtest(portfolio, QUERY, BusinessDayCalendar())
    frame = result.trades_frame()

    assert list(frame.columns) == ['date', 'symbol', 'side', 'quantity', 'price', 'cost']
    assert list(frame['symbol']) == ["AAA", "BBB", "CCC"]
    assert set(frame['side']) == {"BUY"}


def test_backtest_requires_calendar(flat_prices):
    portfolio = make_portfolio(flat_prices, AlwaysLongStrategy)
    with pytest.raises(ValueError):
        run_portfolio_backtest(portfolio, QUERY)


def test_backtest_with_incomplete_portfolio(flat_prices):
    portfolio = Portfolio(TradeManager("2024-01-01", initial_cash=100.0), calendar=BusinessDayCalendar())
    with pytest.raises(PortfolioNotReadyError):
        run_portfolio_backtest(portfolio, QUERY)


def test_summarize_funds_empty_curves():
    empty = pd.Series([], dtype=float)

    metrics = summarize_funds(empty, empty, 0)

    assert math.isnan(metrics['total_return'])
    assert metrics['max_drawdown'] == 0.0
    assert metrics['num_trading_days'] == 0
