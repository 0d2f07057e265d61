"""
Portfolio backtest driver.

**Conceptual**: The engine is a thin layer on top of `Portfolio.run()`. It runs
the portfolio over a query, then reads the consolidated funds and profit curves
back on the calendar's trading dates and summarizes them. Keeping the driver
separate from the portfolio means the portfolio stays a pure control loop and
reporting choices (which dates, which metrics) live here.

**Outputs**:
  - funds curve: total assets of the whole portfolio per trading date
  - profit curve: total assets minus capital put in, per trading date
  - trades: the master ledger's trade log (fleet-wide, in execution order)
  - metrics: total_return, cagr, max_drawdown, final_funds, final_profit,
    num_trades, num_trading_days
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from src.analytics.risk_metrics import compute_cagr, compute_max_drawdown, compute_total_return
from src.data.calendar import Query, TradingCalendar
from src.execution.ledger import TradeRecord
from src.orchestration.portfolio import Portfolio

logger = logging.getLogger(__name__)


@dataclass
class PortfolioBacktestResult:
    """
    Results from a portfolio backtest.

    Attributes:
        funds_curve: Total assets per trading date (ascending index).
        profit_curve: Profit per trading date.
        trades: Master ledger trade log.
        metrics: Summary metrics keyed by name.
        query: The date range that was simulated.
    """
    funds_curve: pd.Series
    profit_curve: pd.Series
    trades: List[TradeRecord] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)
    query: Optional[Query] = None

    def trades_frame(self) -> pd.DataFrame:
        """Trade log as a DataFrame (one row per trade)."""
        columns = ['date', 'symbol', 'side', 'quantity', 'price', 'cost']
        rows = [
            {
                'date': t.date,
                'symbol': t.symbol,
                'side': t.side.value,
                'quantity': t.quantity,
                'price': t.price,
                'cost': t.cost,
            }
            for t in self.trades
        ]
        return pd.DataFrame(rows, columns=columns)


def summarize_funds(funds_curve: pd.Series, profit_curve: pd.Series, num_trades: int) -> Dict[str, float]:
    """
    Summary metrics for a funds/profit curve pair.

    An empty curve yields NaN returns and zero counts.
    """
    metrics: Dict[str, float] = {
        'total_return': compute_total_return(funds_curve),
        'cagr': compute_cagr(funds_curve, periods_per_year=252),
        'max_drawdown': compute_max_drawdown(funds_curve),
        'final_funds': float(funds_curve.iloc[-1]) if not funds_curve.empty else float('nan'),
        'final_profit': float(profit_curve.iloc[-1]) if not profit_curve.empty else float('nan'),
        'num_trades': num_trades,
        'num_trading_days': len(funds_curve),
    }
    return metrics


def run_portfolio_backtest(
    portfolio: Portfolio,
    query: Query,
    calendar: Optional[TradingCalendar] = None,
) -> PortfolioBacktestResult:
    """
    Run `portfolio` over `query` and collect its results.

    Args:
        portfolio: Portfolio with ledger, selector and allocator set.
        query: Date range to simulate.
        calendar: Trading calendar; defaults to the portfolio's own.

    Returns:
        PortfolioBacktestResult evaluated on the calendar's trading dates.

    Raises:
        ValueError: If no calendar is available.
        PortfolioNotReadyError: If the portfolio cannot be prepared.
    """
    calendar = calendar or portfolio.calendar
    if calendar is None:
        raise ValueError("No trading calendar given and the portfolio has none.")

    portfolio.run(query, calendar)

    dates = calendar.trading_days(query)
    funds_curve = portfolio.get_funds_curve(dates)
    profit_curve = portfolio.get_profit_curve(dates)
    trades = portfolio.ledger.trade_list()

    metrics = summarize_funds(funds_curve, profit_curve, len(trades))
    logger.info(
        "%s: %d trading days, %d trades, total return %.2f%%",
        portfolio.name, metrics['num_trading_days'], metrics['num_trades'],
        metrics['total_return'] * 100,
    )

    return PortfolioBacktestResult(
        funds_curve=funds_curve,
        profit_curve=profit_curve,
        trades=trades,
        metrics=metrics,
        query=query,
    )
