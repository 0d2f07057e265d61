#!/usr/bin/env python3
"""
Run a multi-system portfolio backtest.

**Setup**: one trend-following system per symbol (EMA(fast) over SMA(slow)),
a momentum selector that picks the strongest `--top-n` symbols each day, and an
allocator that funds newly selected systems from the portfolio's free capital.

Prices come from `<data-dir>/<SYMBOL>.csv` when `--data-dir` is given, or from
seeded synthetic GBM paths otherwise, so the script runs with no data on disk.

**Usage**:
    python actions/run_portfolio_backtest.py
    python actions/run_portfolio_backtest.py --symbols AAA BBB CCC --top-n 2 --trace
    python actions/run_portfolio_backtest.py --data-dir data/raw --symbols QQQ SPY \\
        --start 2023-01-01 --end 2024-01-01 --allocator fixed --grant 25000

Ledger defaults (initial cash, precision, costs) and logging defaults come from
the environment / `.env` (see src/config/settings.py); flags override them.

**Exit codes**:
  - 0: Success
  - 1: Configuration error (bad dates, missing data, invalid settings)
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

import pandas as pd

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.allocation.allocator import EqualWeightAllocator, FixedGrantAllocator
from src.analytics.synthetic_data import generate_price_table_frames
from src.backtesting.engine import run_portfolio_backtest
from src.config.settings import Settings, get_settings
from src.data.calendar import PriceHistoryCalendar, Query
from src.data.loaders import load_price_table
from src.data.prices import PriceTable
from src.data.schemas import SchemaValidationError
from src.execution.ledger import CostModel, TradeManager
from src.orchestration.portfolio import Portfolio
from src.selection.selector import MomentumSelector
from src.strategies.base import MovingAverageTrendStrategy
from src.strategies.system import SignalSystem
from src.utils.log import configure_logging

logger = logging.getLogger("run_portfolio_backtest")

DEFAULT_SYMBOLS = ["AAA", "BBB", "CCC", "DDD"]
WARMUP_BUSINESS_DAYS = 60


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run a multi-system portfolio backtest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--data-dir", type=str, default=None,
                        help="Folder of <SYMBOL>.csv price files (default: synthetic prices)")
    parser.add_argument("--symbols", nargs="+", default=None,
                        help=f"Symbols to trade (default: {' '.join(DEFAULT_SYMBOLS)})")
    parser.add_argument("--start", type=str, default="2023-01-02",
                        help="First simulated date, YYYY-MM-DD (default: 2023-01-02)")
    parser.add_argument("--end", type=str, default="2024-01-02",
                        help="End date (exclusive), YYYY-MM-DD (default: 2024-01-02)")
    parser.add_argument("--initial-cash", type=float, default=None,
                        help="Master account capital (default: LEDGER_INITIAL_CASH)")
    parser.add_argument("--allocator", choices=["equal", "fixed"], default="equal",
                        help="Fund allocator (default: equal)")
    parser.add_argument("--grant", type=float, default=25_000.0,
                        help="Per-system grant for --allocator fixed (default: 25000)")
    parser.add_argument("--top-n", type=int, default=2,
                        help="Systems selected per day (default: 2)")
    parser.add_argument("--fast", type=int, default=10, help="Fast EMA span (default: 10)")
    parser.add_argument("--slow", type=int, default=30, help="Slow SMA window (default: 30)")
    parser.add_argument("--lookback", type=int, default=20,
                        help="Momentum lookback in bars (default: 20)")
    parser.add_argument("--seed", type=int, default=7, help="Seed for synthetic prices (default: 7)")
    parser.add_argument("--trace", action="store_true", default=None,
                        help="Log selections and allocations every day")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Log level (default: LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def build_prices(args, symbols: list[str], query: Query) -> PriceTable:
    """Load CSV prices or generate synthetic ones covering the query plus warm-up."""
    if args.data_dir:
        return load_price_table(symbols, args.data_dir)

    warmup_start = query.start - pd.offsets.BDay(WARMUP_BUSINESS_DAYS)
    dates = pd.bdate_range(warmup_start, query.end, inclusive="left")
    frames = generate_price_table_frames(symbols, dates, seed=args.seed)
    return PriceTable(frames)


def build_portfolio(args, settings: Settings, prices: PriceTable, symbols: list[str], query: Query) -> Portfolio:
    ledger_settings = settings.ledger
    ledger = TradeManager(
        query.start,
        initial_cash=ledger_settings.initial_cash,
        cost_model=CostModel(ledger_settings.slippage_bps, ledger_settings.fee_per_trade),
        precision=ledger_settings.precision,
        price_source=prices,
        name="TM_MASTER",
    )

    systems = [
        SignalSystem(symbol, MovingAverageTrendStrategy(symbol, args.fast, args.slow), prices)
        for symbol in symbols
    ]
    selector = MomentumSelector(systems, prices, lookback=args.lookback, top_n=args.top_n)

    if args.allocator == "fixed":
        allocator = FixedGrantAllocator(args.grant)
    else:
        allocator = EqualWeightAllocator()

    return Portfolio.from_settings(
        settings.portfolio,
        ledger=ledger,
        selector=selector,
        allocator=allocator,
        calendar=PriceHistoryCalendar(prices, symbols),
    )


def print_summary(result) -> None:
    metrics = result.metrics
    print("=" * 60)
    print("Portfolio backtest results")
    print("=" * 60)
    print(f"  Period:          {result.query.start.date()} to {result.query.end.date()}")
    print(f"  Trading Days:    {metrics['num_trading_days']:>12,}")
    print(f"  Trades:          {metrics['num_trades']:>12,}")
    print(f"  Final Funds:     {metrics['final_funds']:>12,.2f}")
    print(f"  Final Profit:    {metrics['final_profit']:>12,.2f}")
    print(f"  Total Return:    {metrics['total_return']:>12.2%}")
    print(f"  CAGR:            {metrics['cagr']:>12.2%}")
    print(f"  Max Drawdown:    {metrics['max_drawdown']:>12.2%}")
    print("=" * 60)


def main(argv=None) -> int:
    """
    Entry point.

    Returns:
        Process exit code (0 on success, 1 on configuration errors).
    """
    args = parse_args(argv)

    try:
        settings = get_settings()
        if args.initial_cash is not None:
            settings = replace(settings, ledger=replace(settings.ledger, initial_cash=args.initial_cash))
        if args.trace is not None:
            settings = replace(settings, portfolio=replace(settings.portfolio, trace=args.trace))
        if args.log_level is not None:
            settings = replace(settings, logging=replace(settings.logging, level=args.log_level))
        if args.top_n < 1:
            raise ValueError(f"--top-n must be >= 1, got {args.top_n}")
        query = Query(args.start, args.end)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.logging.level, settings.logging.log_file)

    symbols = args.symbols or DEFAULT_SYMBOLS
    try:
        prices = build_prices(args, symbols, query)
        portfolio = build_portfolio(args, settings, prices, symbols, query)
    except (FileNotFoundError, SchemaValidationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info("Running %s over %d symbols with %s", portfolio.name, len(symbols),
                portfolio.allocator.name)
    result = run_portfolio_backtest(portfolio, query)
    print_summary(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
