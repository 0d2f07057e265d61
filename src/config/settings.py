"""
Configuration settings for portfolio simulations.

**Conceptual**: Settings are strongly-typed, frozen dataclasses loaded from
environment variables (a `.env` file at the project root is read first, when
present). Each section validates itself in `__post_init__`, so a bad value
fails at startup with a clear message instead of halfway through a run.

**Sections**:
  - LedgerSettings: master account size and cost model.
  - PortfolioSettings: portfolio name and per-tick trace logging.
  - LoggingSettings: log level and optional log file for entry points.

Library classes never read the environment themselves. Entry points load a
Settings object (or build one in code) and pass the values in.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (variables already set in the environment win)
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false/1/0), got: {raw}")


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw}")


@dataclass(frozen=True)
class LedgerSettings:
    """
    Master account configuration.

    Attributes:
        initial_cash: Starting capital of the master account (> 0).
        precision: Cash at or below this is dust; systems holding only dust are retired.
        slippage_bps: Slippage in basis points applied to every fill.
        fee_per_trade: Flat fee per trade.
    """
    initial_cash: float = 100_000.0
    precision: float = 0.01
    slippage_bps: float = 0.0
    fee_per_trade: float = 0.0

    def __post_init__(self):
        if self.initial_cash <= 0:
            raise ValueError(f"LEDGER_INITIAL_CASH must be positive, got: {self.initial_cash}")
        if self.precision < 0:
            raise ValueError(f"LEDGER_PRECISION must be non-negative, got: {self.precision}")
        if self.slippage_bps < 0:
            raise ValueError(f"LEDGER_SLIPPAGE_BPS must be non-negative, got: {self.slippage_bps}")
        if self.fee_per_trade < 0:
            raise ValueError(f"LEDGER_FEE_PER_TRADE must be non-negative, got: {self.fee_per_trade}")

    @classmethod
    def from_env(cls) -> "LedgerSettings":
        """
        Load ledger settings from environment variables.

        **Environment variables** (all optional):
          - LEDGER_INITIAL_CASH (default 100000)
          - LEDGER_PRECISION (default 0.01)
          - LEDGER_SLIPPAGE_BPS (default 0)
          - LEDGER_FEE_PER_TRADE (default 0)

        Raises:
            ValueError: If a value is not a number or fails validation.
        """
        return cls(
            initial_cash=_parse_float("LEDGER_INITIAL_CASH", os.getenv("LEDGER_INITIAL_CASH", "100000")),
            precision=_parse_float("LEDGER_PRECISION", os.getenv("LEDGER_PRECISION", "0.01")),
            slippage_bps=_parse_float("LEDGER_SLIPPAGE_BPS", os.getenv("LEDGER_SLIPPAGE_BPS", "0")),
            fee_per_trade=_parse_float("LEDGER_FEE_PER_TRADE", os.getenv("LEDGER_FEE_PER_TRADE", "0")),
        )


@dataclass(frozen=True)
class PortfolioSettings:
    """
    Portfolio orchestrator configuration.

    Attributes:
        name: Portfolio name used in logs and repr.
        trace: Emit per-tick INFO lines (selections, post-allocation cash).
               Purely observational.
    """
    name: str = "Portfolio"
    trace: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValueError("PORTFOLIO_NAME must not be empty.")

    @classmethod
    def from_env(cls) -> "PortfolioSettings":
        """
        Load portfolio settings from PORTFOLIO_NAME and PORTFOLIO_TRACE.

        Raises:
            ValueError: If PORTFOLIO_TRACE is not a boolean.
        """
        return cls(
            name=os.getenv("PORTFOLIO_NAME", "Portfolio"),
            trace=_parse_bool("PORTFOLIO_TRACE", os.getenv("PORTFOLIO_TRACE", "false")),
        )


@dataclass(frozen=True)
class LoggingSettings:
    """
    Logging configuration for entry points.

    Attributes:
        level: Root log level name.
        log_file: Optional file receiving the same records as the console.
    """
    level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(valid)}, got: {self.level}")

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
        )


@dataclass(frozen=True)
class Settings:
    """
    Top-level settings aggregating every section.

    **Usage pattern**:
      ```python
      from src.config.settings import get_settings

      settings = get_settings()
      ledger = TradeManager(start, settings.ledger.initial_cash, ...)
      ```

    Tests build `Settings(ledger=LedgerSettings(initial_cash=1_000))` directly
    instead of touching the environment.
    """
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    portfolio: PortfolioSettings = field(default_factory=PortfolioSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            ledger=LedgerSettings.from_env(),
            portfolio=PortfolioSettings.from_env(),
            logging=LoggingSettings.from_env(),
        )


_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton, loading it from the environment on first use.

    Returns:
        Cached Settings object.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()
    return _default_settings


def reset_settings():
    """Clear the cached settings (tests call this after changing the environment)."""
    global _default_settings
    _default_settings = None
