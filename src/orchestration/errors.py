"""Exceptions raised by the portfolio orchestrator."""


class PortfolioError(RuntimeError):
    """Base class for portfolio orchestration failures."""
    pass


class PortfolioNotReadyError(PortfolioError):
    """A run step or report was requested before a successful prepare_run()."""
    pass


class PortfolioConsistencyError(PortfolioError):
    """
    Internal invariant breach: the selector returned a prototype that has no
    live counterpart. Never recovered from.
    """
    pass
