"""
Logging setup for command-line entry points.

Library modules only ever do `logger = logging.getLogger(__name__)` and emit
records; they never attach handlers. Scripts under actions/ call
configure_logging() once at startup to decide where records go.
"""

import logging

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Configure the root logger with a console handler (and optional file handler).

    Calling this twice does not duplicate handlers: handlers installed by a
    previous call are removed first.

    Args:
        level: Level name ("DEBUG", "INFO", ...). Unknown names fall back to INFO.
        log_file: Optional path of a file that receives the same records.

    Returns:
        The configured root logger.
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    formatter = logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "_portfolio_handler", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler._portfolio_handler = True
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler._portfolio_handler = True
        root_logger.addHandler(file_handler)

    root_logger.setLevel(numeric_level)
    return root_logger
