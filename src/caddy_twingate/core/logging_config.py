"""Logging setup for the command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "caddy_twingate"

# Third-party loggers that are noisy at DEBUG
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(verbose: bool = False, level: str | None = None) -> None:
    """
    Configure the package logger with a Rich handler on stderr.

    Args:
        verbose: Force DEBUG level
        level: Explicit level name, used when not verbose (default INFO)
    """
    log_level = logging.DEBUG if verbose else getattr(logging, (level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(log_level)
    logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
