from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False


def setup_logging(filename: str | Path | None = None, level: int = logging.INFO) -> structlog.BoundLogger:
    """Set up structured logging for the code_aggregator package.

    The first call wins: later calls only return the logger, except that a
    `filename` passed after the initial configuration redirects the root
    handlers to that file.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum level that reaches the handlers.

    Returns:
        A structlog logger instance bound to the code_aggregator namespace.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(
            level=level,
            handlers=[_make_handler(filename)],
            format="%(message)s",
        )
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True
    elif filename:
        logging.basicConfig(
            level=level,
            handlers=[_make_handler(filename)],
            format="%(message)s",
            force=True,
        )

    return structlog.get_logger("code_aggregator")


def _make_handler(filename: str | Path | None) -> logging.Handler:
    if filename:
        return logging.FileHandler(str(filename), encoding="utf-8")
    return logging.StreamHandler(sys.stderr)


logger = setup_logging()
