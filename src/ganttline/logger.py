"""Verbosity-aware logging for ganttline.

Scheduling code reports through a single named logger. Two extra levels sit
between the standard ones so the CLI's ``-v`` flag can reveal progressively
more detail:

- ``changes`` (verbosity 1): tasks moved, layers created, rule chosen
- ``checks`` (verbosity 2): gap searches, candidate comparisons, skips
- ``debug`` (verbosity 3): per-step dispatch decisions
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

CHANGES_LEVEL = 25
CHECKS_LEVEL = 15

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0
VERBOSITY_CHANGES = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3

_LEVELS = {
    VERBOSITY_SILENT: logging.ERROR,
    VERBOSITY_CHANGES: CHANGES_LEVEL,
    VERBOSITY_CHECKS: CHECKS_LEVEL,
    VERBOSITY_DEBUG: logging.DEBUG,
}

LOGGER_NAME = "ganttline"


class GanttlineLogger(logging.Logger):
    """Logger with ``changes`` and ``checks`` convenience methods."""

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a state change (verbosity 1)."""
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a check or search step (verbosity 2)."""
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger() -> GanttlineLogger:
    """Return the shared ganttline logger.

    The logger class is registered before lookup so the first caller gets a
    GanttlineLogger rather than a plain Logger.
    """
    logging.setLoggerClass(GanttlineLogger)
    logger = logging.getLogger(LOGGER_NAME)
    assert isinstance(logger, GanttlineLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Configure the ganttline logger.

    Safe to call repeatedly; existing handlers are replaced.

    Args:
        verbosity: 0=errors only, 1=changes, 2=checks, 3=debug
        stream: Output stream, defaults to sys.stderr
    """
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(_LEVELS.get(verbosity, logging.ERROR))

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Drop handlers and return to errors-only output."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)
    logger.propagate = True


def changes_enabled() -> bool:
    """Return True if changes-level messages will be emitted."""
    return get_logger().isEnabledFor(CHANGES_LEVEL)


def checks_enabled() -> bool:
    """Return True if checks-level messages will be emitted."""
    return get_logger().isEnabledFor(CHECKS_LEVEL)


def debug_enabled() -> bool:
    """Return True if debug messages will be emitted."""
    return get_logger().isEnabledFor(logging.DEBUG)
