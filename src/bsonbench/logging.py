"""Structured logging setup for bsonbench.

Two configurations share the ``bsonbench`` logger namespace:

- the harness: console output for suite progress and task outcomes, plus
  an optional file handler that always logs at DEBUG (pip commands,
  worker stderr tails);
- a worker: stderr only, each line tagged with the worker's pid.  The
  parent captures that stderr and replays it at DEBUG, or uses its tail
  to describe a worker that died without replying.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "bsonbench"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
_WORKER_FORMAT = "worker[%(process)d] %(levelname)-8s %(name)s: %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    worker: bool = False,
) -> logging.Logger:
    """Configure and return the root bsonbench logger.

    Args:
        verbose: If True, set console log level to DEBUG.
        quiet: If True, set console log level to WARNING. Ignored if *verbose* is True.
        log_file: If provided, add a file handler at DEBUG level to this path.
        worker: Log to stderr with the worker format.  *log_file* is
            ignored; the parent owns the log file.

    Returns:
        The configured root logger for bsonbench.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers to allow reconfiguration.
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    if verbose:
        console.setLevel(logging.DEBUG)
    elif quiet:
        console.setLevel(logging.WARNING)
    else:
        console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(_WORKER_FORMAT if worker else _CONSOLE_FORMAT))
    logger.addHandler(console)

    if worker:
        # Nothing above the bsonbench logger may write to the worker's stdio.
        logger.propagate = False
        return logger

    logger.propagate = True
    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a named child logger under the bsonbench namespace.

    Args:
        name: The logger name (will be prefixed with ``bsonbench.``).
    """
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
