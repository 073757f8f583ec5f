"""Logging for agentlab.

Everything logs under the ``agentlab`` logger. The REPL owns the terminal,
so records go to a file (``logging.file`` in config, or LAB_LOG) and reach
stderr only when stderr is an interactive console.

Verbosity (``-v`` count or ``logging.verbose``) maps to levels:
0 error, 1 warning, 2 info, 3 verbose, 4 trace.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentlab.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("agentlab")

_initialized = False

_LEVEL_NAMES = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Pick the log level; verbose wins over a level name."""
    if config is None:
        return logging.WARNING
    if config.verbose is not None:
        return _VERBOSITY[max(0, min(config.verbose, len(_VERBOSITY) - 1))]
    if config.level:
        return _LEVEL_NAMES.get(config.level.upper(), logging.WARNING)
    return logging.WARNING


def _attach(handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(
        _LowercaseLevelFormatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
        )
    )
    logger.addHandler(handler)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the agentlab logger once; later calls do nothing."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    log_path = config.file if config and config.file else os.environ.get("LAB_LOG")
    if log_path:
        try:
            handler = logging.FileHandler(
                os.path.expanduser(log_path), mode="a", encoding="utf-8"
            )
        except OSError as e:
            if sys.stderr.isatty():
                print(f"[agentlab] Failed to open log file: {e}", file=sys.stderr)
                _attach(logging.StreamHandler(sys.stderr), level)
            return
        _attach(handler, level)
    elif sys.stderr.isatty():
        _attach(logging.StreamHandler(sys.stderr), level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``agentlab.<name>``, or the root agentlab logger."""
    if name:
        return logger.getChild(name)
    return logger
