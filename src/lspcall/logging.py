"""Logging configuration for lspcall.

Uses Python's standard logging module with support for:
- File logging via config or LSPCALL_LOG environment variable
- Verbosity levels: error(0), warning(1), info(2), verbose(3), trace(4)
- Stderr output otherwise; stdout is reserved for responses
- Structured format with timestamps and level names
"""

from __future__ import annotations

import logging
import os
import sys

# Custom log levels
TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

# Module-level logger
logger = logging.getLogger("lspcall")

_initialized = False

# Map --verbose=N to log levels (0=errors only, 4=everything)
_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def level_for_verbosity(verbose: int) -> int:
    """Translate a -v count into a logging level."""
    if verbose < 0:
        return logging.ERROR
    return _VERBOSITY_MAP.get(verbose, TRACE)


def setup_logging(verbose: int = 1, log_file: str | None = None) -> None:
    """Initialize logging for the command-line tool.

    Call this once at startup. Subsequent calls are no-ops.

    Args:
        verbose: Verbosity level, see the module docstring.
        log_file: Optional path to append log records to. Falls back to the
            LSPCALL_LOG environment variable, then to stderr.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_level = level_for_verbosity(verbose)
    logger.setLevel(log_level)

    # Format: HH:MM:SS level: message
    formatter = _LowercaseLevelFormatter(
        "%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"
    )

    log_path = log_file or os.environ.get("LSPCALL_LOG")

    if log_path:
        log_path = os.path.expanduser(log_path)
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        except OSError as e:
            print(f"[lspcall] Failed to open log file: {e}", file=sys.stderr)
            _add_stderr_handler(formatter, log_level)
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
    else:
        _add_stderr_handler(formatter, log_level)


def _add_stderr_handler(formatter: logging.Formatter, level: int = logging.DEBUG) -> None:
    """Add a stderr handler to the logger."""
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional name for a child logger (e.g., "client", "server").
              If None, returns the root lspcall logger.
    """
    if name:
        return logger.getChild(name)
    return logger
