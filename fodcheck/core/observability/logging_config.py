"""
Logging configuration — central setup for the CLI entrypoint.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  FODCHECK_LOG_LEVEL env var  >  WARNING (default)

Per-item failures are logged at WARNING, so by default stderr carries
exactly one bare line per skipped attribute or derivation. At INFO and
below every line is tagged with the audit worker that emitted it
(``discover_3``, ``verify_0`` or ``main``).

Optional file output via FODCHECK_LOG_FILE / FODCHECK_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import sys

# Thread name prefixes given to the discovery and verification pools
WORKER_PHASES = ("discover", "verify")

# WARNING level: bare message
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped with the worker
_FMT_VERBOSE = "%(asctime)s [%(worker)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: worker plus file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s [%(worker)s] %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s [%(worker)s] %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


class WorkerFilter(logging.Filter):
    """Set ``record.worker`` from the emitting thread's name.

    Pool threads are named ``<phase>_<n>``; anything else, including
    the main thread, is reported as ``main``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.threadName or ""
        phase, _, index = name.rpartition("_")
        record.worker = name if phase in WORKER_PHASES and index.isdigit() else "main"
        return True


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
    """
    numeric_level = _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.addFilter(WorkerFilter())
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.addFilter(WorkerFilter())
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
