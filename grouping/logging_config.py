"""
Logging setup shared by the grouping API and batch runs.

Every line looks like ``2026-01-06T14:05:52Z [api] INFO Run complete``.

LOG_LEVEL selects verbosity:
    INFO   runs, moves, overrides and lifecycle transitions (default)
    DEBUG  violation counts and placement decisions
    TRACE  every accepted improvement swap and every PocketBase request

Modules log at TRACE with ``logger.log(TRACE, ...)``.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVELS = {"TRACE": TRACE, "DEBUG": logging.DEBUG, "INFO": logging.INFO, "WARNING": logging.WARNING}


class ISO8601Formatter(logging.Formatter):
    """``<utc timestamp> [<source>] <LEVEL> <message>``, traceback appended."""

    def __init__(self, source: str = "grouping"):
        super().__init__()
        self.source = source

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        text = record.getMessage()
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return f"{stamp} [{self.source}] {record.levelname} {text}"


class HealthCheckFilter(logging.Filter):
    """Drop access-log lines for health probes; they fire every few seconds."""

    HEALTH_PATHS = ("/health", "/api/health")

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno <= logging.DEBUG:
            return True
        text = record.getMessage()
        if "GET" not in text and "200" not in text:
            return True
        return not any(f"{path} " in text or text.endswith(path) for path in self.HEALTH_PATHS)


def resolve_level(level: int | None = None, debug: bool | None = None) -> int:
    """Explicit ``level`` first, then ``debug``, then LOG_LEVEL, then INFO."""
    if level is not None:
        return level
    if debug:
        return logging.DEBUG
    return _LEVELS.get(os.getenv("LOG_LEVEL", "").strip().upper(), logging.INFO)


def configure_logging(
    source: str = "grouping",
    level: int | None = None,
    debug: bool | None = None,
) -> logging.Logger:
    """Install one stdout handler on the root logger and route uvicorn through it.

    Safe to call repeatedly; earlier handlers are replaced.
    """
    level = resolve_level(level, debug)
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ISO8601Formatter(source=source))
    handler.addFilter(HealthCheckFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.addHandler(handler)
        server_logger.setLevel(level)
        server_logger.propagate = False

    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return root
