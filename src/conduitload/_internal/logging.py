"""Logging setup for conduitload.

Human-readable output goes through Rich so that log lines interleave cleanly
with the live metrics table. JSON output is meant for CI log collectors.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from rich.console import Console
from rich.logging import RichHandler

# LogRecord attributes copied into JSON output when a caller passes them via
# ``extra=``.
_EXTRA_FIELDS = ("scenario", "vu", "iteration", "behavior")


class _JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """Configure and return the root ``conduitload`` logger.

    Calling this again only updates the level; handlers are not duplicated.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one-line JSON records instead of Rich output.
        console: Rich console to log through. Defaults to a stderr console.

    Returns:
        The configured ``conduitload`` logger.
    """
    logger = logging.getLogger("conduitload")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler: logging.Handler
    if json_format:
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
    else:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            markup=False,
            log_time_format="%H:%M:%S",
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    handler.setLevel(level)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``conduitload`` namespace.

    Args:
        name: Logger name, e.g. ``get_logger("scenarios.soak")`` returns
            ``logging.getLogger("conduitload.scenarios.soak")``.

    Returns:
        The child logger.
    """
    return logging.getLogger(f"conduitload.{name}")
