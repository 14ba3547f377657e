"""JSON logs for export runs.

Importing the package logs to stderr. `changeset-export --log-file PATH` calls
`setup_logging(PATH)` again once the flags are parsed, which moves every record
of the run (git queries, skipped files, commit failures) into that file.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False


def _handler(filename: str | Path | None) -> logging.Handler:
    if filename:
        return logging.FileHandler(str(filename), encoding="utf-8")
    return logging.StreamHandler(sys.stderr)


def setup_logging(filename: str | Path | None = None) -> structlog.BoundLogger:
    """Route changeset_export logs to stderr, or to `filename` when given.

    structlog is configured once. A later call with a filename replaces the
    root handlers, so the log file also receives records from modules that
    bound their logger at import time.

    Args:
        filename: log file for the run; None keeps the current destination.

    Returns:
        The `changeset_export` structlog logger.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(level=logging.INFO, handlers=[_handler(filename)], format="%(message)s")
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True
    elif filename:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.addHandler(_handler(filename))
        root.setLevel(logging.INFO)

    return structlog.get_logger("changeset_export")


logger = setup_logging()
