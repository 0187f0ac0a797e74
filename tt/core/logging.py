"""
structlog configuration.

Logs go to a file when one is given, to syslog (tagged ``tt-server``) when
requested, and to stderr otherwise.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from typing import Optional

import structlog

SYSLOG_TAG = "tt-server"
SYSLOG_ADDRESS = "/dev/log"


def configure_logging(
    level: str = "info",
    fmt: str = "json",
    log_file: Optional[str] = None,
    syslog: bool = False,
) -> None:
    """Configure structlog with the specified level, format and destination."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if syslog:
        _configure_syslog(level, fmt, processors)
        return

    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    open_error: Optional[OSError] = None
    logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)
    if log_file:
        try:
            logger_factory = structlog.WriteLoggerFactory(file=open(log_file, "a"))
        except OSError as exc:
            open_error = exc

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )

    if open_error is not None:
        structlog.get_logger().warning(
            "logging.file_unwritable", log_file=log_file, error=str(open_error)
        )


def _configure_syslog(level: str, fmt: str, processors: list) -> None:
    handler = logging.handlers.SysLogHandler(
        address=SYSLOG_ADDRESS,
        facility=logging.handlers.SysLogHandler.LOG_DAEMON,
    )
    handler.setFormatter(logging.Formatter(f"{SYSLOG_TAG}: %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.processors.LogfmtRenderer()
    )
    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
