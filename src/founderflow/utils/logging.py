"""
FounderFlow Structured Logging

Every entry goes through structlog. The CLI prints command output on
stdout, so log lines go to stderr, or to the configured log file instead.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Literal, TextIO

import structlog
from structlog.typing import EventDict, WrappedLogger


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag every log entry with the application name."""
    event_dict["app"] = "founderflow"
    return event_dict


def _renderer(format: str, stream: TextIO) -> list[Any]:
    if format == "json":
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=stream.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def setup_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console"] = "json",
    log_file: Path | None = None,
) -> None:
    """
    Configure structured logging for FounderFlow.

    Args:
        level: Minimum log level to output
        format: 'json' for the daemon, 'console' for a terminal
        log_file: Append entries here instead of writing to stderr
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        stream: TextIO = log_file.open("a", encoding="utf-8")
    else:
        stream = sys.stderr

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_app_context,
            *_renderer(format, stream),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__ of the calling module)
    """
    return structlog.get_logger(name)
