"""Logging utilities for tandem.

This module provides standalone structlog logger factories. Each logger is
self-contained and does not modify global structlog configuration. Unit
logs go to the process's standard output so the container runtime collects
them, and every entry carries the process name inline.
"""

import logging
import sys
from os import getenv
from typing import TYPE_CHECKING, Literal, TextIO, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]

PROCESS_NAME = "tandem"


def _log_level_from_string(level: str, *, respect_env: bool = False) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: If True, TANDEM_DEBUG overrides to DEBUG level.

    Returns:
        The logging level as an integer.
    """
    if respect_env and getenv("TANDEM_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


def _create_logger(
    stream: TextIO,
    *,
    log_level: int = logging.INFO,
    log_format: LogFormatType = "text",
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger writing to the given stream.

    Args:
        stream: Text stream the rendered entries are written to.
        log_level: Minimum level that is emitted.
        log_format: Output format, either "json" or "text".

    Returns:
        A configured FilteringBoundLogger instance.
    """
    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    wrapper_class = structlog.make_filtering_bound_logger(log_level)

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.WriteLoggerFactory(file=stream)(),
            processors=processors,
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )


def create_unit_logger(
    *,
    level: str = "info",
    log_format: LogFormatType = "text",
    stream: TextIO | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create the logger used by the supervisor process.

    The log level can be overridden by the TANDEM_DEBUG environment
    variable, which forces DEBUG regardless of ``level``.

    Args:
        level: Log level threshold (debug, info, warning, error).
        log_format: Output format, either "json" or "text".
        stream: Destination stream. Defaults to standard output.

    Returns:
        A FilteringBoundLogger with ``process`` bound to every entry.
    """
    logger = _create_logger(
        stream if stream is not None else sys.stdout,
        log_level=_log_level_from_string(level, respect_env=True),
        log_format=log_format,
    )
    return logger.bind(process=PROCESS_NAME)
