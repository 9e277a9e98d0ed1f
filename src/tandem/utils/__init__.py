"""Shared utilities for tandem."""

from ._logging import PROCESS_NAME, LogFormatType, create_unit_logger
from ._time import get_timestamp

__all__ = [
    "PROCESS_NAME",
    "LogFormatType",
    "create_unit_logger",
    "get_timestamp",
]
