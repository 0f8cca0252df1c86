"""
FormHandler Utils Package
=========================

Logging and value helpers.
"""

from __future__ import annotations

from formhandler.utils.logger import Logger, LogLevel, get_logger, configure_logging
from formhandler.utils.helpers import (
    # Value helpers
    is_numeric,
    is_empty,
    stringify,
    loose_equals,
    format_number,
    # Message helpers
    format_message,
    # Time helpers
    now,
    timestamp,
    parse_date,
)

__all__ = [
    "Logger",
    "LogLevel",
    "get_logger",
    "configure_logging",
    "is_numeric",
    "is_empty",
    "stringify",
    "loose_equals",
    "format_number",
    "format_message",
    "now",
    "timestamp",
    "parse_date",
]
