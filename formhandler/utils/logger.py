"""
FormHandler Logger
==================

Structured logging with pluggable handlers.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union


class LogLevel(IntEnum):
    """Log levels."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Union[str, int, "LogLevel"]) -> "LogLevel":
        """Parse level from name or number, defaulting to WARNING."""
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper(), cls.WARNING)
        try:
            return cls(int(value))
        except ValueError:
            return cls.WARNING


@dataclass
class LogRecord:
    """
    Structured log record.

    Attributes:
        level: Log level
        message: Log message
        timestamp: Record timestamp
        context: Additional context
        exception: Exception info
    """

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    logger_name: str = "formhandler"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "message": self.message,
            "logger": self.logger_name,
        }

        if self.context:
            data["context"] = self.context

        if self.exception:
            data["exception"] = {
                "type": type(self.exception).__name__,
                "message": str(self.exception),
            }

        return data

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class LogFormatter:
    """Base log formatter."""

    def format(self, record: LogRecord) -> str:
        """Format log record."""
        raise NotImplementedError


class TextFormatter(LogFormatter):
    """
    Plain text formatter.

    Example output:
        2024-01-15 10:30:45 [WARNING] Unrecognized validation type field=age type=ages
    """

    def __init__(
        self,
        format_string: Optional[str] = None,
        date_format: str = "%Y-%m-%d %H:%M:%S",
        colors: bool = True,
    ):
        """Initialize formatter."""
        self.format_string = format_string or "{timestamp} [{level}] {message}"
        self.date_format = date_format
        self.colors = colors and sys.stderr.isatty()

        self._colors = {
            LogLevel.DEBUG: "\033[36m",    # Cyan
            LogLevel.INFO: "\033[32m",     # Green
            LogLevel.WARNING: "\033[33m",  # Yellow
            LogLevel.ERROR: "\033[31m",    # Red
            LogLevel.CRITICAL: "\033[35m", # Magenta
        }
        self._reset = "\033[0m"

    def format(self, record: LogRecord) -> str:
        """Format as text."""
        timestamp = record.timestamp.strftime(self.date_format)
        level = record.level.name

        if self.colors:
            color = self._colors.get(record.level, "")
            level = f"{color}{level}{self._reset}"

        message = record.message

        # Context as key=value pairs
        if record.context:
            context_str = " ".join(
                f"{k}={v}" for k, v in record.context.items()
            )
            message = f"{message} {context_str}"

        output = self.format_string.format(
            timestamp=timestamp,
            level=level,
            message=message,
            logger=record.logger_name,
        )

        if record.exception:
            output += "\n" + "".join(
                traceback.format_exception(
                    type(record.exception),
                    record.exception,
                    record.exception.__traceback__,
                )
            )

        return output


class JsonFormatter(LogFormatter):
    """
    JSON formatter for structured logging.

    Example output:
        {"timestamp": "2024-01-15T10:30:45", "level": "INFO", "message": "Uploaded file moved"}
    """

    def format(self, record: LogRecord) -> str:
        """Format as JSON."""
        return record.to_json()


class LogHandler:
    """Base log handler."""

    def __init__(
        self,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        """Initialize handler."""
        self.formatter = formatter or TextFormatter()
        self.level = level

    def handle(self, record: LogRecord) -> None:
        """Handle log record."""
        if record.level >= self.level:
            self.emit(record)

    def emit(self, record: LogRecord) -> None:
        """Emit formatted record."""
        raise NotImplementedError


class StreamHandler(LogHandler):
    """Stream output handler."""

    def __init__(
        self,
        stream: Any = None,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        """Initialize stream handler."""
        super().__init__(formatter, level)
        self.stream = stream or sys.stderr

    def emit(self, record: LogRecord) -> None:
        """Write to stream."""
        message = self.formatter.format(record)
        self.stream.write(message + "\n")
        self.stream.flush()


class MemoryHandler(LogHandler):
    """Keeps records in memory, mostly useful in tests."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG):
        super().__init__(level=level)
        self.records: List[LogRecord] = []

    def emit(self, record: LogRecord) -> None:
        self.records.append(record)

    def messages(self, level: Optional[LogLevel] = None) -> List[str]:
        """Get recorded messages, optionally for one level."""
        return [
            r.message for r in self.records
            if level is None or r.level == level
        ]


class Logger:
    """
    Structured logger.

    Example:
        logger = get_logger()

        logger.warning("Unrecognized validation type", field="age", type="ages")

        # With context
        logger = logger.with_context(handler_id="abc123")
        logger.debug("Processing rules")
    """

    def __init__(
        self,
        name: str = "formhandler",
        level: LogLevel = LogLevel.WARNING,
        handlers: Optional[List[LogHandler]] = None,
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Minimum log level
            handlers: Log handlers
        """
        self.name = name
        self.level = level
        self._handlers = handlers if handlers is not None else []
        self._context: Dict[str, Any] = {}

    def add_handler(self, handler: LogHandler) -> "Logger":
        """Add log handler."""
        self._handlers.append(handler)
        return self

    def remove_handler(self, handler: LogHandler) -> "Logger":
        """Remove log handler."""
        self._handlers.remove(handler)
        return self

    def with_context(self, **context: Any) -> "Logger":
        """
        Create logger with additional context.

        Args:
            **context: Context key-values

        Returns:
            New logger sharing handlers, with merged context
        """
        new_logger = Logger(
            name=self.name,
            level=self.level,
            handlers=self._handlers,
        )
        new_logger._context = {**self._context, **context}
        return new_logger

    def _log(
        self,
        level: LogLevel,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        """Internal log method."""
        if level < self.level:
            return

        record = LogRecord(
            level=level,
            message=message,
            context={**self._context, **context},
            exception=exception,
            logger_name=self.name,
        )

        for handler in self._handlers:
            try:
                handler.handle(record)
            except (OSError, ValueError):
                pass  # Broken streams must not break validation

    def debug(self, message: str, **context: Any) -> None:
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        """Log info message."""
        self._log(LogLevel.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        """Log warning message."""
        self._log(LogLevel.WARNING, message, **context)

    def error(
        self,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        """Log error message."""
        self._log(LogLevel.ERROR, message, exception, **context)


# Global logger registry
_loggers: Dict[str, Logger] = {}


def get_logger(
    name: str = "formhandler",
    level: Optional[LogLevel] = None,
) -> Logger:
    """
    Get or create logger.

    A new logger takes its level from ``logging.level`` unless given,
    and its output format from ``logging.format``.

    Args:
        name: Logger name
        level: Log level

    Returns:
        Logger instance
    """
    if name not in _loggers:
        from formhandler.core.config import get_config
        config = get_config()

        if level is None:
            level = LogLevel.parse(config.get("logging.level", "WARNING"))

        formatter: LogFormatter = TextFormatter()
        if config.get("logging.format") == "json":
            formatter = JsonFormatter()

        _loggers[name] = Logger(name=name, level=level)
        _loggers[name].add_handler(StreamHandler(formatter=formatter))

    return _loggers[name]


def configure_logging(
    level: LogLevel = LogLevel.WARNING,
    format: str = "text",
    stream: Any = None,
    colors: bool = True,
) -> Logger:
    """
    Configure the package logger.

    Args:
        level: Log level
        format: Output format ("text" or "json")
        stream: Output stream, stderr by default
        colors: Enable colored output

    Returns:
        Configured logger
    """
    if format == "json":
        formatter: LogFormatter = JsonFormatter()
    else:
        formatter = TextFormatter(colors=colors)

    handler = StreamHandler(stream=stream, formatter=formatter, level=level)
    logger = Logger(name="formhandler", level=level, handlers=[handler])
    _loggers["formhandler"] = logger

    return logger
