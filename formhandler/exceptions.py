"""
FormHandler Exceptions
======================

Errors raised by the handler pipeline.

Ordinary bad input never raises: it is recorded per field in the
error bag. Exceptions are reserved for misconfiguration and for
failures that leave an uploaded file in an unknown state.
"""

from __future__ import annotations

from typing import Optional


class HandlerError(Exception):
    """Base class for all handler errors."""

    def __init__(self, message: str = "", field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class ConfigurationError(HandlerError):
    """The handler was not set up correctly and cannot run."""


class DataNotFoundError(ConfigurationError):
    """No data source was given to the handler."""


class RuleNotFoundError(ConfigurationError):
    """No validation rules were given to the handler."""


class DataSourceNotRecognizedError(ConfigurationError):
    """A named data source has no registered provider."""


class InvalidRuleError(ConfigurationError):
    """A rule declaration is malformed."""


class DBCheckerNotFoundError(ConfigurationError):
    """Rules declare database checks but no checker is set."""


class DirectoryNotFoundError(ConfigurationError):
    """The destination directory of an upload does not exist."""


class FileMoveError(HandlerError):
    """An uploaded file could not be moved to its destination."""


class KeyNotFoundError(HandlerError, KeyError):
    """Requested data key is not a declared field."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
