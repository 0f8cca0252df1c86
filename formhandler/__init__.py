"""
FormHandler - Declarative Input Validation and Sanitization
============================================================

Validates and cleans request data against per-field rules.

Features:
---------
- Declarative rules with type synonyms ("positive integer", "money")
- Filters: URL decoding, trimming, markup stripping, case folding
- Typed validation with limits, size suffixes and regex rules
- Conditional requiredness and default values with placeholders
- Upload checks with content sniffing and hashed storage names
- Pluggable database existence checks

Quick Start:
    from formhandler import Handler

    handler = Handler(request_data, {
        "first-name": {"type": "text", "options": {"min": 3}},
        "email": "email",
        "age": {"type": "positive integer", "required": False, "default": 18},
    })

    if handler.execute():
        print(handler.data)
    else:
        print(handler.errors)
"""

from __future__ import annotations

__version__ = "1.0.0"
__license__ = "MIT"

from typing import TYPE_CHECKING

# Core imports (always available)
from formhandler.core.config import Config, get_config
from formhandler.exceptions import (
    ConfigurationError,
    DataNotFoundError,
    DataSourceNotRecognizedError,
    DBCheckerNotFoundError,
    DirectoryNotFoundError,
    FileMoveError,
    HandlerError,
    InvalidRuleError,
    KeyNotFoundError,
    RuleNotFoundError,
)

# Lazy imports
if TYPE_CHECKING:
    from formhandler.core.handler import Handler
    from formhandler.core.resolver import OptionResolver
    from formhandler.core.rules import ProcessedRules, RuleProcessor
    from formhandler.db.checker import ConnectionDBChecker, DBChecker
    from formhandler.security.sanitizer import ValueFilter
    from formhandler.validation.bag import ErrorBag
    from formhandler.validation.files import FileValidator, UploadedFile
    from formhandler.validation.limits import LimitComparator
    from formhandler.validation.types import FieldType
    from formhandler.validation.validator import Validator


def __getattr__(name: str):
    """Lazy loading of components."""
    _imports = {
        # Core
        "Handler": "formhandler.core.handler",
        "OptionResolver": "formhandler.core.resolver",
        "RuleProcessor": "formhandler.core.rules",
        "ProcessedRules": "formhandler.core.rules",
        # Database
        "DBChecker": "formhandler.db.checker",
        "ConnectionDBChecker": "formhandler.db.checker",
        # Security
        "ValueFilter": "formhandler.security.sanitizer",
        # Validation
        "Validator": "formhandler.validation.validator",
        "ErrorBag": "formhandler.validation.bag",
        "FileValidator": "formhandler.validation.files",
        "UploadedFile": "formhandler.validation.files",
        "LimitComparator": "formhandler.validation.limits",
        "FieldType": "formhandler.validation.types",
        # Utils
        "Logger": "formhandler.utils.logger",
        "get_logger": "formhandler.utils.logger",
    }

    if name in _imports:
        import importlib
        module = importlib.import_module(_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'formhandler' has no attribute '{name}'")


__all__ = [
    # Metadata
    "__version__",
    "__license__",
    # Core (always loaded)
    "Config",
    "get_config",
    # Errors
    "HandlerError",
    "ConfigurationError",
    "DataNotFoundError",
    "RuleNotFoundError",
    "DataSourceNotRecognizedError",
    "InvalidRuleError",
    "DBCheckerNotFoundError",
    "DirectoryNotFoundError",
    "FileMoveError",
    "KeyNotFoundError",
    # Core (lazy)
    "Handler",
    "OptionResolver",
    "RuleProcessor",
    "ProcessedRules",
    # Database (lazy)
    "DBChecker",
    "ConnectionDBChecker",
    # Security (lazy)
    "ValueFilter",
    # Validation (lazy)
    "Validator",
    "ErrorBag",
    "FileValidator",
    "UploadedFile",
    "LimitComparator",
    "FieldType",
    # Utils (lazy)
    "Logger",
    "get_logger",
]
