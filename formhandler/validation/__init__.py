"""
FormHandler Validation
======================

Type validation for filtered field values.

Features:
- Dispatch table of field types
- Limits with size suffixes and dates
- Regex rule groups
- Upload checks and content sniffing
"""

from formhandler.validation.bag import ErrorBag
from formhandler.validation.files import (
    FileValidator,
    UploadError,
    UploadedFile,
    normalize_uploads,
    sniff_mime,
)
from formhandler.validation.limits import LimitComparator, LimitKind, resolve_limit
from formhandler.validation.types import FieldType, resolve_type_name
from formhandler.validation.validator import Validator

__all__ = [
    "ErrorBag",
    "FileValidator",
    "UploadError",
    "UploadedFile",
    "normalize_uploads",
    "sniff_mime",
    "LimitComparator",
    "LimitKind",
    "resolve_limit",
    "FieldType",
    "resolve_type_name",
    "Validator",
]
