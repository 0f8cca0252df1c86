"""
FormHandler Field Types
=======================

The closed set of field types and the synonym table that maps the
names used in rules onto them.

Example:
    resolve_type_name("Positive Integer")   # "pint"
    FieldType.lookup("negative number")     # FieldType.NFLOAT
"""

from __future__ import annotations

import re
from enum import Enum
from typing import List, Optional, Tuple


class FieldType(str, Enum):
    """Known field types."""

    TEXT = "text"
    DATE = "date"
    INT = "int"
    PINT = "pint"
    NINT = "nint"
    FLOAT = "float"
    PFLOAT = "pfloat"
    NFLOAT = "nfloat"
    BOOL = "bool"
    EMAIL = "email"
    URL = "url"
    CHOICE = "choice"
    RANGE = "range"
    PASSWORD = "password"
    FILE = "file"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    MEDIA = "media"
    DOCUMENT = "document"
    ARCHIVE = "archive"

    @classmethod
    def lookup(cls, name: str) -> Optional["FieldType"]:
        """Get type for a rule type name, or None when unknown."""
        try:
            return cls(resolve_type_name(name))
        except ValueError:
            return None


FILE_TYPES = frozenset({
    FieldType.FILE,
    FieldType.IMAGE,
    FieldType.AUDIO,
    FieldType.VIDEO,
    FieldType.MEDIA,
    FieldType.DOCUMENT,
    FieldType.ARCHIVE,
})

# Applied in order to the lower-cased name
_SYNONYMS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"integer"), "int"),
    (re.compile(r"positive"), "p"),
    (re.compile(r"negative"), "n"),
    (re.compile(r"number|money"), "float"),
    (re.compile(r"boolean"), "bool"),
    (re.compile(r"string"), "text"),
]

_SEPARATORS = re.compile(r"[\s_-]+")


def resolve_type_name(name: Optional[str]) -> str:
    """
    Normalize a rule type name.

    Args:
        name: Type name as written in the rule

    Returns:
        Canonical type name, "text" when none is given
    """
    if name is None or str(name).strip() == "":
        return FieldType.TEXT.value

    result = str(name).lower()
    for pattern, replacement in _SYNONYMS:
        result = pattern.sub(replacement, result)

    return _SEPARATORS.sub("", result)
