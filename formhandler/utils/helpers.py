"""
FormHandler Helpers
===================

Collection of value helpers shared by filters, resolvers and validators.
"""

from __future__ import annotations

import re
import time
from datetime import date, datetime
from typing import Any, List, Optional, Union


Number = Union[int, float]


# =============================================================================
# Value Helpers
# =============================================================================

NUMERIC_PATTERN = re.compile(
    r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*$"
)

INTEGER_PATTERN = re.compile(r"^\s*[+-]?\d+\s*$")


def is_numeric(value: Any) -> bool:
    """
    Check if value is a number or a numeric string.

    Booleans are not considered numeric.

    Example:
        >>> is_numeric("12.5e3")
        True
        >>> is_numeric("a22")
        False
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == value  # NaN is not numeric
    if isinstance(value, str):
        return bool(NUMERIC_PATTERN.match(value))
    return False


def is_integer_literal(value: Any) -> bool:
    """Check if value is an int or a string holding an integer."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, str):
        return bool(INTEGER_PATTERN.match(value))
    return False


def to_number(value: Any) -> Number:
    """
    Convert numeric value to int or float.

    Raises:
        ValueError: If value is not numeric
    """
    if not is_numeric(value):
        raise ValueError(f"{value!r} is not numeric")
    if isinstance(value, (int, float)):
        return value
    if INTEGER_PATTERN.match(value):
        return int(value)
    return float(value)


def is_empty(value: Any) -> bool:
    """Check if value counts as not given."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def stringify(value: Any) -> str:
    """
    Convert scalar to string the way form data reads.

    None becomes an empty string, booleans become "1" or "",
    integral floats lose their trailing ".0".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return str(value)


def loose_equals(left: Any, right: Any) -> bool:
    """
    Compare two form values loosely.

    Numbers compare by value, everything else by string form.

    Example:
        >>> loose_equals("1", 1)
        True
    """
    if left == right:
        return True
    if is_numeric(left) and is_numeric(right):
        return to_number(left) == to_number(right)
    return stringify(left) == stringify(right)


def format_number(value: Number) -> str:
    """
    Format number with thousands separators.

    Example:
        >>> format_number(2500000.0)
        '2,500,000'
    """
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value:,}"


def display_value(value: Any) -> str:
    """Render value for messages, quoting anything non numeric."""
    if is_numeric(value):
        return stringify(value)
    return f'"{stringify(value)}"'


# =============================================================================
# Message Helpers
# =============================================================================

TOKEN_PATTERN = re.compile(r"\{\s*([^{}]+?)\s*\}")


def format_message(
    template: str,
    field: str,
    value: Any = None,
    quote: bool = True,
    **tokens: Any,
) -> str:
    """
    Fill an error message template.

    Known tokens are {_this} (field name), {this} (value) and any
    keyword passed in. Unknown tokens are left untouched.

    Example:
        >>> format_message("{this} is not a valid integer", "age", "a22")
        '"a22" is not a valid integer'
    """
    shown = display_value(value) if quote else stringify(value)
    lookup = {key.lower(): stringify(val) for key, val in tokens.items()}
    lookup["_this"] = field
    lookup["this"] = shown

    def replace(match: re.Match) -> str:
        return lookup.get(match.group(1).lower(), match.group(0))

    return TOKEN_PATTERN.sub(replace, str(template))


# =============================================================================
# Time Helpers
# =============================================================================

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

DATE_PATTERN = re.compile(r"^(\d{4})[-\s]?(\d{2})[-\s]?(\d{2})$")

# Date followed by a time of day, as rendered by the datetime placeholders
DATETIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}(?::\d{2})?$")


def now() -> datetime:
    """Get current local datetime."""
    return datetime.now()


def timestamp() -> int:
    """Get current Unix timestamp."""
    return int(time.time())


def format_datetime(dt: datetime) -> str:
    """Format datetime the way placeholders render it."""
    return dt.strftime(DATETIME_FORMAT)


def parse_date(
    text: Any,
    formats: Optional[List[str]] = None,
) -> Optional[datetime]:
    """
    Parse date string.

    Accepts YYYY-MM-DD, YYYYMMDD and the same groups separated by a
    single whitespace character, then any of the datetime formats.

    Args:
        text: Date string
        formats: Extra formats to try

    Returns:
        Parsed datetime or None
    """
    if isinstance(text, datetime):
        return text
    if isinstance(text, date):
        return datetime(text.year, text.month, text.day)
    if not isinstance(text, str):
        return None

    text = text.strip()
    match = DATE_PATTERN.match(text)
    if match:
        try:
            return datetime(*(int(group) for group in match.groups()))
        except ValueError:
            return None

    if not formats:
        formats = [
            DATETIME_FORMAT,
            "%Y-%m-%dT%H:%M:%S",
            "%Y-%m-%dT%H:%M:%SZ",
            "%Y-%m-%d %H:%M",
            "%Y-%m-%dT%H:%M",
        ]

    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    return None
