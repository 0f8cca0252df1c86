"""
FormHandler Limits
==================

Checks ``min``, ``max``, ``gt`` and ``lt`` options against numbers,
text lengths, dates and file sizes.

Limits may be written with a size suffix (``"2kb"``, ``"2.5mb"``,
``"0.5gb"``) which is resolved in decimal units before comparing.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from formhandler.utils.helpers import (
    Number,
    format_message,
    format_number,
    is_numeric,
    parse_date,
    to_number,
)
from formhandler.utils.logger import Logger, get_logger


class LimitKind(Enum):
    """What a limit is compared against."""

    NUMBER = "number"
    TEXT = "text"
    DATE = "date"
    SIZE = "size"


SIZE_PATTERN = re.compile(
    r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))\s*(kb|mb|gb)\s*$",
    re.IGNORECASE,
)

SIZE_UNITS: Dict[str, int] = {
    "kb": 1_000,
    "mb": 1_000_000,
    "gb": 1_000_000_000,
}

# Checked in this order, first failure wins
LIMIT_RULES: Tuple[Tuple[str, str, Callable[[Any, Any], bool]], ...] = (
    ("min", "{_this} should not be less than {limit}{unit}", lambda v, l: v >= l),
    ("max", "{_this} should not be greater than {limit}{unit}", lambda v, l: v <= l),
    ("gt", "{_this} should be greater than {limit}{unit}", lambda v, l: v > l),
    ("lt", "{_this} should be less than {limit}{unit}", lambda v, l: v < l),
)


def parse_size(raw: Any) -> Optional[Number]:
    """
    Parse a size-suffixed value.

    Example:
        >>> parse_size("2.5mb")
        2500000
    """
    if not isinstance(raw, str):
        return None
    match = SIZE_PATTERN.match(raw)
    if not match:
        return None
    amount = to_number(match.group(1)) * SIZE_UNITS[match.group(2).lower()]
    if isinstance(amount, float) and amount.is_integer():
        return int(amount)
    return amount


def resolve_limit(raw: Any, kind: LimitKind) -> Any:
    """
    Resolve a limit option to a comparable value.

    Args:
        raw: Limit as written in the options
        kind: Kind of value it is compared to

    Returns:
        Number, datetime, or None when the limit cannot be used
    """
    if raw is None or isinstance(raw, bool):
        return None

    if kind is LimitKind.DATE:
        return parse_date(raw)

    if is_numeric(raw):
        return to_number(raw)

    return parse_size(raw)


def format_limit(raw: Any, resolved: Any) -> str:
    """Render a resolved limit for messages."""
    if isinstance(resolved, datetime):
        if isinstance(raw, str):
            return raw.strip()
        if isinstance(raw, datetime):
            return raw.strftime("%Y-%m-%d %H:%M:%S")
        if isinstance(raw, date):
            return raw.strftime("%Y-%m-%d")
        return resolved.strftime("%Y-%m-%d")
    return format_number(resolved)


class LimitComparator:
    """
    Boundary checks shared by every validator.

    Example:
        comparator = LimitComparator()

        comparator.check("first-name", 3, {"min": "2kb"}, LimitKind.TEXT,
                         "abc", unit=" characters")
        # "first-name should not be less than 2,000 characters"
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger or get_logger()

    def check(
        self,
        field: str,
        subject: Any,
        options: Optional[Mapping[str, Any]],
        kind: LimitKind,
        value: Any = None,
        label: Optional[str] = None,
        unit: str = "",
    ) -> Optional[str]:
        """
        Check a subject against the limit options.

        Args:
            field: Field name
            subject: Quantity compared (number, length, date or size)
            options: Field options holding min/max/gt/lt
            kind: Kind of the subject
            value: Field value, used for {this} in custom messages
            label: Name shown in default messages instead of the field
            unit: Suffix shown after the limit

        Returns:
            Error message, or None if all limits hold
        """
        if not options:
            return None

        for rule, template, holds in LIMIT_RULES:
            raw = options.get(rule)
            if raw is None:
                continue

            limit = resolve_limit(raw, kind)
            if limit is None:
                self.logger.warning(
                    "Unresolvable limit skipped",
                    field=field,
                    rule=rule,
                    limit=raw,
                )
                continue

            if holds(subject, limit):
                continue

            shown = format_limit(raw, limit)
            custom = options.get(f"{rule}Err")
            if custom:
                return format_message(
                    custom, field, value, quote=kind is not LimitKind.DATE, limit=shown
                )

            return format_message(
                template, label or field, value, limit=shown, unit=unit
            )

        return None

