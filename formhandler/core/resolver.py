"""
FormHandler Option Resolver
===========================

Substitutes ``{placeholder}`` tokens inside hints, options and
database check descriptors.

Tokens resolve against already filtered field data or built-in
values. Unknown tokens are left as written, so a template that
refers to a field which is not available yet degrades to its
literal text instead of failing.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional

from formhandler.utils.helpers import format_datetime, now, stringify

PLACEHOLDER_PATTERN = re.compile(r"\{\s*([^}]+?)\s*\}")


class OptionResolver:
    """
    Recursive placeholder resolver.

    Example:
        data = {"password": "s3cret!!"}
        resolver = OptionResolver(data)

        resolver.resolve("confirm", {"matchWith": "{password}"})
        # {"matchWith": "s3cret!!"}

        resolver.resolve("email", "{_this} is taken")
        # "email is taken"
    """

    FIELD_TOKENS = frozenset({"_this"})
    DATETIME_TOKENS = frozenset({"current_timestamp", "current_datetime", "current_date"})
    TIMESTAMP_TOKENS = frozenset({"now", "timestamp", "current_time"})

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize resolver.

        Args:
            data: Field data to resolve against, read live
            clock: Source of the current time
        """
        self.data = data if data is not None else {}
        self.clock = clock or now

    def resolve(self, field: str, option: Any) -> Any:
        """
        Resolve placeholders inside an option.

        Mappings and lists are walked recursively; other non-string
        values are returned unchanged.

        Args:
            field: Field the option belongs to
            option: Option value

        Returns:
            Resolved option
        """
        if isinstance(option, Mapping):
            return {key: self.resolve(field, value) for key, value in option.items()}

        if isinstance(option, list):
            return [self.resolve(field, value) for value in option]

        if not isinstance(option, str):
            return option

        # A lone data placeholder keeps the value's type
        whole = PLACEHOLDER_PATTERN.fullmatch(option.strip())
        if whole and whole.group(1) in self.data:
            return self.data[whole.group(1)]

        return PLACEHOLDER_PATTERN.sub(
            lambda match: self._resolve_token(field, match),
            option,
        )

    def resolve_all(self, options: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """
        Resolve every entry of a field-keyed mapping in place.

        Args:
            options: Mapping of field name to option

        Returns:
            The same mapping
        """
        for field, option in list(options.items()):
            options[field] = self.resolve(field, option)
        return options

    def _resolve_token(self, field: str, match: re.Match) -> str:
        capture = match.group(1)
        token = capture.lower()

        if token in self.FIELD_TOKENS:
            return field

        if token in self.DATETIME_TOKENS:
            return format_datetime(self.clock())

        if token in self.TIMESTAMP_TOKENS:
            return str(int(self.clock().timestamp()))

        if capture in self.data:
            value = self.data[capture]
            if isinstance(value, (list, tuple)):
                return ",".join(stringify(item) for item in value)
            return stringify(value)

        return match.group(0)


def resolve_options(
    options: Dict[str, Any],
    data: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Resolve a field-keyed mapping against data in place."""
    OptionResolver(data).resolve_all(options)
    return options
