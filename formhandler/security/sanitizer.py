"""
FormHandler Value Filter
========================

Normalizes raw input before validation:
- URL decoding
- Whitespace trimming
- Markup stripping
- Case folding
- Type coercion (integers, floats, booleans, email, URL)

Filtering never fails. Values that cannot be coerced are handed on
as strings and rejected later by the type validators.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
from urllib.parse import unquote_plus

import bleach

from formhandler.utils.helpers import INTEGER_PATTERN, is_numeric, stringify


@dataclass
class FilterConfig:
    """
    Filters applied to a single field.

    Built from the ``filters`` mapping of a rule, where the keys are
    ``decode``, ``trim``, ``stripTags``, ``toUpper`` and ``toLower``.
    """

    type: str = "text"
    decode: bool = True
    trim: bool = True
    strip_tags: bool = True
    to_upper: bool = False
    to_lower: bool = False

    @classmethod
    def from_mapping(cls, filters: Optional[Mapping[str, Any]]) -> "FilterConfig":
        """Create config from a rule's filters mapping."""
        filters = filters or {}
        return cls(
            type=str(filters.get("type", "text")).lower(),
            decode=bool(filters.get("decode", True)),
            trim=bool(filters.get("trim", True)),
            strip_tags=bool(filters.get("stripTags", True)),
            to_upper=bool(filters.get("toUpper", False)),
            to_lower=bool(filters.get("toLower", False)),
        )


class ValueFilter:
    """
    Input filter for cleaning and coercing field values.

    Example:
        value_filter = ValueFilter()

        value_filter.filter(" <b>42</b> ", {"type": "int"})       # 42
        value_filter.filter("off", {"type": "bool"})               # False
        value_filter.filter(["a ", " b"], {"toUpper": True})       # ["A", "B"]
    """

    INTEGER_TYPES = frozenset({"int", "pint", "nint"})
    FLOAT_TYPES = frozenset({"float", "pfloat", "nfloat"})

    FALSY_PATTERN = re.compile(r"^(false|off|0|nil|null|no|undefined)$", re.IGNORECASE)

    # Characters outside these sets are dropped
    EMAIL_UNSAFE = re.compile(r"[^a-zA-Z0-9!#$%&'*+\-=?^_`{|}~@.\[\]]")
    URL_UNSAFE = re.compile(r"[^a-zA-Z0-9$\-_.+!*'(),{}|\\^~\[\]`<>#%\";/?:@&=]")

    def filter(
        self,
        value: Any,
        filters: Union[FilterConfig, Mapping[str, Any], None] = None,
    ) -> Any:
        """
        Filter a value or a list of values.

        Args:
            value: Raw value
            filters: Filter config or rule filters mapping

        Returns:
            Filtered (and possibly coerced) value
        """
        config = filters if isinstance(filters, FilterConfig) else FilterConfig.from_mapping(filters)

        if isinstance(value, (list, tuple)):
            return [self.filter(item, config) for item in value]

        text = self.string(value, config)
        return self.coerce(text, config.type)

    def string(self, value: Any, config: FilterConfig) -> str:
        """
        Apply the string filters in order.

        Args:
            value: Raw value
            config: Filter config

        Returns:
            Cleaned string
        """
        result = stringify(value)

        if config.decode:
            result = unquote_plus(result)

        if config.trim:
            result = result.strip()

        if config.strip_tags:
            result = self.strip_tags(result)

        if config.to_upper:
            result = result.upper()
        elif config.to_lower:
            result = result.lower()

        return result

    def strip_tags(self, text: str) -> str:
        """
        Remove markup, keeping the text content.

        Entities already present in the input are kept as written, so
        ``"a &amp; <b>b</b>"`` becomes ``"a &amp; b"`` like ``"a &amp; b"``
        stays untouched. Only the escaping bleach adds is undone.
        """
        if "<" not in text:
            return text
        cleaned = bleach.clean(
            text.replace("&", "&amp;"),
            tags=set(),
            attributes={},
            strip=True,
            strip_comments=True,
        )
        return html.unescape(cleaned)

    def coerce(self, value: str, type_name: str) -> Any:
        """Coerce filtered string according to field type."""
        if type_name == "email":
            return self.email(value)
        if type_name == "url":
            return self.url(value)
        if type_name in self.INTEGER_TYPES:
            return self.integer(value)
        if type_name in self.FLOAT_TYPES:
            return self.float_num(value)
        if type_name == "bool":
            return self.boolean(value)
        return value

    def email(self, value: str) -> str:
        """Drop characters that cannot appear in an email address."""
        return self.EMAIL_UNSAFE.sub("", value)

    def url(self, value: str) -> str:
        """Drop characters that cannot appear in a URL."""
        return self.URL_UNSAFE.sub("", value)

    def integer(self, value: str) -> Union[int, float, str]:
        """
        Parse integer strings.

        Fractional numbers become floats so the validator can reject
        them; anything else stays a string.
        """
        if not is_numeric(value):
            return value
        if INTEGER_PATTERN.match(value):
            return int(value)
        return float(value)

    def float_num(self, value: str) -> Union[float, str]:
        """Parse numeric strings to float."""
        if not is_numeric(value):
            return value
        return float(value)

    def boolean(self, value: str) -> bool:
        """Interpret checkbox-like input."""
        if value == "" or self.FALSY_PATTERN.match(value):
            return False
        return True


# Global filter instance
_value_filter = ValueFilter()


def filter_value(value: Any, filters: Optional[Mapping[str, Any]] = None) -> Any:
    """Filter value with the global filter."""
    return _value_filter.filter(value, filters)


def get_value_filter() -> ValueFilter:
    """Get global filter instance."""
    return _value_filter
