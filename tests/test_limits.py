"""Tests for limit resolution and comparison."""

from datetime import date, datetime

import pytest

from formhandler.utils.logger import LogLevel
from formhandler.validation.limits import (
    LimitComparator,
    LimitKind,
    format_limit,
    parse_size,
    resolve_limit,
)


@pytest.mark.parametrize("raw, kind, expected", [
    (10, LimitKind.NUMBER, 10),
    ("10", LimitKind.TEXT, 10),
    ("2.5", LimitKind.NUMBER, 2.5),
    ("2kb", LimitKind.TEXT, 2_000),
    ("2.5mb", LimitKind.TEXT, 2_500_000),
    ("0.5gb", LimitKind.SIZE, 500_000_000),
    ("1 KB", LimitKind.SIZE, 1_000),
    ("2018-01-01", LimitKind.DATE, datetime(2018, 1, 1)),
    (date(2019, 5, 6), LimitKind.DATE, datetime(2019, 5, 6)),
])
def test_resolve_limit(raw, kind, expected):
    assert resolve_limit(raw, kind) == expected


@pytest.mark.parametrize("raw, kind", [
    ("abc", LimitKind.NUMBER),
    ("2tb", LimitKind.SIZE),
    (True, LimitKind.NUMBER),
    ("yesterday", LimitKind.DATE),
])
def test_unresolvable_limits(raw, kind):
    assert resolve_limit(raw, kind) is None


def test_parse_size_only_accepts_suffixed_strings():
    assert parse_size("3mb") == 3_000_000
    assert parse_size(3) is None


def test_format_limit():
    assert format_limit("2kb", 2000) == "2,000"
    assert format_limit(2.0, 2.0) == "2"
    assert format_limit(" 2017-12-31 ", datetime(2017, 12, 31)) == "2017-12-31"
    assert format_limit(date(2019, 1, 1), datetime(2019, 1, 1)) == "2019-01-01"


@pytest.fixture
def comparator(logger):
    return LimitComparator(logger)


@pytest.mark.parametrize("limit, expected", [
    ("2kb", "first-name should not be less than 2,000 characters"),
    ("2.5mb", "first-name should not be less than 2,500,000 characters"),
    ("0.5gb", "first-name should not be less than 500,000,000 characters"),
])
def test_size_suffixed_text_limits(comparator, limit, expected):
    error = comparator.check(
        "first-name", len("Harrison"), {"min": limit}, LimitKind.TEXT,
        "Harrison", unit=" characters",
    )
    assert error == expected


@pytest.mark.parametrize("options, subject, expected", [
    ({"max": 50}, 100, "favorite_number should not be greater than 50"),
    ({"gt": 5}, 5, "favorite_number should be greater than 5"),
    ({"lt": 5}, 5, "favorite_number should be less than 5"),
    ({"min": 1, "max": 200}, 100, None),
])
def test_number_limits(comparator, options, subject, expected):
    assert comparator.check("favorite_number", subject, options, LimitKind.NUMBER, subject) == expected


def test_min_is_checked_before_max(comparator):
    error = comparator.check("n", 0, {"max": -5, "min": 10}, LimitKind.NUMBER, 0)
    assert error == "n should not be less than 10"


def test_custom_message_tokens(comparator):
    error = comparator.check(
        "name", 3, {"min": 10, "minErr": "{_this} needs {limit} characters, {this} is short"},
        LimitKind.TEXT, "abc",
    )
    assert error == 'name needs 10 characters, "abc" is short'


def test_label_replaces_field_name(comparator):
    error = comparator.check(
        "password1", 6, {"min": 8}, LimitKind.TEXT, "random",
        label="Password", unit=" characters",
    )
    assert error == "Password should not be less than 8 characters"


def test_unresolvable_limit_is_skipped_with_warning(comparator, memory_handler):
    assert comparator.check("age", 5, {"min": "lots"}, LimitKind.NUMBER, 5) is None
    assert "Unresolvable limit skipped" in memory_handler.messages(LogLevel.WARNING)
