"""Tests for the type validators."""

from datetime import date

import pytest

from formhandler.utils.logger import LogLevel
from formhandler.validation.bag import ErrorBag
from formhandler.validation.validator import compile_pattern

COLOR_REGEX = {
    "test": "/^(orange|white|red|black|green|purple|voilet)$/",
    "err": "{this} is not a valid color",
}

NAME_RULES = [
    {"test": "/^[a-z]/i", "err": "first name should start with alphabet"},
    {"test": r"/^\w{3,14}$/i", "err": "first name should be 3 to 15 characters long"},
]

HTTPS_OR_FTP = {
    "tests": ["/^https/", "/^ftp/"],
    "err": "Website url should start with https or ftp protocols",
}

NO_FTP_NO_QUERY = [
    {"test": "/^ftp:/i", "err": "{this} should not contain the ftp protocol"},
    {"test": r"/\?.*/", "err": "{this} should be free of query string"},
]


@pytest.mark.parametrize("method, field, value, options", [
    ("validate_date", "date-of-birth", "2018-01-04", {}),
    ("validate_date", "date-of-birth", "20180104", {}),
    ("validate_date", "date-of-birth", "2018\t01\t04", {}),
    ("validate_date", "date-of-birth", date(2018, 1, 4), {}),
    ("validate_date", "date-of-birth", "2018-01-04 10:30:00", {}),
    ("validate_date", "date-of-birth", "2018-01-04T10:30", {}),
    ("validate_integer", "age", 12, {}),
    ("validate_integer", "age", "-12", {}),
    ("validate_pinteger", "age", 22, {}),
    ("validate_ninteger", "age", -22, {}),
    ("validate_float", "price", 0.222, {}),
    ("validate_float", "price", "12", {}),
    ("validate_pfloat", "price", 0.222, {}),
    ("validate_nfloat", "price", -0.222, {}),
    ("validate_bool", "newsletter", False, {}),
    ("validate_email", "email", "someone@example.com", {}),
    ("validate_url", "website", "example.com", {}),
    ("validate_url", "website", "www.example.com", {}),
    ("validate_url", "website", "https://www.example.com/path?q=1", {}),
    ("validate_url", "website", "http://localhost:8000", {}),
    ("validate_choice", "language", "eu", {"choices": ["eu", "en"]}),
    ("validate_choice", "level", "2", {"choices": [1, 2, 3]}),
    ("validate_range", "year", "1996", {"from": 1990, "to": 2018}),
    ("validate_range", "year", 2000, {"from": 1990, "to": 2018}),
    ("validate_range", "alphabet", "c", {"from": "a", "to": "z"}),
    ("validate_range", "alphabet", "e", {"from": "a", "to": "z", "step": 2}),
    ("validate_range", "even", 6, {"from": 10, "to": 0, "step": 2}),
    ("validate_password", "password1", "random_21", {}),
    ("validate_password", "password1", "random21", {}),
    ("validate_password", "password1", "random_21", {"matchWith": "random_21"}),
    ("validate_text", "color", "white", {"regex": COLOR_REGEX}),
    ("validate_text", "first-name", "Harrison", {"regexAll": NAME_RULES + ["/^[0-9]/"]}),
    ("validate_url", "website", "https://www.example.com", {"regexAny": HTTPS_OR_FTP}),
    ("validate_url", "website", "https://www.example.com", {"regexNone": NO_FTP_NO_QUERY + ["/^h/"]}),
])
def test_valid_values(validator, method, field, value, options):
    assert getattr(validator, method)(True, field, value, options) is True
    assert validator.succeeds()


@pytest.mark.parametrize("method, field, value, options, expected", [
    # Dates
    ("validate_date", "date-of-birth", "01-04-2018", {}, "01-04-2018 is not a valid date format"),
    ("validate_date", "date-of-birth", "2018-01-32", {}, "2018-01-32 is not a valid date"),
    ("validate_date", "date-of-birth", "2018-01-04 25:00", {}, "2018-01-04 25:00 is not a valid date"),
    ("validate_date", "date-of-birth", "20180104 10:30", {}, "20180104 10:30 is not a valid date format"),
    # Integers
    ("validate_integer", "age", "a22", {}, '"a22" is not a valid integer'),
    ("validate_integer", "age", 1.5, {}, "1.5 is not a valid integer"),
    ("validate_pinteger", "age", -22, {}, "-22 is not a valid positive integer"),
    ("validate_pinteger", "age", 0, {}, "0 is not a valid positive integer"),
    ("validate_ninteger", "age", 22, {}, "22 is not a valid negative integer"),
    ("validate_integer", "age", "x", {"err": "{_this} must be a whole number"}, "age must be a whole number"),
    # Numbers
    ("validate_float", "price", "-aaa222", {}, '"-aaa222" is not a valid number'),
    ("validate_pfloat", "price", -0.222, {}, "-0.222 is not a valid positive number"),
    ("validate_nfloat", "price", 0.222, {}, "0.222 is not a valid negative number"),
    # Email and URL
    ("validate_email", "email", "x", {}, '"x" is not a valid email address'),
    ("validate_email", "email", "a..b@example.com", {}, '"a..b@example.com" is not a valid email address'),
    ("validate_url", "website", "example", {}, '"example" is not a valid url'),
    # Choices and ranges
    ("validate_choice", "language", "du", {"choices": ["eu", "en"], "err": "{this} is not a valid language code"},
     '"du" is not a valid language code'),
    ("validate_choice", "language", "fr", {"choices": ["eu", "en"]}, '"fr" is not an acceptable choice'),
    ("validate_range", "year", 1978, {"from": 1990, "to": 2018, "err": "{this} is not a valid year"},
     "1978 is not a valid year"),
    ("validate_range", "year", "2019", {"from": 1990, "to": 2018, "err": "{this} is not a valid year"},
     "2019 is not a valid year"),
    ("validate_range", "alphabet", "b", {"from": "a", "to": "z", "step": 2}, '"b" is not an acceptable choice'),
    ("validate_range", "alphabet", "d", {"from": "a", "to": "z", "step": 2}, '"d" is not an acceptable choice'),
    ("validate_range", "alphabet", "ab", {"from": "a", "to": "z"}, '"ab" is not an acceptable choice'),
    # Passwords
    ("validate_password", "password1", "random", {}, "Password should not be less than 8 characters"),
    ("validate_password", "password1", "21222222", {}, "Password must contain at least two letter alphabets"),
    ("validate_password", "password1", "randomnumber", {},
     "Password must contain at least two non letter alphabets"),
    ("validate_password", "password1", "random_2", {"matchWith": "random_21"}, "Passwords did not match"),
    ("validate_password", "password1", "random_2", {"matchWith": "random_21", "matchWithErr": "Confirm it again"},
     "Confirm it again"),
    # Limits
    ("validate_text", "first_name", "Harrison",
     {"min": 10, "minErr": "{_this} should be at least 10 characters long"},
     "first_name should be at least 10 characters long"),
    ("validate_text", "first_name", "Harrison", {"gt": 8}, "first_name should be greater than 8 characters"),
    ("validate_text", "first_name", "Harrison", {"lt": 8}, "first_name should be less than 8 characters"),
    ("validate_text", "first-name", "Harrison", {"min": "2kb"}, "first-name should not be less than 2,000 characters"),
    ("validate_integer", "favorite_number", 100, {"max": 50}, "favorite_number should not be greater than 50"),
    ("validate_date", "start_date", "2018-01-01", {"max": "2017-12-31"},
     "start_date should not be greater than 2017-12-31"),
    ("validate_date", "start_date", "2018-01-01", {"gt": "2018-01-01"}, "start_date should be greater than 2018-01-01"),
    ("validate_date", "start_date", "2018-01-01", {"lt": "2018-01-01"}, "start_date should be less than 2018-01-01"),
    ("validate_date", "start_date", "2018-01-01", {"min": date(2019, 1, 1)},
     "start_date should not be less than 2019-01-01"),
    # Regex rules
    ("validate_text", "color", "london", {"regex": COLOR_REGEX}, '"london" is not a valid color'),
    ("validate_text", "color", "2222", {"regex": COLOR_REGEX}, "2222 is not a valid color"),
    ("validate_text", "first-name", "7up", {"regexAll": NAME_RULES}, "first name should start with alphabet"),
    ("validate_text", "first-name", "Ha", {"regexAll": NAME_RULES}, "first name should be 3 to 15 characters long"),
    ("validate_url", "website", "http://www.example.com", {"regexAny": HTTPS_OR_FTP},
     "Website url should start with https or ftp protocols"),
    ("validate_url", "website", "ftp://www.example.com", {"regexNone": NO_FTP_NO_QUERY},
     '"ftp://www.example.com" should not contain the ftp protocol'),
    ("validate_url", "website", "https://www.example.com/index.php?call=search", {"regexNone": NO_FTP_NO_QUERY},
     '"https://www.example.com/index.php?call=search" should be free of query string'),
])
def test_invalid_values(validator, method, field, value, options, expected):
    assert getattr(validator, method)(True, field, value, options) is False
    assert validator.fails()
    assert validator.get_error(field) == expected


@pytest.mark.parametrize("value", [None, "", []])
def test_required_fields(validator, value):
    assert validator.validate_text(True, "first_name", value, {}) is False
    assert validator.get_error("first_name") == "first_name is required"


@pytest.mark.parametrize("method", ["validate_text", "validate_integer", "validate_email", "validate_date"])
def test_optional_empty_values_pass(validator, method):
    assert getattr(validator, method)(False, "field", "", {"min": 5}) is True
    assert validator.succeeds()


def test_password_minimum_comes_from_config(config, logger):
    from formhandler.validation.validator import Validator

    config.set("password.min_length", 12)
    validator = Validator(config=config, logger=logger)

    assert validator.validate_password(True, "password", "random_21", {}) is False
    assert validator.get_error("password") == "Password should not be less than 12 characters"


def test_password_min_option_overrides_config(validator):
    assert validator.validate_password(True, "password", "ab12", {"min": 4}) is True


@pytest.mark.parametrize("type_name, value, expected", [
    ("positive integer", -1, "-1 is not a valid positive integer"),
    ("Negative Number", 2, "2 is not a valid negative number"),
    ("money", "cash", '"cash" is not a valid number'),
    ("string", "", "amount is required"),
])
def test_dispatch_by_type_name(validator, type_name, value, expected):
    assert validator.validate(type_name, True, "amount", value) is False
    assert validator.get_error("amount") == expected


def test_unrecognized_type_passes_with_warning(validator, memory_handler):
    assert validator.validate("colour", True, "shade", "teal") is True
    assert validator.succeeds()
    assert "Unrecognized validation type" in memory_handler.messages(LogLevel.WARNING)


def test_first_error_per_field_wins(validator):
    validator.validate_integer(True, "age", "a22")
    validator.validate_integer(True, "age", "b33")

    assert validator.get_error("age") == '"a22" is not a valid integer'


def test_error_bag_is_shared(validator):
    bag = ErrorBag()
    bag.add("first_name", "First name field is required")

    validator.set_error_bag(bag)
    bag.add("last_name", "Last name field is required")

    assert validator.get_error_bag() is bag
    assert validator.get_error() == "First name field is required"
    assert validator.get_error("last_name") == "Last name field is required"
    assert validator.get_error("middle_name") is None


@pytest.mark.parametrize("pattern, text, matched", [
    ("/^abc/i", "ABCdef", True),
    ("/^abc/", "ABCdef", False),
    ("^abc", "abcdef", True),
    ("#a.c#s", "a\nc", True),
    ("/x/z", "/x/z", True),
])
def test_compile_pattern(pattern, text, matched):
    assert (compile_pattern(pattern).search(text) is not None) is matched
