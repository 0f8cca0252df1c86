"""Tests for the handler pipeline."""

import hashlib

import pytest

from formhandler.core.handler import Handler
from formhandler.db.checker import DBChecker
from formhandler.exceptions import (
    ConfigurationError,
    DataNotFoundError,
    DataSourceNotRecognizedError,
    DBCheckerNotFoundError,
    DirectoryNotFoundError,
    KeyNotFoundError,
    RuleNotFoundError,
)
from tests.conftest import JPEG_BYTES


class RecordingChecker(DBChecker):
    """Checker backed by a set of existing values."""

    def __init__(self, existing=(), logger=None):
        super().__init__(logger=logger)
        self.existing = set(existing)
        self.calls = []

    def count(self, field, value, descriptor):
        self.calls.append((field, value))
        return 1 if value in self.existing else 0


@pytest.fixture
def make_handler(validator, config, logger):
    def factory(source=None, rules=None, **kwargs):
        return Handler(source, rules, validator=validator, config=config, logger=logger, **kwargs)

    return factory


def test_missing_required_fields_get_their_hints(make_handler):
    handler = make_handler({"last-name": "Doe"}, {
        "first-name": "text",
        "email": {"type": "email", "hint": "{_this} must be given"},
        "last-name": "text",
    })

    assert handler.execute() is False
    assert handler.fails()
    assert handler.errors == {
        "first-name": "first-name is required",
        "email": "email must be given",
    }
    assert handler.get_error() == "first-name is required"


def test_blank_list_items_do_not_count(make_handler):
    handler = make_handler({"tags": ["", None]}, {"tags": "text"})

    assert handler.execute() is False
    assert handler.get_error("tags") == "tags is required"


def test_successful_execution_filters_data(make_handler):
    handler = make_handler({
        "first-name": " <b>Harrison</b> ",
        "age": "12",
        "price": "3.50",
        "tags": ["red", "", " blue "],
    }, {
        "first-name": "text",
        "age": "integer",
        "price": "money",
        "tags": {"type": "text", "filters": {"toUpper": True}},
    })

    assert handler.execute() is True
    assert handler.succeeds()
    assert handler.data == {"first-name": "Harrison", "age": 12, "price": 3.5, "tags": ["RED", "BLUE"]}
    assert handler.get_data("age") == 12
    assert handler["first-name"] == "Harrison"


def test_invalid_value_is_reported(make_handler):
    handler = make_handler({"age": "a22"}, {"age": "integer"})

    assert handler.execute() is False
    assert handler.get_error("age") == '"a22" is not a valid integer'


def test_list_validation_stops_at_first_invalid_value(make_handler):
    handler = make_handler({"ages": ["1", "x", "y"]}, {"ages": "int"})

    assert handler.execute() is False
    assert handler.get_error("ages") == '"x" is not a valid integer'


def test_optional_fields_take_resolved_defaults(make_handler):
    handler = make_handler({"first-name": "Harrison"}, {
        "first-name": "text",
        "nick": {"required": False, "default": "{first-name}"},
        "role": {"required": False, "default": "{_this}-user"},
        "age": {"type": "int", "required": False, "default": "18"},
        "bio": {"required": False},
        "newsletter": "bool",
    })

    assert handler.execute() is True
    assert handler.data == {
        "first-name": "Harrison",
        "nick": "Harrison",
        "role": "role-user",
        "age": 18,
        "bio": "",
        "newsletter": False,
    }
    assert handler.required_fields == ["first-name"]
    assert handler.optional_fields == ["nick", "role", "age", "bio", "newsletter"]


def test_options_resolve_against_data(make_handler):
    rules = {
        "password": "password",
        "confirm": {"type": "password", "options": {"matchWith": "{password}"}},
    }

    good = make_handler({"password": "random_21", "confirm": "random_21"}, rules)
    assert good.execute() is True

    bad = Handler({"password": "random_21", "confirm": "random_22"}, rules)
    assert bad.execute() is False
    assert bad.get_error("confirm") == "Passwords did not match"


def test_require_if_checked(make_handler):
    rules = {
        "newsletter": "bool",
        "email": {"type": "email", "required": False, "requireIf": {"field": "newsletter", "condition": "checked"}},
    }

    assert make_handler({"newsletter": "on"}, rules).execute() is False
    assert make_handler({}, rules).execute() is True


def test_added_fields_take_precedence(make_handler):
    handler = make_handler({"name": "source"}, {"name": "text", "id": "pint"})
    handler.add_field("name", "added").add_fields({"id": 7})

    assert handler.execute() is True
    assert handler.data == {"name": "added", "id": 7}


def test_added_fields_alone_are_a_source(make_handler):
    handler = make_handler(None, {"id": "int"}).add_field("id", "3")
    assert handler.execute() is True


def test_execute_runs_once(make_handler, monkeypatch):
    handler = make_handler({"age": "a22"}, {"age": "int"})
    assert handler.execute() is False
    errors, data = handler.errors, handler.data

    def fail(*args, **kwargs):
        raise AssertionError("processed twice")

    monkeypatch.setattr(handler.rule_processor, "process", fail)

    assert handler.execute() is False
    assert handler.errors == errors
    assert handler.data == data


def test_not_executed_handler_does_not_succeed(make_handler):
    assert make_handler({}, {"a": "text"}).succeeds() is False


@pytest.mark.parametrize("source, rules, error", [
    (None, {"a": "text"}, DataNotFoundError),
    ({"a": "x"}, None, RuleNotFoundError),
    ({"a": "x"}, {}, RuleNotFoundError),
    ({"a": "x"}, {"a": {"checks": {"if": "exists", "entity": "t"}}}, DBCheckerNotFoundError),
])
def test_configuration_errors(make_handler, source, rules, error):
    with pytest.raises(error) as info:
        make_handler(source, rules).execute()

    assert isinstance(info.value, ConfigurationError)


def test_named_sources(monkeypatch):
    monkeypatch.setattr(Handler, "DATA_SOURCES", {})

    with pytest.raises(DataSourceNotRecognizedError):
        Handler("post", {"a": "text"})

    Handler.register_source("POST", lambda: {"a": "from post"})
    handler = Handler("post", {"a": "text"})

    assert handler.execute() is True
    assert handler.get_data("a") == "from post"


def test_get_data_for_undeclared_field(make_handler):
    handler = make_handler({"a": "x"}, {"a": "text"})
    handler.execute()

    with pytest.raises(KeyNotFoundError):
        handler.get_data("b")
    with pytest.raises(KeyError):
        handler.get_data("b")


def test_db_checks_run_after_validation(make_handler, logger):
    checker = RecordingChecker(existing={"taken@example.com"}, logger=logger)
    rules = {
        "email": {"type": "email", "checks": {"if": "exists", "entity": "users"}},
        "age": "int",
    }

    handler = make_handler({"email": "taken@example.com", "age": "x"}, rules, db_checker=checker)
    assert handler.execute() is False
    assert checker.calls == []

    handler = make_handler({"email": "taken@example.com", "age": "3"}, rules, db_checker=checker)
    assert handler.execute() is False
    assert handler.get_error("email") == '"taken@example.com" already exists'


def test_db_check_messages_resolve_placeholders(make_handler, logger):
    checker = RecordingChecker(logger=logger)
    rules = {
        "code": {"checks": [{"check": "does not exist", "entity": "codes", "err": "{_this} {this} is unknown"}]},
    }

    handler = make_handler({"code": "ABC"}, rules, db_checker=checker)

    assert handler.execute() is False
    assert handler.get_error("code") == 'code "ABC" is unknown'


def test_uploads_in_source_are_moved(make_handler, make_upload, tmp_path):
    destination = tmp_path / "avatars"
    destination.mkdir()
    rules = {"avatar": {"type": "image", "options": {"moveTo": str(destination)}}}

    handler = make_handler({"avatar": make_upload("me.jpg")}, rules)

    assert handler.execute() is True
    stored = hashlib.md5(JPEG_BYTES).hexdigest() + ".jpg"
    assert handler.get_data("avatar") == stored
    assert (destination / stored).exists()


def test_uploads_given_separately(make_handler, make_upload):
    rules = {"documents": "document", "photo": "image"}
    files = {"documents": make_upload("scan.pdf", content=b"%PDF-1.4\n"), "photo": make_upload("p.jpg")}

    handler = make_handler({}, rules, files=files)

    assert handler.execute() is True
    assert handler.data == {"documents": "scan.pdf", "photo": "p.jpg"}


def test_missing_upload_is_a_missing_field(make_handler, make_upload):
    handler = make_handler({}, {"photo": "image"}, files={"photo": make_upload("", error=4)})

    assert handler.execute() is False
    assert handler.get_error("photo") == "photo is required"


def test_missing_checker_keeps_failing(make_handler):
    handler = make_handler({"email": "a@b.co"}, {
        "email": {"type": "email", "checks": {"if": "exists", "entity": "users"}},
    })

    with pytest.raises(DBCheckerNotFoundError):
        handler.execute()
    with pytest.raises(DBCheckerNotFoundError):
        handler.execute()

    assert handler.succeeds() is False


def test_failed_move_is_not_a_success(make_handler, make_upload, tmp_path):
    rules = {"avatar": {"type": "image", "options": {"moveTo": str(tmp_path / "missing")}}}
    handler = make_handler({"avatar": make_upload("me.jpg")}, rules)

    with pytest.raises(DirectoryNotFoundError):
        handler.execute()

    assert handler.succeeds() is False
    assert handler.fails()
    assert handler.execute() is False


def _parallel(*records):
    """Combine upload records into the parallel-lists layout."""
    return {key: [record[key] for record in records] for key in records[0]}


def test_empty_upload_slots_are_skipped(make_handler, make_upload):
    files = {"photos": _parallel(make_upload("", error=4), make_upload("b.jpg"))}

    handler = make_handler({}, {"photos": "image"}, files=files)

    assert handler.execute() is True
    assert handler.get_data("photos") == "b.jpg"


def test_moved_names_follow_upload_positions(make_handler, make_upload, tmp_path):
    destination = tmp_path / "photos"
    destination.mkdir()
    second = JPEG_BYTES + b"second"
    files = {"photos": _parallel(
        make_upload("a.jpg"),
        make_upload("", error=4),
        make_upload("c.jpg", content=second),
    )}
    rules = {"photos": {"type": "image", "options": {"moveTo": str(destination)}}}

    handler = make_handler({}, rules, files=files)

    assert handler.execute() is True
    assert handler.get_data("photos") == [
        hashlib.md5(JPEG_BYTES).hexdigest() + ".jpg",
        hashlib.md5(second).hexdigest() + ".jpg",
    ]


def test_current_date_default_is_a_valid_date(make_handler):
    rules = {"joined": {"type": "date", "required": False, "default": "{current_date}"}}

    handler = make_handler({}, rules)

    assert handler.execute() is True
    assert len(handler.get_data("joined")) == len("2024-01-15 10:30:45")
