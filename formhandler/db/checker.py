"""
FormHandler Database Checks
===========================

Existence checks run against a database once every field is valid.

A check descriptor names the entity (table) and optionally the
column to look in:

    {"check": "ifexist", "entity": "users", "field": "email",
     "err": "{this} is already registered"}

or supplies its own counting query:

    {"check": "ifnotexist", "query": "SELECT COUNT(*) FROM codes WHERE code = ?"}
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from formhandler.exceptions import InvalidRuleError
from formhandler.utils.helpers import format_message, is_empty
from formhandler.utils.logger import Logger, get_logger
from formhandler.validation.bag import ErrorBag

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]{0,63}$")

PARAM_MARKERS = {
    "qmark": "?",
    "format": "%s",
}


def sql_identifier(value: Any) -> str:
    """
    Validate a table or column name.

    Raises:
        InvalidRuleError: If the name is not a plain identifier
    """
    name = str(value or "")
    if not IDENTIFIER_PATTERN.match(name):
        raise InvalidRuleError(f"{name!r} is not a valid identifier")
    return name


class DBChecker(ABC):
    """
    Base database checker.

    Subclasses supply ``count``; this class dispatches checks and
    records failures in the shared error bag.
    """

    def __init__(
        self,
        error_bag: Optional[ErrorBag] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.error_bag = error_bag if error_bag is not None else ErrorBag()
        self.logger = logger or get_logger()
        self._checks: Dict[str, Callable[[str, Any, Mapping[str, Any]], Optional[str]]] = {
            "ifexist": self.check_if_exist,
            "ifnotexist": self.check_if_not_exist,
        }

    def set_error_bag(self, error_bag: ErrorBag) -> "DBChecker":
        self.error_bag = error_bag
        return self

    def check(
        self,
        check_name: str,
        required: bool,
        field: str,
        value: Any,
        descriptor: Mapping[str, Any],
        index: int = 0,
    ) -> bool:
        """
        Run one check for a field value.

        Args:
            check_name: Normalized check name (ifexist, ifnotexist)
            required: Whether the field is required
            field: Field name
            value: Filtered field value
            descriptor: Check options
            index: Position of the value in a multi-value field

        Returns:
            True if the check passed
        """
        if not required and is_empty(value):
            return True

        method = self._checks.get(check_name)
        if method is None:
            self.logger.warning("Unrecognized database check", field=field, check=check_name)
            return True

        template = method(field, value, descriptor)
        if template is None:
            return True

        self.error_bag.add(
            field, format_message(descriptor.get("err") or template, field, value)
        )
        return False

    def check_if_exist(self, field: str, value: Any, descriptor: Mapping[str, Any]) -> Optional[str]:
        """Fail when a matching record exists."""
        if self.count(field, value, descriptor) > 0:
            return "{this} already exists"
        return None

    def check_if_not_exist(self, field: str, value: Any, descriptor: Mapping[str, Any]) -> Optional[str]:
        """Fail when no matching record exists."""
        if self.count(field, value, descriptor) == 0:
            return "{this} does not exist"
        return None

    @abstractmethod
    def count(self, field: str, value: Any, descriptor: Mapping[str, Any]) -> int:
        """Count records matching the value."""
        ...

    def build_query(
        self,
        field: str,
        value: Any,
        descriptor: Mapping[str, Any],
        marker: str = "?",
    ) -> Tuple[str, List[Any]]:
        """
        Build the counting query for a descriptor.

        Returns:
            Query string and its parameters
        """
        query = descriptor.get("query")
        if query:
            params = descriptor.get("params")
            if params is None:
                params = [value]
            elif not isinstance(params, (list, tuple)):
                params = [params]
            return str(query), list(params)

        if not descriptor.get("entity"):
            raise InvalidRuleError(f"Database check of {field} needs an entity or a query", field=field)

        entity = sql_identifier(descriptor["entity"])
        column = sql_identifier(descriptor.get("field") or field)
        return f"SELECT COUNT(*) FROM {entity} WHERE {column} = {marker}", [value]


class ConnectionDBChecker(DBChecker):
    """
    Checker backed by a DB-API 2.0 connection.

    Example:
        import sqlite3

        checker = ConnectionDBChecker(sqlite3.connect("app.db"))
        handler = Handler(source, rules, db_checker=checker)
    """

    def __init__(
        self,
        connection: Any,
        paramstyle: str = "qmark",
        error_bag: Optional[ErrorBag] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(error_bag, logger)
        if paramstyle not in PARAM_MARKERS:
            raise ValueError(f"Unsupported paramstyle: {paramstyle}")
        self.connection = connection
        self.marker = PARAM_MARKERS[paramstyle]

    def count(self, field: str, value: Any, descriptor: Mapping[str, Any]) -> int:
        query, params = self.build_query(field, value, descriptor, self.marker)
        self.logger.debug("Running database check", field=field, query=query)

        cursor = self.connection.cursor()
        try:
            cursor.execute(query, tuple(params))
            row = cursor.fetchone()
        finally:
            cursor.close()

        if not row:
            return 0
        return int(row[0] or 0)
