"""
FormHandler Rule Processor
==========================

Turns declarative per-field rules into the lookup tables the handler
works from: required and optional fields, hints, defaults, filters,
options and database checks.

Example:
    processed = RuleProcessor().process({
        "email": {"type": "email", "checks": {"if": "exists", "entity": "users"}},
        "age": "positive integer",
        "newsletter": "boolean",
    }, source)

    processed.required_fields     # ["email", "age"]
    processed.optional_fields     # ["newsletter"]
    processed.types["age"]        # "pint"
"""

from __future__ import annotations

import re
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from formhandler.exceptions import InvalidRuleError
from formhandler.utils.helpers import loose_equals
from formhandler.utils.logger import Logger, get_logger
from formhandler.validation.types import FieldType, resolve_type_name


@dataclass
class ProcessedRules:
    """Rules broken down into per-field tables."""

    required_fields: List[str] = field(default_factory=list)
    optional_fields: List[str] = field(default_factory=list)
    hints: Dict[str, Any] = field(default_factory=dict)
    default_values: Dict[str, Any] = field(default_factory=dict)
    filters: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    rule_options: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    db_checks: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    types: Dict[str, str] = field(default_factory=dict)

    @property
    def fields(self) -> List[str]:
        """All fields, required first."""
        return self.required_fields + self.optional_fields

    def has_db_checks(self) -> bool:
        return any(self.db_checks.values())


_CHECK_SEPARATORS = re.compile(r"[\s_-]+")


def normalize_check_name(name: Any) -> str:
    """
    Normalize a database check name.

    Example:
        >>> normalize_check_name("does not exist")
        'ifnotexist'
    """
    result = _CHECK_SEPARATORS.sub("", str(name or "").lower())
    result = result.replace("doesnot", "not").replace("doesnt", "not")
    result = result.replace("exists", "exist")
    if not result.startswith("if"):
        result = "if" + result
    return result


class RuleProcessor:
    """
    Rule processor.

    Conditional requiredness is decided here against the raw source:
    ``requireIf`` conditions are ``checked``, ``notChecked``,
    ``equals`` and ``notEquals``.
    """

    CONDITIONS = ("checked", "notchecked", "equals", "equal", "notequals", "notequal")

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger or get_logger()

    def process(
        self,
        rules: Mapping[str, Any],
        source: Optional[Mapping[str, Any]] = None,
    ) -> ProcessedRules:
        """
        Process rules.

        Args:
            rules: Rule per field
            source: Raw input, used by requireIf conditions

        Returns:
            ProcessedRules

        Raises:
            InvalidRuleError: If a rule is malformed
        """
        source = source or {}
        processed = ProcessedRules()

        for name, raw_rule in rules.items():
            rule = self._normalize_rule(name, raw_rule)
            type_name = resolve_type_name(rule.get("type"))

            required = rule.get("required", type_name != FieldType.BOOL.value)
            if "requireIf" in rule:
                required = self._resolve_require_if(name, rule["requireIf"], source, required)

            if required:
                processed.required_fields.append(name)
            else:
                processed.optional_fields.append(name)

            processed.types[name] = type_name
            processed.hints[name] = rule.get("hint") or f"{name} is required"
            processed.default_values[name] = deepcopy(rule.get("default"))

            processed.filters[name] = self._section(name, rule, "filters")
            processed.filters[name]["type"] = type_name

            processed.rule_options[name] = self._section(name, rule, "options")
            processed.rule_options[name]["type"] = type_name

            processed.db_checks[name] = self._checks(name, rule.get("checks"))

        self.logger.debug(
            "Rules processed",
            required=len(processed.required_fields),
            optional=len(processed.optional_fields),
        )
        return processed

    def _normalize_rule(self, name: str, rule: Any) -> Dict[str, Any]:
        if isinstance(rule, str):
            return {"type": rule}
        if rule is None:
            return {}
        if not isinstance(rule, Mapping):
            raise InvalidRuleError(f"Rule for {name} must be a mapping or a type name", field=name)
        return dict(rule)

    def _section(self, name: str, rule: Mapping[str, Any], key: str) -> Dict[str, Any]:
        section = rule.get(key)
        if section is None:
            return {}
        if not isinstance(section, Mapping):
            raise InvalidRuleError(f"{key} of {name} must be a mapping", field=name)
        return deepcopy(dict(section))

    def _checks(self, name: str, checks: Any) -> List[Dict[str, Any]]:
        if checks is None:
            return []
        if isinstance(checks, Mapping):
            checks = [checks]
        if not isinstance(checks, (list, tuple)):
            raise InvalidRuleError(f"checks of {name} must be a mapping or a list", field=name)

        normalized = []
        for check in checks:
            if not isinstance(check, Mapping):
                raise InvalidRuleError(f"Each check of {name} must be a mapping", field=name)
            descriptor = deepcopy(dict(check))
            descriptor["check"] = normalize_check_name(
                descriptor.get("check", descriptor.pop("if", None))
            )
            normalized.append(descriptor)
        return normalized

    def _resolve_require_if(
        self,
        name: str,
        condition: Any,
        source: Mapping[str, Any],
        required: bool,
    ) -> bool:
        """Decide requiredness from a requireIf condition."""
        if not isinstance(condition, Mapping) or not condition.get("field"):
            raise InvalidRuleError(f"requireIf of {name} needs a field", field=name)

        kind = _CHECK_SEPARATORS.sub("", str(condition.get("condition", "")).lower())
        other = source.get(condition["field"])

        if kind == "checked":
            return other is not None
        if kind == "notchecked":
            return other is None
        if kind in ("equals", "equal"):
            return other is not None and loose_equals(other, condition.get("value"))
        if kind in ("notequals", "notequal"):
            return other is None or not loose_equals(other, condition.get("value"))

        self.logger.warning(
            "Unrecognized requireIf condition",
            field=name,
            condition=condition.get("condition"),
        )
        return required
