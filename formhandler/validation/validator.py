"""
FormHandler Validator
=====================

Core validation engine.

Validates one field value at a time against its declared type and
options, recording the first failure per field in a shared error bag.

Every type validator runs the same steps:
1. Empty check (required fields fail, optional fields pass)
2. Format check for the type
3. Limit checks (min, max, gt, lt)
4. Regex rules (regex, regexAll, regexAny, regexNone)
"""

from __future__ import annotations

import re
from datetime import date
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from formhandler.core.config import Config, get_config
from formhandler.utils.helpers import (
    DATE_PATTERN,
    DATETIME_PATTERN,
    is_empty,
    is_integer_literal,
    is_numeric,
    format_message,
    loose_equals,
    parse_date,
    stringify,
    to_number,
)
from formhandler.utils.logger import Logger, get_logger
from formhandler.validation.bag import ErrorBag
from formhandler.validation.files import FileValidator, UploadedFile, normalize_uploads
from formhandler.validation.limits import LimitComparator, LimitKind
from formhandler.validation.types import FieldType


TypeHandler = Callable[[bool, str, Any, Optional[Mapping[str, Any]], int], bool]

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[a-zA-Z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,63}$"
)

URL_PATTERN = re.compile(
    r"^(?:[a-z][a-z0-9+.-]*://)?"
    r"(?:[^\s:@/]+(?::[^\s@/]*)?@)?"
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|"
    r"localhost|"
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"
    r"(?::\d+)?"
    r"(?:[/?#]\S*)?$",
    re.IGNORECASE,
)

LETTER_PATTERN = re.compile(r"[a-zA-Z]")

_DELIMITED_PATTERN = re.compile(r"^([^\w\s\\])(.*)\1([a-zA-Z]*)$", re.DOTALL)
_PATTERN_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,
}


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern:
    """
    Compile a regex rule pattern.

    Patterns written with delimiters and trailing flags (``/^a/i``)
    are unwrapped; anything else is compiled as is.

    Example:
        >>> compile_pattern("/^[a-z]/i").search("Harrison") is not None
        True
    """
    body, flags = pattern, 0

    match = _DELIMITED_PATTERN.match(pattern)
    if match and all(c in _PATTERN_FLAGS for c in match.group(3)):
        body, flags = match.group(2), _modifier_flags(match.group(3))

    return re.compile(body, flags)


def _modifier_flags(modifiers: str) -> int:
    flags = 0
    for modifier in modifiers:
        flags |= _PATTERN_FLAGS[modifier]
    return flags


class Validator:
    """
    Main validation class.

    Example:
        validator = Validator()

        validator.validate("int", True, "age", "a22")
        validator.get_error("age")      # '"a22" is not a valid integer'

        validator.validate_date(True, "dob", "2018-01-04", {"max": "2017-12-31"})
        validator.get_error("dob")      # 'dob should not be greater than 2017-12-31'
    """

    def __init__(
        self,
        error_bag: Optional[ErrorBag] = None,
        files: Optional[Mapping[str, Any]] = None,
        config: Optional[Config] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        """
        Initialize validator.

        Args:
            error_bag: Error bag to record failures in
            files: Upload records keyed by field
            config: Configuration, the global one by default
            logger: Logger, the package logger by default
        """
        self.config = config or get_config()
        self.logger = logger or get_logger()
        self.limits = LimitComparator(self.logger)
        self.file_validator = FileValidator(
            self.limits,
            hash_algorithm=str(self.config.get("files.hash_algorithm", "md5")),
            chunk_size=self.config.get_int("files.chunk_size", 65536),
            logger=self.logger,
        )

        self._error_bag = error_bag if error_bag is not None else ErrorBag()
        self._files: Dict[str, List[UploadedFile]] = {}
        self.moved_files: Dict[str, Dict[int, str]] = {}
        self.set_files(files)

        self._handlers: Dict[FieldType, TypeHandler] = {
            FieldType.TEXT: self.validate_text,
            FieldType.DATE: self.validate_date,
            FieldType.INT: self.validate_integer,
            FieldType.PINT: self.validate_pinteger,
            FieldType.NINT: self.validate_ninteger,
            FieldType.FLOAT: self.validate_float,
            FieldType.PFLOAT: self.validate_pfloat,
            FieldType.NFLOAT: self.validate_nfloat,
            FieldType.BOOL: self.validate_bool,
            FieldType.EMAIL: self.validate_email,
            FieldType.URL: self.validate_url,
            FieldType.CHOICE: self.validate_choice,
            FieldType.RANGE: self.validate_range,
            FieldType.PASSWORD: self.validate_password,
            FieldType.FILE: self.validate_file,
            FieldType.IMAGE: self.validate_image,
            FieldType.AUDIO: self.validate_audio,
            FieldType.VIDEO: self.validate_video,
            FieldType.MEDIA: self.validate_media,
            FieldType.DOCUMENT: self.validate_document,
            FieldType.ARCHIVE: self.validate_archive,
        }

    # =========================================================================
    # State
    # =========================================================================

    def set_error_bag(self, error_bag: ErrorBag) -> "Validator":
        """Share an error bag with this validator."""
        self._error_bag = error_bag
        return self

    def get_error_bag(self) -> ErrorBag:
        return self._error_bag

    def set_files(self, files: Optional[Mapping[str, Any]]) -> "Validator":
        """Set upload records keyed by field."""
        self._files = {
            field: normalize_uploads(record)
            for field, record in (files or {}).items()
        }
        return self

    def get_files(self, field: str) -> List[UploadedFile]:
        return self._files.get(field, [])

    def succeeds(self) -> bool:
        """Check if no error has been recorded."""
        return len(self._error_bag) == 0

    def fails(self) -> bool:
        return not self.succeeds()

    def get_error(self, field: Optional[str] = None) -> Optional[str]:
        """Get error for a field, or the first error when no field is given."""
        if field is None:
            return self._error_bag.first()
        return self._error_bag.get(field)

    def get_moved_name(self, field: str, index: int = 0) -> Optional[str]:
        """Get the stored name of a moved upload."""
        return self.moved_files.get(field, {}).get(index)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def validate(
        self,
        type_name: Union[str, FieldType],
        required: bool,
        field: str,
        value: Any,
        options: Optional[Mapping[str, Any]] = None,
        index: int = 0,
    ) -> bool:
        """
        Validate a value by type name.

        Unknown types are logged and treated as valid.

        Returns:
            True if the value is valid
        """
        field_type = type_name if isinstance(type_name, FieldType) else FieldType.lookup(type_name)
        if field_type is None:
            self.logger.warning("Unrecognized validation type", field=field, type=type_name)
            return True

        return self._handlers[field_type](required, field, value, options, index)

    # =========================================================================
    # Shared Steps
    # =========================================================================

    def _fail(self, field: str, message: str) -> bool:
        self._error_bag.add(field, message)
        return False

    def _empty(self, required: bool, field: str) -> bool:
        if required:
            return self._fail(field, f"{field} is required")
        return True

    def _message(
        self,
        options: Mapping[str, Any],
        default: str,
        field: str,
        value: Any,
        quote: bool = True,
        key: str = "err",
    ) -> str:
        template = options.get(key) or default
        return format_message(template, field, value, quote)

    def _finish(
        self,
        field: str,
        value: Any,
        options: Mapping[str, Any],
        subject: Any,
        kind: LimitKind,
        label: Optional[str] = None,
        unit: str = "",
    ) -> bool:
        """Run limit checks then regex rules."""
        error = self.limits.check(field, subject, options, kind, value, label, unit)
        if error:
            return self._fail(field, error)
        return self._check_regex_rules(field, value, options)

    def _check_regex_rules(
        self,
        field: str,
        value: Any,
        options: Mapping[str, Any],
    ) -> bool:
        """Apply regex, regexAll, regexAny and regexNone options."""
        text = stringify(value)

        def matches(pattern: Any) -> bool:
            return compile_pattern(str(pattern)).search(text) is not None

        def fail(rule: Mapping[str, Any], default: str) -> bool:
            return self._fail(field, format_message(rule.get("err") or default, field, value))

        rule = options.get("regex")
        if isinstance(rule, Mapping) and rule.get("test"):
            if not matches(rule["test"]):
                return fail(rule, "{this} did not match the expected pattern")

        for rule in options.get("regexAll") or []:
            if isinstance(rule, Mapping) and rule.get("test"):
                if not matches(rule["test"]):
                    return fail(rule, "{this} did not match the expected pattern")

        rule = options.get("regexAny")
        if isinstance(rule, Mapping) and rule.get("tests"):
            if not any(matches(test) for test in rule["tests"]):
                return fail(rule, "{this} did not match any of the expected patterns")

        for rule in options.get("regexNone") or []:
            if isinstance(rule, Mapping) and rule.get("test"):
                if matches(rule["test"]):
                    return fail(rule, "{this} matched a forbidden pattern")

        return True

    # =========================================================================
    # Text Types
    # =========================================================================

    def validate_text(self, required, field, value, options=None, index=0) -> bool:
        """Validate text, limits apply to its length."""
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        return self._finish(
            field, value, options, len(stringify(value)), LimitKind.TEXT,
            unit=" characters",
        )

    def validate_email(self, required, field, value, options=None, index=0) -> bool:
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        text = stringify(value)
        if not EMAIL_PATTERN.match(text):
            return self._fail(field, self._message(
                options, "{this} is not a valid email address", field, value
            ))

        return self._finish(field, value, options, len(text), LimitKind.TEXT, unit=" characters")

    def validate_url(self, required, field, value, options=None, index=0) -> bool:
        """Validate URL, the scheme is optional."""
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        text = stringify(value)
        if not URL_PATTERN.match(text):
            return self._fail(field, self._message(
                options, "{this} is not a valid url", field, value
            ))

        return self._finish(field, value, options, len(text), LimitKind.TEXT, unit=" characters")

    def validate_password(self, required, field, value, options=None, index=0) -> bool:
        """
        Validate password strength.

        A password needs the configured minimum length (8 by default),
        two letters and two non-letters. ``matchWith`` holds the value
        it must equal, usually a ``{placeholder}`` of another field.
        """
        options = dict(options or {})
        if is_empty(value):
            return self._empty(required, field)

        options.setdefault("min", self.config.get_int("password.min_length", 8))
        text = stringify(value)

        error = self.limits.check(
            field, len(text), options, LimitKind.TEXT, value,
            label="Password", unit=" characters",
        )
        if error:
            return self._fail(field, error)

        letters = len(LETTER_PATTERN.findall(text))
        if letters < 2:
            return self._fail(field, "Password must contain at least two letter alphabets")

        if len(text) - letters < 2:
            return self._fail(field, "Password must contain at least two non letter alphabets")

        if "matchWith" in options and text != stringify(options["matchWith"]):
            return self._fail(field, self._message(
                options, "Passwords did not match", field, value, key="matchWithErr"
            ))

        return self._check_regex_rules(field, value, options)

    # =========================================================================
    # Date
    # =========================================================================

    def validate_date(self, required, field, value, options=None, index=0) -> bool:
        """
        Validate a date.

        Accepts YYYY-MM-DD, YYYYMMDD or the three groups separated by a
        single whitespace character. A trailing time of day is allowed
        after YYYY-MM-DD, so {current_date} defaults validate. Limits are
        compared as dates.
        """
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        if isinstance(value, date):
            parsed = parse_date(value)
        else:
            text = stringify(value).strip()
            if not (DATE_PATTERN.match(text) or DATETIME_PATTERN.match(text)):
                return self._fail(field, self._message(
                    options, "{this} is not a valid date format", field, value, quote=False
                ))
            parsed = parse_date(text)

        if parsed is None:
            return self._fail(field, self._message(
                options, "{this} is not a valid date", field, value, quote=False
            ))

        return self._finish(field, value, options, parsed, LimitKind.DATE)

    # =========================================================================
    # Numeric Types
    # =========================================================================

    def _validate_integer(self, required, field, value, options, sign, default) -> bool:
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        if not is_integer_literal(value):
            return self._fail(field, self._message(options, default, field, value))

        number = int(value)
        if (sign > 0 and number <= 0) or (sign < 0 and number >= 0):
            return self._fail(field, self._message(options, default, field, value))

        return self._finish(field, value, options, number, LimitKind.NUMBER)

    def validate_integer(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_integer(
            required, field, value, options, 0, "{this} is not a valid integer"
        )

    def validate_pinteger(self, required, field, value, options=None, index=0) -> bool:
        """Validate integer greater than zero."""
        return self._validate_integer(
            required, field, value, options, 1, "{this} is not a valid positive integer"
        )

    def validate_ninteger(self, required, field, value, options=None, index=0) -> bool:
        """Validate integer less than zero."""
        return self._validate_integer(
            required, field, value, options, -1, "{this} is not a valid negative integer"
        )

    def _validate_float(self, required, field, value, options, sign, default) -> bool:
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        if not is_numeric(value):
            return self._fail(field, self._message(options, default, field, value))

        number = to_number(value)
        if (sign > 0 and number <= 0) or (sign < 0 and number >= 0):
            return self._fail(field, self._message(options, default, field, value))

        return self._finish(field, value, options, number, LimitKind.NUMBER)

    def validate_float(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_float(
            required, field, value, options, 0, "{this} is not a valid number"
        )

    def validate_pfloat(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_float(
            required, field, value, options, 1, "{this} is not a valid positive number"
        )

    def validate_nfloat(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_float(
            required, field, value, options, -1, "{this} is not a valid negative number"
        )

    def validate_bool(self, required, field, value, options=None, index=0) -> bool:
        # Already coerced by the filter
        return True

    # =========================================================================
    # Choice Types
    # =========================================================================

    def validate_choice(self, required, field, value, options=None, index=0) -> bool:
        """Validate membership of the ``choices`` option."""
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        choices = options.get("choices") or []
        if not isinstance(choices, (list, tuple, set, frozenset)):
            choices = [choices]

        if not any(loose_equals(value, choice) for choice in choices):
            return self._fail(field, self._message(
                options, "{this} is not an acceptable choice", field, value
            ))

        return self._check_regex_rules(field, value, options)

    def validate_range(self, required, field, value, options=None, index=0) -> bool:
        """
        Validate membership of a ``from``/``to``/``step`` range.

        Bounds are numbers or single characters; both ends are included
        and members are reachable from ``from`` in whole steps.
        """
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        start, end = options.get("from"), options.get("to")
        if start is None or end is None:
            self.logger.warning("Range is missing its bounds", field=field)
            return True

        if is_numeric(start) and is_numeric(end):
            member = to_number(value) if is_numeric(value) else None
            bounds = (to_number(start), to_number(end))
        else:
            text = stringify(value)
            member = ord(text) if len(text) == 1 else None
            bounds = (ord(stringify(start)[:1] or "\0"), ord(stringify(end)[:1] or "\0"))

        step = options.get("step", 1)
        step = abs(to_number(step)) if is_numeric(step) else 1
        step = step or 1

        if member is None or not self._in_range(member, bounds[0], bounds[1], step):
            return self._fail(field, self._message(
                options, "{this} is not an acceptable choice", field, value
            ))

        return self._check_regex_rules(field, value, options)

    def _in_range(self, member, start, end, step) -> bool:
        low, high = min(start, end), max(start, end)
        if not low <= member <= high:
            return False
        steps = abs(member - start) / step
        return abs(steps - round(steps)) < 1e-9

    # =========================================================================
    # File Types
    # =========================================================================

    def _validate_upload(self, family, required, field, value, options, index) -> bool:
        options = options or {}
        if is_empty(value):
            return self._empty(required, field)

        uploads = self.get_files(field)
        upload = uploads[index] if index < len(uploads) else None

        result = self.file_validator.check(field, upload, family, options)
        if not result.ok:
            return self._fail(field, result.error)

        if result.moved_name:
            self.moved_files.setdefault(field, {})[index] = result.moved_name

        return True

    def validate_file(self, required, field, value, options=None, index=0) -> bool:
        """
        Validate an upload of any type.

        Raises:
            DirectoryNotFoundError: ``moveTo`` does not exist
            FileMoveError: The upload could not be moved
        """
        return self._validate_upload(FieldType.FILE, required, field, value, options, index)

    def validate_image(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_upload(FieldType.IMAGE, required, field, value, options, index)

    def validate_audio(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_upload(FieldType.AUDIO, required, field, value, options, index)

    def validate_video(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_upload(FieldType.VIDEO, required, field, value, options, index)

    def validate_media(self, required, field, value, options=None, index=0) -> bool:
        """Validate an image, audio or video upload."""
        return self._validate_upload(FieldType.MEDIA, required, field, value, options, index)

    def validate_document(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_upload(FieldType.DOCUMENT, required, field, value, options, index)

    def validate_archive(self, required, field, value, options=None, index=0) -> bool:
        return self._validate_upload(FieldType.ARCHIVE, required, field, value, options, index)
