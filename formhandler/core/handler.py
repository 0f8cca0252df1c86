"""
FormHandler Handler
===================

Orchestrates a single validation pass over one request's data.

Execution order:
1. Merge added fields into the source and process rules
2. Collect uploads, dropping empty slots of multi-file inputs
3. Resolve hints and report missing required fields
4. Filter values (required fields first so optional defaults can
   refer to them), then resolve options and database checks
5. Validate required then optional fields
6. Run database checks when every field is valid

Example:
    handler = Handler(request_data, {
        "email": {"type": "email", "checks": {"if": "exists", "entity": "users"}},
        "password": "password",
        "confirm": {"type": "password", "options": {"matchWith": "{password}"}},
        "age": {"type": "positive integer", "required": False, "default": 18},
    }, db_checker=ConnectionDBChecker(connection))

    if handler.execute():
        save(handler.data)
    else:
        show(handler.errors)
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Union

from formhandler.core.config import Config, get_config
from formhandler.core.resolver import OptionResolver
from formhandler.core.rules import ProcessedRules, RuleProcessor
from formhandler.db.checker import DBChecker
from formhandler.exceptions import (
    DataNotFoundError,
    DataSourceNotRecognizedError,
    DBCheckerNotFoundError,
    HandlerError,
    KeyNotFoundError,
    RuleNotFoundError,
)
from formhandler.security.sanitizer import ValueFilter
from formhandler.utils.helpers import stringify
from formhandler.utils.logger import Logger, get_logger
from formhandler.validation.bag import ErrorBag
from formhandler.validation.files import (
    UploadError,
    UploadedFile,
    is_upload_record,
    normalize_uploads,
)
from formhandler.validation.validator import Validator

SourceProvider = Callable[[], Mapping[str, Any]]


def _is_empty_slot(upload: UploadedFile) -> bool:
    """Check if an upload record stands for a file input left empty."""
    return not upload.name or upload.error == UploadError.NO_FILE


class Handler:
    """
    Form handler.

    Validates a source mapping against rules. Each instance handles
    one request and executes at most once; later calls to
    ``execute`` return the first result.
    """

    DATA_SOURCES: ClassVar[Dict[str, SourceProvider]] = {}

    def __init__(
        self,
        source: Union[Mapping[str, Any], str, None] = None,
        rules: Optional[Mapping[str, Any]] = None,
        validator: Optional[Validator] = None,
        db_checker: Optional[DBChecker] = None,
        files: Optional[Mapping[str, Any]] = None,
        config: Optional[Config] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        """
        Initialize handler.

        Args:
            source: Input mapping, or the name of a registered source
            rules: Rule per field
            validator: Validator, a new one by default
            db_checker: Checker for database rules
            files: Upload records keyed by field
            config: Configuration, the global one by default
            logger: Logger, the package logger by default
        """
        self.config = config or get_config()
        self.logger = logger or get_logger()
        self.value_filter = ValueFilter()
        self.rule_processor = RuleProcessor(self.logger)

        self._error_bag = ErrorBag()
        self._source: Optional[Dict[str, Any]] = None
        self._rules: Optional[Dict[str, Any]] = None
        self._files: Dict[str, Any] = {}
        self._added: Dict[str, Any] = {}
        self._data: Dict[str, Any] = {}
        self._processed = ProcessedRules()
        self._executed = False
        self._failed = False
        self._db_checker: Optional[DBChecker] = None

        if source is not None:
            self.set_source(source)
        if rules is not None:
            self.set_rules(rules)
        if files is not None:
            self.set_files(files)

        self.set_validator(validator or Validator(config=self.config, logger=self.logger))
        if db_checker is not None:
            self.set_db_checker(db_checker)

    # =========================================================================
    # Setup
    # =========================================================================

    @classmethod
    def register_source(cls, name: str, provider: SourceProvider) -> None:
        """
        Register a named data source.

        Example:
            Handler.register_source("post", lambda: request.form)
            handler = Handler("post", rules)
        """
        cls.DATA_SOURCES[name.lower()] = provider

    def set_source(self, source: Union[Mapping[str, Any], str]) -> "Handler":
        """
        Set the input data.

        Raises:
            DataSourceNotRecognizedError: Unknown source name
        """
        if isinstance(source, str):
            provider = self.DATA_SOURCES.get(source.lower())
            if provider is None:
                raise DataSourceNotRecognizedError(f"{source} is not a recognized data source")
            source = provider()

        if not isinstance(source, Mapping):
            raise DataSourceNotRecognizedError(
                f"{type(source).__name__} is not a recognized data source"
            )

        self._source = dict(source)
        return self

    def set_rules(self, rules: Mapping[str, Any]) -> "Handler":
        self._rules = dict(rules)
        return self

    def set_files(self, files: Mapping[str, Any]) -> "Handler":
        """Set upload records keyed by field."""
        self._files = dict(files)
        return self

    def set_validator(self, validator: Validator) -> "Handler":
        self._validator = validator
        validator.set_error_bag(self._error_bag)
        return self

    def set_db_checker(self, db_checker: DBChecker) -> "Handler":
        self._db_checker = db_checker
        db_checker.set_error_bag(self._error_bag)
        return self

    def add_field(self, name: str, value: Any) -> "Handler":
        """Add a field on top of the source, replacing any source value."""
        self._added[name] = value
        return self

    def add_fields(self, fields: Mapping[str, Any]) -> "Handler":
        for name, value in fields.items():
            self.add_field(name, value)
        return self

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(self) -> bool:
        """
        Run the handler.

        Returns:
            True if every field is present and valid

        Raises:
            DataNotFoundError: No source was set
            RuleNotFoundError: No rules were set
            DBCheckerNotFoundError: Rules declare checks but no checker is set
            InvalidRuleError: A rule is malformed
            DirectoryNotFoundError: An upload's moveTo directory is missing
            FileMoveError: An upload could not be moved

        A handler that raised after it started validating stays failed;
        later calls return False.
        """
        if self._executed:
            return self.succeeds()

        if self._source is None and not self._added:
            raise DataNotFoundError("No data found to process")
        if not self._rules:
            raise RuleNotFoundError("No validation rules set")

        source = dict(self._source or {})
        source.update(self._added)

        processed = self.rule_processor.process(self._rules, source)
        if processed.has_db_checks() and self._db_checker is None:
            raise DBCheckerNotFoundError("Rules declare database checks but no checker is set")

        self._executed = True
        self._processed = processed

        try:
            self._run(source, processed)
        except HandlerError:
            self._failed = True
            raise

        self.logger.debug("Handler executed", errors=len(self._error_bag))
        return self.succeeds()

    def _run(self, source: Dict[str, Any], processed: ProcessedRules) -> None:
        self._collect_uploads(source)

        resolver = OptionResolver(self._data)
        resolver.resolve_all(processed.hints)

        if not self._check_missing_fields(source, processed):
            self.logger.debug("Missing required fields", fields=list(self._error_bag))
            return

        self._get_fields(source, processed, resolver)
        resolver.resolve_all(processed.rule_options)
        resolver.resolve_all(processed.db_checks)

        self._validate_fields(processed)

        if not self._error_bag:
            self._run_db_checks(processed)

    def _collect_uploads(self, source: Dict[str, Any]) -> None:
        """
        Move upload records from the source into the file mapping.

        Empty slots of a multi-file input are dropped so that value
        positions line up with upload positions.
        """
        files = dict(self._files)
        for name, value in list(source.items()):
            if is_upload_record(value):
                files[name] = value

        uploads_by_field: Dict[str, List[UploadedFile]] = {}
        for name, record in files.items():
            uploads = [
                upload for upload in normalize_uploads(record)
                if not _is_empty_slot(upload)
            ]
            uploads_by_field[name] = uploads
            names = [upload.name for upload in uploads]
            if name not in source or is_upload_record(source[name]):
                source[name] = names[0] if len(names) == 1 else names

        self._validator.set_files(uploads_by_field)

    def _is_missing(self, source: Dict[str, Any], field: str) -> bool:
        """Check if a field has no usable value, dropping blank list items."""
        value = source.get(field)
        if value is None or value == "":
            return True

        if isinstance(value, (list, tuple)):
            source[field] = [item for item in value if item is not None and item != ""]
            return len(source[field]) == 0

        return False

    def _check_missing_fields(self, source: Dict[str, Any], processed: ProcessedRules) -> bool:
        for field in processed.required_fields:
            if self._is_missing(source, field):
                self._error_bag.add(field, stringify(processed.hints[field]))
        return not self._error_bag

    def _get_fields(
        self,
        source: Dict[str, Any],
        processed: ProcessedRules,
        resolver: OptionResolver,
    ) -> None:
        """Filter values into the data bag."""
        for field in processed.required_fields:
            self._data[field] = self.value_filter.filter(source[field], processed.filters[field])

        resolver.resolve_all(processed.default_values)

        for field in processed.optional_fields:
            if self._is_missing(source, field):
                value = processed.default_values[field]
            else:
                value = source[field]
            self._data[field] = self.value_filter.filter(value, processed.filters[field])

    def _validate_fields(self, processed: ProcessedRules) -> None:
        for field in processed.fields:
            required = field in processed.required_fields
            value = self._data[field]
            values = value if isinstance(value, list) else [value]

            for index, item in enumerate(values):
                if not self._validator.validate(
                    processed.types[field],
                    required,
                    field,
                    item,
                    processed.rule_options[field],
                    index,
                ):
                    break

            self._apply_moved_names(field)

    def _apply_moved_names(self, field: str) -> None:
        """Replace uploaded file names with their stored names."""
        moved = self._validator.moved_files.get(field)
        if not moved:
            return

        value = self._data[field]
        if isinstance(value, list):
            for index, name in moved.items():
                if index < len(value):
                    value[index] = name
        elif 0 in moved:
            self._data[field] = moved[0]

    def _run_db_checks(self, processed: ProcessedRules) -> None:
        if self._db_checker is None:
            return

        for field in processed.fields:
            required = field in processed.required_fields
            value = self._data[field]
            values = value if isinstance(value, list) else [value]
            self._check_field(field, required, values, processed.db_checks[field])

    def _check_field(
        self,
        field: str,
        required: bool,
        values: List[Any],
        checks: List[Dict[str, Any]],
    ) -> bool:
        for descriptor in checks:
            for index, value in enumerate(values):
                if not self._db_checker.check(
                    descriptor["check"], required, field, value, descriptor, index
                ):
                    return False
        return True

    # =========================================================================
    # Results
    # =========================================================================

    def succeeds(self) -> bool:
        """Check if the handler executed to the end without errors."""
        return self._executed and not self._failed and not self._error_bag

    def fails(self) -> bool:
        return not self.succeeds()

    def get_error(self, key: Optional[str] = None) -> Optional[str]:
        """Get error for a field, or the first error when no key is given."""
        if key is None:
            return self._error_bag.first()
        return self._error_bag.get(key)

    @property
    def errors(self) -> Dict[str, str]:
        return self._error_bag.to_dict()

    def get_data(self, key: str) -> Any:
        """
        Get a processed field value.

        Raises:
            KeyNotFoundError: If key is not a declared field
        """
        if key not in self._data and key not in self._processed.fields:
            raise KeyNotFoundError(f"{key} is not a declared field")
        return self._data.get(key)

    @property
    def data(self) -> Dict[str, Any]:
        return dict(self._data)

    @property
    def required_fields(self) -> List[str]:
        return list(self._processed.required_fields)

    @property
    def optional_fields(self) -> List[str]:
        return list(self._processed.optional_fields)

    def __getitem__(self, key: str) -> Any:
        return self.get_data(key)
