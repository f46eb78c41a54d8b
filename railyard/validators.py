# File: railyard/validators.py
"""
RailYard - Schema Document Validator
======================================
Static checks that run before any script is built.  A document that fails
here must never reach the Script Builder.

The validator works on the *raw* mapping (the JSON body as received, or
``SchemaDocument.to_dict()``) rather than on parsed models.  That way a
missing or wrongly-typed sub-structure becomes an error message instead of a
parse exception, and every problem is reported in a single pass.

Two entry points:

* ``validate(document) -> List[str]``: the error messages, in order.  Empty
  means "proceed".
* ``validate_full(document) -> ValidationResult``: errors *and* warnings with
  codes and context, for the CLI report and the ``/validate`` endpoint.

Both are pure: the input is never mutated and nothing is raised for a
malformed document.

Order of reported errors: app name, framework version, database settings,
each model in document order (name, fields, associations, validations,
callbacks, indices), duplicate model names, join tables.  When none of
those fire, the document is parsed into ``SchemaDocument`` and any value the
parser refuses is reported too, so an empty error list always means the
Script Builder can take the document.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from railyard.models import (
    ASSOCIATION_KINDS,
    AUTO_FIELDS,
    CALLBACK_HOOKS,
    DATABASE_ADAPTERS,
    FIELD_TYPES,
    VALIDATION_KINDS,
    FieldType,
    SchemaDocument,
)
from railyard.utils import camelize

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------

ERROR: str = "error"
WARNING: str = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found in a document.  ``code`` is a stable machine key."""

    level: str
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.level == ERROR

    @property
    def is_warning(self) -> bool:
        return self.level == WARNING

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationResult:
    """
    Issues in the order the checks found them.

    Truthy when there are no errors; warnings never make a result invalid.
    """

    issues: List[ValidationIssue] = field(default_factory=list)

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.issues.append(ValidationIssue(ERROR, code, message, context or {}))

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.issues.append(ValidationIssue(WARNING, code, message, context or {}))

    def merge(self, other: "ValidationResult") -> None:
        self.issues += other.issues

    def _of(self, level: str) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.level == level]

    @property
    def errors(self) -> List[ValidationIssue]:
        return self._of(ERROR)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self._of(WARNING)

    @property
    def error_messages(self) -> List[str]:
        return [issue.message for issue in self.errors]

    @property
    def warning_messages(self) -> List[str]:
        return [issue.message for issue in self.warnings]

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def has_warnings(self) -> bool:
        return self.warning_count > 0

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return f"{self.error_count} error(s), {self.warning_count} warning(s)"

    def format_report(self) -> str:
        rows: List[str] = [f"Validation: {self.summary()}."]
        rows.extend(
            f"  {issue.level.upper():<7} [{issue.code}] {issue.message}" for issue in self.issues
        )
        return "\n".join(rows)

    def __bool__(self) -> bool:
        return self.is_valid

    def __len__(self) -> int:
        return len(self.issues)


# ---------------------------------------------------------------------------
# Naming rules
# ---------------------------------------------------------------------------

_APP_NAME_RE: re.Pattern[str] = re.compile(r"^[a-z][a-z0-9_]*$")
_VERSION_RE: re.Pattern[str] = re.compile(r"^\d+\.\d+$")
_MODEL_NAME_RE: re.Pattern[str] = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_FIELD_NAME_RE: re.Pattern[str] = re.compile(r"^[a-z][a-z0-9_]*$")
_METHOD_NAME_RE: re.Pattern[str] = re.compile(r"^[a-z_][a-zA-Z0-9_]*[?!]?$")

# Constant names an app or model must not shadow.
RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "Application", "Record", "Base", "Class", "Module", "Object",
        "Kernel", "String", "Integer", "Float", "Array", "Hash",
        "ActiveRecord", "ActiveModel", "ActionController", "ActionView",
        "ApplicationRecord", "ApplicationController",
    }
)

DocumentLike = Union[SchemaDocument, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Raw-value helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    """String view of a raw value: None → '', non-strings via str()."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _blank(value: Any) -> bool:
    return not _text(value).strip()


def _items(value: Any) -> List[Any]:
    """A list member, or [] when missing or not a list."""
    return value if isinstance(value, list) else []


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_mapping(document: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(document, SchemaDocument):
        return document.to_dict()
    if isinstance(document, Mapping):
        return document
    return None


# ---------------------------------------------------------------------------
# Application settings
# ---------------------------------------------------------------------------


def validate_app_name(document: Mapping[str, Any]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    raw: Any = document.get("app_name")

    if _blank(raw):
        result.add_error("APP_NAME_REQUIRED", "App name is required")
        return result

    app_name: str = _text(raw)
    ctx: Dict[str, Any] = {"app_name": app_name}
    if not _APP_NAME_RE.match(app_name):
        result.add_error(
            "APP_NAME_FORMAT",
            f"App name must be snake_case and start with a letter (got: {app_name})",
            ctx,
        )
    if camelize(app_name) in RESERVED_WORDS:
        result.add_error(
            "APP_NAME_RESERVED",
            f"App name '{app_name}' conflicts with reserved word",
            ctx,
        )
    return result


def validate_framework_version(document: Mapping[str, Any]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    raw: Any = document.get("rails_version", document.get("framework_version"))

    if _blank(raw):
        result.add_error("RAILS_VERSION_REQUIRED", "Rails version is required")
        return result

    version: str = _text(raw)
    if not _VERSION_RE.match(version):
        result.add_error(
            "RAILS_VERSION_FORMAT",
            f"Invalid Rails version format (expected: X.Y, got: {version})",
            {"rails_version": version},
        )
    return result


def validate_database_settings(document: Mapping[str, Any]) -> ValidationResult:
    """``database`` and ``api_only`` may be omitted (or null) and take their defaults."""
    result: ValidationResult = ValidationResult()

    database: Any = document.get("database")
    if database is not None and (
        not isinstance(database, str) or database not in DATABASE_ADAPTERS
    ):
        result.add_error(
            "DATABASE_INVALID",
            f"Database must be one of: {', '.join(sorted(DATABASE_ADAPTERS))} "
            f"(got: {_text(database)})",
            {"database": database},
        )

    api_only: Any = document.get("api_only")
    if api_only is not None and not isinstance(api_only, bool):
        result.add_error(
            "API_ONLY_INVALID",
            f"API-only flag must be true or false (got: {_text(api_only)})",
            {"api_only": api_only},
        )
    return result


# ---------------------------------------------------------------------------
# Per-model checks
# ---------------------------------------------------------------------------


def _check_fields(model_name: str, fields: List[Any], result: ValidationResult) -> None:
    for raw_field in fields:
        field: Mapping[str, Any] = _mapping(raw_field)
        if _blank(field.get("name")):
            result.add_error(
                "FIELD_NAME_REQUIRED",
                f"Model '{model_name}': Field name is required",
                {"model": model_name},
            )
            continue

        name: str = _text(field.get("name"))
        ctx: Dict[str, Any] = {"model": model_name, "field": name}
        if not _FIELD_NAME_RE.match(name):
            result.add_error(
                "FIELD_NAME_FORMAT",
                f"Model '{model_name}': Field '{name}' must be snake_case",
                ctx,
            )
        if name in AUTO_FIELDS:
            result.add_error(
                "FIELD_NAME_AUTOMATIC",
                f"Model '{model_name}': Field '{name}' is automatically added by Rails",
                ctx,
            )
        field_type: Any = field.get("type")
        if not isinstance(field_type, str) or field_type not in FIELD_TYPES:
            result.add_error(
                "FIELD_TYPE_INVALID",
                f"Model '{model_name}': Invalid field type '{_text(field_type)}' "
                f"for field '{name}'",
                {**ctx, "type": field_type},
            )


def _check_associations(
    model_name: str, associations: List[Any], result: ValidationResult
) -> None:
    for raw_assoc in associations:
        assoc: Mapping[str, Any] = _mapping(raw_assoc)
        kind: Any = assoc.get("type")
        ctx: Dict[str, Any] = {"model": model_name, "association": _text(assoc.get("name"))}

        if not isinstance(kind, str) or kind not in ASSOCIATION_KINDS:
            result.add_error(
                "ASSOCIATION_TYPE_INVALID",
                f"Model '{model_name}': Invalid association type '{_text(kind)}'",
                {**ctx, "type": kind},
            )
        if _blank(assoc.get("name")):
            result.add_error(
                "ASSOCIATION_NAME_REQUIRED",
                f"Model '{model_name}': Association name is required",
                ctx,
            )
        if _blank(assoc.get("target")):
            result.add_error(
                "ASSOCIATION_TARGET_REQUIRED",
                f"Model '{model_name}': Association target model is required",
                ctx,
            )


def _check_validations(
    model_name: str,
    validations: List[Any],
    field_names: Set[str],
    result: ValidationResult,
) -> None:
    for raw_rule in validations:
        rule: Mapping[str, Any] = _mapping(raw_rule)
        field_name: str = _text(rule.get("field"))
        kind: Any = rule.get("type")
        ctx: Dict[str, Any] = {"model": model_name, "field": field_name}

        if not field_name.strip():
            result.add_error(
                "VALIDATION_FIELD_REQUIRED",
                f"Model '{model_name}': Validation field is required",
                ctx,
            )
        elif field_name not in field_names:
            result.add_error(
                "VALIDATION_FIELD_UNKNOWN",
                f"Model '{model_name}': Validation references unknown field '{field_name}'",
                ctx,
            )
        if not isinstance(kind, str) or kind not in VALIDATION_KINDS:
            result.add_error(
                "VALIDATION_TYPE_INVALID",
                f"Model '{model_name}': Invalid validation type '{_text(kind)}' "
                f"for field '{field_name}'",
                {**ctx, "type": kind},
            )


def _check_callbacks(model_name: str, callbacks: List[Any], result: ValidationResult) -> None:
    for raw_callback in callbacks:
        callback: Mapping[str, Any] = _mapping(raw_callback)
        hook: Any = callback.get("type")
        method: str = _text(callback.get("method"))
        ctx: Dict[str, Any] = {"model": model_name, "method": method}

        if not isinstance(hook, str) or hook not in CALLBACK_HOOKS:
            result.add_error(
                "CALLBACK_TYPE_INVALID",
                f"Model '{model_name}': Invalid callback type '{_text(hook)}'",
                {**ctx, "type": hook},
            )
        if not method.strip():
            result.add_error(
                "CALLBACK_METHOD_REQUIRED",
                f"Model '{model_name}': Callback method name is required",
                ctx,
            )
        elif not _METHOD_NAME_RE.match(method):
            result.add_error(
                "CALLBACK_METHOD_FORMAT",
                f"Model '{model_name}': Callback method '{method}' is not a valid method name",
                ctx,
            )


def _check_indices(
    model_name: str,
    indices: List[Any],
    columns: Set[str],
    result: ValidationResult,
) -> None:
    for position, raw_index in enumerate(indices, start=1):
        index: Mapping[str, Any] = _mapping(raw_index)
        index_fields: List[Any] = _items(index.get("fields"))
        ctx: Dict[str, Any] = {"model": model_name, "index": position}

        if not index_fields:
            result.add_error(
                "INDEX_FIELDS_REQUIRED",
                f"Model '{model_name}': Index #{position} must list at least one field",
                ctx,
            )
            continue
        for column in index_fields:
            if _text(column) not in columns:
                result.add_error(
                    "INDEX_FIELD_UNKNOWN",
                    f"Model '{model_name}': Index #{position} references "
                    f"unknown field '{_text(column)}'",
                    {**ctx, "field": _text(column)},
                )


def validate_model(model: Any, position: int) -> ValidationResult:
    """
    Check one model.  ``position`` is 1-based and only used in messages.

    A model without a name gets a single error; its members are not checked.
    """
    result: ValidationResult = ValidationResult()
    data: Mapping[str, Any] = _mapping(model)

    if _blank(data.get("name")):
        result.add_error(
            "MODEL_NAME_REQUIRED",
            f"Model #{position}: Name is required",
            {"index": position},
        )
        return result

    name: str = _text(data.get("name"))
    ctx: Dict[str, Any] = {"model": name, "index": position}
    if not _MODEL_NAME_RE.match(name):
        result.add_error(
            "MODEL_NAME_FORMAT",
            f"Model '{name}': Must be CamelCase and start with uppercase letter",
            ctx,
        )
    if name in RESERVED_WORDS:
        result.add_error(
            "MODEL_NAME_RESERVED",
            f"Model name '{name}' is a reserved word",
            ctx,
        )

    fields: List[Any] = _items(data.get("fields"))
    _check_fields(name, fields, result)
    _check_associations(name, _items(data.get("associations")), result)

    field_names: Set[str] = {_text(_mapping(f).get("name")) for f in fields} - {""}
    _check_validations(name, _items(data.get("validations")), field_names, result)
    _check_callbacks(name, _items(data.get("callbacks")), result)

    # Indexable columns: declared fields, ``<ref>_id`` for references, auto columns.
    columns: Set[str] = set(field_names) | AUTO_FIELDS
    for raw_field in fields:
        field: Mapping[str, Any] = _mapping(raw_field)
        if field.get("type") == FieldType.REFERENCES.value and field.get("name"):
            columns.add(f"{_text(field.get('name'))}_id")
            if _mapping(field.get("options")).get("polymorphic"):
                columns.add(f"{_text(field.get('name'))}_type")
    _check_indices(name, _items(data.get("indices")), columns, result)

    return result


# ---------------------------------------------------------------------------
# Document-wide checks
# ---------------------------------------------------------------------------


def validate_models(document: Mapping[str, Any]) -> ValidationResult:
    """Every model in order, then the combined duplicate-name error."""
    result: ValidationResult = ValidationResult()
    models: Any = document.get("models")

    if not isinstance(models, list):
        result.add_error("MODELS_NOT_A_LIST", "Models must be an array")
        return result
    if not models:
        result.add_error("MODELS_EMPTY", "At least one model is required")
        return result

    for position, model in enumerate(models, start=1):
        result.merge(validate_model(model, position))

    result.merge(validate_duplicate_model_names(models))
    return result


def validate_duplicate_model_names(models: List[Any]) -> ValidationResult:
    """One error naming each duplicated model once, in first-occurrence order."""
    result: ValidationResult = ValidationResult()
    names: List[str] = [
        _text(_mapping(m).get("name")) for m in models if not _blank(_mapping(m).get("name"))
    ]
    counts: Counter = Counter(names)
    duplicates: List[str] = list(dict.fromkeys(n for n in names if counts[n] > 1))

    if duplicates:
        result.add_error(
            "DUPLICATE_MODEL_NAMES",
            f"Duplicate model names found: {', '.join(duplicates)}",
            {"models": duplicates},
        )
    return result


def validate_join_tables(document: Mapping[str, Any]) -> ValidationResult:
    result: ValidationResult = ValidationResult()

    for position, raw_join in enumerate(_items(document.get("join_tables")), start=1):
        join: Mapping[str, Any] = _mapping(raw_join)
        pair: List[Any] = _items(join.get("models"))
        ctx: Dict[str, Any] = {"join_table": position}

        if len(pair) != 2 or any(_blank(m) for m in pair):
            result.add_error(
                "JOIN_TABLE_MODELS",
                f"Join table #{position}: Must name exactly two models",
                ctx,
            )
        table_name: Any = join.get("table_name")
        if table_name is not None and not _APP_NAME_RE.match(_text(table_name)):
            result.add_error(
                "JOIN_TABLE_NAME_FORMAT",
                f"Join table #{position}: Table name '{_text(table_name)}' must be snake_case",
                {**ctx, "table_name": table_name},
            )
    return result


def validate_document_shape(document: Mapping[str, Any]) -> ValidationResult:
    """
    Parse the document the way the build path will and report every value the
    parser refuses, e.g. a numeric association name or a non-boolean
    ``unique`` flag.  Only meaningful once the rule checks have passed.
    """
    result: ValidationResult = ValidationResult()
    try:
        SchemaDocument.model_validate(document)
    except PydanticValidationError as exc:
        for detail in exc.errors():
            location: str = ".".join(str(part) for part in detail["loc"])
            result.add_error(
                "DOCUMENT_SHAPE",
                f"Invalid value at {location}: {detail['msg']}",
                {"location": location},
            )
    return result


def check_association_targets(document: Mapping[str, Any]) -> ValidationResult:
    """
    Warnings only: unknown targets, self-references and repeated
    association names on one model.
    """
    result: ValidationResult = ValidationResult()
    models: List[Any] = _items(document.get("models"))
    known: Set[str] = {_text(_mapping(m).get("name")) for m in models} - {""}

    for raw_model in models:
        model: Mapping[str, Any] = _mapping(raw_model)
        model_name: str = _text(model.get("name"))
        if not model_name:
            continue
        seen: Set[str] = set()
        for raw_assoc in _items(model.get("associations")):
            assoc: Mapping[str, Any] = _mapping(raw_assoc)
            target: str = _text(assoc.get("target"))
            assoc_name: str = _text(assoc.get("name"))
            ctx: Dict[str, Any] = {"model": model_name, "association": assoc_name}

            if target and target not in known:
                result.add_warning(
                    "ASSOCIATION_TARGET_UNKNOWN",
                    f"Model '{model_name}': Association '{assoc_name}' targets "
                    f"unknown model '{target}'",
                    {**ctx, "target": target},
                )
            if target and target == model_name:
                result.add_warning(
                    "ASSOCIATION_SELF_REFERENCE",
                    f"Model '{model_name}': Association '{assoc_name}' references its own model",
                    ctx,
                )
            if assoc_name:
                if assoc_name in seen:
                    result.add_warning(
                        "ASSOCIATION_NAME_DUPLICATE",
                        f"Model '{model_name}': Association name '{assoc_name}' "
                        f"is declared more than once",
                        ctx,
                    )
                seen.add(assoc_name)
    return result


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def validate_full(document: DocumentLike) -> ValidationResult:
    """Run every check and return errors and warnings together."""
    result: ValidationResult = ValidationResult()
    data: Optional[Mapping[str, Any]] = _as_mapping(document)

    if data is None:
        result.add_error(
            "DOCUMENT_NOT_AN_OBJECT",
            "Schema document must be a JSON object",
            {"got": type(document).__name__},
        )
        return result

    result.merge(validate_app_name(data))
    result.merge(validate_framework_version(data))
    result.merge(validate_database_settings(data))
    result.merge(validate_models(data))
    result.merge(validate_join_tables(data))
    if not result.has_errors:
        result.merge(validate_document_shape(data))
    result.merge(check_association_targets(data))

    if result.has_errors:
        logger.info("Validation failed: %s", result.summary())
    else:
        logger.debug("Validation passed: %s", result.summary())
    return result


def validate(document: DocumentLike) -> List[str]:
    """Error messages for ``document`` in report order.  Empty means valid."""
    return validate_full(document).error_messages


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "RESERVED_WORDS",
    "validate_app_name",
    "validate_framework_version",
    "validate_database_settings",
    "validate_model",
    "validate_models",
    "validate_duplicate_model_names",
    "validate_join_tables",
    "validate_document_shape",
    "check_association_targets",
    "validate_full",
    "validate",
]
