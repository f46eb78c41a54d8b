# File: railyard/models.py
"""
RailYard - Schema Document Models
===================================
Pydantic V2 models describing the canonical Schema Document: the application
settings plus every model definition (fields, validations, callbacks, indices,
associations) and the join tables derived from many-to-many associations.

These models are pure data.  They check *shape* only (types of values, list
vs mapping); naming rules, reserved words and cross-model consistency are the
job of ``railyard.validators`` so that an invalid composition can still be
exported, saved and reported on.

Wire format: attribute names are descriptive, while aliases keep the keys the
browser editor and saved schema files use (``type``, ``method``, ``code``,
``rails_version``).  Both spellings are accepted on input.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from railyard.utils import to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.models")

# ---------------------------------------------------------------------------
# Enums: fixed vocabularies of the document
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Column types accepted by ``rails generate model``."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    BINARY = "binary"
    JSON = "json"
    JSONB = "jsonb"
    UUID = "uuid"
    REFERENCES = "references"


class AssociationKind(str, Enum):
    """ActiveRecord association macros."""

    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"
    HAS_AND_BELONGS_TO_MANY = "has_and_belongs_to_many"


class ValidationKind(str, Enum):
    """Built-in ActiveModel validators."""

    PRESENCE = "presence"
    UNIQUENESS = "uniqueness"
    NUMERICALITY = "numericality"
    LENGTH = "length"
    FORMAT = "format"
    INCLUSION = "inclusion"
    EXCLUSION = "exclusion"
    ACCEPTANCE = "acceptance"
    CONFIRMATION = "confirmation"
    ABSENCE = "absence"
    COMPARISON = "comparison"


class CallbackHook(str, Enum):
    """ActiveRecord lifecycle hooks."""

    BEFORE_VALIDATION = "before_validation"
    AFTER_VALIDATION = "after_validation"
    BEFORE_SAVE = "before_save"
    AROUND_SAVE = "around_save"
    AFTER_SAVE = "after_save"
    BEFORE_CREATE = "before_create"
    AROUND_CREATE = "around_create"
    AFTER_CREATE = "after_create"
    BEFORE_UPDATE = "before_update"
    AROUND_UPDATE = "around_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DESTROY = "before_destroy"
    AROUND_DESTROY = "around_destroy"
    AFTER_DESTROY = "after_destroy"
    AFTER_COMMIT = "after_commit"
    AFTER_ROLLBACK = "after_rollback"
    AFTER_INITIALIZE = "after_initialize"
    AFTER_FIND = "after_find"
    AFTER_TOUCH = "after_touch"


class DatabaseAdapter(str, Enum):
    """Values accepted by ``rails new --database``."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    TRILOGY = "trilogy"
    SQLITE3 = "sqlite3"


FIELD_TYPES: FrozenSet[str] = frozenset(t.value for t in FieldType)
ASSOCIATION_KINDS: FrozenSet[str] = frozenset(k.value for k in AssociationKind)
VALIDATION_KINDS: FrozenSet[str] = frozenset(k.value for k in ValidationKind)
CALLBACK_HOOKS: FrozenSet[str] = frozenset(h.value for h in CallbackHook)

# Columns Rails adds to every table (``type`` is reserved for STI).
AUTO_FIELDS: FrozenSet[str] = frozenset({"id", "created_at", "updated_at", "type"})

# Recognised option keys.  Anything else is carried through untouched.
FIELD_OPTION_KEYS: FrozenSet[str] = frozenset(
    {"limit", "precision", "scale", "index", "unique", "polymorphic", "null", "default"}
)

DEFAULT_APP_NAME: str = "my_rails_app"
DEFAULT_FRAMEWORK_VERSION: str = "7.1"
DEFAULT_DATABASE: str = DatabaseAdapter.POSTGRESQL.value
DATABASE_ADAPTERS: FrozenSet[str] = frozenset(d.value for d in DatabaseAdapter)


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="ignore",
)

# Option bags keep unknown keys so that round-tripping is lossless.
_OPEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="allow",
)


# ---------------------------------------------------------------------------
# Lenient inputs
# ---------------------------------------------------------------------------
# The validator treats a missing or non-list member as empty and a non-mapping
# option bag as no options; parsing must accept the same documents.


def _list_or_empty(value: Any) -> Any:
    return value if isinstance(value, list) else []


def _mapping_or_empty(value: Any) -> Any:
    return value if isinstance(value, Mapping) else {}


# ---------------------------------------------------------------------------
# Model members
# ---------------------------------------------------------------------------


class FieldDefinition(BaseModel):
    """A single attribute of a model, e.g. ``title:string``."""

    model_config = _SHARED_CONFIG

    name: str = Field(default="", description="snake_case attribute name.")
    field_type: str = Field(
        default=FieldType.STRING.value,
        alias="type",
        description="One of FieldType.",
    )
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Generator options (limit, precision, scale, index, ...).",
    )

    @field_validator("options", mode="before")
    @classmethod
    def _options_bag(cls, v: Any) -> Any:
        return _mapping_or_empty(v)

    @property
    def column_name(self) -> str:
        """Database column backing this field (``user`` → ``user_id`` for references)."""
        if self.field_type == FieldType.REFERENCES.value:
            return f"{self.name}_id"
        return self.name

    def __repr__(self) -> str:
        return f"<Field {self.name}:{self.field_type}>"


class ValidationRule(BaseModel):
    """``validates :field, kind: options``."""

    model_config = _SHARED_CONFIG

    field: str = Field(default="", description="Name of a field on the same model.")
    kind: str = Field(
        default=ValidationKind.PRESENCE.value,
        alias="type",
        description="One of ValidationKind.",
    )
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Validator options; nested mappings are preserved as-is.",
    )

    @field_validator("options", mode="before")
    @classmethod
    def _options_bag(cls, v: Any) -> Any:
        return _mapping_or_empty(v)

    def __repr__(self) -> str:
        return f"<Validation {self.kind} :{self.field}>"


class Callback(BaseModel):
    """A lifecycle hook bound to a method on the model."""

    model_config = _SHARED_CONFIG

    lifecycle_hook: str = Field(
        default=CallbackHook.BEFORE_SAVE.value,
        alias="type",
        description="One of CallbackHook.",
    )
    method_name: str = Field(default="", alias="method", description="Method to call.")
    body: Optional[str] = Field(
        default=None, alias="code", description="Optional Ruby body for the method stub."
    )

    def __repr__(self) -> str:
        return f"<Callback {self.lifecycle_hook} :{self.method_name}>"


class IndexDefinition(BaseModel):
    """Single or composite index on a model's table."""

    model_config = _SHARED_CONFIG

    fields: List[str] = Field(default_factory=list, description="Ordered column names.")
    unique: bool = Field(default=False, description="UNIQUE index?")

    def __repr__(self) -> str:
        flag: str = " unique" if self.unique else ""
        return f"<Index ({', '.join(self.fields)}){flag}>"


class AssociationOptions(BaseModel):
    """
    Options for an association macro.

    The recognised keys are declared below; any other key is kept as an
    extra attribute and emitted again on export.
    """

    model_config = _OPEN_CONFIG

    optional: Optional[bool] = None
    dependent: Optional[str] = None
    polymorphic: Optional[bool] = None
    through: Optional[str] = None
    class_name: Optional[str] = None
    foreign_key: Optional[str] = None
    inverse_of: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        """Set options only, recognised keys first, in declaration order."""
        return self.model_dump(exclude_none=True, mode="json")

    def __bool__(self) -> bool:
        return bool(self.as_dict())


class Association(BaseModel):
    """A directed association declared on the owning (source) model."""

    model_config = _SHARED_CONFIG

    kind: str = Field(
        default=AssociationKind.BELONGS_TO.value,
        alias="type",
        description="One of AssociationKind.",
    )
    name: str = Field(default="", description="Association name, e.g. 'comments'.")
    target: str = Field(default="", description="Target model *name*.")
    options: AssociationOptions = Field(default_factory=AssociationOptions)

    @field_validator("options", mode="before")
    @classmethod
    def _options_bag(cls, v: Any) -> Any:
        if isinstance(v, AssociationOptions):
            return v
        return _mapping_or_empty(v)

    def __repr__(self) -> str:
        return f"<Association {self.kind} :{self.name} → {self.target}>"


class ModelDefinition(BaseModel):
    """One data entity: a future ActiveRecord class."""

    model_config = _SHARED_CONFIG

    name: str = Field(default="", description="CamelCase model name.")
    fields: List[FieldDefinition] = Field(default_factory=list)
    validations: List[ValidationRule] = Field(default_factory=list)
    callbacks: List[Callback] = Field(default_factory=list)
    indices: List[IndexDefinition] = Field(default_factory=list)
    associations: List[Association] = Field(default_factory=list)

    @field_validator(
        "fields", "validations", "callbacks", "indices", "associations", mode="before"
    )
    @classmethod
    def _non_list_is_empty(cls, v: Any) -> Any:
        return _list_or_empty(v)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def __repr__(self) -> str:
        return (
            f"<Model {self.name}: {len(self.fields)} fields, "
            f"{len(self.associations)} associations>"
        )


class JoinTable(BaseModel):
    """Join table declaration for a has_and_belongs_to_many pair."""

    model_config = _SHARED_CONFIG

    models: List[str] = Field(default_factory=list, description="The two model names.")
    table_name: Optional[str] = Field(default=None, description="Explicit table name.")

    @property
    def resolved_table_name(self) -> str:
        """Explicit name, else ``<first>_<second>`` lowercased, in declaration order."""
        if self.table_name:
            return self.table_name
        return "_".join(to_snake_case(m) for m in self.models)

    def __repr__(self) -> str:
        return f"<JoinTable {self.resolved_table_name}>"


# ---------------------------------------------------------------------------
# Schema Document
# ---------------------------------------------------------------------------


class SchemaDocument(BaseModel):
    """
    The root model: everything the Script Builder needs to scaffold an app.

    Produced by ``EditorSession.export()`` or parsed from a request body.
    Treated as immutable once handed to the Validator.
    """

    model_config = _SHARED_CONFIG

    app_name: str = Field(default=DEFAULT_APP_NAME, description="snake_case app name.")
    framework_version: str = Field(
        default=DEFAULT_FRAMEWORK_VERSION,
        alias="rails_version",
        description="Rails version, 'X.Y'.",
    )
    database: str = Field(default=DEFAULT_DATABASE, description="rails new --database.")
    api_only: bool = Field(default=False, description="rails new --api.")
    models: List[ModelDefinition] = Field(default_factory=list)
    join_tables: List[JoinTable] = Field(default_factory=list)

    @field_validator("models", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("join_tables", mode="before")
    @classmethod
    def _non_list_is_empty(cls, v: Any) -> Any:
        return _list_or_empty(v)

    @field_validator("framework_version", mode="before")
    @classmethod
    def _numeric_version(cls, v: Any) -> Any:
        # YAML reads ``rails_version: 7.1`` as a float.
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("database", mode="before")
    @classmethod
    def _default_database(cls, v: Any) -> Any:
        return DEFAULT_DATABASE if v is None else v

    @field_validator("api_only", mode="before")
    @classmethod
    def _default_api_only(cls, v: Any) -> Any:
        return False if v is None else v

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaDocument":
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise using wire keys; unset optional values are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def get_model(self, name: str) -> Optional[ModelDefinition]:
        for m in self.models:
            if m.name == name:
                return m
        return None

    @property
    def model_names(self) -> List[str]:
        return [m.name for m in self.models]

    @property
    def total_fields(self) -> int:
        return sum(len(m.fields) for m in self.models)

    @property
    def total_associations(self) -> int:
        return sum(len(m.associations) for m in self.models)

    def __repr__(self) -> str:
        return (
            f"<SchemaDocument {self.app_name}: {len(self.models)} models, "
            f"{self.total_fields} fields, {self.total_associations} associations>"
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FieldType",
    "AssociationKind",
    "ValidationKind",
    "CallbackHook",
    "DatabaseAdapter",
    "FIELD_TYPES",
    "ASSOCIATION_KINDS",
    "VALIDATION_KINDS",
    "CALLBACK_HOOKS",
    "AUTO_FIELDS",
    "FIELD_OPTION_KEYS",
    "DEFAULT_APP_NAME",
    "DEFAULT_FRAMEWORK_VERSION",
    "DEFAULT_DATABASE",
    "DATABASE_ADAPTERS",
    "FieldDefinition",
    "ValidationRule",
    "Callback",
    "IndexDefinition",
    "AssociationOptions",
    "Association",
    "ModelDefinition",
    "JoinTable",
    "SchemaDocument",
]

logger.debug("railyard.models loaded: %d public symbols.", len(__all__))
