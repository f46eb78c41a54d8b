# File: railyard/__init__.py
"""
RailYard - Visual Rails Data-Model Composer
=============================================

Compose data models (fields, validations, callbacks, indices and
associations), check them, and turn them into a bash script that scaffolds a
Ruby on Rails application.

Architecture overview::

    ┌───────────────┐ export ┌──────────────┐      ┌──────────────┐
    │ EditorSession │───────▶│SchemaDocument│─────▶│  validators  │
    │  (editor.py)  │        │ (models.py)  │      │    (.py)     │
    └───────────────┘        └──────────────┘      └──────┬───────┘
                                                          │ no errors
                       ┌──────────────┐            ┌──────▼───────┐
                       │ScriptExecutor│◀───────────│ ScriptBuilder│
                       │ (executor.py)│   script   │ (builder.py) │
                       └──────────────┘            └──────────────┘

    AppGenerator (generator.py) runs validate → build → execute for the
    CLI (cli.py) and the HTTP API (api.py).

Usage::

    # As a library
    from railyard import EditorSession, validate
    session = EditorSession(app_name="blog")
    post = session.create_model("Post")
    session.add_field(post, "title", "string")
    errors = validate(session.export())

    # From the command line
    python -m railyard --schema blog.json --dry-run
    python -m railyard --serve --port 3000

Public API:
    - EditorSession     Graph editor state
    - SchemaDocument    Canonical document model
    - validate          Error list for a document
    - validate_full     Errors and warnings
    - ScriptBuilder     Bash script renderer
    - ScriptExecutor    Bounded-time script runner
    - AppGenerator      Pipeline orchestrator
    - create_app        FastAPI application factory
"""

from __future__ import annotations

__version__: str = "1.0.0"
__author__: str = "RailYard Team"
__license__: str = "MIT"

from railyard.models import (
    Association,
    AssociationKind,
    AssociationOptions,
    Callback,
    CallbackHook,
    DatabaseAdapter,
    FieldDefinition,
    FieldType,
    IndexDefinition,
    JoinTable,
    ModelDefinition,
    SchemaDocument,
    ValidationKind,
    ValidationRule,
)
from railyard.errors import (
    AssociationNotFound,
    AssociationRejected,
    EditorError,
    ModelNotFound,
    RailYardError,
    SchemaLoadError,
    ValidationRuleRejected,
)
from railyard.editor import AssociationEdge, EditorSession, ModelNode, Position
from railyard.validators import ValidationIssue, ValidationResult, validate, validate_full
from railyard.builder import ScriptBuilder, build_script
from railyard.executor import ExecutionResult, ScriptExecutor, list_generated_apps
from railyard.config import Settings
from railyard.generator import AppGenerator, GenerationReport, load_schema_file
from railyard.api import create_app

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Document models
    "Association",
    "AssociationKind",
    "AssociationOptions",
    "Callback",
    "CallbackHook",
    "DatabaseAdapter",
    "FieldDefinition",
    "FieldType",
    "IndexDefinition",
    "JoinTable",
    "ModelDefinition",
    "SchemaDocument",
    "ValidationKind",
    "ValidationRule",
    # Errors
    "RailYardError",
    "SchemaLoadError",
    "EditorError",
    "ModelNotFound",
    "AssociationNotFound",
    "AssociationRejected",
    "ValidationRuleRejected",
    # Editor
    "EditorSession",
    "ModelNode",
    "AssociationEdge",
    "Position",
    # Validation
    "validate",
    "validate_full",
    "ValidationIssue",
    "ValidationResult",
    # Build & run
    "ScriptBuilder",
    "build_script",
    "ScriptExecutor",
    "ExecutionResult",
    "list_generated_apps",
    # Orchestration
    "AppGenerator",
    "GenerationReport",
    "load_schema_file",
    "Settings",
    "create_app",
]
