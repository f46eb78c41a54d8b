# File: railyard/errors.py
"""
RailYard - Exception Hierarchy
================================
Exceptions raised by the editor and the file loaders.  The validator never
raises (it reports), and the executor folds every failure into an
``ExecutionResult``, so neither defines exceptions of its own.
"""

from __future__ import annotations

from typing import List


class RailYardError(Exception):
    """Base class for every RailYard exception."""


class SchemaLoadError(RailYardError):
    """A schema or saved-editor file could not be read or parsed."""


class EditorError(RailYardError):
    """Base class for editor-session failures."""


class ModelNotFound(EditorError):
    """No model node with the given id exists in the session."""

    def __init__(self, model_id: str) -> None:
        super().__init__(f"Model '{model_id}' does not exist")
        self.model_id: str = model_id


class AssociationNotFound(EditorError):
    """No association edge with the given id exists in the session."""

    def __init__(self, association_id: str) -> None:
        super().__init__(f"Association '{association_id}' does not exist")
        self.association_id: str = association_id


class AssociationRejected(EditorError):
    """The editor refused to connect two models (self-loop or duplicate pair)."""


class ValidationRuleRejected(EditorError):
    """A validation rule cannot be attached to this model."""


__all__: List[str] = [
    "RailYardError",
    "SchemaLoadError",
    "EditorError",
    "ModelNotFound",
    "AssociationNotFound",
    "AssociationRejected",
    "ValidationRuleRejected",
]
