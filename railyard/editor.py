# File: railyard/editor.py
"""
RailYard - Graph Editor State
===============================
In-memory authoring state behind the visual schema editor: a set of model
nodes and directed association edges, each keyed by a generated id.

``EditorSession`` is one authoring session.  It is created per user, passed
to whatever needs it, and torn down with ``clear()``.  There is no module
level state.

Two layers live here:

* The **store** (``add_model``, ``remove_model``, ``add_association``,
  ``remove_association``, ``clear``, ``export``) is a plain container.  It
  performs no validation; its only logic is id assignment and the cascade
  from a deleted model to the edges touching it.
* The **editing helpers** (``create_model``, ``connect``, ``add_field``,
  ``add_validation`` ...) are the decisions the UI makes before calling the
  store: refusing self-associations and duplicate (source, target) pairs,
  naming new models and associations, placing nodes.

``export()`` turns the graph into a ``SchemaDocument``; ``import_document``
and ``load`` rebuild a session from one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from railyard.errors import (
    AssociationNotFound,
    AssociationRejected,
    ModelNotFound,
    SchemaLoadError,
    ValidationRuleRejected,
)
from railyard.models import (
    ASSOCIATION_KINDS,
    DEFAULT_APP_NAME,
    DEFAULT_DATABASE,
    DEFAULT_FRAMEWORK_VERSION,
    Association,
    AssociationKind,
    AssociationOptions,
    Callback,
    FieldDefinition,
    IndexDefinition,
    JoinTable,
    ModelDefinition,
    SchemaDocument,
    ValidationRule,
)
from railyard.utils import dump_json, read_file, to_plural, to_snake_case, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.editor")

MODEL_ID_PREFIX: str = "model-"
ASSOCIATION_ID_PREFIX: str = "conn-"

# Associations whose default name is the singular target name.
_SINGULAR_KINDS = frozenset(
    {AssociationKind.BELONGS_TO.value, AssociationKind.HAS_ONE.value}
)


# ---------------------------------------------------------------------------
# Nodes and edges
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Position:
    """Canvas coordinates of a model node (rendering metadata only)."""

    x: int = 0
    y: int = 0


@dataclass(slots=True)
class ModelNode:
    """A model being edited.  ``id`` is assigned by the session."""

    name: str = ""
    fields: List[FieldDefinition] = field(default_factory=list)
    validations: List[ValidationRule] = field(default_factory=list)
    callbacks: List[Callback] = field(default_factory=list)
    indices: List[IndexDefinition] = field(default_factory=list)
    position: Position = field(default_factory=Position)
    id: str = ""

    @classmethod
    def from_definition(
        cls, definition: ModelDefinition, position: Optional[Position] = None
    ) -> "ModelNode":
        """Copy a model definition's own members; associations become edges separately."""
        return cls(
            name=definition.name,
            fields=[f.model_copy(deep=True) for f in definition.fields],
            validations=[v.model_copy(deep=True) for v in definition.validations],
            callbacks=[c.model_copy(deep=True) for c in definition.callbacks],
            indices=[i.model_copy(deep=True) for i in definition.indices],
            position=position or Position(),
        )


@dataclass(slots=True)
class AssociationEdge:
    """
    A directed association from ``source`` to ``target`` (both node ids).

    ``visual`` is a back-reference to whatever the rendering layer drew for
    this edge; the session stores it and never looks inside.
    """

    source: str
    target: str
    kind: str = AssociationKind.BELONGS_TO.value
    name: str = ""
    options: AssociationOptions = field(default_factory=AssociationOptions)
    join_table: Optional[str] = None
    visual: Any = field(default=None, repr=False, compare=False)
    id: str = ""


ModelLike = Union[ModelNode, ModelDefinition]


# ---------------------------------------------------------------------------
# EditorSession
# ---------------------------------------------------------------------------


class EditorSession:
    """
    One authoring session: models, associations and app settings.

    Usage::

        session = EditorSession(app_name="blog")
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        session.add_field(post, "title", "string")
        session.connect(post, comment, "has_many")
        document = session.export()

    Iteration order everywhere follows insertion order, so replaying the same
    calls always produces the same document.
    """

    def __init__(
        self,
        *,
        app_name: str = DEFAULT_APP_NAME,
        framework_version: str = DEFAULT_FRAMEWORK_VERSION,
        database: str = DEFAULT_DATABASE,
        api_only: bool = False,
    ) -> None:
        self.app_name: str = app_name
        self.framework_version: str = framework_version
        self.database: str = database
        self.api_only: bool = api_only

        self._models: Dict[str, ModelNode] = {}
        self._associations: Dict[str, AssociationEdge] = {}
        self._next_model_id: int = 1
        self._next_association_id: int = 1

    # -----------------------------------------------------------------
    # Read access
    # -----------------------------------------------------------------

    @property
    def models(self) -> Dict[str, ModelNode]:
        """Snapshot of id → node, in insertion order."""
        return dict(self._models)

    @property
    def associations(self) -> Dict[str, AssociationEdge]:
        """Snapshot of id → edge, in insertion order."""
        return dict(self._associations)

    def get_model(self, model_id: str) -> Optional[ModelNode]:
        return self._models.get(model_id)

    def get_association(self, association_id: str) -> Optional[AssociationEdge]:
        return self._associations.get(association_id)

    def find_model_by_name(self, name: str) -> Optional[ModelNode]:
        """First model with this name, or None."""
        for node in self._models.values():
            if node.name == name:
                return node
        return None

    def associations_of(self, model_id: str) -> List[AssociationEdge]:
        """Every edge whose source or target is ``model_id``."""
        return [
            edge
            for edge in self._associations.values()
            if edge.source == model_id or edge.target == model_id
        ]

    def __len__(self) -> int:
        return len(self._models)

    def __repr__(self) -> str:
        return (
            f"<EditorSession {self.app_name}: {len(self._models)} models, "
            f"{len(self._associations)} associations>"
        )

    # -----------------------------------------------------------------
    # Store: models
    # -----------------------------------------------------------------

    def _generate_model_id(self) -> str:
        model_id = f"{MODEL_ID_PREFIX}{self._next_model_id}"
        self._next_model_id += 1
        return model_id

    def _generate_association_id(self) -> str:
        association_id = f"{ASSOCIATION_ID_PREFIX}{self._next_association_id}"
        self._next_association_id += 1
        return association_id

    def add_model(self, model: ModelLike) -> str:
        """Store ``model`` under a fresh id and return the id.  No validation."""
        node: ModelNode = (
            ModelNode.from_definition(model) if isinstance(model, ModelDefinition) else model
        )
        node.id = self._generate_model_id()
        self._models[node.id] = node
        logger.debug("Added model %s (%r).", node.id, node.name)
        return node.id

    def remove_model(self, model_id: str) -> None:
        """Remove a model and every association touching it.  Missing ids are ignored."""
        if self._models.pop(model_id, None) is None:
            return
        doomed: List[str] = [
            edge_id
            for edge_id, edge in self._associations.items()
            if edge.source == model_id or edge.target == model_id
        ]
        for edge_id in doomed:
            del self._associations[edge_id]
        logger.debug(
            "Removed model %s and %d association(s).", model_id, len(doomed)
        )

    # -----------------------------------------------------------------
    # Store: associations
    # -----------------------------------------------------------------

    def add_association(self, edge: AssociationEdge) -> str:
        """Store ``edge`` under a fresh id and return the id.  No checks."""
        edge.id = self._generate_association_id()
        self._associations[edge.id] = edge
        logger.debug(
            "Added association %s: %s %s → %s.", edge.id, edge.source, edge.kind, edge.target
        )
        return edge.id

    def remove_association(self, association_id: str) -> None:
        """Remove one edge.  Missing ids are ignored."""
        if self._associations.pop(association_id, None) is not None:
            logger.debug("Removed association %s.", association_id)

    def clear(self) -> None:
        """Drop all models and associations and restart both id counters."""
        self._models.clear()
        self._associations.clear()
        self._next_model_id = 1
        self._next_association_id = 1
        logger.info("Editor session cleared.")

    # -----------------------------------------------------------------
    # Export
    # -----------------------------------------------------------------

    def export(self) -> SchemaDocument:
        """
        Build a ``SchemaDocument`` from the current graph.

        Each model's outgoing edges become its ``associations``, with the
        target written as the target model's *current* name.  Edges to a
        model that no longer exists are skipped.  Every
        has_and_belongs_to_many pair contributes one join table (the first
        edge seen for an unordered pair wins).
        """
        models: List[ModelDefinition] = []
        join_tables: List[JoinTable] = []
        seen_pairs: set = set()

        for node_id, node in self._models.items():
            associations: List[Association] = []
            for edge in self._associations.values():
                if edge.source != node_id:
                    continue
                target: Optional[ModelNode] = self._models.get(edge.target)
                if target is None:
                    continue
                associations.append(
                    Association(
                        kind=edge.kind,
                        name=edge.name,
                        target=target.name,
                        options=edge.options.model_copy(deep=True),
                    )
                )
                if edge.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY.value:
                    pair = frozenset((node_id, edge.target))
                    if pair not in seen_pairs:
                        seen_pairs.add(pair)
                        join_tables.append(
                            JoinTable(
                                models=[node.name, target.name],
                                table_name=edge.join_table,
                            )
                        )

            models.append(
                ModelDefinition(
                    name=node.name,
                    fields=[f.model_copy(deep=True) for f in node.fields],
                    validations=[v.model_copy(deep=True) for v in node.validations],
                    callbacks=[c.model_copy(deep=True) for c in node.callbacks],
                    indices=[i.model_copy(deep=True) for i in node.indices],
                    associations=associations,
                )
            )

        document = SchemaDocument(
            app_name=self.app_name,
            framework_version=self.framework_version,
            database=self.database,
            api_only=self.api_only,
            models=models,
            join_tables=join_tables,
        )
        logger.debug("Exported %r.", document)
        return document

    # -----------------------------------------------------------------
    # Import / persistence
    # -----------------------------------------------------------------

    @classmethod
    def from_document(
        cls,
        document: Union[SchemaDocument, Mapping[str, Any]],
        positions: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> "EditorSession":
        """New session rebuilt from a Schema Document."""
        session = cls()
        session.import_document(document, positions)
        return session

    def import_document(
        self,
        document: Union[SchemaDocument, Mapping[str, Any]],
        positions: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> None:
        """
        Replace the session contents with ``document``.

        Models are added in document order.  Associations are re-linked by
        target *name* (first model with that name); associations whose target
        is not in the document are dropped.  ``positions`` (saved rendering
        metadata keyed by old node id) are matched back to models by name.
        """
        if not isinstance(document, SchemaDocument):
            document = SchemaDocument.model_validate(document)

        self.clear()
        self.app_name = document.app_name
        self.framework_version = document.framework_version
        self.database = document.database
        self.api_only = document.api_only

        saved_positions: List[Mapping[str, Any]] = list((positions or {}).values())

        node_ids: List[str] = []
        for index, definition in enumerate(document.models):
            position = _default_position(index)
            for saved in saved_positions:
                if saved.get("name") == definition.name:
                    position = Position(x=int(saved.get("x", 0)), y=int(saved.get("y", 0)))
                    break
            node_ids.append(self.add_model(ModelNode.from_definition(definition, position)))

        dropped: int = 0
        for source_id, definition in zip(node_ids, document.models):
            for association in definition.associations:
                target: Optional[ModelNode] = self.find_model_by_name(association.target)
                if target is None:
                    dropped += 1
                    continue
                self.add_association(
                    AssociationEdge(
                        source=source_id,
                        target=target.id,
                        kind=association.kind,
                        name=association.name,
                        options=association.options.model_copy(deep=True),
                        join_table=_explicit_join_table(
                            document.join_tables, definition.name, association
                        ),
                    )
                )

        logger.info(
            "Imported %d model(s) and %d association(s) (%d dropped).",
            len(self._models),
            len(self._associations),
            dropped,
        )

    def save(self) -> Dict[str, Any]:
        """Persisted authoring state: ``{"schema": ..., "positions": ...}``."""
        return {
            "schema": self.export().to_dict(),
            "positions": {
                node_id: {"x": node.position.x, "y": node.position.y, "name": node.name}
                for node_id, node in self._models.items()
            },
        }

    def load(self, data: Mapping[str, Any]) -> None:
        """
        Restore a saved authoring state.

        Accepts ``{"schema": ..., "positions": ...}`` or a bare Schema Document.
        Positions are matched by model name, so a model renamed between save
        and load falls back to its default position.
        """
        schema: Any = data.get("schema", data)
        if not isinstance(schema, Mapping):
            raise SchemaLoadError("Saved state has no schema object")
        positions = data.get("positions") if "schema" in data else None
        self.import_document(schema, positions if isinstance(positions, Mapping) else None)

    def save_to_file(self, path: Path) -> Path:
        """Write ``save()`` as JSON.  A directory gets ``<app_name>_schema.json``."""
        path = Path(path)
        if path.is_dir():
            path = path / f"{self.app_name}_schema.json"
        write_file(path, dump_json(self.save()))
        logger.info("Saved editor session to %s.", path)
        return path

    def load_from_file(self, path: Path) -> None:
        """Read a file written by ``save_to_file`` (or a bare schema JSON)."""
        path = Path(path)
        try:
            data: Any = json.loads(read_file(path))
        except OSError as exc:
            raise SchemaLoadError(f"Cannot read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise SchemaLoadError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise SchemaLoadError(
                f"Expected a JSON object in {path}, got {type(data).__name__}"
            )
        self.load(data)
        logger.info("Loaded editor session from %s.", path)

    # -----------------------------------------------------------------
    # Editing helpers: models
    # -----------------------------------------------------------------

    def _require_model(self, model_id: str) -> ModelNode:
        node = self._models.get(model_id)
        if node is None:
            raise ModelNotFound(model_id)
        return node

    def _require_association(self, association_id: str) -> AssociationEdge:
        edge = self._associations.get(association_id)
        if edge is None:
            raise AssociationNotFound(association_id)
        return edge

    def create_model(
        self,
        name: Optional[str] = None,
        *,
        x: Optional[int] = None,
        y: Optional[int] = None,
    ) -> str:
        """
        Create an empty model node the way the toolbar button does.

        The default name is ``Model<N>`` and the default position steps
        diagonally with the id counter.
        """
        number: int = self._next_model_id
        node = ModelNode(
            name=name if name is not None else f"Model{number}",
            position=Position(
                x=x if x is not None else 100 + number * 50,
                y=y if y is not None else 100 + number * 30,
            ),
        )
        return self.add_model(node)

    def update_model(
        self,
        model_id: str,
        *,
        name: Optional[str] = None,
        fields: Optional[Iterable[FieldDefinition]] = None,
        validations: Optional[Iterable[ValidationRule]] = None,
        callbacks: Optional[Iterable[Callback]] = None,
        indices: Optional[Iterable[IndexDefinition]] = None,
    ) -> ModelNode:
        """Replace selected members of a model.  Renames flow into exported targets."""
        node = self._require_model(model_id)
        if name is not None:
            node.name = name
        if fields is not None:
            node.fields = list(fields)
        if validations is not None:
            node.validations = list(validations)
        if callbacks is not None:
            node.callbacks = list(callbacks)
        if indices is not None:
            node.indices = list(indices)
        return node

    def move_model(self, model_id: str, x: int, y: int) -> None:
        node = self._require_model(model_id)
        node.position = Position(x=int(x), y=int(y))

    def add_field(
        self,
        model_id: str,
        name: str = "",
        field_type: str = "string",
        options: Optional[Mapping[str, Any]] = None,
    ) -> FieldDefinition:
        node = self._require_model(model_id)
        new_field = FieldDefinition(name=name, field_type=field_type, options=dict(options or {}))
        node.fields.append(new_field)
        return new_field

    def remove_field(self, model_id: str, index: int) -> None:
        node = self._require_model(model_id)
        if 0 <= index < len(node.fields):
            del node.fields[index]

    def add_validation(
        self,
        model_id: str,
        field_name: str,
        kind: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> ValidationRule:
        """Attach ``validates :field_name, kind``.  The model must already have fields."""
        node = self._require_model(model_id)
        if not node.fields:
            raise ValidationRuleRejected("Add fields first before adding validations")
        rule = ValidationRule(field=field_name, kind=kind, options=dict(options or {}))
        node.validations.append(rule)
        return rule

    def remove_validation(self, model_id: str, index: int) -> None:
        node = self._require_model(model_id)
        if 0 <= index < len(node.validations):
            del node.validations[index]

    def add_callback(
        self,
        model_id: str,
        hook: str,
        method_name: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Callback:
        node = self._require_model(model_id)
        callback = Callback(
            lifecycle_hook=hook,
            method_name=method_name or "callback_method",
            body=body,
        )
        node.callbacks.append(callback)
        return callback

    def remove_callback(self, model_id: str, index: int) -> None:
        node = self._require_model(model_id)
        if 0 <= index < len(node.callbacks):
            del node.callbacks[index]

    def add_index(
        self, model_id: str, fields: Iterable[str], unique: bool = False
    ) -> IndexDefinition:
        node = self._require_model(model_id)
        index = IndexDefinition(fields=list(fields), unique=unique)
        node.indices.append(index)
        return index

    def remove_index(self, model_id: str, index: int) -> None:
        node = self._require_model(model_id)
        if 0 <= index < len(node.indices):
            del node.indices[index]

    # -----------------------------------------------------------------
    # Editing helpers: associations
    # -----------------------------------------------------------------

    def can_connect(self, source_id: str, target_id: str) -> Tuple[bool, str]:
        """Whether ``connect`` would accept this pair, and why not."""
        if source_id not in self._models or target_id not in self._models:
            return False, "Both models must exist"
        if source_id == target_id:
            return False, "Cannot create association to the same model"
        for edge in self._associations.values():
            if edge.source == source_id and edge.target == target_id:
                return False, "Association already exists between these models"
        return True, ""

    def connect(
        self,
        source_id: str,
        target_id: str,
        kind: str,
        name: Optional[str] = None,
        options: Optional[Union[AssociationOptions, Mapping[str, Any]]] = None,
        *,
        join_table: Optional[str] = None,
        visual: Any = None,
    ) -> str:
        """
        Create an association from one model to another.

        Rejects a self-association, a second edge for the same ordered
        (source, target) pair and unknown association kinds with
        ``AssociationRejected``.  When ``name`` is omitted it is derived from
        the target: singular for belongs_to / has_one, plural otherwise.
        """
        self._require_model(source_id)
        target: ModelNode = self._require_model(target_id)

        allowed, reason = self.can_connect(source_id, target_id)
        if not allowed:
            raise AssociationRejected(reason)
        if kind not in ASSOCIATION_KINDS:
            raise AssociationRejected(f"Unknown association type '{kind}'")

        if isinstance(options, AssociationOptions):
            assoc_options = options.model_copy(deep=True)
        else:
            assoc_options = AssociationOptions.model_validate(dict(options or {}))

        edge = AssociationEdge(
            source=source_id,
            target=target_id,
            kind=kind,
            name=name if name else default_association_name(kind, target.name),
            options=assoc_options,
            join_table=join_table,
            visual=visual,
        )
        return self.add_association(edge)

    def update_association(
        self,
        association_id: str,
        *,
        kind: Optional[str] = None,
        name: Optional[str] = None,
        options: Optional[Union[AssociationOptions, Mapping[str, Any]]] = None,
        join_table: Optional[str] = None,
    ) -> AssociationEdge:
        edge = self._require_association(association_id)
        if kind is not None:
            edge.kind = kind
        if name is not None:
            edge.name = name
        if options is not None:
            edge.options = (
                options.model_copy(deep=True)
                if isinstance(options, AssociationOptions)
                else AssociationOptions.model_validate(dict(options))
            )
        if join_table is not None:
            edge.join_table = join_table
        return edge


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def default_association_name(kind: str, target_name: str) -> str:
    """``Comment`` → ``comment`` for belongs_to / has_one, ``comments`` otherwise."""
    base: str = to_snake_case(target_name)
    if kind in _SINGULAR_KINDS:
        return base
    return to_plural(base)


def _default_position(index: int) -> Position:
    return Position(x=100 + index * 50, y=100 + index * 30)


def _explicit_join_table(
    join_tables: List[JoinTable], source_name: str, association: Association
) -> Optional[str]:
    """Explicit table name declared for this has_and_belongs_to_many pair, if any."""
    if association.kind != AssociationKind.HAS_AND_BELONGS_TO_MANY.value:
        return None
    wanted = {(source_name, association.target), (association.target, source_name)}
    for join_table in join_tables:
        if len(join_table.models) == 2 and tuple(join_table.models) in wanted:
            return join_table.table_name
    return None


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Position",
    "ModelNode",
    "AssociationEdge",
    "EditorSession",
    "default_association_name",
    "MODEL_ID_PREFIX",
    "ASSOCIATION_ID_PREFIX",
]
