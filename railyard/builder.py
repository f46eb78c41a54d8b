# File: railyard/builder.py
"""
RailYard - Build Script Generator
===================================
Turns a *validated* ``SchemaDocument`` into a bash script that scaffolds the
Rails application.

The builder performs no validation of its own: hand it only documents that
``railyard.validators.validate`` accepted.  Output is deterministic for a
given document (the only run-time value is the migration clock the script
computes for itself).

Script layout, in order:
    1. Shebang, ``set -e``, start banner
    2. ``rails new <app> --database=<db> [--api] --skip-test`` and ``cd``
    3. One ``bin/rails generate model`` per model
    4. Migration clock (only when join tables or indices follow)
    5. One create-join-table migration per join table
    6. One model file per model, written whole via heredoc
    7. One add-index migration per index
    8. ``db:create`` / ``db:migrate`` and closing echo lines

**Performance contract:** all assembly uses ``List[str]`` + ``"\\n".join()``.
"""

from __future__ import annotations

import logging
import shlex
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple, Union

from railyard.models import (
    AssociationKind,
    FieldDefinition,
    FieldType,
    IndexDefinition,
    JoinTable,
    ModelDefinition,
    SchemaDocument,
)
from railyard.utils import camelize, count_lines, to_pascal_case, to_plural, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.builder")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "  "  # Ruby uses 2-space indent
HEREDOC_DELIMITER: str = "RAILYARD_EOF"
RAILS_BIN: str = "bin/rails"

# Field types that accept ``{limit}`` in the generator syntax.
_LIMIT_TYPES: FrozenSet[str] = frozenset(
    {
        FieldType.STRING.value,
        FieldType.TEXT.value,
        FieldType.INTEGER.value,
        FieldType.BIGINT.value,
        FieldType.BINARY.value,
    }
)

# Finds the newest migration version already on disk so that hand-written
# migrations always sort after the generated ones.
_MIGRATION_CLOCK: Tuple[str, ...] = (
    "LAST_MIGRATION=$(ls db/migrate 2>/dev/null | grep -oE '^[0-9]{14}' | sort | tail -n 1)",
    "NOW=$(date -u +%Y%m%d%H%M%S)",
    "TS=$(( ${LAST_MIGRATION:-0} > NOW ? ${LAST_MIGRATION:-0} : NOW ))",
)


# ---------------------------------------------------------------------------
# Ruby literal rendering
# ---------------------------------------------------------------------------


def ruby_string(value: str) -> str:
    """Single-quoted Ruby string literal."""
    escaped: str = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def ruby_literal(value: Any) -> str:
    """
    Render a JSON value as Ruby source.

    - ``":destroy"`` (leading colon) is emitted as the symbol ``:destroy``
    - ``"/\\A\\d+\\z/"`` (slash-delimited) is emitted as a regexp literal
    - other strings become single-quoted literals
    - ``True``/``False``/``None`` become ``true``/``false``/``nil``
    - lists become arrays, mappings become ``{ key: value }`` hashes
    """
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        if len(value) > 1 and value.startswith(":"):
            return value
        if len(value) > 1 and value.startswith("/") and value.endswith("/"):
            return value
        return ruby_string(value)
    if isinstance(value, Mapping):
        return "{ " + ruby_options(value) + " }" if value else "{}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(ruby_literal(v) for v in value) + "]"
    return ruby_string(str(value))


def ruby_options(options: Mapping[str, Any]) -> str:
    """``{"dependent": ":destroy", "optional": True}`` → ``dependent: :destroy, optional: true``."""
    return ", ".join(f"{key}: {ruby_literal(value)}" for key, value in options.items())


# ---------------------------------------------------------------------------
# Generator argument rendering
# ---------------------------------------------------------------------------


def field_argument(field: FieldDefinition) -> str:
    """
    ``name:type`` plus the generator modifiers the options ask for.

    Examples:
        title:string{40}:uniq
        price:decimal{10,2}
        commentable:references{polymorphic}:index

    Options the generator syntax cannot express (``null``, ``default`` and
    unknown keys) are left out of the argument.
    """
    options: Dict[str, Any] = field.options
    parts: List[str] = [f"{field.name}:{field.field_type}"]

    if field.field_type == FieldType.DECIMAL.value and options.get("precision") is not None:
        if options.get("scale") is not None:
            parts[0] += f"{{{options['precision']},{options['scale']}}}"
        else:
            parts[0] += f"{{{options['precision']}}}"
    elif field.field_type in _LIMIT_TYPES and options.get("limit") is not None:
        parts[0] += f"{{{options['limit']}}}"
    elif field.field_type == FieldType.REFERENCES.value and options.get("polymorphic"):
        parts[0] += "{polymorphic}"

    if options.get("unique"):
        parts.append("uniq")
    elif options.get("index"):
        parts.append("index")

    return ":".join(parts)


def table_name_for(model_name: str) -> str:
    """``BlogPost`` → ``blog_posts``."""
    return to_plural(to_snake_case(model_name))


# ---------------------------------------------------------------------------
# Script builder
# ---------------------------------------------------------------------------


class ScriptBuilder:
    """
    Renders one ``SchemaDocument`` into a bash build script.

    Usage::

        script = ScriptBuilder(document).build()

    The builder holds no state beyond the document, so ``build()`` may be
    called any number of times with identical results.
    """

    def __init__(self, document: Union[SchemaDocument, Mapping[str, Any]]) -> None:
        if not isinstance(document, SchemaDocument):
            document = SchemaDocument.model_validate(document)
        self._document: SchemaDocument = document
        self._migration_version: str = document.framework_version

    @property
    def document(self) -> SchemaDocument:
        return self._document

    @property
    def app_name(self) -> str:
        return self._document.app_name

    # ===================================================================
    # Public API
    # ===================================================================

    def build(self) -> str:
        """The complete script, newline terminated."""
        lines: List[str] = [
            "#!/bin/bash",
            "set -e",
            f"# Rails {self._document.framework_version} application "
            f"'{self.app_name}' generated by RailYard",
            "",
        ]
        for block in self.commands():
            lines.append(block)
            lines.append("")

        script: str = "\n".join(lines).rstrip("\n") + "\n"
        logger.debug(
            "Built script for '%s': %d lines.", self.app_name, count_lines(script)
        )
        return script

    def commands(self) -> List[str]:
        """
        The script body as an ordered list of blocks.

        A block is one shell command, or several lines that belong together
        (a heredoc, the migration clock).
        """
        doc: SchemaDocument = self._document
        blocks: List[str] = ["echo 'Starting Rails app generation...'"]

        blocks.append(self.rails_new_command())
        blocks.append(f"cd {shlex.quote(doc.app_name)}")

        for model in doc.models:
            blocks.append(self.model_generator_command(model))

        index_jobs: List[Tuple[ModelDefinition, IndexDefinition]] = [
            (model, index) for model in doc.models for index in model.indices
        ]
        if doc.join_tables or index_jobs:
            blocks.append("\n".join(_MIGRATION_CLOCK))

        step: int = 0
        used_class_names: Set[str] = set()

        for join_table in doc.join_tables:
            step += 1
            blocks.append(self.join_table_migration(join_table, step, used_class_names))

        for model in doc.models:
            blocks.append(self.model_file_command(model))

        for model, index in index_jobs:
            step += 1
            blocks.append(self.index_migration(model, index, step, used_class_names))

        blocks.append(
            "\n".join(
                [
                    "echo 'Setting up database...'",
                    f"{RAILS_BIN} db:create",
                    f"{RAILS_BIN} db:migrate",
                ]
            )
        )
        blocks.append(
            "\n".join(
                [
                    "echo 'Rails app generated successfully!'",
                    "echo " + shlex.quote(f"App location: {doc.app_name}"),
                    "echo "
                    + shlex.quote(
                        f"To start the server: cd {doc.app_name} && {RAILS_BIN} server"
                    ),
                ]
            )
        )
        return blocks

    # ===================================================================
    # Shell commands
    # ===================================================================

    def rails_new_command(self) -> str:
        doc: SchemaDocument = self._document
        args: List[str] = [
            "rails",
            "new",
            shlex.quote(doc.app_name),
            f"--database={shlex.quote(doc.database)}",
        ]
        if doc.api_only:
            args.append("--api")
        args.append("--skip-test")
        return " ".join(args)

    def model_generator_command(self, model: ModelDefinition) -> str:
        args: List[str] = [RAILS_BIN, "generate", "model", shlex.quote(model.name)]
        args.extend(shlex.quote(field_argument(f)) for f in model.fields)
        return " ".join(args)

    # ===================================================================
    # Model class files
    # ===================================================================

    def model_file_command(self, model: ModelDefinition) -> str:
        path: str = f"app/models/{to_snake_case(model.name)}.rb"
        return _heredoc(shlex.quote(path), self.render_model_class(model))

    def render_model_class(self, model: ModelDefinition) -> str:
        """
        The whole ``app/models/<name>.rb`` class.

        ``references`` fields without a matching explicit association get the
        ``belongs_to`` the model generator would have written.
        """
        body: List[str] = []

        declared: Set[str] = {a.name for a in model.associations}
        for f in model.fields:
            if f.field_type == FieldType.REFERENCES.value and f.name not in declared:
                line: str = f"belongs_to :{f.name}"
                if f.options.get("polymorphic"):
                    line += ", polymorphic: true"
                body.append(line)

        for association in model.associations:
            options: Dict[str, Any] = association.options.as_dict()
            if association.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY.value:
                join_name: Optional[str] = self._join_table_name(model.name, association.target)
                if join_name and "join_table" not in options:
                    options["join_table"] = join_name
            line = f"{association.kind} :{association.name}"
            if options:
                line += f", {ruby_options(options)}"
            body.append(line)

        if model.validations:
            if body:
                body.append("")
            for rule in model.validations:
                value: str = "{ " + ruby_options(rule.options) + " }" if rule.options else "true"
                body.append(f"validates :{rule.field}, {rule.kind}: {value}")

        if model.callbacks:
            if body:
                body.append("")
            for callback in model.callbacks:
                body.append(f"{callback.lifecycle_hook} :{callback.method_name}")

            body.append("")
            body.append("private")
            stubbed: Set[str] = set()
            for callback in model.callbacks:
                if callback.method_name in stubbed:
                    continue
                stubbed.add(callback.method_name)
                body.append("")
                body.append(f"def {callback.method_name}")
                if callback.body:
                    body.extend(f"{_INDENT}{code}" for code in callback.body.splitlines())
                body.append("end")

        lines: List[str] = [f"class {model.name} < ApplicationRecord"]
        lines.extend(f"{_INDENT}{line}" if line else "" for line in body)
        lines.append("end")
        return "\n".join(lines) + "\n"

    # ===================================================================
    # Migrations
    # ===================================================================

    def join_table_migration(
        self, join_table: JoinTable, step: int, used_class_names: Set[str]
    ) -> str:
        first, second = join_table.models[0], join_table.models[1]
        table_name: str = join_table.resolved_table_name
        class_name: str = _unique_class_name(
            f"CreateJoinTable{camelize(to_snake_case(first))}{camelize(to_snake_case(second))}",
            used_class_names,
        )
        first_key, second_key = to_snake_case(first), to_snake_case(second)

        ruby: List[str] = [
            f"class {class_name} < ActiveRecord::Migration[{self._migration_version}]",
            f"{_INDENT}def change",
            f"{_INDENT * 2}create_join_table :{table_name_for(first)}, "
            f":{table_name_for(second)}, table_name: :{table_name} do |t|",
            f"{_INDENT * 3}t.index [:{first_key}_id, :{second_key}_id]",
            f"{_INDENT * 3}t.index [:{second_key}_id, :{first_key}_id]",
            f"{_INDENT * 2}end",
            f"{_INDENT}end",
            "end",
        ]
        return _heredoc(_migration_path(step, class_name), "\n".join(ruby) + "\n")

    def index_migration(
        self,
        model: ModelDefinition,
        index: IndexDefinition,
        step: int,
        used_class_names: Set[str],
    ) -> str:
        table: str = table_name_for(model.name)
        unique_part: str = "Unique" if index.unique else ""
        class_name: str = _unique_class_name(
            f"Add{unique_part}IndexTo{to_pascal_case(table)}"
            f"{''.join(to_pascal_case(c) for c in index.fields)}",
            used_class_names,
        )

        if len(index.fields) == 1:
            columns: str = f":{index.fields[0]}"
        else:
            columns = "[" + ", ".join(f":{c}" for c in index.fields) + "]"
        statement: str = f"add_index :{table}, {columns}"
        if index.unique:
            statement += ", unique: true"

        ruby: List[str] = [
            f"class {class_name} < ActiveRecord::Migration[{self._migration_version}]",
            f"{_INDENT}def change",
            f"{_INDENT * 2}{statement}",
            f"{_INDENT}end",
            "end",
        ]
        return _heredoc(_migration_path(step, class_name), "\n".join(ruby) + "\n")

    def _join_table_name(self, source: str, target: str) -> Optional[str]:
        for join_table in self._document.join_tables:
            if len(join_table.models) == 2 and set(join_table.models) == {source, target}:
                return join_table.resolved_table_name
        return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _heredoc(target: str, content: str) -> str:
    """``cat > target <<'EOF'`` block; the delimiter never occurs in ``content``."""
    delimiter: str = HEREDOC_DELIMITER
    existing: Set[str] = set(content.splitlines())
    suffix: int = 0
    while delimiter in existing:
        suffix += 1
        delimiter = f"{HEREDOC_DELIMITER}_{suffix}"
    return f"cat > {target} <<'{delimiter}'\n{content}{delimiter}"


def _migration_path(step: int, class_name: str) -> str:
    return f'"db/migrate/$((TS + {step}))_{to_snake_case(class_name)}.rb"'


def _unique_class_name(candidate: str, used: Set[str]) -> str:
    """Migration class names must be unique within an app."""
    name: str = candidate
    counter: int = 1
    while name in used:
        counter += 1
        name = f"{candidate}{counter}"
    used.add(name)
    return name


def build_script(document: Union[SchemaDocument, Mapping[str, Any]]) -> str:
    """Shortcut for ``ScriptBuilder(document).build()``."""
    return ScriptBuilder(document).build()


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ScriptBuilder",
    "build_script",
    "field_argument",
    "table_name_for",
    "ruby_literal",
    "ruby_options",
    "ruby_string",
    "HEREDOC_DELIMITER",
    "RAILS_BIN",
]
