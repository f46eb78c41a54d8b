"""
tests/test_editor.py
Unit tests for railyard.editor.EditorSession.

Tests cover:
- Id assignment and counter reset
- Cascade delete and idempotent removals
- Export (target resolution by current name, dangling edges, join tables)
- Editing helpers (connect rejections, default names, validations)
- Import, save/load and file persistence
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict

import pytest

from railyard.editor import (
    AssociationEdge,
    EditorSession,
    ModelNode,
    Position,
    default_association_name,
)
from railyard.errors import (
    AssociationNotFound,
    AssociationRejected,
    ModelNotFound,
    SchemaLoadError,
    ValidationRuleRejected,
)
from railyard.models import FieldDefinition, ModelDefinition, SchemaDocument
from railyard.validators import validate


# ===========================================================================
# Store
# ===========================================================================


class TestStore:
    def test_ids_are_sequential(self, session: EditorSession) -> None:
        assert session.add_model(ModelNode(name="Post")) == "model-1"
        assert session.add_model(ModelNode(name="Comment")) == "model-2"
        assert session.add_association(AssociationEdge(source="model-1", target="model-2")) == (
            "conn-1"
        )

    def test_add_model_accepts_definition(self, session: EditorSession) -> None:
        definition = ModelDefinition(name="Post", fields=[FieldDefinition(name="title")])
        model_id = session.add_model(definition)
        node = session.get_model(model_id)
        assert node is not None
        assert node.name == "Post"
        assert node.fields[0] is not definition.fields[0]

    def test_ids_never_reused_until_clear(self, session: EditorSession) -> None:
        first = session.add_model(ModelNode(name="A"))
        session.remove_model(first)
        assert session.add_model(ModelNode(name="B")) == "model-2"

        session.clear()
        assert len(session) == 0
        assert session.associations == {}
        assert session.add_model(ModelNode(name="C")) == "model-1"
        assert session.add_association(AssociationEdge(source="model-1", target="model-1")) == (
            "conn-1"
        )

    def test_store_does_not_check_self_loops(self, session: EditorSession) -> None:
        model_id = session.add_model(ModelNode(name="Employee"))
        session.add_association(AssociationEdge(source=model_id, target=model_id))
        assert len(session.associations) == 1

    def test_remove_model_cascades(self, session: EditorSession) -> None:
        a = session.create_model("A")
        b = session.create_model("B")
        c = session.create_model("C")
        ab = session.connect(a, b, "has_many")
        ba = session.connect(b, a, "belongs_to")
        bc = session.connect(b, c, "has_one")
        ca = session.connect(c, a, "belongs_to")

        session.remove_model(b)

        assert b not in session.models
        assert set(session.associations) == {ca}
        for removed in (ab, ba, bc):
            assert session.get_association(removed) is None

        exported = session.export()
        assert exported.model_names == ["A", "C"]
        targets = [assoc.target for model in exported.models for assoc in model.associations]
        assert targets == ["A"]

    def test_removals_are_idempotent(self, session: EditorSession) -> None:
        a = session.create_model("A")
        session.remove_model("model-99")
        session.remove_association("conn-99")
        session.remove_model(a)
        session.remove_model(a)
        assert len(session) == 0

    def test_snapshots_are_copies(self, session: EditorSession) -> None:
        session.create_model("A")
        session.models.clear()
        assert len(session) == 1


# ===========================================================================
# Export
# ===========================================================================


class TestExport:
    def test_settings_and_order(self) -> None:
        session = EditorSession(app_name="shop", database="mysql", api_only=True)
        session.create_model("Zebra")
        session.create_model("Apple")
        document = session.export()
        assert isinstance(document, SchemaDocument)
        assert document.app_name == "shop"
        assert document.database == "mysql"
        assert document.api_only is True
        assert document.model_names == ["Zebra", "Apple"]

    def test_target_resolved_by_current_name(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        session.connect(post, comment, "has_many", "comments")

        session.update_model(comment, name="Reply")

        association = session.export().get_model("Post").associations[0]
        assert association.target == "Reply"
        assert association.name == "comments"

    def test_edges_to_missing_models_are_skipped(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        session.add_association(AssociationEdge(source=post, target="model-42", kind="has_many"))
        assert session.export().get_model("Post").associations == []

    def test_outgoing_edges_in_insertion_order(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        tag = session.create_model("Tag")
        session.connect(post, tag, "has_many")
        session.connect(comment, post, "belongs_to")
        session.connect(post, comment, "has_many")
        names = [a.name for a in session.export().get_model("Post").associations]
        assert names == ["tags", "comments"]

    def test_join_table_once_per_pair(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        tag = session.create_model("Tag")
        session.connect(post, tag, "has_and_belongs_to_many", join_table="posts_tags")
        session.connect(tag, post, "has_and_belongs_to_many")

        join_tables = session.export().join_tables
        assert len(join_tables) == 1
        assert join_tables[0].models == ["Post", "Tag"]
        assert join_tables[0].table_name == "posts_tags"

    def test_join_table_default_name(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        tag = session.create_model("Tag")
        session.connect(post, tag, "has_and_belongs_to_many")
        assert session.export().join_tables[0].resolved_table_name == "post_tag"

    def test_export_is_deterministic(self) -> None:
        def build() -> SchemaDocument:
            s = EditorSession(app_name="blog")
            post = s.create_model("Post")
            comment = s.create_model("Comment")
            s.add_field(post, "title", "string", {"limit": 80})
            s.add_field(comment, "post", "references")
            s.connect(post, comment, "has_many", options={"dependent": ":destroy"})
            s.connect(comment, post, "belongs_to")
            return s.export()

        assert build() == build()
        assert build().to_dict() == build().to_dict()

    def test_export_does_not_alias_editor_state(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        session.add_field(post, "title")
        document = session.export()
        document.models[0].fields[0].name = "changed"
        assert session.get_model(post).fields[0].name == "title"


# ===========================================================================
# Editing helpers
# ===========================================================================


class TestEditingHelpers:
    def test_create_model_defaults(self, session: EditorSession) -> None:
        first = session.create_model()
        node = session.get_model(first)
        assert node.name == "Model1"
        assert node.position == Position(x=150, y=130)
        second = session.create_model(x=10, y=20)
        assert session.get_model(second).name == "Model2"
        assert session.get_model(second).position == Position(x=10, y=20)

    def test_connect_rejects_self_association(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        with pytest.raises(AssociationRejected, match="same model"):
            session.connect(post, post, "has_many")

    def test_connect_rejects_duplicate_ordered_pair(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        session.connect(post, comment, "has_many")
        with pytest.raises(AssociationRejected, match="already exists"):
            session.connect(post, comment, "has_one")
        # The reverse direction is a different pair.
        session.connect(comment, post, "belongs_to")
        assert len(session.associations) == 2

    def test_connect_rejects_unknown_kind(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        with pytest.raises(AssociationRejected):
            session.connect(post, comment, "has_few")

    def test_connect_unknown_model(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        with pytest.raises(ModelNotFound):
            session.connect(post, "model-9", "has_many")

    def test_can_connect(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        assert session.can_connect(post, comment) == (True, "")
        allowed, reason = session.can_connect(post, post)
        assert not allowed and "same model" in reason

    @pytest.mark.parametrize(
        "kind, target, expected",
        [
            ("belongs_to", "Post", "post"),
            ("has_one", "UserProfile", "user_profile"),
            ("has_many", "Comment", "comments"),
            ("has_many", "Category", "categories"),
            ("has_and_belongs_to_many", "Person", "people"),
        ],
    )
    def test_default_association_name(self, kind: str, target: str, expected: str) -> None:
        assert default_association_name(kind, target) == expected

    def test_connect_stores_options(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        edge_id = session.connect(
            post, comment, "has_many", options={"dependent": ":destroy", "counter_cache": True}
        )
        edge = session.get_association(edge_id)
        assert edge.name == "comments"
        assert edge.options.as_dict() == {"dependent": ":destroy", "counter_cache": True}

    def test_visual_reference_is_opaque(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        marker = object()
        edge_id = session.connect(post, comment, "has_many", visual=marker)
        assert session.get_association(edge_id).visual is marker
        assert "visual" not in json.dumps(session.save())

    def test_add_validation_requires_fields(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        with pytest.raises(ValidationRuleRejected, match="Add fields first"):
            session.add_validation(post, "title", "presence")
        session.add_field(post, "title")
        rule = session.add_validation(post, "title", "length", {"minimum": 3})
        assert rule.options == {"minimum": 3}

    def test_member_helpers(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        session.add_field(post, "title")
        session.add_field(post, "slug")
        session.add_callback(post, "before_save")
        session.add_index(post, ["slug"], unique=True)
        session.remove_field(post, 0)
        session.remove_field(post, 10)

        node = session.get_model(post)
        assert [f.name for f in node.fields] == ["slug"]
        assert node.callbacks[0].method_name == "callback_method"
        assert node.indices[0].unique is True

        session.remove_callback(post, 0)
        session.remove_index(post, 0)
        assert node.callbacks == [] and node.indices == []

    def test_update_and_move_unknown_ids(self, session: EditorSession) -> None:
        with pytest.raises(ModelNotFound):
            session.update_model("model-1", name="X")
        with pytest.raises(ModelNotFound):
            session.move_model("model-1", 1, 2)
        with pytest.raises(AssociationNotFound):
            session.update_association("conn-1", name="x")

    def test_update_association(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        user = session.create_model("User")
        edge_id = session.connect(post, user, "belongs_to")
        session.update_association(edge_id, name="author", options={"class_name": "User"})
        association = session.export().get_model("Post").associations[0]
        assert association.name == "author"
        assert association.options.class_name == "User"

    def test_exported_session_validates(self, session: EditorSession) -> None:
        post = session.create_model("Post")
        comment = session.create_model("Comment")
        session.add_field(post, "title", "string")
        session.add_field(comment, "post", "references")
        session.add_validation(post, "title", "presence")
        session.connect(post, comment, "has_many")
        session.connect(comment, post, "belongs_to")
        assert validate(session.export()) == []


# ===========================================================================
# Import / persistence
# ===========================================================================


class TestImportAndPersistence:
    def test_export_import_export_is_identity(self, blog_document: Dict[str, Any]) -> None:
        first = EditorSession.from_document(blog_document).export()
        second = EditorSession.from_document(first).export()
        assert first == second
        assert first.to_dict() == blog_document

    def test_import_drops_unknown_targets(self, minimal_document: Dict[str, Any]) -> None:
        minimal_document["models"][0]["associations"] = [
            {"type": "belongs_to", "name": "vendor", "target": "Vendor"}
        ]
        session = EditorSession.from_document(minimal_document)
        assert session.associations == {}

    def test_import_replaces_previous_state(
        self, session: EditorSession, minimal_document: Dict[str, Any]
    ) -> None:
        session.create_model("Old")
        session.import_document(minimal_document)
        assert [n.name for n in session.models.values()] == ["Product"]
        assert list(session.models) == ["model-1"]
        assert session.app_name == "shop"
        assert session.api_only is True

    def test_import_reattaches_explicit_join_table(self, blog_document: Dict[str, Any]) -> None:
        blog_document["join_tables"] = [{"models": ["Tag", "Post"], "table_name": "taggings"}]
        session = EditorSession.from_document(blog_document)
        habtm = [e for e in session.associations.values() if e.kind == "has_and_belongs_to_many"]
        assert [e.join_table for e in habtm] == ["taggings", "taggings"]

    def test_save_shape(self, blog_session: EditorSession) -> None:
        saved = blog_session.save()
        assert set(saved) == {"schema", "positions"}
        assert saved["positions"]["model-1"] == {"x": 100, "y": 100, "name": "Post"}
        assert saved["positions"]["model-2"] == {"x": 150, "y": 130, "name": "Comment"}

    def test_load_matches_positions_by_name(self, blog_session: EditorSession) -> None:
        blog_session.move_model("model-3", 700, 40)
        saved = blog_session.save()
        # Reorder the models: ids change, names do not.
        saved["schema"]["models"].reverse()

        restored = EditorSession()
        restored.load(saved)
        tag = restored.find_model_by_name("Tag")
        assert tag.id == "model-1"
        assert tag.position == Position(x=700, y=40)

    def test_renamed_model_gets_default_position(self, blog_session: EditorSession) -> None:
        blog_session.move_model("model-1", 999, 999)
        saved = blog_session.save()
        saved["schema"]["models"][0]["name"] = "Article"
        restored = EditorSession()
        restored.load(saved)
        assert restored.find_model_by_name("Article").position == Position(x=100, y=100)

    def test_load_bare_document(self, blog_document: Dict[str, Any]) -> None:
        restored = EditorSession()
        restored.load(blog_document)
        assert restored.export().to_dict() == blog_document

    def test_file_round_trip(self, blog_session: EditorSession, tmp_path: pathlib.Path) -> None:
        path = blog_session.save_to_file(tmp_path)
        assert path.name == "blog_schema.json"

        restored = EditorSession()
        restored.load_from_file(path)
        assert restored.export() == blog_session.export()
        assert restored.save() == blog_session.save()

    def test_load_from_invalid_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SchemaLoadError, match="Invalid JSON"):
            EditorSession().load_from_file(path)

    def test_load_from_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(SchemaLoadError):
            EditorSession().load_from_file(tmp_path / "missing.json")

    def test_load_rejects_non_object_schema(self) -> None:
        with pytest.raises(SchemaLoadError):
            EditorSession().load({"schema": ["Post"]})
