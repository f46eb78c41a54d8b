"""
tests/test_models.py
Unit tests for the Schema Document models in railyard.models.
"""

from __future__ import annotations

from typing import Any, Dict

from railyard.models import (
    AUTO_FIELDS,
    FIELD_TYPES,
    Association,
    AssociationOptions,
    Callback,
    FieldDefinition,
    JoinTable,
    ModelDefinition,
    SchemaDocument,
)


class TestWireFormat:
    """Aliases map descriptive attribute names to the editor's JSON keys."""

    def test_parse_wire_keys(self, blog_document: Dict[str, Any]) -> None:
        document = SchemaDocument.from_dict(blog_document)
        post = document.get_model("Post")
        assert document.framework_version == "7.1"
        assert post is not None
        assert post.fields[0].field_type == "string"
        assert post.validations[1].kind == "length"
        assert post.callbacks[0].lifecycle_hook == "before_save"
        assert post.callbacks[0].method_name == "normalize_title"
        assert post.callbacks[0].body == "self.title = title.strip"
        assert post.associations[0].kind == "has_many"

    def test_attribute_names_accepted_on_input(self) -> None:
        field = FieldDefinition(name="title", field_type="text")
        callback = Callback(lifecycle_hook="after_save", method_name="notify")
        assert field.field_type == "text"
        assert callback.method_name == "notify"

    def test_to_dict_uses_wire_keys(self, blog_document: Dict[str, Any]) -> None:
        data = SchemaDocument.from_dict(blog_document).to_dict()
        assert data["rails_version"] == "7.1"
        assert "framework_version" not in data
        post = data["models"][0]
        assert post["fields"][0] == {"name": "title", "type": "string", "options": {"limit": 120}}
        assert post["callbacks"][0] == {
            "type": "before_save",
            "method": "normalize_title",
            "code": "self.title = title.strip",
        }

    def test_round_trip_is_lossless(self, blog_document: Dict[str, Any]) -> None:
        document = SchemaDocument.from_dict(blog_document)
        assert SchemaDocument.from_dict(document.to_dict()) == document
        assert document.to_dict() == blog_document

    def test_missing_collections_default_to_empty(self) -> None:
        document = SchemaDocument.from_dict(
            {"app_name": "x", "models": [{"name": "A", "fields": None, "associations": None}]}
        )
        assert document.models[0].fields == []
        assert document.models[0].associations == []
        assert document.join_tables == []

    def test_defaults(self) -> None:
        document = SchemaDocument()
        assert document.app_name == "my_rails_app"
        assert document.framework_version == "7.1"
        assert document.database == "postgresql"
        assert document.api_only is False


class TestAssociationOptions:
    def test_unknown_keys_pass_through(self) -> None:
        assoc = Association.model_validate(
            {
                "type": "has_many",
                "name": "comments",
                "target": "Comment",
                "options": {"dependent": ":destroy", "counter_cache": True},
            }
        )
        assert assoc.options.as_dict() == {"dependent": ":destroy", "counter_cache": True}

    def test_none_options_are_empty(self) -> None:
        assoc = Association.model_validate({"type": "belongs_to", "name": "post", "options": None})
        assert assoc.options.as_dict() == {}
        assert not assoc.options

    def test_unset_keys_omitted(self) -> None:
        options = AssociationOptions(optional=True)
        assert options.as_dict() == {"optional": True}
        assert options


class TestHelpers:
    def test_column_name_for_references(self) -> None:
        assert FieldDefinition(name="post", field_type="references").column_name == "post_id"
        assert FieldDefinition(name="title").column_name == "title"

    def test_join_table_default_name(self) -> None:
        assert JoinTable(models=["Post", "Tag"]).resolved_table_name == "post_tag"
        assert JoinTable(models=["BlogPost", "Tag"]).resolved_table_name == "blog_post_tag"
        assert JoinTable(models=["Post", "Tag"], table_name="posts_tags").resolved_table_name == (
            "posts_tags"
        )

    def test_document_counters(self, blog_document: Dict[str, Any]) -> None:
        document = SchemaDocument.from_dict(blog_document)
        assert document.model_names == ["Post", "Comment", "Tag"]
        assert document.total_fields == 6
        assert document.total_associations == 4

    def test_model_field_lookup(self) -> None:
        model = ModelDefinition(name="Post", fields=[FieldDefinition(name="title")])
        assert model.field_names == ["title"]
        assert model.get_field("title") is not None
        assert model.get_field("body") is None

    def test_fixed_sets(self) -> None:
        assert len(FIELD_TYPES) == 15
        assert AUTO_FIELDS == {"id", "created_at", "updated_at", "type"}
