"""
tests/conftest.py
Shared fixtures for the railyard test suite.

No external mocking libraries are used; real file and process I/O is
performed inside temporary directories managed by pytest's tmp_path.
"""

from __future__ import annotations

import copy
import json
import logging
import pathlib
import stat
from typing import Any, Callable, Dict

import pytest
import yaml

from railyard.editor import EditorSession


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_railyard_logging():
    """The CLI reconfigures the 'railyard' logger; undo it after every test."""
    yield
    root_logger = logging.getLogger("railyard")
    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = True


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests never see a developer's RAILYARD_* settings."""
    for name in (
        "RAILYARD_HOST",
        "RAILYARD_PORT",
        "RAILYARD_OUTPUT_DIR",
        "RAILYARD_TIMEOUT",
        "RAILYARD_SHELL",
        "RAILYARD_STATIC_DIR",
        "RAILYARD_LOG_LEVEL",
        "RAILYARD_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Schema Document fixtures
# ---------------------------------------------------------------------------

_BLOG_DOCUMENT: Dict[str, Any] = {
    "app_name": "blog",
    "rails_version": "7.1",
    "database": "postgresql",
    "api_only": False,
    "models": [
        {
            "name": "Post",
            "fields": [
                {"name": "title", "type": "string", "options": {"limit": 120}},
                {"name": "body", "type": "text", "options": {}},
                {"name": "published", "type": "boolean", "options": {"default": False}},
            ],
            "validations": [
                {"field": "title", "type": "presence", "options": {}},
                {"field": "title", "type": "length", "options": {"maximum": 120}},
            ],
            "callbacks": [
                {
                    "type": "before_save",
                    "method": "normalize_title",
                    "code": "self.title = title.strip",
                },
            ],
            "indices": [{"fields": ["title"], "unique": True}],
            "associations": [
                {
                    "type": "has_many",
                    "name": "comments",
                    "target": "Comment",
                    "options": {"dependent": ":destroy"},
                },
                {
                    "type": "has_and_belongs_to_many",
                    "name": "tags",
                    "target": "Tag",
                    "options": {},
                },
            ],
        },
        {
            "name": "Comment",
            "fields": [
                {"name": "body", "type": "text", "options": {}},
                {"name": "post", "type": "references", "options": {}},
            ],
            "validations": [],
            "callbacks": [],
            "indices": [{"fields": ["post_id", "created_at"], "unique": False}],
            "associations": [
                {"type": "belongs_to", "name": "post", "target": "Post", "options": {}},
            ],
        },
        {
            "name": "Tag",
            "fields": [{"name": "label", "type": "string", "options": {}}],
            "validations": [],
            "callbacks": [],
            "indices": [],
            "associations": [
                {
                    "type": "has_and_belongs_to_many",
                    "name": "posts",
                    "target": "Post",
                    "options": {},
                },
            ],
        },
    ],
    "join_tables": [{"models": ["Post", "Tag"]}],
}


@pytest.fixture()
def blog_document() -> Dict[str, Any]:
    """A valid three-model document; a deep copy so each test can mutate freely."""
    return copy.deepcopy(_BLOG_DOCUMENT)


@pytest.fixture()
def minimal_document() -> Dict[str, Any]:
    """Smallest valid document: one model, one field."""
    return {
        "app_name": "shop",
        "rails_version": "7.1",
        "database": "sqlite3",
        "api_only": True,
        "models": [
            {"name": "Product", "fields": [{"name": "name", "type": "string"}]},
        ],
    }


@pytest.fixture()
def duplicate_post_document() -> Dict[str, Any]:
    """Two models called Post; exactly one error expected."""
    return {
        "app_name": "blog",
        "rails_version": "7.1",
        "database": "postgresql",
        "models": [
            {"name": "Post", "fields": [{"name": "title", "type": "string"}]},
            {"name": "Post", "fields": []},
        ],
    }


@pytest.fixture()
def blog_json_path(blog_document: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "blog.json"
    path.write_text(json.dumps(blog_document), encoding="utf-8")
    return path


@pytest.fixture()
def blog_yaml_path(blog_document: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "blog.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(blog_document, fh, default_flow_style=False, sort_keys=False)
    return path


# ---------------------------------------------------------------------------
# Editor fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def session() -> EditorSession:
    return EditorSession(app_name="blog")


@pytest.fixture()
def blog_session(blog_document: Dict[str, Any]) -> EditorSession:
    """Editor rebuilt from the blog document."""
    return EditorSession.from_document(blog_document)


# ---------------------------------------------------------------------------
# Executor fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture()
def make_fake_shell(tmp_path: pathlib.Path) -> Callable[[str], pathlib.Path]:
    """
    Factory for an executable stand-in for ``bash``.

    The executor runs ``<shell> build.sh`` in its temporary directory; the
    fake ignores ``build.sh`` and runs ``body`` instead, so pipeline tests
    can succeed or fail on demand without Rails installed.
    """

    def _make(body: str) -> pathlib.Path:
        path = tmp_path / f"fake_shell_{abs(hash(body))}.sh"
        path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make
