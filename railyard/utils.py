# File: railyard/utils.py
"""
RailYard - Naming, File & Timing Helpers
==========================================
Small helpers shared by the editor, validator, script builder and pipeline.

Naming helpers follow ActiveSupport's inflector closely enough that the names
RailYard derives (table names, association names, migration class names)
match the ones Rails itself would pick for ordinary English model names.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Pattern, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.utils")

# ---------------------------------------------------------------------------
# Inflection tables
# ---------------------------------------------------------------------------

_ACRONYM_BOUNDARY_RE: Pattern[str] = re.compile(r"([A-Z\d]+)([A-Z][a-z])")
_WORD_BOUNDARY_RE: Pattern[str] = re.compile(r"([a-z\d])([A-Z])")
_SEPARATOR_RE: Pattern[str] = re.compile(r"[^A-Za-z0-9]+")

_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "sex": "sexes",
    "move": "moves",
    "zombie": "zombies",
}

_UNCOUNTABLE: FrozenSet[str] = frozenset(
    {
        "equipment", "information", "rice", "money", "species",
        "series", "fish", "sheep", "jeans", "police",
    }
)


def _rule(pattern: str, replacement: str) -> Tuple[Pattern[str], str]:
    return re.compile(pattern, re.IGNORECASE), replacement


# ActiveSupport's English plural rules, most specific first; first match wins.
_PLURAL_RULES: Tuple[Tuple[Pattern[str], str], ...] = (
    _rule(r"(quiz)$", r"\1zes"),
    _rule(r"^(oxen)$", r"\1"),
    _rule(r"^(ox)$", r"\1en"),
    _rule(r"^(m|l)ice$", r"\1ice"),
    _rule(r"^(m|l)ouse$", r"\1ice"),
    _rule(r"(matr|vert|ind)(?:ix|ex)$", r"\1ices"),
    _rule(r"(x|ch|ss|sh)$", r"\1es"),
    _rule(r"([^aeiouy]|qu)y$", r"\1ies"),
    _rule(r"(hive)$", r"\1s"),
    _rule(r"(?:([^f])fe|([lr])f)$", r"\1\2ves"),
    _rule(r"sis$", "ses"),
    _rule(r"([ti])a$", r"\1a"),
    _rule(r"([ti])um$", r"\1a"),
    _rule(r"(buffal|tomat)o$", r"\1oes"),
    _rule(r"(bu)s$", r"\1ses"),
    _rule(r"(alias|status)$", r"\1es"),
    _rule(r"(octop|vir)i$", r"\1i"),
    _rule(r"(octop|vir)us$", r"\1i"),
    _rule(r"^(ax|test)is$", r"\1es"),
    _rule(r"s$", "s"),
)


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    ``BlogPost`` → ``blog_post``, ``HTMLPage`` → ``html_page``.

    Any run of non-alphanumeric characters becomes a single underscore.
    """
    word: str = _ACRONYM_BOUNDARY_RE.sub(r"\1_\2", name)
    word = _WORD_BOUNDARY_RE.sub(r"\1_\2", word)
    return _SEPARATOR_RE.sub("_", word).strip("_").lower()


@functools.lru_cache(maxsize=None)
def camelize(name: str) -> str:
    """ActiveSupport ``camelize``: ``blog_app`` → ``BlogApp``."""
    return "".join(part.capitalize() for part in name.split("_"))


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """Any casing style to PascalCase: ``post_id`` → ``PostId``, ``post tag`` → ``PostTag``."""
    return camelize(to_snake_case(name))


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    English plural the way ActiveSupport's ``pluralize`` forms it.

    Irregular and uncountable words are looked up on the last ``_``-separated
    word, so ``sales_person`` becomes ``sales_people``.

    Examples:
        >>> to_plural("comment")
        'comments'
        >>> to_plural("category")
        'categories'
        >>> to_plural("Person")
        'People'
    """
    if not name:
        return ""

    head, sep, last = name.rpartition("_")
    word: str = last.lower()
    if word in _UNCOUNTABLE:
        return name
    irregular: Optional[str] = _IRREGULAR_PLURALS.get(word)
    if irregular is not None:
        return head + sep + last[0] + irregular[1:]

    for pattern, replacement in _PLURAL_RULES:
        if pattern.search(name):
            return pattern.sub(replacement, name, count=1)
    return name + "s"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write ``content`` as UTF-8 and return the byte count.

    With ``atomic`` the bytes are staged in a hidden sibling file and moved
    over ``path`` with ``os.replace``, so readers see the old file or the new
    one and never a partial write.
    """
    path = Path(path)
    ensure_directory(path.parent)
    data: bytes = content.encode("utf-8")

    if not atomic:
        path.write_bytes(data)
    else:
        staged: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
            ) as fh:
                staged = Path(fh.name)
                fh.write(data)
            os.replace(staged, path)
        except BaseException:
            if staged is not None:
                staged.unlink(missing_ok=True)
            raise

    logger.debug("Wrote %d bytes to %s", len(data), path)
    return len(data)


def read_file(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def dump_json(data: Any, indent_size: int = 2) -> str:
    """Pretty JSON with a trailing newline, key order preserved."""
    return json.dumps(data, indent=indent_size, ensure_ascii=False) + "\n"


def count_lines(content: str) -> int:
    """Number of lines; a trailing newline does not start a new one."""
    return len(content.splitlines())


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


class Timer:
    """
    Wall-clock timer for one pipeline step.

    Usage::

        with Timer("build_script") as t:
            script = builder.build()
        logger.info("built in %.3fs", t.elapsed)
    """

    __slots__ = ("label", "elapsed", "_started")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.elapsed: float = 0.0
        self._started: float = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.elapsed = time.perf_counter() - self._started
        logger.debug("%s took %.4fs", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label} {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__ = [
    "to_snake_case",
    "camelize",
    "to_pascal_case",
    "to_plural",
    "ensure_directory",
    "write_file",
    "read_file",
    "dump_json",
    "count_lines",
    "Timer",
]
