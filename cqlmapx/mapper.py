"""Mapping of result column names onto dataclass fields."""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Callable, Sequence

Traversal = tuple[str, ...]


def _allowed_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


def camel_to_snake(name: str) -> str:
    """Convert a CamelCase ASCII identifier to snake_case.

    Acronyms are kept together, so ``IPAddress`` becomes ``ip_address``.
    Raises ValueError for names holding characters other than ASCII
    letters, digits and underscores.
    """
    if not all(_allowed_char(ch) for ch in name):
        raise ValueError(f"not allowed name {name}")

    out: list[str] = []
    for i, ch in enumerate(name):
        if ch.isupper():
            prev = name[i - 1] if i > 0 else ""
            nxt = name[i + 1] if i + 1 < len(name) else ""
            if prev and prev != "_" and (prev.islower() or nxt.islower()):
                out.append("_")
            ch = ch.lower()
        out.append(ch)
    return "".join(out)


def missing_fields(traversals: Sequence[Traversal]) -> int | None:
    """Return the index of the first empty traversal, or None if all are mapped."""
    return next((i for i, t in enumerate(traversals) if not t), None)


def _tag_name(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.split(",", 1)[0]


class Mapper:
    """Maps column names to dataclass fields.

    A field's column name comes from its metadata under ``tag`` when set,
    otherwise from ``name_func`` applied to the field name. Fields whose
    name starts with an underscore, or whose tag is ``"-"``, are not mapped.
    Mappings are cached per class.
    """

    def __init__(self, tag: str = "db", name_func: Callable[[str], str] = camel_to_snake):
        self.tag = tag
        self.name_func = name_func
        self._cache: dict[type, dict[str, Traversal]] = {}
        self._lock = threading.Lock()

    def type_map(self, cls: type) -> dict[str, Traversal]:
        """Return a mapping of column name to field traversal for ``cls``."""
        if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
            raise TypeError(f"expected a dataclass but got {cls!r}")
        with self._lock:
            cached = self._cache.get(cls)
            if cached is None:
                cached = self._build(cls)
                self._cache[cls] = cached
        return dict(cached)

    def _build(self, cls: type) -> dict[str, Traversal]:
        mapping: dict[str, Traversal] = {}
        for field in dataclasses.fields(cls):
            if field.name.startswith("_"):
                continue
            tagged = _tag_name(field.metadata.get(self.tag))
            if tagged == "-":
                continue
            column = tagged or self.name_func(field.name)
            mapping.setdefault(column, (field.name,))
        return mapping

    def traversals_by_name(self, cls: type, columns: Sequence[str]) -> list[Traversal]:
        """Return one traversal per column; unmapped columns get an empty tuple."""
        mapping = self.type_map(cls)
        return [mapping.get(column, ()) for column in columns]


DEFAULT_MAPPER = Mapper("db", camel_to_snake)
"""Mapper using the ``db`` metadata key and snake_case field names."""