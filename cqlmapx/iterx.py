"""Row iterator that scans results into dataclasses and plain values."""

from __future__ import annotations

import dataclasses
import functools
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Protocol

from cqlmapx.mapper import DEFAULT_MAPPER, Mapper, Traversal, missing_fields

DEFAULT_UNSAFE = False
"""When true, new iterators ignore result columns with no destination field."""

APPLIED_COLUMN = "[applied]"


class NotFoundError(LookupError):
    """Raised when a single row was requested but the result was empty."""

    def __init__(self, message: str = "not found"):
        super().__init__(message)


class RowSource(Protocol):
    """A query result: column names plus an iterable of rows.

    An optional ``close()`` method releases the result and raises any error
    that happened while producing it.
    """

    columns: Sequence[str]

    def __iter__(self) -> Iterator[Sequence[Any]]: ...


def _is_struct(cls: type) -> bool:
    return isinstance(cls, type) and dataclasses.is_dataclass(cls)


def _is_unmarshaler(cls: Any) -> bool:
    return callable(getattr(cls, "from_cql", None))


def _struct_only_error(cls: type) -> str:
    if not _is_struct(cls):
        return f"expected a struct but got {cls.__name__}"
    if _is_unmarshaler(cls):
        return f"expected a struct but the provided struct type {cls.__name__} implements from_cql"
    return f"expected a struct, but struct {cls.__name__} has no exported fields"


@functools.lru_cache(maxsize=None)
def _field_types(cls: type) -> dict[str, Any]:
    # Only annotations that are real types take part in conversion; string
    # annotations are left unresolved.
    return {
        f.name: f.type for f in dataclasses.fields(cls) if isinstance(f.type, type)
    }


def _convert(cls: type, attr: str, value: Any) -> Any:
    hint = _field_types(cls).get(attr)
    if hint is not None and _is_unmarshaler(hint):
        return hint.from_cql(value)
    return value


def _instantiate(cls: type, values: dict[str, Any]) -> Any:
    init_args: dict[str, Any] = {}
    late: dict[str, Any] = {}
    for field in dataclasses.fields(cls):
        if field.name in values:
            (init_args if field.init else late)[field.name] = values[field.name]
        elif (
            field.init
            and field.default is dataclasses.MISSING
            and field.default_factory is dataclasses.MISSING
        ):
            init_args[field.name] = None
    obj = cls(**init_args)
    for name, value in late.items():
        object.__setattr__(obj, name, value)
    return obj


class Iterx:
    """Wraps a row source and scans rows into dataclasses or single values.

    A type is scanned as a single value when it defines ``from_cql``, is not
    a dataclass, or is a dataclass with no mapped fields; otherwise each row
    is mapped onto a dataclass by column name. The column-to-field mapping
    is computed on the first struct scan and reused, so one iterator should
    be used with one dataclass type.
    """

    def __init__(self, source: RowSource, mapper: Mapper | None = None):
        self._source = source
        self._rows: Iterator[Sequence[Any]] = iter(source)
        self.mapper = mapper if mapper is not None else DEFAULT_MAPPER
        self._unsafe = DEFAULT_UNSAFE
        self._struct_only = False
        self._fields: list[Traversal] | None = None
        self._cas = False
        self._closed = False
        self.applied = False
        self.num_rows = 0

    @property
    def columns(self) -> list[str]:
        return list(self._source.columns)

    def unsafe(self) -> Iterx:
        """Ignore result columns that map to no destination field."""
        self._unsafe = True
        return self

    def struct_only(self) -> Iterx:
        """Treat a dataclass as a struct even if it defines ``from_cql``."""
        self._struct_only = True
        return self

    def get(self, dest_type: type) -> Any:
        """Scan the first row into a new ``dest_type`` and close the iterator.

        Raises NotFoundError if there are no rows.
        """
        try:
            scannable = self._check_dest(dest_type)
            row = self._next_row()
            result = None if row is None else self._build(dest_type, scannable, row)
        finally:
            self.close()
        if row is None:
            raise NotFoundError()
        return result

    def select(self, dest_type: type) -> list[Any]:
        """Scan all rows into a list of ``dest_type`` and close the iterator.

        An empty result gives an empty list.
        """
        try:
            scannable = self._check_dest(dest_type)
            results = []
            while (row := self._next_row()) is not None:
                results.append(self._build(dest_type, scannable, row))
        finally:
            self.close()
        return results

    def struct_scan(self, dest: Any) -> bool:
        """Fill the dataclass instance ``dest`` from the next row.

        Returns False when there are no more rows.
        """
        if dest is None:
            raise TypeError("expected a dataclass instance but got None")
        if isinstance(dest, type) or not dataclasses.is_dataclass(dest):
            raise TypeError(f"expected a struct but got {type(dest).__name__}")
        row = self._next_row()
        if row is None:
            return False
        for attr, value in self._struct_values(type(dest), row).items():
            setattr(dest, attr, value)
        return True

    def scan(self) -> tuple[Any, ...] | None:
        """Return the next row as a tuple, or None at the end of the result."""
        row = self._next_row()
        return None if row is None else tuple(row)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        while (row := self.scan()) is not None:
            yield row

    def close(self) -> None:
        """Close the underlying source, raising any error it reports."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self._source, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> Iterx:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _is_scannable(self, cls: type) -> bool:
        if _is_unmarshaler(cls) or not _is_struct(cls):
            return True
        return not self.mapper.type_map(cls)

    def _check_dest(self, dest_type: Any) -> bool:
        if dest_type is None:
            raise TypeError("expected a type but got None")
        if not isinstance(dest_type, type):
            raise TypeError(f"expected a type but got {type(dest_type).__name__}")

        scannable = self._is_scannable(dest_type)
        if self._struct_only and scannable:
            if not _is_struct(dest_type):
                raise TypeError(_struct_only_error(dest_type))
            scannable = False

        count = len(self._source.columns)
        if scannable and count > 1:
            raise ValueError(
                f"expected 1 column in result while scanning scannable type "
                f"{dest_type.__name__} but got {count}"
            )
        return scannable

    def _next_row(self) -> Sequence[Any] | None:
        try:
            row = next(self._rows)
        except StopIteration:
            return None
        self.num_rows += 1
        return row

    def _build(self, dest_type: type, scannable: bool, row: Sequence[Any]) -> Any:
        if scannable:
            value = row[0] if row else None
            return dest_type.from_cql(value) if _is_unmarshaler(dest_type) else value
        return _instantiate(dest_type, self._struct_values(dest_type, row))

    def _struct_values(self, cls: type, row: Sequence[Any]) -> dict[str, Any]:
        if self._fields is None:
            columns = self.columns
            cas = bool(columns) and columns[0] == APPLIED_COLUMN
            fields = self.mapper.traversals_by_name(cls, columns)
            if not self._unsafe and not cas:
                index = missing_fields(fields)
                if index is not None:
                    raise ValueError(
                        f'missing destination name "{columns[index]}" in {cls.__qualname__}'
                    )
            self._fields = fields
            self._cas = cas

        if self._cas and row:
            self.applied = bool(row[0])

        values: dict[str, Any] = {}
        for traversal, value in zip(self._fields, row):
            if traversal:
                attr = traversal[0]
                values[attr] = _convert(cls, attr, value)
        return values


def iter_rows(source: Iterable[Sequence[Any]], columns: Sequence[str]) -> Iterx:
    """Build an iterator over in-memory rows with the given column names."""
    return Iterx(_MemorySource(list(columns), list(source)))


@dataclasses.dataclass
class _MemorySource:
    columns: list[str]
    rows: list[Sequence[Any]]

    def __iter__(self) -> Iterator[Sequence[Any]]:
        return iter(self.rows)