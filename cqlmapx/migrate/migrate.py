"""Applying CQL migration files from a flat directory.

Migration names are file names; migrations run in lexicographical order.
Progress is recorded per statement in the ``gocqlx_migrate`` table, so an
interrupted migration resumes after its last applied statement.
"""

from __future__ import annotations

import dataclasses
import enum
import fnmatch
import os
import re
from collections.abc import Iterator, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from cqlmapx.iterx import Iterx, RowSource
from cqlmapx.migrate.callback import CallbackEvent, CallbackFunc
from cqlmapx.migrate.checksum import checksum, file_checksum

INFO_SCHEMA = """CREATE TABLE IF NOT EXISTS gocqlx_migrate (
	name text,
	checksum text,
	done int,
	start_time timestamp,
	end_time timestamp,
	PRIMARY KEY(name)
)"""

SELECT_INFO = "SELECT * FROM gocqlx_migrate"

INSERT_INFO = (
    "INSERT INTO gocqlx_migrate (name,checksum,done,start_time,end_time) "
    "VALUES (?,?,?,?,?) "
)


class Session(Protocol):
    """What migrations need from a database session."""

    def execute(self, statement: str, values: Sequence[Any] = ()) -> None: ...

    def query(self, statement: str) -> RowSource: ...

    def await_schema_agreement(self) -> None: ...


class AwaitSchemaAgreement(enum.Enum):
    """When to wait for cluster schema agreement during migration.

    Agreement is always awaited once after all migrations have run.
    """

    DISABLED = 0
    BEFORE_EACH_FILE = 1
    BEFORE_EACH_STATEMENT = 2

    def should_await(self, stage: AwaitSchemaAgreement) -> bool:
        """Return whether agreement is awaited at ``stage``."""
        return self is stage


DEFAULT_AWAIT_SCHEMA_AGREEMENT = AwaitSchemaAgreement.DISABLED


class MigrationError(Exception):
    """Raised when migrations cannot be listed, verified or applied."""


@dataclasses.dataclass
class Info:
    """A migration recorded in the database."""

    name: str = ""
    checksum: str = ""
    done: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None


_CALLBACK_RE = re.compile(r"-- *CALL +(.+);")


def is_callback(stmt: str) -> str:
    """Return the name in a ``-- CALL <name>;`` comment, or an empty string."""
    match = _CALLBACK_RE.fullmatch(stmt)
    return match.group(1) if match else ""


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _as_root(root: Any) -> Any:
    if isinstance(root, (str, os.PathLike)):
        return Path(root)
    return root


def list_migrations(session: Session) -> list[Info]:
    """Return applied migrations sorted by name, creating the info table if needed."""
    session.execute(INFO_SCHEMA)
    infos = Iterx(session.query(SELECT_INFO)).select(Info)
    infos.sort(key=lambda info: info.name)
    return infos


def migrate(
    session: Session,
    directory: str | os.PathLike[str],
    callback: CallbackFunc | None = None,
    await_schema_agreement: AwaitSchemaAgreement | None = None,
) -> None:
    """Apply migrations from a directory on disk; see from_fs."""
    from_fs(session, Path(directory), callback, await_schema_agreement)


def from_fs(
    session: Session,
    root: Any,
    callback: CallbackFunc | None = None,
    await_schema_agreement: AwaitSchemaAgreement | None = None,
) -> None:
    """Apply new ``*.cql`` files found directly under ``root``.

    ``root`` is a directory path or a traversable object. Already applied
    migrations must match the files by name and checksum. ``callback`` is
    called as ``callback(session, event, name)`` around each file and for
    each ``-- CALL <name>;`` comment.
    """
    root = _as_root(root)
    stage = await_schema_agreement or DEFAULT_AWAIT_SCHEMA_AGREEMENT

    try:
        applied = list_migrations(session)
    except Exception as err:
        raise MigrationError(f"list migrations: {err}") from err

    try:
        files = sorted(
            entry.name
            for entry in root.iterdir()
            if entry.is_file() and fnmatch.fnmatchcase(entry.name, "*.cql")
        )
    except OSError as err:
        raise MigrationError(f"list migrations: {err}") from err
    if not files:
        raise MigrationError("no migration files found")

    if len(applied) > len(files):
        raise MigrationError("database is ahead")

    for info, name in zip(applied, files):
        if info.name != name:
            raise MigrationError("inconsistent migrations")
        try:
            digest = file_checksum(root, name)
        except OSError as err:
            raise MigrationError(f"calculate checksum for {_quote(name)}: {err}") from err
        if info.checksum != digest:
            raise MigrationError(
                f"file {_quote(name)} was tempered with, expected md5 {info.checksum}"
            )

    pending: list[tuple[str, int]] = []
    if applied:
        pending.append((files[len(applied) - 1], applied[-1].done))
    pending.extend((name, 0) for name in files[len(applied):])

    for name, done in pending:
        try:
            _apply_migration(session, root, name, done, callback, stage)
        except Exception as err:
            raise MigrationError(f"apply migration {_quote(name)}: {err}") from err

    try:
        session.await_schema_agreement()
    except Exception as err:
        raise MigrationError(f"awaiting schema agreement: {err}") from err


def _split_statements(text: str) -> Iterator[str]:
    """Yield statements each ending with ``;``; a final one may lack it."""
    *complete, tail = text.split(";")
    for part in complete:
        yield part + ";"
    if tail.strip():
        yield tail


def _await(session: Session) -> None:
    try:
        session.await_schema_agreement()
    except Exception as err:
        raise MigrationError(f"awaiting schema agreement: {err}") from err


def _apply_migration(
    session: Session,
    root: Any,
    path: str,
    done: int,
    callback: CallbackFunc | None,
    stage: AwaitSchemaAgreement,
) -> None:
    data = root.joinpath(path).read_bytes()
    info = Info(
        name=Path(path).name,
        checksum=checksum(data),
        start_time=datetime.now(timezone.utc),
    )

    if stage.should_await(AwaitSchemaAgreement.BEFORE_EACH_FILE):
        _await(session)

    i = 0
    for stmt in _split_statements(data.decode("utf-8")):
        i += 1
        if i <= done:
            continue

        if callback is not None and i == 1:
            try:
                callback(session, CallbackEvent.BEFORE_MIGRATION, info.name)
            except Exception as err:
                raise MigrationError(f"before migration callback: {err}") from err

        if stage.should_await(AwaitSchemaAgreement.BEFORE_EACH_STATEMENT):
            _await(session)

        stmt = stmt.strip()
        name = is_callback(stmt)
        if name:
            if callback is None:
                raise MigrationError(
                    f"statement {i}: missing callback handler while trying to call {name}"
                )
            try:
                callback(session, CallbackEvent.CALL_COMMENT, name)
            except Exception as err:
                raise MigrationError(f"callback {name}: {err}") from err
        else:
            try:
                session.execute(stmt)
            except Exception as err:
                raise MigrationError(f"statement {i}: {err}") from err

        info.done = i
        info.end_time = datetime.now(timezone.utc)
        try:
            session.execute(
                INSERT_INFO,
                (info.name, info.checksum, info.done, info.start_time, info.end_time),
            )
        except Exception as err:
            raise MigrationError(f"migration statement {i}: {err}") from err

    if i == 0:
        raise MigrationError(f"no migration statements found in {_quote(info.name)}")

    if callback is not None and i > done:
        try:
            callback(session, CallbackEvent.AFTER_MIGRATION, info.name)
        except Exception as err:
            raise MigrationError(f"after migration callback: {err}") from err