# cqlmapx

Helpers for working with CQL databases from Python. The package has no
dependencies of its own. You supply the database session and the query
results.

- **Row mapping** (`cqlmapx.iterx`, `cqlmapx.mapper`). `Iterx` wraps a query
  result and scans its rows into dataclasses or single values.
- **Migrations** (`cqlmapx.migrate`). These apply `*.cql` files from a flat
  directory in name order. Progress and MD5 checksums are recorded in a
  `gocqlx_migrate` table.
- **Name helpers**. `camelize` (`cqlmapx.camelize`) turns `snake_case` into
  `CamelCase`. `camel_to_snake` (`cqlmapx.mapper`) goes the other way.

## Install

```
pip install cqlmapx
```

## Scanning rows

`Iterx(source, mapper=None)` accepts any result object with these parts:

- a `columns` sequence of column names;
- iteration over rows, where each row is a sequence of values;
- optionally, a `close()` method that raises any error from the query.

For in-memory data, `iter_rows(rows, columns)` builds such an iterator.

```python
from dataclasses import dataclass, field
from cqlmapx.iterx import Iterx, NotFoundError, iter_rows

@dataclass
class Person:
    first_name: str = ""
    last_name: str = ""
    email: str = field(default="", metadata={"db": "mail"})

rows = [("John", "Doe", "john@example.com")]
it = iter_rows(rows, ["first_name", "last_name", "mail"])
try:
    person = it.get(Person)        # first row, then the iterator is closed
except NotFoundError:
    person = None

people = iter_rows(rows, ["first_name", "last_name", "mail"]).select(Person)
```

### How columns are matched to fields

A `Mapper` matches columns to dataclass fields. `DEFAULT_MAPPER` works as
follows:

- It uses the field's `metadata["db"]` value when that value is set. Anything
  after a comma is ignored.
- Otherwise it uses `camel_to_snake(field_name)`.
- Fields whose names start with `_` are skipped, and so are fields tagged
  `"-"`.

`Mapper(tag, name_func)` builds a mapper with a different metadata key or
naming function. `type_map(cls)` and `traversals_by_name(cls, columns)` show
the mapping it would use.

### Single values and structs

`get`, `select` and `struct_scan` treat a destination type in one of two ways.

It is scanned as a **single value** when any of these holds:

- the type defines a `from_cql` classmethod, which is called with the column
  value;
- the type is not a dataclass;
- the type is a dataclass with no mapped fields.

A single value needs a result with exactly one column. Otherwise a
`ValueError` is raised ("expected 1 column in result ...").

Any other dataclass is filled **field by field**. A dataclass field whose
annotated type defines `from_cql` is converted through it.

### Iterator options and methods

- **Unmatched columns.** A result column with no matching field raises
  `ValueError` (`missing destination name "..."`). Call `.unsafe()` to ignore
  such columns, or set `cqlmapx.iterx.DEFAULT_UNSAFE = True` before creating
  iterators. Results whose first column is `[applied]` are never checked. For
  those results the column's value is stored in `it.applied`.
- **`.struct_only()`** maps a dataclass that defines `from_cql` field by field
  instead.
- **`struct_scan(dest)`** fills an existing dataclass instance from the next
  row. It returns `False` when no rows are left.
- **`scan()`** returns the next row as a tuple, or `None` at the end.
  Iterating over an `Iterx` yields the same tuples.
- **`close()`** closes the source. It is idempotent. `Iterx` is also a
  context manager.
- **`num_rows`** counts the rows read so far.

## Migrations

```python
from cqlmapx.migrate.migrate import migrate, list_migrations, AwaitSchemaAgreement
from cqlmapx.migrate.callback import CallbackRegister, CallbackEvent

register = CallbackRegister()
register.add(CallbackEvent.CALL_COMMENT, "seed", lambda session, ev, name: seed(session))

migrate(session, "cql/", callback=register)
for info in list_migrations(session):
    print(info.name, info.done, info.checksum)
```

### The session object

The `session` object must provide:

- `execute(statement, values=())`;
- `query(statement)`, which returns a result object as described under
  "Scanning rows";
- `await_schema_agreement()`.

### Functions

- `migrate(session, directory, callback=None, await_schema_agreement=None)`
  applies files from a directory on disk.
- `from_fs(...)` does the same for any path or traversable object with
  `iterdir()` and `joinpath()`.
- `list_migrations(session)` creates the info table if it is missing. It
  returns the applied migrations as `Info` records, sorted by name.

### How files are applied

- Only the `*.cql` files directly under the directory are used, sorted by
  name.
- Statements are separated by `;`. The last statement may omit it.
- A statement of the form `-- CALL <name>;` calls
  `callback(session, CallbackEvent.CALL_COMMENT, name)` instead of running
  anything. Without a callback, this raises an error. `is_callback(stmt)`
  returns the name, or `""` if the statement is not a call.
- `BEFORE_MIGRATION` and `AFTER_MIGRATION` callbacks run around each file that
  is applied.
- Progress is recorded after every statement. An interrupted file resumes
  after its last recorded statement.

### Errors

A failure raises `MigrationError` in any of these cases:

- there are no migration files;
- more migrations are recorded than there are files;
- names do not line up with the files;
- an applied file's checksum has changed ("was tempered with");
- a statement or callback fails.

### Callbacks and schema agreement

`CallbackRegister` is a callable callback that dispatches by event and name.
Events with no handler are ignored. The exception is `CALL_COMMENT`, which
raises `LookupError("missing handler")`.

Schema agreement is always awaited once at the end. Pass
`AwaitSchemaAgreement.BEFORE_EACH_FILE` or `BEFORE_EACH_STATEMENT` to also
await it earlier. `cqlmapx.migrate.migrate.DEFAULT_AWAIT_SCHEMA_AGREEMENT`
sets the default.

### Checksums

`checksum(data)` and `file_checksum(root, path)` in `cqlmapx.migrate.checksum`
return the hex MD5 digests stored in the table. `file_checksum` returns `""`
for a file it cannot open.

## What this package does not do

- It does not connect to a database. It has no driver, cluster configuration
  or session wrapper.
- It has no query builder, table models or named-parameter binding.
- It has no command-line tools. In particular, it cannot generate code from a
  keyspace schema. Only the `camelize` name helper is provided.

## Tests

```
pip install -e .[test]
pytest
```