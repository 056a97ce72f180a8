import dataclasses

import pytest

from cqlmapx import iterx
from cqlmapx.iterx import Iterx, NotFoundError


class FakeSource:
    def __init__(self, columns, rows, error=None):
        self.columns = list(columns)
        self._rows = list(rows)
        self.error = error
        self.closed = False

    def __iter__(self):
        return iter(self._rows)

    def close(self):
        self.closed = True
        if self.error is not None:
            raise self.error


@dataclasses.dataclass
class FullName:
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_cql(cls, data):
        first, last = data.split(" ", 1)
        return cls(first, last)


@dataclasses.dataclass
class StructTable:
    testuuid: str = ""
    testvarchar: str = ""
    testint: int = 0
    testlist: list = dataclasses.field(default_factory=list)
    testcustom: FullName = dataclasses.field(default_factory=FullName)


STRUCT_COLUMNS = ["testuuid", "testvarchar", "testint", "testlist", "testcustom"]
STRUCT_ROW = ("uuid-1", "Test VarChar", 2343, ["quux", "foo", "bar", "baz", "quux"], "John Doe")
EXPECTED = StructTable(
    testuuid="uuid-1",
    testvarchar="Test VarChar",
    testint=2343,
    testlist=["quux", "foo", "bar", "baz", "quux"],
    testcustom=FullName("John", "Doe"),
)


def struct_iter():
    return Iterx(FakeSource(STRUCT_COLUMNS, [STRUCT_ROW]))


def test_struct_get():
    assert struct_iter().get(StructTable) == EXPECTED


def test_struct_select():
    assert struct_iter().select(StructTable) == [EXPECTED]


def test_struct_scan():
    it = struct_iter()
    v = StructTable()
    n = 0
    while it.struct_scan(v):
        n += 1
    it.close()
    assert n == 1
    assert v == EXPECTED


def test_scannable_get_and_select():
    rows = [("John Doe",)]
    assert Iterx(FakeSource(["testfullname"], rows)).get(FullName) == FullName("John", "Doe")
    assert Iterx(FakeSource(["testfullname"], rows)).select(FullName) == [FullName("John", "Doe")]


def test_scalar_get():
    assert Iterx(FakeSource(["release_version"], [("5.0",)])).get(str) == "5.0"


NAME_COLUMNS = ["first_name", "last_name"]


def test_struct_only_get_and_select():
    rows = [("John", "Doe")]
    got = Iterx(FakeSource(NAME_COLUMNS, rows)).struct_only().get(FullName)
    assert got == FullName("John", "Doe")
    selected = Iterx(FakeSource(NAME_COLUMNS, rows)).struct_only().select(FullName)
    assert selected == [FullName("John", "Doe")]


def test_get_without_struct_only_gives_column_error():
    it = Iterx(FakeSource(NAME_COLUMNS, [("John", "Doe")]))
    with pytest.raises(ValueError, match=r"^expected 1 column in result"):
        it.get(FullName)


def test_select_without_struct_only_gives_column_error():
    it = Iterx(FakeSource(NAME_COLUMNS, [("John", "Doe")]))
    with pytest.raises(ValueError, match=r"^expected 1 column in result"):
        it.select(FullName)


def test_struct_only_rejects_non_struct():
    it = Iterx(FakeSource(["x"], [(1,)])).struct_only()
    with pytest.raises(TypeError, match="expected a struct but got int"):
        it.get(int)


@dataclasses.dataclass
class UnsafeTable:
    testtext: str = ""


UNSAFE_COLUMNS = ["testtext", "testtextunbound"]
UNSAFE_ROWS = [("test", "test")]
GOLDEN = 'missing destination name "testtextunbound" in UnsafeTable'


def test_unsafe_get_error():
    with pytest.raises(ValueError) as exc:
        Iterx(FakeSource(UNSAFE_COLUMNS, UNSAFE_ROWS)).get(UnsafeTable)
    assert str(exc.value).startswith(GOLDEN)


def test_unsafe_select_error_closes():
    source = FakeSource(UNSAFE_COLUMNS, UNSAFE_ROWS)
    with pytest.raises(ValueError) as exc:
        Iterx(source).select(UnsafeTable)
    assert str(exc.value).startswith(GOLDEN)
    assert source.closed


def test_get_unsafe():
    got = Iterx(FakeSource(UNSAFE_COLUMNS, UNSAFE_ROWS)).unsafe().get(UnsafeTable)
    assert got == UnsafeTable("test")


def test_select_unsafe():
    got = Iterx(FakeSource(UNSAFE_COLUMNS, UNSAFE_ROWS)).unsafe().select(UnsafeTable)
    assert got == [UnsafeTable("test")]


def test_select_default_unsafe(monkeypatch):
    monkeypatch.setattr(iterx, "DEFAULT_UNSAFE", True)
    got = Iterx(FakeSource(UNSAFE_COLUMNS, UNSAFE_ROWS)).select(UnsafeTable)
    assert got == [UnsafeTable("test")]


def test_get_cql_error():
    source = FakeSource(["testtext"], [], error=RuntimeError("line 1:36 no viable alternative at input 'WRONG'"))
    with pytest.raises(RuntimeError, match="WRONG"):
        Iterx(source).get(UnsafeTable)


def test_select_cql_error():
    source = FakeSource(["testtext"], [], error=RuntimeError("syntax error near WRONG"))
    with pytest.raises(RuntimeError, match="WRONG"):
        Iterx(source).select(UnsafeTable)


def test_get_not_found():
    with pytest.raises(NotFoundError):
        Iterx(FakeSource(["testtext"], [])).get(UnsafeTable)


def test_select_empty():
    assert Iterx(FakeSource(["testtext"], [])).select(UnsafeTable) == []


def test_get_none_destination():
    with pytest.raises(TypeError, match="got None"):
        Iterx(FakeSource(["testtext"], [])).get(None)


def test_select_none_destination():
    with pytest.raises(TypeError, match="got None"):
        Iterx(FakeSource(["testtext"], [])).select(None)


def test_struct_scan_none():
    with pytest.raises(TypeError, match="got None"):
        Iterx(FakeSource(["testtext"], [])).struct_scan(None)


@dataclasses.dataclass
class Paging:
    id: int = 0
    val: int = 0


def test_paging_struct_scan_counts_rows():
    rows = [(i, i) for i in range(100)]
    it = Iterx(FakeSource(["id", "val"], rows))
    count = 0
    while it.struct_scan(Paging()):
        count += 1
    assert count == 100
    assert it.num_rows == 100


@dataclasses.dataclass
class Salary:
    id: int = 0
    salary: int = 0


def test_cas_applied_column_is_read():
    it = Iterx(FakeSource(["[applied]", "id", "salary"], [(True, 0, 1000)]))
    got = it.get(Salary)
    assert it.applied is True
    assert got == Salary(0, 1000)


def test_cas_not_applied():
    it = Iterx(FakeSource(["[applied]", "id", "salary"], [(False, 0, 2000)]))
    assert it.get(Salary) == Salary(0, 2000)
    assert it.applied is False


def test_scan_and_iteration():
    rows = [(1, "a"), (2, "b")]
    it = Iterx(FakeSource(["k", "v"], rows))
    assert it.scan() == (1, "a")
    assert list(it) == [(2, "b")]
    assert it.scan() is None


def test_context_manager_closes():
    source = FakeSource(["k"], [(1,)])
    with Iterx(source) as it:
        assert it.columns == ["k"]
    assert source.closed


def test_iter_rows_helper():
    assert iterx.iter_rows([(1, 2)], ["id", "val"]).get(Paging) == Paging(1, 2)