import sqlite3
from contextlib import closing
from datetime import date

import pytest

from polite.errors import InferTypeFromNullError, SQLiteSourceError
from polite.sql import CXQuery
from polite.sqlite_source import SQLiteSource, SQLiteSourcePartition
from polite.typesystem import SQLiteType

ROWS = [(1, "Alice", 1.5), (2, "Bob", 2.5), (3, "Carol", 3.5)]


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "data.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.execute("CREATE TABLE t (id INTEGER, name TEXT, score REAL)")
        conn.executemany("INSERT INTO t VALUES (?, ?, ?)", ROWS)
        conn.commit()
    return str(path)


def _source(path, queries, nconn=4):
    source = SQLiteSource(path, nconn)
    source.set_queries(queries)
    return source


def test_metadata_from_declared_types(db_path):
    source = _source(db_path, ["SELECT * FROM t"])
    source.fetch_metadata()
    assert source.names() == ["id", "name", "score"]
    assert source.schema() == [SQLiteType.INT8, SQLiteType.TEXT, SQLiteType.REAL]


def test_empty_result_gives_text_schema(db_path):
    source = _source(db_path, ["SELECT * FROM t WHERE id > 100"])
    source.fetch_metadata()
    assert source.names() == ["id", "name", "score"]
    assert source.schema() == [SQLiteType.TEXT] * 3


def test_null_only_column_cannot_be_inferred(tmp_path):
    path = tmp_path / "u.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.execute("CREATE TABLE u (v)")
        conn.execute("INSERT INTO u VALUES (NULL)")
        conn.commit()
    source = _source(str(path), ["SELECT v FROM u"])
    with pytest.raises(InferTypeFromNullError):
        source.fetch_metadata()


def test_null_type_filled_from_later_query(tmp_path):
    path = tmp_path / "u.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.execute("CREATE TABLE u (k INTEGER, v)")
        conn.executemany("INSERT INTO u VALUES (?, ?)", [(1, None), (2, 7)])
        conn.commit()
    source = _source(str(path), ["SELECT v FROM u WHERE k = 1", "SELECT v FROM u WHERE k = 2"])
    source.fetch_metadata()
    assert source.names() == ["v"]
    assert source.schema() == [SQLiteType.INT8]


def test_fetch_metadata_requires_queries(db_path):
    source = SQLiteSource(db_path, 1)
    with pytest.raises(ValueError):
        source.fetch_metadata()


def test_bad_query_raises(db_path):
    source = _source(db_path, ["SELECT * FROM missing_table"])
    with pytest.raises(SQLiteSourceError):
        source.fetch_metadata()


def test_result_rows_with_origin_query(db_path):
    source = _source(db_path, ["SELECT * FROM t"])
    source.set_origin_query("SELECT * FROM t")
    assert source.result_rows() == len(ROWS)


def test_result_rows_without_origin_query(db_path):
    source = _source(db_path, ["SELECT * FROM t"])
    assert source.result_rows() is None


def test_partition_reads_rows(db_path):
    source = _source(db_path, ["SELECT * FROM t"])
    source.fetch_metadata()
    partitions = source.partitions()
    assert len(partitions) == 1
    with partitions[0] as part:
        part.result_rows()
        assert part.nrows() == len(ROWS)
        assert part.ncols() == 3
        assert list(part.rows()) == ROWS


def test_partitions_cover_all_rows(db_path):
    queries = ["SELECT * FROM t WHERE id < 2", CXQuery.naked("SELECT * FROM t WHERE id >= 2")]
    source = _source(db_path, queries, nconn=2)
    source.fetch_metadata()
    collected = []
    for part in source.partitions():
        with part:
            collected.extend(part.rows())
    assert sorted(collected) == ROWS


def test_partitions_exceeding_pool_raise(db_path):
    source = _source(db_path, ["SELECT * FROM t", "SELECT * FROM t"], nconn=1)
    source.fetch_metadata()
    with pytest.raises(SQLiteSourceError):
        source.partitions()


def test_zero_pool_size_rejected(db_path):
    with pytest.raises(SQLiteSourceError):
        SQLiteSource(db_path, 0)


def test_percent_encoded_path(tmp_path):
    path = tmp_path / "my db.sqlite"
    with closing(sqlite3.connect(path)) as conn:
        conn.execute("CREATE TABLE t (id INTEGER)")
        conn.execute("INSERT INTO t VALUES (5)")
        conn.commit()
    source = _source(str(tmp_path / "my%20db.sqlite"), ["SELECT id FROM t"])
    source.fetch_metadata()
    (part,) = source.partitions()
    with part:
        assert list(part.rows()) == [(5,)]


def test_rows_converted_by_declared_type(tmp_path):
    path = tmp_path / "typed.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.execute("CREATE TABLE e (flag BOOLEAN, day DATE)")
        conn.execute("INSERT INTO e VALUES (1, '2024-01-02')")
        conn.commit()
    source = _source(str(path), ["SELECT flag, day FROM e"])
    source.fetch_metadata()
    assert source.schema() == [SQLiteType.BOOL, SQLiteType.DATE]
    (part,) = source.partitions()
    with part:
        assert list(part.rows()) == [(True, date(2024, 1, 2))]


def test_partition_built_directly(db_path):
    conn = sqlite3.connect(db_path)
    with SQLiteSourcePartition(conn, "SELECT name FROM t WHERE id = 2", [SQLiteType.TEXT]) as part:
        part.result_rows()
        assert part.nrows() == 1
        assert list(part.rows()) == [("Bob",)]