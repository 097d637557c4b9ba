"""Reading query results from a SQLite database file."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import closing
from typing import Any, Iterable, Iterator, Sequence
from urllib.parse import unquote

from polite.errors import InferTypeFromNullError, SQLiteSourceError
from polite.sql import CXQuery, count_query, limit1_query
from polite.typesystem import SQLiteType, convert_value, type_from_decl

_NO_ROWS = "Query returned no rows"
_BYTES = (bytes, bytearray, memoryview)


class _NoRows(Exception):
    """A single-row query produced no row."""


def _as_query(query: CXQuery | str) -> CXQuery:
    return query if isinstance(query, CXQuery) else CXQuery.naked(query)


def _wrap_sqlite(exc: BaseException) -> SQLiteSourceError:
    error = SQLiteSourceError(str(exc))
    error.__cause__ = exc
    return error


def _first_row(conn: sqlite3.Connection, sql: str) -> tuple[tuple[Any, ...], list[str]]:
    cursor = conn.execute(sql)
    if cursor.description is None:
        raise _NoRows(_NO_ROWS)
    row = cursor.fetchone()
    if row is None:
        raise _NoRows(_NO_ROWS)
    return row, [column[0] for column in cursor.description]


def _count(conn: sqlite3.Connection, sql: str) -> int:
    try:
        row, _ = _first_row(conn, sql)
    except _NoRows as exc:
        raise SQLiteSourceError(str(exc)) from exc
    except sqlite3.Error as exc:
        raise _wrap_sqlite(exc) from exc
    return int(row[0])


def _declared_types(conn: sqlite3.Connection, sql: str, ncols: int) -> list[str | None]:
    """Declared column types of a query's result, ``None`` where there is none."""
    unknown: list[str | None] = [None] * ncols
    view = f"_polite_meta_{uuid.uuid4().hex}"
    try:
        conn.execute(f'CREATE TEMP VIEW "{view}" AS {sql}')
    except sqlite3.Error:
        return unknown
    try:
        info = conn.execute(f'PRAGMA temp.table_info("{view}")').fetchall()
    except sqlite3.Error:
        return unknown
    finally:
        conn.execute(f'DROP VIEW IF EXISTS temp."{view}"')
    decls = [row[2] or None for row in info]
    return decls if len(decls) == ncols else unknown


def _infer(decl: str | None, value: Any) -> SQLiteType | None:
    # Columns without a declared type are reported as BLOB by views; only
    # trust that when the value really is a blob.
    if decl is not None and decl.upper() == "BLOB" and not isinstance(value, _BYTES):
        decl = None
    try:
        return type_from_decl(decl, value)
    except SQLiteSourceError:
        return None


class SQLiteSource:
    """A SQLite database file together with the queries to read from it."""

    def __init__(self, conn: str, nconn: int):
        try:
            self._path = unquote(conn, errors="strict")
        except UnicodeDecodeError as exc:
            raise _wrap_sqlite(exc) from exc
        if nconn < 1:
            raise SQLiteSourceError("connection pool size must be at least 1")
        self._nconn = nconn
        with closing(self._connect()):
            pass
        self._origin_query: str | None = None
        self._queries: list[CXQuery] = []
        self._names: list[str] = []
        self._schema: list[SQLiteType] = []

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self._path, isolation_level=None, check_same_thread=False)
        except sqlite3.Error as exc:
            raise _wrap_sqlite(exc) from exc

    def set_queries(self, queries: Iterable[CXQuery | str]) -> None:
        self._queries = [_as_query(query) for query in queries]

    def set_origin_query(self, query: str | None) -> None:
        self._origin_query = query

    def fetch_metadata(self) -> None:
        """Work out column names and types from the first row of the queries."""
        if not self._queries:
            raise ValueError("no queries have been set")
        names: list[str] = []
        types: list[SQLiteType | None] = []
        num_empty = 0
        last = len(self._queries) - 1

        with closing(self._connect()) as conn:
            # All partition queries are assumed to yield the same schema.
            for i, query in enumerate(self._queries):
                l1query = limit1_query(query).sql
                try:
                    row, columns = _first_row(conn, l1query)
                except (_NoRows, sqlite3.Error) as exc:
                    if isinstance(exc, _NoRows):
                        num_empty += 1
                    if i == last and num_empty < len(self._queries):
                        raise _wrap_sqlite(exc) from exc
                    continue

                decls = _declared_types(conn, l1query, len(columns))
                for j, (name, decl, value) in enumerate(zip(columns, decls, row)):
                    if j >= len(names):
                        names.append(name)
                    if j >= len(types):
                        types.append(_infer(decl, value))
                    elif types[j] is None:
                        types[j] = _infer(decl, value)

                if None not in types:
                    self._names = names
                    self._schema = [t for t in types if t is not None]
                    return
                if i == last:
                    raise InferTypeFromNullError()

            # Every query returned an empty result: take names only, all as text.
            try:
                cursor = conn.execute(self._queries[0].sql)
            except sqlite3.Error as exc:
                raise _wrap_sqlite(exc) from exc
            description = cursor.description or ()
            self._names = [column[0] for column in description]
            self._schema = [SQLiteType.TEXT] * len(self._names)

    def result_rows(self) -> int | None:
        """Total row count of the origin query, or ``None`` without one."""
        if self._origin_query is None:
            return None
        sql = count_query(CXQuery.naked(self._origin_query)).sql
        with closing(self._connect()) as conn:
            return _count(conn, sql)

    def names(self) -> list[str]:
        return list(self._names)

    def schema(self) -> list[SQLiteType]:
        return list(self._schema)

    def partitions(self) -> list[SQLiteSourcePartition]:
        """One partition, with its own connection, for each query."""
        if len(self._queries) > self._nconn:
            raise SQLiteSourceError(
                f"connection pool of size {self._nconn} cannot serve "
                f"{len(self._queries)} partitions"
            )
        return [
            SQLiteSourcePartition(self._connect(), query, self._schema)
            for query in self._queries
        ]


class SQLiteSourcePartition:
    """One query of a source, read over its own connection."""

    def __init__(self, conn: sqlite3.Connection, query: CXQuery | str, schema: Sequence[SQLiteType]):
        self._conn = conn
        self._query = _as_query(query)
        self._schema = list(schema)
        self._nrows = 0

    def result_rows(self) -> None:
        """Count the rows this partition's query returns."""
        self._nrows = _count(self._conn, count_query(self._query).sql)

    def nrows(self) -> int:
        return self._nrows

    def ncols(self) -> int:
        return len(self._schema)

    def rows(self) -> Iterator[tuple[Any, ...]]:
        """Yield each result row with values read as the schema's types."""
        try:
            cursor = self._conn.execute(self._query.sql)
        except sqlite3.Error as exc:
            raise _wrap_sqlite(exc) from exc
        while True:
            try:
                row = cursor.fetchone()
            except sqlite3.Error as exc:
                raise _wrap_sqlite(exc) from exc
            if row is None:
                return
            yield tuple(convert_value(t, v) for t, v in zip(self._schema, row))

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SQLiteSourcePartition:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()