"""DataFrame column dtypes derived from the declared types of a query's columns."""

from __future__ import annotations

import sqlite3
import uuid

from polite.errors import SqliteError

_STRING_DTYPE = "object"
_DTYPES = {
    "INTEGER": "int64",
    "REAL": "float64",
    "TEXT": _STRING_DTYPE,
}


def _query_body(sql: str) -> str:
    return sql.strip().rstrip(";").strip()


def column_decl_types(conn: sqlite3.Connection, sql: str) -> list[str | None]:
    """Declared type of each result column of a query, ``None`` where there is none.

    The query is not run: it is only compiled into a temporary view whose
    column information is read back.
    """
    view = f"_polite_schema_{uuid.uuid4().hex}"
    try:
        conn.execute(f'CREATE TEMP VIEW "{view}" AS {_query_body(sql)}')
    except (sqlite3.Error, sqlite3.Warning) as exc:
        raise SqliteError(exc) from exc
    try:
        info = conn.execute(f'PRAGMA temp.table_info("{view}")').fetchall()
    except sqlite3.Error as exc:
        raise SqliteError(exc) from exc
    finally:
        conn.execute(f'DROP VIEW IF EXISTS temp."{view}"')
    return [row[2] or None for row in info]


def schema_from_sqlite(conn: sqlite3.Connection, sql: str) -> dict[str, str]:
    """Map each result column of a query to a pandas dtype name.

    Only the declared types ``INTEGER`` and ``REAL`` give numeric dtypes;
    everything else, including columns without a declared type, is a string.
    """
    decls = column_decl_types(conn, sql)
    try:
        cursor = conn.execute(sql)
    except (sqlite3.Error, sqlite3.Warning) as exc:
        raise SqliteError(exc) from exc
    try:
        names = [column[0] for column in cursor.description or ()]
    finally:
        cursor.close()
    if len(decls) != len(names):
        decls = [None] * len(names)
    return {
        name: _DTYPES.get(decl, _STRING_DTYPE) if decl is not None else _STRING_DTYPE
        for name, decl in zip(names, decls)
    }