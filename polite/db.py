"""Opening SQLite connections and running statements on them."""

from __future__ import annotations

import sqlite3

from polite.errors import ConnectError, ExecError

_RETURNED_RESULTS = "Execute returned results - did you mean to call query?"


def connect_sqlite(path: str | None = None) -> sqlite3.Connection:
    """Open a SQLite database in autocommit mode, in memory when no path is given."""
    db_path = ":memory:" if path is None else str(path)
    try:
        return sqlite3.connect(db_path, isolation_level=None)
    except sqlite3.Error as exc:
        raise ConnectError(db_path, exc) from exc


def execute_query(conn: sqlite3.Connection, sql: str) -> int:
    """Run one statement that returns no rows; give the number of rows changed."""
    try:
        cursor = conn.execute(sql)
    except (sqlite3.Error, sqlite3.Warning) as exc:
        raise ExecError(sql, exc) from exc
    if cursor.description is not None:
        raise ExecError(sql, _RETURNED_RESULTS)
    return max(cursor.rowcount, 0)