"""Loading query results into pandas DataFrames and saving DataFrames to SQLite."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from typing import Any, Callable

import pandas as pd
from pandas.api.types import infer_dtype

from polite.db import connect_sqlite
from polite.errors import (
    ConnectError,
    FetchError,
    LoadError,
    PoliteError,
    QueryError,
    QueryNotSupportedError,
    SaveError,
    SqliteError,
)
from polite.schema import schema_from_sqlite
from polite.source_router import SourceConn
from polite.sql import CXQuery
from polite.sqlite_source import SQLiteSource
from polite.typesystem import ArrowType, to_arrow_type

_SQLITE_PREFIX = "sqlite://"
_CONNECTION = "<connection>"


def _save_err(table: str, exc: BaseException) -> SaveError:
    return SaveError(_CONNECTION, table, SqliteError(exc))


def _column(arrow_type: ArrowType, values: list[Any]) -> pd.Series:
    has_null = any(value is None for value in values)
    if arrow_type is ArrowType.INT64:
        return pd.Series(values, dtype="Int64" if has_null else "int64")
    if arrow_type is ArrowType.BOOLEAN:
        return pd.Series(values, dtype="boolean" if has_null else "bool")
    if arrow_type is ArrowType.FLOAT64:
        return pd.Series(values, dtype="float64")
    if arrow_type is ArrowType.DATE64:
        return pd.Series(values, dtype="datetime64[ns]")
    return pd.Series(values, dtype="object")


def _fetch(source_conn: SourceConn, sql: str) -> tuple[list[str], list[ArrowType], list[tuple]]:
    queries = [CXQuery.naked(sql)]
    source = SQLiteSource(source_conn.conn[len(_SQLITE_PREFIX):], len(queries))
    source.set_queries(queries)
    source.set_origin_query(None)
    source.fetch_metadata()
    names = source.names()
    arrow_types = [to_arrow_type(t) for t in source.schema()]
    rows: list[tuple] = []
    partitions = source.partitions()
    try:
        for part in partitions:
            rows.extend(part.rows())
    finally:
        for part in partitions:
            part.close()
    return names, arrow_types, rows


def to_dataframe(db_path: str, sql: str) -> pd.DataFrame:
    """Run a query on a SQLite file and return its result as a DataFrame."""
    try:
        preflight = sqlite3.connect(db_path)
    except sqlite3.Error as exc:
        raise ConnectError(db_path, exc) from exc

    with closing(preflight):
        # Compile the query without running it, to report bad SQL early.
        try:
            preflight.execute(f"EXPLAIN {sql}").fetchall()
        except (sqlite3.Error, sqlite3.Warning) as exc:
            raise QueryError(db_path, QueryNotSupportedError(str(exc))) from exc

        try:
            source_conn = SourceConn.from_url(f"{_SQLITE_PREFIX}{db_path}")
        except PoliteError as exc:
            raise QueryError(db_path, exc) from exc

        try:
            names, arrow_types, rows = _fetch(source_conn, sql)
        except PoliteError as exc:
            raise FetchError(db_path, exc) from exc

        if not rows or not names:
            schema = schema_from_sqlite(preflight, sql)
            return pd.DataFrame(
                {name: pd.Series([], dtype=dtype) for name, dtype in schema.items()}
            )

    columns = [list(values) for values in zip(*rows)]
    frame = pd.DataFrame(
        {i: _column(t, values) for i, (t, values) in enumerate(zip(arrow_types, columns))}
    )
    frame.columns = names
    return frame


def _nullable(convert: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def read(value: Any) -> Any:
        return None if pd.isna(value) else convert(value)

    return read


def _column_rule(series: pd.Series) -> tuple[str, Callable[[Any], Any]]:
    dtype = str(series.dtype)
    if dtype in ("int64", "Int64"):
        return "INTEGER", _nullable(int)
    if dtype in ("float64", "Float64"):
        return "REAL", _nullable(float)
    if dtype in ("object", "string") and infer_dtype(series, skipna=True) == "string":
        return "TEXT", _nullable(str)
    return "TEXT", lambda value: None


def from_dataframe(conn: sqlite3.Connection, table: str, df: pd.DataFrame) -> None:
    """Insert the rows of a DataFrame into a table, creating it if it does not exist."""
    rules = [(str(name), _column_rule(series)) for name, series in df.items()]
    cols_sql = ", ".join(f"{name} {sql_type}" for name, (sql_type, _) in rules)
    create_stmt = f"CREATE TABLE IF NOT EXISTS {table} ({cols_sql})"
    placeholders = ", ".join("?" for _ in rules)
    insert_stmt = f"INSERT INTO {table} VALUES ({placeholders})"

    converted = [
        [convert(value) for value in series.tolist()]
        for (_, (_, convert)), (_, series) in zip(rules, df.items())
    ]
    rows = list(zip(*converted)) if converted else []

    try:
        conn.execute(create_stmt)
    except (sqlite3.Error, sqlite3.Warning) as exc:
        raise _save_err(table, exc) from exc
    try:
        with conn:
            for row in rows:
                conn.execute(insert_stmt, row)
            if not rows:
                # Still check that the insert statement compiles.
                conn.execute(f"EXPLAIN {insert_stmt}", [None] * len(rules)).fetchall()
    except (sqlite3.Error, sqlite3.Warning) as exc:
        raise _save_err(table, exc) from exc


def load_dataframe(db_path: str, sql: str) -> pd.DataFrame:
    """Load a query's result as a DataFrame, reporting failures as ``LoadError``."""
    try:
        return to_dataframe(db_path, sql)
    except PoliteError as exc:
        raise LoadError(db_path, exc) from exc


def save_dataframe(db_path: str, table_name: str, df: pd.DataFrame) -> None:
    """Save a DataFrame to a table in a SQLite file, creating file and table as needed."""
    conn = connect_sqlite(db_path)
    with closing(conn):
        try:
            from_dataframe(conn, table_name, df)
        except PoliteError as exc:
            raise SaveError(db_path, table_name, exc) from exc