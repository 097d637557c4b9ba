"""Splitting a query into ranges over an integer column."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from dataclasses import dataclass

from polite.errors import PoliteError, SqliteError
from polite.source_router import SourceConn, SourceType
from polite.sql import CXQuery, get_partition_range_query_sep, single_col_partition_query


@dataclass(frozen=True)
class PartitionQuery:
    """A query to split into ``num`` parts on ``column``, optionally within a range."""

    query: str
    column: str
    min: int | None
    max: int | None
    num: int


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


def partition(part: PartitionQuery, source_conn: SourceConn) -> list[CXQuery]:
    """Build one query per partition covering the column's whole range."""
    if part.num <= 0:
        raise ValueError("number of partitions must be positive")
    if part.min is None and part.max is None:
        low, high = get_col_range(source_conn, part.query, part.column)
    elif part.min is not None and part.max is not None:
        low, high = part.min, part.max
    else:
        raise PoliteError("partition_query range can not be partially specified")

    size = _trunc_div(high - low + 1, part.num)
    queries = []
    for i in range(part.num):
        lower = low + i * size
        upper = high + 1 if i == part.num - 1 else low + (i + 1) * size
        queries.append(get_part_query(source_conn, part.query, part.column, lower, upper))
    return queries


def get_col_range(source_conn: SourceConn, query: str, col: str) -> tuple[int, int]:
    """Find the minimum and maximum of ``col`` over the query's result."""
    if source_conn.ty is SourceType.SQLITE:
        return _sqlite_col_range(source_conn.path(), query, col)
    raise PoliteError(f"{source_conn.ty.name} sources are not supported")


def get_part_query(
    source_conn: SourceConn, query: str, col: str, lower: int, upper: int
) -> CXQuery:
    """Build the query for rows with ``lower <= col < upper``."""
    if source_conn.ty is not SourceType.SQLITE:
        raise PoliteError(f"{source_conn.ty.name} sources are not supported")
    return CXQuery.wrapped(single_col_partition_query(query, col, lower, upper))


def _range_value(value: object) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    raise PoliteError("Partition can only be done on integer columns")


def _sqlite_col_range(path: str, query: str, col: str) -> tuple[int, int]:
    # SQLite only optimises min/max when there is a single aggregate, hence two queries.
    min_query, max_query = get_partition_range_query_sep(query, col)
    try:
        with closing(sqlite3.connect(path)) as conn:
            min_row = conn.execute(min_query).fetchone()
            if min_row is None:
                raise SqliteError("Query returned no rows")
            low = _range_value(min_row[0])
            max_row = conn.execute(max_query).fetchone()
            if max_row is None:
                raise SqliteError("Query returned no rows")
            high = _range_value(max_row[0])
    except sqlite3.Error as exc:
        raise SqliteError(exc) from exc
    return low, high