"""Rewriting of user queries into count, limit, partition and range queries."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, NamedTuple

from polite.errors import QueryNotSupportedError

log = logging.getLogger(__name__)

COUNT_TMP_TAB_NAME = "CXTMPTAB_COUNT"
PART_TMP_TAB_NAME = "CXTMPTAB_PART"
RANGE_TMP_TAB_NAME = "CXTMPTAB_RANGE"


class QueryKind(enum.Enum):
    """Whether a query is the user's own text or already wrapped in a subquery."""

    NAKED = "naked"
    WRAPPED = "wrapped"


@dataclass(frozen=True)
class CXQuery:
    """A SQL query tagged with how it came about."""

    kind: QueryKind
    sql: str

    @classmethod
    def naked(cls, sql):
        return cls(QueryKind.NAKED, str(sql))

    @classmethod
    def wrapped(cls, sql):
        return cls(QueryKind.WRAPPED, str(sql))

    def map(self, func: Callable[[str], str]) -> CXQuery:
        return CXQuery(self.kind, func(self.sql))

    def __str__(self) -> str:
        return self.sql


class _ParseError(Exception):
    pass


class _Token(NamedTuple):
    kind: str
    text: str
    start: int
    end: int
    depth: int


_TOKEN_RE = re.compile(
    r"""
     (?P<ws>\s+)
    |(?P<line_comment>--[^\n]*)
    |(?P<block_comment>/\*.*?\*/)
    |(?P<string>'(?:[^']|'')*')
    |(?P<dquote>"(?:[^"]|"")*")
    |(?P<bquote>`(?:[^`]|``)*`)
    |(?P<bracket>\[[^\]]*\])
    |(?P<bad>/\*|['"`\[])
    |(?P<word>[A-Za-z_][A-Za-z0-9_$]*)
    |(?P<open>\()
    |(?P<close>\))
    |(?P<semi>;)
    |(?P<other>.)
    """,
    re.VERBOSE | re.DOTALL,
)

_NON_QUERY = frozenset(
    {
        "INSERT", "UPDATE", "DELETE", "CREATE", "DROP", "ALTER", "PRAGMA",
        "REPLACE", "ATTACH", "DETACH", "BEGIN", "COMMIT", "ROLLBACK", "END",
        "VACUUM", "ANALYZE", "EXPLAIN", "SAVEPOINT", "RELEASE", "REINDEX",
    }
)
_SET_OPERATORS = ("UNION", "INTERSECT", "EXCEPT")
_PROJECTION_END = ("FROM", "WHERE", "GROUP", "HAVING", "WINDOW")


def _is_word(token: _Token, *words: str) -> bool:
    return token.kind == "word" and token.text.upper() in words


def _tokenize(sql: str) -> list[_Token]:
    tokens: list[_Token] = []
    depth = 0
    for match in _TOKEN_RE.finditer(sql):
        kind = match.lastgroup
        if kind in ("ws", "line_comment", "block_comment"):
            continue
        if kind == "bad":
            raise _ParseError(f"unterminated token at offset {match.start()}")
        if kind == "open":
            tokens.append(_Token(kind, match.group(), match.start(), match.end(), depth))
            depth += 1
            continue
        if kind == "close":
            depth -= 1
            if depth < 0:
                raise _ParseError(f"unbalanced ')' at offset {match.start()}")
        tokens.append(_Token(kind, match.group(), match.start(), match.end(), depth))
    if depth:
        raise _ParseError("unbalanced parentheses")
    return tokens


def _split_statements(tokens: list[_Token]) -> list[list[_Token]]:
    statements: list[list[_Token]] = []
    current: list[_Token] = []
    for token in tokens:
        if token.kind == "semi" and token.depth == 0:
            if current:
                statements.append(current)
            current = []
        else:
            current.append(token)
    if current:
        statements.append(current)
    return statements


def _span(sql: str, first: _Token, last: _Token) -> str:
    return sql[first.start:last.end]


@dataclass(frozen=True)
class _Query:
    body: str
    is_select: bool
    select_head: str = ""
    projection: str = ""
    select_tail: str = ""
    with_clause: str | None = None
    order_by: str | None = None
    limit: str | None = None
    offset: str | None = None

    def render(self) -> str:
        if self.is_select:
            body = " ".join(p for p in (self.select_head, self.projection, self.select_tail) if p)
        else:
            body = self.body
        parts = [
            self.with_clause,
            body,
            f"ORDER BY {self.order_by}" if self.order_by else None,
            f"LIMIT {self.limit}" if self.limit else None,
            f"OFFSET {self.offset}" if self.offset else None,
        ]
        return " ".join(p for p in parts if p)


def _parse_query(sql: str, tokens: list[_Token]) -> _Query | None:
    head = tokens[0]
    word = head.text.upper() if head.kind == "word" else ""
    if word in _NON_QUERY:
        return None
    if word not in ("SELECT", "WITH", "VALUES"):
        raise _ParseError(f"unexpected token {head.text!r}")

    top = [t for t in tokens if t.depth == 0]
    with_clause = None
    start = 0
    if word == "WITH":
        found = next(
            (i for i, t in enumerate(top) if i > 0 and _is_word(t, "SELECT", "VALUES")),
            None,
        )
        if found is None or found < 2:
            raise _ParseError("WITH clause without a query body")
        start = found
        with_clause = _span(sql, top[0], top[start - 1])

    markers: list[tuple[int, str, int]] = []
    seen: set[str] = set()
    i = start
    while i < len(top):
        token = top[i]
        if _is_word(token, "ORDER") and i + 1 < len(top) and _is_word(top[i + 1], "BY"):
            name, skip = "order_by", 2
        elif _is_word(token, "LIMIT"):
            name, skip = "limit", 1
        elif _is_word(token, "OFFSET"):
            name, skip = "offset", 1
        else:
            i += 1
            continue
        if name in seen:
            raise _ParseError(f"duplicate {name} clause")
        seen.add(name)
        markers.append((i, name, i + skip))
        i += skip

    body_end = markers[0][0] if markers else len(top)
    body_tokens = top[start:body_end]
    if not body_tokens:
        raise _ParseError("empty query body")

    clauses: dict[str, str] = {}
    for n, (_, name, content) in enumerate(markers):
        stop = markers[n + 1][0] if n + 1 < len(markers) else len(top)
        if content >= stop:
            raise _ParseError(f"empty {name} clause")
        clauses[name] = _span(sql, top[content], top[stop - 1])

    body = _span(sql, body_tokens[0], body_tokens[-1])
    is_select = _is_word(body_tokens[0], "SELECT") and not any(
        _is_word(t, *_SET_OPERATORS) for t in body_tokens
    )
    select_parts = {}
    if is_select:
        j = 1
        if j < len(body_tokens) and _is_word(body_tokens[j], "DISTINCT", "ALL"):
            j += 1
        k = next(
            (m for m, t in enumerate(body_tokens[j:], start=j) if _is_word(t, *_PROJECTION_END)),
            len(body_tokens),
        )
        if k == j:
            raise _ParseError("empty projection")
        select_parts = {
            "select_head": _span(sql, body_tokens[0], body_tokens[j - 1]),
            "projection": _span(sql, body_tokens[j], body_tokens[k - 1]),
            "select_tail": _span(sql, body_tokens[k], body_tokens[-1]) if k < len(body_tokens) else "",
        }

    return _Query(body=body, is_select=is_select, with_clause=with_clause, **select_parts, **clauses)


def _parse(sql: str) -> list[_Query | None]:
    return [_parse_query(sql, toks) for toks in _split_statements(_tokenize(sql))]


def _single_query(statements: list[_Query | None], sql: str) -> _Query:
    if len(statements) != 1 or statements[0] is None:
        raise QueryNotSupportedError(sql)
    return statements[0]


def _wrap(query: _Query, projection: str, selection: str | None, alias: str) -> str:
    inner = replace(query, with_clause=None).render()
    parts = [query.with_clause, f"SELECT {projection} FROM ({inner})"]
    if alias:
        parts.append(f"AS {alias}")
    if selection:
        parts.append(f"WHERE {selection}")
    return " ".join(p for p in parts if p)


def _as_cxquery(sql) -> CXQuery:
    return sql if isinstance(sql, CXQuery) else CXQuery.naked(sql)


def count_query(sql) -> CXQuery:
    """Build a query that counts the rows the given query returns."""
    query = _as_cxquery(sql)
    text = query.sql
    log.debug("Incoming query: %s", text)
    try:
        statements = _parse(text)
    except _ParseError as exc:
        log.warning("parser error: %s, manually compose query string", exc)
        tsql = f"SELECT COUNT(*) FROM ({text}) as {COUNT_TMP_TAB_NAME}"
    else:
        parsed = _single_query(statements, text)
        if query.kind is QueryKind.NAKED:
            if parsed.offset is None:
                parsed = replace(parsed, order_by=None)
            if not parsed.is_select:
                raise QueryNotSupportedError(text)
            tsql = _wrap(parsed, "count(*)", None, COUNT_TMP_TAB_NAME)
        else:
            if not parsed.is_select:
                raise QueryNotSupportedError(text)
            tsql = replace(parsed, projection="count(*)").render()
    log.debug("Transformed count query: %s", tsql)
    return CXQuery.wrapped(tsql)


def limit1_query(sql) -> CXQuery:
    """Build a query returning at most the first row of the given query."""
    text = _as_cxquery(sql).sql
    log.debug("Incoming query: %s", text)
    try:
        statements = _parse(text)
    except _ParseError as exc:
        log.warning("parser error: %s, manually compose query string", exc)
        tsql = f"{text} LIMIT 1"
    else:
        tsql = replace(_single_query(statements, text), limit="1").render()
    log.debug("Transformed limit 1 query: %s", tsql)
    return CXQuery.wrapped(tsql)


def single_col_partition_query(sql: str, col: str, lower: int, upper: int) -> str:
    """Restrict a query to rows where ``lower <= col < upper``."""
    log.debug("Incoming query: %s", sql)
    try:
        statements = _parse(sql)
    except _ParseError as exc:
        log.warning("parser error: %s, manually compose query string", exc)
        tsql = (
            f"SELECT * FROM ({sql}) AS {PART_TMP_TAB_NAME} "
            f"WHERE {PART_TMP_TAB_NAME}.{col} >= {lower} AND {PART_TMP_TAB_NAME}.{col} < {upper}"
        )
    else:
        query = _single_query(statements, sql)
        if not query.is_select:
            raise QueryNotSupportedError(sql)
        if query.limit is None and query.order_by:
            query = replace(query, order_by=None)
        cid = f"{PART_TMP_TAB_NAME}.{col}"
        selection = f"{lower} <= {cid} AND {cid} < {upper}"
        tsql = _wrap(query, "*", selection, PART_TMP_TAB_NAME)
    log.debug("Transformed single column partition query: %s", tsql)
    return tsql


def get_partition_range_query(sql: str, col: str) -> str:
    """Build a query returning the minimum and maximum of ``col``."""
    log.debug("Incoming query: %s", sql)
    cid = f"{RANGE_TMP_TAB_NAME}.{col}"
    try:
        statements = _parse(sql)
    except _ParseError as exc:
        log.warning("parser error: %s, manually compose query string", exc)
        tsql = (
            f"SELECT MIN({cid}) as min, MAX({cid}) as max "
            f"FROM ({sql}) AS {RANGE_TMP_TAB_NAME}"
        )
    else:
        query = _single_query(statements, sql)
        if query.limit is None and query.offset is None:
            query = replace(query, order_by=None)
        tsql = _wrap(query, f"min({cid}), max({cid})", None, RANGE_TMP_TAB_NAME)
    log.debug("Transformed partition range query: %s", tsql)
    return tsql


def get_partition_range_query_sep(sql: str, col: str) -> tuple[str, str]:
    """Build separate queries for the minimum and the maximum of ``col``."""
    log.debug("Incoming query: %s", sql)
    cid = f"{RANGE_TMP_TAB_NAME}.{col}"
    try:
        statements = _parse(sql)
    except _ParseError as exc:
        log.warning("parser error: %s, manually compose query string", exc)
        sql_min = f"SELECT MIN({cid}) as min FROM ({sql}) AS {RANGE_TMP_TAB_NAME}"
        sql_max = f"SELECT MAX({cid}) as max FROM ({sql}) AS {RANGE_TMP_TAB_NAME}"
    else:
        query = replace(_single_query(statements, sql), order_by=None)
        sql_min = _wrap(query, f"min({cid})", None, RANGE_TMP_TAB_NAME)
        sql_max = _wrap(query, f"max({cid})", None, RANGE_TMP_TAB_NAME)
    log.debug("Transformed separated partition range query: %s, %s", sql_min, sql_max)
    return sql_min, sql_max