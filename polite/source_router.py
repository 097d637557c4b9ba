"""Classification of database connection URLs by the kind of source they name."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from urllib.parse import parse_qsl, unquote, urlencode

from polite.errors import PoliteError

CONNECTORX_PROTOCOL = "cxprotocol"
DEFAULT_PROTOCOL = "binary"

_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*):")


class SourceType(enum.Enum):
    """The database engines a connection URL can point at."""

    POSTGRES = "postgres"
    SQLITE = "sqlite"
    MYSQL = "mysql"
    MSSQL = "mssql"
    ORACLE = "oracle"
    BIGQUERY = "bigquery"
    DUCKDB = "duckdb"
    TRINO = "trino"
    UNKNOWN = "unknown"


_SCHEMES = {
    "postgres": SourceType.POSTGRES,
    "postgresql": SourceType.POSTGRES,
    "sqlite": SourceType.SQLITE,
    "mysql": SourceType.MYSQL,
    "mssql": SourceType.MSSQL,
    "oracle": SourceType.ORACLE,
    "bigquery": SourceType.BIGQUERY,
    "duckdb": SourceType.DUCKDB,
    "trino": SourceType.TRINO,
}


def _split_url(conn: str) -> tuple[str, str | None, str | None]:
    """Split a URL into the part before the query, the query and the fragment."""
    rest, hash_sign, fragment = conn.partition("#")
    base, question, query = rest.partition("?")
    return base, (query if question else None), (fragment if hash_sign else None)


@dataclass
class SourceConn:
    """A parsed connection URL together with the transfer protocol to use."""

    ty: SourceType
    conn: str
    proto: str

    @classmethod
    def from_url(cls, conn: str) -> SourceConn:
        """Parse a connection URL, taking the protocol out of its query string."""
        match = _SCHEME_RE.match(conn)
        if match is None:
            raise PoliteError(f"parse error: relative URL without a base: {conn!r}")
        scheme = match.group("scheme").lower()

        base, query, fragment = _split_url(conn)
        pairs = parse_qsl(query, keep_blank_values=True) if query else []
        proto = next(
            (value for key, value in pairs if key == CONNECTORX_PROTOCOL),
            DEFAULT_PROTOCOL,
        )
        kept = [(key, value) for key, value in pairs if key != CONNECTORX_PROTOCOL]

        url = base
        if kept:
            url += "?" + urlencode(kept)
        if fragment is not None:
            url += "#" + fragment

        # Engines given the SQLAlchemy way (e.g. mssql+pymssql://) are accepted.
        ty = _SCHEMES.get(scheme.split("+")[0], SourceType.UNKNOWN)
        return cls(ty, url, proto)

    def set_protocol(self, protocol: str) -> None:
        self.proto = protocol

    def path(self) -> str:
        """The decoded location after ``scheme://``, without query or fragment."""
        base, _, _ = _split_url(self.conn)
        _, sep, location = base.partition("://")
        if not sep:
            _, _, location = base.partition(":")
        return unquote(location)


def parse_source(conn: str, protocol: str | None = None) -> SourceConn:
    """Parse a connection URL, overriding its protocol when one is given."""
    source_conn = SourceConn.from_url(conn)
    if protocol is not None:
        source_conn.set_protocol(protocol)
    return source_conn