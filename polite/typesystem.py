"""SQLite column types, their Arrow counterparts and value conversion."""

from __future__ import annotations

import enum
from datetime import date, datetime, time
from typing import Any, Callable

from polite.errors import InferTypeFromNullError, NoConversionRuleError, SQLiteSourceError


class SQLiteType(enum.Enum):
    """Types a SQLite source can produce."""

    BOOL = "bool"
    INT8 = "int8"
    INT4 = "int4"
    INT2 = "int2"
    REAL = "real"
    TEXT = "text"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    BLOB = "blob"


class ArrowType(enum.Enum):
    """Types an Arrow destination accepts."""

    BOOLEAN = "boolean"
    INT64 = "int64"
    FLOAT64 = "float64"
    LARGE_UTF8 = "large_utf8"
    LARGE_BINARY = "large_binary"
    DATE32 = "date32"
    TIME64 = "time64"
    DATE64 = "date64"


_EXACT_DECL = {
    "int4": SQLiteType.INT4,
    "int2": SQLiteType.INT2,
    "boolean": SQLiteType.BOOL,
    "bool": SQLiteType.BOOL,
    "date": SQLiteType.DATE,
    "time": SQLiteType.TIME,
    "datetime": SQLiteType.TIMESTAMP,
    "timestamp": SQLiteType.TIMESTAMP,
}

# Checked in order, following SQLite's column affinity rules.
_AFFINITY = (
    (("int",), SQLiteType.INT8),
    (("char", "clob", "text"), SQLiteType.TEXT),
    (("real", "floa", "doub"), SQLiteType.REAL),
    (("blob",), SQLiteType.BLOB),
)

_ARROW = {
    SQLiteType.BOOL: ArrowType.BOOLEAN,
    SQLiteType.INT8: ArrowType.INT64,
    SQLiteType.INT4: ArrowType.INT64,
    SQLiteType.INT2: ArrowType.INT64,
    SQLiteType.REAL: ArrowType.FLOAT64,
    SQLiteType.TEXT: ArrowType.LARGE_UTF8,
    SQLiteType.BLOB: ArrowType.LARGE_BINARY,
    SQLiteType.DATE: ArrowType.DATE32,
    SQLiteType.TIME: ArrowType.TIME64,
    SQLiteType.TIMESTAMP: ArrowType.DATE64,
}


def type_from_value(value: Any) -> SQLiteType:
    """Infer a type from the storage class of a stored value."""
    if value is None:
        raise InferTypeFromNullError()
    if isinstance(value, int):
        return SQLiteType.INT8
    if isinstance(value, float):
        return SQLiteType.REAL
    if isinstance(value, str):
        return SQLiteType.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SQLiteType.BLOB
    raise SQLiteSourceError(f"unsupported SQLite value of type {type(value).__name__}")


def type_from_decl(decl_type: str | None, value: Any) -> SQLiteType:
    """Infer a type from a declared column type, falling back to the value."""
    if decl_type is None:
        return type_from_value(value)
    decl = decl_type.lower()
    if decl in _EXACT_DECL:
        return _EXACT_DECL[decl]
    for needles, sqlite_type in _AFFINITY:
        if any(needle in decl for needle in needles):
            return sqlite_type
    return type_from_value(value)


def to_arrow_type(sqlite_type: SQLiteType) -> ArrowType:
    """The Arrow type a SQLite type is transported as."""
    try:
        return _ARROW[sqlite_type]
    except (KeyError, TypeError):
        raise NoConversionRuleError(sqlite_type, "ArrowType") from None


def _mismatch(sqlite_type: SQLiteType, value: Any) -> SQLiteSourceError:
    return SQLiteSourceError(
        f"invalid value {value!r} of type {type(value).__name__} for column type {sqlite_type.value}"
    )


def _integer(sqlite_type: SQLiteType, bits: int) -> Callable[[Any], int]:
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1

    def read(value: Any) -> int:
        if not isinstance(value, int):
            raise _mismatch(sqlite_type, value)
        if not low <= value <= high:
            raise SQLiteSourceError(f"integer {value} out of range for {sqlite_type.value}")
        return int(value)

    return read


def _read_bool(value: Any) -> bool:
    if not isinstance(value, int):
        raise _mismatch(SQLiteType.BOOL, value)
    return value != 0


def _read_real(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _mismatch(SQLiteType.REAL, value)
    return float(value)


def _read_text(value: Any) -> str:
    if not isinstance(value, str):
        raise _mismatch(SQLiteType.TEXT, value)
    return value


def _read_blob(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise _mismatch(SQLiteType.BLOB, value)
    return bytes(value)


def _parse(sqlite_type: SQLiteType, value: Any, fmt: str) -> datetime:
    if not isinstance(value, str):
        raise _mismatch(sqlite_type, value)
    try:
        return datetime.strptime(value, fmt)
    except ValueError as exc:
        raise SQLiteSourceError(f"cannot parse {value!r} as {sqlite_type.value}: {exc}") from exc


def _read_date(value: Any) -> date:
    return _parse(SQLiteType.DATE, value, "%Y-%m-%d").date()


def _read_time(value: Any) -> time:
    if isinstance(value, str) and len(value) == 5:
        fmt = "%H:%M"
    elif isinstance(value, str) and len(value) == 8:
        fmt = "%H:%M:%S"
    else:
        fmt = "%H:%M:%S.%f"
    return _parse(SQLiteType.TIME, value, fmt).time()


def _read_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and len(value) >= 11 and value[10] == "T":
        separator = "T"
    else:
        separator = " "
    fmt = f"%Y-%m-%d{separator}%H:%M:%S"
    if isinstance(value, str) and "." in value[10:]:
        fmt += ".%f"
    return _parse(SQLiteType.TIMESTAMP, value, fmt)


_READERS: dict[SQLiteType, Callable[[Any], Any]] = {
    SQLiteType.BOOL: _read_bool,
    SQLiteType.INT8: _integer(SQLiteType.INT8, 64),
    SQLiteType.INT4: _integer(SQLiteType.INT4, 32),
    SQLiteType.INT2: _integer(SQLiteType.INT2, 16),
    SQLiteType.REAL: _read_real,
    SQLiteType.TEXT: _read_text,
    SQLiteType.BLOB: _read_blob,
    SQLiteType.DATE: _read_date,
    SQLiteType.TIME: _read_time,
    SQLiteType.TIMESTAMP: _read_timestamp,
}


def convert_value(sqlite_type: SQLiteType, value: Any) -> Any:
    """Read a stored SQLite value as the Python value of the given column type."""
    if value is None:
        return None
    try:
        reader = _READERS[sqlite_type]
    except (KeyError, TypeError):
        raise NoConversionRuleError(sqlite_type, "ArrowType") from None
    return reader(value)