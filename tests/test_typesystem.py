from datetime import date, datetime, time

import pytest

from polite.errors import InferTypeFromNullError, NoConversionRuleError, SQLiteSourceError
from polite.typesystem import (
    ArrowType,
    SQLiteType,
    convert_value,
    to_arrow_type,
    type_from_decl,
    type_from_value,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (1, SQLiteType.INT8),
        (1.5, SQLiteType.REAL),
        ("a", SQLiteType.TEXT),
        (b"\x00", SQLiteType.BLOB),
    ],
)
def test_type_from_value(value, expected):
    assert type_from_value(value) is expected


def test_type_from_null_value_raises():
    with pytest.raises(InferTypeFromNullError):
        type_from_value(None)


@pytest.mark.parametrize(
    "decl, expected",
    [
        ("int4", SQLiteType.INT4),
        ("INT2", SQLiteType.INT2),
        ("BOOLEAN", SQLiteType.BOOL),
        ("bool", SQLiteType.BOOL),
        ("DATE", SQLiteType.DATE),
        ("time", SQLiteType.TIME),
        ("DATETIME", SQLiteType.TIMESTAMP),
        ("timestamp", SQLiteType.TIMESTAMP),
        ("INTEGER", SQLiteType.INT8),
        ("BIGINT", SQLiteType.INT8),
        ("VARCHAR(10)", SQLiteType.TEXT),
        ("CLOB", SQLiteType.TEXT),
        ("TEXT", SQLiteType.TEXT),
        ("REAL", SQLiteType.REAL),
        ("FLOAT", SQLiteType.REAL),
        ("DOUBLE PRECISION", SQLiteType.REAL),
        ("BLOB", SQLiteType.BLOB),
    ],
)
def test_type_from_decl(decl, expected):
    assert type_from_decl(decl, None) is expected


def test_unknown_decl_falls_back_to_value():
    assert type_from_decl("NUMERIC", 2.5) is SQLiteType.REAL
    assert type_from_decl(None, "x") is SQLiteType.TEXT


def test_unknown_decl_with_null_raises():
    with pytest.raises(InferTypeFromNullError):
        type_from_decl("NUMERIC", None)


def test_every_sqlite_type_has_arrow_type():
    assert {to_arrow_type(t) for t in SQLiteType} <= set(ArrowType)
    assert to_arrow_type(SQLiteType.INT2) is ArrowType.INT64
    assert to_arrow_type(SQLiteType.TIMESTAMP) is ArrowType.DATE64


def test_to_arrow_type_rejects_foreign_value():
    with pytest.raises(NoConversionRuleError):
        to_arrow_type("int")


def test_convert_null_is_none_for_every_type():
    assert all(convert_value(t, None) is None for t in SQLiteType)


def test_convert_scalars():
    assert convert_value(SQLiteType.BOOL, 0) is False
    assert convert_value(SQLiteType.BOOL, 5) is True
    assert convert_value(SQLiteType.REAL, 3) == 3.0
    assert convert_value(SQLiteType.TEXT, "abc") == "abc"
    assert convert_value(SQLiteType.BLOB, memoryview(b"ab")) == b"ab"


def test_convert_int_range_checks():
    assert convert_value(SQLiteType.INT2, 32767) == 32767
    with pytest.raises(SQLiteSourceError):
        convert_value(SQLiteType.INT2, 32768)
    with pytest.raises(SQLiteSourceError):
        convert_value(SQLiteType.INT4, 2**31)


def test_convert_type_mismatch_raises():
    with pytest.raises(SQLiteSourceError):
        convert_value(SQLiteType.TEXT, 1)
    with pytest.raises(SQLiteSourceError):
        convert_value(SQLiteType.INT8, "1")


def test_convert_dates_and_times():
    assert convert_value(SQLiteType.DATE, "2024-01-02") == date(2024, 1, 2)
    assert convert_value(SQLiteType.TIME, "10:20") == time(10, 20)
    assert convert_value(SQLiteType.TIME, "10:20:30") == time(10, 20, 30)
    assert convert_value(SQLiteType.TIMESTAMP, "2024-01-02T10:20:30") == datetime(2024, 1, 2, 10, 20, 30)
    assert convert_value(SQLiteType.TIMESTAMP, "2024-01-02 10:20:30") == datetime(2024, 1, 2, 10, 20, 30)


def test_convert_bad_date_raises():
    with pytest.raises(SQLiteSourceError):
        convert_value(SQLiteType.DATE, "not a date")