"""Exception hierarchy for database access and DataFrame conversion."""

from __future__ import annotations


def _chain(error: BaseException, source: object) -> None:
    if isinstance(source, BaseException):
        error.__cause__ = source


class PoliteError(Exception):
    """Base class for every error raised by this package."""


class ConnectError(PoliteError):
    """Opening a database failed."""

    def __init__(self, db_path, source):
        super().__init__(f"Failed to connect to {db_path}: {source}")
        self.db_path = db_path
        self.source = source
        _chain(self, source)


class ExecError(PoliteError):
    """Executing a SQL statement failed."""

    def __init__(self, sql, source):
        super().__init__(f"Failed to execute SQL: {sql}: {source}")
        self.sql = sql
        self.source = source
        _chain(self, source)


class QueryError(PoliteError):
    """A query could not be run against a database."""

    def __init__(self, db_path, source):
        super().__init__(f"Failed to run query on {db_path}: {source}")
        self.db_path = db_path
        self.source = source
        _chain(self, source)


class LoadError(PoliteError):
    """Loading a DataFrame from a database failed."""

    def __init__(self, db_path, source):
        super().__init__(f"Failed to load DataFrame from {db_path}: {source}")
        self.db_path = db_path
        self.source = source
        _chain(self, source)


class SaveError(PoliteError):
    """Saving a DataFrame into a table failed."""

    def __init__(self, db_path, table_name, source):
        super().__init__(
            f"Failed to save DataFrame to table '{table_name}' in {db_path}: {source}"
        )
        self.db_path = db_path
        self.table_name = table_name
        self.source = source
        _chain(self, source)


class SqliteError(PoliteError):
    """A wrapped error reported by SQLite itself."""

    def __init__(self, source):
        super().__init__(f"SQLite error: {source}")
        self.source = source
        _chain(self, source)


class FetchError(PoliteError):
    """Fetching result rows from a database failed."""

    def __init__(self, db_path, source):
        super().__init__(f"Failed to fetch data from {db_path}: {source}")
        self.db_path = db_path
        self.source = source
        _chain(self, source)


class QueryNotSupportedError(PoliteError):
    """The SQL text is not a single query that can be rewritten."""

    def __init__(self, sql):
        super().__init__(f"SQL query not supported: {sql}")
        self.sql = sql


class NoConversionRuleError(PoliteError):
    """No rule exists to convert between two types."""

    def __init__(self, from_type, to_type):
        super().__init__(f"No conversion rule from {from_type} to {to_type}")
        self.from_type = from_type
        self.to_type = to_type


class SQLiteSourceError(PoliteError):
    """Base class for errors raised while reading from a SQLite source."""


class InferTypeFromNullError(SQLiteSourceError):
    """A column type could not be inferred because only NULL was seen."""

    def __init__(self):
        super().__init__("Cannot infer type from null for SQLite")