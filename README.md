# polite

A small library for moving data between SQLite database files and pandas
DataFrames.

- Run a query against a SQLite file and get a DataFrame back, with column
  types taken from the declared column types and the stored values.
- Save a DataFrame into a SQLite table, creating the table when it does not
  exist yet.
- Open connections and run statements, with errors that say which database
  or statement failed.

## Installation

From a checkout of the project:

```
pip install .
```

pandas is the only dependency. The tests need pytest (`pip install .[test]`).

## Quick start

```python
import pandas as pd

from polite.dataframe import load_dataframe, save_dataframe, to_dataframe
from polite.db import connect_sqlite, execute_query

# Open (or create) a database and add some data
conn = connect_sqlite("data.db")
execute_query(conn, "CREATE TABLE IF NOT EXISTS users (id INTEGER, name TEXT)")
execute_query(conn, "INSERT INTO users VALUES (1, 'Alice')")
conn.close()

# Load query results into a DataFrame
df = to_dataframe("data.db", "SELECT * FROM users")
print(df.shape)  # (1, 2)

# Save a DataFrame into a table; the table is created if needed
people = pd.DataFrame({"id": [1, 2, 3], "name": ["Alice", "Bob", "Charlie"]})
save_dataframe("output.db", "users", people)

# load_dataframe wraps failures in a LoadError naming the database
df = load_dataframe("output.db", "SELECT id, name FROM users LIMIT 10")
```

`connect_sqlite()` (or `connect_sqlite(None)`) opens an in-memory database.
Connections are opened in autocommit mode. `execute_query` runs one
statement that returns no rows and gives the number of rows it changed; a
statement that returns rows raises `ExecError`.

## Column types

### Writing

`from_dataframe(conn, table, df)` and `save_dataframe(db_path, table_name, df)`
create the table with `CREATE TABLE IF NOT EXISTS` and insert every row:

| DataFrame column | SQLite column | Values written |
| --- | --- | --- |
| `int64` / `Int64` | `INTEGER` | integers, missing values as `NULL` |
| `float64` / `Float64` | `REAL` | floats, `NaN` as `NULL` |
| strings (`object` or `string`) | `TEXT` | strings, missing values as `NULL` |
| anything else | `TEXT` | always `NULL` |

Rows are inserted in a single transaction.

### Reading

`to_dataframe(db_path, sql)` looks at the first row of the result. A column's
declared type decides its type where there is one (`INT4`, `INT2`, `BOOL`,
`BOOLEAN`, `DATE`, `TIME`, `DATETIME`, `TIMESTAMP`, or anything containing
`INT`, `CHAR`, `CLOB`, `TEXT`, `REAL`, `FLOA`, `DOUB` or `BLOB`); otherwise
the type of the stored value does. Integers give `int64` columns (`Int64`
when a value is missing), booleans `bool` (`boolean` with missing values),
reals `float64`, timestamps `datetime64[ns]`, and text, blobs, dates and
times `object` columns.

If a column holds `NULL` in the first row and has no usable declared type,
its type cannot be inferred and loading fails with a `FetchError`.

A query that returns no rows gives an empty DataFrame with the query's
column names; columns declared `INTEGER` become `int64`, `REAL` become
`float64`, and all others `object`.

## Errors

All errors derive from `polite.errors.PoliteError`:

| Error | Raised when |
| --- | --- |
| `ConnectError` | the database cannot be opened |
| `ExecError` | a statement fails to execute, or returns rows |
| `QueryError` | a query does not compile against the database |
| `FetchError` | reading the result set fails |
| `LoadError` | `load_dataframe` fails |
| `SaveError` | saving a DataFrame to a table fails |
| `SqliteError` | SQLite reports an error while saving or inspecting a query |
| `SQLiteSourceError`, `InferTypeFromNullError` | reading typed rows fails |

The underlying error is kept in the `source` attribute and as the exception's
cause.

## Lower-level pieces

- `polite.sql` rewrites queries into count (`count_query`), `LIMIT 1`
  (`limit1_query`), column-range partition (`single_col_partition_query`) and
  min/max range (`get_partition_range_query`,
  `get_partition_range_query_sep`) queries. Queries it cannot parse are
  wrapped as text instead.
- `polite.partition` splits a query into `PartitionQuery.num` ranges over an
  integer column, finding the column's range in the database when none is
  given.
- `polite.sqlite_source` provides `SQLiteSource`, which works out column
  names and types for a set of queries, and `SQLiteSourcePartition`, which
  yields each query's rows as typed values.
- `polite.typesystem` maps declared and stored SQLite types to `SQLiteType`
  and `ArrowType` and converts stored values.
- `polite.schema` reads the declared types of a query's result columns
  without running it.
- `polite.source_router` parses connection strings such as
  `sqlite:///path/to/db` into a `SourceConn`, taking a `cxprotocol` query
  parameter as the protocol.

## What it does not do

- There is no command-line tool; everything is used from Python.
- Only SQLite can be read. `source_router` recognises URLs for Postgres,
  MySQL, SQL Server, Oracle, BigQuery, DuckDB and Trino, but nothing reads
  from them, and `partition` raises `PoliteError` for them.
- `to_dataframe` runs the query as one piece on one connection; the
  partitioning helpers build split queries but loading does not use them.
- Table and column names are written into the SQL as given, without quoting.