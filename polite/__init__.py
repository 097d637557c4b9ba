"""Move data between SQLite databases and pandas DataFrames.

Modules: dataframe, db, errors, partition, schema, source_router, sql,
sqlite_source, typesystem.
"""

__version__ = "0.1.0"