"""
Database package for Serenity.

- **db_connection.py**: Single long-lived aiosqlite connection with WAL pragmas,
  serialised write transactions and read access.
- **db_schema.py**: Table, index and schema version creation.
"""
