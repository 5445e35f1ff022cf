"""
SQLite persistence for Cardcord.

- **db_connection.py**: ``ConnectionManager`` (one long-lived aiosqlite
  connection, serialised writes) and the ``open_database`` scope.
- **db_schema.py**: Table and index creation for ``birthdays`` and
  ``scheduled_events``.
"""
