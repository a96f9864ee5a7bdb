"""Database layer for finclose application."""

from finclose.database.base import Database, LegacyStore, RecordCollection
from finclose.database.factories import create_sqlite_database

__all__ = ["Database", "LegacyStore", "RecordCollection", "create_sqlite_database"]
