"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from finclose.config import Settings
from finclose.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(
    database_path: Optional[str] = None, settings: Optional[Settings] = None
) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks FINCLOSE_DB_PATH
            environment variable, then defaults to ~/.finclose/finclose.db
        settings: Process-wide settings. Defaults to Settings.from_env()

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get("FINCLOSE_DB_PATH")

    if database_path is None:
        db_dir = Path.home() / ".finclose"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "finclose.db")

    if settings is None:
        settings = Settings.from_env()

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url, legacy_readonly=settings.legacy_readonly)
