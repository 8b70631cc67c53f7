"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from shopledger.database.sqlalchemy_db import SQLAlchemyDatabase

DEFAULT_DB_PATH = Path.home() / ".shopledger" / "shopledger.db"


def resolve_database_path(database_path: Optional[str] = None) -> Path:
    """Pick the SQLite file: explicit path, then SHOPLEDGER_DB_PATH, then the default."""
    raw = database_path or os.environ.get("SHOPLEDGER_DB_PATH")
    return Path(raw).expanduser() if raw else DEFAULT_DB_PATH


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance, creating its directory if needed.

    Args:
        database_path: Path to SQLite database file. If None, checks SHOPLEDGER_DB_PATH
            environment variable, then defaults to ~/.shopledger/shopledger.db

    Returns:
        SQLAlchemyDatabase instance with ``database_path`` set
    """
    path = resolve_database_path(database_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    database = SQLAlchemyDatabase(f"sqlite:///{path}")
    database.database_path = str(path)
    return database
