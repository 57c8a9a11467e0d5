# backend/db.py
# SQLite connection helpers shared by routes, services and migrations

import sqlite3
from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, Iterable, Optional

from backend.config import DATABASE_PATH


def _resolve_path(path: str) -> str:
    p = FsPath(path)
    if p.is_absolute():
        return str(p)
    return str(FsPath(__file__).resolve().parent / p)


# Tests point this at a temporary file before calling run_migrations()
DB_PATH = _resolve_path(DATABASE_PATH)


def get_db() -> sqlite3.Connection:
    """
    Create and return a SQLite connection with Row factory.
    Caller owns the connection and must close it.
    """
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """Context manager variant of get_db(); always closes the connection."""
    conn = get_db()
    try:
        yield conn
    finally:
        conn.close()


def row_to_dict(row: Optional[sqlite3.Row]) -> Dict[str, Any]:
    """
    Safely convert a sqlite3.Row to dict.

    Use this whenever you need .get() behavior on a row.
    """
    if row is None:
        return {}
    return dict(row)


def placeholders(values: Iterable[Any]) -> str:
    """Return "?, ?, ?" for an IN (...) clause."""
    return ", ".join("?" for _ in values)
