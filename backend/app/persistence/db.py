"""SQLite connection + schema initialisation."""
from __future__ import annotations
import logging
import os
import sqlite3
from typing import Optional

from app.core import config

logger = logging.getLogger(__name__)

_MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "migrations")


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path or config.DATABASE_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(db_path: Optional[str] = None) -> None:
    """Run all migration SQL files against the database."""
    path = db_path or config.DATABASE_PATH
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = get_connection(path)
    try:
        for name in sorted(os.listdir(_MIGRATIONS_DIR)):
            if not name.endswith(".sql"):
                continue
            with open(os.path.join(_MIGRATIONS_DIR, name), "r", encoding="utf-8") as f:
                conn.executescript(f.read())
            logger.debug("Applied migration %s", name)
        conn.commit()
    finally:
        conn.close()
