"""SQLite connection factory.

Usage::

    from cyberweaver.db.connection import get_connection

    conn = get_connection()
    try:
        cursor = conn.execute("SELECT 1")
    finally:
        conn.close()
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from cyberweaver.config import settings

MEMORY_DB = ":memory:"


def sqlite_uri(path: Path) -> str:
    """Return a SQLite URI that creates the file when it is missing."""
    return f"file:{path.as_posix()}?mode=rwc"


def get_connection(db_path: Optional[Path | str] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Steps performed on every new connection:
    1. Create the data directory (file databases only).
    2. Open the file in read/write/create mode.
    3. Switch to WAL journal mode for concurrent readers.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.
            Pass ``":memory:"`` for a throwaway database.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.
    """
    path = db_path or settings.db_path

    if str(path) == MEMORY_DB:
        conn = sqlite3.connect(MEMORY_DB, check_same_thread=False)
    else:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(sqlite_uri(path), uri=True, check_same_thread=False)

    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")

    return conn
