"""Database initialisation and additive migration helpers.

``init_schema(conn)`` is idempotent — safe to call on every process start.
Migration is column-driven: the live table is inspected and any missing
column is appended with ``ALTER TABLE ... ADD COLUMN``.  Columns are never
dropped or renamed.
"""

from __future__ import annotations

import logging
import sqlite3

from cyberweaver.config import settings
from cyberweaver.db.errors import SchemaError

logger = logging.getLogger(__name__)

# Columns added after the first on-disk layout (id, type, x, y, content).
COLUMN_MIGRATIONS: list[tuple[str, str]] = [
    ("width", "REAL"),
    ("height", "REAL"),
    ("updated_at", "INTEGER NOT NULL DEFAULT 0"),
]

ORDERING_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_nodes_type_updated_at "
    "ON nodes(type, updated_at)"
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_schema() -> str:
    """Load the bundled schema.sql."""
    return settings.schema_path.read_text(encoding="utf-8")


def table_columns(conn: sqlite3.Connection, table: str = "nodes") -> list[str]:
    """Return the column names of *table* in declaration order."""
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()  # noqa: S608
    return [row[1] for row in rows]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def ensure_column(conn: sqlite3.Connection, name: str, definition: str) -> bool:
    """Add column *name* to ``nodes`` unless it already exists.

    Args:
        conn: Open DB connection.
        name: Column name; must be a plain identifier.
        definition: Column type and constraints, e.g. ``"REAL"``.

    Returns:
        ``True`` when the column was added, ``False`` when it was present.

    Raises:
        SchemaError: On an invalid name or any SQLite failure.
    """
    if not name.isidentifier():
        raise SchemaError(f"Invalid column name: {name!r}")

    try:
        if name in table_columns(conn):
            return False
        with conn:
            conn.execute(f"ALTER TABLE nodes ADD COLUMN {name} {definition}")
    except sqlite3.Error as exc:
        raise SchemaError(f"Failed to add column {name!r}: {exc}") from exc

    logger.info("Added column nodes.%s (%s)", name, definition)
    return True


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the ``nodes`` table, migrate its columns and build the index.

    Raises:
        SchemaError: If any step fails.  The store must not be used then.
    """
    try:
        # executescript() issues an implicit COMMIT before running, which is
        # fine for this DDL-only script.
        conn.executescript(_read_schema())
    except (sqlite3.Error, OSError) as exc:
        raise SchemaError(f"Failed to create nodes table: {exc}") from exc

    for name, definition in COLUMN_MIGRATIONS:
        ensure_column(conn, name, definition)

    try:
        with conn:
            conn.execute(ORDERING_INDEX_SQL)
    except sqlite3.Error as exc:
        raise SchemaError(f"Failed to create ordering index: {exc}") from exc
