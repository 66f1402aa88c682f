"""Batch operations for the ``nodes`` table."""

from __future__ import annotations

import logging
import sqlite3
from time import time
from typing import Any, Callable, Iterable, Optional, Sequence

from cyberweaver.db.errors import StoreError, ValidationError
from cyberweaver.db.models import Node, NodePayload, NodeType
from cyberweaver.db.validation import (
    normalize_delete_ids,
    normalize_node_type,
    normalize_shape_id,
    validate_payload,
)

logger = logging.getLogger(__name__)

_TYPE_PLACEHOLDERS = ", ".join("?" for _ in NodeType)

_LIST_SQL = f"""
    SELECT id, type, x, y, content, width, height, updated_at
    FROM nodes
    WHERE type IN ({_TYPE_PLACEHOLDERS})
    ORDER BY updated_at ASC, id ASC
"""  # noqa: S608

_UPSERT_SQL = """
    INSERT INTO nodes (id, type, x, y, content, width, height, updated_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        type = excluded.type,
        x = excluded.x,
        y = excluded.y,
        content = excluded.content,
        width = excluded.width,
        height = excluded.height,
        updated_at = excluded.updated_at
"""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _corrupt(row: sqlite3.Row, column: str, expected: str) -> StoreError:
    return StoreError(
        f"Corrupt row {row['id']!r}: column {column!r} is "
        f"{type(row[column]).__name__}, expected {expected}"
    )


def _decode_float(row: sqlite3.Row, column: str) -> float:
    value = row[column]
    if isinstance(value, (int, float)):
        return float(value)
    raise _corrupt(row, column, "a number")


def _decode_optional_float(row: sqlite3.Row, column: str) -> Optional[float]:
    if row[column] is None:
        return None
    return _decode_float(row, column)


def _decode_text(row: sqlite3.Row, column: str) -> str:
    value = row[column]
    if isinstance(value, str):
        return value
    raise _corrupt(row, column, "text")


def _row_to_node(row: sqlite3.Row) -> Node:
    updated_at = row["updated_at"]
    if not isinstance(updated_at, int):
        raise _corrupt(row, "updated_at", "an integer")

    return Node(
        id=_decode_text(row, "id"),
        type=NodeType(_decode_text(row, "type")),
        x=_decode_float(row, "x"),
        y=_decode_float(row, "y"),
        content=_decode_text(row, "content"),
        width=_decode_optional_float(row, "width"),
        height=_decode_optional_float(row, "height"),
        updated_at=updated_at,
    )


def _upsert_params(payload: NodePayload, now: int) -> tuple[Any, ...]:
    node_type = normalize_node_type(payload.type)
    if node_type is None:
        raise ValidationError(f"unsupported node type: {payload.type}")
    return (
        normalize_shape_id(payload.id),
        node_type.value,
        payload.x,
        payload.y,
        payload.content,
        payload.width,
        payload.height,
        now,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class NodeStore:
    """Transactional list / upsert / delete over one SQLite connection.

    The connection is owned by the caller and must already have been passed
    through :func:`cyberweaver.db.migrations.init_schema`.

    Args:
        conn: Open DB connection.
        clock: Returns the current time in epoch seconds.  Injected so tests
            can control write ordering.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        clock: Callable[[], float] = time,
    ) -> None:
        self.conn = conn
        self._clock = clock
        self._last_stamp = 0

    def _stamp(self) -> int:
        """Current epoch second, never lower than a previous stamp."""
        self._last_stamp = max(int(self._clock()), self._last_stamp)
        return self._last_stamp

    def list_nodes(self) -> list[Node]:
        """Return every node of a supported type, oldest write first.

        Rows written in the same second are ordered by id.

        Raises:
            StoreError: On a database failure or an undecodable row.
        """
        try:
            rows = self.conn.execute(
                _LIST_SQL, [t.value for t in NodeType]
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to list nodes: {exc}") from exc
        return [_row_to_node(r) for r in rows]

    def upsert_nodes(self, payloads: Sequence[NodePayload]) -> None:
        """Insert or replace a batch of nodes in one transaction.

        Every payload is validated before the transaction opens, so a single
        bad payload means nothing is written.  Later payloads with the same
        id override earlier ones.

        Raises:
            ValidationError: If any payload is malformed.
            StoreError: If a statement fails; the batch is rolled back.
        """
        if not payloads:
            return

        for payload in payloads:
            validate_payload(payload)

        now = self._stamp()
        params = [_upsert_params(payload, now) for payload in payloads]
        try:
            with self.conn:
                self.conn.executemany(_UPSERT_SQL, params)
        except sqlite3.Error as exc:
            logger.warning("Rolled back upsert of %d nodes: %s", len(payloads), exc)
            raise StoreError(f"Failed to upsert nodes: {exc}") from exc

        logger.debug("Upserted %d nodes at %d", len(payloads), now)

    def delete_nodes(self, ids: Iterable[str]) -> int:
        """Delete nodes by id; ids are trimmed, prefixed and deduplicated.

        Unknown ids are ignored.  This is a no-op if nothing is left after
        normalisation.

        Returns:
            The number of rows actually deleted.

        Raises:
            ValidationError: If an id is not a string.
            StoreError: On a database failure.
        """
        normalized = normalize_delete_ids(ids)
        if not normalized:
            return 0

        placeholders = ", ".join("?" for _ in normalized)
        try:
            with self.conn:
                cursor = self.conn.execute(
                    f"DELETE FROM nodes WHERE id IN ({placeholders})",  # noqa: S608
                    normalized,
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to delete nodes: {exc}") from exc

        logger.debug("Deleted %d of %d requested nodes", cursor.rowcount, len(normalized))
        return cursor.rowcount
