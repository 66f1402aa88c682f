"""Tests for the database layer: schema manager and node store.

All tests use an in-memory SQLite database (or a file under ``tmp_path``) so
they are:
- Fast
- Isolated (each fixture gets a fresh DB)
- Side-effect free (nothing written to ~/.cyberweaver)
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from cyberweaver.db.connection import get_connection
from cyberweaver.db.errors import SchemaError, StoreError, ValidationError
from cyberweaver.db.migrations import ensure_column, init_schema, table_columns
from cyberweaver.db.models import Node, NodePayload, NodeType
from cyberweaver.db.nodes import NodeStore, _upsert_params

EXPECTED_COLUMNS = ["id", "type", "x", "y", "content", "width", "height", "updated_at"]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")
    init_schema(connection)
    yield connection
    connection.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(conn: sqlite3.Connection, clock: FakeClock) -> NodeStore:
    return NodeStore(conn, clock=clock)


def _payload(node_id: str, node_type: str = "geo", **overrides) -> NodePayload:
    fields = dict(id=node_id, type=node_type, x=1.0, y=2.0, content="")
    fields.update(overrides)
    return NodePayload(**fields)


def _row_count(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]


# ---------------------------------------------------------------------------
# connection
# ---------------------------------------------------------------------------

class TestConnection:
    def test_creates_missing_file_and_directory(self, tmp_path) -> None:
        path = tmp_path / "nested" / "cyberweaver.db"
        connection = get_connection(path)
        try:
            init_schema(connection)
        finally:
            connection.close()
        assert path.exists()

    def test_wal_mode(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("PRAGMA journal_mode").fetchone()
        # In-memory DBs always return 'memory', on-disk returns 'wal'
        assert row[0] in ("wal", "memory")


# ---------------------------------------------------------------------------
# schema manager
# ---------------------------------------------------------------------------

class TestInitSchema:
    def test_fresh_table_has_current_columns(self, conn: sqlite3.Connection) -> None:
        assert table_columns(conn) == EXPECTED_COLUMNS

    def test_ordering_index_exists(self, conn: sqlite3.Connection) -> None:
        row = conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'index' AND name = 'idx_nodes_type_updated_at'"
        ).fetchone()
        assert row is not None

    def test_init_schema_is_idempotent(self, conn: sqlite3.Connection) -> None:
        before = conn.execute("SELECT sql FROM sqlite_master ORDER BY name").fetchall()
        init_schema(conn)
        after = conn.execute("SELECT sql FROM sqlite_master ORDER BY name").fetchall()
        assert [tuple(r) for r in before] == [tuple(r) for r in after]
        assert table_columns(conn) == EXPECTED_COLUMNS

    def test_migrates_legacy_table_without_data_loss(self) -> None:
        connection = get_connection(db_path=":memory:")
        connection.execute(
            "CREATE TABLE nodes (id TEXT PRIMARY KEY, type TEXT NOT NULL, "
            "x REAL NOT NULL, y REAL NOT NULL, content TEXT NOT NULL)"
        )
        connection.execute(
            "INSERT INTO nodes VALUES ('shape:old', 'note', 3.0, 4.0, 'legacy')"
        )
        connection.commit()

        init_schema(connection)

        assert table_columns(connection) == EXPECTED_COLUMNS
        nodes = NodeStore(connection).list_nodes()
        connection.close()
        assert nodes == [
            Node(
                id="shape:old",
                type=NodeType.NOTE,
                x=3.0,
                y=4.0,
                content="legacy",
                width=None,
                height=None,
                updated_at=0,
            )
        ]


class TestEnsureColumn:
    def test_adds_missing_column(self, conn: sqlite3.Connection) -> None:
        assert ensure_column(conn, "color", "TEXT") is True
        assert table_columns(conn)[-1] == "color"

    def test_second_call_is_noop(self, conn: sqlite3.Connection) -> None:
        ensure_column(conn, "color", "TEXT")
        assert ensure_column(conn, "color", "TEXT") is False
        assert table_columns(conn).count("color") == 1

    def test_existing_column_is_untouched(self, conn: sqlite3.Connection) -> None:
        assert ensure_column(conn, "width", "TEXT") is False

    def test_rejects_non_identifier(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(SchemaError, match="Invalid column name"):
            ensure_column(conn, "x; DROP TABLE nodes", "TEXT")

    def test_bad_definition_raises_schema_error(self, conn: sqlite3.Connection) -> None:
        NodeStore(conn).upsert_nodes([_payload("a")])
        # A NOT NULL column without a default cannot be added to a non-empty table.
        with pytest.raises(SchemaError):
            ensure_column(conn, "flag", "INTEGER NOT NULL")

    def test_closed_connection_raises_schema_error(self) -> None:
        connection = get_connection(db_path=":memory:")
        connection.close()
        with pytest.raises(SchemaError):
            init_schema(connection)


# ---------------------------------------------------------------------------
# node store — upsert / list
# ---------------------------------------------------------------------------

class TestUpsertAndList:
    def test_roundtrip_prefixes_id(self, store: NodeStore) -> None:
        store.upsert_nodes(
            [
                NodePayload(
                    id="artifact-1",
                    type="text",
                    x=12.0,
                    y=34.0,
                    content="IOC discovered",
                    width=200.0,
                    height=None,
                )
            ]
        )
        nodes = store.list_nodes()
        assert len(nodes) == 1
        node = nodes[0]
        assert node.id == "shape:artifact-1"
        assert node.type is NodeType.TEXT
        assert (node.x, node.y) == (12.0, 34.0)
        assert node.content == "IOC discovered"
        assert node.width == 200.0
        assert node.height is None

    def test_type_is_trimmed_on_write(self, store: NodeStore, conn) -> None:
        store.upsert_nodes([_payload("a", " note ")])
        row = conn.execute("SELECT type FROM nodes").fetchone()
        assert row[0] == "note"

    def test_updated_at_is_stamped_by_store(self, store: NodeStore, clock) -> None:
        clock.now = 1_800_000_000.7
        store.upsert_nodes([_payload("a")])
        assert store.list_nodes()[0].updated_at == 1_800_000_000

    def test_conflict_overwrites_every_field(self, store: NodeStore, clock) -> None:
        store.upsert_nodes([_payload("a", "geo", content="v1", width=10.0, height=20.0)])
        clock.now += 5
        store.upsert_nodes([_payload("shape:a", "note", x=9.0, y=8.0, content="v2")])

        nodes = store.list_nodes()
        assert len(nodes) == 1
        node = nodes[0]
        assert node.type is NodeType.NOTE
        assert (node.x, node.y, node.content) == (9.0, 8.0, "v2")
        assert node.width is None and node.height is None
        assert node.updated_at == int(clock.now)

    def test_later_entry_in_batch_wins(self, store: NodeStore) -> None:
        store.upsert_nodes(
            [_payload("a", content="first"), _payload("shape:a", content="second")]
        )
        nodes = store.list_nodes()
        assert [n.content for n in nodes] == ["second"]

    def test_order_by_write_time_then_id(self, store: NodeStore, clock) -> None:
        store.upsert_nodes([_payload("b")])
        clock.now += 1
        store.upsert_nodes([_payload("a")])
        clock.now += 1
        store.upsert_nodes([_payload("b")])
        assert [n.id for n in store.list_nodes()] == ["shape:a", "shape:b"]

    def test_same_instant_ties_break_on_id(self, store: NodeStore) -> None:
        store.upsert_nodes([_payload("z"), _payload("a"), _payload("m")])
        assert [n.id for n in store.list_nodes()] == ["shape:a", "shape:m", "shape:z"]

    def test_stamps_never_go_backwards(self, store: NodeStore, clock) -> None:
        store.upsert_nodes([_payload("b")])
        clock.now -= 100
        store.upsert_nodes([_payload("a")])
        stamps = {n.id: n.updated_at for n in store.list_nodes()}
        assert stamps["shape:a"] >= stamps["shape:b"]

    def test_unsupported_rows_are_filtered(self, store: NodeStore, conn) -> None:
        with conn:
            conn.execute(
                "INSERT INTO nodes (id, type, x, y, content) "
                "VALUES ('shape:arrow', 'arrow', 0, 0, '')"
            )
        store.upsert_nodes([_payload("a")])
        assert [n.id for n in store.list_nodes()] == ["shape:a"]

    def test_list_returns_a_snapshot(self, store: NodeStore) -> None:
        store.upsert_nodes([_payload("a")])
        snapshot = store.list_nodes()
        store.upsert_nodes([_payload("b")])
        assert isinstance(snapshot, list)
        assert len(snapshot) == 1


class TestUpsertFailures:
    def test_rejects_unknown_type_without_writing(self, store: NodeStore, conn) -> None:
        with pytest.raises(ValidationError, match="unsupported node type"):
            store.upsert_nodes([_payload("x", "draw")])
        assert _row_count(conn) == 0

    def test_one_invalid_payload_aborts_whole_batch(self, store: NodeStore, conn) -> None:
        with pytest.raises(ValidationError):
            store.upsert_nodes([_payload("good"), _payload("bad", width=0.0)])
        assert _row_count(conn) == 0

    def test_statement_error_rolls_back_batch(self, store: NodeStore, conn) -> None:
        store.upsert_nodes([_payload("existing", content="before")])
        with conn:
            conn.execute(
                "CREATE TRIGGER reject_broken BEFORE INSERT ON nodes "
                "WHEN NEW.id = 'shape:broken' "
                "BEGIN SELECT RAISE(ABORT, 'broken row rejected'); END"
            )

        with pytest.raises(StoreError, match="Failed to upsert"):
            store.upsert_nodes(
                [
                    _payload("existing", content="after"),
                    _payload("new"),
                    _payload("broken"),
                ]
            )

        nodes = store.list_nodes()
        assert [(n.id, n.content) for n in nodes] == [("shape:existing", "before")]

    def test_param_builder_rejects_unsupported_type(self) -> None:
        with pytest.raises(ValidationError, match="unsupported node type: draw"):
            _upsert_params(_payload("a", "draw"), now=0)

    @pytest.mark.parametrize("content", [None, 5])
    def test_non_string_content_is_rejected(self, store: NodeStore, conn, content) -> None:
        with pytest.raises(ValidationError, match="node.content must be a string"):
            store.upsert_nodes([_payload("good"), _payload("bad", content=content)])
        assert _row_count(conn) == 0

    @pytest.mark.parametrize("width", [0.0, -5.0])
    def test_non_positive_width_is_rejected(self, store: NodeStore, width) -> None:
        with pytest.raises(ValidationError, match="node.width"):
            store.upsert_nodes([_payload("a", width=width)])

    def test_empty_batch_does_not_touch_db(self) -> None:
        connection = get_connection(db_path=":memory:")
        connection.close()
        NodeStore(connection).upsert_nodes([])


class TestCorruptRows:
    def test_non_numeric_coordinate_raises(self, store: NodeStore, conn) -> None:
        with conn:
            conn.execute(
                "INSERT INTO nodes (id, type, x, y, content) "
                "VALUES ('shape:bad', 'geo', 'oops', 0, '')"
            )
        with pytest.raises(StoreError, match="'x'"):
            store.list_nodes()

    def test_non_text_content_raises(self, store: NodeStore, conn) -> None:
        with conn:
            conn.execute(
                "INSERT INTO nodes (id, type, x, y, content) "
                "VALUES ('shape:bad', 'geo', 0, 0, x'00ff')"
            )
        with pytest.raises(StoreError, match="'content'"):
            store.list_nodes()

    def test_closed_connection_raises_store_error(self) -> None:
        connection = get_connection(db_path=":memory:")
        init_schema(connection)
        connection.close()
        with pytest.raises(StoreError):
            NodeStore(connection).list_nodes()


# ---------------------------------------------------------------------------
# node store — delete
# ---------------------------------------------------------------------------

class TestDelete:
    def test_delete_matches_unprefixed_id(self, store: NodeStore) -> None:
        store.upsert_nodes([_payload("shape:artifact-2", "note", content="temporary")])
        store.delete_nodes(["artifact-2"])
        assert store.list_nodes() == []

    def test_duplicates_and_blanks_are_ignored(self, store: NodeStore) -> None:
        store.upsert_nodes([_payload("a"), _payload("b"), _payload("c")])
        store.delete_nodes(["a", "shape:a", "  a  ", "", "   ", "c"])
        assert [n.id for n in store.list_nodes()] == ["shape:b"]

    def test_unknown_ids_are_not_an_error(self, store: NodeStore) -> None:
        store.upsert_nodes([_payload("a")])
        store.delete_nodes(["missing"])
        assert len(store.list_nodes()) == 1

    def test_returns_deleted_row_count(self, store: NodeStore) -> None:
        store.upsert_nodes([_payload("a"), _payload("b")])
        assert store.delete_nodes(["a", "shape:a", "missing"]) == 1

    def test_non_string_id_is_rejected(self, store: NodeStore) -> None:
        store.upsert_nodes([_payload("a")])
        with pytest.raises(ValidationError, match="node id must be a string"):
            store.delete_nodes(["a", None])
        assert len(store.list_nodes()) == 1

    def test_empty_input_does_not_touch_db(self) -> None:
        connection = get_connection(db_path=":memory:")
        connection.close()
        store = NodeStore(connection)
        assert store.delete_nodes([]) == 0
        assert store.delete_nodes(["", "   "]) == 0

    def test_closed_connection_raises_store_error(self) -> None:
        connection = get_connection(db_path=":memory:")
        init_schema(connection)
        connection.close()
        with pytest.raises(StoreError):
            NodeStore(connection).delete_nodes(["a"])
