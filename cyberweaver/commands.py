"""Operation contract consumed by presentation layers.

``NodeCommands`` wraps a :class:`~cyberweaver.db.nodes.NodeStore` and exposes
``get_nodes`` / ``upsert_nodes`` / ``delete_nodes`` over plain wire-format
dicts.  Every internal error is flattened into a :class:`CommandError`
carrying a message and a coarse ``kind``.

The methods are coroutines but run the store on the event loop itself: each
call runs to completion before another one starts, so batches issued on the
shared connection never interleave.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from cyberweaver.db.errors import StoreError, ValidationError
from cyberweaver.db.models import NodePayload
from cyberweaver.db.nodes import NodeStore

REQUIRED_FIELDS = ("id", "type", "x", "y", "content")


class CommandError(Exception):
    """Flat error surfaced to callers of :class:`NodeCommands`.

    Attributes:
        message: Human-readable description, safe to show verbatim.
        kind: ``"validation"`` or ``"store"``.
    """

    def __init__(self, message: str, kind: str) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind


def payload_from_dict(raw: Any) -> NodePayload:
    """Build a :class:`NodePayload` from a wire dict.

    Raises:
        ValidationError: If *raw* is not a mapping or lacks a required key.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("node payload must be an object")
    for name in REQUIRED_FIELDS:
        if name not in raw:
            raise ValidationError(f"node payload is missing field: {name}")
    return NodePayload(
        id=raw["id"],
        type=raw["type"],
        x=raw["x"],
        y=raw["y"],
        content=raw["content"],
        width=raw.get("width"),
        height=raw.get("height"),
    )


def _flatten(exc: Exception) -> CommandError:
    if isinstance(exc, ValidationError):
        return CommandError(str(exc), "validation")
    return CommandError(str(exc), "store")


class NodeCommands:
    """Async command surface over a single :class:`NodeStore`."""

    def __init__(self, store: NodeStore) -> None:
        self.store = store

    async def get_nodes(self) -> list[dict[str, Any]]:
        try:
            nodes = self.store.list_nodes()
        except StoreError as exc:
            raise _flatten(exc) from exc
        return [n.to_dict() for n in nodes]

    async def upsert_nodes(self, nodes: Iterable[Any]) -> None:
        try:
            payloads = [payload_from_dict(raw) for raw in nodes]
            self.store.upsert_nodes(payloads)
        except (ValidationError, StoreError) as exc:
            raise _flatten(exc) from exc

    async def delete_nodes(self, ids: Iterable[str]) -> int:
        """Delete *ids* and return how many rows were removed."""
        try:
            return self.store.delete_nodes(ids)
        except (ValidationError, StoreError) as exc:
            raise _flatten(exc) from exc
