"""Pure normalisation and validation helpers for node payloads.

Nothing in this module touches the database; the store runs every payload
through :func:`validate_payload` before it opens a transaction.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional

from cyberweaver.db.errors import ValidationError
from cyberweaver.db.models import SHAPE_ID_PREFIX, NodePayload, NodeType

_TYPES_BY_NAME = {t.value: t for t in NodeType}


def normalize_shape_id(raw: str) -> str:
    """Trim *raw* and make sure it carries the ``shape:`` prefix.

    Empty input is returned as the bare prefix; rejecting it is the
    validator's job.
    """
    trimmed = raw.strip()
    if trimmed.startswith(SHAPE_ID_PREFIX):
        return trimmed
    return f"{SHAPE_ID_PREFIX}{trimmed}"


def normalize_node_type(raw: str) -> Optional[NodeType]:
    """Map ``geo`` / ``text`` / ``note`` to :class:`NodeType`, else ``None``.

    Matching is exact after trimming, so ``"Geo"`` is unsupported.
    """
    if not isinstance(raw, str):
        return None
    return _TYPES_BY_NAME.get(raw.strip())


def _is_finite(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _is_valid_dimension(value: Any) -> bool:
    return value is None or (_is_finite(value) and value > 0)


def validate_payload(payload: NodePayload) -> None:
    """Raise :class:`ValidationError` for the first malformed field.

    Checks run in order: id, type, coordinates, width, height, content.
    """
    if not isinstance(payload.id, str) or not payload.id.strip():
        raise ValidationError("node.id must not be empty")

    if normalize_node_type(payload.type) is None:
        raise ValidationError(f"unsupported node type: {payload.type}")

    if not _is_finite(payload.x) or not _is_finite(payload.y):
        raise ValidationError("node coordinates must be finite numbers")

    if not _is_valid_dimension(payload.width):
        raise ValidationError(
            "node.width must be a positive finite number when provided"
        )

    if not _is_valid_dimension(payload.height):
        raise ValidationError(
            "node.height must be a positive finite number when provided"
        )

    if not isinstance(payload.content, str):
        raise ValidationError("node.content must be a string")


def normalize_delete_ids(ids: Iterable[str]) -> list[str]:
    """Trim, drop empties, prefix and deduplicate ids for a delete batch.

    Raises:
        ValidationError: If any id is not a string.
    """
    ids = list(ids)
    for raw in ids:
        if not isinstance(raw, str):
            raise ValidationError(f"node id must be a string, got {type(raw).__name__}")
    normalized = {
        normalize_shape_id(trimmed)
        for trimmed in (raw.strip() for raw in ids)
        if trimmed
    }
    return sorted(normalized)
