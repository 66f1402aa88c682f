"""Dataclass models representing node payloads and DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

SHAPE_ID_PREFIX = "shape:"


class NodeType(str, Enum):
    """The closed set of persistable node types."""

    GEO = "geo"
    TEXT = "text"
    NOTE = "note"


@dataclass
class NodePayload:
    """A caller-supplied node record, not yet normalised."""

    id: str
    type: str
    x: float
    y: float
    content: str
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass
class Node:
    id: str
    type: NodeType
    x: float
    y: float
    content: str
    width: Optional[float]
    height: Optional[float]
    updated_at: int

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation (``updated_at`` is not exposed)."""
        return {
            "id": self.id,
            "type": self.type.value,
            "x": self.x,
            "y": self.y,
            "content": self.content,
            "width": self.width,
            "height": self.height,
        }
