"""Database layer package.

Public re-exports so callers can write::

    from cyberweaver.db import NodeStore, get_connection, init_schema
"""

from cyberweaver.db.connection import get_connection
from cyberweaver.db.errors import NodeStoreError, SchemaError, StoreError, ValidationError
from cyberweaver.db.migrations import init_schema
from cyberweaver.db.models import Node, NodePayload, NodeType
from cyberweaver.db.nodes import NodeStore

__all__ = [
    "get_connection",
    "init_schema",
    "Node",
    "NodePayload",
    "NodeStore",
    "NodeStoreError",
    "NodeType",
    "SchemaError",
    "StoreError",
    "ValidationError",
]
