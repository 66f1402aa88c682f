"""Error hierarchy for the node persistence layer.

Callers that only need a message can catch :class:`NodeStoreError`; tests
and the command boundary distinguish the concrete kinds.
"""

from __future__ import annotations


class NodeStoreError(Exception):
    """Base class for every error raised by ``cyberweaver.db``."""


class ValidationError(NodeStoreError, ValueError):
    """A node payload was rejected before any I/O happened."""


class SchemaError(NodeStoreError):
    """Creating or migrating the ``nodes`` table failed."""


class StoreError(NodeStoreError):
    """A read or write against the ``nodes`` table failed."""
