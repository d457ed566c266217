"""Persistence layer for live links, the sync gate and run logs."""

from .schema import SchemaReport, connect, ensure_schema
from .store import LinkStore

__all__ = ["LinkStore", "SchemaReport", "connect", "ensure_schema"]
