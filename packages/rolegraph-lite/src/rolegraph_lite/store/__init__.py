"""Bundled entity store backends."""

from __future__ import annotations

from rolegraph_lite.store.memory_store import InMemoryEntityStore
from rolegraph_lite.store.sqlite_store import SQLiteEntityStore

__all__ = ["InMemoryEntityStore", "SQLiteEntityStore"]
