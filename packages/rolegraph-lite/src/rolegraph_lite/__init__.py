"""rolegraph lite: local entity stores and the rolegraph CLI."""

from __future__ import annotations

from rolegraph_lite.store.memory_store import InMemoryEntityStore
from rolegraph_lite.store.sqlite_store import SQLiteEntityStore

__version__ = "0.1.0"

__all__ = ["InMemoryEntityStore", "SQLiteEntityStore"]
