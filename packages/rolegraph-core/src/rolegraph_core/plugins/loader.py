"""Dynamic store backend discovery and loading via entry points."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import TYPE_CHECKING

from rolegraph_core.interfaces.store import EntityStore

if TYPE_CHECKING:
    from rolegraph_core.config.models import RoleGraphConfig

logger = logging.getLogger(__name__)


class PluginNotFoundError(Exception):
    """Raised when a requested plugin cannot be found."""

    def __init__(self, plugin_type: str, name: str | None = None):
        self.plugin_type = plugin_type
        self.name = name
        msg = f"No {plugin_type} plugin found"
        if name:
            msg += f" with name '{name}'"
        super().__init__(msg)


class PluginLoader:
    """Discovers and loads store backends via entry points or config."""

    # Entry point group names
    GROUPS = {
        "store": "rolegraph.plugins.store",
    }

    # Bundled backends keyed by store.provider (lazy import paths)
    LITE_DEFAULTS = {
        "memory": ("rolegraph_lite.store.memory_store", "InMemoryEntityStore"),
        "sqlite": ("rolegraph_lite.store.sqlite_store", "SQLiteEntityStore"),
    }

    def __init__(self, config: RoleGraphConfig):
        self._config = config

    def discover(self) -> dict[str, list[str]]:
        """Scan entry_points for registered plugins. Returns {type: [name, ...]}."""
        result: dict[str, list[str]] = {}
        for plugin_type, group in self.GROUPS.items():
            eps = importlib.metadata.entry_points(group=group)
            result[plugin_type] = [ep.name for ep in eps]
        return result

    def _resolve_name(self, name: str | None) -> str | None:
        """Resolve plugin name: explicit arg > config > None."""
        if name is not None:
            return name
        return self._config.plugins.store

    def _load_from_entry_point(self, name: str) -> object | None:
        """Try to load a specific named entry point."""
        eps = importlib.metadata.entry_points(group=self.GROUPS["store"])
        for ep in eps:
            if ep.name == name:
                return ep.load()
        return None

    def _load_lite_default(self, provider: str) -> object | None:
        """Try to import the bundled backend for *provider*."""
        if provider not in self.LITE_DEFAULTS:
            return None
        module_path, class_name = self.LITE_DEFAULTS[provider]
        try:
            module = __import__(module_path, fromlist=[class_name])
            return getattr(module, class_name)
        except (ImportError, AttributeError):
            return None

    def load_store(self, name: str | None = None) -> type:
        """Fallback chain: name/config > entry_points > bundled backend."""
        resolved = self._resolve_name(name)
        if resolved is not None:
            result = self._load_from_entry_point(resolved)
            if result is not None:
                return result
            # Name was explicit but not found -- don't fallback silently
            raise PluginNotFoundError("store", resolved)

        provider = self._config.store.provider
        plugin_cls = self._load_lite_default(provider)
        if plugin_cls is None:
            raise PluginNotFoundError("store", provider)
        return plugin_cls

    def create_store(self, name: str | None = None) -> EntityStore:
        """Load and instantiate the configured store backend.

        Bundled SQLite stores receive ``store.db_path``; other backends are
        constructed without arguments.
        """
        plugin_cls = self.load_store(name)
        if self._resolve_name(name) is None and self._config.store.provider == "sqlite":
            store = plugin_cls(db_path=self._config.store.db_path)
        else:
            store = plugin_cls()
        logger.debug("Created %s store backend", type(store).__name__)
        return store
