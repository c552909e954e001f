"""Dynamic store backend discovery and loading."""

from rolegraph_core.plugins.loader import PluginLoader, PluginNotFoundError

__all__ = ["PluginLoader", "PluginNotFoundError"]
