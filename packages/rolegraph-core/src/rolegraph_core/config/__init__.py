from .loader import load_config
from .models import (
    CacheConfig,
    PluginsConfig,
    ResolverConfig,
    RoleGraphConfig,
    StoreConfig,
)

__all__ = [
    "CacheConfig",
    "PluginsConfig",
    "ResolverConfig",
    "RoleGraphConfig",
    "StoreConfig",
    "load_config",
]
