from pydantic import BaseModel, Field
from typing import Literal


class StoreConfig(BaseModel):
    provider: Literal["memory", "sqlite"] = "sqlite"
    db_path: str = ".rolegraph/roles.db"


class ResolverConfig(BaseModel):
    # Shortest nesting path from a seed group. Bounded by the interpreter's recursion limit.
    max_depth: int = Field(default=64, gt=0, le=500)
    max_groups: int = Field(default=10_000, gt=0)


class CacheConfig(BaseModel):
    enabled: bool = True
    max_entries: int | None = Field(default=1024, gt=0)


class PluginsConfig(BaseModel):
    store: str | None = None


class RoleGraphConfig(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
