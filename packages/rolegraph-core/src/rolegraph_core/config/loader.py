"""YAML config loading with env var expansion."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import RoleGraphConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ROLEGRAPH_CONFIG"

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def load_config(cli_path: str | None = None) -> RoleGraphConfig:
    """Load config with resolution order:
    CLI > $ROLEGRAPH_CONFIG > project-local > user-global > defaults.

    An explicitly named file (CLI or env) must exist. Empty files are
    skipped in favour of the next candidate.
    """
    for path in _candidate_paths(cli_path):
        raw = _read_config(path)
        if raw is None:
            continue
        try:
            config = RoleGraphConfig(**raw)
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
        logger.debug("Loaded config from %s", path)
        return config

    logger.debug("No config file found, using defaults")
    return RoleGraphConfig()


def _candidate_paths(cli_path: str | None) -> list[Path]:
    paths = []
    for explicit in (cli_path, os.environ.get(CONFIG_ENV_VAR)):
        if not explicit:
            continue
        path = Path(explicit).expanduser()
        if not path.exists():
            raise ValueError(f"Config file not found: {path}")
        paths.append(path)
    for implicit in (Path("rolegraph.yaml"), Path.home() / ".rolegraph" / "config.yaml"):
        if implicit.exists():
            paths.append(implicit)
    return paths


def _read_config(path: Path) -> dict | None:
    """Parse *path* and expand env references. None for an empty document."""
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping, got {type(raw).__name__}")
    return _expand_env_vars(raw)


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} and ${VAR:-fallback} references in strings.

    Unset variables without a fallback expand to the empty string.
    """
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `rolegraph config init`
DEFAULT_CONFIG_TEMPLATE = """\
# rolegraph.yaml

# Entity store
store:
  provider: "sqlite"           # sqlite | memory
  db_path: ".rolegraph/roles.db"

# Group traversal safety bounds
resolver:
  max_depth: 64                # shortest nesting path to any reached group
  max_groups: 10000            # distinct groups expanded per resolution

# Per-principal role cache
cache:
  enabled: true
  max_entries: 1024

# Third-party store backend registered under rolegraph.plugins.store
# plugins:
#   store: "postgres"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
