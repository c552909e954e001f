"""Root logger setup driven by ``log_level`` / ``log_format`` from config."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(level: str = "info", fmt: str = "text") -> None:
    """Configure the root logger.

    ``text`` renders through Rich on stderr; ``json`` emits one JSON object
    per line via python-json-logger.
    """
    numeric = _LEVELS.get(level.lower(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric)

    # Remove any existing handlers so repeated CLI invocations don't double-log.
    root.handlers.clear()

    if fmt == "json":
        from pythonjsonlogger.json import JsonFormatter

        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(
            JsonFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))

    handler.setLevel(numeric)
    root.addHandler(handler)
