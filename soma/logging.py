"""Process-wide logging setup for the transfer service."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Per-request chatter from the HTTP stacks behind httpx and spotipy.
_CLIENT_LOGGERS = ("httpx", "httpcore", "spotipy", "urllib3")


def configure_logging(level: str = "INFO") -> None:
    """Log to stdout at ``level``; HTTP client libraries only log warnings unless DEBUG."""

    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    client_level = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in _CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(client_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
