"""
Read-only access to ``config/server-config.json`` under the data root.

The file is edited by hand; the server never writes it back.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .models import ServerConfig

logger = logging.getLogger(__name__)


def load_server_config(path: Path) -> ServerConfig:
    """
    Parse the server config file.

    A missing file, unreadable JSON or a non-object document all give the
    defaults; only the unreadable and non-object cases are logged.
    """
    if not path.is_file():
        logger.info("No server config at %s, using defaults", path)
        return ServerConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Unreadable server config %s, using defaults: %s", path, exc)
        return ServerConfig()

    if not isinstance(raw, dict):
        logger.warning("Server config %s is not a JSON object, using defaults", path)
        return ServerConfig()

    return ServerConfig.from_persist_dict(raw)
