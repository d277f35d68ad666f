"""Environment overrides applied on top of the JSON server config."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from .models import ServerConfig

ENV_PREFIX = "APPSTORE"


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(environ: Mapping[str, str], name: str, default: str = "") -> str:
    v = environ.get(name)
    return default if v is None else v


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def is_dev_mode(environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return _env(environ, _k("ENV")).strip().lower() in {"dev", "development"}


def data_root(default: Path, environ: Optional[Mapping[str, str]] = None) -> Path:
    environ = os.environ if environ is None else environ
    raw = _env(environ, _k("DATA_ROOT")).strip()
    if not raw:
        return default
    return Path(raw).expanduser()


def apply_environment(config: ServerConfig, environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    environ = os.environ if environ is None else environ
    config.dev_mode = is_dev_mode(environ)

    level = _env(environ, _k("LOG_LEVEL")).strip()
    if level:
        config.logging.level = level.upper()
    config.logging.log_requests = _env_bool(environ, _k("LOG_REQUESTS"), config.logging.log_requests)
    return config
