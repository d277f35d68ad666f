"""
Entry point: ``python -m src.backend.main``.

Development mode (``APPSTORE_ENV=development``) serves plain HTTP on the dev
host/port; otherwise HTTPS with the configured key and certificate.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import uvicorn

from .app import create_app, load_config
from .logging_setup import configure_logging

logger = logging.getLogger(__name__)


def _resolve(path: str, base: Path) -> Path:
    p = Path(path).expanduser()
    return p if p.is_absolute() else base / p


def main() -> int:
    data_root, config = load_config()
    configure_logging(level=config.logging.level, log_file=config.logging.file or None)

    ssl_options: dict[str, str] = {}
    if not config.dev_mode:
        base = Path(__file__).resolve().parents[2]
        key_path = _resolve(config.server.ssl_key_path, base)
        cert_path = _resolve(config.server.ssl_cert_path, base)
        if not key_path.is_file() or not cert_path.is_file():
            logger.error("SSL certificates not found (%s, %s)", key_path, cert_path)
            return 1
        ssl_options = {"ssl_keyfile": str(key_path), "ssl_certfile": str(cert_path)}

    app = create_app(data_root=data_root, config=config)
    scheme = "http" if config.dev_mode else "https"
    logger.info("Listening on %s://%s:%d", scheme, config.listen_host, config.listen_port)

    try:
        uvicorn.run(app, host=config.listen_host, port=config.listen_port, log_config=None, **ssl_options)
    except OSError as exc:
        logger.error("Server error: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
