from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep our own logs; let third-party libraries through only at WARNING+.
    uvicorn's own loggers stay visible so startup and access lines show up.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith("src.") or name.startswith("uvicorn"):
            return True
        if name == "py.warnings":
            return record.levelno >= logging.ERROR
        return record.levelno >= logging.WARNING


def _level(value: str) -> int:
    level = logging.getLevelName(str(value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(*, level: str = "INFO", log_file: Optional[str | Path] = None) -> None:
    """
    Configure the root logger with a filtered console handler and, when
    ``log_file`` is set, a file handler receiving everything at ``level``.

    Call once, before the app is created.
    """
    root = logging.getLogger()
    root.setLevel(_level(level))

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding="utf-8")
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)
