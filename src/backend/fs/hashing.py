"""
APK hashing utilities.

Head units verify downloads against an MD5 ``hash_code``. When a release
carries no precomputed hash we hash the APK on disk, and fall back to a
stable mock digest when the file is absent.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "md5"

# Buffer size for streaming hash computation
BUFFER_SIZE = 65536  # 64 KB


def compute_file_hash(file_path: Path | str) -> str:
    """
    Compute the MD5 hash of a file's contents.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        IOError: If the file cannot be read.
    """
    path = Path(file_path)
    hasher = hashlib.new(HASH_ALGORITHM)

    with open(path, 'rb') as f:
        _update_hash_from_stream(hasher, f)

    return hasher.hexdigest()


def compute_mock_hash(app_id: str) -> str:
    return hashlib.new(HASH_ALGORITHM, f"mock:{app_id}".encode("utf-8")).hexdigest()


def resolve_apk_hash(app_id: str, apk_path: Optional[Path]) -> str:
    """Hash of the APK if it exists on disk, otherwise the mock digest for ``app_id``."""
    if apk_path is not None and apk_path.is_file():
        try:
            return compute_file_hash(apk_path)
        except OSError as exc:
            logger.warning("Cannot hash %s, using mock hash: %s", apk_path, exc)
    return compute_mock_hash(app_id)


def _update_hash_from_stream(hasher, stream: BinaryIO) -> None:
    """Update a hash object from a stream in chunks."""
    while True:
        chunk = stream.read(BUFFER_SIZE)
        if not chunk:
            break
        hasher.update(chunk)
