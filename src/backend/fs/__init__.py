"""
File system utilities for the data root.

Provides:
- Data root directory structure (storage.py)
- APK hashing (hashing.py)
- Whole-document JSON logs (json_file.py)
"""

from .storage import DataPaths, ensure_data_dirs, resolve_data_paths
from .hashing import compute_file_hash, compute_mock_hash, resolve_apk_hash
from .json_file import JsonDocument

__all__ = [
    "DataPaths",
    "ensure_data_dirs",
    "resolve_data_paths",
    "compute_file_hash",
    "compute_mock_hash",
    "resolve_apk_hash",
    "JsonDocument",
]
