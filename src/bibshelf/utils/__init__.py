"""Hashing, timestamp and path helpers shared by the library modules."""

from bibshelf.utils.hashing import calculate_file_sha256
from bibshelf.utils.paths import (
    is_in_dir,
    normalize_path,
    real_path,
    resolve_link_target,
)
from bibshelf.utils.timestamps import get_file_mtime, get_iso_timestamp

__all__ = [
    "get_iso_timestamp",
    "get_file_mtime",
    "calculate_file_sha256",
    "is_in_dir",
    "normalize_path",
    "real_path",
    "resolve_link_target",
]
