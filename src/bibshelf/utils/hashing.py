"""Content hashes for verifying stored PDFs and recording run artifacts."""

import hashlib
from pathlib import Path

__all__ = ["calculate_file_sha256"]

_CHUNK_SIZE = 1 << 16


def calculate_file_sha256(path: Path) -> str:
    """Return the SHA-256 of a file as ``"sha256:<hex>"``.

    The file is streamed, so large PDFs copied across filesystems can be
    checked against their source without reading them whole.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    """
    digest = hashlib.sha256()
    with path.open("rb") as stream:
        for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return f"sha256:{digest.hexdigest()}"
