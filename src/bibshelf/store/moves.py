"""Crash-safe file moves into the canonical store."""

import errno
import os
import secrets
import shutil
from pathlib import Path

from bibshelf.utils import calculate_file_sha256

__all__ = ["move_file"]


def move_file(source: Path, target: Path) -> None:
    """Move ``source`` to ``target``.

    Within one filesystem this is a single ``os.replace``. Across
    filesystems the file is copied to a temporary sibling of ``target``,
    verified by size and SHA-256, renamed into place, and only then is
    the source deleted. On any failure the source is left untouched and
    nothing is left at ``target``.

    Parameters
    ----------
    source : Path
        Existing regular file.
    target : Path
        Destination path; missing parent directories are created.

    Raises
    ------
    OSError
        If the move, copy or verification fails.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(source, target)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        _copy_verify_replace(source, target)


def _copy_verify_replace(source: Path, target: Path) -> None:
    temp_path = target.with_name(f".{target.name}.{secrets.token_hex(4)}.tmp")
    try:
        shutil.copy2(source, temp_path)
        with temp_path.open("rb") as f:
            os.fsync(f.fileno())

        if temp_path.stat().st_size != source.stat().st_size or calculate_file_sha256(
            temp_path
        ) != calculate_file_sha256(source):
            raise OSError(errno.EIO, "copy verification failed", str(source))

        temp_path.replace(target)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise

    try:
        source.unlink()
    except OSError:
        # Leave one copy only: the source, as if nothing had happened.
        target.unlink(missing_ok=True)
        raise
