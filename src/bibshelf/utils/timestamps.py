"""UTC timestamps in the ISO 8601 form used by run manifests and event logs."""

from datetime import UTC, datetime
from pathlib import Path

__all__ = ["get_iso_timestamp", "get_file_mtime"]


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def get_iso_timestamp() -> str:
    """Current time with microseconds, e.g. ``"2026-02-03T12:34:56.123456Z"``."""
    return _iso(datetime.now(UTC))


def get_file_mtime(file_path: Path) -> str:
    """Modification time of ``file_path`` to the second.

    Returns an empty string when the file cannot be stat'ed, so a BibTeX
    input that vanished mid-run still gets a manifest entry.
    """
    try:
        mtime = datetime.fromtimestamp(file_path.stat().st_mtime, UTC)
    except (OSError, ValueError):
        return ""
    return _iso(mtime.replace(microsecond=0))
