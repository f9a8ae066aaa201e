"""Change detector: decides which records need to be written back."""

from bibshelf.changes.detector import (
    ChangeSummary,
    commit_fingerprint,
    is_modified,
    partition_modified,
)

__all__ = [
    "ChangeSummary",
    "commit_fingerprint",
    "is_modified",
    "partition_modified",
]
