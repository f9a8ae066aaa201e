"""Data models for link tree reconciliation."""

from dataclasses import dataclass, field
from pathlib import Path

from bibshelf.errors import RecordError
from bibshelf.models import BibRecord

__all__ = ["LinkPlan", "SyncReport"]


@dataclass(frozen=True)
class LinkPlan:
    """Desired and existing links of one record.

    Attributes
    ----------
    record : BibRecord
        Record the links belong to.
    target : Path
        Absolute path of the record's canonical file.
    resolved_target : Path
        ``target`` with symbolic links along it resolved, the form in
        which the snapshot holds link targets.
    owned_targets : frozenset[Path]
        ``resolved_target`` plus the record's resolved pre-move paths;
        links pointing at any of them belong to this record.
    desired : tuple[Path, ...]
        Normalized link paths the record should have.
    existing : tuple[Path, ...]
        Link paths found in the snapshot that point at an owned target.
    """

    record: BibRecord
    target: Path
    resolved_target: Path
    owned_targets: frozenset[Path]
    desired: tuple[Path, ...]
    existing: tuple[Path, ...]

    @property
    def stale(self) -> tuple[Path, ...]:
        """Existing links that are no longer desired."""
        desired = set(self.desired)
        return tuple(path for path in self.existing if path not in desired)


@dataclass
class SyncReport:
    """Counters and errors of one link tree synchronization.

    Attributes
    ----------
    records : int
        Records whose links were reconciled.
    created : int
        Links created where nothing existed.
    replaced : int
        Dangling or outdated links replaced.
    removed : int
        Stale links removed.
    unchanged : int
        Desired links that already pointed at the right file.
    errors : list[RecordError]
        Per-record failures, including link collisions.
    """

    records: int = 0
    created: int = 0
    replaced: int = 0
    removed: int = 0
    unchanged: int = 0
    errors: list[RecordError] = field(default_factory=list)

    @property
    def mutations(self) -> int:
        """Number of filesystem changes made."""
        return self.created + self.replaced + self.removed

    def counters(self) -> dict[str, int]:
        """Counters for audit logging."""
        return {
            "records_in": self.records,
            "links_created": self.created,
            "links_replaced": self.replaced,
            "links_removed": self.removed,
            "links_unchanged": self.unchanged,
            "failed": len(self.errors),
        }
