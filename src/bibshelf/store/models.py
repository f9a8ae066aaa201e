"""Result types for the library placement engine."""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from bibshelf.errors import RecordError
from bibshelf.models import BibRecord

__all__ = ["PlacementStatus", "PlacementOutcome", "PlacementReport"]


class PlacementStatus(StrEnum):
    """Placement outcome of a single record.

    Attributes
    ----------
    ADDED : str
        File was outside the store and has been moved in.
    RELOCATED : str
        File was in the store but at an outdated path.
    UNCHANGED : str
        File already sat at its canonical path.
    FAILED : str
        Placement failed; file and record are untouched.
    """

    ADDED = "added"
    RELOCATED = "relocated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class PlacementOutcome:
    """What happened to one record during placement.

    Attributes
    ----------
    record : BibRecord
        The record (its ``file`` is updated on success).
    status : PlacementStatus
        Placement outcome.
    previous_path : Path | None
        Path of the file before it was moved, if it moved.
    error : RecordError | None
        Failure details when ``status`` is FAILED.
    """

    record: BibRecord
    status: PlacementStatus
    previous_path: Path | None = None
    error: RecordError | None = None


@dataclass
class PlacementReport:
    """Batch placement results, in batch order.

    Attributes
    ----------
    outcomes : list[PlacementOutcome]
        One outcome per input record.
    """

    outcomes: list[PlacementOutcome] = field(default_factory=list)

    def _with_status(self, status: PlacementStatus) -> list[BibRecord]:
        return [o.record for o in self.outcomes if o.status == status]

    @property
    def added(self) -> list[BibRecord]:
        """Records whose file was outside the store before this batch."""
        return self._with_status(PlacementStatus.ADDED)

    @property
    def relocated(self) -> list[BibRecord]:
        """Records moved from one store path to another."""
        return self._with_status(PlacementStatus.RELOCATED)

    @property
    def unchanged(self) -> list[BibRecord]:
        """Records already at their canonical path."""
        return self._with_status(PlacementStatus.UNCHANGED)

    @property
    def placed(self) -> list[BibRecord]:
        """All records that now sit at their canonical path."""
        return [o.record for o in self.outcomes if o.status != PlacementStatus.FAILED]

    @property
    def previous_paths(self) -> dict[str, Path]:
        """Map of citation key to the pre-move path of every moved record."""
        return {o.record.key: o.previous_path for o in self.outcomes if o.previous_path is not None}

    @property
    def errors(self) -> list[RecordError]:
        """Per-record failures."""
        return [o.error for o in self.outcomes if o.error is not None]

    def counters(self) -> dict[str, int]:
        """Counters for audit logging."""
        return {
            "records_in": len(self.outcomes),
            "added": len(self.added),
            "relocated": len(self.relocated),
            "unchanged": len(self.unchanged),
            "failed": len(self.errors),
        }
