"""Change detection for write-back of bibliographic records."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from bibshelf.models import FILE_FIELD, BibRecord, calculate_fingerprint

__all__ = [
    "ChangeSummary",
    "is_modified",
    "commit_fingerprint",
    "partition_modified",
]


def is_modified(record: BibRecord) -> bool:
    """Check whether a record changed since its fingerprint was committed.

    The fresh fingerprint leaves out ``file``, so moving a PDF is not a
    modification. A record without a stored fingerprint is modified.

    Parameters
    ----------
    record : BibRecord
        Record to check.

    Returns
    -------
    bool
        True if the record needs to be written back.
    """
    stored = record.fingerprint
    if stored is None:
        return True
    return stored != calculate_fingerprint(record, FILE_FIELD)


def commit_fingerprint(record: BibRecord) -> str:
    """Compute and store the record's fingerprint.

    Call immediately before the record is persisted; afterwards
    ``is_modified(record)`` is False until the record changes again.

    Returns
    -------
    str
        The committed fingerprint.
    """
    fingerprint = calculate_fingerprint(record, FILE_FIELD)
    record.fingerprint = fingerprint
    return fingerprint


@dataclass
class ChangeSummary:
    """Batch split into modified and unmodified records.

    Both lists preserve batch order.

    Attributes
    ----------
    modified : list[BibRecord]
        Records that must be written back.
    unmodified : list[BibRecord]
        Records whose stored fingerprint is current.
    """

    modified: list[BibRecord] = field(default_factory=list)
    unmodified: list[BibRecord] = field(default_factory=list)

    @property
    def n_modified(self) -> int:
        """Number of modified records."""
        return len(self.modified)

    @property
    def n_unmodified(self) -> int:
        """Number of unmodified records."""
        return len(self.unmodified)

    def counters(self) -> dict[str, int]:
        """Counters for audit logging."""
        return {"modified": self.n_modified, "unmodified": self.n_unmodified}


def partition_modified(records: Iterable[BibRecord]) -> ChangeSummary:
    """Split records into modified and unmodified ones.

    Skipping the unmodified records is equivalent to rewriting them.

    Parameters
    ----------
    records : Iterable[BibRecord]
        Batch of records.

    Returns
    -------
    ChangeSummary
        Partitioned batch.
    """
    summary = ChangeSummary()
    for record in records:
        if is_modified(record):
            summary.modified.append(record)
        else:
            summary.unmodified.append(record)
    return summary
