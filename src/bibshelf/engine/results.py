"""Result type of library runs."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from bibshelf.errors import RecordError

__all__ = ["LibraryStatus", "PipelineResult"]


@dataclass
class PipelineResult:
    """Results from a library run.

    A run that completed but failed for some records is not successful;
    ``errors`` lists every failing record.

    Attributes
    ----------
    success : bool
        Whether every stage completed for every record.
    total_records : int
        Records in the batch.
    keys_generated : int
        Citation keys changed by key generation.
    added : int
        PDF files moved into the canonical store.
    relocated : int
        PDF files moved between canonical store paths.
    unmodified : int
        Records skipped by write-back because their fingerprint is current.
    written : int
        Records whose fingerprint was committed to the catalog.
    links_created : int
        Links created where nothing existed.
    links_replaced : int
        Dangling or outdated links replaced.
    links_removed : int
        Stale links of batch records removed.
    links_swept : int
        Broken links removed by the sweeper.
    dirs_swept : int
        Empty directories removed by the sweeper.
    errors : list[RecordError]
        Per-record failures.
    error_message : str | None
        Error message if the run aborted.
    run_id : str | None
        Audit run identifier, if the run was audited.
    """

    success: bool
    total_records: int = 0
    keys_generated: int = 0
    added: int = 0
    relocated: int = 0
    unmodified: int = 0
    written: int = 0
    links_created: int = 0
    links_replaced: int = 0
    links_removed: int = 0
    links_swept: int = 0
    dirs_swept: int = 0
    errors: list[RecordError] = field(default_factory=list)
    error_message: str | None = None
    run_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "errors"}
        result["errors"] = [error.to_dict() for error in self.errors]
        return result


@dataclass
class LibraryStatus:
    """Summary of a library's catalog and canonical store.

    Attributes
    ----------
    records : int
        Records in the catalog.
    modified : int
        Catalog records edited since their fingerprint was committed.
    unmodified : int
        Catalog records whose fingerprint is current.
    missing_files : list[Path]
        Files named by catalog records that do not exist.
    unreferenced_files : list[Path]
        PDF files in the store that no catalog record names.
    """

    records: int
    modified: int
    unmodified: int
    missing_files: list[Path] = field(default_factory=list)
    unreferenced_files: list[Path] = field(default_factory=list)
