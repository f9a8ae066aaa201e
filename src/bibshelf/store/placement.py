"""Library placement engine.

Moves each record's PDF to its canonical store path
``<root>/Files/<bucket>/<identity>.pdf``, where ``identity`` is the record's
fingerprint computed without the ``file`` field and ``bucket`` is its first
hex character.

Placement runs in two phases. Planning is sequential and decides, in batch
order, which record may claim which canonical path; every collision is
detected there. The moves themselves then run on a bounded thread pool in
which each worker owns a distinct target path.
"""

import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from bibshelf.audit.logger import AuditLogger
from bibshelf.config import LibraryConfig
from bibshelf.errors import (
    PlacementError,
    PreconditionError,
    RecordError,
    StoreCollisionError,
)
from bibshelf.models import FILE_FIELD, BibRecord, calculate_fingerprint
from bibshelf.store.models import PlacementOutcome, PlacementReport, PlacementStatus
from bibshelf.store.moves import move_file
from bibshelf.utils import is_in_dir, normalize_path

__all__ = ["LibraryPlacer"]

STAGE = "place"


@dataclass
class _PendingMove:
    index: int
    record: BibRecord
    source: Path
    target: Path
    status: PlacementStatus


class LibraryPlacer:
    """Place record files into the canonical store.

    Parameters
    ----------
    config : LibraryConfig
        Library configuration.
    logger : AuditLogger | None, optional
        Audit logger for per-record events.
    """

    def __init__(self, config: LibraryConfig, logger: AuditLogger | None = None) -> None:
        self.config = config
        self.logger = logger

    def canonical_path(self, record: BibRecord) -> Path:
        """Return the canonical store path of a record.

        Raises
        ------
        ValueError
            If the record has no type or key.
        """
        identity = calculate_fingerprint(record, FILE_FIELD)
        return self.config.store_dir / identity[0] / f"{identity}.pdf"

    def place(self, records: list[BibRecord]) -> PlacementReport:
        """Move the files of a batch of records into the canonical store.

        Parameters
        ----------
        records : list[BibRecord]
            Records whose ``file`` field names an existing regular file.

        Returns
        -------
        PlacementReport
            One outcome per record, in batch order. ``report.added`` lists
            the records that were new to the store.

        Notes
        -----
        A failing record keeps its file and its ``file`` field untouched;
        the remaining records are still processed. Two records mapping to
        the same canonical path, or a canonical path already holding a
        different file, are reported as ``StoreCollisionError`` and never
        overwrite anything; so are two records naming the same source file.

        A record whose file is gone while its canonical path holds a file
        adopts that file as ``RELOCATED``, with its recorded path as
        ``previous_path``. This completes a run that stopped between the
        move and the catalog write.
        """
        outcomes: list[PlacementOutcome | None] = [None] * len(records)
        pending = self._plan(records, outcomes)

        if pending:
            workers = min(self.config.workers, len(pending))
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="bibshelf-place"
            ) as executor:
                futures: dict[Future[None], _PendingMove] = {
                    executor.submit(move_file, move.source, move.target): move for move in pending
                }
                for future in as_completed(futures):
                    move = futures[future]
                    try:
                        future.result()
                    except OSError as e:
                        exc = PlacementError(
                            f"could not move file to '{move.target}': {e.strerror or e}",
                            key=move.record.key,
                            path=move.source,
                        )
                        outcomes[move.index] = _failed(move.record, exc)
                        continue

                    move.record.file = move.target
                    outcomes[move.index] = PlacementOutcome(
                        record=move.record,
                        status=move.status,
                        previous_path=move.source,
                    )
                    if self.logger:
                        self.logger.event(
                            "file_placed",
                            data={
                                "status": str(move.status),
                                "from": str(move.source),
                                "to": str(move.target),
                            },
                            stage=STAGE,
                            rid=move.record.key,
                        )

        return PlacementReport(outcomes=[o for o in outcomes if o is not None])

    def _plan(
        self,
        records: list[BibRecord],
        outcomes: list[PlacementOutcome | None],
    ) -> list[_PendingMove]:
        """Decide every record's fate except for the actual moves.

        Records claim canonical paths and source files in batch order; a
        later record wanting either gets a ``StoreCollisionError`` naming
        the earlier one.
        """
        claimed: dict[Path, BibRecord] = {}
        claimed_sources: dict[Path, BibRecord] = {}
        pending: list[_PendingMove] = []

        for index, record in enumerate(records):
            try:
                target = self.canonical_path(record)
                try:
                    source = self._check_source(record)
                except PreconditionError:
                    if not self._can_adopt(record, target, claimed, claimed_sources):
                        raise
                    claimed[target] = claimed_sources[target] = record
                    outcomes[index] = self._adopt(record, target)
                    continue

                owner = claimed.get(target)
                if owner is not None:
                    raise StoreCollisionError(
                        f"canonical path '{target}' is already claimed by record '{owner.key}'",
                        key=record.key,
                        path=source,
                    )
                owner = claimed_sources.get(source)
                if owner is not None:
                    raise StoreCollisionError(
                        f"file '{source}' is already claimed by record '{owner.key}'",
                        key=record.key,
                        path=source,
                    )
                claimed[target] = claimed_sources[source] = record

                if source == target or _same_file(source, target):
                    record.file = target
                    outcomes[index] = PlacementOutcome(
                        record=record, status=PlacementStatus.UNCHANGED
                    )
                    continue

                if os.path.lexists(target):
                    raise StoreCollisionError(
                        f"canonical path '{target}' already holds a different file",
                        key=record.key,
                        path=source,
                    )
            except (PreconditionError, PlacementError) as e:
                outcomes[index] = _failed(record, e)
                continue

            in_store = is_in_dir(self.config.store_dir, source)
            status = PlacementStatus.RELOCATED if in_store else PlacementStatus.ADDED
            pending.append(_PendingMove(index, record, source, target, status))

        return pending

    def _can_adopt(
        self,
        record: BibRecord,
        target: Path,
        claimed: dict[Path, BibRecord],
        claimed_sources: dict[Path, BibRecord],
    ) -> bool:
        # A move that completed before the catalog was saved leaves the
        # file at its canonical path while the record still names the old one.
        return (
            record.file is not None
            and target not in claimed
            and target not in claimed_sources
            and not target.is_symlink()
            and target.is_file()
        )

    def _adopt(self, record: BibRecord, target: Path) -> PlacementOutcome:
        previous = normalize_path(record.file)
        record.file = target
        if self.logger:
            self.logger.event(
                "file_adopted",
                data={"from": str(previous), "to": str(target)},
                stage=STAGE,
                rid=record.key,
            )
        return PlacementOutcome(
            record=record, status=PlacementStatus.RELOCATED, previous_path=previous
        )

    def _check_source(self, record: BibRecord) -> Path:
        path = record.file
        if path is None:
            raise PreconditionError("record has no file", key=record.key)
        source = normalize_path(path)
        if source.is_symlink():
            source = source.resolve()
        if not source.is_file():
            raise PreconditionError(
                "file does not exist or is not a regular file", key=record.key, path=source
            )
        return source


def _failed(record: BibRecord, exc: Exception) -> PlacementOutcome:
    error = RecordError.from_exception(exc, stage=STAGE, key=record.key)
    return PlacementOutcome(record=record, status=PlacementStatus.FAILED, error=error)


def _same_file(a: Path, b: Path) -> bool:
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False
