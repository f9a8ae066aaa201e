"""Link tree synchronizer.

Reconciles the browsable link tree with a batch of records in four steps:

1. Snapshot: one walk records every existing link and its target.
2. Plan: link paths are derived for each record on a worker pool; links
   already pointing at a record's file (or at its pre-move path) are the
   record's existing links.
3. Diff: desired links missing or pointing elsewhere are created or
   replaced; existing links no longer desired are removed.
4. Apply: all filesystem changes are made on the calling thread.

Links owned by records outside the batch are never touched. Running the
same batch twice makes no change the second time.
"""

import os
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from bibshelf.audit.logger import AuditLogger
from bibshelf.config import LibraryConfig
from bibshelf.errors import (
    LibraryError,
    LinkCollisionError,
    LinkError,
    PreconditionError,
    RecordError,
)
from bibshelf.links.derive import derive_link_specs
from bibshelf.links.models import LinkPlan, SyncReport
from bibshelf.links.normalize import link_path
from bibshelf.links.snapshot import LinkSnapshot
from bibshelf.models import BibRecord
from bibshelf.utils import is_in_dir, normalize_path, real_path

__all__ = ["LinkSynchronizer"]

STAGE = "link"


class LinkSynchronizer:
    """Create, replace and remove the links of a batch of records.

    Parameters
    ----------
    config : LibraryConfig
        Library configuration.
    logger : AuditLogger | None, optional
        Audit logger for per-link events.
    """

    def __init__(self, config: LibraryConfig, logger: AuditLogger | None = None) -> None:
        self.config = config
        self.logger = logger

    def sync(
        self,
        records: list[BibRecord],
        previous_paths: Mapping[str, Path] | None = None,
    ) -> SyncReport:
        """Reconcile the link tree with ``records``.

        Parameters
        ----------
        records : list[BibRecord]
            Records whose ``file`` sits at its canonical store path.
        previous_paths : Mapping[str, Path] | None, optional
            Pre-move file path per citation key, as reported by placement.
            Links still pointing there are treated as the record's own.

        Returns
        -------
        SyncReport
            Counters and per-record errors. Link collisions are reported
            as ``LinkCollisionError`` and leave the occupant in place.
        """
        report = SyncReport(records=len(records))
        snapshot = LinkSnapshot.take(self.config.root, self.config.reserved_dirs)
        plans = self.plan(records, snapshot, previous_paths or {}, report)

        for plan in plans:
            self._remove_stale(plan, snapshot, report)
        for plan in plans:
            for path in plan.desired:
                self._ensure_link(plan, path, snapshot, report)

        return report

    def plan(
        self,
        records: list[BibRecord],
        snapshot: LinkSnapshot,
        previous_paths: Mapping[str, Path],
        report: SyncReport,
    ) -> list[LinkPlan]:
        """Compute the link plan of every record, without touching the disk.

        Records that cannot be planned, and link paths derived for more
        than one record, are reported in ``report.errors``. Among records
        deriving the same path, the first in batch order keeps it.
        """
        workers = max(1, min(self.config.workers, len(records)))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="bibshelf-derive"
        ) as executor:
            futures = [executor.submit(self._derive, record) for record in records]

        plans: list[LinkPlan] = []
        claims: dict[Path, BibRecord] = {}

        for record, future in zip(records, futures, strict=True):
            try:
                target, paths = future.result()
            except LibraryError as e:
                report.errors.append(RecordError.from_exception(e, stage=STAGE))
                continue

            desired: list[Path] = []
            for path in paths:
                owner = claims.setdefault(path, record)
                if owner is record:
                    desired.append(path)
                    continue
                exc = LinkCollisionError(
                    f"link path is also derived for record '{owner.key}'",
                    key=record.key,
                    path=path,
                )
                report.errors.append(RecordError.from_exception(exc, stage=STAGE))

            resolved = real_path(target)
            owned = {resolved}
            previous = previous_paths.get(record.key)
            if previous is not None:
                owned.add(real_path(previous))

            plans.append(
                LinkPlan(
                    record=record,
                    target=target,
                    resolved_target=resolved,
                    owned_targets=frozenset(owned),
                    desired=tuple(desired),
                    existing=tuple(snapshot.links_to(owned)),
                )
            )

        return plans

    def _derive(self, record: BibRecord) -> tuple[Path, tuple[Path, ...]]:
        file = record.file
        if file is None:
            raise PreconditionError("record has no file", key=record.key)
        target = normalize_path(file)
        if not is_in_dir(self.config.store_dir, target):
            raise PreconditionError(
                "file is not in the canonical store", key=record.key, path=target
            )
        if not target.is_file():
            raise PreconditionError("file does not exist", key=record.key, path=target)

        specs = derive_link_specs(record)
        paths = dict.fromkeys(link_path(self.config.root, spec) for spec in specs)
        return target, tuple(paths)

    def _remove_stale(self, plan: LinkPlan, snapshot: LinkSnapshot, report: SyncReport) -> None:
        for path in plan.stale:
            if snapshot.target_of(path) not in plan.owned_targets:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                exc = LinkError(
                    f"could not remove link: {e.strerror or e}", key=plan.record.key, path=path
                )
                report.errors.append(RecordError.from_exception(exc, stage=STAGE))
                continue
            snapshot.discard(path)
            report.removed += 1
            self._log("link_removed", plan, path)

    def _ensure_link(
        self,
        plan: LinkPlan,
        path: Path,
        snapshot: LinkSnapshot,
        report: SyncReport,
    ) -> None:
        current = snapshot.target_of(path)
        if current == plan.resolved_target:
            report.unchanged += 1
            return

        key = plan.record.key
        try:
            if current is not None:
                if current not in plan.owned_targets and current.exists():
                    raise LinkCollisionError(
                        f"link path already points to '{current}'", key=key, path=path
                    )
                path.unlink(missing_ok=True)
                snapshot.discard(path)
            elif os.path.lexists(path):
                raise LinkCollisionError(
                    "link path is occupied by a file or directory", key=key, path=path
                )

            path.parent.mkdir(parents=True, exist_ok=True)
            path.symlink_to(plan.target)
        except LinkError as e:
            report.errors.append(RecordError.from_exception(e, stage=STAGE))
            return
        except OSError as e:
            message = f"could not link to '{plan.target}': {e.strerror or e}"
            exc = LinkError(message, key=key, path=path)
            report.errors.append(RecordError.from_exception(exc, stage=STAGE))
            return

        snapshot.add(path, plan.resolved_target)
        if current is None:
            report.created += 1
            self._log("link_created", plan, path)
        else:
            report.replaced += 1
            self._log("link_replaced", plan, path)

    def _log(self, event: str, plan: LinkPlan, path: Path) -> None:
        if self.logger:
            self.logger.event(
                event,
                data={"path": str(path.relative_to(self.config.root)), "target": str(plan.target)},
                stage=STAGE,
                rid=plan.record.key,
            )
