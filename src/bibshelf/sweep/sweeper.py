"""Removal of broken links and empty directories from the link tree."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from bibshelf.audit.logger import AuditLogger
from bibshelf.config import LibraryConfig
from bibshelf.errors import LinkError, RecordError
from bibshelf.links.snapshot import walk_library

__all__ = ["LinkSweeper", "SweepPlan", "SweepReport"]

STAGE = "sweep"


@dataclass
class SweepPlan:
    """What a sweep would delete.

    Attributes
    ----------
    broken_links : list[Path]
        Symbolic links whose target does not exist.
    directories : list[Path]
        Directories to remove if empty, deepest first.
    """

    broken_links: list[Path] = field(default_factory=list)
    directories: list[Path] = field(default_factory=list)


@dataclass
class SweepReport:
    """Result of a sweep.

    Attributes
    ----------
    links_removed : int
        Broken links deleted.
    dirs_removed : int
        Empty directories deleted.
    errors : list[RecordError]
        Deletions that failed.
    """

    links_removed: int = 0
    dirs_removed: int = 0
    errors: list[RecordError] = field(default_factory=list)

    def counters(self) -> dict[str, int]:
        """Counters for audit logging."""
        return {
            "links_removed": self.links_removed,
            "dirs_removed": self.dirs_removed,
            "failed": len(self.errors),
        }


class LinkSweeper:
    """Delete broken links, then empty directories, bottom-up.

    The canonical store and the state directory are never entered, and
    the library root itself is never removed. A link whose target exists
    is never deleted. Sweeping twice in a row deletes nothing the second
    time.

    Parameters
    ----------
    config : LibraryConfig
        Library configuration.
    logger : AuditLogger | None, optional
        Audit logger for deletion events.
    """

    def __init__(self, config: LibraryConfig, logger: AuditLogger | None = None) -> None:
        self.config = config
        self.logger = logger

    def plan(self) -> SweepPlan:
        """Walk the link tree once and collect deletion candidates."""
        plan = SweepPlan()
        root = self.config.root
        if not root.is_dir():
            return plan

        visited: list[Path] = []
        for directory, dirnames, filenames in walk_library(root, self.config.reserved_dirs):
            visited.append(directory)
            for name in (*dirnames, *filenames):
                path = directory / name
                if path.is_symlink() and not path.exists():
                    plan.broken_links.append(path)

        # pre-order reversed visits children before their parents
        plan.directories = [d for d in reversed(visited) if d != root]
        return plan

    def sweep(self) -> SweepReport:
        """Apply a fresh sweep plan.

        Returns
        -------
        SweepReport
            Deletion counters and failures.
        """
        plan = self.plan()
        report = SweepReport()

        for path in plan.broken_links:
            # re-check: the target may have appeared since the walk
            if not path.is_symlink() or path.exists():
                continue
            try:
                path.unlink()
            except OSError as e:
                self._fail(report, f"could not remove broken link: {e.strerror or e}", path)
                continue
            report.links_removed += 1
            self._log("broken_link_removed", path)

        for directory in plan.directories:
            try:
                if directory.is_symlink() or any(directory.iterdir()):
                    continue
                directory.rmdir()
            except FileNotFoundError:
                continue
            except OSError as e:
                message = f"could not remove empty directory: {e.strerror or e}"
                self._fail(report, message, directory)
                continue
            report.dirs_removed += 1
            self._log("empty_dir_removed", directory)

        return report

    def _fail(self, report: SweepReport, message: str, path: Path) -> None:
        report.errors.append(RecordError.from_exception(LinkError(message, path=path), stage=STAGE))

    def _log(self, event: str, path: Path) -> None:
        if self.logger:
            data = {"path": os.path.relpath(path, self.config.root)}
            self.logger.event(event, data=data, stage=STAGE)
