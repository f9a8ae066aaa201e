"""Audited runs: one directory of events and a manifest per library operation."""

import sys
import time
import traceback
from pathlib import Path
from typing import Any

from bibshelf.audit.helpers import (
    generate_run_id,
    get_dependency_versions,
    get_package_version,
    get_platform_info,
    get_python_version,
)
from bibshelf.audit.logger import AuditLogger
from bibshelf.audit.manifest import ManifestWriter
from bibshelf.audit.models import (
    CommandInfo,
    EnvironmentInfo,
    ErrorInfo,
    FileInfo,
    InputsInfo,
    StageInfo,
)
from bibshelf.config import LibraryConfig
from bibshelf.utils import calculate_file_sha256, get_file_mtime, get_iso_timestamp

__all__ = ["RunContext"]

# Distributions whose versions go into every manifest.
_TRACKED_DEPENDENCIES = ["click", "jsonschema"]


def _environment() -> EnvironmentInfo:
    return EnvironmentInfo(
        python_version=get_python_version(),
        platform=get_platform_info(),
        package_version=get_package_version(),
        dependencies=get_dependency_versions(_TRACKED_DEPENDENCIES),
    )


def _describe_input(path: Path, records: int) -> FileInfo:
    return FileInfo(
        name=path.name,
        bytes=path.stat().st_size,
        sha256=calculate_file_sha256(path),
        records_extracted=records,
        mtime=get_file_mtime(path),
    )


class RunContext:
    """One audited library operation.

    Pipeline stages report through :meth:`start_stage`, :meth:`finish_stage`
    and :meth:`record_error`; each call goes both to ``events.jsonl`` and to
    the manifest. Used as a context manager, the run finishes as
    ``"success"``, as ``"partial"`` once any error was recorded, or as
    ``"failed"`` when an exception escapes the block.

    Attributes
    ----------
    run_id : str
        Name of the run directory.
    output_dir : Path
        The run directory.
    audit_logger : AuditLogger
        Writer for ``events.jsonl``.
    manifest_writer : ManifestWriter
        Builder for ``run.json``.
    error_count : int
        Errors recorded so far.
    """

    def __init__(
        self,
        run_id: str,
        output_dir: Path,
        audit_logger: AuditLogger,
        manifest_writer: ManifestWriter,
    ) -> None:
        self.run_id = run_id
        self.output_dir = output_dir
        self.audit_logger = audit_logger
        self.manifest_writer = manifest_writer
        self.error_count = 0
        self._started = time.monotonic()
        self._stage_clocks: dict[str, float] = {}

    @classmethod
    def start(
        cls,
        output_dir: Path,
        parameters: dict[str, Any],
        command_argv: list[str] | None = None,
        run_id: str | None = None,
        library_root: str = "",
    ) -> "RunContext":
        """Create ``output_dir`` and open a run in it.

        Parameters
        ----------
        output_dir : Path
            Run directory; created with its parents.
        parameters : dict[str, Any]
            Options recorded in the manifest and the ``run_started`` event.
        command_argv : list[str] | None, optional
            Invocation to record; ``sys.argv`` by default.
        run_id : str | None, optional
            Identifier to use instead of a fresh one.
        library_root : str, optional
            Library root recorded as the run's input.
        """
        run_id = run_id or generate_run_id()
        output_dir.mkdir(parents=True, exist_ok=True)
        command = CommandInfo(argv=command_argv or sys.argv, cwd=Path.cwd().name or None)

        audit_logger = AuditLogger(run_id=run_id, log_path=output_dir / "events.jsonl")
        manifest_writer = ManifestWriter(
            run_id=run_id,
            output_dir=output_dir,
            command=command,
            environment=_environment(),
            parameters=parameters,
            library_root=library_root,
        )
        audit_logger.run_started(command=command.argv, parameters=parameters)
        return cls(run_id, output_dir, audit_logger, manifest_writer)

    @classmethod
    def for_library(
        cls,
        config: LibraryConfig,
        parameters: dict[str, Any] | None = None,
        command_argv: list[str] | None = None,
    ) -> "RunContext":
        """Open a run under ``config.runs_dir``.

        The recorded parameters are the library configuration overlaid with
        the operation's own ``parameters``.
        """
        run_id = generate_run_id()
        return cls.start(
            output_dir=config.runs_dir / run_id,
            parameters={**config.to_dict(), **(parameters or {})},
            command_argv=command_argv,
            run_id=run_id,
            library_root=str(config.root),
        )

    def record_inputs(self, files: list[tuple[Path, int]]) -> None:
        """Record the BibTeX files an import read, each with its entry count."""
        infos = [_describe_input(path, count) for path, count in files]
        self.manifest_writer.set_inputs(
            InputsInfo(
                root=self.manifest_writer.manifest.inputs.root,
                files=infos,
                total_records_extracted=sum(info.records_extracted for info in infos),
            )
        )

    def start_stage(self, stage_name: str, expected_records: int | None = None) -> None:
        self._stage_clocks[stage_name] = time.monotonic()
        self.manifest_writer.add_stage(StageInfo(name=stage_name, started_at=get_iso_timestamp()))
        self.audit_logger.stage_started(stage=stage_name, expected_records=expected_records)

    def finish_stage(self, stage_name: str, counters: dict[str, int] | None = None) -> None:
        """Close a stage opened with :meth:`start_stage`.

        Parameters
        ----------
        stage_name : str
            The stage to close.
        counters : dict[str, int] | None, optional
            Totals for the stage, e.g. links created and replaced.

        Raises
        ------
        ValueError
            If the stage is not open.
        """
        clock = self._stage_clocks.pop(stage_name, None)
        if clock is None:
            raise ValueError(f"Stage not started: {stage_name}")
        duration = time.monotonic() - clock

        self.manifest_writer.finish_stage(stage_name, get_iso_timestamp(), duration)
        if counters:
            self.manifest_writer.update_stage_counters(stage_name, counters)
        self.audit_logger.stage_finished(
            stage=stage_name, duration_seconds=duration, counters=counters
        )

    def record_error(
        self,
        exception: BaseException,
        stage: str | None = None,
        rid: str | None = None,
        include_traceback: bool = False,
    ) -> None:
        """Record a failure in the manifest and the event log.

        Parameters
        ----------
        exception : BaseException
            The failure. Library errors carry the stored file or link they
            concern in ``path``, which is recorded too.
        stage : str | None, optional
            Stage that failed.
        rid : str | None, optional
            Citation key of the failing record.
        include_traceback : bool, optional
            Record the formatted traceback; used for run-level failures.
        """
        exception_class = type(exception).__name__
        message = str(exception)
        path = getattr(exception, "path", None)
        path = None if path is None else str(path)
        tb = None
        if include_traceback:
            tb = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )

        self.error_count += 1
        self.manifest_writer.add_error(
            ErrorInfo(
                timestamp=get_iso_timestamp(),
                exception_class=exception_class,
                message=message,
                stage=stage,
                traceback=tb,
                rid=rid,
                path=path,
            )
        )
        self.audit_logger.error(
            exception_class=exception_class,
            message=message,
            stage=stage,
            rid=rid,
            path=path,
            traceback=tb,
        )

    def finish(self, status: str = "success", records_processed: int | None = None) -> None:
        """End the run and write ``run.json``.

        The event log is closed first, so the hash listed for it in the
        manifest covers every event, ``run_finished`` included.
        """
        duration = time.monotonic() - self._started
        self.audit_logger.run_finished(
            status=status,
            duration_seconds=duration,
            records_processed=records_processed,
        )
        self.audit_logger.close()

        self.manifest_writer.compute_output_artifacts()
        self.manifest_writer.finish(
            status=status,
            finished_at=get_iso_timestamp(),
            duration_seconds=duration,
        )

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            self.record_error(exc_val, include_traceback=True)
            self.finish(status="failed")
        else:
            self.finish(status="partial" if self.error_count else "success")
