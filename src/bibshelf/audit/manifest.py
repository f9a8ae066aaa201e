"""Builder for a run's ``run.json`` manifest."""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any

from bibshelf.audit.models import (
    ArtifactInfo,
    CommandInfo,
    EnvironmentInfo,
    ErrorInfo,
    InputsInfo,
    ManifestData,
    OutputsInfo,
    StageInfo,
)
from bibshelf.utils import calculate_file_sha256, get_iso_timestamp

__all__ = ["MANIFEST_VERSION", "ManifestWriter"]

MANIFEST_VERSION = "1.0.0"


class ManifestWriter:
    """Accumulates the manifest of one run and writes it when the run ends.

    The manifest starts out with status ``"partial"``; it reaches disk only
    through :meth:`finish`, which replaces ``run.json`` in one rename.

    Attributes
    ----------
    manifest : ManifestData
        The manifest under construction.
    output_dir : Path
        The run directory.
    manifest_path : Path
        ``run.json`` inside the run directory.
    """

    def __init__(
        self,
        run_id: str,
        output_dir: Path,
        command: CommandInfo,
        environment: EnvironmentInfo,
        parameters: dict[str, Any],
        library_root: str = "",
    ) -> None:
        self.output_dir = output_dir
        self.manifest_path = output_dir / "run.json"
        self.manifest = ManifestData(
            manifest_version=MANIFEST_VERSION,
            run_id=run_id,
            created_at=get_iso_timestamp(),
            status="partial",
            command=command,
            environment=environment,
            inputs=InputsInfo(root=library_root, files=[], total_records_extracted=0),
            parameters=parameters,
            stages=[],
            outputs=OutputsInfo(),
        )
        self._stages: dict[str, StageInfo] = {}

    def _stage(self, name: str) -> StageInfo:
        try:
            return self._stages[name]
        except KeyError:
            raise ValueError(f"Stage not found: {name}") from None

    def set_inputs(self, inputs: InputsInfo) -> None:
        self.manifest.inputs = inputs

    def add_stage(self, stage: StageInfo) -> None:
        self.manifest.stages.append(stage)
        self._stages[stage.name] = stage

    def update_stage_counters(self, stage_name: str, counters: dict[str, int]) -> None:
        """Merge ``counters`` into a started stage; ValueError if it was never added."""
        self._stage(stage_name).counters.update(counters)

    def finish_stage(
        self,
        stage_name: str,
        finished_at: str | None = None,
        duration_seconds: float | None = None,
    ) -> None:
        """Stamp the end time and duration of a started stage.

        Raises
        ------
        ValueError
            If no stage named ``stage_name`` was added.
        """
        stage = self._stage(stage_name)
        stage.finished_at = finished_at or get_iso_timestamp()
        stage.duration_seconds = duration_seconds

    def add_file_artifact(self, path: Path, record_count: int | None = None) -> ArtifactInfo:
        """Hash a file the run wrote and list it among the outputs.

        Parameters
        ----------
        path : Path
            The file. Files in the run directory are listed by their
            relative name; anything else, like the catalog, by full path.
        record_count : int | None, optional
            Records the file holds, for catalogs.

        Returns
        -------
        ArtifactInfo
            The listed artifact.
        """
        if path.is_relative_to(self.output_dir):
            name = str(path.relative_to(self.output_dir))
        else:
            name = str(path)

        artifact = ArtifactInfo(
            path=name,
            sha256=calculate_file_sha256(path),
            bytes=path.stat().st_size,
            record_count=record_count,
        )
        self.manifest.outputs.artifacts.append(artifact)
        return artifact

    def add_error(self, error: ErrorInfo) -> None:
        self.manifest.errors.append(error)

    def compute_output_artifacts(self) -> None:
        """List the run's own event log among the outputs, once it is closed."""
        events = self.output_dir / "events.jsonl"
        if events.exists():
            self.add_file_artifact(events)

    def finish(
        self,
        status: str,
        finished_at: str | None = None,
        duration_seconds: float | None = None,
    ) -> None:
        """Set the final status and write ``run.json``.

        Parameters
        ----------
        status : str
            ``"success"``, ``"partial"`` or ``"failed"``.
        finished_at : str | None, optional
            End time; now if omitted.
        duration_seconds : float | None, optional
            Wall time of the whole run.
        """
        self.manifest.status = status
        self.manifest.finished_at = finished_at or get_iso_timestamp()
        self.manifest.duration_seconds = duration_seconds

        # Readers never see a half-written run.json.
        staging = self.manifest_path.with_suffix(".tmp")
        with staging.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        staging.replace(self.manifest_path)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self.manifest)
