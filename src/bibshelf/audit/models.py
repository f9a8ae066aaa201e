"""Documents written to a run directory.

A run directory under ``<root>/.bibshelf/runs/<run_id>/`` holds
``events.jsonl``, one :class:`LogEvent` per line, and ``run.json``, one
:class:`ManifestData`. Field names here are the JSON keys checked by the
schemas in ``schemas/``.
"""

from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "CommandInfo",
    "EnvironmentInfo",
    "FileInfo",
    "InputsInfo",
    "ArtifactInfo",
    "StageInfo",
    "ErrorInfo",
    "OutputsInfo",
    "ManifestData",
    "LogEvent",
]


@dataclass
class CommandInfo:
    """How the run was invoked: ``argv`` and the basename of the working directory."""

    argv: list[str]
    cwd: str | None = None


@dataclass
class EnvironmentInfo:
    """Interpreter, platform, bibshelf and dependency versions of the run."""

    python_version: str
    platform: str
    package_version: str
    dependencies: dict[str, str] = field(default_factory=dict)


@dataclass
class FileInfo:
    """A BibTeX file read by an import.

    Attributes
    ----------
    name : str
        Basename of the file.
    bytes : int
        Size on disk.
    sha256 : str
        ``"sha256:<hex>"`` of the contents.
    records_extracted : int
        Entries parsed from it.
    mtime : str | None
        Modification time, to the second.
    """

    name: str
    bytes: int
    sha256: str
    records_extracted: int
    mtime: str | None = None


@dataclass
class InputsInfo:
    """Library root plus the BibTeX files read, empty for maintenance runs."""

    root: str
    files: list[FileInfo]
    total_records_extracted: int


@dataclass
class ArtifactInfo:
    """A file the run wrote, such as the catalog or its own event log.

    ``path`` is relative for files inside the run directory and absolute
    otherwise.
    """

    path: str
    sha256: str
    bytes: int | None = None
    record_count: int | None = None


@dataclass
class StageInfo:
    """Timing and counters of one pipeline stage.

    Attributes
    ----------
    name : str
        ``parse``, ``keys``, ``place``, ``write_back``, ``link`` or ``sweep``.
    started_at : str
        Start time.
    counters : dict[str, int]
        Stage totals, e.g. ``{"added": 3, "relocated": 1}`` for ``place``.
    finished_at : str | None
        End time; unset while the stage runs.
    duration_seconds : float | None
        Wall time of the stage.
    """

    name: str
    started_at: str
    counters: dict[str, int] = field(default_factory=dict)
    finished_at: str | None = None
    duration_seconds: float | None = None


@dataclass
class ErrorInfo:
    """A failure recorded during the run.

    Record-level failures carry the citation key in ``rid`` and, for file
    and link problems, the offending ``path``. Only failures that aborted
    the run carry a ``traceback``.
    """

    timestamp: str
    exception_class: str
    message: str
    stage: str | None = None
    traceback: str | None = None
    rid: str | None = None
    path: str | None = None


@dataclass
class OutputsInfo:
    artifacts: list[ArtifactInfo] = field(default_factory=list)


@dataclass
class ManifestData:
    """Contents of ``run.json``.

    Attributes
    ----------
    manifest_version : str
        Version of the manifest layout.
    run_id : str
        Name of the run directory.
    created_at, finished_at : str, str | None
        Start and end of the run.
    status : str
        ``"success"``, ``"partial"`` (some records failed) or ``"failed"``.
    command, environment : CommandInfo, EnvironmentInfo
        Invocation details.
    inputs : InputsInfo
        Library root and BibTeX files read.
    parameters : dict[str, Any]
        Library configuration merged with the operation's own options.
    stages : list[StageInfo]
        Stages in the order they ran.
    outputs : OutputsInfo
        Files written.
    duration_seconds : float | None
        Wall time of the run.
    errors : list[ErrorInfo]
        Every failure, in the order it happened.
    """

    manifest_version: str
    run_id: str
    created_at: str
    status: str
    command: CommandInfo
    environment: EnvironmentInfo
    inputs: InputsInfo
    parameters: dict[str, Any]
    stages: list[StageInfo]
    outputs: OutputsInfo
    finished_at: str | None = None
    duration_seconds: float | None = None
    errors: list[ErrorInfo] = field(default_factory=list)


@dataclass
class LogEvent:
    """One line of ``events.jsonl``.

    ``ts`` has microsecond precision so events from parallel workers keep
    a usable order. ``rid`` is the citation key for record events.
    """

    ts: str
    run_id: str
    level: str
    event: str
    data: dict[str, Any]
    stage: str | None = None
    rid: str | None = None
