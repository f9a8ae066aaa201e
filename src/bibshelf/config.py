"""Library configuration."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema

from bibshelf.errors import ConfigError

__all__ = [
    "CONFIG_SCHEMA",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_ROOT",
    "LibraryConfig",
    "load_config",
]

DEFAULT_ROOT = Path("~/PDFLibrary")
DEFAULT_CONFIG_PATH = Path("~/.config/bibshelf/config.json")
CONFIG_ENV_VAR = "BIBSHELF_CONFIG"

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "bibshelf configuration",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "root": {"type": "string", "minLength": 1},
        "store_dirname": {"type": "string", "pattern": "^[^/\\\\]+$"},
        "state_dirname": {"type": "string", "pattern": "^[^/\\\\]+$"},
        "workers": {"type": "integer", "minimum": 1},
        "generate_keys": {"type": "boolean"},
        "audit": {"type": "boolean"},
    },
}


@dataclass(frozen=True)
class LibraryConfig:
    """Immutable configuration of one PDF library.

    Attributes
    ----------
    root : Path
        Library root directory; expanded and made absolute on creation.
    store_dirname : str
        Name of the canonical store directory below the root.
    state_dirname : str
        Name of the directory holding the catalog and run logs.
    workers : int
        Worker pool size for placement and link derivation
        (default: number of CPUs).
    generate_keys : bool
        Regenerate citation keys before placing records.
    audit : bool
        Write an event log and run manifest for each run.
    """

    root: Path = DEFAULT_ROOT
    store_dirname: str = "Files"
    state_dirname: str = ".bibshelf"
    workers: int = 0
    generate_keys: bool = True
    audit: bool = True

    def __post_init__(self) -> None:
        """Normalize paths and validate."""
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())

        if not self.workers:
            object.__setattr__(self, "workers", os.cpu_count() or 1)
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1, got {self.workers}")

        for name in (self.store_dirname, self.state_dirname):
            if not name or name in (".", "..") or os.sep in name:
                raise ConfigError(f"invalid directory name: {name!r}")

        if self.store_dirname == self.state_dirname:
            raise ConfigError("store and state directories must differ")

    @property
    def store_dir(self) -> Path:
        """Canonical store directory."""
        return self.root / self.store_dirname

    @property
    def state_dir(self) -> Path:
        """State directory (catalog and run logs)."""
        return self.root / self.state_dirname

    @property
    def catalog_path(self) -> Path:
        """BibTeX catalog backing record metadata."""
        return self.state_dir / "library.bib"

    @property
    def runs_dir(self) -> Path:
        """Directory holding one subdirectory per audited run."""
        return self.state_dir / "runs"

    @property
    def reserved_dirs(self) -> tuple[Path, Path]:
        """Directories never walked by the link snapshot or the sweeper."""
        return (self.store_dir, self.state_dir)

    def ensure_layout(self) -> None:
        """Create the root, store and state directories if missing."""
        for directory in (self.root, self.store_dir, self.state_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "root": str(self.root),
            "store_dirname": self.store_dirname,
            "state_dirname": self.state_dirname,
            "workers": self.workers,
            "generate_keys": self.generate_keys,
            "audit": self.audit,
        }


def _config_file_path(config_path: Path | str | None) -> tuple[Path, bool]:
    if config_path is not None:
        return Path(config_path).expanduser(), True
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser(), True
    return DEFAULT_CONFIG_PATH.expanduser(), False


def load_config(config_path: Path | str | None = None, **overrides: Any) -> LibraryConfig:
    """Load library configuration from a JSON file and overrides.

    The file is looked up at ``config_path``, then ``$BIBSHELF_CONFIG``,
    then ``~/.config/bibshelf/config.json``. Only an explicitly named
    file must exist. Overrides whose value is None are ignored.

    Parameters
    ----------
    config_path : Path | str | None, optional
        Explicit configuration file.
    **overrides : Any
        Values taking precedence over the file (e.g., ``root=...``).

    Returns
    -------
    LibraryConfig
        Validated configuration.

    Raises
    ------
    ConfigError
        If the file is missing, is not valid JSON, or fails schema validation.
    """
    path, required = _config_file_path(config_path)

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"could not read configuration: {e}", path=path) from e
    elif required:
        raise ConfigError("configuration file not found", path=path)

    try:
        jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ConfigError(f"invalid configuration: {e.message}", path=path) from e

    data.update({name: value for name, value in overrides.items() if value is not None})
    return LibraryConfig(**data)

