"""Run identifiers and environment details recorded in run manifests."""

import importlib.metadata
import platform
import secrets
import sys
from datetime import UTC, datetime

__all__ = [
    "generate_run_id",
    "get_package_version",
    "get_python_version",
    "get_platform_info",
    "get_dependency_versions",
]


def generate_run_id() -> str:
    """Return a new run identifier.

    The identifier names the run's directory under ``.bibshelf/runs``: a
    compact UTC timestamp, so runs sort chronologically, followed by a
    random suffix (e.g. ``"20260131T120000123456Z__1a2b3c4d"``).
    """
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{stamp}__{secrets.token_hex(4)}"


def _distribution_version(name: str) -> str:
    try:
        return importlib.metadata.version(name)
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def get_package_version() -> str:
    """Installed bibshelf version, or ``"unknown"`` when run from a checkout."""
    return _distribution_version("bibshelf")


def get_python_version() -> str:
    return sys.version.split()[0]


def get_platform_info() -> str:
    """Return ``system-release-machine``, e.g. ``"Linux-6.8.0-x86_64"``."""
    return "-".join((platform.system(), platform.release(), platform.machine()))


def get_dependency_versions(packages: list[str]) -> dict[str, str]:
    """Map each distribution name to its installed version.

    Parameters
    ----------
    packages : list[str]
        Distribution names as published on the package index.

    Returns
    -------
    dict[str, str]
        Versions keyed by name; ``"unknown"`` for anything not installed.
    """
    return {name: _distribution_version(name) for name in packages}
