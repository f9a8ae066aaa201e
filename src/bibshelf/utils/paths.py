"""Path helpers shared by the store, link and sweep components."""

import os
from pathlib import Path

__all__ = ["is_in_dir", "normalize_path", "real_path", "resolve_link_target"]


def normalize_path(path: str | os.PathLike[str]) -> Path:
    """Make a path absolute and lexically normalized.

    Unlike ``Path.resolve`` this does not follow symbolic links, so a
    link's own location is preserved.

    Parameters
    ----------
    path : str | os.PathLike[str]
        Path to normalize.

    Returns
    -------
    Path
        Absolute path with ``.`` and ``..`` components collapsed.
    """
    return Path(os.path.normpath(os.path.abspath(path)))


def real_path(path: str | os.PathLike[str]) -> Path:
    """Make a path absolute with the symbolic links along it resolved.

    Components that do not exist are kept as written, so a file that was
    moved away still maps to the same path it had.
    """
    return Path(os.path.realpath(path))


def resolve_link_target(link: Path) -> Path:
    """Read a symbolic link and return its absolute target.

    Relative targets are interpreted against the directory holding the
    link. Symbolic links along the target are resolved, so two links
    reaching one file through different directory aliases yield the same
    path; compare the result with other paths passed through
    :func:`real_path`.

    Raises
    ------
    OSError
        If ``link`` is not a symbolic link.
    """
    raw = os.readlink(link)
    return real_path(os.path.join(os.path.dirname(link), raw))


def is_in_dir(directory: Path, path: Path) -> bool:
    """Check whether ``path`` lies inside ``directory``.

    Both paths are fully resolved (symbolic links and ``..`` components)
    and compared component by component, so ``/lib/Files2/x`` is not
    considered to be inside ``/lib/Files``.

    Parameters
    ----------
    directory : Path
        Containing directory.
    path : Path
        Candidate path.

    Returns
    -------
    bool
        True if ``path`` is ``directory`` itself or a descendant of it.
    """
    dir_parts = Path(directory).resolve().parts
    path_parts = Path(path).resolve().parts
    return path_parts[: len(dir_parts)] == dir_parts
