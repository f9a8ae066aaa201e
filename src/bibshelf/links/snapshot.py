"""Point-in-time inventory of the symbolic links in a library."""

import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from bibshelf.utils import normalize_path, resolve_link_target

__all__ = ["LinkSnapshot", "walk_library"]


def walk_library(
    root: Path, reserved: Iterable[Path]
) -> Iterator[tuple[Path, list[str], list[str]]]:
    """Walk a library top-down, skipping reserved directories.

    Symbolic links to directories are reported in ``dirnames`` but never
    descended into.

    Yields
    ------
    tuple[Path, list[str], list[str]]
        Directory path, subdirectory names and file names.
    """
    skip = {normalize_path(path) for path in reserved}
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(name for name in dirnames if current / name not in skip)
        yield current, dirnames, sorted(filenames)


class LinkSnapshot:
    """Mapping of link path to absolute link target.

    Taken once before reconciliation; the synchronizer then keeps it in
    step with the changes it makes, so no second walk is needed.
    """

    def __init__(self, links: dict[Path, Path] | None = None) -> None:
        self._links: dict[Path, Path] = {}
        self._by_target: dict[Path, set[Path]] = {}
        for path, target in (links or {}).items():
            self.add(path, target)

    @classmethod
    def take(cls, root: Path, reserved: Iterable[Path]) -> "LinkSnapshot":
        """Record every symbolic link below ``root``.

        Parameters
        ----------
        root : Path
            Library root.
        reserved : Iterable[Path]
            Directories not to walk (canonical store, state directory).

        Returns
        -------
        LinkSnapshot
            Snapshot of all links, keyed by normalized link path.
        """
        snapshot = cls()
        if not root.is_dir():
            return snapshot

        for directory, dirnames, filenames in walk_library(root, reserved):
            for name in (*dirnames, *filenames):
                path = directory / name
                if path.is_symlink():
                    snapshot.add(normalize_path(path), resolve_link_target(path))
        return snapshot

    def add(self, path: Path, target: Path) -> None:
        """Record a link, replacing any previous entry for ``path``."""
        self.discard(path)
        self._links[path] = target
        self._by_target.setdefault(target, set()).add(path)

    def discard(self, path: Path) -> None:
        """Forget a link if it is recorded."""
        target = self._links.pop(path, None)
        if target is not None:
            self._by_target[target].discard(path)

    def target_of(self, path: Path) -> Path | None:
        """Return the recorded target of ``path``, or None."""
        return self._links.get(path)

    def links_to(self, targets: Iterable[Path]) -> list[Path]:
        """Return the sorted link paths pointing at any of ``targets``."""
        found: set[Path] = set()
        for target in targets:
            found.update(self._by_target.get(target, ()))
        return sorted(found)

    def __contains__(self, path: object) -> bool:
        return path in self._links

    def __len__(self) -> int:
        return len(self._links)

    def __iter__(self) -> Iterator[Path]:
        return iter(sorted(self._links))
