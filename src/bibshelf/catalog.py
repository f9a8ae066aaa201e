"""BibTeX catalog backing the metadata of a library.

The catalog is a single BibTeX file in the library's state directory,
holding one entry per PDF in the canonical store. Entries are identified
by their ``file`` field.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path

from bibshelf.changes import ChangeSummary, commit_fingerprint, partition_modified
from bibshelf.config import LibraryConfig
from bibshelf.errors import ParseError
from bibshelf.models import BibRecord
from bibshelf.parse import parse_bibtex_file, write_bibtex
from bibshelf.utils import normalize_path

__all__ = ["Catalog"]


def _entry_id(record: BibRecord) -> str:
    file = record.file
    if file is None:
        return f"key:{record.key}"
    return str(normalize_path(file))


class Catalog:
    """Load, query and persist the library catalog.

    Parameters
    ----------
    path : Path
        Catalog file; it need not exist yet.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def for_library(cls, config: LibraryConfig) -> "Catalog":
        """Catalog of the library described by ``config``."""
        return cls(config.catalog_path)

    def load(self) -> list[BibRecord]:
        """Read all catalog records.

        Returns
        -------
        list[BibRecord]
            Records in catalog order; empty if the catalog does not exist.

        Raises
        ------
        ParseError
            If the catalog contains malformed entries.
        """
        if not self.path.exists():
            return []
        records, _, errors = parse_bibtex_file(self.path)
        if errors:
            raise ParseError(
                f"catalog has {len(errors)} malformed entries; first: {errors[0]}",
                path=self.path,
            )
        return records

    def save(self, records: Iterable[BibRecord]) -> bool:
        """Persist ``records`` as the complete catalog.

        Returns
        -------
        bool
            True if the catalog file changed.
        """
        return write_bibtex(records, self.path)

    def find_by_file(self, file: Path) -> BibRecord | None:
        """Return the record backed by ``file``, if any."""
        wanted = str(normalize_path(file))
        for record in self.load():
            if _entry_id(record) == wanted:
                return record
        return None

    def remove(self, file: Path) -> BibRecord | None:
        """Drop the record backed by ``file`` and persist the catalog.

        Returns
        -------
        BibRecord | None
            The removed record, or None if no record uses ``file``.
        """
        wanted = str(normalize_path(file))
        records = self.load()
        kept = [record for record in records if _entry_id(record) != wanted]
        if len(kept) == len(records):
            return None
        removed = next(record for record in records if _entry_id(record) == wanted)
        self.save(kept)
        return removed

    def write_back(
        self,
        records: list[BibRecord],
        previous_paths: Mapping[str, Path] | None = None,
        former_keys: Mapping[str, str] | None = None,
    ) -> tuple[ChangeSummary, bool]:
        """Commit fingerprints of modified records and persist the batch.

        Unmodified records keep their stored fingerprint. An entry recorded
        under a record's pre-move path is replaced by the record when it
        carries the record's key, current or former; an entry with any
        other key belongs to another record and is kept.

        Parameters
        ----------
        records : list[BibRecord]
            Records sitting at their canonical paths.
        previous_paths : Mapping[str, Path] | None, optional
            Pre-move file path per citation key.
        former_keys : Mapping[str, str] | None, optional
            Key each record had before key generation, by current key.

        Returns
        -------
        tuple[ChangeSummary, bool]
            Modified/unmodified split of the batch, and whether the
            catalog file changed.
        """
        summary = partition_modified(records)
        for record in summary.modified:
            commit_fingerprint(record)

        former_keys = former_keys or {}
        entries = {_entry_id(record): record for record in self.load()}
        for key, path in (previous_paths or {}).items():
            entry_id = str(normalize_path(path))
            entry = entries.get(entry_id)
            if entry is not None and entry.key in (key, former_keys.get(key)):
                del entries[entry_id]
        for record in records:
            entries[_entry_id(record)] = record

        return summary, self.save(entries.values())
