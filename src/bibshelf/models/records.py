"""Bibliographic record data models for bibshelf.

This module defines the in-memory representation of BibTeX entries that
flow through key generation, placement, write-back and linking.
"""

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

__all__ = [
    "ENTRY_TYPES",
    "FILE_FIELD",
    "FINGERPRINT_FIELD",
    "BibFields",
    "BibRecord",
    "LinkSpec",
]

FILE_FIELD = "file"
FINGERPRINT_FIELD = "fingerprint"

ENTRY_TYPES = frozenset(
    {
        "article",
        "book",
        "booklet",
        "conference",
        "inbook",
        "incollection",
        "inproceedings",
        "manual",
        "mastersthesis",
        "misc",
        "phdthesis",
        "proceedings",
        "techreport",
        "unpublished",
    }
)


class BibFields(MutableMapping[str, str]):
    """Ordered, case-insensitive mapping of BibTeX field names to values.

    Names are stored lower-cased; lookups ignore case and iteration
    follows insertion order. Re-assigning an existing field keeps its
    original position.

    Runs of whitespace in values are collapsed to single spaces, the form
    in which the catalog reads them back, so a record fingerprints the
    same before and after a round trip. The ``file`` field holds a path
    and is stored as given.
    """

    def __init__(
        self,
        data: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    ) -> None:
        self._data: dict[str, str] = {}
        if data is not None:
            self.update(data)

    def __getitem__(self, name: str) -> str:
        return self._data[name.lower()]

    def __setitem__(self, name: str, value: str) -> None:
        name = name.lower()
        value = str(value)
        self._data[name] = value if name == FILE_FIELD else " ".join(value.split())

    def __delitem__(self, name: str) -> None:
        del self._data[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"BibFields({self._data!r})"

    def copy(self) -> "BibFields":
        """Return a shallow copy preserving field order."""
        return BibFields(self._data)


@dataclass
class BibRecord:
    """A single BibTeX entry backed by a PDF file.

    Attributes
    ----------
    type : str
        Entry type tag, lower-cased (e.g., 'article').
    key : str
        Citation key, unique within a batch.
    fields : BibFields
        Field values. ``file`` holds the absolute path of the backing PDF
        and ``fingerprint`` the last committed fingerprint.
    """

    type: str
    key: str
    fields: BibFields = field(default_factory=BibFields)

    def __post_init__(self) -> None:
        self.type = self.type.strip().lower()
        self.key = self.key.strip()
        if not isinstance(self.fields, BibFields):
            self.fields = BibFields(self.fields)

    def get(self, name: str, default: str | None = None) -> str | None:
        """Get a field value, treating empty values as missing."""
        value = self.fields.get(name)
        if value is None or not value.strip():
            return default
        return value

    def has(self, name: str) -> bool:
        """Check whether a non-empty field is present."""
        return self.get(name) is not None

    @property
    def file(self) -> Path | None:
        """Backing PDF path, or None if not set."""
        value = self.get(FILE_FIELD)
        return Path(value) if value is not None else None

    @file.setter
    def file(self, path: Path | str) -> None:
        self.fields[FILE_FIELD] = str(path)

    @property
    def fingerprint(self) -> str | None:
        """Stored fingerprint, or None if never committed."""
        return self.get(FINGERPRINT_FIELD)

    @fingerprint.setter
    def fingerprint(self, value: str | None) -> None:
        if value is None:
            self.fields.pop(FINGERPRINT_FIELD, None)
        else:
            self.fields[FINGERPRINT_FIELD] = value

    @property
    def label(self) -> str:
        """Human-readable identifier used in error messages."""
        return self.key or "<no key>"

    def copy(self) -> "BibRecord":
        """Return an independent copy of this record."""
        return BibRecord(type=self.type, key=self.key, fields=self.fields.copy())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"type": self.type, "key": self.key, "fields": dict(self.fields)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BibRecord":
        """Create a record from its dictionary form."""
        return cls(type=data["type"], key=data["key"], fields=BibFields(data.get("fields", {})))


@dataclass(frozen=True)
class LinkSpec:
    """Raw path segments of one browsable link, before normalization.

    The last segment is the link's leaf name; the others are directories
    below the library root. The ``.pdf`` suffix is added at normalization.

    Attributes
    ----------
    segments : tuple[str, ...]
        Category, subcategories and leaf name, in order.
    """

    segments: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.segments) < 2:
            raise ValueError(f"LinkSpec needs a category and a leaf name, got {self.segments!r}")

    @property
    def category(self) -> str:
        """Top-level directory of the link."""
        return self.segments[0]

    @property
    def leaf(self) -> str:
        """Leaf name of the link."""
        return self.segments[-1]
