"""Deterministic BibTeX output."""

import os
from collections.abc import Iterable
from pathlib import Path

from bibshelf.models import FILE_FIELD, FINGERPRINT_FIELD, BibRecord

__all__ = ["FIELD_ORDER", "FILE_FIELD_MODES", "format_bibtex", "format_entry", "write_bibtex"]

# Preferred field order; other fields follow alphabetically
FIELD_ORDER = (
    "keyword",
    "keywords",
    "title",
    "key",
    "author",
    "collaboration",
    "journal",
    "school",
    "institution",
    "type",
    "editor",
    "booktitle",
    "edition",
    "series",
    "volume",
    "number",
    "issue",
    "chapter",
    "pages",
    "eid",
    "numpages",
    "month",
    "year",
    "publisher",
    "organization",
    "address",
    "isbn",
    "issn",
    "howpublished",
    "doi",
    "archiveprefix",
    "primaryclass",
    "eprint",
    "url",
    "adsurl",
    "note",
    "annote",
    "comments",
    "abstract",
)
_FIELD_RANK = {name: rank for rank, name in enumerate(FIELD_ORDER)}

FILE_FIELD_MODES = ("keep", "comment", "drop")


def _field_sort_key(name: str) -> tuple[int, str]:
    return (_FIELD_RANK.get(name, len(FIELD_ORDER)), name)


def format_entry(record: BibRecord, file_field: str = "keep") -> str:
    """Format one record as a BibTeX entry.

    Parameters
    ----------
    record : BibRecord
        Record to format.
    file_field : str, optional
        "keep" writes ``file`` and ``fingerprint`` as fields, "comment"
        writes the file path as a comment line after the entry, "drop"
        omits both, by default "keep".

    Returns
    -------
    str
        Entry text ending with a newline.
    """
    if file_field not in FILE_FIELD_MODES:
        raise ValueError(f"file_field must be one of {FILE_FIELD_MODES}, got {file_field!r}")

    names = sorted(
        (name for name in record.fields if name not in (FILE_FIELD, FINGERPRINT_FIELD)),
        key=_field_sort_key,
    )
    if file_field == "keep":
        names.extend(name for name in (FILE_FIELD, FINGERPRINT_FIELD) if name in record.fields)

    width = max((len(name) for name in names), default=0)
    lines = [f"@{record.type}{{{record.key},"]
    for name in names:
        lines.append(f"  {name.ljust(width)} = {{{record.fields[name]}}},")
    lines.append("}")

    if file_field == "comment" and record.file is not None:
        lines.append(f"% file: {record.file}")

    return "\n".join(lines) + "\n"


def format_bibtex(records: Iterable[BibRecord], file_field: str = "keep") -> str:
    """Format records as BibTeX, sorted by citation key then file."""
    ordered = sorted(records, key=lambda r: (r.key, str(r.file or "")))
    return "\n".join(format_entry(record, file_field) for record in ordered)


def write_bibtex(records: Iterable[BibRecord], path: Path, file_field: str = "keep") -> bool:
    """Write records to a BibTeX file atomically.

    The file is rewritten only if its content would change, via a
    temporary file, fsync and rename.

    Returns
    -------
    bool
        True if the file was written.
    """
    text = format_bibtex(records, file_field)
    if path.exists() and path.read_text(encoding="utf-8") == text:
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f"{path.name}.tmp")
    with temp_path.open("w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())

    temp_path.replace(path)
    return True
