"""Deterministic fingerprints for bibliographic records.

A fingerprint is a SHA-256 digest over a record's semantic content. It
serves both as the change-detection token stored in the ``fingerprint``
field and, with the ``file`` field excluded, as the record's identity in
the canonical store.
"""

import hashlib
import json
import re

from bibshelf.models.records import FINGERPRINT_FIELD, BibRecord

__all__ = ["calculate_fingerprint", "validate_fingerprint_format"]

_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")


def calculate_fingerprint(record: BibRecord, *exclude: str) -> str:
    """Calculate the fingerprint of a record.

    Parameters
    ----------
    record : BibRecord
        Record to fingerprint.
    *exclude : str
        Field names to leave out, compared case-insensitively. The
        ``fingerprint`` field is always excluded.

    Returns
    -------
    str
        64-character lowercase hex SHA-256 digest.

    Raises
    ------
    ValueError
        If the record has no type or no key.

    Notes
    -----
    The digest covers the entry type, the key and the field pairs sorted
    by name. They are serialized as canonical JSON (sorted keys, no
    whitespace, UTF-8), so field insertion order and field name case do
    not matter, and adjacent values cannot run into each other.
    """
    if not record.type:
        raise ValueError(f"Record {record.key!r} has no entry type")
    if not record.key:
        raise ValueError("Record has no citation key")

    excluded = {FINGERPRINT_FIELD, *(name.lower() for name in exclude)}
    pairs = sorted([name, value] for name, value in record.fields.items() if name not in excluded)

    canonical = {
        "type": record.type,
        "key": record.key,
        "fields": pairs,
    }

    json_bytes = json.dumps(
        canonical,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")

    return hashlib.sha256(json_bytes).hexdigest()


def validate_fingerprint_format(value: str) -> bool:
    """Validate that a string looks like a fingerprint.

    Parameters
    ----------
    value : str
        Candidate fingerprint.

    Returns
    -------
    bool
        True if ``value`` is 64 lowercase hex characters.
    """
    return bool(_FINGERPRINT_RE.match(value))
