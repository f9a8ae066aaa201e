"""Citation key generation.

Keys look like ``Smit2020-StdWdg``: the first four letters of up to two
author names (``EtAl`` beyond that), the year, and an abbreviation of the
title built from its longest words with the lower-case vowels removed.
"""

import re
from collections import Counter
from collections.abc import Iterable

from bibshelf.format.names import format_names, split_names
from bibshelf.format.text import remove_short_words, remove_tex_markup, to_ascii, ucfirst
from bibshelf.models import BibRecord

__all__ = ["find_duplicate_keys", "generate_key", "generate_keys"]

ROMAN_NUMERALS = frozenset({"II", "III", "IV", "V", "VI", "VII", "VIII", "IX"})
ABBREVIATION_LENGTHS = (3, 3, 2, 2, 2)
VOLUME_TYPES = frozenset({"book", "inbook", "proceedings"})

ERRATUM_RE = re.compile(r"^erratum[^\w]", re.IGNORECASE)
TRAILING_PARENS_RE = re.compile(r"\([^()]+\)$")
TRAILING_BRACKETS_RE = re.compile(r"\[[^\[\]]+\]$")
NON_WORD_RE = re.compile(r"[^\w\s]")
VOWEL_RE = re.compile(r"[aeiou]")
KEY_UNSAFE_RE = re.compile(r"[^\w-]")


def _author_part(record: BibRecord) -> str:
    authors: list[str] = []
    for field in ("collaboration", "author", "editor"):
        authors = format_names(split_names(record.get(field)), "l", 2, "EtAl")
        if authors:
            break
    return "".join(re.sub(r"\s", "", author)[:4] for author in authors)


def _title_part(record: BibRecord) -> tuple[str, str]:
    """Return the abbreviated title and the key suffix."""
    title = remove_tex_markup(record.get("title", ""))

    erratum = ""
    if ERRATUM_RE.match(title):
        erratum = "-ERRATUM"
        title = title[len("erratum") + 1 :].strip()
        title = TRAILING_PARENS_RE.sub("", title)
        title = TRAILING_BRACKETS_RE.sub("", title)
    title = NON_WORD_RE.sub("", title)

    words = remove_short_words(title.split())
    abbreviations: dict[str, str] = {}
    lengths = list(ABBREVIATION_LENGTHS)
    suffix = ""

    for word in sorted(words, key=len, reverse=True):
        if word in ROMAN_NUMERALS:
            suffix += f"-{word}"
            break
        if word.isdigit():
            continue
        length = lengths.pop(0) if lengths else 1
        if word not in abbreviations:
            abbreviations[word] = VOWEL_RE.sub("", ucfirst(word))[:length]

    if not suffix and record.type in VOLUME_TYPES and record.has("volume"):
        suffix = f"-v{record.get('volume')}"

    abbreviated = "".join(abbreviations.get(word, word) for word in words)
    return abbreviated, suffix + erratum


def generate_key(record: BibRecord) -> str:
    """Generate the citation key of a record.

    Parameters
    ----------
    record : BibRecord
        Record to generate a key for.

    Returns
    -------
    str
        Key made of ASCII letters, digits, ``_`` and ``-``.

    Examples
    --------
    >>> from bibshelf.models import BibRecord
    >>> generate_key(BibRecord("article", "x", {"author": "Smith, J.",
    ...     "title": "A Study Of Widgets", "year": "2020"}))
    'Smit2020-StdWdg'
    """
    title, suffix = _title_part(record)
    key = f"{_author_part(record)}{record.get('year', '')}-{title}{suffix}"
    key = KEY_UNSAFE_RE.sub("", to_ascii(key))
    key = re.sub(r"--+", "-", key)
    return key.lstrip("-")


def generate_keys(records: Iterable[BibRecord]) -> int:
    """Regenerate the keys of a batch of records in place.

    A record keeps its current key when that key starts with the
    generated one followed by nothing or ``-``, so users may append
    their own suffixes to disambiguate.

    Returns
    -------
    int
        Number of keys that changed.
    """
    changed = 0
    for record in records:
        key = generate_key(record)
        if not key:
            continue
        current = record.key
        if current == key or current.startswith(f"{key}-"):
            continue
        record.key = key
        changed += 1
    return changed


def find_duplicate_keys(records: Iterable[BibRecord]) -> list[str]:
    """Return the keys used by more than one record, sorted."""
    counts = Counter(record.key for record in records)
    return sorted(key for key, count in counts.items() if count > 1)
