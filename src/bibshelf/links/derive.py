"""Derivation of browsable link specifications from record metadata.

Every record fans out into several links, all sharing one leaf name built
from its authors, title, volume and year:

- ``DOIs/<doi segments>``
- ``Authors/<name>/<leaf>`` per author, collaboration and editor
- ``Titles/<first title word>/<leaf>``
- ``Years/<year>/<leaf>``
- ``Keywords/<keyword>/<sub-keyword>.../<leaf>``
- ``Pre Prints/<archive>/<id prefix>/<id> <leaf>``
- one entry-type specific link (``Journals``, ``Tech Reports``, ``Books``,
  ``In``, ``Theses`` or ``Misc``)
"""

import re

from bibshelf.format.names import format_names, split_names
from bibshelf.format.text import capitalize_words, remove_short_words, remove_tex_markup, ucfirst
from bibshelf.models import BibRecord, LinkSpec

__all__ = [
    "derive_link_specs",
    "keyword_index",
    "make_link_name",
    "split_keywords",
]

BOOK_TYPES = frozenset({"book", "inbook", "proceedings"})
COLLECTION_TYPES = frozenset({"conference", "incollection", "inproceedings"})
THESIS_TYPES = frozenset({"mastersthesis", "phdthesis"})

KEYWORD_FIELDS = ("keyword", "keywords")
KEYWORD_SPLIT_RE = re.compile(r"[,;]")
SUBKEYWORD_SPLIT_RE = re.compile(r":| - ")
NON_DIGIT_RE = re.compile(r"\D")

ET_AL = "et al"


def _title_words(text: str) -> str:
    words = remove_short_words(remove_tex_markup(text).split())
    return " ".join(ucfirst(word) for word in words)


def _number_prefix(value: str | None, placeholder: str) -> tuple[str, str]:
    """Return a value and the first two digits of it, with placeholders."""
    if value is None:
        return placeholder, placeholder
    prefix = NON_DIGIT_RE.sub("", value)[:2]
    return value, prefix or placeholder


class _Names:
    """Formatted author, editor and collaboration lists of one record."""

    def __init__(self, record: BibRecord) -> None:
        self.authors = format_names(split_names(record.get("author")), "vl", 2, ET_AL)
        self.editors = format_names(split_names(record.get("editor")), "vl", 2, ET_AL)
        self.collaborations = format_names(split_names(record.get("collaboration")), "vl", 3, "")

    def byline(self) -> str:
        for names in (self.collaborations, self.authors):
            text = " ".join(name for name in names if name)
            if text:
                return text
        editors = " ".join(name for name in self.editors if name)
        return f"{editors} ed" if editors else ""


def make_link_name(record: BibRecord) -> str:
    """Build the leaf name shared by all links of a record.

    Examples
    --------
    >>> from bibshelf.models import BibRecord
    >>> make_link_name(BibRecord("article", "k", {"author": "Smith, J.",
    ...     "title": "A Study Of Widgets", "year": "2020"}))
    'Smith Study Widgets 2020'
    """
    return _link_name(record, _Names(record))


def _link_name(record: BibRecord, names: _Names) -> str:
    parts = [names.byline(), _title_words(record.get("title", "NO-TITLE"))]
    if record.type in BOOK_TYPES and record.has("volume"):
        parts.append(f"vol{record.get('volume')}")
    parts.append(record.get("year", "NO-YEAR"))
    return " ".join(part for part in parts if part)


def split_keywords(record: BibRecord) -> list[tuple[str, ...]]:
    """Split keyword fields into keyword paths.

    Keywords are separated by ``,`` or ``;``; each keyword is split into
    sub-keywords on ``:`` or `` - `` and every word is capitalized.
    Duplicates are dropped, first occurrence wins.
    """
    paths: dict[tuple[str, ...], None] = {}
    for field in KEYWORD_FIELDS:
        for keyword in KEYWORD_SPLIT_RE.split(record.get(field, "")):
            parts = tuple(
                capitalize_words(part.strip())
                for part in SUBKEYWORD_SPLIT_RE.split(keyword)
                if part.strip()
            )
            if parts:
                paths[parts] = None
    return list(paths)


def derive_link_specs(record: BibRecord) -> list[LinkSpec]:
    """Derive every link specification of a record.

    Parameters
    ----------
    record : BibRecord
        Record to derive links for.

    Returns
    -------
    list[LinkSpec]
        Link specifications without duplicates, in derivation order.
    """
    names = _Names(record)
    leaf = _link_name(record, names)
    specs: list[tuple[str, ...]] = []

    doi = record.get("doi")
    if doi is not None:
        doi_parts = [part for part in doi.strip().split("/") if part]
        if doi_parts:
            specs.append(("DOIs", *doi_parts))

    for author in (*names.collaborations, *names.authors):
        if author and author != ET_AL:
            specs.append(("Authors", author, leaf))
    for editor in names.editors:
        if editor and editor != ET_AL:
            specs.append(("Authors", f"{editor} ed", leaf))

    title_words = _title_words(record.get("title", "NO-TITLE")).split()
    specs.append(("Titles", title_words[0] if title_words else "NO-TITLE", leaf))

    specs.append(("Years", record.get("year", "NO-YEAR"), leaf))

    for keyword_path in split_keywords(record) or [("NO-KEYWORDS",)]:
        specs.append(("Keywords", *keyword_path, leaf))

    archive = record.get("archiveprefix")
    if archive is not None:
        eprint, eprint_prefix = _number_prefix(record.get("eprint"), "NO-EPRINT")
        specs.append(("Pre Prints", archive, eprint_prefix, f"{eprint} {leaf}"))

    specs.extend(_type_specs(record, leaf, archive))

    unique = dict.fromkeys(specs)
    return [LinkSpec(segments=segments) for segments in unique]


def _type_specs(record: BibRecord, leaf: str, archive: str | None) -> list[tuple[str, ...]]:
    pages = record.get("pages", "NO-PAGES")
    volume = record.get("volume", "NO-VOLUME")

    if record.type == "article":
        journal = remove_tex_markup(record.get("journal")).strip() or "NO-JOURNAL"
        if journal == archive:
            return []
        return [("Journals", journal, f"v{volume}", f"p{pages} {leaf}")]

    if record.type == "techreport":
        institution = remove_tex_markup(record.get("institution")).strip() or "NO-INSTITUTION"
        number, number_prefix = _number_prefix(record.get("number"), "NO-NUMBER")
        return [("Tech Reports", institution, number_prefix, f"{number} {leaf}")]

    if record.type in BOOK_TYPES:
        return [("Books", leaf)]

    if record.type in COLLECTION_TYPES:
        booktitle = _title_words(remove_tex_markup(record.get("booktitle")) or "NO-BOOKTITLE")
        specs = [("In", booktitle or "NO-BOOKTITLE", f"p{pages} {leaf}")]
        series = remove_tex_markup(record.get("series")).strip()
        if series:
            specs.append(("In", series, f"v{volume}", f"p{pages} {leaf}"))
        return specs

    if record.type in THESIS_TYPES:
        return [("Theses", leaf)]

    return [("Misc", leaf)]


def keyword_index(records: list[BibRecord]) -> list[str]:
    """List every keyword path used by the records, sorted.

    Each path is reported with all its ancestors, joined by ``": "``.

    Examples
    --------
    >>> from bibshelf.models import BibRecord
    >>> keyword_index([BibRecord("misc", "k", {"keyword": "physics: gravity, widgets"})])
    ['Physics', 'Physics: Gravity', 'Widgets']
    """
    index: set[str] = set()
    for record in records:
        for path in split_keywords(record):
            for depth in range(1, len(path) + 1):
                index.add(": ".join(path[:depth]))
    return sorted(index)
