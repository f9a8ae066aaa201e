"""Reader for the BibTeX files handed to ``import`` and for the library catalog.

An entry starts with ``@type{key,`` at the beginning of a line and runs to
its matching closing brace. ``@string``, ``@preamble`` and ``@comment``
blocks are skipped, as is any text between entries. Values may be braced,
quoted, bare, or joined with ``#``; whitespace inside a value is collapsed.
"""

import re
from collections.abc import Iterator
from pathlib import Path
from typing import NamedTuple

from bibshelf.errors import ParseError
from bibshelf.models import BibFields, BibRecord

__all__ = ["ParseResult", "parse_bibtex_file", "parse_bibtex_string"]

ENTRY_START_PATTERN = re.compile(r"@(\w+)[ \t]*\{[ \t]*([^,\s]*)[ \t]*,?")
FIELD_NAME_PATTERN = re.compile(r"([\w-]+)\s*=\s*")
SPECIAL_ENTRIES = frozenset({"string", "preamble", "comment"})

_LINE_START_AT = re.compile(r"^[ \t]*@", re.MULTILINE)
_FIELD_SEPARATORS = re.compile(r"[\s,]*")
_BLANKS = re.compile(r"[ \t\n]*")
_BARE_VALUE = re.compile(r"[^,\n}#]*")


class ParseResult(NamedTuple):
    """Records read from BibTeX text, plus what was wrong with it.

    Unpacks as ``records, warnings, errors``. Errors mean an entry was
    lost; warnings mean something was skipped or overridden.
    """

    records: list[BibRecord]
    warnings: list[str]
    errors: list[str]


def parse_bibtex_string(text: str) -> ParseResult:
    """Parse BibTeX text into records, in input order.

    Messages start with the 1-based line of the entry they concern.
    Unclosed entries and entries without a citation key are errors;
    malformed entry starts, skipped special blocks and repeated fields
    are warnings. A repeated field keeps its last value.
    """
    records: list[BibRecord] = []
    warnings: list[str] = []
    errors: list[str] = []

    pos = 0
    line_no, counted_to = 1, 0
    while True:
        found = _LINE_START_AT.search(text, pos)
        if found is None:
            break
        at = found.end() - 1
        line_no += text.count("\n", counted_to, at)
        counted_to = at
        line_end = text.find("\n", at)
        if line_end == -1:
            line_end = len(text)

        match = ENTRY_START_PATTERN.match(text, at)
        if match is None:
            snippet = text[at:line_end].strip()[:50]
            warnings.append(f"Line {line_no}: Malformed entry start: {snippet}")
            pos = line_end
            continue

        entry_type, citekey = match.group(1).lower(), match.group(2)
        close = _closing_brace(text, text.index("{", at))
        if close == -1:
            errors.append(f"Line {line_no}: Unclosed entry @{entry_type}{{{citekey}}}")
            pos = line_end
            continue
        pos = close + 1

        if entry_type in SPECIAL_ENTRIES:
            warnings.append(f"Line {line_no}: Skipping @{entry_type.upper()} entry")
            continue
        if not citekey:
            errors.append(f"Line {line_no}: Entry @{entry_type} has no citation key")
            continue

        fields = BibFields()
        for name, value in _fields(text[match.end() : close]):
            if name in fields:
                warnings.append(f"Line {line_no}: Duplicate field '{name}' in entry {citekey}")
            fields[name] = value
        records.append(BibRecord(type=entry_type, key=citekey, fields=fields))

    return ParseResult(records, warnings, errors)


def parse_bibtex_file(path: Path | str) -> ParseResult:
    """Parse a UTF-8 BibTeX file.

    Raises
    ------
    ParseError
        If the file cannot be read or is not valid UTF-8.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"could not read BibTeX file: {e}", path=path) from e
    return parse_bibtex_string(text)


def _closing_brace(text: str, start: int) -> int:
    """Index of the brace closing the one at ``start``, or -1.

    Backslash-escaped characters never count, and braces inside a quoted
    top-level value are ignored.
    """
    depth = 0
    in_quotes = False
    i = start
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == '"' and depth == 1:
            in_quotes = not in_quotes
        elif not in_quotes:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return i
        i += 1
    return -1


def _fields(body: str) -> Iterator[tuple[str, str]]:
    """Yield ``(name, value)`` pairs from an entry body; names are lowercased."""
    cursor = _Cursor(body)
    while True:
        cursor.skip(_FIELD_SEPARATORS)
        if cursor.at_end():
            return
        match = FIELD_NAME_PATTERN.match(body, cursor.pos)
        if match is None:
            cursor.pos += 1
            continue
        cursor.pos = match.end()
        yield match.group(1).lower(), cursor.read_value()


class _Cursor:
    """Read position inside one entry body."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos : self.pos + 1]

    def skip(self, pattern: re.Pattern[str]) -> None:
        self.pos = pattern.match(self.text, self.pos).end()

    def read_value(self) -> str:
        parts: list[str] = []
        while True:
            head = self.peek()
            if head == "{":
                parts.append(self._read_braced())
            elif head == '"':
                parts.append(self._read_quoted())
            else:
                parts.append(self._read_bare())

            self.skip(_BLANKS)
            if self.peek() != "#":
                break
            self.pos += 1
            self.skip(_BLANKS)
        return " ".join("".join(parts).split())

    def _read_braced(self) -> str:
        # Outer braces are dropped; inner ones and escapes are kept.
        text = self.text
        depth = 0
        chars: list[str] = []
        while self.pos < len(text):
            char = text[self.pos]
            if char == "\\":
                chars.append(text[self.pos : self.pos + 2])
                self.pos += 2
                continue
            self.pos += 1
            if char == "{":
                depth += 1
                if depth == 1:
                    continue
            elif char == "}":
                depth -= 1
                if depth == 0:
                    break
            chars.append(char)
        return "".join(chars)

    def _read_quoted(self) -> str:
        text = self.text
        self.pos += 1
        depth = 0
        chars: list[str] = []
        while self.pos < len(text):
            char = text[self.pos]
            if char == "\\":
                chars.append(text[self.pos : self.pos + 2])
                self.pos += 2
                continue
            self.pos += 1
            if char == '"' and depth == 0:
                break
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            chars.append(char)
        return "".join(chars)

    def _read_bare(self) -> str:
        match = _BARE_VALUE.match(self.text, self.pos)
        self.pos = match.end()
        return match.group().strip()
