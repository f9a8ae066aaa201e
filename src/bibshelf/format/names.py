"""BibTeX name list splitting and formatting.

Names follow the BibTeX conventions "First von Last", "von Last, First" and
"von Last, Jr, First". Braced groups are treated as single words and are
never split.
"""

import re
from dataclasses import dataclass

from bibshelf.format.text import remove_tex_markup

__all__ = ["ParsedName", "format_name", "format_names", "parse_name", "split_names"]

COLLABORATION_RE = re.compile(r"\sCollaboration$", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedName:
    """Name split into its BibTeX parts.

    Attributes
    ----------
    first : tuple[str, ...]
        Given names.
    von : tuple[str, ...]
        Lower-case particles (e.g., "van", "de la").
    last : tuple[str, ...]
        Family name words.
    jr : tuple[str, ...]
        Suffix (e.g., "Jr").
    """

    first: tuple[str, ...] = ()
    von: tuple[str, ...] = ()
    last: tuple[str, ...] = ()
    jr: tuple[str, ...] = ()


def _split_top_level(text: str, separator: str | None) -> list[str]:
    """Split at brace depth 0, on whitespace if ``separator`` is None."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    for char in text:
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)

        at_split = char.isspace() if separator is None else char == separator
        if at_split and depth == 0:
            if current or separator is not None:
                parts.append("".join(current))
            current = []
        else:
            current.append(char)

    if current or (separator is not None and parts):
        parts.append("".join(current))
    return parts


def _is_lower(word: str) -> bool:
    if word.startswith("{"):
        return False
    for char in word:
        if char.isalpha():
            return char.islower()
    return False


def split_names(value: str | None) -> list[str]:
    """Split an author or editor field on the word "and".

    Examples
    --------
    >>> split_names("Smith, J. and {Barnes and Noble} and others")
    ['Smith, J.', '{Barnes and Noble}', 'others']
    """
    if not value:
        return []

    names: list[str] = []
    current: list[str] = []
    for word in _split_top_level(value, None):
        if word.lower() == "and":
            if current:
                names.append(" ".join(current))
            current = []
        else:
            current.append(word)
    if current:
        names.append(" ".join(current))
    return names


def parse_name(name: str) -> ParsedName:
    """Split a single name into first, von, last and jr parts."""
    parts = [part.strip() for part in _split_top_level(name, ",")] or [name.strip()]

    if len(parts) == 1:
        words = _split_top_level(parts[0], None)
        if len(words) <= 1:
            return ParsedName(last=tuple(words))
        lower = [i for i, word in enumerate(words[:-1]) if _is_lower(word)]
        if not lower:
            return ParsedName(first=tuple(words[:-1]), last=(words[-1],))
        return ParsedName(
            first=tuple(words[: lower[0]]),
            von=tuple(words[lower[0] : lower[-1] + 1]),
            last=tuple(words[lower[-1] + 1 :]),
        )

    von_last = _split_top_level(parts[0], None)
    if len(parts) == 2:
        jr: list[str] = []
        first = _split_top_level(parts[1], None)
    else:
        jr = _split_top_level(parts[1], None)
        first = _split_top_level(parts[2], None)

    n_von = 0
    while n_von < len(von_last) - 1 and _is_lower(von_last[n_von]):
        n_von += 1

    return ParsedName(
        first=tuple(first),
        von=tuple(von_last[:n_von]),
        last=tuple(von_last[n_von:]),
        jr=tuple(jr),
    )


def format_name(name: str, name_format: str = "vl") -> str:
    """Format a name as "von Last" ("vl") or "Last" ("l")."""
    parsed = parse_name(name)
    if name_format == "vl":
        words = parsed.von + parsed.last
    elif name_format == "l":
        words = parsed.last
    else:
        raise ValueError(f"Unknown name format: {name_format!r}")
    return " ".join(words)


def format_names(
    names: list[str],
    name_format: str,
    max_names: int | None,
    et_al: str,
) -> list[str]:
    """Format a list of names for link names and citation keys.

    Parameters
    ----------
    names : list[str]
        Names as returned by ``split_names``.
    name_format : str
        "vl" or "l", see ``format_name``.
    max_names : int | None
        Lists longer than this are reduced to the first name and ``et_al``.
    et_al : str
        Replacement for truncated lists and for a trailing "others".

    Returns
    -------
    list[str]
        Formatted names, TeX markup removed; "X Collaboration" becomes "X".
    """
    formatted: list[str] = []
    for name in names:
        text = " ".join(remove_tex_markup(format_name(name, name_format)).split())
        if COLLABORATION_RE.search(text):
            text = text.split()[0]
        formatted.append(text)

    if formatted:
        if max_names and len(formatted) > max_names:
            formatted = [formatted[0], et_al]
        if formatted[-1] == "others":
            formatted[-1] = et_al

    return formatted
