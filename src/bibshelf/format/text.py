"""TeX markup and word-level text helpers.

Pre-compiled patterns and fixed word lists shared by link derivation and
citation key generation.
"""

import re
import unicodedata
from collections.abc import Iterable

__all__ = [
    "SHORT_WORDS",
    "TEX_WORDS",
    "capitalize_words",
    "remove_short_words",
    "remove_tex_markup",
    "to_ascii",
    "ucfirst",
]

SHORT_WORDS = frozenset(
    """
    a
    an as at by if in is of on or so to up
    and are but for its nor now off per the via
    amid down from into like near once onto over past than that upon when with
    """.split()
)

# TeX commands kept as readable text
TEX_WORDS: dict[str, str] = {
    **{
        name: name
        for name in (
            "Gamma Delta Theta Lambda Xi Pi Sigma Upsilon Phi Psi Omega "
            "alpha beta gamma delta epsilon varepsilon zeta eta theta vartheta "
            "iota kappa lambda mu nu xi pi varpi rho varrho sigma varsigma "
            "tau upsilon phi varphi chi psi omega"
        ).split()
    },
    "lt": "<=",
    "gt": ">=",
    "ll": "<<",
    "gg": ">>",
    "sim": "~",
    "approx": "~=",
}

_TEX_WORD_ALTERNATION = "|".join(sorted(TEX_WORDS, key=len, reverse=True))
TEX_WORD_RE = re.compile(r"\\(" + _TEX_WORD_ALTERNATION + r")(?![A-Za-z])")
BRACED_ACCENT_RE = re.compile(r"\{\s*\\(\w)\s*\}")
SPACED_ACCENT_RE = re.compile(r"\\(\w)\s+")
COMMAND_RE = re.compile(r"\\[A-Za-z]+")
ESCAPE_RE = re.compile(r"\\.")
WORD_START_RE = re.compile(r"\b(\w)")


def remove_tex_markup(text: str | None) -> str:
    """Strip TeX markup from a field value.

    Greek letters and a few relations are kept as words or symbols,
    ``~`` becomes a space, single-letter accent commands collapse to their
    argument, other commands, escaped characters, braces and ``$`` go.

    Parameters
    ----------
    text : str | None
        Field value; None is treated as empty.

    Returns
    -------
    str
        Plain text.

    Examples
    --------
    >>> remove_tex_markup(r"The $\\alpha$~decay of {\\"o}ther {H}e nuclei")
    'The alpha decay of other He nuclei'
    """
    if text is None:
        return ""
    text = text.replace("~", " ")
    text = TEX_WORD_RE.sub(lambda m: TEX_WORDS[m.group(1)], text)
    text = BRACED_ACCENT_RE.sub(r"\1", text)
    text = SPACED_ACCENT_RE.sub(r"\1", text)
    text = COMMAND_RE.sub("", text)
    text = ESCAPE_RE.sub("", text)
    text = text.replace("{", "").replace("}", "").replace("$", "")
    return text


def remove_short_words(words: Iterable[str]) -> list[str]:
    """Drop short English words, compared case-insensitively."""
    return [word for word in words if word and word.lower() not in SHORT_WORDS]


def ucfirst(word: str) -> str:
    """Upper-case the first character, leave the rest alone."""
    return word[:1].upper() + word[1:]


def capitalize_words(text: str) -> str:
    """Upper-case the first character of every word."""
    return WORD_START_RE.sub(lambda m: m.group(1).upper(), text)


def to_ascii(text: str) -> str:
    """Transliterate to ASCII by stripping accents.

    Characters without an ASCII base form are dropped.

    Examples
    --------
    >>> to_ascii("Schrödinger Érdős")
    'Schrodinger Erdos'
    """
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return stripped.encode("ascii", "ignore").decode("ascii")
