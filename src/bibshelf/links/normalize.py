"""Normalization of link path segments into portable file names."""

import re
from pathlib import Path

from bibshelf.format.text import to_ascii
from bibshelf.models import LinkSpec

__all__ = ["LINK_SUFFIX", "link_path", "normalize_segment"]

LINK_SUFFIX = ".pdf"

QUOTES_RE = re.compile(r"[`'\"]")
UNSAFE_RE = re.compile(r"[^-+.A-Za-z0-9]")
SEPARATOR_RUN_RE = re.compile(r"[-_]{2,}")


def normalize_segment(segment: str) -> str:
    """Turn a raw segment into a safe path component.

    Transliterates to ASCII, drops quotes, replaces anything outside
    ``[-+.A-Za-z0-9]`` with ``_``, collapses runs of ``-``/``_`` into a
    single ``_`` and strips ``_`` at both ends. A segment with nothing
    left becomes ``_``.

    Examples
    --------
    >>> normalize_segment("Schrödinger's  Cat -- Revisited")
    'Schrodingers_Cat_Revisited'
    """
    text = QUOTES_RE.sub("", to_ascii(segment))
    text = UNSAFE_RE.sub("_", text)
    text = SEPARATOR_RUN_RE.sub("_", text)
    text = text.strip("_")
    if text in ("", ".", ".."):
        return "_"
    return text


def link_path(root: Path, spec: LinkSpec) -> Path:
    """Normalized absolute path of the link described by ``spec``."""
    *directories, leaf = (normalize_segment(segment) for segment in spec.segments)
    return root.joinpath(*directories, f"{leaf}{LINK_SUFFIX}")
