"""BibTeX reading and writing.

Main entry points:
- parse_bibtex_file / parse_bibtex_string: BibTeX text to BibRecord lists
- format_bibtex / write_bibtex: deterministic BibTeX output
"""

from bibshelf.parse.bibtex import ParseResult, parse_bibtex_file, parse_bibtex_string
from bibshelf.parse.writer import FILE_FIELD_MODES, format_bibtex, format_entry, write_bibtex

__all__ = [
    "FILE_FIELD_MODES",
    "ParseResult",
    "format_bibtex",
    "format_entry",
    "parse_bibtex_file",
    "parse_bibtex_string",
    "write_bibtex",
]
