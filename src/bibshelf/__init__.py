"""Content-addressed PDF library with BibTeX metadata and browsable link trees.

This package provides:
- Data models (bibshelf.models) - records, fields and fingerprints
- Change detection (bibshelf.changes) - which records need write-back
- Parsing (bibshelf.parse) - BibTeX reading and writing
- Formatting (bibshelf.format) - names, TeX markup and citation keys
- Store (bibshelf.store) - placement of PDFs in the canonical store
- Links (bibshelf.links) - link tree derivation and synchronization
- Sweep (bibshelf.sweep) - broken link and empty directory cleanup
- Engine (bibshelf.engine) - pipeline orchestration and maintenance
- Audit (bibshelf.audit) - logging and traceability
- CLI (bibshelf.cli) - command-line interface
- Public API (bibshelf.api) - high-level convenience functions
"""

__version__ = "0.4.0"
__author__ = "bibshelf developers"
__license__ = "MIT"

from bibshelf.api import (
    ParseError,
    import_bib,
    open_library,
    read_bibtex,
    rebuild,
    remove,
    replace,
    sweep_links,
)
from bibshelf.config import LibraryConfig
from bibshelf.models import BibRecord, calculate_fingerprint

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "BibRecord",
    "LibraryConfig",
    "ParseError",
    "calculate_fingerprint",
    "import_bib",
    "open_library",
    "read_bibtex",
    "rebuild",
    "remove",
    "replace",
    "sweep_links",
]
