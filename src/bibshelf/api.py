"""Public API for managing a PDF library.

This module provides the main public API for bibshelf, enabling:
- Opening a library from configuration
- Reading BibTeX files into BibRecord objects
- Importing records, rebuilding and sweeping a library
- Removing and replacing library PDFs

Every operation that changes the library is audited under
``<root>/.bibshelf/runs/<run_id>/`` unless auditing is disabled.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from bibshelf.audit import RunContext
from bibshelf.config import LibraryConfig, load_config
from bibshelf.errors import ParseError
from bibshelf.models import BibRecord
from bibshelf.parse import parse_bibtex_file

if TYPE_CHECKING:
    from bibshelf.engine.results import PipelineResult

__all__ = [
    "ParseError",
    "import_bib",
    "open_library",
    "read_bibtex",
    "rebuild",
    "remove",
    "replace",
    "run_context",
    "sweep_links",
]


def open_library(
    root: str | Path | None = None,
    config_path: str | Path | None = None,
    **overrides: Any,
) -> LibraryConfig:
    """Load the configuration of a library.

    Parameters
    ----------
    root : str | Path | None, optional
        Library root, overriding the configuration file.
    config_path : str | Path | None, optional
        Configuration file; see ``bibshelf.config.load_config``.
    **overrides : Any
        Further configuration overrides (e.g., ``workers=4``).

    Returns
    -------
    LibraryConfig
        Validated configuration.

    Raises
    ------
    ConfigError
        If the configuration is invalid.
    """
    return load_config(config_path, root=root, **overrides)


@contextmanager
def run_context(
    config: LibraryConfig,
    parameters: dict[str, Any] | None = None,
    create: bool = False,
) -> Iterator[RunContext | None]:
    """Audit run for one library operation, or None if not audited.

    Nothing is created on disk for a library that does not exist yet,
    unless ``create`` is True.

    Parameters
    ----------
    config : LibraryConfig
        Library configuration.
    parameters : dict[str, Any] | None, optional
        Operation parameters recorded in the manifest.
    create : bool, optional
        Create the library layout first, by default False.
    """
    if create:
        config.ensure_layout()
    if not config.audit or not config.state_dir.is_dir():
        yield None
        return
    with RunContext.for_library(config, parameters) as run:
        yield run


def read_bibtex(path: str | Path, *, strict: bool = True) -> list[BibRecord]:
    """Parse a BibTeX file.

    Parameters
    ----------
    path : str | Path
        BibTeX file.
    strict : bool, optional
        If True, raise on malformed entries. If False, return whatever
        records could be parsed, by default True.

    Returns
    -------
    list[BibRecord]
        Parsed records.

    Raises
    ------
    ParseError
        If the file cannot be read, or has malformed entries and
        strict=True.

    Examples
    --------
        >>> from bibshelf import read_bibtex
        >>> records = read_bibtex("refs.bib")
        >>> for record in records:
        ...     print(record.key, record.file)
    """
    file_path = Path(path)
    records, _, errors = parse_bibtex_file(file_path)

    if errors and strict:
        raise ParseError(f"Failed to parse {file_path.name}: {'; '.join(errors)}", path=file_path)

    return records


def import_bib(
    bib_files: str | Path | Iterable[str | Path],
    *,
    root: str | Path | None = None,
    config_path: str | Path | None = None,
    generate_keys: bool | None = None,
) -> PipelineResult:
    """Import the records of BibTeX files, and their PDFs, into a library.

    Each record's ``file`` field names the PDF to import; relative paths
    are taken relative to the BibTeX file. The library is created if it
    does not exist.

    Parameters
    ----------
    bib_files : str | Path | Iterable[str | Path]
        One or more BibTeX files.
    root : str | Path | None, optional
        Library root; defaults to the configured root.
    config_path : str | Path | None, optional
        Configuration file.
    generate_keys : bool | None, optional
        Override the configured key generation.

    Returns
    -------
    PipelineResult
        Counters and per-record errors. Check ``result.success``.

    Examples
    --------
        >>> from bibshelf import import_bib
        >>> result = import_bib("new-papers.bib", root="~/PDFLibrary")
        >>> print(result.added, "PDF files added")
        >>> for error in result.errors:
        ...     print(error)
    """
    from bibshelf.engine import import_bibliography

    if isinstance(bib_files, (str, Path)):
        bib_files = [bib_files]
    paths = [Path(p) for p in bib_files]

    config = open_library(root, config_path, generate_keys=generate_keys)
    with run_context(config, {"bib_files": [str(p) for p in paths]}, create=True) as run:
        return import_bibliography(paths, config, run)


def rebuild(
    *,
    root: str | Path | None = None,
    config_path: str | Path | None = None,
) -> PipelineResult:
    """Regenerate keys, file placement and links of a whole library.

    Raises
    ------
    PreconditionError
        If the library does not exist.
    ParseError
        If the catalog is malformed.
    """
    from bibshelf.engine import rebuild_library

    config = open_library(root, config_path)
    with run_context(config, {"operation": "rebuild"}) as run:
        return rebuild_library(config, run)


def sweep_links(
    *,
    root: str | Path | None = None,
    config_path: str | Path | None = None,
) -> PipelineResult:
    """Remove broken links and empty directories from a library."""
    from bibshelf.engine import sweep

    config = open_library(root, config_path)
    with run_context(config, {"operation": "sweep"}) as run:
        return sweep(config, run)


def remove(
    link: str | Path,
    *,
    output_dir: str | Path | None = None,
    root: str | Path | None = None,
    config_path: str | Path | None = None,
) -> tuple[Path, PipelineResult]:
    """Move the PDF behind a library link out of the library.

    Parameters
    ----------
    link : str | Path
        Link in the library's link tree.
    output_dir : str | Path | None, optional
        Destination directory, by default the user's home directory.
    root : str | Path | None, optional
        Library root; defaults to the configured root.
    config_path : str | Path | None, optional
        Configuration file.

    Returns
    -------
    tuple[Path, PipelineResult]
        New location of the PDF, and the result of the final sweep.

    Examples
    --------
        >>> from bibshelf import remove
        >>> path, _ = remove("~/PDFLibrary/Years/2020/Smith_Study_Widgets_2020.pdf")
    """
    from bibshelf.engine import remove_pdf

    config = open_library(root, config_path)
    with run_context(config, {"operation": "remove", "link": str(link)}) as run:
        destination, _, result = remove_pdf(link, config, output_dir, run)
        return destination, result


def replace(
    link: str | Path,
    new_file: str | Path,
    *,
    output_dir: str | Path | None = None,
    root: str | Path | None = None,
    config_path: str | Path | None = None,
) -> tuple[Path, PipelineResult]:
    """Replace the PDF behind a library link, keeping its metadata.

    Returns
    -------
    tuple[Path, PipelineResult]
        New location of the old PDF, and the pipeline result.
    """
    from bibshelf.engine import replace_pdf

    config = open_library(root, config_path)
    parameters = {"operation": "replace", "link": str(link), "new_file": str(new_file)}
    with run_context(config, parameters) as run:
        return replace_pdf(link, new_file, config, output_dir, run)
