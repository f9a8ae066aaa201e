"""Library maintenance operations.

Each operation works on one library and optionally records its progress
in a ``RunContext``. Operations that change the library finish with a
sweep, so no broken links or empty directories are left behind.
"""

import os
from collections.abc import Iterable
from pathlib import Path

from bibshelf.audit import RunContext
from bibshelf.catalog import Catalog
from bibshelf.changes import partition_modified
from bibshelf.config import LibraryConfig
from bibshelf.engine.results import LibraryStatus, PipelineResult
from bibshelf.engine.runner import run_pipeline, sweep_library
from bibshelf.errors import ParseError, PlacementError, PreconditionError, RecordError
from bibshelf.links import keyword_index
from bibshelf.models import BibRecord
from bibshelf.parse import format_bibtex, parse_bibtex_file
from bibshelf.store import move_file
from bibshelf.utils import is_in_dir, normalize_path, real_path, resolve_link_target

__all__ = [
    "export_catalog",
    "find_pdf_files",
    "import_bibliography",
    "import_records",
    "library_keywords",
    "library_status",
    "rebuild_library",
    "remove_pdf",
    "replace_pdf",
    "sweep",
]

PDF_MAGIC = b"%PDF"


def _is_pdf(path: Path) -> bool:
    if path.suffix.lower() == ".pdf":
        return True
    try:
        with path.open("rb") as f:
            return f.read(len(PDF_MAGIC)) == PDF_MAGIC
    except OSError:
        return False


def find_pdf_files(paths: Iterable[Path | str]) -> list[Path]:
    """Collect the PDF files named by, or found below, ``paths``.

    Symbolic links are resolved and each file is returned once, however
    many paths lead to it. A file counts as a PDF if it has a ``.pdf``
    suffix or starts with the PDF magic bytes.

    Parameters
    ----------
    paths : Iterable[Path | str]
        Files and directories; directories are searched recursively.

    Returns
    -------
    list[Path]
        Resolved PDF paths in discovery order.

    Raises
    ------
    PreconditionError
        If a path does not exist.
    """
    found: list[Path] = []
    seen: set[tuple[int, int]] = set()

    def add(candidate: Path) -> None:
        resolved = candidate.resolve()
        if not resolved.is_file() or not _is_pdf(resolved):
            return
        st = resolved.stat()
        if (st.st_dev, st.st_ino) in seen:
            return
        seen.add((st.st_dev, st.st_ino))
        found.append(resolved)

    for path in map(Path, paths):
        if not path.exists():
            raise PreconditionError("no such file or directory", path=path)
        if not path.is_dir():
            add(path)
            continue
        for dirpath, dirnames, filenames in os.walk(path):
            dirnames.sort()
            for name in sorted(filenames):
                add(Path(dirpath) / name)

    return found


def _require_library(config: LibraryConfig) -> None:
    if not config.root.is_dir():
        raise PreconditionError("library root does not exist", path=config.root)


def _library_link(config: LibraryConfig, link: Path | str) -> tuple[Path, Path]:
    """Validate a link of the link tree and return it with its store target."""
    link = normalize_path(Path(link).expanduser())
    parent = link.parent
    reserved = any(is_in_dir(directory, parent) for directory in config.reserved_dirs)
    if reserved or not is_in_dir(config.root, parent):
        raise PreconditionError("not in the library link tree", path=link)
    if not link.is_symlink():
        raise PreconditionError("not a symbolic link", path=link)

    target = resolve_link_target(link)
    if not is_in_dir(config.store_dir, target) or not target.is_file():
        raise PreconditionError("link does not point to a PDF file in the library", path=link)
    # Catalog entries name files under the store path as configured.
    return link, config.store_dir / target.relative_to(real_path(config.store_dir))


def _move_out(link: Path, target: Path, output_dir: Path | str | None) -> Path:
    output_dir = Path(output_dir) if output_dir is not None else Path.home()
    if not output_dir.is_dir():
        raise PreconditionError("output directory does not exist", path=output_dir)

    destination = output_dir / link.name
    if os.path.lexists(destination):
        raise PreconditionError("output file already exists", path=destination)

    try:
        move_file(target, destination)
    except OSError as e:
        raise PlacementError(
            f"could not move file out of the library: {e.strerror or e}", path=target
        ) from e
    return destination


def import_records(
    records: list[BibRecord],
    config: LibraryConfig,
    run: RunContext | None = None,
) -> PipelineResult:
    """File a batch of new or updated records into the library.

    The library layout is created if it does not exist yet.

    Parameters
    ----------
    records : list[BibRecord]
        Records whose ``file`` names the PDF to import.
    config : LibraryConfig
        Library configuration.
    run : RunContext | None, optional
        Audit run context.

    Returns
    -------
    PipelineResult
        Counters and per-record errors.
    """
    return run_pipeline(records, config, run)


def import_bibliography(
    bib_files: Iterable[Path | str],
    config: LibraryConfig,
    run: RunContext | None = None,
) -> PipelineResult:
    """Import the records of one or more BibTeX files.

    Relative ``file`` fields are taken relative to the BibTeX file that
    contains them. Files that cannot be read and malformed entries are
    reported as errors of the "parse" stage; the readable records are
    still imported.

    Parameters
    ----------
    bib_files : Iterable[Path | str]
        BibTeX files.
    config : LibraryConfig
        Library configuration.
    run : RunContext | None, optional
        Audit run context.

    Returns
    -------
    PipelineResult
        Counters and per-record errors, parse errors first.
    """
    records: list[BibRecord] = []
    errors: list[RecordError] = []
    inputs: list[tuple[Path, int]] = []

    if run:
        run.start_stage("parse")

    for path in map(Path, bib_files):
        try:
            parsed, warnings, parse_errors = parse_bibtex_file(path)
        except ParseError as e:
            errors.append(RecordError.from_exception(e, stage="parse"))
            continue

        for message in parse_errors:
            errors.append(RecordError.from_exception(ParseError(message, path=path), stage="parse"))
        if run:
            for message in warnings:
                run.audit_logger.event(
                    "parse_warning",
                    data={"message": message, "path": str(path)},
                    level="WARN",
                )

        for record in parsed:
            file = record.file
            if file is not None and not file.is_absolute():
                record.file = path.parent / file
        records.extend(parsed)
        inputs.append((path, len(parsed)))

    if run:
        run.record_inputs(inputs)
        for error in errors:
            run.record_error(error.exception, stage=error.stage)
        counters = {"files": len(inputs), "records_out": len(records), "failed": len(errors)}
        run.finish_stage("parse", counters)

    result = run_pipeline(records, config, run)
    result.errors[:0] = errors
    result.success = result.success and not errors
    return result


def rebuild_library(config: LibraryConfig, run: RunContext | None = None) -> PipelineResult:
    """Regenerate keys, placement and links of every catalog record.

    Catalog records edited since their last write-back are committed,
    files whose metadata changed move to their new canonical path, and
    the link tree is reconciled with the whole catalog.

    Raises
    ------
    PreconditionError
        If the library root does not exist.
    ParseError
        If the catalog is malformed.
    """
    _require_library(config)
    records = Catalog.for_library(config).load()
    return run_pipeline(records, config, run)


def sweep(config: LibraryConfig, run: RunContext | None = None) -> PipelineResult:
    """Remove broken links and empty directories from the link tree.

    Raises
    ------
    PreconditionError
        If the library root does not exist.
    """
    _require_library(config)
    return sweep_library(config, run)


def remove_pdf(
    link: Path | str,
    config: LibraryConfig,
    output_dir: Path | str | None = None,
    run: RunContext | None = None,
) -> tuple[Path, BibRecord | None, PipelineResult]:
    """Move a PDF out of the library.

    The canonical file behind ``link`` is moved to ``output_dir`` under
    the link's file name, its catalog record is dropped, and the library
    is swept of the links left dangling.

    Parameters
    ----------
    link : Path | str
        A link in the library's link tree.
    config : LibraryConfig
        Library configuration.
    output_dir : Path | str | None, optional
        Destination directory, by default the user's home directory.
    run : RunContext | None, optional
        Audit run context.

    Returns
    -------
    tuple[Path, BibRecord | None, PipelineResult]
        New location of the file, the removed catalog record (None if
        the file had none), and the sweep result.

    Raises
    ------
    PreconditionError
        If ``link`` is not a link of the library pointing into the store,
        or the destination is unusable.
    PlacementError
        If the file could not be moved.
    """
    _require_library(config)
    link, target = _library_link(config, link)
    destination = _move_out(link, target, output_dir)

    record = Catalog.for_library(config).remove(target)
    if run:
        run.audit_logger.event(
            "file_removed",
            data={"from": str(target), "to": str(destination)},
            rid=record.key if record else None,
        )

    return destination, record, sweep_library(config, run)


def replace_pdf(
    link: Path | str,
    new_file: Path | str,
    config: LibraryConfig,
    output_dir: Path | str | None = None,
    run: RunContext | None = None,
) -> tuple[Path, PipelineResult]:
    """Swap the PDF behind ``link`` for ``new_file``, keeping its metadata.

    The old canonical file is moved to ``output_dir`` under the link's
    file name; ``new_file`` takes its place and the record runs through
    the pipeline again.

    Parameters
    ----------
    link : Path | str
        A link in the library's link tree.
    new_file : Path | str
        Replacement PDF: a file, or a directory holding exactly one PDF.
    config : LibraryConfig
        Library configuration.
    output_dir : Path | str | None, optional
        Destination of the old file, by default the user's home directory.
    run : RunContext | None, optional
        Audit run context.

    Returns
    -------
    tuple[Path, PipelineResult]
        New location of the old file, and the pipeline result.

    Raises
    ------
    PreconditionError
        If ``link`` is not a link of the library or its file has no catalog
        record; if ``new_file`` does not exist, is not exactly one PDF
        file, or is already a file of the library.
    PlacementError
        If the old file could not be moved.
    """
    _require_library(config)
    link, target = _library_link(config, link)

    found = find_pdf_files([Path(new_file).expanduser()])
    if len(found) != 1:
        raise PreconditionError("replacement must be exactly one PDF file", path=new_file)
    new_file = found[0]

    catalog = Catalog.for_library(config)
    if is_in_dir(config.store_dir, new_file) or catalog.find_by_file(new_file) is not None:
        raise PreconditionError("replacement file already belongs to the library", path=new_file)

    record = catalog.find_by_file(target)
    if record is None:
        raise PreconditionError("file has no catalog record", path=target)

    destination = _move_out(link, target, output_dir)
    if run:
        run.audit_logger.event(
            "file_removed",
            data={"from": str(target), "to": str(destination)},
            rid=record.key,
        )

    record.file = new_file
    return destination, run_pipeline([record], config, run, previous_paths={record.key: target})


def library_status(config: LibraryConfig) -> LibraryStatus:
    """Summarize the catalog and the canonical store.

    Raises
    ------
    PreconditionError
        If the library root does not exist.
    ParseError
        If the catalog is malformed.
    """
    _require_library(config)
    records = Catalog.for_library(config).load()
    changes = partition_modified(records)

    referenced = {normalize_path(record.file) for record in records if record.file is not None}
    stored = find_pdf_files([config.store_dir]) if config.store_dir.is_dir() else []

    return LibraryStatus(
        records=len(records),
        modified=changes.n_modified,
        unmodified=changes.n_unmodified,
        missing_files=sorted(p for p in referenced if not p.is_file()),
        unreferenced_files=[p for p in stored if p not in referenced],
    )


def export_catalog(config: LibraryConfig, file_field: str = "keep") -> str:
    """Return the catalog as BibTeX text.

    Parameters
    ----------
    config : LibraryConfig
        Library configuration.
    file_field : str, optional
        How to emit the ``file`` field ("keep", "comment" or "drop").
    """
    _require_library(config)
    return format_bibtex(Catalog.for_library(config).load(), file_field)


def library_keywords(config: LibraryConfig) -> list[str]:
    """Return the keyword index of the catalog (e.g., "Physics: Gravity")."""
    _require_library(config)
    return keyword_index(Catalog.for_library(config).load())
