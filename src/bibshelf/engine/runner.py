"""Library synchronization pipeline runner.

Chains the stages that bring a batch of records and the library on disk
into agreement:

    keys        regenerate citation keys, drop in-batch duplicate keys
    place       move PDF files to their canonical store paths
    write_back  commit fingerprints of modified records to the catalog
    link        reconcile the link tree with the batch
    sweep       remove broken links and empty directories

A failing record is dropped from the later stages and reported in the
result; the other records carry on.
"""

from collections.abc import Mapping
from pathlib import Path

from bibshelf.audit import RunContext
from bibshelf.catalog import Catalog
from bibshelf.config import LibraryConfig
from bibshelf.engine.results import PipelineResult
from bibshelf.errors import PreconditionError, RecordError
from bibshelf.format import find_duplicate_keys, generate_keys
from bibshelf.links import LinkSynchronizer
from bibshelf.models import BibRecord
from bibshelf.store import LibraryPlacer
from bibshelf.sweep import LinkSweeper

__all__ = ["run_pipeline", "sweep_library"]


def _start(run: RunContext | None, stage: str, expected_records: int | None = None) -> None:
    if run:
        run.start_stage(stage, expected_records=expected_records)


def _finish(run: RunContext | None, stage: str, counters: dict[str, int]) -> None:
    if run:
        run.finish_stage(stage, counters=counters)


def _record_errors(run: RunContext | None, errors: list[RecordError]) -> None:
    if run:
        for error in errors:
            run.record_error(error.exception, stage=error.stage, rid=error.key)


def _stage_keys(
    records: list[BibRecord],
    config: LibraryConfig,
    run: RunContext | None,
    errors: list[RecordError],
) -> tuple[list[BibRecord], int]:
    """Regenerate keys and exclude records whose key is taken earlier in the batch."""
    _start(run, "keys", len(records))

    changed = generate_keys(records) if config.generate_keys else 0

    duplicates = set(find_duplicate_keys(records))
    kept: list[BibRecord] = []
    seen: set[str] = set()
    stage_errors: list[RecordError] = []
    for record in records:
        if record.key in duplicates and record.key in seen:
            exc = PreconditionError(
                "citation key is used by an earlier record in the batch",
                key=record.key,
                path=record.file,
            )
            stage_errors.append(RecordError.from_exception(exc, stage="keys"))
            continue
        seen.add(record.key)
        kept.append(record)

    _record_errors(run, stage_errors)
    errors.extend(stage_errors)
    counters = {
        "records_in": len(records),
        "keys_changed": changed,
        "duplicates": len(stage_errors),
    }
    _finish(run, "keys", counters)
    return kept, changed


def sweep_library(
    config: LibraryConfig,
    run: RunContext | None = None,
    result: PipelineResult | None = None,
) -> PipelineResult:
    """Run the sweep stage on its own.

    Parameters
    ----------
    config : LibraryConfig
        Library configuration.
    run : RunContext | None, optional
        Audit run context.
    result : PipelineResult | None, optional
        Result to update; a new one is created if None.

    Returns
    -------
    PipelineResult
        ``result`` with sweep counters and errors added.
    """
    if result is None:
        result = PipelineResult(success=True, run_id=run.run_id if run else None)

    _start(run, "sweep")
    report = LinkSweeper(config, logger=run.audit_logger if run else None).sweep()
    _record_errors(run, report.errors)
    _finish(run, "sweep", report.counters())

    result.links_swept += report.links_removed
    result.dirs_swept += report.dirs_removed
    result.errors.extend(report.errors)
    result.success = result.success and not report.errors
    return result


def _run_stages(
    records: list[BibRecord],
    config: LibraryConfig,
    run: RunContext | None,
    previous_paths: Mapping[str, Path],
    result: PipelineResult,
) -> None:
    logger = run.audit_logger if run else None
    config.ensure_layout()

    keys_before = {id(record): record.key for record in records}
    records, result.keys_generated = _stage_keys(records, config, run, result.errors)

    _start(run, "place", len(records))
    placement = LibraryPlacer(config, logger=logger).place(records)
    _record_errors(run, placement.errors)
    _finish(run, "place", placement.counters())
    result.errors.extend(placement.errors)
    result.added = len(placement.added)
    result.relocated = len(placement.relocated)

    placed = placement.placed
    moved_from = {**previous_paths, **placement.previous_paths}
    former_keys = {record.key: keys_before[id(record)] for record in placed}

    _start(run, "write_back", len(placed))
    catalog = Catalog.for_library(config)
    changes, catalog_written = catalog.write_back(placed, moved_from, former_keys)
    if logger:
        for record in changes.unmodified:
            logger.record_skipped(record.key, "unmodified", stage="write_back")
    if run and catalog_written:
        run.manifest_writer.add_file_artifact(catalog.path)
    _finish(run, "write_back", {**changes.counters(), "catalog_written": int(catalog_written)})
    result.unmodified = changes.n_unmodified
    result.written = changes.n_modified

    _start(run, "link", len(placed))
    links = LinkSynchronizer(config, logger=logger).sync(placed, moved_from)
    _record_errors(run, links.errors)
    _finish(run, "link", links.counters())
    result.errors.extend(links.errors)
    result.links_created = links.created
    result.links_replaced = links.replaced
    result.links_removed = links.removed

    sweep_library(config, run, result)


def run_pipeline(
    records: list[BibRecord],
    config: LibraryConfig,
    run: RunContext | None = None,
    previous_paths: Mapping[str, Path] | None = None,
) -> PipelineResult:
    """Synchronize the library with a batch of records.

    Parameters
    ----------
    records : list[BibRecord]
        Records whose ``file`` names the PDF to file. Records are updated
        in place (key, ``file`` and ``fingerprint``).
    config : LibraryConfig
        Library configuration. The library layout is created if missing.
    run : RunContext | None, optional
        Audit run context. If None, nothing is logged.
    previous_paths : Mapping[str, Path] | None, optional
        Earlier file path per citation key for records whose file was
        moved before this run (e.g., by ``replace``); catalog entries and
        links recorded under those paths are taken over.

    Returns
    -------
    PipelineResult
        Counters and per-record errors. ``success`` is False if any
        record failed or a stage aborted.

    Examples
    --------
        >>> from bibshelf.config import LibraryConfig
        >>> from bibshelf.engine import run_pipeline
        >>> from bibshelf.parse import parse_bibtex_file
        >>> records, _, _ = parse_bibtex_file(Path("new.bib"))
        >>> result = run_pipeline(records, LibraryConfig(root=Path("~/PDFLibrary")))
        >>> if not result.success:
        ...     for error in result.errors:
        ...         print(error)
    """
    result = PipelineResult(
        success=True,
        total_records=len(records),
        run_id=run.run_id if run else None,
    )

    try:
        _run_stages(list(records), config, run, previous_paths or {}, result)
    except ValueError:
        raise
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        if run:
            run.record_error(e, stage="pipeline", include_traceback=True)
        result.success = False
        result.error_message = error_msg
        return result

    result.success = not result.errors
    return result
