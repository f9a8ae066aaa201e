"""Command-line interface for bibshelf.

Provides CLI commands for importing PDFs into a library and maintaining it.
"""

import importlib.metadata
import sys
from pathlib import Path
from typing import NoReturn

import click

from bibshelf.config import LibraryConfig
from bibshelf.engine.results import PipelineResult
from bibshelf.errors import LibraryError

__all__ = ["cli"]

try:
    __version__ = importlib.metadata.version("bibshelf")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.4.0"


def _plural(n: int, noun: str, plural: str | None = None) -> str:
    return f"{n} {noun}" if n == 1 else f"{n} {plural or noun + 's'}"


def _fail(error: LibraryError) -> NoReturn:
    message = str(error) if error.path is None else f"{error.path}: {error}"
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _config(ctx: click.Context, **overrides: object) -> LibraryConfig:
    from bibshelf.api import open_library

    options = ctx.obj or {}
    return open_library(options.get("root"), options.get("config_path"), **overrides)


def _report(result: PipelineResult, verbose: bool = False) -> None:
    """Print a result summary and exit non-zero if any record failed."""
    if verbose:
        click.echo(f"  Records: {result.total_records}", err=True)
        click.echo(f"  Keys generated: {result.keys_generated}", err=True)
        click.echo(f"  Relocated: {result.relocated}", err=True)
        click.echo(f"  Links replaced: {result.links_replaced}", err=True)
        click.echo(f"  Links removed: {result.links_removed}", err=True)
        if result.run_id:
            click.echo(f"  Run: {result.run_id}", err=True)

    if result.added:
        click.echo(f"added {_plural(result.added, 'PDF file')}", err=True)
    if result.unmodified:
        click.echo(f"skipped {_plural(result.unmodified, 'unmodified record')}", err=True)
    if result.links_created:
        click.echo(f"made {_plural(result.links_created, 'link')}", err=True)
    if result.links_swept or result.dirs_swept:
        click.echo(
            f"swept {_plural(result.links_swept, 'broken link')} and "
            f"{_plural(result.dirs_swept, 'empty directory', 'empty directories')}",
            err=True,
        )

    for error in result.errors:
        click.secho(str(error), fg="red", err=True)
    if result.error_message:
        click.secho(f"✗ Failed: {result.error_message}", fg="red", err=True)
    if not result.success:
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="bibshelf")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Library root directory (default: from config, else ~/PDFLibrary)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: $BIBSHELF_CONFIG or ~/.config/bibshelf/config.json)",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None, config_path: Path | None) -> None:
    """Content-addressed PDF library with BibTeX metadata.

    PDF files live once in the library's store; symbolic links sort them
    by author, title, year, keyword, journal and more.

    Use 'bibshelf COMMAND --help' for command-specific help.
    """
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["config_path"] = config_path


@cli.command(name="import")
@click.argument(
    "bib_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--no-keys", is_flag=True, help="Keep citation keys as they are")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def import_(ctx: click.Context, bib_files: tuple[Path, ...], no_keys: bool, verbose: bool) -> None:
    """Import the PDFs named by the records of BIB_FILES.

    Each record's 'file' field names its PDF; relative paths are taken
    relative to the BibTeX file. The library is created if needed.

    Examples
    --------
        bibshelf import new-papers.bib
        bibshelf --root ~/Papers import a.bib b.bib --no-keys
    """
    from bibshelf.api import run_context
    from bibshelf.engine import import_bibliography

    try:
        config = _config(ctx, generate_keys=False if no_keys else None)
        if verbose:
            click.echo(f"Importing into: {config.root}", err=True)
        with run_context(config, {"bib_files": [str(p) for p in bib_files]}, create=True) as run:
            result = import_bibliography(bib_files, config, run)
    except LibraryError as e:
        _fail(e)
    _report(result, verbose)


@cli.command()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def rebuild(ctx: click.Context, verbose: bool) -> None:
    """Regenerate keys, file placement and links of the whole library."""
    from bibshelf.api import run_context
    from bibshelf.engine import rebuild_library

    try:
        config = _config(ctx)
        with run_context(config, {"operation": "rebuild"}) as run:
            result = rebuild_library(config, run)
    except LibraryError as e:
        _fail(e)
    _report(result, verbose)


@cli.command()
@click.pass_context
def sweep(ctx: click.Context) -> None:
    """Remove broken links and empty directories from the link tree."""
    from bibshelf.api import run_context
    from bibshelf.engine import sweep as sweep_library

    try:
        config = _config(ctx)
        with run_context(config, {"operation": "sweep"}) as run:
            result = sweep_library(config, run)
    except LibraryError as e:
        _fail(e)
    _report(result)


@cli.command()
@click.argument("link", type=click.Path(path_type=Path))
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where to move the PDF (default: home directory)",
)
@click.pass_context
def remove(ctx: click.Context, link: Path, output_dir: Path | None) -> None:
    """Move the PDF behind LINK out of the library.

    Examples
    --------
        bibshelf remove "~/PDFLibrary/Years/2020/Smith_Study_Widgets_2020.pdf" -o ~/old
    """
    from bibshelf.api import run_context
    from bibshelf.engine import remove_pdf

    try:
        config = _config(ctx)
        with run_context(config, {"operation": "remove", "link": str(link)}) as run:
            destination, _, result = remove_pdf(link, config, output_dir, run)
    except LibraryError as e:
        _fail(e)
    click.echo(f"removed PDF file to '{destination}'", err=True)
    _report(result)


@cli.command()
@click.argument("link", type=click.Path(path_type=Path))
@click.argument("new_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where to move the old PDF (default: home directory)",
)
@click.pass_context
def replace(ctx: click.Context, link: Path, new_file: Path, output_dir: Path | None) -> None:
    """Replace the PDF behind LINK by NEW_FILE, keeping its metadata."""
    from bibshelf.api import run_context
    from bibshelf.engine import replace_pdf

    parameters = {"operation": "replace", "link": str(link), "new_file": str(new_file)}
    try:
        config = _config(ctx)
        with run_context(config, parameters) as run:
            destination, result = replace_pdf(link, new_file, config, output_dir, run)
    except LibraryError as e:
        _fail(e)
    click.echo(f"removed old PDF file to '{destination}'", err=True)
    _report(result)


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output BibTeX file (default: stdout)",
)
@click.option(
    "--file-field",
    type=click.Choice(["keep", "comment", "drop"]),
    default="keep",
    show_default=True,
    help="How to write the 'file' field of each record",
)
@click.pass_context
def export(ctx: click.Context, output: Path | None, file_field: str) -> None:
    """Write the library catalog as BibTeX."""
    from bibshelf.engine import export_catalog

    try:
        text = export_catalog(_config(ctx), file_field)
    except LibraryError as e:
        _fail(e)

    if output is None:
        click.echo(text, nl=False)
    else:
        output.write_text(text, encoding="utf-8")
        click.secho(f"✓ Wrote catalog to {output}", fg="green", err=True)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show catalog and store statistics."""
    from bibshelf.engine import library_status

    try:
        config = _config(ctx)
        info = library_status(config)
    except LibraryError as e:
        _fail(e)

    click.echo(f"Library: {config.root}")
    click.echo(f"  Records: {info.records}")
    click.echo(f"  Modified: {info.modified}")
    click.echo(f"  Unmodified: {info.unmodified}")
    for path in info.missing_files:
        click.secho(f"  missing file: {path}", fg="yellow")
    for path in info.unreferenced_files:
        click.secho(f"  no catalog record: {path}", fg="yellow")


@cli.command()
@click.pass_context
def keywords(ctx: click.Context) -> None:
    """List the keywords used in the library."""
    from bibshelf.engine import library_keywords

    try:
        index = library_keywords(_config(ctx))
    except LibraryError as e:
        _fail(e)

    for keyword in index:
        click.echo(keyword)


if __name__ == "__main__":
    cli()
