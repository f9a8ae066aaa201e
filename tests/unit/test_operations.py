"""Tests for library maintenance operations."""

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from bibshelf.catalog import Catalog
from bibshelf.config import LibraryConfig
from bibshelf.engine import (
    export_catalog,
    find_pdf_files,
    import_bibliography,
    import_records,
    library_keywords,
    library_status,
    rebuild_library,
    remove_pdf,
    replace_pdf,
    sweep,
)
from bibshelf.errors import PreconditionError
from bibshelf.format import generate_key
from bibshelf.models import BibRecord
from bibshelf.store import LibraryPlacer

LEAF = "Smith_Study_Widgets_2020.pdf"

ENTRY = """\
@article{{{key},
  author = {{Smith, J.}},
  title = {{{title}}},
  year = {{2020}},
  keywords = {{{keywords}}},
  file = {{{file}}},
}}
"""


@pytest.fixture
def write_bib(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a one-entry BibTeX file under ``tmp_path/incoming``."""

    def _factory(
        file: str = "paper.pdf",
        *,
        name: str = "refs.bib",
        key: str = "smith",
        title: str = "A Study of Widgets",
        keywords: str = "Widgets",
        extra: str = "",
    ) -> Path:
        path = tmp_path / "incoming" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        text = ENTRY.format(key=key, title=title, keywords=keywords, file=file) + extra
        path.write_text(text, encoding="utf-8")
        return path

    return _factory


@pytest.fixture
def imported(
    library: LibraryConfig,
    make_pdf: Callable[..., Path],
    write_bib: Callable[..., Path],
) -> Path:
    """Library holding the Smith widgets paper; returns its Years link."""
    make_pdf()
    result = import_bibliography([write_bib()], library)
    assert result.success, result.errors
    return library.root / "Years" / "2020" / LEAF


def _symlinks(root: Path) -> list[Path]:
    return [
        Path(dirpath) / name
        for dirpath, dirnames, filenames in os.walk(root)
        for name in (*dirnames, *filenames)
        if (Path(dirpath) / name).is_symlink()
    ]


# ---------------------------------------------------------------------------
# find_pdf_files
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_find_pdf_files(tmp_path: Path) -> None:
    """Test PDFs are found by suffix or magic bytes, each file once."""
    folder = tmp_path / "in"
    (folder / "sub").mkdir(parents=True)
    (folder / "a.PDF").write_bytes(b"%PDF-1.4 a")
    (folder / "sub" / "scan").write_bytes(b"%PDF-1.7 scan")
    (folder / "notes.txt").write_text("not a pdf", encoding="utf-8")
    (folder / "sub" / "again.pdf").symlink_to(folder / "a.PDF")

    found = find_pdf_files([folder, folder / "a.PDF"])

    assert found == [(folder / "a.PDF").resolve(), (folder / "sub" / "scan").resolve()]


@pytest.mark.unit
def test_find_pdf_files_missing_path(tmp_path: Path) -> None:
    """Test a path that does not exist is an error."""
    with pytest.raises(PreconditionError, match="no such file"):
        find_pdf_files([tmp_path / "missing"])


# ---------------------------------------------------------------------------
# import_bibliography
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_import_files_record_and_links(
    library: LibraryConfig,
    make_pdf: Callable[..., Path],
    write_bib: Callable[..., Path],
) -> None:
    """Test importing moves the PDF into the store, catalogs it and links it."""
    source = make_pdf()

    result = import_bibliography([write_bib()], library)

    assert result.success
    assert (result.total_records, result.added, result.written) == (1, 1, 1)
    assert result.links_created == 5
    assert not source.exists()

    [record] = Catalog.for_library(library).load()
    assert record.key == "Smit2020-StdWdg"
    assert record.file.parent.parent == library.store_dir
    assert os.readlink(library.root / "Keywords" / "Widgets" / LEAF) == str(record.file)


@pytest.mark.unit
def test_import_reports_parse_errors_and_keeps_going(
    library: LibraryConfig,
    make_pdf: Callable[..., Path],
    write_bib: Callable[..., Path],
    tmp_path: Path,
) -> None:
    """Test malformed entries and unreadable files fail, readable records import."""
    make_pdf()
    bib = write_bib(extra="@misc{broken,\n  title = {Never closed},\n")

    result = import_bibliography([tmp_path / "missing.bib", bib], library)

    assert result.success is False
    assert [e.stage for e in result.errors] == ["parse", "parse"]
    assert "could not read" in result.errors[0].message
    assert "Unclosed entry" in result.errors[1].message
    assert result.added == 1


@pytest.mark.unit
def test_import_missing_pdf_fails_record(
    library: LibraryConfig, write_bib: Callable[..., Path]
) -> None:
    """Test a record whose PDF does not exist is reported by placement."""
    result = import_bibliography([write_bib("nowhere.pdf")], library)

    assert result.success is False
    assert [(e.stage, e.exception_class) for e in result.errors] == [
        ("place", "PreconditionError")
    ]
    assert Catalog.for_library(library).load() == []


@pytest.mark.unit
def test_import_duplicate_keys_keep_first(
    library: LibraryConfig,
    make_pdf: Callable[..., Path],
    write_bib: Callable[..., Path],
) -> None:
    """Test a record generating an already used key is excluded."""
    make_pdf()
    duplicate = make_pdf("copy.pdf")
    first = write_bib()
    second = write_bib(str(duplicate), name="more.bib", key="other")

    result = import_bibliography([first, second], library)

    assert result.added == 1
    assert [(e.stage, e.key) for e in result.errors] == [("keys", "Smit2020-StdWdg")]
    assert duplicate.exists()


@pytest.mark.unit
def test_import_twice_is_a_no_op(library: LibraryConfig, imported: Path) -> None:
    """Test re-importing the catalog changes nothing."""
    before = imported.lstat()

    result = import_bibliography([library.catalog_path], library)

    assert result.success
    assert (result.added, result.relocated, result.written) == (0, 0, 0)
    assert result.unmodified == 1
    assert (result.links_created, result.links_replaced, result.links_removed) == (0, 0, 0)
    assert imported.lstat().st_ino == before.st_ino


# ---------------------------------------------------------------------------
# rebuild and sweep
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_rebuild_applies_catalog_edits(library: LibraryConfig, imported: Path) -> None:
    """Test an edited catalog record is relocated and relinked on rebuild."""
    catalog = Catalog.for_library(library)
    records = catalog.load()
    old_file = records[0].file
    records[0].fields["title"] = "A Study of Gadgets"
    catalog.save(records)

    result = rebuild_library(library)

    assert result.success, result.errors
    assert (result.relocated, result.written) == (1, 1)
    assert result.links_removed == 5
    assert not old_file.exists()
    assert not os.path.lexists(imported)

    [record] = catalog.load()
    new_link = library.root / "Years" / "2020" / "Smith_Study_Gadgets_2020.pdf"
    assert os.readlink(new_link) == str(record.file)
    assert record.key != "Smit2020-StdWdg"


@pytest.mark.unit
def test_rebuild_completes_interrupted_relocation(library: LibraryConfig, imported: Path) -> None:
    """Test a file moved by a run that stopped before saving the catalog is taken over."""
    catalog = Catalog.for_library(library)
    [record] = catalog.load()
    old_file = record.file
    record.fields["title"] = "A Study of Gadgets"
    catalog.save([record])

    # Where the stopped run had already put the file.
    record.key = generate_key(record)
    moved = LibraryPlacer(library).canonical_path(record)
    moved.parent.mkdir(parents=True, exist_ok=True)
    old_file.rename(moved)

    result = rebuild_library(library)

    assert result.success, result.errors
    assert (result.relocated, result.written) == (1, 1)
    assert moved.is_file()
    assert not os.path.lexists(imported)

    [saved] = catalog.load()
    assert saved.file == moved
    assert saved.key == record.key
    new_link = library.root / "Years" / "2020" / "Smith_Study_Gadgets_2020.pdf"
    assert os.readlink(new_link) == str(moved)


@pytest.mark.unit
def test_rebuild_after_import_with_irregular_spacing_is_a_no_op(
    library: LibraryConfig, make_pdf: Callable[..., Path]
) -> None:
    """Test values with stray whitespace fingerprint the same once read back."""
    record = BibRecord(
        type="article",
        key="smith",
        fields={"author": "Smith,  J.", "title": "A Study  of\nWidgets ", "year": "2020"},
    )
    record.file = make_pdf()
    assert import_records([record], library).success

    [saved] = Catalog.for_library(library).load()
    result = rebuild_library(library)

    assert result.success, result.errors
    assert (result.relocated, result.written, result.links_replaced) == (0, 0, 0)
    assert result.unmodified == 1
    assert saved.file.is_file()
    assert Catalog.for_library(library).load()[0].file == saved.file


@pytest.mark.unit
def test_rebuild_unchanged_library_is_a_no_op(library: LibraryConfig, imported: Path) -> None:
    """Test rebuilding a consistent library makes no change."""
    result = rebuild_library(library)

    assert result.success
    assert (result.keys_generated, result.relocated, result.written) == (0, 0, 0)
    assert result.unmodified == 1
    assert (result.links_swept, result.dirs_swept) == (0, 0)


@pytest.mark.unit
@pytest.mark.parametrize("operation", [rebuild_library, sweep, library_status, library_keywords])
def test_operations_require_library(tmp_path: Path, operation: Callable) -> None:
    """Test operations other than import refuse a missing library."""
    config = LibraryConfig(root=tmp_path / "nowhere", workers=1, audit=False)

    with pytest.raises(PreconditionError, match="library root does not exist"):
        operation(config)

    assert not config.root.exists()


@pytest.mark.unit
def test_sweep_removes_link_of_deleted_file(library: LibraryConfig, imported: Path) -> None:
    """Test deleting a stored file and sweeping clears its links."""
    Path(os.readlink(imported)).unlink()

    result = sweep(library)

    assert result.success
    assert result.links_swept == 5
    assert _symlinks(library.root) == []
    assert sorted(p.name for p in library.root.iterdir()) == [".bibshelf", "Files"]


# ---------------------------------------------------------------------------
# remove_pdf and replace_pdf
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_remove_pdf(library: LibraryConfig, imported: Path, tmp_path: Path) -> None:
    """Test removing moves the file out, drops the record and sweeps."""
    out = tmp_path / "out"
    out.mkdir()
    stored = Path(os.readlink(imported))
    content = stored.read_bytes()

    destination, record, result = remove_pdf(imported, library, out)

    assert destination == out / LEAF
    assert destination.read_bytes() == content
    assert record is not None and record.key == "Smit2020-StdWdg"
    assert not stored.exists()
    assert Catalog.for_library(library).load() == []
    assert result.success
    assert result.links_swept == 5
    assert _symlinks(library.root) == []


@pytest.mark.unit
def test_remove_pdf_defaults_to_home(
    library: LibraryConfig, imported: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test removed files go to the home directory by default."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))

    destination, _, _ = remove_pdf(imported, library)

    assert destination == home / LEAF
    assert destination.is_file()


@pytest.mark.unit
def test_remove_pdf_rejects_invalid_links(
    library: LibraryConfig, imported: Path, tmp_path: Path
) -> None:
    """Test only links of the link tree pointing into the store are accepted."""
    stored = Path(os.readlink(imported))
    outside = tmp_path / "outside.pdf"
    outside.symlink_to(stored)
    plain = library.root / "Years" / "2020" / "plain.pdf"
    plain.write_bytes(b"%PDF-1.4 plain")
    foreign = library.root / "Years" / "2020" / "foreign.pdf"
    foreign_target = tmp_path / "foreign-target.pdf"
    foreign_target.write_bytes(b"%PDF-1.4 foreign")
    foreign.symlink_to(foreign_target)

    cases = [
        (outside, "not in the library link tree"),
        (stored, "not in the library link tree"),
        (plain, "not a symbolic link"),
        (foreign, "does not point to a PDF file in the library"),
    ]
    for link, message in cases:
        with pytest.raises(PreconditionError, match=message):
            remove_pdf(link, library, tmp_path)

    assert stored.is_file()


@pytest.mark.unit
def test_remove_pdf_rejects_unusable_destination(
    library: LibraryConfig, imported: Path, tmp_path: Path
) -> None:
    """Test a missing output directory or an existing output file is refused."""
    with pytest.raises(PreconditionError, match="output directory does not exist"):
        remove_pdf(imported, library, tmp_path / "missing")

    (tmp_path / LEAF).write_bytes(b"taken")
    with pytest.raises(PreconditionError, match="output file already exists"):
        remove_pdf(imported, library, tmp_path)

    assert (tmp_path / LEAF).read_bytes() == b"taken"
    assert imported.exists()


@pytest.mark.unit
def test_replace_pdf(
    library: LibraryConfig, imported: Path, make_pdf: Callable[..., Path], tmp_path: Path
) -> None:
    """Test replacing keeps metadata and links, swapping the file content."""
    stored = Path(os.readlink(imported))
    old_content = stored.read_bytes()
    new_file = make_pdf("corrected.pdf", content="corrected version")
    out = tmp_path / "out"
    out.mkdir()

    destination, result = replace_pdf(imported, new_file, library, out)

    assert result.success, result.errors
    assert result.added == 1
    assert destination.read_bytes() == old_content
    assert b"corrected version" in stored.read_bytes()
    assert not new_file.exists()
    assert os.readlink(imported) == str(stored)
    [record] = Catalog.for_library(library).load()
    assert record.file == stored


@pytest.mark.unit
def test_replace_pdf_errors(library: LibraryConfig, imported: Path, tmp_path: Path) -> None:
    """Test a missing replacement or an uncatalogued file is refused."""
    with pytest.raises(PreconditionError, match="no such file or directory"):
        replace_pdf(imported, tmp_path / "missing.pdf", library, tmp_path)

    new_file = tmp_path / "new.pdf"
    new_file.write_bytes(b"%PDF-1.4 new")
    Catalog.for_library(library).save([])
    with pytest.raises(PreconditionError, match="file has no catalog record"):
        replace_pdf(imported, new_file, library, tmp_path)

    assert new_file.exists()
    assert imported.exists()


@pytest.mark.unit
def test_replace_pdf_requires_exactly_one_pdf(
    library: LibraryConfig, imported: Path, tmp_path: Path
) -> None:
    """Test a folder with several PDFs, or a file that is no PDF, is refused."""
    folder = tmp_path / "batch"
    folder.mkdir()
    (folder / "a.pdf").write_bytes(b"%PDF-1.4 a")
    (folder / "b.pdf").write_bytes(b"%PDF-1.4 b")
    notes = tmp_path / "notes.txt"
    notes.write_text("not a pdf", encoding="utf-8")

    for new_file in (folder, notes):
        with pytest.raises(PreconditionError, match="exactly one PDF file"):
            replace_pdf(imported, new_file, library, tmp_path)

    assert imported.exists()
    assert notes.exists()


@pytest.mark.unit
def test_replace_pdf_refuses_file_of_another_record(
    library: LibraryConfig,
    imported: Path,
    make_pdf: Callable[..., Path],
    write_bib: Callable[..., Path],
    tmp_path: Path,
) -> None:
    """Test a stored file cannot replace another record's file."""
    make_pdf("other.pdf")
    bib = write_bib("other.pdf", name="other.bib", key="jones", title="A Study of Gadgets")
    assert import_bibliography([bib], library).success
    catalog = Catalog.for_library(library)
    [other] = [r for r in catalog.load() if r.get("title") == "A Study of Gadgets"]

    with pytest.raises(PreconditionError, match="already belongs to the library"):
        replace_pdf(imported, other.file, library, tmp_path)

    assert len(catalog.load()) == 2
    assert other.file.is_file()
    assert imported.exists()


# ---------------------------------------------------------------------------
# status, export and keywords
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_library_status(library: LibraryConfig, imported: Path) -> None:
    """Test status counts records and finds missing and unreferenced files."""
    stray = library.store_dir / "0" / "stray.pdf"
    stray.parent.mkdir(exist_ok=True)
    stray.write_bytes(b"%PDF-1.4 stray")

    status = library_status(library)

    assert (status.records, status.modified, status.unmodified) == (1, 0, 1)
    assert status.missing_files == []
    assert status.unreferenced_files == [stray]

    stored = Path(os.readlink(imported))
    stored.unlink()
    assert library_status(library).missing_files == [stored]


@pytest.mark.unit
def test_export_catalog(library: LibraryConfig, imported: Path) -> None:
    """Test the catalog exports as BibTeX with a choice of file field handling."""
    kept = export_catalog(library)
    dropped = export_catalog(library, "drop")

    assert kept.startswith("@article{Smit2020-StdWdg,")
    assert "  file " in kept
    assert "fingerprint" in kept
    assert "  file " not in dropped
    assert "fingerprint" not in dropped
    assert "% file: " in export_catalog(library, "comment")


@pytest.mark.unit
def test_library_keywords(
    library: LibraryConfig,
    imported: Path,
    make_pdf: Callable[..., Path],
    write_bib: Callable[..., Path],
) -> None:
    """Test the keyword index covers the whole catalog."""
    make_pdf("other.pdf")
    bib = write_bib(
        "other.pdf", name="other.bib", title="Gravity Waves", keywords="physics: gravity"
    )
    import_bibliography([bib], library)

    assert library_keywords(library) == ["Physics", "Physics: Gravity", "Widgets"]
