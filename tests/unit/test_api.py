"""Tests for the public API module."""

import json
import os
from pathlib import Path

import pytest

from bibshelf import (
    BibRecord,
    LibraryConfig,
    ParseError,
    import_bib,
    open_library,
    read_bibtex,
    rebuild,
    remove,
    replace,
    sweep_links,
)
from bibshelf.api import run_context
from bibshelf.errors import ConfigError, PreconditionError

LEAF = "Smith_Study_Widgets_2020.pdf"

BIB = """\
@article{smith,
  author = {Smith, J.},
  title = {A Study of Widgets},
  year = {2020},
  file = {paper.pdf},
}
"""


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's configuration and home directory out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("BIBSHELF_CONFIG", raising=False)


@pytest.fixture
def bib_file(tmp_path: Path) -> Path:
    """BibTeX file next to the PDF it names."""
    folder = tmp_path / "incoming"
    folder.mkdir()
    (folder / "paper.pdf").write_bytes(b"%PDF-1.4\nwidgets\n%%EOF\n")
    path = folder / "refs.bib"
    path.write_text(BIB, encoding="utf-8")
    return path


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Library root (not created)."""
    return tmp_path / "library"


def _runs(root: Path) -> list[Path]:
    runs_dir = root / ".bibshelf" / "runs"
    return sorted(runs_dir.iterdir()) if runs_dir.is_dir() else []


def _manifest(run_dir: Path) -> dict:
    return json.loads((run_dir / "run.json").read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# open_library and run_context
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_open_library_with_root(root: Path) -> None:
    """Test open_library returns a configuration for the given root."""
    config = open_library(root, workers=3)

    assert isinstance(config, LibraryConfig)
    assert config.root == root.resolve()
    assert config.workers == 3


@pytest.mark.unit
def test_open_library_missing_config_file(tmp_path: Path) -> None:
    """Test an explicit configuration file must exist."""
    with pytest.raises(ConfigError):
        open_library(config_path=tmp_path / "missing.json")


@pytest.mark.unit
def test_run_context_skips_missing_library(root: Path) -> None:
    """Test no audit run is started for a library that does not exist."""
    with run_context(open_library(root)) as run:
        assert run is None

    assert not root.exists()


@pytest.mark.unit
def test_run_context_skips_unaudited_library(root: Path) -> None:
    """Test audit=False disables the run directory."""
    with run_context(open_library(root, audit=False), create=True) as run:
        assert run is None

    assert root.is_dir()
    assert _runs(root) == []


@pytest.mark.unit
def test_run_context_creates_run(root: Path) -> None:
    """Test an audited run writes its manifest on exit."""
    with run_context(open_library(root), {"operation": "test"}, create=True) as run:
        assert run is not None
        run_id = run.run_id

    [run_dir] = _runs(root)
    assert run_dir.name == run_id
    manifest = _manifest(run_dir)
    assert manifest["status"] == "success"
    assert manifest["parameters"]["operation"] == "test"
    assert manifest["parameters"]["root"] == str(root.resolve())


# ---------------------------------------------------------------------------
# read_bibtex
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_read_bibtex(bib_file: Path) -> None:
    """Test read_bibtex returns BibRecord objects."""
    records = read_bibtex(bib_file)

    assert len(records) == 1
    assert isinstance(records[0], BibRecord)
    assert records[0].key == "smith"
    assert records[0].file == Path("paper.pdf")


@pytest.mark.unit
def test_read_bibtex_strict_mode(tmp_path: Path) -> None:
    """Test strict mode raises ParseError on malformed input."""
    path = tmp_path / "bad.bib"
    path.write_text(BIB + "@misc{broken,\n  title = {Never closed},\n", encoding="utf-8")

    with pytest.raises(ParseError, match="Failed to parse bad.bib"):
        read_bibtex(path)


@pytest.mark.unit
def test_read_bibtex_non_strict_mode(tmp_path: Path) -> None:
    """Test non-strict mode returns the readable records."""
    path = tmp_path / "bad.bib"
    path.write_text(BIB + "@misc{broken,\n  title = {Never closed},\n", encoding="utf-8")

    records = read_bibtex(path, strict=False)

    assert [r.key for r in records] == ["smith"]


@pytest.mark.unit
def test_read_bibtex_nonexistent_raises_error(tmp_path: Path) -> None:
    """Test read_bibtex raises ParseError for a nonexistent file."""
    with pytest.raises(ParseError, match="could not read"):
        read_bibtex(tmp_path / "missing.bib")


# ---------------------------------------------------------------------------
# import_bib, rebuild and sweep_links
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_import_bib_creates_audited_library(bib_file: Path, root: Path) -> None:
    """Test import_bib creates the library and records the run."""
    result = import_bib(str(bib_file), root=root)

    assert result.success, result.errors
    assert result.added == 1
    assert (root / "Authors" / "Smith" / LEAF).is_symlink()

    [run_dir] = _runs(root)
    assert result.run_id == run_dir.name
    manifest = _manifest(run_dir)
    assert manifest["parameters"]["bib_files"] == [str(bib_file)]
    assert manifest["stages"][0]["name"] == "parse"


@pytest.mark.unit
def test_import_bib_without_key_generation(bib_file: Path, root: Path) -> None:
    """Test generate_keys=False keeps the citation keys."""
    result = import_bib([bib_file], root=root, generate_keys=False)

    assert result.keys_generated == 0
    assert "@article{smith," in (root / ".bibshelf" / "library.bib").read_text(encoding="utf-8")


@pytest.mark.unit
def test_rebuild_and_sweep_links(bib_file: Path, root: Path) -> None:
    """Test rebuild and sweep_links on a consistent library change nothing."""
    import_bib(bib_file, root=root)

    rebuilt = rebuild(root=root)
    swept = sweep_links(root=root)

    assert rebuilt.success
    assert (rebuilt.added, rebuilt.relocated, rebuilt.unmodified) == (0, 0, 1)
    assert swept.success
    assert (swept.links_swept, swept.dirs_swept) == (0, 0)
    assert len(_runs(root)) == 3


@pytest.mark.unit
def test_rebuild_missing_library_raises(root: Path) -> None:
    """Test rebuild refuses a library that does not exist."""
    with pytest.raises(PreconditionError):
        rebuild(root=root)

    assert not root.exists()


# ---------------------------------------------------------------------------
# remove and replace
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_remove(bib_file: Path, root: Path, tmp_path: Path) -> None:
    """Test remove moves the PDF to the home directory by default."""
    import_bib(bib_file, root=root)

    destination, result = remove(root / "Years" / "2020" / LEAF, root=root)

    assert destination == tmp_path / "home" / LEAF
    assert destination.read_bytes() == b"%PDF-1.4\nwidgets\n%%EOF\n"
    assert result.success
    assert not os.path.lexists(root / "Years" / "2020" / LEAF)


@pytest.mark.unit
def test_replace(bib_file: Path, root: Path, tmp_path: Path) -> None:
    """Test replace swaps the PDF behind a link."""
    import_bib(bib_file, root=root)
    link = root / "Years" / "2020" / LEAF
    new_file = tmp_path / "corrected.pdf"
    new_file.write_bytes(b"%PDF-1.4\ncorrected\n%%EOF\n")
    out = tmp_path / "old"
    out.mkdir()

    destination, result = replace(link, new_file, output_dir=out, root=root)

    assert result.success, result.errors
    assert destination == out / LEAF
    assert destination.read_bytes() == b"%PDF-1.4\nwidgets\n%%EOF\n"
    assert link.read_bytes() == b"%PDF-1.4\ncorrected\n%%EOF\n"
