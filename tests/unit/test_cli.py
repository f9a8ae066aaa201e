"""Tests for CLI module."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from bibshelf.cli.main import cli

LEAF = "Smith_Study_Widgets_2020.pdf"

BIB = """\
@article{smith,
  author = {Smith, J.},
  title = {A Study of Widgets},
  year = {2020},
  keywords = {physics: gravity},
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
def runner() -> CliRunner:
    """Provide Click test CLI runner."""
    return CliRunner()


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


@pytest.fixture
def imported(runner: CliRunner, bib_file: Path, root: Path) -> Path:
    """Import the sample record; returns the library root."""
    result = runner.invoke(cli, ["--root", str(root), "import", str(bib_file)])
    assert result.exit_code == 0, result.output
    return root


# ---------------------------------------------------------------------------
# Top-level CLI
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_cli_version_flag(runner: CliRunner) -> None:
    """Test --version flag outputs version string."""
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "bibshelf" in result.output


@pytest.mark.unit
def test_cli_help(runner: CliRunner) -> None:
    """Test --help output lists commands."""
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("import", "rebuild", "sweep", "remove", "replace", "export", "status"):
        assert command in result.output


@pytest.mark.unit
def test_cli_invalid_command(runner: CliRunner) -> None:
    """Test invalid command returns non-zero exit code."""
    result = runner.invoke(cli, ["invalid-command"])

    assert result.exit_code != 0


# ---------------------------------------------------------------------------
# import command
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_import_help(runner: CliRunner) -> None:
    """Test import command help."""
    result = runner.invoke(cli, ["import", "--help"])

    assert result.exit_code == 0
    assert "Import the PDFs named by the records of BIB_FILES" in result.output


@pytest.mark.unit
def test_import(runner: CliRunner, bib_file: Path, root: Path) -> None:
    """Test import files the PDF and reports what it did."""
    result = runner.invoke(cli, ["--root", str(root), "import", str(bib_file)])

    assert result.exit_code == 0, result.output
    assert "added 1 PDF file" in result.output
    assert "made 5 links" in result.output
    assert (root / "Years" / "2020" / LEAF).is_symlink()


@pytest.mark.unit
def test_import_again_skips_unmodified(runner: CliRunner, imported: Path) -> None:
    """Test importing the catalog again skips its records."""
    catalog = imported / ".bibshelf" / "library.bib"

    result = runner.invoke(cli, ["--root", str(imported), "import", str(catalog)])

    assert result.exit_code == 0, result.output
    assert "skipped 1 unmodified record" in result.output
    assert "added" not in result.output


@pytest.mark.unit
def test_import_verbose_flag(runner: CliRunner, bib_file: Path, root: Path) -> None:
    """Test verbose flag produces extra output."""
    result = runner.invoke(cli, ["--root", str(root), "import", str(bib_file), "--verbose"])

    assert result.exit_code == 0
    assert f"Importing into: {root.resolve()}" in result.output
    assert "Records: 1" in result.output
    assert "Run: " in result.output


@pytest.mark.unit
def test_import_nonexistent_file(runner: CliRunner, root: Path) -> None:
    """Test import with a nonexistent BibTeX file."""
    result = runner.invoke(cli, ["--root", str(root), "import", "nonexistent.bib"])

    assert result.exit_code != 0
    assert not root.exists()


@pytest.mark.unit
def test_import_failed_record_exits_non_zero(
    runner: CliRunner, tmp_path: Path, root: Path
) -> None:
    """Test a record whose PDF is missing is reported and fails the command."""
    bib = tmp_path / "missing.bib"
    bib.write_text(BIB, encoding="utf-8")

    result = runner.invoke(cli, ["--root", str(root), "import", str(bib)])

    assert result.exit_code == 1
    assert "file does not exist" in result.output


@pytest.mark.unit
def test_invalid_config_file(runner: CliRunner, bib_file: Path, tmp_path: Path) -> None:
    """Test an invalid configuration file is reported."""
    config = tmp_path / "config.json"
    config.write_text('{"workers": 0}', encoding="utf-8")

    result = runner.invoke(cli, ["--config", str(config), "import", str(bib_file)])

    assert result.exit_code == 1
    assert "Error: " in result.output
    assert "invalid configuration" in result.output


# ---------------------------------------------------------------------------
# maintenance commands
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_rebuild_missing_library(runner: CliRunner, root: Path) -> None:
    """Test rebuild of a missing library fails with an error message."""
    result = runner.invoke(cli, ["--root", str(root), "rebuild"])

    assert result.exit_code == 1
    assert "library root does not exist" in result.output


@pytest.mark.unit
def test_rebuild_and_sweep(runner: CliRunner, imported: Path) -> None:
    """Test rebuild and sweep succeed on a consistent library."""
    rebuilt = runner.invoke(cli, ["--root", str(imported), "rebuild"])
    swept = runner.invoke(cli, ["--root", str(imported), "sweep"])

    assert rebuilt.exit_code == 0, rebuilt.output
    assert "skipped 1 unmodified record" in rebuilt.output
    assert swept.exit_code == 0, swept.output
    assert "swept" not in swept.output


@pytest.mark.unit
def test_sweep_reports_counts(runner: CliRunner, imported: Path) -> None:
    """Test sweep reports the broken links and directories it removed."""
    for path in (imported / "Files").rglob("*.pdf"):
        path.unlink()

    result = runner.invoke(cli, ["--root", str(imported), "sweep"])

    assert result.exit_code == 0, result.output
    assert "swept 5 broken links and" in result.output


@pytest.mark.unit
def test_remove(runner: CliRunner, imported: Path, tmp_path: Path) -> None:
    """Test remove moves the PDF out of the library."""
    out = tmp_path / "out"
    out.mkdir()
    link = imported / "Years" / "2020" / LEAF

    result = runner.invoke(cli, ["--root", str(imported), "remove", str(link), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert f"removed PDF file to '{out / LEAF}'" in result.output
    assert (out / LEAF).is_file()


@pytest.mark.unit
def test_remove_rejects_non_link(runner: CliRunner, imported: Path, tmp_path: Path) -> None:
    """Test remove refuses a path outside the link tree."""
    result = runner.invoke(
        cli, ["--root", str(imported), "remove", str(tmp_path / "x.pdf"), "-o", str(tmp_path)]
    )

    assert result.exit_code == 1
    assert "not in the library link tree" in result.output


@pytest.mark.unit
def test_replace(runner: CliRunner, imported: Path, tmp_path: Path) -> None:
    """Test replace swaps the PDF behind a link."""
    new_file = tmp_path / "corrected.pdf"
    new_file.write_bytes(b"%PDF-1.4\ncorrected\n%%EOF\n")
    link = imported / "Years" / "2020" / LEAF

    result = runner.invoke(
        cli,
        ["--root", str(imported), "replace", str(link), str(new_file), "-o", str(tmp_path)],
    )

    assert result.exit_code == 0, result.output
    assert f"removed old PDF file to '{tmp_path / LEAF}'" in result.output
    assert link.read_bytes() == b"%PDF-1.4\ncorrected\n%%EOF\n"


# ---------------------------------------------------------------------------
# reporting commands
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_status(runner: CliRunner, imported: Path) -> None:
    """Test status prints catalog statistics."""
    result = runner.invoke(cli, ["--root", str(imported), "status"])

    assert result.exit_code == 0, result.output
    assert f"Library: {imported.resolve()}" in result.output
    assert "Records: 1" in result.output
    assert "Modified: 0" in result.output
    assert "Unmodified: 1" in result.output


@pytest.mark.unit
def test_keywords(runner: CliRunner, imported: Path) -> None:
    """Test keywords lists the keyword index."""
    result = runner.invoke(cli, ["--root", str(imported), "keywords"])

    assert result.exit_code == 0
    assert result.output.splitlines() == ["Physics", "Physics: Gravity"]


@pytest.mark.unit
def test_export_to_stdout(runner: CliRunner, imported: Path) -> None:
    """Test export writes the catalog to stdout."""
    result = runner.invoke(cli, ["--root", str(imported), "export", "--file-field", "drop"])

    assert result.exit_code == 0
    assert result.output.startswith("@article{Smit2020-StdWdg,")
    assert "fingerprint" not in result.output


@pytest.mark.unit
def test_export_to_file(runner: CliRunner, imported: Path, tmp_path: Path) -> None:
    """Test export writes the catalog to a file."""
    output = tmp_path / "all.bib"

    result = runner.invoke(cli, ["--root", str(imported), "export", "-o", str(output)])

    assert result.exit_code == 0
    assert "Wrote catalog to" in result.output
    assert output.read_text(encoding="utf-8").startswith("@article{Smit2020-StdWdg,")
