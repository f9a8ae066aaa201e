"""Pytest configuration and fixtures for test suite."""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Add src directory to path for imports
SRC_PATH = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_PATH))

from bibshelf.config import LibraryConfig  # noqa: E402
from bibshelf.models import BibRecord  # noqa: E402

_DEFAULT_FIELDS = {
    "author": "Smith, J.",
    "title": "A Study of Widgets",
    "year": "2020",
}


@pytest.fixture
def make_record() -> Callable[..., BibRecord]:
    """Factory for test records with minimal boilerplate.

    Without field arguments the record is the Smith 2020 widgets article.
    Passing ``None`` for a field removes it.
    """

    def _factory(
        key: str = "Smit2020-StdWdg",
        entry_type: str = "article",
        *,
        file: Path | str | None = None,
        **fields: str | None,
    ) -> BibRecord:
        values = {**_DEFAULT_FIELDS, **fields}
        record = BibRecord(
            type=entry_type,
            key=key,
            fields={name: value for name, value in values.items() if value is not None},
        )
        if file is not None:
            record.file = file
        return record

    return _factory


@pytest.fixture
def make_pdf(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing small PDF files under ``tmp_path/incoming``."""

    def _factory(name: str = "paper.pdf", content: str | None = None) -> Path:
        path = tmp_path / "incoming" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"%PDF-1.4\n" + (content or name).encode("utf-8") + b"\n%%EOF\n")
        return path

    return _factory


@pytest.fixture
def library(tmp_path: Path) -> LibraryConfig:
    """Configuration of an unaudited library under ``tmp_path/library``."""
    return LibraryConfig(root=tmp_path / "library", workers=2, audit=False)


@pytest.fixture
def audited_library(tmp_path: Path) -> LibraryConfig:
    """Configuration of an audited library under ``tmp_path/library``."""
    return LibraryConfig(root=tmp_path / "library", workers=2, audit=True)
