"""Exception taxonomy and per-record error reports.

Batch operations never stop at the first failing record. They catch the
exceptions below, turn them into ``RecordError`` values and carry on;
callers inspect the collected errors at the end of the batch.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

__all__ = [
    "LibraryError",
    "PreconditionError",
    "PlacementError",
    "StoreCollisionError",
    "LinkError",
    "LinkCollisionError",
    "ParseError",
    "ConfigError",
    "RecordError",
]


class LibraryError(Exception):
    """Base class for bibshelf errors.

    Attributes
    ----------
    key : str | None
        Citation key of the record involved, if any.
    path : str | None
        Filesystem path involved, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        path: Path | str | None = None,
    ) -> None:
        """Initialize library error.

        Parameters
        ----------
        message : str
            Error message.
        key : str | None, optional
            Citation key of the record involved.
        path : Path | str | None, optional
            Filesystem path involved.
        """
        super().__init__(message)
        self.key = key
        self.path = str(path) if path is not None else None


class PreconditionError(LibraryError):
    """A record or input does not satisfy the operation's preconditions."""


class PlacementError(LibraryError):
    """A file could not be moved into the canonical store."""


class StoreCollisionError(PlacementError):
    """A canonical store path is already taken by a different file."""


class LinkError(LibraryError):
    """A link in the link tree could not be created, replaced or removed."""


class LinkCollisionError(LinkError):
    """A link path is already occupied by something that is not ours."""


class ParseError(LibraryError):
    """BibTeX input could not be parsed."""


class ConfigError(LibraryError):
    """Library configuration is invalid."""


@dataclass(frozen=True)
class RecordError:
    """Failure of one record within a batch operation.

    Attributes
    ----------
    key : str | None
        Citation key of the failing record (None for library-wide errors).
    path : str | None
        Path involved in the failure.
    stage : str
        Pipeline stage that failed (e.g., "place", "link").
    exception_class : str
        Name of the exception class.
    message : str
        Error message.
    exception : Exception
        Original exception, kept for audit logging.
    """

    key: str | None
    path: str | None
    stage: str
    exception_class: str
    message: str
    exception: Exception = field(repr=False, compare=False)

    @classmethod
    def from_exception(
        cls,
        exception: Exception,
        *,
        stage: str,
        key: str | None = None,
        path: Path | str | None = None,
    ) -> "RecordError":
        """Build a record error from a caught exception.

        ``key`` and ``path`` default to the attributes of a
        ``LibraryError``, or the ``filename`` of an ``OSError``.
        """
        if isinstance(exception, LibraryError):
            key = key if key is not None else exception.key
            path = path if path is not None else exception.path
        elif isinstance(exception, OSError) and path is None:
            path = exception.filename

        return cls(
            key=key,
            path=str(path) if path is not None else None,
            stage=stage,
            exception_class=type(exception).__name__,
            message=str(exception),
            exception=exception,
        )

    def __str__(self) -> str:
        parts = [part for part in (self.key, self.path) if part]
        parts.append(self.message)
        return ": ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (without the exception object)."""
        return {
            "key": self.key,
            "path": self.path,
            "stage": self.stage,
            "exception_class": self.exception_class,
            "message": self.message,
        }
