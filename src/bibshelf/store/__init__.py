"""Library placement engine: normalizes where PDF files are stored."""

from bibshelf.store.models import PlacementOutcome, PlacementReport, PlacementStatus
from bibshelf.store.moves import move_file
from bibshelf.store.placement import LibraryPlacer

__all__ = [
    "LibraryPlacer",
    "PlacementOutcome",
    "PlacementReport",
    "PlacementStatus",
    "move_file",
]
