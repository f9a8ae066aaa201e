"""Shared data types for bibshelf.

This package contains the record model and the fingerprint function
consumed across the library pipeline.

Component-specific types live closer to their consumers:
- Audit types → bibshelf.audit.models
- Placement results → bibshelf.store.models
- Link plans and reports → bibshelf.links.models
"""

from bibshelf.models.identifiers import calculate_fingerprint, validate_fingerprint_format
from bibshelf.models.records import (
    ENTRY_TYPES,
    FILE_FIELD,
    FINGERPRINT_FIELD,
    BibFields,
    BibRecord,
    LinkSpec,
)

__all__ = [
    # Record models
    "BibFields",
    "BibRecord",
    "LinkSpec",
    "ENTRY_TYPES",
    "FILE_FIELD",
    "FINGERPRINT_FIELD",
    # Identifiers
    "calculate_fingerprint",
    "validate_fingerprint_format",
]
