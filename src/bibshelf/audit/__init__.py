"""Audit logging and run manifest subsystem for bibshelf.

Main Components
---------------
- RunContext: High-level context manager for library runs
- AuditLogger: JSONL event logger
- ManifestWriter: Run manifest builder
"""

from bibshelf.audit.context import RunContext
from bibshelf.audit.helpers import generate_run_id
from bibshelf.audit.logger import AuditLogger
from bibshelf.audit.manifest import ManifestWriter

__all__ = [
    "RunContext",
    "AuditLogger",
    "ManifestWriter",
    "generate_run_id",
]
