"""Library synchronization engine.

This package provides the pipeline that files records into a library,
the maintenance operations built on it, and their result types.
"""

from bibshelf.engine.operations import (
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
from bibshelf.engine.results import LibraryStatus, PipelineResult
from bibshelf.engine.runner import run_pipeline, sweep_library

__all__ = [
    "LibraryStatus",
    "PipelineResult",
    "export_catalog",
    "find_pdf_files",
    "import_bibliography",
    "import_records",
    "library_keywords",
    "library_status",
    "rebuild_library",
    "remove_pdf",
    "replace_pdf",
    "run_pipeline",
    "sweep",
    "sweep_library",
]
