"""Link tree synchronizer: browsable symbolic-link views of the store."""

from bibshelf.links.derive import derive_link_specs, keyword_index, make_link_name, split_keywords
from bibshelf.links.models import LinkPlan, SyncReport
from bibshelf.links.normalize import LINK_SUFFIX, link_path, normalize_segment
from bibshelf.links.snapshot import LinkSnapshot, walk_library
from bibshelf.links.sync import LinkSynchronizer

__all__ = [
    "LINK_SUFFIX",
    "LinkPlan",
    "LinkSnapshot",
    "LinkSynchronizer",
    "SyncReport",
    "derive_link_specs",
    "keyword_index",
    "link_path",
    "make_link_name",
    "normalize_segment",
    "split_keywords",
    "walk_library",
]
