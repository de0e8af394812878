"""Library maintenance built on the entity store.

Provides:
- CascadeDeleter for folder, track and session removal
- LocalFileIngestor for importing audio and caption files
- Subscription list import
"""

from .cascade import CascadeDeleter, DeletionPlan
from .ingest import IngestFile, IngestResult, LocalFileIngestor, resolve_duplicate_name
from .subscriptions import import_subscription_list

__all__ = [
    "CascadeDeleter",
    "DeletionPlan",
    "IngestFile",
    "IngestResult",
    "LocalFileIngestor",
    "import_subscription_list",
    "resolve_duplicate_name",
]
