"""
The store module provides the persistence boundary of the catalog.

- `CatalogStore` is the authoritative store of Repo, Application,
  ApplicationVersion and Release records with a per-kind event stream.
- `BlobStore` holds chart package payloads keyed by workspace and version id.

The abstract interfaces allow for various implementations (in-memory, remote
API server, object storage, etc.).
"""

from .store import CatalogStore, StoreEvent, WatchEvent, match_labels
from .in_memory import InMemoryCatalogStore
from .blob import BlobStore, InMemoryBlobStore, LocalBlobStore, blob_key
from .patch import create_merge_patch, apply_merge_patch

__all__ = [
    "CatalogStore",
    "StoreEvent",
    "WatchEvent",
    "match_labels",
    "InMemoryCatalogStore",
    "BlobStore",
    "InMemoryBlobStore",
    "LocalBlobStore",
    "blob_key",
    "create_merge_patch",
    "apply_merge_patch",
]
