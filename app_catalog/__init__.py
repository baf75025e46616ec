"""
Catalog and release lifecycle engine for an application marketplace.

The package indexes chart packages contributed by external repositories,
tracks each package version through a review and publish workflow, and
manages the releases installed into tenant namespaces.

```python
from app_catalog.cache import RepoIndexCache, RepoWatcher
from app_catalog.config import CatalogConfig
from app_catalog.lifecycle import AppVersionLifecycle
from app_catalog.release import ReleaseManager
from app_catalog.resolve import AppVersionResolver
from app_catalog.store import InMemoryBlobStore, InMemoryCatalogStore

config = CatalogConfig()
store = InMemoryCatalogStore()
cache = RepoIndexCache()
watcher = RepoWatcher(store, cache)
watcher.start()

resolver = AppVersionResolver(cache, store, config)
lifecycle = AppVersionLifecycle(store, resolver, config)
releases = ReleaseManager(store, resolver, InMemoryBlobStore(), config)
```
"""

__all__ = [
    "app_version",
    "cache",
    "chart",
    "config",
    "exceptions",
    "index",
    "installer",
    "lifecycle",
    "manifest",
    "query",
    "release",
    "resolve",
    "store",
    "version",
    "views",
]
