"""In-memory index of the applications and versions published by Repos.

The cache is fed by a `RepoWatcher` that applies Repo events from the catalog
store in arrival order, and is read concurrently by request handling code.
"""

from .cache import RepoIndexCache
from .lock import ReadWriteLock
from .watcher import RepoWatcher

__all__ = ["RepoIndexCache", "ReadWriteLock", "RepoWatcher"]
