"""Background task feeding Repo events from the catalog store into the cache."""

import asyncio
import logging

from app_catalog.manifest import Repo
from app_catalog.store import CatalogStore, StoreEvent, WatchEvent

from .cache import RepoIndexCache

_LOGGER = logging.getLogger(__name__)

__all__ = ["RepoWatcher"]


class RepoWatcher:
    """Applies Repo add/update/delete events to a RepoIndexCache.

    Events are applied one at a time in the order the store delivers them. A
    failure handling one event is logged and does not stop the watch.
    """

    def __init__(self, store: CatalogStore, cache: RepoIndexCache) -> None:
        """Initialize the RepoWatcher.

        Args:
            store: The catalog store to watch for Repo changes.
            cache: The cache receiving the changes.
        """
        self._store = store
        self._cache = cache
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Return True while the background task is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        """Start watching in a background task."""
        if self.running:
            raise RuntimeError("RepoWatcher is already running")
        self._task = asyncio.create_task(self.run(), name="repo-watcher")
        return self._task

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if (task := self._task) is None:
            return
        self._task = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run(self) -> None:
        """Apply Repo events until cancelled."""
        _LOGGER.debug("Watching repos")
        async for event in self._store.watch(Repo):
            self.apply(event)

    def apply(self, event: WatchEvent[Repo]) -> None:
        """Apply a single Repo event to the cache."""
        repo = event.object
        _LOGGER.debug("Repo %s %s", repo.id, event.event.value)
        try:
            if event.event == StoreEvent.ADDED:
                self._cache.on_repo_added(repo)
            elif event.event == StoreEvent.UPDATED:
                self._cache.on_repo_updated(repo)
            elif event.event == StoreEvent.DELETED:
                self._cache.on_repo_deleted(repo)
        except Exception:
            _LOGGER.exception(
                "Failed to apply %s event for repo %s", event.event, repo.id
            )
