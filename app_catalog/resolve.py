"""Lookups that consult the index cache first and fall back to the store."""

import logging

from .cache import RepoIndexCache
from .config import CatalogConfig
from .exceptions import NotFoundError
from .manifest import APPLICATION_ID_LABEL, Application, ApplicationVersion
from .store import CatalogStore

_LOGGER = logging.getLogger(__name__)

__all__ = ["AppVersionResolver"]


class AppVersionResolver:
    """Resolves applications and versions through the cache with store fallback.

    Repos other than the built-in store are only ever indexed in the cache, so
    a cache miss for content of such a Repo is reported as not found without
    a store read.
    """

    def __init__(
        self, cache: RepoIndexCache, store: CatalogStore, config: CatalogConfig
    ) -> None:
        self._cache = cache
        self._store = store
        self._config = config

    async def get_app_version(
        self, repo_id: str | None, version_id: str
    ) -> ApplicationVersion:
        """Return the version, raising NotFoundError if it can't be resolved."""
        if (version := self._cache.get_application_version(version_id)) is not None:
            return version
        if not self._config.is_app_store_repo(repo_id):
            raise NotFoundError(
                f"ApplicationVersion {version_id} not found in repo {repo_id}"
            )
        _LOGGER.debug("ApplicationVersion %s not cached, reading store", version_id)
        return await self._store.get(ApplicationVersion, version_id)

    async def get_application(self, app_id: str) -> Application:
        """Return the application, raising NotFoundError if it can't be resolved."""
        if (app := self._cache.get_application(app_id)) is not None:
            return app
        return await self._store.get(Application, app_id)

    async def list_app_versions(self, app_id: str) -> list[ApplicationVersion]:
        """Return the versions of an application."""
        if (versions := self._cache.list_application_versions(app_id)) is not None:
            return versions
        return await self._store.list(
            ApplicationVersion, {APPLICATION_ID_LABEL: app_id}
        )
