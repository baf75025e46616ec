"""Module for the Repo index cache."""

import copy
import logging

from app_catalog.exceptions import SnapshotDecodeError
from app_catalog.index import RepoContribution, decode_repo
from app_catalog.manifest import Application, ApplicationVersion, Repo

from .lock import ReadWriteLock

_LOGGER = logging.getLogger(__name__)

__all__ = ["RepoIndexCache"]


class RepoIndexCache:
    """Lookup tables of the Applications and versions published by Repos.

    Each Repo event replaces the Repo's whole contribution under the write lock
    so readers never observe a partially applied snapshot. Lookups return
    copies and report a miss with None so that callers can fall back to the
    catalog store.
    """

    def __init__(self) -> None:
        """Initialize the RepoIndexCache."""
        self._lock = ReadWriteLock()
        self._repos: dict[str, Repo] = {}
        self._applications: dict[str, Application] = {}
        self._versions: dict[str, ApplicationVersion] = {}
        self._application_versions: dict[str, set[str]] = {}
        # Ids contributed by each Repo, removed wholesale on the next event
        self._contributions: dict[str, tuple[set[str], set[str]]] = {}

    def on_repo_added(self, repo: Repo) -> None:
        """Index the snapshot of a new Repo."""
        self._replace(repo)

    def on_repo_updated(self, repo: Repo) -> None:
        """Replace the Repo's previous contribution with its new snapshot."""
        self._replace(repo)

    def on_repo_deleted(self, repo: Repo) -> None:
        """Remove the Repo and everything its last snapshot contributed."""
        app_ids: set[str] = set()
        version_ids: set[str] = set()
        try:
            contribution = decode_repo(repo)
        except SnapshotDecodeError as err:
            _LOGGER.warning("Unable to decode deleted repo %s: %s", repo.id, err)
        else:
            app_ids = contribution.application_ids
            version_ids = contribution.version_ids
        with self._lock.write():
            prev_apps, prev_versions = self._contributions.pop(repo.id, (set(), set()))
            self._remove(app_ids | prev_apps, version_ids | prev_versions)
            self._repos.pop(repo.id, None)
        _LOGGER.debug("Removed repo %s from index cache", repo.id)

    def _replace(self, repo: Repo) -> None:
        try:
            contribution = decode_repo(repo)
        except SnapshotDecodeError as err:
            _LOGGER.error("Keeping previous index of repo %s: %s", repo.id, err)
            return
        with self._lock.write():
            if (previous := self._contributions.pop(repo.id, None)) is not None:
                self._remove(*previous)
            self._insert(contribution)
            self._repos[repo.id] = repo
        _LOGGER.debug(
            "Indexed repo %s: %d applications, %d versions",
            repo.id,
            len(contribution.applications),
            len(contribution.versions),
        )

    def _insert(self, contribution: RepoContribution) -> None:
        for app in contribution.applications:
            self._applications[app.id] = app
            self._application_versions.setdefault(app.id, set())
        for version in contribution.versions:
            self._versions[version.id] = version
            self._application_versions.setdefault(version.application_id, set()).add(
                version.id
            )
        self._contributions[contribution.repo.id] = (
            contribution.application_ids,
            contribution.version_ids,
        )

    def _remove(self, app_ids: set[str], version_ids: set[str]) -> None:
        for version_id in version_ids:
            if (version := self._versions.pop(version_id, None)) is None:
                continue
            ids = self._application_versions.get(version.application_id)
            if ids is not None:
                ids.discard(version_id)
        for app_id in app_ids:
            self._applications.pop(app_id, None)
            self._application_versions.pop(app_id, None)

    def get_repo(self, repo_id: str) -> Repo | None:
        """Return the Repo, or None if it is not indexed."""
        with self._lock.read():
            repo = self._repos.get(repo_id)
            return copy.deepcopy(repo)

    def get_application(self, app_id: str) -> Application | None:
        """Return the Application, or None if it is not indexed."""
        with self._lock.read():
            return copy.deepcopy(self._applications.get(app_id))

    def get_application_version(self, version_id: str) -> ApplicationVersion | None:
        """Return the version, or None if it is not indexed."""
        with self._lock.read():
            return copy.deepcopy(self._versions.get(version_id))

    def list_application_versions(
        self, app_id: str
    ) -> list[ApplicationVersion] | None:
        """Return the versions of an Application, or None if it is not indexed."""
        with self._lock.read():
            if (ids := self._application_versions.get(app_id)) is None:
                return None
            return [copy.deepcopy(self._versions[version_id]) for version_id in ids]

    def list_applications(self, repo_id: str | None = None) -> list[Application]:
        """Return the indexed Applications, optionally of a single Repo."""
        with self._lock.read():
            return [
                copy.deepcopy(app)
                for app in self._applications.values()
                if repo_id is None or app.repo_id == repo_id
            ]
