"""Management of releases, the installed instances of application versions.

A release is created from a version resolved through the index cache, or the
catalog store for versions uploaded to the built-in store. The release record
is the desired state: installing, upgrading and uninstalling the workloads is
left to the installer that reacts to the records, which also reports status
back by moving a release to `active` or `failed`.
"""

import copy
from dataclasses import dataclass
import logging
from typing import Any

from .config import CatalogConfig
from .exceptions import (
    ActionNotPermittedError,
    AlreadyExistsError,
    CatalogException,
    InvalidArgumentError,
    NotFoundError,
)
from .installer import Installer, parse_manifest
from .manifest import (
    APPLICATION_ID_LABEL,
    APPLICATION_VERSION_ID_LABEL,
    NAMESPACE_LABEL,
    RELEASE_ID_PREFIX,
    REPO_ID_LABEL,
    WORKSPACE_LABEL,
    ApplicationVersion,
    Release,
    ReleaseStatus,
    State,
    generate_id,
    shorten,
)
from .query import (
    APP_ID,
    DEFAULT_LIMIT,
    REPO_ID,
    VERSION_ID,
    Conditions,
    PageableResponse,
    paginate,
)
from .resolve import AppVersionResolver
from .store import BlobStore, CatalogStore, blob_key, create_merge_patch
from .views import AppVersionView, ReleaseView, to_view

__all__ = [
    "CreateReleaseRequest",
    "UpgradeReleaseRequest",
    "ModifyReleaseRequest",
    "ReleaseManager",
    "filter_releases",
    "sort_releases",
]

_LOGGER = logging.getLogger(__name__)

# Versions whose releases are listed for an application in the app store
_APP_STORE_STATES = frozenset({State.ACTIVE, State.SUSPENDED})

ORDER_BY_NAME = "name"
ORDER_BY_CREATE_TIME = "create_time"


@dataclass
class CreateReleaseRequest:
    """A request to install a version into a namespace."""

    name: str
    """The display name, unique within the namespace."""

    app_id: str
    version_id: str
    workspace: str | None = None
    values: str = ""
    description: str = ""
    operator: str = ""


@dataclass
class UpgradeReleaseRequest:
    """A request to move a release to another version."""

    release_id: str
    namespace: str
    app_id: str
    version_id: str

    values: str = ""
    """New configuration values, the previous values are kept when empty."""


@dataclass
class ModifyReleaseRequest:
    """A request to change the descriptive attributes of a release."""

    release_id: str
    description: str | None = None


def filter_releases(releases: list[Release], conditions: Conditions) -> list[Release]:
    """Return the releases matching the keyword and status conditions.

    The keyword matches the release name, chart version or app version. A
    release without a status is treated as `creating`.
    """
    keyword = conditions.keyword
    states = conditions.states
    result = []
    for release in releases:
        fields = (release.name, release.chart_version, release.chart_app_version)
        if keyword and not any(keyword in value.lower() for value in fields):
            continue
        if states and (release.status or ReleaseStatus.CREATING) not in states:
            continue
        result.append(release)
    return result


def sort_releases(
    releases: list[Release], order_by: str = "", reverse: bool = False
) -> list[Release]:
    """Return the releases newest first, or oldest first when reversed.

    By default releases are ordered by when they were last deployed, falling
    back to creation time, with the name as tie-break.
    """

    def key(release: Release) -> tuple[Any, ...]:
        if order_by == ORDER_BY_NAME:
            return (release.name, release.id)
        if order_by == ORDER_BY_CREATE_TIME:
            return (release.created, release.name)
        return (release.updated, release.name)

    return sorted(releases, key=key, reverse=not reverse)


class ReleaseManager:
    """Create, upgrade, list, describe and delete releases."""

    def __init__(
        self,
        store: CatalogStore,
        resolver: AppVersionResolver,
        blob_store: BlobStore,
        config: CatalogConfig,
        installer: Installer | None = None,
    ) -> None:
        """Initialize the ReleaseManager.

        Args:
            store: Store holding the release records.
            resolver: Resolves versions through the cache with store fallback.
            blob_store: Holds the chart packages of versions in the built-in store.
            config: App store naming and message length settings.
            installer: Optional source of rendered manifests for descriptions.
        """
        self._store = store
        self._resolver = resolver
        self._blob_store = blob_store
        self._config = config
        self._installer = installer

    async def _release_exists(self, namespace: str, name: str) -> bool:
        releases = await self._store.list(Release, {NAMESPACE_LABEL: namespace})
        return any(release.name == name for release in releases)

    async def create_release(
        self, namespace: str, request: CreateReleaseRequest
    ) -> Release:
        """Create a release of a version in the namespace.

        Raises:
            NotFoundError: If the version can't be resolved.
            AlreadyExistsError: If a release with the name exists in the namespace.
        """
        if not request.name:
            raise InvalidArgumentError("Release name must not be empty")
        version = await self._resolver.get_app_version(None, request.version_id)
        if await self._release_exists(namespace, request.name):
            raise AlreadyExistsError(
                f"Release {request.name} exists in namespace {namespace}"
            )

        release = Release(
            id=generate_id(RELEASE_ID_PREFIX),
            name=request.name,
            namespace=namespace,
            workspace=request.workspace,
            application_id=self._config.strip_app_store_suffix(request.app_id),
            application_version_id=request.version_id,
            repo_id=version.repo_id,
            chart_name=version.name,
            chart_version=version.version,
            chart_app_version=version.app_version,
            values=request.values,
            description=shorten(request.description, self._config.message_max_len),
            revision=1,
            status=ReleaseStatus.PENDING,
            creator=request.operator,
        )
        release = await self._store.create(release)
        _LOGGER.info(
            "Created release %s (%s) of %s in namespace %s",
            release.name,
            release.id,
            version.version_name,
            namespace,
        )
        return release

    async def upgrade_release(self, request: UpgradeReleaseRequest) -> Release:
        """Move an active release to another version.

        The release is left untouched unless it is active.

        Raises:
            NotFoundError: If the release or the version can't be found.
            ActionNotPermittedError: If the release is not active.
            ConflictError: If the release changed while being upgraded.
        """
        old = await self._store.get(Release, request.release_id)
        if old.status != ReleaseStatus.ACTIVE:
            raise ActionNotPermittedError(
                old.id, f"release is not active (status {old.status})"
            )
        version = await self._resolver.get_app_version(None, request.version_id)

        new = copy.deepcopy(old)
        new.application_id = self._config.strip_app_store_suffix(
            request.app_id or version.application_id
        )
        new.application_version_id = request.version_id
        new.revision += 1
        new.repo_id = version.repo_id
        new.chart_name = version.name
        new.chart_version = version.version
        new.chart_app_version = version.app_version
        if request.values:
            new.values = request.values

        patch = create_merge_patch(old.to_dict(), new.to_dict())
        release = await self._store.patch(
            Release, old.id, patch, resource_version=old.resource_version
        )
        _LOGGER.info(
            "Upgraded release %s to %s, revision %d",
            release.id,
            version.version_name,
            release.revision,
        )
        return release

    async def modify_release(self, request: ModifyReleaseRequest) -> Release | None:
        """Update the description of a release.

        An empty description leaves the release unchanged and returns None.
        """
        if not request.description or not request.description.strip():
            return None
        release = await self._store.get(Release, request.release_id)
        description = shorten(
            request.description.strip(), self._config.message_max_len
        )
        return await self._store.patch(
            Release,
            release.id,
            {"description": description},
            resource_version=release.resource_version,
        )

    async def _app_store_version_ids(self, app_id: str) -> set[str]:
        versions = await self._resolver.list_app_versions(app_id)
        return {v.id for v in versions if v.state in _APP_STORE_STATES}

    async def _version_view(
        self, release: Release, tolerate: bool
    ) -> AppVersionView | None:
        try:
            version = await self._resolver.get_app_version(
                release.repo_id, release.application_version_id
            )
        except CatalogException as err:
            if not tolerate:
                raise
            _LOGGER.warning(
                "Unable to resolve version %s of release %s: %s",
                release.application_version_id,
                release.id,
                err,
            )
            return None
        return to_view(version)

    async def list_releases(
        self,
        workspace: str | None = None,
        namespace: str | None = None,
        conditions: Conditions | None = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        order_by: str = "",
        reverse: bool = False,
    ) -> PageableResponse[ReleaseView]:
        """List releases matching the conditions, decorated with their version.

        Listing the releases of an application's app-store copy only returns
        releases of versions that are active or suspended, and a version that
        can't be resolved leaves its release undecorated. For any other query
        a version that can't be resolved fails the listing.
        """
        conditions = conditions or Conditions()
        app_id = conditions.get(APP_ID)
        version_id = conditions.get(VERSION_ID)
        selector: dict[str, str] = {}
        if app_id:
            selector[APPLICATION_ID_LABEL] = self._config.strip_app_store_suffix(
                app_id
            )
        if version_id:
            selector[APPLICATION_VERSION_ID_LABEL] = version_id
        if repo_id := conditions.get(REPO_ID):
            selector[REPO_ID_LABEL] = repo_id
        if workspace:
            selector[WORKSPACE_LABEL] = workspace
        if namespace:
            selector[NAMESPACE_LABEL] = namespace

        releases = filter_releases(
            await self._store.list(Release, selector), conditions
        )
        app_store_query = (
            not version_id
            and app_id.endswith(self._config.app_store_suffix)
            and app_id != self._config.app_store_suffix
        )
        if app_store_query:
            version_ids = await self._app_store_version_ids(
                selector[APPLICATION_ID_LABEL]
            )
            releases = [
                release
                for release in releases
                if release.application_version_id in version_ids
            ]

        releases = sort_releases(releases, order_by, reverse)
        items = []
        for release in paginate(releases, limit, offset):
            view = to_view(release)
            view.version = await self._version_view(release, tolerate=app_store_query)
            items.append(view)
        return PageableResponse(items=items, total_count=len(releases))

    async def _get_release(self, namespace: str, release_id: str) -> Release:
        release = await self._store.get(Release, release_id)
        if release.namespace != namespace:
            raise NotFoundError(
                f"Release {release_id} not found in namespace {namespace}"
            )
        return release

    async def describe_release(self, namespace: str, release_id: str) -> ReleaseView:
        """Return a release decorated with its version and rendered resources.

        Failing to read the rendered manifest is logged and the description is
        returned without resources.
        """
        release = await self._get_release(namespace, release_id)
        view = to_view(release)
        view.version = await self._version_view(release, tolerate=False)
        if self._installer is not None:
            view.resources = await self._resources(self._installer, release)
        return view

    async def _resources(
        self, installer: Installer, release: Release
    ) -> list[dict[str, Any]]:
        try:
            manifest = await installer.manifest(release.namespace, release.name)
            return parse_manifest(manifest)
        except CatalogException as err:
            _LOGGER.error(
                "Unable to read manifest of release %s/%s: %s",
                release.namespace,
                release.name,
                err,
            )
            return []

    async def delete_release(self, namespace: str, release_id: str) -> None:
        """Delete the release record unless it is absent from the namespace."""
        try:
            release = await self._get_release(namespace, release_id)
            await self._store.delete(Release, release.id)
        except NotFoundError:
            _LOGGER.debug("Release %s/%s not found", namespace, release_id)
            return
        _LOGGER.info("Deleted release %s/%s", namespace, release_id)

    async def load_chart(self, release: Release) -> bytes:
        """Return the chart package of the release's version.

        Only charts of versions uploaded to the built-in store are held in the
        blob store.

        Raises:
            InvalidArgumentError: If the release is sourced from an external repo.
            NotFoundError: If the version or its package can't be found.
        """
        if not self._config.is_app_store_repo(release.repo_id):
            raise InvalidArgumentError(
                f"Chart of release {release.id} is served by repo {release.repo_id}"
            )
        version: ApplicationVersion = await self._resolver.get_app_version(
            release.repo_id, release.application_version_id
        )
        return await self._blob_store.get(
            version.data_key or blob_key(version.workspace, version.id)
        )
