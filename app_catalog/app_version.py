"""Operations on the application versions uploaded to the built-in store."""

import copy
from dataclasses import dataclass
import logging
from .chart import ChartParser
from .config import CatalogConfig
from .exceptions import (
    ActionNotPermittedError,
    AlreadyExistsError,
    CatalogException,
    InvalidArgumentError,
    NotFoundError,
)
from .manifest import (
    APPLICATION_ID_LABEL,
    APPLICATION_VERSION_ID_PREFIX,
    Application,
    ApplicationVersion,
    Audit,
    State,
    generate_id,
    now,
    shorten,
)
from .query import (
    APP_ID,
    DEFAULT_LIMIT,
    VERSION_ID,
    Conditions,
    PageableResponse,
    paginate,
)
from .resolve import AppVersionResolver
from .store import BlobStore, CatalogStore, blob_key, create_merge_patch
from .version import parse_version_name, version_sort_key
from .views import AppVersionView, AuditView, ReviewView, to_view

__all__ = [
    "CreateAppVersionRequest",
    "ModifyAppVersionRequest",
    "AppVersionOperator",
    "filter_app_versions",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class CreateAppVersionRequest:
    """A request to upload a chart package as a new version of an application."""

    app_id: str
    package: bytes
    """The gzipped tarball of the chart."""

    operator: str = ""


@dataclass
class ModifyAppVersionRequest:
    """A request to change the descriptive attributes of a version."""

    name: str | None = None
    """The version name in the form `<version> [<app version>]`."""

    description: str | None = None


def filter_app_versions(
    versions: list[ApplicationVersion], conditions: Conditions
) -> list[ApplicationVersion]:
    """Return the versions matching the keyword and status conditions.

    The keyword matches the version or the app version.
    """
    keyword = conditions.keyword
    states = conditions.states
    result = []
    for version in versions:
        fields = (version.version, version.app_version)
        if keyword and not any(keyword in value.lower() for value in fields):
            continue
        if states and version.state not in states:
            continue
        result.append(version)
    return result


def _filter_reviews(
    versions: list[ApplicationVersion], conditions: Conditions
) -> list[ApplicationVersion]:
    keyword = conditions.keyword
    states = conditions.states
    return [
        version
        for version in versions
        if (not keyword or keyword in version.name.lower())
        and (not states or version.state in states)
    ]


class AppVersionOperator:
    """Create, modify, list and delete application versions.

    Chart packages of versions uploaded to the store are held in the blob store
    while the version records are held in the catalog store. Versions indexed
    from external repos are served by the cache and are read only here.
    """

    def __init__(
        self,
        store: CatalogStore,
        resolver: AppVersionResolver,
        blob_store: BlobStore,
        chart_parser: ChartParser,
        config: CatalogConfig,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._blob_store = blob_store
        self._chart_parser = chart_parser
        self._config = config

    async def create_app_version(
        self, request: CreateAppVersionRequest
    ) -> ApplicationVersion:
        """Create a draft version of an application from a chart package.

        Raises:
            ChartParseError: If the package is malformed.
            NotFoundError: If the application does not exist.
            AlreadyExistsError: If the application has a version with the same name.
        """
        metadata = self._chart_parser.parse(request.package)
        app = await self._store.get(Application, request.app_id)

        version_id = generate_id(APPLICATION_VERSION_ID_PREFIX)
        data_key = blob_key(app.workspace, version_id)
        created = now()
        version = ApplicationVersion(
            id=version_id,
            application_id=app.id,
            name=metadata.name,
            version=metadata.version,
            app_version=metadata.app_version,
            description=shorten(metadata.description, self._config.message_max_len),
            icon=metadata.icon,
            home=metadata.home,
            workspace=app.workspace,
            repo_id=app.repo_id,
            data_key=data_key,
            creator=request.operator,
            created=created,
            audit=[Audit(state=State.DRAFT, operator=request.operator, time=created)],
        )

        existing = await self._store.list(
            ApplicationVersion, {APPLICATION_ID_LABEL: app.id}
        )
        if any(v.version_name == version.version_name for v in existing):
            raise AlreadyExistsError(
                f"Application {app.id} version {version.version_name} exists"
            )

        await self._blob_store.put(data_key, request.package)
        try:
            version = await self._store.create(version)
        except CatalogException:
            await self._blob_store.delete(data_key)
            raise
        _LOGGER.info(
            "Created version %s (%s) of application %s",
            version.version_name,
            version.id,
            app.id,
        )
        return version

    async def delete_app_version(self, version_id: str) -> None:
        """Delete a version and its chart package.

        Deleting a version that does not exist does nothing.

        Raises:
            ActionNotPermittedError: If the version is active.
        """
        try:
            version = await self._store.get(ApplicationVersion, version_id)
        except NotFoundError:
            return
        if version.state == State.ACTIVE:
            _LOGGER.warning(
                "Delete of version %s not permitted in state %s",
                version_id,
                version.state,
            )
            raise ActionNotPermittedError(
                version_id, f"delete not permitted in state {version.state}"
            )
        try:
            await self._blob_store.delete(
                version.data_key or blob_key(version.workspace, version.id)
            )
        except NotFoundError:
            _LOGGER.debug("Chart package of version %s already deleted", version_id)
        try:
            await self._store.delete(ApplicationVersion, version_id)
        except NotFoundError:
            return
        _LOGGER.info("Deleted version %s", version_id)

    async def describe_app_version(self, version_id: str) -> AppVersionView:
        version = await self._resolver.get_app_version(None, version_id)
        return to_view(version)

    async def modify_app_version(
        self, version_id: str, request: ModifyAppVersionRequest
    ) -> ApplicationVersion:
        """Change the version name or description of a version."""
        old = await self._store.get(ApplicationVersion, version_id)
        new = copy.deepcopy(old)
        if request.name:
            version, app_version = parse_version_name(request.name)
            if not version:
                raise InvalidArgumentError(f"Invalid version name '{request.name}'")
            new.version, new.app_version = version, app_version
        if request.description:
            new.description = shorten(
                request.description, self._config.message_max_len
            )
        if not (patch := create_merge_patch(old.to_dict(), new.to_dict())):
            return old
        return await self._store.patch(
            ApplicationVersion, version_id, patch, old.resource_version
        )

    async def list_app_versions(
        self,
        conditions: Conditions,
        reverse: bool = False,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> PageableResponse[AppVersionView]:
        """List the versions of an application in semantic version order."""
        if not (app_id := conditions.get(APP_ID)):
            raise InvalidArgumentError("Listing versions requires an application id")
        versions = filter_app_versions(
            await self._resolver.list_app_versions(app_id), conditions
        )
        versions.sort(key=version_sort_key, reverse=reverse)
        items = []
        for version in paginate(versions, limit, offset):
            items.append(to_view(version))
        return PageableResponse(items=items, total_count=len(versions))

    async def list_app_version_audits(
        self,
        conditions: Conditions,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> PageableResponse[AuditView]:
        """List the audit entries of a version, or of every version of an app.

        Entries are ordered most recent first.
        """
        if version_id := conditions.get(VERSION_ID):
            versions = [await self._resolver.get_app_version(None, version_id)]
        elif app_id := conditions.get(APP_ID):
            versions = await self._resolver.list_app_versions(app_id)
        else:
            raise InvalidArgumentError(
                "Listing audits requires an application or version id"
            )
        audits = [
            AuditView.from_audit(version, audit)
            for version in versions
            for audit in version.audit
        ]
        # Most recent first, ties broken by version name
        audits.sort(key=lambda audit: audit.version_name)
        audits.sort(key=lambda audit: audit.status_time, reverse=True)
        return PageableResponse(
            items=paginate(audits, limit, offset), total_count=len(audits)
        )

    async def list_app_version_reviews(
        self,
        conditions: Conditions,
        reverse: bool = False,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> PageableResponse[ReviewView]:
        """List versions in the store matching the review conditions.

        Versions whose state changed earliest come first.
        """
        versions = _filter_reviews(
            await self._store.list(ApplicationVersion), conditions
        )
        # Earliest state change first, then the highest version
        versions.sort(key=version_sort_key, reverse=True)
        versions.sort(key=lambda version: version.status_time)
        if reverse:
            versions.reverse()
        return PageableResponse(
            items=[
                ReviewView.from_version(v) for v in paginate(versions, limit, offset)
            ],
            total_count=len(versions),
        )

    async def get_app_version_package(self, version_id: str) -> bytes:
        """Return the chart package of a version uploaded to the store."""
        version = await self._resolver.get_app_version(None, version_id)
        return await self._blob_store.get(
            version.data_key or blob_key(version.workspace, version.id)
        )

    async def get_app_version_files(self, version_id: str) -> dict[str, bytes]:
        """Return the files of a version's chart package keyed by path."""
        return self._chart_parser.files(await self.get_app_version_package(version_id))
