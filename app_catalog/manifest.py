"""Representation of the catalog entities.

The catalog holds four kinds of records: a `Repo` that is crawled for charts,
an `Application` which is a lineage of chart versions, an `ApplicationVersion`
which carries a lifecycle audit trail, and a `Release` which is an instance of
a version installed into a namespace.

Records are dataclasses that serialize to plain dicts with mashumaro. The dict
form is what the catalog store holds and what merge patches are computed
against.
"""

import datetime
from dataclasses import dataclass, field
from enum import StrEnum
import uuid
from typing import ClassVar

from mashumaro import DataClassDictMixin
from mashumaro.codecs.yaml import yaml_decode, yaml_encode
from mashumaro.config import BaseConfig

__all__ = [
    "State",
    "ReleaseStatus",
    "Audit",
    "ApplicationSpec",
    "Application",
    "ApplicationVersion",
    "RepoCredential",
    "Repo",
    "Release",
    "CatalogObject",
    "CatalogEntity",
]


REPO_KIND = "Repo"
APPLICATION_KIND = "Application"
APPLICATION_VERSION_KIND = "ApplicationVersion"
RELEASE_KIND = "Release"

REPO_ID_PREFIX = "repo-"
APPLICATION_ID_PREFIX = "app-"
APPLICATION_VERSION_ID_PREFIX = "appv-"
RELEASE_ID_PREFIX = "rls-"

# Label keys used for label-style selection in the catalog store
APPLICATION_ID_LABEL = "application.catalog.io/app-id"
APPLICATION_VERSION_ID_LABEL = "application.catalog.io/app-version-id"
REPO_ID_LABEL = "application.catalog.io/repo-id"
WORKSPACE_LABEL = "catalog.io/workspace"
NAMESPACE_LABEL = "catalog.io/namespace"


def now() -> datetime.datetime:
    """Return the current time in UTC."""
    return datetime.datetime.now(datetime.timezone.utc)


def generate_id(prefix: str) -> str:
    """Return a new random id with the kind prefix."""
    return f"{prefix}{uuid.uuid4().hex[:13]}"


def shorten(value: str, max_len: int) -> str:
    """Truncate a string to at most max_len characters."""
    if len(value) <= max_len:
        return value
    return value[:max_len]


class State(StrEnum):
    """Lifecycle state of an application version."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PASSED = "passed"
    REJECTED = "rejected"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class ReleaseStatus(StrEnum):
    """Deployment status of a release."""

    CREATING = "creating"
    PENDING = "pending"
    UPGRADING = "upgrading"
    ACTIVE = "active"
    FAILED = "failed"
    DELETING = "deleting"


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all catalog objects."""

    @classmethod
    def parse_yaml(cls, content: str) -> "BaseManifest":
        """Parse a serialized object."""
        return yaml_decode(content, cls)

    def yaml(self) -> str:
        """Return a YAML string representation of the object."""
        return yaml_encode(self, self.__class__)  # type: ignore[return-value]

    class Config(BaseConfig):
        omit_none = True


@dataclass(kw_only=True)
class CatalogObject(BaseManifest):
    """A record held by the catalog store, keyed by kind and id."""

    kind: ClassVar[str]
    """The kind of the object."""

    id: str
    """The unique id of the object within its kind."""

    resource_version: int = 0
    """Incremented by the store on every write, used to detect conflicts."""

    @property
    def labels(self) -> dict[str, str]:
        """Labels used to select the object in the store."""
        return {}


def _labels(**values: str | None) -> dict[str, str]:
    return {key: value for key, value in values.items() if value}


@dataclass(kw_only=True)
class Audit(BaseManifest):
    """A single entry in an application version's audit history."""

    state: State
    """The state the version entered."""

    operator: str = ""
    """The user that performed the action."""

    operator_type: str | None = None
    """The role of the operator, e.g. admin or isv."""

    message: str = ""
    """A message left by the operator."""

    time: datetime.datetime
    """When the state change happened."""


@dataclass(kw_only=True)
class ApplicationSpec(BaseManifest):
    """The user facing description of an application."""

    name: str
    """The display name of the application."""

    description: str = ""
    abstraction: str = ""
    icon: str = ""
    home: str = ""
    keywords: list[str] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class Application(CatalogObject):
    """A named lineage of chart versions."""

    kind: ClassVar[str] = APPLICATION_KIND

    spec: ApplicationSpec
    """Descriptive metadata, mirrored into the app-store copy on publish."""

    workspace: str | None = None
    """The owning workspace, or None for a global application."""

    repo_id: str | None = None
    """The repository the application was indexed from, if any."""

    status: State = State.DRAFT
    """The lifecycle state of the application."""

    latest_version: str | None = None
    """Version name of the most recent version."""

    creator: str = ""
    created: datetime.datetime = field(default_factory=now)

    @property
    def name(self) -> str:
        """The display name of the application."""
        return self.spec.name

    @property
    def labels(self) -> dict[str, str]:
        return _labels(
            **{
                WORKSPACE_LABEL: self.workspace,
                REPO_ID_LABEL: self.repo_id,
            }
        )


@dataclass(kw_only=True)
class ApplicationVersion(CatalogObject):
    """One installable revision of an application."""

    kind: ClassVar[str] = APPLICATION_VERSION_KIND

    application_id: str
    """The id of the owning application."""

    name: str
    """The chart name."""

    version: str
    """The semantic version of the chart."""

    app_version: str = ""
    """The version of the packaged software."""

    description: str = ""
    icon: str = ""
    home: str = ""
    urls: list[str] = field(default_factory=list)
    digest: str = ""

    workspace: str | None = None
    repo_id: str | None = None

    data_key: str | None = None
    """Blob store key of the chart package, for versions uploaded to the store."""

    creator: str = ""
    created: datetime.datetime = field(default_factory=now)

    audit: list[Audit] = field(default_factory=list)
    """History of state changes, most recent first."""

    @property
    def state(self) -> State:
        """The current lifecycle state, defined by the most recent audit entry."""
        if self.audit:
            return self.audit[0].state
        return State.DRAFT

    @property
    def status_time(self) -> datetime.datetime:
        """When the version last changed state."""
        if self.audit:
            return self.audit[0].time
        return self.created

    @property
    def version_name(self) -> str:
        """Return the version name including the app version when known."""
        if self.app_version:
            return f"{self.version} [{self.app_version}]"
        return self.version

    @property
    def package_name(self) -> str:
        """File name of the chart package."""
        return f"{self.name}-{self.version}.tgz"

    @property
    def labels(self) -> dict[str, str]:
        return _labels(
            **{
                APPLICATION_ID_LABEL: self.application_id,
                WORKSPACE_LABEL: self.workspace,
                REPO_ID_LABEL: self.repo_id,
            }
        )


@dataclass(kw_only=True)
class RepoCredential(BaseManifest):
    """Credentials used to crawl a repository."""

    username: str | None = None
    password: str | None = None
    insecure_skip_tls_verify: bool = False


@dataclass(kw_only=True)
class Repo(CatalogObject):
    """A registered, periodically crawled source of charts."""

    kind: ClassVar[str] = REPO_KIND

    name: str
    """The display name of the repository."""

    url: str
    """The URL that is crawled for the index."""

    workspace: str | None = None
    credential: RepoCredential | None = None

    sync_period: int = 0
    """Seconds between crawls, zero disables periodic sync."""

    description: str = ""

    index_data: str = ""
    """The serialized index snapshot produced by the last crawl."""

    creator: str = ""
    created: datetime.datetime = field(default_factory=now)

    @property
    def labels(self) -> dict[str, str]:
        return _labels(**{WORKSPACE_LABEL: self.workspace})


@dataclass(kw_only=True)
class Release(CatalogObject):
    """A concrete installed instance of an application version."""

    kind: ClassVar[str] = RELEASE_KIND

    name: str
    """The display name, unique within the namespace."""

    namespace: str
    workspace: str | None = None

    application_id: str
    application_version_id: str
    repo_id: str | None = None

    chart_name: str
    chart_version: str
    chart_app_version: str = ""

    values: str = ""
    """The configuration values payload passed to the chart."""

    description: str = ""

    revision: int = 1
    """Incremented on each upgrade."""

    status: ReleaseStatus = ReleaseStatus.PENDING
    message: str = ""

    creator: str = ""
    created: datetime.datetime = field(default_factory=now)
    last_deployed: datetime.datetime | None = None

    @property
    def updated(self) -> datetime.datetime:
        """When the release was last deployed, or created if never deployed."""
        return self.last_deployed or self.created

    @property
    def chart_version_name(self) -> str:
        if self.chart_app_version:
            return f"{self.chart_version} [{self.chart_app_version}]"
        return self.chart_version

    @property
    def labels(self) -> dict[str, str]:
        return _labels(
            **{
                APPLICATION_ID_LABEL: self.application_id,
                APPLICATION_VERSION_ID_LABEL: self.application_version_id,
                REPO_ID_LABEL: self.repo_id,
                WORKSPACE_LABEL: self.workspace,
                NAMESPACE_LABEL: self.namespace,
            }
        )


CatalogEntity = Application | ApplicationVersion | Release
