"""Response views of catalog entities.

Each catalog entity has exactly one view type, and `to_view` maps an entity to
its view with an exhaustive match over the closed set of entity kinds.
"""

import datetime
from dataclasses import dataclass, field
from typing import Any, assert_never, overload

from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from .manifest import (
    Application,
    ApplicationVersion,
    Audit,
    CatalogEntity,
    Release,
    ReleaseStatus,
)

__all__ = [
    "AppView",
    "AppVersionView",
    "AuditView",
    "ReviewView",
    "ReleaseView",
    "CatalogView",
    "to_view",
]


@dataclass
class BaseView(DataClassDictMixin):
    """Base class for response views."""

    class Config(BaseConfig):
        omit_none = True


@dataclass(kw_only=True)
class AppView(BaseView):
    """View of an application."""

    app_id: str
    name: str
    description: str = ""
    abstraction: str = ""
    icon: str = ""
    home: str = ""
    keywords: list[str] = field(default_factory=list)
    status: str
    workspace: str | None = None
    repo_id: str | None = None
    latest_version: str | None = None
    owner: str = ""
    create_time: datetime.datetime


@dataclass(kw_only=True)
class AppVersionView(BaseView):
    """View of an application version."""

    version_id: str
    app_id: str
    name: str
    """The version name including the app version."""

    chart_name: str
    version: str
    app_version: str = ""
    description: str = ""
    icon: str = ""
    home: str = ""
    status: str
    owner: str = ""
    repo_id: str | None = None
    package_name: str
    create_time: datetime.datetime
    status_time: datetime.datetime


@dataclass(kw_only=True)
class AuditView(BaseView):
    """View of one audit entry of an application version."""

    app_id: str
    version_id: str
    version_name: str
    status: str
    operator: str = ""
    operator_type: str | None = None
    message: str = ""
    status_time: datetime.datetime

    @classmethod
    def from_audit(cls, version: ApplicationVersion, audit: Audit) -> "AuditView":
        return cls(
            app_id=version.application_id,
            version_id=version.id,
            version_name=version.version_name,
            status=audit.state,
            operator=audit.operator,
            operator_type=audit.operator_type,
            message=audit.message,
            status_time=audit.time,
        )


@dataclass(kw_only=True)
class ReviewView(BaseView):
    """View of an application version awaiting or past review."""

    app_id: str
    version_id: str
    version_name: str
    status: str
    reviewer: str = ""
    workspace: str | None = None
    status_time: datetime.datetime

    @classmethod
    def from_version(cls, version: ApplicationVersion) -> "ReviewView":
        return cls(
            app_id=version.application_id,
            version_id=version.id,
            version_name=version.version_name,
            status=version.state,
            reviewer=version.audit[0].operator if version.audit else "",
            workspace=version.workspace,
            status_time=version.status_time,
        )


@dataclass(kw_only=True)
class ReleaseView(BaseView):
    """View of a release, decorated with its version when resolved."""

    release_id: str
    name: str
    namespace: str
    workspace: str | None = None
    app_id: str
    version_id: str
    chart_name: str
    chart_version: str
    status: str
    revision: int
    values: str = ""
    description: str = ""
    message: str = ""
    owner: str = ""
    create_time: datetime.datetime
    status_time: datetime.datetime

    version: AppVersionView | None = None
    """The resolved version of the release."""

    resources: list[dict[str, Any]] = field(default_factory=list)
    """Objects rendered by the installer for this release."""


CatalogView = AppView | AppVersionView | ReleaseView


def _app_view(app: Application) -> AppView:
    return AppView(
        app_id=app.id,
        name=app.name,
        description=app.spec.description,
        abstraction=app.spec.abstraction,
        icon=app.spec.icon,
        home=app.spec.home,
        keywords=list(app.spec.keywords),
        status=app.status,
        workspace=app.workspace,
        repo_id=app.repo_id,
        latest_version=app.latest_version,
        owner=app.creator,
        create_time=app.created,
    )


def _version_view(version: ApplicationVersion) -> AppVersionView:
    return AppVersionView(
        version_id=version.id,
        app_id=version.application_id,
        name=version.version_name,
        chart_name=version.name,
        version=version.version,
        app_version=version.app_version,
        description=version.description,
        icon=version.icon,
        home=version.home,
        status=version.state,
        owner=version.creator,
        repo_id=version.repo_id,
        package_name=version.package_name,
        create_time=version.created,
        status_time=version.status_time,
    )


def _release_view(release: Release) -> ReleaseView:
    return ReleaseView(
        release_id=release.id,
        name=release.name,
        namespace=release.namespace,
        workspace=release.workspace,
        app_id=release.application_id,
        version_id=release.application_version_id,
        chart_name=release.chart_name,
        chart_version=release.chart_version_name,
        status=release.status or ReleaseStatus.CREATING,
        revision=release.revision,
        values=release.values,
        description=release.description,
        message=release.message,
        owner=release.creator,
        create_time=release.created,
        status_time=release.updated,
    )


@overload
def to_view(entity: Application) -> AppView: ...


@overload
def to_view(entity: ApplicationVersion) -> AppVersionView: ...


@overload
def to_view(entity: Release) -> ReleaseView: ...


def to_view(entity: CatalogEntity) -> CatalogView:
    """Return the response view of a catalog entity."""
    match entity:
        case Application():
            return _app_view(entity)
        case ApplicationVersion():
            return _version_view(entity)
        case Release():
            return _release_view(entity)
        case _:
            assert_never(entity)
