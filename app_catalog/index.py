"""Decoding of Repo index snapshots into catalog projections.

A Repo carries the index produced by its last crawl as a YAML (or JSON)
document mapping each application name to its metadata and versions:

```yaml
apiVersion: v1
applications:
  wordpress:
    applicationId: app-1c8dd2b1a4f3e
    description: Web publishing platform
    versions:
      - version: 5.0.0
        appVersion: 5.8.0
        created: 2024-01-01T00:00:00Z
        urls: [wordpress-5.0.0.tgz]
```

Ids that the snapshot does not carry are derived from the repo id, the
application name and the version so they remain stable across crawls.
"""

import datetime
from dataclasses import dataclass, field
import hashlib
import logging
from typing import Any

import yaml

from .exceptions import SnapshotDecodeError
from .manifest import (
    APPLICATION_ID_PREFIX,
    APPLICATION_VERSION_ID_PREFIX,
    Application,
    ApplicationSpec,
    ApplicationVersion,
    Audit,
    Repo,
    State,
)
from .version import sort_versions

__all__ = [
    "IndexSnapshot",
    "IndexApplication",
    "IndexVersion",
    "RepoContribution",
    "decode_repo",
]

_LOGGER = logging.getLogger(__name__)

_ID_HASH_LEN = 13


def derive_id(prefix: str, *parts: str) -> str:
    """Return a stable id derived from the parts."""
    digest = hashlib.md5("/".join(parts).encode()).hexdigest()
    return f"{prefix}{digest[:_ID_HASH_LEN]}"


def _parse_time(value: Any, field_name: str) -> datetime.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        result = value
    elif isinstance(value, str):
        try:
            result = datetime.datetime.fromisoformat(value)
        except ValueError as err:
            raise ValueError(f"invalid {field_name} '{value}'") from err
    else:
        raise ValueError(f"invalid {field_name} '{value}'")
    if result.tzinfo is None:
        result = result.replace(tzinfo=datetime.timezone.utc)
    return result


def _parse_keywords(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [kw.strip() for kw in value.split(",") if kw.strip()]
    return [str(kw) for kw in value]


@dataclass
class IndexVersion:
    """A version entry of an application in the index snapshot."""

    name: str
    """The chart name."""

    version: str
    """The chart version."""

    app_version: str = ""
    description: str = ""
    icon: str = ""
    home: str = ""
    created: datetime.datetime | None = None
    urls: list[str] = field(default_factory=list)
    digest: str = ""

    version_id: str | None = None
    """The id assigned by the crawler, if any."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any], app_name: str) -> "IndexVersion":
        """Parse a version entry from the snapshot."""
        if not isinstance(doc, dict):
            raise ValueError(f"version entry of {app_name} is not a mapping: {doc}")
        if not (version := doc.get("version")):
            raise ValueError(f"version entry of {app_name} missing version: {doc}")
        return cls(
            name=doc.get("name") or app_name,
            version=str(version),
            app_version=str(doc.get("appVersion") or ""),
            description=doc.get("description") or "",
            icon=doc.get("icon") or "",
            home=doc.get("home") or "",
            created=_parse_time(doc.get("created"), "created"),
            urls=list(doc.get("urls") or []),
            digest=doc.get("digest") or "",
            version_id=doc.get("versionId"),
        )


@dataclass
class IndexApplication:
    """An application entry in the index snapshot."""

    name: str
    application_id: str | None = None
    description: str = ""
    icon: str = ""
    home: str = ""
    keywords: list[str] = field(default_factory=list)
    versions: list[IndexVersion] = field(default_factory=list)

    @classmethod
    def parse_doc(cls, name: str, doc: dict[str, Any]) -> "IndexApplication":
        """Parse an application entry from the snapshot."""
        if doc is None:
            doc = {}
        if not isinstance(doc, dict):
            raise ValueError(f"application {name} is not a mapping: {doc}")
        versions = doc.get("versions") or []
        if not isinstance(versions, list):
            raise ValueError(f"application {name} versions is not a list")
        return cls(
            name=doc.get("name") or name,
            application_id=doc.get("applicationId"),
            description=doc.get("description") or "",
            icon=doc.get("icon") or "",
            home=doc.get("home") or "",
            keywords=_parse_keywords(doc.get("keywords")),
            versions=[IndexVersion.parse_doc(v, name) for v in versions],
        )


@dataclass
class IndexSnapshot:
    """The decoded index of a repository."""

    applications: dict[str, IndexApplication] = field(default_factory=dict)
    generated: datetime.datetime | None = None

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "IndexSnapshot":
        """Parse a decoded snapshot document."""
        if not isinstance(doc, dict):
            raise ValueError("snapshot is not a mapping")
        applications = doc.get("applications") or {}
        if not isinstance(applications, dict):
            raise ValueError("applications is not a mapping")
        return cls(
            applications={
                str(name): IndexApplication.parse_doc(str(name), app_doc)
                for name, app_doc in applications.items()
            },
            generated=_parse_time(doc.get("generated"), "generated"),
        )

    @classmethod
    def parse(cls, content: str, repo_id: str) -> "IndexSnapshot":
        """Parse a serialized snapshot.

        Raises:
            SnapshotDecodeError: If the snapshot is malformed.
        """
        if not content.strip():
            return cls()
        try:
            doc = yaml.safe_load(content)
            if doc is None:
                return cls()
            return cls.parse_doc(doc)
        except (yaml.YAMLError, ValueError, TypeError) as err:
            raise SnapshotDecodeError(repo_id, str(err)) from err


@dataclass
class RepoContribution:
    """The applications and versions a Repo contributes to the catalog."""

    repo: Repo
    applications: list[Application] = field(default_factory=list)
    versions: list[ApplicationVersion] = field(default_factory=list)

    @property
    def application_ids(self) -> set[str]:
        return {app.id for app in self.applications}

    @property
    def version_ids(self) -> set[str]:
        return {version.id for version in self.versions}


def _project_version(
    repo: Repo, app_id: str, app_name: str, entry: IndexVersion
) -> ApplicationVersion:
    created = entry.created or repo.created
    return ApplicationVersion(
        id=entry.version_id
        or derive_id(APPLICATION_VERSION_ID_PREFIX, repo.id, app_name, entry.version),
        application_id=app_id,
        name=entry.name,
        version=entry.version,
        app_version=entry.app_version,
        description=entry.description,
        icon=entry.icon,
        home=entry.home,
        urls=entry.urls,
        digest=entry.digest,
        workspace=repo.workspace,
        repo_id=repo.id,
        creator=repo.creator,
        created=created,
        audit=[Audit(state=State.ACTIVE, operator=repo.creator, time=created)],
    )


def decode_repo(repo: Repo) -> RepoContribution:
    """Decode the Repo's index snapshot into Application and version projections.

    Raises:
        SnapshotDecodeError: If the snapshot is malformed or lists a
            version id twice.
    """
    snapshot = IndexSnapshot.parse(repo.index_data, repo.id)
    contribution = RepoContribution(repo=repo)
    seen: set[str] = set()
    for name, entry in snapshot.applications.items():
        app_id = entry.application_id or derive_id(APPLICATION_ID_PREFIX, repo.id, name)
        versions = [
            _project_version(repo, app_id, name, version) for version in entry.versions
        ]
        for version in versions:
            if version.id in seen:
                raise SnapshotDecodeError(
                    repo.id, f"duplicate version {version.version_name} of {name}"
                )
            seen.add(version.id)
        ordered = sort_versions(versions)
        latest = ordered[-1] if ordered else None
        contribution.applications.append(
            Application(
                id=app_id,
                spec=ApplicationSpec(
                    name=entry.name,
                    description=entry.description
                    or (latest.description if latest else ""),
                    icon=entry.icon or (latest.icon if latest else ""),
                    home=entry.home or (latest.home if latest else ""),
                    keywords=entry.keywords,
                ),
                workspace=repo.workspace,
                repo_id=repo.id,
                status=State.ACTIVE,
                latest_version=latest.version_name if latest else None,
                creator=repo.creator,
                created=min((v.created for v in versions), default=repo.created),
            )
        )
        contribution.versions.extend(versions)
    _LOGGER.debug(
        "Decoded repo %s: %d applications, %d versions",
        repo.id,
        len(contribution.applications),
        len(contribution.versions),
    )
    return contribution
