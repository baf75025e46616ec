"""Test fixtures shared by the catalog tests."""

from collections.abc import AsyncGenerator, Callable
import datetime
import io
import tarfile
from typing import Any

import pytest
import yaml

from app_catalog.cache import RepoIndexCache, RepoWatcher
from app_catalog.chart import TarballChartParser
from app_catalog.config import CatalogConfig
from app_catalog.lifecycle import AppVersionLifecycle
from app_catalog.manifest import (
    Application,
    ApplicationSpec,
    ApplicationVersion,
    Audit,
    Repo,
    State,
)
from app_catalog.release import ReleaseManager
from app_catalog.resolve import AppVersionResolver
from app_catalog.store import InMemoryBlobStore, InMemoryCatalogStore
from app_catalog.app_version import AppVersionOperator

CREATED = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

WORDPRESS_INDEX = """
apiVersion: v1
applications:
  wordpress:
    applicationId: app-wordpress
    description: Web publishing platform
    keywords: blog,cms
    versions:
      - version: 5.0.0
        appVersion: 5.8.0
        versionId: appv-wp500
        created: "2024-01-01T00:00:00+00:00"
        urls:
          - wordpress-5.0.0.tgz
      - version: 5.1.0
        appVersion: 5.9.0
        versionId: appv-wp510
        created: "2024-02-01T00:00:00+00:00"
        urls:
          - wordpress-5.1.0.tgz
"""


def make_repo(repo_id: str = "repo-bitnami", index_data: str = WORDPRESS_INDEX) -> Repo:
    """Create a Repo carrying the index snapshot."""
    return Repo(
        id=repo_id,
        name=repo_id.removeprefix("repo-"),
        url=f"https://charts.example.com/{repo_id}",
        workspace="ws1",
        creator="admin",
        created=CREATED,
        index_data=index_data,
    )


def make_app(
    app_id: str = "app-nginx",
    name: str = "nginx",
    spec: ApplicationSpec | None = None,
    **kwargs: Any,
) -> Application:
    """Create an Application uploaded to the built-in store."""
    return Application(
        id=app_id,
        spec=spec or ApplicationSpec(name=name, description=f"The {name} chart"),
        workspace="ws1",
        creator="isv",
        created=CREATED,
        **kwargs,
    )


def make_version(
    version_id: str = "appv-nginx-1",
    app_id: str = "app-nginx",
    version: str = "1.0.0",
    state: State | None = State.DRAFT,
    created: datetime.datetime = CREATED,
) -> ApplicationVersion:
    """Create an ApplicationVersion uploaded to the built-in store."""
    return ApplicationVersion(
        id=version_id,
        application_id=app_id,
        name="nginx",
        version=version,
        app_version="1.25.0",
        workspace="ws1",
        data_key=f"ws1/{version_id}",
        creator="isv",
        created=created,
        audit=[Audit(state=state, operator="isv", time=created)] if state else [],
    )


def build_chart(
    name: str = "nginx",
    version: str = "1.0.0",
    app_version: str = "1.25.0",
    extra_files: dict[str, str] | None = None,
) -> bytes:
    """Build a gzipped tarball chart package."""
    chart = {
        "apiVersion": "v2",
        "name": name,
        "version": version,
        "appVersion": app_version,
        "description": f"A chart for {name}",
        "home": f"https://{name}.example.com",
    }
    files = {
        f"{name}/Chart.yaml": yaml.dump(chart),
        f"{name}/values.yaml": "replicaCount: 1\n",
        **{f"{name}/{path}": content for path, content in (extra_files or {}).items()},
    }
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        for path, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(path)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture(name="config")
def config_fixture() -> CatalogConfig:
    """Create the catalog configuration."""
    return CatalogConfig()


@pytest.fixture(name="store")
def store_fixture() -> InMemoryCatalogStore:
    """Create an in-memory catalog store for testing."""
    return InMemoryCatalogStore()


@pytest.fixture(name="blob_store")
def blob_store_fixture() -> InMemoryBlobStore:
    """Create an in-memory blob store for testing."""
    return InMemoryBlobStore()


@pytest.fixture(name="cache")
def cache_fixture() -> RepoIndexCache:
    """Create an empty index cache."""
    return RepoIndexCache()


@pytest.fixture(name="resolver")
def resolver_fixture(
    cache: RepoIndexCache, store: InMemoryCatalogStore, config: CatalogConfig
) -> AppVersionResolver:
    """Create a resolver over the cache and store."""
    return AppVersionResolver(cache, store, config)


@pytest.fixture(name="lifecycle")
def lifecycle_fixture(
    store: InMemoryCatalogStore,
    resolver: AppVersionResolver,
    config: CatalogConfig,
) -> AppVersionLifecycle:
    """Create the version lifecycle."""
    return AppVersionLifecycle(store, resolver, config)


@pytest.fixture(name="release_manager")
def release_manager_fixture(
    store: InMemoryCatalogStore,
    resolver: AppVersionResolver,
    blob_store: InMemoryBlobStore,
    config: CatalogConfig,
) -> ReleaseManager:
    """Create a release manager without an installer."""
    return ReleaseManager(store, resolver, blob_store, config)


@pytest.fixture(name="operator")
def operator_fixture(
    store: InMemoryCatalogStore,
    resolver: AppVersionResolver,
    blob_store: InMemoryBlobStore,
    config: CatalogConfig,
) -> AppVersionOperator:
    """Create the version operator."""
    return AppVersionOperator(
        store, resolver, blob_store, TarballChartParser(), config
    )


@pytest.fixture(name="watcher")
async def watcher_fixture(
    store: InMemoryCatalogStore, cache: RepoIndexCache
) -> AsyncGenerator[RepoWatcher, None]:
    """Create a repo watcher that is stopped after the test."""
    watcher = RepoWatcher(store, cache)
    yield watcher
    await watcher.stop()


@pytest.fixture(name="chart_package")
def chart_package_fixture() -> Callable[..., bytes]:
    """Return a builder of chart packages."""
    return build_chart
