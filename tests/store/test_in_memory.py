"""Tests for the in-memory catalog store."""

from collections.abc import Callable
import logging

import pytest

from app_catalog.exceptions import (
    AlreadyExistsError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)
from app_catalog.manifest import (
    APPLICATION_ID_LABEL,
    Application,
    ApplicationVersion,
    CatalogObject,
    Repo,
)
from app_catalog.store import InMemoryCatalogStore, StoreEvent

from tests.conftest import make_app, make_repo, make_version


async def test_create_and_get(store: InMemoryCatalogStore) -> None:
    """Test creating and retrieving a record."""
    created = await store.create(make_app())
    assert created.resource_version == 1

    result = await store.get(Application, "app-nginx")
    assert result == created
    assert result is not created

    with pytest.raises(AlreadyExistsError):
        await store.create(make_app())
    with pytest.raises(NotFoundError, match="Application app-missing not found"):
        await store.get(Application, "app-missing")


async def test_kinds_are_separate(store: InMemoryCatalogStore) -> None:
    """Test that ids are scoped to the record kind."""
    await store.create(make_app(app_id="shared-id"))
    with pytest.raises(NotFoundError):
        await store.get(Repo, "shared-id")


async def test_update_conflict(store: InMemoryCatalogStore) -> None:
    """Test that updating a stale record is rejected."""
    app = await store.create(make_app())
    app.spec.description = "first"
    updated = await store.update(app)
    assert updated.resource_version == 2

    app.spec.description = "second"
    with pytest.raises(ConflictError):
        await store.update(app)
    assert (await store.get(Application, app.id)).spec.description == "first"

    with pytest.raises(NotFoundError):
        await store.update(make_app(app_id="app-missing"))


async def test_patch(store: InMemoryCatalogStore) -> None:
    """Test applying a merge patch to a record."""
    app = await store.create(make_app())
    patched = await store.patch(
        Application,
        app.id,
        {"spec": {"description": "patched"}, "id": "app-other", "resource_version": 9},
    )
    assert patched.id == app.id
    assert patched.resource_version == 2
    assert patched.spec.description == "patched"
    assert patched.spec.name == "nginx"

    with pytest.raises(ConflictError):
        await store.patch(Application, app.id, {"creator": "x"}, resource_version=1)
    patched = await store.patch(
        Application, app.id, {"creator": "x"}, resource_version=2
    )
    assert patched.creator == "x"


async def test_invalid_patch(store: InMemoryCatalogStore) -> None:
    """Test that a patch producing an invalid record is rejected."""
    app = await store.create(make_app())
    with pytest.raises(InvalidArgumentError):
        await store.patch(Application, app.id, {"spec": None})
    assert await store.get(Application, app.id) == app


async def test_delete(store: InMemoryCatalogStore) -> None:
    """Test deleting a record."""
    await store.create(make_app())
    await store.delete(Application, "app-nginx")
    with pytest.raises(NotFoundError):
        await store.get(Application, "app-nginx")
    with pytest.raises(NotFoundError):
        await store.delete(Application, "app-nginx")


async def test_list_selector(store: InMemoryCatalogStore) -> None:
    """Test listing records by label selector."""
    await store.create(make_version("appv-1", app_id="app-a"))
    await store.create(make_version("appv-2", app_id="app-a"))
    await store.create(make_version("appv-3", app_id="app-b"))
    await store.create(make_app("app-a"))

    versions = await store.list(ApplicationVersion, {APPLICATION_ID_LABEL: "app-a"})
    assert sorted(v.id for v in versions) == ["appv-1", "appv-2"]
    assert len(await store.list(ApplicationVersion)) == 3
    assert await store.list(ApplicationVersion, {APPLICATION_ID_LABEL: "x"}) == []


async def test_listeners(store: InMemoryCatalogStore) -> None:
    """Test event listeners receive each change."""
    events: list[tuple[str, str]] = []

    def make_callback(event: StoreEvent) -> Callable[[CatalogObject], None]:
        def callback(obj: CatalogObject) -> None:
            events.append((event.value, obj.id))

        return callback

    removers = [
        store.add_listener(event, make_callback(event)) for event in StoreEvent
    ]
    app = await store.create(make_app())
    await store.update(app)
    await store.delete(Application, app.id)
    assert events == [
        ("added", "app-nginx"),
        ("updated", "app-nginx"),
        ("deleted", "app-nginx"),
    ]

    for remove in removers:
        remove()
    await store.create(make_app())
    assert len(events) == 3


async def test_listener_failure(
    store: InMemoryCatalogStore, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a failing listener does not fail the write."""

    def callback(obj: CatalogObject) -> None:
        raise ValueError("boom")

    store.add_listener(StoreEvent.ADDED, callback)
    with caplog.at_level(logging.ERROR):
        await store.create(make_app())
    assert "Store listener callback failed" in caplog.text
    assert await store.get(Application, "app-nginx")


async def test_watch(store: InMemoryCatalogStore) -> None:
    """Test watching a kind yields existing records then changes."""
    await store.create(make_repo("repo-a"))
    await store.create(make_app())

    watch = store.watch(Repo)
    event = await anext(watch)
    assert event.event == StoreEvent.ADDED
    assert event.object.id == "repo-a"

    repo = await store.create(make_repo("repo-b"))
    await store.create(make_app("app-other"))
    await store.update(repo)
    await store.delete(Repo, "repo-a")

    received = [await anext(watch) for _ in range(3)]
    assert [(e.event, e.object.id) for e in received] == [
        (StoreEvent.ADDED, "repo-b"),
        (StoreEvent.UPDATED, "repo-b"),
        (StoreEvent.DELETED, "repo-a"),
    ]
    await watch.aclose()
