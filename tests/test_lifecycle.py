"""Tests for the application version lifecycle."""

import pytest

from app_catalog.config import CatalogConfig
from app_catalog.exceptions import (
    ActionNotPermittedError,
    InvalidArgumentError,
    NotFoundError,
)
from app_catalog.lifecycle import (
    PRECONDITIONS,
    TRANSITIONS,
    Action,
    ActionRequest,
    AppVersionLifecycle,
    next_state,
)
from app_catalog.manifest import Application, ApplicationSpec, ApplicationVersion, State
from app_catalog.resolve import AppVersionResolver
from app_catalog.store import InMemoryCatalogStore

from tests.conftest import make_app, make_version


@pytest.mark.parametrize(
    ("action", "state"),
    [
        ("submit", State.SUBMITTED),
        ("cancel", State.DRAFT),
        ("pass", State.PASSED),
        ("reject", State.REJECTED),
        ("release", State.ACTIVE),
        ("suspend", State.SUSPENDED),
        ("recover", State.ACTIVE),
    ],
)
def test_transition_table(action: str, state: State) -> None:
    """Test the state each action leads to."""
    assert next_state(Action(action)) == state


def test_every_action_has_precondition() -> None:
    """Test the precondition table covers every action."""
    assert PRECONDITIONS.keys() == TRANSITIONS.keys() == set(Action)


async def test_apply_action(
    store: InMemoryCatalogStore, lifecycle: AppVersionLifecycle
) -> None:
    """Test applying an action records an audit entry."""
    await store.create(make_version())

    version = await lifecycle.apply_action(
        "appv-nginx-1", "submit", "isv", message="please review"
    )
    assert version.state == State.SUBMITTED
    assert len(version.audit) == 2
    assert version.audit[0].operator == "isv"
    assert version.audit[0].message == "please review"

    stored = await store.get(ApplicationVersion, "appv-nginx-1")
    assert stored == version

    version = await lifecycle.apply(
        "appv-nginx-1",
        ActionRequest(action="pass", operator="admin", operator_type="admin"),
    )
    assert version.state == State.PASSED
    assert version.audit[0].operator_type == "admin"
    assert [a.state for a in version.audit] == [
        State.PASSED,
        State.SUBMITTED,
        State.DRAFT,
    ]


async def test_audit_trimmed_to_max_len(
    store: InMemoryCatalogStore, resolver: AppVersionResolver
) -> None:
    """Test the audit history keeps only the most recent entries."""
    lifecycle = AppVersionLifecycle(store, resolver, CatalogConfig(audit_max_len=3))
    await store.create(make_version())

    actions = ["submit", "cancel", "submit", "reject", "submit"]
    for i, action in enumerate(actions):
        await lifecycle.apply_action("appv-nginx-1", action, "isv", message=str(i))

    version = await store.get(ApplicationVersion, "appv-nginx-1")
    assert len(version.audit) == 3
    assert [a.message for a in version.audit] == ["4", "3", "2"]
    assert version.state == State.SUBMITTED


async def test_message_shortened(
    store: InMemoryCatalogStore, resolver: AppVersionResolver
) -> None:
    """Test long audit messages are shortened."""
    lifecycle = AppVersionLifecycle(
        store, resolver, CatalogConfig(message_max_len=10)
    )
    await store.create(make_version())
    version = await lifecycle.apply_action(
        "appv-nginx-1", "submit", "isv", message="x" * 100
    )
    assert version.audit[0].message == "x" * 10


async def test_unknown_action(
    store: InMemoryCatalogStore, lifecycle: AppVersionLifecycle
) -> None:
    """Test an unsupported action is rejected without changes."""
    created = await store.create(make_version())
    with pytest.raises(InvalidArgumentError, match="not supported"):
        await lifecycle.apply_action("appv-nginx-1", "publish", "isv")
    assert await store.get(ApplicationVersion, "appv-nginx-1") == created


async def test_version_not_found(lifecycle: AppVersionLifecycle) -> None:
    """Test an action on an unknown version."""
    with pytest.raises(NotFoundError):
        await lifecycle.apply_action("appv-missing", "submit", "isv")


async def test_transitions_not_validated_by_default(
    store: InMemoryCatalogStore, lifecycle: AppVersionLifecycle
) -> None:
    """Test any action is accepted from any state by default."""
    await store.create(make_version())
    version = await lifecycle.apply_action("appv-nginx-1", "suspend", "admin")
    assert version.state == State.SUSPENDED


async def test_validate_transitions(
    store: InMemoryCatalogStore, resolver: AppVersionResolver
) -> None:
    """Test preconditions are enforced when validation is enabled."""
    lifecycle = AppVersionLifecycle(
        store, resolver, CatalogConfig(validate_transitions=True)
    )
    await store.create(make_app())
    created = await store.create(make_version())

    with pytest.raises(ActionNotPermittedError, match="appv-nginx-1") as exc_info:
        await lifecycle.apply_action("appv-nginx-1", "release", "admin")
    assert exc_info.value.kind == "InvalidArgument"
    assert await store.get(ApplicationVersion, "appv-nginx-1") == created

    for action in ("submit", "pass", "release", "suspend", "recover"):
        await lifecycle.apply_action("appv-nginx-1", action, "admin")
    version = await store.get(ApplicationVersion, "appv-nginx-1")
    assert version.state == State.ACTIVE


async def test_release_syncs_app_store_copy(
    store: InMemoryCatalogStore, lifecycle: AppVersionLifecycle
) -> None:
    """Test that publishing a version mirrors the spec into the app store."""
    app = make_app()
    app.spec = ApplicationSpec(
        name="nginx", description="Web server", keywords=["http"], icon="n.png"
    )
    await store.create(app)
    await store.create(
        make_app("app-nginx-store", spec=ApplicationSpec(name="nginx", icon="old.png"))
    )
    await store.create(make_version())

    await lifecycle.apply_action("appv-nginx-1", "submit", "isv")
    shadow = await store.get(Application, "app-nginx-store")
    assert shadow.spec.description == ""

    await lifecycle.apply_action("appv-nginx-1", "release", "admin")
    shadow = await store.get(Application, "app-nginx-store")
    assert shadow.spec == app.spec
    assert shadow.workspace == "ws1"

    # An unchanged spec is not written again
    await lifecycle.apply_action("appv-nginx-1", "recover", "admin")
    assert (await store.get(Application, "app-nginx-store")) == shadow


async def test_release_without_app_store_copy(
    store: InMemoryCatalogStore, lifecycle: AppVersionLifecycle
) -> None:
    """Test that a missing app store copy is not an error."""
    await store.create(make_app())
    await store.create(make_version())

    version = await lifecycle.apply_action("appv-nginx-1", "release", "admin")
    assert version.state == State.ACTIVE
    with pytest.raises(NotFoundError):
        await store.get(Application, "app-nginx-store")
