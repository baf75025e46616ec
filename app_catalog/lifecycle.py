"""Review and publication lifecycle of application versions.

A version moves between states as reviewers act on it:

```
draft --submit--> submitted --pass--> passed --release--> active
  ^                 |    |                                  |  ^
  +-----cancel------+    +--reject--> rejected     suspend  |  | recover
                                                            v  |
                                                          suspended
```

Every action prepends an entry to the version's bounded audit history and the
head of that history is the version's current state. Precondition states are
listed in `PRECONDITIONS` but are only enforced when `validate_transitions` is
enabled in the configuration; by default any action is accepted from any
state.
"""

from dataclasses import dataclass
from enum import StrEnum
import logging

from .config import CatalogConfig
from .exceptions import ActionNotPermittedError, InvalidArgumentError, NotFoundError
from .manifest import Application, ApplicationVersion, Audit, State, now, shorten
from .resolve import AppVersionResolver
from .store import CatalogStore, create_merge_patch

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "Action",
    "ActionRequest",
    "AppVersionLifecycle",
    "TRANSITIONS",
    "PRECONDITIONS",
    "next_state",
    "prepend_audit",
]


class Action(StrEnum):
    """An action a user can take on an application version."""

    SUBMIT = "submit"
    CANCEL = "cancel"
    PASS = "pass"
    REJECT = "reject"
    RELEASE = "release"
    SUSPEND = "suspend"
    RECOVER = "recover"


TRANSITIONS: dict[Action, State] = {
    Action.SUBMIT: State.SUBMITTED,
    Action.CANCEL: State.DRAFT,
    Action.PASS: State.PASSED,
    Action.REJECT: State.REJECTED,
    Action.RELEASE: State.ACTIVE,
    Action.SUSPEND: State.SUSPENDED,
    Action.RECOVER: State.ACTIVE,
}

PRECONDITIONS: dict[Action, frozenset[State]] = {
    Action.SUBMIT: frozenset({State.DRAFT}),
    Action.CANCEL: frozenset({State.SUBMITTED}),
    Action.PASS: frozenset({State.SUBMITTED}),
    Action.REJECT: frozenset({State.SUBMITTED}),
    Action.RELEASE: frozenset({State.PASSED}),
    Action.SUSPEND: frozenset({State.ACTIVE}),
    Action.RECOVER: frozenset({State.SUSPENDED}),
}

# Actions that publish the version into the app store
_PUBLISH_ACTIONS = frozenset({Action.RELEASE, Action.RECOVER})


@dataclass
class ActionRequest:
    """A request to apply a lifecycle action to a version."""

    action: str
    operator: str
    message: str = ""
    operator_type: str | None = None


def parse_action(action: str) -> Action:
    """Return the Action named by the string."""
    try:
        return Action(action)
    except ValueError as err:
        raise InvalidArgumentError(f"Action '{action}' not supported") from err


def next_state(action: Action) -> State:
    """Return the state a version enters after the action."""
    return TRANSITIONS[action]


def check_precondition(version: ApplicationVersion, action: Action) -> None:
    """Raise if the version's current state does not permit the action."""
    if version.state not in PRECONDITIONS[action]:
        raise ActionNotPermittedError(
            version.id, f"action {action} not permitted in state {version.state}"
        )


def prepend_audit(history: list[Audit], audit: Audit, max_len: int) -> list[Audit]:
    """Return the history with the audit first, dropping the oldest entries."""
    return [audit, *history][:max_len]


class AppVersionLifecycle:
    """Applies lifecycle actions to application versions."""

    def __init__(
        self,
        store: CatalogStore,
        resolver: AppVersionResolver,
        config: CatalogConfig,
    ) -> None:
        """Initialize the lifecycle.

        Args:
            store: Store that persists the versions and applications.
            resolver: Used to find the version in the cache before the store.
            config: Audit length and transition validation settings.
        """
        self._store = store
        self._resolver = resolver
        self._config = config

    async def apply_action(
        self,
        version_id: str,
        action: Action | str,
        operator: str,
        message: str = "",
        operator_type: str | None = None,
    ) -> ApplicationVersion:
        """Apply the action to the version and persist the new audit history.

        Raises:
            NotFoundError: If the version does not exist.
            InvalidArgumentError: If the action is not supported.
            ActionNotPermittedError: If transition validation is enabled and the
                version's state does not permit the action.
        """
        version = await self._resolver.get_app_version(None, version_id)
        action = parse_action(action)
        state = next_state(action)
        if self._config.validate_transitions:
            check_precondition(version, action)

        audit = Audit(
            state=state,
            operator=operator,
            operator_type=operator_type,
            message=shorten(message, self._config.message_max_len),
            time=now(),
        )
        version.audit = prepend_audit(version.audit, audit, self._config.audit_max_len)
        version = await self._store.update(version)
        _LOGGER.info(
            "ApplicationVersion %s %s by %s, state %s",
            version_id,
            action,
            operator,
            state,
        )

        if action in _PUBLISH_ACTIONS:
            await self._sync_app_store_copy(version.application_id)
        return version

    async def apply(
        self, version_id: str, request: ActionRequest
    ) -> ApplicationVersion:
        """Apply an ActionRequest to the version."""
        return await self.apply_action(
            version_id,
            request.action,
            request.operator,
            message=request.message,
            operator_type=request.operator_type,
        )

    async def _sync_app_store_copy(self, app_id: str) -> None:
        """Mirror the application's spec into its app-store copy."""
        app = await self._store.get(Application, app_id)
        store_id = self._config.app_store_id(app_id)
        try:
            app_in_store = await self._store.get(Application, store_id)
        except NotFoundError:
            _LOGGER.warning(
                "App store copy %s of application %s does not exist yet",
                store_id,
                app_id,
            )
            return
        if app.spec == app_in_store.spec:
            return
        patch = {
            "spec": create_merge_patch(app_in_store.spec.to_dict(), app.spec.to_dict())
        }
        await self._store.patch(Application, store_id, patch)
        _LOGGER.debug("Synchronized app store copy %s with %s", store_id, app_id)
