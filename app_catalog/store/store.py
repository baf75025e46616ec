"""Catalog store interface with event notification support."""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, TYPE_CHECKING

from app_catalog.manifest import CatalogObject

T = TypeVar("T", bound=CatalogObject)


class StoreEvent(str, Enum):
    """Enum for store events."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class WatchEvent(Generic[T]):
    """A change to a record of the watched kind."""

    event: StoreEvent
    """The type of change."""

    object: T
    """The record after the change, or the last known record when deleted."""


def match_labels(labels: dict[str, str], selector: dict[str, str] | None) -> bool:
    """Return True if every selector key is present with the same value."""
    if not selector:
        return True
    return all(labels.get(key) == value for key, value in selector.items())


class CatalogStore(ABC):
    """Abstract base class for the authoritative store of catalog records."""

    @abstractmethod
    async def get(self, cls: type[T], object_id: str) -> T:
        """Retrieve a record by kind and id.

        Raises:
            NotFoundError: If no such record exists.
        """

    @abstractmethod
    async def list(
        self, cls: type[T], selector: dict[str, str] | None = None
    ) -> list[T]:
        """List records of a kind whose labels match the selector."""

    @abstractmethod
    async def create(self, obj: T) -> T:
        """Create a new record.

        Raises:
            AlreadyExistsError: If a record with the same id exists.
        """

    @abstractmethod
    async def update(self, obj: T) -> T:
        """Replace an existing record.

        Raises:
            NotFoundError: If the record does not exist.
            ConflictError: If the record was modified since it was read.
        """

    @abstractmethod
    async def patch(
        self,
        cls: type[T],
        object_id: str,
        patch: dict[str, Any],
        resource_version: int | None = None,
    ) -> T:
        """Apply a JSON merge patch to an existing record.

        When a resource_version is supplied the patch fails with a ConflictError
        if the stored record has a different version.
        """

    @abstractmethod
    async def delete(self, cls: type[T], object_id: str) -> None:
        """Delete a record.

        Raises:
            NotFoundError: If the record does not exist.
        """

    @abstractmethod
    def add_listener(
        self,
        event: StoreEvent,
        callback: Callable[[CatalogObject], None],
    ) -> Callable[[], None]:
        """Register a callback invoked with the record on each event.

        Returns a callable that can be called to remove the listener.
        """

    @abstractmethod
    async def watch(self, cls: type[T]) -> AsyncGenerator[WatchEvent[T]]:
        """
        Watch for changes to records of a specific kind.

        This is an asynchronous iterator that first yields an ADDED event for
        every existing record of the kind, then yields events in the order the
        changes happen until the generator is closed or cancelled.
        """
        if TYPE_CHECKING:
            yield None  # type: ignore[misc]
