"""Module for in memory catalog store."""

import asyncio
from collections import defaultdict
from collections.abc import AsyncGenerator, Callable
import logging
from typing import Any, DefaultDict, TypeVar

from mashumaro.exceptions import MissingField, InvalidFieldValue

from app_catalog.exceptions import (
    AlreadyExistsError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)
from app_catalog.manifest import CatalogObject

from .patch import apply_merge_patch
from .store import CatalogStore, StoreEvent, WatchEvent, match_labels

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=CatalogObject)

# Fields owned by the store that a patch may not change
_PROTECTED_FIELDS = ("id", "resource_version")


class InMemoryCatalogStore(CatalogStore):
    """In-memory implementation of the CatalogStore interface.

    Records are held in their serialized dict form keyed by kind and id so that
    callers never share mutable state with the store. Supports event listeners
    for record additions, updates and deletions.
    """

    def __init__(self) -> None:
        """Initialize the InMemoryCatalogStore."""
        self._objects: dict[tuple[str, str], dict[str, Any]] = {}
        self._listeners: DefaultDict[
            StoreEvent, list[Callable[[CatalogObject], None]]
        ] = defaultdict(list)

    def _decode(self, cls: type[T], data: dict[str, Any]) -> T:
        try:
            return cls.from_dict(data)
        except (MissingField, InvalidFieldValue) as err:
            raise InvalidArgumentError(f"Invalid {cls.kind}: {err}") from err

    def _stored(self, cls: type[T], object_id: str) -> dict[str, Any]:
        if (data := self._objects.get((cls.kind, object_id))) is None:
            raise NotFoundError(f"{cls.kind} {object_id} not found")
        return data

    async def get(self, cls: type[T], object_id: str) -> T:
        """Retrieve a record by kind and id."""
        return self._decode(cls, self._stored(cls, object_id))

    async def list(
        self, cls: type[T], selector: dict[str, str] | None = None
    ) -> list[T]:
        """List records of a kind whose labels match the selector."""
        results = []
        for (kind, _), data in list(self._objects.items()):
            if kind != cls.kind:
                continue
            obj = self._decode(cls, data)
            if match_labels(obj.labels, selector):
                results.append(obj)
        return results

    async def create(self, obj: T) -> T:
        """Create a new record."""
        key = (obj.kind, obj.id)
        if key in self._objects:
            raise AlreadyExistsError(f"{obj.kind} {obj.id} already exists")
        data = obj.to_dict()
        data["resource_version"] = 1
        _LOGGER.debug("Creating %s %s in store", obj.kind, obj.id)
        return self._write(type(obj), key, data, StoreEvent.ADDED)

    async def update(self, obj: T) -> T:
        """Replace an existing record."""
        stored = self._stored(type(obj), obj.id)
        if stored["resource_version"] != obj.resource_version:
            raise ConflictError(
                f"{obj.kind} {obj.id} was modified (version {obj.resource_version} "
                f"is stale, current {stored['resource_version']})"
            )
        data = obj.to_dict()
        data["resource_version"] = stored["resource_version"] + 1
        _LOGGER.debug("Updating %s %s in store", obj.kind, obj.id)
        return self._write(type(obj), (obj.kind, obj.id), data, StoreEvent.UPDATED)

    async def patch(
        self,
        cls: type[T],
        object_id: str,
        patch: dict[str, Any],
        resource_version: int | None = None,
    ) -> T:
        """Apply a JSON merge patch to an existing record."""
        stored = self._stored(cls, object_id)
        current = stored["resource_version"]
        if resource_version is not None and current != resource_version:
            raise ConflictError(
                f"{cls.kind} {object_id} was modified (version {resource_version} "
                f"is stale, current {current})"
            )
        patch = {k: v for k, v in patch.items() if k not in _PROTECTED_FIELDS}
        data = apply_merge_patch(stored, patch)
        data["resource_version"] = current + 1
        _LOGGER.debug("Patching %s %s in store: %s", cls.kind, object_id, patch)
        return self._write(cls, (cls.kind, object_id), data, StoreEvent.UPDATED)

    async def delete(self, cls: type[T], object_id: str) -> None:
        """Delete a record."""
        obj = self._decode(cls, self._stored(cls, object_id))
        del self._objects[(cls.kind, object_id)]
        _LOGGER.debug("Deleted %s %s from store", cls.kind, object_id)
        self._fire_event(StoreEvent.DELETED, obj)

    def _write(
        self,
        cls: type[T],
        key: tuple[str, str],
        data: dict[str, Any],
        event: StoreEvent,
    ) -> T:
        # Decode before writing so an invalid record never lands in the store
        obj = self._decode(cls, data)
        self._objects[key] = data
        self._fire_event(event, obj)
        return self._decode(cls, data)

    def add_listener(
        self,
        event: StoreEvent,
        callback: Callable[[CatalogObject], None],
    ) -> Callable[[], None]:
        """Register a callback for a specific event (added, updated, deleted)."""

        def remove() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        self._listeners[event].append(callback)
        return remove

    def _fire_event(self, event: StoreEvent, obj: CatalogObject) -> None:
        for cb in list(self._listeners[event]):  # Iterate over a copy for safe removal
            try:
                cb(obj)
            except Exception:
                _LOGGER.exception("Store listener callback failed for event %s", event)

    async def watch(self, cls: type[T]) -> AsyncGenerator[WatchEvent[T]]:
        """
        Watch for changes to records of a specific kind.

        Existing records are yielded first as ADDED events. Changes that happen
        while the consumer is busy are queued and delivered in order.
        """
        queue: asyncio.Queue[WatchEvent[T]] = asyncio.Queue()

        def make_callback(event: StoreEvent) -> Callable[[CatalogObject], None]:
            def callback(obj: CatalogObject) -> None:
                if isinstance(obj, cls):
                    queue.put_nowait(WatchEvent(event, obj))

            return callback

        # Register before listing so that no change is missed in between
        removers = [
            self.add_listener(event, make_callback(event)) for event in StoreEvent
        ]
        try:
            for obj in await self.list(cls):
                yield WatchEvent(StoreEvent.ADDED, obj)
            while True:
                yield await queue.get()
                queue.task_done()
        except asyncio.CancelledError:
            _LOGGER.debug("watch for kind '%s' cancelled.", cls.kind)
            raise
        finally:
            _LOGGER.debug("Cleaning up listeners for watch (kind: %s)", cls.kind)
            for remove in removers:
                remove()
