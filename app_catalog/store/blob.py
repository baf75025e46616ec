"""Blob storage for chart package payloads.

Chart packages are kept out of the catalog store and are addressed by the
workspace that owns the version and the version id.
"""

from abc import ABC, abstractmethod
import logging
from pathlib import Path
import posixpath

import aiofiles
import aiofiles.os

from app_catalog.exceptions import InvalidArgumentError, NotFoundError, UnavailableError

__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
    "LocalBlobStore",
    "blob_key",
]

_LOGGER = logging.getLogger(__name__)


def blob_key(workspace: str | None, version_id: str) -> str:
    """Return the storage key of the chart package for a version."""
    if not version_id:
        raise InvalidArgumentError("Blob key requires a version id")
    return posixpath.join(workspace or "", version_id)


class BlobStore(ABC):
    """Content storage for chart packages."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store the payload under the key, replacing any previous payload."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the payload stored under the key.

        Raises:
            NotFoundError: If nothing is stored under the key.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the payload stored under the key.

        Raises:
            NotFoundError: If nothing is stored under the key.
        """


class InMemoryBlobStore(BlobStore):
    """Blob store holding payloads in a dict."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)

    async def get(self, key: str) -> bytes:
        if (data := self._blobs.get(key)) is None:
            raise NotFoundError(f"Blob {key} not found")
        return data

    async def delete(self, key: str) -> None:
        if self._blobs.pop(key, None) is None:
            raise NotFoundError(f"Blob {key} not found")


class LocalBlobStore(BlobStore):
    """Blob store writing each payload to a file under a root directory."""

    def __init__(self, root: Path) -> None:
        """Initialize LocalBlobStore.

        Args:
            root: Directory that holds the payloads. Keys are relative paths.
        """
        self._root = root

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root.resolve()):
            raise InvalidArgumentError(f"Blob key {key} escapes the store root")
        return path

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        _LOGGER.debug("Writing blob %s (%d bytes)", path, len(data))
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, mode="wb") as blob_file:
                await blob_file.write(data)
        except OSError as err:
            raise UnavailableError(f"Unable to write blob {key}: {err}") from err

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            async with aiofiles.open(path, mode="rb") as blob_file:
                return await blob_file.read()
        except FileNotFoundError as err:
            raise NotFoundError(f"Blob {key} not found") from err
        except OSError as err:
            raise UnavailableError(f"Unable to read blob {key}: {err}") from err

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as err:
            raise NotFoundError(f"Blob {key} not found") from err
        except OSError as err:
            raise UnavailableError(f"Unable to delete blob {key}: {err}") from err
