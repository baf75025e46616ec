"""Tests for chart package blob stores."""

from pathlib import Path

import pytest

from app_catalog.exceptions import InvalidArgumentError, NotFoundError
from app_catalog.store import BlobStore, InMemoryBlobStore, LocalBlobStore, blob_key


def test_blob_key() -> None:
    """Test keys of chart packages."""
    assert blob_key("ws1", "appv-1") == "ws1/appv-1"
    assert blob_key(None, "appv-1") == "appv-1"
    with pytest.raises(InvalidArgumentError):
        blob_key("ws1", "")


@pytest.fixture(params=["memory", "local"])
def blob_store(request: pytest.FixtureRequest, tmp_path: Path) -> BlobStore:
    """Create each kind of blob store."""
    if request.param == "memory":
        return InMemoryBlobStore()
    return LocalBlobStore(tmp_path / "blobs")


async def test_put_get_delete(blob_store: BlobStore) -> None:
    """Test storing, reading and deleting a payload."""
    key = blob_key("ws1", "appv-1")
    await blob_store.put(key, b"chart-data")
    assert await blob_store.get(key) == b"chart-data"

    await blob_store.put(key, b"replaced")
    assert await blob_store.get(key) == b"replaced"

    await blob_store.delete(key)
    with pytest.raises(NotFoundError):
        await blob_store.get(key)
    with pytest.raises(NotFoundError):
        await blob_store.delete(key)


async def test_missing_blob(blob_store: BlobStore) -> None:
    """Test reading a key that was never written."""
    with pytest.raises(NotFoundError, match="appv-missing"):
        await blob_store.get("appv-missing")


async def test_local_files(tmp_path: Path) -> None:
    """Test that the local store writes files under its root."""
    blob_store = LocalBlobStore(tmp_path)
    await blob_store.put("ws1/appv-1", b"chart-data")
    assert (tmp_path / "ws1" / "appv-1").read_bytes() == b"chart-data"


async def test_local_key_escape(tmp_path: Path) -> None:
    """Test that keys can't address files outside the root."""
    blob_store = LocalBlobStore(tmp_path / "blobs")
    with pytest.raises(InvalidArgumentError, match="escapes"):
        await blob_store.put("../outside", b"data")
