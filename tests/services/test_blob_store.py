"""
Tests for blob store backends.
"""

import pytest

from helpdesk.services.blob_store import (
    BlobNotFoundError,
    InMemoryBlobStore,
    LocalBlobStore,
)


@pytest.fixture(params=["memory", "local"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryBlobStore()
    return LocalBlobStore(tmp_path / "uploads")


class TestBlobStore:
    """Behaviour shared by every backend."""

    @pytest.mark.asyncio
    async def test_put_get_delete(self, store):
        locator = await store.put(b"%PDF-1.7")
        assert await store.get(locator) == b"%PDF-1.7"

        await store.delete(locator)
        with pytest.raises(BlobNotFoundError):
            await store.get(locator)

    @pytest.mark.asyncio
    async def test_locators_are_unique(self, store):
        locators = {await store.put(b"same bytes") for _ in range(5)}
        assert len(locators) == 5

    @pytest.mark.asyncio
    async def test_delete_missing_blob(self, store):
        locator = await store.put(b"x")
        await store.delete(locator)
        with pytest.raises(BlobNotFoundError):
            await store.delete(locator)


class TestLocalBlobStore:
    """Filesystem specifics."""

    @pytest.mark.asyncio
    async def test_blob_written_under_root(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        locator = await store.put(b"hello")

        assert (tmp_path / locator).read_bytes() == b"hello"
        assert not list(tmp_path.glob("*.part"))

    @pytest.mark.asyncio
    async def test_foreign_locator_rejected(self, tmp_path):
        (tmp_path / "secret.txt").write_bytes(b"do not serve")
        store = LocalBlobStore(tmp_path / "uploads")

        with pytest.raises(BlobNotFoundError):
            await store.get("../secret.txt")
