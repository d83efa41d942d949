"""
Blob storage for attachment bytes.

The attachment ledger only ever sees ``BlobStore``: put bytes, get a
locator back; read or delete by locator. Locators are opaque strings and
callers must not parse them.

Usage:
    from helpdesk.services.blob_store import get_blob_store

    store = get_blob_store()
    locator = await store.put(b"...")
    data = await store.get(locator)
    await store.delete(locator)
"""

import abc
import asyncio
import logging
import re
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Dict

from helpdesk.config import settings

logger = logging.getLogger(__name__)

_LOCATOR_RE = re.compile(r"^[0-9a-f]{32}$")


class BlobStoreError(Exception):
    """Blob backend failed (I/O error, permission problem, outage)."""


class BlobNotFoundError(BlobStoreError):
    """No blob exists for the given locator."""


class BlobStore(abc.ABC):
    """Abstract blob storage capability."""

    @abc.abstractmethod
    async def put(self, data: bytes) -> str:
        """Store ``data`` and return a new, unique locator."""

    @abc.abstractmethod
    async def get(self, locator: str) -> bytes:
        """Return the bytes for ``locator``; BlobNotFoundError if absent."""

    @abc.abstractmethod
    async def delete(self, locator: str) -> None:
        """Remove the blob; BlobNotFoundError if it was already gone."""

    @staticmethod
    def new_locator() -> str:
        return uuid.uuid4().hex


class LocalBlobStore(BlobStore):
    """
    Filesystem-backed store. Each blob is one file named by its locator
    under ``root``; blocking file I/O runs in a worker thread.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path_for(self, locator: str) -> Path:
        # Locators are generated here, so anything else is not ours to touch
        if not _LOCATOR_RE.match(locator):
            raise BlobNotFoundError(locator)
        return self.root / locator

    def _write(self, locator: str, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path_for(locator)
        tmp_path = path.with_suffix(".part")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)

    async def put(self, data: bytes) -> str:
        locator = self.new_locator()
        try:
            await asyncio.to_thread(self._write, locator, data)
        except OSError as e:
            logger.error(f"Blob write failed: {type(e).__name__}")
            raise BlobStoreError("write failed") from e
        logger.debug("Stored blob", extra={"locator": locator, "size": len(data)})
        return locator

    async def get(self, locator: str) -> bytes:
        path = self._path_for(locator)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise BlobNotFoundError(locator) from e
        except OSError as e:
            logger.error(f"Blob read failed: {type(e).__name__}")
            raise BlobStoreError("read failed") from e

    async def delete(self, locator: str) -> None:
        path = self._path_for(locator)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as e:
            raise BlobNotFoundError(locator) from e
        except OSError as e:
            logger.error(f"Blob delete failed: {type(e).__name__}")
            raise BlobStoreError("delete failed") from e
        logger.debug("Deleted blob", extra={"locator": locator})


class InMemoryBlobStore(BlobStore):
    """In-process store for testing and development."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._blobs)

    def __contains__(self, locator: str) -> bool:
        return locator in self._blobs

    async def put(self, data: bytes) -> str:
        locator = self.new_locator()
        self._blobs[locator] = bytes(data)
        return locator

    async def get(self, locator: str) -> bytes:
        try:
            return self._blobs[locator]
        except KeyError as e:
            raise BlobNotFoundError(locator) from e

    async def delete(self, locator: str) -> None:
        try:
            del self._blobs[locator]
        except KeyError as e:
            raise BlobNotFoundError(locator) from e


@lru_cache()
def get_blob_store() -> BlobStore:
    """Get the configured blob store (cached)."""
    return LocalBlobStore(settings.UPLOAD_DIR)
