"""
Attachment ledger: metadata rows binding uploaded files to tickets.

Bytes live in a BlobStore; the ledger keeps the locator. Two ordering rules
hold the pair together without a cross-store transaction:

- upload: validate everything, then write the blob, then the row. If the
  row cannot be written the blob is deleted again.
- delete: delete the blob, then the row. If the blob delete fails the row
  stays, so an orphaned-but-referenced blob is preferred over a row that
  points nowhere.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from helpdesk.config import settings
from helpdesk.exceptions import (
    NotFoundError,
    PayloadTooLargeError,
    StorageError,
    UnsupportedTypeError,
    ValidationError,
)
from helpdesk.models.attachment import Attachment
from helpdesk.services.blob_store import BlobNotFoundError, BlobStore, BlobStoreError

logger = logging.getLogger(__name__)


class AttachmentLedger:
    """Upload, list, download and delete ticket attachments."""

    def __init__(
        self,
        db: AsyncSession,
        blob_store: BlobStore,
        max_size: Optional[int] = None,
        allowed_types: Optional[Sequence[str]] = None,
    ):
        self.db = db
        self.blob_store = blob_store
        self.max_size = max_size if max_size is not None else settings.MAX_ATTACHMENT_SIZE
        self.allowed_types = frozenset(allowed_types or settings.ALLOWED_ATTACHMENT_TYPES)

    def validate(self, filename: str, mime_type: str, byte_size: int) -> None:
        """Raise before any write if the upload breaks size or type policy."""
        if not filename or not filename.strip():
            raise ValidationError(
                "File name is required",
                errors=[{"field": "filename", "message": "must not be empty"}],
            )
        if byte_size is None or byte_size < 0:
            raise ValidationError("File size is required")
        if byte_size > self.max_size:
            raise PayloadTooLargeError(self.max_size)
        if mime_type not in self.allowed_types:
            raise UnsupportedTypeError(mime_type)

    async def upload(
        self,
        ticket_id: int,
        uploader_id: int,
        filename: str,
        mime_type: str,
        byte_size: int,
        content: bytes,
    ) -> Attachment:
        self.validate(filename, mime_type, byte_size)
        # The declared size is client input; the bytes are what get stored
        if len(content) > self.max_size:
            raise PayloadTooLargeError(self.max_size)

        try:
            locator = await self.blob_store.put(content)
        except BlobStoreError as e:
            logger.error(f"Attachment blob write failed for ticket {ticket_id}: {e}")
            raise StorageError("Failed to store attachment") from e

        attachment = Attachment(
            ticket_id=ticket_id,
            original_filename=filename.strip(),
            locator=locator,
            file_size=len(content),
            mime_type=mime_type,
            uploaded_by=uploader_id,
        )
        self.db.add(attachment)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Attachment metadata write failed for ticket {ticket_id}, removing blob")
            await self.discard_blob(locator)
            raise StorageError("Failed to record attachment") from e

        logger.info(
            f"Attachment uploaded to ticket {ticket_id}: {attachment.id}",
            extra={"ticket_id": ticket_id, "attachment_id": attachment.id, "size": len(content)},
        )
        return attachment

    async def discard_blob(self, locator: str) -> None:
        """Compensating delete for a blob whose row was never committed."""
        try:
            await self.blob_store.delete(locator)
        except BlobNotFoundError:
            pass
        except BlobStoreError:
            logger.exception("Compensating blob delete failed; blob is orphaned")

    async def get(self, attachment_id: int) -> Optional[Attachment]:
        result = await self.db.execute(select(Attachment).where(Attachment.id == attachment_id))
        return result.scalar_one_or_none()

    async def require(self, attachment_id: int) -> Attachment:
        """Get attachment metadata or raise NotFoundError."""
        attachment = await self.get(attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment", attachment_id)
        return attachment

    async def list(self, ticket_id: int) -> List[Attachment]:
        """All attachments of a ticket, newest first. No visibility filter applies."""
        result = await self.db.execute(
            select(Attachment)
            .where(Attachment.ticket_id == ticket_id)
            .order_by(Attachment.uploaded_at.desc(), Attachment.id.desc())
        )
        return list(result.scalars().all())

    async def list_all(self) -> List[Attachment]:
        """Every attachment with its ticket loaded, for the admin overview."""
        result = await self.db.execute(
            select(Attachment)
            .options(selectinload(Attachment.ticket))
            .order_by(Attachment.uploaded_at.desc(), Attachment.id.desc())
        )
        return list(result.scalars().all())

    async def download(self, attachment_id: int) -> Tuple[Attachment, bytes]:
        """
        Return metadata and bytes. A missing row and a dangling locator both
        surface as NotFoundError.
        """
        attachment = await self.require(attachment_id)
        return attachment, await self.read(attachment)

    async def read(self, attachment: Attachment) -> bytes:
        try:
            return await self.blob_store.get(attachment.locator)
        except BlobNotFoundError as e:
            logger.warning(
                f"Attachment {attachment.id} references a missing blob",
                extra={"attachment_id": attachment.id, "ticket_id": attachment.ticket_id},
            )
            raise NotFoundError("Attachment", attachment.id) from e
        except BlobStoreError as e:
            raise StorageError("Failed to read attachment") from e

    async def delete(self, attachment_id: int) -> bool:
        """
        Delete blob then metadata. Returns False if there is no such
        attachment; raises StorageError (row intact) if the blob delete fails.
        """
        attachment = await self.get(attachment_id)
        if attachment is None:
            return False

        await self._delete_blob(attachment)
        await self.db.delete(attachment)
        await self.db.flush()

        logger.info(
            f"Attachment deleted: {attachment_id}",
            extra={"attachment_id": attachment_id, "ticket_id": attachment.ticket_id},
        )
        return True

    async def _delete_blob(self, attachment: Attachment) -> None:
        try:
            await self.blob_store.delete(attachment.locator)
        except BlobNotFoundError:
            # Already gone: the row is now dangling, so removing it is the fix
            logger.warning(f"Blob for attachment {attachment.id} was already missing")
        except BlobStoreError as e:
            logger.error(
                f"Blob delete failed for attachment {attachment.id}; metadata kept",
                extra={"attachment_id": attachment.id},
            )
            raise StorageError("Failed to delete attachment") from e

    async def purge_ticket(self, ticket_id: int) -> int:
        """
        Delete the blob and row of every attachment on a ticket, one by one.

        Stops at the first blob failure with StorageError. Row deletions for
        blobs already removed are flushed before the error propagates, and
        the caller must commit them so no row outlives its blob.
        """
        attachments = await self.list(ticket_id)
        for attachment in attachments:
            await self._delete_blob(attachment)
            await self.db.delete(attachment)
            await self.db.flush()
        if attachments:
            logger.info(f"Purged {len(attachments)} attachments from ticket {ticket_id}")
        return len(attachments)
