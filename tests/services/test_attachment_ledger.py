"""
Tests for the attachment ledger: upload policy, blob/row ordering and
failure handling against a misbehaving blob store.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import select

from helpdesk.exceptions import (
    NotFoundError,
    PayloadTooLargeError,
    StorageError,
    UnsupportedTypeError,
    ValidationError,
)
from helpdesk.models.attachment import Attachment
from helpdesk.services.attachment_ledger import AttachmentLedger
from helpdesk.services.blob_store import BlobStore, BlobStoreError
from helpdesk.services.ticket_registry import TicketRegistry

MAX_SIZE = 5 * 1024 * 1024


@pytest_asyncio.fixture
async def ticket(test_db, member):
    ticket = await TicketRegistry(test_db).create(
        member.id, "Scanner jams", "Paper jams on every scan", "hardware",
    )
    await test_db.commit()
    return ticket


def _failing_store(**failures) -> MagicMock:
    """A BlobStore whose named methods raise BlobStoreError."""
    store = MagicMock(spec=BlobStore)
    store.put = AsyncMock(return_value=BlobStore.new_locator())
    store.get = AsyncMock(return_value=b"")
    store.delete = AsyncMock(return_value=None)
    for method in failures:
        getattr(store, method).side_effect = BlobStoreError(f"{method} failed")
    return store


class TestValidate:
    """Tests for AttachmentLedger.validate"""

    def test_size_at_limit_accepted(self, blob_store):
        ledger = AttachmentLedger(MagicMock(), blob_store)
        ledger.validate("scan.pdf", "application/pdf", MAX_SIZE)

    def test_size_over_limit_rejected(self, blob_store):
        ledger = AttachmentLedger(MagicMock(), blob_store)
        with pytest.raises(PayloadTooLargeError):
            ledger.validate("scan.pdf", "application/pdf", MAX_SIZE + 1)

    def test_unsupported_type_rejected(self, blob_store):
        ledger = AttachmentLedger(MagicMock(), blob_store)
        with pytest.raises(UnsupportedTypeError):
            ledger.validate("run.bin", "application/x-executable", 10)

    def test_blank_filename_rejected(self, blob_store):
        ledger = AttachmentLedger(MagicMock(), blob_store)
        with pytest.raises(ValidationError):
            ledger.validate("  ", "text/plain", 10)

    def test_custom_policy(self, blob_store):
        ledger = AttachmentLedger(MagicMock(), blob_store, max_size=10, allowed_types=["text/csv"])
        ledger.validate("data.csv", "text/csv", 10)
        with pytest.raises(UnsupportedTypeError):
            ledger.validate("notes.txt", "text/plain", 1)
        with pytest.raises(PayloadTooLargeError):
            ledger.validate("data.csv", "text/csv", 11)


class TestUpload:
    """Tests for AttachmentLedger.upload"""

    @pytest.mark.asyncio
    async def test_upload_and_download_round_trip(self, test_db, blob_store, member, ticket):
        ledger = AttachmentLedger(test_db, blob_store)
        attachment = await ledger.upload(
            ticket.id, member.id, "error.txt", "text/plain", 11, b"stack trace",
        )

        assert attachment.file_size == 11
        assert attachment.locator in blob_store

        loaded, data = await ledger.download(attachment.id)
        assert loaded.original_filename == "error.txt"
        assert data == b"stack trace"

    @pytest.mark.asyncio
    async def test_oversize_rejected_before_blob_write(self, test_db, member, ticket):
        store = _failing_store()
        ledger = AttachmentLedger(test_db, store)

        with pytest.raises(PayloadTooLargeError):
            await ledger.upload(
                ticket.id, member.id, "big.zip", "application/zip", MAX_SIZE + 1, b"",
            )
        store.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_actual_content_size_checked(self, test_db, blob_store, member, ticket):
        ledger = AttachmentLedger(test_db, blob_store, max_size=4)
        with pytest.raises(PayloadTooLargeError):
            await ledger.upload(ticket.id, member.id, "a.txt", "text/plain", 1, b"too long")
        assert len(blob_store) == 0

    @pytest.mark.asyncio
    async def test_unsupported_type_rejected_before_blob_write(self, test_db, member, ticket):
        store = _failing_store()
        ledger = AttachmentLedger(test_db, store)

        with pytest.raises(UnsupportedTypeError):
            await ledger.upload(
                ticket.id, member.id, "run.bin", "application/x-executable", 3, b"elf",
            )
        store.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blob_write_failure(self, test_db, member, ticket):
        ledger = AttachmentLedger(test_db, _failing_store(put=True))

        with pytest.raises(StorageError):
            await ledger.upload(ticket.id, member.id, "a.txt", "text/plain", 1, b"a")
        assert await ledger.list(ticket.id) == []

    @pytest.mark.asyncio
    async def test_metadata_failure_removes_blob(self, test_db, blob_store, member):
        ledger = AttachmentLedger(test_db, blob_store)

        # No such ticket: the foreign key rejects the row after the blob is written
        with pytest.raises(StorageError):
            await ledger.upload(9999, member.id, "a.txt", "text/plain", 1, b"a")
        assert len(blob_store) == 0


class TestDelete:
    """Tests for AttachmentLedger.delete and purge_ticket"""

    @pytest.mark.asyncio
    async def test_delete_removes_blob_then_row(self, test_db, blob_store, member, ticket):
        ledger = AttachmentLedger(test_db, blob_store)
        attachment = await ledger.upload(ticket.id, member.id, "a.txt", "text/plain", 1, b"a")
        locator = attachment.locator

        assert await ledger.delete(attachment.id) is True
        assert locator not in blob_store
        assert await ledger.get(attachment.id) is None

    @pytest.mark.asyncio
    async def test_delete_unknown_attachment(self, test_db, blob_store):
        ledger = AttachmentLedger(test_db, blob_store)
        assert await ledger.delete(31337) is False

    @pytest.mark.asyncio
    async def test_blob_delete_failure_keeps_row(self, test_db, member, ticket):
        test_db.add(Attachment(
            ticket_id=ticket.id,
            original_filename="a.txt",
            locator=BlobStore.new_locator(),
            file_size=1,
            mime_type="text/plain",
            uploaded_by=member.id,
        ))
        await test_db.commit()
        (attachment,) = (await test_db.execute(select(Attachment))).scalars().all()

        ledger = AttachmentLedger(test_db, _failing_store(delete=True))
        with pytest.raises(StorageError):
            await ledger.delete(attachment.id)

        assert await ledger.get(attachment.id) is not None

    @pytest.mark.asyncio
    async def test_missing_blob_counts_as_deleted(self, test_db, blob_store, member, ticket):
        ledger = AttachmentLedger(test_db, blob_store)
        attachment = await ledger.upload(ticket.id, member.id, "a.txt", "text/plain", 1, b"a")
        await blob_store.delete(attachment.locator)

        assert await ledger.delete(attachment.id) is True
        assert await ledger.get(attachment.id) is None

    @pytest.mark.asyncio
    async def test_purge_ticket(self, test_db, blob_store, member, ticket):
        ledger = AttachmentLedger(test_db, blob_store)
        for name in ("a.txt", "b.txt", "c.txt"):
            await ledger.upload(ticket.id, member.id, name, "text/plain", 1, b"x")

        assert await ledger.purge_ticket(ticket.id) == 3
        assert len(blob_store) == 0
        assert await ledger.list(ticket.id) == []


class TestRead:
    """Tests for reading attachment bytes."""

    @pytest.mark.asyncio
    async def test_dangling_locator_is_not_found(self, test_db, blob_store, member, ticket):
        ledger = AttachmentLedger(test_db, blob_store)
        attachment = await ledger.upload(ticket.id, member.id, "a.txt", "text/plain", 1, b"a")
        await blob_store.delete(attachment.locator)

        with pytest.raises(NotFoundError):
            await ledger.download(attachment.id)

    @pytest.mark.asyncio
    async def test_unknown_attachment_is_not_found(self, test_db, blob_store):
        ledger = AttachmentLedger(test_db, blob_store)
        with pytest.raises(NotFoundError):
            await ledger.download(1)

    @pytest.mark.asyncio
    async def test_blob_read_failure(self, test_db, member, ticket):
        store = _failing_store(get=True)
        ledger = AttachmentLedger(test_db, store)
        attachment = await ledger.upload(ticket.id, member.id, "a.txt", "text/plain", 1, b"a")

        with pytest.raises(StorageError):
            await ledger.read(attachment)

    @pytest.mark.asyncio
    async def test_list_newest_first(self, test_db, blob_store, member, ticket):
        ledger = AttachmentLedger(test_db, blob_store)
        first = await ledger.upload(ticket.id, member.id, "a.txt", "text/plain", 1, b"a")
        second = await ledger.upload(ticket.id, member.id, "b.txt", "text/plain", 1, b"b")

        assert [a.id for a in await ledger.list(ticket.id)] == [second.id, first.id]
