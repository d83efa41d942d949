"""
Collaboration service: the single entry point for ticket collaboration.

Every operation takes the caller's Identity, resolves the ticket it touches,
applies the RBAC policy and only then delegates to the registry, the
message thread or the attachment ledger. Those components never check
roles themselves, so nothing else may call them on behalf of a request.

Each write runs in one unit of work: committed on success, rolled back on
failure, with record-store errors surfaced as StorageError.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.exceptions import HelpdeskException, StorageError
from helpdesk.models.attachment import Attachment
from helpdesk.models.ticket import Ticket
from helpdesk.models.ticket_message import TicketMessage
from helpdesk.security.rbac import (
    Identity,
    Permission,
    has_permission,
    require_permission,
    require_ticket_access,
)
from helpdesk.services.attachment_ledger import AttachmentLedger
from helpdesk.services.blob_store import BlobStore, get_blob_store
from helpdesk.services.message_thread import MessageThread, Visibility
from helpdesk.services.ticket_registry import TicketRegistry, UNSET

logger = logging.getLogger(__name__)


@dataclass
class TicketView:
    """A ticket as one caller is allowed to see it."""

    ticket: Ticket
    messages: List[TicketMessage] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)


class CollaborationService:
    """Authorization-enforcing facade over tickets, threads and attachments."""

    def __init__(self, db: AsyncSession, blob_store: Optional[BlobStore] = None, **ledger_options):
        self.db = db
        self.tickets = TicketRegistry(db)
        self.thread = MessageThread(db)
        if blob_store is None:
            blob_store = get_blob_store()
        self.attachments = AttachmentLedger(db, blob_store, **ledger_options)

    @asynccontextmanager
    async def _unit_of_work(self):
        try:
            yield
            await self.db.commit()
        except HelpdeskException:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Record store failure: {type(e).__name__}")
            raise StorageError() from e

    async def _viewable_ticket(self, identity: Identity, ticket_id: int) -> Ticket:
        ticket = await self.tickets.require(ticket_id)
        require_ticket_access(identity, ticket, Permission.VIEW_TICKET)
        return ticket

    # Tickets

    async def create_ticket(
        self,
        identity: Identity,
        title: str,
        description: str,
        category: str,
        priority: Optional[str] = None,
    ) -> Ticket:
        require_permission(identity, Permission.CREATE_TICKET)
        async with self._unit_of_work():
            ticket = await self.tickets.create(identity.user_id, title, description, category, priority)
        await self.db.refresh(ticket)
        return ticket

    async def list_tickets(self, identity: Identity) -> List[Ticket]:
        """Administrators see every ticket; members see the ones they filed."""
        if has_permission(identity, Permission.VIEW_ALL_TICKETS):
            return await self.tickets.list_all()
        return await self.tickets.list_for_creator(identity.user_id)

    async def search_tickets(self, identity: Identity, query: str) -> List[Ticket]:
        creator_id = None if has_permission(identity, Permission.VIEW_ALL_TICKETS) else identity.user_id
        return await self.tickets.search(query, creator_id=creator_id)

    async def get_ticket(self, identity: Identity, ticket_id: int) -> TicketView:
        """Ticket with its thread (internal notes filtered for members) and attachments."""
        ticket = await self._viewable_ticket(identity, ticket_id)
        return TicketView(
            ticket=ticket,
            messages=await self.thread.list(ticket.id, identity.role),
            attachments=await self.attachments.list(ticket.id),
        )

    async def update_ticket(
        self,
        identity: Identity,
        ticket_id: int,
        status=UNSET,
        priority=UNSET,
        assigned_to=UNSET,
    ) -> Ticket:
        ticket = await self.tickets.require(ticket_id)
        require_ticket_access(identity, ticket, Permission.UPDATE_TICKET)
        async with self._unit_of_work():
            ticket = await self.tickets.update(
                ticket.id, status=status, priority=priority, assigned_to=assigned_to,
            )
        await self.db.refresh(ticket)
        return ticket

    async def update_status(self, identity: Identity, ticket_id: int, new_status: str) -> Ticket:
        return await self.update_ticket(identity, ticket_id, status=new_status)

    async def update_priority(self, identity: Identity, ticket_id: int, new_priority: str) -> Ticket:
        return await self.update_ticket(identity, ticket_id, priority=new_priority)

    async def update_assignee(self, identity: Identity, ticket_id: int, admin_id: Optional[int]) -> Ticket:
        return await self.update_ticket(identity, ticket_id, assigned_to=admin_id)

    async def delete_ticket(self, identity: Identity, ticket_id: int) -> bool:
        """
        Delete a ticket, its thread and its attachments. Blobs go first; if
        one cannot be deleted the ticket survives with the remaining
        attachments, and rows whose blobs are already gone stay deleted.
        """
        ticket = await self.tickets.get(ticket_id)
        if ticket is None:
            require_permission(identity, Permission.DELETE_TICKET)
            return False
        require_ticket_access(identity, ticket, Permission.DELETE_TICKET)

        async with self._unit_of_work():
            try:
                await self.attachments.purge_ticket(ticket.id)
            except StorageError:
                await self.db.commit()
                raise
            deleted = await self.tickets.delete(ticket.id)
        return deleted

    # Messages

    async def add_message(
        self,
        identity: Identity,
        ticket_id: int,
        body: str,
        is_internal: bool = False,
    ) -> TicketMessage:
        """Post to the thread. Members' messages are always public."""
        ticket = await self.tickets.require(ticket_id)
        require_ticket_access(identity, ticket, Permission.POST_MESSAGE)

        requested = Visibility.INTERNAL if is_internal is True else Visibility.PUBLIC
        async with self._unit_of_work():
            message = await self.thread.append(
                ticket.id, identity.user_id, identity.role, body, requested,
            )
        await self.db.refresh(message)
        return message

    async def list_messages(self, identity: Identity, ticket_id: int) -> List[TicketMessage]:
        ticket = await self._viewable_ticket(identity, ticket_id)
        return await self.thread.list(ticket.id, identity.role)

    # Attachments

    async def upload_attachment(
        self,
        identity: Identity,
        ticket_id: int,
        filename: str,
        mime_type: str,
        byte_size: int,
        content: bytes,
    ) -> Attachment:
        ticket = await self.tickets.require(ticket_id)
        require_ticket_access(identity, ticket, Permission.UPLOAD_ATTACHMENT)
        locator = None
        try:
            async with self._unit_of_work():
                attachment = await self.attachments.upload(
                    ticket.id, identity.user_id, filename, mime_type, byte_size, content,
                )
                locator = attachment.locator
        except StorageError:
            # The row was flushed but never committed
            if locator is not None:
                logger.error(f"Attachment commit failed for ticket {ticket_id}, removing blob")
                await self.attachments.discard_blob(locator)
            raise
        await self.db.refresh(attachment)
        return attachment

    async def list_attachments(self, identity: Identity, ticket_id: int) -> List[Attachment]:
        ticket = await self._viewable_ticket(identity, ticket_id)
        return await self.attachments.list(ticket.id)

    async def list_all_attachments(self, identity: Identity) -> List[Attachment]:
        require_permission(identity, Permission.VIEW_ALL_ATTACHMENTS)
        return await self.attachments.list_all()

    async def download_attachment(self, identity: Identity, attachment_id: int) -> Tuple[Attachment, bytes]:
        attachment = await self.attachments.require(attachment_id)
        await self._viewable_ticket(identity, attachment.ticket_id)
        return attachment, await self.attachments.read(attachment)

    async def delete_attachment(self, identity: Identity, attachment_id: int) -> bool:
        require_permission(identity, Permission.DELETE_ATTACHMENT)
        async with self._unit_of_work():
            deleted = await self.attachments.delete(attachment_id)
        return deleted
