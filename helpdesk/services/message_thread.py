"""
Message thread: the ordered, append-only conversation on a ticket.

Each message is either public or internal. Whether a message is internal is
decided here from the author's role, never taken from the request as-is:
only an administrator asking for an internal note gets one.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.exceptions import NotFoundError, ValidationError
from helpdesk.models.ticket import Ticket
from helpdesk.models.ticket_message import TicketMessage
from helpdesk.security.rbac import Role

logger = logging.getLogger(__name__)


class Visibility(str, Enum):
    PUBLIC = "public"
    INTERNAL = "internal"


def resolve_visibility(author_role: Role, requested: Visibility) -> Visibility:
    """Internal only for administrator + internal; everything else is public."""
    if author_role == Role.ADMINISTRATOR and requested == Visibility.INTERNAL:
        return Visibility.INTERNAL
    return Visibility.PUBLIC


class MessageThread:
    """Append to and read ticket threads for one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        ticket_id: int,
        author_id: int,
        author_role: Role,
        body: str,
        requested_visibility: Visibility = Visibility.PUBLIC,
    ) -> TicketMessage:
        if body is None or not body.strip():
            raise ValidationError(
                "Message content is required",
                errors=[{"field": "message", "message": "must not be empty"}],
            )

        exists = await self.db.execute(select(Ticket.id).where(Ticket.id == ticket_id))
        if exists.scalar_one_or_none() is None:
            raise NotFoundError("Ticket", ticket_id)

        visibility = resolve_visibility(author_role, Visibility(requested_visibility))
        if visibility != requested_visibility:
            logger.info(
                f"Message visibility downgraded to {visibility.value} for user {author_id}",
                extra={"ticket_id": ticket_id, "author_role": author_role.value},
            )

        message = TicketMessage(
            ticket_id=ticket_id,
            author_id=author_id,
            body=body.strip(),
            is_internal=visibility == Visibility.INTERNAL,
            created_at=await self._next_timestamp(ticket_id),
        )
        self.db.add(message)
        await self.db.flush()

        logger.debug(
            "Message appended",
            extra={"ticket_id": ticket_id, "message_id": message.id, "visibility": visibility.value},
        )
        return message

    async def _next_timestamp(self, ticket_id: int) -> datetime:
        """Wall-clock time, bumped past the newest message so order is strict."""
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        result = await self.db.execute(
            select(func.max(TicketMessage.created_at)).where(TicketMessage.ticket_id == ticket_id)
        )
        latest = result.scalar_one_or_none()
        if latest is not None and now <= latest:
            return latest + timedelta(microseconds=1)
        return now

    async def list(self, ticket_id: int, viewer_role: Role) -> list[TicketMessage]:
        """
        Return the thread oldest-first. Members never see internal messages:
        they are dropped from the result, not replaced by placeholders.
        """
        stmt = (
            select(TicketMessage)
            .where(TicketMessage.ticket_id == ticket_id)
            .order_by(TicketMessage.created_at.asc(), TicketMessage.id.asc())
        )
        result = await self.db.execute(stmt)
        messages = list(result.scalars().all())
        if viewer_role != Role.ADMINISTRATOR:
            messages = [m for m in messages if not m.is_internal]
        return messages
