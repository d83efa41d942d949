"""
Ticket registry: owns ticket rows and the status state machine.

Statuses are open, in_progress, resolved and closed. Creation is the only
way into ``open``; after that an administrator may move a ticket to any
status, in either direction, and no status is terminal.

The registry is authorization-agnostic and never commits; the
collaboration service decides who may call what and owns the transaction.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import select, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import settings
from helpdesk.exceptions import ConflictError, NotFoundError, ValidationError
from helpdesk.models.attachment import Attachment
from helpdesk.models.ticket import Ticket
from helpdesk.models.ticket_message import TicketMessage
from helpdesk.models.user import User
from helpdesk.utils.ticket_number import generate_ticket_number

logger = logging.getLogger(__name__)

TICKET_STATUSES = ("open", "in_progress", "resolved", "closed")
TICKET_PRIORITIES = ("low", "medium", "high", "critical")
TICKET_CATEGORIES = ("hardware", "software", "network", "access", "other")
INITIAL_STATUS = "open"
DEFAULT_PRIORITY = "medium"
MAX_TITLE_LENGTH = 200

UNSET = object()


def _require_choice(field: str, value, choices: Sequence[str]) -> str:
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}: {value!r}",
            errors=[{"field": field, "message": f"must be one of {', '.join(choices)}"}],
        )
    return value


def _escape_like(term: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TicketRegistry:
    """Create, read, update and delete tickets for one database session."""

    def __init__(self, db: AsyncSession, max_number_attempts: Optional[int] = None):
        self.db = db
        self.max_number_attempts = max_number_attempts or settings.TICKET_NUMBER_MAX_ATTEMPTS

    async def create(
        self,
        creator_id: int,
        title: Optional[str],
        description: Optional[str],
        category: Optional[str],
        priority: Optional[str] = None,
    ) -> Ticket:
        """File a new ticket. Status is always ``open`` with no assignee."""
        missing = [
            name for name, value in (
                ("title", title), ("description", description), ("category", category),
            )
            if value is None or not str(value).strip()
        ]
        if missing:
            raise ValidationError(
                "Title, description, and category are required",
                errors=[{"field": name, "message": "field required"} for name in missing],
            )

        title = title.strip()
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(
                f"Title must be at most {MAX_TITLE_LENGTH} characters",
                errors=[{"field": "title", "message": "too long"}],
            )
        _require_choice("category", category, TICKET_CATEGORIES)
        priority = _require_choice("priority", priority or DEFAULT_PRIORITY, TICKET_PRIORITIES)

        last_conflict: Optional[ConflictError] = None
        for attempt in range(1, self.max_number_attempts + 1):
            ticket = Ticket(
                ticket_number=generate_ticket_number(),
                creator_id=creator_id,
                title=title,
                description=description.strip(),
                category=category,
                priority=priority,
                status=INITIAL_STATUS,
                assigned_to=None,
            )
            try:
                await self._insert_with_unique_number(ticket)
            except ConflictError as e:
                last_conflict = e
                logger.info(
                    f"Ticket number collision on {ticket.ticket_number}, regenerating",
                    extra={"attempt": attempt},
                )
                continue

            logger.info(
                f"Ticket created: {ticket.ticket_number}",
                extra={"ticket_id": ticket.id, "creator_id": creator_id},
            )
            return ticket

        logger.error(f"Ticket number generation exhausted after {self.max_number_attempts} attempts")
        raise last_conflict

    async def _insert_with_unique_number(self, ticket: Ticket) -> None:
        """
        Insert ``ticket``; ConflictError if its number is already taken.

        Any other integrity failure (an unknown creator, say) propagates
        unchanged.
        """
        number = ticket.ticket_number
        if await self._number_taken(number):
            raise ConflictError(f"Ticket number {number} already exists")

        self.db.add(ticket)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Creation is the first write of its unit of work, so rolling
            # back discards nothing else.
            await self.db.rollback()
            if await self._number_taken(number):
                # Lost a race with a concurrent insert
                raise ConflictError(f"Ticket number {number} already exists") from e
            raise

    async def _number_taken(self, ticket_number: str) -> bool:
        taken = await self.db.execute(
            select(Ticket.id).where(Ticket.ticket_number == ticket_number)
        )
        return taken.scalar_one_or_none() is not None

    async def get(self, ticket_id: int) -> Optional[Ticket]:
        result = await self.db.execute(select(Ticket).where(Ticket.id == ticket_id))
        return result.scalar_one_or_none()

    async def require(self, ticket_id: int) -> Ticket:
        """Get a ticket or raise NotFoundError."""
        ticket = await self.get(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)
        return ticket

    async def list_all(self) -> list[Ticket]:
        result = await self.db.execute(
            select(Ticket).order_by(Ticket.created_at.desc(), Ticket.id.desc())
        )
        return list(result.scalars().all())

    async def list_for_creator(self, creator_id: int) -> list[Ticket]:
        result = await self.db.execute(
            select(Ticket)
            .where(Ticket.creator_id == creator_id)
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        )
        return list(result.scalars().all())

    async def search(self, query: str, creator_id: Optional[int] = None) -> list[Ticket]:
        """Case-insensitive substring match on title, description and number."""
        if not query or not query.strip():
            raise ValidationError("Search query is required")

        search_term = f"%{_escape_like(query.strip())}%"
        stmt = select(Ticket).where(
            or_(
                Ticket.title.ilike(search_term, escape="\\"),
                Ticket.description.ilike(search_term, escape="\\"),
                Ticket.ticket_number.ilike(search_term, escape="\\"),
            )
        )
        if creator_id is not None:
            stmt = stmt.where(Ticket.creator_id == creator_id)

        result = await self.db.execute(stmt.order_by(Ticket.created_at.desc(), Ticket.id.desc()))
        return list(result.scalars().all())

    async def update_status(self, ticket_id: int, new_status: str) -> Ticket:
        return await self.update(ticket_id, status=new_status)

    async def update_priority(self, ticket_id: int, new_priority: str) -> Ticket:
        return await self.update(ticket_id, priority=new_priority)

    async def update_assignee(self, ticket_id: int, admin_id: Optional[int]) -> Ticket:
        return await self.update(ticket_id, assigned_to=admin_id)

    async def update(
        self,
        ticket_id: int,
        status=UNSET,
        priority=UNSET,
        assigned_to=UNSET,
    ) -> Ticket:
        """
        Apply any subset of status, priority and assignee in one write.

        No version check is made: concurrent updates resolve last-writer-wins.
        """
        ticket = await self.require(ticket_id)

        if status is not UNSET:
            _require_choice("status", status, TICKET_STATUSES)
        if priority is not UNSET:
            _require_choice("priority", priority, TICKET_PRIORITIES)
        if assigned_to is not UNSET and assigned_to is not None:
            await self._require_assignable(assigned_to)

        changes = {}
        if status is not UNSET and status != ticket.status:
            changes["status"] = (ticket.status, status)
            ticket.status = status
        if priority is not UNSET and priority != ticket.priority:
            changes["priority"] = (ticket.priority, priority)
            ticket.priority = priority
        if assigned_to is not UNSET and assigned_to != ticket.assigned_to:
            changes["assigned_to"] = (ticket.assigned_to, assigned_to)
            ticket.assigned_to = assigned_to

        if changes:
            await self.db.flush()
            logger.info(
                f"Ticket {ticket.ticket_number} updated: {', '.join(changes)}",
                extra={"ticket_id": ticket.id, "changes": changes},
            )
        return ticket

    async def _require_assignable(self, user_id: int) -> None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None or user.role != "administrator" or not user.is_active:
            raise ValidationError(
                "Tickets can only be assigned to an active administrator",
                errors=[{"field": "assigned_to", "message": "not an active administrator"}],
            )

    async def delete(self, ticket_id: int) -> bool:
        """
        Delete a ticket with its messages and attachment rows.

        Returns False if the ticket did not exist. Attachment blobs must be
        purged by the caller beforehand.
        """
        ticket = await self.get(ticket_id)
        if ticket is None:
            return False

        await self.db.execute(delete(TicketMessage).where(TicketMessage.ticket_id == ticket_id))
        await self.db.execute(delete(Attachment).where(Attachment.ticket_id == ticket_id))
        await self.db.delete(ticket)
        await self.db.flush()

        logger.info(f"Ticket deleted: {ticket.ticket_number}", extra={"ticket_id": ticket_id})
        return True
