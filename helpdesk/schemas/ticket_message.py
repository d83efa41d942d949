from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from helpdesk.schemas.auth import UserSummary


class TicketMessageCreate(BaseModel):
    """Schema for posting to a ticket thread.

    ``is_internal`` is only a request; the thread decides the stored visibility.
    """

    message: str = Field(..., min_length=1)
    is_internal: bool = False


class TicketMessageResponse(BaseModel):
    """Schema for a thread entry."""

    id: int
    ticket_id: int
    user_id: int
    message: str
    is_internal: bool
    created_at: datetime
    user: Optional[UserSummary] = None

    @classmethod
    def from_model(cls, message) -> "TicketMessageResponse":
        """Create response from SQLAlchemy model."""
        return cls(
            id=message.id,
            ticket_id=message.ticket_id,
            user_id=message.author_id,
            message=message.body,
            is_internal=message.is_internal,
            created_at=message.created_at,
            user=UserSummary.model_validate(message.author) if message.author else None,
        )
