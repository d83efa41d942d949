"""Ticket schemas for request/response validation."""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional, Literal

from helpdesk.schemas.auth import UserSummary
from helpdesk.schemas.ticket_message import TicketMessageResponse
from helpdesk.schemas.attachment import AttachmentResponse


TicketStatus = Literal["open", "in_progress", "resolved", "closed"]
TicketPriority = Literal["low", "medium", "high", "critical"]
TicketCategory = Literal["hardware", "software", "network", "access", "other"]


class TicketCreate(BaseModel):
    """Schema for filing a ticket. New tickets always start open and unassigned."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: TicketCategory
    priority: TicketPriority = "medium"


class TicketUpdate(BaseModel):
    """Administrator triage update (all fields optional, last writer wins)."""

    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assigned_to: Optional[int] = None


class TicketResponse(BaseModel):
    """Schema for ticket response."""

    id: int
    ticket_number: str
    title: str
    description: str
    category: str
    status: str
    priority: str
    creator_id: int
    assigned_to: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TicketDetailResponse(TicketResponse):
    """Ticket with its role-filtered thread and attachments."""

    creator: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None
    messages: list[TicketMessageResponse] = []
    attachments: list[AttachmentResponse] = []

    @classmethod
    def from_view(cls, view) -> "TicketDetailResponse":
        """Build from a collaboration TicketView."""
        ticket = view.ticket
        return cls(
            **TicketResponse.model_validate(ticket).model_dump(),
            creator=UserSummary.model_validate(ticket.creator) if ticket.creator else None,
            assignee=UserSummary.model_validate(ticket.assignee) if ticket.assignee else None,
            messages=[TicketMessageResponse.from_model(m) for m in view.messages],
            attachments=[AttachmentResponse.model_validate(a) for a in view.attachments],
        )


class TicketListResponse(BaseModel):
    """Ticket list response."""

    items: list[TicketResponse]
    total: int
