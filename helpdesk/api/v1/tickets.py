"""Tickets API - filing, triage and the ticket conversation thread."""

from fastapi import APIRouter, status, Query
import logging

from helpdesk.api.deps import Collaboration, CurrentIdentity
from helpdesk.exceptions import NotFoundError
from helpdesk.schemas.ticket import (
    TicketCreate,
    TicketUpdate,
    TicketResponse,
    TicketDetailResponse,
    TicketListResponse,
)
from helpdesk.schemas.ticket_message import TicketMessageCreate, TicketMessageResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _list_response(tickets) -> TicketListResponse:
    return TicketListResponse(
        items=[TicketResponse.model_validate(t) for t in tickets],
        total=len(tickets),
    )


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    ticket_data: TicketCreate,
    identity: CurrentIdentity,
    service: Collaboration,
):
    """File a new ticket owned by the caller."""
    ticket = await service.create_ticket(
        identity,
        title=ticket_data.title,
        description=ticket_data.description,
        category=ticket_data.category,
        priority=ticket_data.priority,
    )
    return TicketResponse.model_validate(ticket)


@router.get("", response_model=TicketListResponse)
async def list_tickets(identity: CurrentIdentity, service: Collaboration):
    """All tickets for administrators, own tickets for members."""
    return _list_response(await service.list_tickets(identity))


@router.get("/search", response_model=TicketListResponse)
async def search_tickets(
    identity: CurrentIdentity,
    service: Collaboration,
    q: str = Query(..., min_length=1),
):
    """Search title, description and ticket number."""
    return _list_response(await service.search_tickets(identity, q))


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
async def get_ticket(ticket_id: int, identity: CurrentIdentity, service: Collaboration):
    """Get a ticket with its thread and attachments."""
    view = await service.get_ticket(identity, ticket_id)
    return TicketDetailResponse.from_view(view)


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: int,
    ticket_data: TicketUpdate,
    identity: CurrentIdentity,
    service: Collaboration,
):
    """Update status, priority or assignee (administrators only)."""
    update_data = ticket_data.model_dump(exclude_unset=True)
    ticket = await service.update_ticket(identity, ticket_id, **update_data)
    return TicketResponse.model_validate(ticket)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(ticket_id: int, identity: CurrentIdentity, service: Collaboration):
    """Delete a ticket with its messages and attachments (administrators only)."""
    deleted = await service.delete_ticket(identity, ticket_id)
    if not deleted:
        raise NotFoundError("Ticket", ticket_id)


@router.post(
    "/{ticket_id}/messages",
    response_model=TicketMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_message(
    ticket_id: int,
    message_data: TicketMessageCreate,
    identity: CurrentIdentity,
    service: Collaboration,
):
    """Post to the ticket thread."""
    message = await service.add_message(
        identity, ticket_id, message_data.message, is_internal=message_data.is_internal,
    )
    return TicketMessageResponse.from_model(message)


@router.get("/{ticket_id}/messages", response_model=list[TicketMessageResponse])
async def list_messages(ticket_id: int, identity: CurrentIdentity, service: Collaboration):
    """Get the thread, oldest first."""
    messages = await service.list_messages(identity, ticket_id)
    return [TicketMessageResponse.from_model(m) for m in messages]
