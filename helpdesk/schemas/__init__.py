from helpdesk.schemas.ticket import (
    TicketCreate,
    TicketUpdate,
    TicketResponse,
    TicketDetailResponse,
    TicketListResponse,
)
from helpdesk.schemas.ticket_message import TicketMessageCreate, TicketMessageResponse
from helpdesk.schemas.attachment import AttachmentResponse, AttachmentWithTicketResponse

__all__ = [
    "TicketCreate",
    "TicketUpdate",
    "TicketResponse",
    "TicketDetailResponse",
    "TicketListResponse",
    "TicketMessageCreate",
    "TicketMessageResponse",
    "AttachmentResponse",
    "AttachmentWithTicketResponse",
]
