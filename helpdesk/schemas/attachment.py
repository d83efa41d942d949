from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class AttachmentResponse(BaseModel):
    """Attachment metadata. The storage locator is intentionally absent."""

    id: int
    ticket_id: int
    original_filename: str
    file_size: int
    mime_type: str
    uploaded_by: int
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttachmentWithTicketResponse(AttachmentResponse):
    """Admin overview row: attachment plus the ticket it belongs to."""

    ticket_number: str
    ticket_title: str

    @classmethod
    def from_model(cls, attachment) -> "AttachmentWithTicketResponse":
        return cls(
            **AttachmentResponse.model_validate(attachment).model_dump(),
            ticket_number=attachment.ticket.ticket_number,
            ticket_title=attachment.ticket.title,
        )
