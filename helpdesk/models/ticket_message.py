from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from helpdesk.database import Base
from helpdesk.models.types import IntBoolean


class TicketMessage(Base):
    """One entry in a ticket's conversation. Append-only."""

    __tablename__ = "ticket_messages"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    body = Column(Text, nullable=False)
    is_internal = Column(IntBoolean, nullable=False, default=False)

    # Assigned by MessageThread, strictly increasing per ticket
    created_at = Column(DateTime, nullable=False, index=True)

    # Relationships
    ticket = relationship("Ticket", back_populates="messages")
    author = relationship("User", lazy="selectin")

    def __repr__(self):
        visibility = "internal" if self.is_internal else "public"
        return f"<TicketMessage {self.id} - ticket {self.ticket_id} - {visibility}>"
