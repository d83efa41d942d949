from helpdesk.models.user import User
from helpdesk.models.ticket import Ticket
from helpdesk.models.ticket_message import TicketMessage
from helpdesk.models.attachment import Attachment

__all__ = [
    "User",
    "Ticket",
    "TicketMessage",
    "Attachment",
]
