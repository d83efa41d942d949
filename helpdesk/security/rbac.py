"""
Role-Based Access Control (RBAC) Module

Holds the single authorization policy for ticket-scoped operations. Only the
collaboration service calls into this module; the registry, thread and
ledger trust their caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Set
import logging

from helpdesk.exceptions import ForbiddenError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """User roles."""
    MEMBER = "member"
    ADMINISTRATOR = "administrator"


class Permission(str, Enum):
    """Fine-grained permissions."""
    CREATE_TICKET = "create_ticket"
    VIEW_TICKET = "view_ticket"
    POST_MESSAGE = "post_message"
    UPLOAD_ATTACHMENT = "upload_attachment"
    # Administrator-only
    VIEW_ALL_TICKETS = "view_all_tickets"
    VIEW_INTERNAL_MESSAGES = "view_internal_messages"
    POST_INTERNAL_MESSAGE = "post_internal_message"
    UPDATE_TICKET = "update_ticket"
    DELETE_TICKET = "delete_ticket"
    DELETE_ATTACHMENT = "delete_attachment"
    VIEW_ALL_ATTACHMENTS = "view_all_attachments"


# Role-to-permissions mapping
ROLE_PERMISSIONS: dict[Role, Set[Permission]] = {
    Role.MEMBER: {
        Permission.CREATE_TICKET,
        Permission.VIEW_TICKET,
        Permission.POST_MESSAGE,
        Permission.UPLOAD_ATTACHMENT,
    },
    Role.ADMINISTRATOR: set(Permission),  # All permissions
}

# Permissions a member may exercise on a ticket they created
OWNER_PERMISSIONS: Set[Permission] = {
    Permission.VIEW_TICKET,
    Permission.POST_MESSAGE,
    Permission.UPLOAD_ATTACHMENT,
}


@dataclass(frozen=True)
class Identity:
    """Verified caller, as supplied by the identity service."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMINISTRATOR


def get_role_permissions(role: Role) -> Set[Permission]:
    """Get all permissions granted to a role."""
    return ROLE_PERMISSIONS.get(role, set())


def has_permission(identity: Identity, permission: Permission) -> bool:
    """Check if the caller's role grants a specific permission."""
    return permission in get_role_permissions(identity.role)


def is_ticket_owner(identity: Identity, ticket) -> bool:
    """Ownership is the creator reference only; assignment does not count."""
    return ticket.creator_id == identity.user_id


def can_access_ticket(identity: Identity, ticket, permission: Permission) -> bool:
    """
    Decide whether ``identity`` may perform ``permission`` on ``ticket``.

    Administrators are governed by their role alone. Members must hold the
    permission *and* own the ticket, and owners only get OWNER_PERMISSIONS.
    """
    if not has_permission(identity, permission):
        return False
    if has_permission(identity, Permission.VIEW_ALL_TICKETS):
        return True
    return permission in OWNER_PERMISSIONS and is_ticket_owner(identity, ticket)


def require_permission(identity: Identity, permission: Permission) -> None:
    """Raise ForbiddenError unless the caller's role grants ``permission``."""
    if not has_permission(identity, permission):
        logger.warning(
            f"Permission denied: user {identity.user_id} lacks {permission.value}",
            extra={"user_id": identity.user_id, "permission": permission.value}
        )
        raise ForbiddenError(f"Permission denied: requires {permission.value}")


def require_ticket_access(identity: Identity, ticket, permission: Permission) -> None:
    """Raise ForbiddenError unless ``can_access_ticket`` allows the operation."""
    if not can_access_ticket(identity, ticket, permission):
        logger.warning(
            f"Ticket access denied: user {identity.user_id} on ticket {ticket.id} ({permission.value})",
            extra={
                "user_id": identity.user_id,
                "ticket_id": ticket.id,
                "permission": permission.value,
            }
        )
        raise ForbiddenError("Access denied")
