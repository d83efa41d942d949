# Security module
from helpdesk.security.rbac import (
    Identity,
    Permission,
    Role,
    require_permission,
    require_ticket_access,
)

__all__ = [
    "Identity",
    "Permission",
    "Role",
    "require_permission",
    "require_ticket_access",
]
