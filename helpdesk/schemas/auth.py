from pydantic import BaseModel
from typing import Literal, Optional


RoleType = Literal["member", "administrator"]


class TokenData(BaseModel):
    """Claims the helpdesk reads from a verified access token."""

    user_id: int
    role: RoleType
    email: Optional[str] = None


class UserSummary(BaseModel):
    """Author/assignee reference embedded in ticket and message responses."""

    id: int
    name: str
    email: str
    role: RoleType

    class Config:
        from_attributes = True
