from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from helpdesk.database import Base
from helpdesk.models.types import IntBoolean


class User(Base):
    """
    Account row referenced by tickets, messages and attachments.

    Accounts are provisioned by the identity service; the helpdesk only reads
    them to check the active flag and to resolve assignees.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="member")  # member, administrator
    is_active = Column(IntBoolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
