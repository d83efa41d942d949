"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .user import UserFactory, AdminUserFactory, InactiveUserFactory
from .ticket import TicketPayloadFactory, MessagePayloadFactory

__all__ = [
    "UserFactory",
    "AdminUserFactory",
    "InactiveUserFactory",
    "TicketPayloadFactory",
    "MessagePayloadFactory",
]
