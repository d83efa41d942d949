"""
User test factory.

Generates account rows as the identity service would provision them.
"""

import factory
from faker import Faker

fake = Faker()


class UserFactory(factory.Factory):
    """
    Factory for generating User column data.

    Usage:
        user = User(**UserFactory())
        user = User(**UserFactory(email="custom@example.com"))
    """

    class Meta:
        model = dict

    email = factory.Sequence(lambda n: f"user{n}@{fake.domain_name()}")
    name = factory.LazyFunction(fake.name)
    role = "member"
    is_active = True


class AdminUserFactory(UserFactory):
    """Factory for administrators."""

    role = "administrator"


class InactiveUserFactory(UserFactory):
    """Factory for disabled accounts."""

    is_active = False
