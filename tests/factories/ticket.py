"""
Ticket and message payload factories.

Produce request bodies for the tickets API and keyword arguments for the
collaboration service.
"""

import factory
from faker import Faker

fake = Faker()


class TicketPayloadFactory(factory.Factory):
    """
    Factory for ticket creation payloads.

    Usage:
        payload = TicketPayloadFactory()
        payload = TicketPayloadFactory(category="network", priority="high")
    """

    class Meta:
        model = dict

    title = factory.LazyFunction(lambda: fake.sentence(nb_words=6)[:200])
    description = factory.LazyFunction(lambda: fake.paragraph(nb_sentences=3))
    category = factory.LazyFunction(
        lambda: fake.random_element(["hardware", "software", "network", "access", "other"])
    )
    priority = "medium"


class MessagePayloadFactory(factory.Factory):
    """Factory for thread message payloads."""

    class Meta:
        model = dict

    message = factory.LazyFunction(lambda: fake.sentence(nb_words=10))
    is_internal = False
