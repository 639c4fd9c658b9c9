"""
Shared fixtures for message engine tests.
"""

import pytest

from eventmq.messaging import InMemoryMessageRepository, MessageService, Subscription

EVENT_NAME = "invoice.created"


@pytest.fixture
def subscriptions():
    """Two active subscribers and one inactive one for EVENT_NAME."""
    return [
        Subscription(event_name=EVENT_NAME, subscriber_name="svcA"),
        Subscription(event_name=EVENT_NAME, subscriber_name="svcB"),
        Subscription(event_name=EVENT_NAME, subscriber_name="svcC", active=False),
        Subscription(event_name="invoice.paid", subscriber_name="svcA"),
    ]


@pytest.fixture
def repository(subscriptions):
    return InMemoryMessageRepository(subscriptions)


@pytest.fixture
def service(repository):
    return MessageService(repository)
