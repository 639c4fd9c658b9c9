"""
Message Exchange

Publish/subscribe distribution with per-subscriber delivery.

Usage:
    from eventmq.messaging import MessageService, InMemoryMessageRepository, Subscription

    repo = InMemoryMessageRepository([Subscription(event_name="invoice.created", subscriber_name="ledger")])
    service = MessageService(repo)

    event_id = await service.push("billing", "invoice.created", '{"invoice": 42}')
    await service.exchange_process()
    responses = await service.pop("ledger", "invoice.created")
"""

from .models import (
    EventMessage,
    Message,
    MessageState,
    Subscription,
    EventLink,
    MessageResponse,
    NotificationMessage,
    is_valid_event_name,
)
from .repository import MessageRepository
from .memory import InMemoryMessageRepository
from .sql import SqlMessageRepository
from .notification import Notifier, WebhookNotifier, NotificationError
from .service import MessageService, BlockingMessageService
from .processor import ExchangeProcessor, exchange_processor

__all__ = [
    # Models
    "EventMessage",
    "Message",
    "MessageState",
    "Subscription",
    "EventLink",
    "MessageResponse",
    "NotificationMessage",
    "is_valid_event_name",
    # Repositories
    "MessageRepository",
    "InMemoryMessageRepository",
    "SqlMessageRepository",
    # Notifications
    "Notifier",
    "WebhookNotifier",
    "NotificationError",
    # Engine
    "MessageService",
    "BlockingMessageService",
    "ExchangeProcessor",
    "exchange_processor",
]
