"""
In-memory MessageRepository.

Keeps rows in insertion-ordered dicts. Stored and returned models are
copies, so callers must go through update_* to change persisted state.
"""

import threading
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from .models import EventLink, EventMessage, Message, Subscription
from .repository import MessageRepository


class InMemoryMessageRepository(MessageRepository):
    """Process-local repository, safe to share between threads."""

    def __init__(self, subscriptions: Optional[List[Subscription]] = None):
        self._lock = threading.Lock()
        self._events: Dict[UUID, EventMessage] = {}
        self._messages: Dict[UUID, Message] = {}
        self._subscriptions: Dict[Tuple[str, str], Subscription] = {}
        self._links: List[EventLink] = []
        for subscription in subscriptions or []:
            self._subscriptions[(subscription.event_name, subscription.subscriber_name)] = subscription

    # Administration (not part of the engine contract)

    async def upsert_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            key = (subscription.event_name, subscription.subscriber_name)
            self._subscriptions[key] = subscription.model_copy()

    @property
    def events(self) -> List[EventMessage]:
        with self._lock:
            return [e.model_copy() for e in self._events.values()]

    @property
    def messages(self) -> List[Message]:
        with self._lock:
            return [m.model_copy() for m in self._messages.values()]

    # Event messages

    async def insert_event_message(self, event: EventMessage) -> None:
        with self._lock:
            if event.event_message_id in self._events:
                raise KeyError(f"Duplicate event message id: {event.event_message_id}")
            self._events[event.event_message_id] = event.model_copy()

    async def update_event_message(self, event: EventMessage) -> bool:
        with self._lock:
            stored = self._events.get(event.event_message_id)
            if stored is None or stored.processed_at is not None:
                return False
            stored.processed_at = event.processed_at
            return True

    async def get_unprocessed_event_messages(self, limit: Optional[int] = None) -> List[EventMessage]:
        with self._lock:
            pending = [e.model_copy() for e in self._events.values() if e.processed_at is None]
        return pending if limit is None else pending[:limit]

    # Exchange

    async def get_active_subscribers(self, event_name: str) -> List[str]:
        with self._lock:
            return [
                s.subscriber_name
                for s in self._subscriptions.values()
                if s.event_name == event_name and s.active
            ]

    # Messages

    async def insert_message(self, message: Message) -> None:
        with self._lock:
            if message.message_id in self._messages:
                raise KeyError(f"Duplicate message id: {message.message_id}")
            self._messages[message.message_id] = message.model_copy()

    async def update_message(self, message: Message) -> None:
        with self._lock:
            stored = self._messages.get(message.message_id)
            if stored is None:
                return
            stored.processed_at = message.processed_at
            stored.status_code = message.status_code
            stored.error_message = message.error_message
            stored.status_updated_at = message.status_updated_at

    async def mark_message_processed(self, message: Message) -> bool:
        with self._lock:
            stored = self._messages.get(message.message_id)
            if stored is None or stored.processed_at is not None:
                return False
            stored.processed_at = message.processed_at
            return True

    async def get_unprocessed_messages(self, subscriber_name: str, event_name: str) -> List[Message]:
        with self._lock:
            return [
                m.model_copy()
                for m in self._messages.values()
                if m.subscriber_name == subscriber_name
                and m.event_name == event_name
                and m.processed_at is None
            ]

    async def get_message(self, message_id: UUID) -> Optional[Message]:
        with self._lock:
            stored = self._messages.get(message_id)
            return stored.model_copy() if stored else None

    # Links

    async def link_event(self, link: EventLink) -> None:
        with self._lock:
            self._links.append(link.model_copy())

    async def get_linked_events(self, parent_id: UUID) -> List[EventLink]:
        with self._lock:
            return [link.model_copy() for link in self._links if link.parent_id == parent_id]
