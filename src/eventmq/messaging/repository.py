"""
MessageRepository Abstract Base Class

Defines the persistence operations the message engine depends on.
All repository implementations must inherit from MessageRepository.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from .models import EventLink, EventMessage, Message


class MessageRepository(ABC):
    """
    Abstract base class for message persistence backends.

    Each operation is expected to be atomic at the row level. The engine
    never asks for a transaction spanning several operations.

    Ordering:
        Both "unprocessed" queries return rows oldest first (insertion order).
    """

    # Event messages

    @abstractmethod
    async def insert_event_message(self, event: EventMessage) -> None:
        """Persist a newly published event."""
        ...

    @abstractmethod
    async def update_event_message(self, event: EventMessage) -> bool:
        """
        Persist event.processed_at, but only if the stored row is still unprocessed.

        Returns:
            True if this call transitioned the row, False if another caller
            already marked it processed (or the row does not exist)
        """
        ...

    @abstractmethod
    async def get_unprocessed_event_messages(self, limit: Optional[int] = None) -> List[EventMessage]:
        """
        Get events whose fan-out has not completed, oldest first.

        Args:
            limit: Maximum number of events to return (None for all)
        """
        ...

    # Exchange

    @abstractmethod
    async def get_active_subscribers(self, event_name: str) -> List[str]:
        """Get the names of subscribers with an active subscription to event_name."""
        ...

    # Messages

    @abstractmethod
    async def insert_message(self, message: Message) -> None:
        ...

    @abstractmethod
    async def update_message(self, message: Message) -> None:
        """Persist processed_at, status_code, error_message and status_updated_at."""
        ...

    @abstractmethod
    async def mark_message_processed(self, message: Message) -> bool:
        """
        Persist message.processed_at, but only if the stored row is still pending.

        Returns:
            True if this call delivered the message, False if a concurrent
            pop already took it (or the row does not exist)
        """
        ...

    @abstractmethod
    async def get_unprocessed_messages(self, subscriber_name: str, event_name: str) -> List[Message]:
        """Get pending messages for a subscriber/event pair, oldest first."""
        ...

    @abstractmethod
    async def get_message(self, message_id: UUID) -> Optional[Message]:
        """Get a message by id, or None if it does not exist."""
        ...

    # Links

    @abstractmethod
    async def link_event(self, link: EventLink) -> None:
        """Append a parent/child link. Duplicate pairs are stored again."""
        ...

    @abstractmethod
    async def get_linked_events(self, parent_id: UUID) -> List[EventLink]:
        """Get the links recorded for a parent event, oldest first."""
        ...

    async def close(self) -> None:
        """Release backend resources. Called by the repository's owner."""
        return None
