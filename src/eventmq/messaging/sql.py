"""
SQL MessageRepository

Stores event messages, messages, exchange entries and links through the
DatabaseAdapter, so it runs on SQLite or PostgreSQL.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from ..database.adapter import DatabaseAdapter, get_database
from .models import EventLink, EventMessage, Message, Subscription
from .repository import MessageRepository

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = "event_message_id, publisher, event_name, payload, created_at, processed_at"
_MESSAGE_COLUMNS = (
    "message_id, event_message_id, event_name, subscriber_name, payload, "
    "created_at, processed_at, status_code, error_message, status_updated_at"
)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _event_from_row(row: Dict[str, Any]) -> EventMessage:
    return EventMessage.from_stored(row)


def _message_from_row(row: Dict[str, Any]) -> Message:
    return Message(**row)


class SqlMessageRepository(MessageRepository):
    """
    Message repository backed by a relational database.

    Usage:
        repo = SqlMessageRepository(db)
        await ensure_schema(db)
        service = MessageService(repo)
    """

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def _get_db(self) -> DatabaseAdapter:
        if self._db is None:
            self._db = await get_database()
        return self._db

    # Administration (not part of the engine contract)

    async def upsert_subscription(self, subscription: Subscription) -> None:
        """Create or update the exchange entry for an event/subscriber pair."""
        db = await self._get_db()
        updated = await db.execute(
            """
            UPDATE mq_exchange SET active = $1
            WHERE event_name = $2 AND subscriber_name = $3
            """,
            1 if subscription.active else 0,
            subscription.event_name,
            subscription.subscriber_name
        )
        if updated == 0:
            await db.execute(
                """
                INSERT INTO mq_exchange (event_name, subscriber_name, active)
                VALUES ($1, $2, $3)
                """,
                subscription.event_name,
                subscription.subscriber_name,
                1 if subscription.active else 0
            )

    # Event messages

    async def insert_event_message(self, event: EventMessage) -> None:
        db = await self._get_db()
        await db.execute(
            f"""
            INSERT INTO mq_event_message ({_EVENT_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            str(event.event_message_id),
            event.publisher,
            event.event_name,
            event.payload,
            _ts(event.created_at),
            _ts(event.processed_at)
        )

    async def update_event_message(self, event: EventMessage) -> bool:
        db = await self._get_db()
        updated = await db.execute(
            """
            UPDATE mq_event_message SET processed_at = $1
            WHERE event_message_id = $2 AND processed_at IS NULL
            """,
            _ts(event.processed_at),
            str(event.event_message_id)
        )
        return updated > 0

    async def get_unprocessed_event_messages(self, limit: Optional[int] = None) -> List[EventMessage]:
        db = await self._get_db()
        query = f"""
            SELECT {_EVENT_COLUMNS}
            FROM mq_event_message
            WHERE processed_at IS NULL
            ORDER BY id ASC
            """
        if limit is not None:
            rows = await db.fetch(query + " LIMIT $1", limit)
        else:
            rows = await db.fetch(query)
        return [_event_from_row(row) for row in rows]

    # Exchange

    async def get_active_subscribers(self, event_name: str) -> List[str]:
        db = await self._get_db()
        rows = await db.fetch(
            """
            SELECT subscriber_name
            FROM mq_exchange
            WHERE event_name = $1 AND active = 1
            ORDER BY id ASC
            """,
            event_name
        )
        return [row["subscriber_name"] for row in rows]

    # Messages

    async def insert_message(self, message: Message) -> None:
        db = await self._get_db()
        await db.execute(
            f"""
            INSERT INTO mq_message ({_MESSAGE_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            """,
            str(message.message_id),
            str(message.event_message_id),
            message.event_name,
            message.subscriber_name,
            message.payload,
            _ts(message.created_at),
            _ts(message.processed_at),
            message.status_code,
            message.error_message,
            _ts(message.status_updated_at)
        )

    async def update_message(self, message: Message) -> None:
        db = await self._get_db()
        await db.execute(
            """
            UPDATE mq_message SET
                processed_at = $1,
                status_code = $2,
                error_message = $3,
                status_updated_at = $4
            WHERE message_id = $5
            """,
            _ts(message.processed_at),
            message.status_code,
            message.error_message,
            _ts(message.status_updated_at),
            str(message.message_id)
        )

    async def mark_message_processed(self, message: Message) -> bool:
        db = await self._get_db()
        updated = await db.execute(
            """
            UPDATE mq_message SET processed_at = $1
            WHERE message_id = $2 AND processed_at IS NULL
            """,
            _ts(message.processed_at),
            str(message.message_id)
        )
        return updated > 0

    async def get_unprocessed_messages(self, subscriber_name: str, event_name: str) -> List[Message]:
        db = await self._get_db()
        rows = await db.fetch(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM mq_message
            WHERE subscriber_name = $1
              AND event_name = $2
              AND processed_at IS NULL
            ORDER BY id ASC
            """,
            subscriber_name,
            event_name
        )
        return [_message_from_row(row) for row in rows]

    async def get_message(self, message_id: UUID) -> Optional[Message]:
        db = await self._get_db()
        row = await db.fetchrow(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM mq_message
            WHERE message_id = $1
            """,
            str(message_id)
        )
        return _message_from_row(row) if row else None

    # Links

    async def link_event(self, link: EventLink) -> None:
        db = await self._get_db()
        await db.execute(
            """
            INSERT INTO mq_linked_event (parent_id, event_id, created_at)
            VALUES ($1, $2, $3)
            """,
            str(link.parent_id),
            str(link.event_id),
            _ts(link.created_at)
        )

    async def get_linked_events(self, parent_id: UUID) -> List[EventLink]:
        db = await self._get_db()
        rows = await db.fetch(
            """
            SELECT parent_id, event_id, created_at
            FROM mq_linked_event
            WHERE parent_id = $1
            ORDER BY id ASC
            """,
            str(parent_id)
        )
        return [EventLink(**row) for row in rows]

    async def close(self) -> None:
        if self._db is not None:
            await self._db.disconnect()
            self._db = None
