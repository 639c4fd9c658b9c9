"""
Message store schema.

Ids and timestamps are stored as text (UUID strings and ISO-8601) so the
same queries run unchanged on both backends. The serial ``id`` column fixes
FIFO order for the "unprocessed" queries.
"""

import logging
from typing import List

from .adapter import DatabaseAdapter, DatabaseBackend

logger = logging.getLogger(__name__)

_SERIAL = {
    DatabaseBackend.SQLITE: "INTEGER PRIMARY KEY AUTOINCREMENT",
    DatabaseBackend.POSTGRESQL: "BIGSERIAL PRIMARY KEY",
}

_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS mq_event_message (
        id                  {serial},
        event_message_id    TEXT    NOT NULL UNIQUE,
        publisher           TEXT    NOT NULL,
        event_name          TEXT    NOT NULL,
        payload             TEXT    NOT NULL,
        created_at          TEXT    NOT NULL,
        processed_at        TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mq_exchange (
        id                  {serial},
        event_name          TEXT    NOT NULL,
        subscriber_name     TEXT    NOT NULL,
        active              INTEGER NOT NULL DEFAULT 1,
        UNIQUE (event_name, subscriber_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mq_message (
        id                  {serial},
        message_id          TEXT    NOT NULL UNIQUE,
        event_message_id    TEXT    NOT NULL,
        event_name          TEXT    NOT NULL,
        subscriber_name     TEXT    NOT NULL,
        payload             TEXT    NOT NULL,
        created_at          TEXT    NOT NULL,
        processed_at        TEXT,
        status_code         INTEGER NOT NULL DEFAULT 200,
        error_message       TEXT    NOT NULL DEFAULT '',
        status_updated_at   TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mq_linked_event (
        id                  {serial},
        parent_id           TEXT    NOT NULL,
        event_id            TEXT    NOT NULL,
        created_at          TEXT    NOT NULL
    )
    """,
]

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_mq_event_unprocessed ON mq_event_message(processed_at, id)",
    "CREATE INDEX IF NOT EXISTS idx_mq_message_pending ON mq_message(subscriber_name, event_name, processed_at)",
    "CREATE INDEX IF NOT EXISTS idx_mq_linked_parent ON mq_linked_event(parent_id)",
]


def schema_statements(backend: DatabaseBackend) -> List[str]:
    """DDL statements for the given backend, in execution order."""
    serial = _SERIAL[backend]
    return [table.format(serial=serial) for table in _TABLES] + list(_INDEXES)


async def ensure_schema(db: DatabaseAdapter) -> None:
    """Create the message tables if they do not exist yet."""
    for statement in schema_statements(db.backend):
        await db.execute(statement)
    logger.debug("Message schema ensured on %s", db.backend.value)
