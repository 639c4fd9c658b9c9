"""
Tests for the SQL message repository on a real SQLite database.
"""

import asyncio
from uuid import uuid4

import pytest

from eventmq.database import DatabaseAdapter, DatabaseBackend, DatabaseConfig, ensure_schema
from eventmq.messaging import (
    EventLink,
    EventMessage,
    Message,
    MessageService,
    MessageState,
    SqlMessageRepository,
    Subscription,
)
from eventmq.shared import InvalidEventNameError, MessageNotFoundError, NotEventMessageError

EVENT_NAME = "invoice.created"


@pytest.fixture
async def db(tmp_path):
    adapter = DatabaseAdapter(DatabaseConfig(
        backend=DatabaseBackend.SQLITE,
        sqlite_path=str(tmp_path / "mq.db"),
    ))
    await adapter.connect()
    await ensure_schema(adapter)
    yield adapter
    await adapter.disconnect()


@pytest.fixture
async def repository(db):
    repo = SqlMessageRepository(db)
    await repo.upsert_subscription(Subscription(event_name=EVENT_NAME, subscriber_name="svcA"))
    await repo.upsert_subscription(Subscription(event_name=EVENT_NAME, subscriber_name="svcB"))
    await repo.upsert_subscription(Subscription(event_name=EVENT_NAME, subscriber_name="svcC", active=False))
    return repo


@pytest.fixture
def service(repository):
    return MessageService(repository)


class TestSqlRepository:
    """Repository operations against SQLite."""

    @pytest.mark.asyncio
    async def test_event_round_trip(self, repository):
        event = EventMessage(publisher="Billing", event_name=EVENT_NAME, payload='{"a": 1}')

        await repository.insert_event_message(event)

        [stored] = await repository.get_unprocessed_event_messages()
        assert stored.event_message_id == event.event_message_id
        assert stored.publisher == "Billing"
        assert stored.payload == '{"a": 1}'
        assert stored.created_at == event.created_at
        assert stored.processed_at is None

    @pytest.mark.asyncio
    async def test_conditional_mark_processed(self, repository):
        event = EventMessage(event_name=EVENT_NAME)
        await repository.insert_event_message(event)
        event.mark_processed()

        assert await repository.update_event_message(event) is True
        assert await repository.update_event_message(event) is False
        assert await repository.get_unprocessed_event_messages() == []

    @pytest.mark.asyncio
    async def test_unprocessed_limit(self, repository):
        events = [EventMessage(event_name=EVENT_NAME, payload=str(i)) for i in range(3)]
        for event in events:
            await repository.insert_event_message(event)

        limited = await repository.get_unprocessed_event_messages(limit=2)

        assert [e.payload for e in limited] == ["0", "1"]

    @pytest.mark.asyncio
    async def test_active_subscribers(self, repository):
        assert await repository.get_active_subscribers(EVENT_NAME) == ["svcA", "svcB"]
        assert await repository.get_active_subscribers("unknown.event") == []

    @pytest.mark.asyncio
    async def test_subscription_can_be_deactivated(self, repository):
        await repository.upsert_subscription(
            Subscription(event_name=EVENT_NAME, subscriber_name="svcB", active=False)
        )

        assert await repository.get_active_subscribers(EVENT_NAME) == ["svcA"]

    @pytest.mark.asyncio
    async def test_message_round_trip(self, repository):
        event = EventMessage(event_name=EVENT_NAME, payload="body")
        message = Message.from_event(event, "svcA")

        await repository.insert_message(message)
        message.mark_processed()
        message.update_status(418, "teapot")
        await repository.update_message(message)

        stored = await repository.get_message(message.message_id)
        assert stored.event_message_id == event.event_message_id
        assert stored.status_code == 418
        assert stored.error_message == "teapot"
        assert stored.state == MessageState.STATUS_RECORDED

    @pytest.mark.asyncio
    async def test_get_missing_message(self, repository):
        assert await repository.get_message(uuid4()) is None

    @pytest.mark.asyncio
    async def test_links_are_append_only(self, repository):
        parent_id, child_id = uuid4(), uuid4()

        await repository.link_event(EventLink(parent_id=parent_id, event_id=child_id))
        await repository.link_event(EventLink(parent_id=parent_id, event_id=child_id))

        links = await repository.get_linked_events(parent_id)
        assert len(links) == 2
        assert all(l.event_id == child_id for l in links)
        assert await repository.get_linked_events(child_id) == []


class TestServiceOnSql:
    """The engine scenarios against the SQL repository."""

    @pytest.mark.asyncio
    async def test_full_cycle(self, service, repository):
        event_id = await service.push("Billing", EVENT_NAME, "{...}")
        [pending] = await repository.get_unprocessed_event_messages()
        assert pending.event_message_id == event_id

        assert await service.exchange_process() == 1
        assert await repository.get_unprocessed_event_messages() == []

        first = await service.pop("svcA", EVENT_NAME)
        assert [r.event_message_id for r in first] == [event_id]
        assert await service.pop("svcA", EVENT_NAME) == []

        await service.change_status_processing(first[0].message_id, 403, "forbidden")
        message = await repository.get_message(first[0].message_id)
        assert message.status_code == 403
        assert message.error_message == "forbidden"

        other = await service.pop("svcB", EVENT_NAME)
        assert len(other) == 1

    @pytest.mark.asyncio
    async def test_invalid_push_creates_no_row(self, service, repository):
        with pytest.raises(InvalidEventNameError):
            await service.push("Billing", "", "x")

        with pytest.raises(NotEventMessageError):
            await service.exchange_process()

    @pytest.mark.asyncio
    async def test_change_status_unknown_message(self, service):
        with pytest.raises(MessageNotFoundError):
            await service.change_status_processing(uuid4(), 500, "boom")

    @pytest.mark.asyncio
    async def test_stored_event_with_legacy_name_does_not_block_queue(self, db, service, repository):
        """A stored row whose name fails the push check is still fanned out."""
        await db.execute(
            """
            INSERT INTO mq_event_message
                (event_message_id, publisher, event_name, payload, created_at, processed_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            str(uuid4()), "Legacy", " invoice.created ", "{}", "2024-05-01T12:00:00+00:00", None
        )
        event_id = await service.push("Billing", EVENT_NAME, "{...}")

        assert await service.exchange_process() == 2

        assert await repository.get_unprocessed_event_messages() == []
        delivered = await service.pop("svcA", EVENT_NAME)
        assert [r.event_message_id for r in delivered] == [event_id]

    @pytest.mark.asyncio
    async def test_concurrent_pops_deliver_each_message_once(self, service, repository):
        event_id = await service.push("Billing", EVENT_NAME, "{...}")
        await service.exchange_process()

        first, second = await asyncio.gather(
            service.pop("svcA", EVENT_NAME),
            service.pop("svcA", EVENT_NAME),
        )

        delivered = [r.event_message_id for r in first + second]
        assert delivered == [event_id]
        assert await repository.get_unprocessed_messages("svcA", EVENT_NAME) == []

    @pytest.mark.asyncio
    async def test_conditional_mark_message_processed(self, repository):
        message = Message.from_event(EventMessage(event_name=EVENT_NAME), "svcA")
        await repository.insert_message(message)
        message.mark_processed()

        assert await repository.mark_message_processed(message) is True
        assert await repository.mark_message_processed(message) is False

        stored = await repository.get_message(message.message_id)
        assert stored.state == MessageState.DELIVERED
