"""
Message Service

Distribution engine: publish events, fan them out to active subscribers,
deliver per-subscriber messages and record their processing outcome.

Delivery is at-least-once. A fan-out pass that fails part way leaves the
event unprocessed, so the next pass fans it out again and subscribers may
see a second message for the same (event_message_id, subscriber_name).
"""

import asyncio
import logging
import time
from http import HTTPStatus
from typing import List, Optional, Union
from uuid import UUID

from ..observability.metrics import record_counter, record_histogram
from ..observability.tracing import add_event_to_span, set_span_attributes, traced
from ..shared.exceptions import MessageNotFoundError, NotEventMessageError
from .models import EventLink, EventMessage, Message, MessageResponse, NotificationMessage
from .notification import NotificationError, Notifier
from .repository import MessageRepository

logger = logging.getLogger(__name__)


class MessageService:
    """
    Async message engine.

    Holds no state besides its collaborators, so one instance can serve
    concurrent tasks. The repository is owned by the caller; the service
    never opens or closes it.

    Usage:
        service = MessageService(repository)

        event_id = await service.push("billing", "invoice.created", payload)
        await service.exchange_process()
        for response in await service.pop("ledger", "invoice.created"):
            ...
            await service.change_status_processing(response.message_id, 200)
    """

    def __init__(self, repository: MessageRepository, notifier: Optional[Notifier] = None):
        self.repository = repository
        self.notifier = notifier

    @traced("mq.push")
    async def push(self, publisher: str, event_name: str, payload: str) -> UUID:
        """
        Publish an event.

        Raises:
            InvalidEventNameError: event_name is empty or contains whitespace
        """
        event = EventMessage(publisher=publisher, event_name=event_name, payload=payload)
        await self.repository.insert_event_message(event)

        record_counter("mq_events_published_total", attributes={"event_name": event.event_name})
        logger.debug(
            "Pushed event message: id=%s event=%s publisher=%s",
            event.event_message_id, event.event_name, event.publisher
        )
        set_span_attributes({"mq.event_message_id": event.event_message_id})
        return event.event_message_id

    @traced("mq.link_event")
    async def link_event(self, parent_id: UUID, event_id: UUID) -> EventLink:
        """Record event_id as a child of parent_id. Neither id is checked for existence."""
        link = EventLink(parent_id=parent_id, event_id=event_id)
        await self.repository.link_event(link)
        record_counter("mq_events_linked_total")
        return link

    @traced("mq.exchange_process")
    async def exchange_process(self, limit: Optional[int] = None) -> int:
        """
        Fan every unprocessed event out to its active subscribers.

        Args:
            limit: Process at most this many events (oldest first)

        Returns:
            Number of events this call marked processed

        Raises:
            ValueError: limit is negative
            NotEventMessageError: There was nothing to process
        """
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")

        started = time.monotonic()
        events = await self.repository.get_unprocessed_event_messages(limit)
        if not events:
            raise NotEventMessageError()

        processed = 0
        for event in events:
            if await self._fan_out(event):
                processed += 1

        record_histogram("mq_exchange_duration_seconds", time.monotonic() - started)
        logger.debug("Exchange pass processed %d of %d event(s)", processed, len(events))
        set_span_attributes({"mq.events_found": len(events), "mq.events_processed": processed})
        return processed

    async def _fan_out(self, event: EventMessage) -> bool:
        subscribers = await self.repository.get_active_subscribers(event.event_name)
        for subscriber_name in subscribers:
            await self.repository.insert_message(Message.from_event(event, subscriber_name))

        if subscribers:
            record_counter(
                "mq_messages_created_total",
                value=len(subscribers),
                attributes={"event_name": event.event_name}
            )

        event.mark_processed()
        if not await self.repository.update_event_message(event):
            logger.warning(
                "Event message %s was already processed by a concurrent exchange pass",
                event.event_message_id
            )
            return False

        add_event_to_span("mq.event_fanned_out", {
            "mq.event_message_id": str(event.event_message_id),
            "mq.subscribers": len(subscribers),
        })
        return True

    @traced("mq.pop")
    async def pop(self, subscriber_name: str, event_name: str) -> List[MessageResponse]:
        """
        Deliver and consume the pending messages of a subscriber for an event.

        Every returned message is marked processed, so a second call does
        not return it again. When pops race, each message goes to only one
        of them.
        """
        messages = await self.repository.get_unprocessed_messages(subscriber_name, event_name)
        if not messages:
            return []

        responses = []
        for message in messages:
            message.mark_processed()
            if not await self.repository.mark_message_processed(message):
                logger.debug("Message %s was taken by a concurrent pop", message.message_id)
                continue
            responses.append(MessageResponse.from_message(message))

        set_span_attributes({"mq.messages_delivered": len(responses)})
        if not responses:
            return []

        record_counter(
            "mq_messages_popped_total",
            value=len(responses),
            attributes={"event_name": event_name, "subscriber_name": subscriber_name}
        )

        if self.notifier is not None:
            await self._notify(subscriber_name, event_name, responses)

        return responses

    async def _notify(self, subscriber_name: str, event_name: str, responses: List[MessageResponse]) -> None:
        notification = NotificationMessage(
            subscriber_name=subscriber_name,
            event_name=event_name,
            message_ids=[r.message_id for r in responses],
        )
        try:
            await self.notifier.send_notification(notification)
        except NotificationError as e:
            logger.warning(f"Delivery notification failed: {e}")

    @traced("mq.change_status_processing")
    async def change_status_processing(
        self,
        message_id: UUID,
        status_code: Union[int, HTTPStatus],
        error_message: Optional[str] = ""
    ) -> Message:
        """
        Record the subscriber's processing outcome for a message.

        Repeated calls overwrite the previous outcome.

        Raises:
            MessageNotFoundError: No message has this id
        """
        message = await self.repository.get_message(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)

        message.update_status(status_code, error_message)
        await self.repository.update_message(message)

        set_span_attributes({"mq.event_message_id": message.event_message_id})
        record_counter("mq_status_updates_total", attributes={"status_code": message.status_code})
        return message


class BlockingMessageService:
    """
    Synchronous facade over MessageService.

    Each call runs the async operation to completion on a private event
    loop that lives as long as the facade, so loop-bound repository
    connections stay valid between calls. Not for use inside a running
    event loop.

    Usage:
        with BlockingMessageService(repository) as service:
            event_id = service.push("billing", "invoice.created", payload)
            service.exchange_process()
    """

    def __init__(self, repository: MessageRepository, notifier: Optional[Notifier] = None):
        self.service = MessageService(repository, notifier)
        self._runner = asyncio.Runner()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        """Close the private event loop. The repository is left open."""
        self._runner.close()

    def push(self, publisher: str, event_name: str, payload: str) -> UUID:
        return self._runner.run(self.service.push(publisher, event_name, payload))

    def link_event(self, parent_id: UUID, event_id: UUID) -> EventLink:
        return self._runner.run(self.service.link_event(parent_id, event_id))

    def exchange_process(self, limit: Optional[int] = None) -> int:
        return self._runner.run(self.service.exchange_process(limit))

    def pop(self, subscriber_name: str, event_name: str) -> List[MessageResponse]:
        return self._runner.run(self.service.pop(subscriber_name, event_name))

    def change_status_processing(
        self,
        message_id: UUID,
        status_code: Union[int, HTTPStatus],
        error_message: Optional[str] = ""
    ) -> Message:
        return self._runner.run(
            self.service.change_status_processing(message_id, status_code, error_message)
        )

    def run(self, coro):
        """Run any coroutine on the facade's loop (e.g. repository setup)."""
        return self._runner.run(coro)
