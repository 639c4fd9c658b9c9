"""
Message Models

Event messages, per-subscriber messages, exchange subscriptions and event links.
"""

from datetime import datetime, timezone
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, List, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from ..shared.exceptions import InvalidEventNameError


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def is_valid_event_name(event_name: Optional[str]) -> bool:
    """An event name is valid when it is non-empty and has no whitespace."""
    if not event_name:
        return False
    return not any(ch.isspace() for ch in event_name)


class MessageState(str, Enum):
    """Delivery state of a per-subscriber message."""
    PENDING = "pending"
    DELIVERED = "delivered"
    STATUS_RECORDED = "status_recorded"


class EventMessage(BaseModel):
    """One published occurrence of a named event."""

    event_message_id: UUID = Field(default_factory=uuid4, frozen=True)
    publisher: str = ""
    event_name: str
    payload: str = ""
    created_at: datetime = Field(default_factory=_utcnow, frozen=True)
    processed_at: Optional[datetime] = None

    model_config = {"extra": "forbid"}

    @field_validator("event_name", mode="before")
    @classmethod
    def _check_event_name(cls, value, info: ValidationInfo):
        # Rows loaded from storage are taken as they are
        if info.context and info.context.get("stored"):
            return value
        # InvalidEventNameError is not a ValueError, so pydantic lets it through
        if not isinstance(value, str) or not is_valid_event_name(value):
            raise InvalidEventNameError(value)
        return value

    @classmethod
    def from_stored(cls, row: Dict[str, Any]) -> "EventMessage":
        """Rebuild a persisted event without re-checking its name."""
        return cls.model_validate(row, context={"stored": True})

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None

    def mark_processed(self) -> None:
        """Record that fan-out to every active subscriber completed."""
        self.processed_at = _utcnow()


class Message(BaseModel):
    """
    A per-subscriber delivery unit derived from exactly one EventMessage.

    processed_at stays None until the message is popped.
    """

    message_id: UUID = Field(default_factory=uuid4, frozen=True)
    event_message_id: UUID
    event_name: str
    subscriber_name: str
    payload: str = ""
    created_at: datetime = Field(default_factory=_utcnow, frozen=True)
    processed_at: Optional[datetime] = None
    status_code: int = int(HTTPStatus.OK)
    error_message: str = ""
    status_updated_at: Optional[datetime] = None

    model_config = {"extra": "forbid"}

    @classmethod
    def from_event(cls, event: EventMessage, subscriber_name: str) -> "Message":
        return cls(
            event_message_id=event.event_message_id,
            event_name=event.event_name,
            subscriber_name=subscriber_name,
            payload=event.payload,
        )

    @property
    def state(self) -> MessageState:
        if self.processed_at is None:
            return MessageState.PENDING
        if self.status_updated_at is None:
            return MessageState.DELIVERED
        return MessageState.STATUS_RECORDED

    def mark_processed(self) -> None:
        self.processed_at = _utcnow()

    def update_status(self, status_code: Union[int, HTTPStatus], error_message: Optional[str] = "") -> None:
        """Overwrite the processing outcome. Last write wins."""
        self.status_code = int(status_code)
        self.error_message = error_message or ""
        self.status_updated_at = _utcnow()


class Subscription(BaseModel):
    """Exchange entry binding a subscriber to an event name."""

    event_name: str = Field(min_length=1)
    subscriber_name: str = Field(min_length=1)
    active: bool = True

    model_config = {"extra": "forbid"}


class EventLink(BaseModel):
    """Records that event_id is a child of parent_id."""

    parent_id: UUID
    event_id: UUID
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"extra": "forbid"}


class MessageResponse(BaseModel):
    """What a subscriber receives from pop."""

    message_id: UUID
    payload: str
    event_message_id: UUID

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            message_id=message.message_id,
            payload=message.payload,
            event_message_id=message.event_message_id,
        )


class NotificationMessage(BaseModel):
    """Body of the out-of-band notification sent after a delivery."""

    subscriber_name: str
    event_name: str
    message_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
