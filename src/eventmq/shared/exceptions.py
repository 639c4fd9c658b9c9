"""
Message Engine Exceptions

Every engine failure carries a reason code plus an HTTP-style status so
callers that bridge to network responses can map it directly.
"""

from typing import Optional
from uuid import UUID

from .error_codes import MessageErrorCode, get_status_code


class MessageMQError(Exception):
    """
    Base exception for message engine errors.

    Attributes:
        code: The machine-readable reason
        message: Human readable description
        status_code: HTTP status mapped from the code unless overridden
    """

    def __init__(
        self,
        code: MessageErrorCode,
        message: str = "",
        status_code: Optional[int] = None
    ):
        self.code = code
        self.message = message or code.value
        self.status_code = status_code if status_code is not None else get_status_code(code)
        super().__init__(self.message)

    @property
    def reason(self) -> str:
        """Reason string, e.g. ``"InvalidEventName"``."""
        return self.code.value

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(reason={self.reason!r}, "
            f"status_code={self.status_code}, message={self.message!r})"
        )


class InvalidEventNameError(MessageMQError):
    """
    Event name is empty or contains whitespace.

    HTTP Status: 400
    """

    def __init__(self, event_name: Optional[str] = None):
        super().__init__(
            code=MessageErrorCode.INVALID_EVENT_NAME,
            message=f"Invalid event name: {event_name!r}"
        )
        self.event_name = event_name


class NotEventMessageError(MessageMQError):
    """
    No unprocessed event messages to fan out.

    Callers treat this as "nothing to do".

    HTTP Status: 204
    """

    def __init__(self):
        super().__init__(
            code=MessageErrorCode.NOT_EVENT_MESSAGE,
            message="There are no unprocessed event messages"
        )


class MessageNotFoundError(MessageMQError):
    """
    No message matches the given id.

    HTTP Status: 400
    """

    def __init__(self, message_id: Optional[UUID] = None):
        message = "Message not found"
        if message_id:
            message = f"Message with ID '{message_id}' not found"
        super().__init__(code=MessageErrorCode.MESSAGE_NOT_FOUND, message=message)
        self.message_id = message_id
