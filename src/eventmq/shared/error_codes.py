"""
Message Error Codes

Machine-readable reasons for message engine failures with HTTP status mapping.
"""

from enum import Enum


class MessageErrorCode(str, Enum):
    """Message engine error reasons."""

    EVENT_IS_NOT_ACTIVE = "EventIsNotActive"
    INTERNAL_ERROR = "InternalError"
    INVALID_EVENT_NAME = "InvalidEventName"
    NOT_MESSAGE_FOR_SUBSCRIBER = "NotMessageForSubscriber"
    NOT_EVENT_MESSAGE = "NotEventMessage"
    INVALID_MESSAGE = "InvalidMessage"
    MESSAGE_NOT_FOUND = "MessageNotFound"


# HTTP status code mapping
ERROR_STATUS_CODES = {
    MessageErrorCode.EVENT_IS_NOT_ACTIVE: 400,
    MessageErrorCode.INVALID_EVENT_NAME: 400,
    MessageErrorCode.NOT_MESSAGE_FOR_SUBSCRIBER: 400,
    MessageErrorCode.INVALID_MESSAGE: 400,
    MessageErrorCode.MESSAGE_NOT_FOUND: 400,
    # Nothing to fan out: a "no content" outcome, not a failure
    MessageErrorCode.NOT_EVENT_MESSAGE: 204,
    MessageErrorCode.INTERNAL_ERROR: 500,
}


def get_status_code(error_code: MessageErrorCode) -> int:
    """
    Get HTTP status code for an error code.

    Args:
        error_code: The error code

    Returns:
        HTTP status code (defaults to 500 if not mapped)
    """
    return ERROR_STATUS_CODES.get(error_code, 500)


def is_client_error(error_code: MessageErrorCode) -> bool:
    """Check if the error code represents a client error (4xx)."""
    status = get_status_code(error_code)
    return 400 <= status < 500


def is_server_error(error_code: MessageErrorCode) -> bool:
    """Check if the error code represents a server error (5xx)."""
    status = get_status_code(error_code)
    return status >= 500
