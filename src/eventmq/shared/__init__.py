"""
Shared error codes and exceptions.
"""

from .error_codes import (
    MessageErrorCode,
    get_status_code,
    is_client_error,
    is_server_error,
)
from .exceptions import (
    MessageMQError,
    InvalidEventNameError,
    NotEventMessageError,
    MessageNotFoundError,
)

__all__ = [
    "MessageErrorCode",
    "get_status_code",
    "is_client_error",
    "is_server_error",
    "MessageMQError",
    "InvalidEventNameError",
    "NotEventMessageError",
    "MessageNotFoundError",
]
