"""
eventmq

Event outbox and publish/subscribe distribution engine.
"""

from . import database
from . import messaging
from . import shared

__version__ = "1.0.0"

__all__ = ["database", "messaging", "shared", "__version__"]
