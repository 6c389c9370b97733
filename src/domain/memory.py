"""
MessageLog port: remembers which inbound messages were already handled.

Transports redeliver.  The router keeps a short in-memory window of
message ids, and this port is the persistent second check that survives
restarts.
"""

from abc import ABC, abstractmethod


class MessageLog(ABC):
    """Port: persistent message-level dedupe."""

    @abstractmethod
    async def has_message_been_seen(self, message_id: str) -> bool:
        ...

    @abstractmethod
    async def mark_message_seen(self, message_id: str, conversation_id: str) -> None:
        """Record a message id.  Marking the same id twice must not raise."""
        ...
