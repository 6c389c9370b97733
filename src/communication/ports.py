from abc import ABC, abstractmethod

from src.domain.intent import InboundMessage
from src.domain.turns import TurnResult


class MessageSource(ABC):
    """
    Port: where inbound messages come from.

    The triage logic depends ONLY on this interface.  It doesn't know
    or care whether messages arrive via WhatsApp, a web hook or a
    terminal.
    """

    @abstractmethod
    async def poll(self) -> list[InboundMessage]:
        """Return all messages received since the last poll, oldest first."""
        ...


class Notifier(ABC):
    """
    Port: how turn results reach people.

    Adapters decide the wording; the router only hands over data.
    """

    @abstractmethod
    async def send(self, result: TurnResult) -> None:
        ...
