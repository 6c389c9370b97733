from src.domain.intent import InboundMessage
from src.domain.turns import TurnResult

from .ports import MessageSource, Notifier


class RecordingNotifier(Notifier):
    """Adapter: keep every result in memory. For tests and the REPL."""

    def __init__(self):
        self.sent: list[TurnResult] = []

    async def send(self, result: TurnResult) -> None:
        self.sent.append(result)


class QueueMessageSource(MessageSource):
    """Adapter: messages pushed in by tests or a dev CLI."""

    def __init__(self):
        self._pending: list[InboundMessage] = []

    def push(self, message: InboundMessage) -> None:
        self._pending.append(message)

    async def poll(self) -> list[InboundMessage]:
        messages = self._pending.copy()
        self._pending.clear()
        return messages
