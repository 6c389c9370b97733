import os
from typing import Callable

from .ports import Notifier


def create_notifier(
    channel: str | None = None, label_for: Callable[[str], str] = str.upper
) -> Notifier:
    """
    Factory: create the right adapter based on config.

    The channel can be passed explicitly or read from the
    NOTIFY_CHANNEL env var. Defaults to "console".
    """
    channel = channel or os.environ.get("NOTIFY_CHANNEL", "console")

    if channel == "console":
        from .console_notifier import ConsoleNotifier

        return ConsoleNotifier(label_for=label_for)

    if channel == "recording":
        from .recording import RecordingNotifier

        return RecordingNotifier()

    raise ValueError(f"Unknown notify channel: {channel!r}")
