"""
Core polling logic for the triage daemon.

Extracted from scripts/run.py so it can be imported and tested
without pulling in Claude or a real transport.
"""

import asyncio
import logging

from src.communication.ports import MessageSource, Notifier
from src.domain.intent import InboundMessage
from src.domain.turns import TurnResult
from src.pipeline import TriageRouter

log = logging.getLogger(__name__)

# Results nobody needs to hear about
_SILENT = ("ignored", "duplicate")


async def poll_once(
    router: TriageRouter,
    source: MessageSource,
    notifier: Notifier,
) -> list[TurnResult]:
    """
    One poll cycle.

    1. Fetch everything the source received since the last poll.
    2. Route all messages concurrently; the router serializes turns of the
       same conversation, so a batch may hold several messages per chat.
    3. Hand every non-silent result to the notifier.
    """
    try:
        messages = await source.poll()
    except Exception as exc:
        log.error("Failed to poll message source: %s", exc)
        return []

    if not messages:
        return []
    log.debug("Polled %d message(s)", len(messages))

    results = await asyncio.gather(*(_handle_one(router, notifier, m) for m in messages))
    return list(results)


async def _handle_one(router: TriageRouter, notifier: Notifier, message: InboundMessage) -> TurnResult:
    result = await router.handle(message)
    if result.action in _SILENT:
        return result
    try:
        await notifier.send(result)
    except Exception as exc:
        log.error("conv=%s msg=%s notify failed: %s",
                  message.conversation_id, message.message_id, exc)
    return result
