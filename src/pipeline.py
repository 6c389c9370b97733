"""
Message triage router: one entry point for every inbound message.

Precedence, in order:
  0. self-authored and broadcast messages are ignored
  1. dedupe by message id: short in-memory window, then the persistent MessageLog
  2. access gate: unknown direct conversations go to the access-request
     sub-flow, unknown groups are ignored
  3. an active draft takes the message, whatever it says
  4. otherwise the intent classifier picks the flow
  5. dispatch: drafting, status, team_update, command, smalltalk, unknown

Turns of one conversation are serialized with a per-conversation lock;
different conversations run concurrently.  A flow that raises is logged and
turned into a "fallback" result; nothing escapes handle().
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable

from src.domain.access import AccessDecision, AccessGate
from src.domain.areas import AreaDetector
from src.domain.drafts import DraftConfig, DraftStore
from src.domain.incidents import IncidentRepository
from src.domain.intent import InboundMessage, IntentClassifier, IntentResult
from src.domain.memory import MessageLog
from src.domain.places import PlaceResolver
from src.domain.status import detect_status_intent, next_status
from src.domain.turns import TurnResult
from src.drafting import DraftingFlow

log = logging.getLogger(__name__)


@dataclass
class RouterConfig:
    dedupe_ttl_seconds: float = 120.0
    dedupe_max_entries: int = 5000


@dataclass
class PipelineConfig:
    drafts: DraftStore
    places: PlaceResolver
    areas: AreaDetector
    classifier: IntentClassifier
    access: AccessGate
    incidents: IncidentRepository
    message_log: MessageLog
    router: RouterConfig = field(default_factory=RouterConfig)
    draft: DraftConfig = field(default_factory=DraftConfig)
    monotonic: Callable[[], float] = time.monotonic


class TriageRouter:
    """
    Route inbound messages to flows and return data-only TurnResults.

    Call handle() once per delivered message; redeliveries are recognised
    by message id and answered with "duplicate".
    """

    def __init__(self, config: PipelineConfig):
        self._cfg = config
        self._drafting = DraftingFlow(
            drafts=config.drafts,
            places=config.places,
            areas=config.areas,
            incidents=config.incidents,
            config=config.draft,
        )
        self._recent: dict[str, float] = {}
        self._locks: dict[str, list] = {}   # conversation id → [Lock, waiters]

    async def handle(self, message: InboundMessage) -> TurnResult:
        conv, mid = message.conversation_id, message.message_id

        if message.from_self or message.is_broadcast:
            return TurnResult("ignored", conv, mid, detail="self_or_broadcast")

        if mid and self._seen_recently(mid):
            log.info("conv=%s msg=%s skip: redelivered", conv, mid)
            return TurnResult("duplicate", conv, mid)

        try:
            if mid:
                if await self._cfg.message_log.has_message_been_seen(mid):
                    log.info("conv=%s msg=%s skip: already handled", conv, mid)
                    return TurnResult("duplicate", conv, mid)
                await self._cfg.message_log.mark_message_seen(mid, conv)

            async with self._conversation_lock(conv):
                result = await self._route(message)
        except Exception:
            log.exception("conv=%s msg=%s routing failed", conv, mid)
            return TurnResult("fallback", conv, mid, detail="internal_error")

        result.conversation_id = conv
        result.message_id = mid
        log.info("conv=%s msg=%s → %s %s", conv, mid, result.action, result.detail)
        return result

    # -- dedupe and locking --------------------------------------------------

    def _seen_recently(self, message_id: str) -> bool:
        """Check and record in one step, with no await in between."""
        now = self._cfg.monotonic()
        ttl = self._cfg.router.dedupe_ttl_seconds
        expired = [k for k, t in self._recent.items() if now - t > ttl]
        for k in expired:
            del self._recent[k]
        if message_id in self._recent:
            return True
        if len(self._recent) >= self._cfg.router.dedupe_max_entries:
            oldest = min(self._recent, key=self._recent.get)
            del self._recent[oldest]
        self._recent[message_id] = now
        return False

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str):
        entry = self._locks.setdefault(conversation_id, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[conversation_id]

    # -- routing -------------------------------------------------------------

    async def _route(self, message: InboundMessage) -> TurnResult:
        conv = message.conversation_id
        decision = await self._cfg.access.check(conv, message.author)
        if not decision.allowed:
            return await self._denied(message, decision)

        if await self._cfg.drafts.get(conv) is not None:
            result = await self._drafting.handle(message)
            result.intent = "continue_incident"
            return result

        intent = await self._cfg.classifier.classify(message, has_active_draft=False)
        log.debug("conv=%s intent=%s target=%s conf=%.2f reason=%s",
                  conv, intent.intent, intent.target, intent.confidence, intent.reason)

        result = await self._dispatch(message, intent, decision)
        result.intent = intent.intent
        return result

    async def _denied(self, message: InboundMessage, decision: AccessDecision) -> TurnResult:
        if message.is_group:
            return TurnResult("ignored", detail=f"access_denied:{decision.reason}")
        await self._cfg.access.request_access(message.conversation_id, message.author, message.text)
        return TurnResult("access_requested", detail=decision.reason)

    async def _dispatch(
        self, message: InboundMessage, intent: IntentResult, decision: AccessDecision
    ) -> TurnResult:
        target = intent.target

        if target == "ignore":
            return TurnResult("ignored", detail=intent.reason)

        if target == "drafting":
            if not decision.may_create_incident:
                return TurnResult("access_denied", detail="may_not_create_incident")
            return await self._drafting.handle(message)

        if target == "command":
            return await self._command(message, intent)

        if target == "team_update":
            if decision.may_update_incident:
                return await self._team_update(message, intent)
            if message.is_group:
                return TurnResult("ignored", detail="may_not_update_incident")
            return await self._status(message, intent.signals.ticket)

        if target == "status":
            return await self._status(message, intent.signals.ticket)

        if target == "smalltalk":
            action = "help" if intent.reason == "help" else "smalltalk"
            return TurnResult(action, detail=intent.reason)

        return TurnResult("unknown", detail=intent.reason)

    # -- flows ---------------------------------------------------------------

    async def _status(self, message: InboundMessage, folio: str | None) -> TurnResult:
        incidents = self._cfg.incidents
        if folio:
            incident = await incidents.get_incident(folio)
            if incident is None:
                return TurnResult("not_found", detail=folio)
            return TurnResult("status", incident=incident, detail=incident.status)
        open_incidents = await incidents.list_open_incidents(message.conversation_id)
        return TurnResult("status", incidents=open_incidents, detail=f"open={len(open_incidents)}")

    async def _team_update(self, message: InboundMessage, intent: IntentResult) -> TurnResult:
        folio = intent.signals.ticket
        incidents = self._cfg.incidents
        current = await incidents.get_incident(folio)
        if current is None:
            return TurnResult("not_found", detail=folio)
        status_intent = detect_status_intent(message.text)
        status = next_status(current.status, status_intent)
        incident = await incidents.append_update(folio, message.author, message.text, status)
        if incident is None:
            return TurnResult("not_found", detail=folio)
        log.info("conv=%s update appended to %s by %s (%s: %s -> %s)",
                 message.conversation_id, folio, message.author,
                 status_intent, current.status, incident.status)
        return TurnResult("team_update_recorded", incident=incident, detail=status_intent)

    async def _command(self, message: InboundMessage, intent: IntentResult) -> TurnResult:
        signals = intent.signals
        command = signals.command
        if command in ("cancel", "cancelar"):
            return TurnResult("cancelled", detail="no_active_draft")
        if command in ("help", "ayuda"):
            return TurnResult("help", detail="command")
        if command in ("status", "estatus"):
            return await self._status(message, signals.folio)
        return TurnResult("unknown_command", detail=command or "")
