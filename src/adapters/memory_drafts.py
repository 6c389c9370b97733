"""
In-memory adapter for DraftStore: the default; drafts do not survive restarts.

Expired and closed drafts of other conversations are dropped whenever a new
draft is created.
"""

import logging

from src.domain.drafts import Clock, ConversationDraft, DraftConfig, DraftStore, utc_now

log = logging.getLogger(__name__)


class InMemoryDraftStore(DraftStore):

    def __init__(self, config: DraftConfig | None = None, clock: Clock | None = None):
        self._cfg = config or DraftConfig()
        self._clock = clock or utc_now
        self._drafts: dict[str, ConversationDraft] = {}

    def _live(self, conversation_id: str) -> ConversationDraft | None:
        draft = self._drafts.get(conversation_id)
        if draft is None:
            return None
        if draft.closed:
            del self._drafts[conversation_id]
            return None
        idle = (self._clock() - draft.updated_at).total_seconds()
        if idle > self._cfg.ttl_seconds:
            log.info("conv=%s draft expired after %.0fs idle", conversation_id, idle)
            del self._drafts[conversation_id]
            return None
        return draft

    async def get(self, conversation_id: str) -> ConversationDraft | None:
        return self._live(conversation_id)

    def _prune(self) -> None:
        for cid in list(self._drafts):
            self._live(cid)

    async def ensure(self, conversation_id: str) -> ConversationDraft:
        draft = self._live(conversation_id)
        if draft is None:
            now = self._clock()
            draft = ConversationDraft(
                conversation_id=conversation_id,
                created_at=now,
                updated_at=now,
                history_limit=self._cfg.history_limit,
                clock=self._clock,
            )
            self._prune()
            self._drafts[conversation_id] = draft
        return draft

    async def reset(self, conversation_id: str) -> None:
        self._drafts.pop(conversation_id, None)

    async def active_count(self) -> int:
        return sum(1 for cid in list(self._drafts) if self._live(cid) is not None)
