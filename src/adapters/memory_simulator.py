"""In-memory adapters for MessageLog and IncidentRepository: for tests and local development."""

from datetime import datetime, timezone

from src.domain.drafts import ConversationDraft
from src.domain.incidents import (
    OPEN_STATUSES,
    Incident,
    IncidentRepository,
    IncidentUpdate,
    format_folio,
)
from src.domain.memory import MessageLog


class InMemoryMessageLog(MessageLog):

    def __init__(self):
        self._seen: dict[str, str] = {}

    async def has_message_been_seen(self, message_id: str) -> bool:
        return message_id in self._seen

    async def mark_message_seen(self, message_id: str, conversation_id: str) -> None:
        self._seen.setdefault(message_id, conversation_id)


class InMemoryIncidentRepository(IncidentRepository):
    """
    Keeps incidents in a dict keyed by folio.

    `fail_next` makes the next create_incident raise, to exercise the
    submit-failure path of the drafting flow.
    """

    def __init__(self):
        self._incidents: dict[str, Incident] = {}
        self._counters: dict[str, int] = {}
        self.fail_next = False

    async def create_incident(self, draft: ConversationDraft) -> Incident:
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("incident store unavailable")
        if not draft.is_ready_for_preview():
            raise ValueError(f"draft for {draft.conversation_id} is not complete")

        dept = draft.department
        self._counters[dept] = self._counters.get(dept, 0) + 1
        now = datetime.now(timezone.utc)
        incident = Incident(
            id=len(self._incidents) + 1,
            folio=format_folio(dept, self._counters[dept]),
            description=draft.description,
            place=draft.place.label,
            department=dept,
            conversation_id=draft.conversation_id,
            status="open",
            created_at=now,
            updated_at=now,
            interpretation=draft.interpretation,
            departments=list(draft.departments),
            building=draft.building,
            floor=draft.floor,
            room=draft.room,
            priority=draft.priority,
            notes=list(draft.notes),
        )
        self._incidents[incident.folio] = incident
        return incident

    async def get_incident(self, folio: str) -> Incident | None:
        return self._incidents.get((folio or "").upper())

    async def list_open_incidents(self, conversation_id: str) -> list[Incident]:
        return [
            i for i in self._incidents.values()
            if i.conversation_id == conversation_id and i.status in OPEN_STATUSES
        ]

    async def append_update(
        self, folio: str, author: str, text: str, status: str | None = None
    ) -> Incident | None:
        incident = self._incidents.get((folio or "").upper())
        if incident is None:
            return None
        now = datetime.now(timezone.utc)
        changed = status if status and status != incident.status else None
        if changed:
            incident.status = changed
        incident.updates.append(IncidentUpdate(author, text, now, changed))
        incident.updated_at = now
        return incident
