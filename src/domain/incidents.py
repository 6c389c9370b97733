"""
IncidentRepository port: where confirmed drafts become incidents.

Each incident gets a folio, the human-facing reference staff quote back
("MAN-00012").  The counter is per department.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from src.domain.drafts import ConversationDraft


@dataclass
class IncidentUpdate:
    author: str
    text: str
    at: datetime
    status: str | None = None       # status set by this update, if it changed one


@dataclass
class Incident:
    id: int
    folio: str
    description: str
    place: str
    department: str
    conversation_id: str
    status: str                     # "open", "in_progress", "done", "cancelled"
    created_at: datetime
    updated_at: datetime
    interpretation: str = ""
    departments: list[str] = field(default_factory=list)
    building: str | None = None
    floor: str | None = None
    room: str | None = None
    priority: str | None = None
    notes: list[str] = field(default_factory=list)
    updates: list[IncidentUpdate] = field(default_factory=list)


OPEN_STATUSES = ("open", "in_progress")


def format_folio(department: str, number: int) -> str:
    return f"{department.upper()}-{number:05d}"


class IncidentRepository(ABC):

    @abstractmethod
    async def create_incident(self, draft: ConversationDraft) -> Incident:
        """Persist a ready draft.  Raises ValueError if the draft is not ready."""
        ...

    @abstractmethod
    async def get_incident(self, folio: str) -> Incident | None:
        ...

    @abstractmethod
    async def list_open_incidents(self, conversation_id: str) -> list[Incident]:
        """Open incidents reported from this conversation, oldest first."""
        ...

    @abstractmethod
    async def append_update(
        self, folio: str, author: str, text: str, status: str | None = None
    ) -> Incident | None:
        """
        Append a team update; None when the folio is unknown.

        A `status` different from the current one is applied and recorded
        on the update.
        """
        ...
