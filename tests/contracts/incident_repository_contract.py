"""
Contract tests for any IncidentRepository implementation.

- A ready draft becomes an open incident with a department folio
- Folios count per department
- Incomplete drafts are refused
- Open incidents are listed per conversation
- Team updates are appended; unknown folios return None
- An update may move the incident status; the change is kept on the update
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

import pytest

from src.domain.drafts import ConversationDraft
from src.domain.incidents import IncidentRepository
from src.domain.places import ResolvedPlace


def _draft(conv: str = "5215550001", dept: str | None = "man", place: str | None = "Habitación 1205"):
    now = datetime.now(timezone.utc)
    draft = ConversationDraft(conversation_id=conv, created_at=now, updated_at=now)
    draft.set_field("description", "No enciende el aire")
    if place:
        draft.set_field("place", ResolvedPlace(label=place, canonical=place, room="1205", floor="12"))
    if dept:
        draft.add_department(dept)
    return draft


class IncidentRepositoryContract(ABC):

    @abstractmethod
    def create_repository(self) -> IncidentRepository:
        ...

    @pytest.mark.asyncio
    async def test_create_assigns_department_folio(self):
        repo = self.create_repository()
        incident = await repo.create_incident(_draft())
        assert incident.folio == "MAN-00001"
        assert incident.status == "open"
        assert incident.place == "Habitación 1205"
        assert incident.room == "1205"

    @pytest.mark.asyncio
    async def test_folios_count_per_department(self):
        repo = self.create_repository()
        await repo.create_incident(_draft(dept="man"))
        second = await repo.create_incident(_draft(dept="man"))
        other = await repo.create_incident(_draft(dept="it"))
        assert second.folio == "MAN-00002"
        assert other.folio == "IT-00001"

    @pytest.mark.asyncio
    async def test_incomplete_draft_is_refused(self):
        repo = self.create_repository()
        with pytest.raises(ValueError):
            await repo.create_incident(_draft(dept=None))

    @pytest.mark.asyncio
    async def test_get_incident_by_folio_any_case(self):
        repo = self.create_repository()
        created = await repo.create_incident(_draft())
        found = await repo.get_incident(created.folio.lower())
        assert found is not None
        assert found.description == "No enciende el aire"

    @pytest.mark.asyncio
    async def test_get_unknown_folio_returns_none(self):
        repo = self.create_repository()
        assert await repo.get_incident("SEG-99999") is None

    @pytest.mark.asyncio
    async def test_open_incidents_are_per_conversation(self):
        repo = self.create_repository()
        await repo.create_incident(_draft(conv="a"))
        await repo.create_incident(_draft(conv="a", dept="ama"))
        await repo.create_incident(_draft(conv="b"))
        mine = await repo.list_open_incidents("a")
        assert [i.folio for i in mine] == ["MAN-00001", "AMA-00001"]

    @pytest.mark.asyncio
    async def test_append_update(self):
        repo = self.create_repository()
        created = await repo.create_incident(_draft())
        updated = await repo.append_update(created.folio, "tech-7", "ya quedó")
        assert updated is not None
        assert [(u.author, u.text) for u in updated.updates] == [("tech-7", "ya quedó")]

    @pytest.mark.asyncio
    async def test_append_update_unknown_folio(self):
        repo = self.create_repository()
        assert await repo.append_update("MAN-00404", "tech-7", "listo") is None

    @pytest.mark.asyncio
    async def test_append_update_with_status_changes_incident(self):
        repo = self.create_repository()
        created = await repo.create_incident(_draft())
        await repo.append_update(created.folio, "tech-7", "vamos para allá", "in_progress")
        done = await repo.append_update(created.folio, "tech-7", "ya quedó", "done")
        assert done.status == "done"
        assert [u.status for u in done.updates] == ["in_progress", "done"]
        assert await repo.list_open_incidents(created.conversation_id) == []

    @pytest.mark.asyncio
    async def test_append_update_with_same_status_records_no_change(self):
        repo = self.create_repository()
        created = await repo.create_incident(_draft())
        updated = await repo.append_update(created.folio, "tech-7", "nota", "open")
        assert updated.status == "open"
        assert updated.updates[0].status is None
