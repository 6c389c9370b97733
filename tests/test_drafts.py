"""
Draft store contract against the in-memory adapter, plus the draft
mutation primitives and predicates.
"""

from datetime import datetime, timezone

import pytest

from src.adapters.memory_drafts import InMemoryDraftStore
from src.domain.drafts import ConversationDraft, DraftConfig
from src.domain.places import ResolvedPlace
from tests.contracts.draft_store_contract import DraftStoreContract, FakeClock


class TestInMemoryDraftStore(DraftStoreContract):

    def create_store(self, config, clock):
        return InMemoryDraftStore(config, clock=clock)


def _draft() -> ConversationDraft:
    now = datetime.now(timezone.utc)
    return ConversationDraft(conversation_id="c", created_at=now, updated_at=now)


def _place() -> ResolvedPlace:
    return ResolvedPlace(label="Lobby", canonical="Lobby", building="A")


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def test_ready_needs_all_three_fields():
    d = _draft()
    assert d.is_ready_for_preview() is False
    d.set_field("description", "No enciende el aire")
    assert d.is_ready_for_preview() is False
    d.set_field("place", _place())
    assert d.is_ready_for_preview() is False
    d.add_department("man")
    assert d.is_ready_for_preview() is True
    d.remove_department("man")
    assert d.is_ready_for_preview() is False


def test_failure_phrase_makes_short_description_usable():
    d = _draft()
    d.set_field("description", "No enciende")
    assert d.has_usable_description(min_length=40, failure_phrases=["no enciende"]) is True


def test_short_vague_description_is_not_usable():
    d = _draft()
    d.set_field("description", "el cuarto")
    assert d.has_usable_description(min_length=40, failure_phrases=["no enciende"]) is False


def test_long_description_is_usable_without_failure_phrase():
    d = _draft()
    d.set_field("description", "Favor de revisar la iluminación del pasillo norte del piso 3")
    assert d.has_usable_description(min_length=40, failure_phrases=[]) is True


def test_empty_description_is_never_usable():
    assert _draft().has_usable_description(min_length=0, failure_phrases=[]) is False


# ---------------------------------------------------------------------------
# Mutation primitives
# ---------------------------------------------------------------------------


def test_place_fills_structural_fields():
    d = _draft()
    d.set_field("place", ResolvedPlace(label="Habitación 1205", canonical="Habitación 1205",
                                       building="A", floor="12", room="1205"))
    assert (d.building, d.floor, d.room) == ("A", "12", "1205")


def test_unknown_field_is_rejected():
    with pytest.raises(AttributeError):
        _draft().set_field("closed", True)


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        _draft().set_mode("waiting")


def test_department_set_operations():
    d = _draft()
    d.add_department("man")
    d.add_department("IT")
    d.add_department("man")
    assert d.departments == ["man", "it"]
    assert d.department == "man"
    d.remove_department("man")
    assert d.department == "it"
    d.replace_departments(["seg", "seg", "ama"])
    assert d.departments == ["seg", "ama"]
    assert d.department == "seg"


def test_tags_and_notes_skip_blanks_and_duplicates():
    d = _draft()
    d.add_tag("Urgente")
    d.add_tag("urgente")
    d.add_note("  ")
    d.add_note("también gotea")
    assert d.tags == ["urgente"]
    assert d.notes == ["también gotea"]


def test_snapshot_is_plain_data():
    d = _draft()
    d.set_field("description", "Fuga")
    d.set_field("place", _place())
    snap = d.snapshot()
    assert snap["place"] == "Lobby"
    assert snap["mode"] == "neutral"
    snap["notes"].append("x")
    assert d.notes == []


# ---------------------------------------------------------------------------
# Place fields
# ---------------------------------------------------------------------------


def test_setting_place_replaces_location_fields():
    d = _draft()
    d.set_field("place", ResolvedPlace(
        label="Habitación 1205", canonical="Habitación 1205", building="A", floor="12", room="1205",
    ))
    assert (d.building, d.floor, d.room) == ("A", "12", "1205")
    d.set_field("place", ResolvedPlace(label="Gimnasio", canonical="Gimnasio"))
    assert (d.building, d.floor, d.room) == (None, None, None)


def test_clearing_place_clears_location_fields():
    d = _draft()
    d.set_field("place", _place())
    d.set_field("place", None)
    assert d.place is None
    assert d.building is None


@pytest.mark.asyncio
async def test_new_draft_drops_abandoned_expired_drafts():
    clock = FakeClock()
    store = InMemoryDraftStore(DraftConfig(ttl_seconds=60), clock=clock)
    await store.ensure("abandoned")
    await store.ensure("closed")
    (await store.get("closed")).close()
    clock.advance(61)
    await store.ensure("fresh")
    assert list(store._drafts) == ["fresh"]
