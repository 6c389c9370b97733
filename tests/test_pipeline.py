"""
Full router tests using in-memory adapters only.

No network, no credentials, no LLM API calls.  Each test drives
TriageRouter.handle() the way the daemon does, one message at a time.
"""

import asyncio
from pathlib import Path

import pytest

from src.adapters.json_catalog import load_catalog
from src.adapters.memory_drafts import InMemoryDraftStore
from src.adapters.memory_simulator import InMemoryIncidentRepository, InMemoryMessageLog
from src.adapters.rule_intent import RuleIntentClassifier
from src.adapters.static_access import StaticAccessGate
from src.domain.areas import AreaDetector
from src.domain.intent import InboundMessage
from src.domain.places import PlaceResolver
from src.pipeline import PipelineConfig, TriageRouter

CATALOG_PATH = Path(__file__).parent.parent / "data" / "places.json"

DM = "5215550001111@c.us"
READ_ONLY_DM = "5215550002222@c.us"
GROUP = "ops-mantenimiento@g.us"


@pytest.fixture
def gate():
    return StaticAccessGate(
        conversations={
            DM: {"role": "staff", "may_create_incident": True},
            READ_ONLY_DM: {"role": "viewer"},
            GROUP: {"role": "team", "may_update_incident": True},
        },
    )


@pytest.fixture
def incidents():
    return InMemoryIncidentRepository()


@pytest.fixture
def message_log():
    return InMemoryMessageLog()


def _router(gate, incidents, message_log, drafts=None):
    return TriageRouter(PipelineConfig(
        drafts=drafts or InMemoryDraftStore(),
        places=PlaceResolver(catalog=load_catalog(str(CATALOG_PATH))),
        areas=AreaDetector(),
        classifier=RuleIntentClassifier(),
        access=gate,
        incidents=incidents,
        message_log=message_log,
    ))


@pytest.fixture
def router(gate, incidents, message_log):
    return _router(gate, incidents, message_log)


_ids = iter(range(1, 10_000))


def _msg(text, conversation_id=DM, author="ana", **kwargs):
    return InboundMessage(f"wamid-{next(_ids)}", conversation_id, author, text, **kwargs)


# ---------------------------------------------------------------------------
# Filtering and dedupe
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_greeting_is_smalltalk(router, incidents):
    result = await router.handle(_msg("hola"))
    assert result.action == "smalltalk"
    assert result.intent == "smalltalk"
    assert await incidents.list_open_incidents(DM) == []


@pytest.mark.asyncio
async def test_own_and_broadcast_messages_are_ignored(router):
    assert (await router.handle(_msg("1205 no enciende el aire", from_self=True))).action == "ignored"
    assert (await router.handle(_msg("promo", is_broadcast=True))).action == "ignored"


@pytest.mark.asyncio
async def test_redelivered_message_is_handled_once(router):
    msg = _msg("1205 no enciende el aire")
    first = await router.handle(msg)
    second = await router.handle(msg)
    assert first.action == "preview"
    assert second.action == "duplicate"
    assert second.message_id == msg.message_id


@pytest.mark.asyncio
async def test_message_log_survives_router_restart(gate, incidents, message_log):
    msg = _msg("hola")
    await _router(gate, incidents, message_log).handle(msg)
    result = await _router(gate, incidents, message_log).handle(msg)
    assert result.action == "duplicate"


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unknown_direct_conversation_requests_access(router, gate):
    result = await router.handle(_msg("hola, soy nuevo", conversation_id="5215559999999@c.us"))
    assert result.action == "access_requested"
    assert gate.access_requests == [("5215559999999@c.us", "ana", "hola, soy nuevo")]


@pytest.mark.asyncio
async def test_unknown_group_is_ignored_silently(router, gate):
    result = await router.handle(_msg("MAN-00001 listo", conversation_id="otro@g.us", is_group=True))
    assert result.action == "ignored"
    assert gate.access_requests == []


@pytest.mark.asyncio
async def test_reporting_needs_create_capability(router):
    result = await router.handle(_msg("fuga en el lobby", conversation_id=READ_ONLY_DM))
    assert result.action == "access_denied"


# ---------------------------------------------------------------------------
# Incident lifecycle across flows
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_report_confirm_query_and_update(router, incidents):
    preview = await router.handle(_msg("1205 no enciende el aire"))
    assert preview.action == "preview"
    assert preview.intent == "new_incident"

    submitted = await router.handle(_msg("si"))
    assert submitted.action == "submitted"
    assert submitted.intent == "continue_incident"
    folio = submitted.incident.folio
    assert folio == "MAN-00001"

    status = await router.handle(_msg(f"como va el {folio}?"))
    assert status.action == "status"
    assert status.incident.folio == folio

    update = await router.handle(
        _msg(f"{folio} ya quedó, se cambió el capacitor", conversation_id=GROUP,
             author="luis", is_group=True)
    )
    assert update.action == "team_update_recorded"
    assert update.detail == "done_claim"
    stored = await incidents.get_incident(folio)
    assert [u.author for u in stored.updates] == ["luis"]
    assert stored.status == "done"


def _team(text):
    return _msg(text, conversation_id=GROUP, author="luis", is_group=True)


@pytest.mark.asyncio
async def test_team_updates_drive_incident_status(router, incidents):
    await router.handle(_msg("1205 no enciende el aire"))
    folio = (await router.handle(_msg("si"))).incident.folio

    working = await router.handle(_team(f"{folio} vamos para allá"))
    assert working.incident.status == "in_progress"

    note = await router.handle(_team(f"{folio} le avisé al huésped"))
    assert note.detail == "none"
    assert note.incident.status == "in_progress"

    done = await router.handle(_team(f"{folio} ya quedó"))
    assert done.incident.status == "done"
    assert (await router.handle(_msg("/status"))).incidents == []

    reopened = await router.handle(_team(f"{folio} sigue sin servir"))
    assert reopened.incident.status == "open"

    cancelled = await router.handle(_team(f"{folio} cancelen, era duplicado"))
    assert cancelled.incident.status == "cancelled"
    stored = await incidents.get_incident(folio)
    assert [u.status for u in stored.updates] == ["in_progress", None, "done", "open", "cancelled"]


@pytest.mark.asyncio
async def test_status_without_folio_lists_open_incidents(router):
    await router.handle(_msg("1205 no enciende el aire"))
    await router.handle(_msg("si"))
    result = await router.handle(_msg("/status"))
    assert result.action == "status"
    assert [i.folio for i in result.incidents] == ["MAN-00001"]


@pytest.mark.asyncio
async def test_unknown_folio_is_not_found(router):
    result = await router.handle(_msg("IT-00042 listo", conversation_id=GROUP, is_group=True))
    assert result.action == "not_found"
    assert result.detail == "IT-00042"


@pytest.mark.asyncio
async def test_quoted_folio_without_update_rights_answers_status(router):
    await router.handle(_msg("1205 no enciende el aire"))
    await router.handle(_msg("si"))
    result = await router.handle(_msg("ya quedó?", quoted_text="Folio MAN-00001 creado"))
    assert result.action == "status"
    assert result.incident.folio == "MAN-00001"


@pytest.mark.asyncio
async def test_group_chatter_never_starts_a_draft(router):
    result = await router.handle(
        _msg("se tapó el lavabo del gym", conversation_id=GROUP, is_group=True)
    )
    assert result.action == "unknown"


@pytest.mark.asyncio
async def test_active_draft_takes_every_message(router):
    await router.handle(_msg("no funciona la regadera"))
    result = await router.handle(_msg("hola"))
    assert result.intent == "continue_incident"
    assert result.action == "needs_place"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_commands_without_draft(router):
    assert (await router.handle(_msg("/help"))).action == "help"
    assert (await router.handle(_msg("/cancel"))).action == "cancelled"
    result = await router.handle(_msg("/reboot"))
    assert result.action == "unknown_command"
    assert result.detail == "reboot"


# ---------------------------------------------------------------------------
# Failure isolation and ordering
# ---------------------------------------------------------------------------


class _BrokenDrafts(InMemoryDraftStore):
    async def get(self, conversation_id):
        raise RuntimeError("draft store down")


@pytest.mark.asyncio
async def test_raising_flow_becomes_fallback(gate, incidents, message_log):
    router = _router(gate, incidents, message_log, drafts=_BrokenDrafts())
    result = await router.handle(_msg("1205 no enciende el aire"))
    assert result.action == "fallback"
    assert result.conversation_id == DM


@pytest.mark.asyncio
async def test_same_conversation_turns_are_serialized(router):
    results = await asyncio.gather(
        router.handle(_msg("1205 no enciende el aire")),
        router.handle(_msg("si")),
    )
    assert [r.action for r in results] == ["preview", "submitted"]


@pytest.mark.asyncio
async def test_conversations_do_not_share_drafts(router, gate):
    gate._conversations["5215550003333@c.us"] = {"may_create_incident": True}
    await router.handle(_msg("no funciona la regadera"))
    other = await router.handle(_msg("hola", conversation_id="5215550003333@c.us"))
    assert other.action == "smalltalk"
