"""
Daemon behaviour tests for poll_once().

In-memory adapters only: no network, no credentials.
Covers: notification of results, silent results, error isolation and
batches holding several messages of one conversation.
"""

from pathlib import Path

import pytest

from src.adapters.json_catalog import load_catalog
from src.adapters.memory_drafts import InMemoryDraftStore
from src.adapters.memory_simulator import InMemoryIncidentRepository, InMemoryMessageLog
from src.adapters.rule_intent import RuleIntentClassifier
from src.adapters.static_access import StaticAccessGate
from src.communication.ports import MessageSource, Notifier
from src.communication.recording import QueueMessageSource, RecordingNotifier
from src.daemon import poll_once
from src.domain.areas import AreaDetector
from src.domain.intent import InboundMessage
from src.domain.places import PlaceResolver
from src.pipeline import PipelineConfig, TriageRouter

CATALOG_PATH = Path(__file__).parent.parent / "data" / "places.json"
DM = "5215550001111@c.us"


@pytest.fixture
def router():
    cfg = PipelineConfig(
        drafts=InMemoryDraftStore(),
        places=PlaceResolver(catalog=load_catalog(str(CATALOG_PATH))),
        areas=AreaDetector(),
        classifier=RuleIntentClassifier(),
        access=StaticAccessGate(conversations={DM: {"may_create_incident": True}}),
        incidents=InMemoryIncidentRepository(),
        message_log=InMemoryMessageLog(),
    )
    return TriageRouter(cfg)


@pytest.fixture
def source():
    return QueueMessageSource()


@pytest.fixture
def notifier():
    return RecordingNotifier()


def _msg(mid, text, **kwargs):
    return InboundMessage(mid, DM, "ana", text, **kwargs)


@pytest.mark.asyncio
async def test_empty_poll_does_nothing(router, source, notifier):
    assert await poll_once(router, source, notifier) == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_results_are_notified(router, source, notifier):
    source.push(_msg("m1", "1205 no enciende el aire"))
    results = await poll_once(router, source, notifier)
    assert [r.action for r in results] == ["preview"]
    assert notifier.sent[0].draft["place"] == "Habitación 1205"


@pytest.mark.asyncio
async def test_silent_results_are_not_notified(router, source, notifier):
    source.push(_msg("m1", "hola"))
    source.push(_msg("m1", "hola"))
    source.push(_msg("m2", "hola", from_self=True))
    results = await poll_once(router, source, notifier)
    assert sorted(r.action for r in results) == ["duplicate", "ignored", "smalltalk"]
    assert [r.action for r in notifier.sent] == ["smalltalk"]


@pytest.mark.asyncio
async def test_batch_with_several_turns_of_one_conversation(router, source, notifier):
    source.push(_msg("m1", "1205 no enciende el aire"))
    source.push(_msg("m2", "si"))
    results = await poll_once(router, source, notifier)
    assert [r.action for r in results] == ["preview", "submitted"]
    assert notifier.sent[-1].incident.folio == "MAN-00001"


@pytest.mark.asyncio
async def test_queue_is_drained(router, source, notifier):
    source.push(_msg("m1", "hola"))
    await poll_once(router, source, notifier)
    assert await poll_once(router, source, notifier) == []


@pytest.mark.asyncio
async def test_failing_source_is_isolated(router, notifier):
    class BrokenSource(MessageSource):
        async def poll(self):
            raise ConnectionError("transport down")

    assert await poll_once(router, BrokenSource(), notifier) == []


@pytest.mark.asyncio
async def test_failing_notifier_does_not_lose_results(router, source):
    class BrokenNotifier(Notifier):
        async def send(self, result):
            raise OSError("broken pipe")

    source.push(_msg("m1", "hola"))
    results = await poll_once(router, source, BrokenNotifier())
    assert [r.action for r in results] == ["smalltalk"]
