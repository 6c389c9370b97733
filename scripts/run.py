"""
Local console runner for the incident triage pipeline.

Reads lines from the terminal as messages of one conversation, routes them
through the triage router and prints each turn result.  Handy for trying
phrasing against the real lexicons and catalog.

Usage:
    source .env && python scripts/run.py

Environment variables (see src/config.py for the full list):
    ANTHROPIC_API_KEY       - optional; without it the semantic fallbacks stay off
    CATALOG_PATH            - place catalog JSON (default: data/places.json)
    ACCESS_PATH             - access allow-list JSON; unset admits everyone
    DB_PATH                 - SQLite database path (default: data/triage.db)
    CONVERSATION_ID         - conversation id to use (default: console)
    LOG_LEVEL               - default INFO
"""

import asyncio
import itertools
import logging
import os
import sys

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.adapters.claude_semantic import ClaudeAreaClassifier, ClaudePlaceValidator
from src.adapters.json_catalog import catalog_loader, load_catalog
from src.adapters.memory_drafts import InMemoryDraftStore
from src.adapters.rule_intent import RuleIntentClassifier
from src.adapters.sqlite_incidents import SqliteIncidentRepository
from src.adapters.sqlite_memory import SqliteMessageLog
from src.adapters.static_access import StaticAccessGate
from src.communication.factory import create_notifier
from src.communication.recording import QueueMessageSource
from src.config import ConfigError, Settings
from src.daemon import poll_once
from src.domain.areas import AreaDetector, load_lexicon
from src.domain.drafts import DraftConfig
from src.domain.intent import InboundMessage
from src.domain.places import CatalogError, PlaceResolver, load_zones
from src.pipeline import PipelineConfig, RouterConfig, TriageRouter

log = logging.getLogger(__name__)


def build_router(settings: Settings) -> TriageRouter:
    db_dir = os.path.dirname(settings.db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    validator = classifier = None
    if settings.anthropic_api_key:
        validator = ClaudePlaceValidator(
            api_key=settings.anthropic_api_key,
            model=settings.claude_model,
            timeout=settings.semantic_timeout,
        )
        classifier = ClaudeAreaClassifier(
            api_key=settings.anthropic_api_key,
            model=settings.claude_model,
            timeout=settings.semantic_timeout,
        )
    else:
        log.warning("ANTHROPIC_API_KEY not set: semantic fallbacks disabled")

    access = (
        StaticAccessGate.from_file(settings.access_path)
        if settings.access_path
        else StaticAccessGate(allow_all=True)
    )
    draft_config = DraftConfig(ttl_seconds=settings.draft_ttl_seconds)

    config = PipelineConfig(
        drafts=InMemoryDraftStore(draft_config),
        places=PlaceResolver(
            catalog=load_catalog(settings.catalog_path),
            zones=load_zones(settings.zones_path),
            validator=validator,
            loader=catalog_loader(settings.catalog_path),
        ),
        areas=AreaDetector(classifier=classifier, lexicon=load_lexicon(settings.departments_path)),
        classifier=RuleIntentClassifier(),
        access=access,
        incidents=SqliteIncidentRepository(db_path=settings.db_path),
        message_log=SqliteMessageLog(db_path=settings.db_path),
        router=RouterConfig(dedupe_ttl_seconds=settings.dedupe_ttl_seconds),
        draft=draft_config,
    )
    return TriageRouter(config)


async def main() -> None:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s  %(levelname)-7s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        router = build_router(settings)
    except CatalogError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    lexicon = load_lexicon(settings.departments_path)
    notifier = create_notifier(
        settings.notify_channel,
        label_for=lambda code: lexicon.departments[code].label if code in lexicon.departments else code.upper(),
    )
    source = QueueMessageSource()
    conversation_id = os.environ.get("CONVERSATION_ID", "console")
    counter = itertools.count(1)

    log.info("Console started: conversation=%s  catalog=%s", conversation_id, settings.catalog_path)

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        if not line.strip():
            continue
        source.push(
            InboundMessage(
                message_id=f"console-{os.getpid()}-{next(counter)}",
                conversation_id=conversation_id,
                author=conversation_id,
                text=line,
            )
        )
        await poll_once(router, source, notifier)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Console stopped.")
