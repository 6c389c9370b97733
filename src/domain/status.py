"""
Incident status machine driven by team updates.

A team message about a folio is read for a status intent ("ya quedó",
"vamos para allá", "cancelen"), and the transition table maps the current
status plus that intent to the next status.  Intents and phrases live in
src/data/status_intents.json.
"""

from functools import lru_cache

from src.data import load_data
from src.domain.text import contains_phrase

STATUS_INTENTS = ("none", "in_progress", "done_claim", "cancel_request", "reopen_request")


@lru_cache(maxsize=1)
def _table() -> dict:
    return load_data("status_intents")


def detect_status_intent(text: str | None, table: dict | None = None) -> str:
    """First intent in priority order with a matching phrase, else "none"."""
    table = table or _table()
    for intent in table["priority"]:
        if any(contains_phrase(text, p) for p in table["phrases"].get(intent, [])):
            return intent
    return "none"


def next_status(current: str, intent: str, table: dict | None = None) -> str:
    table = table or _table()
    return table["transitions"].get(intent, {}).get(current, current)
