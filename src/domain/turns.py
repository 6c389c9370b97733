"""
TurnResult: what the router hands back for each inbound message.

Data only.  Rendering it into chat text is the notifier's job; the single
exception is a zone prompt, which is configured text and passed through.
"""

from dataclasses import dataclass, field
from typing import Literal

from src.domain.incidents import Incident

Action = Literal[
    "ignored",               # self-authored, broadcast, or denied group message
    "duplicate",             # message id seen before
    "access_requested",      # unknown direct conversation, request recorded
    "access_denied",         # known but lacking the capability for this flow
    "needs_description",
    "needs_place",
    "needs_place_choice",    # zone options or ambiguous candidates attached
    "needs_area",
    "preview",
    "submitted",
    "submit_failed",         # repository error; draft kept for a retry
    "cancelled",
    "status",
    "team_update_recorded",
    "not_found",             # folio unknown
    "smalltalk",
    "help",
    "unknown",
    "unknown_command",
    "fallback",              # a flow raised; generic apology
]


@dataclass
class TurnResult:
    action: Action
    conversation_id: str = ""
    message_id: str = ""
    intent: str | None = None
    draft: dict | None = None                  # ConversationDraft.snapshot()
    options: list[dict] = field(default_factory=list)
    prompt: str | None = None                  # zone prompt text, when asking for one
    incident: Incident | None = None
    incidents: list[Incident] = field(default_factory=list)
    detail: str = ""
