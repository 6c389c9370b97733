"""
IntentClassifier port: decides which flow an inbound message belongs to.

The classifier only reads the message and whether the conversation has an
active draft; it never touches state.  The router dispatches on `target`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal


@dataclass
class InboundMessage:
    """One message as delivered by the transport, already decoded."""
    message_id: str
    conversation_id: str
    author: str
    text: str
    is_group: bool = False
    from_self: bool = False
    is_broadcast: bool = False        # status/broadcast pseudo-conversations
    quoted_text: str | None = None    # body of the message being replied to
    has_media: bool = False
    received_at: datetime | None = None


@dataclass
class IntentSignals:
    """Structural flags extracted from the message before deciding."""
    is_group: bool = False
    is_command: bool = False
    command: str | None = None        # "cancel", "help", "status", ...
    command_args: str = ""
    folio: str | None = None          # ticket id found in the body
    quoted_folio: str | None = None   # ticket id found in the quoted message
    is_greeting: bool = False
    is_help: bool = False
    is_meta_bot: bool = False
    is_incident_like: bool = False
    is_status_query: bool = False
    is_clearly_non_incident: bool = False
    has_room: bool = False

    @property
    def ticket(self) -> str | None:
        return self.folio or self.quoted_folio


Intent = Literal[
    "self_message",
    "command",
    "team_update",
    "status_query",
    "continue_incident",
    "new_incident",
    "smalltalk",
    "unknown",
]

Target = Literal["command", "team_update", "status", "drafting", "smalltalk", "unknown", "ignore"]


@dataclass
class IntentResult:
    """Structured output of intent classification: data only."""
    intent: Intent
    target: Target
    confidence: float                 # 0.0–1.0
    reason: str                       # short tag, e.g. "slash", "incident_dm"
    signals: IntentSignals = field(default_factory=IntentSignals)


class IntentClassifier(ABC):
    """
    Port: classify an inbound message into a macro intent.

    Implementations: RuleIntentClassifier (keyword and pattern heuristics).
    Every implementation must honour the same priority order:
    command > ticket reference > active draft > incident-like > status
    query > smalltalk > unknown.
    """

    @abstractmethod
    async def classify(
        self, message: InboundMessage, has_active_draft: bool = False
    ) -> IntentResult:
        ...
