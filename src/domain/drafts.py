"""
Conversation drafts: the incident being assembled across turns.

A draft is keyed by conversation id, created on the first incident-like
message, mutated turn by turn by the drafting flow, and closed on submit or
cancel.  Drafts expire lazily: a read after `ttl_seconds` of inactivity
treats the draft as absent and drops it.  There is no background sweep.

The store only exposes mutation primitives; which mode follows which is
decided in src/drafting.py.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Literal

from src.data import load_data
from src.domain.places import PlaceCandidate, ResolvedPlace
from src.domain.text import contains_phrase, normalize

Mode = Literal["neutral", "ask_place", "ask_area", "preview", "confirm"]
MODES = ("neutral", "ask_place", "ask_area", "preview", "confirm")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DraftConfig:
    ttl_seconds: float = 900.0
    history_limit: int = 100
    min_description_length: int = 40


@lru_cache(maxsize=1)
def _default_failure_phrases() -> tuple[str, ...]:
    return tuple(load_data("departments").get("failure_phrases", []))


@dataclass
class Turn:
    role: str          # "user" or "bot"
    text: str
    at: datetime


# Fields the drafting flow may assign through set_field()
_SETTABLE = frozenset({
    "description", "original_description", "interpretation",
    "place", "department",
    "priority", "severity", "due_date", "building", "floor", "room",
    "pending_zone", "pending_candidates",
    "asked_place", "asked_area", "preview_shown",
})


@dataclass
class ConversationDraft:
    conversation_id: str
    created_at: datetime
    updated_at: datetime

    description: str = ""
    original_description: str = ""
    interpretation: str = ""
    place: ResolvedPlace | None = None
    department: str | None = None
    departments: list[str] = field(default_factory=list)

    priority: str | None = None
    severity: str | None = None
    due_date: str | None = None
    building: str | None = None
    floor: str | None = None
    room: str | None = None
    tags: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    mode: Mode = "neutral"
    asked_place: bool = False
    asked_area: bool = False
    preview_shown: bool = False
    pending_zone: str | None = None
    pending_candidates: list[PlaceCandidate] = field(default_factory=list)

    history: list[Turn] = field(default_factory=list)
    closed: bool = False

    history_limit: int = 100
    clock: Clock = field(default=utc_now, repr=False, compare=False)

    # -- mutation primitives -------------------------------------------------

    def touch(self) -> None:
        self.updated_at = self.clock()

    def set_field(self, name: str, value) -> None:
        if name not in _SETTABLE:
            raise AttributeError(f"draft field {name!r} is not settable")
        setattr(self, name, value)
        if name == "place":
            # location fields always describe the current place
            self.building = value.building if value else None
            self.floor = value.floor if value else None
            self.room = value.room if value else None
        self.touch()

    def set_mode(self, mode: Mode) -> None:
        if mode not in MODES:
            raise ValueError(f"unknown draft mode {mode!r}")
        self.mode = mode
        self.touch()

    def add_note(self, text: str) -> None:
        text = (text or "").strip()
        if text:
            self.notes.append(text)
            self.touch()

    def add_tag(self, tag: str) -> None:
        tag = (tag or "").strip().lower()
        if tag and tag not in self.tags:
            self.tags.append(tag)
            self.touch()

    def add_department(self, code: str) -> None:
        code = (code or "").strip().lower()
        if not code:
            return
        if code not in self.departments:
            self.departments.append(code)
        if self.department is None:
            self.department = code
        self.touch()

    def remove_department(self, code: str) -> None:
        code = (code or "").strip().lower()
        if code in self.departments:
            self.departments.remove(code)
        if self.department == code:
            self.department = self.departments[0] if self.departments else None
        self.touch()

    def replace_departments(self, codes: list[str]) -> None:
        cleaned = [c.strip().lower() for c in codes if c and c.strip()]
        self.departments = list(dict.fromkeys(cleaned))
        self.department = self.departments[0] if self.departments else None
        self.touch()

    def push_turn(self, role: str, text: str) -> None:
        self.history.append(Turn(role, text, self.clock()))
        if len(self.history) > self.history_limit:
            del self.history[: len(self.history) - self.history_limit]
        self.touch()

    def clear_pending_place(self) -> None:
        self.pending_zone = None
        self.pending_candidates = []
        self.touch()

    def close(self) -> None:
        self.closed = True
        self.touch()

    # -- predicates ----------------------------------------------------------

    def has_usable_description(
        self,
        min_length: int = 40,
        failure_phrases: tuple[str, ...] | list[str] | None = None,
    ) -> bool:
        desc = (self.description or "").strip()
        if not desc:
            return False
        phrases = _default_failure_phrases() if failure_phrases is None else failure_phrases
        if any(contains_phrase(desc, p) for p in phrases):
            return True
        return len(desc) >= min_length

    def is_ready_for_preview(self) -> bool:
        return bool(
            normalize(self.description)
            and self.place is not None
            and self.department
        )

    def snapshot(self) -> dict:
        """Plain-data view handed out in turn results."""
        return {
            "conversation_id": self.conversation_id,
            "description": self.description,
            "interpretation": self.interpretation,
            "place": self.place.label if self.place else None,
            "place_source": self.place.source if self.place else None,
            "department": self.department,
            "departments": list(self.departments),
            "building": self.building,
            "floor": self.floor,
            "room": self.room,
            "priority": self.priority,
            "severity": self.severity,
            "tags": list(self.tags),
            "notes": list(self.notes),
            "mode": self.mode,
        }


class DraftStore(ABC):
    """
    Port: keyed storage of conversation drafts with lazy expiry.

    `get` returns None for unknown, expired or closed drafts (expired ones
    are deleted on that read).  `ensure` returns the active draft or
    creates a fresh one.
    """

    @abstractmethod
    async def get(self, conversation_id: str) -> ConversationDraft | None:
        ...

    @abstractmethod
    async def ensure(self, conversation_id: str) -> ConversationDraft:
        ...

    @abstractmethod
    async def reset(self, conversation_id: str) -> None:
        """Drop the draft for this conversation, if any."""
        ...

    @abstractmethod
    async def active_count(self) -> int:
        """Number of live (not expired, not closed) drafts."""
        ...
