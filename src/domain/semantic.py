"""
Semantic-service ports: the language model as a narrow collaborator.

The place resolver and the department detector only reach for these when
their local heuristics are inconclusive.  Every implementation must return
either a verdict or Unavailable; transport errors, malformed payloads,
missing credentials and timeouts all collapse into Unavailable and are never
raised to the caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Unavailable:
    """The service could not give an answer this time."""
    reason: str = "unavailable"   # "missing_credentials", "timeout", "malformed", ...


@dataclass
class PlaceVerdict:
    """Is this phrase a physical place inside the hotel?"""
    is_place: bool
    normalized: str | None        # cleaned-up place name, e.g. "Fuente principal"
    confidence: float             # 0.0–1.0
    rationale: str = ""


@dataclass
class AreaVerdict:
    """Department(s) the service believes should handle the text."""
    primary: str | None                                  # one of the closed set, or None
    candidates: list[str] = field(default_factory=list)  # ranked, same closed set
    confidence: float = 0.0
    rationale: str = ""


class PlaceValidator(ABC):
    """
    Port: judge whether free text plausibly names a physical place.

    Implementations: ClaudePlaceValidator (LLM), ScriptedPlaceValidator
    (fixed answers for tests), UnavailableSemanticService (always degrades).
    """

    @abstractmethod
    async def validate_place(
        self, text: str, context: dict | None = None
    ) -> PlaceVerdict | Unavailable:
        ...


class AreaClassifier(ABC):
    """
    Port: map free text onto the closed department set.

    `allowed` is the closed set of department codes the answer must use;
    anything outside it is discarded by the caller.
    """

    @abstractmethod
    async def classify_area(
        self, text: str, allowed: list[str], context: dict | None = None
    ) -> AreaVerdict | Unavailable:
        ...
