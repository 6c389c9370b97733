"""
Simulator semantic services: scripted answers for tests, no network.

ScriptedPlaceValidator / ScriptedAreaClassifier return canned verdicts keyed
by normalized text and record every call so tests can assert the service
was (or was not) consulted.  UnavailableSemanticService always degrades.
"""

from src.domain.semantic import (
    AreaClassifier,
    AreaVerdict,
    PlaceValidator,
    PlaceVerdict,
    Unavailable,
)
from src.domain.text import normalize


class ScriptedPlaceValidator(PlaceValidator):

    def __init__(
        self,
        answers: dict[str, PlaceVerdict | Unavailable] | None = None,
        default: PlaceVerdict | Unavailable | None = None,
    ):
        self._answers = {normalize(k): v for k, v in (answers or {}).items()}
        self._default = default or PlaceVerdict(is_place=False, normalized=None, confidence=0.9)
        self.calls: list[str] = []

    async def validate_place(
        self, text: str, context: dict | None = None
    ) -> PlaceVerdict | Unavailable:
        self.calls.append(text)
        return self._answers.get(normalize(text), self._default)


class ScriptedAreaClassifier(AreaClassifier):

    def __init__(
        self,
        answers: dict[str, AreaVerdict | Unavailable] | None = None,
        default: AreaVerdict | Unavailable | None = None,
    ):
        self._answers = {normalize(k): v for k, v in (answers or {}).items()}
        self._default = default or AreaVerdict(primary=None)
        self.calls: list[str] = []

    async def classify_area(
        self, text: str, allowed: list[str], context: dict | None = None
    ) -> AreaVerdict | Unavailable:
        self.calls.append(text)
        return self._answers.get(normalize(text), self._default)


class UnavailableSemanticService(PlaceValidator, AreaClassifier):
    """Stands in for an unreachable service: every call is Unavailable."""

    def __init__(self, reason: str = "unavailable"):
        self._reason = reason
        self.calls = 0

    async def validate_place(self, text: str, context: dict | None = None) -> Unavailable:
        self.calls += 1
        return Unavailable(self._reason)

    async def classify_area(
        self, text: str, allowed: list[str], context: dict | None = None
    ) -> Unavailable:
        self.calls += 1
        return Unavailable(self._reason)
