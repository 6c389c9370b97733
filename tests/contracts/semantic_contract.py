"""
Contract tests for semantic services (PlaceValidator, AreaClassifier).

Any implementation must answer with a verdict or Unavailable and never
raise; area answers must stay inside the allowed code set.
"""

from abc import ABC, abstractmethod

import pytest

from src.domain.semantic import (
    AreaClassifier,
    AreaVerdict,
    PlaceValidator,
    PlaceVerdict,
    Unavailable,
)

ALLOWED = ["it", "man", "ama", "rs", "seg"]


class PlaceValidatorContract(ABC):

    @abstractmethod
    def create_validator(self) -> PlaceValidator:
        ...

    @pytest.mark.asyncio
    async def test_answers_with_verdict_or_unavailable(self):
        result = await self.create_validator().validate_place("junto a la fuente del jardín")
        assert isinstance(result, (PlaceVerdict, Unavailable))

    @pytest.mark.asyncio
    async def test_confidence_is_bounded(self):
        result = await self.create_validator().validate_place(
            "la banca del pasillo norte", {"candidates": ["Lobby"]}
        )
        if isinstance(result, PlaceVerdict):
            assert 0.0 <= result.confidence <= 1.0

    @pytest.mark.asyncio
    async def test_non_place_text_does_not_raise(self):
        result = await self.create_validator().validate_place("no sirve")
        assert isinstance(result, (PlaceVerdict, Unavailable))


class AreaClassifierContract(ABC):

    @abstractmethod
    def create_classifier(self) -> AreaClassifier:
        ...

    @pytest.mark.asyncio
    async def test_answer_stays_in_allowed_set(self):
        result = await self.create_classifier().classify_area(
            "huele a gas en el pasillo del piso 3", ALLOWED
        )
        assert isinstance(result, (AreaVerdict, Unavailable))
        if isinstance(result, AreaVerdict):
            assert result.primary is None or result.primary in ALLOWED
            assert all(c in ALLOWED for c in result.candidates)

    @pytest.mark.asyncio
    async def test_context_is_accepted(self):
        result = await self.create_classifier().classify_area(
            "la pantalla parpadea", ALLOWED, {"place": "Lobby"}
        )
        assert isinstance(result, (AreaVerdict, Unavailable))
