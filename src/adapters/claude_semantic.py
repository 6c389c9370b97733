"""
Claude-backed semantic services: place validation and department classification.

System prompts live in src/prompts/ and are the source of truth for the
rules.  The model answers with JSON that maps directly onto PlaceVerdict /
AreaVerdict.  Anything that goes wrong (no key, timeout, API error, bad
JSON) comes back as Unavailable; nothing is raised to the resolvers.
"""

import asyncio
import json
import logging
import os

import anthropic

from src.domain.semantic import (
    AreaClassifier,
    AreaVerdict,
    PlaceValidator,
    PlaceVerdict,
    Unavailable,
)
from src.prompts import load_prompt

log = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"


def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    # Strip markdown code fences if the model wraps the JSON
    if raw.startswith("```"):
        raw = raw.split("```")[1]
        if raw.startswith("json"):
            raw = raw[4:]
    return raw.strip()


def _clamp(value) -> float:
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


class _ClaudeJson:
    """One JSON-in/JSON-out call to Claude, bounded by `timeout` seconds."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        timeout: float = 8.0,
        max_tokens: int = 256,
    ):
        key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self._client = anthropic.AsyncAnthropic(api_key=key, timeout=timeout) if key else None
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens

    async def _ask(self, system: str, user_content: str) -> dict | Unavailable:
        if self._client is None:
            return Unavailable("missing_credentials")
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._model,
                    max_tokens=self._max_tokens,
                    system=system,
                    messages=[{"role": "user", "content": user_content}],
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Claude call timed out after %.1fs", self._timeout)
            return Unavailable("timeout")
        except anthropic.APIError as exc:
            log.warning("Claude call failed: %s", exc)
            return Unavailable("transport")

        try:
            data = json.loads(_strip_fences(response.content[0].text))
        except (IndexError, AttributeError, json.JSONDecodeError) as exc:
            log.warning("Claude returned malformed JSON: %s", exc)
            return Unavailable("malformed")
        if not isinstance(data, dict):
            log.warning("Claude returned %s instead of an object", type(data).__name__)
            return Unavailable("malformed")
        return data


class ClaudePlaceValidator(_ClaudeJson, PlaceValidator):
    """Place validation backed by Claude claude-haiku-4-5-20251001 (fast + cheap)."""

    async def validate_place(
        self, text: str, context: dict | None = None
    ) -> PlaceVerdict | Unavailable:
        user_content = f"Text:\n{text}"
        candidates = (context or {}).get("candidates") or []
        if candidates:
            user_content += "\n\nCatalog candidates:\n" + "\n".join(f"  - {c}" for c in candidates)

        data = await self._ask(load_prompt("place_validation"), user_content)
        if isinstance(data, Unavailable):
            return data
        if not isinstance(data.get("is_place"), bool):
            log.warning("place validation reply lacks is_place: %s", data)
            return Unavailable("malformed")

        normalized = data.get("normalized_place")
        return PlaceVerdict(
            is_place=data["is_place"],
            normalized=normalized.strip() if isinstance(normalized, str) and normalized.strip() else None,
            confidence=_clamp(data.get("confidence", 0.0)),
            rationale=str(data.get("reason") or ""),
        )


class ClaudeAreaClassifier(_ClaudeJson, AreaClassifier):
    """Department classification backed by Claude, constrained to the allowed codes."""

    async def classify_area(
        self, text: str, allowed: list[str], context: dict | None = None
    ) -> AreaVerdict | Unavailable:
        user_content = f"Allowed codes: {', '.join(allowed)}\n\nMessage:\n{text}"
        place = (context or {}).get("place")
        if place:
            user_content += f"\n\nReported place: {place}"

        data = await self._ask(load_prompt("area_classification"), user_content)
        if isinstance(data, Unavailable):
            return data

        primary = data.get("primary_area")
        listed = data.get("areas_list") or []
        if not isinstance(listed, list):
            return Unavailable("malformed")
        return AreaVerdict(
            primary=primary if primary in allowed else None,
            candidates=[c for c in listed if c in allowed],
            confidence=_clamp(data.get("confidence", 0.0)),
            rationale=str(data.get("rationale") or ""),
        )
