"""
Drafting flow: the conversation that turns free text into a complete incident.

Modes (stored on the draft):
  neutral   : gathering the description; place and department extracted on the side
  ask_place : waiting for a location (zone option, candidate choice or new phrase)
  ask_area  : waiting for a department (menu number, code or alias)
  preview   : everything is known; waiting for yes / no / a correction
  confirm   : submitting to the incident repository

After every turn `_advance` picks the next step:
  description unusable → needs_description
  no place             → ask_place
  no department        → ask_area
  otherwise            → preview
"""

import logging
import re

from src.domain.areas import AreaDetector
from src.domain.drafts import ConversationDraft, DraftConfig, DraftStore
from src.domain.incidents import IncidentRepository
from src.domain.intent import InboundMessage
from src.domain.places import PlaceResolution, PlaceResolver, build_disambiguation_prompt
from src.domain.text import contains_phrase, normalize
from src.domain.turns import TurnResult

log = logging.getLogger(__name__)

# -- reply vocabulary --------------------------------------------------------

YES_TOKENS = frozenset({
    "si", "yes", "ok", "okay", "vale", "va", "dale", "listo",
    "correcto", "enviar", "mandalo", "confirmo", "confirmar",
    "afirmativo", "send", "simon", "claro", "sale",
})
NO_TOKENS = frozenset({"no", "nop", "nopes", "nel", "negativo", "ninguno"})
CANCEL_TOKENS = frozenset({"cancelar", "cancela", "cancelalo", "cancel", "/cancel", "/cancelar"})

_YES_PATTERNS = [
    re.compile(p) for p in (
        r"^si\b", r"\benvialo?\b", r"\bmandalo?\b", r"\bconfirmo\b", r"\bdale\b",
        r"\bperfecto\b", r"\besta bien\b", r"\basi (esta|queda) bien\b",
        r"\bde acuerdo\b", r"\bprocede\b", r"\bhazlo\b", r"\badelante\b",
    )
]
_YES_EMOJI = ("👍", "✅", "✔️")
_NO_EMOJI = ("❌", "✖️")

_FOLLOWUP_RE = re.compile(
    r"^((ah )?(y )?tambien|ademas|aparte|y aparte|otro detalle|otra cosa|y otra cosa)\b"
)
_PLACE_CHANGE_RE = re.compile(
    r"^(es en|en|cambia(r)? (el )?lugar (a|para)|el lugar es|lugar)\s+(?P<place>.+)$"
)
_AREA_CHANGE_RE = re.compile(
    r"^((es )?(para|de)|cambia(r)? (el )?area (a|para)|area)\s+(?P<area>.+)$"
)
# matched against the raw reply so the new description keeps its accents
_DESCRIPTION_EDIT_RE = re.compile(
    r"^(cambia|cambiar|reemplaza|reemplazar|actualiza|actualizar)\s+(la\s+)?descripci[oó]n\s+(a|por)\s+(?P<text>.+)$",
    re.IGNORECASE | re.DOTALL,
)
_BARE_ROOM_RE = re.compile(r"^\d{3,4}$")

# -- description cleanup -----------------------------------------------------

_INTRO_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"^menciona\s+(a\s+[\w\s]+?\s+)?(que\s+)?",
        r"^dice\s+(a\s+[\w\s]+?\s+)?(que\s+)?",
        r"^reporta\s+(a\s+[\w\s]+?\s+)?(que\s+)?",
        r"^(por\s+favor|pf|porfa|please|pls)[,.]?\s*",
        r"^(hola|buen[oa]?s?\s+(d[ií]as?|tardes?|noches?))[,.!]?\s*",
    )
]
_TYPO_FIXES = [
    (re.compile(r"\b(frotn|frton|fornt)\b", re.IGNORECASE), "front"),
    (re.compile(r"\baire\s*acondicion?ado\b", re.IGNORECASE), "A/C"),
    (re.compile(r"\bno\s+(sirve|jala)\b", re.IGNORECASE), "no funciona"),
]


def clean_description(raw: str | None) -> str:
    """Strip greetings, politeness and a leading room number; fix common typos."""
    text = (raw or "").strip()
    text = re.sub(r"@\S+", "", text)
    for pattern in _INTRO_PATTERNS:
        text = pattern.sub("", text).strip()
    text = re.sub(r"^\d{3,4}\s*[,.:;-]?\s*", "", text)
    text = re.sub(r"\s+de\s+(la\s+)?habitaci[oó]n\s+\d+", "", text, flags=re.IGNORECASE)
    text = re.sub(r"^[,.:;!¡¿?\-]+\s*", "", text)
    text = re.sub(r"\s*[,.:;]+$", "", text)
    for pattern, replacement in _TYPO_FIXES:
        text = pattern.sub(replacement, text)
    text = re.sub(r"\s+", " ", text).strip()
    return text[:1].upper() + text[1:]


def is_yes(text: str | None) -> bool:
    t = normalize(text)
    if t in YES_TOKENS:
        return True
    if any(e in (text or "") for e in _YES_EMOJI):
        return True
    return any(p.search(t) for p in _YES_PATTERNS)


def is_no(text: str | None) -> bool:
    t = normalize(text)
    if t in NO_TOKENS:
        return True
    if any(e in (text or "") for e in _NO_EMOJI):
        return True
    return bool(re.search(r"\bno (lo )?(envi|mand)", t))


def is_cancel(text: str | None) -> bool:
    raw = (text or "").strip().lower()
    return raw in CANCEL_TOKENS or normalize(text) in CANCEL_TOKENS


def classify_preview_reply(text: str | None) -> tuple[str, str]:
    """
    Classify a reply to the preview.  Returns (kind, payload) where payload is
    the place / area / description text extracted from the reply, if any.
    """
    raw = (text or "").strip()
    t = normalize(raw)
    if is_yes(raw):
        return "confirm", ""
    if is_no(raw):
        return "cancel", ""
    if _FOLLOWUP_RE.search(t):
        return "detail_followup", raw

    m = _DESCRIPTION_EDIT_RE.match(raw)
    if m:
        return "description_edit", m.group("text").strip()

    if _BARE_ROOM_RE.match(t):
        return "place_change", t
    m = _PLACE_CHANGE_RE.match(t)
    if m and len(raw) < 40:
        return "place_change", m.group("place")
    m = _AREA_CHANGE_RE.match(t)
    if m and len(raw) < 30:
        return "area_change", m.group("area")
    if len(raw) > 50:
        return "long_message", raw
    return "unknown", raw


class DraftingFlow:

    def __init__(
        self,
        drafts: DraftStore,
        places: PlaceResolver,
        areas: AreaDetector,
        incidents: IncidentRepository,
        config: DraftConfig | None = None,
    ):
        self._drafts = drafts
        self._places = places
        self._areas = areas
        self._incidents = incidents
        self._cfg = config or DraftConfig()

    async def handle(self, message: InboundMessage) -> TurnResult:
        conv = message.conversation_id
        text = (message.text or "").strip()
        draft = await self._drafts.ensure(conv)
        draft.push_turn("user", text)

        if is_cancel(text):
            log.info("conv=%s msg=%s draft cancelled in mode=%s", conv, message.message_id, draft.mode)
            snapshot = draft.snapshot()
            draft.close()
            await self._drafts.reset(conv)
            return TurnResult("cancelled", conv, draft=snapshot)

        if text.startswith("/"):
            if normalize(text) == "help":
                return self._result(draft, "help", detail=f"mode={draft.mode}")
            return await self._advance(draft, detail="command_ignored_in_draft")

        handler = {
            "neutral": self._on_neutral,
            "ask_place": self._on_ask_place,
            "ask_area": self._on_ask_area,
            "preview": self._on_preview,
            "confirm": self._on_preview,
        }[draft.mode]
        return await handler(draft, text)

    # -- modes ---------------------------------------------------------------

    async def _on_neutral(self, draft: ConversationDraft, text: str) -> TurnResult:
        cleaned = clean_description(text)
        if cleaned:
            if draft.description:
                draft.set_field("description", f"{draft.description}. {cleaned}")
            else:
                draft.set_field("description", cleaned)
                draft.set_field("original_description", text)
            draft.set_field("interpretation", normalize(draft.description))

        if draft.place is None and not draft.pending_zone:
            res = await self._places.resolve(text, allow_freeform=False)
            self._apply_place(draft, res)

        if draft.department is None:
            await self._detect_department(draft, text)

        return await self._advance(draft)

    async def _on_ask_place(self, draft: ConversationDraft, text: str) -> TurnResult:
        if draft.pending_zone:
            res = self._places.resolve_disambiguation(draft.pending_zone, text)
            if res.found:
                self._apply_place(draft, res)
                return await self._after_place(draft, text)

        if draft.pending_candidates:
            res = self._places.choose_candidate(draft.pending_candidates, text)
            if res.found:
                self._apply_place(draft, res)
                return await self._after_place(draft, text)

        if (draft.pending_zone or draft.pending_candidates) and normalize(text).isdigit() \
                and len(normalize(text)) < 3:
            return await self._advance(draft, detail="invalid_choice")

        res = await self._places.resolve(text, allow_freeform=True)
        if res.found or res.status in ("needs_disambiguation", "ambiguous_candidates"):
            self._apply_place(draft, res)
            return await self._after_place(draft, text)

        if self._looks_like_detail(text):
            cleaned = clean_description(text)
            draft.set_field("description", f"{draft.description}. {cleaned}" if draft.description else cleaned)
            draft.set_field("interpretation", normalize(draft.description))
            return await self._advance(draft, detail="detail_added")

        return await self._advance(draft, detail=f"place_{res.status}")

    async def _after_place(self, draft: ConversationDraft, text: str) -> TurnResult:
        if draft.place is not None and draft.department is None:
            # the place alone can pin the department ("room service" area, "cocina")
            await self._detect_department(draft, draft.description, use_semantic=False)
        return await self._advance(draft)

    async def _on_ask_area(self, draft: ConversationDraft, text: str) -> TurnResult:
        code = self._areas.normalize_department_code(text)
        if code is None:
            result = await self._areas.detect(text, context=self._area_context(draft))
            code = result.department
        if code is None:
            return await self._advance(draft, detail="area_not_recognized")
        draft.add_department(code)
        return await self._advance(draft)

    async def _on_preview(self, draft: ConversationDraft, text: str) -> TurnResult:
        kind, payload = classify_preview_reply(text)
        log.debug("conv=%s preview reply → %s", draft.conversation_id, kind)

        if kind == "confirm":
            return await self._submit(draft)

        if kind == "cancel":
            snapshot = draft.snapshot()
            draft.close()
            await self._drafts.reset(draft.conversation_id)
            return TurnResult("cancelled", draft.conversation_id, draft=snapshot)

        if kind == "place_change":
            res = await self._places.resolve(payload, allow_freeform=True)
            if res.found or res.status in ("needs_disambiguation", "ambiguous_candidates"):
                draft.set_field("place", None)
                draft.clear_pending_place()
                self._apply_place(draft, res)
                return await self._advance(draft, detail="place_changed")
            return await self._advance(draft, detail="place_not_found")

        if kind == "area_change":
            code = self._areas.normalize_department_code(payload)
            if code:
                draft.replace_departments([code])
                return await self._advance(draft, detail="area_changed")
            return await self._advance(draft, detail="area_not_recognized")

        if kind == "description_edit":
            cleaned = clean_description(payload)
            draft.set_field("description", cleaned)
            draft.set_field("interpretation", normalize(cleaned))
            return await self._advance(draft, detail="description_replaced")

        if kind in ("detail_followup", "long_message"):
            draft.add_note(clean_description(payload))
            return await self._advance(draft, detail="detail_added")

        return await self._advance(draft, detail="awaiting_confirmation")

    # -- helpers -------------------------------------------------------------

    async def _submit(self, draft: ConversationDraft) -> TurnResult:
        conv = draft.conversation_id
        if not draft.is_ready_for_preview():
            return await self._advance(draft)
        draft.set_mode("confirm")
        try:
            incident = await self._incidents.create_incident(draft)
        except Exception:
            log.exception("conv=%s incident creation failed; draft kept", conv)
            draft.set_mode("preview")
            return self._result(draft, "submit_failed")

        log.info("conv=%s incident %s created dept=%s place=%s",
                 conv, incident.folio, incident.department, incident.place)
        snapshot = draft.snapshot()
        draft.close()
        await self._drafts.reset(conv)
        return TurnResult("submitted", conv, draft=snapshot, incident=incident)

    def _apply_place(self, draft: ConversationDraft, res: PlaceResolution) -> None:
        if res.found:
            draft.set_field("place", res.place)
            draft.clear_pending_place()
        elif res.status == "needs_disambiguation":
            draft.set_field("pending_zone", res.zone_key)
            draft.set_field("pending_candidates", [])
        elif res.status == "ambiguous_candidates":
            draft.set_field("pending_zone", None)
            draft.set_field("pending_candidates", list(res.candidates))

    async def _detect_department(
        self, draft: ConversationDraft, text: str, use_semantic: bool = True
    ) -> None:
        if use_semantic:
            result = await self._areas.detect(text, context=self._area_context(draft))
        else:
            result = self._areas.detect_local(text)
        if result.decided:
            draft.add_department(result.department)
            log.info("conv=%s department=%s conf=%.2f via %s",
                     draft.conversation_id, result.department, result.confidence, result.rationale)

    def _area_context(self, draft: ConversationDraft) -> dict:
        return {"place": draft.place.label if draft.place else None}

    def _looks_like_detail(self, text: str) -> bool:
        if len(text) >= self._cfg.min_description_length:
            return True
        return any(contains_phrase(text, p) for p in self._areas.lexicon.failure_phrases)

    async def _advance(self, draft: ConversationDraft, detail: str = "") -> TurnResult:
        if not draft.has_usable_description(
            self._cfg.min_description_length, self._areas.lexicon.failure_phrases
        ):
            draft.set_mode("neutral")
            return self._result(draft, "needs_description", detail=detail)

        if draft.place is None:
            draft.set_mode("ask_place")
            draft.set_field("asked_place", True)
            if draft.pending_zone:
                zone = self._places.zones[draft.pending_zone]
                return self._result(
                    draft, "needs_place_choice",
                    options=[{"key": o.key, "label": o.label, "description": o.description}
                             for o in zone.options],
                    prompt=build_disambiguation_prompt(zone),
                    detail=detail or f"zone={zone.key}",
                )
            if draft.pending_candidates:
                return self._result(
                    draft, "needs_place_choice",
                    options=[{"key": str(i), "label": c.label, "score": c.score}
                             for i, c in enumerate(draft.pending_candidates, start=1)],
                    detail=detail or "ambiguous_candidates",
                )
            return self._result(draft, "needs_place", detail=detail)

        if draft.department is None:
            draft.set_mode("ask_area")
            draft.set_field("asked_area", True)
            return self._result(
                draft, "needs_area",
                options=[{"key": n, "code": code, "label": label} for n, code, label in self._areas.menu()],
                detail=detail,
            )

        draft.set_mode("preview")
        draft.set_field("preview_shown", True)
        return self._result(draft, "preview", detail=detail)

    def _result(self, draft: ConversationDraft, action: str, **kwargs) -> TurnResult:
        draft.push_turn("bot", action)
        return TurnResult(action, draft.conversation_id, draft=draft.snapshot(), **kwargs)
