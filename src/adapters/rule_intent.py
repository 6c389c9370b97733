"""
RuleIntentClassifier: deterministic keyword/pattern intent classifier.

No LLM calls, no network.  Recognises the Spanish phrasing hotel staff use
when reporting problems, greeting the bot or asking about a ticket.  The
incident heuristic is deliberately generous: a direct message that is not
clearly something else becomes a new incident.
"""

import re

from src.domain.intent import InboundMessage, IntentClassifier, IntentResult, IntentSignals
from src.domain.text import contains_any, normalize

FOLIO_RE = re.compile(r"\b[A-Z]{2,8}-\d{3,6}\b")
_COMMAND_RE = re.compile(r"^/(\w+)\s*(.*)$", re.DOTALL)
_MENTION_RE = re.compile(r"@\d+")
_ROOM_RE = re.compile(r"\b\d{4}\b")
_ANY_NUMBER_RE = re.compile(r"\b\d{3,6}\b")

INCIDENT_HINTS = [
    "no sirve", "no prende", "no enciende", "no hay", "se descompuso",
    "fallando", "falla", "fallo", "no funciona", "dejo de funcionar",
    "apagado", "apagada", "descompuesto", "descompuesta",
    "fuga", "gotea", "goteo", "tirando agua", "tapado", "tapada",
    "atascado", "atascada", "no cae agua", "sin agua", "agua fria", "agua caliente",
    "regadera", "lavamanos", "lavabo", "inodoro", "wc",
    "corto", "cortocircuito", "chispa", "quemado", "quemada", "fundido",
    "sin luz", "no hay luz", "apagon", "contacto", "enchufe",
    "aire", "clima", "a c", "ac", "no enfria", "muy frio", "muy caliente",
    "trabado", "trabada", "atorado", "atorada", "roto", "rota", "rompio",
    "quebrado", "quebrada", "danado", "danada",
    "sucio", "sucia", "manchado", "manchada", "huele", "olor", "basura",
    "cucaracha", "insecto", "bicho", "hormiga",
    "urgente", "urge", "emergencia", "inmediato",
    "necesito", "ocupo", "requiero", "hace falta", "falta",
]

INCIDENT_PATTERNS = [
    re.compile(r"\bno (sirve|funciona|enciende|prende|hay|abre|cierra|enfria|calienta)\b"),
    re.compile(r"\besta (tapado|tapada|roto|rota|sucio|sucia|danado|danada)\b"),
    re.compile(r"\bse (rompio|descompuso|atoro|trabo|tapo|cayo|quemo)\b"),
    re.compile(r"\b(fuga|goteo|gotera)\b"),
    re.compile(r"\b(sin|no hay) (agua|luz|internet|wifi)\b"),
    re.compile(r"\b(habitacion|hab|cuarto|room) ?\d{3,4}\b"),
    re.compile(r"^\d{4}\b"),
]

GREETING_HINTS = [
    "hola", "buen dia", "buenos dias", "buenas tardes", "buenas noches",
    "hey", "hi", "hello", "que tal", "como estas",
]

META_BOT_HINTS = [
    "como te llamas", "quien eres", "que eres", "que puedes hacer",
    "eres un bot", "eres robot", "eres humano",
]

HELP_HINTS = ["como uso", "como funciona", "instrucciones", "tutorial"]

STATUS_QUERY_HINTS = [
    "como va", "como vamos", "como sigue", "que ha pasado",
    "ya quedaron", "ya lo arreglaron", "estatus", "status",
    "alguna novedad", "hay novedad", "ya esta listo",
]

_HOTEL_CONTEXT_RE = re.compile(
    r"\b(hab(itacion)?|room|villa|torre|piso|elevador|pasillo|lobby|recepcion|front ?desk|spa"
    r"|alberca|piscina|restaurante|bar|cocina|mantenimiento|hs?kp|ama|it|seguridad|puerta|llave"
    r"|regadera|wc|inodoro|aire|clima|tv|tele|internet|wifi|router|switch|impresora)\b"
)
_QUESTION_START_RE = re.compile(
    r"^(que|quien|quienes|como|donde|cuando|por que|porque|cual|cuanto|cuantos)\b"
)
_GENERAL_TOPIC_RE = re.compile(
    r"\b(explica|define|significa|historia|resumen|recomienda|recomiendas|has jugado|conoces|sabes)\b"
)

MIN_INCIDENT_LENGTH = 6


def _clean(text: str | None) -> str:
    return normalize(_MENTION_RE.sub(" ", text or ""))


def find_folio(text: str | None) -> str | None:
    m = FOLIO_RE.search((text or "").upper())
    return m.group(0) if m else None


def looks_incident_like(text: str | None) -> bool:
    t = _clean(text)
    if len(t) < MIN_INCIDENT_LENGTH:
        return False
    if contains_any(t, INCIDENT_HINTS):
        return True
    if any(p.search(t) for p in INCIDENT_PATTERNS):
        return True
    return bool(_ROOM_RE.search(t)) and len(t) > 10


def looks_like_help(text: str | None) -> bool:
    t = _clean(text)
    if contains_any(t, HELP_HINTS):
        return True
    return "ayuda" in t and len(t) < 30 and not _ROOM_RE.search(t)


def is_short_greeting(text: str | None) -> bool:
    t = _clean(text)
    return bool(t) and len(t) <= 40 and contains_any(t, GREETING_HINTS)


def looks_like_status_query(text: str | None) -> bool:
    t = _clean(text)
    return bool(t) and len(t) <= 140 and any(h in t for h in STATUS_QUERY_HINTS)


def looks_like_general_question(text: str | None) -> bool:
    raw = text or ""
    t = _clean(raw)
    if not t:
        return False
    if "?" in raw or "¿" in raw:
        return True
    return bool(_QUESTION_START_RE.search(t) or _GENERAL_TOPIC_RE.search(t))


def is_clearly_non_incident(text: str | None) -> bool:
    """
    High-precision check: a general question with no hotel context at all.
    Anything that smells of rooms, equipment or operations returns False.
    """
    t = _clean(text)
    if not t or not looks_like_general_question(text):
        return False
    if _ROOM_RE.search(t):
        return False
    if looks_incident_like(t):
        return False
    return not _HOTEL_CONTEXT_RE.search(t)


def extract_signals(message: InboundMessage) -> IntentSignals:
    body = (message.text or "").strip()
    t = _clean(body)
    cmd = _COMMAND_RE.match(body)
    return IntentSignals(
        is_group=message.is_group,
        is_command=cmd is not None,
        command=cmd.group(1).lower() if cmd else None,
        command_args=cmd.group(2).strip() if cmd else "",
        folio=find_folio(body),
        quoted_folio=find_folio(message.quoted_text),
        is_greeting=is_short_greeting(body),
        is_help=looks_like_help(body),
        is_meta_bot=contains_any(t, META_BOT_HINTS),
        is_incident_like=looks_incident_like(body),
        is_status_query=looks_like_status_query(body),
        is_clearly_non_incident=is_clearly_non_incident(body),
        has_room=bool(_ROOM_RE.search(t)),
    )


class RuleIntentClassifier(IntentClassifier):
    """
    Keyword and pattern classifier.  Confidence reflects how structural the
    evidence is: a slash command is near certain, the direct-message default
    to a new incident is the weakest call.
    """

    async def classify(
        self, message: InboundMessage, has_active_draft: bool = False
    ) -> IntentResult:
        s = extract_signals(message)
        body = (message.text or "").strip()

        if message.from_self:
            return IntentResult("self_message", "ignore", 1.0, "from_self", s)

        if s.is_command:
            return IntentResult("command", "command", 0.99, "slash", s)

        if s.ticket:
            if message.is_group or s.quoted_folio:
                return IntentResult("team_update", "team_update", 0.9,
                                    "folio_group" if message.is_group else "folio_quoted", s)
            return IntentResult("status_query", "status", 0.9, "folio_dm", s)

        if has_active_draft:
            return IntentResult("continue_incident", "drafting", 0.9, "active_draft", s)

        if message.is_group:
            return IntentResult("unknown", "unknown", 0.4, "group_no_ticket", s)

        if message.has_media:
            return IntentResult("new_incident", "drafting", 0.85, "dm_has_media", s)

        if s.is_incident_like or s.has_room:
            return IntentResult("new_incident", "drafting", 0.9, "incident_dm", s)

        if s.is_status_query:
            return IntentResult("status_query", "status", 0.8, "status_query", s)

        if s.is_greeting or s.is_help or s.is_meta_bot:
            reason = "help" if s.is_help else "meta_bot" if s.is_meta_bot else "greeting"
            return IntentResult("smalltalk", "smalltalk", 0.9, reason, s)

        if s.is_clearly_non_incident:
            return IntentResult("unknown", "unknown", 0.9, "dm_clearly_non_incident", s)

        if len(body) >= MIN_INCIDENT_LENGTH:
            return IntentResult("new_incident", "drafting", 0.75, "dm_default_to_incident", s)

        return IntentResult("unknown", "unknown", 0.4, "fallback", s)
