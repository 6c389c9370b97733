"""
Place resolution: free text → canonical hotel location.

Tiers, first success wins:
  1. Numeric:   a registered 4-digit room/villa number anywhere in the text
  2. Phrase:    exact label/alias, else token-bounded containment scored by
                len(phrase) / len(input); close clusters are reported, not guessed
  3. Zone:      generic names ("cocina", "alberca") that cover several entries
                produce a disambiguation request
  4. Freeform:  the semantic service judges whether the text is a place at all

Every tier yields a well-formed PlaceResolution; nothing here raises on bad
input or on semantic-service failure.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Literal

from src.data import load_data
from src.domain.semantic import PlaceValidator, PlaceVerdict, Unavailable
from src.domain.text import contains_phrase, jaro_winkler, normalize

log = logging.getLogger(__name__)

_ROOM_NUMBER = re.compile(r"\b\d{4}\b")


class CatalogError(Exception):
    """The place catalog is missing or malformed (fatal at startup)."""


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass
class PlaceEntry:
    id: str
    label: str
    aliases: list[str] = field(default_factory=list)
    room_number: str | None = None
    villa_number: str | None = None
    kind: str = ""             # "room", "villa", "area", "restaurant", ...
    building: str | None = None
    floor: str | None = None
    parent: str | None = None
    active: bool = True

    @property
    def number(self) -> str | None:
        return self.room_number or self.villa_number


@dataclass
class _Phrase:
    term: str          # normalized
    entry: PlaceEntry
    source: str        # "label" or "alias"


class PlaceCatalog:
    """
    Immutable catalog with two indexes built once:
    numeric room/villa ids, and normalized phrases sorted longest first.
    """

    def __init__(self, entries: list[PlaceEntry]):
        self.entries = [e for e in entries if e.active]
        self._by_id: dict[str, PlaceEntry] = {}
        self._numbers: dict[str, PlaceEntry] = {}
        self._phrases: list[_Phrase] = []
        self._exact: dict[str, _Phrase] = {}

        for entry in self.entries:
            self._by_id[entry.id] = entry
            for num in (entry.room_number, entry.villa_number):
                if num and re.fullmatch(r"\d{4}", str(num)):
                    self._numbers.setdefault(str(num), entry)

            seen: set[str] = set()
            for source, raw in [("label", entry.label)] + [("alias", a) for a in entry.aliases]:
                term = normalize(raw)
                if term and term not in seen:
                    seen.add(term)
                    self._phrases.append(_Phrase(term, entry, source))

        # More specific (longer) phrases first; stable for equal lengths
        self._phrases.sort(key=lambda p: len(p.term), reverse=True)
        for p in self._phrases:
            self._exact.setdefault(p.term, p)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def phrases(self) -> list[_Phrase]:
        return self._phrases

    def by_id(self, entry_id: str) -> PlaceEntry | None:
        return self._by_id.get(entry_id)

    def by_number(self, number: str) -> PlaceEntry | None:
        return self._numbers.get(number)

    def exact(self, term: str) -> _Phrase | None:
        return self._exact.get(term)

    @classmethod
    def from_records(cls, records) -> "PlaceCatalog":
        """Build from the JSON array shape of the catalog data source."""
        if not isinstance(records, list):
            raise CatalogError("place catalog must be a JSON array")
        entries = []
        for i, rec in enumerate(records):
            if not isinstance(rec, dict) or not rec.get("label"):
                raise CatalogError(f"catalog entry #{i} has no label")
            meta = rec.get("meta") or {}
            entries.append(
                PlaceEntry(
                    id=str(rec.get("id") or f"place-{i}"),
                    label=rec["label"],
                    aliases=list(rec.get("aliases") or []),
                    room_number=_opt_str(rec.get("room_number")),
                    villa_number=_opt_str(rec.get("villa_number")),
                    kind=rec.get("type") or rec.get("kind") or "",
                    building=_opt_str(rec.get("tower") or rec.get("structure") or meta.get("building")),
                    floor=_opt_str(rec.get("floor") or meta.get("floor")),
                    parent=_opt_str(rec.get("parent") or meta.get("parent")),
                    active=bool(rec.get("active", True)),
                )
            )
        return cls(entries)


def _opt_str(value) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Ambiguous zones
# ---------------------------------------------------------------------------


@dataclass
class ZoneOption:
    key: str            # selection code shown to the user, e.g. "2"
    label: str
    canonical: str      # catalog label this option resolves to
    description: str = ""


@dataclass
class AmbiguousZone:
    key: str
    triggers: list[str]
    prompt: str
    options: list[ZoneOption]


def load_zones(path: str | None = None) -> dict[str, AmbiguousZone]:
    raw = load_data("zones", path)
    return {
        key: AmbiguousZone(
            key=key,
            triggers=list(z["triggers"]),
            prompt=z["prompt"],
            options=[ZoneOption(**o) for o in z["options"]],
        )
        for key, z in raw.items()
    }


def build_disambiguation_prompt(zone: AmbiguousZone) -> str:
    lines = [zone.prompt, ""]
    for opt in zone.options:
        line = f"{opt.key}) {opt.label}"
        if opt.description:
            line += f" ({opt.description})"
        lines.append(line)
    lines.append("")
    lines.append("Responde con el número o escribe el nombre específico.")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class PlaceCandidate:
    label: str
    score: float
    entry_id: str | None = None
    via: str = ""


@dataclass
class ResolvedPlace:
    label: str
    canonical: str
    entry_id: str | None = None
    kind: str = ""
    building: str | None = None
    floor: str | None = None
    room: str | None = None
    parent: str | None = None
    source: str = "catalog"     # "catalog", "disambiguation", "zone", "freeform"

    @classmethod
    def from_entry(cls, entry: PlaceEntry, source: str = "catalog") -> "ResolvedPlace":
        return cls(
            label=entry.label,
            canonical=entry.label,
            entry_id=entry.id,
            kind=entry.kind,
            building=entry.building,
            floor=entry.floor,
            room=entry.number,
            parent=entry.parent,
            source=source,
        )


ResolutionStatus = Literal[
    "resolved",
    "needs_disambiguation",   # generic zone, options attached
    "ambiguous_candidates",   # several close catalog candidates
    "not_a_place",            # semantic service says it is not a place
    "unresolved",             # semantic service unsure or unavailable
    "no_match",
    "empty_input",
]


@dataclass
class PlaceResolution:
    status: ResolutionStatus
    place: ResolvedPlace | None = None
    via: str = ""
    score: float = 0.0
    candidates: list[PlaceCandidate] = field(default_factory=list)
    zone_key: str | None = None
    prompt: str | None = None
    options: list[ZoneOption] = field(default_factory=list)
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.status == "resolved"


@dataclass
class PlaceResolverConfig:
    decisive_score: float = 0.5           # top contains-score must exceed this
    ambiguity_margin: float = 0.1         # ...and lead the runner-up by this much
    accept_single_candidate: bool = True  # one distinct entry wins even when weak
    max_candidates: int = 5
    freeform_min_confidence: float = 0.7
    label_similarity: float = 0.9         # fuzzy label match when choosing options


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class PlaceResolver:
    """
    Resolve location phrases against an injected catalog.

    `loader` is used for a best-effort reload when the catalog is empty;
    a failing reload is logged and treated as a miss for that request.
    """

    def __init__(
        self,
        catalog: PlaceCatalog | None = None,
        zones: dict[str, AmbiguousZone] | None = None,
        validator: PlaceValidator | None = None,
        config: PlaceResolverConfig | None = None,
        loader: Callable[[], PlaceCatalog] | None = None,
    ):
        self._catalog = catalog
        self._zones = zones if zones is not None else load_zones()
        self._validator = validator
        self._cfg = config or PlaceResolverConfig()
        self._loader = loader

    @property
    def zones(self) -> dict[str, AmbiguousZone]:
        return self._zones

    def _ensure_catalog(self) -> PlaceCatalog | None:
        if (self._catalog is None or len(self._catalog) == 0) and self._loader:
            try:
                self._catalog = self._loader()
                log.info("place catalog reloaded: %d entries", len(self._catalog))
            except Exception as exc:
                log.warning("place catalog reload failed: %s", exc)
        return self._catalog

    # -- tiers 1 + 2 ---------------------------------------------------------

    def search_catalog(self, text: str) -> PlaceResolution:
        normalized = normalize(text)
        if not normalized:
            return PlaceResolution(status="empty_input")

        catalog = self._ensure_catalog()
        if not catalog:
            return PlaceResolution(status="no_match", detail="catalog_unavailable")

        for num in dict.fromkeys(_ROOM_NUMBER.findall(normalized)):
            entry = catalog.by_number(num)
            if entry:
                return PlaceResolution(
                    status="resolved",
                    place=ResolvedPlace.from_entry(entry),
                    via="room_number",
                    score=1.0,
                    candidates=[PlaceCandidate(entry.label, 1.0, entry.id, "room_number")],
                )

        hit = catalog.exact(normalized)
        if hit:
            return PlaceResolution(
                status="resolved",
                place=ResolvedPlace.from_entry(hit.entry),
                via=f"exact_{hit.source}",
                score=1.0,
                candidates=[PlaceCandidate(hit.entry.label, 1.0, hit.entry.id, f"exact_{hit.source}")],
            )

        best: dict[str, PlaceCandidate] = {}
        for phrase in catalog.phrases:
            if not contains_phrase(normalized, phrase.term):
                continue
            score = len(phrase.term) / len(normalized)
            current = best.get(phrase.entry.id)
            if current is None or score > current.score:
                best[phrase.entry.id] = PlaceCandidate(
                    phrase.entry.label, round(score, 4), phrase.entry.id,
                    f"contains_{phrase.source}",
                )

        if not best:
            return PlaceResolution(status="no_match")

        ranked = sorted(best.values(), key=lambda c: c.score, reverse=True)
        return self._decide(ranked, catalog)

    def _decide(self, ranked: list[PlaceCandidate], catalog: PlaceCatalog) -> PlaceResolution:
        top = ranked[0]
        runner_up = ranked[1] if len(ranked) > 1 else None
        shown = ranked[: self._cfg.max_candidates]

        decisive = top.score > self._cfg.decisive_score and (
            runner_up is None or top.score - runner_up.score >= self._cfg.ambiguity_margin
        )
        single = runner_up is None and self._cfg.accept_single_candidate
        if decisive or single:
            entry = catalog.by_id(top.entry_id)
            return PlaceResolution(
                status="resolved",
                place=ResolvedPlace.from_entry(entry),
                via=top.via,
                score=top.score,
                candidates=shown,
            )

        return PlaceResolution(status="ambiguous_candidates", candidates=shown)

    # -- tier 3 --------------------------------------------------------------

    def detect_ambiguous_zone(self, text: str) -> AmbiguousZone | None:
        normalized = normalize(text)
        if not normalized:
            return None
        for zone in self._zones.values():
            for trigger in zone.triggers:
                t = normalize(trigger)
                if normalized == t:
                    return zone
                if not contains_phrase(normalized, t):
                    continue
                specific = any(
                    contains_phrase(normalized, opt.label) or contains_phrase(normalized, opt.canonical)
                    for opt in zone.options
                )
                if not specific:
                    return zone
        return None

    def resolve_disambiguation(self, zone_key: str, reply: str) -> PlaceResolution:
        """Map a reply to a zone prompt ("2", "nido") onto a canonical place."""
        zone = self._zones.get(zone_key)
        if zone is None:
            return PlaceResolution(status="no_match", detail="invalid_zone")

        normalized = normalize(reply)
        if not normalized:
            return PlaceResolution(status="empty_input", zone_key=zone_key)

        chosen, via = None, ""
        for opt in zone.options:
            if normalized == normalize(opt.key):
                chosen, via = opt, "disambiguation_number"
                break

        if chosen is None:
            matches = [
                opt for opt in zone.options
                if _label_matches(normalized, opt.label) or _label_matches(normalized, opt.canonical)
            ]
            # prefer an exact label when the reply hits several options ("nido" vs "nidito")
            exact = [o for o in matches if normalized in (normalize(o.label), normalize(o.canonical))]
            if len(exact) == 1:
                chosen, via = exact[0], "disambiguation_name"
            elif len(matches) == 1:
                chosen, via = matches[0], "disambiguation_name"

        if chosen is None:
            return PlaceResolution(status="no_match", zone_key=zone_key, detail="disambiguation_failed")

        catalog = self._ensure_catalog()
        hit = catalog.exact(normalize(chosen.canonical)) if catalog else None
        if hit:
            place = ResolvedPlace.from_entry(hit.entry, source="disambiguation")
            place.canonical = chosen.canonical
        else:
            place = ResolvedPlace(label=chosen.label, canonical=chosen.canonical, kind="zone",
                                  source="disambiguation")
        return PlaceResolution(status="resolved", place=place, via=via, score=1.0, zone_key=zone_key)

    def choose_candidate(self, candidates: list[PlaceCandidate], reply: str) -> PlaceResolution:
        """Pick one of previously offered ambiguous candidates by number or name."""
        normalized = normalize(reply)
        if not normalized or not candidates:
            return PlaceResolution(status="no_match", candidates=candidates)

        chosen = None
        if normalized.isdigit():
            idx = int(normalized) - 1
            if 0 <= idx < len(candidates):
                chosen = candidates[idx]
        else:
            scored = sorted(
                ((jaro_winkler(normalized, c.label), c) for c in candidates),
                key=lambda pair: pair[0],
                reverse=True,
            )
            exact = [c for c in candidates if normalize(c.label) == normalized]
            if exact:
                chosen = exact[0]
            elif scored and scored[0][0] >= self._cfg.label_similarity:
                chosen = scored[0][1]

        if chosen is None:
            return PlaceResolution(status="no_match", candidates=candidates)

        catalog = self._ensure_catalog()
        entry = catalog.by_id(chosen.entry_id) if catalog and chosen.entry_id else None
        if entry is None:
            place = ResolvedPlace(label=chosen.label, canonical=chosen.label, source="disambiguation")
        else:
            place = ResolvedPlace.from_entry(entry, source="disambiguation")
        return PlaceResolution(status="resolved", place=place, via="candidate_choice", score=chosen.score)

    # -- full pipeline -------------------------------------------------------

    async def resolve(self, text: str, allow_freeform: bool = True) -> PlaceResolution:
        if not (text or "").strip():
            return PlaceResolution(status="empty_input")

        catalog_result = self.search_catalog(text)
        log.debug("place search %.60r → %s %s", text, catalog_result.status, catalog_result.via)
        if catalog_result.found:
            return catalog_result

        zone = self.detect_ambiguous_zone(text)
        if zone:
            return PlaceResolution(
                status="needs_disambiguation",
                zone_key=zone.key,
                prompt=build_disambiguation_prompt(zone),
                options=list(zone.options),
                candidates=catalog_result.candidates,
            )

        if catalog_result.status == "ambiguous_candidates":
            return catalog_result

        if not (allow_freeform and self._validator):
            return catalog_result

        verdict = await self._validate(text, catalog_result.candidates)
        if isinstance(verdict, Unavailable):
            log.info("place validation unavailable (%s) for %.60r", verdict.reason, text)
            return PlaceResolution(status="unresolved", candidates=catalog_result.candidates,
                                   detail=f"semantic:{verdict.reason}")

        if verdict.is_place and verdict.confidence >= self._cfg.freeform_min_confidence:
            label = verdict.normalized or text.strip()
            return PlaceResolution(
                status="resolved",
                place=ResolvedPlace(label=label, canonical=label, kind="freeform", source="freeform"),
                via="semantic_validation",
                score=verdict.confidence,
                detail=verdict.rationale,
            )

        return PlaceResolution(
            status="unresolved" if verdict.is_place else "not_a_place",
            score=verdict.confidence,
            candidates=catalog_result.candidates,
            detail=verdict.rationale,
        )

    async def _validate(self, text: str, candidates: list[PlaceCandidate]) -> PlaceVerdict | Unavailable:
        context = {"candidates": [c.label for c in candidates]}
        try:
            return await self._validator.validate_place(text, context)
        except Exception as exc:
            log.warning("place validator raised: %s", exc)
            return Unavailable("error")


def _label_matches(reply: str, label: str) -> bool:
    target = normalize(label)
    if not target:
        return False
    if contains_phrase(reply, target):
        return True
    # short replies like "nido" for "Cocina Nido"
    return len(reply) >= 3 and contains_phrase(target, reply)
