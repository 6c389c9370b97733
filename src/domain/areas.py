"""
Department detection: which operational team owns an incident.

Closed set of codes: it, man, ama, rs, seg.  Detection runs in layers:
direct normalization (the user named the department), weighted local
scoring over the lexicon, then the semantic classifier.  When all three
are inconclusive the result is undecided with the local ranking attached.
"""

import logging
import re
from dataclasses import dataclass, field

from src.data import load_data
from src.domain.semantic import AreaClassifier, Unavailable
from src.domain.text import best_window_similarity, contains_phrase, jaro_winkler, normalize

log = logging.getLogger(__name__)


@dataclass
class Department:
    code: str
    label: str
    names: list[str]
    aliases: list[str]
    hints: list[str]
    devices: list[str] = field(default_factory=list)


@dataclass
class DepartmentLexicon:
    departments: dict[str, Department]
    failure_phrases: list[str]
    menu_order: list[str]

    @property
    def codes(self) -> list[str]:
        return list(self.departments)


def load_lexicon(path: str | None = None) -> DepartmentLexicon:
    raw = load_data("departments", path)
    departments = {
        code: Department(
            code=code,
            label=d["label"],
            names=[normalize(n) for n in d.get("names", [])],
            aliases=[normalize(a) for a in d.get("aliases", []) if normalize(a)],
            hints=[normalize(h) for h in d.get("hints", []) if normalize(h)],
            devices=[normalize(x) for x in d.get("devices", []) if normalize(x)],
        )
        for code, d in raw["departments"].items()
    }
    order = [c for c in raw.get("menu_order", []) if c in departments]
    order += [c for c in departments if c not in order]
    return DepartmentLexicon(
        departments=departments,
        failure_phrases=[normalize(p) for p in raw.get("failure_phrases", [])],
        menu_order=order,
    )


@dataclass
class AreaDetectorConfig:
    canonical_similarity: float = 0.9   # Jaro-Winkler against canonical names
    alias_weight: float = 1.0
    fuzzy_alias_weight: float = 0.6
    fuzzy_alias_threshold: float = 0.88
    hint_weight: float = 0.35
    fuzzy_hint_weight: float = 0.2
    fuzzy_hint_threshold: float = 0.90
    synergy_weight: float = 0.7
    local_floor: float = 1.0
    local_margin: float = 0.25
    semantic_floor: float = 0.65
    direct_confidence: float = 0.9


@dataclass
class AreaScore:
    code: str
    score: float
    reasons: list[str] = field(default_factory=list)


@dataclass
class AreaResult:
    department: str | None
    confidence: float
    rationale: str                 # "normalize", "local_score", "semantic", "undecided"
    alternatives: list[AreaScore] = field(default_factory=list)

    @property
    def decided(self) -> bool:
        return self.department is not None


class AreaDetector:
    def __init__(
        self,
        classifier: AreaClassifier | None = None,
        config: AreaDetectorConfig | None = None,
        lexicon: DepartmentLexicon | None = None,
    ):
        self._classifier = classifier
        self._cfg = config or AreaDetectorConfig()
        self._lex = lexicon or load_lexicon()

    @property
    def lexicon(self) -> DepartmentLexicon:
        return self._lex

    # -- labels and menus ----------------------------------------------------

    def department_label(self, code: str | None) -> str:
        if not code:
            return ""
        dept = self._lex.departments.get(code.lower())
        return dept.label if dept else code.upper()

    def menu(self) -> list[tuple[str, str, str]]:
        """Numbered department menu: [("1", "man", "Mantenimiento"), ...]."""
        return [
            (str(i), code, self._lex.departments[code].label)
            for i, code in enumerate(self._lex.menu_order, start=1)
        ]

    def normalize_department_code(self, reply: str | None) -> str | None:
        """Map an ask-area reply ("2", "sistemas", "HSKP") onto a code."""
        t = normalize(reply)
        if not t:
            return None
        if re.fullmatch(r"\d+", t):
            for number, code, _ in self.menu():
                if number == t:
                    return code
            return None
        for code, dept in self._lex.departments.items():
            if t == code or t == normalize(dept.label) or t in dept.aliases or t in dept.names:
                return code
        return self.normalize_area_input(reply)

    # -- layer 1 -------------------------------------------------------------

    def normalize_area_input(self, text: str | None) -> str | None:
        t = normalize(text)
        if not t:
            return None
        for code, dept in self._lex.departments.items():
            for alias in dept.aliases:
                if t == alias or contains_phrase(t, alias):
                    return code

        best_code, best = None, 0.0
        for code, dept in self._lex.departments.items():
            for name in dept.names:
                s = jaro_winkler(t, name)
                if s > best:
                    best_code, best = code, s
        if best >= self._cfg.canonical_similarity:
            return best_code
        return None

    # -- layer 2 -------------------------------------------------------------

    def score_areas(self, text: str | None) -> list[AreaScore]:
        """All departments ranked by local lexicon score, highest first."""
        cfg = self._cfg
        t = normalize(text)
        scores = {code: AreaScore(code, 0.0) for code in self._lex.departments}
        if not t:
            return list(scores.values())

        for code, dept in self._lex.departments.items():
            entry = scores[code]
            for alias in dept.aliases:
                if contains_phrase(t, alias):
                    entry.score += cfg.alias_weight
                    entry.reasons.append(f"alias:{alias}")
                    continue
                s = best_window_similarity(t, alias)
                if s >= cfg.fuzzy_alias_threshold:
                    entry.score += cfg.fuzzy_alias_weight
                    entry.reasons.append(f"alias~:{alias}:{s:.2f}")

            for hint in dept.hints:
                if contains_phrase(t, hint):
                    entry.score += cfg.hint_weight
                    entry.reasons.append(f"hint:{hint}")
                    continue
                s = best_window_similarity(t, hint)
                if s >= cfg.fuzzy_hint_threshold:
                    entry.score += cfg.fuzzy_hint_weight
                    entry.reasons.append(f"hint~:{hint}:{s:.2f}")

        if any(contains_phrase(t, p) for p in self._lex.failure_phrases):
            for code, dept in self._lex.departments.items():
                if any(contains_phrase(t, d) for d in dept.devices):
                    scores[code].score += cfg.synergy_weight
                    scores[code].reasons.append("synergy:failure+device")

        for entry in scores.values():
            entry.score = round(entry.score, 4)
        # sorted() is stable, so ties keep lexicon order
        return sorted(scores.values(), key=lambda e: e.score, reverse=True)

    # -- full detection ------------------------------------------------------

    def detect_local(self, text: str | None) -> AreaResult:
        """Layers 1 and 2 only; never consults the semantic classifier."""
        cfg = self._cfg

        direct = self.normalize_area_input(text)
        if direct:
            return AreaResult(direct, cfg.direct_confidence, "normalize")

        ranked = self.score_areas(text)
        top = ranked[0] if ranked else None
        second = ranked[1] if len(ranked) > 1 else None
        if top and top.score >= cfg.local_floor and (
            second is None or top.score - second.score >= cfg.local_margin
        ):
            confidence = min(0.95, 0.7 + min(top.score, 1.5) / 3)
            return AreaResult(top.code, round(confidence, 4), "local_score", ranked[:3])

        return AreaResult(None, 0.0, "undecided", ranked[:3])

    async def detect(self, text: str | None, context: dict | None = None) -> AreaResult:
        local = self.detect_local(text)
        if local.decided:
            return local

        if self._classifier and normalize(text):
            result = await self._semantic(text, context)
            if result:
                return result

        log.debug("department undecided for %.60r: %s", text,
                  [(a.code, a.score) for a in local.alternatives])
        return local

    async def _semantic(self, text: str, context: dict | None) -> AreaResult | None:
        allowed = self._lex.codes
        try:
            verdict = await self._classifier.classify_area(text, allowed, context)
        except Exception as exc:
            log.warning("area classifier raised: %s", exc)
            return None
        if isinstance(verdict, Unavailable):
            log.info("area classification unavailable (%s)", verdict.reason)
            return None

        primary = verdict.primary if verdict.primary in allowed else None
        valid = [c for c in dict.fromkeys(verdict.candidates) if c in allowed]
        if primary is None and not valid:
            if verdict.primary or verdict.candidates:
                log.info("area classifier named unknown departments: %s %s",
                         verdict.primary, verdict.candidates)
            return None

        return AreaResult(
            department=primary,
            confidence=max(verdict.confidence or 0.0, self._cfg.semantic_floor) if primary else 0.0,
            rationale="semantic",
            alternatives=[AreaScore(c, 0.0, ["semantic"]) for c in valid],
        )
