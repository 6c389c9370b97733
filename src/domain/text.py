"""
Text normalization and fuzzy matching shared by every triage component.

All functions are pure and tolerant of None: they return "" / 0.0 / False
instead of raising, so callers never need to guard their inputs.
"""

import re
import unicodedata

_NON_WORD = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")

# Articles and short prepositions that carry no location/department meaning
ARTICLES = frozenset({"el", "la", "los", "las", "de", "del", "al", "en", "un", "una"})


def strip_diacritics(text: str | None) -> str:
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: str | None, drop_articles: bool = False) -> str:
    """Lower-case, strip accents and punctuation, collapse whitespace."""
    if not text:
        return ""
    out = strip_diacritics(text).lower()
    out = _NON_WORD.sub(" ", out)
    out = _SPACES.sub(" ", out).strip()
    if drop_articles and out:
        out = " ".join(t for t in out.split(" ") if t not in ARTICLES)
    return out


def tokens(text: str | None) -> list[str]:
    n = normalize(text)
    return n.split(" ") if n else []


def contains_phrase(text: str | None, phrase: str | None) -> bool:
    """True when `phrase` appears in `text` on token boundaries (both normalized)."""
    t = normalize(text)
    p = normalize(phrase)
    if not t or not p:
        return False
    return f" {p} " in f" {t} "


def starts_with_phrase(text: str | None, phrase: str | None) -> bool:
    t = normalize(text)
    p = normalize(phrase)
    if not t or not p:
        return False
    return t == p or t.startswith(p + " ")


def _trigrams(s: str) -> set[str]:
    padded = f"  {s} "
    return {padded[i:i + 3] for i in range(len(padded) - 2)}


def trigram_similarity(a: str | None, b: str | None) -> float:
    """Trigram overlap divided by the larger trigram set (0..1)."""
    x = normalize(a)
    y = normalize(b)
    if not x or not y:
        return 0.0
    s1, s2 = _trigrams(x), _trigrams(y)
    return len(s1 & s2) / max(len(s1), len(s2))


def jaro_winkler(a: str | None, b: str | None) -> float:
    """Jaro-Winkler similarity with the usual 4-char, 0.1 prefix boost."""
    a = normalize(a)
    b = normalize(b)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    window = max(max(len(a), len(b)) // 2 - 1, 0)
    a_flags = [False] * len(a)
    b_flags = [False] * len(b)
    matches = 0
    for i, ch in enumerate(a):
        lo = max(0, i - window)
        hi = min(i + window + 1, len(b))
        for j in range(lo, hi):
            if not b_flags[j] and b[j] == ch:
                a_flags[i] = b_flags[j] = True
                matches += 1
                break
    if not matches:
        return 0.0

    transpositions = 0
    k = 0
    for i, ch in enumerate(a):
        if a_flags[i]:
            while not b_flags[k]:
                k += 1
            if ch != b[k]:
                transpositions += 1
            k += 1
    transpositions /= 2

    jaro = (matches / len(a) + matches / len(b) + (matches - transpositions) / matches) / 3

    prefix = 0
    for x, y in zip(a[:4], b[:4]):
        if x != y:
            break
        prefix += 1
    return jaro + prefix * 0.1 * (1 - jaro)


def best_window_similarity(text: str | None, phrase: str | None) -> float:
    """
    Best trigram similarity between `phrase` and any run of consecutive
    tokens of `text` with the same token count as the phrase.

    Appending words to `text` only adds windows, so the result never drops.
    """
    words = tokens(text)
    target = normalize(phrase)
    if not words or not target:
        return 0.0
    size = len(target.split(" "))
    if size > len(words):
        return trigram_similarity(" ".join(words), target)
    best = 0.0
    for i in range(len(words) - size + 1):
        s = trigram_similarity(" ".join(words[i:i + size]), target)
        if s > best:
            best = s
    return best


def similarity(a: str | None, b: str | None) -> float:
    """Max of trigram and Jaro-Winkler similarity; 0 on empty input."""
    return max(trigram_similarity(a, b), jaro_winkler(a, b))


def contains_any(text: str | None, needles) -> bool:
    """
    Keyword test used by the heuristic classifiers.

    Needles of 1–3 chars must match whole tokens ("ac" must not hit "space");
    longer needles match as plain substrings of the normalized text.
    """
    t = normalize(text)
    if not t:
        return False
    for needle in needles or ():
        n = normalize(needle)
        if not n:
            continue
        if len(n) <= 3:
            if f" {n} " in f" {t} ":
                return True
        elif n in t:
            return True
    return False
