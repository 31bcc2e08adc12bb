from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field
from typing import Union

from chatorder.services.catalog import CatalogEntry
from chatorder.services.text_normalize import normalize_search


_STOP_WORDS = {
    "do", "u", "you", "have", "pls", "please", "want", "need",
    "i", "me", "my", "the", "a", "an", "some", "any", "is", "there",
    "hai", "hey", "hi", "hello", "can", "could", "give", "send",
}

_KEYWORD_STOP_WORDS = {
    "do", "you", "have", "plz", "please", "bro", "sir", "madam", "is", "there",
    "any", "a", "an", "the", "need", "want", "get", "u", "ur", "your", "my",
}

# Combos and buckets only win when the customer asks for one
_DOWNWEIGHT_CANONICAL_KEYWORDS = ("combo", "bucket")

MAX_LINE_QTY = 50
FUZZY_OPTION_CUTOFF = 0.7

_NUMBER_WORDS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}

_ITEM_DELIMITERS = re.compile(r"\s*(?:[,;&\n]|\band\b)\s*", re.IGNORECASE)
_LEADING_QTY = re.compile(r"^(?P<qty>\d+|[a-z]+)\s*(?:x|×)?\s+(?P<name>.+)$", re.IGNORECASE)
_TRAILING_QTY = re.compile(r"^(?P<name>.+?)\s*[x×]\s*(?P<qty>\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class CanonicalMatch:
    canonical: str
    variants: list[CatalogEntry] = field(default_factory=list)


@dataclass(frozen=True)
class Matched:
    item: CatalogEntry


@dataclass(frozen=True)
class VariantChoice:
    canonical: str
    variants: list[CatalogEntry]


@dataclass(frozen=True)
class Ambiguous:
    candidates: list[CanonicalMatch]


@dataclass(frozen=True)
class NoMatch:
    query: str = ""


SearchResult = Union[Matched, VariantChoice, Ambiguous, NoMatch]


@dataclass(frozen=True)
class QueuedItem:
    name: str
    qty: int
    raw: str

    def to_dict(self) -> dict:
        return {"name": self.name, "qty": self.qty, "raw": self.raw}


def tokenize(text: str) -> list[str]:
    return [token for token in re.findall(r"[a-z0-9]+", (text or "").lower()) if token not in _STOP_WORDS]


def extract_keywords(text: str) -> list[str]:
    words = re.split(r"[\s,.\-]+", (text or "").lower())
    return [word for word in words if len(word) > 2 and word not in _KEYWORD_STOP_WORDS]


def _entry_text(entry: CatalogEntry) -> str:
    return normalize_search(" ".join(part for part in (entry.canonical, entry.display_name, entry.variant) if part))


def group_by_canonical(catalog: list[CatalogEntry]) -> dict[str, list[CatalogEntry]]:
    grouped: dict[str, list[CatalogEntry]] = {}
    for entry in catalog:
        key = entry.canonical.strip()
        if not key:
            continue
        grouped.setdefault(key, []).append(entry)
    return grouped


def variants_for(catalog: list[CatalogEntry], canonical: str) -> list[CatalogEntry]:
    key = (canonical or "").strip()
    return [entry for entry in catalog if entry.canonical.strip() == key]


def find_canonical_matches(text: str, catalog: list[CatalogEntry]) -> list[CanonicalMatch]:
    """Token overlap search over canonical + display name + variant."""
    query_tokens = tokenize(normalize_search(text))
    if not catalog or not query_tokens:
        return []

    grouped = group_by_canonical(catalog)
    asks_for_combo = any(token in _DOWNWEIGHT_CANONICAL_KEYWORDS for token in query_tokens)

    scores: list[tuple[str, int]] = []
    for canonical, variants in grouped.items():
        best = 0
        for variant in variants:
            haystack = _entry_text(variant)
            best = max(best, sum(1 for token in query_tokens if token in haystack))
        if not asks_for_combo and any(keyword in canonical.lower() for keyword in _DOWNWEIGHT_CANONICAL_KEYWORDS):
            best -= 1
        scores.append((canonical, best))

    top_score = max((score for _, score in scores), default=0)
    top = [canonical for canonical, score in scores if score > 0 and score == top_score]

    if not top:
        # A downweighted combo can still be the only thing that mentions the word
        for canonical, variants in grouped.items():
            lowered = canonical.lower()
            if any(token in lowered or any(token in _entry_text(v) for v in variants) for token in query_tokens):
                top.append(canonical)

    return [CanonicalMatch(canonical=canonical, variants=grouped[canonical]) for canonical in top]


def _keyword_score(text: str, keywords: list[str]) -> int:
    score = 0
    for keyword in keywords:
        if keyword in text:
            score += 2
        if text.startswith(keyword):
            score += 1
    return score


def find_variant_matches(text: str, catalog: list[CatalogEntry]) -> list[CanonicalMatch]:
    """Keyword search over every catalog row, grouped by canonical.

    Only the canonicals holding the best scoring row are returned, best first.
    """
    keywords = extract_keywords(normalize_search(text))
    if not keywords:
        return []

    hits: list[tuple[CatalogEntry, int]] = []
    for entry in catalog:
        score = _keyword_score(_entry_text(entry), keywords)
        if score > 0:
            hits.append((entry, score))
    if not hits:
        return []

    top_score = max(score for _, score in hits)
    ordered: list[str] = []
    for entry, score in sorted(hits, key=lambda hit: hit[1], reverse=True):
        key = entry.canonical.strip()
        if score == top_score and key and key not in ordered:
            ordered.append(key)
    return [CanonicalMatch(canonical=canonical, variants=variants_for(catalog, canonical)) for canonical in ordered]


def filter_variants_by_keyword(variants: list[CatalogEntry], text: str) -> list[CatalogEntry]:
    """Ranks ``variants`` by how well their variant-specific words match ``text``.

    Words shared by the canonical name are ignored so "chicken biryani large" only
    scores on "large".
    """
    if not variants:
        return []
    canonical_tokens = set(normalize_search(variants[0].canonical).split())
    keywords = [kw for kw in extract_keywords(normalize_search(text)) if kw not in canonical_tokens]
    if not keywords:
        return []

    scored: list[tuple[CatalogEntry, int]] = []
    for variant in variants:
        distinct = " ".join(
            token
            for token in normalize_search(f"{variant.variant or ''} {variant.display_name}").split()
            if token not in canonical_tokens
        )
        score = _keyword_score(distinct, keywords)
        if score > 0:
            scored.append((variant, score))
    scored.sort(key=lambda hit: hit[1], reverse=True)
    return [variant for variant, _ in scored]


def choose_variant(canonical: str, variants: list[CatalogEntry], text: str) -> SearchResult:
    matches = filter_variants_by_keyword(variants, text)
    if len(matches) == 1:
        return Matched(matches[0])
    if len(matches) > 1:
        return VariantChoice(canonical=canonical, variants=matches)
    return NoMatch(query=text)


def _from_canonical_match(match: CanonicalMatch, text: str) -> SearchResult:
    if len(match.variants) == 1:
        return Matched(match.variants[0])
    narrowed = choose_variant(match.canonical, match.variants, text)
    if isinstance(narrowed, Matched):
        return narrowed
    return VariantChoice(canonical=match.canonical, variants=match.variants)


def resolve_item(text: str, catalog: list[CatalogEntry]) -> SearchResult:
    """Variant aware keyword search, then token overlap search when it finds nothing."""
    hits = find_variant_matches(text, catalog)
    if len(hits) == 1:
        return _from_canonical_match(hits[0], text)
    if len(hits) > 1:
        return Ambiguous(candidates=hits)

    matches = find_canonical_matches(text, catalog)
    if len(matches) == 1:
        return _from_canonical_match(matches[0], text)
    if len(matches) > 1:
        return Ambiguous(candidates=matches)
    return NoMatch(query=text)


def _option_score(option: str, message: str) -> float:
    option = normalize_search(option)
    if not option:
        return 0.0
    if message == option:
        return 1.0
    if message in option or option in message:
        return 0.9
    word_ratio = max(
        (
            difflib.SequenceMatcher(None, token, word).ratio()
            for token in message.split()
            for word in option.split()
            if len(token) > 2
        ),
        default=0.0,
    )
    return max(difflib.SequenceMatcher(None, message, option).ratio(), word_ratio * 0.85)


def fuzzy_choose_option(text: str, options: list[str]) -> int | None:
    """0-based index of the option that best matches free text.

    None when nothing clears ``FUZZY_OPTION_CUTOFF`` or when two options tie for best.
    """
    message = normalize_search(text)
    if not message:
        return None
    scores = [_option_score(option, message) for option in options]
    if not scores:
        return None
    best = max(scores)
    if best < FUZZY_OPTION_CUTOFF or scores.count(best) > 1:
        return None
    return scores.index(best)


def parse_quantity(text: str, max_qty: int = MAX_LINE_QTY) -> int | None:
    """First number in ``text`` (digits or a word up to ten); None when missing or above ``max_qty``."""
    cleaned = (text or "").strip().lower()
    match = re.search(r"\d+", cleaned)
    if match:
        qty = int(match.group(0))
    else:
        qty = next((_NUMBER_WORDS[word] for word in cleaned.split() if word in _NUMBER_WORDS), None)
    if qty is None or qty > max_qty:
        return None
    return qty


def parse_choice(text: str) -> int | None:
    cleaned = (text or "").strip()
    if re.fullmatch(r"\d+", cleaned):
        return int(cleaned)
    return None


def _parse_line(line: str) -> QueuedItem | None:
    line = line.strip()
    if not line:
        return None
    leading = _LEADING_QTY.match(line)
    if leading:
        qty_token = leading.group("qty").lower()
        qty = int(qty_token) if qty_token.isdigit() else _NUMBER_WORDS.get(qty_token)
        if qty is not None:
            return QueuedItem(name=leading.group("name").strip(), qty=max(qty, 1), raw=line)
    trailing = _TRAILING_QTY.match(line)
    if trailing:
        return QueuedItem(name=trailing.group("name").strip(), qty=max(int(trailing.group("qty")), 1), raw=line)
    return QueuedItem(name=line, qty=1, raw=line)


def parse_multi_item(text: str) -> list[QueuedItem] | None:
    """Splits "2 chicken biryani, 1 coke" into queue entries.

    Returns None unless the message holds more than one entry and at least one digit.
    """
    if not text or not re.search(r"\d", text):
        return None
    lines = [segment for segment in _ITEM_DELIMITERS.split(text) if segment and segment.strip()]
    if len(lines) < 2:
        return None
    items = [item for item in (_parse_line(line) for line in lines) if item is not None and item.name]
    if len(items) < 2:
        return None
    return items
