from __future__ import annotations

import re
import unicodedata


# Chat filler words common in Indian English / Tanglish / Hinglish
_FILLER_WORDS = (
    "da", "dai", "dei", "ma", "anna", "machan", "machaa",
    "bro", "broo", "yaar", "ya", "yaa", "bhai",
    "pls", "plz", "please", "sir", "madam",
    "ji", "ga", "ra",
)
_FILLER_PATTERN = re.compile(r"\b(" + "|".join(_FILLER_WORDS) + r")\b", re.IGNORECASE)

_CANONICAL_SPELLINGS = (
    ("briyani", "biryani"),
    ("biriyani", "biryani"),
    ("byriani", "biryani"),
    ("bariyani", "biryani"),
    ("brayani", "biryani"),
    ("chkn", "chicken"),
    ("ckn", "chicken"),
    ("mini buckt", "mini bucket"),
    ("mini buck", "mini bucket"),
    ("mini buket", "mini bucket"),
)
_CANONICAL_PATTERNS = [
    (re.compile(rf"\b{re.escape(source)}\b", re.IGNORECASE), target)
    for source, target in _CANONICAL_SPELLINGS
]

_ROUTING_PUNCTUATION = re.compile(r"[?.!,]")


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return "".join(char for char in normalized if not unicodedata.combining(char))


def normalize_customer_text(raw: str | None) -> str:
    """Lower-cases, drops chat fillers and fixes a few well known misspellings.

    Digits and basic punctuation are kept so quantities and list delimiters survive
    for the multi-item parser.
    """
    if not raw:
        return ""
    text = str(raw).lower()
    text = text.replace("“", '"').replace("”", '"').replace("‘", "'").replace("’", "'")
    text = text.replace("–", "-").replace("—", "-")
    text = _FILLER_PATTERN.sub(" ", text)
    text = _collapse(text)
    for pattern, target in _CANONICAL_PATTERNS:
        text = pattern.sub(target, text)
    return _collapse(text)


def normalize_for_routing(text: str | None) -> str:
    """Form used to compare router input with override patterns."""
    if not text:
        return ""
    lowered = str(text).lower()
    lowered = _ROUTING_PUNCTUATION.sub("", lowered)
    return _collapse(lowered)


def normalize_search(text: str | None) -> str:
    """Accent free, punctuation free form used by catalog matching."""
    if not text:
        return ""
    value = strip_accents(str(text).lower())
    value = re.sub(r"[-_]", " ", value)
    value = re.sub(r"[^\w\s]", " ", value)
    return _collapse(value)


def normalize_phone(phone: str | None) -> str:
    return re.sub(r"[^\d]", "", phone or "")
