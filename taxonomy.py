"""Garment category vocabulary with keyword classification.

  - resolve(): map a free-text category from an upstream source onto the vocabulary
  - classify(): pick a category from product signals (name, description) without an LLM
"""

import re

from models import GARMENT_CATEGORIES

_STOP_WORDS = frozenset({"a", "an", "the", "and", "or", "for", "of", "in", "on", "to", "by", "with"})


def _stem(word: str) -> str:
    """Simple English suffix stripping for keyword matching."""
    w = word.lower()
    if len(w) < 3:
        return w
    if w.endswith("ies") and len(w) > 4:
        return w[:-3] + "y"
    if w.endswith("es") and len(w) > 4:
        pre = w[:-2]
        if pre.endswith(("ch", "sh", "x", "ss", "zz")):
            return pre
        return w[:-1]
    if w.endswith("s") and not w.endswith("ss") and len(w) > 3:
        return w[:-1]
    return w


def _tokenize(text: str) -> list[str]:
    """Split text into stemmed tokens, removing stop words."""
    raw = re.findall(r"[a-z]+", text.lower())
    return [_stem(t) for t in raw if len(t) > 1 and t not in _STOP_WORDS]


# Keywords (stemmed) per category. Multi-word keywords match as a phrase.
# Order matters: more specific categories are checked first.
_KEYWORDS: list[tuple[str, list[str]]] = [
    ("Long Sleeve", ["long sleeve", "longsleeve"]),
    ("Tank Top", ["tank", "singlet", "muscle"]),
    ("Hoodie", ["hoodie", "hood", "hooded"]),
    ("Sweatshirt", ["sweatshirt", "crewneck", "crew neck", "fleece crew", "sweater"]),
    ("Polo", ["polo"]),
    ("Outerwear", ["jacket", "vest", "windbreaker", "coat", "anorak"]),
    ("Bottoms", ["pant", "short", "jogger", "trouser", "legging", "track pant"]),
    ("Headwear", ["cap", "hat", "beanie", "beanies", "visor", "bucket"]),
    ("Bags", ["bag", "tote", "backpack", "duffel"]),
    ("Shirt", ["button", "oxford", "woven shirt", "flannel"]),
    ("T-Shirt", ["tee", "t shirt", "tshirt", "shirt"]),
]
_COMPILED = [(cat, [" ".join(_tokenize(k)) for k in kws]) for cat, kws in _KEYWORDS]


def _match(text: str) -> str | None:
    haystack = f" {' '.join(_tokenize(text))} "
    for category, keywords in _COMPILED:
        if any(k and f" {k} " in haystack for k in keywords):
            return category
    return None


def classify(signals: list[str]) -> str | None:
    """First category matched by the strongest signal (signals in priority order)."""
    for signal in signals:
        if signal:
            category = _match(signal)
            if category:
                return category
    return None


def resolve(raw: str | None) -> str:
    """Resolve an upstream category string onto the vocabulary ("Other" when unknown)."""
    if not raw:
        return "Other"
    for category in GARMENT_CATEGORIES:
        if raw.strip().lower() == category.lower():
            return category
    return _match(raw) or "Other"


def categorize(raw: str | None, signals: list[str]) -> str:
    """Resolve ``raw`` if it names a category, else classify from ``signals``."""
    resolved = resolve(raw)
    if resolved != "Other":
        return resolved
    return classify(signals) or "Other"
