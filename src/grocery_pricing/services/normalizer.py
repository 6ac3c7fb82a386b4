"""
Text normalizer shared by every matching and lookup step.

Names are lower-cased, stripped of accents and punctuation, and
whitespace is collapsed, so that "Crème  Sûre!" and "creme sure"
compare equal.
"""

import re
import unicodedata
from functools import lru_cache
from typing import List, Optional

# Ligatures that NFD does not decompose
_LIGATURES = {"œ": "oe", "æ": "ae", "ß": "ss"}

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@lru_cache(maxsize=4096)
def normalize_ingredient_name(raw: Optional[str]) -> str:
    """
    Normalize a free-text ingredient or product name.

    Empty or missing input gives an empty string. The result is stable
    under re-normalization.
    """
    if not raw:
        return ""
    text = raw.lower().strip()
    for ligature, replacement in _LIGATURES.items():
        text = text.replace(ligature, replacement)
    text = unicodedata.normalize("NFD", text)
    text = _COMBINING_MARKS.sub("", text)
    text = _NON_ALNUM.sub(" ", text)
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


def tokenize(raw: Optional[str]) -> List[str]:
    """Split a name into normalized tokens."""
    normalized = normalize_ingredient_name(raw)
    return normalized.split() if normalized else []


@lru_cache(maxsize=2048)
def _phrase_pattern(phrase: str) -> "re.Pattern":
    # Whole words, allowing French feminine/plural endings on the last one
    return re.compile(rf"\b{re.escape(phrase)}(?:es|e|s|x)?\b")


def contains_phrase(text: str, phrase: str) -> bool:
    """Whether normalized ``text`` holds ``phrase`` as whole words."""
    return bool(phrase) and _phrase_pattern(phrase).search(text) is not None
