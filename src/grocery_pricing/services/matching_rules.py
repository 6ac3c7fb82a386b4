"""
Word tables for the ingredient matcher, loaded from ``data/matching_rules.json``.

Every word and phrase is normalized at load time so the matcher only
ever compares normalized text.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, Field, PrivateAttr, ValidationError, field_validator

from ..exceptions import RuleTableError
from .data_tables import DATA_DIR, read_data_table
from .normalizer import normalize_ingredient_name

logger = logging.getLogger(__name__)

_RULES_FILE = DATA_DIR / "matching_rules.json"


def _normalized(values) -> List[str]:
    result = []
    for value in values or []:
        normalized = normalize_ingredient_name(str(value))
        if normalized and normalized not in result:
            result.append(normalized)
    return result


def _normalized_mapping(mapping) -> Dict[str, List[str]]:
    result: Dict[str, List[str]] = {}
    for key, values in (mapping or {}).items():
        normalized_key = normalize_ingredient_name(key)
        if not normalized_key:
            continue
        merged = result.setdefault(normalized_key, [])
        merged.extend(v for v in _normalized(values) if v not in merged)
    return result


def singular(word: str) -> str:
    """Drop a plain French/English plural mark."""
    if len(word) > 3 and word[-1] in ("s", "x"):
        return word[:-1]
    return word


class CompoundGuard(BaseModel):
    """
    Words that only identify a product together with a qualifier.

    "papier toilette" and "papier aluminium" share "papier" but their
    kinds (toilette, aluminium) differ, so they never match.
    """

    anchors: List[str]
    kinds: Dict[str, List[str]]

    @field_validator("anchors", mode="before")
    @classmethod
    def _normalize_anchors(cls, value):
        return _normalized(value)

    @field_validator("kinds", mode="before")
    @classmethod
    def _normalize_kinds(cls, value):
        return _normalized_mapping(value)

    def kinds_of(self, tokens: FrozenSet[str]) -> FrozenSet[str]:
        if not any(anchor in tokens for anchor in self.anchors):
            return frozenset()
        return frozenset(kind for kind, words in self.kinds.items() if tokens.intersection(words))


class WordConflict(BaseModel):
    """A word on one side forbids any of ``excluded`` on the other side."""

    when: List[str]
    excluded: List[str]

    @field_validator("when", "excluded", mode="before")
    @classmethod
    def _normalize_lists(cls, value):
        return _normalized(value)


class MatchingRules(BaseModel):
    """All word lists the matcher consults, normalized."""

    version: int = 0
    stop_words: FrozenSet[str] = Field(default_factory=frozenset)
    packaging_words: FrozenSet[str] = Field(default_factory=frozenset)
    negation_words: FrozenSet[str] = Field(default_factory=frozenset)
    composition_indicators: Tuple[str, ...] = ()
    transformation_words: Tuple[str, ...] = ()
    trigger_exclusions: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)
    word_translations: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)
    compound_guards: List[CompoundGuard] = Field(default_factory=list)
    word_conflicts: List[WordConflict] = Field(default_factory=list)
    false_positive_pairs: List[Tuple[str, str]] = Field(default_factory=list)
    catalogue_exclusions: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)

    _synonyms: Dict[str, FrozenSet[str]] = PrivateAttr(default_factory=dict)

    @field_validator(
        "stop_words", "packaging_words", "negation_words",
        "composition_indicators", "transformation_words",
        mode="before",
    )
    @classmethod
    def _normalize_words(cls, value):
        return _normalized(value)

    @field_validator("trigger_exclusions", "word_translations", "catalogue_exclusions", mode="before")
    @classmethod
    def _normalize_tables(cls, value):
        return _normalized_mapping(value)

    @field_validator("false_positive_pairs", mode="before")
    @classmethod
    def _normalize_pairs(cls, value):
        pairs = []
        for pair in value or []:
            words = [normalize_ingredient_name(str(w)) for w in pair]
            if len(words) != 2 or not all(words) or words[0] == words[1]:
                raise ValueError(f"false positive pair must hold two distinct words: {pair!r}")
            pairs.append(tuple(words))
        return pairs

    def model_post_init(self, __context) -> None:
        # Translations work both ways: lait -> milk and milk -> lait
        index: Dict[str, set] = {}
        for word, targets in self.word_translations.items():
            index.setdefault(word, set()).update(targets)
            for target in targets:
                index.setdefault(target, set()).add(word)
        self._synonyms = {word: frozenset(targets) for word, targets in index.items()}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _keyed(self, table: Dict[str, Tuple[str, ...]], word: str) -> Tuple[str, ...]:
        if word in table:
            return table[word]
        return table.get(singular(word), ())

    def exclusions_for(self, word: str) -> Tuple[str, ...]:
        """Disqualifying continuations curated for a trigger word."""
        return self._keyed(self.trigger_exclusions, word)

    def catalogue_exclusions_for(self, word: str) -> Tuple[str, ...]:
        return self._keyed(self.catalogue_exclusions, word)

    def synonyms(self, word: str) -> FrozenSet[str]:
        """Translations of a single word, in either language."""
        found = self._synonyms.get(word)
        if found is None:
            found = self._synonyms.get(singular(word), frozenset())
        return found

    def is_negated(self, tokens) -> bool:
        return any(token in self.negation_words for token in tokens)


@lru_cache(maxsize=None)
def load_matching_rules(path: Optional[Path] = None) -> MatchingRules:
    """
    Load and validate the matcher word tables.

    The default table is read once per process.

    Raises:
        RuleTableError: if the file is missing or does not validate.
    """
    rules_path = path or _RULES_FILE
    meta, entries = read_data_table(rules_path)
    try:
        rules = MatchingRules(version=meta.get("version", 0), **entries)
    except ValidationError as e:
        raise RuleTableError(f"Invalid matching rules in {rules_path}: {e}") from e

    logger.info(
        f"Loaded matching rules v{rules.version}: "
        f"{len(rules.trigger_exclusions)} trigger words, "
        f"{len(rules.word_translations)} translations"
    )
    return rules
