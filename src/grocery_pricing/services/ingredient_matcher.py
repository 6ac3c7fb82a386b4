"""
Ingredient matcher: decides whether two free-text grocery strings name
the same product.

Plain substring matching is far too loose for groceries ("crème" is not
"crème sure", "beurre" is not "beurre d'arachide"), so matching is a
short pipeline of strict checks:

1. Both strings must keep at least one significant word once stop words,
   packaging words and quantities are dropped.
2. Equal normalized strings match.
3. Compound guards ("papier toilette" vs "papier aluminium") reject.
4. One strategy runs, picked from the search term's word count:
   single-word (leading/first-word match with exclusion lists) or
   multi-word (any word pair matching by equality, containment or
   translation).
5. Known false-positive pairs ("pâtes" vs "pâté") reject.

All word lists come from ``data/matching_rules.json``.
"""

import logging
import re
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..models import MatchCandidate
from .matching_rules import MatchingRules, load_matching_rules
from .normalizer import contains_phrase, normalize_ingredient_name

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scores (ranking only, never filtering)
# ---------------------------------------------------------------------------
SCORE_EXACT = 100
SCORE_ITEM_CONTAINS_INGREDIENT = 90
SCORE_ALL_WORDS_PRESENT = 85
SCORE_INGREDIENT_CONTAINS_ITEM = 80
SCORE_RELATED = 70

# ---------------------------------------------------------------------------
# Containment thresholds for the multi-word path
# ---------------------------------------------------------------------------
_LONG_WORD = 5
_MIN_CONTAINED = 4
_LONG_WORD_RATIO = 0.7
_SHORT_WORD_RATIO = 0.8


class MatchStrategy(str, Enum):
    """How a search term is compared, chosen from its significant words."""

    SINGLE_WORD = "single_word"
    MULTI_WORD = "multi_word"


def select_strategy(search_words: Sequence[str]) -> MatchStrategy:
    if len(search_words) == 1:
        return MatchStrategy.SINGLE_WORD
    return MatchStrategy.MULTI_WORD


# ---------------------------------------------------------------------------
# Word helpers
# ---------------------------------------------------------------------------


def significant_words(text: Optional[str], rules: Optional[MatchingRules] = None) -> List[str]:
    """
    Tokens of ``text`` that identify a product.

    Drops stop words, packaging words, negation words, one-letter tokens
    and anything holding a digit (sizes, fat percentages).
    """
    rules = rules or load_matching_rules()
    words = []
    for token in normalize_ingredient_name(text).split():
        if len(token) < 2 or any(ch.isdigit() for ch in token):
            continue
        if token in rules.stop_words or token in rules.packaging_words or token in rules.negation_words:
            continue
        words.append(token)
    return words


def same_word(word: str, token: str) -> bool:
    """Equality tolerant of a trailing plural ``s``/``x``."""
    if word == token:
        return True
    return token in (word + "s", word + "x") or word in (token + "s", token + "x")


def words_match(w1: str, w2: str) -> bool:
    """
    Word-level match used by the multi-word path.

    Short words only match by equality. Longer words may match by
    containment when their lengths are close.
    """
    if w1 == w2:
        return True
    shorter, longer = sorted((w1, w2), key=len)
    if shorter not in longer:
        return False
    ratio = len(shorter) / len(longer)
    if len(longer) >= _LONG_WORD and len(shorter) >= _MIN_CONTAINED and ratio >= _LONG_WORD_RATIO:
        return True
    return len(shorter) >= _MIN_CONTAINED and ratio >= _SHORT_WORD_RATIO


def _disqualifier(word: str, continuation: str, rules: MatchingRules, trigger: Optional[str] = None) -> Optional[str]:
    """Return the phrase that makes ``continuation`` a different product, if any."""
    if not continuation:
        return None
    phrases = list(rules.composition_indicators) + list(rules.transformation_words)
    phrases.extend(rules.exclusions_for(word))
    if trigger and trigger != word:
        phrases.extend(rules.exclusions_for(trigger))
    for phrase in phrases:
        if contains_phrase(continuation, phrase):
            return phrase
    return None


# ---------------------------------------------------------------------------
# Single-word strategy
# ---------------------------------------------------------------------------


def _direct_single_word_match(
    word: str, candidate: str, rules: MatchingRules, trigger: Optional[str] = None
) -> bool:
    tokens = candidate.split()
    word_tokens = word.split()
    size = len(word_tokens)

    # Candidate starts with the word: "beurre salé"
    leading = tokens[:size]
    if len(leading) == size and all(same_word(w, t) for w, t in zip(word_tokens, leading)):
        continuation = " ".join(tokens[size:])
        reason = _disqualifier(word, continuation, rules, trigger)
        if reason:
            logger.debug(f"'{word}' vs '{candidate}': continuation excluded by '{reason}'")
            return False
        return True

    # Word further in, only when it is the candidate's first significant word: "2% lait"
    if size != 1:
        return False
    candidate_words = significant_words(candidate, rules)
    if not candidate_words or not same_word(word, candidate_words[0]):
        return False
    position = next(i for i, token in enumerate(tokens) if same_word(word, token))
    continuation = " ".join(tokens[position + 1:])
    return _disqualifier(word, continuation, rules, trigger) is None


def match_single_word(word: str, candidate: str, rules: Optional[MatchingRules] = None) -> bool:
    """
    Compare a one-word search term with a normalized candidate.

    Falls back to the word's translations, which go through the same
    exclusion lists ("butter" must not match "peanut butter").
    """
    rules = rules or load_matching_rules()
    if _direct_single_word_match(word, candidate, rules):
        return True
    for synonym in sorted(rules.synonyms(word)):
        if _direct_single_word_match(synonym, candidate, rules, trigger=word):
            return True
    return False


# ---------------------------------------------------------------------------
# Multi-word strategy
# ---------------------------------------------------------------------------


def _word_relation(w1: str, w2: str, rules: MatchingRules) -> Optional[str]:
    if w1 == w2:
        return "equal"
    if words_match(w1, w2):
        return "contained"
    for source, other in ((w1, w2), (w2, w1)):
        for synonym in rules.synonyms(source):
            if " " not in synonym and words_match(synonym, other):
                return "translated"
    return None


def _trigger_parity(w1: str, w2: str, a: str, b: str, rules: MatchingRules) -> bool:
    """A shared trigger word counts only if both sides agree on its exclusions."""
    exclusions = set(rules.exclusions_for(w1)) | set(rules.exclusions_for(w2))
    if not exclusions:
        return True
    a_excluded = any(contains_phrase(a, phrase) for phrase in exclusions)
    b_excluded = any(contains_phrase(b, phrase) for phrase in exclusions)
    return a_excluded == b_excluded


def match_multi_word(
    a: str,
    b: str,
    words_a: Sequence[str],
    words_b: Sequence[str],
    rules: Optional[MatchingRules] = None,
) -> bool:
    """
    Compare two normalized strings word by word.

    One matching word pair is enough. Under a negation word ("sans",
    "free") containment only counts when one string is a prefix of the
    other.
    """
    rules = rules or load_matching_rules()
    negated = rules.is_negated(a.split()) or rules.is_negated(b.split())
    for w1 in words_a:
        for w2 in words_b:
            relation = _word_relation(w1, w2, rules)
            if relation is None:
                continue
            if relation == "contained" and negated and not (a.startswith(b) or b.startswith(a)):
                continue
            if not _trigger_parity(w1, w2, a, b, rules):
                continue
            return True
    return False


# ---------------------------------------------------------------------------
# Guards shared by both strategies
# ---------------------------------------------------------------------------


def _violates_guards(a: str, b: str, rules: MatchingRules) -> bool:
    tokens_a, tokens_b = frozenset(a.split()), frozenset(b.split())

    for guard in rules.compound_guards:
        kinds_a, kinds_b = guard.kinds_of(tokens_a), guard.kinds_of(tokens_b)
        if kinds_a and kinds_b and not kinds_a & kinds_b:
            return True

    for conflict in rules.word_conflicts:
        for left, right in ((tokens_a, tokens_b), (tokens_b, tokens_a)):
            if left.intersection(conflict.when) and right.intersection(conflict.excluded):
                return True
    return False


def _is_false_positive_pair(a: str, b: str, rules: MatchingRules) -> bool:
    tokens_a, tokens_b = set(a.split()), set(b.split())
    for first, second in rules.false_positive_pairs:
        for left, right in ((tokens_a, tokens_b), (tokens_b, tokens_a)):
            if first in left and second not in left and second in right and first not in right:
                return True
    return False


# ── Public API ──────────────────────────────────────────────────────


def matches(a: Optional[str], b: Optional[str], rules: Optional[MatchingRules] = None) -> bool:
    """
    Whether ``a`` (the search term) and ``b`` (a candidate) name the same product.

    Never raises; empty input, or input reduced to packaging words,
    never matches.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    rules = rules or load_matching_rules()

    normalized_a = normalize_ingredient_name(a)
    normalized_b = normalize_ingredient_name(b)
    words_a = significant_words(normalized_a, rules)
    words_b = significant_words(normalized_b, rules)
    if not words_a or not words_b:
        return False

    if normalized_a == normalized_b:
        return True

    if _violates_guards(normalized_a, normalized_b, rules):
        return False

    if select_strategy(words_a) is MatchStrategy.SINGLE_WORD:
        found = match_single_word(words_a[0], normalized_b, rules)
    else:
        found = match_multi_word(normalized_a, normalized_b, words_a, words_b, rules)

    if not found:
        return False
    return not _is_false_positive_pair(normalized_a, normalized_b, rules)


def score_match(ingredient: str, item_name: str, rules: Optional[MatchingRules] = None) -> int:
    """Ranking score for an accepted ingredient/item pair, 0 when either side is empty."""
    rules = rules or load_matching_rules()
    normalized_ingredient = normalize_ingredient_name(ingredient)
    normalized_item = normalize_ingredient_name(item_name)

    if not normalized_ingredient or not normalized_item:
        return 0
    if normalized_ingredient == normalized_item:
        return SCORE_EXACT
    if re.search(rf"\b{re.escape(normalized_ingredient)}\b", normalized_item):
        return SCORE_ITEM_CONTAINS_INGREDIENT

    ingredient_words = significant_words(normalized_ingredient, rules)
    item_words = significant_words(normalized_item, rules)
    if ingredient_words and all(any(same_word(w, t) for t in item_words) for w in ingredient_words):
        return SCORE_ALL_WORDS_PRESENT

    if normalized_item and re.search(rf"\b{re.escape(normalized_item)}\b", normalized_ingredient):
        return SCORE_INGREDIENT_CONTAINS_ITEM
    return SCORE_RELATED


def _item_name(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        name = item.get("name")
    else:
        name = getattr(item, "name", None)
    return name if isinstance(name, str) else ""


def find_matches(
    ingredients: Iterable[str],
    catalogue: Iterable[Any],
    rules: Optional[MatchingRules] = None,
) -> List[MatchCandidate]:
    """
    Match every ingredient against every catalogue item.

    Items are names, mappings or objects with a ``name``. All matches are
    returned, best score first. Items reached only through a translation
    are dropped when they carry a known look-alike word (coconut "milk"
    for "lait").
    """
    rules = rules or load_matching_rules()
    catalogue = list(catalogue)
    results: List[MatchCandidate] = []

    for ingredient in ingredients:
        normalized_ingredient = normalize_ingredient_name(ingredient)
        if len(normalized_ingredient) < 2:
            continue
        words = significant_words(normalized_ingredient, rules)
        first_word = words[0] if words else ""
        look_alikes = rules.catalogue_exclusions_for(first_word)

        for item in catalogue:
            name = _item_name(item)
            if not name or not matches(ingredient, name, rules):
                continue
            normalized_name = normalize_ingredient_name(name)
            if look_alikes and not contains_phrase(normalized_name, first_word):
                if any(contains_phrase(normalized_name, pattern) for pattern in look_alikes):
                    logger.debug(f"Dropped look-alike '{name}' for '{ingredient}'")
                    continue
            results.append(
                MatchCandidate(
                    ingredient=ingredient,
                    matched_item=item,
                    match_score=score_match(ingredient, name, rules),
                )
            )

    results.sort(key=lambda candidate: candidate.match_score, reverse=True)
    logger.debug(f"Found {len(results)} matches")
    return results
