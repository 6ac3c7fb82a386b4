"""
Ingredient name translator: English recipe ingredients to French
grocery names, using the local dictionary in
``data/ingredient_translations.json``.

Lookup goes from the most precise to the least precise rule so compound
names ("chicken breast") win over their parts ("chicken").
"""

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..models import GroceryItem
from .data_tables import DATA_DIR, read_data_table

logger = logging.getLogger(__name__)

_TRANSLATIONS_FILE = DATA_DIR / "ingredient_translations.json"

_PUNCTUATION = re.compile(r"[(),]")
_WHITESPACE = re.compile(r"\s+")


class IngredientTranslator:
    """
    Translates ingredient names and units from English to French.

    The dictionary is static; entries that do not look like ingredient
    names are dropped on load.
    """

    def __init__(self, translations_path: Optional[Path] = None):
        """
        Initialize the translator.

        Args:
            translations_path: Path to the translations JSON file.
        """
        self._path = translations_path or _TRANSLATIONS_FILE
        self._translations: Dict[str, str] = {}
        self._units: Dict[str, str] = {}
        self._prep_patterns: List["re.Pattern"] = []
        self._phrases: List[str] = []

        self._load()

    def _load(self) -> None:
        """Load translations from disk, filtering out invalid entries."""
        _, entries = read_data_table(self._path)

        raw = entries.get("ingredients") or {}
        filtered_count = 0
        for k, v in raw.items():
            if self._is_valid_ingredient_entry(k, v):
                self._translations[k.strip().lower()] = v.strip()
            else:
                filtered_count += 1
        if filtered_count > 0:
            logger.warning(
                f"Filtered out {filtered_count} invalid translation entries "
                f"(of {len(raw)} total)"
            )

        self._units = {
            k.strip().lower(): v for k, v in (entries.get("units") or {}).items() if isinstance(v, str)
        }
        self._prep_patterns = [
            re.compile(rf"\b{re.escape(word.lower())}\b") for word in entries.get("prep_words") or []
        ]
        # Multi-word keys, longest first, for the substring pass
        self._phrases = sorted((k for k in self._translations if " " in k), key=len, reverse=True)

        logger.info(
            f"Loaded {len(self._translations)} ingredient translations "
            f"and {len(self._units)} units"
        )

    @property
    def size(self) -> int:
        return len(self._translations)

    def _normalize(self, name: str) -> str:
        """Lower-case, drop punctuation and preparation words."""
        text = _PUNCTUATION.sub(" ", name.lower().strip())
        for pattern in self._prep_patterns:
            text = pattern.sub(" ", text)
        return _WHITESPACE.sub(" ", text).strip()

    @staticmethod
    def _is_valid_ingredient_entry(key: Any, value: Any) -> bool:
        """
        Validate that a key-value pair looks like a real ingredient translation.

        Rejects non-string or empty entries, bracketed placeholders and
        values that read like sentences rather than names.
        """
        if not isinstance(key, str) or not isinstance(value, str):
            return False
        key, value = key.strip(), value.strip()
        if not key or not value:
            return False
        if key.startswith("[") or value.startswith("["):
            return False
        if "\n" in value or len(value) > 60 or len(value.split()) > 6:
            return False
        return True

    def lookup(self, name: str) -> Optional[str]:
        """Exact dictionary lookup, normalized first, then as typed."""
        if not name:
            return None
        return self._translations.get(self._normalize(name)) or self._translations.get(name.strip().lower())

    def translate_name(self, raw: Optional[str]) -> Optional[str]:
        """
        Translate an ingredient name to French.

        Order: exact match, longest known phrase inside the name, then the
        single known word of the name ("frozen shrimp" gives "crevettes"),
        then word by word when several words are known (untranslated words
        kept). Unknown names come back unchanged.
        """
        if not raw or not raw.strip():
            return raw

        exact = self.lookup(raw)
        if exact:
            return exact

        normalized = self._normalize(raw)
        raw_lower = raw.lower().strip()
        for phrase in self._phrases:
            pattern = rf"\b{re.escape(phrase)}\b"
            if re.search(pattern, normalized) or re.search(pattern, raw_lower):
                return self._translations[phrase]

        words = normalized.split()
        known = {word for word in words if word in self._translations}
        if len(known) == 1:
            return self._translations[known.pop()]

        translated = [self._translations.get(word, word) for word in words]
        if translated != words:
            return " ".join(translated)

        return raw

    def translate_unit(self, unit: Optional[str]) -> str:
        """Translate a unit to French, keeping unknown units as given."""
        if not unit:
            return ""
        return self._units.get(unit.strip().lower(), unit)

    def to_grocery_item(self, ingredient: Mapping[str, Any]) -> GroceryItem:
        """
        Turn a recipe ingredient (``name``, ``original``, ``amount``,
        ``unit``, ``id``) into a French grocery-list line.
        """
        original_name = ingredient.get("name") or ingredient.get("original") or ""
        item = GroceryItem(
            id=ingredient.get("id"),
            name_fr=self.translate_name(original_name) or "",
            quantity=ingredient.get("amount") or 0,
            unit_fr=self.translate_unit(ingredient.get("unit")),
            original_en=ingredient.get("original") or "",
        )
        logger.debug(f"Translated '{original_name}' -> '{item.name_fr}' ({item.unit_fr})")
        return item


@lru_cache(maxsize=1)
def get_translator() -> IngredientTranslator:
    """Process-wide translator over the bundled dictionary."""
    return IngredientTranslator()


def translate_name(raw: Optional[str]) -> Optional[str]:
    return get_translator().translate_name(raw)


def translate_unit(unit: Optional[str]) -> str:
    return get_translator().translate_unit(unit)


def to_grocery_item(ingredient: Mapping[str, Any]) -> GroceryItem:
    return get_translator().to_grocery_item(ingredient)


def to_grocery_list(ingredients: Iterable[Mapping[str, Any]]) -> List[GroceryItem]:
    return [to_grocery_item(ingredient) for ingredient in ingredients]
