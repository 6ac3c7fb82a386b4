"""
Static fallback prices, used when neither the cache, the government
dataset nor a live deal feed knows an ingredient.

Prices are average Quebec grocery prices per category, read from
``data/fallback_prices.json``.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..constants import DEFAULT_CATEGORY
from ..exceptions import RuleTableError
from ..models import FallbackPriceEntry, PriceQuote
from .data_tables import DATA_DIR, read_data_table
from .normalizer import contains_phrase, normalize_ingredient_name

logger = logging.getLogger(__name__)

_FALLBACK_FILE = DATA_DIR / "fallback_prices.json"


class FallbackPriceTable:
    """Ordered category tables with per-item prices and a default each."""

    def __init__(self, entries: List[FallbackPriceEntry]):
        self._entries = list(entries)
        self._by_category = {entry.category: entry for entry in self._entries}
        # Longest keys first so "filet de saumon" wins over "saumon"
        self._keys_by_length = {
            entry.category: sorted(entry.per_key_prices, key=len, reverse=True) for entry in self._entries
        }

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> "FallbackPriceTable":
        """
        Load the table, normalizing every item key and keyword.

        Raises:
            RuleTableError: if the file is missing or does not validate.
        """
        table_path = path or _FALLBACK_FILE
        _, sections = read_data_table(table_path)

        entries = []
        try:
            for raw in sections.get("categories") or []:
                prices = {}
                for key, price in (raw.get("prices") or {}).items():
                    normalized_key = normalize_ingredient_name(key)
                    if normalized_key:
                        prices[normalized_key] = price
                keywords = [normalize_ingredient_name(k) for k in raw.get("keywords") or []]
                entries.append(
                    FallbackPriceEntry(
                        category=raw.get("category"),
                        keywords=[k for k in keywords if k],
                        per_key_prices=prices,
                        default_price=raw.get("default"),
                    )
                )
        except (AttributeError, ValidationError) as e:
            raise RuleTableError(f"Invalid fallback price table in {table_path}: {e}") from e

        logger.info(
            f"Loaded fallback prices: {len(entries)} categories, "
            f"{sum(len(e.per_key_prices) for e in entries)} items"
        )
        return cls(entries)

    @property
    def categories(self) -> List[str]:
        return [entry.category for entry in self._entries]

    def entry(self, category: str) -> Optional[FallbackPriceEntry]:
        return self._by_category.get(category)

    def find_category(self, name: Optional[str]) -> str:
        """First category, in table order, with a keyword starting a word of ``name``."""
        normalized = normalize_ingredient_name(name)
        for entry in self._entries:
            if any(_starts_word(normalized, keyword) for keyword in entry.keywords):
                return entry.category
        return DEFAULT_CATEGORY

    def lookup(self, name: Optional[str]) -> Optional[PriceQuote]:
        """
        Fallback price for an ingredient.

        Exact item within the inferred category, then the longest item
        key found in the name, then the category default. Returns None
        for empty names or a category without a table.
        """
        normalized = normalize_ingredient_name(name)
        if not normalized:
            return None

        category = self.find_category(normalized)
        entry = self._by_category.get(category)
        if entry is None:
            logger.warning(f"No fallback table for category '{category}'")
            return None

        price = entry.per_key_prices.get(normalized)
        if price is None:
            for key in self._keys_by_length[category]:
                if contains_phrase(normalized, key):
                    price = entry.per_key_prices[key]
                    break
        if price is None:
            price = entry.default_price

        return PriceQuote(amount=price, source="fallback", category=category)


def _starts_word(text: str, keyword: str) -> bool:
    # "tomate" finds "tomates", "ail" does not find "volaille"
    index = text.find(keyword)
    while index != -1:
        if index == 0 or text[index - 1] == " ":
            return True
        index = text.find(keyword, index + 1)
    return False


@lru_cache(maxsize=1)
def get_fallback_table() -> FallbackPriceTable:
    """Process-wide fallback table over the bundled data."""
    return FallbackPriceTable.from_file()


def find_category(name: Optional[str]) -> str:
    return get_fallback_table().find_category(name)


def get_fallback_price(name: Optional[str]) -> Optional[PriceQuote]:
    return get_fallback_table().lookup(name)
