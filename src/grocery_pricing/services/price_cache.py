"""
Price caches keyed by normalized ingredient name.

A name can hold one row per source. Reads may ask for a given source
("government" first) or for any row, in which case government rows
still win, then the most recent row.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from ..models import CachedPrice, PriceQuote
from .normalizer import normalize_ingredient_name

logger = logging.getLogger(__name__)

PREFERRED_SOURCE = "government"


@runtime_checkable
class PriceCache(Protocol):
    """What the price resolver needs from a cache."""

    async def get(self, name: str, source: Optional[str] = None) -> Optional[PriceQuote]:
        ...

    async def upsert(self, name: str, quote: PriceQuote) -> None:
        ...


def _pick(rows: Dict[str, CachedPrice], source: Optional[str]) -> Optional[CachedPrice]:
    if not rows:
        return None
    if source is not None:
        return rows.get(source)
    if PREFERRED_SOURCE in rows:
        return rows[PREFERRED_SOURCE]
    return max(rows.values(), key=lambda row: row.updated_at)


class InMemoryPriceCache:
    """Process-local cache, mostly for tests and one-off runs."""

    def __init__(self, rows: Optional[List[CachedPrice]] = None):
        self._rows: Dict[str, Dict[str, CachedPrice]] = {}
        for row in rows or []:
            self._store(row)

    def _store(self, row: CachedPrice) -> None:
        self._rows.setdefault(normalize_ingredient_name(row.name), {})[row.source] = row

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._rows.values())

    def rows(self) -> List[CachedPrice]:
        return [row for rows in self._rows.values() for row in rows.values()]

    async def get(self, name: str, source: Optional[str] = None) -> Optional[PriceQuote]:
        row = _pick(self._rows.get(normalize_ingredient_name(name), {}), source)
        if row is None:
            return None
        return PriceQuote(
            amount=row.amount,
            source=_quote_source(row.source),
            category=row.category,
            reference_unit=row.reference_unit,
        )

    async def upsert(self, name: str, quote: PriceQuote) -> None:
        """Insert the row, or refresh its price and timestamp."""
        key = normalize_ingredient_name(name)
        if not key or quote.amount <= 0:
            return
        self._store(
            CachedPrice(
                name=key,
                amount=quote.amount,
                source=quote.source,
                category=quote.category,
                reference_unit=quote.reference_unit,
            )
        )


def _quote_source(stored: str) -> str:
    # Only government rows keep their origin when read back
    return "government" if stored == PREFERRED_SOURCE else "cache"


class JsonPriceCache(InMemoryPriceCache):
    """
    Cache persisted to a JSON file.

    Rows that no longer validate are dropped on load with a warning.
    Writes are kept in memory until ``save_cache()``.
    """

    def __init__(self, path: Path):
        super().__init__()
        self._path = Path(path)
        self._dirty = False
        self._load_cache()

    def _load_cache(self) -> None:
        """Load cached rows from disk."""
        if not self._path.exists():
            logger.info(f"No price cache at {self._path}, starting empty")
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read price cache {self._path}: {e}")
            return

        prices = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(prices, list):
            logger.warning(f"Price cache {self._path} holds no price list, starting empty")
            return

        skipped = 0
        for raw in prices:
            try:
                self._store(CachedPrice.model_validate(raw))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.warning(f"Skipped {skipped} corrupt price cache rows in {self._path}")
            self._dirty = True
        logger.info(f"Loaded {len(self)} cached prices from {self._path}")

    def save_cache(self) -> None:
        """Persist cache to disk if changed."""
        if not self._dirty:
            return
        data = {
            "_meta": {
                "description": "Ingredient price cache, one row per name and source.",
                "last_updated": datetime.now().isoformat(),
                "total_entries": len(self),
            },
            "prices": [
                row.model_dump(mode="json")
                for row in sorted(self.rows(), key=lambda row: (row.name, row.source))
            ],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        self._dirty = False
        logger.info(f"Saved {len(self)} cached prices to {self._path}")

    async def upsert(self, name: str, quote: PriceQuote) -> None:
        await super().upsert(name, quote)
        self._dirty = True
