"""
Price resolver: the layered lookup behind every ingredient price.

Sources are asked in order, the first answer wins:

1. price cache (government rows first, then any row)
2. government reference dataset
3. live deal feed, when a postal code is given
4. static fallback table
5. default price

A source that is missing, slow or broken is logged and skipped, so
``resolve_price`` always returns a quote.
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from ..constants import (
    DEAL_FEED_BATCH_SIZE,
    DEAL_FEED_MAX_VENDORS,
    DEAL_FEED_TIMEOUT,
    DEFAULT_CATEGORY,
    DEFAULT_PRICE,
)
from ..models import IngredientCost, IngredientLine, PriceQuote, RecipeCostEstimate
from .deal_feed import DealFeed, fetch_vendor_items, select_grocery_vendors
from .gov_price_loader import ReferencePriceLoader
from .ingredient_matcher import matches
from .normalizer import normalize_ingredient_name
from .price_cache import PriceCache
from .price_fallback import FallbackPriceTable, get_fallback_table
from .unit_converter import convert_unit_price

logger = logging.getLogger(__name__)


class PriceResolver:
    """
    Resolves a unit-reference price for an ingredient name.

    Every collaborator is optional; without any of them the resolver
    answers from the bundled fallback table.

    Args:
        cache: Price cache read first, and written when
            ``persist_feed_prices`` is set.
        reference_loader: Government price dataset.
        deal_feed: Live flyer feed, only used with a postal code.
        fallback_table: Static prices, the bundled table by default.
        persist_feed_prices: Store deal feed prices in the cache.
        timeout: Seconds allowed to each vendor's item listing.
        batch_size: Vendors fetched concurrently.
        max_vendors: Vendors scanned per lookup.
    """

    def __init__(
        self,
        cache: Optional[PriceCache] = None,
        reference_loader: Optional[ReferencePriceLoader] = None,
        deal_feed: Optional[DealFeed] = None,
        fallback_table: Optional[FallbackPriceTable] = None,
        persist_feed_prices: bool = False,
        timeout: float = DEAL_FEED_TIMEOUT,
        batch_size: int = DEAL_FEED_BATCH_SIZE,
        max_vendors: int = DEAL_FEED_MAX_VENDORS,
    ):
        self.cache = cache
        self.reference_loader = reference_loader
        self.deal_feed = deal_feed
        self.fallback_table = fallback_table if fallback_table is not None else get_fallback_table()
        self.persist_feed_prices = persist_feed_prices
        self.timeout = timeout
        self.batch_size = batch_size
        self.max_vendors = max_vendors

    # ── Sources ─────────────────────────────────────────────────────

    async def _from_cache(self, name: str) -> Optional[PriceQuote]:
        if self.cache is None:
            return None
        try:
            cached = await self.cache.get(name, "government")
            if cached is None:
                cached = await self.cache.get(name)
        except Exception as e:
            logger.warning(f"Price cache unavailable for '{name}': {type(e).__name__}: {e}")
            return None
        if cached is None or cached.amount <= 0:
            return None
        source = "government" if cached.source == "government" else "cache"
        return PriceQuote(
            amount=cached.amount, source=source, category=cached.category, reference_unit=cached.reference_unit
        )

    def _from_reference(self, name: str) -> Optional[PriceQuote]:
        if self.reference_loader is None:
            return None
        try:
            quote = self.reference_loader.lookup_quote(name, category=self.fallback_table.find_category(name))
        except Exception as e:
            logger.warning(f"Reference dataset unavailable for '{name}': {type(e).__name__}: {e}")
            return None
        if quote is None or quote.amount <= 0:
            return None
        return quote

    async def _from_deal_feed(self, name: str, postal_code: Optional[str]) -> Optional[PriceQuote]:
        if self.deal_feed is None or not postal_code:
            return None
        try:
            vendors = await asyncio.wait_for(self.deal_feed.list_vendors_near(postal_code), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Deal feed vendor listing timed out for {postal_code}")
            return None
        except Exception as e:
            logger.warning(f"Deal feed unavailable for {postal_code}: {type(e).__name__}: {e}")
            return None

        selected = select_grocery_vendors(vendors, self.max_vendors)
        if not selected:
            logger.debug(f"No grocery vendor near {postal_code}")
            return None

        prices: List[float] = []
        for vendor, items in await fetch_vendor_items(self.deal_feed, selected, self.batch_size, self.timeout):
            for item in items:
                price = item.reference_price
                if price and price > 0 and matches(name, item.name):
                    logger.debug(f"Deal feed price {price} for '{name}' from '{item.name}' at {vendor.merchant}")
                    prices.append(price)
        if not prices:
            return None

        quote = PriceQuote(
            amount=round(sum(prices) / len(prices), 2),
            source="dynamic-feed",
            category=self.fallback_table.find_category(name),
        )
        if self.persist_feed_prices and self.cache is not None:
            try:
                await self.cache.upsert(name, quote)
            except Exception as e:
                logger.warning(f"Could not cache deal feed price for '{name}': {type(e).__name__}: {e}")
        return quote

    def _from_fallback(self, name: str) -> Optional[PriceQuote]:
        try:
            return self.fallback_table.lookup(name)
        except Exception as e:
            logger.warning(f"Fallback table failed for '{name}': {type(e).__name__}: {e}")
            return None

    # ── Public API ──────────────────────────────────────────────────

    async def resolve_price(
        self,
        name: Optional[str],
        quantity: Optional[float] = None,
        unit: Optional[str] = None,
        postal_code: Optional[str] = None,
    ) -> PriceQuote:
        """
        Unit-reference price of an ingredient. Never raises.

        The quote is the price of the reference unit (kg, L, package...);
        ``quantity`` and ``unit`` do not change which source answers. Use
        ``estimate_cost`` for the price of the requested amount.

        Args:
            name: Ingredient name, any case or accents.
            quantity: Amount the caller will scale to.
            unit: Unit of ``quantity``.
            postal_code: Enables the live deal feed.
        """
        normalized = normalize_ingredient_name(name)
        if not normalized:
            return PriceQuote(amount=DEFAULT_PRICE, source="default", category=DEFAULT_CATEGORY)

        quote = await self._from_cache(normalized)
        if quote is None:
            quote = self._from_reference(normalized)
        if quote is None:
            quote = await self._from_deal_feed(normalized, postal_code)
        if quote is None:
            quote = self._from_fallback(normalized)
        if quote is None:
            quote = PriceQuote(amount=DEFAULT_PRICE, source="default", category=DEFAULT_CATEGORY)

        logger.info(f"Price for '{name}': {quote.amount:.2f} ({quote.source})")
        if quantity is not None:
            logger.debug(f"'{name}' requested as {quantity} {unit or ''}".rstrip())
        return quote

    async def estimate_cost(
        self,
        name: str,
        quantity: float = 1.0,
        unit: Optional[str] = None,
        postal_code: Optional[str] = None,
    ) -> IngredientCost:
        """Price of ``quantity`` ``unit`` of an ingredient, rounded to the cent."""
        quote = await self.resolve_price(name, quantity, unit, postal_code=postal_code)
        cost = convert_unit_price(quote.amount, quantity, unit, name, reference_unit=quote.reference_unit)
        return IngredientCost(name=name, quantity=quantity, unit=unit, quote=quote, cost=round(cost, 2))

    async def estimate_recipe_cost(
        self,
        lines: Iterable[IngredientLine],
        postal_code: Optional[str] = None,
    ) -> RecipeCostEstimate:
        """Cost of every ingredient line, resolved concurrently, and their total."""
        costs = await asyncio.gather(
            *(self.estimate_cost(line.name, line.quantity, line.unit, postal_code) for line in lines)
        )
        total = round(sum(cost.cost for cost in costs), 2)
        return RecipeCostEstimate(lines=list(costs), total=total)
