"""
Weekly flyer deal feed: which vendors count as grocers, how their items
are fetched, and the savings search over a shopping list.

The feed itself (HTTP client, pagination) lives outside this package;
anything implementing ``DealFeed`` can be plugged in.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from ..constants import DEAL_FEED_BATCH_SIZE, DEAL_FEED_MAX_VENDORS, DEAL_FEED_TIMEOUT
from ..exceptions import SourceUnavailableError
from ..models import DealItem, DealMatch, Vendor, VendorDeals
from .ingredient_matcher import find_matches
from .normalizer import normalize_ingredient_name

logger = logging.getLogger(__name__)


@runtime_checkable
class DealFeed(Protocol):
    """A source of flyers and flyer items near a postal code."""

    async def list_vendors_near(self, postal_code: str) -> List[Vendor]:
        ...

    async def list_items(self, vendor_id: str) -> List[DealItem]:
        ...


class SnapshotDealFeed:
    """
    Deal feed served from a saved flyer snapshot.

    The snapshot holds raw listings as the feed returns them::

        {"flyers": [{"id": 1, "merchant": "Maxi", "postal_code": "H2X",
                     "items": [{"name": "Lait 2%", "current_price": 5.49}]}]}

    A flyer without ``postal_code`` is listed for every postal code.
    """

    def __init__(self, flyers: List[Dict[str, Any]]):
        self._flyers = list(flyers)

    @classmethod
    def from_file(cls, path: Path) -> "SnapshotDealFeed":
        """
        Raises:
            SourceUnavailableError: if the snapshot cannot be read.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceUnavailableError(f"Could not read flyer snapshot {path}: {e}") from e
        flyers = data.get("flyers", []) if isinstance(data, dict) else data
        if not isinstance(flyers, list):
            raise SourceUnavailableError(f"Flyer snapshot {path} holds no flyer list")
        logger.info(f"Loaded {len(flyers)} flyers from {path}")
        return cls([flyer for flyer in flyers if isinstance(flyer, dict)])

    async def list_vendors_near(self, postal_code: str) -> List[Vendor]:
        prefix = postal_code.replace(" ", "").upper()
        vendors = []
        for flyer in self._flyers:
            area = str(flyer.get("postal_code") or "").replace(" ", "").upper()
            if area and not prefix.startswith(area) and not area.startswith(prefix):
                continue
            vendors.append(Vendor.from_listing(flyer))
        return vendors

    async def list_items(self, vendor_id: str) -> List[DealItem]:
        for flyer in self._flyers:
            if str(flyer.get("id")) == str(vendor_id):
                items = (DealItem.from_listing(raw) for raw in flyer.get("items") or [] if isinstance(raw, dict))
                return [item for item in items if item is not None]
        return []


# ---------------------------------------------------------------------------
# Vendor selection
# ---------------------------------------------------------------------------
GROCERY_KEYWORDS = (
    "metro", "maxi", "iga", "super c", "walmart", "provigo", "loblaws",
    "sobeys", "food basics", "costco", "adonis", "uniprix", "pharmaprix",
    "jean coutu", "familiprix", "grocery", "iga extra", "metro plus",
    "supermarche", "epicerie", "richelieu",
)
EXCLUDED_MERCHANTS = ("lian tai", "liantai", "marche lian tai")
GROCERY_CATEGORY_WORDS = ("grocery", "groceries", "epicerie", "supermarket", "food", "pharmacy")

PRIORITY_MERCHANTS = ("maxi", "metro", "iga", "walmart", "provigo")
MAJOR_GROCERS = (
    "maxi", "provigo", "iga", "metro", "super c", "walmart", "costco", "loblaws",
    "metro plus", "iga extra", "marche tradition", "familiprix", "jean coutu", "pharmaprix",
)


def _names_grocer(text: str) -> bool:
    # "Marché Tradition" is spelled many ways, both words are enough
    if "marche" in text and "tradition" in text:
        return True
    return any(keyword in text for keyword in GROCERY_KEYWORDS)


def is_grocery_vendor(vendor: Vendor) -> bool:
    """
    True for grocers and pharmacies, False for niche or unrelated vendors.

    A known grocer name in the merchant or store name is enough. A grocery
    category alone only counts when the vendor names a merchant.
    """
    merchant = normalize_ingredient_name(vendor.merchant)
    name = normalize_ingredient_name(vendor.name)

    if any(excluded in merchant or excluded in name for excluded in EXCLUDED_MERCHANTS):
        return False

    merchant_match = _names_grocer(merchant)
    name_match = _names_grocer(name)
    if merchant_match or name_match:
        return True

    category = normalize_ingredient_name(vendor.category)
    return bool(merchant) and any(word in category for word in GROCERY_CATEGORY_WORDS)


def _priority(vendor: Vendor, ranking: Sequence[str]) -> int:
    key = normalize_ingredient_name(vendor.merchant or vendor.name)
    for index, merchant in enumerate(ranking):
        if merchant in key:
            return index
    return len(ranking)


def select_grocery_vendors(vendors: Iterable[Vendor], limit: int = DEAL_FEED_MAX_VENDORS) -> List[Vendor]:
    """Grocery vendors, one per merchant, big chains first, at most ``limit``."""
    unique: List[Vendor] = []
    seen = set()
    for vendor in vendors:
        if not is_grocery_vendor(vendor):
            continue
        key = (vendor.merchant or vendor.name).lower().strip()
        if key in seen:
            continue
        seen.add(key)
        unique.append(vendor)

    # sorted() is stable, unranked vendors keep the feed order
    unique = sorted(unique, key=lambda vendor: _priority(vendor, PRIORITY_MERCHANTS))
    return unique[:limit]


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------
async def _items_for(feed: DealFeed, vendor: Vendor, timeout: float) -> Optional[List[DealItem]]:
    label = vendor.merchant or vendor.name or vendor.id
    try:
        items = await asyncio.wait_for(feed.list_items(vendor.id), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Deal feed timed out after {timeout}s for {label}")
        return None
    except Exception as e:
        logger.warning(f"Deal feed failed for {label}: {type(e).__name__}: {e}")
        return None
    logger.debug(f"{len(items)} items fetched for {label}")
    return list(items)


async def fetch_vendor_items(
    feed: DealFeed,
    vendors: Sequence[Vendor],
    batch_size: int = DEAL_FEED_BATCH_SIZE,
    timeout: float = DEAL_FEED_TIMEOUT,
) -> List[Tuple[Vendor, List[DealItem]]]:
    """
    Items of each vendor, fetched ``batch_size`` vendors at a time.

    A vendor that times out or fails is logged and left out.
    """
    fetched: List[Tuple[Vendor, List[DealItem]]] = []
    for start in range(0, len(vendors), batch_size):
        batch = vendors[start:start + batch_size]
        results = await asyncio.gather(*(_items_for(feed, vendor, timeout) for vendor in batch))
        for vendor, items in zip(batch, results):
            if items is not None:
                fetched.append((vendor, items))
    return fetched


# ---------------------------------------------------------------------------
# Savings search
# ---------------------------------------------------------------------------
def _identical_reference(item: DealItem, references: List[DealItem]) -> Optional[DealItem]:
    """Same product elsewhere: same print id, then same name and brand, then same name."""
    if item.print_id:
        for reference in references:
            if reference.print_id == item.print_id:
                return reference

    name = normalize_ingredient_name(item.name)
    brand = (item.brand or "").lower().strip()
    if brand:
        for reference in references:
            if normalize_ingredient_name(reference.name) == name and (reference.brand or "").lower().strip() == brand:
                return reference

    for reference in references:
        if normalize_ingredient_name(reference.name) == name:
            return reference
    return None


def _deal_match(ingredient: str, item: DealItem, score: int, references: List[DealItem]) -> DealMatch:
    match = DealMatch(ingredient=ingredient, item=item, match_score=score)
    if item.current_price is None:
        return match

    if item.regular_price is not None:
        if item.regular_price > item.current_price:
            match.savings = round(item.regular_price - item.current_price, 2)
        return match

    reference = _identical_reference(item, references)
    if reference is not None and reference.regular_price:
        match.estimated_regular_price = reference.regular_price
        match.is_estimated = True
        if reference.regular_price > item.current_price:
            match.savings = round(reference.regular_price - item.current_price, 2)
        logger.debug(f"Regular price of '{item.name}' estimated at {reference.regular_price} from '{reference.name}'")
    return match


async def find_deals(
    ingredients: Sequence[str],
    feed: DealFeed,
    postal_code: str,
    max_vendors: int = DEAL_FEED_MAX_VENDORS,
    batch_size: int = DEAL_FEED_BATCH_SIZE,
    timeout: float = DEAL_FEED_TIMEOUT,
) -> List[VendorDeals]:
    """
    Flyer items matching a shopping list, grouped by vendor.

    Items without a regular price borrow one from an identical product
    listed (with both prices) by any scanned vendor. Vendors without a
    match are dropped. Major grocers come first, then the largest total
    savings.
    """
    if not ingredients:
        return []

    try:
        listed = await asyncio.wait_for(feed.list_vendors_near(postal_code), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Deal feed vendor listing timed out for {postal_code}")
        return []
    except Exception as e:
        logger.warning(f"Deal feed unavailable for {postal_code}: {type(e).__name__}: {e}")
        return []

    vendors = select_grocery_vendors(listed, max_vendors)
    fetched = await fetch_vendor_items(feed, vendors, batch_size, timeout)

    references = [
        item
        for _, items in fetched
        for item in items
        if item.current_price is not None and item.regular_price is not None
    ]

    results: List[VendorDeals] = []
    for vendor, items in fetched:
        candidates = find_matches(ingredients, items)
        if not candidates:
            logger.debug(f"No deals for the list at {vendor.merchant or vendor.name}")
            continue
        deal_matches = [
            _deal_match(candidate.ingredient, candidate.matched_item, candidate.match_score, references)
            for candidate in candidates
        ]
        total = round(sum(match.savings or 0 for match in deal_matches), 2)
        results.append(VendorDeals(vendor=vendor, matches=deal_matches, total_savings=total))

    results.sort(key=lambda deals: (_priority(deals.vendor, MAJOR_GROCERS), -deals.total_savings))
    logger.info(
        f"Found deals at {len(results)} of {len(fetched)} vendors for {len(ingredients)} ingredients near {postal_code}"
    )
    return results
