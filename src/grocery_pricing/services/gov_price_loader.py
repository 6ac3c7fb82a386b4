"""
Government reference prices (Statistics Canada monthly average retail
prices), read from the semicolon separated CSV export.

Only one region is kept, the most recent period wins for each product,
and package prices are turned into per kg / per L / per item prices.
The unit each price ends up in is kept next to it. The parsed table is
held in memory and reloaded once it is older than its TTL.
"""

import csv
import io
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from ..constants import GOV_PRICES_CSV, GOV_PRICES_TTL_SECONDS, GROCERY_REGION
from ..exceptions import ReferenceDatasetError
from ..models import PriceQuote
from .ingredient_matcher import matches
from .normalizer import normalize_ingredient_name
from .price_fallback import find_category

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# CSV layout
# ---------------------------------------------------------------------------
_COL_PERIOD = 0
_COL_GEO = 1
_COL_PRODUCT = 3
_COL_VALUE = 10
_MIN_COLUMNS = 11

_MISSING_VALUE = ".."
_MAX_PACKAGE_GRAMS = 10000

_SIZE = r"(\d+(?:[.,]\d+)?)\s*(grammes?|kilogrammes?|litres?|millilitres?|unités?|douzaines?)"
_SIZE_PATTERN = re.compile(_SIZE, re.IGNORECASE)
_SIZE_SUFFIX = re.compile(r",\s*" + _SIZE, re.IGNORECASE)
_PER_UNIT_SUFFIX = re.compile(r"par\s+(kilogramme|unité|litre)", re.IGNORECASE)
_PER_UNIT_REFERENCE = {"kilogramme": "kg", "unité": "each", "litre": "l"}

# Household products listed alongside food in the same table
_NON_FOOD = (
    "détergent", "shampooing", "dentifrice", "déodorant", "savon", "papier",
    "essuie-tout", "serviette", "mouchoir", "couche", "tampon",
)
_NON_FOOD_NORMALIZED = tuple(normalize_ingredient_name(word) for word in _NON_FOOD)


def _is_food(product: str) -> bool:
    normalized = normalize_ingredient_name(product)
    return not any(word in normalized for word in _NON_FOOD_NORMALIZED)


def _to_reference_price(
    price: float, size: Optional["re.Match"], per_unit: Optional["re.Match"]
) -> Optional[Tuple[float, str]]:
    """Per kg, per L or per item price of a package price, with its unit."""
    if size is None:
        if per_unit is None:
            return price, "package"
        return price, _PER_UNIT_REFERENCE[per_unit.group(1).lower()]

    amount = float(size.group(1).replace(",", "."))
    unit = size.group(2).lower()
    if amount <= 0:
        return None
    if unit.startswith("gramme"):
        if amount >= _MAX_PACKAGE_GRAMS:
            return None
        return price / amount * 1000, "kg"
    if unit.startswith("kilogramme"):
        return price / amount, "kg"
    if unit.startswith("millilitre"):
        return price / amount * 1000, "l"
    if unit.startswith("litre"):
        return price / amount, "l"
    if unit.startswith("douzaine"):
        return price / (amount * 12), "each"
    return price / amount, "each"


def _parse(text: str, region: str) -> Tuple[Dict[str, float], Dict[str, str]]:
    latest: Dict[str, tuple] = {}
    rows = csv.reader(io.StringIO(text), delimiter=";", quotechar='"')

    header = next(rows, None)
    if header is None:
        raise ReferenceDatasetError("Reference price file is empty")

    wide_rows = 0
    for row in rows:
        if len(row) < _MIN_COLUMNS:
            continue
        wide_rows += 1

        period = row[_COL_PERIOD].strip()
        geo = row[_COL_GEO].strip()
        product = row[_COL_PRODUCT].strip()
        value = row[_COL_VALUE].strip()

        if geo != region or not value or value == _MISSING_VALUE:
            continue
        try:
            price = float(value.replace(",", "."))
        except ValueError:
            continue
        if price <= 0 or not _is_food(product):
            continue

        size = _SIZE_PATTERN.search(product)
        per_unit = _PER_UNIT_SUFFIX.search(product)
        name = _PER_UNIT_SUFFIX.sub("", _SIZE_SUFFIX.sub("", product)).strip()
        key = normalize_ingredient_name(name)
        if not key:
            continue

        previous = latest.get(key)
        if previous is None or period > previous[0]:
            latest[key] = (period, price, size, per_unit)

    if wide_rows == 0 and len(header) < _MIN_COLUMNS:
        raise ReferenceDatasetError(
            f"Reference price file has {len(header)} columns, expected at least {_MIN_COLUMNS}"
        )

    prices: Dict[str, float] = {}
    units: Dict[str, str] = {}
    for key, (_, price, size, per_unit) in latest.items():
        reference = _to_reference_price(price, size, per_unit)
        if reference is not None:
            prices[key] = round(reference[0], 2)
            units[key] = reference[1]
    return prices, units


def parse_reference_csv(text: str, region: str = GROCERY_REGION) -> Dict[str, float]:
    """
    Parse the government price CSV into ``{normalized product: price}``.

    Rows of other regions, missing values ("..") and non-food products
    are skipped. Short or garbled rows are ignored.

    Raises:
        ReferenceDatasetError: if the text holds no row with enough columns.
    """
    return _parse(text, region)[0]


def parse_reference_units(text: str, region: str = GROCERY_REGION) -> Dict[str, str]:
    """``{normalized product: reference unit}`` for the prices of ``parse_reference_csv``."""
    return _parse(text, region)[1]


@dataclass
class ReferencePriceCacheEntry:
    """The parsed table and the clock reading at which it was loaded."""

    data: Dict[str, float]
    loaded_at: float
    units: Dict[str, str] = field(default_factory=dict)

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.loaded_at < ttl_seconds


class ReferencePriceLoader:
    """
    Periodically reloaded view of the government price file.

    Args:
        csv_path: Path to the semicolon separated export.
        region: Geography kept from the file.
        ttl_seconds: Age after which the file is read again.
        clock: Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        csv_path: Path = GOV_PRICES_CSV,
        region: str = GROCERY_REGION,
        ttl_seconds: float = GOV_PRICES_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.csv_path = Path(csv_path)
        self.region = region
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Optional[ReferencePriceCacheEntry] = None

    @property
    def cache_entry(self) -> Optional[ReferencePriceCacheEntry]:
        return self._cache

    def load(self) -> Dict[str, float]:
        """
        Return the price table, reading the file if the cached copy is stale.

        A missing file gives an empty table (and is retried next call).

        Raises:
            ReferenceDatasetError: if the file exists but cannot be read or parsed.
        """
        now = self._clock()
        if self._cache is not None and self._cache.is_fresh(now, self.ttl_seconds):
            return self._cache.data

        if not self.csv_path.exists():
            logger.warning(f"Reference price file not found: {self.csv_path}")
            return {}

        try:
            text = self.csv_path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise ReferenceDatasetError(f"Could not read {self.csv_path}: {e}") from e
        try:
            data, units = _parse(text, self.region)
        except csv.Error as e:
            raise ReferenceDatasetError(f"Malformed reference price file {self.csv_path}: {e}") from e

        self._cache = ReferencePriceCacheEntry(data=data, loaded_at=now, units=units)
        logger.info(f"Loaded {len(data)} reference prices for {self.region} from {self.csv_path.name}")
        return data

    def invalidate(self) -> None:
        self._cache = None

    def reference_unit(self, product: str) -> str:
        """Unit a loaded product is priced per: kg, l, each or package."""
        if self._cache is None:
            return "package"
        return self._cache.units.get(product, "package")

    def _find_product(self, name: Optional[str]) -> Optional[str]:
        normalized = normalize_ingredient_name(name)
        if not normalized:
            return None
        prices = self.load()
        if not prices:
            return None

        if normalized in prices:
            return normalized

        accepted = [product for product in prices if matches(normalized, product)]
        if accepted:
            best = min(accepted, key=lambda product: (len(product), product))
            logger.debug(f"Reference price for '{normalized}' via '{best}'")
            return best

        for keyword in (word for word in normalized.split() if len(word) > 3):
            for product in sorted(prices):
                if re.search(rf"\b{re.escape(keyword)}\b", product):
                    logger.debug(f"Reference price for '{normalized}' via keyword '{keyword}' in '{product}'")
                    return product
        return None

    def lookup(self, name: Optional[str]) -> Optional[float]:
        """
        Reference price for an ingredient, or None.

        Exact product first, then the shortest product the matcher
        accepts, then any product containing one of the name's longer
        words.
        """
        product = self._find_product(name)
        if product is None:
            return None
        return self.load()[product]

    def lookup_quote(self, name: Optional[str], category: Optional[str] = None) -> Optional[PriceQuote]:
        """Like ``lookup``, as a government quote carrying its reference unit."""
        product = self._find_product(name)
        if product is None:
            return None
        return PriceQuote(
            amount=self.load()[product],
            source="government",
            category=category or find_category(name),
            reference_unit=self.reference_unit(product),
        )


async def import_reference_prices(loader: ReferencePriceLoader, cache) -> int:
    """
    Copy every reference price into a price cache with source "government".

    Returns the number of rows written.
    """
    prices = loader.load()
    imported = 0
    for name, amount in sorted(prices.items()):
        quote = PriceQuote(
            amount=amount,
            source="government",
            category=find_category(name),
            reference_unit=loader.reference_unit(name),
        )
        await cache.upsert(name, quote)
        imported += 1
    logger.info(f"Imported {imported} government prices into the price cache")
    return imported
