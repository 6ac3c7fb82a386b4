"""Pydantic models shared by the matcher, the price sources and the resolver."""

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PriceSource = Literal["cache", "government", "dynamic-feed", "fallback", "default"]

# What one unit of a quote buys. None means the usual grocery convention
# for the product (per kg, per L, per dozen eggs, per butter block...).
ReferenceUnit = Literal["kg", "l", "dozen", "each", "package"]


# ── Prices ──────────────────────────────────────────────────────────


class PriceQuote(BaseModel):
    """A resolved unit-reference price and where it came from."""

    model_config = ConfigDict(frozen=True)

    amount: float = Field(..., ge=0, description="Price in CAD for the reference unit (kg, L, package...)")
    source: PriceSource = Field(..., description="Which layer of the pipeline answered")
    category: Optional[str] = Field(default=None, description="Fallback table category, when known")
    reference_unit: Optional[ReferenceUnit] = Field(
        default=None, description="Unit the amount is priced per, when the source states it"
    )


class CachedPrice(BaseModel):
    """One row of a price cache. A name may hold one row per source."""

    name: str = Field(..., description="Normalized ingredient name")
    amount: float = Field(..., gt=0)
    source: str = Field(..., description="Origin of the row: government, dynamic-feed, manual...")
    category: Optional[str] = None
    reference_unit: Optional[ReferenceUnit] = None
    updated_at: datetime = Field(default_factory=datetime.now)


class FallbackPriceEntry(BaseModel):
    """Static average prices for one category."""

    model_config = ConfigDict(frozen=True)

    category: str
    keywords: List[str] = Field(default_factory=list, description="Words that put a name in this category")
    per_key_prices: Dict[str, float] = Field(default_factory=dict)
    default_price: float = Field(..., gt=0)


class IngredientLine(BaseModel):
    """An ingredient with the quantity a recipe asks for."""

    name: str
    quantity: float = 1.0
    unit: Optional[str] = None


class IngredientCost(BaseModel):
    """Cost of one ingredient line once the reference price is scaled."""

    name: str
    quantity: float
    unit: Optional[str] = None
    quote: PriceQuote
    cost: float = Field(..., ge=0, description="Price for the requested quantity, rounded to the cent")


class RecipeCostEstimate(BaseModel):
    lines: List[IngredientCost] = Field(default_factory=list)
    total: float = 0.0


# ── Matching ────────────────────────────────────────────────────────


class MatchCandidate(BaseModel):
    """An ingredient paired with a catalogue item it matches."""

    ingredient: str
    matched_item: Any = Field(..., description="The catalogue entry as it was passed in")
    match_score: int = Field(..., ge=0, le=100, description="Ranking score, 100 = exact")


# ── Translation ─────────────────────────────────────────────────────


class GroceryItem(BaseModel):
    """A recipe ingredient rewritten as a French grocery-list line."""

    id: Optional[int] = None
    name_fr: str
    quantity: float = 0.0
    unit_fr: str = ""
    original_en: str = ""


# ── Deal feed ───────────────────────────────────────────────────────

_WAS_PRICE = re.compile(r"(?:was|était|prix régulier|prix reg|reg|regular)\s*\$?\s*(\d+(?:[.,]\d+)?)")

_CURRENT_PRICE_FIELDS = (
    "current_price", "price", "currentPrice", "sale_price", "selling_price",
    "price_current", "price_sale", "salePrice",
)
_REGULAR_PRICE_FIELDS = (
    "original_price", "was_price", "originalPrice", "regular_price", "list_price",
    "price_original", "price_regular", "regularPrice", "wasPrice",
)


def _to_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", ".").strip()
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if price > 0 else None


def _extract_price(raw: Dict[str, Any], fields) -> Optional[float]:
    nested = raw.get("price") if isinstance(raw.get("price"), dict) else {}
    for field in fields:
        price = _to_price(raw.get(field))
        if price is None and nested:
            price = _to_price(nested.get(field) or nested.get(field.replace("_", "")))
        if price is not None:
            return price
    return None


class Vendor(BaseModel):
    """A storefront publishing a flyer near a locality."""

    model_config = ConfigDict(extra="ignore")

    id: str
    merchant: str = ""
    name: str = ""
    category: str = Field(default="", description="Free-text category tags, comma separated")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("merchant", "name", "category", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, dict):
            return str(value.get("name") or value.get("category") or "")
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value)
        return str(value)

    @classmethod
    def from_listing(cls, raw: Dict[str, Any]) -> "Vendor":
        """Build a vendor from a loosely shaped flyer record."""
        merchant = raw.get("merchant") or raw.get("merchant_name") or ""
        name = (
            raw.get("merchant_name")
            or raw.get("name")
            or raw.get("store_name")
            or raw.get("retailer_name")
            or ""
        )
        category = (
            raw.get("category")
            or raw.get("type")
            or raw.get("categories_csv")
            or raw.get("categories")
            or ""
        )
        return cls(id=raw.get("id", ""), merchant=merchant, name=name, category=category)


class DealItem(BaseModel):
    """A product listed in a vendor flyer."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    description: str = ""
    brand: Optional[str] = None
    category: Optional[str] = None
    print_id: Optional[str] = Field(default=None, description="Barcode-like id shared by identical products across vendors")
    current_price: Optional[float] = None
    regular_price: Optional[float] = Field(default=None, description="Undiscounted price, when the flyer shows one")

    @property
    def reference_price(self) -> Optional[float]:
        """Regular price when known, else the current one."""
        return self.regular_price or self.current_price

    @classmethod
    def from_listing(cls, raw: Dict[str, Any]) -> Optional["DealItem"]:
        """
        Build an item from a raw flyer listing.

        Prices are looked up under the many field names feeds use. When no
        regular price is given it is read from the "was $X" text areas, or
        derived from the discount percentage. Returns None for listings
        without a name.
        """
        name = raw.get("name") or raw.get("brand")
        if not name:
            return None

        current = _extract_price(raw, _CURRENT_PRICE_FIELDS)
        regular = _extract_price(raw, _REGULAR_PRICE_FIELDS)

        if regular is None:
            for area in raw.get("text_areas") or []:
                if not isinstance(area, dict):
                    continue
                text = str(area.get("text") or area.get("content") or "").lower()
                found = _WAS_PRICE.search(text)
                if found:
                    regular = _to_price(found.group(1))
                    if regular is not None:
                        break

        if regular is None and current is not None:
            discount = _to_price(raw.get("discount"))
            if discount is not None and discount < 100:
                regular = round(current / (1 - discount / 100), 2)

        item_id = raw.get("id")
        return cls(
            id=str(item_id) if item_id is not None else None,
            name=str(name),
            description=str(raw.get("description") or ""),
            brand=raw.get("brand"),
            print_id=str(raw["print_id"]) if raw.get("print_id") else None,
            category=raw.get("category"),
            current_price=current,
            regular_price=regular,
        )


class DealMatch(BaseModel):
    """A flyer item matching a shopping-list ingredient, with its savings."""

    ingredient: str
    item: DealItem
    match_score: int = Field(..., ge=0, le=100)
    savings: Optional[float] = Field(default=None, description="Regular minus current price, when positive")
    estimated_regular_price: Optional[float] = Field(
        default=None, description="Regular price borrowed from an identical product at another vendor"
    )
    is_estimated: bool = False


class VendorDeals(BaseModel):
    vendor: Vendor
    matches: List[DealMatch] = Field(default_factory=list)
    total_savings: float = 0.0
