"""
Unit converter: scales a reference price (per kg, per L, per package,
per dozen) to the quantity a recipe asks for.

The reference quantities are kitchen heuristics, not physical
constants, and are grouped in ``UnitConversionParameters`` so they can
be tuned and tested.
"""

import logging
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .normalizer import contains_phrase, normalize_ingredient_name

logger = logging.getLogger(__name__)


class UnitConversionParameters(BaseModel):
    """Reference quantities used to scale prices."""

    model_config = ConfigDict(frozen=True)

    cup_ml: float = Field(default=250, gt=0, description="1 cup, in g or mL")
    tablespoon_ml: float = Field(default=15, gt=0, description="1 tablespoon, in g or mL")
    teaspoon_ml: float = Field(default=5, gt=0, description="1 teaspoon, in g or mL")
    per_kg_or_l: float = Field(default=1000, gt=0, description="g per kg and mL per L")
    butter_block_g: float = Field(default=454, gt=0, description="Butter is priced per 454 g block")
    bacon_slices: float = Field(default=14, gt=0, description="Slices in a package of bacon")
    sliced_product_slices: float = Field(default=12, gt=0, description="Slices in other sliced packages")
    pieces_per_package: float = Field(default=10, gt=0, description="Pieces assumed in a loose package")
    eggs_per_dozen: float = Field(default=12, gt=0)


DEFAULT_PARAMETERS = UnitConversionParameters()

# ---------------------------------------------------------------------------
# Unit classes, keyed by normalized spelling (English and French)
# ---------------------------------------------------------------------------
_UNIT_ALIASES: Dict[str, str] = {}
for _unit_class, _aliases in {
    "piece": ["unite", "unites", "piece", "pieces", "pc", "pcs", "un"],
    "slice": ["tranche", "tranches", "slice", "slices"],
    "tablespoon": [
        "c a soupe", "c soupe", "cuillere a soupe", "cuilleres a soupe", "cas",
        "tbsp", "tbs", "tablespoon", "tablespoons",
    ],
    "teaspoon": [
        "c a the", "c the", "c a cafe", "cuillere a the", "cuilleres a the",
        "cuillere a cafe", "cac", "tsp", "teaspoon", "teaspoons",
    ],
    "cup": ["tasse", "tasses", "cup", "cups"],
    "g": ["g", "gr", "gramme", "grammes", "gram", "grams"],
    "kg": ["kg", "kilogramme", "kilogrammes", "kilogram", "kilograms"],
    "ml": ["ml", "millilitre", "millilitres", "milliliter", "milliliters"],
    "l": ["l", "litre", "litres", "liter", "liters"],
    "clove": ["gousse", "gousses", "clove", "cloves", "tete", "tetes", "head", "heads"],
    "dozen": ["douzaine", "douzaines", "dozen", "dozens"],
}.items():
    for _alias in _aliases:
        _UNIT_ALIASES[_alias] = _unit_class

# Word found anywhere in the unit, when the whole spelling is unknown
_UNIT_KEYWORDS = (
    ("unite", "piece"),
    ("tranche", "slice"),
    ("soupe", "tablespoon"),
    ("the", "teaspoon"),
    ("cafe", "teaspoon"),
    ("tasse", "cup"),
    ("gousse", "clove"),
    ("tete", "clove"),
)

# Products priced per whole container
WHOLE_PACKAGE_WORDS = (
    "boite", "paquet", "canne", "can", "conteneur", "bouteille", "bocal", "pot",
)
_BUTTER_WORDS = ("beurre", "butter")
_EGG_WORDS = ("oeuf", "egg")


def unit_class(unit: Optional[str]) -> Optional[str]:
    """Canonical class of a unit spelling, or None when unknown."""
    normalized = normalize_ingredient_name(unit)
    if not normalized:
        return None
    if normalized in _UNIT_ALIASES:
        return _UNIT_ALIASES[normalized]
    tokens = normalized.split()
    for keyword, found in _UNIT_KEYWORDS:
        if keyword in tokens:
            return found
    return None


def _mentions(name: str, words) -> bool:
    return any(contains_phrase(name, word) for word in words)


def _in_reference_units(
    quantity: float, kind: Optional[str], reference_unit: Optional[str], params: UnitConversionParameters
) -> Optional[float]:
    """``quantity`` expressed in the quote's unit, or None when the two do not compare."""
    if reference_unit in ("kg", "l"):
        # g and mL are interchangeable, as for the spoon and cup sizes
        grams = {
            "g": 1,
            "ml": 1,
            "kg": params.per_kg_or_l,
            "l": params.per_kg_or_l,
            "tablespoon": params.tablespoon_ml,
            "teaspoon": params.teaspoon_ml,
            "cup": params.cup_ml,
        }
        if kind in grams:
            return quantity * grams[kind] / params.per_kg_or_l
        return None
    if reference_unit == "each":
        if kind in ("piece", None):
            return quantity
        if kind == "dozen":
            return quantity * params.eggs_per_dozen
        return None
    if reference_unit == "dozen":
        if kind == "piece":
            return quantity / params.eggs_per_dozen
        if kind == "dozen":
            return quantity
    return None


def convert_unit_price(
    reference_price: float,
    quantity: float,
    unit: Optional[str],
    ingredient_name: Optional[str] = None,
    reference_unit: Optional[str] = None,
    params: UnitConversionParameters = DEFAULT_PARAMETERS,
) -> float:
    """
    Price of ``quantity`` ``unit`` of an ingredient priced at ``reference_price``.

    When ``reference_unit`` is known and comparable with ``unit`` the
    price is scaled directly. Otherwise the usual grocery convention for
    the product is assumed (butter per block, eggs per dozen, other
    products per kg, L or package).

    Args:
        reference_price: Price of the reference unit (kg, L, package...).
        quantity: Amount the recipe asks for.
        unit: Unit of ``quantity``, English or French.
        ingredient_name: Used to spot butter, bacon, eggs and whole packages.
        reference_unit: Unit ``reference_price`` is for, when the source states it.
        params: Reference quantities.

    Returns:
        The scaled price, unrounded. 0 for a non-positive price or quantity.
    """
    if not reference_price or reference_price <= 0 or not quantity or quantity <= 0:
        return 0.0

    kind = unit_class(unit)
    amount = _in_reference_units(quantity, kind, reference_unit, params)
    if amount is not None:
        return reference_price * amount

    name = normalize_ingredient_name(ingredient_name)
    by_convention = reference_unit in (None, "package")
    # Butter is sold by the block, liquids and powders by the kg/L
    if by_convention and _mentions(name, _BUTTER_WORDS):
        volume_reference = params.butter_block_g
    else:
        volume_reference = params.per_kg_or_l

    if kind == "piece":
        if by_convention and _mentions(name, _EGG_WORDS):
            return reference_price * quantity / params.eggs_per_dozen
        if _mentions(name, WHOLE_PACKAGE_WORDS):
            return reference_price * quantity
        return reference_price * quantity / params.pieces_per_package

    if kind == "slice":
        slices = params.bacon_slices if contains_phrase(name, "bacon") else params.sliced_product_slices
        return reference_price * quantity / slices

    if kind == "tablespoon":
        return reference_price * (quantity * params.tablespoon_ml) / volume_reference
    if kind == "teaspoon":
        return reference_price * (quantity * params.teaspoon_ml) / volume_reference
    if kind == "cup":
        return reference_price * (quantity * params.cup_ml) / volume_reference

    if kind in ("g", "ml"):
        return reference_price * quantity / params.per_kg_or_l
    if kind in ("kg", "l", "dozen"):
        return reference_price * quantity

    if kind == "clove":
        return reference_price * quantity / params.pieces_per_package

    # Unknown unit: one means the whole reference unit, more means small portions
    if quantity == 1:
        return reference_price
    logger.debug(f"Unknown unit '{unit}' for '{ingredient_name}', assuming small portions")
    return reference_price * quantity / params.pieces_per_package
