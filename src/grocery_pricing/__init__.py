"""Ingredient matching and layered price resolution for grocery lists."""

from .exceptions import PricingError, ReferenceDatasetError, RuleTableError, SourceUnavailableError
from .models import IngredientCost, IngredientLine, MatchCandidate, PriceQuote, RecipeCostEstimate
from .services.ingredient_matcher import find_matches, matches, score_match
from .services.normalizer import normalize_ingredient_name
from .services.price_resolver import PriceResolver
from .services.unit_converter import convert_unit_price

__all__ = [
    "PriceResolver",
    "PriceQuote",
    "IngredientCost",
    "IngredientLine",
    "MatchCandidate",
    "RecipeCostEstimate",
    "normalize_ingredient_name",
    "matches",
    "find_matches",
    "score_match",
    "convert_unit_price",
    "PricingError",
    "SourceUnavailableError",
    "ReferenceDatasetError",
    "RuleTableError",
]
