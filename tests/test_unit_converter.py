import pytest
from pydantic import ValidationError

from grocery_pricing.services.unit_converter import (
    DEFAULT_PARAMETERS,
    UnitConversionParameters,
    convert_unit_price,
    unit_class,
)


class TestUnitClass:

    @pytest.mark.parametrize("unit,expected", [
        ("tablespoon", "tablespoon"),
        ("c. à soupe", "tablespoon"),
        ("cuillère à soupe", "tablespoon"),
        ("c. à thé", "teaspoon"),
        ("tsp", "teaspoon"),
        ("Tasses", "cup"),
        ("unité", "piece"),
        ("tranches", "slice"),
        ("gousses", "clove"),
        ("douzaine", "dozen"),
        ("mL", "ml"),
        ("L", "l"),
    ])
    def test_known_spellings(self, unit, expected):
        assert unit_class(unit) == expected

    def test_unknown(self):
        assert unit_class("pincée") is None
        assert unit_class(None) is None


class TestConvertUnitPrice:

    def test_tablespoon_of_a_per_kg_price(self):
        assert convert_unit_price(12.00, 2, "tablespoon") == pytest.approx((12.00 / 1000) * (2 * 15))
        assert convert_unit_price(12.00, 2, "tablespoon") == pytest.approx(0.36)

    def test_butter_is_priced_per_block(self):
        assert convert_unit_price(9.08, 1, "tasse", "beurre") == pytest.approx(9.08 * 250 / 454)

    def test_eggs_per_piece(self):
        assert convert_unit_price(4.20, 3, "unité", "Œufs") == pytest.approx(1.05)

    def test_whole_package_is_multiplied(self):
        assert convert_unit_price(2.50, 2, "unité", "boîte de tomates") == pytest.approx(5.00)

    def test_loose_pieces(self):
        assert convert_unit_price(10.00, 2, "pièce", "citron") == pytest.approx(2.00)

    def test_slices(self):
        assert convert_unit_price(7.00, 2, "tranches", "bacon") == pytest.approx(1.00)
        assert convert_unit_price(6.00, 2, "slices", "jambon") == pytest.approx(1.00)

    def test_weights_and_volumes(self):
        assert convert_unit_price(10.00, 500, "g") == pytest.approx(5.00)
        assert convert_unit_price(4.00, 250, "ml") == pytest.approx(1.00)
        assert convert_unit_price(10.00, 2, "kg") == pytest.approx(20.00)
        assert convert_unit_price(4.20, 1, "douzaine") == pytest.approx(4.20)

    def test_cloves(self):
        assert convert_unit_price(5.00, 2, "gousses", "ail") == pytest.approx(1.00)

    def test_unknown_unit(self):
        assert convert_unit_price(3.00, 1, None) == pytest.approx(3.00)
        assert convert_unit_price(3.00, 4, "pincée") == pytest.approx(1.20)

    @pytest.mark.parametrize("price,quantity", [(0, 1), (-2, 1), (5, 0), (5, -1)])
    def test_invalid_input_costs_nothing(self, price, quantity):
        assert convert_unit_price(price, quantity, "g") == 0.0


class TestStatedReferenceUnit:

    def test_per_kg_butter_skips_the_block_rule(self):
        assert convert_unit_price(15.00, 2, "c. à soupe", "beurre", reference_unit="kg") == pytest.approx(0.45)
        assert convert_unit_price(15.00, 1, "tasse", "beurre", reference_unit="kg") == pytest.approx(3.75)

    def test_weights_against_per_kg_and_per_l(self):
        assert convert_unit_price(13.10, 500, "g", "boeuf haché", reference_unit="kg") == pytest.approx(6.55)
        assert convert_unit_price(1.50, 250, "ml", "lait", reference_unit="l") == pytest.approx(0.375)

    def test_eggs_priced_each(self):
        assert convert_unit_price(0.35, 2, "unité", "oeufs", reference_unit="each") == pytest.approx(0.70)
        assert convert_unit_price(0.35, 1, "douzaine", "oeufs", reference_unit="each") == pytest.approx(4.20)

    def test_priced_per_dozen(self):
        assert convert_unit_price(4.20, 6, "unité", "oeufs", reference_unit="dozen") == pytest.approx(2.10)

    def test_items_without_unit(self):
        assert convert_unit_price(0.50, 3, None, "citron", reference_unit="each") == pytest.approx(1.50)

    def test_incomparable_units_use_the_product_convention(self):
        assert convert_unit_price(10.00, 2, "pièce", "citron", reference_unit="kg") == pytest.approx(2.00)
        assert convert_unit_price(9.08, 1, "tasse", "beurre", reference_unit="package") == pytest.approx(9.08 * 250 / 454)


class TestUnitConversionParameters:

    def test_defaults(self):
        assert DEFAULT_PARAMETERS.tablespoon_ml == 15
        assert DEFAULT_PARAMETERS.bacon_slices == 14
        assert DEFAULT_PARAMETERS.pieces_per_package == 10

    def test_custom_parameters(self):
        params = UnitConversionParameters(tablespoon_ml=20)
        assert convert_unit_price(12.00, 2, "tbsp", params=params) == pytest.approx(0.48)

    def test_frozen_and_validated(self):
        with pytest.raises(ValidationError):
            DEFAULT_PARAMETERS.cup_ml = 240
        with pytest.raises(ValidationError):
            UnitConversionParameters(cup_ml=0)
