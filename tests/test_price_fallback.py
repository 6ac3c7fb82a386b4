import json

import pytest

from grocery_pricing.exceptions import RuleTableError
from grocery_pricing.services.price_fallback import (
    FallbackPriceTable,
    find_category,
    get_fallback_price,
    get_fallback_table,
)


class TestFindCategory:

    @pytest.mark.parametrize("name,category", [
        ("pomme", "fruits"),
        ("pomme de terre", "vegetables"),
        ("Poitrines de poulet", "meat"),
        ("gousses d'ail", "spices"),
        ("Tomates cerises", "vegetables"),
        ("quelque chose", "other"),
        ("", "other"),
    ])
    def test_categories(self, name, category):
        assert find_category(name) == category

    def test_keyword_must_start_a_word(self):
        # "ail" is inside "volaille" but does not start it
        assert find_category("volaille") == "other"


class TestFallbackLookup:

    def test_exact_item(self):
        quote = get_fallback_price("pomme")
        assert quote.amount == 1.99
        assert quote.source == "fallback"
        assert quote.category == "fruits"

    def test_accents_and_case_ignored(self):
        assert get_fallback_price("Bœuf haché").amount == 9.49
        assert get_fallback_price("Lait 2%").amount == 5.29

    def test_longest_key_inside_the_name(self):
        assert get_fallback_price("Filet de saumon frais").amount == 14.99

    def test_category_default(self):
        quote = get_fallback_price("dragon fruit")
        assert quote.category == "fruits"
        assert quote.amount == 3.50

    def test_unknown_uses_other_default(self):
        quote = get_fallback_price("xyzzy")
        assert quote.category == "other"
        assert quote.amount == 4.50

    def test_empty_name(self):
        assert get_fallback_price("") is None

    def test_categories_in_table_order(self):
        assert get_fallback_table().categories[0] == "meat"
        assert get_fallback_table().categories[-1] == "other"


class TestFallbackTableFile:

    def test_loads_and_normalizes_keys(self, tmp_path):
        path = tmp_path / "prices.json"
        path.write_text(json.dumps({
            "_meta": {"version": 1},
            "categories": [
                {"category": "dairy", "keywords": ["Crème"], "default": 4.0, "prices": {"Crème sûre": 3.49}},
            ],
        }), encoding="utf-8")

        table = FallbackPriceTable.from_file(path)
        assert table.entry("dairy").per_key_prices == {"creme sure": 3.49}
        assert table.lookup("crème sure").amount == 3.49
        assert table.lookup("crème 35%").amount == 4.0
        # no "other" table in this file
        assert table.lookup("xyzzy") is None

    def test_invalid_table_raises(self, tmp_path):
        path = tmp_path / "prices.json"
        path.write_text(json.dumps({"categories": [{"category": "dairy", "default": -1}]}), encoding="utf-8")
        with pytest.raises(RuleTableError):
            FallbackPriceTable.from_file(path)
