"""
Tests for IngredientTranslator lookups and entry validation.
"""

import json

import pytest

from grocery_pricing.exceptions import RuleTableError
from grocery_pricing.services.ingredient_translator import (
    IngredientTranslator,
    to_grocery_item,
    to_grocery_list,
    translate_name,
    translate_unit,
)


class TestTranslateName:

    def test_exact_phrase(self):
        assert translate_name("chicken breast") == "poitrine de poulet"
        assert translate_name("Milk") == "lait"

    def test_prep_words_are_ignored(self):
        assert translate_name("Boneless skinless chicken breasts") == "poitrines de poulet"

    def test_longest_phrase_inside_the_name(self):
        assert translate_name("grilled chicken thigh with herbs") == "haut de cuisse de poulet"

    def test_word_boundaries(self):
        assert translate_name("eggplant") == "aubergine"

    def test_single_known_word_inside_the_name(self):
        assert translate_name("frozen shrimp") == "crevettes"
        assert translate_name("large shrimp, frozen") == "crevettes"

    def test_word_by_word_fallback(self):
        assert translate_name("onion butter") == "oignon beurre"

    def test_unknown_name_unchanged(self):
        assert translate_name("xyzzy") == "xyzzy"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_input_returned_as_is(self, raw):
        assert translate_name(raw) == raw


class TestTranslateUnit:

    def test_known_units(self):
        assert translate_unit("cups") == "tasses"
        assert translate_unit("TBSP") == "c. à soupe"

    def test_unknown_unit_kept(self):
        assert translate_unit("handful") == "handful"

    def test_empty_unit(self):
        assert translate_unit(None) == ""
        assert translate_unit("") == ""


class TestGroceryItems:

    def test_to_grocery_item(self):
        item = to_grocery_item({"id": 3, "name": "milk", "original": "1 cup milk", "amount": 1, "unit": "cup"})
        assert item.id == 3
        assert item.name_fr == "lait"
        assert item.quantity == 1.0
        assert item.unit_fr == "tasse"
        assert item.original_en == "1 cup milk"

    def test_falls_back_to_original_text(self):
        item = to_grocery_item({"original": "garlic"})
        assert item.name_fr == "ail"
        assert item.quantity == 0.0
        assert item.unit_fr == ""

    def test_to_grocery_list(self):
        items = to_grocery_list([{"name": "eggs", "amount": 12}, {"name": "butter", "unit": "tbsp", "amount": 2}])
        assert [i.name_fr for i in items] == ["œufs", "beurre"]
        assert items[1].unit_fr == "c. à soupe"


class TestTranslationValidation:
    """Tests for the ingredient translation entry validation."""

    def test_valid_entries(self):
        assert IngredientTranslator._is_valid_ingredient_entry("chicken breast", "poitrine de poulet")
        assert IngredientTranslator._is_valid_ingredient_entry("heavy cream", "crème 35 %")

    def test_rejects_non_strings_and_blanks(self):
        assert not IngredientTranslator._is_valid_ingredient_entry("milk", None)
        assert not IngredientTranslator._is_valid_ingredient_entry(3, "trois")
        assert not IngredientTranslator._is_valid_ingredient_entry("  ", "lait")

    def test_rejects_bracket_placeholders(self):
        assert not IngredientTranslator._is_valid_ingredient_entry("[unable to extract]", "[Impossible]")

    def test_rejects_sentence_values(self):
        assert not IngredientTranslator._is_valid_ingredient_entry(
            "salt",
            "Je ne peux pas traduire cet ingrédient sans plus de contexte sur la recette",
        )


class TestTranslatorFile:

    def test_invalid_entries_filtered_on_load(self, tmp_path):
        path = tmp_path / "translations.json"
        path.write_text(json.dumps({
            "_meta": {"version": 1},
            "prep_words": ["chopped"],
            "units": {"cup": "tasse"},
            "ingredients": {"leek": "poireau", "[none]": "[rien]", "salt": ""},
        }), encoding="utf-8")

        translator = IngredientTranslator(path)
        assert translator.size == 1
        assert translator.translate_name("chopped leek") == "poireau"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(RuleTableError):
            IngredientTranslator(tmp_path / "missing.json")
