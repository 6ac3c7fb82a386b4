import pytest

from grocery_pricing.services.normalizer import contains_phrase, normalize_ingredient_name, tokenize


class TestNormalizeIngredientName:

    def test_strips_accents_case_and_punctuation(self):
        assert normalize_ingredient_name("Crème  Sûre!") == "creme sure"
        assert normalize_ingredient_name("Beurre d'arachide") == "beurre d arachide"
        assert normalize_ingredient_name("  Lait 2% ") == "lait 2"

    def test_expands_ligatures(self):
        assert normalize_ingredient_name("Bœuf haché") == "boeuf hache"
        assert normalize_ingredient_name("Œufs") == "oeufs"

    @pytest.mark.parametrize("raw", ["", None, "   ", "!!!"])
    def test_empty_input_gives_empty_string(self, raw):
        assert normalize_ingredient_name(raw) == ""

    @pytest.mark.parametrize("raw", [
        "Crème fraîche 35 %",
        "PÂTES / Spaghetti (500 g)",
        "Jalapeño & maïs",
        "Cœur de palmier, 398 mL",
    ])
    def test_idempotent(self, raw):
        once = normalize_ingredient_name(raw)
        assert normalize_ingredient_name(once) == once


class TestTokenize:

    def test_splits_normalized_words(self):
        assert tokenize("Pommes Gala, 3 lb") == ["pommes", "gala", "3", "lb"]

    def test_empty(self):
        assert tokenize(None) == []


class TestContainsPhrase:

    def test_whole_words_only(self):
        assert contains_phrase("gousses d ail", "ail")
        assert not contains_phrase("volaille", "ail")

    def test_allows_plural_and_feminine_endings(self):
        assert contains_phrase("tomates cerises", "tomate")
        assert contains_phrase("oeufs bruns", "oeuf")

    def test_empty_phrase_never_matches(self):
        assert not contains_phrase("lait", "")
