"""Tests for instruction cleanup, type classification and recipe building."""

import pytest

from models import Ingredient, NoRecipeFound
from normalizer import (
    DEFAULT_TITLE,
    build_recipe,
    classify,
    clean_instruction_line,
    normalize_instructions,
    parse_bool,
    parse_minutes,
    parse_servings,
)
from response_parser import reconcile


class TestInstructions:
    def test_glued_reference_digits_are_removed(self):
        assert normalize_instructions(["Chop onion1.", "Add 2 cups water."]) == "Chop onion.\nAdd 2 cups water."

    def test_spaced_reference_digits_are_removed(self):
        line = "Tritate la cipolla 1 e il sedano 2, poi cuocete per 10 minuti."
        assert clean_instruction_line(line) == "Tritate la cipolla e il sedano, poi cuocete per 10 minuti."

    @pytest.mark.parametrize(
        "line",
        [
            "Bake at 180°C for 25-30 minutes.",
            "Step 2: add 1.5 l water.",
            "Cut into 4cm pieces.",
            "Use 2 eggs and 1/2 cup sugar.",
            "Cook for 3 or 4 minutes.",
            "Heat to 60 % power.",
            "Serves 4.",
            "Add 1 egg and bake at 90 C.",
            "Dry at 95 F for 1 hour.",
            "Add 1 clove of garlic and 1 slice of lemon.",
            "Aggiungere 1 uovo e 1 cucchiaio di zucchero.",
        ],
    )
    def test_quantities_are_kept(self, line):
        assert clean_instruction_line(line) == line

    def test_punctuation_is_tidied(self):
        assert clean_instruction_line("Mix well . . Serve  ,  warm") == "Mix well. Serve, warm"

    def test_string_is_split_and_trimmed(self):
        assert normalize_instructions("Boil it.\n\n  Drain.  \n") == "Boil it.\nDrain."

    def test_step_objects_and_sections(self):
        raw = [
            {"@type": "HowToStep", "text": "Preheat oven."},
            {
                "@type": "HowToSection",
                "name": "Sauce",
                "itemListElement": [{"@type": "HowToStep", "text": "Simmer tomatoes."}, "Add basil."],
            },
        ]
        assert normalize_instructions(raw) == "Preheat oven.\n## Sauce\nSimmer tomatoes.\nAdd basil."

    def test_italian_step_keys(self):
        raw = [{"testo": "Impastare."}, {"nome": "Cottura", "passaggi": [{"testo": "Infornare."}]}]
        assert normalize_instructions(raw) == "Impastare.\n## Cottura\nInfornare."

    def test_missing(self):
        assert normalize_instructions(None) == ""
        assert normalize_instructions([]) == ""


class TestClassify:
    def test_drink_category(self):
        assert classify({"categories": ["Cocktail", "Party"]}) == "drink"

    def test_food_category(self):
        assert classify({"categories": ["Italian", "Dinner"]}) == "food"

    def test_explicit_type_wins(self):
        assert classify({"type": "Cocktail"}) == "drink"
        assert classify({"type": "food", "categories": ["Cocktail"]}) == "food"

    def test_description(self):
        assert classify({"description": "A refreshing summer drink"}) == "drink"

    def test_keywords_inside_words_do_not_count(self):
        assert classify({"categories": ["Steak"], "description": "Season with a teaspoon of salt"}) == "food"

    def test_hyphenated_compounds_do_not_count(self):
        assert classify({"description": "Layers of coffee-soaked ladyfingers"}) == "food"

    def test_italian_type(self):
        assert classify(reconcile({"tipo": "bevanda"})) == "drink"

    def test_default(self):
        assert classify({}) == "food"


@pytest.mark.parametrize(
    "value, minutes",
    [
        (30, 30),
        ("PT45M", 45),
        ("PT1H30M", 90),
        ("P0DT2H", 120),
        ("1 h 20 min", 80),
        ("45 minutes", 45),
        ("1.5 hours", 90),
        ("30", 30),
        (["PT15M"], 15),
        ("soon", None),
        (None, None),
        (True, None),
    ],
)
def test_parse_minutes(value, minutes):
    assert parse_minutes(value) == minutes


@pytest.mark.parametrize(
    "value, servings",
    [(4, 4), ("4 servings", 4), (["8", "8 slices"], 8), ("some", None), (None, None)],
)
def test_parse_servings(value, servings):
    assert parse_servings(value) == servings


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), ("true", True), ("sì", True), ("no", False), (0, False), ("maybe", None), (None, None)],
)
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


class TestBuildRecipe:
    def test_from_schema_record(self):
        record = {
            "@type": "Recipe",
            "name": "Apple pie",
            "description": "Classic pie",
            "recipeIngredient": ["6 apples", "200 g sugar"],
            "recipeInstructions": [{"@type": "HowToStep", "text": "Bake."}],
            "recipeYield": ["8", "8 slices"],
            "totalTime": "PT1H",
            "recipeCategory": "Dessert",
        }
        recipe = build_recipe(reconcile(record), "https://example.com/pie")
        assert recipe.title == "Apple pie"
        assert recipe.ingredients == [Ingredient("apples", "6", ""), Ingredient("sugar", "200", "g")]
        assert recipe.instructions == "Bake."
        assert recipe.servings == 8
        assert recipe.cooking_time == 60
        assert recipe.categories == ["Dessert"]
        assert recipe.type == "food"
        assert recipe.is_alcoholic is None
        assert recipe.source_url == "https://example.com/pie"

    def test_no_ingredients_and_no_instructions(self):
        with pytest.raises(NoRecipeFound):
            build_recipe({"title": "Empty", "ingredients": [], "instructions": ""})

    def test_default_title(self):
        assert build_recipe({"ingredients": ["1 egg"]}).title == DEFAULT_TITLE

    def test_drink_fields(self):
        draft = reconcile({
            "title": "Spritz",
            "type": "drink",
            "ingredients": ["60 ml Aperol", "90 ml prosecco"],
            "instructions": "Build over ice.",
            "glassware": "Wine glass",
            "ice": "Cubes",
            "tools": "jigger, bar spoon",
            "isAlcoholic": "true",
        })
        recipe = build_recipe(draft)
        assert recipe.type == "drink"
        assert recipe.glassware == "Wine glass"
        assert recipe.ice == "Cubes"
        assert recipe.tools == ["jigger", "bar spoon"]
        assert recipe.is_alcoholic is True

    def test_drink_defaults_to_non_alcoholic(self):
        recipe = build_recipe({"title": "Lemonade", "type": "drink", "instructions": "Stir."})
        assert recipe.is_alcoholic is False

    def test_to_dict(self):
        recipe = build_recipe({"title": "Toast", "ingredients": ["1 slice bread"], "cookingTime": 5})
        data = recipe.to_dict()
        assert data["title"] == "Toast"
        assert data["ingredients"] == [{"name": "bread", "amount": "1", "unit": "slice"}]
        assert data["cookingTime"] == 5
        assert data["type"] == "food"
        assert "servings" not in data
        assert "isAlcoholic" not in data
