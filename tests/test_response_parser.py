"""Tests for mining JSON out of model responses and field reconciliation."""

import json

import pytest

from models import NoJsonFound, NoRecipeFound, UnrepairableJson
from response_parser import mine, reconcile, resolve, unwrap

RECIPE = {
    "title": "Test",
    "ingredients": [{"name": "egg", "amount": "1", "unit": ""}],
    "instructions": "Boil it.",
}


class TestMine:
    def test_fenced_json_with_prose(self):
        response = f"Sure! Here is the recipe:\n```json\n{json.dumps(RECIPE, indent=2)}\n```\nEnjoy your meal!"
        assert mine(response) == RECIPE

    def test_untagged_fence(self):
        response = f"```\n{json.dumps(RECIPE)}\n```"
        assert mine(response) == RECIPE

    def test_bare_json(self):
        assert mine(json.dumps(RECIPE)) == RECIPE

    def test_json_between_rambling(self):
        response = 'Here it is: {"title": "Soup", "ingredients": []} I hope this helps!'
        assert mine(response) == {"title": "Soup", "ingredients": []}

    def test_without_schema_marker_falls_back_to_outer_braces(self):
        response = 'Result: {"nome": "Pasta", "ingredienti": ["pasta"]}'
        assert mine(response) == {"nome": "Pasta", "ingredienti": ["pasta"]}

    def test_control_characters_are_removed(self):
        assert mine('{"title": "Te\x01st\x7f"}') == {"title": "Test"}

    def test_raw_newline_inside_string(self):
        assert mine('{"title": "A", "instructions": "Line 1\nLine 2"}')["instructions"] == "Line 1\nLine 2"

    def test_trailing_commas_are_repaired(self):
        data = mine('{"title": "Test", "ingredients": ["1 egg",],}')
        assert data == {"title": "Test", "ingredients": ["1 egg"]}

    def test_array_yields_first_object(self):
        assert mine('```json\n[{"title": "A"}, {"title": "B"}]\n```') == {"title": "A"}

    def test_unrepairable_json(self):
        with pytest.raises(UnrepairableJson) as exc_info:
            mine('{"title": "Test", "ingredients": [}')
        assert exc_info.value.excerpt.startswith('{"title": "Test"')

    def test_no_json(self):
        with pytest.raises(NoJsonFound) as exc_info:
            mine("I could not find a recipe on this page.")
        assert exc_info.value.excerpt == "I could not find a recipe on this page."

    def test_empty_response(self):
        with pytest.raises(NoJsonFound):
            mine("")

    def test_model_reports_no_recipe(self):
        with pytest.raises(NoRecipeFound) as exc_info:
            mine('{"error": "No recipe found in content"}')
        assert exc_info.value.reason == "No recipe found in content"

    def test_failures_are_distinguishable(self):
        assert not issubclass(NoJsonFound, UnrepairableJson)
        assert not issubclass(UnrepairableJson, NoJsonFound)


class TestReconcile:
    def test_resolve_skips_missing_and_null(self):
        assert resolve({"title": None, "titolo": "Lasagne"}, ("title", "titolo")) == "Lasagne"
        assert resolve({}, ("title",)) is None

    def test_unwraps_recipe_container(self):
        assert reconcile({"recipe": {"title": "X", "ingredients": ["1 egg"]}})["title"] == "X"

    def test_unwraps_italian_container(self):
        draft = reconcile({"ricetta": {"titolo": "Lasagne", "ingredienti": ["pasta"]}})
        assert draft["title"] == "Lasagne"
        assert draft["ingredients"] == ["pasta"]

    def test_does_not_unwrap_when_fields_present(self):
        draft = {"title": "Top", "data": {"title": "Inner"}}
        assert unwrap(draft) is draft
        assert reconcile(draft)["title"] == "Top"

    def test_alias_priority(self):
        assert reconcile({"name": "Schema name", "title": "Title"})["title"] == "Title"
        assert reconcile({"nome": "Nome", "titolo": "Titolo"})["title"] == "Titolo"

    def test_italian_fields(self):
        draft = reconcile({
            "titolo": "Tiramisù",
            "descrizione": "Dolce al caffè",
            "ingredienti": ["3 uova"],
            "procedimento": "Montare le uova.",
            "tempoDiCottura": 30,
            "porzioni": 6,
            "categorie": ["Dolci"],
            "tipo": "food",
        })
        assert draft["title"] == "Tiramisù"
        assert draft["description"] == "Dolce al caffè"
        assert draft["instructions"] == "Montare le uova."
        assert draft["cookingTime"] == 30
        assert draft["servings"] == 6
        assert draft["categories"] == ["Dolci"]
        assert draft["type"] == "food"

    def test_schema_org_fields(self):
        draft = reconcile({
            "@type": "Recipe",
            "name": "Apple pie",
            "recipeIngredient": ["6 apples"],
            "recipeInstructions": [{"@type": "HowToStep", "text": "Bake."}],
            "recipeYield": "8",
            "totalTime": "PT1H",
            "recipeCategory": "Dessert",
        })
        assert draft["title"] == "Apple pie"
        assert draft["ingredients"] == ["6 apples"]
        assert draft["instructions"] == [{"@type": "HowToStep", "text": "Bake."}]
        assert draft["servings"] == "8"
        assert draft["cookingTime"] == "PT1H"
        assert draft["categories"] == "Dessert"

    def test_missing_fields(self):
        draft = reconcile({"title": "X"})
        assert draft["ingredients"] == []
        assert draft["allergens"] == []
        assert draft["tools"] == []
        assert "servings" not in draft
        assert "instructions" not in draft
