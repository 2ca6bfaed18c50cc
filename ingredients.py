"""Flattens ingredient structures and parses ingredient lines."""

import logging
import re
from enum import Enum
from typing import Any

from models import Ingredient
from response_parser import resolve

logger = logging.getLogger(__name__)

# =============================================================================
# FIELD NAMES
# =============================================================================

NAME_KEYS = ("name", "nome", "ingredient", "item")
AMOUNT_KEYS = ("amount", "quantita", "quantità", "quantity", "qty")
UNIT_KEYS = ("unit", "unita", "unità", "measure")

SECTION_LABEL_KEYS = ("section", "sezione", "name", "nome", "title", "titolo")
SECTION_ITEMS_KEYS = ("items", "ingredienti", "ingredients", "elementi")

# Group header convention inside flat lists: "## For the sauce"
HEADER_PREFIX = "## "

# =============================================================================
# LINE PARSING - Pre-compiled patterns
# =============================================================================

UNITS = [
    # Weight
    "g", "gr", "gram", "grams", "grammi", "kg", "kilogram", "kilograms", "mg",
    "oz", "ounce", "ounces", "lb", "lbs", "pound", "pounds",
    # Volume
    "ml", "cl", "dl", "l", "liter", "liters", "litre", "litres", "litro", "litri",
    "cup", "cups", "tazza", "tazze", "tbsp", "tbs", "tablespoon", "tablespoons",
    "tsp", "teaspoon", "teaspoons", "cucchiaio", "cucchiai", "cucchiaino", "cucchiaini",
    "fl oz", "pint", "pints", "quart", "quarts", "gallon", "gallons",
    "bicchiere", "bicchieri", "shot", "shots", "dash", "dashes", "splash",
    "drop", "drops", "part", "parts",
    # Count
    "pinch", "pinches", "pizzico", "pizzichi", "clove", "cloves", "spicchio", "spicchi",
    "can", "cans", "slice", "slices", "fetta", "fette", "piece", "pieces", "pezzo", "pezzi",
    "sprig", "sprigs", "rametto", "rametti", "bunch", "bunches", "mazzetto",
    "handful", "handfuls", "manciata", "stick", "sticks", "package", "packages",
    "bustina", "bustine", "leaf", "leaves", "foglia", "foglie",
]

_UNIT_ALTERNATION = "|".join(re.escape(unit) for unit in sorted(UNITS, key=len, reverse=True))

_SINGLE_NUMBER = r"(?:\d+\s+\d+\s*/\s*\d+|\d+\s*/\s*\d+|\d+(?:[.,]\d+)?)"

# "500", "2,5", "1/2", "1 1/2", "2-3", "2 to 3", "q.b."
_QUANTITY_PATTERN = re.compile(
    rf"^(?P<amount>{_SINGLE_NUMBER}(?:\s*(?:-|–|to)\s*{_SINGLE_NUMBER})?|q\.\s?b\.)"
    r"(?=\s|$|[^\W\d_])",
    re.IGNORECASE,
)

# "a pinch", "one clove", "un cucchiaio" - only counts as amount before a unit
_WORD_QUANTITY_PATTERN = re.compile(
    rf"^(?P<amount>a|an|one|half|un|una|uno|mezzo|mezza)\s+(?=(?:{_UNIT_ALTERNATION})\b)",
    re.IGNORECASE,
)

_UNIT_PATTERN = re.compile(rf"^(?P<unit>{_UNIT_ALTERNATION})\.?(?=\s|$|[(/,])", re.IGNORECASE)

# Alternative measure after the unit: "200g/7oz butter", "1 cup, 240 ml milk"
_ALTERNATIVE_MEASURE_PATTERN = re.compile(
    rf"^[/,]\s*(?:{_SINGLE_NUMBER}\s*(?:{_UNIT_ALTERNATION})\b\.?)?\s*",
    re.IGNORECASE,
)

_CONNECTOR_PATTERN = re.compile(r"^(?:(?:of|di|de)\s+|d['’])", re.IGNORECASE)

_VULGAR_FRACTIONS = {
    "½": "1/2", "⅓": "1/3", "⅔": "2/3", "¼": "1/4",
    "¾": "3/4", "⅛": "1/8", "⅜": "3/8", "⅝": "5/8", "⅞": "7/8",
}
_VULGAR_PATTERN = re.compile(rf"(?:(\d)\s*)?([{''.join(_VULGAR_FRACTIONS)}])")


class IngredientLayout(Enum):
    """Shapes in which ingredient lists arrive."""
    FLAT = "flat"
    SECTIONED_ARRAY = "sectioned_array"
    SECTIONED_OBJECT = "sectioned_object"


def _as_text(value: Any) -> str:
    """Converts a scalar field value to trimmed text ("" for missing)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _normalize_fractions(text: str) -> str:
    """"1½" -> "1 1/2", "¾" -> "3/4"."""
    def replace(match: re.Match) -> str:
        whole = f"{match.group(1)} " if match.group(1) else ""
        return whole + _VULGAR_FRACTIONS[match.group(2)]
    return _VULGAR_PATTERN.sub(replace, text)


def _split_unit(rest: str) -> tuple[str, str]:
    """Splits "g flour" into ("g", "flour")."""
    match = _UNIT_PATTERN.match(rest)
    if not match:
        return "", rest
    name = _ALTERNATIVE_MEASURE_PATTERN.sub("", rest[match.end():].strip())
    return match.group("unit"), name.strip()


def parse_ingredient_line(text: str) -> Ingredient:
    """
    Parses a free-text ingredient into name/amount/unit.

    "500 g flour" -> flour / 500 / g
    "a pinch of salt" -> salt / a / pinch
    "salt" -> salt / "" / ""
    """
    text = " ".join(_normalize_fractions(str(text)).split())
    if not text:
        return Ingredient(name="")

    match = _QUANTITY_PATTERN.match(text) or _WORD_QUANTITY_PATTERN.match(text)
    if match:
        amount = " ".join(match.group("amount").split())
        unit, name = _split_unit(text[match.end():].strip())
        name = _CONNECTOR_PATTERN.sub("", name).strip()
        if name:
            return Ingredient(name=name, amount=amount, unit=unit)

    # No quantity pattern matched: the whole line is the name
    return Ingredient(name=text)


def parse_item(item: Any) -> Ingredient:
    """Turns one ingredient entry (object or string) into an Ingredient."""
    if isinstance(item, dict):
        name = resolve(item, NAME_KEYS)
        if name is None and item.get("text"):
            return parse_ingredient_line(item["text"])
        return Ingredient(
            name=_as_text(name),
            amount=_as_text(resolve(item, AMOUNT_KEYS)),
            unit=_as_text(resolve(item, UNIT_KEYS)),
        )
    if item is None:
        return Ingredient(name="")
    return parse_ingredient_line(str(item))


# =============================================================================
# FLATTENING
# =============================================================================

def _is_section(item: Any) -> bool:
    return isinstance(item, dict) and any(
        isinstance(item.get(key), list) for key in SECTION_ITEMS_KEYS
    )


def _section_parts(section: dict) -> tuple[str, list]:
    label = _as_text(resolve(section, SECTION_LABEL_KEYS))
    items = next(section[key] for key in SECTION_ITEMS_KEYS if isinstance(section.get(key), list))
    return label, items


def _as_list(raw: Any) -> list:
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        return [line.strip() for line in raw.splitlines() if line.strip()]
    return [raw]


def _header_sections(items: list) -> list[tuple[str, list]]:
    """Groups a flat list by "## Label" header entries."""
    sections: list[tuple[str, list]] = [("", [])]
    for item in items:
        if isinstance(item, str) and item.strip().startswith(HEADER_PREFIX):
            sections.append((item.strip()[len(HEADER_PREFIX):].strip(), []))
        else:
            sections[-1][1].append(item)
    return sections


def detect_layout(raw: Any) -> IngredientLayout:
    """Decides the ingredient shape from its structure."""
    if _is_section(raw):
        return IngredientLayout.SECTIONED_ARRAY
    if isinstance(raw, dict):
        # A single ingredient may carry list fields ("notes": [])
        name = resolve(raw, NAME_KEYS)
        if name is not None and not isinstance(name, (list, dict)):
            return IngredientLayout.FLAT
        if any(isinstance(value, list) for value in raw.values()):
            return IngredientLayout.SECTIONED_OBJECT
        return IngredientLayout.FLAT
    if isinstance(raw, list) and any(_is_section(item) for item in raw):
        return IngredientLayout.SECTIONED_ARRAY
    return IngredientLayout.FLAT


def _sections(raw: Any, layout: IngredientLayout) -> list[tuple[str, list]]:
    if layout is IngredientLayout.SECTIONED_OBJECT:
        return [(str(label).strip(), items) for label, items in raw.items() if isinstance(items, list)]
    if layout is IngredientLayout.SECTIONED_ARRAY:
        return [
            _section_parts(item) if _is_section(item) else ("", [item])
            for item in _as_list(raw)
        ]
    return _header_sections(_as_list(raw))


def flatten(raw_ingredients: Any) -> list[Ingredient]:
    """
    Normalizes any ingredient shape into a flat Ingredient list.

    Accepts a flat list, a list of section objects or an object of
    section -> list. Names of sectioned items are prefixed with
    "[section]". Entries without a name are dropped.
    """
    layout = detect_layout(raw_ingredients)
    logger.debug(f"Ingredient layout: {layout.value}")

    ingredients = []
    for label, items in _sections(raw_ingredients, layout):
        for item in items:
            ingredient = parse_item(item)
            if not ingredient.name:
                continue
            if label:
                ingredient.name = f"[{label}] {ingredient.name}"
            ingredients.append(ingredient)

    logger.info(f"Flattened ingredients: {len(ingredients)}")
    return ingredients
