"""Normalizes reconciled recipe drafts into Recipe objects."""

import logging
import re
from typing import Any

from ingredients import flatten
from models import NoRecipeFound, Recipe
from response_parser import resolve

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Imported Recipe"

# =============================================================================
# INSTRUCTIONS
# =============================================================================

STEP_TEXT_KEYS = ("text", "testo", "step", "instruction")
SECTION_STEPS_KEYS = ("itemListElement", "steps", "passaggi")
SECTION_NAME_KEYS = ("name", "nome", "title", "titolo")

_LETTERS = "a-zA-ZàèéìòùÀÈÉÌÒÙáíóúÁÍÓÚäöüÄÖÜß"

# Words after which a number is a real quantity, not a photo reference
INSTRUCTION_UNITS = [
    # Length
    "cm", "mm", "m", "in", "inch", "inches",
    # Weight
    "g", "gr", "kg", "mg", "oz", "lb", "lbs", "grammi",
    # Volume
    "ml", "cl", "dl", "l", "litri", "liter", "liters", "litre", "litres",
    "cup", "cups", "tbsp", "tsp", "tablespoon", "tablespoons", "teaspoon", "teaspoons",
    "cucchiaio", "cucchiai", "cucchiaino", "cucchiaini",
    # Time
    "min", "mins", "minute", "minutes", "minuti", "h", "hr", "hrs", "hour", "hours",
    "ore", "ora", "sec", "secs", "second", "seconds", "secondi",
    # Temperature
    "gradi", "degrees", "c", "f",
    # Count
    "porzioni", "persone", "servings", "people", "volte", "times", "x",
    "fetta", "fette", "slice", "slices", "pezzo", "pezzi", "piece", "pieces",
    "spicchio", "spicchi", "clove", "cloves", "uovo", "uova", "egg", "eggs",
    "porzione", "serving", "persona", "person", "volta", "time",
]

# Words after which a number is a numbering, not a photo reference
NUMBERING_WORDS = {
    "step", "steps", "passo", "passaggio", "fase", "gas", "mark",
    "serves", "makes", "yields", "per", "about", "around", "approx", "circa",
}

_UNIT_WORDS = "|".join(sorted(INSTRUCTION_UNITS, key=len, reverse=True))

# Photo-reference numbers leaking into prose: "cipolla 1", "onion1"
_ARTIFACT_PATTERN = re.compile(
    rf"(?P<word>[{_LETTERS}]+)\s*(?P<number>\d{{1,2}})"
    r"(?!\d)"  # Whole number
    r"(?![-/.,]\d)"  # Not a range, fraction or decimal
    rf"(?![{_LETTERS}])"  # Not an attached unit (10cm, 4th)
    r"(?!\s*(?:-|–|to|or|and|a|o|e)\s*\d)"  # Not a worded range
    rf"(?!\s*(?:°|%|(?:{_UNIT_WORDS})(?![{_LETTERS}])))",
    re.IGNORECASE,
)


def _strip_artifact(match: re.Match) -> str:
    if match.group("word").lower() in NUMBERING_WORDS:
        return match.group(0)
    return match.group("word")


def clean_instruction_line(line: str) -> str:
    """Removes photo-reference digits and the punctuation mess they leave."""
    line = _ARTIFACT_PATTERN.sub(_strip_artifact, line)
    line = re.sub(r"\s{2,}", " ", line)
    line = re.sub(r"\s+,", ",", line)
    line = re.sub(r"\s+\.", ".", line)
    line = re.sub(r",(?:\s*,)+", ",", line)
    line = re.sub(r"\.(?:\s*\.)+", ".", line)
    return line.strip()


def _step_lines(item: Any) -> list[str]:
    """Text lines of a step: string, HowToStep or HowToSection."""
    if item is None:
        return []
    if isinstance(item, str):
        return [item]
    if not isinstance(item, dict):
        return [str(item)]

    text = resolve(item, STEP_TEXT_KEYS)
    if text and isinstance(text, str):
        return [text]

    steps = next((item[key] for key in SECTION_STEPS_KEYS if isinstance(item.get(key), list)), None)
    if steps is None:
        return []

    lines = []
    name = resolve(item, SECTION_NAME_KEYS)
    if name:
        lines.append(f"## {name}")
    for step in steps:
        lines.extend(_step_lines(step))
    return lines


def normalize_instructions(raw_instructions: Any) -> str:
    """Merges any instruction shape into one newline-separated text."""
    if isinstance(raw_instructions, str):
        text = raw_instructions
    elif isinstance(raw_instructions, list):
        text = "\n".join(line for item in raw_instructions for line in _step_lines(item))
    else:
        text = "\n".join(_step_lines(raw_instructions))

    lines = [clean_instruction_line(line) for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


# =============================================================================
# TYPE
# =============================================================================

DRINK_KEYWORDS = [
    "drink", "beverage", "cocktail", "mocktail", "smoothie", "shake", "milkshake",
    "coffee", "tea", "liquor",
    "bevanda", "bibita", "frullato", "frappè", "caffè", "tè", "liquore", "aperitivo",
]

# Whole words only: "coffee-soaked" and "teaspoon" are not drinks
_DRINK_WORD_PATTERN = re.compile(
    rf"(?<![\w-])(?:{'|'.join(DRINK_KEYWORDS)})(?:s|es)?(?![\w-])",
    re.IGNORECASE,
)


def classify(draft: dict[str, Any]) -> str:
    """Returns "drink" or "food" for a reconciled draft."""
    explicit = draft.get("type")
    if explicit is not None and str(explicit).strip():
        raw_type = str(explicit).lower()
        return "drink" if any(keyword in raw_type for keyword in DRINK_KEYWORDS) else "food"

    # No explicit type: look for drink signals in categories and description
    texts = as_string_list(draft.get("categories")) + [text_value(draft.get("description"))]
    if any(_DRINK_WORD_PATTERN.search(text) for text in texts):
        return "drink"
    return "food"


# =============================================================================
# SCALARS
# =============================================================================

# ISO 8601 duration: PT30M, PT1H30M, P0DT2H
_ISO_DURATION = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$", re.IGNORECASE)
_HOURS = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:h|hr|hrs|hours?|ore|ora)\b", re.IGNORECASE)
_MINUTES = re.compile(r"(\d+)\s*(?:m|min|mins|minutes?|minuti)\b", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:[.,]\d+)?)")


def _number(text: str) -> int | float:
    value = float(text.replace(",", "."))
    return int(value) if value.is_integer() else value


def text_value(value: Any) -> str:
    """Text of a scalar; lists give their first entry."""
    if value is None:
        return ""
    if isinstance(value, list):
        return text_value(value[0]) if value else ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def as_string_list(value: Any) -> list[str]:
    """List of non-empty strings from a list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(value, list):
        value = [value]

    result = []
    for item in value:
        if isinstance(item, dict):
            item = resolve(item, ("name", "nome", "text"))
        text = text_value(item)
        if text:
            result.append(text)
    return result


def parse_minutes(value: Any) -> int | float | None:
    """Cooking time in minutes from a number, ISO duration or "1 h 20 min"."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, list):
        return parse_minutes(value[0]) if value else None

    text = str(value).strip()
    match = _ISO_DURATION.match(text)
    if match and any(match.groups()):
        days, hours, minutes = (int(group or 0) for group in match.groups()[:3])
        seconds = float(match.group(4) or 0)
        return days * 1440 + hours * 60 + minutes + round(seconds / 60)

    hours = _HOURS.search(text)
    minutes = _MINUTES.search(text)
    if hours or minutes:
        total = (_number(hours.group(1)) * 60 if hours else 0) + (int(minutes.group(1)) if minutes else 0)
        return int(total) if float(total).is_integer() else total

    match = _LEADING_NUMBER.match(text)
    return _number(match.group(1)) if match else None


def parse_servings(value: Any) -> int | float | None:
    """Servings from a number, "4 servings" or ["4", "4 servings"]."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, list):
        return parse_servings(value[0]) if value else None
    match = _LEADING_NUMBER.match(str(value))
    return _number(match.group(1)) if match else None


def parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "yes", "sì", "si", "1"):
            return True
        if text in ("false", "no", "0"):
            return False
    return None


# =============================================================================
# RECIPE
# =============================================================================

def build_recipe(draft: dict[str, Any], source_url: str | None = None) -> Recipe:
    """
    Builds the final Recipe from a reconciled draft.

    Raises:
        NoRecipeFound: If the draft has neither ingredients nor instructions
    """
    ingredients = flatten(draft.get("ingredients"))
    instructions = normalize_instructions(draft.get("instructions"))

    if not ingredients and not instructions:
        raise NoRecipeFound("Recipe is incomplete (missing ingredients and instructions)")

    title = text_value(draft.get("title")) or DEFAULT_TITLE

    warnings = []
    if title == DEFAULT_TITLE:
        warnings.append("No title found")
    if not ingredients:
        warnings.append("No ingredients found")
    if not instructions:
        warnings.append("No instructions found")
    if warnings:
        logger.warning(f"Recipe validation: {', '.join(warnings)}")

    recipe_type = classify(draft)
    is_alcoholic = parse_bool(draft.get("isAlcoholic"))
    if is_alcoholic is None and recipe_type == "drink":
        is_alcoholic = False

    return Recipe(
        title=title,
        description=text_value(draft.get("description")),
        ingredients=ingredients,
        instructions=instructions,
        cooking_time=parse_minutes(draft.get("cookingTime")),
        servings=parse_servings(draft.get("servings")),
        allergens=as_string_list(draft.get("allergens")),
        categories=as_string_list(draft.get("categories")),
        type=recipe_type,
        glassware=text_value(draft.get("glassware")) or None,
        ice=text_value(draft.get("ice")) or None,
        tools=as_string_list(draft.get("tools")),
        is_alcoholic=is_alcoholic,
        source_url=source_url,
    )
