"""Mines JSON out of model responses and reconciles field names."""

import json
import logging
import re
from typing import Any

from models import NoJsonFound, NoRecipeFound, UnrepairableJson

logger = logging.getLogger(__name__)

# =============================================================================
# MINING
# =============================================================================

MAX_MINING_ATTEMPTS = 3

# Marker of the expected schema inside a candidate span
SCHEMA_MARKER = '"title"'

_JSON_FENCE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[a-zA-Z0-9_-]*\s*(\{.*?\})\s*```", re.DOTALL)

# Control characters except tab (\x09) and newline (\x0A)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _scan_braces(text: str) -> str | None:
    """
    Finds the JSON object span in free text.

    The span runs from a '{' to the last '}'. Up to MAX_MINING_ATTEMPTS
    start positions are tried for a span that contains the schema marker,
    then the naive first-'{' to last-'}' span is used.
    """
    first = text.find("{")
    end = text.rfind("}")
    if first == -1 or end == -1 or first > end:
        return None

    start = first
    attempts = 0
    while start != -1 and start < end and attempts < MAX_MINING_ATTEMPTS:
        candidate = text[start:end + 1]
        if SCHEMA_MARKER in candidate:
            return candidate
        start = text.find("{", start + 1)
        attempts += 1

    return text[first:end + 1]


def _find_json_candidate(response_text: str) -> str | None:
    """Chooses the substring most likely to hold the recipe JSON."""
    match = _JSON_FENCE.search(response_text)
    if match:
        return match.group(1)

    match = _ANY_FENCE.search(response_text)
    if match:
        return match.group(1)

    return _scan_braces(response_text)


def _parse_json(candidate: str) -> Any:
    """Parses JSON, retrying once with trailing commas removed."""
    try:
        # strict=False: raw newlines/tabs inside strings are tolerated
        return json.loads(candidate, strict=False)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON parse failed ({e}), trying repair")

    repaired = _TRAILING_COMMA.sub(r"\1", candidate)
    try:
        return json.loads(repaired, strict=False)
    except json.JSONDecodeError as e:
        logger.error(f"Could not parse JSON: {candidate[:500]}")
        raise UnrepairableJson(candidate, str(e)) from e


def mine(response_text: str) -> dict[str, Any]:
    """
    Extracts the JSON object from a noisy model response.

    Raises:
        NoJsonFound: If the response contains no JSON object
        UnrepairableJson: If the JSON stays invalid after repair
        NoRecipeFound: If the model reported that there is no recipe
    """
    response_text = (response_text or "").strip()

    candidate = _find_json_candidate(response_text)
    if not candidate:
        logger.warning("No JSON found in response")
        raise NoJsonFound(response_text)

    candidate = _CONTROL_CHARS.sub("", candidate).strip()
    data = _parse_json(candidate)

    if isinstance(data, list) and data and isinstance(data[0], dict):
        data = data[0]
    if not isinstance(data, dict):
        raise UnrepairableJson(candidate, "not a JSON object")

    error = data.get("error")
    if error:
        message = error.get("message", error) if isinstance(error, dict) else error
        raise NoRecipeFound(str(message))

    return data


# =============================================================================
# RECONCILING
# =============================================================================

# Containers models sometimes put the recipe in, in priority order
WRAPPER_KEYS = ("recipe", "ricetta", "data")

# Canonical field -> accepted keys (AI output format, Italian, schema.org)
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("title", "titolo", "nome", "name"),
    "description": ("description", "descrizione"),
    "ingredients": ("ingredients", "ingredienti", "recipeIngredient"),
    "instructions": ("instructions", "istruzioni", "procedimento", "recipeInstructions"),
    "cookingTime": (
        "cookingTime", "cooking_time", "tempoDiCottura", "tempo",
        "totalTime", "total_time", "cookTime", "cook_time",
    ),
    "servings": ("servings", "porzioni", "dosi", "recipeYield"),
    "allergens": ("allergens", "allergeni"),
    "categories": ("categories", "categorie", "recipeCategory", "tags"),
    "type": ("type", "tipo"),
    "glassware": ("glassware", "bicchiere"),
    "ice": ("ice", "ghiaccio"),
    "tools": ("tools", "strumenti", "equipment"),
    "isAlcoholic": ("isAlcoholic", "is_alcoholic", "alcolico"),
}

LIST_FIELDS = ("ingredients", "allergens", "categories", "tools")


def resolve(data: dict[str, Any], aliases: tuple[str, ...]) -> Any:
    """Returns the value of the first alias present with a non-null value."""
    for key in aliases:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _has_recipe_fields(data: dict[str, Any]) -> bool:
    return any(resolve(data, aliases) is not None for aliases in FIELD_ALIASES.values())


def unwrap(draft: dict[str, Any]) -> dict[str, Any]:
    """Unwraps {"recipe": {...}}-style containers when nothing else is present."""
    if _has_recipe_fields(draft):
        return draft
    for key in WRAPPER_KEYS:
        inner = draft.get(key)
        if isinstance(inner, dict):
            logger.info(f"Unwrapping recipe from '{key}' container")
            return inner
    return draft


def reconcile(draft: dict[str, Any]) -> dict[str, Any]:
    """Maps a draft with arbitrary field names onto the canonical field names."""
    data = unwrap(draft)

    reconciled: dict[str, Any] = {}
    for canonical, aliases in FIELD_ALIASES.items():
        value = resolve(data, aliases)
        if value is not None:
            reconciled[canonical] = value
        elif canonical in LIST_FIELDS:
            reconciled[canonical] = []

    return reconciled
