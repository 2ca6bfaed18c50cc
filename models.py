"""Recipe data model and import errors."""

from dataclasses import dataclass, field
from typing import Any

EXCERPT_LENGTH = 200


# =============================================================================
# DATA MODEL
# =============================================================================

@dataclass
class Ingredient:
    """Single ingredient as name/amount/unit triple."""
    name: str
    amount: str = ""
    unit: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "amount": self.amount, "unit": self.unit}


@dataclass
class Recipe:
    """Normalized recipe produced by the import pipeline."""
    title: str
    instructions: str
    type: str = "food"  # food, drink
    description: str = ""
    ingredients: list[Ingredient] = field(default_factory=list)
    cooking_time: int | float | None = None  # Minutes
    servings: int | float | None = None
    allergens: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    glassware: str | None = None
    ice: str | None = None
    tools: list[str] = field(default_factory=list)
    is_alcoholic: bool | None = None
    source_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serializes to the camelCase record shape, omitting unset optionals."""
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "ingredients": [ingredient.to_dict() for ingredient in self.ingredients],
            "instructions": self.instructions,
            "allergens": list(self.allergens),
            "categories": list(self.categories),
            "type": self.type,
            "tools": list(self.tools),
        }
        optional = {
            "cookingTime": self.cooking_time,
            "servings": self.servings,
            "glassware": self.glassware,
            "ice": self.ice,
            "isAlcoholic": self.is_alcoholic,
            "sourceUrl": self.source_url,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


# =============================================================================
# ERRORS
# =============================================================================

def _excerpt(text: str | None) -> str:
    if not text:
        return ""
    return text[:EXCERPT_LENGTH]


class RecipeImportError(Exception):
    """Base class for all import pipeline failures."""
    pass


class FetchFailed(RecipeImportError):
    """Raised when the page could not be retrieved (transport error or bot block)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not fetch {url}: {reason}")


class ProviderError(RecipeImportError):
    """Raised when a model backend rejects or fails the request."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class UnsupportedBackend(RecipeImportError):
    """Raised for provider identifiers without an adapter."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unsupported AI provider for recipe import: {provider!r}")


class NoJsonFound(RecipeImportError):
    """Raised when the model response contains no JSON object."""

    def __init__(self, response: str):
        self.excerpt = _excerpt(response)
        super().__init__(f"No JSON found in AI response. Raw response: {self.excerpt!r}")


class UnrepairableJson(RecipeImportError, ValueError):
    """Raised when the mined JSON cannot be parsed, even after repair."""

    def __init__(self, candidate: str, detail: str = ""):
        self.excerpt = _excerpt(candidate)
        self.detail = detail
        message = "AI response contains invalid JSON"
        if detail:
            message += f" ({detail})"
        super().__init__(f"{message}: {self.excerpt!r}")


class NoRecipeFound(RecipeImportError):
    """Raised when the content does not contain a recipe."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"No recipe found: {reason}")
