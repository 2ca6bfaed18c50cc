"""Extracts recipes from webpages using structured data and AI models."""

import json
import logging
from typing import Awaitable, Callable

import webpage
from config import Config, ExtractionConfig
from models import FetchFailed, Recipe
from normalizer import build_recipe
from providers import ModelBackend, invoke
from response_parser import mine, reconcile
from webpage import PageContent, is_url, locate, looks_blocked, reduce

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str], Awaitable[str]]


def prepare_content(raw_markup: str, config: ExtractionConfig | None = None) -> PageContent:
    """
    Chooses what to send to the model: JSON-LD if present, else page text.
    """
    config = config or ExtractionConfig()

    # Try schema first (much more accurate!)
    record = locate(raw_markup)
    if record:
        logger.info("Found JSON-LD recipe data")
        return PageContent(
            text=json.dumps(record, ensure_ascii=False),
            structured=True,
            record=record,
        )

    logger.info("No JSON-LD found, falling back to text extraction")
    text = reduce(raw_markup, config.max_content_length)
    blocked = looks_blocked(text, config.min_content_length)
    if blocked:
        logger.warning(
            f"Page content seems too short ({len(text)} characters). Possible bot block or empty page."
        )
    return PageContent(text=text, probably_blocked=blocked)


def recipe_from_output(response_text: str, source_url: str | None = None) -> Recipe:
    """Parses a raw model response into a Recipe."""
    draft = mine(response_text)
    return build_recipe(reconcile(draft), source_url)


async def _fetch(url: str, fetcher: PageFetcher) -> str:
    try:
        raw_markup = await fetcher(url)
    except FetchFailed:
        raise
    except Exception as e:
        raise FetchFailed(url, str(e)) from e

    if not raw_markup:
        raise FetchFailed(url, "empty response")
    return raw_markup


async def extract_recipe(
    source: str,
    config: Config | None = None,
    fetch_page: PageFetcher | None = None,
    backend: ModelBackend | None = None,
) -> Recipe:
    """
    Extracts a recipe from a URL or from already fetched page content.

    Fallback order: JSON-LD > page text. The chosen content goes to the
    configured model unless structured_data_direct is set and JSON-LD
    was found.

    Raises:
        FetchFailed: If the page could not be retrieved
        UnsupportedBackend, ProviderError: If the model call failed
        NoJsonFound, UnrepairableJson: If the response could not be understood
        NoRecipeFound: If there is no recipe in the content
    """
    config = config or Config()

    source_url = None
    if is_url(source):
        source_url = source.strip()
        logger.info(f"Fetching recipe page: {source_url}")
        raw_markup = await _fetch(source_url, fetch_page or webpage.fetch_page)
    else:
        raw_markup = source

    content = prepare_content(raw_markup, config.extraction)

    if content.structured and config.extraction.structured_data_direct:
        recipe = build_recipe(reconcile(content.record), source_url)
        logger.info(f"Recipe extracted from schema (high accuracy): {recipe.title}")
        return recipe

    response_text = await invoke(
        content.text,
        config.backend,
        prompts=config.prompts,
        max_length=config.extraction.max_content_length,
        backend=backend,
    )

    recipe = recipe_from_output(response_text, source_url)
    logger.info(f"Recipe extracted: {recipe.title} ({len(recipe.ingredients)} ingredients, {recipe.type})")
    return recipe
