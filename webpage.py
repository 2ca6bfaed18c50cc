"""Fetches recipe webpages and reduces them to extraction content."""

import asyncio
import ipaddress
import json
import logging
import re
import socket
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup, Comment

from config import MAX_CONTENT_LENGTH, MIN_CONTENT_LENGTH
from models import FetchFailed

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

# Timeout (in seconds)
TIMEOUT_WEBPAGE = 15

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

_URL_PATTERN = re.compile(r"https?://[^\s]+")

_JSON_LD_TYPE = re.compile(r"application/ld\+json", re.IGNORECASE)

# Tags whose end marks a line boundary in the reduced text
_BLOCK_TAGS = [
    "div", "p", "li", "ul", "ol", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "footer", "nav", "section", "article", "aside", "main",
]

# Redirect hops per fetch, each target validated
MAX_REDIRECTS = 5


@dataclass
class PageContent:
    """Content chosen for extraction from a single page."""
    text: str
    structured: bool = False
    record: dict[str, Any] | None = None
    probably_blocked: bool = False


# =============================================================================
# URL HANDLING
# =============================================================================

def is_url(text: str) -> bool:
    """Checks if a text is a URL."""
    if not text:
        return False
    return bool(_URL_PATTERN.fullmatch(text.strip()))


def _new_http_session() -> requests.Session:
    """Returns a new HTTP session for a single fetch."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "text/html",
    })
    return session


def _validate_and_resolve_url(url: str) -> tuple[bool, str | None, str | None]:
    """
    Validates URL against SSRF attacks and resolves DNS.

    Returns:
        Tuple of (is_valid, resolved_ip, hostname)
    """
    parsed = urlparse(url)

    if parsed.scheme not in ("http", "https"):
        logger.warning(f"Invalid URL scheme: {parsed.scheme}")
        return False, None, None

    if not parsed.hostname:
        logger.warning("URL without hostname")
        return False, None, None

    hostname = parsed.hostname
    if hostname.lower() in ("localhost", "127.0.0.1", "0.0.0.0", "::1"):
        logger.warning(f"Blocked hostname: {hostname}")
        return False, None, None

    try:
        resolved_ip = socket.gethostbyname(hostname)
    except socket.gaierror:
        logger.warning(f"DNS resolution failed for: {hostname}")
        return False, None, None

    ip_obj = ipaddress.ip_address(resolved_ip)

    # Block private, reserved and link-local (cloud metadata) ranges
    if ip_obj.is_private or ip_obj.is_loopback or ip_obj.is_reserved or ip_obj.is_link_local:
        logger.warning(f"Private/reserved IP blocked: {resolved_ip}")
        return False, None, None

    return True, resolved_ip, hostname


def _request_validated(session: requests.Session, url: str, timeout: int) -> requests.Response:
    """
    Performs a single request to a validated URL without following redirects.

    Plain HTTP requests go to the resolved IP with the original Host header
    (DNS rebinding protection). HTTPS keeps the hostname so certificate
    verification still applies.
    """
    is_valid, resolved_ip, hostname = _validate_and_resolve_url(url)
    if not is_valid or not resolved_ip or not hostname:
        raise ValueError(f"Unsafe URL blocked: {url}")

    parsed = urlparse(url)
    if parsed.scheme == "https":
        return session.get(url, timeout=timeout, verify=True, allow_redirects=False)

    netloc = f"{resolved_ip}:{parsed.port}" if parsed.port else resolved_ip
    ip_url = parsed._replace(netloc=netloc).geturl()
    headers = {"Host": hostname if not parsed.port else f"{hostname}:{parsed.port}"}
    return session.get(ip_url, timeout=timeout, headers=headers, allow_redirects=False)


def _safe_request(url: str, timeout: int = TIMEOUT_WEBPAGE) -> requests.Response:
    """
    Performs a secure HTTP request.

    Redirects are followed by hand so every hop is validated.

    Raises:
        ValueError: For unsafe URL (first request or any redirect target)
        requests.RequestException: For HTTP errors and redirect loops
    """
    with _new_http_session() as session:
        for _ in range(MAX_REDIRECTS + 1):
            response = _request_validated(session, url, timeout)
            if not response.is_redirect:
                response.raise_for_status()
                return response
            url = urljoin(url, response.headers["Location"])
            logger.info(f"Following redirect to {url}")

    raise requests.TooManyRedirects(f"Exceeded {MAX_REDIRECTS} redirects")


async def fetch_page(url: str) -> str:
    """
    Fetches the raw markup of a page.

    Raises:
        FetchFailed: For unsafe URLs, transport errors and HTTP error statuses
    """
    try:
        response = await asyncio.to_thread(_safe_request, url, TIMEOUT_WEBPAGE)
    except ValueError as e:
        raise FetchFailed(url, str(e)) from e
    except requests.RequestException as e:
        raise FetchFailed(
            url, f"{e}. The site may be blocking external requests."
        ) from e

    logger.info(f"Webpage fetched: {len(response.text)} characters")
    return response.text


# =============================================================================
# STRUCTURED DATA (JSON-LD)
# =============================================================================

def _declares_recipe(data: dict) -> bool:
    """Checks if a JSON-LD object declares the schema.org Recipe type."""
    schema_type = data.get("@type", "")
    types = schema_type if isinstance(schema_type, list) else [schema_type]
    for value in types:
        if not isinstance(value, str):
            continue
        # "Recipe", "schema:Recipe", "http://schema.org/Recipe"
        if re.split(r"[/:]", value)[-1] == "Recipe":
            return True
    return False


def _find_recipe_record(data: Any) -> dict | None:
    """Finds a Recipe object in a parsed JSON-LD block."""
    if isinstance(data, list):
        for item in data:
            record = _find_recipe_record(item)
            if record:
                return record
        return None

    if not isinstance(data, dict):
        return None

    if _declares_recipe(data):
        return data

    graph = data.get("@graph")
    if isinstance(graph, list):
        for item in graph:
            if isinstance(item, dict) and _declares_recipe(item):
                return item

    return None


def locate(raw_markup: str) -> dict | None:
    """
    Finds the first schema.org Recipe in the page's JSON-LD blocks.

    Many recipe sites embed perfectly structured data. Malformed blocks
    are skipped; None means the page has no Recipe record.
    """
    soup = BeautifulSoup(raw_markup, "html.parser")

    for index, script in enumerate(soup.find_all("script", type=_JSON_LD_TYPE)):
        payload = script.string or script.get_text()
        if not payload or not payload.strip():
            continue
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed JSON-LD block #{index}: {e}")
            continue

        record = _find_recipe_record(data)
        if record:
            logger.info(f"JSON-LD recipe found: {record.get('name', '(untitled)')}")
            return record

    return None


# =============================================================================
# PLAIN TEXT
# =============================================================================

def reduce(raw_markup: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    """Strips markup down to cleaned, line-oriented text."""
    soup = BeautifulSoup(raw_markup, "html.parser")

    # Remove script/style
    for tag in soup(["script", "style"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    # Keep the visual structure as lines
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for cell in soup.find_all(["td", "th"]):
        cell.append(" ")
    for block in soup.find_all(_BLOCK_TAGS):
        block.append("\n")

    text = soup.get_text(separator=" ")

    # Clean whitespace per line, drop blank lines
    lines = [" ".join(line.split()) for line in text.splitlines()]
    text = "\n".join(line for line in lines if line)

    return text[:max_length]


def looks_blocked(text: str, min_length: int = MIN_CONTENT_LENGTH) -> bool:
    """Very short page text usually means a bot block or an empty page."""
    return len(text) < min_length
