"""Scrape first-party facts (title, description, h1, text) from a page."""

import logging
import re
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from .models import FirstPartyData
from .url_utils import is_fetchable_url

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 2000
DESCRIPTION_FALLBACK_LENGTH = 200
USER_AGENT = "Mozilla/5.0 (compatible; cloneplan/0.1)"

_DESCRIPTION_META = (
    {"name": re.compile(r"^description$", re.IGNORECASE)},
    {"property": "og:description"},
    {"name": "twitter:description"},
)
_NON_CONTENT_TAGS = ["script", "style", "noscript", "svg", "iframe", "nav", "header", "footer", "aside"]
_CONTENT_SELECTORS = (
    "main", '[role="main"]', ".main-content", ".content",
    "article", ".post-content", ".entry-content", ".article-content",
)


def _text(tag) -> Optional[str]:
    if tag is None:
        return None
    text = " ".join(tag.get_text(" ", strip=True).split())
    return text or None


def _description(soup: BeautifulSoup) -> Optional[str]:
    for attrs in _DESCRIPTION_META:
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content", "").strip():
            return meta["content"].strip()

    # first paragraph when the page has no meta description
    paragraph = _text(soup.find("p"))
    if paragraph and len(paragraph) > 20:
        if len(paragraph) > DESCRIPTION_FALLBACK_LENGTH:
            return paragraph[:DESCRIPTION_FALLBACK_LENGTH] + "..."
        return paragraph
    return None


def parse_first_party(url: str, page: str) -> FirstPartyData:
    """Extract first-party fields from raw HTML.

    The text snippet prefers the main content region and skips scripts,
    styles and page chrome (nav, header, footer, aside).
    """
    soup = BeautifulSoup(page, "html.parser")
    title = _text(soup.title)
    description = _description(soup)
    h1 = _text(soup.find("h1"))

    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()
    content = None
    for selector in _CONTENT_SELECTORS:
        content = soup.select_one(selector)
        if content is not None:
            break
    snippet = _text(content if content is not None else (soup.body or soup)) or ""

    return FirstPartyData(
        url=url,
        title=title,
        description=description,
        h1=h1,
        text_snippet=snippet[:SNIPPET_LENGTH],
    )


class FirstPartyExtractor:
    """Fetch a page and return its FirstPartyData, or None on any failure."""

    def __init__(self, timeout: float = 6.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._timeout = timeout
        self._transport = transport

    async def extract(self, url: str) -> Optional[FirstPartyData]:
        if not is_fetchable_url(url):
            logger.warning(f"First-party extraction skipped for disallowed URL: {url}")
            return None
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"First-party extraction failed for {url}: {type(e).__name__}: {e}")
            return None

        data = parse_first_party(url, response.text)
        logger.info(f"First-party data for {url}: title={data.title!r}")
        return data
