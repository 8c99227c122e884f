"""Turn fetched HTML into clean readable text plus article metadata.

Extraction strategies are tried in a fixed order; each returns an
ExtractedContent on success or None. When every strategy declines, the
crude text captured by the fetcher is used as-is so downstream ranking
always has something to work with.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Callable, Optional

from bs4 import BeautifulSoup
from readability import Document

from evidence import config
from evidence.models import ExtractedContent, FetchedPage

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 50_000
MIN_TEXT_LENGTH = 100
MAX_EXCERPT_LENGTH = 300
WORDS_PER_MINUTE = 200
SUPPORTED_LANGUAGES = {"en", "es", "fr", "de", "it", "pt", "nl", "pl", "ru", "ja", "ko", "zh"}

BOILERPLATE_SELECTORS = "script, style, nav, header, footer, aside, .ad, .advertisement, .sidebar"
CONTENT_SELECTORS = [
    "article",
    '[role="main"]',
    ".content",
    ".post-content",
    ".entry-content",
    ".article-content",
    "main",
]
BYLINE_SELECTORS = [".byline", ".author", ".author-name", '[rel="author"]', ".meta .author"]

_LANG_RE = re.compile(r"""<html[^>]*\slang=["']([^"']+)["']""", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

Strategy = Callable[[FetchedPage], Optional[ExtractedContent]]


def _clean(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()[:MAX_TEXT_LENGTH]


def _excerpt(text: str) -> str:
    if len(text) > MAX_EXCERPT_LENGTH:
        return text[:MAX_EXCERPT_LENGTH] + "..."
    return text


def _reading_time(text: str) -> int:
    return math.ceil(len(text.split()) / WORDS_PER_MINUTE)


def detect_language(html: str) -> str:
    """Two-letter language from ``<html lang>``, "en" when absent or unsupported."""
    m = _LANG_RE.search(html)
    if m:
        lang = m.group(1).strip().lower()[:2]
        if lang in SUPPORTED_LANGUAGES:
            return lang
    return "en"


def _meta(soup: BeautifulSoup, *names: str) -> Optional[str]:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def extract_with_readability(page: FetchedPage) -> Optional[ExtractedContent]:
    """Main-content extraction with readability-lxml."""
    try:
        doc = Document(
            page.html,
            url=page.url,
            min_text_length=MIN_TEXT_LENGTH,
            retry_length=MIN_TEXT_LENGTH,
        )
        summary_html = doc.summary(html_partial=True)
        title = doc.short_title() or page.title
    except Exception as e:
        logger.debug("Readability extraction failed for %s: %s", page.url, e)
        return None

    text = _clean(BeautifulSoup(summary_html, "html.parser").get_text(" "))
    if len(text) < MIN_TEXT_LENGTH:
        return None

    soup = BeautifulSoup(page.html, "html.parser")
    published = _meta(soup, "article:published_time", "date", "pubdate")
    if published is None:
        time_tag = soup.find("time", attrs={"datetime": True})
        published = time_tag["datetime"] if time_tag else None

    return ExtractedContent(
        title=title,
        text=text,
        success=True,
        method="readability",
        byline=_meta(soup, "author", "article:author"),
        excerpt=_excerpt(text),
        site_name=_meta(soup, "og:site_name"),
        published_time=published,
        reading_time=_reading_time(text),
        language=detect_language(page.html),
    )


def extract_with_structure(page: FetchedPage) -> Optional[ExtractedContent]:
    """CSS-selector scrape: strip boilerplate, take the first content container."""
    try:
        soup = BeautifulSoup(page.html, "html.parser")
        for el in soup.select(BOILERPLATE_SELECTORS):
            el.decompose()

        content = ""
        for selector in CONTENT_SELECTORS:
            el = soup.select_one(selector)
            if el is not None:
                content = el.get_text(" ")
                break
        if not content and soup.body is not None:
            content = soup.body.get_text(" ")

        byline = None
        for selector in BYLINE_SELECTORS:
            el = soup.select_one(selector)
            if el is not None:
                byline = _clean(el.get_text(" ")) or None
                break

        img = soup.find("img", src=True)
    except Exception as e:
        logger.debug("Structural extraction failed for %s: %s", page.url, e)
        return None

    text = _clean(content)
    if len(text) < MIN_TEXT_LENGTH:
        return None

    return ExtractedContent(
        title=page.title,
        text=text,
        success=True,
        method="structural",
        byline=byline,
        excerpt=_excerpt(text),
        top_image=img["src"] if img else None,
        reading_time=_reading_time(text),
        language=detect_language(page.html),
    )


STRATEGIES: list[Strategy] = [extract_with_readability, extract_with_structure]


def raw_fallback(page: FetchedPage) -> ExtractedContent:
    return ExtractedContent(
        title=page.title,
        text=_clean(page.text),
        success=True,
        method="raw",
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_content(page: FetchedPage) -> ExtractedContent:
    """Run each strategy in order; never raises."""
    for strategy in STRATEGIES:
        result = strategy(page)
        if result is not None and result.success:
            return result
    logger.info("Using raw text for %s", page.url)
    return raw_fallback(page)


async def extract_contents(
    pages: list[FetchedPage],
    concurrency: int = config.BATCH_CONCURRENCY,
) -> dict[str, ExtractedContent]:
    """Extract every page, keyed by the page URL."""
    results: dict[str, ExtractedContent] = {}

    async def extract_one(page: FetchedPage) -> tuple[str, ExtractedContent]:
        # Parsing is synchronous; yield so sibling fetches can progress.
        await asyncio.sleep(0)
        return page.url, extract_content(page)

    for i in range(0, len(pages), concurrency):
        chunk = pages[i:i + concurrency]
        for url, content in await asyncio.gather(*(extract_one(p) for p in chunk)):
            results[url] = content
    return results


def is_likely_article(content: ExtractedContent) -> bool:
    """Heuristic: does this look like a real article rather than a stub page?"""
    if not content.success or len(content.text) < 500:
        return False

    score = 0
    if content.title and len(content.title) > 10:
        score += 2
    if content.byline:
        score += 1
    if content.reading_time and content.reading_time > 1:
        score += 1
    if content.excerpt and len(content.excerpt) > 100:
        score += 1
    if len(content.text) > 1000:
        score += 2
    return score >= 4


def content_summary(content: ExtractedContent) -> str:
    if not content.success:
        return "Content extraction failed"

    parts = []
    if content.title:
        parts.append(f"Title: {content.title}")
    if content.byline:
        parts.append(f"By: {content.byline}")
    if content.excerpt:
        parts.append(f"Summary: {content.excerpt}")
    if content.reading_time:
        parts.append(f"Reading time: ~{content.reading_time} min")
    if content.published_time:
        parts.append(f"Published: {content.published_time}")
    return "\n".join(parts)
