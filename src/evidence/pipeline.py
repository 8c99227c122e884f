"""End-to-end source retrieval: text in, ranked evidence sources out.

queries -> multi-search -> dedupe -> fetch top pages -> extract ->
enrich and rank -> pick independent sources -> validate URLs.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

import pysbd

from evidence.backends.duckduckgo import manual_search_url
from evidence.chain import SearchProviderChain
from evidence.extractor import extract_contents
from evidence.fetcher import PageFetcher
from evidence.models import Mode, PipelineResult, SourceWithContent
from evidence.ranking import (
    enhance_sources_with_content,
    filter_sources_by_requirements,
    validate_source_urls,
)
from evidence.sources import deduplicate_sources

logger = logging.getLogger(__name__)

FETCH_LIMIT = 8
ENHANCE_LIMIT = 5
MIN_SOURCES = {"snippet": 2, "page": 3}

QUERY_TEXT_LIMIT = 100
MAX_KEYWORD_QUERIES = 2
MAX_PAGE_QUERIES = 3
SENTENCE_MIN, SENTENCE_MAX = 30, 200

STOPWORDS = {
    "about", "above", "after", "again", "their", "there", "these", "those",
    "which", "while", "would", "could", "should", "where", "being", "other",
    "because", "through", "during", "before", "under", "since", "until",
}

_WORD_RE = re.compile(r"[a-z0-9']+")
_segmenter = pysbd.Segmenter(language="en", clean=False)


def _keyword_queries(text: str) -> list[str]:
    words = [w.strip("'") for w in _WORD_RE.findall(text.lower())]
    keywords = list(dict.fromkeys(w for w in words if len(w) > 4 and w not in STOPWORDS))
    keywords = keywords[:MAX_KEYWORD_QUERIES * 2]
    return [f"{keywords[i]} {keywords[i + 1]}" for i in range(0, len(keywords) - 1, 2)]


def generate_queries(text: str, mode: Mode = "snippet") -> list[str]:
    """Search queries for ``text``.

    Snippets get one direct fact-check query plus up to two keyword-pair
    queries. Pages get one query per early sentence of reasonable length
    (up to three), falling back to the snippet queries when none qualify.
    """
    text = " ".join(text.split())
    if not text:
        return []

    if mode == "page":
        sentences = (s.strip() for s in _segmenter.segment(text))
        queries = [s for s in sentences if SENTENCE_MIN <= len(s) <= SENTENCE_MAX]
        if queries:
            return queries[:MAX_PAGE_QUERIES]

    return [f"fact check: {text[:QUERY_TEXT_LIMIT]}"] + _keyword_queries(text)


def diagnostic_source(text: str) -> SourceWithContent:
    """Placeholder source sent downstream when no search provider found anything."""
    query = " ".join(text.split())[:QUERY_TEXT_LIMIT]
    return SourceWithContent(
        title="No sources found automatically: search manually",
        url=manual_search_url(query or "fact check"),
        snippet=(
            "None of the configured search providers returned results for this text. "
            "Search the web manually to verify it."
        ),
        source="diagnostic",
        score=0.0,
        reliability="low",
        domain="duckduckgo.com",
        relevance_score=0.0,
    )


class PipelineOrchestrator:
    """Wire search, dedupe, fetch, extraction and ranking into one request."""

    def __init__(
        self,
        chain: SearchProviderChain,
        fetcher: PageFetcher,
        *,
        blacklist: Optional[Iterable[str]] = None,
    ):
        self.chain = chain
        self.fetcher = fetcher
        self.blacklist = tuple(blacklist) if blacklist is not None else None

    async def run(
        self,
        text: str,
        mode: Mode = "snippet",
        client_ip: Optional[str] = None,
    ) -> PipelineResult:
        if mode not in MIN_SOURCES:
            raise ValueError(f"Unknown mode: {mode!r}. Use 'snippet' or 'page'.")

        queries = generate_queries(text, mode)
        logger.info("Searching %d queries (%s mode)", len(queries), mode)
        results = await self.chain.multi_search(queries)
        if not results:
            logger.warning("No search results; returning a manual-search source")
            return PipelineResult(sources=[diagnostic_source(text)], total_results=0, queries=queries)

        sources = deduplicate_sources(results, self.blacklist)

        urls = [s.url for s in sources[:FETCH_LIMIT]]
        pages = await self.fetcher.fetch_pages(urls, client_ip)
        contents = await extract_contents(pages)
        logger.info("Fetched %d/%d pages", len(pages), len(urls))

        enhanced = enhance_sources_with_content(sources[:ENHANCE_LIMIT], contents, text)
        selected = filter_sources_by_requirements(
            enhanced, min_sources=MIN_SOURCES[mode], prefer_independent=True
        )
        final = validate_source_urls(selected)

        return PipelineResult(sources=final, total_results=len(sources), queries=queries)
