"""DuckDuckGo Instant Answer search (free, always-available fallback).

This backend never raises: any failure degrades to a single placeholder
result pointing the user at a manual search.
"""

from __future__ import annotations

import logging
from urllib.parse import quote_plus

import httpx

from evidence.models import SearchResult

logger = logging.getLogger(__name__)

NAME = "duckduckgo"
DDG_API_URL = "https://api.duckduckgo.com/"
TIMEOUT = 8.0
MANUAL_SEARCH_SCORE = 0.1


def manual_search_url(query: str) -> str:
    return f"https://duckduckgo.com/?q={quote_plus(query)}"


def manual_search_result(query: str) -> SearchResult:
    return SearchResult(
        title=f"Search manually: {query[:80]}",
        url=manual_search_url(query),
        snippet="Automatic search is unavailable. Open this link to search the web for the claim yourself.",
        source=NAME,
        score=MANUAL_SEARCH_SCORE,
    )


def _topic_results(topics: list, limit: int) -> list[dict]:
    """Flatten RelatedTopics, which nests grouped topics under "Topics"."""
    flat = []
    for topic in topics:
        if not isinstance(topic, dict):
            continue
        if "Topics" in topic:
            flat.extend(t for t in topic["Topics"] if isinstance(t, dict))
        else:
            flat.append(topic)
    return [t for t in flat if t.get("FirstURL") and t.get("Text")][:limit]


async def search_duckduckgo(
    query: str,
    client: httpx.AsyncClient,
    *,
    max_results: int = 10,
) -> list[SearchResult]:
    try:
        resp = await client.get(
            DDG_API_URL,
            params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
            timeout=TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("unexpected response shape")
    except Exception as e:
        logger.warning("DuckDuckGo search failed for %r: %s", query[:50], e)
        return [manual_search_result(query)]

    results = []
    if data.get("AbstractText") and data.get("AbstractURL"):
        results.append(
            SearchResult(
                title=data.get("Heading") or query,
                url=data["AbstractURL"],
                snippet=data["AbstractText"][:500],
                source=NAME,
                score=0.9,
            )
        )

    topics = _topic_results(data.get("RelatedTopics", []), max_results - len(results))
    for i, topic in enumerate(topics):
        text = topic["Text"]
        results.append(
            SearchResult(
                title=text.split(" - ")[0][:200],
                url=topic["FirstURL"],
                snippet=text[:500],
                source=NAME,
                score=round(max(0.2, 0.8 - 0.05 * i), 2),
            )
        )

    logger.info("DuckDuckGo returned %d results for %r", len(results), query[:50])
    return results
