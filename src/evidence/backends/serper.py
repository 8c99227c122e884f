"""Google web search via Serper API (premium provider)."""

from __future__ import annotations

import os

import httpx

from evidence.config import get_serper_key
from evidence.errors import ProviderError
from evidence.models import SearchResult

NAME = "serper"
SERPER_URL = "https://google.serper.dev/search"
TIMEOUT = int(os.getenv("API_TIMEOUT", "10"))


def _rank_score(position: int, total: int) -> float:
    """Map a 1-based rank onto (0, 1]; the top hit scores 1.0."""
    if total <= 1:
        return 1.0
    return max(0.0, 1.0 - (position - 1) / total)


async def search_web(
    query: str,
    client: httpx.AsyncClient,
    *,
    num_results: int = 10,
    gl: str = "us",
    hl: str = "en",
) -> list[SearchResult]:
    """Web search via Serper (Google)."""
    api_key = get_serper_key()
    try:
        resp = await client.post(
            SERPER_URL,
            json={"q": query, "num": num_results, "gl": gl, "hl": hl},
            headers={"X-API-KEY": api_key, "Content-Type": "application/json"},
            timeout=TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise ProviderError(NAME, f"HTTP {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise ProviderError(NAME, str(e) or type(e).__name__) from e

    organic = data.get("organic", [])
    results = []
    for i, item in enumerate(organic, 1):
        url = item.get("link", "")
        title = item.get("title", "")
        if not url or not title:
            continue
        position = item.get("position") or i
        results.append(
            SearchResult(
                title=title,
                url=url,
                snippet=item.get("snippet", ""),
                source=NAME,
                score=_rank_score(position, len(organic)),
            )
        )
    return results
