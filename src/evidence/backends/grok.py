"""Grok (xAI) used as a search substitute.

The model is asked for candidate sources as a JSON array. It has no live
index, so its URLs are unverified; the page fetcher is what confirms them.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Optional

import openai

from evidence.config import get_xai_key, get_xai_model
from evidence.errors import ProviderError
from evidence.models import SearchResult

logger = logging.getLogger(__name__)

NAME = "grok"
XAI_BASE_URL = "https://api.x.ai/v1"
DEFAULT_CONFIDENCE = 0.5

SYSTEM_PROMPT = (
    "You are a professional fact-checker and information analyst. "
    "Provide accurate, well-reasoned responses."
)

PROMPT_TEMPLATE = """\
For the following search query, list up to {max_sources} reliable web sources \
that could verify or provide context for it.

Query: {query}

Prefer government (.gov), educational (.edu), established news organizations \
and fact-checking organizations.

Output ONLY a JSON array of objects with this exact structure:
[{{"title": "...", "url": "https://...", "snippet": "2-3 sentence summary", \
"confidence": 0.85, "reasoning": "why this source is relevant"}}]
"""

_FENCE_RE = re.compile(r"```(?:json)?\n?")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def make_client() -> openai.AsyncOpenAI:
    return openai.AsyncOpenAI(api_key=get_xai_key(), base_url=XAI_BASE_URL)


def _normalize_confidence(value) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    # Some answers come back as percentages
    if value > 1:
        value = value / 100
    return max(0.0, min(1.0, float(value)))


def parse_sources(text: str, max_sources: int = 5) -> list[SearchResult]:
    """Parse the model's JSON answer into search results, skipping malformed items."""
    cleaned = _FENCE_RE.sub("", text.strip())
    m = _ARRAY_RE.search(cleaned)
    if m:
        cleaned = m.group(0)
    try:
        items = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderError(NAME, f"unparseable answer: {e}") from e
    if not isinstance(items, list):
        raise ProviderError(NAME, "answer is not a JSON array")

    results = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title, url, snippet = item.get("title"), item.get("url"), item.get("snippet")
        reasoning = item.get("reasoning", "")
        if not all(isinstance(v, str) and v for v in (title, url, snippet)):
            continue
        results.append(
            SearchResult(
                title=title,
                url=url,
                snippet=snippet[:300],
                source=NAME,
                score=_normalize_confidence(item.get("confidence")),
                reasoning=reasoning if isinstance(reasoning, str) else "",
            )
        )
        if len(results) >= max_sources:
            break
    return results


async def search_grok(
    query: str,
    client: Optional[openai.AsyncOpenAI] = None,
    *,
    max_sources: int = 5,
) -> list[SearchResult]:
    client = client or make_client()
    try:
        response = await client.chat.completions.create(
            model=get_xai_model(),
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": PROMPT_TEMPLATE.format(query=query, max_sources=max_sources),
                },
            ],
            temperature=0.1,
            max_tokens=2000,
        )
    except openai.OpenAIError as e:
        raise ProviderError(NAME, str(e)) from e

    content = response.choices[0].message.content or ""
    results = parse_sources(content, max_sources=max_sources)
    logger.info("Grok suggested %d sources for %r", len(results), query[:50])
    return results
