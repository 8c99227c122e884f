"""Content-aware relevance scoring and independent-source selection."""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional

from evidence.fetcher import is_valid_url
from evidence.models import EnhancedSource, ExtractedContent, SourceWithContent

logger = logging.getLogger(__name__)

ARTICLE_LENGTH = 1000
ARTICLE_BONUS = 0.2
RELIABILITY_BONUS = {"high": 0.3, "medium": 0.1, "low": 0.0}
QUOTE_BONUS = 0.2
MAX_RELEVANCE = 1.0

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def find_relevant_quote(content: str, target_text: str) -> Optional[str]:
    """First sentence of ``content`` sharing at least two key words with the target.

    Key words are the first five words of the target longer than three
    characters; sentences shorter than 20 characters are ignored.
    """
    target_words = [w for w in target_text.lower().split() if len(w) > 3][:5]
    if len(target_words) < 2:
        return None

    for sentence in _SENTENCE_SPLIT_RE.split(content):
        sentence = sentence.strip()
        if len(sentence) <= 20:
            continue
        lowered = sentence.lower()
        if sum(1 for w in target_words if w in lowered) >= 2:
            return sentence + "."
    return None


def _is_complete(source) -> bool:
    return bool(source.title and source.url and source.snippet)


def enhance_sources_with_content(
    sources: list[EnhancedSource],
    contents: Mapping[str, ExtractedContent],
    target_text: str,
) -> list[SourceWithContent]:
    """Attach extracted content (matched by URL) and compute relevance scores.

    Bonuses apply only to sources whose page was extracted successfully:
    +0.2 for a substantial article, +0.3/+0.1 for high/medium reliability,
    +0.2 when a matching quote is found. The result is capped at 1.0 and
    sorted by relevance, descending.
    """
    enhanced: list[SourceWithContent] = []

    for source in sources:
        if not _is_complete(source):
            logger.warning("Skipping incomplete source: %s", source.url)
            continue

        content = contents.get(source.url)
        relevance = source.score
        quote = None

        if content is not None and content.success:
            if len(content.text) > ARTICLE_LENGTH:
                relevance += ARTICLE_BONUS
            relevance += RELIABILITY_BONUS.get(source.reliability, 0.0)
            quote = find_relevant_quote(content.text, target_text)
            if quote:
                relevance += QUOTE_BONUS

        enhanced.append(
            SourceWithContent.from_source(
                source,
                relevance_score=min(relevance, MAX_RELEVANCE),
                content=content,
                quote=quote,
            )
        )

    enhanced.sort(key=lambda s: s.relevance_score, reverse=True)
    logger.info("Content enhancement complete: %d sources", len(enhanced))
    return enhanced


def filter_sources_by_requirements(
    sources: list[SourceWithContent],
    min_sources: int = 1,
    prefer_independent: bool = True,
) -> list[SourceWithContent]:
    """Pick ``min_sources`` sources, one per domain first when preferring independence.

    ``sources`` is expected in ranking order. If the pool has too few
    distinct domains, the rest is backfilled in ranking order regardless of
    domain.
    """
    valid = [s for s in sources if _is_complete(s)]
    if len(valid) <= min_sources:
        return valid

    if not prefer_independent:
        return valid[:min_sources]

    selected: list[SourceWithContent] = []
    used_domains: set[str] = set()
    for source in valid:
        if source.domain not in used_domains:
            selected.append(source)
            used_domains.add(source.domain)
            if len(selected) >= min_sources:
                return selected

    chosen = {id(s) for s in selected}
    for source in valid:
        if id(source) not in chosen:
            selected.append(source)
            if len(selected) >= min_sources:
                break
    return selected


def validate_source_urls(sources: list[SourceWithContent]) -> list[SourceWithContent]:
    """Drop sources with missing fields or a syntactically invalid URL."""
    valid = []
    for source in sources:
        if not _is_complete(source):
            logger.warning("Skipping source with missing fields: %r", source.url)
        elif not is_valid_url(source.url):
            logger.warning("Invalid URL: %s", source.url)
        else:
            valid.append(source)
    return valid


def source_summary(source: SourceWithContent) -> str:
    parts = [
        f"Source: {source.title}",
        f"Domain: {source.domain}",
        f"Reliability: {source.reliability.upper()}",
    ]
    if source.content is not None and source.content.excerpt:
        parts.append(f"Summary: {source.content.excerpt}")
    if source.quote:
        parts.append(f'Relevant Quote: "{source.quote}"')
    return "\n".join(parts)
