"""Data models for search results, fetched pages, and ranked sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

Reliability = Literal["high", "medium", "low"]
ExtractionMethod = Literal["readability", "structural", "raw"]
Mode = Literal["snippet", "page"]


@dataclass(frozen=True)
class SearchResult:
    """A single hit from one search provider."""

    title: str
    url: str
    snippet: str = ""
    source: str = ""   # provider id, e.g. "serper", "grok", "duckduckgo"
    score: float = 0.0  # provider-assigned, not comparable across providers
    reasoning: str = ""  # why an LLM provider suggested this source


@dataclass(frozen=True)
class EnhancedSource:
    """The canonical (or superseded) search result for one domain."""

    title: str
    url: str
    snippet: str
    source: str
    score: float
    reliability: Reliability
    domain: str
    is_duplicate: bool = False
    duplicate_of: Optional[str] = None


@dataclass(frozen=True)
class FetchedPage:
    """A retrieved URL with crude text and the raw body."""

    url: str
    title: str
    text: str
    html: str
    status: int
    content_type: str
    timestamp: float


@dataclass
class ExtractedContent:
    """Readable text and metadata derived from a FetchedPage."""

    title: str
    text: str
    success: bool
    method: ExtractionMethod
    byline: Optional[str] = None
    excerpt: Optional[str] = None
    site_name: Optional[str] = None
    published_time: Optional[str] = None
    top_image: Optional[str] = None
    reading_time: Optional[int] = None
    language: str = "en"


@dataclass
class SourceWithContent:
    """An EnhancedSource enriched with page content and a relevance score."""

    title: str
    url: str
    snippet: str
    source: str
    score: float
    reliability: Reliability
    domain: str
    relevance_score: float
    content: Optional[ExtractedContent] = None
    quote: Optional[str] = None
    is_duplicate: bool = False
    duplicate_of: Optional[str] = None

    @classmethod
    def from_source(
        cls,
        source: EnhancedSource,
        *,
        relevance_score: float,
        content: Optional[ExtractedContent] = None,
        quote: Optional[str] = None,
    ) -> SourceWithContent:
        return cls(
            title=source.title,
            url=source.url,
            snippet=source.snippet,
            source=source.source,
            score=source.score,
            reliability=source.reliability,
            domain=source.domain,
            relevance_score=relevance_score,
            content=content,
            quote=quote,
            is_duplicate=source.is_duplicate,
            duplicate_of=source.duplicate_of,
        )

    def to_payload(self) -> dict:
        """Reduce to the shape handed to the claim-verification step."""
        payload: dict = {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "reliability": self.reliability,
            "domain": self.domain,
        }
        if self.quote:
            payload["quote"] = self.quote
        if self.content is not None:
            payload["content"] = {
                "excerpt": self.content.excerpt,
                "readingTime": self.content.reading_time,
                "byline": self.content.byline,
            }
        return payload


@dataclass
class PipelineResult:
    """Final output of one pipeline run."""

    sources: list[SourceWithContent] = field(default_factory=list)
    total_results: int = 0
    queries: list[str] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "sources": [s.to_payload() for s in self.sources],
            "totalResults": self.total_results,
        }
