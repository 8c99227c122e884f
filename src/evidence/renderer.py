"""Rich terminal renderer for search results, extracted pages, and ranked sources."""

from __future__ import annotations

import json

from rich.console import Console
from rich.text import Text

from evidence.extractor import content_summary, is_likely_article
from evidence.models import ExtractedContent, FetchedPage, PipelineResult, SearchResult

console = Console()

RELIABILITY_STYLES = {"high": "bold green", "medium": "yellow", "low": "red"}


def _truncate(text: str, limit: int = 300) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def render_search_results(results: list[SearchResult]) -> None:
    """Render merged multi-search results with reference IDs."""
    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    providers = sorted({r.source for r in results if r.source})
    header = f"Found {len(results)} results"
    if providers:
        header += f" from {', '.join(providers)}"
    console.print(header)
    console.print()

    for i, r in enumerate(results, 1):
        title_line = Text()
        title_line.append(f"[r{i}] ", style="bold cyan")
        title_line.append(r.title, style="bold")
        console.print(title_line)
        console.print(f"     {r.url}", style="dim")
        console.print(f"     {r.source} | score {r.score:.2f}", style="dim")
        if r.snippet:
            console.print(f"     {_truncate(r.snippet)}")
        if r.reasoning:
            console.print(f"     Why: {_truncate(r.reasoning, 200)}", style="italic")
        console.print(f"  > Use `evidence fetch {r.url}` to read full content", style="dim italic")
        console.print()


def render_extracted(page: FetchedPage, content: ExtractedContent) -> None:
    """Render a fetched page and its extracted content."""
    words = len(content.text.split())
    console.print(f"Fetched content from {page.url} ({words:,} words)", style="bold")
    meta = [f"HTTP {page.status}", page.content_type, f"method: {content.method}", f"lang: {content.language}"]
    if is_likely_article(content):
        meta.append("article")
    console.print(" | ".join(m for m in meta if m), style="dim")
    console.print()
    console.print(content_summary(content))
    console.print()
    console.print(content.text)


def render_pipeline_result(result: PipelineResult) -> None:
    """Render the sources chosen for claim verification."""
    if result.queries:
        console.print("Queries: " + " | ".join(result.queries), style="dim")
    if not result.sources:
        console.print("[yellow]No usable sources found.[/yellow]")
        return

    console.print(f"Selected {len(result.sources)} of {result.total_results} candidate sources")
    console.print()

    for i, s in enumerate(result.sources, 1):
        title_line = Text()
        title_line.append(f"[s{i}] ", style="bold cyan")
        title_line.append(s.title, style="bold")
        console.print(title_line)
        console.print(f"     {s.url}", style="dim")

        meta = Text("     ")
        meta.append(s.reliability.upper(), style=RELIABILITY_STYLES.get(s.reliability, ""))
        meta.append(f" | {s.domain} | relevance {s.relevance_score:.2f}", style="dim")
        if s.content is not None and s.content.reading_time:
            meta.append(f" | ~{s.content.reading_time} min read", style="dim")
        console.print(meta)

        if s.quote:
            console.print(f'     "{_truncate(s.quote, 200)}"', style="italic")
        elif s.snippet:
            console.print(f"     {_truncate(s.snippet)}")
        console.print()


def render_json(payload: dict) -> None:
    console.print_json(json.dumps(payload, ensure_ascii=False))
