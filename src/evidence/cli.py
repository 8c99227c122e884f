"""CLI entry point for the evidence tool."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import click
import httpx
from rich.console import Console

console = Console()


@click.group()
@click.version_option(package_name="evidence-cli")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline progress.")
def cli(verbose: bool):
    """evidence - Find, fetch, and rank web sources for fact-checking."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ---------------------------------------------------------------------------
# evidence env
# ---------------------------------------------------------------------------


@cli.group(invoke_without_command=True)
@click.pass_context
def env(ctx):
    """Show or configure API keys.

    Run without arguments to see current status.
    Use `evidence env set KEY value` to save a key to ~/.evidence/.env.
    """
    if ctx.invoked_subcommand is not None:
        return

    from evidence.config import PERSISTENT_ENV, check_env

    statuses = check_env()
    console.print("API Key Status:")
    console.print()
    for var, is_set, info in statuses:
        status = "[green]set[/green]" if is_set else "[red]not set[/red]"
        console.print(f"  {var}: {status}")
        console.print(f"    {info['description']}")
        console.print(f"    Used by: {', '.join(info['required_by'])}", style="dim")
        console.print()

    console.print(f"Config file: {PERSISTENT_ENV}", style="dim")
    console.print(
        "DuckDuckGo needs no key and is always the last provider in the chain.",
        style="dim",
    )


@env.command("set")
@click.argument("key")
@click.argument("value")
def env_set(key: str, value: str):
    """Save an API key to ~/.evidence/.env.

    KEY: one of SERPER_API_KEY, XAI_API_KEY, XAI_MODEL, EVIDENCE_BLACKLIST
    VALUE: your API key value
    """
    from evidence.config import VALID_KEYS, save_key

    key = key.upper()
    if key not in VALID_KEYS:
        console.print(f"[red]Unknown key: {key}[/red]")
        console.print(f"Valid keys: {', '.join(sorted(VALID_KEYS))}")
        raise SystemExit(1)

    path = save_key(key, value)
    console.print(f"Saved {key} to {path}")


# ---------------------------------------------------------------------------
# evidence search
# ---------------------------------------------------------------------------


async def _multi_search(queries: list[str]):
    from evidence.chain import SearchProviderChain

    async with httpx.AsyncClient(follow_redirects=True) as client:
        async with SearchProviderChain.from_env(client) as chain:
            return await chain.multi_search(queries)


@cli.command()
@click.argument("queries", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
def search(queries: tuple[str, ...], as_json: bool):
    """Search all QUERIES through the provider chain and merge the results.

    QUERIES: one or more search query strings
    """
    from dataclasses import asdict

    from evidence.renderer import render_json, render_search_results

    try:
        results = asyncio.run(_multi_search(list(queries)))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    if as_json:
        render_json({"results": [asdict(r) for r in results]})
    else:
        render_search_results(results)


# ---------------------------------------------------------------------------
# evidence fetch
# ---------------------------------------------------------------------------


async def _fetch(url: str, client_ip: Optional[str]):
    from evidence.extractor import extract_content
    from evidence.fetcher import PageFetcher

    async with PageFetcher() as fetcher:
        page = await fetcher.fetch_page(url, client_ip)
    return page, extract_content(page)


@cli.command()
@click.argument("url")
@click.option("--client-ip", default=None, help="Client address for rate limiting.")
def fetch(url: str, client_ip: Optional[str]):
    """Fetch a webpage and display its extracted content.

    URL: the webpage URL to fetch
    """
    from evidence.renderer import render_extracted

    try:
        page, content = asyncio.run(_fetch(url, client_ip))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)
    render_extracted(page, content)


# ---------------------------------------------------------------------------
# evidence check
# ---------------------------------------------------------------------------


async def _check(text: str, mode: str, client_ip: Optional[str]):
    from evidence.chain import SearchProviderChain
    from evidence.fetcher import PageFetcher
    from evidence.pipeline import PipelineOrchestrator

    async with httpx.AsyncClient(follow_redirects=True) as client:
        async with SearchProviderChain.from_env(client) as chain:
            fetcher = PageFetcher(client)
            return await PipelineOrchestrator(chain, fetcher).run(text, mode, client_ip)


@cli.command()
@click.argument("text")
@click.option(
    "--mode",
    "-m",
    default="snippet",
    type=click.Choice(["snippet", "page"]),
    help="Input is a short snippet or a full page (default: snippet).",
)
@click.option("--client-ip", default=None, help="Client address for rate limiting.")
@click.option("--json", "as_json", is_flag=True, help="Print the verification payload as JSON.")
def check(text: str, mode: str, client_ip: Optional[str], as_json: bool):
    """Find independent, ranked sources for TEXT.

    TEXT: the claim or article text to check; use - to read from stdin
    """
    from evidence.renderer import render_json, render_pipeline_result

    if text == "-":
        text = click.get_text_stream("stdin").read()
    if not text.strip():
        console.print("[red]Error: no text to check[/red]")
        raise SystemExit(1)

    try:
        result = asyncio.run(_check(text, mode, client_ip))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    if as_json:
        render_json(result.to_payload())
    else:
        render_pipeline_result(result)
