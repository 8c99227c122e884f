"""Strict-priority search provider chain.

Providers are tried one at a time in priority order. The first provider
that returns at least one result for a query answers it exclusively; later
providers are only consulted when every earlier one came back empty or
failed. Results from different providers are never mixed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Optional

import httpx
import openai

from evidence import config
from evidence.backends import duckduckgo, grok, serper
from evidence.cache import TTLCache
from evidence.errors import ProviderError
from evidence.models import SearchResult

logger = logging.getLogger(__name__)

MAX_RESULTS = 10

SearchFn = Callable[[str], Awaitable[list[SearchResult]]]


@dataclass(frozen=True)
class Provider:
    name: str
    search: SearchFn


class SearchProviderChain:
    """Run queries through providers in priority order, first hit wins."""

    def __init__(
        self,
        providers: list[Provider],
        *,
        cache: Optional[TTLCache] = None,
        max_results: int = MAX_RESULTS,
    ):
        if not providers:
            raise ValueError("SearchProviderChain needs at least one provider")
        self.providers = list(providers)
        self.cache = cache if cache is not None else TTLCache(
            max_size=config.SEARCH_CACHE_SIZE, max_age=config.SEARCH_CACHE_TTL
        )
        self.max_results = max_results
        self._owned_clients: list[openai.AsyncOpenAI] = []

    @classmethod
    def from_env(
        cls,
        client: httpx.AsyncClient,
        *,
        grok_client: Optional[openai.AsyncOpenAI] = None,
        cache: Optional[TTLCache] = None,
    ) -> SearchProviderChain:
        """Build the chain from configured credentials.

        Serper (premium) first, then Grok, then DuckDuckGo, which needs no
        key and is always present. Providers without credentials are left
        out here rather than failing at call time.

        A Grok client created here is owned by the chain and closed by
        ``aclose``; one passed as ``grok_client`` is left to the caller.
        """
        providers = []
        owned = []
        if config.has_key("SERPER_API_KEY"):
            providers.append(Provider(serper.NAME, partial(serper.search_web, client=client)))
        if config.has_key("XAI_API_KEY"):
            if grok_client is None:
                grok_client = grok.make_client()
                owned.append(grok_client)
            providers.append(Provider(grok.NAME, partial(grok.search_grok, client=grok_client)))
        providers.append(
            Provider(duckduckgo.NAME, partial(duckduckgo.search_duckduckgo, client=client))
        )
        logger.info("Search providers: %s", " -> ".join(p.name for p in providers))
        chain = cls(providers, cache=cache)
        chain._owned_clients = owned
        return chain

    async def aclose(self) -> None:
        for llm_client in self._owned_clients:
            await llm_client.close()
        self._owned_clients = []

    async def __aenter__(self) -> SearchProviderChain:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def top_provider(self) -> str:
        return self.providers[0].name

    async def search(self, query: str) -> tuple[Optional[str], list[SearchResult]]:
        """Resolve one query; returns (provider name, results) or (None, [])."""
        cached = self.cache.get(query)
        if cached is not None:
            logger.debug("Search cache hit: %r", query)
            return cached

        for provider in self.providers:
            try:
                results = await provider.search(query)
            except ProviderError as e:
                logger.warning("Provider %s failed: %s", provider.name, e.message)
                continue
            except Exception:
                logger.warning("Provider %s raised unexpectedly", provider.name, exc_info=True)
                continue

            if results:
                logger.info("%s answered %r with %d results", provider.name, query[:50], len(results))
                self.cache.set(query, (provider.name, results))
                return provider.name, results
            logger.info("%s returned nothing for %r, falling through", provider.name, query[:50])

        logger.warning("No provider returned results for %r", query[:50])
        return None, []

    async def multi_search(self, queries: list[str]) -> list[SearchResult]:
        """Search every query and merge into one ranked list (never raises).

        When any query was answered by the top-priority provider, only that
        provider's hits are kept for the whole batch.
        """
        unique = list(dict.fromkeys(q for q in queries if q and q.strip()))
        if not unique:
            return []

        resolved = await asyncio.gather(*(self.search(q) for q in unique))

        if any(name == self.top_provider for name, _ in resolved):
            pooled = [r for name, hits in resolved if name == self.top_provider for r in hits]
        else:
            pooled = [r for _, hits in resolved for r in hits]

        best: dict[str, SearchResult] = {}
        for result in pooled:
            current = best.get(result.url)
            if current is None or result.score > current.score:
                best[result.url] = result

        ranked = sorted(best.values(), key=lambda r: r.score, reverse=True)
        logger.info(
            "Multi-search: %d queries, %d pooled, %d unique results",
            len(unique), len(pooled), len(ranked),
        )
        return ranked[:self.max_results]

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict:
        return {"size": len(self.cache), "keys": self.cache.keys()}
