"""Fetch web pages with caching, per-client rate limiting, and retries."""

from __future__ import annotations

import asyncio
import html as html_lib
import logging
import re
import time
from typing import Optional
from urllib.parse import urlparse

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from evidence import config
from evidence.cache import RateLimiter, TTLCache
from evidence.errors import (
    ContentTooLargeError,
    FetchError,
    InvalidURLError,
    UnsupportedContentTypeError,
)
from evidence.models import FetchedPage

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def get_domain(url: str) -> str:
    """Lowercased hostname of ``url`` (the lowercased input if it has none)."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    return host.lower() if host else url.lower()


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def extract_title(html: str) -> str:
    m = _TITLE_RE.search(html)
    if not m:
        return "No title"
    return html_lib.unescape(m.group(1)).strip() or "No title"


def crude_text(html: str, limit: int = config.MAX_PAGE_TEXT) -> str:
    """Tag-stripped, whitespace-collapsed text; refined later by the extractor."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _WS_RE.sub(" ", text).strip()
    return text[:limit]


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.retryable


class PageFetcher:
    """Concurrency-limited, retrying page fetcher.

    The cache and rate limiter are injectable; by default each fetcher owns
    its own. Pass an ``httpx.AsyncClient`` to share connections (or to mock
    transport in tests); a client created here is closed by ``aclose``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        cache: Optional[TTLCache] = None,
        limiter: Optional[RateLimiter] = None,
        timeout: float = config.FETCH_TIMEOUT,
        retries: int = config.FETCH_RETRIES,
        backoff: float = config.FETCH_BACKOFF,
        max_content_length: int = config.MAX_CONTENT_LENGTH,
        concurrency: int = config.BATCH_CONCURRENCY,
        user_agent: str = config.USER_AGENT,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True, timeout=httpx.Timeout(timeout)
        )
        self.cache = cache if cache is not None else TTLCache(
            max_size=config.PAGE_CACHE_SIZE, max_age=config.PAGE_CACHE_MAX_AGE
        )
        self.limiter = limiter if limiter is not None else RateLimiter(
            max_requests=config.RATE_LIMIT_REQUESTS, window=config.RATE_LIMIT_WINDOW
        )
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.max_content_length = max_content_length
        self.concurrency = max(1, concurrency)
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "DNT": "1",
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> PageFetcher:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------

    async def fetch_page(self, url: str, client_ip: Optional[str] = None) -> FetchedPage:
        """Fetch one URL, serving a cached copy when it is still fresh.

        Raises RateLimitError immediately when ``client_ip`` is over its
        allowance, UnsupportedContentTypeError / ContentTooLargeError without
        retrying, and FetchError once every attempt has failed.
        """
        cache_key = f"page:{url}"
        cached = self.cache.get(cache_key, max_age=config.PAGE_CACHE_FRESH)
        if cached is not None:
            logger.debug("Page cache hit: %s", url)
            return cached

        if not is_valid_url(url):
            raise InvalidURLError(url, "not an absolute http(s) URL")

        if client_ip:
            self.limiter.hit(client_ip, url)

        attempts = self.retries + 1
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    page = await self._fetch_once(url)
        except FetchError as e:
            if not e.retryable:
                raise
            raise FetchError(
                url, f"failed to fetch page after {attempts} attempts: {e.message}"
            ) from e

        self.cache.set(cache_key, page)
        return page

    async def fetch_pages(
        self, urls: list[str], client_ip: Optional[str] = None
    ) -> list[FetchedPage]:
        """Fetch many URLs, ``concurrency`` at a time; failed URLs are dropped."""
        results: list[FetchedPage] = []
        errors: list[str] = []

        async def fetch_or_none(url: str) -> Optional[FetchedPage]:
            try:
                return await self.fetch_page(url, client_ip)
            except FetchError as e:
                errors.append(f"{url}: {e.message}")
                return None

        for i in range(0, len(urls), self.concurrency):
            chunk = urls[i:i + self.concurrency]
            pages = await asyncio.gather(*(fetch_or_none(u) for u in chunk))
            results.extend(p for p in pages if p is not None)

        if errors:
            logger.warning("Some pages failed to fetch: %s", "; ".join(errors))
        return results

    # ------------------------------------------------------------------

    @staticmethod
    def _log_retry(retry_state) -> None:
        exc = retry_state.outcome.exception()
        logger.warning(
            "Fetch attempt %d failed, retrying: %s", retry_state.attempt_number, exc
        )

    async def _fetch_once(self, url: str) -> FetchedPage:
        try:
            return await asyncio.wait_for(self._get(url), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(url, f"timed out after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e

    async def _get(self, url: str) -> FetchedPage:
        # Per-request timeout overrides whatever a shared client was built with
        async with self.client.stream(
            "GET", url, headers=self.headers, timeout=self.timeout
        ) as response:
            if not response.is_success:
                raise FetchError(url, f"HTTP {response.status_code}")

            content_type = response.headers.get("content-type", "")
            if not any(t in content_type for t in config.ALLOWED_CONTENT_TYPES):
                raise UnsupportedContentTypeError(
                    url, f"unsupported content type: {content_type or 'none'}"
                )

            length = response.headers.get("content-length", "")
            if length.isdigit() and int(length) > self.max_content_length:
                raise ContentTooLargeError(url, "content too large")

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > self.max_content_length:
                    raise ContentTooLargeError(url, "content too large")

            html = _decode(bytes(body), response.charset_encoding)
            return FetchedPage(
                url=url,
                title=extract_title(html),
                text=crude_text(html),
                html=html,
                status=response.status_code,
                content_type=content_type,
                timestamp=time.time(),
            )


def _decode(body: bytes, encoding: Optional[str]) -> str:
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
