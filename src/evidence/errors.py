"""Exception types raised by the fetcher and search backends."""

from __future__ import annotations


class EvidenceError(Exception):
    """Base class for errors raised by this package."""


class FetchError(EvidenceError):
    """A page could not be retrieved.

    ``retryable`` is False for failures that another attempt cannot fix
    (rejected content type, oversized body, rate limiting).
    """

    retryable = True

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.message = message


class InvalidURLError(FetchError):
    retryable = False


class UnsupportedContentTypeError(FetchError):
    retryable = False


class ContentTooLargeError(FetchError):
    retryable = False


class RateLimitError(FetchError):
    """Too many fetches from one client within the rate-limit window."""

    retryable = False


class ProviderError(EvidenceError):
    """A search provider call failed."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
