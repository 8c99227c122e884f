"""Domain deduplication, blacklisting, and reliability tiers for search results."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import replace
from typing import Iterable, Optional
from urllib.parse import urlparse

from evidence import config
from evidence.models import EnhancedSource, Reliability, SearchResult

logger = logging.getLogger(__name__)

# Government, science, wire services, and fact-checkers
HIGH_RELIABILITY_DOMAINS = {
    "factcheck.org", "snopes.com", "politifact.com", "fullfact.org",
    "reuters.com", "apnews.com", "ap.org", "bbc.com", "bbc.co.uk", "npr.org", "pbs.org",
    "pubmed.ncbi.nlm.nih.gov", "arxiv.org", "jstor.org", "ieee.org", "acm.org",
    "nature.com", "science.org", "thelancet.com", "nejm.org", "bmj.com",
    "who.int", "cdc.gov", "nih.gov", "fda.gov", "epa.gov", "nasa.gov", "noaa.gov",
    "usgs.gov", "whitehouse.gov", "congress.gov", "supremecourt.gov",
}

# Mainstream news and major universities
MEDIUM_RELIABILITY_DOMAINS = {
    "nytimes.com", "washingtonpost.com", "wsj.com", "latimes.com", "chicagotribune.com",
    "usatoday.com", "cnn.com", "foxnews.com", "msnbc.com", "abcnews.go.com",
    "cbsnews.com", "nbcnews.com", "time.com", "newsweek.com", "theatlantic.com",
    "newyorker.com", "theguardian.com", "economist.com", "ft.com", "bloomberg.com",
    "harvard.edu", "mit.edu", "stanford.edu", "yale.edu", "princeton.edu",
    "columbia.edu", "berkeley.edu", "ucla.edu", "umich.edu", "cmu.edu", "caltech.edu",
}

# Social media, blog platforms, and low editorial standards
LOW_RELIABILITY_DOMAINS = {
    "blogspot.com", "wordpress.com", "tumblr.com", "medium.com", "substack.com",
    "facebook.com", "twitter.com", "x.com", "instagram.com", "tiktok.com",
    "youtube.com", "reddit.com", "quora.com", "pinterest.com",
    "buzzfeed.com", "dailywire.com", "breitbart.com", "infowars.com",
    "naturalnews.com", "mercola.com", "drudgereport.com", "wnd.com",
}

HIGH_SUFFIXES = (".gov", ".edu", ".int", ".mil")
MEDIUM_SUFFIXES = (
    ".org", ".gov.uk", ".ac.uk", ".nhs.uk", ".gc.ca", ".gov.au", ".edu.au",
    ".org.au", ".gov.in", ".govt.nz", ".europa.eu",
)
LOW_SUFFIXES = (".com", ".net", ".info", ".biz", ".co", ".io", ".me", ".tv", ".xyz")


def normalize_domain(url: str) -> Optional[str]:
    """Lowercased hostname without a leading ``www.``; None if unparseable."""
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not host:
        return None
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def domain_matches(domain: str, candidates: Iterable[str]) -> bool:
    """True if ``domain`` is one of ``candidates`` or a subdomain of one."""
    return any(domain == c or domain.endswith("." + c) for c in candidates)


def score_reliability(domain: str) -> Reliability:
    """Reliability tier: curated lists first, then TLD suffix, else medium."""
    if domain_matches(domain, HIGH_RELIABILITY_DOMAINS):
        return "high"
    if domain_matches(domain, MEDIUM_RELIABILITY_DOMAINS):
        return "medium"
    if domain_matches(domain, LOW_RELIABILITY_DOMAINS):
        return "low"

    if domain.endswith(HIGH_SUFFIXES):
        return "high"
    if domain.endswith(MEDIUM_SUFFIXES):
        return "medium"
    if domain.endswith(LOW_SUFFIXES):
        return "low"

    # Unknown domains are not penalized
    return "medium"


def partition_sources(
    raw: list[SearchResult],
    blacklist: Optional[Iterable[str]] = None,
) -> tuple[list[EnhancedSource], list[EnhancedSource]]:
    """Split raw results into (canonical, duplicates).

    One canonical source survives per domain: the highest-scoring one, the
    earliest seen on a tie. Every other result from that domain comes back
    in ``duplicates`` with ``duplicate_of`` set to the canonical URL.
    Canonical sources are sorted by score, descending.
    """
    blocked = tuple(blacklist) if blacklist is not None else config.get_blacklist()
    groups: OrderedDict[str, list[EnhancedSource]] = OrderedDict()

    for result in raw:
        if not result.title or not result.url or not result.snippet:
            logger.warning(
                "Skipping invalid source: title=%r url=%r snippet=%d chars",
                result.title, result.url, len(result.snippet or ""),
            )
            continue

        domain = normalize_domain(result.url)
        if domain is None:
            logger.warning("Skipping source with unparseable URL: %s", result.url)
            continue

        if domain_matches(domain, blocked):
            logger.info("Blacklisted source dropped: %s", result.url)
            continue

        groups.setdefault(domain, []).append(
            EnhancedSource(
                title=result.title,
                url=result.url,
                snippet=result.snippet,
                source=result.source,
                score=result.score,
                reliability=score_reliability(domain),
                domain=domain,
            )
        )

    canonical: list[EnhancedSource] = []
    duplicates: list[EnhancedSource] = []
    for members in groups.values():
        # max() keeps the first of equal scores
        winner = max(members, key=lambda s: s.score)
        canonical.append(winner)
        duplicates.extend(
            replace(s, is_duplicate=True, duplicate_of=winner.url)
            for s in members if s is not winner
        )

    canonical.sort(key=lambda s: s.score, reverse=True)
    logger.info(
        "Deduplication complete: %d sources (%d duplicates) from %d results",
        len(canonical), len(duplicates), len(raw),
    )
    return canonical, duplicates


def deduplicate_sources(
    raw: list[SearchResult],
    blacklist: Optional[Iterable[str]] = None,
) -> list[EnhancedSource]:
    """One canonical source per domain, best score first."""
    canonical, _ = partition_sources(raw, blacklist)
    return canonical
