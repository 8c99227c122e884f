"""Tests for evidence.sources: dedup, blacklist, and reliability tiers."""

from evidence.models import SearchResult
from evidence.sources import (
    deduplicate_sources,
    domain_matches,
    normalize_domain,
    partition_sources,
    score_reliability,
)


def _result(url, score, title="Title", snippet="A snippet", source="serper"):
    return SearchResult(title=title, url=url, snippet=snippet, source=source, score=score)


class TestNormalizeDomain:
    def test_strips_www_and_lowercases(self):
        assert normalize_domain("https://WWW.Example.com/path") == "example.com"

    def test_keeps_other_subdomains(self):
        assert normalize_domain("https://news.bbc.co.uk/x") == "news.bbc.co.uk"

    def test_rejects_non_http(self):
        assert normalize_domain("ftp://example.com/file") is None
        assert normalize_domain("not a url") is None
        assert normalize_domain("") is None


class TestDomainMatches:
    def test_exact_and_subdomain(self):
        assert domain_matches("wikipedia.org", ["wikipedia.org"])
        assert domain_matches("en.wikipedia.org", ["wikipedia.org"])

    def test_suffix_lookalike_not_matched(self):
        assert not domain_matches("notwikipedia.org", ["wikipedia.org"])


class TestScoreReliability:
    def test_curated_high(self):
        assert score_reliability("cdc.gov") == "high"
        assert score_reliability("reuters.com") == "high"
        assert score_reliability("pubmed.ncbi.nlm.nih.gov") == "high"

    def test_curated_medium(self):
        assert score_reliability("nytimes.com") == "medium"
        assert score_reliability("news.harvard.edu") == "medium"

    def test_curated_low(self):
        assert score_reliability("reddit.com") == "low"
        assert score_reliability("someone.blogspot.com") == "low"

    def test_suffix_tiers(self):
        assert score_reliability("state.gov") == "high"
        assert score_reliability("someuni.edu") == "high"
        assert score_reliability("example.gov.uk") == "medium"
        assert score_reliability("example.org") == "medium"
        assert score_reliability("example.com") == "low"

    def test_unknown_defaults_to_medium(self):
        assert score_reliability("example.de") == "medium"


class TestPartitionSources:
    def test_one_canonical_per_domain(self):
        raw = [
            _result("https://a.com/1", 0.9),
            _result("https://a.com/2", 0.8),
            _result("https://b.com/1", 0.7),
        ]
        canonical, duplicates = partition_sources(raw, blacklist=[])

        assert [s.url for s in canonical] == ["https://a.com/1", "https://b.com/1"]
        assert len(duplicates) == 1
        assert duplicates[0].url == "https://a.com/2"
        assert duplicates[0].is_duplicate is True
        assert duplicates[0].duplicate_of == "https://a.com/1"

    def test_higher_score_later_wins(self):
        raw = [
            _result("https://a.com/low", 0.3),
            _result("https://a.com/mid", 0.5),
            _result("https://a.com/high", 0.9),
        ]
        canonical, duplicates = partition_sources(raw, blacklist=[])

        assert [s.url for s in canonical] == ["https://a.com/high"]
        assert {d.duplicate_of for d in duplicates} == {"https://a.com/high"}

    def test_tie_keeps_first_seen(self):
        raw = [_result("https://a.com/first", 0.5), _result("https://a.com/second", 0.5)]
        canonical, _ = partition_sources(raw, blacklist=[])
        assert canonical[0].url == "https://a.com/first"

    def test_www_variants_share_domain(self):
        raw = [_result("https://www.a.com/x", 0.4), _result("https://A.com/y", 0.6)]
        canonical, _ = partition_sources(raw, blacklist=[])
        assert len(canonical) == 1
        assert canonical[0].domain == "a.com"

    def test_sorted_by_score(self):
        raw = [
            _result("https://a.com/", 0.2),
            _result("https://b.com/", 0.9),
            _result("https://c.com/", 0.5),
        ]
        canonical, _ = partition_sources(raw, blacklist=[])
        assert [s.score for s in canonical] == [0.9, 0.5, 0.2]

    def test_invalid_results_skipped(self):
        raw = [
            _result("https://a.com/", 0.9, snippet=""),
            _result("https://b.com/", 0.9, title=""),
            _result("not a url", 0.9),
            _result("ftp://c.com/file", 0.9),
            _result("https://d.com/", 0.1),
        ]
        canonical, duplicates = partition_sources(raw, blacklist=[])
        assert [s.domain for s in canonical] == ["d.com"]
        assert duplicates == []

    def test_reliability_and_source_carried(self):
        canonical, _ = partition_sources([_result("https://www.cdc.gov/flu", 0.5, source="grok")], blacklist=[])
        assert canonical[0].reliability == "high"
        assert canonical[0].source == "grok"
        assert canonical[0].is_duplicate is False
        assert canonical[0].duplicate_of is None


class TestBlacklist:
    def test_wikipedia_blocked_by_default(self, monkeypatch):
        monkeypatch.delenv("EVIDENCE_BLACKLIST", raising=False)
        raw = [
            _result("https://en.wikipedia.org/wiki/Thing", 0.99),
            _result("https://wikipedia.com/Thing", 0.98),
            _result("https://b.com/", 0.5),
        ]
        canonical, duplicates = partition_sources(raw)
        assert [s.domain for s in canonical] == ["b.com"]
        assert duplicates == []

    def test_env_blacklist(self, monkeypatch):
        monkeypatch.setenv("EVIDENCE_BLACKLIST", "Spam.com, junk.net")
        raw = [
            _result("https://spam.com/", 0.9),
            _result("https://cdn.junk.net/", 0.9),
            _result("https://b.com/", 0.5),
        ]
        assert [s.domain for s in deduplicate_sources(raw)] == ["b.com"]

    def test_explicit_blacklist_overrides_default(self):
        raw = [_result("https://en.wikipedia.org/wiki/X", 0.9), _result("https://b.com/", 0.5)]
        result = deduplicate_sources(raw, blacklist=["b.com"])
        assert [s.domain for s in result] == ["en.wikipedia.org"]
