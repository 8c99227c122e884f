"""Tests for search backends: HTTP and LLM calls are mocked."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from evidence.backends.duckduckgo import manual_search_url, search_duckduckgo
from evidence.backends.grok import _normalize_confidence, parse_sources, search_grok
from evidence.backends.serper import _rank_score, search_web
from evidence.errors import ProviderError


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# --- Serper ---


class TestSerperSearch:
    @pytest.mark.asyncio
    async def test_parses_organic_results(self, monkeypatch):
        monkeypatch.setenv("SERPER_API_KEY", "test-key")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={
                "organic": [
                    {"title": "First", "link": "https://a.com/1", "snippet": "Snippet 1", "position": 1},
                    {"title": "No link", "snippet": "dropped", "position": 2},
                    {"title": "Third", "link": "https://b.com/3", "snippet": "Snippet 3", "position": 3},
                    {"title": "Fourth", "link": "https://c.com/4", "position": 4},
                ]
            })

        results = await search_web("test query", _client(handler))

        assert [r.url for r in results] == ["https://a.com/1", "https://b.com/3", "https://c.com/4"]
        assert results[0].source == "serper"
        assert results[0].score == 1.0
        assert results[1].score == pytest.approx(0.5)
        assert results[2].snippet == ""

        request = seen[0]
        assert request.headers["X-API-KEY"] == "test-key"
        body = json.loads(request.content)
        assert body["q"] == "test query"
        assert body["num"] == 10

    @pytest.mark.asyncio
    async def test_http_error(self, monkeypatch):
        monkeypatch.setenv("SERPER_API_KEY", "test-key")
        client = _client(lambda r: httpx.Response(403, json={"message": "bad key"}))
        with pytest.raises(ProviderError, match="HTTP 403"):
            await search_web("q", client)

    @pytest.mark.asyncio
    async def test_connection_error(self, monkeypatch):
        monkeypatch.setenv("SERPER_API_KEY", "test-key")

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await search_web("q", _client(handler))
        assert exc_info.value.provider == "serper"

    @pytest.mark.asyncio
    async def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("SERPER_API_KEY", raising=False)
        with pytest.raises(ValueError, match="SERPER_API_KEY"):
            await search_web("q", _client(lambda r: httpx.Response(200, json={})))

    @pytest.mark.asyncio
    async def test_empty_results(self, monkeypatch):
        monkeypatch.setenv("SERPER_API_KEY", "test-key")
        assert await search_web("q", _client(lambda r: httpx.Response(200, json={}))) == []

    def test_rank_score(self):
        assert _rank_score(1, 10) == 1.0
        assert _rank_score(10, 10) == pytest.approx(0.1)
        assert _rank_score(1, 1) == 1.0


# --- Grok ---


def _completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _grok_client(create):
    client = MagicMock()
    client.chat.completions.create = create
    return client


class TestGrokParsing:
    def test_fenced_json(self):
        text = """Here you go:
```json
[{"title": "CDC", "url": "https://cdc.gov/x", "snippet": "Facts.", "confidence": 0.9}]
```"""
        [result] = parse_sources(text)
        assert result.url == "https://cdc.gov/x"
        assert result.source == "grok"
        assert result.score == 0.9

    def test_percent_confidence_normalized(self):
        [result] = parse_sources('[{"title": "A", "url": "https://a.com", "snippet": "s", "confidence": 85}]')
        assert result.score == pytest.approx(0.85)

    def test_confidence_defaults_and_clamps(self):
        assert _normalize_confidence(None) == 0.5
        assert _normalize_confidence("high") == 0.5
        assert _normalize_confidence(-0.3) == 0.0
        assert _normalize_confidence(250) == 1.0

    def test_malformed_items_skipped(self):
        text = json.dumps([
            {"title": "A", "url": "https://a.com", "snippet": "ok"},
            {"title": "B", "url": "https://b.com"},
            "not an object",
            {"title": "", "url": "https://c.com", "snippet": "s"},
        ])
        assert [r.url for r in parse_sources(text)] == ["https://a.com"]

    def test_max_sources(self):
        items = [{"title": f"T{i}", "url": f"https://s{i}.com", "snippet": "s"} for i in range(8)]
        assert len(parse_sources(json.dumps(items), max_sources=3)) == 3

    def test_long_snippet_truncated(self):
        [result] = parse_sources(json.dumps([{"title": "A", "url": "https://a.com", "snippet": "x" * 500}]))
        assert len(result.snippet) == 300

    def test_reasoning_kept(self):
        text = json.dumps([
            {"title": "A", "url": "https://a.com", "snippet": "s", "reasoning": "Primary data source."},
            {"title": "B", "url": "https://b.com", "snippet": "s", "reasoning": 42},
        ])
        first, second = parse_sources(text)
        assert first.reasoning == "Primary data source."
        assert second.reasoning == ""

    def test_not_json(self):
        with pytest.raises(ProviderError, match="unparseable"):
            parse_sources("I could not find any sources.")


class TestGrokSearch:
    @pytest.mark.asyncio
    async def test_returns_results(self, monkeypatch):
        monkeypatch.delenv("XAI_MODEL", raising=False)
        create = AsyncMock(return_value=_completion(
            '[{"title": "A", "url": "https://a.com", "snippet": "s", "confidence": 0.7}]'
        ))
        results = await search_grok("is the sky blue", _grok_client(create))

        assert [r.url for r in results] == ["https://a.com"]
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "grok-3-mini"
        assert "is the sky blue" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        request = httpx.Request("POST", "https://api.x.ai/v1/chat/completions")
        create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
        with pytest.raises(ProviderError) as exc_info:
            await search_grok("q", _grok_client(create))
        assert exc_info.value.provider == "grok"

    @pytest.mark.asyncio
    async def test_empty_answer_is_error(self):
        create = AsyncMock(return_value=_completion(None))
        with pytest.raises(ProviderError):
            await search_grok("q", _grok_client(create))


# --- DuckDuckGo ---


class TestDuckDuckGoSearch:
    @pytest.mark.asyncio
    async def test_abstract_and_topics(self):
        def handler(request):
            assert request.url.params["q"] == "eiffel tower"
            assert request.url.params["format"] == "json"
            return httpx.Response(200, json={
                "Heading": "Eiffel Tower",
                "AbstractText": "Wrought-iron lattice tower in Paris.",
                "AbstractURL": "https://en.wikipedia.org/wiki/Eiffel_Tower",
                "RelatedTopics": [
                    {"Text": "Paris - Capital of France", "FirstURL": "https://duckduckgo.com/Paris"},
                    {"Name": "See also", "Topics": [
                        {"Text": "Gustave Eiffel - Engineer", "FirstURL": "https://duckduckgo.com/Gustave_Eiffel"},
                    ]},
                    {"Text": "no url here"},
                ],
            })

        results = await search_duckduckgo("eiffel tower", _client(handler))

        assert [r.url for r in results] == [
            "https://en.wikipedia.org/wiki/Eiffel_Tower",
            "https://duckduckgo.com/Paris",
            "https://duckduckgo.com/Gustave_Eiffel",
        ]
        assert results[0].title == "Eiffel Tower"
        assert results[0].score == 0.9
        assert results[1].title == "Paris"
        assert results[1].score == 0.8
        assert results[2].score == 0.75
        assert all(r.source == "duckduckgo" for r in results)

    @pytest.mark.asyncio
    async def test_no_answer_is_empty(self):
        client = _client(lambda r: httpx.Response(200, json={"AbstractText": "", "RelatedTopics": []}))
        assert await search_duckduckgo("obscure", client) == []

    @pytest.mark.asyncio
    async def test_max_results(self):
        topics = [{"Text": f"T{i}", "FirstURL": f"https://duckduckgo.com/{i}"} for i in range(20)]
        client = _client(lambda r: httpx.Response(200, json={"RelatedTopics": topics}))
        results = await search_duckduckgo("q", client, max_results=5)
        assert len(results) == 5
        assert results[-1].score == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_http_failure_degrades_to_placeholder(self):
        client = _client(lambda r: httpx.Response(500))
        [result] = await search_duckduckgo("some claim", client)
        assert result.url == manual_search_url("some claim")
        assert result.score == 0.1
        assert result.source == "duckduckgo"

    @pytest.mark.asyncio
    async def test_network_failure_degrades_to_placeholder(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        [result] = await search_duckduckgo("some claim", _client(handler))
        assert result.url.startswith("https://duckduckgo.com/?q=some+claim")

    @pytest.mark.asyncio
    async def test_unexpected_shape_degrades_to_placeholder(self):
        client = _client(lambda r: httpx.Response(200, json=["not", "a", "dict"]))
        [result] = await search_duckduckgo("q", client)
        assert result.title.startswith("Search manually")
