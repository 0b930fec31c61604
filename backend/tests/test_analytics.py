"""
Tests for the token cache, identity client and query execution engine.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from whatsbi.analytics import (
    ClientCredentialsTokenProvider,
    ConnectionStore,
    QueryExecutionEngine,
    TokenCache,
    TokenRequestError,
    extract_rows,
)
from whatsbi.models import BackendConnection

from conftest import mock_async_client, mock_http_response

CONNECTION = BackendConnection(
    id="conn-1",
    name="Power BI Vendas",
    tenant_id="tenant-1",
    client_id="client-1",
    client_secret="secret-1",
    workspace_id="ws-1",
)

ROWS_PAYLOAD = {"results": [{"tables": [{"rows": [{"[Total]": 45230.1}, {"[Total]": 100}]}]}]}


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TestTokenCache:

    @pytest.mark.asyncio
    async def test_fetches_once_and_reuses(self):
        fetch = AsyncMock(return_value="tok-1")
        cache = TokenCache(fetch, clock=FakeClock())

        assert await cache.get_token(CONNECTION) == "tok-1"
        assert await cache.get_token(CONNECTION) == "tok-1"
        fetch.assert_awaited_once_with(CONNECTION)

    @pytest.mark.asyncio
    async def test_cached_for_fifty_minutes(self):
        clock = FakeClock()
        cache = TokenCache(AsyncMock(return_value="tok"), clock=clock)
        await cache.get_token(CONNECTION)
        assert cache.peek("conn-1").expires_at == clock.now + timedelta(minutes=50)

    @pytest.mark.asyncio
    async def test_more_than_margin_left_no_refresh(self):
        clock = FakeClock()
        fetch = AsyncMock(side_effect=["tok-1", "tok-2"])
        cache = TokenCache(fetch, clock=clock)
        await cache.get_token(CONNECTION)

        clock.advance(minutes=44, seconds=59)  # 5m01s left
        assert await cache.get_token(CONNECTION) == "tok-1"
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_margin_or_less_left_refreshes_once(self):
        clock = FakeClock()
        fetch = AsyncMock(side_effect=["tok-1", "tok-2", "tok-3"])
        cache = TokenCache(fetch, clock=clock)
        await cache.get_token(CONNECTION)

        clock.advance(minutes=45)  # exactly 5m left
        assert await cache.get_token(CONNECTION) == "tok-2"
        assert await cache.get_token(CONNECTION) == "tok-2"
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_single_fetch(self):
        calls = 0

        async def fetch(connection):
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "tok-shared"

        cache = TokenCache(fetch, clock=FakeClock())
        tokens = await asyncio.gather(*[cache.get_token(CONNECTION) for _ in range(10)])

        assert set(tokens) == {"tok-shared"}
        assert calls == 1

    @pytest.mark.asyncio
    async def test_invalidate(self):
        fetch = AsyncMock(side_effect=["tok-1", "tok-2"])
        cache = TokenCache(fetch, clock=FakeClock())
        await cache.get_token(CONNECTION)

        cache.invalidate("conn-1")
        assert cache.peek("conn-1") is None
        assert await cache.get_token(CONNECTION) == "tok-2"

    @pytest.mark.asyncio
    async def test_invalidate_ignores_newer_token(self):
        cache = TokenCache(AsyncMock(return_value="tok-new"), clock=FakeClock())
        await cache.get_token(CONNECTION)

        cache.invalidate("conn-1", stale_token="tok-old")
        assert cache.peek("conn-1").token == "tok-new"

    def test_invalidate_unknown_is_noop(self):
        TokenCache(AsyncMock()).invalidate("missing")


class TestClientCredentialsTokenProvider:

    @pytest.mark.asyncio
    async def test_posts_client_credentials(self):
        provider = ClientCredentialsTokenProvider()
        response = mock_http_response(json_data={"access_token": "abc", "expires_in": 3599})

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(mock_client, response)
            token = await provider(CONNECTION)

        assert token == "abc"
        url = instance.post.call_args[0][0]
        assert url == "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
        form = instance.post.call_args[1]["data"]
        assert form["grant_type"] == "client_credentials"
        assert form["client_id"] == "client-1"
        assert form["scope"] == "https://analysis.windows.net/powerbi/api/.default"

    @pytest.mark.asyncio
    async def test_rejected_request(self):
        provider = ClientCredentialsTokenProvider()
        response = mock_http_response(status_code=401, text="invalid_client")

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, response)
            with pytest.raises(TokenRequestError) as exc_info:
                await provider(CONNECTION)

        assert exc_info.value.status_code == 401


def test_extract_rows():
    assert extract_rows(ROWS_PAYLOAD) == [{"[Total]": 45230.1}, {"[Total]": 100}]
    assert extract_rows({}) == []
    assert extract_rows({"results": []}) == []
    assert extract_rows({"results": [{"tables": []}]}) == []
    assert extract_rows({"results": [{"tables": [{}]}]}) == []


@pytest.fixture
def connections():
    store = MagicMock(spec=ConnectionStore)
    store.get_connection = AsyncMock(return_value=CONNECTION)
    return store


@pytest.fixture
def token_cache():
    cache = MagicMock(spec=TokenCache)
    cache.get_token = AsyncMock(side_effect=["tok-1", "tok-2"])
    return cache


class TestQueryExecutionEngine:

    @pytest.mark.asyncio
    async def test_success(self, connections, token_cache):
        engine = QueryExecutionEngine(connections, token_cache)
        response = mock_http_response(json_data=ROWS_PAYLOAD)

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(mock_client, response)
            result = await engine.execute("conn-1", "ds-1", "EVALUATE ROW(\"x\", 1)")

        assert result.success
        assert result.row_count == 2
        assert result.retried is False
        assert result.execution_time_ms >= 0
        url = instance.post.call_args[0][0]
        assert url == "https://api.powerbi.com/v1.0/myorg/groups/ws-1/datasets/ds-1/executeQueries"
        payload = instance.post.call_args[1]["json"]
        assert payload["queries"] == [{"query": "EVALUATE ROW(\"x\", 1)"}]
        assert payload["serializerSettings"] == {"includeNulls": True}
        assert instance.post.call_args[1]["headers"]["Authorization"] == "Bearer tok-1"

    @pytest.mark.asyncio
    async def test_empty_table_is_success(self, connections, token_cache):
        engine = QueryExecutionEngine(connections, token_cache)

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, mock_http_response(json_data={"results": [{"tables": []}]}))
            result = await engine.execute("conn-1", "ds-1", "EVALUATE X")

        assert result.success
        assert result.rows == []

    @pytest.mark.asyncio
    async def test_unknown_connection(self, connections, token_cache):
        connections.get_connection.return_value = None
        engine = QueryExecutionEngine(connections, token_cache)

        result = await engine.execute("missing", "ds-1", "EVALUATE X")

        assert not result.success
        assert result.error == "Conexão não encontrada"
        token_cache.get_token.assert_not_called()

    @pytest.mark.asyncio
    async def test_401_reauthenticates_once(self, connections, token_cache):
        engine = QueryExecutionEngine(connections, token_cache)
        first = mock_http_response(status_code=401, text="expired")
        second = mock_http_response(json_data=ROWS_PAYLOAD)

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(mock_client, first, second)
            result = await engine.execute("conn-1", "ds-1", "EVALUATE X")

        assert result.success
        assert result.retried is True
        token_cache.invalidate.assert_called_once_with("conn-1", stale_token="tok-1")
        assert instance.post.call_count == 2
        assert instance.post.call_args[1]["headers"]["Authorization"] == "Bearer tok-2"

    @pytest.mark.asyncio
    async def test_second_401_is_surfaced(self, connections, token_cache):
        engine = QueryExecutionEngine(connections, token_cache)
        first = mock_http_response(status_code=401, text="expired")
        second = mock_http_response(status_code=401, text="still unauthorized")

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(mock_client, first, second)
            result = await engine.execute("conn-1", "ds-1", "EVALUATE X")

        assert not result.success
        assert result.retried is True
        assert "still unauthorized" in result.error
        assert instance.post.call_count == 2
        token_cache.invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_backend_error(self, connections, token_cache):
        engine = QueryExecutionEngine(connections, token_cache)

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, mock_http_response(status_code=400, text="x" * 1000))
            result = await engine.execute("conn-1", "ds-1", "EVALUATE Bad")

        assert not result.success
        assert result.error.startswith("Erro na consulta: ")
        assert len(result.error) <= len("Erro na consulta: ") + 300
        token_cache.invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout(self, connections, token_cache):
        engine = QueryExecutionEngine(connections, token_cache, timeout=20.0)

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(mock_client, mock_http_response())
            instance.post.side_effect = httpx.ReadTimeout("read timed out")
            result = await engine.execute("conn-1", "ds-1", "EVALUATE Slow")

        assert not result.success
        assert result.error == "Timeout: consulta demorou mais de 20 segundos"

    @pytest.mark.asyncio
    async def test_deadline_cancels_slow_call(self, connections, token_cache):
        engine = QueryExecutionEngine(connections, token_cache, timeout=0.01)

        async def slow_post(*args, **kwargs):
            await asyncio.sleep(5)
            return mock_http_response(json_data=ROWS_PAYLOAD)

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(mock_client, mock_http_response())
            instance.post.side_effect = slow_post
            result = await engine.execute("conn-1", "ds-1", "EVALUATE Slow")

        assert not result.success
        assert result.error.startswith("Timeout")

    @pytest.mark.asyncio
    async def test_token_failure(self, connections, token_cache):
        token_cache.get_token.side_effect = TokenRequestError(400, "bad secret")
        engine = QueryExecutionEngine(connections, token_cache)

        result = await engine.execute("conn-1", "ds-1", "EVALUATE X")

        assert not result.success
        assert "Token request failed" in result.error


class TestConnectionStore:

    @pytest.mark.asyncio
    async def test_round_trip(self, storage):
        store = ConnectionStore(storage)
        assert await store.get_connection("conn-1") is None
        await store.save_connection(CONNECTION)
        assert await store.get_connection("conn-1") == CONNECTION
