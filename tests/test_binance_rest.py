"""Tests for the Binance REST client retry loop and endpoints."""

import httpx
import pytest

from screener.clients.binance_rest import (
    EXCLUDED_SYMBOLS,
    BinanceRestClient,
    backoff_delay,
)

BASE_URL = "https://api.test/api/v3"

KLINE_ROW = [0, "1.0", "2.0", "0.5", "1.5", "100", 59_999, "150.0", 10, "50", "75", "0"]


def scripted(responses):
    """MockTransport that replays ``responses`` in order and records requests.

    Each item is an httpx.Response, or an exception instance to raise.
    """
    calls: list[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler), calls


def make_client(transport, sleep, **kwargs):
    kwargs.setdefault("rate_limit_per_second", 0)
    return BinanceRestClient(base_url=BASE_URL, transport=transport, sleep=sleep, **kwargs)


class TestBackoff:
    """Tests for the linear backoff schedule."""

    def test_schedule(self):
        assert [backoff_delay(n) for n in (1, 2, 3)] == [3.0, 6.0, 9.0]
        assert backoff_delay(2, base=0.5) == 1.0


class TestRetryLoop:
    """Tests for BinanceRestClient._request."""

    @pytest.mark.asyncio
    async def test_success(self, fast_sleep):
        transport, calls = scripted([httpx.Response(200, json={})])
        client = make_client(transport, fast_sleep)

        assert await client._request("/ping") == {}
        assert len(calls) == 1
        assert calls[0].url.path == "/api/v3/ping"
        assert fast_sleep.delays == []
        await client.close()

    @pytest.mark.asyncio
    async def test_server_errors_back_off_then_give_up(self, fast_sleep):
        transport, calls = scripted([httpx.Response(500)])
        client = make_client(transport, fast_sleep, max_retries=3)

        assert await client._request("/klines") is None
        assert len(calls) == 4
        assert fast_sleep.delays == [3.0, 6.0, 9.0]

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, fast_sleep):
        transport, calls = scripted(
            [httpx.ConnectError("refused"), httpx.Response(200, json=[1])]
        )
        client = make_client(transport, fast_sleep)

        assert await client._request("/klines") == [1]
        assert len(calls) == 2
        assert fast_sleep.delays == [3.0]

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self, fast_sleep):
        transport, calls = scripted(
            [
                httpx.Response(429, headers={"Retry-After": "2"}),
                httpx.Response(429),
                httpx.Response(200, json={"ok": True}),
            ]
        )
        client = make_client(transport, fast_sleep)

        assert await client._request("/exchangeInfo") == {"ok": True}
        assert fast_sleep.delays == [2.0, 5.0]

    @pytest.mark.asyncio
    async def test_rate_limit_does_not_consume_retries(self, fast_sleep):
        limited = httpx.Response(429, headers={"Retry-After": "1"})
        transport, calls = scripted(
            [
                httpx.Response(500),
                limited,
                httpx.Response(500),
                limited,
                httpx.Response(500),
                httpx.Response(500),
            ]
        )
        client = make_client(transport, fast_sleep, max_retries=3)

        assert await client._request("/klines") is None
        assert len(calls) == 6
        assert fast_sleep.delays == [3.0, 1.0, 6.0, 1.0, 9.0]

    @pytest.mark.asyncio
    async def test_rate_limit_waits_are_capped(self, fast_sleep):
        transport, calls = scripted([httpx.Response(429, headers={"Retry-After": "1"})])
        client = make_client(transport, fast_sleep, max_rate_limit_waits=2)

        assert await client._request("/klines") is None
        assert len(calls) == 3
        assert fast_sleep.delays == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_ip_ban_stops_immediately(self, fast_sleep):
        transport, calls = scripted([httpx.Response(418)])
        client = make_client(transport, fast_sleep)

        assert await client._request("/klines") is None
        assert len(calls) == 1
        assert fast_sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(451),
            httpx.Response(
                403,
                json={"code": 0, "msg": "Service unavailable from a restricted location"},
            ),
        ],
    )
    async def test_geo_restriction_stops_immediately(self, fast_sleep, response):
        transport, calls = scripted([response])
        client = make_client(transport, fast_sleep)

        assert await client._request("/klines") is None
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_malformed_json(self, fast_sleep):
        transport, calls = scripted([httpx.Response(200, content=b"<html>")])
        client = make_client(transport, fast_sleep)

        assert await client._request("/klines") is None
        assert len(calls) == 1


class TestEndpoints:
    """Tests for the typed endpoint wrappers."""

    @pytest.mark.asyncio
    async def test_get_klines_params(self, fast_sleep):
        transport, calls = scripted([httpx.Response(200, json=[KLINE_ROW])])
        client = make_client(transport, fast_sleep)

        rows = await client.get_klines("BTCUSDT", "1h", end_time=123, limit=50)
        assert rows == [KLINE_ROW]
        params = calls[0].url.params
        assert params["symbol"] == "BTCUSDT"
        assert params["interval"] == "1h"
        assert params["limit"] == "50"
        assert params["endTime"] == "123"
        assert "startTime" not in params

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [[], {"code": -1}])
    async def test_get_klines_rejects_empty_or_non_list(self, fast_sleep, payload):
        transport, _ = scripted([httpx.Response(200, json=payload)])
        client = make_client(transport, fast_sleep)
        assert await client.get_klines("BTCUSDT", "1h") is None

    @pytest.mark.asyncio
    async def test_get_candles_parses_rows(self, fast_sleep):
        transport, _ = scripted([httpx.Response(200, json=[KLINE_ROW, ["bad"]])])
        client = make_client(transport, fast_sleep)

        series = await client.get_candles("BTCUSDT", "1h")
        assert len(series) == 1
        assert series.last.close == 1.5

    @pytest.mark.asyncio
    async def test_exchange_info_drops_excluded_pairs(self, fast_sleep):
        body = {
            "symbols": [
                {"symbol": "BTCUSDT", "status": "TRADING"},
                {"symbol": "USDCUSDT", "status": "TRADING"},
                {"symbol": "FDUSDUSDT", "status": "TRADING"},
            ]
        }
        transport, _ = scripted([httpx.Response(200, json=body)])
        client = make_client(transport, fast_sleep)

        info = await client.get_exchange_info()
        assert [s["symbol"] for s in info["symbols"]] == ["BTCUSDT"]
        assert "USDCUSDT" in EXCLUDED_SYMBOLS

    @pytest.mark.asyncio
    async def test_exchange_info_invalid_format(self, fast_sleep):
        transport, _ = scripted([httpx.Response(200, json=[])])
        client = make_client(transport, fast_sleep)
        assert await client.get_exchange_info() is None

    @pytest.mark.asyncio
    async def test_ping_does_not_retry(self, fast_sleep):
        transport, calls = scripted([httpx.Response(503)])
        client = make_client(transport, fast_sleep, max_retries=3)

        assert await client.ping() is False
        assert len(calls) == 1
        assert fast_sleep.delays == []

    @pytest.mark.asyncio
    async def test_ping_ok(self, fast_sleep):
        transport, _ = scripted([httpx.Response(200, json={})])
        client = make_client(transport, fast_sleep)
        assert await client.ping() is True
