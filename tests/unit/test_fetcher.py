"""Unit tests for kagitools.fetcher."""

from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest
import respx

from kagitools.errors import ErrorCode, KagiToolError, UpstreamTimeout
from kagitools.fetcher import Fetcher, build_http_client, call_with_timeout

ENDPOINT = "https://kagi.com/api/v0/fastgpt"


# ---------------------------------------------------------------------------
# call_with_timeout
# ---------------------------------------------------------------------------


class TestCallWithTimeout:
    async def test_hanging_upstream_times_out_and_is_cancelled(self) -> None:
        started_event = asyncio.Event()
        cancelled = asyncio.Event()

        async def hang(request: httpx.Request) -> httpx.Response:
            started_event.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.set()
                raise
            raise AssertionError("unreachable")

        async with httpx.AsyncClient(transport=httpx.MockTransport(hang)) as client:
            request = client.build_request("POST", ENDPOINT)
            started = time.monotonic()
            with pytest.raises(UpstreamTimeout) as exc_info:
                await call_with_timeout(client, request, 0.05)
            elapsed = time.monotonic() - started

        assert started_event.is_set()
        assert cancelled.is_set()
        assert elapsed < 1.0
        assert exc_info.value.timeout_seconds == 0.05
        assert exc_info.value.url == ENDPOINT

    async def test_fast_response_is_returned(self) -> None:
        def ok(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(ok)) as client:
            response = await call_with_timeout(client, client.build_request("GET", ENDPOINT), 5)
        assert response.status_code == 200

    async def test_error_status_is_returned_not_raised(self) -> None:
        def failing(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        async with httpx.AsyncClient(transport=httpx.MockTransport(failing)) as client:
            response = await call_with_timeout(client, client.build_request("GET", ENDPOINT), 5)
        assert response.status_code == 503

    @pytest.mark.parametrize("timeout", [0, -1])
    async def test_non_positive_timeout_rejected(self, timeout: float) -> None:
        async with httpx.AsyncClient() as client:
            with pytest.raises(ValueError):
                await call_with_timeout(client, client.build_request("GET", ENDPOINT), timeout)


# ---------------------------------------------------------------------------
# Fetcher.post_json
# ---------------------------------------------------------------------------


@pytest.fixture()
async def fetcher():
    async with httpx.AsyncClient() as client:
        yield Fetcher(client)


async def _post(fetcher: Fetcher, timeout: float = 5):
    return await fetcher.post_json(
        ENDPOINT,
        {"query": "hello"},
        api_key="secret",
        timeout_seconds=timeout,
        provider="Kagi FastGPT",
    )


class TestFetcherPostJson:
    @respx.mock
    async def test_success_decodes_envelope(self, fetcher: Fetcher, fastgpt_body: dict) -> None:
        respx.post(ENDPOINT).mock(return_value=httpx.Response(200, json=fastgpt_body))
        body = await _post(fetcher)
        assert body.data is not None
        assert body.data.output == fastgpt_body["data"]["output"]
        assert body.meta.api_balance == 9.5
        assert len(body.data.references) == 1

    @respx.mock
    async def test_sends_bot_authorization_and_json(self, fetcher: Fetcher) -> None:
        route = respx.post(ENDPOINT).mock(return_value=httpx.Response(200, json={"data": {}}))
        await _post(fetcher)
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bot secret"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Accept"] == "application/json"
        assert json.loads(request.content) == {"query": "hello"}

    @respx.mock
    async def test_non_2xx_carries_status_and_detail(self, fetcher: Fetcher) -> None:
        respx.post(ENDPOINT).mock(return_value=httpx.Response(401, text="Invalid token"))
        with pytest.raises(KagiToolError) as exc_info:
            await _post(fetcher)
        assert exc_info.value.code == ErrorCode.UPSTREAM_HTTP_ERROR
        assert exc_info.value.status_code == 401
        assert "Invalid token" in exc_info.value.message
        assert exc_info.value.recoverable is False

    @respx.mock
    async def test_non_2xx_without_body_uses_reason_phrase(self, fetcher: Fetcher) -> None:
        respx.post(ENDPOINT).mock(return_value=httpx.Response(502))
        with pytest.raises(KagiToolError) as exc_info:
            await _post(fetcher)
        assert "(502): Bad Gateway" in exc_info.value.message
        assert exc_info.value.recoverable is True

    @respx.mock
    async def test_embedded_error_list(self, fetcher: Fetcher) -> None:
        respx.post(ENDPOINT).mock(
            return_value=httpx.Response(
                200, json={"meta": {}, "data": None, "error": [{"code": 1, "msg": "Out of credit"}]}
            )
        )
        with pytest.raises(KagiToolError) as exc_info:
            await _post(fetcher)
        assert exc_info.value.code == ErrorCode.UPSTREAM_API_ERROR
        assert exc_info.value.message == "Kagi FastGPT API error: Out of credit"

    @respx.mock
    async def test_embedded_error_object_without_message(self, fetcher: Fetcher) -> None:
        respx.post(ENDPOINT).mock(return_value=httpx.Response(200, json={"error": {"code": 7}}))
        with pytest.raises(KagiToolError) as exc_info:
            await _post(fetcher)
        assert exc_info.value.message.endswith("Unknown error")

    @respx.mock
    async def test_empty_error_list_is_success(self, fetcher: Fetcher) -> None:
        respx.post(ENDPOINT).mock(
            return_value=httpx.Response(200, json={"data": {"output": "ok"}, "error": []})
        )
        body = await _post(fetcher)
        assert body.data is not None and body.data.output == "ok"

    @respx.mock
    async def test_invalid_json_body(self, fetcher: Fetcher) -> None:
        respx.post(ENDPOINT).mock(return_value=httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(KagiToolError) as exc_info:
            await _post(fetcher)
        assert exc_info.value.code == ErrorCode.UPSTREAM_BAD_RESPONSE

    @respx.mock
    async def test_network_error(self, fetcher: Fetcher) -> None:
        respx.post(ENDPOINT).mock(side_effect=httpx.ConnectError("connection refused"))
        with pytest.raises(KagiToolError) as exc_info:
            await _post(fetcher)
        assert exc_info.value.code == ErrorCode.UPSTREAM_UNAVAILABLE
        assert exc_info.value.recoverable is True

    async def test_timeout_is_translated(self) -> None:
        async def hang(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(10)
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(hang)) as client:
            with pytest.raises(KagiToolError) as exc_info:
                await _post(Fetcher(client), timeout=0.05)
        assert exc_info.value.code == ErrorCode.UPSTREAM_TIMEOUT
        assert exc_info.value.recoverable is True


class TestBuildHttpClient:
    async def test_client_defaults(self) -> None:
        client = build_http_client()
        try:
            assert client.follow_redirects is False
            assert client.headers["User-Agent"].startswith("kagitools/")
        finally:
            await client.aclose()
