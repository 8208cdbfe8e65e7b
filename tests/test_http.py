import httpx
import pytest

from core.http import BACKOFF_CAP_MS, backoff_ms, fetch_with_retry, is_retryable_status


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_server_error_is_retried_then_returned(no_backoff):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="upstream down")

    async with _client(handler) as client:
        resp = await fetch_with_retry("https://example.test/x", max_retries=2, client=client)

    assert len(calls) == 3
    assert resp.status_code == 500
    assert resp.text == "upstream down"
    assert len(no_backoff) == 2


@pytest.mark.asyncio
async def test_transport_fault_is_retried_then_raised():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(httpx.ConnectError) as exc:
            await fetch_with_retry("https://example.test/x", max_retries=2, client=client)

    assert len(calls) == 3
    assert "connection refused" in str(exc.value)


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, json={"error": "missing"})

    async with _client(handler) as client:
        resp = await fetch_with_retry("https://example.test/x", max_retries=2, client=client)

    assert len(calls) == 1
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_rate_limit_recovers_on_next_attempt():
    responses = iter([httpx.Response(429), httpx.Response(200, json={"ok": True})])

    async with _client(lambda request: next(responses)) as client:
        resp = await fetch_with_retry("https://example.test/x", max_retries=2, client=client)

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


@pytest.mark.asyncio
async def test_request_kwargs_are_forwarded():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["header"] = request.headers.get("X-API-KEY")
        seen["query"] = request.url.params.get("q")
        return httpx.Response(200)

    async with _client(handler) as client:
        await fetch_with_retry(
            "https://example.test/search", method="POST", client=client,
            headers={"X-API-KEY": "abc"}, params={"q": "btc"},
        )

    assert seen == {"method": "POST", "header": "abc", "query": "btc"}


def test_retryable_statuses():
    assert is_retryable_status(429)
    assert is_retryable_status(500)
    assert is_retryable_status(503)
    assert not is_retryable_status(404)
    assert not is_retryable_status(200)


def test_backoff_grows_and_is_capped():
    for _ in range(20):
        assert 1000 <= backoff_ms(0) <= 2000
        assert 2000 <= backoff_ms(1) <= 3000
        assert backoff_ms(10) == BACKOFF_CAP_MS
