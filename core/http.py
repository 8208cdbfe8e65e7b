"""
Resilient outbound HTTP.

fetch_with_retry wraps one request with a per-attempt timeout and capped
exponential backoff with jitter. Every tool goes through it.

Retry policy:
- HTTP 429 and 5xx responses are retried; the last one is returned (not raised).
- Transport faults (connect errors, timeouts, ...) are retried; the last one is re-raised.
- Anything else (2xx-4xx except 429) is returned immediately.
"""
import asyncio
import logging
import random
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

BACKOFF_BASE_MS = 1000
BACKOFF_JITTER_MS = 1000
BACKOFF_CAP_MS = 10000

# used when the caller passes no timeout / retry count (ExecutionContext carries the configured ones)
DEFAULT_TIMEOUT_MS = 10000
DEFAULT_MAX_RETRIES = 2


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def backoff_ms(attempt: int) -> float:
    """Delay before the next attempt; attempt index starts at 0."""
    delay = BACKOFF_BASE_MS * (2 ** attempt) + random.uniform(0, BACKOFF_JITTER_MS)
    return min(delay, BACKOFF_CAP_MS)


async def _sleep_ms(ms: float):
    await asyncio.sleep(ms / 1000.0)


async def fetch_with_retry(
    url: str,
    *,
    method: str = "GET",
    timeout_ms: Optional[int] = None,
    max_retries: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Perform `method url` with up to max_retries + 1 attempts.

    Extra keyword arguments (headers, params, json, content, ...) are passed to
    httpx unchanged. Pass `client` to reuse a connection pool or a mock transport.
    """
    if timeout_ms is None:
        timeout_ms = DEFAULT_TIMEOUT_MS
    if max_retries is None:
        max_retries = DEFAULT_MAX_RETRIES

    timeout = httpx.Timeout(timeout_ms / 1000.0)
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient()

    last_error: Exception | None = None
    try:
        for attempt in range(max_retries + 1):
            try:
                response = await client.request(method, url, timeout=timeout, **request_kwargs)
            except httpx.TransportError as e:
                last_error = e
                if attempt < max_retries:
                    delay = backoff_ms(attempt)
                    logger.warning(
                        "fetch %s %s failed (%s: %s); retry %d/%d in %.0fms",
                        method, url, type(e).__name__, e, attempt + 1, max_retries, delay,
                    )
                    await _sleep_ms(delay)
                    continue
                break

            if is_retryable_status(response.status_code) and attempt < max_retries:
                delay = backoff_ms(attempt)
                logger.warning(
                    "fetch %s %s returned %d; retry %d/%d in %.0fms",
                    method, url, response.status_code, attempt + 1, max_retries, delay,
                )
                await response.aread()
                await _sleep_ms(delay)
                continue

            # make the body available after the client is closed
            await response.aread()
            return response
    finally:
        if owns_client:
            await client.aclose()

    if last_error is not None:
        raise last_error
    raise httpx.TransportError(f"Fetch failed after retries: {url}")
