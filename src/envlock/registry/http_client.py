"""Shared async HTTP client utilities for remote package indexes.

Provides a thin wrapper around ``httpx.AsyncClient`` with standardised
timeouts, user-agent headers, bounded retries, and error handling, so that
HTTP behaviour is consistent and testable.

Retry policy: timeouts, transport errors, HTTP 429, and HTTP 5xx are
retried up to ``retries`` attempts in total, waiting ``backoff * 2**n``
seconds before retry ``n`` (or the server's ``Retry-After``, capped at
``MAX_RETRY_AFTER``). A 404 means "not found" and is returned as ``None``
without retrying. Anything else raises ``FetchFailure``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from envlock import __version__
from envlock.exceptions import FetchFailure

logger = logging.getLogger(__name__)

# Timeout for all index HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

DEFAULT_RETRIES: int = 3
DEFAULT_BACKOFF: float = 0.5
MAX_RETRY_AFTER: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = f"envlock/{__version__}"


def make_client(timeout: float = DEFAULT_TIMEOUT, **kwargs: Any) -> httpx.AsyncClient:
    """Create an ``AsyncClient`` with envlock's defaults.

    Extra keyword arguments go straight to ``httpx.AsyncClient`` (tests pass
    ``transport=httpx.MockTransport(...)``).
    """
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        follow_redirects=True,
        **kwargs,
    )


def _is_retryable(status: int) -> bool:
    return status == 429 or status >= 500


def _delay(response: httpx.Response | None, backoff: float, attempt: int) -> float:
    if response is not None:
        retry_after = response.headers.get("Retry-After", "")
        if retry_after.isdigit():
            return min(float(retry_after), MAX_RETRY_AFTER)
    return backoff * (2 ** attempt)


async def fetch_json(
    url: str,
    *,
    client: httpx.AsyncClient,
    retries: int = DEFAULT_RETRIES,
    backoff: float = DEFAULT_BACKOFF,
) -> Any:
    """Fetch a URL and parse the response as JSON.

    Args:
        url: The URL to fetch.
        client: The shared ``AsyncClient`` to send the request with.
        retries: Total attempts before giving up (at least 1).
        backoff: Base delay in seconds between attempts.

    Returns:
        Parsed JSON response, or None if the server answered 404.

    Raises:
        FetchFailure: When retries are exhausted, on a non-retryable HTTP
            status, or when the body is not valid JSON.
    """
    attempts = max(retries, 1)
    reason = ""
    for attempt in range(attempts):
        response: httpx.Response | None = None
        try:
            response = await client.get(url)
        except httpx.TimeoutException:
            reason = "timed out"
        except httpx.TransportError as exc:
            reason = f"transport error: {exc}"
        else:
            status = response.status_code
            if status == 404:
                logger.debug("Not found: %s", url)
                return None
            if _is_retryable(status):
                reason = f"HTTP {status}"
            elif status >= 400:
                raise FetchFailure(url, attempt + 1, f"HTTP {status}")
            else:
                try:
                    return response.json()
                except ValueError as exc:
                    raise FetchFailure(url, attempt + 1, f"invalid JSON: {exc}") from exc

        if attempt + 1 < attempts:
            delay = _delay(response, backoff, attempt)
            logger.warning(
                "Fetching %s failed (%s); retrying in %.2fs (attempt %d of %d)",
                url, reason, delay, attempt + 2, attempts,
            )
            await asyncio.sleep(delay)

    raise FetchFailure(url, attempts, reason)
