"""
HTTP client for registry queries.

One :class:`HTTPClient` is opened per run and shared by every registry
query, so all of them draw from a single connection pool and a single
concurrency limit. Registries answer with JSON documents; the client
only offers :meth:`HTTPClient.get_json`.

Failure handling:

- 4xx responses fail at once with :class:`NetworkError` carrying the
  status code (backends turn 404 into "package not found");
- 429 and 503 wait for ``Retry-After`` (seconds or an HTTP date), capped
  at :data:`MAX_RETRY_AFTER`;
- other 5xx responses, timeouts and connection errors back off
  exponentially with jitter;
- once ``max_retries`` retries are spent, :class:`NetworkError` is raised.
"""

from __future__ import annotations

import time
import httpx
import random
import asyncio
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional, cast

from depbump.utils.logger import get_logger
from depbump.__version__ import __version__
from depbump.exceptions import NetworkError
from depbump.constants import (
    DEFAULT_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_CONCURRENCY,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")

#: Longest ``Retry-After`` wait honoured, in seconds.
MAX_RETRY_AFTER: float = 60.0

#: Statuses whose ``Retry-After`` header is respected.
THROTTLED_STATUSES = frozenset({429, 503})


class HTTPClient:
    """Async client for registry JSON documents.

    Args:
        timeout: Request timeout in seconds.
        max_retries: Retries after the first attempt.
        max_concurrency: Requests allowed in flight at once. Also sizes the
            connection pool.

    Example:
        >>> async with HTTPClient(max_concurrency=4) as client:
        ...     data = await client.get_json("https://registry.npmjs.org/react")
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_concurrency = max_concurrency

        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def __aenter__(self) -> "HTTPClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=self.max_concurrency),
                http2=True,
                follow_redirects=True,
                headers={
                    "User-Agent": USER_AGENT_TEMPLATE.format(version=__version__),
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_json(self, url: str) -> Dict[str, Any]:
        """GET *url* and return its body as a JSON object.

        Raises:
            NetworkError: The request failed, or the body is not a JSON
                object.
        """
        response = await self._get_with_retry(url)

        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

        if not isinstance(data, dict):
            raise NetworkError(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)

    async def _get_with_retry(self, url: str) -> httpx.Response:
        client = self._ensure_client()
        attempts = self.max_retries + 1
        failure = ""

        for attempt in range(1, attempts + 1):
            delay: Optional[float] = None
            try:
                async with self._semaphore:
                    response = await client.get(url)
            except httpx.TimeoutException:
                failure = f"timed out after {self.timeout}s"
            except httpx.TransportError as exc:
                failure = f"{type(exc).__name__}: {exc}"
            else:
                status = response.status_code
                if status < 400:
                    return response
                if status < 500 and status not in THROTTLED_STATUSES:
                    raise NetworkError(
                        f"HTTP {status} for {url}",
                        url=url,
                        status_code=status,
                        response_body=response.text,
                    )
                failure = f"HTTP {status}"
                if status in THROTTLED_STATUSES:
                    delay = retry_after_seconds(response.headers.get("Retry-After"))

            if attempt == attempts:
                break
            if delay is None:
                delay = 2 ** (attempt - 1) + random.uniform(0.0, 0.3)
            logger.warning(
                "%s (%d/%d): %s; retrying in %.1fs", failure, attempt, attempts, url, delay
            )
            await asyncio.sleep(delay)

        raise NetworkError(
            f"Request failed after {attempts} attempts ({failure}): {url}",
            url=url,
        )


def retry_after_seconds(value: Optional[str], default: float = 1.0) -> float:
    """Seconds to wait for a ``Retry-After`` header value.

    Accepts delta-seconds or an HTTP date. Missing or unreadable values
    give *default*; the result is clamped to ``[0, MAX_RETRY_AFTER]``.
    """
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return default
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = when.timestamp() - time.time()
    return min(max(seconds, 0.0), MAX_RETRY_AFTER)
