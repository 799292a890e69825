"""Shared async HTTP client for registry and GitHub requests.

Provides a thin wrapper around ``httpx.AsyncClient`` with standardised
timeouts, user-agent headers, retries and error handling. Every provider
goes through one ``HttpFetcher`` per install run so that connection limits,
retry behaviour and rate-limit detection are consistent and testable.

Transport failures and 5xx responses are retried with exponential backoff.
HTTP 403/429 from a rate-limited API (GitHub) raise ``RateLimitError``
immediately; every other non-2xx response raises ``FetchError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from rostaller.exceptions import FetchError, RateLimitError

logger = logging.getLogger(__name__)

# Timeout for all registry HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = "rostaller/0.1"

# Attempts per request, including the first one.
MAX_ATTEMPTS: int = 3

# Delay before the first retry; doubled for every further retry.
RETRY_BASE_DELAY: float = 0.5

RATE_LIMIT_MESSAGE: str = (
    "API rate limit exceeded. Create a github personal access token to get "
    "a higher rate limit."
)

_RETRY_STATUS_CODES: frozenset[int] = frozenset({500, 502, 503, 504})
_RATE_LIMIT_STATUS_CODES: frozenset[int] = frozenset({403, 429})


class HttpFetcher:
    """Retrying GET client shared by all providers in one run.

    Use as an async context manager so the underlying connection pool is
    closed when the run ends::

        async with HttpFetcher(max_connections=10) as http:
            data = await http.get_json("https://api.github.com/...")

    Args:
        max_connections: Connection pool limit.
        timeout: Per-request timeout in seconds.
        retry_delay: Base backoff delay. Tests pass 0.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        max_connections: int = 10,
        timeout: float = DEFAULT_TIMEOUT,
        retry_delay: float = RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._retry_delay = retry_delay
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            limits=httpx.Limits(max_connections=max_connections),
            transport=transport,
        )

    async def __aenter__(self) -> HttpFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- Public API ---------------------------------------------------------

    async def get_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        rate_limited: bool = False,
    ) -> Any:  # noqa: ANN401
        """Fetch a URL and parse the response as JSON.

        Args:
            url: The URL to fetch.
            headers: Extra request headers.
            rate_limited: Treat 403/429 as a rate-limit signal.

        Returns:
            Parsed JSON response (dict or list).

        Raises:
            RateLimitError: On 403/429 from a rate-limited API.
            FetchError: On other HTTP errors, exhausted retries or invalid JSON.
        """
        response = await self._get(url, headers=headers, rate_limited=rate_limited)
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(f"Invalid JSON from {url}: {exc}") from exc

    async def get_bytes(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        rate_limited: bool = False,
    ) -> bytes:
        """Fetch a URL and return the raw response body."""
        response = await self._get(url, headers=headers, rate_limited=rate_limited)
        return response.content

    async def get_text(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        rate_limited: bool = False,
    ) -> str:
        """Fetch a URL and return the response body as text."""
        response = await self._get(url, headers=headers, rate_limited=rate_limited)
        return response.text

    # -- Internals ----------------------------------------------------------

    async def _get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None,
        rate_limited: bool,
    ) -> httpx.Response:
        last_error: str = ""
        for attempt in range(MAX_ATTEMPTS):
            if attempt:
                delay = self._retry_delay * (2 ** (attempt - 1))
                logger.debug("Retrying %s in %.2fs (attempt %d)", url, delay, attempt + 1)
                await asyncio.sleep(delay)
            try:
                response = await self._client.get(url, headers=headers)
            except httpx.TransportError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.debug("Transport error for %s: %s", url, last_error)
                continue

            status = response.status_code
            if rate_limited and status in _RATE_LIMIT_STATUS_CODES:
                raise RateLimitError(RATE_LIMIT_MESSAGE)
            if status in _RETRY_STATUS_CODES:
                last_error = f"HTTP {status}"
                logger.debug("HTTP %d from %s", status, url)
                continue
            if not response.is_success:
                raise FetchError(f"HTTP {status} from {url}")
            return response

        raise FetchError(f"Failed to fetch {url} after {MAX_ATTEMPTS} attempts ({last_error})")
