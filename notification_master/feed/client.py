"""
FeedClient — HTTP GET of the remote notification feed.

Pure per call: no state besides the pooled httpx client. Every failure
(connection refused, timeout, non-2xx) surfaces as NetworkError, which the
cycle maps to CycleOutcome.RETRY.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from notification_master.core.errors import NetworkError

if TYPE_CHECKING:
    from notification_master.scheduler.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def validate_feed_url(url: str | None) -> str:
    """
    Return the stripped url if it is an absolute http(s) URL with a host.

    Raises ValueError otherwise.
    """
    if url is None or not url.strip():
        raise ValueError("URL cannot be null or empty")
    url = url.strip()
    try:
        parsed = httpx.URL(url)
    except Exception as e:
        raise ValueError(f"Malformed URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValueError(f"URL must be an absolute http(s) URL: {url!r}")
    return url


class FeedClient:
    """
    Usage:
        client = FeedClient(connect_timeout=30, read_timeout=30)
        body = await client.fetch("https://example.com/notifications.php")
        await client.aclose()

    transport is injectable so tests can use httpx.MockTransport.
    """

    def __init__(
        self,
        connect_timeout: float = 30.0,
        read_timeout: float = 30.0,
        user_agent: str = "notification-master/0.1",
        follow_redirects: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=connect_timeout,
            pool=connect_timeout,
        )
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}
        self._follow_redirects = follow_redirects
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                follow_redirects=self._follow_redirects,
                transport=self._transport,
            )
        return self._client

    async def fetch(
        self, url: str, token: CancellationToken | None = None
    ) -> bytes:
        """GET url and return the raw body. Raises NetworkError or CycleCancelled."""
        try:
            url = validate_feed_url(url)
        except ValueError as e:
            raise NetworkError(str(e), url=url or "", retryable=False) from e

        if token is not None:
            token.raise_if_cancelled()
            return await token.run(self._get(url))
        return await self._get(url)

    async def _get(self, url: str) -> bytes:
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Feed request timed out: {url}", url=url) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Cannot reach feed at {url}: {e}", url=url) from e

        if not response.is_success:
            logger.warning(f"Polling request failed: {response.status_code} from {url}")
            raise NetworkError(
                f"Feed returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        logger.debug(f"Fetched {len(response.content)} bytes from {url}")
        return response.content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
