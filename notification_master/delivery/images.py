"""
ImageLoader — fetches the picture for an image-style notification.

Failures return None; the notification is then updated without a picture.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024


class ImageLoader:
    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def load(self, url: str) -> bytes | None:
        client = await self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Image load failed for {url}: {e}")
            return None

        if len(response.content) > MAX_IMAGE_BYTES:
            logger.warning(f"Image at {url} exceeds {MAX_IMAGE_BYTES} bytes, skipped")
            return None
        return response.content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
