"""
Fetch documents and archives from a remote Composer repository.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from composer_repo.domain.exceptions import UpstreamError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class UpstreamClient:
    """
    Thin async HTTP client for remote repositories.

    Transport failures are retried with a linear back-off; HTTP error
    responses are not.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delay: float = 1.0,
    ):
        self.timeout = timeout
        self.transport = transport
        self.retry_delay = retry_delay

    async def fetch(self, url: str) -> Optional[bytes]:
        """
        GET ``url`` and return the body, or None if the remote answers 404.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                async with httpx.AsyncClient(
                    follow_redirects=True, timeout=self.timeout, transport=self.transport
                ) as client:
                    logger.debug(f"Fetching {url}")
                    response = await client.get(url)
                break
            except httpx.TransportError as e:
                if attempt < MAX_ATTEMPTS:
                    logger.warning(f"Fetching {url} failed (attempt {attempt}/{MAX_ATTEMPTS}): {e}. Retrying...")
                    await asyncio.sleep(self.retry_delay * attempt)
                else:
                    raise UpstreamError(f"Failed to fetch {url}: {e}") from e

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(f"Remote answered {response.status_code} for {url}") from e
        return response.content
