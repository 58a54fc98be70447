"""
Upstream Fetcher

Fetches code and source-map text from the upstream build servers.

PRINCIPLES:
===========
1. Success means HTTP 200, nothing else
2. Non-200 bodies are kept verbatim (they carry build errors)
3. Transport failures are a separate failure kind
4. No retries, no timeout unless one is configured
"""

from __future__ import annotations
from typing import Optional
import logging

import httpx

from .errors import UpstreamNetworkError, UpstreamStatusError


logger = logging.getLogger(__name__)


class UpstreamFetcher:
    """
    Performs single HTTP GETs against upstream servers.

    Holds no per-request state: every call opens its own client, so
    concurrent fetches never share buffers or connections.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, uri: str) -> str:
        """
        GET ``uri`` and return the full body as text.

        Raises:
            UpstreamStatusError: the upstream answered with a status other than 200
            UpstreamNetworkError: the connection failed or the body could not
            be decoded
        """
        chunks = []

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream("GET", uri) as response:
                    async for chunk in response.aiter_text():
                        chunks.append(chunk)
                    status = response.status_code

        except httpx.TimeoutException as e:
            logger.warning("Timed out fetching %s", uri)
            raise UpstreamNetworkError(uri, f"timed out ({type(e).__name__})") from e

        except httpx.RequestError as e:
            logger.warning("Network error fetching %s: %s", uri, e)
            raise UpstreamNetworkError(uri, str(e) or type(e).__name__) from e

        body = "".join(chunks)
        logger.debug("GET %s -> %d (%d chars)", uri, status, len(body))

        if status != 200:
            raise UpstreamStatusError(uri, status, body)

        return body

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout
