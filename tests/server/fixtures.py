"""
Upstream Fixtures

In-process fake upstreams built on ``httpx.MockTransport``.
"""

from typing import Dict, List, Tuple
import asyncio

import httpx

from bundle_aggregator.contracts import ServerConfig
from bundle_aggregator.fetcher import UpstreamFetcher


CONFIG = ServerConfig(entry="index")

RUNTIME_CODE_URL = "http://localhost:8081/index.bundle"
RUNTIME_MAP_URL = "http://localhost:8081/index.map"
APPLICATION_CODE_URL = "http://localhost:8082/index.js"
APPLICATION_MAP_URL = "http://localhost:8082/index.js.map"

RUNTIME_CODE = "var A=1;\n"
APPLICATION_CODE = "var B=2;\n//# sourceMappingURL=b.map\n"

RUNTIME_MAP = '{"version":3,"sources":["runtime.js"],"names":[],"mappings":"AAAA"}'
APPLICATION_MAP = '{"version":3,"sources":["app.js"],"names":[],"mappings":"AAAA"}'


def healthy_upstreams() -> Dict[str, Tuple[int, str]]:
    return {
        RUNTIME_CODE_URL: (200, RUNTIME_CODE),
        RUNTIME_MAP_URL: (200, RUNTIME_MAP),
        APPLICATION_CODE_URL: (200, APPLICATION_CODE),
        APPLICATION_MAP_URL: (200, APPLICATION_MAP),
    }


class FakeUpstreams:
    """
    Serves canned (status, body) pairs per URL and records every request.

    URLs missing from ``responses`` behave like a refused connection.
    """

    def __init__(self, responses: Dict[str, Tuple[int, str]]):
        self.responses = responses
        self.requested: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        if url not in self.responses:
            raise httpx.ConnectError("Connection refused", request=request)
        status, body = self.responses[url]
        return httpx.Response(status, text=body)

    def fetcher(self) -> UpstreamFetcher:
        return UpstreamFetcher(transport=httpx.MockTransport(self.handler))


class TrackingFetcher(UpstreamFetcher):
    """Fetcher with per-URL delays that records peak concurrency."""

    def __init__(self, responses: Dict[str, Tuple[int, str]], delays: Dict[str, float] = None):
        super().__init__()
        self._upstreams = FakeUpstreams(responses)
        self._inner = self._upstreams.fetcher()
        self._delays = delays or {}
        self.in_flight = 0
        self.peak = 0

    async def fetch(self, uri: str) -> str:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self._delays.get(uri, 0.01))
            return await self._inner.fetch(uri)
        finally:
            self.in_flight -= 1
