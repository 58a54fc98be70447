"""
Aggregation Failures

Every way a request can fail is a typed exception here.
Failures are converted to HTTP responses only at the request boundary
(see ``router.py``); nothing below that boundary retries or degrades.
"""

from __future__ import annotations
from typing import Optional


class AggregationError(Exception):
    """Base class for all bundle aggregation failures."""

    status_code = 500

    @property
    def detail(self) -> str:
        """Text written to the client when this failure ends a request."""
        return str(self)


class ConfigError(AggregationError):
    """Invalid server configuration value."""


class UpstreamNetworkError(AggregationError):
    """An upstream could not be reached, or the connection broke."""

    status_code = 502

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class UpstreamStatusError(AggregationError):
    """
    An upstream answered with a non-200 status.

    The upstream body (usually a build error page) is kept verbatim so the
    client sees the underlying build failure.
    """

    status_code = 502

    def __init__(self, url: str, upstream_status: int, body: str):
        super().__init__(f"{url} responded with HTTP {upstream_status}")
        self.url = url
        self.upstream_status = upstream_status
        self.body = body

    @property
    def detail(self) -> str:
        return self.body


class MapParseError(AggregationError):
    """A fetched source map could not be parsed."""

    def __init__(self, side: str, reason: str, url: Optional[str] = None):
        where = f" ({url})" if url else ""
        super().__init__(f"Could not parse {side} source map{where}: {reason}")
        self.side = side
        self.reason = reason
        self.url = url


class RouteNotFoundError(AggregationError):
    """Request path matches neither combined endpoint."""

    status_code = 404

    def __init__(self, method: str, path: str):
        super().__init__(f"Cannot {method} {path}")
        self.method = method
        self.path = path
