"""
Bundle Aggregator: Aggregation Router
=====================================

HTTP surface serving the runtime and application bundles as one.

Endpoints:
- GET /{entry}.bundle  -> combined JavaScript
- GET /{entry}.map     -> combined source map
- anything else        -> 404 "Cannot GET {path}"

Every request fetches its inputs afresh (no cache), waits for all of
them, and only then combines. A failed fetch decides the response; the
other fetches are left to finish and their results are dropped.

Usage:
    uvicorn bundle_aggregator.router:app_from_env --factory
"""
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from .combiner import BundleCombiner
from .config import load_config
from .contracts import ServerConfig
from .errors import AggregationError, RouteNotFoundError
from .fetcher import UpstreamFetcher
from .lifecycle import UpstreamSupervisor
from .resolvers import ModuleResolver, resolve_static_image


logger = logging.getLogger(__name__)

JAVASCRIPT_MEDIA_TYPE = "application/javascript; charset=utf-8"
JSON_MEDIA_TYPE = "application/json"


# =============================================================================
# REQUEST LOGIC
# =============================================================================

class AggregationRouter:
    """
    Fetch-all-then-combine request handlers.

    Holds only immutable configuration and stateless collaborators, so
    concurrent requests stay fully isolated.
    """

    def __init__(
        self,
        config: ServerConfig,
        fetcher: Optional[UpstreamFetcher] = None,
        combiner: Optional[BundleCombiner] = None,
        resolver: Optional[ModuleResolver] = None
    ):
        self._config = config
        self._resolver = resolver or resolve_static_image
        self._fetcher = fetcher or UpstreamFetcher(timeout=config.fetch_timeout)
        self._combiner = combiner or BundleCombiner()
        self._runtime = config.runtime_origin()
        self._application = config.application_origin()

    async def bundle(self) -> str:
        """Combined code for ``/{entry}.bundle``."""
        runtime_code, application_code = await asyncio.gather(
            self._fetcher.fetch(self._runtime.code_url),
            self._fetcher.fetch(self._application.code_url),
        )
        return self._combiner.combine_code(runtime_code, application_code, self._config.map_path)

    async def source_map(self) -> str:
        """Combined source map for ``/{entry}.map``."""
        runtime_code, runtime_map, application_code, application_map = await asyncio.gather(
            self._fetcher.fetch(self._runtime.code_url),
            self._fetcher.fetch(self._runtime.map_url),
            self._fetcher.fetch(self._application.code_url),
            self._fetcher.fetch(self._application.map_url),
        )
        return self._combiner.combine_map(
            runtime_code, runtime_map, application_code, application_map,
            map_url_a=self._runtime.map_url,
            map_url_b=self._application.map_url,
        )

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def resolver(self) -> ModuleResolver:
        """Module request resolver handed to the application bundler."""
        return self._resolver


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    config: ServerConfig,
    fetcher: Optional[UpstreamFetcher] = None,
    supervisor: Optional[UpstreamSupervisor] = None,
    resolver: Optional[ModuleResolver] = None
) -> FastAPI:
    """
    Build the FastAPI application for ``config``.

    When a supervisor is given, the upstreams are launched and awaited
    before the first request is accepted and stopped on shutdown.
    """
    router = AggregationRouter(config, fetcher=fetcher, resolver=resolver)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if supervisor is None:
            yield
            return

        await supervisor.start()
        try:
            yield
        finally:
            await supervisor.stop()

    app = FastAPI(
        title="Bundle Aggregator",
        version="0.1.0",
        description="Serves two upstream bundles as one bundle and one source map",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.router = router

    # Bundles are loaded from device/simulator origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(AggregationError)
    async def handle_aggregation_error(request: Request, exc: AggregationError):
        if isinstance(exc, RouteNotFoundError):
            logger.info("%s", exc)
        else:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return PlainTextResponse(exc.detail, status_code=exc.status_code)

    async def serve_bundle():
        return Response(await router.bundle(), media_type=JAVASCRIPT_MEDIA_TYPE)

    async def serve_source_map():
        return Response(await router.source_map(), media_type=JSON_MEDIA_TYPE)

    app.add_api_route(config.bundle_path, serve_bundle, methods=["GET"])
    app.add_api_route(config.map_path, serve_source_map, methods=["GET"])

    @app.api_route("/{path:path}", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
    async def unmatched(request: Request, path: str):
        raise RouteNotFoundError(request.method, request.url.path)

    return app


def app_from_env() -> FastAPI:
    """uvicorn factory: configuration from ``BUNDLE_AGGREGATOR_*`` variables."""
    config = load_config()
    return create_app(config, supervisor=UpstreamSupervisor(config))
