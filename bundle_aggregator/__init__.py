"""
Bundle Aggregator

Serves the output of two independent JavaScript build servers as one
bundle and one source map.

Components (leaf to root):
- vlq / sourcemap: decoded source-map model
- fetcher: upstream HTTP GETs
- combiner: code concatenation and source-map merge
- router: FastAPI app joining the above per request
- lifecycle: upstream processes and entry stub workspace
- resolvers: module request resolvers carried by the router
"""

from .combiner import BundleCombiner, strip_reference_comments
from .config import load_config
from .contracts import ServerConfig, UpstreamOrigin, UpstreamRole
from .errors import (
    AggregationError,
    ConfigError,
    MapParseError,
    RouteNotFoundError,
    UpstreamNetworkError,
    UpstreamStatusError,
)
from .fetcher import UpstreamFetcher
from .lifecycle import EntryWorkspace, UpstreamSupervisor
from .resolvers import ModuleResolver, chain_resolvers, resolve_static_image
from .router import AggregationRouter, create_app
from .sourcemap import Mapping, OriginalPosition, SourceMap, SourceMapError

__all__ = [
    # Combiner
    'BundleCombiner',
    'strip_reference_comments',
    # Configuration
    'ServerConfig',
    'UpstreamOrigin',
    'UpstreamRole',
    'load_config',
    # Errors
    'AggregationError',
    'ConfigError',
    'MapParseError',
    'RouteNotFoundError',
    'UpstreamNetworkError',
    'UpstreamStatusError',
    # Runtime
    'UpstreamFetcher',
    'AggregationRouter',
    'create_app',
    'EntryWorkspace',
    'UpstreamSupervisor',
    # Resolvers
    'ModuleResolver',
    'chain_resolvers',
    'resolve_static_image',
    # Source maps
    'Mapping',
    'OriginalPosition',
    'SourceMap',
    'SourceMapError',
]
