"""
Module Request Resolvers

Capability consumed by the application bundler: given a module request
string, a resolver either declines (returns None) or returns a JavaScript
expression to use in place of the module.

The aggregation router carries one (``AggregationRouter.resolver``) for
upstream tooling; it never calls it while serving.
"""

from __future__ import annotations
from typing import Callable, Optional
import json


ModuleResolver = Callable[[str], Optional[str]]

STATIC_IMAGE_PREFIX = "image!"


def resolve_static_image(request: str) -> Optional[str]:
    """Turn ``image!name`` requests into a static image source object."""
    if not request.startswith(STATIC_IMAGE_PREFIX):
        return None
    return json.dumps({"uri": request[len(STATIC_IMAGE_PREFIX):], "isStatic": True})


def chain_resolvers(*resolvers: ModuleResolver) -> ModuleResolver:
    """Combine resolvers; the first one that handles a request wins."""
    def resolve(request: str) -> Optional[str]:
        for resolver in resolvers:
            replacement = resolver(request)
            if replacement is not None:
                return replacement
        return None

    return resolve
