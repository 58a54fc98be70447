"""
Aggregator Contracts

Immutable configuration and origin types shared by every component.

BOUNDARY:
=========
- Built once at startup, never mutated afterwards
- Passed explicitly into constructors, never read from globals
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Optional

from .errors import ConfigError


# =============================================================================
# ENUMS
# =============================================================================

class UpstreamRole(Enum):
    """Which half of the combined bundle an upstream produces."""
    RUNTIME = "runtime"          # entry runtime, concatenated first
    APPLICATION = "application"  # application code, concatenated second


# =============================================================================
# UPSTREAM ORIGINS
# =============================================================================

@dataclass(frozen=True)
class UpstreamOrigin:
    """One backend build server and the two resources it serves."""
    role: UpstreamRole
    base_url: str
    code_path: str
    map_path: str

    @property
    def name(self) -> str:
        return self.role.value

    @property
    def code_url(self) -> str:
        return self.base_url + self.code_path

    @property
    def map_url(self) -> str:
        return self.base_url + self.map_path


# =============================================================================
# SERVER CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class ServerConfig:
    """
    Startup configuration.

    Defaults match a React Native packager on 8081 and a webpack dev
    server on 8082, aggregated on 8080.
    """
    hostname: str = "localhost"
    port: int = 8080
    packager_port: int = 8081
    webpack_port: int = 8082
    entry: str = "index.ios"
    hot: bool = False
    fetch_timeout: Optional[float] = None
    packager_command: Optional[str] = None
    webpack_command: Optional[str] = None
    startup_timeout: float = 30.0
    entry_dir: Optional[str] = None

    def __post_init__(self):
        for name in ("port", "packager_port", "webpack_port"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 < value < 65536:
                raise ConfigError(f"{name} must be a TCP port (1-65535), got {value!r}")

        if not self.entry or "/" in self.entry:
            raise ConfigError(f"entry must be a non-empty module name without '/', got {self.entry!r}")

        if not self.hostname:
            raise ConfigError("hostname must not be empty")

        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            raise ConfigError(f"fetch_timeout must be positive, got {self.fetch_timeout!r}")

        if self.startup_timeout <= 0:
            raise ConfigError(f"startup_timeout must be positive, got {self.startup_timeout!r}")

    def with_overrides(self, **overrides) -> ServerConfig:
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown config fields: {', '.join(sorted(unknown))}")

        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    # -------------------------------------------------------------------------
    # Derived endpoints
    # -------------------------------------------------------------------------

    @property
    def bundle_path(self) -> str:
        return f"/{self.entry}.bundle"

    @property
    def map_path(self) -> str:
        return f"/{self.entry}.map"

    @property
    def packager_url(self) -> str:
        return f"http://{self.hostname}:{self.packager_port}"

    @property
    def webpack_url(self) -> str:
        return f"http://{self.hostname}:{self.webpack_port}"

    def runtime_origin(self) -> UpstreamOrigin:
        """Upstream A: the React Native packager."""
        return UpstreamOrigin(
            role=UpstreamRole.RUNTIME,
            base_url=self.packager_url,
            code_path=f"/{self.entry}.bundle",
            map_path=f"/{self.entry}.map",
        )

    def application_origin(self) -> UpstreamOrigin:
        """Upstream B: the webpack dev server."""
        return UpstreamOrigin(
            role=UpstreamRole.APPLICATION,
            base_url=self.webpack_url,
            code_path=f"/{self.entry}.js",
            map_path=f"/{self.entry}.js.map",
        )
