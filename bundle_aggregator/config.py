"""
Configuration Loading

Builds the immutable ``ServerConfig`` from environment variables.
Command line options are layered on top by ``cli.py`` through
``ServerConfig.with_overrides``.
"""

from __future__ import annotations
from typing import Callable, Dict, Mapping, Optional
import os

from .contracts import ServerConfig
from .errors import ConfigError


ENV_PREFIX = "BUNDLE_AGGREGATOR_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


# field name -> (environment suffix, converter)
_ENV_FIELDS: Dict[str, tuple] = {
    "hostname": ("HOSTNAME", str),
    "port": ("PORT", int),
    "packager_port": ("PACKAGER_PORT", int),
    "webpack_port": ("WEBPACK_PORT", int),
    "entry": ("ENTRY", str),
    "hot": ("HOT", parse_bool),
    "fetch_timeout": ("FETCH_TIMEOUT", float),
    "packager_command": ("PACKAGER_CMD", str),
    "webpack_command": ("WEBPACK_CMD", str),
    "startup_timeout": ("STARTUP_TIMEOUT", float),
    "entry_dir": ("ENTRY_DIR", str),
}


def env_name(field_name: str) -> str:
    return ENV_PREFIX + _ENV_FIELDS[field_name][0]


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    base: Optional[ServerConfig] = None
) -> ServerConfig:
    """
    Read ``BUNDLE_AGGREGATOR_*`` variables over the defaults.

    Raises:
        ConfigError: a variable cannot be converted or fails validation
    """
    if environ is None:
        environ = os.environ

    overrides = {}
    for field_name, (suffix, convert) in _ENV_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is None:
            continue
        overrides[field_name] = _convert(ENV_PREFIX + suffix, raw, convert)

    return (base or ServerConfig()).with_overrides(**overrides)


def _convert(name: str, raw: str, convert: Callable[[str], object]) -> object:
    try:
        return convert(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r} ({e})") from e
