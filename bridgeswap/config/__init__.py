"""Configuration utilities for the bridge-and-swap route."""

from .loader import (
    ApiUrlsConfig,
    ChainConfig,
    ConfigError,
    DefaultsConfig,
    RouteConfig,
    RuntimeSettings,
    TokenConfig,
    build_config,
    load_config,
    load_settings,
    parse_units,
)

__all__ = [
    "ApiUrlsConfig",
    "ChainConfig",
    "ConfigError",
    "DefaultsConfig",
    "RouteConfig",
    "RuntimeSettings",
    "TokenConfig",
    "build_config",
    "load_config",
    "load_settings",
    "parse_units",
]
