"""Configuration file and environment handling."""

from abiogenesis.config.loader import (
    Config,
    ConfigLoader,
    ConfigPathProvider,
    HomePathProvider,
    StaticPathProvider,
)

__all__ = [
    "Config",
    "ConfigLoader",
    "ConfigPathProvider",
    "HomePathProvider",
    "StaticPathProvider",
]
