"""Converter configuration loading and validation."""

from pathr.configs.loader import (
    ConfigError,
    EmitterConfig,
    GCodeConfig,
    PathrConfig,
    SvgConfig,
    load_config,
)

__all__ = [
    "ConfigError",
    "EmitterConfig",
    "GCodeConfig",
    "PathrConfig",
    "SvgConfig",
    "load_config",
]
