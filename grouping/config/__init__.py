"""
Configuration management for the grouping engine.

Usage:
    from grouping.config import ConfigLoader

    loader = ConfigLoader(pb_client=pb)
    config = loader.grouping_config()
    max_size = loader.get_int("grouping.max_group_size")
"""

from __future__ import annotations

from .errors import (
    ConfigError,
    DatabaseUnavailableError,
    UnknownKeyError,
    ValidationError,
)
from .loader import ConfigLoader
from .schema import CONFIG_SCHEMA, get_grouping_fields, get_schema_key, validate_key
from .types import ConfigKey, ConfigType

__all__ = [
    # Main loader
    "ConfigLoader",
    # Error classes
    "ConfigError",
    "ValidationError",
    "DatabaseUnavailableError",
    "UnknownKeyError",
    # Schema
    "CONFIG_SCHEMA",
    "ConfigKey",
    "ConfigType",
    "get_grouping_fields",
    "get_schema_key",
    "validate_key",
]
