"""Configuration error classes.

All config-related exceptions are ConfigurationErrors, so the engine and
API treat a bad config value the same way as a bad run configuration.
"""

from __future__ import annotations

from grouping.errors import ConfigurationError


class ConfigError(ConfigurationError):
    """Base exception for configuration loading errors."""

    pass


class ValidationError(ConfigError):
    """Raised when a config value fails validation."""

    pass


class DatabaseUnavailableError(ConfigError):
    """Raised when the configuration database cannot be reached."""

    pass


class UnknownKeyError(ConfigError):
    """Raised when an unknown config key is requested."""

    pass
