"""
ConfigLoader - schema-validated configuration for grouping runs.

Resolution order for a key:
1. Explicit overrides passed to the loader
2. ``CONFIG_*`` environment variables
3. PocketBase ``config`` collection (when a client is given), cached
4. Schema default

Every value is type-converted and validated against the schema; invalid
values fail immediately instead of falling through to the next source.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from typing import Any, cast

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from grouping.models import GroupingConfig

from .errors import DatabaseUnavailableError, UnknownKeyError, ValidationError
from .schema import CONFIG_SCHEMA, get_grouping_fields
from .types import ConfigType

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Configuration loader for the grouping engine.

    Not a singleton: construct one per application (or per test) and inject
    it where needed.

    Usage:
        loader = ConfigLoader(pb_client=pb)
        config = loader.grouping_config()
        seed = loader.get_int("grouping.random_seed")

        # Tests
        loader = ConfigLoader(overrides={"grouping.num_groups": 2})
    """

    def __init__(
        self,
        pb_client: PocketBase | None = None,
        overrides: Mapping[str, Any] | None = None,
        cache_ttl_seconds: int = 300,
    ):
        """
        Initialize the config loader.

        Args:
            pb_client: PocketBase client. If None, the database is not consulted.
            overrides: Values taking precedence over every other source.
            cache_ttl_seconds: Cache TTL in seconds (default 5 minutes).
        """
        self._pb = pb_client
        self._cache_ttl = cache_ttl_seconds
        self._cache: dict[str, tuple[Any, float]] = {}
        self._overrides: dict[str, Any] = {}
        for key, value in (overrides or {}).items():
            self.set_override(key, value)

    def set_override(self, key: str, value: Any) -> None:
        """Set an explicit value for a key, validated immediately."""
        self._overrides[key] = self._checked(key, value, source="override")

    def _get_env_key(self, key: str) -> str:
        """Convert dot notation to environment variable name."""
        # grouping.max_group_size -> CONFIG_GROUPING_MAX_GROUP_SIZE
        return "CONFIG_" + key.upper().replace(".", "_")

    def _schema(self, key: str) -> Any:
        if key not in CONFIG_SCHEMA:
            raise UnknownKeyError(f"Unknown config key: '{key}'")
        return CONFIG_SCHEMA[key]

    def _checked(self, key: str, raw_value: Any, source: str) -> Any:
        schema = self._schema(key)
        try:
            typed_value = self._convert_type(raw_value, schema.config_type)
        except (ValueError, TypeError) as e:
            raise ValidationError(f"Config key '{key}' from {source} has invalid type: {e}") from e

        error = schema.validate(typed_value)
        if error:
            raise ValidationError(f"Config key '{key}' from {source}: {error}")
        return typed_value

    def get(self, key: str) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key (e.g., "grouping.max_group_size")

        Returns:
            The typed configuration value

        Raises:
            UnknownKeyError: If key is not in schema
            ValidationError: If value fails validation
            DatabaseUnavailableError: If PocketBase fails for a reason other than a missing record
        """
        schema = self._schema(key)

        if key in self._overrides:
            return self._overrides[key]

        # Environment overrides the database
        env_key = self._get_env_key(key)
        env_value = os.environ.get(env_key)
        if env_value is not None:
            return self._checked(key, env_value, source=f"environment variable {env_key}")

        if key in self._cache:
            value, timestamp = self._cache[key]
            if time.time() - timestamp < self._cache_ttl:
                return value

        raw_value = self._query_database_raw(key) if self._pb is not None else None
        if raw_value is None:
            value = schema.default
        else:
            value = self._checked(key, raw_value, source="database")

        self._cache[key] = (value, time.time())
        return value

    def get_int(self, key: str) -> int:
        """Get an integer config value."""
        return cast(int, self.get(key))

    def get_float(self, key: str) -> float:
        """Get a float config value."""
        return cast(float, self.get(key))

    def get_bool(self, key: str) -> bool:
        """Get a boolean config value."""
        return cast(bool, self.get(key))

    def get_str(self, key: str) -> str:
        """Get a string config value."""
        return cast(str, self.get(key))

    def grouping_config(self, **field_overrides: Any) -> GroupingConfig:
        """Build a GroupingConfig from every schema key that maps to a field.

        Keyword arguments are GroupingConfig field names and win over all
        configured sources.
        """
        values = {field: self.get(key) for field, key in get_grouping_fields().items()}
        values.update(field_overrides)
        return GroupingConfig(**values)

    def random_seed(self) -> int:
        return self.get_int("grouping.random_seed")

    def _query_database_raw(self, key: str) -> Any | None:
        """
        Query PocketBase for a config value.

        Args:
            key: The dot-notation config key

        Returns:
            The raw value from database, or None if not found
        """
        parts = key.split(".")

        if len(parts) == 1:
            category, subcategory, config_key = "general", None, parts[0]
        elif len(parts) == 2:
            category, subcategory, config_key = parts[0], None, parts[1]
        elif len(parts) == 3:
            category, subcategory, config_key = parts[0], parts[1], parts[2]
        else:
            category = parts[0]
            subcategory = "_".join(parts[1:-1])
            config_key = parts[-1]

        filter_str = f'category = "{category}" && config_key = "{config_key}"'
        if subcategory:
            filter_str += f' && subcategory = "{subcategory}"'
        else:
            filter_str += ' && (subcategory = null || subcategory = "")'

        try:
            record = self._pb.collection("config").get_first_list_item(filter_str)  # type: ignore[union-attr]
        except ClientResponseError as e:
            if e.status == 404:
                return None
            raise DatabaseUnavailableError(f"Database error fetching config key '{key}': {e}") from e
        return getattr(record, "value", None)

    def _convert_type(self, value: Any, config_type: ConfigType) -> Any:
        """Convert a raw value to the specified type."""
        if config_type == ConfigType.INT:
            if isinstance(value, bool):
                raise TypeError("boolean is not an integer")
            return int(value)
        elif config_type == ConfigType.FLOAT:
            return float(value)
        elif config_type == ConfigType.BOOL:
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                return value.lower() in ("true", "1", "yes", "on")
            return bool(value)
        elif config_type == ConfigType.STRING:
            return str(value)
        else:
            return value

    def invalidate_cache(self, key: str | None = None) -> None:
        """
        Invalidate cached values.

        Args:
            key: Specific key to invalidate, or None for all
        """
        if key is None:
            self._cache.clear()
        elif key in self._cache:
            del self._cache[key]
