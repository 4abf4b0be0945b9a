"""Configuration schema registry.

Defines all valid configuration keys with their types, defaults and
validation rules. This is the single source of truth for configuration
structure.
"""

from __future__ import annotations

from typing import Any

from .types import ConfigKey, ConfigType

# =============================================================================
# CONFIGURATION SCHEMA REGISTRY
#
# All configuration keys must be defined here. Unknown keys will be rejected.
# =============================================================================

CONFIG_SCHEMA: dict[str, ConfigKey] = {
    # =========================================================================
    # GROUP SHAPE
    # =========================================================================
    "grouping.num_groups": ConfigKey(
        key="grouping.num_groups",
        config_type=ConfigType.INT,
        default=4,
        description="Number of groups to create on an auto-grouping run",
        field="num_groups",
        min_value=1,
        max_value=50,
    ),
    "grouping.max_group_size": ConfigKey(
        key="grouping.max_group_size",
        config_type=ConfigType.INT,
        default=12,
        description="Maximum campers per group (HARD)",
        field="max_group_size",
        min_value=1,
        max_value=200,
    ),
    "grouping.max_grade_spread": ConfigKey(
        key="grouping.max_grade_spread",
        config_type=ConfigType.INT,
        default=2,
        description="Maximum grade difference inside a group (HARD)",
        field="max_grade_spread",
        min_value=0,
        max_value=13,
    ),
    # =========================================================================
    # ROSTER NORMALIZATION
    # =========================================================================
    "grouping.school_year_cutoff_month": ConfigKey(
        key="grouping.school_year_cutoff_month",
        config_type=ConfigType.INT,
        default=9,
        description="Month the school year starts, for grade-from-DOB",
        field="school_year_cutoff_month",
        min_value=1,
        max_value=12,
    ),
    "grouping.late_registration_days": ConfigKey(
        key="grouping.late_registration_days",
        config_type=ConfigType.INT,
        default=7,
        description="Registrations fewer than this many days before camp are flagged late",
        field="late_registration_days",
        min_value=0,
    ),
    "grouping.random_seed": ConfigKey(
        key="grouping.random_seed",
        config_type=ConfigType.INT,
        default=42,
        description="Seed for breaking exact ties in cluster ordering",
    ),
    "grouping.friends.require_mutual": ConfigKey(
        key="grouping.friends.require_mutual",
        config_type=ConfigType.BOOL,
        default=False,
        description="Only reciprocated friend requests form clusters",
        field="require_mutual_friends",
    ),
    # =========================================================================
    # VIOLATION CHECKS
    # =========================================================================
    "check.size.enabled": ConfigKey(
        key="check.size.enabled",
        config_type=ConfigType.BOOL,
        default=True,
        description="Report groups over max size",
        field="check_size",
    ),
    "check.grade_spread.enabled": ConfigKey(
        key="check.grade_spread.enabled",
        config_type=ConfigType.BOOL,
        default=True,
        description="Report groups over max grade spread",
        field="check_grade_spread",
    ),
    "check.friend_split.enabled": ConfigKey(
        key="check.friend_split.enabled",
        config_type=ConfigType.BOOL,
        default=True,
        description="Report friend clusters split across groups",
        field="check_friend_split",
    ),
    "check.medical_concentration.enabled": ConfigKey(
        key="check.medical_concentration.enabled",
        config_type=ConfigType.BOOL,
        default=True,
        description="Report groups with too many medical flags",
        field="check_medical_concentration",
    ),
    "check.medical_concentration.threshold": ConfigKey(
        key="check.medical_concentration.threshold",
        config_type=ConfigType.FLOAT,
        default=0.5,
        description="Fraction of a group with medical flags above which a violation is reported",
        field="medical_threshold",
        min_value=0.0,
        max_value=1.0,
    ),
    "check.unassigned.enabled": ConfigKey(
        key="check.unassigned.enabled",
        config_type=ConfigType.BOOL,
        default=True,
        description="Report campers left out of every group",
        field="check_unassigned",
    ),
    # =========================================================================
    # IMPROVEMENT WEIGHTS
    # =========================================================================
    "weight.grade_spread": ConfigKey(
        key="weight.grade_spread",
        config_type=ConfigType.INT,
        default=10,
        description="Weight of within-group grade dispersion in the improvement score",
        field="grade_spread_weight",
        min_value=0,
    ),
    "weight.medical_concentration": ConfigKey(
        key="weight.medical_concentration",
        config_type=ConfigType.INT,
        default=5,
        description="Weight of medical flags above threshold in the improvement score",
        field="medical_weight",
        min_value=0,
    ),
    "improvement.max_swaps_per_camper": ConfigKey(
        key="improvement.max_swaps_per_camper",
        config_type=ConfigType.INT,
        default=2,
        description="Swap budget of the improvement pass, per camper (0 disables it)",
        field="improvement_swaps_per_camper",
        min_value=0,
    ),
    "improvement.max_passes": ConfigKey(
        key="improvement.max_passes",
        config_type=ConfigType.INT,
        default=10,
        description="Maximum passes of the improvement pass",
        field="improvement_max_passes",
        min_value=0,
    ),
}


def get_schema_key(key: str) -> ConfigKey | None:
    """
    Get the schema definition for a config key.

    Args:
        key: The dot-notation config key

    Returns:
        ConfigKey if found, None if unknown
    """
    return CONFIG_SCHEMA.get(key)


def get_grouping_fields() -> dict[str, str]:
    """Map GroupingConfig field name -> config key."""
    return {schema.field: key for key, schema in CONFIG_SCHEMA.items() if schema.field}


def validate_key(key: str, value: Any) -> str | None:
    """
    Validate a value against its schema.

    Args:
        key: The config key
        value: The value to validate

    Returns:
        None if valid, error message if invalid
    """
    schema = CONFIG_SCHEMA.get(key)
    if schema is None:
        return f"Unknown config key: {key}"
    return schema.validate(value)
