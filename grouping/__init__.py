"""Camper grouping engine.

Partitions a camp's roster into activity groups, keeps friend clusters
together, detects constraint violations and manages the draft, reviewed
and finalized lifecycle of the result.
"""

from __future__ import annotations

from .engine import GroupingEngine
from .errors import (
    ConfigurationError,
    ConstraintViolation,
    FinalizationBlocked,
    GroupingError,
    GroupingFinalized,
    GroupingNotFound,
    InvalidOperation,
    InvalidTransition,
    InvariantViolation,
    ResolutionError,
    StaleVersion,
)
from .models import (
    AssignmentType,
    Camper,
    FriendCluster,
    Group,
    GroupingConfig,
    GroupingState,
    GroupingStatus,
    RawCamperRecord,
    Violation,
    ViolationSeverity,
    ViolationType,
)
from .overrides import CamperMove, MovePreview
from .repository import GroupingRepository, InMemoryGroupingRepository, PocketBaseGroupingRepository

__all__ = [
    "AssignmentType",
    "Camper",
    "CamperMove",
    "ConfigurationError",
    "ConstraintViolation",
    "FinalizationBlocked",
    "FriendCluster",
    "Group",
    "GroupingConfig",
    "GroupingEngine",
    "GroupingError",
    "GroupingFinalized",
    "GroupingNotFound",
    "GroupingRepository",
    "GroupingState",
    "GroupingStatus",
    "InMemoryGroupingRepository",
    "InvalidOperation",
    "InvalidTransition",
    "InvariantViolation",
    "MovePreview",
    "PocketBaseGroupingRepository",
    "RawCamperRecord",
    "ResolutionError",
    "StaleVersion",
    "Violation",
    "ViolationSeverity",
    "ViolationType",
]
