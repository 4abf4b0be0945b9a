"""Error taxonomy for the grouping engine.

Every failure that crosses the engine boundary is one of these classes so
callers (the API layer, scripts) can map them to responses without string
matching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Violation


class GroupingError(Exception):
    """Base exception for all grouping engine errors."""

    pass


class ConfigurationError(GroupingError):
    """Raised when grouping configuration is invalid (e.g. zero groups)."""

    pass


class ResolutionError(GroupingError):
    """Raised when roster input cannot be resolved into campers or clusters."""

    pass


class InvalidOperation(GroupingError):
    """Raised when a command's preconditions do not hold."""

    pass


class InvalidTransition(GroupingError):
    """Raised on an illegal lifecycle status transition."""

    pass


class GroupingNotFound(GroupingError):
    """Raised when no grouping state exists for a camp."""

    pass


class InvariantViolation(GroupingError):
    """Raised when a mutation would leave the aggregate inconsistent."""

    pass


class ConstraintViolation(GroupingError):
    """Raised when a move introduces an unacknowledged hard violation."""

    def __init__(self, message: str, violations: list[Violation], move_index: int | None = None):
        super().__init__(message)
        self.violations = violations
        self.move_index = move_index


class StaleVersion(GroupingError):
    """Raised when a write is based on an out-of-date state version."""

    def __init__(self, expected: int | None, actual: int | None):
        super().__init__(f"Stale version: expected {expected}, current is {actual}")
        self.expected = expected
        self.actual = actual


class GroupingFinalized(GroupingError):
    """Raised when a mutation is attempted on a finalized grouping."""

    pass


class FinalizationBlocked(GroupingError):
    """Raised when finalize is attempted with unacknowledged hard violations."""

    def __init__(self, violations: list[Violation]):
        super().__init__(f"Cannot finalize: {len(violations)} unacknowledged hard violation(s)")
        self.violations = violations
