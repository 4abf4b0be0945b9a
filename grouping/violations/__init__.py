"""
Violation checks for grouping states.

Each module contains one check; ``detect_violations`` runs the enabled ones.
"""

from .base import DetectionContext, ViolationCheck
from .detector import detect_violations, enabled_checks
from .friend_split import find_friend_split_violations
from .grade_spread import find_grade_spread_violations
from .medical import find_medical_violations
from .size import find_size_violations
from .unassigned import find_unassigned_violations

__all__ = [
    "DetectionContext",
    "ViolationCheck",
    "detect_violations",
    "enabled_checks",
    "find_friend_split_violations",
    "find_grade_spread_violations",
    "find_medical_violations",
    "find_size_violations",
    "find_unassigned_violations",
]
