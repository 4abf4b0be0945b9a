"""Group assignment algorithm."""

from __future__ import annotations

from .assignment import DEFAULT_SEED, AssignmentResult, GroupAssignmentSolver
from .feasibility import check_feasibility
from .improvement import GroupTally, SwapImprover, group_score
from .logging import PlacementLogger

__all__ = [
    "DEFAULT_SEED",
    "AssignmentResult",
    "GroupAssignmentSolver",
    "GroupTally",
    "PlacementLogger",
    "SwapImprover",
    "check_feasibility",
    "group_score",
]
