"""
Unassigned Camper - a registered camper not placed in any group.

HARD violation: a roster cannot be finalized with campers left out unless
the director acknowledges it.
"""

from __future__ import annotations

from grouping.models import Violation, ViolationSeverity, ViolationType

from .base import DetectionContext


def find_unassigned_violations(ctx: DetectionContext) -> list[Violation]:
    violations = []
    for camper_id in ctx.state.unassigned_ids:
        camper = ctx.campers.get(camper_id)
        name = camper.full_name if camper else camper_id
        violations.append(
            Violation(
                key=f"{ViolationType.UNASSIGNED_CAMPER.value}:{camper_id}",
                type=ViolationType.UNASSIGNED_CAMPER,
                severity=ViolationSeverity.HARD,
                camper_ids=[camper_id],
                group_ids=[],
                message=f"{name} is not assigned to any group",
            )
        )
    return violations
