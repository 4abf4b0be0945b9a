"""
Group Size - a group holding more campers than the configured maximum.

HARD violation: blocks finalization unless acknowledged.
"""

from __future__ import annotations

from grouping.models import Violation, ViolationSeverity, ViolationType

from .base import DetectionContext


def find_size_violations(ctx: DetectionContext) -> list[Violation]:
    max_size = ctx.config.max_group_size
    violations = []
    for group in ctx.groups:
        count = ctx.stats[group.id].count
        if count <= max_size:
            continue
        violations.append(
            Violation(
                key=f"{ViolationType.SIZE_EXCEEDED.value}:{group.id}",
                measure=count,
                type=ViolationType.SIZE_EXCEEDED,
                severity=ViolationSeverity.HARD,
                camper_ids=list(group.member_ids),
                group_ids=[group.id],
                message=f"{group.name} has {count} campers (max {max_size})",
            )
        )
    return violations
