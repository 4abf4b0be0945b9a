"""
Grade Spread - the grade range inside a group exceeds the configured maximum.

HARD violation. Only the campers at the extreme grades are listed as
affected, since moving any one of them is what resolves it.
"""

from __future__ import annotations

from grouping.models import Violation, ViolationSeverity, ViolationType
from grouping.normalizer import format_grade_range

from .base import DetectionContext


def find_grade_spread_violations(ctx: DetectionContext) -> list[Violation]:
    max_spread = ctx.config.max_grade_spread
    violations = []
    for group in ctx.groups:
        stats = ctx.stats[group.id]
        if stats.count == 0 or stats.grade_spread <= max_spread:
            continue
        extremes = [
            cid
            for cid in group.member_ids
            if cid in ctx.campers and ctx.campers[cid].grade in (stats.min_grade, stats.max_grade)
        ]
        violations.append(
            Violation(
                key=f"{ViolationType.GRADE_SPREAD_EXCEEDED.value}:{group.id}",
                measure=stats.grade_spread,
                type=ViolationType.GRADE_SPREAD_EXCEEDED,
                severity=ViolationSeverity.HARD,
                camper_ids=extremes,
                group_ids=[group.id],
                message=(
                    f"{group.name} spans {format_grade_range(stats.min_grade, stats.max_grade)} "
                    f"({stats.grade_spread} grades, max {max_spread})"
                ),
            )
        )
    return violations
