"""
Medical Concentration - too large a share of a group has medical notes or allergies.

SOFT violation: staff can still supervise, but directors should know.
"""

from __future__ import annotations

from grouping.models import Violation, ViolationSeverity, ViolationType

from .base import DetectionContext


def find_medical_violations(ctx: DetectionContext) -> list[Violation]:
    threshold = ctx.config.medical_threshold
    violations = []
    for group in ctx.groups:
        stats = ctx.stats[group.id]
        if stats.count == 0 or stats.medical_ratio <= threshold:
            continue
        flagged = [cid for cid in group.member_ids if cid in ctx.campers and ctx.campers[cid].has_medical_flag]
        violations.append(
            Violation(
                key=f"{ViolationType.MEDICAL_CONCENTRATION.value}:{group.id}",
                measure=stats.medical_count,
                type=ViolationType.MEDICAL_CONCENTRATION,
                severity=ViolationSeverity.SOFT,
                camper_ids=flagged,
                group_ids=[group.id],
                message=(
                    f"{group.name} has {stats.medical_count} of {stats.count} campers with medical flags "
                    f"({stats.medical_ratio:.0%}, threshold {threshold:.0%})"
                ),
            )
        )
    return violations
