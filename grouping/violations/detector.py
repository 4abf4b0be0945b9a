"""
Violation Detector - derives the full violation list from a grouping state.

Pure function of the state: no I/O, no mutation. Runs after every
assignment run and every manual move.
"""

from __future__ import annotations

import logging

from grouping.models import GroupingState, Violation, ViolationSeverity

from .base import DetectionContext, ViolationCheck
from .friend_split import find_friend_split_violations
from .grade_spread import find_grade_spread_violations
from .medical import find_medical_violations
from .size import find_size_violations
from .unassigned import find_unassigned_violations

logger = logging.getLogger(__name__)

_NO_GROUP = 10**9


def enabled_checks(state: GroupingState) -> list[ViolationCheck]:
    config = state.config
    checks: list[ViolationCheck] = []
    if config.check_size:
        checks.append(find_size_violations)
    if config.check_grade_spread:
        checks.append(find_grade_spread_violations)
    if config.check_friend_split:
        checks.append(find_friend_split_violations)
    if config.check_medical_concentration:
        checks.append(find_medical_violations)
    if config.check_unassigned:
        checks.append(find_unassigned_violations)
    return checks


def detect_violations(state: GroupingState) -> list[Violation]:
    """Return every current violation, ordered and marked with acknowledgements.

    Order: hard before soft, then group ordinal (violations without a group
    last), then type, then affected camper ids.
    """
    ctx = DetectionContext.from_state(state)
    violations: list[Violation] = []
    for check in enabled_checks(state):
        violations.extend(check(ctx))

    for violation in violations:
        ack = state.covering_acknowledgement(violation)
        if ack is not None:
            violation.acknowledged = True
            violation.override_note = ack.note

    ordinal = {group.id: group.number for group in state.groups}

    def sort_key(violation: Violation) -> tuple[int, int, str, list[str]]:
        numbers = [ordinal[gid] for gid in violation.group_ids if gid in ordinal]
        return (
            0 if violation.severity == ViolationSeverity.HARD else 1,
            min(numbers) if numbers else _NO_GROUP,
            violation.type.value,
            violation.camper_ids,
        )

    violations.sort(key=sort_key)

    hard = sum(1 for v in violations if v.is_hard)
    logger.debug(
        f"Detected {len(violations)} violations for camp {state.camp_id} "
        f"({hard} hard, {len(violations) - hard} soft)"
    )
    return violations
