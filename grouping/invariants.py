"""Aggregate consistency checks run after every mutation."""

from __future__ import annotations

from collections import Counter

from .errors import InvariantViolation
from .models import GroupingState


def check_invariants(state: GroupingState) -> None:
    """Raise InvariantViolation if the state's membership is inconsistent.

    Checks:
    - group ids are unique
    - no group references an unknown camper
    - every camper is in exactly one group or unassigned, never both or twice
    - group counts plus unassigned count equal the number of campers
    """
    problems: list[str] = []

    group_ids = Counter(group.id for group in state.groups)
    duplicate_groups = sorted(gid for gid, n in group_ids.items() if n > 1)
    if duplicate_groups:
        problems.append(f"duplicate group ids: {duplicate_groups}")

    placements: Counter[str] = Counter()
    for group in state.groups:
        placements.update(group.member_ids)
    placements.update(state.unassigned_ids)

    unknown = sorted(cid for cid in placements if cid not in state.campers)
    if unknown:
        problems.append(f"unknown camper ids: {unknown}")

    doubled = sorted(cid for cid, n in placements.items() if n > 1)
    if doubled:
        problems.append(f"campers placed more than once: {doubled}")

    missing = [cid for cid in state.campers if cid not in placements]
    if missing:
        problems.append(f"campers with no placement: {missing}")

    placed = sum(len(group.member_ids) for group in state.groups) + len(state.unassigned_ids)
    if placed != state.total_campers:
        problems.append(f"placement count {placed} != camper count {state.total_campers}")

    if problems:
        raise InvariantViolation(f"Grouping state for camp {state.camp_id} is inconsistent: " + "; ".join(problems))
