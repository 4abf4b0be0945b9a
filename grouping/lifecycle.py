"""
Grouping Lifecycle State Machine.

    not_started --run--> draft --review--> reviewed
    draft|reviewed --finalize--> finalized --unfinalize--> draft
    draft|reviewed --run--> draft

Finalize is gated on zero unacknowledged hard violations. Unfinalize is
always allowed but requires a reason and is audited. Every other mutation
of a finalized grouping raises GroupingFinalized.

Also hosts the group-management, acknowledgement and late-registration
commands, which share the same editability rules.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from .commands import (
    acknowledge,
    ensure_editable,
    ensure_not_finalized,
    introduced_hard_violations,
    refresh_violations,
    require_note,
    stamp,
    working_copy,
)
from .errors import (
    ConstraintViolation,
    FinalizationBlocked,
    GroupingFinalized,
    InvalidOperation,
    InvalidTransition,
)
from .friend_clusters import ClusterResult
from .models import (
    AssignmentType,
    Camper,
    Group,
    GroupingConfig,
    GroupingState,
    GroupingStatus,
    default_group_color,
    default_group_name,
)
from .solver import AssignmentResult
from .violations import detect_violations

logger = logging.getLogger(__name__)

TRANSITIONS: dict[GroupingStatus, frozenset[GroupingStatus]] = {
    GroupingStatus.NOT_STARTED: frozenset({GroupingStatus.DRAFT}),
    GroupingStatus.DRAFT: frozenset({GroupingStatus.DRAFT, GroupingStatus.REVIEWED, GroupingStatus.FINALIZED}),
    GroupingStatus.REVIEWED: frozenset({GroupingStatus.DRAFT, GroupingStatus.FINALIZED}),
    GroupingStatus.FINALIZED: frozenset({GroupingStatus.DRAFT}),
}


def can_transition(current: GroupingStatus, target: GroupingStatus) -> bool:
    return target in TRANSITIONS[current]


def new_state(camp_id: str, config: GroupingConfig, seed: int, now: datetime) -> GroupingState:
    """A fresh, never-run grouping with no groups."""
    return GroupingState(camp_id=camp_id, config=config, seed=seed, created_at=now, updated_at=now)


def _check_transition(state: GroupingState, target: GroupingStatus, action: str) -> None:
    if state.status == GroupingStatus.FINALIZED and target != GroupingStatus.DRAFT:
        raise GroupingFinalized(f"Cannot {action}: grouping for camp {state.camp_id} is finalized")
    if not can_transition(state.status, target):
        raise InvalidTransition(
            f"Cannot {action}: transition {state.status.value} -> {target.value} is not allowed"
        )


def _groups_for_run(state: GroupingState, num_groups: int) -> list[Group]:
    """Keep existing groups (by ordinal) up to ``num_groups`` and add new ones."""
    kept = sorted(state.groups, key=lambda group: group.number)[:num_groups]
    groups = [group.model_copy(update={"member_ids": []}) for group in kept]
    for number in range(len(groups) + 1, num_groups + 1):
        groups.append(
            Group(
                id=state.allocate_group_id(),
                number=number,
                name=default_group_name(number),
                color=default_group_color(number),
            )
        )
    for number, group in enumerate(groups, start=1):
        group.number = number
    return groups


def apply_run(
    state: GroupingState,
    groups: Sequence[Group],
    campers: Sequence[Camper],
    clusters: ClusterResult,
    result: AssignmentResult,
    warnings: Sequence[str],
    actor: str,
    now: datetime,
) -> GroupingState:
    """Replace membership with a fresh assignment run; status becomes draft.

    ``groups`` come from ``prepare_run_groups`` on ``state`` and ``result``
    must have been computed for their ids.
    """
    ensure_not_finalized(state, "run auto-grouping")
    _check_transition(state, GroupingStatus.DRAFT, "run auto-grouping")
    work = working_copy(state)
    work.groups = [group.model_copy(deep=True) for group in groups]

    missing = [gid for gid in result.assignments if work.group_by_id(gid) is None]
    if missing:
        raise InvalidOperation(f"Assignment references unknown groups: {missing}")

    work.campers = {camper.id: camper for camper in campers}
    for group in work.groups:
        group.member_ids = list(result.assignments.get(group.id, []))
    work.unassigned_ids = list(result.unassigned)
    work.clusters = list(clusters.clusters)
    work.friend_links = list(clusters.friend_links)
    work.assignment_types = {camper.id: AssignmentType.AUTO for camper in campers}
    work.acknowledgements = {}
    work.warnings = list(warnings)
    work.run_stats = dict(result.stats)
    work.status = GroupingStatus.DRAFT
    work.finalized_at = None
    work.finalized_by = None

    violations = refresh_violations(work)
    stamp(
        work,
        "run_auto_grouping",
        actor,
        now,
        campers=len(campers),
        groups=len(work.groups),
        unassigned=len(work.unassigned_ids),
        violations=len(violations),
        seed=work.seed,
    )
    logger.info(
        f"Auto-grouping for camp {state.camp_id}: {len(campers)} campers into {len(work.groups)} groups, "
        f"{len(violations)} violations ({len(work.unacknowledged_hard_violations())} blocking)"
    )
    return work


def choose_late_group(state: GroupingState, camper: Camper, cluster_mates: Sequence[str]) -> Group | None:
    """Best existing group for a camper added after the run.

    Prefers, in order: a group with room, one whose grade band stays within
    the spread limit, the most cluster-mates, the closest grade band, the
    fewest members, then the lowest ordinal.
    """
    if not state.groups:
        return None
    config = state.config
    mates = set(cluster_mates)

    def score(group: Group) -> tuple[bool, bool, int, float, int, int]:
        stats = state.group_stats(group)
        if stats.min_grade is None or stats.max_grade is None:
            spread_exceeded = False
            distance = 0.0
        else:
            spread = max(stats.max_grade, camper.grade) - min(stats.min_grade, camper.grade)
            spread_exceeded = spread > config.max_grade_spread
            distance = abs(camper.grade - (stats.min_grade + stats.max_grade) / 2)
        return (
            stats.count >= config.max_group_size,
            spread_exceeded,
            -sum(1 for cid in group.member_ids if cid in mates),
            distance,
            stats.count,
            group.number,
        )

    return min(state.groups, key=score)


def add_late_camper(
    state: GroupingState,
    camper: Camper,
    clusters: ClusterResult,
    warnings: Sequence[str],
    actor: str,
    now: datetime,
    override_acknowledged: bool = False,
    override_note: str | None = None,
) -> GroupingState:
    """Place one newly registered camper into the existing groups.

    Other campers keep their groups and acknowledgements. ``clusters`` must
    be resolved over the current roster plus ``camper``. A placement that
    introduces a hard violation needs an override with a note.
    """
    ensure_editable(state, "add a late registration")
    if camper.id in state.campers:
        raise InvalidOperation(f"Camper {camper.id} is already on the roster")
    if override_acknowledged:
        override_note = require_note(override_note, "An override")

    work = working_copy(state)
    before = detect_violations(work)
    work.campers[camper.id] = camper
    work.clusters = list(clusters.clusters)
    work.friend_links = list(clusters.friend_links)
    work.warnings.extend(w for w in warnings if w not in work.warnings)

    cluster_id = clusters.cluster_by_camper.get(camper.id)
    cluster = next((c for c in clusters.clusters if c.id == cluster_id), None)
    mates = [cid for cid in cluster.member_ids if cid != camper.id] if cluster is not None else []

    group = choose_late_group(work, camper, mates)
    if group is None:
        raise InvalidOperation(f"Camp {state.camp_id} has no groups to place {camper.full_name} into")
    group.member_ids.append(camper.id)
    work.assignment_types[camper.id] = AssignmentType.AUTO

    introduced = introduced_hard_violations(before, refresh_violations(work))
    if introduced:
        if not override_acknowledged:
            logger.info(
                f"Rejected late registration {camper.id} for camp {state.camp_id}: "
                f"{len(introduced)} new hard violation(s) in {group.name}"
            )
            raise ConstraintViolation(
                f"Adding {camper.full_name} to {group.name} introduces a hard violation: {introduced[0].message}",
                violations=introduced,
            )
        acknowledge(work, introduced, override_note, actor, now)  # type: ignore[arg-type]
        work.assignment_types[camper.id] = AssignmentType.OVERRIDE
        refresh_violations(work)
        logger.warning(
            f"Override by {actor} on camp {state.camp_id}: late registration {camper.id} -> {group.id} "
            f"acknowledging {[v.key for v in introduced]} ({override_note})"
        )

    stamp(
        work,
        "add_late_camper",
        actor,
        now,
        camper_id=camper.id,
        group_id=group.id,
        acknowledged=[v.key for v in introduced],
    )
    logger.info(f"Late registration {camper.id} placed in {group.name} for camp {state.camp_id}")
    return work


def prepare_run_groups(state: GroupingState) -> list[Group]:
    """Groups a run will fill. Allocates ids on ``state`` for new groups."""
    return _groups_for_run(state, state.config.num_groups)


def mark_reviewed(state: GroupingState, actor: str, now: datetime) -> GroupingState:
    _check_transition(state, GroupingStatus.REVIEWED, "mark reviewed")
    work = working_copy(state)
    work.status = GroupingStatus.REVIEWED
    stamp(work, "mark_reviewed", actor, now)
    return work


def finalize(state: GroupingState, actor: str, now: datetime) -> GroupingState:
    """Lock the grouping.

    Raises:
        GroupingFinalized: Already finalized
        InvalidTransition: Never run
        FinalizationBlocked: Unacknowledged hard violations remain
    """
    _check_transition(state, GroupingStatus.FINALIZED, "finalize")
    work = working_copy(state)
    refresh_violations(work)
    blocking = work.unacknowledged_hard_violations()
    if blocking:
        logger.info(f"Finalize blocked for camp {state.camp_id}: {[v.key for v in blocking]}")
        raise FinalizationBlocked(blocking)

    work.status = GroupingStatus.FINALIZED
    work.finalized_at = now
    work.finalized_by = actor
    stamp(work, "finalize", actor, now, violations=len(work.violations))
    logger.info(f"Grouping for camp {state.camp_id} finalized by {actor} at version {work.version}")
    return work


def unfinalize(state: GroupingState, actor: str, reason: str | None, now: datetime) -> GroupingState:
    if state.status != GroupingStatus.FINALIZED:
        raise InvalidTransition(f"Cannot unfinalize: grouping for camp {state.camp_id} is {state.status.value}")
    reason = require_note(reason, "Unfinalize")
    if not actor or not actor.strip():
        raise InvalidOperation("Unfinalize requires an actor")

    work = working_copy(state)
    work.status = GroupingStatus.DRAFT
    finalized_at, finalized_by = work.finalized_at, work.finalized_by
    work.finalized_at = None
    work.finalized_by = None
    stamp(
        work,
        "unfinalize",
        actor,
        now,
        reason=reason,
        previously_finalized_by=finalized_by,
        previously_finalized_at=finalized_at.isoformat() if finalized_at else None,
    )
    logger.warning(f"Grouping for camp {state.camp_id} unfinalized by {actor}: {reason}")
    return work


def acknowledge_violations(
    state: GroupingState, keys: Sequence[str], note: str | None, actor: str, now: datetime
) -> GroupingState:
    """Explicitly accept current violations with a note."""
    ensure_editable(state, "acknowledge violations")
    note = require_note(note, "Acknowledging a violation")
    if not keys:
        raise InvalidOperation("No violation keys given")

    work = working_copy(state)
    current = {v.key: v for v in refresh_violations(work)}
    unknown = [key for key in keys if key not in current]
    if unknown:
        raise InvalidOperation(f"Unknown or resolved violations: {unknown}")

    acknowledge(work, [current[key] for key in keys], note, actor, now)
    refresh_violations(work)
    stamp(work, "acknowledge_violations", actor, now, keys=list(keys), note=note)
    logger.info(f"{actor} acknowledged {len(keys)} violation(s) for camp {state.camp_id}")
    return work


def add_group(
    state: GroupingState,
    actor: str,
    now: datetime,
    name: str | None = None,
    color: str | None = None,
) -> tuple[GroupingState, Group]:
    ensure_not_finalized(state, "add a group")
    work = working_copy(state)
    number = len(work.groups) + 1
    group = Group(
        id=work.allocate_group_id(),
        number=number,
        name=(name or "").strip() or default_group_name(number),
        color=color or default_group_color(number),
    )
    work.groups.append(group)
    work.config = work.config.model_copy(update={"num_groups": len(work.groups)})
    refresh_violations(work)
    stamp(work, "add_group", actor, now, group_id=group.id, name=group.name)
    return work, group


def remove_group(
    state: GroupingState,
    group_id: str,
    actor: str,
    now: datetime,
    merge_into: str | None = None,
    override_acknowledged: bool = False,
    override_note: str | None = None,
) -> GroupingState:
    """Delete a group, moving its campers into ``merge_into`` if it has any.

    Remaining groups are renumbered. Merging follows the same hard-violation
    rule as camper moves.
    """
    ensure_not_finalized(state, "remove a group")
    work = working_copy(state)
    group = work.group_by_id(group_id)
    if group is None:
        raise InvalidOperation(f"Unknown group {group_id}")
    if len(work.groups) == 1:
        raise InvalidOperation("Cannot remove the last group")

    moved = list(group.member_ids)
    if moved:
        if merge_into is None:
            raise InvalidOperation(f"{group.name} has {len(moved)} campers; choose a group to merge them into")
        target = work.group_by_id(merge_into)
        if target is None or target.id == group_id:
            raise InvalidOperation(f"Invalid merge target {merge_into}")
        if override_acknowledged:
            override_note = require_note(override_note, "An override")
        target.member_ids.extend(moved)
        for camper_id in moved:
            work.assignment_types[camper_id] = AssignmentType.MANUAL

    before = detect_violations(state)
    work.groups = [g for g in work.groups if g.id != group_id]
    for number, remaining in enumerate(sorted(work.groups, key=lambda g: g.number), start=1):
        remaining.number = number
    work.groups.sort(key=lambda g: g.number)
    work.config = work.config.model_copy(update={"num_groups": len(work.groups)})

    introduced = introduced_hard_violations(before, refresh_violations(work))
    if introduced:
        if not override_acknowledged:
            raise ConstraintViolation(
                f"Merging {group.name} introduces a hard violation: {introduced[0].message}",
                violations=introduced,
            )
        acknowledge(work, introduced, override_note, actor, now)  # type: ignore[arg-type]
        refresh_violations(work)

    stamp(work, "remove_group", actor, now, group_id=group_id, merged_into=merge_into, moved=len(moved))
    logger.info(f"Removed {group.name} from camp {state.camp_id} ({len(moved)} campers merged into {merge_into})")
    return work


def update_group(
    state: GroupingState,
    group_id: str,
    actor: str,
    now: datetime,
    name: str | None = None,
    color: str | None = None,
) -> GroupingState:
    ensure_not_finalized(state, "update a group")
    work = working_copy(state)
    group = work.group_by_id(group_id)
    if group is None:
        raise InvalidOperation(f"Unknown group {group_id}")
    if name is None and color is None:
        raise InvalidOperation("Nothing to update")
    if name is not None:
        if not name.strip():
            raise InvalidOperation("Group name cannot be blank")
        group.name = name.strip()
    if color is not None:
        group.color = color
    refresh_violations(work)
    stamp(work, "update_group", actor, now, group_id=group_id, name=name, color=color)
    return work


def update_config(state: GroupingState, config: GroupingConfig, actor: str, now: datetime) -> GroupingState:
    """Replace the run configuration; violations are re-derived, membership is kept."""
    ensure_not_finalized(state, "update configuration")
    config.validate_for_run()
    work = working_copy(state)
    work.config = config
    refresh_violations(work)
    stamp(work, "update_config", actor, now, config=config.model_dump())
    return work
