"""
Manual Override Handler - director-initiated camper moves.

A move is applied only if it introduces no unacknowledged hard violation, or
if the director explicitly overrides with a note, in which case the new
violations are acknowledged with that note. Soft violations never block.

Batches are all-or-nothing: moves are applied in order on a working copy,
the hard-violation check runs against the batch result (so swaps between
full groups succeed) and the state version advances once.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime

from pydantic import BaseModel, Field

from .commands import (
    acknowledge,
    ensure_editable,
    introduced_hard_violations,
    refresh_violations,
    stamp,
    working_copy,
)
from .errors import ConstraintViolation, GroupingFinalized, InvalidOperation
from .models import AssignmentType, GroupingState, Violation
from .violations import detect_violations

logger = logging.getLogger(__name__)


class CamperMove(BaseModel):
    camper_id: str
    from_group_id: str | None = None  # None = currently unassigned
    to_group_id: str | None = None  # None = unassign
    override_acknowledged: bool = False
    override_note: str | None = None

    def touches(self, violation: Violation) -> bool:
        if self.camper_id in violation.camper_ids:
            return True
        return any(gid is not None and gid in violation.group_ids for gid in (self.from_group_id, self.to_group_id))


class MovePreview(BaseModel):
    """Outcome of evaluating a move without applying it."""

    allowed: bool
    requires_override: bool = False
    error: str | None = None
    introduced: list[Violation] = Field(default_factory=list)
    resolved: list[Violation] = Field(default_factory=list)
    violations_after: list[Violation] = Field(default_factory=list)


def _apply_one(state: GroupingState, move: CamperMove, index: int) -> None:
    """Validate one move against the working state and apply it in place."""
    prefix = f"Move {index}"
    if move.camper_id not in state.campers:
        raise InvalidOperation(f"{prefix}: unknown camper {move.camper_id}")
    if move.override_acknowledged and not (move.override_note and move.override_note.strip()):
        raise InvalidOperation(f"{prefix}: an override requires a note")

    current = state.group_of(move.camper_id)
    if current != move.from_group_id:
        where = current or "unassigned"
        raise InvalidOperation(
            f"{prefix}: camper {move.camper_id} is in {where}, not {move.from_group_id or 'unassigned'}"
        )
    if move.from_group_id == move.to_group_id:
        raise InvalidOperation(f"{prefix}: camper {move.camper_id} is already in {current or 'unassigned'}")

    target = None
    if move.to_group_id is not None:
        target = state.group_by_id(move.to_group_id)
        if target is None:
            raise InvalidOperation(f"{prefix}: unknown group {move.to_group_id}")

    if current is None:
        state.unassigned_ids.remove(move.camper_id)
    else:
        source = state.group_by_id(current)
        source.member_ids.remove(move.camper_id)  # type: ignore[union-attr]

    if target is None:
        state.unassigned_ids.append(move.camper_id)
    else:
        target.member_ids.append(move.camper_id)
    state.assignment_types[move.camper_id] = AssignmentType.MANUAL


def _first_touching(moves: Sequence[CamperMove], violation: Violation) -> int | None:
    for index, move in enumerate(moves):
        if move.touches(violation):
            return index
    return None


def apply_moves(
    state: GroupingState,
    moves: Sequence[CamperMove],
    actor: str,
    now: datetime,
    action: str = "move_campers",
) -> GroupingState:
    """Apply a batch of moves atomically and return the new state.

    Raises:
        InvalidOperation: A move's preconditions fail
        ConstraintViolation: A new hard violation is not covered by an override
        GroupingFinalized: The grouping is finalized
    """
    ensure_editable(state, "move campers")
    if not moves:
        raise InvalidOperation("No moves given")

    work = working_copy(state)
    before = detect_violations(work)
    for index, move in enumerate(moves):
        _apply_one(work, move, index)

    after = refresh_violations(work)
    introduced = introduced_hard_violations(before, after)

    to_acknowledge: dict[int, list[Violation]] = defaultdict(list)
    uncovered: list[tuple[int, Violation]] = []
    for violation in introduced:
        covering = next(
            (i for i, move in enumerate(moves) if move.override_acknowledged and move.touches(violation)),
            None,
        )
        if covering is not None:
            to_acknowledge[covering].append(violation)
        else:
            index = _first_touching(moves, violation)
            uncovered.append((len(moves) - 1 if index is None else index, violation))

    if uncovered:
        uncovered.sort(key=lambda item: item[0])
        move_index = uncovered[0][0]
        blocking = [violation for _, violation in uncovered]
        logger.info(
            f"Rejected {len(moves)} move(s) for camp {state.camp_id}: "
            f"{len(blocking)} new hard violation(s), first at move {move_index}"
        )
        raise ConstraintViolation(
            f"Move {move_index} introduces a hard violation: {blocking[0].message}",
            violations=blocking,
            move_index=move_index,
        )

    for index, violations in to_acknowledge.items():
        move = moves[index]
        acknowledge(work, violations, move.override_note.strip(), actor, now)  # type: ignore[union-attr]
        work.assignment_types[move.camper_id] = AssignmentType.OVERRIDE
        logger.warning(
            f"Override by {actor} on camp {state.camp_id}: {move.camper_id} -> {move.to_group_id or 'unassigned'} "
            f"acknowledging {[v.key for v in violations]} ({move.override_note})"
        )
    if to_acknowledge:
        refresh_violations(work)

    stamp(
        work,
        action,
        actor,
        now,
        moves=[move.model_dump() for move in moves],
        acknowledged=[v.key for vs in to_acknowledge.values() for v in vs],
    )
    logger.info(f"Applied {len(moves)} move(s) for camp {state.camp_id}, now version {work.version}")
    return work


def move_camper(
    state: GroupingState,
    camper_id: str,
    from_group_id: str | None,
    to_group_id: str | None,
    actor: str,
    now: datetime,
    override_acknowledged: bool = False,
    override_note: str | None = None,
) -> GroupingState:
    move = CamperMove(
        camper_id=camper_id,
        from_group_id=from_group_id,
        to_group_id=to_group_id,
        override_acknowledged=override_acknowledged,
        override_note=override_note,
    )
    return apply_moves(state, [move], actor, now, action="move_camper")


def preview_moves(state: GroupingState, moves: Sequence[CamperMove]) -> MovePreview:
    """Evaluate moves without touching the state; never raises on bad input."""
    try:
        ensure_editable(state, "move campers")
        if not moves:
            raise InvalidOperation("No moves given")
        work = working_copy(state)
        before = detect_violations(work)
        for index, move in enumerate(moves):
            _apply_one(work, move, index)
    except (InvalidOperation, GroupingFinalized) as e:
        return MovePreview(allowed=False, error=str(e))

    after = detect_violations(work)
    introduced = introduced_hard_violations(before, after)
    after_keys = {v.key for v in after}
    resolved = [v for v in before if v.key not in after_keys]

    overridden = all(any(m.override_acknowledged and m.touches(v) for m in moves) for v in introduced)
    return MovePreview(
        allowed=not introduced or overridden,
        requires_override=bool(introduced),
        introduced=introduced,
        resolved=resolved,
        violations_after=after,
    )
