"""Helpers shared by the state-mutating command modules.

Commands never mutate the state they are given; they work on a deep copy
(``working_copy``) and return it, so a raised error leaves the caller's
state untouched.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .errors import GroupingFinalized, InvalidOperation
from .models import Acknowledgement, AuditEntry, GroupingState, GroupingStatus, Violation
from .violations import detect_violations


def working_copy(state: GroupingState) -> GroupingState:
    return state.model_copy(deep=True)


def ensure_not_finalized(state: GroupingState, action: str) -> None:
    if state.status == GroupingStatus.FINALIZED:
        raise GroupingFinalized(f"Cannot {action}: grouping for camp {state.camp_id} is finalized")


def ensure_editable(state: GroupingState, action: str) -> None:
    """Membership edits need a draft or reviewed grouping."""
    ensure_not_finalized(state, action)
    if state.status == GroupingStatus.NOT_STARTED:
        raise InvalidOperation(f"Cannot {action}: grouping for camp {state.camp_id} has not been run yet")


def refresh_violations(state: GroupingState) -> list[Violation]:
    """Re-detect violations and drop acknowledgements whose violation is gone.

    A resolved violation that comes back later is a new violation and needs
    its own override.
    """
    state.violations = detect_violations(state)
    current = {v.key for v in state.violations}
    stale = [key for key in state.acknowledgements if key not in current]
    for key in stale:
        del state.acknowledgements[key]
    return state.violations


def stamp(state: GroupingState, action: str, actor: str, now: datetime, **details: Any) -> None:
    """Record a successful mutation: bump version, timestamp, audit entry."""
    state.version += 1
    state.updated_at = now
    state.audit_log.append(AuditEntry(version=state.version, action=action, actor=actor, at=now, details=details))


def introduced_hard_violations(before: list[Violation], after: list[Violation]) -> list[Violation]:
    """Unacknowledged hard violations in ``after`` that are new or got worse."""
    previous = {v.key: v for v in before if v.is_hard}
    introduced = []
    for violation in after:
        if not violation.is_hard or violation.acknowledged:
            continue
        old = previous.get(violation.key)
        if old is None or violation.measure > old.measure:
            introduced.append(violation)
    return introduced


def acknowledge(state: GroupingState, violations: list[Violation], note: str, actor: str, now: datetime) -> None:
    for violation in violations:
        state.acknowledgements[violation.key] = Acknowledgement(
            key=violation.key,
            violation_type=violation.type,
            measure=violation.measure,
            note=note,
            actor=actor,
            acknowledged_at=now,
        )


def require_note(note: str | None, what: str) -> str:
    if note is None or not note.strip():
        raise InvalidOperation(f"{what} requires a note")
    return note.strip()
