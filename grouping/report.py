"""
Group report snapshots.

Builds the data an export adapter (print sheet, CSV, PDF) renders. Official
reports require a finalized grouping; drafts can be rendered as previews
and are marked as such.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from .errors import InvalidOperation
from .models import AssignmentType, GroupingState, GroupingStatus, Violation
from .normalizer import format_grade, format_grade_range


class ReportCamper(BaseModel):
    athlete_id: str
    name: str
    grade: int
    grade_display: str
    age_years: int | None = None
    has_medical_notes: bool = False
    has_allergies: bool = False
    special_considerations: str | None = None
    friends_in_group: list[str] = Field(default_factory=list)
    assignment_type: AssignmentType = AssignmentType.AUTO


class ReportGroup(BaseModel):
    id: str
    number: int
    name: str
    color: str
    count: int
    grade_range: str
    medical_count: int
    campers: list[ReportCamper] = Field(default_factory=list)


class ReportException(BaseModel):
    """An acknowledged violation, printed so staff know it was accepted."""

    key: str
    type: str
    severity: str
    message: str
    note: str | None = None
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None


class GroupReport(BaseModel):
    camp_id: str
    report_type: Literal["final", "preview"]
    status: GroupingStatus
    version: int
    generated_at: datetime
    finalized_at: datetime | None = None
    finalized_by: str | None = None
    groups: list[ReportGroup] = Field(default_factory=list)
    unassigned: list[ReportCamper] = Field(default_factory=list)
    summary: dict[str, int] = Field(default_factory=dict)
    exceptions: list[ReportException] = Field(default_factory=list)
    open_violations: list[Violation] = Field(default_factory=list)


def build_report(state: GroupingState, preview: bool = False, now: datetime | None = None) -> GroupReport:
    """Snapshot a grouping for export.

    Raises:
        InvalidOperation: An official (non-preview) report of a grouping
            that is not finalized
    """
    if not preview and state.status != GroupingStatus.FINALIZED:
        raise InvalidOperation(
            f"Official report requires a finalized grouping (camp {state.camp_id} is {state.status.value})"
        )

    friends: dict[str, set[str]] = defaultdict(set)
    for a, b in state.friend_links:
        friends[a].add(b)
        friends[b].add(a)

    def report_camper(camper_id: str, group_members: set[str]) -> ReportCamper:
        camper = state.campers[camper_id]
        return ReportCamper(
            athlete_id=camper.athlete_id,
            name=camper.full_name,
            grade=camper.grade,
            grade_display=format_grade(camper.grade),
            age_years=camper.age_years,
            has_medical_notes=camper.has_medical_notes,
            has_allergies=camper.has_allergies,
            special_considerations=camper.special_considerations,
            friends_in_group=sorted(state.campers[f].full_name for f in friends[camper_id] & group_members),
            assignment_type=state.assignment_types.get(camper_id, AssignmentType.AUTO),
        )

    groups = []
    for group in sorted(state.groups, key=lambda g: g.number):
        stats = state.group_stats(group)
        members = set(group.member_ids)
        campers = [report_camper(cid, members) for cid in group.member_ids]
        campers.sort(key=lambda c: (c.grade, c.name))
        groups.append(
            ReportGroup(
                id=group.id,
                number=group.number,
                name=group.name,
                color=group.color,
                count=stats.count,
                grade_range=format_grade_range(stats.min_grade, stats.max_grade),
                medical_count=stats.medical_count,
                campers=campers,
            )
        )

    exceptions = []
    open_violations = []
    for violation in state.violations:
        if not violation.acknowledged:
            open_violations.append(violation)
            continue
        ack = state.acknowledgements.get(violation.key)
        exceptions.append(
            ReportException(
                key=violation.key,
                type=violation.type.value,
                severity=violation.severity.value,
                message=violation.message,
                note=violation.override_note,
                acknowledged_by=ack.actor if ack else None,
                acknowledged_at=ack.acknowledged_at if ack else None,
            )
        )

    hard = sum(1 for v in state.violations if v.is_hard)
    return GroupReport(
        camp_id=state.camp_id,
        report_type="preview" if preview else "final",
        status=state.status,
        version=state.version,
        generated_at=now or datetime.now(UTC),
        finalized_at=state.finalized_at,
        finalized_by=state.finalized_by,
        groups=groups,
        unassigned=[report_camper(cid, set()) for cid in state.unassigned_ids],
        summary={
            "total_campers": state.total_campers,
            "assigned": state.total_campers - len(state.unassigned_ids),
            "unassigned": len(state.unassigned_ids),
            "groups": len(state.groups),
            "hard_violations": hard,
            "soft_violations": len(state.violations) - hard,
            "acknowledged": len(exceptions),
        },
        exceptions=exceptions,
        open_violations=open_violations,
    )
