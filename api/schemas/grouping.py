"""
Pydantic schemas for grouping endpoints.
"""

from __future__ import annotations

from datetime import date
from pydantic import BaseModel, Field

from grouping.models import GroupingConfig, GroupingStatus, RawCamperRecord, Violation
from grouping.overrides import CamperMove


class VersionedRequest(BaseModel):
    """Base for every mutating request: the version the client last read."""

    expected_version: int = Field(ge=0)
    actor: str = "system"


class RunGroupingRequest(VersionedRequest):
    """Run auto-grouping over a roster."""

    roster: list[RawCamperRecord]
    camp_start_date: date
    config: GroupingConfig | None = None
    seed: int | None = None


class LateCamperRequest(VersionedRequest):
    """Place one late registration into the existing groups."""

    camper: RawCamperRecord
    camp_start_date: date | None = None  # Defaults to the last run's date
    override_acknowledged: bool = False
    override_note: str | None = None


class MoveRequest(VersionedRequest):
    """Apply one or more moves atomically."""

    moves: list[CamperMove] = Field(min_length=1)


class PreviewMoveRequest(BaseModel):
    moves: list[CamperMove] = Field(min_length=1)


class UnfinalizeRequest(VersionedRequest):
    reason: str


class AcknowledgeRequest(VersionedRequest):
    keys: list[str] = Field(min_length=1)
    note: str


class ConfigUpdateRequest(VersionedRequest):
    config: GroupingConfig


class AddGroupRequest(VersionedRequest):
    name: str | None = None
    color: str | None = None


class UpdateGroupRequest(VersionedRequest):
    name: str | None = None
    color: str | None = None


class ViolationListResponse(BaseModel):
    camp_id: str
    version: int
    status: GroupingStatus
    violations: list[Violation]
    blocking: int  # Unacknowledged hard violations

