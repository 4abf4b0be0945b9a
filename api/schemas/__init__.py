"""
Pydantic schemas for the Grouping API.

Re-exports all schemas for convenient importing.
"""

from __future__ import annotations

from .grouping import (
    AcknowledgeRequest,
    AddGroupRequest,
    ConfigUpdateRequest,
    LateCamperRequest,
    MoveRequest,
    PreviewMoveRequest,
    RunGroupingRequest,
    UnfinalizeRequest,
    UpdateGroupRequest,
    VersionedRequest,
    ViolationListResponse,
)

__all__ = [
    "AcknowledgeRequest",
    "AddGroupRequest",
    "ConfigUpdateRequest",
    "LateCamperRequest",
    "MoveRequest",
    "PreviewMoveRequest",
    "RunGroupingRequest",
    "UnfinalizeRequest",
    "UpdateGroupRequest",
    "VersionedRequest",
    "ViolationListResponse",
]
