"""
Grouping Router - Endpoints for running, editing and finalizing camp groupings.

This router handles:
- Running auto-grouping over a roster
- Manual camper moves, previews and violation acknowledgements
- Review, finalize and unfinalize transitions
- Group management and configuration
- Violation lists and report snapshots
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query

from grouping.engine import GroupingEngine
from grouping.errors import (
    ConfigurationError,
    ConstraintViolation,
    FinalizationBlocked,
    GroupingError,
    GroupingFinalized,
    GroupingNotFound,
    InvalidOperation,
    InvalidTransition,
    ResolutionError,
    StaleVersion,
)
from grouping.models import GroupingState
from grouping.overrides import MovePreview
from grouping.report import GroupReport

from ..dependencies import get_engine
from ..schemas.grouping import (
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

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/grouping", tags=["grouping"])

EngineDep = Annotated[GroupingEngine, Depends(get_engine)]

T = TypeVar("T")

# Order matters: subclasses before GroupingError
_STATUS_CODES: list[tuple[type[GroupingError], int]] = [
    (StaleVersion, 409),
    (FinalizationBlocked, 409),
    (GroupingFinalized, 409),
    (InvalidTransition, 409),
    (ConstraintViolation, 422),
    (ConfigurationError, 400),
    (ResolutionError, 400),
    (InvalidOperation, 400),
    (GroupingNotFound, 404),
]


def to_http_exception(error: GroupingError) -> HTTPException:
    """Map an engine error to an HTTPException with a structured detail."""
    status_code = next((code for cls, code in _STATUS_CODES if isinstance(error, cls)), 500)
    details: dict[str, Any] = {}
    if isinstance(error, StaleVersion):
        details = {"expected": error.expected, "actual": error.actual}
    elif isinstance(error, ConstraintViolation):
        details = {
            "move_index": error.move_index,
            "violations": [v.model_dump(mode="json") for v in error.violations],
        }
    elif isinstance(error, FinalizationBlocked):
        details = {"violations": [v.model_dump(mode="json") for v in error.violations]}

    return HTTPException(
        status_code=status_code,
        detail={"error": type(error).__name__, "message": str(error), "details": details},
    )


async def _call(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run an engine call off the event loop, translating engine errors."""
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except GroupingError as e:
        http_error = to_http_exception(e)
        if http_error.status_code >= 500:
            logger.error(f"Unmapped grouping error: {e}", exc_info=True)
        else:
            logger.info(f"Grouping request rejected ({type(e).__name__}): {e}")
        raise http_error from e


# ========================================
# Reads
# ========================================


@router.get("/{camp_id}")
async def get_grouping(engine: EngineDep) -> GroupingState:
    """Get the current grouping state for a camp."""
    return await _call(engine.get_state)


@router.post("/{camp_id}/open")
async def open_grouping(engine: EngineDep) -> GroupingState:
    """Get the grouping state, creating an empty one if the camp has none."""
    return await _call(engine.open)


@router.get("/{camp_id}/violations")
async def list_violations(engine: EngineDep) -> ViolationListResponse:
    """List current violations, hard first."""
    state = await _call(engine.get_state)
    return ViolationListResponse(
        camp_id=state.camp_id,
        version=state.version,
        status=state.status,
        violations=state.violations,
        blocking=len(state.unacknowledged_hard_violations()),
    )


@router.get("/{camp_id}/report")
async def get_report(engine: EngineDep, preview: bool = Query(default=False)) -> GroupReport:
    """Report snapshot; drafts are only available with ``preview=true``."""
    return await _call(engine.report, preview=preview)


@router.post("/{camp_id}/moves/preview")
async def preview_moves(request: PreviewMoveRequest, engine: EngineDep) -> MovePreview:
    """Evaluate moves without applying them."""
    return await _call(engine.preview_moves, request.moves)


# ========================================
# Commands
# ========================================


@router.post("/{camp_id}/run")
async def run_grouping(request: RunGroupingRequest, engine: EngineDep) -> GroupingState:
    """Run auto-grouping; replaces current membership and returns to draft."""
    logger.info(f"Auto-grouping requested for camp {engine.camp_id} by {request.actor} ({len(request.roster)} campers)")
    return await _call(
        engine.run_auto_grouping,
        request.roster,
        request.camp_start_date,
        request.expected_version,
        actor=request.actor,
        config=request.config,
        seed=request.seed,
    )


@router.post("/{camp_id}/late-registrations")
async def add_late_camper(request: LateCamperRequest, engine: EngineDep) -> GroupingState:
    """Place a late registration without re-running; 422 if it needs an override."""
    return await _call(
        engine.add_late_camper,
        request.camper,
        request.expected_version,
        request.actor,
        camp_start_date=request.camp_start_date,
        override_acknowledged=request.override_acknowledged,
        override_note=request.override_note,
    )


@router.post("/{camp_id}/moves")
async def move_campers(request: MoveRequest, engine: EngineDep) -> GroupingState:
    """Apply moves atomically; rejected with 422 if a hard violation is not overridden."""
    return await _call(engine.move_campers, request.moves, request.expected_version, request.actor)


@router.post("/{camp_id}/acknowledge")
async def acknowledge(request: AcknowledgeRequest, engine: EngineDep) -> GroupingState:
    """Accept current violations with a note."""
    return await _call(
        engine.acknowledge_violations, request.keys, request.note, request.expected_version, request.actor
    )


@router.post("/{camp_id}/review")
async def mark_reviewed(request: VersionedRequest, engine: EngineDep) -> GroupingState:
    return await _call(engine.mark_reviewed, request.expected_version, request.actor)


@router.post("/{camp_id}/finalize")
async def finalize(request: VersionedRequest, engine: EngineDep) -> GroupingState:
    """Finalize; 409 with the blocking violations if any hard violation is unacknowledged."""
    return await _call(engine.finalize, request.expected_version, request.actor)


@router.post("/{camp_id}/unfinalize")
async def unfinalize(request: UnfinalizeRequest, engine: EngineDep) -> GroupingState:
    return await _call(engine.unfinalize, request.expected_version, request.actor, request.reason)


@router.put("/{camp_id}/config")
async def update_config(request: ConfigUpdateRequest, engine: EngineDep) -> GroupingState:
    return await _call(engine.update_config, request.config, request.expected_version, request.actor)


@router.post("/{camp_id}/groups")
async def add_group(request: AddGroupRequest, engine: EngineDep) -> GroupingState:
    state, group = await _call(
        engine.add_group, request.expected_version, request.actor, name=request.name, color=request.color
    )
    logger.info(f"Added {group.name} ({group.id}) to camp {engine.camp_id}")
    return state


@router.patch("/{camp_id}/groups/{group_id}")
async def update_group(group_id: str, request: UpdateGroupRequest, engine: EngineDep) -> GroupingState:
    return await _call(
        engine.update_group,
        group_id,
        request.expected_version,
        request.actor,
        name=request.name,
        color=request.color,
    )


@router.delete("/{camp_id}/groups/{group_id}")
async def remove_group(
    group_id: str,
    engine: EngineDep,
    expected_version: int = Query(ge=0),
    actor: str = Query(default="system"),
    merge_into: str | None = Query(default=None),
    override_acknowledged: bool = Query(default=False),
    override_note: str | None = Query(default=None),
) -> GroupingState:
    """Remove a group; occupied groups need ``merge_into``."""
    return await _call(
        engine.remove_group,
        group_id,
        expected_version,
        actor,
        merge_into=merge_into,
        override_acknowledged=override_acknowledged,
        override_note=override_note,
    )
