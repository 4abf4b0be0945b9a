"""
Base types and context for violation checks.

Provides the DetectionContext dataclass that holds the derived views each
check module needs, so membership and stats are computed once per run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from grouping.models import Camper, FriendCluster, Group, GroupingConfig, GroupingState, GroupStats, Violation


@dataclass
class DetectionContext:
    """Shared, read-only context passed to all violation checks."""

    state: GroupingState
    config: GroupingConfig
    campers: dict[str, Camper]
    groups: list[Group]
    stats: dict[str, GroupStats]  # group id -> stats
    membership: dict[str, str]  # camper id -> group id

    @classmethod
    def from_state(cls, state: GroupingState) -> DetectionContext:
        return cls(
            state=state,
            config=state.config,
            campers=state.campers,
            groups=state.groups,
            stats=state.all_group_stats(),
            membership=state.membership(),
        )

    @property
    def clusters(self) -> list[FriendCluster]:
        return self.state.clusters


class ViolationCheck(Protocol):
    """Signature shared by every check module."""

    def __call__(self, ctx: DetectionContext) -> list[Violation]: ...
