"""
GroupingEngine - the command surface for one camp's grouping.

Constructed per camp with its collaborators injected (repository,
configuration, friend reference strategy, seed, clock); there is no global
state. Every mutating command takes the version the caller last read and
fails with StaleVersion if the stored state has moved on. Commands compute
the new state on a copy, check aggregate invariants and only then persist,
so a failed command leaves the stored state and its version untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, date, datetime
from typing import Any

from .commands import ensure_not_finalized, working_copy
from .errors import GroupingNotFound, InvalidOperation, StaleVersion
from .friend_clusters import FriendClusterResolver, FriendReferenceStrategy, NameMatchStrategy
from .invariants import check_invariants
from .lifecycle import (
    acknowledge_violations,
    add_group,
    add_late_camper,
    apply_run,
    finalize,
    mark_reviewed,
    new_state,
    prepare_run_groups,
    remove_group,
    unfinalize,
    update_config,
    update_group,
)
from .models import Group, GroupingConfig, GroupingState, RawCamperRecord, Violation
from .normalizer import normalize_roster
from .overrides import CamperMove, MovePreview, apply_moves, move_camper, preview_moves
from .report import GroupReport, build_report
from .repository import GroupingRepository
from .solver import DEFAULT_SEED, GroupAssignmentSolver

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class GroupingEngine:
    def __init__(
        self,
        camp_id: str,
        repository: GroupingRepository,
        config: GroupingConfig | None = None,
        strategy: FriendReferenceStrategy | None = None,
        seed: int = DEFAULT_SEED,
        clock: Clock = utc_now,
    ):
        self.camp_id = camp_id
        self.repository = repository
        self.default_config = config or GroupingConfig()
        self.strategy = strategy or NameMatchStrategy()
        self.seed = seed
        self.clock = clock

    # ========================================
    # Reads
    # ========================================

    def get_state(self) -> GroupingState:
        state = self.repository.get(self.camp_id)
        if state is None:
            raise GroupingNotFound(f"No grouping for camp {self.camp_id}")
        return state

    def open(self) -> GroupingState:
        """Return the stored state, creating a not-started one if none exists."""
        state = self.repository.get(self.camp_id)
        if state is not None:
            return state
        state = new_state(self.camp_id, self.default_config, self.seed, self.clock())
        self.repository.save(state, expected_version=None)
        logger.info(f"Created grouping for camp {self.camp_id}")
        return state

    def current_violations(self) -> list[Violation]:
        return self.get_state().violations

    def preview_moves(self, moves: Sequence[CamperMove]) -> MovePreview:
        return preview_moves(self.get_state(), moves)

    def preview_move(
        self,
        camper_id: str,
        from_group_id: str | None,
        to_group_id: str | None,
        override_acknowledged: bool = False,
        override_note: str | None = None,
    ) -> MovePreview:
        move = CamperMove(
            camper_id=camper_id,
            from_group_id=from_group_id,
            to_group_id=to_group_id,
            override_acknowledged=override_acknowledged,
            override_note=override_note,
        )
        return self.preview_moves([move])

    def report(self, preview: bool = False) -> GroupReport:
        return build_report(self.get_state(), preview=preview, now=self.clock())

    # ========================================
    # Commands
    # ========================================

    def _commit(
        self,
        expected_version: int,
        command: Callable[[GroupingState], GroupingState],
        create_if_missing: bool = False,
    ) -> GroupingState:
        stored = self.repository.get(self.camp_id)
        if stored is None:
            if not create_if_missing:
                raise GroupingNotFound(f"No grouping for camp {self.camp_id}")
            state = new_state(self.camp_id, self.default_config, self.seed, self.clock())
            stored_version = None
        else:
            state = stored
            stored_version = stored.version

        if state.version != expected_version:
            raise StaleVersion(expected_version, state.version)

        updated = command(state)
        check_invariants(updated)
        self.repository.save(updated, expected_version=stored_version)
        return updated

    def run_auto_grouping(
        self,
        roster: Iterable[RawCamperRecord | Mapping[str, Any]],
        camp_start_date: date,
        expected_version: int,
        actor: str = "system",
        config: GroupingConfig | None = None,
        seed: int | None = None,
    ) -> GroupingState:
        """Normalize the roster, resolve friend clusters and assign groups.

        Replaces any existing membership (and acknowledgements) and returns
        the grouping to draft.
        """
        roster = list(roster)

        def command(state: GroupingState) -> GroupingState:
            ensure_not_finalized(state, "run auto-grouping")
            planned = working_copy(state)
            if config is not None:
                planned.config = config
            if seed is not None:
                planned.seed = seed
            run_config = planned.config
            run_config.validate_for_run()

            normalized = normalize_roster(roster, camp_start_date, run_config)
            resolver = FriendClusterResolver(self.strategy, require_mutual=run_config.require_mutual_friends)
            clusters = resolver.resolve(normalized.campers)

            groups = prepare_run_groups(planned)
            solver = GroupAssignmentSolver(run_config, seed=planned.seed)
            result = solver.solve(
                normalized.campers,
                clusters.clusters,
                graph=clusters.graph,
                group_ids=[group.id for group in groups],
            )
            planned.camp_start_date = camp_start_date
            warnings = normalized.warnings + clusters.warnings + result.warnings
            return apply_run(planned, groups, normalized.campers, clusters, result, warnings, actor, self.clock())

        return self._commit(expected_version, command, create_if_missing=True)

    def add_late_camper(
        self,
        record: RawCamperRecord | Mapping[str, Any],
        expected_version: int,
        actor: str,
        camp_start_date: date | None = None,
        override_acknowledged: bool = False,
        override_note: str | None = None,
    ) -> GroupingState:
        """Place a camper who registered after the run without re-running.

        ``camp_start_date`` defaults to the date of the last run.
        """

        def command(state: GroupingState) -> GroupingState:
            start = camp_start_date or state.camp_start_date
            if start is None:
                raise InvalidOperation("A camp start date is required to normalize a late registration")

            normalized = normalize_roster([record], start, state.config)
            camper = normalized.campers[0]
            roster = [c for c in state.campers.values() if c.id != camper.id] + [camper]
            resolver = FriendClusterResolver(self.strategy, require_mutual=state.config.require_mutual_friends)
            clusters = resolver.resolve(roster)
            return add_late_camper(
                state,
                camper,
                clusters,
                normalized.warnings + clusters.warnings,
                actor,
                self.clock(),
                override_acknowledged=override_acknowledged,
                override_note=override_note,
            )

        return self._commit(expected_version, command)

    def move_camper(
        self,
        camper_id: str,
        from_group_id: str | None,
        to_group_id: str | None,
        expected_version: int,
        actor: str,
        override_acknowledged: bool = False,
        override_note: str | None = None,
    ) -> GroupingState:
        return self._commit(
            expected_version,
            lambda state: move_camper(
                state,
                camper_id,
                from_group_id,
                to_group_id,
                actor,
                self.clock(),
                override_acknowledged=override_acknowledged,
                override_note=override_note,
            ),
        )

    def move_campers(self, moves: Sequence[CamperMove], expected_version: int, actor: str) -> GroupingState:
        return self._commit(expected_version, lambda state: apply_moves(state, moves, actor, self.clock()))

    def acknowledge_violations(
        self, keys: Sequence[str], note: str | None, expected_version: int, actor: str
    ) -> GroupingState:
        return self._commit(
            expected_version, lambda state: acknowledge_violations(state, keys, note, actor, self.clock())
        )

    def mark_reviewed(self, expected_version: int, actor: str) -> GroupingState:
        return self._commit(expected_version, lambda state: mark_reviewed(state, actor, self.clock()))

    def finalize(self, expected_version: int, actor: str) -> GroupingState:
        return self._commit(expected_version, lambda state: finalize(state, actor, self.clock()))

    def unfinalize(self, expected_version: int, actor: str, reason: str | None) -> GroupingState:
        return self._commit(expected_version, lambda state: unfinalize(state, actor, reason, self.clock()))

    def add_group(
        self,
        expected_version: int,
        actor: str,
        name: str | None = None,
        color: str | None = None,
    ) -> tuple[GroupingState, Group]:
        created: list[Group] = []

        def command(state: GroupingState) -> GroupingState:
            updated, group = add_group(state, actor, self.clock(), name=name, color=color)
            created.append(group)
            return updated

        state = self._commit(expected_version, command, create_if_missing=True)
        return state, created[0]

    def remove_group(
        self,
        group_id: str,
        expected_version: int,
        actor: str,
        merge_into: str | None = None,
        override_acknowledged: bool = False,
        override_note: str | None = None,
    ) -> GroupingState:
        return self._commit(
            expected_version,
            lambda state: remove_group(
                state,
                group_id,
                actor,
                self.clock(),
                merge_into=merge_into,
                override_acknowledged=override_acknowledged,
                override_note=override_note,
            ),
        )

    def update_group(
        self,
        group_id: str,
        expected_version: int,
        actor: str,
        name: str | None = None,
        color: str | None = None,
    ) -> GroupingState:
        return self._commit(
            expected_version,
            lambda state: update_group(state, group_id, actor, self.clock(), name=name, color=color),
        )

    def update_config(self, config: GroupingConfig, expected_version: int, actor: str) -> GroupingState:
        return self._commit(
            expected_version,
            lambda state: update_config(state, config, actor, self.clock()),
            create_if_missing=True,
        )
