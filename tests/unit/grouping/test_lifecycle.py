"""Tests for the grouping lifecycle and group management."""

from __future__ import annotations

import pytest

from grouping.errors import (
    ConstraintViolation,
    FinalizationBlocked,
    GroupingFinalized,
    InvalidOperation,
    InvalidTransition,
)
from grouping.lifecycle import can_transition
from grouping.models import GroupingStatus

from conftest import CAMP_START, make_record


class TestTransitions:
    def test_transition_table(self):
        assert can_transition(GroupingStatus.NOT_STARTED, GroupingStatus.DRAFT)
        assert not can_transition(GroupingStatus.NOT_STARTED, GroupingStatus.FINALIZED)
        assert can_transition(GroupingStatus.REVIEWED, GroupingStatus.FINALIZED)
        assert not can_transition(GroupingStatus.FINALIZED, GroupingStatus.REVIEWED)

    def test_open_creates_not_started_state(self, engine):
        state = engine.open()

        assert state.status == GroupingStatus.NOT_STARTED
        assert state.version == 0
        assert state.groups == []
        assert engine.open().version == 0

    def test_run_moves_to_draft(self, drafted):
        _, state = drafted

        assert state.status == GroupingStatus.DRAFT
        assert state.version == 1
        assert state.audit_log[-1].action == "run_auto_grouping"
        assert state.audit_log[-1].actor == "director"

    def test_scenario_has_no_hard_violations(self, drafted):
        _, state = drafted

        assert [len(g.member_ids) for g in state.groups] == [6, 6]
        assert state.group_of("c01") == state.group_of("c02")
        assert state.group_of("c03") == state.group_of("c04")
        assert [v for v in state.violations if v.is_hard] == []

    def test_review_then_finalize(self, drafted):
        engine, state = drafted
        state = engine.mark_reviewed(state.version, "director")
        assert state.status == GroupingStatus.REVIEWED

        state = engine.finalize(state.version, "director")
        assert state.status == GroupingStatus.FINALIZED
        assert state.finalized_by == "director"
        assert state.finalized_at is not None

    def test_finalize_before_run_is_invalid(self, engine):
        state = engine.open()
        with pytest.raises(InvalidTransition):
            engine.finalize(state.version, "director")

    def test_review_twice_is_invalid(self, drafted):
        engine, state = drafted
        state = engine.mark_reviewed(state.version, "director")
        with pytest.raises(InvalidTransition):
            engine.mark_reviewed(state.version, "director")


class TestFinalizeGate:
    @pytest.fixture
    def overfull(self, engine):
        """One group of 2 for three campers: one is left unassigned."""
        from grouping.models import GroupingConfig

        roster = [make_record("a", "Ava"), make_record("b", "Ben"), make_record("c", "Cal")]
        state = engine.run_auto_grouping(
            roster, CAMP_START, 0, "director", config=GroupingConfig(num_groups=1, max_group_size=2)
        )
        return engine, state

    def test_blocked_by_unacknowledged_hard_violation(self, overfull):
        engine, state = overfull

        with pytest.raises(FinalizationBlocked) as exc_info:
            engine.finalize(state.version, "director")

        assert [v.type.value for v in exc_info.value.violations] == ["unassigned_camper"]
        assert engine.get_state().status == GroupingStatus.DRAFT
        assert engine.get_state().version == state.version

    def test_acknowledged_violation_allows_finalize(self, overfull):
        engine, state = overfull
        key = state.unacknowledged_hard_violations()[0].key

        state = engine.acknowledge_violations([key], "Late registrant joins next week", state.version, "director")
        state = engine.finalize(state.version, "director")

        assert state.status == GroupingStatus.FINALIZED

    def test_acknowledge_requires_note(self, overfull):
        engine, state = overfull
        key = state.violations[0].key
        with pytest.raises(InvalidOperation, match="requires a note"):
            engine.acknowledge_violations([key], "  ", state.version, "director")

    def test_acknowledge_unknown_key(self, overfull):
        engine, state = overfull
        with pytest.raises(InvalidOperation, match="Unknown or resolved"):
            engine.acknowledge_violations(["size_exceeded:nope"], "note", state.version, "director")


class TestFinalizedGuard:
    @pytest.fixture
    def finalized(self, drafted):
        engine, state = drafted
        return engine, engine.finalize(state.version, "director")

    def test_moves_rejected(self, finalized):
        engine, state = finalized
        camper_id = state.groups[0].member_ids[0]
        with pytest.raises(GroupingFinalized):
            engine.move_camper(camper_id, state.groups[0].id, state.groups[1].id, state.version, "director")

    def test_rerun_rejected(self, finalized, roster):
        engine, state = finalized
        with pytest.raises(GroupingFinalized):
            engine.run_auto_grouping(roster, CAMP_START, state.version, "director")

    def test_group_management_rejected(self, finalized):
        engine, state = finalized
        with pytest.raises(GroupingFinalized):
            engine.add_group(state.version, "director")
        with pytest.raises(GroupingFinalized):
            engine.update_group("group-1", state.version, "director", name="Renamed")

    def test_finalize_twice_rejected(self, finalized):
        engine, state = finalized
        with pytest.raises(GroupingFinalized):
            engine.finalize(state.version, "director")


class TestUnfinalize:
    def test_round_trip_keeps_violations(self, drafted):
        engine, state = drafted
        finalized = engine.finalize(state.version, "director")

        reopened = engine.unfinalize(finalized.version, "director", "Parent called about a friend request")
        assert reopened.status == GroupingStatus.DRAFT
        assert reopened.finalized_at is None

        refinalized = engine.finalize(reopened.version, "director")
        assert refinalized.status == GroupingStatus.FINALIZED
        assert refinalized.violations == finalized.violations
        assert refinalized.groups == finalized.groups

    def test_reason_required(self, drafted):
        engine, state = drafted
        state = engine.finalize(state.version, "director")
        with pytest.raises(InvalidOperation, match="requires a note"):
            engine.unfinalize(state.version, "director", "")

    def test_audited(self, drafted):
        engine, state = drafted
        state = engine.finalize(state.version, "alice")
        state = engine.unfinalize(state.version, "bob", "Roster change")

        entry = state.audit_log[-1]
        assert entry.action == "unfinalize"
        assert entry.actor == "bob"
        assert entry.details["reason"] == "Roster change"
        assert entry.details["previously_finalized_by"] == "alice"

    def test_unfinalize_draft_is_invalid(self, drafted):
        engine, state = drafted
        with pytest.raises(InvalidTransition):
            engine.unfinalize(state.version, "director", "why not")


class TestGroupManagement:
    def test_add_group(self, drafted):
        engine, state = drafted
        state, group = engine.add_group(state.version, "director", name="Team Owls")

        assert group.id == "group-3"
        assert group.number == 3
        assert state.groups[-1].name == "Team Owls"
        assert state.config.num_groups == 3

    def test_rename_group(self, drafted):
        engine, state = drafted
        state = engine.update_group("group-1", state.version, "director", name="Team Otters", color="#123456")

        group = state.group_by_id("group-1")
        assert (group.name, group.color) == ("Team Otters", "#123456")

    def test_blank_name_rejected(self, drafted):
        engine, state = drafted
        with pytest.raises(InvalidOperation, match="blank"):
            engine.update_group("group-1", state.version, "director", name="   ")

    def test_remove_empty_group_renumbers(self, drafted):
        engine, state = drafted
        state, _ = engine.add_group(state.version, "director")
        state, _ = engine.add_group(state.version, "director")

        state = engine.remove_group("group-3", state.version, "director")

        assert [(g.id, g.number) for g in state.groups] == [("group-1", 1), ("group-2", 2), ("group-4", 3)]
        assert state.config.num_groups == 3

    def test_remove_occupied_group_needs_merge_target(self, drafted):
        engine, state = drafted
        with pytest.raises(InvalidOperation, match="merge"):
            engine.remove_group("group-1", state.version, "director")

    def test_merge_into_full_group_needs_override(self, drafted):
        engine, state = drafted
        with pytest.raises(ConstraintViolation):
            engine.remove_group("group-1", state.version, "director", merge_into="group-2")

        state = engine.remove_group(
            "group-1",
            state.version,
            "director",
            merge_into="group-2",
            override_acknowledged=True,
            override_note="Single group for rainy day",
        )
        assert len(state.groups) == 1
        assert len(state.groups[0].member_ids) == 12
        assert state.unacknowledged_hard_violations() == []

    def test_cannot_remove_last_group(self, engine):
        state = engine.open()
        state, _ = engine.add_group(state.version, "director")
        with pytest.raises(InvalidOperation, match="last group"):
            engine.remove_group(state.groups[0].id, state.version, "director")

    def test_rerun_reuses_group_ids(self, drafted, roster):
        engine, state = drafted
        state = engine.update_group("group-2", state.version, "director", name="Team Owls")

        state = engine.run_auto_grouping(roster, CAMP_START, state.version, "director")

        assert [g.id for g in state.groups] == ["group-1", "group-2"]
        assert state.group_by_id("group-2").name == "Team Owls"
        assert sum(len(g.member_ids) for g in state.groups) == 12


class TestConfigUpdate:
    def test_update_config_rederives_violations(self, drafted):
        from grouping.models import GroupingConfig

        engine, state = drafted
        state = engine.update_config(
            GroupingConfig(num_groups=2, max_group_size=5, max_grade_spread=2), state.version, "director"
        )

        hard = sorted(v.key for v in state.violations if v.is_hard)
        assert hard == ["size_exceeded:group-1", "size_exceeded:group-2"]

    def test_invalid_config_rejected(self, drafted):
        from grouping.errors import ConfigurationError
        from grouping.models import GroupingConfig

        engine, state = drafted
        with pytest.raises(ConfigurationError):
            engine.update_config(GroupingConfig(num_groups=0), state.version, "director")
