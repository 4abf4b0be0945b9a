"""Tests for manual camper moves and override acknowledgement."""

from __future__ import annotations

import pytest

from grouping.errors import ConstraintViolation, InvalidOperation
from grouping.models import AssignmentType, GroupingState
from grouping.overrides import CamperMove

PAIRED = {"c01", "c02", "c03", "c04"}


def singles(state: GroupingState, group_id: str) -> list[str]:
    """Members of a group that are not in a friend pair."""
    return [cid for cid in state.group_by_id(group_id).member_ids if cid not in PAIRED]


class TestMoveIntoFullGroup:
    """Moving a camper into a group already at max size."""

    def test_rejected_without_override(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]

        with pytest.raises(ConstraintViolation) as exc_info:
            engine.move_camper(camper_id, "group-1", "group-2", state.version, "director")

        assert exc_info.value.move_index == 0
        assert [v.key for v in exc_info.value.violations] == ["size_exceeded:group-2"]

        stored = engine.get_state()
        assert stored.version == state.version
        assert [g.member_ids for g in stored.groups] == [g.member_ids for g in state.groups]
        assert stored.unassigned_ids == state.unassigned_ids
        assert stored.model_dump() == state.model_dump()

    def test_override_with_note_is_applied_and_acknowledged(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]

        updated = engine.move_camper(
            camper_id,
            "group-1",
            "group-2",
            state.version,
            "director",
            override_acknowledged=True,
            override_note="Sibling needs to stay with cousin",
        )

        assert updated.version == state.version + 1
        assert updated.group_of(camper_id) == "group-2"
        assert updated.assignment_types[camper_id] == AssignmentType.OVERRIDE
        size = next(v for v in updated.violations if v.key == "size_exceeded:group-2")
        assert size.acknowledged is True
        assert size.override_note == "Sibling needs to stay with cousin"
        assert updated.unacknowledged_hard_violations() == []
        assert updated.acknowledgements["size_exceeded:group-2"].actor == "director"

    def test_override_without_note_is_invalid(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]

        with pytest.raises(InvalidOperation, match="requires a note"):
            engine.move_camper(
                camper_id, "group-1", "group-2", state.version, "director", override_acknowledged=True
            )
        assert engine.get_state().version == state.version

    def test_growing_an_acknowledged_violation_needs_a_new_override(self, drafted):
        engine, state = drafted
        first, second = singles(state, "group-1")[:2]
        state = engine.move_camper(
            first, "group-1", "group-2", state.version, "director", override_acknowledged=True, override_note="ok"
        )

        with pytest.raises(ConstraintViolation):
            engine.move_camper(second, "group-1", "group-2", state.version, "director")

    def test_resolved_override_does_not_cover_a_later_violation(self, drafted):
        engine, state = drafted
        first, second = singles(state, "group-1")[:2]
        state = engine.move_camper(
            first, "group-1", "group-2", state.version, "director", override_acknowledged=True, override_note="ok"
        )
        state = engine.move_camper(first, "group-2", "group-1", state.version, "director")

        assert state.unacknowledged_hard_violations() == []
        assert "size_exceeded:group-2" not in state.acknowledgements

        members_before = [g.member_ids for g in state.groups]
        with pytest.raises(ConstraintViolation) as exc_info:
            engine.move_camper(second, "group-1", "group-2", state.version, "director")

        assert [v.key for v in exc_info.value.violations] == ["size_exceeded:group-2"]
        assert [g.member_ids for g in engine.get_state().groups] == members_before

    def test_acknowledgement_survives_while_violation_persists(self, drafted):
        engine, state = drafted
        first, second = singles(state, "group-1")[:2]
        state = engine.move_camper(
            first, "group-1", "group-2", state.version, "director", override_acknowledged=True, override_note="ok"
        )
        swap_out = singles(state, "group-2")[0]

        updated = engine.move_campers(
            [
                CamperMove(camper_id=second, from_group_id="group-1", to_group_id="group-2"),
                CamperMove(camper_id=swap_out, from_group_id="group-2", to_group_id="group-1"),
            ],
            state.version,
            "director",
        )

        assert "size_exceeded:group-2" in updated.acknowledgements
        assert updated.unacknowledged_hard_violations() == []


class TestBatchMoves:
    def test_swap_between_full_groups_succeeds(self, drafted):
        engine, state = drafted
        a = singles(state, "group-1")[0]
        b = singles(state, "group-2")[0]

        updated = engine.move_campers(
            [
                CamperMove(camper_id=a, from_group_id="group-1", to_group_id="group-2"),
                CamperMove(camper_id=b, from_group_id="group-2", to_group_id="group-1"),
            ],
            state.version,
            "director",
        )

        assert updated.version == state.version + 1
        assert updated.group_of(a) == "group-2"
        assert updated.group_of(b) == "group-1"
        assert [len(g.member_ids) for g in updated.groups] == [6, 6]
        assert updated.assignment_types[a] == AssignmentType.MANUAL
        assert updated.audit_log[-1].action == "move_campers"

    def test_batch_is_all_or_nothing(self, drafted):
        engine, state = drafted
        a = singles(state, "group-1")[0]

        with pytest.raises(InvalidOperation, match="Move 1"):
            engine.move_campers(
                [
                    CamperMove(camper_id=a, from_group_id="group-1", to_group_id="group-2"),
                    CamperMove(camper_id="nobody", from_group_id="group-2", to_group_id="group-1"),
                ],
                state.version,
                "director",
            )
        assert engine.get_state().group_of(a) == "group-1"

    def test_splitting_a_friend_pair_is_only_soft(self, drafted):
        engine, state = drafted
        pair_group = state.group_of("c01")
        other_group = "group-2" if pair_group == "group-1" else "group-1"
        partner = singles(state, other_group)[0]

        updated = engine.move_campers(
            [
                CamperMove(camper_id="c01", from_group_id=pair_group, to_group_id=other_group),
                CamperMove(camper_id=partner, from_group_id=other_group, to_group_id=pair_group),
            ],
            state.version,
            "director",
        )

        splits = [v for v in updated.violations if v.type.value == "friend_split"]
        assert len(splits) == 1
        assert not splits[0].is_hard


class TestMovePreconditions:
    def test_wrong_source_group(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]
        with pytest.raises(InvalidOperation, match="is in group-1"):
            engine.move_camper(camper_id, "group-2", "group-1", state.version, "director")

    def test_same_group(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]
        with pytest.raises(InvalidOperation, match="already in"):
            engine.move_camper(camper_id, "group-1", "group-1", state.version, "director")

    def test_unknown_target(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]
        with pytest.raises(InvalidOperation, match="unknown group"):
            engine.move_camper(camper_id, "group-1", "group-9", state.version, "director")

    def test_unassigning_is_a_hard_violation(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]
        with pytest.raises(ConstraintViolation) as exc_info:
            engine.move_camper(camper_id, "group-1", None, state.version, "director")
        assert exc_info.value.violations[0].key == f"unassigned_camper:{camper_id}"


class TestPreview:
    def test_preview_reports_required_override(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]

        preview = engine.preview_move(camper_id, "group-1", "group-2")

        assert preview.allowed is False
        assert preview.requires_override is True
        assert [v.key for v in preview.introduced] == ["size_exceeded:group-2"]
        assert engine.get_state().version == state.version

    def test_preview_with_override_is_allowed(self, drafted):
        engine, state = drafted
        camper_id = singles(state, "group-1")[0]

        preview = engine.preview_move(
            camper_id, "group-1", "group-2", override_acknowledged=True, override_note="approved"
        )

        assert preview.allowed is True
        assert preview.requires_override is True

    def test_preview_of_invalid_move_returns_error(self, drafted):
        engine, _ = drafted
        preview = engine.preview_move("nobody", "group-1", "group-2")

        assert preview.allowed is False
        assert "unknown camper" in preview.error
