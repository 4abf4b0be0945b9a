"""Tests for friend cluster resolution."""

from __future__ import annotations

import pytest

from grouping.errors import ResolutionError
from grouping.friend_clusters import AthleteIdStrategy, FriendClusterResolver, NameMatchStrategy
from grouping.models import Camper


def camper(athlete_id: str, first: str, grade: int = 3, friends: tuple[str, ...] = (), friend_ids=()) -> Camper:
    return Camper(
        athlete_id=athlete_id,
        first_name=first,
        last_name="Camper",
        grade=grade,
        friend_requests=tuple(f.lower() for f in friends),
        friend_ids=tuple(friend_ids),
    )


class TestFriendClusterResolver:
    """Clusters are connected components of the friendship graph."""

    def test_transitive_requests_form_one_cluster(self):
        campers = [
            camper("a", "Ava", 2, friends=("Ben Camper",)),
            camper("b", "Ben", 3, friends=("Cal Camper",)),
            camper("c", "Cal", 4),
            camper("d", "Dee", 3),
        ]
        result = FriendClusterResolver().resolve(campers)

        assert [c.member_ids for c in result.clusters] == [("a", "b", "c"), ("d",)]
        first = result.clusters[0]
        assert first.id == "fc-1"
        assert (first.min_grade, first.max_grade) == (2, 4)
        assert result.cluster_by_camper == {"a": "fc-1", "b": "fc-1", "c": "fc-1", "d": "fc-2"}
        assert result.friend_links == [("a", "b"), ("b", "c")]

    def test_one_directional_request_links_by_default(self):
        campers = [camper("a", "Ava", friends=("Ben Camper",)), camper("b", "Ben")]
        result = FriendClusterResolver().resolve(campers)

        assert len(result.clusters) == 1
        assert result.graph.edges["a", "b"]["mutual"] is False

    def test_accented_names_match_plain_spelling(self):
        campers = [camper("a", "Ava", friends=("Zoe Camper",)), camper("z", "Zoë")]
        result = FriendClusterResolver().resolve(campers)

        assert [c.member_ids for c in result.clusters] == [("a", "z")]
        assert result.warnings == []

    def test_require_mutual_drops_one_directional_requests(self):
        campers = [
            camper("a", "Ava", friends=("Ben Camper",)),
            camper("b", "Ben", friends=("Ava Camper",)),
            camper("c", "Cal", friends=("Ava Camper",)),
        ]
        result = FriendClusterResolver(require_mutual=True).resolve(campers)

        assert [c.member_ids for c in result.clusters] == [("a", "b"), ("c",)]
        assert result.graph.edges["a", "b"]["mutual"] is True

    def test_unresolved_reference_is_a_warning(self):
        campers = [camper("a", "Ava", friends=("Zed Nobody",))]
        result = FriendClusterResolver().resolve(campers)

        assert [c.member_ids for c in result.clusters] == [("a",)]
        assert result.warnings == ["Unresolved friend reference 'zed nobody' for Ava Camper (a)"]

    def test_self_reference_is_ignored(self):
        campers = [camper("a", "Ava", friends=("Ava Camper",))]
        result = FriendClusterResolver().resolve(campers)

        assert result.graph.number_of_edges() == 0
        assert result.warnings == []

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ResolutionError):
            FriendClusterResolver().resolve([camper("a", "Ava"), camper("a", "Ben")])

    def test_every_camper_in_exactly_one_cluster(self, roster):
        from grouping.normalizer import normalize_roster

        from conftest import CAMP_START

        campers = normalize_roster(roster, CAMP_START).campers
        result = FriendClusterResolver().resolve(campers)

        members = [cid for cluster in result.clusters for cid in cluster.member_ids]
        assert sorted(members) == sorted(c.id for c in campers)
        assert len(result.clusters) == 10


class TestStrategies:
    def test_name_collision_first_in_roster_wins(self):
        strategy = NameMatchStrategy()
        campers = [
            camper("a1", "Ava"),
            camper("a2", "Ava"),
            camper("b", "Ben", friends=("Ava Camper",)),
        ]
        strategy.prepare(campers)

        assert strategy.resolve(campers[2]) == (["a1"], [])

    def test_athlete_id_strategy(self):
        campers = [camper("a", "Ava", friend_ids=("b", "zz")), camper("b", "Ben")]
        result = FriendClusterResolver(AthleteIdStrategy()).resolve(campers)

        assert [c.member_ids for c in result.clusters] == [("a", "b")]
        assert result.warnings == ["Unresolved friend reference 'zz' for Ava Camper (a)"]
