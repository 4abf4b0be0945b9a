"""
Group Assignment Algorithm - deterministic greedy placement of friend clusters.

Pipeline:
1. Validate configuration
2. Order clusters largest first (ties: lowest grade, then seeded shuffle)
3. Place each cluster whole into the best-fitting group
4. Split clusters that fit nowhere, keeping friends adjacent
5. Swap unclustered campers between groups to tighten grade bands

Violations are not tracked here; the detector derives them from the result.
"""

from __future__ import annotations

import logging
import math
import random
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import networkx as nx

from grouping.errors import ConfigurationError
from grouping.models import Camper, FriendCluster, GroupingConfig

from .feasibility import check_feasibility
from .improvement import GroupTally, SwapImprover
from .logging import PlacementLogger

logger = logging.getLogger(__name__)

DEFAULT_SEED = 42


@dataclass
class AssignmentResult:
    """Outcome of one assignment run."""

    assignments: dict[str, list[str]]  # Group id -> member ids, roster order
    unassigned: list[str]
    split_clusters: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)


class GroupAssignmentSolver:
    """Assigns campers to groups keeping friend clusters together.

    The result depends only on the campers, clusters, friendship graph,
    configuration and ``seed``.
    """

    def __init__(self, config: GroupingConfig, seed: int = DEFAULT_SEED, debug_mode: bool = False):
        self.config = config
        self.seed = seed
        self.placement_logger = PlacementLogger(debug_mode=debug_mode)

    def solve(
        self,
        campers: Sequence[Camper],
        clusters: Sequence[FriendCluster],
        graph: nx.Graph | None = None,
        group_ids: Sequence[str] | None = None,
    ) -> AssignmentResult:
        """Run the assignment.

        Args:
            campers: Normalized campers in roster order
            clusters: Friend clusters; every camper must be in exactly one
            graph: Friendship graph used to keep split fragments connected
            group_ids: Ids of the target groups in ordinal order; defaults
                to group-1..group-N

        Raises:
            ConfigurationError: On an unusable configuration
        """
        config = self.config
        config.validate_for_run()
        if group_ids is None:
            group_ids = [f"group-{n}" for n in range(1, config.num_groups + 1)]
        elif len(group_ids) != config.num_groups:
            raise ConfigurationError(f"Expected {config.num_groups} group ids, got {len(group_ids)}")

        self.placement_logger = PlacementLogger(debug_mode=self.placement_logger.debug_mode)
        self._order = {camper.id: index for index, camper in enumerate(campers)}
        self._grades = {camper.id: camper.grade for camper in campers}
        self._medical = {camper.id: camper.has_medical_flag for camper in campers}
        self._check_cluster_coverage(clusters)

        warnings = check_feasibility(campers, clusters, config, self.placement_logger)

        n_campers = len(campers)
        target = min(math.ceil(n_campers / config.num_groups), config.max_group_size)
        logger.info(
            f"Assigning {n_campers} campers in {len(clusters)} clusters to {config.num_groups} groups "
            f"(target capacity {target}, max {config.max_group_size}, seed {self.seed})"
        )

        members: dict[str, list[str]] = {gid: [] for gid in group_ids}
        tallies: dict[str, GroupTally] = {gid: GroupTally() for gid in group_ids}
        ordinal = {gid: index for index, gid in enumerate(group_ids)}
        unassigned: list[str] = []
        split_clusters: list[str] = []

        for cluster in self._ordered_clusters(clusters):
            group_id = self._choose_group(cluster, members, tallies, ordinal, target)
            if group_id is not None:
                self._place(cluster.member_ids, group_id, members, tallies)
                self.placement_logger.log_placement(
                    group_id, f"{cluster.id} ({cluster.size} campers, grades {cluster.min_grade}-{cluster.max_grade})"
                )
                continue

            split_clusters.append(cluster.id)
            leftovers = self._split_cluster(cluster, graph, members, tallies, ordinal)
            for camper_id in leftovers:
                self.placement_logger.log_unplaced(camper_id, "no group has remaining capacity")
            unassigned.extend(leftovers)

        self.placement_logger.log_progress(f"Greedy placement done, {len(unassigned)} unassigned")

        singletons = [cluster.member_ids[0] for cluster in clusters if cluster.size == 1]
        singletons.sort(key=self._order.__getitem__)
        group_of = {cid: gid for gid, ids in members.items() for cid in ids}
        improver = SwapImprover(config, self._grades, self._medical)
        improvement = improver.improve(group_of, tallies, singletons)
        self.placement_logger.log_progress(
            f"Improvement: {improvement.swaps} swaps over {improvement.passes} passes, "
            f"score {improvement.score_before:.1f} -> {improvement.score_after:.1f}"
        )

        assignments: dict[str, list[str]] = {gid: [] for gid in group_ids}
        for camper_id, group_id in group_of.items():
            assignments[group_id].append(camper_id)
        for ids in assignments.values():
            ids.sort(key=self._order.__getitem__)
        unassigned.sort(key=self._order.__getitem__)

        stats = {
            "seed": self.seed,
            "num_campers": n_campers,
            "num_groups": config.num_groups,
            "num_clusters": len(clusters),
            "target_capacity": target,
            "split_clusters": len(split_clusters),
            "unassigned": len(unassigned),
            "swaps": improvement.swaps,
            "improvement_passes": improvement.passes,
            "score": round(improvement.score_after, 3),
            "log": self.placement_logger.get_summary(),
        }
        logger.info(
            f"Assignment complete: {n_campers - len(unassigned)} placed, {len(unassigned)} unassigned, "
            f"{len(split_clusters)} clusters split, {improvement.swaps} improving swaps"
        )
        return AssignmentResult(
            assignments=assignments,
            unassigned=unassigned,
            split_clusters=split_clusters,
            warnings=warnings,
            stats=stats,
        )

    def _check_cluster_coverage(self, clusters: Sequence[FriendCluster]) -> None:
        seen: set[str] = set()
        for cluster in clusters:
            for camper_id in cluster.member_ids:
                if camper_id not in self._order:
                    raise ConfigurationError(f"Cluster {cluster.id} references unknown camper {camper_id}")
                if camper_id in seen:
                    raise ConfigurationError(f"Camper {camper_id} appears in more than one cluster")
                seen.add(camper_id)
        missing = [cid for cid in self._order if cid not in seen]
        if missing:
            raise ConfigurationError(f"Campers missing from friend clusters: {missing}")

    def _ordered_clusters(self, clusters: Sequence[FriendCluster]) -> list[FriendCluster]:
        """Largest first, then lowest grade; exact ties fall back to a seeded shuffle."""
        ordered = list(clusters)
        random.Random(self.seed).shuffle(ordered)
        ordered.sort(key=lambda cluster: (-cluster.size, cluster.min_grade))
        return ordered

    def _choose_group(
        self,
        cluster: FriendCluster,
        members: dict[str, list[str]],
        tallies: dict[str, GroupTally],
        ordinal: dict[str, int],
        target: int,
    ) -> str | None:
        for capacity in (target, self.config.max_group_size):
            candidates = [gid for gid in members if capacity - len(members[gid]) >= cluster.size]
            if candidates:
                return min(
                    candidates,
                    key=lambda gid: (
                        self._resulting_spread(tallies[gid], cluster),
                        len(members[gid]),
                        ordinal[gid],
                    ),
                )
        return None

    @staticmethod
    def _resulting_spread(tally: GroupTally, cluster: FriendCluster) -> int:
        if not tally.grades:
            return cluster.grade_spread
        return max(max(tally.grades), cluster.max_grade) - min(min(tally.grades), cluster.min_grade)

    def _place(
        self,
        camper_ids: Sequence[str],
        group_id: str,
        members: dict[str, list[str]],
        tallies: dict[str, GroupTally],
    ) -> None:
        for camper_id in camper_ids:
            members[group_id].append(camper_id)
            tallies[group_id].add(self._grades[camper_id], self._medical[camper_id])

    def _split_cluster(
        self,
        cluster: FriendCluster,
        graph: nx.Graph | None,
        members: dict[str, list[str]],
        tallies: dict[str, GroupTally],
        ordinal: dict[str, int],
    ) -> list[str]:
        """Place a cluster in as few fragments as possible; return campers left over."""
        queue = self._cohesive_order(cluster, graph)
        fragments: dict[str, list[str]] = {}

        by_room = sorted(members, key=lambda gid: (-(self.config.max_group_size - len(members[gid])), ordinal[gid]))
        for group_id in by_room:
            room = self.config.max_group_size - len(members[group_id])
            if room <= 0 or not queue:
                continue
            fragment, queue = queue[:room], queue[room:]
            self._place(fragment, group_id, members, tallies)
            fragments[group_id] = fragment

        self.placement_logger.log_split(cluster.id, fragments)
        return queue

    def _cohesive_order(self, cluster: FriendCluster, graph: nx.Graph | None) -> list[str]:
        """Breadth-first order over the cluster's friendships.

        Consecutive runs of this order stay connected as far as possible,
        so cutting it into fragments keeps friends together.
        """
        if graph is None:
            return list(cluster.member_ids)

        subgraph = graph.subgraph(cluster.member_ids)
        remaining = sorted(cluster.member_ids, key=lambda cid: (-subgraph.degree(cid), self._order[cid]))
        visited: set[str] = set()
        ordered: list[str] = []

        for start in remaining:
            if start in visited:
                continue
            visited.add(start)
            queue = deque([start])
            while queue:
                node = queue.popleft()
                ordered.append(node)
                for neighbor in sorted(subgraph.neighbors(node), key=self._order.__getitem__):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        queue.append(neighbor)
        return ordered
