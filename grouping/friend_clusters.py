"""
Friend cluster resolution using NetworkX connected components
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

import networkx as nx

from .errors import ResolutionError
from .models import Camper, FriendCluster
from .normalizer import normalize_name

logger = logging.getLogger(__name__)


class FriendReferenceStrategy(Protocol):
    """Resolves a camper's friend references to athlete ids in the roster."""

    def prepare(self, campers: Sequence[Camper]) -> None: ...

    def resolve(self, camper: Camper) -> tuple[list[str], list[str]]:
        """Return (matched athlete ids, unresolved references)."""
        ...


class NameMatchStrategy:
    """Case-insensitive full-name matching.

    When two campers share a normalized name the first one in roster order
    wins and the collision is logged.
    """

    def __init__(self) -> None:
        self._by_name: dict[str, str] = {}

    def prepare(self, campers: Sequence[Camper]) -> None:
        self._by_name = {}
        for camper in campers:
            key = normalize_name(camper.full_name)
            if key in self._by_name:
                logger.warning(
                    f"Name collision on '{key}': {camper.id} shadowed by {self._by_name[key]} for friend matching"
                )
                continue
            self._by_name[key] = camper.id

    def resolve(self, camper: Camper) -> tuple[list[str], list[str]]:
        matched: list[str] = []
        unresolved: list[str] = []
        for reference in camper.friend_requests:
            target = self._by_name.get(normalize_name(reference))
            if target is None:
                unresolved.append(reference)
            else:
                matched.append(target)
        return matched, unresolved


class AthleteIdStrategy:
    """Matches friend references that are already athlete ids."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def prepare(self, campers: Sequence[Camper]) -> None:
        self._ids = {camper.id for camper in campers}

    def resolve(self, camper: Camper) -> tuple[list[str], list[str]]:
        matched = [ref for ref in camper.friend_ids if ref in self._ids]
        unresolved = [ref for ref in camper.friend_ids if ref not in self._ids]
        return matched, unresolved


@dataclass
class ClusterResult:
    """Result of friend cluster resolution"""

    clusters: list[FriendCluster]
    cluster_by_camper: dict[str, str]
    friend_links: list[tuple[str, str]]  # Undirected, roster-ordered pairs
    graph: nx.Graph
    warnings: list[str] = field(default_factory=list)


class FriendClusterResolver:
    """Builds the friendship graph and extracts clusters as connected components.

    Every friend request becomes an undirected edge, so a one-directional
    request still keeps both campers together. With ``require_mutual`` only
    reciprocated requests form edges.
    """

    def __init__(self, strategy: FriendReferenceStrategy | None = None, require_mutual: bool = False):
        self.strategy = strategy or NameMatchStrategy()
        self.require_mutual = require_mutual

    def resolve(self, campers: Sequence[Camper]) -> ClusterResult:
        order = {}
        for index, camper in enumerate(campers):
            if camper.id in order:
                raise ResolutionError(f"Duplicate camper id in roster: {camper.id}")
            order[camper.id] = index

        self.strategy.prepare(campers)
        warnings: list[str] = []
        requested: set[tuple[str, str]] = set()

        for camper in campers:
            matched, unresolved = self.strategy.resolve(camper)
            for reference in unresolved:
                warnings.append(f"Unresolved friend reference '{reference}' for {camper.full_name} ({camper.id})")
            for target in matched:
                if target == camper.id:
                    logger.debug(f"Skipping self-referential friend request from {camper.id}")
                    continue
                requested.add((camper.id, target))

        graph = self.build_graph(campers, requested)
        clusters = self._extract_clusters(graph, campers, order)
        cluster_by_camper = {cid: cluster.id for cluster in clusters for cid in cluster.member_ids}
        friend_links = sorted(
            (tuple(sorted((a, b), key=order.__getitem__)) for a, b in graph.edges()),
            key=lambda pair: (order[pair[0]], order[pair[1]]),
        )

        multi = sum(1 for cluster in clusters if cluster.size > 1)
        logger.info(
            f"Resolved {graph.number_of_edges()} friend links into {len(clusters)} clusters "
            f"({multi} with more than one camper, {len(warnings)} unresolved references)"
        )
        return ClusterResult(
            clusters=clusters,
            cluster_by_camper=cluster_by_camper,
            friend_links=friend_links,  # type: ignore[arg-type]
            graph=graph,
            warnings=warnings,
        )

    def build_graph(self, campers: Sequence[Camper], requested: set[tuple[str, str]]) -> nx.Graph:
        """Undirected friendship graph; nodes carry grade, edges carry ``mutual``."""
        graph = nx.Graph()
        for camper in campers:
            graph.add_node(camper.id, grade=camper.grade)

        for requester, target in requested:
            mutual = (target, requester) in requested
            if self.require_mutual and not mutual:
                continue
            graph.add_edge(requester, target, mutual=mutual)
        return graph

    @staticmethod
    def _extract_clusters(graph: nx.Graph, campers: Sequence[Camper], order: dict[str, int]) -> list[FriendCluster]:
        grades = {camper.id: camper.grade for camper in campers}
        components = [sorted(component, key=order.__getitem__) for component in nx.connected_components(graph)]
        components.sort(key=lambda members: order[members[0]])

        clusters = []
        for number, members in enumerate(components, start=1):
            member_grades = [grades[cid] for cid in members]
            clusters.append(
                FriendCluster(
                    id=f"fc-{number}",
                    member_ids=tuple(members),
                    min_grade=min(member_grades),
                    max_grade=max(member_grades),
                )
            )
        return clusters
