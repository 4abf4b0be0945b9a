"""
Friend Split - members of one friend cluster placed in different groups.

SOFT violation, one per cluster per pair of groups it is split across, not
one per separated camper pair. A cluster spread over three groups yields
three violations; two campers on each side of one split yield one. The
violation lists every cluster member in either group.

Key: ``friend_split:<cluster id>:<group id>|<group id>``, groups in ordinal
order. Unassigned cluster members are reported by the unassigned check
instead.
"""

from __future__ import annotations

from collections import defaultdict
from itertools import combinations

from grouping.models import Violation, ViolationSeverity, ViolationType

from .base import DetectionContext


def find_friend_split_violations(ctx: DetectionContext) -> list[Violation]:
    ordinal = {group.id: group.number for group in ctx.groups}
    names = {group.id: group.name for group in ctx.groups}
    violations = []

    for cluster in ctx.clusters:
        if cluster.size < 2:
            continue
        by_group: dict[str, list[str]] = defaultdict(list)
        for camper_id in cluster.member_ids:
            group_id = ctx.membership.get(camper_id)
            if group_id is not None:
                by_group[group_id].append(camper_id)
        if len(by_group) < 2:
            continue

        for first, second in combinations(sorted(by_group, key=ordinal.__getitem__), 2):
            violations.append(
                Violation(
                    key=f"{ViolationType.FRIEND_SPLIT.value}:{cluster.id}:{first}|{second}",
                    type=ViolationType.FRIEND_SPLIT,
                    severity=ViolationSeverity.SOFT,
                    camper_ids=by_group[first] + by_group[second],
                    group_ids=[first, second],
                    message=(
                        f"Friend cluster {cluster.id} is split between {names[first]} "
                        f"({len(by_group[first])}) and {names[second]} ({len(by_group[second])})"
                    ),
                )
            )
    return violations
