"""
Feasibility checking for the assignment algorithm.

Pre-run checks to identify problems the algorithm can only work around
(splitting clusters, leaving campers unassigned) before running it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from grouping.models import Camper, FriendCluster, GroupingConfig
    from grouping.solver.logging import PlacementLogger

logger = logging.getLogger(__name__)


def check_feasibility(
    campers: Sequence[Camper],
    clusters: Sequence[FriendCluster],
    config: GroupingConfig,
    placement_logger: PlacementLogger,
) -> list[str]:
    """Perform pre-run feasibility checks and log warnings.

    Args:
        campers: Normalized campers in roster order
        clusters: Friend clusters covering every camper
        config: Run configuration (already validated)
        placement_logger: Logger collecting feasibility warnings

    Returns:
        The warnings raised by this check
    """
    warnings: list[str] = []

    def warn(message: str) -> None:
        warnings.append(message)
        placement_logger.log_feasibility_warning(message)

    # 1. Total capacity
    total_capacity = config.num_groups * config.max_group_size
    if len(campers) > total_capacity:
        warn(
            f"{len(campers)} campers exceed total capacity {total_capacity} "
            f"({config.num_groups} groups x {config.max_group_size}); "
            f"{len(campers) - total_capacity} will be left unassigned"
        )
    else:
        logger.info(f"Total capacity check: {len(campers)} campers, {total_capacity} spots available")

    # 2. Clusters that cannot stay together
    for cluster in clusters:
        if cluster.size > config.max_group_size:
            warn(
                f"Friend cluster {cluster.id} has {cluster.size} members, "
                f"more than max group size {config.max_group_size}; it will be split"
            )

    # 3. Clusters that violate grade spread on their own
    for cluster in clusters:
        if cluster.grade_spread > config.max_grade_spread:
            warn(
                f"Friend cluster {cluster.id} spans grades {cluster.min_grade} to {cluster.max_grade}, "
                f"wider than max grade spread {config.max_grade_spread}"
            )

    return warnings
