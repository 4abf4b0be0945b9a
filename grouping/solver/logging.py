"""
Placement Logger - Logging infrastructure for the assignment algorithm.

Tracks cluster placements, splits, unplaced campers and improvement progress.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

logger = logging.getLogger(__name__)


class PlacementLogger:
    """Logger for tracking placement decisions during an assignment run."""

    def __init__(self, debug_mode: bool = False) -> None:
        self.debug_mode = debug_mode
        self.placements: dict[str, list[str]] = defaultdict(list)
        self.splits: list[str] = []
        self.unplaced: list[str] = []
        self.feasibility_warnings: list[str] = []
        self.progress: list[str] = []

    def log_placement(self, group_id: str, details: str) -> None:
        """Log a cluster being placed whole into a group."""
        self.placements[group_id].append(details)
        if self.debug_mode:
            logger.debug(f"[PLACE] {group_id}: {details}")

    def log_split(self, cluster_id: str, fragments: dict[str, list[str]]) -> None:
        """Log a cluster that had to be split across groups."""
        details = ", ".join(f"{gid}={len(members)}" for gid, members in fragments.items())
        self.splits.append(f"{cluster_id}: {details}")
        logger.info(f"[SPLIT] {cluster_id} split into {len(fragments)} fragments ({details})")

    def log_unplaced(self, camper_id: str, reason: str) -> None:
        """Log a camper no group could take."""
        self.unplaced.append(camper_id)
        logger.warning(f"[UNPLACED] {camper_id}: {reason}")

    def log_feasibility_warning(self, warning: str) -> None:
        """Log potential feasibility issues."""
        self.feasibility_warnings.append(warning)
        logger.warning(f"[FEASIBILITY] {warning}")

    def log_progress(self, message: str) -> None:
        """Log algorithm progress."""
        self.progress.append(message)
        if self.debug_mode:
            logger.debug(f"[SOLVER] {message}")

    def get_summary(self) -> dict[str, Any]:
        """Get summary of all logged information."""
        return {
            "placements": {gid: len(entries) for gid, entries in self.placements.items()},
            "splits": self.splits,
            "unplaced": self.unplaced,
            "feasibility_warnings": self.feasibility_warnings,
            "progress": self.progress,
        }
