"""
Local improvement pass for the assignment algorithm.

Swaps pairs of unclustered campers between groups while the swap strictly
lowers the weighted score and introduces no new grade-spread breach. Group
sizes never change and friend clusters are never touched.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from grouping.logging_config import TRACE
from grouping.models import GroupingConfig

logger = logging.getLogger(__name__)

# Weight applied per grade of spread beyond the configured maximum
SPREAD_EXCESS_PENALTY = 1000

_EPSILON = 1e-9


@dataclass
class GroupTally:
    """Running per-group statistics used for incremental scoring."""

    count: int = 0
    grade_sum: int = 0
    grade_sumsq: int = 0
    medical: int = 0
    grades: Counter[int] = field(default_factory=Counter)

    def add(self, grade: int, medical: bool) -> None:
        self.count += 1
        self.grade_sum += grade
        self.grade_sumsq += grade * grade
        self.medical += int(medical)
        self.grades[grade] += 1

    def remove(self, grade: int, medical: bool) -> None:
        self.count -= 1
        self.grade_sum -= grade
        self.grade_sumsq -= grade * grade
        self.medical -= int(medical)
        self.grades[grade] -= 1
        if self.grades[grade] == 0:
            del self.grades[grade]

    def copy(self) -> GroupTally:
        return GroupTally(self.count, self.grade_sum, self.grade_sumsq, self.medical, Counter(self.grades))

    @property
    def spread(self) -> int:
        if not self.grades:
            return 0
        return max(self.grades) - min(self.grades)


def group_score(tally: GroupTally, config: GroupingConfig) -> float:
    """Weighted badness of a single group; lower is better."""
    if tally.count == 0:
        return 0.0
    excess_spread = max(0, tally.spread - config.max_grade_spread)
    dispersion = tally.grade_sumsq - tally.grade_sum * tally.grade_sum / tally.count
    medical_excess = max(0.0, tally.medical - config.medical_threshold * tally.count)
    return (
        SPREAD_EXCESS_PENALTY * excess_spread
        + config.grade_spread_weight * dispersion
        + config.medical_weight * medical_excess
    )


@dataclass
class ImprovementResult:
    swaps: int = 0
    passes: int = 0
    score_before: float = 0.0
    score_after: float = 0.0


class SwapImprover:
    """Greedy first-improvement pairwise swap search.

    Candidates are visited in a fixed order so the result only depends on
    the input assignment.
    """

    def __init__(self, config: GroupingConfig, grades: dict[str, int], medical: dict[str, bool]):
        self.config = config
        self.grades = grades
        self.medical = medical

    def improve(
        self,
        group_of: dict[str, str],
        tallies: dict[str, GroupTally],
        movable: Sequence[str],
    ) -> ImprovementResult:
        """Mutate ``group_of`` and ``tallies`` in place by applying swaps.

        Args:
            group_of: Camper id -> group id for every assigned camper
            tallies: Group id -> running statistics consistent with group_of
            movable: Campers eligible for swapping, in visiting order
        """
        config = self.config
        result = ImprovementResult(score_before=self.total_score(tallies))
        max_swaps = config.improvement_swaps_per_camper * len(group_of)
        if max_swaps <= 0 or config.improvement_max_passes <= 0:
            result.score_after = result.score_before
            return result

        candidates = [cid for cid in movable if cid in group_of]
        for pass_number in range(1, config.improvement_max_passes + 1):
            result.passes = pass_number
            improved = False
            for i, a in enumerate(candidates):
                for b in candidates[i + 1 :]:
                    if group_of[a] == group_of[b]:
                        continue
                    if self.grades[a] == self.grades[b] and self.medical[a] == self.medical[b]:
                        continue
                    if self._try_swap(a, b, group_of, tallies):
                        result.swaps += 1
                        improved = True
                        if result.swaps >= max_swaps:
                            logger.debug(f"Swap budget of {max_swaps} exhausted on pass {pass_number}")
                            result.score_after = self.total_score(tallies)
                            return result
            if not improved:
                break

        result.score_after = self.total_score(tallies)
        return result

    def total_score(self, tallies: dict[str, GroupTally]) -> float:
        return sum(group_score(tally, self.config) for tally in tallies.values())

    def _try_swap(self, a: str, b: str, group_of: dict[str, str], tallies: dict[str, GroupTally]) -> bool:
        ga, gb = group_of[a], group_of[b]
        old_a, old_b = tallies[ga], tallies[gb]

        new_a = old_a.copy()
        new_a.remove(self.grades[a], self.medical[a])
        new_a.add(self.grades[b], self.medical[b])
        new_b = old_b.copy()
        new_b.remove(self.grades[b], self.medical[b])
        new_b.add(self.grades[a], self.medical[a])

        limit = self.config.max_grade_spread
        if new_a.spread > max(limit, old_a.spread) or new_b.spread > max(limit, old_b.spread):
            return False

        before = group_score(old_a, self.config) + group_score(old_b, self.config)
        after = group_score(new_a, self.config) + group_score(new_b, self.config)
        if after >= before - _EPSILON:
            return False

        logger.log(TRACE, f"Swap {a} ({ga}) <-> {b} ({gb}): score {before:.2f} -> {after:.2f}")
        tallies[ga], tallies[gb] = new_a, new_b
        group_of[a], group_of[b] = gb, ga
        return True
