from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError

DEFAULT_GROUP_NAMES = [
    "Team Blaze",
    "Team Thunder",
    "Team Lightning",
    "Team Storm",
    "Team Phoenix",
    "Team Falcon",
    "Team Wolves",
    "Team Panthers",
]

DEFAULT_GROUP_COLORS = [
    "#FF6B6B",  # Red
    "#4ECDC4",  # Teal
    "#FFE66D",  # Yellow
    "#95E1D3",  # Mint
    "#F38181",  # Coral
    "#AA96DA",  # Lavender
    "#FCBAD3",  # Pink
    "#A8D8EA",  # Light Blue
]

PRE_K_GRADE = -1
KINDERGARTEN_GRADE = 0
MAX_GRADE = 12


def default_group_name(number: int) -> str:
    if 1 <= number <= len(DEFAULT_GROUP_NAMES):
        return DEFAULT_GROUP_NAMES[number - 1]
    return f"Group {number}"


def default_group_color(number: int) -> str:
    return DEFAULT_GROUP_COLORS[(number - 1) % len(DEFAULT_GROUP_COLORS)]


class GroupingStatus(str, Enum):
    NOT_STARTED = "not_started"
    DRAFT = "draft"
    REVIEWED = "reviewed"
    FINALIZED = "finalized"


class ViolationSeverity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


class ViolationType(str, Enum):
    SIZE_EXCEEDED = "size_exceeded"
    GRADE_SPREAD_EXCEEDED = "grade_spread_exceeded"
    FRIEND_SPLIT = "friend_split"
    MEDICAL_CONCENTRATION = "medical_concentration"
    UNASSIGNED_CAMPER = "unassigned_camper"


class AssignmentType(str, Enum):
    AUTO = "auto"  # Placed by the assignment algorithm
    MANUAL = "manual"  # Moved by a director
    OVERRIDE = "override"  # Moved with an acknowledged hard violation


class RawCamperRecord(BaseModel):
    """A roster row as delivered by the registration system."""

    model_config = ConfigDict(extra="ignore")

    athlete_id: str
    registration_id: str | None = None
    first_name: str
    last_name: str
    date_of_birth: date | None = None
    grade: str | int | None = None
    friend_requests: str | list[str] | None = None
    friend_ids: list[str] | None = None  # Athlete ids, when the roster provides them
    medical_notes: str | None = None
    allergies: str | None = None
    special_considerations: str | None = None
    registered_at: datetime | None = None


class Camper(BaseModel):
    """A normalized camper. Immutable for the duration of a run."""

    model_config = ConfigDict(frozen=True)

    athlete_id: str
    registration_id: str | None = None
    first_name: str
    last_name: str
    date_of_birth: date | None = None
    age_years: int | None = None
    age_months: int | None = None
    grade: int  # -1 = Pre-K, 0 = K, 1-12
    grade_from_registration: int | None = None
    grade_computed_from_dob: int | None = None
    grade_discrepancy: bool = False
    friend_requests: tuple[str, ...] = ()
    friend_ids: tuple[str, ...] = ()
    has_medical_notes: bool = False
    has_allergies: bool = False
    special_considerations: str | None = None
    registered_at: datetime | None = None
    is_late_registration: bool = False

    @property
    def id(self) -> str:
        return self.athlete_id

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_medical_flag(self) -> bool:
        """Whether the camper counts toward medical concentration."""
        return self.has_medical_notes or self.has_allergies


class FriendCluster(BaseModel):
    """A maximal set of campers connected through friend requests."""

    model_config = ConfigDict(frozen=True)

    id: str
    member_ids: tuple[str, ...]
    min_grade: int
    max_grade: int

    @property
    def size(self) -> int:
        return len(self.member_ids)

    @property
    def grade_spread(self) -> int:
        return self.max_grade - self.min_grade


class Group(BaseModel):
    id: str
    number: int
    name: str
    color: str
    member_ids: list[str] = Field(default_factory=list)


class GroupStats(BaseModel):
    group_id: str
    count: int = 0
    min_grade: int | None = None
    max_grade: int | None = None
    medical_count: int = 0

    @property
    def grade_spread(self) -> int:
        if self.min_grade is None or self.max_grade is None:
            return 0
        return self.max_grade - self.min_grade

    @property
    def medical_ratio(self) -> float:
        return self.medical_count / self.count if self.count else 0.0


class Violation(BaseModel):
    key: str  # Identifies what is violated (group, cluster pair, camper), not how badly
    type: ViolationType
    severity: ViolationSeverity
    measure: int = 0  # How badly: member count, grade spread, flagged count
    camper_ids: list[str] = Field(default_factory=list)
    group_ids: list[str] = Field(default_factory=list)
    message: str
    acknowledged: bool = False
    override_note: str | None = None

    @property
    def is_hard(self) -> bool:
        return self.severity == ViolationSeverity.HARD


class Acknowledgement(BaseModel):
    """A director's acceptance of a violation.

    Covers the violation with the same key as long as its measure does not
    grow beyond the acknowledged one.
    """

    key: str
    violation_type: ViolationType
    measure: int = 0
    note: str
    actor: str
    acknowledged_at: datetime


class AuditEntry(BaseModel):
    version: int
    action: str
    actor: str
    at: datetime
    details: dict[str, Any] = Field(default_factory=dict)


class GroupingConfig(BaseModel):
    """Per-camp settings for a grouping run."""

    num_groups: int = 4
    max_group_size: int = 12
    max_grade_spread: int = 2
    medical_threshold: float = 0.5  # Fraction of a group with medical flags

    check_size: bool = True
    check_grade_spread: bool = True
    check_friend_split: bool = True
    check_medical_concentration: bool = True
    check_unassigned: bool = True

    grade_spread_weight: int = 10
    medical_weight: int = 5

    school_year_cutoff_month: int = 9
    late_registration_days: int = 7
    require_mutual_friends: bool = False

    improvement_swaps_per_camper: int = 2
    improvement_max_passes: int = 10

    def validate_for_run(self) -> None:
        """Raise ConfigurationError if an assignment run cannot proceed."""
        if self.num_groups <= 0:
            raise ConfigurationError(f"num_groups must be positive, got {self.num_groups}")
        if self.max_group_size < 1:
            raise ConfigurationError(f"max_group_size must be at least 1, got {self.max_group_size}")
        if self.max_grade_spread < 0:
            raise ConfigurationError(f"max_grade_spread cannot be negative, got {self.max_grade_spread}")
        if not 0 <= self.medical_threshold <= 1:
            raise ConfigurationError(f"medical_threshold must be within [0, 1], got {self.medical_threshold}")
        if not 1 <= self.school_year_cutoff_month <= 12:
            raise ConfigurationError(f"school_year_cutoff_month must be 1-12, got {self.school_year_cutoff_month}")


class GroupingState(BaseModel):
    """Aggregate root for one camp's grouping.

    Owns groups, the run's campers and clusters, the current violation list,
    acknowledgements and the audit trail. ``version`` increases by exactly one
    on every successful mutation.
    """

    camp_id: str
    status: GroupingStatus = GroupingStatus.NOT_STARTED
    version: int = 0
    config: GroupingConfig = Field(default_factory=GroupingConfig)
    seed: int = 42

    groups: list[Group] = Field(default_factory=list)
    campers: dict[str, Camper] = Field(default_factory=dict)  # Roster order
    clusters: list[FriendCluster] = Field(default_factory=list)
    friend_links: list[tuple[str, str]] = Field(default_factory=list)
    unassigned_ids: list[str] = Field(default_factory=list)

    violations: list[Violation] = Field(default_factory=list)
    acknowledgements: dict[str, Acknowledgement] = Field(default_factory=dict)
    assignment_types: dict[str, AssignmentType] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    run_stats: dict[str, Any] = Field(default_factory=dict)
    audit_log: list[AuditEntry] = Field(default_factory=list)

    camp_start_date: date | None = None
    next_group_seq: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None
    finalized_at: datetime | None = None
    finalized_by: str | None = None

    @property
    def is_finalized(self) -> bool:
        return self.status == GroupingStatus.FINALIZED

    @property
    def total_campers(self) -> int:
        return len(self.campers)

    def group_by_id(self, group_id: str) -> Group | None:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def membership(self) -> dict[str, str]:
        """Map camper id -> group id for every assigned camper."""
        return {cid: group.id for group in self.groups for cid in group.member_ids}

    def group_of(self, camper_id: str) -> str | None:
        for group in self.groups:
            if camper_id in group.member_ids:
                return group.id
        return None

    def cluster_by_camper(self) -> dict[str, FriendCluster]:
        return {cid: cluster for cluster in self.clusters for cid in cluster.member_ids}

    def group_stats(self, group: Group) -> GroupStats:
        grades = [self.campers[cid].grade for cid in group.member_ids if cid in self.campers]
        return GroupStats(
            group_id=group.id,
            count=len(group.member_ids),
            min_grade=min(grades) if grades else None,
            max_grade=max(grades) if grades else None,
            medical_count=sum(
                1 for cid in group.member_ids if cid in self.campers and self.campers[cid].has_medical_flag
            ),
        )

    def all_group_stats(self) -> dict[str, GroupStats]:
        return {group.id: self.group_stats(group) for group in self.groups}

    def covering_acknowledgement(self, violation: Violation) -> Acknowledgement | None:
        ack = self.acknowledgements.get(violation.key)
        if ack is not None and violation.measure <= ack.measure:
            return ack
        return None

    def unacknowledged_hard_violations(self) -> list[Violation]:
        return [v for v in self.violations if v.is_hard and not v.acknowledged]

    def allocate_group_id(self) -> str:
        """Return a fresh group id. Ids are never reused within a state."""
        group_id = f"group-{self.next_group_seq}"
        self.next_group_seq += 1
        return group_id
