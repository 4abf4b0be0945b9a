"""Camper normalization.

Turns raw roster rows into immutable ``Camper`` records ready for clustering
and assignment:

1. Age in years and months at camp start
2. Numeric grade (registration grade, validated against DOB)
3. Grade discrepancy and late registration flags
4. Friend request strings normalized for name matching (case and accents folded)
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

from pydantic import ValidationError

from .errors import ResolutionError
from .models import KINDERGARTEN_GRADE, MAX_GRADE, PRE_K_GRADE, Camper, GroupingConfig, RawCamperRecord

logger = logging.getLogger(__name__)

_PRE_K_RE = re.compile(r"^(pre-?k|pre-?kindergarten|pk|preschool)$")
_KINDERGARTEN_RE = re.compile(r"^(kindergarten|kinder|k)$")
_NUMERIC_GRADE_RE = re.compile(r"^(\d+)(st|nd|rd|th)?(\s*(grade)?)?$")
_FRIEND_SPLIT_RE = re.compile(r"[,;\n]+")

WORD_GRADES = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
    "tenth": 10,
    "eleventh": 11,
    "twelfth": 12,
}

# Grades differing by more than this from the DOB-derived grade are flagged
GRADE_DISCREPANCY_TOLERANCE = 1


@dataclass
class NormalizationResult:
    campers: list[Camper]
    warnings: list[str] = field(default_factory=list)


def parse_grade(value: str | int | None) -> int | None:
    """Parse a grade as entered on a registration form.

    "Pre-K"/"PK" -> -1, "K"/"Kindergarten" -> 0, "3", "3rd", "3rd grade",
    "third" -> 3. Returns None for anything outside Pre-K..12.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value if PRE_K_GRADE <= value <= MAX_GRADE else None

    normalized = value.strip().lower()
    if not normalized:
        return None
    if _PRE_K_RE.match(normalized):
        return PRE_K_GRADE
    if _KINDERGARTEN_RE.match(normalized):
        return KINDERGARTEN_GRADE

    match = _NUMERIC_GRADE_RE.match(normalized)
    if match:
        grade = int(match.group(1))
        return grade if 1 <= grade <= MAX_GRADE else None

    for word, grade in WORD_GRADES.items():
        if word in normalized:
            return grade
    return None


def calculate_age(date_of_birth: date, at_date: date) -> int:
    """Age in complete years at ``at_date``."""
    age = at_date.year - date_of_birth.year
    if (at_date.month, at_date.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return max(0, age)


def calculate_age_months(date_of_birth: date, at_date: date) -> int:
    """Age in complete months at ``at_date``."""
    months = (at_date.year - date_of_birth.year) * 12 + (at_date.month - date_of_birth.month)
    if at_date.day < date_of_birth.day:
        months -= 1
    return max(0, months)


def compute_grade_from_dob(date_of_birth: date, camp_start: date, cutoff_month: int = 9) -> int:
    """Expected grade from age at the start of the school year containing camp.

    A child who is 5 when the school year starts is in kindergarten.
    """
    if camp_start.month >= cutoff_month:
        school_year_start = date(camp_start.year, cutoff_month, 1)
    else:
        school_year_start = date(camp_start.year - 1, cutoff_month, 1)
    grade = calculate_age(date_of_birth, school_year_start) - 5
    return max(PRE_K_GRADE, min(MAX_GRADE, grade))


def detect_grade_discrepancy(reported: int | None, computed: int | None) -> bool:
    if reported is None or computed is None:
        return False
    return abs(reported - computed) > GRADE_DISCREPANCY_TOLERANCE


def is_late_registration(registered_at: datetime | None, camp_start: date, late_days: int) -> bool:
    """True when the registration arrived fewer than ``late_days`` before camp."""
    if registered_at is None:
        return False
    camp_start_dt = datetime.combine(camp_start, time.min, tzinfo=registered_at.tzinfo)
    days_before = (camp_start_dt - registered_at).total_seconds() / 86400
    return days_before < late_days


def normalize_name(name: str) -> str:
    """Lower-case, accents folded, letters and single spaces only."""
    decomposed = unicodedata.normalize("NFKD", name.casefold())
    name = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    name = re.sub(r"[^a-z\s]", "", name.strip())
    return re.sub(r"\s+", " ", name).strip()


def parse_friend_requests(raw: str | Iterable[str] | None) -> list[str]:
    """Split and normalize friend requests; empty entries are dropped."""
    if not raw:
        return []
    names = _FRIEND_SPLIT_RE.split(raw) if isinstance(raw, str) else list(raw)
    normalized = (normalize_name(name) for name in names)
    return [name for name in normalized if name]


def format_grade(grade: int) -> str:
    """Display form: "Pre-K", "K", "1st", "2nd", "3rd", "4th"..."""
    if grade == PRE_K_GRADE:
        return "Pre-K"
    if grade == KINDERGARTEN_GRADE:
        return "K"
    if grade == 1:
        return "1st"
    if grade == 2:
        return "2nd"
    if grade == 3:
        return "3rd"
    if 4 <= grade <= MAX_GRADE:
        return f"{grade}th"
    return f"Grade {grade}"


def format_grade_range(min_grade: int | None, max_grade: int | None) -> str:
    if min_grade is None or max_grade is None:
        return "-"
    if min_grade == max_grade:
        return format_grade(min_grade)
    return f"{format_grade(min_grade)} - {format_grade(max_grade)}"


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def normalize_camper(
    record: RawCamperRecord, camp_start: date, config: GroupingConfig
) -> tuple[Camper, list[str]]:
    """Normalize a single roster record.

    Raises:
        ResolutionError: If no grade can be determined from either the
            registration grade or the date of birth
    """
    warnings: list[str] = []
    label = f"{record.first_name} {record.last_name} ({record.athlete_id})"

    reported = parse_grade(record.grade)
    if record.grade not in (None, "") and reported is None:
        warnings.append(f"{label}: unrecognized grade '{record.grade}'")

    computed = None
    age_years = age_months = None
    if record.date_of_birth is not None:
        computed = compute_grade_from_dob(record.date_of_birth, camp_start, config.school_year_cutoff_month)
        age_years = calculate_age(record.date_of_birth, camp_start)
        age_months = calculate_age_months(record.date_of_birth, camp_start)

    grade = reported if reported is not None else computed
    if grade is None:
        raise ResolutionError(f"Cannot determine grade for camper {label}: no valid grade or date of birth")

    discrepancy = detect_grade_discrepancy(reported, computed)
    if discrepancy:
        warnings.append(
            f"{label}: registered as {format_grade(reported)} but date of birth suggests {format_grade(computed)}"  # type: ignore[arg-type]
        )

    late = is_late_registration(record.registered_at, camp_start, config.late_registration_days)
    if late:
        warnings.append(f"{label}: late registration (within {config.late_registration_days} days of camp start)")

    own_name = normalize_name(f"{record.first_name} {record.last_name}")
    friends = [name for name in parse_friend_requests(record.friend_requests) if name != own_name]

    camper = Camper(
        athlete_id=record.athlete_id,
        registration_id=record.registration_id,
        first_name=record.first_name.strip(),
        last_name=record.last_name.strip(),
        date_of_birth=record.date_of_birth,
        age_years=age_years,
        age_months=age_months,
        grade=grade,
        grade_from_registration=reported,
        grade_computed_from_dob=computed,
        grade_discrepancy=discrepancy,
        friend_requests=tuple(dict.fromkeys(friends)),
        friend_ids=tuple(dict.fromkeys(ref.strip() for ref in record.friend_ids or () if ref.strip())),
        has_medical_notes=_has_text(record.medical_notes),
        has_allergies=_has_text(record.allergies),
        special_considerations=record.special_considerations,
        registered_at=record.registered_at,
        is_late_registration=late,
    )
    return camper, warnings


def normalize_roster(
    records: Iterable[RawCamperRecord | Mapping[str, Any]],
    camp_start: date,
    config: GroupingConfig | None = None,
) -> NormalizationResult:
    """Normalize a whole roster, preserving roster order.

    Raises:
        ResolutionError: On malformed records or duplicate athlete ids
    """
    config = config or GroupingConfig()
    campers: list[Camper] = []
    warnings: list[str] = []
    seen: set[str] = set()

    for index, raw in enumerate(records):
        try:
            record = raw if isinstance(raw, RawCamperRecord) else RawCamperRecord.model_validate(raw)
        except ValidationError as e:
            raise ResolutionError(f"Malformed roster record at position {index}: {e}") from e

        if record.athlete_id in seen:
            raise ResolutionError(f"Duplicate camper id in roster: {record.athlete_id}")
        seen.add(record.athlete_id)

        camper, camper_warnings = normalize_camper(record, camp_start, config)
        campers.append(camper)
        warnings.extend(camper_warnings)

    logger.info(f"Normalized {len(campers)} campers ({len(warnings)} warnings)")
    for warning in warnings:
        logger.debug(f"Roster warning: {warning}")
    return NormalizationResult(campers=campers, warnings=warnings)
