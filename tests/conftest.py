"""
Root test configuration and fixtures for the grouping project.

This conftest.py provides common fixtures for all test categories:
- unit/grouping/: Engine, algorithm and violation tests (no I/O)
- unit/api/: Router and settings tests against a bare FastAPI app

Note: sys.path manipulation is handled here to ensure imports work correctly.
"""

from __future__ import annotations

import os
import sys
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import Mock, patch

import pytest

# Add project root to path to allow imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

CAMP_START = date(2025, 6, 16)


def create_mock_pocketbase():
    """Create a comprehensive mock PocketBase instance."""
    mock_pb = Mock()

    # Collection mock with chaining support
    mock_collection = Mock()

    # Collection auth (for _superusers collection)
    mock_collection.auth_with_password = Mock(return_value=True)

    # Collection methods
    mock_collection.get_full_list = Mock(return_value=[])
    mock_collection.get_one = Mock()
    mock_collection.get_first_list_item = Mock()
    mock_collection.create = Mock(return_value=Mock(id="mock-id"))
    mock_collection.update = Mock()
    mock_collection.delete = Mock()

    # Make collection callable to return itself for chaining
    mock_pb.collection = Mock(return_value=mock_collection)

    # Auth store
    mock_pb.auth_store = Mock()
    mock_pb.auth_store.base_token = "mock-token"

    return mock_pb


@pytest.fixture
def mock_pocketbase():
    """Create a mock PocketBase instance for tests that need it."""
    return create_mock_pocketbase()


@pytest.fixture(autouse=True)
def mock_all_external_services():
    """Automatically mock PocketBase so no test opens a real connection."""
    if os.environ.get("SKIP_MOCKING") == "true":
        yield {}
        return

    mock_pb = create_mock_pocketbase()
    with patch("pocketbase.PocketBase") as mock_pb_class:
        mock_pb_class.return_value = mock_pb
        yield {"pocketbase": mock_pb}


# =============================================================================
# Roster Fixtures
# =============================================================================


def make_record(
    athlete_id: str,
    first_name: str,
    last_name: str = "Camper",
    grade: str | int | None = 3,
    friends: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """A raw roster row as the registration export delivers it."""
    record: dict[str, Any] = {
        "athlete_id": athlete_id,
        "first_name": first_name,
        "last_name": last_name,
        "grade": grade,
    }
    if friends is not None:
        record["friend_requests"] = friends
    record.update(extra)
    return record


def twelve_camper_roster() -> list[dict[str, Any]]:
    """12 campers, grades 1-3 evenly, mutual pairs Ava/Ben and Cal/Dee."""
    names = ["Ava", "Ben", "Cal", "Dee", "Eli", "Fay", "Gus", "Hal", "Ivy", "Jon", "Kai", "Liv"]
    grades = [1, 1, 2, 2, 3, 3, 1, 1, 2, 2, 3, 3]
    friends = {"Ava": "Ben Camper", "Ben": "Ava Camper", "Cal": "Dee Camper", "Dee": "Cal Camper"}
    return [
        make_record(f"c{index:02d}", name, grade=grade, friends=friends.get(name))
        for index, (name, grade) in enumerate(zip(names, grades, strict=True), start=1)
    ]


@pytest.fixture
def roster() -> list[dict[str, Any]]:
    return twelve_camper_roster()


@pytest.fixture
def camp_start() -> date:
    return CAMP_START


class FixedClock:
    """Deterministic clock; each call advances one minute."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(minutes=1)
        return current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def scenario_config():
    """Two groups of at most 6, grade spread 2."""
    from grouping.models import GroupingConfig

    return GroupingConfig(num_groups=2, max_group_size=6, max_grade_spread=2)


@pytest.fixture
def repository():
    from grouping.repository import InMemoryGroupingRepository

    return InMemoryGroupingRepository()


@pytest.fixture
def engine(repository, scenario_config, clock):
    from grouping.engine import GroupingEngine

    return GroupingEngine("camp-2025", repository, config=scenario_config, clock=clock)


@pytest.fixture
def drafted(engine, roster):
    """Engine whose camp has had one auto-grouping run over the 12-camper roster."""
    state = engine.run_auto_grouping(roster, CAMP_START, expected_version=0, actor="director")
    return engine, state
