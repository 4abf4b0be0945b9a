"""
Persistence for grouping states.

The engine only depends on the ``GroupingRepository`` protocol. Two
implementations are provided:

- ``InMemoryGroupingRepository``: process-local, used by tests and the
  default API configuration
- ``PocketBaseGroupingRepository``: stores the serialized aggregate in the
  ``grouping_states`` collection
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from .errors import StaleVersion
from .logging_config import TRACE
from .models import GroupingState

logger = logging.getLogger(__name__)

COLLECTION = "grouping_states"


class GroupingRepository(Protocol):
    def get(self, camp_id: str) -> GroupingState | None: ...

    def save(self, state: GroupingState, expected_version: int | None) -> None:
        """Persist ``state``.

        ``expected_version`` is the version the caller read; None means the
        state must not exist yet. Raises StaleVersion on mismatch.
        """
        ...


class InMemoryGroupingRepository:
    """Stores serialized snapshots so callers never share mutable state."""

    def __init__(self) -> None:
        self._states: dict[str, str] = {}
        self._lock = threading.RLock()

    def get(self, camp_id: str) -> GroupingState | None:
        raw = self._states.get(camp_id)
        if raw is None:
            return None
        return GroupingState.model_validate_json(raw)

    def save(self, state: GroupingState, expected_version: int | None) -> None:
        with self._lock:
            current = self.get(state.camp_id)
            actual = current.version if current is not None else None
            if actual != expected_version:
                raise StaleVersion(expected_version, actual)
            self._states[state.camp_id] = state.model_dump_json()

    def clear(self) -> None:
        self._states.clear()


class PocketBaseGroupingRepository:
    """PocketBase-backed repository.

    Record fields: ``camp_id`` (unique), ``version``, ``status`` and
    ``state`` (JSON). The version check and the write are two requests. They
    are serialized within this process; writers in other processes racing
    within that window are not detected.
    """

    def __init__(self, pb: PocketBase, collection: str = COLLECTION):
        self.pb = pb
        self.collection = collection
        self._lock = threading.RLock()

    def _find_record(self, camp_id: str) -> Any | None:
        logger.log(TRACE, f"Fetching {self.collection} record for camp {camp_id}")
        try:
            return self.pb.collection(self.collection).get_first_list_item(f'camp_id = "{camp_id}"')
        except ClientResponseError as e:
            if e.status == 404:
                return None
            raise

    def get(self, camp_id: str) -> GroupingState | None:
        record = self._find_record(camp_id)
        if record is None:
            return None
        data = getattr(record, "state", None)
        if isinstance(data, str):
            return GroupingState.model_validate_json(data)
        return GroupingState.model_validate(data)

    def save(self, state: GroupingState, expected_version: int | None) -> None:
        with self._lock:
            self._save(state, expected_version)

    def _save(self, state: GroupingState, expected_version: int | None) -> None:
        record = self._find_record(state.camp_id)
        actual = getattr(record, "version", None) if record is not None else None
        if actual != expected_version:
            raise StaleVersion(expected_version, actual)

        payload = {
            "camp_id": state.camp_id,
            "version": state.version,
            "status": state.status.value,
            "state": state.model_dump(mode="json"),
        }
        if record is None:
            self.pb.collection(self.collection).create(payload)
            logger.debug(f"Created grouping state for camp {state.camp_id}")
        else:
            self.pb.collection(self.collection).update(record.id, payload)
            logger.debug(f"Updated grouping state for camp {state.camp_id} to version {state.version}")
