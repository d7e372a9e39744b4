"""
In-memory implementation of the attempt, item and profile stores.

Backs the calibration script (via JSON snapshots) and the test suite. All
access goes through a single re-entrant lock, so the store can be shared by
the threads of a parallel batch calibration.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from irt_engine.core.datetime_utils import ensure_timezone_aware, utc_now
from irt_engine.core.cat.stores import NotFoundError
from irt_engine.models import (
    AbilityProfile,
    AttemptRecord,
    Item,
    ItemResponseRecord,
    ScoredResponse,
)

logger = logging.getLogger(__name__)


class ItemSnapshot(BaseModel):
    id: str
    scale_id: str
    discrimination: Optional[float] = None
    difficulty: Optional[float] = None
    guessing: Optional[float] = None
    calibration_sample_size: Optional[int] = None
    last_calibrated_at: Optional[datetime] = None
    is_active: bool = True


class AttemptSnapshot(BaseModel):
    examinee_id: str
    item_id: str
    is_correct: Optional[bool] = None
    created_at: datetime


class ProfileSnapshot(BaseModel):
    examinee_id: str
    scale_id: str
    theta: float
    standard_error: float
    attempts_count: int = Field(ge=0)
    updated_at: Optional[datetime] = None


class StoreSnapshot(BaseModel):
    """Serialized form of an InMemoryIRTStore."""

    items: List[ItemSnapshot] = Field(default_factory=list)
    attempts: List[AttemptSnapshot] = Field(default_factory=list)
    profiles: List[ProfileSnapshot] = Field(default_factory=list)


class InMemoryIRTStore:
    """Implements AttemptStore, ItemStore and ProfileStore over plain dicts."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: Dict[str, Item] = {}
        self._attempts: List[AttemptRecord] = []
        self._profiles: Dict[Tuple[str, str], AbilityProfile] = {}

    # --- Loading ---

    def add_item(self, item: Item) -> None:
        with self._lock:
            self._items[item.id] = item

    def add_attempt(self, attempt: AttemptRecord) -> None:
        with self._lock:
            if attempt.item_id not in self._items:
                raise NotFoundError("Item", attempt.item_id)
            self._attempts.append(attempt)

    def add_profile(self, profile: AbilityProfile) -> None:
        with self._lock:
            self._profiles[(profile.examinee_id, profile.scale_id)] = profile

    # --- AttemptStore ---

    def scored_responses(self, examinee_id: str, scale_id: str) -> List[ScoredResponse]:
        with self._lock:
            attempts = sorted(
                (
                    attempt
                    for attempt in self._attempts
                    if attempt.examinee_id == examinee_id
                    and attempt.is_correct is not None
                ),
                key=lambda attempt: attempt.created_at,
            )
            responses = []
            for attempt in attempts:
                item = self._items[attempt.item_id]
                if item.scale_id != scale_id or not item.is_calibrated:
                    continue
                assert item.discrimination is not None
                assert item.difficulty is not None
                assert item.guessing is not None
                responses.append(
                    ScoredResponse(
                        item.discrimination,
                        item.difficulty,
                        item.guessing,
                        bool(attempt.is_correct),
                    )
                )
            return responses

    def responses_for_item(self, item_id: str) -> List[ItemResponseRecord]:
        with self._lock:
            item = self._get_item(item_id)
            records = []
            for attempt in self._attempts:
                if attempt.item_id != item_id:
                    continue
                profile = self._profiles.get((attempt.examinee_id, item.scale_id))
                records.append(
                    ItemResponseRecord(
                        profile.theta if profile is not None else None,
                        attempt.is_correct,
                    )
                )
            return records

    def attempt_count(self, item_id: str) -> int:
        with self._lock:
            self._get_item(item_id)
            return sum(1 for attempt in self._attempts if attempt.item_id == item_id)

    # --- ItemStore ---

    def scale_ids(self) -> List[str]:
        """Every scale referenced by an item, sorted."""
        with self._lock:
            return sorted({item.scale_id for item in self._items.values()})

    def get_item(self, item_id: str) -> Item:
        with self._lock:
            return self._get_item(item_id)

    def active_item_ids(self, scale_id: str) -> List[str]:
        with self._lock:
            return sorted(
                item.id
                for item in self._items.values()
                if item.scale_id == scale_id and item.is_active
            )

    def calibrated_items(self, scale_id: str, exclude_ids: Iterable[str]) -> List[Item]:
        excluded = set(exclude_ids)
        with self._lock:
            return sorted(
                (
                    item
                    for item in self._items.values()
                    if item.scale_id == scale_id
                    and item.is_active
                    and item.is_calibrated
                    and item.id not in excluded
                ),
                key=lambda item: item.id,
            )

    def update_parameters(
        self,
        item_id: str,
        a: float,
        b: float,
        c: float,
        sample_size: int,
        calibrated_at: datetime,
    ) -> None:
        with self._lock:
            item = self._get_item(item_id)
            self._items[item_id] = Item(
                id=item.id,
                scale_id=item.scale_id,
                discrimination=a,
                difficulty=b,
                guessing=c,
                calibration_sample_size=sample_size,
                last_calibrated_at=calibrated_at,
                is_active=item.is_active,
            )

    # --- ProfileStore ---

    def get(self, examinee_id: str, scale_id: str) -> Optional[AbilityProfile]:
        with self._lock:
            return self._profiles.get((examinee_id, scale_id))

    def upsert(
        self,
        examinee_id: str,
        scale_id: str,
        theta: float,
        standard_error: float,
        attempts_count: int,
    ) -> AbilityProfile:
        profile = AbilityProfile(
            examinee_id=examinee_id,
            scale_id=scale_id,
            theta=theta,
            standard_error=standard_error,
            attempts_count=attempts_count,
            updated_at=utc_now(),
        )
        with self._lock:
            self._profiles[(examinee_id, scale_id)] = profile
        return profile

    # --- Snapshots ---

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "InMemoryIRTStore":
        """
        Build a store from a snapshot dict (e.g. parsed JSON).

        Raises:
            pydantic.ValidationError: If the snapshot is malformed.
            ValueError: If an item carries invalid 3PL parameters.
            NotFoundError: If an attempt references an unknown item.
        """
        snapshot = StoreSnapshot.model_validate(data)
        store = cls()

        for item in snapshot.items:
            store.add_item(
                Item(
                    id=item.id,
                    scale_id=item.scale_id,
                    discrimination=item.discrimination,
                    difficulty=item.difficulty,
                    guessing=item.guessing,
                    calibration_sample_size=item.calibration_sample_size,
                    last_calibrated_at=(
                        ensure_timezone_aware(item.last_calibrated_at)
                        if item.last_calibrated_at is not None
                        else None
                    ),
                    is_active=item.is_active,
                )
            )
        for attempt in snapshot.attempts:
            store.add_attempt(
                AttemptRecord(
                    examinee_id=attempt.examinee_id,
                    item_id=attempt.item_id,
                    is_correct=attempt.is_correct,
                    created_at=ensure_timezone_aware(attempt.created_at),
                )
            )
        for profile in snapshot.profiles:
            store.add_profile(
                AbilityProfile(
                    examinee_id=profile.examinee_id,
                    scale_id=profile.scale_id,
                    theta=profile.theta,
                    standard_error=profile.standard_error,
                    attempts_count=profile.attempts_count,
                    updated_at=profile.updated_at,
                )
            )

        logger.info(
            f"Loaded snapshot: {len(snapshot.items)} items, "
            f"{len(snapshot.attempts)} attempts, {len(snapshot.profiles)} profiles"
        )
        return store

    def to_snapshot(self) -> Dict[str, Any]:
        """Serialize the store to a JSON-compatible dict."""
        with self._lock:
            snapshot = StoreSnapshot(
                items=[
                    ItemSnapshot(
                        id=item.id,
                        scale_id=item.scale_id,
                        discrimination=item.discrimination,
                        difficulty=item.difficulty,
                        guessing=item.guessing,
                        calibration_sample_size=item.calibration_sample_size,
                        last_calibrated_at=item.last_calibrated_at,
                        is_active=item.is_active,
                    )
                    for item in sorted(self._items.values(), key=lambda i: i.id)
                ],
                attempts=[
                    AttemptSnapshot(
                        examinee_id=attempt.examinee_id,
                        item_id=attempt.item_id,
                        is_correct=attempt.is_correct,
                        created_at=attempt.created_at,
                    )
                    for attempt in self._attempts
                ],
                profiles=[
                    ProfileSnapshot(
                        examinee_id=profile.examinee_id,
                        scale_id=profile.scale_id,
                        theta=profile.theta,
                        standard_error=profile.standard_error,
                        attempts_count=profile.attempts_count,
                        updated_at=profile.updated_at,
                    )
                    for _, profile in sorted(self._profiles.items())
                ],
            )
        return snapshot.model_dump(mode="json")

    def _get_item(self, item_id: str) -> Item:
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError("Item", item_id)
        return item
