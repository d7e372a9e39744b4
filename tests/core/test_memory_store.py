"""
Tests for the in-memory attempt/item/profile store.

Tests cover:
- Protocol conformance
- scored_responses ordering and exclusions
- responses_for_item theta lookup
- Item bank queries and parameter updates
- Profile upsert semantics
- NotFoundError for unknown items
- Snapshot load/save
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from irt_engine.core.cat.memory_store import InMemoryIRTStore
from irt_engine.core.cat.stores import (
    AttemptStore,
    ItemStore,
    NotFoundError,
    ProfileStore,
)
from irt_engine.models import AbilityProfile, AttemptRecord, ItemResponseRecord, ScoredResponse
from tests.conftest import BASE_TIME, add_item, add_responses


def _attempt(examinee_id, item_id, is_correct, minutes):
    return AttemptRecord(
        examinee_id=examinee_id,
        item_id=item_id,
        is_correct=is_correct,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class TestProtocols:
    def test_implements_all_store_protocols(self, store):
        assert isinstance(store, AttemptStore)
        assert isinstance(store, ItemStore)
        assert isinstance(store, ProfileStore)


class TestScoredResponses:
    """Tests for the estimator's input query."""

    def test_time_ascending_and_filtered(self, store):
        add_item(store, "q1", a=1.0, b=0.0, c=0.2)
        add_item(store, "q2", a=1.5, b=1.0, c=0.2)
        add_item(store, "raw")  # uncalibrated
        add_item(store, "other", scale_id="verbal", a=1.0, b=0.0, c=0.2)

        store.add_attempt(_attempt("e1", "q2", False, 10))
        store.add_attempt(_attempt("e1", "q1", True, 5))
        store.add_attempt(_attempt("e1", "raw", True, 1))
        store.add_attempt(_attempt("e1", "q1", None, 2))
        store.add_attempt(_attempt("e1", "other", True, 3))
        store.add_attempt(_attempt("e2", "q1", True, 4))

        assert store.scored_responses("e1", "numeracy") == [
            ScoredResponse(1.0, 0.0, 0.2, True),
            ScoredResponse(1.5, 1.0, 0.2, False),
        ]

    def test_unknown_examinee_is_empty(self, store):
        add_item(store, "q1", a=1.0, b=0.0, c=0.2)
        assert store.scored_responses("nobody", "numeracy") == []


class TestItemResponses:
    """Tests for the calibrator's input query."""

    def test_theta_from_scale_profile(self, store):
        add_item(store, "q1")
        add_responses(store, "q1", [True, False, None], thetas=[0.5, None, -1.0])
        assert store.responses_for_item("q1") == [
            ItemResponseRecord(0.5, True),
            ItemResponseRecord(None, False),
            ItemResponseRecord(-1.0, None),
        ]

    def test_profile_on_other_scale_ignored(self, store):
        add_item(store, "q1")
        add_responses(store, "q1", [True], thetas=[1.2], scale_id="verbal")
        assert store.responses_for_item("q1") == [ItemResponseRecord(None, True)]

    def test_attempt_count_includes_unscored(self, store):
        add_item(store, "q1")
        add_responses(store, "q1", [True, None, False, None])
        assert store.attempt_count("q1") == 4

    def test_unknown_item_raises_not_found(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.responses_for_item("missing")
        assert exc_info.value.kind == "NotFound"
        assert "missing" in str(exc_info.value)
        with pytest.raises(NotFoundError):
            store.attempt_count("missing")

    def test_attempt_on_unknown_item_rejected(self, store):
        with pytest.raises(NotFoundError):
            store.add_attempt(_attempt("e1", "ghost", True, 0))


class TestItemBank:
    """Tests for item queries and updates."""

    def test_active_item_ids_sorted(self, store):
        add_item(store, "q3")
        add_item(store, "q1")
        add_item(store, "q2", is_active=False)
        add_item(store, "v1", scale_id="verbal")
        assert store.active_item_ids("numeracy") == ["q1", "q3"]
        assert store.scale_ids() == ["numeracy", "verbal"]

    def test_calibrated_items_excludes(self, store):
        add_item(store, "q2", a=1.0, b=0.0, c=0.2)
        add_item(store, "q1", a=1.0, b=0.5, c=0.2)
        add_item(store, "q3", a=1.0, b=1.0, c=0.2)
        add_item(store, "raw")
        add_item(store, "retired", a=1.0, b=0.0, c=0.2, is_active=False)
        items = store.calibrated_items("numeracy", ["q3"])
        assert [item.id for item in items] == ["q1", "q2"]

    def test_update_parameters(self, store):
        add_item(store, "q1", is_active=False)
        calibrated_at = datetime(2026, 2, 1, tzinfo=timezone.utc)
        store.update_parameters("q1", 1.4, -0.3, 0.2, 64, calibrated_at)
        item = store.get_item("q1")
        assert (item.discrimination, item.difficulty, item.guessing) == (1.4, -0.3, 0.2)
        assert item.calibration_sample_size == 64
        assert item.last_calibrated_at == calibrated_at
        assert item.is_active is False

    def test_update_rejects_invalid_parameters(self, store):
        add_item(store, "q1")
        with pytest.raises(ValueError):
            store.update_parameters("q1", 0.0, 0.0, 0.2, 30, BASE_TIME)

    def test_get_unknown_item(self, store):
        with pytest.raises(NotFoundError):
            store.get_item("missing")


class TestProfiles:
    """Tests for profile upsert semantics."""

    def test_get_missing_profile_is_none(self, store):
        assert store.get("e1", "numeracy") is None

    def test_upsert_overwrites(self, store):
        store.upsert("e1", "numeracy", 0.1, 0.9, 5)
        profile = store.upsert("e1", "numeracy", 0.6, 0.4, 20)
        assert store.get("e1", "numeracy") == profile
        assert profile.theta == 0.6
        assert profile.attempts_count == 20
        assert profile.updated_at is not None
        assert len(store.to_snapshot()["profiles"]) == 1


class TestSnapshots:
    """Tests for snapshot load/save."""

    def test_round_trip(self, store):
        add_item(store, "q1", a=1.2, b=0.4, c=0.2)
        add_item(store, "q2")
        add_responses(store, "q1", [True, False], thetas=[0.3, -0.2])

        restored = InMemoryIRTStore.from_snapshot(store.to_snapshot())

        assert restored.to_snapshot() == store.to_snapshot()
        assert restored.get_item("q1").discrimination == 1.2
        assert restored.responses_for_item("q1") == store.responses_for_item("q1")

    def test_naive_timestamps_read_as_utc(self):
        """Naive and aware timestamps can be ordered together once loaded."""
        store = InMemoryIRTStore.from_snapshot(
            {
                "items": [
                    {"id": "q1", "scale_id": "numeracy", "discrimination": 1.0,
                     "difficulty": 0.0, "guessing": 0.2},
                    {"id": "q2", "scale_id": "numeracy", "discrimination": 2.0,
                     "difficulty": 0.0, "guessing": 0.2},
                ],
                "attempts": [
                    {"examinee_id": "e1", "item_id": "q1", "is_correct": True,
                     "created_at": "2026-01-05T10:00:00+01:00"},
                    {"examinee_id": "e1", "item_id": "q2", "is_correct": False,
                     "created_at": "2026-01-05T09:30:00"},
                ],
            }
        )
        # 10:00+01:00 is 09:00 UTC, before the naive 09:30
        assert store.scored_responses("e1", "numeracy") == [
            ScoredResponse(1.0, 0.0, 0.2, True),
            ScoredResponse(2.0, 0.0, 0.2, False),
        ]

    def test_malformed_snapshot_rejected(self):
        with pytest.raises(ValidationError):
            InMemoryIRTStore.from_snapshot({"items": [{"scale_id": "numeracy"}]})

    def test_invalid_item_parameters_rejected(self):
        with pytest.raises(ValueError):
            InMemoryIRTStore.from_snapshot(
                {"items": [{"id": "q1", "scale_id": "s", "discrimination": -1.0}]}
            )

    def test_profile_records_loaded(self):
        store = InMemoryIRTStore.from_snapshot(
            {
                "profiles": [
                    {
                        "examinee_id": "e1",
                        "scale_id": "numeracy",
                        "theta": 0.5,
                        "standard_error": 0.3,
                        "attempts_count": 12,
                    }
                ]
            }
        )
        assert store.get("e1", "numeracy") == AbilityProfile(
            examinee_id="e1",
            scale_id="numeracy",
            theta=0.5,
            standard_error=0.3,
            attempts_count=12,
        )
