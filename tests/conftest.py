"""
Pytest configuration and shared fixtures for testing.
"""
import logging
import sys
from pathlib import Path

# Add project root to path so irt_engine/ and scripts/ are importable without
# an editable install
project_root = Path(__file__).parent.parent
for path in (project_root, project_root / "scripts"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402

from irt_engine.core.cat.memory_store import InMemoryIRTStore  # noqa: E402
from irt_engine.models import AbilityProfile, AttemptRecord, Item  # noqa: E402

BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryIRTStore:
    """Empty in-memory store."""
    return InMemoryIRTStore()


def add_item(
    store: InMemoryIRTStore,
    item_id: str,
    scale_id: str = "numeracy",
    a: Optional[float] = None,
    b: Optional[float] = None,
    c: Optional[float] = None,
    is_active: bool = True,
) -> Item:
    """Add an item (uncalibrated unless a, b and c are given)."""
    item = Item(
        id=item_id,
        scale_id=scale_id,
        discrimination=a,
        difficulty=b,
        guessing=c,
        is_active=is_active,
    )
    store.add_item(item)
    return item


def add_responses(
    store: InMemoryIRTStore,
    item_id: str,
    outcomes: List[Optional[bool]],
    thetas: Optional[List[Optional[float]]] = None,
    scale_id: str = "numeracy",
    prefix: str = "examinee",
) -> None:
    """
    Record one attempt per outcome on item_id, each by a distinct examinee.

    When thetas are given, each examinee gets a profile on scale_id with that
    theta (None leaves the examinee without a profile).
    """
    for i, is_correct in enumerate(outcomes):
        examinee_id = f"{prefix}-{item_id}-{i}"
        store.add_attempt(
            AttemptRecord(
                examinee_id=examinee_id,
                item_id=item_id,
                is_correct=is_correct,
                created_at=BASE_TIME + timedelta(minutes=i),
            )
        )
        if thetas is not None and thetas[i] is not None:
            store.add_profile(
                AbilityProfile(
                    examinee_id=examinee_id,
                    scale_id=scale_id,
                    theta=thetas[i],
                    standard_error=0.4,
                    attempts_count=10,
                )
            )


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo logging configuration applied by setup_logging() during a test."""
    root = logging.getLogger()
    root_handlers = list(root.handlers)
    root_level = root.level
    yield
    root.handlers[:] = root_handlers
    root.setLevel(root_level)
    for name in ("irt_engine", "irt_engine.core.cat.ability_estimation"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
