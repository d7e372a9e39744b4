"""
Batch item calibration with per-item failure isolation.

Drives ItemCalibrator across many items:
    1. Drop duplicate item IDs (first occurrence wins)
    2. Pre-filter items with fewer than min_attempts recorded attempts
    3. Calibrate each remaining item and persist the new parameters
    4. Count outcomes: calibrated, skipped (insufficient valid data),
       failed (any exception while processing that item)

A failure on one item never aborts the batch. Each item's
read-calibrate-write sequence is independent, so items may run on a thread
pool; duplicate IDs are collapsed so no two workers touch the same item.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Literal, Optional, TypedDict

from irt_engine.core.cat.calibration import (
    MIN_ATTEMPTS_FOR_CALIBRATION,
    ItemCalibrator,
)
from irt_engine.core.cat.stores import AttemptStore, ItemStore
from irt_engine.core.datetime_utils import utc_now

logger = logging.getLogger(__name__)

ItemOutcome = Literal["calibrated", "skipped", "failed", "filtered"]


class CalibrationBatchSummary(TypedDict):
    """Aggregate outcome counts from a batch calibration."""

    calibrated: int
    skipped: int
    failed: int


class BatchCalibrator:
    """Calibrates a batch of items against an attempt store and an item store."""

    def __init__(
        self,
        attempt_store: AttemptStore,
        item_store: ItemStore,
        calibrator: Optional[ItemCalibrator] = None,
        max_workers: int = 1,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.attempt_store = attempt_store
        self.item_store = item_store
        self.calibrator = calibrator or ItemCalibrator()
        self.max_workers = max_workers

    def calibrate_batch(
        self,
        item_ids: Iterable[str],
        min_attempts: int = MIN_ATTEMPTS_FOR_CALIBRATION,
    ) -> CalibrationBatchSummary:
        """
        Calibrate every item with enough recorded attempts.

        Args:
            item_ids: Candidate item IDs.
            min_attempts: Minimum recorded attempts for an item to be
                attempted at all. Items below it are not counted.

        Returns:
            CalibrationBatchSummary with calibrated/skipped/failed counts.
        """
        unique_ids = list(dict.fromkeys(item_ids))

        logger.info(
            f"Starting batch calibration: {len(unique_ids)} candidate items, "
            f"min_attempts={min_attempts}, max_workers={self.max_workers}"
        )

        if self.max_workers > 1 and len(unique_ids) > 1:
            with ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="irt-calibration",
            ) as executor:
                outcomes: List[ItemOutcome] = list(
                    executor.map(
                        lambda item_id: self._process_item(item_id, min_attempts),
                        unique_ids,
                    )
                )
        else:
            outcomes = [self._process_item(item_id, min_attempts) for item_id in unique_ids]

        summary: CalibrationBatchSummary = {
            "calibrated": outcomes.count("calibrated"),
            "skipped": outcomes.count("skipped"),
            "failed": outcomes.count("failed"),
        }

        logger.info(
            f"Batch calibration complete: {summary['calibrated']} calibrated, "
            f"{summary['skipped']} skipped, {summary['failed']} failed, "
            f"{outcomes.count('filtered')} below {min_attempts} attempts"
        )

        return summary

    def _process_item(self, item_id: str, min_attempts: int) -> ItemOutcome:
        """Read, calibrate and persist one item. Never raises."""
        try:
            attempt_count = self.attempt_store.attempt_count(item_id)
            if attempt_count < min_attempts:
                logger.debug(
                    f"Item {item_id} has {attempt_count} attempts "
                    f"(< {min_attempts}); not calibrating",
                    extra={"item_id": item_id},
                )
                return "filtered"

            responses = self.attempt_store.responses_for_item(item_id)
            result = self.calibrator.calibrate(responses, item_id=item_id)
            if result is None:
                return "skipped"

            self.item_store.update_parameters(
                item_id,
                result["discrimination"],
                result["difficulty"],
                result["guessing"],
                result["sample_size"],
                utc_now(),
            )
            return "calibrated"

        except Exception:
            logger.exception(
                f"Failed to calibrate item {item_id}", extra={"item_id": item_id}
            )
            return "failed"
