"""
IRTService: store-backed orchestration of the IRT engine.

Wires ability estimation, calibration and adaptive selection to the attempt,
item and profile stores. The algorithms themselves stay pure; this class is
the only place that talks to stores. Store errors (including NotFoundError)
propagate to the caller unmodified.
"""
import logging
from typing import Iterable, List, Optional

from irt_engine.core.cat.ability_estimation import (
    AbilityEstimate,
    AbilityEstimator,
    PROGRESSION_STEP,
    ProgressionPoint,
)
from irt_engine.core.cat.batch_calibration import (
    BatchCalibrator,
    CalibrationBatchSummary,
)
from irt_engine.core.cat.calibration import (
    ItemCalibrationResult,
    ItemCalibrator,
    ItemStatistics,
    compute_item_statistics,
)
from irt_engine.core.cat.item_selection import AdaptiveSelector
from irt_engine.core.cat.stores import AttemptStore, ItemStore, ProfileStore
from irt_engine.core.config import Settings
from irt_engine.models import AbilityProfile

logger = logging.getLogger(__name__)


class IRTService:
    """Ability estimation, calibration and adaptive selection over external stores."""

    def __init__(
        self,
        attempt_store: AttemptStore,
        item_store: ItemStore,
        profile_store: ProfileStore,
        estimator: Optional[AbilityEstimator] = None,
        calibrator: Optional[ItemCalibrator] = None,
        selector: Optional[AdaptiveSelector] = None,
        progression_step: int = PROGRESSION_STEP,
        calibration_max_workers: int = 1,
    ):
        self.attempt_store = attempt_store
        self.item_store = item_store
        self.profile_store = profile_store
        self.estimator = estimator or AbilityEstimator()
        self.calibrator = calibrator or ItemCalibrator()
        self.selector = selector or AdaptiveSelector()
        self.progression_step = progression_step
        self.batch_calibrator = BatchCalibrator(
            attempt_store,
            item_store,
            calibrator=self.calibrator,
            max_workers=calibration_max_workers,
        )

    @classmethod
    def from_settings(
        cls,
        attempt_store: AttemptStore,
        item_store: ItemStore,
        profile_store: ProfileStore,
        config: Settings,
    ) -> "IRTService":
        """Build a service whose components are configured from Settings."""
        return cls(
            attempt_store,
            item_store,
            profile_store,
            estimator=AbilityEstimator(
                max_iterations=config.IRT_MAX_ITERATIONS,
                convergence_threshold=config.IRT_CONVERGENCE_THRESHOLD,
                standard_error_sentinel=config.IRT_STANDARD_ERROR_SENTINEL,
            ),
            calibrator=ItemCalibrator(
                min_attempts=config.IRT_MIN_ATTEMPTS_FOR_CALIBRATION,
                guessing=config.IRT_GUESSING_PARAMETER,
            ),
            progression_step=config.IRT_PROGRESSION_STEP,
            calibration_max_workers=config.IRT_CALIBRATION_MAX_WORKERS,
        )

    # --- Ability ---

    def estimate_ability(self, examinee_id: str, scale_id: str) -> AbilityEstimate:
        """Estimate an examinee's ability from all scored, calibrated attempts."""
        responses = self.attempt_store.scored_responses(examinee_id, scale_id)
        estimate = self.estimator.estimate(responses)

        logger.info(
            f"Estimated ability for examinee {examinee_id} on scale {scale_id}: "
            f"theta={estimate.theta:.3f}, SE={estimate.standard_error:.3f}, "
            f"attempts={estimate.attempts_count}, iterations={estimate.iterations}",
            extra={"examinee_id": examinee_id, "scale_id": scale_id},
        )
        return estimate

    def update_profile(self, examinee_id: str, scale_id: str) -> AbilityProfile:
        """Re-estimate ability and overwrite the stored profile."""
        estimate = self.estimate_ability(examinee_id, scale_id)
        return self.profile_store.upsert(
            examinee_id,
            scale_id,
            estimate.theta,
            estimate.standard_error,
            estimate.attempts_count,
        )

    def ability_progression(
        self,
        examinee_id: str,
        scale_id: str,
        step: Optional[int] = None,
    ) -> List[ProgressionPoint]:
        """Ability re-estimated after every `step` attempts, oldest first."""
        responses = self.attempt_store.scored_responses(examinee_id, scale_id)
        return self.estimator.estimate_progression(
            responses, step=self.progression_step if step is None else step
        )

    # --- Selection ---

    def next_item(
        self,
        examinee_id: str,
        scale_id: str,
        exclude_ids: Iterable[str] = (),
    ) -> Optional[str]:
        """
        Pick the most informative calibrated item for the examinee.

        Uses the stored profile's theta, or 0.0 for an examinee with no
        profile yet. Returns None when no suitable item exists.
        """
        excluded = list(exclude_ids)
        profile = self.profile_store.get(examinee_id, scale_id)
        theta = profile.theta if profile is not None else 0.0

        candidates = self.item_store.calibrated_items(scale_id, excluded)
        item_id = self.selector.select_next(theta, candidates, excluded)

        logger.debug(
            f"Next item for examinee {examinee_id} on scale {scale_id}: "
            f"{item_id} (theta={theta:.3f}, candidates={len(candidates)})",
            extra={"examinee_id": examinee_id, "scale_id": scale_id},
        )
        return item_id

    # --- Calibration ---

    def calibrate_item(self, item_id: str) -> Optional[ItemCalibrationResult]:
        """Calibrate one item without persisting the result."""
        responses = self.attempt_store.responses_for_item(item_id)
        return self.calibrator.calibrate(responses, item_id=item_id)

    def calibrate_scale(
        self,
        scale_id: str,
        min_attempts: Optional[int] = None,
    ) -> CalibrationBatchSummary:
        """Calibrate and persist every active item on a scale."""
        item_ids = self.item_store.active_item_ids(scale_id)
        logger.info(
            f"Starting batch calibration for scale {scale_id}",
            extra={"scale_id": scale_id},
        )
        return self.batch_calibrator.calibrate_batch(
            item_ids,
            min_attempts=(
                self.calibrator.min_attempts if min_attempts is None else min_attempts
            ),
        )

    def item_statistics(self, item_id: str) -> ItemStatistics:
        """Calibration state and attempt statistics for one item."""
        item = self.item_store.get_item(item_id)
        responses = self.attempt_store.responses_for_item(item_id)
        return compute_item_statistics(item, responses)
