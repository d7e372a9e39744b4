"""
Moment-matching 3PL item calibration.

Estimates an item's discrimination (a) and difficulty (b) from historical
responses and the respondents' current ability estimates. The guessing
parameter (c) is fixed at 0.2 and never re-estimated from data.

Procedure:
    1. Keep responses with a known respondent theta and a scored outcome.
       Fewer than MIN_ATTEMPTS_FOR_CALIBRATION valid responses: not calibrated.
    2. Start from a = 1.0, b = 0.0, c = 0.2.
    3. Correct-rate estimate of b when c < rate < 1 - c:
           b = -ln((1 - rate) / (rate - c)) / a
    4. If both correct and incorrect responders exist, replace with the
       group-mean estimate:
           b = (mean_correct + mean_incorrect) / 2
           a = clamp(1.5 / |mean_correct - mean_incorrect|, 0.5, 2.5)
           (a = 1.0 when the group means coincide)

Functions:
    calibrate_item - Functional entry point over ItemCalibrator
    compute_item_statistics - Parameter and attempt summary for one item
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple, TypedDict

import numpy as np

from irt_engine.models import Item, ItemResponseRecord

logger = logging.getLogger(__name__)

# --- Calibration thresholds ---

# Minimum valid responses (known theta, scored outcome) to calibrate an item
MIN_ATTEMPTS_FOR_CALIBRATION = 30

# --- Starting values ---

INITIAL_DISCRIMINATION = 1.0
INITIAL_DIFFICULTY = 0.0
DEFAULT_GUESSING = 0.2  # Typical for 4-5 option multiple choice

# --- Discrimination from group-mean spread ---

SPREAD_SCALE = 1.5  # a = SPREAD_SCALE / spread
DISCRIMINATION_MIN = 0.5
DISCRIMINATION_MAX = 2.5


class ItemCalibrationResult(TypedDict):
    """Parameter estimates for a single calibrated item."""

    discrimination: float
    difficulty: float
    guessing: float
    sample_size: int


class CalibrationError(Exception):
    """Custom exception for IRT calibration errors."""

    def __init__(  # noqa: D107
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg = f"{msg} (context: {ctx_str})"
        if self.original_error:
            msg = f"{msg} - caused by: {str(self.original_error)}"
        return msg


@dataclass(frozen=True)
class ItemStatistics:
    """Calibration state and raw attempt statistics for one item."""

    item_id: str
    discrimination: Optional[float]
    difficulty: Optional[float]
    guessing: Optional[float]
    calibration_sample_size: Optional[int]
    last_calibrated_at: Optional[datetime]
    total_attempts: int
    correct_rate: float

    @property
    def is_calibrated(self) -> bool:
        return (
            self.discrimination is not None
            and self.difficulty is not None
            and self.guessing is not None
        )


class ItemCalibrator:
    """
    Moment-matching calibrator for a single item.

    Deterministic: the same response snapshot always yields the same
    parameters, so recalibration is idempotent.
    """

    def __init__(
        self,
        min_attempts: int = MIN_ATTEMPTS_FOR_CALIBRATION,
        guessing: float = DEFAULT_GUESSING,
    ):
        if min_attempts < 1:
            raise ValueError(f"min_attempts must be >= 1, got {min_attempts}")
        if not 0.0 <= guessing < 1.0:
            raise ValueError(f"Guessing parameter must be in [0, 1), got {guessing}")
        self.min_attempts = min_attempts
        self.guessing = guessing

    def calibrate(
        self,
        responses: Sequence[Tuple[Optional[float], Optional[bool]]],
        item_id: Optional[str] = None,
    ) -> Optional[ItemCalibrationResult]:
        """
        Calibrate one item from (respondent_theta, is_correct) pairs.

        Args:
            responses: Historical responses, e.g. ItemResponseRecord tuples.
                Pairs with an unknown theta or an unscored outcome are ignored.
            item_id: Used for logging only.

        Returns:
            ItemCalibrationResult, or None when fewer than min_attempts valid
            responses are available.
        """
        valid = [
            ItemResponseRecord(float(theta), bool(is_correct))
            for theta, is_correct in responses
            if theta is not None and is_correct is not None
        ]

        if len(valid) < self.min_attempts:
            logger.warning(
                f"Item {item_id} has only {len(valid)} valid responses "
                f"(of {len(responses)}). Need {self.min_attempts} for calibration."
            )
            return None

        n = len(valid)
        c = self.guessing
        a = INITIAL_DISCRIMINATION
        b = INITIAL_DIFFICULTY

        correct_thetas = np.array([r.respondent_theta for r in valid if r.is_correct])
        incorrect_thetas = np.array(
            [r.respondent_theta for r in valid if not r.is_correct]
        )

        # Correct-rate estimate of b; only reachable here with both groups
        # present, where the group-mean estimate below supersedes it
        correct_rate = len(correct_thetas) / n
        if c < correct_rate < 1.0 - c:
            b = -math.log((1.0 - correct_rate) / (correct_rate - c)) / a

        if correct_thetas.size > 0 and incorrect_thetas.size > 0:
            mean_correct = float(np.mean(correct_thetas))
            mean_incorrect = float(np.mean(incorrect_thetas))

            b = (mean_correct + mean_incorrect) / 2.0

            spread = abs(mean_correct - mean_incorrect)
            raw_a = SPREAD_SCALE / spread if spread > 0 else INITIAL_DISCRIMINATION
            a = max(DISCRIMINATION_MIN, min(DISCRIMINATION_MAX, raw_a))

        logger.info(
            f"Calibrated item {item_id}: a={a:.3f}, b={b:.3f}, c={c:.3f}, n={n}"
        )

        return {
            "discrimination": a,
            "difficulty": b,
            "guessing": c,
            "sample_size": n,
        }


def calibrate_item(
    responses: Sequence[Tuple[Optional[float], Optional[bool]]],
    min_attempts: int = MIN_ATTEMPTS_FOR_CALIBRATION,
    guessing: float = DEFAULT_GUESSING,
) -> Optional[ItemCalibrationResult]:
    """Calibrate one item with a throwaway ItemCalibrator."""
    return ItemCalibrator(min_attempts=min_attempts, guessing=guessing).calibrate(
        responses
    )


def compute_item_statistics(
    item: Item,
    responses: Sequence[Tuple[Optional[float], Optional[bool]]],
) -> ItemStatistics:
    """
    Summarize an item's calibration state and attempt history.

    Args:
        item: The item record.
        responses: Every recorded response to the item, scored or not.

    Returns:
        ItemStatistics. total_attempts counts every response; correct_rate is
        computed over scored responses only (0.0 when none are scored).
    """
    scored = [is_correct for _, is_correct in responses if is_correct is not None]
    correct_rate = sum(1 for x in scored if x) / len(scored) if scored else 0.0

    return ItemStatistics(
        item_id=item.id,
        discrimination=item.discrimination,
        difficulty=item.difficulty,
        guessing=item.guessing,
        calibration_sample_size=item.calibration_sample_size,
        last_calibrated_at=item.last_calibrated_at,
        total_attempts=len(responses),
        correct_rate=correct_rate,
    )
