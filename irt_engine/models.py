"""
Plain data records exchanged between the IRT engine and its stores.

The engine never owns persistence: these records are what the external
attempt/item/profile stores hand in and receive back.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple, Optional


class ScoredResponse(NamedTuple):
    """A scored response to a calibrated item, as consumed by ability estimation."""

    discrimination: float  # a parameter
    difficulty: float  # b parameter
    guessing: float  # c parameter
    is_correct: bool


class ItemResponseRecord(NamedTuple):
    """One historical response to an item, as consumed by item calibration.

    Either field may be None: the respondent may have no ability estimate yet,
    and the attempt may not have been scored.
    """

    respondent_theta: Optional[float]
    is_correct: Optional[bool]


@dataclass
class Item:
    """An item in the bank with its (possibly uncalibrated) 3PL parameters."""

    id: str
    scale_id: str
    discrimination: Optional[float] = None  # a parameter
    difficulty: Optional[float] = None  # b parameter
    guessing: Optional[float] = None  # c parameter
    calibration_sample_size: Optional[int] = None
    last_calibrated_at: Optional[datetime] = None
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.discrimination is not None and self.discrimination <= 0:
            raise ValueError(
                f"Discrimination parameter must be positive, got {self.discrimination} "
                f"for item {self.id}"
            )
        if self.guessing is not None and not 0.0 <= self.guessing < 1.0:
            raise ValueError(
                f"Guessing parameter must be in [0, 1), got {self.guessing} "
                f"for item {self.id}"
            )
        if self.difficulty is not None and not math.isfinite(self.difficulty):
            raise ValueError(
                f"Difficulty parameter must be finite, got {self.difficulty} "
                f"for item {self.id}"
            )

    @property
    def is_calibrated(self) -> bool:
        """True once all three 3PL parameters are known."""
        return (
            self.discrimination is not None
            and self.difficulty is not None
            and self.guessing is not None
        )


@dataclass(frozen=True)
class AttemptRecord:
    """An examinee's attempt at an item. Owned by the attempt-tracking system."""

    examinee_id: str
    item_id: str
    is_correct: Optional[bool]  # None = not yet scored
    created_at: datetime


@dataclass(frozen=True)
class AbilityProfile:
    """Latest ability estimate for an examinee on a scale (overwritten, not appended)."""

    examinee_id: str
    scale_id: str
    theta: float
    standard_error: float
    attempts_count: int
    updated_at: Optional[datetime] = None
