"""
CAT (Computerized Adaptive Testing) components of the IRT engine.

This module provides 3PL ability estimation, item calibration and maximum
information item selection, plus the store interfaces they read and write.
"""

from .ability_estimation import (
    AbilityEstimate,
    AbilityEstimator,
    ProgressionPoint,
    confidence_level,
    estimate_ability_mle,
)
from .batch_calibration import BatchCalibrator, CalibrationBatchSummary
from .calibration import (
    CalibrationError,
    ItemCalibrationResult,
    ItemCalibrator,
    ItemStatistics,
    calibrate_item,
    compute_item_statistics,
)
from .calibration_runner import CalibrationJobState, CalibrationRunner
from .item_selection import AdaptiveSelector, select_next_item
from .memory_store import InMemoryIRTStore
from .response_model import ResponseModel, fisher_information_3pl, probability_3pl
from .service import IRTService
from .stores import AttemptStore, ItemStore, NotFoundError, ProfileStore

__all__ = [
    "probability_3pl",
    "fisher_information_3pl",
    "ResponseModel",
    "AbilityEstimate",
    "AbilityEstimator",
    "ProgressionPoint",
    "estimate_ability_mle",
    "confidence_level",
    "ItemCalibrator",
    "ItemCalibrationResult",
    "ItemStatistics",
    "CalibrationError",
    "calibrate_item",
    "compute_item_statistics",
    "BatchCalibrator",
    "CalibrationBatchSummary",
    "CalibrationJobState",
    "CalibrationRunner",
    "AdaptiveSelector",
    "select_next_item",
    "AttemptStore",
    "ItemStore",
    "ProfileStore",
    "NotFoundError",
    "InMemoryIRTStore",
    "IRTService",
]
