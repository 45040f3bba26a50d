"""Evaluation metrics and calibration utilities."""

from fare_loss.evaluation.metrics import METRIC_NAMES, MetricsCalculator
from fare_loss.evaluation.calibration import (
    CalibrationResult,
    ModelCalibrator,
    rank_by_rmse,
)

__all__ = [
    "METRIC_NAMES",
    "MetricsCalculator",
    "CalibrationResult",
    "ModelCalibrator",
    "rank_by_rmse",
]
