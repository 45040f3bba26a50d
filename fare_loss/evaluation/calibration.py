"""Calibration: scoring fitted forecasters on held-out weeks and ranking them."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging
import uuid

import numpy as np
import pandas as pd

from fare_loss.data.structs import DATE_COL, TARGET_COL
from fare_loss.evaluation.metrics import METRIC_NAMES, MetricsCalculator
from fare_loss.exceptions import FitFailure, NoViableModel
from fare_loss.models.base_model import BaseForecaster
from fare_loss.utils.error_handling import RecoveryContext, record_failure

logger = logging.getLogger(__name__)

ASSESSMENT = "assessment"
VALIDATION = "validation"


@dataclass
class CalibrationResult:
    """
    Output of the calibration stage.

    Attributes:
        accuracy: AccuracyReport on the validation window, one row per
            scored model, sorted ascending by RMSE (stable, NaN last)
        assessment_accuracy: Same metrics on the walk-forward assessment window
        predictions: Per-row calibration table
            ``model_id, window, week_start, actual, predicted``
        failures: Excluded models and why, keyed by model id
        model_order: Order models were offered in (fit order)
    """
    accuracy: pd.DataFrame
    assessment_accuracy: pd.DataFrame
    predictions: pd.DataFrame
    failures: Dict[str, RecoveryContext] = field(default_factory=dict)
    model_order: List[str] = field(default_factory=list)

    def best_model_id(self) -> str:
        """Model id with the lowest validation RMSE."""
        if self.accuracy.empty:
            raise NoViableModel(
                f"All {len(self.failures)} forecasters failed: {sorted(self.failures)}"
            )
        return str(self.accuracy["model_id"].iloc[0])

    def diagnostics(self) -> pd.DataFrame:
        """
        One row per offered model, failed ones included with a failure marker.
        """
        rows = []
        scored = self.accuracy.set_index("model_id")
        for model_id in self.model_order:
            if model_id in self.failures:
                ctx = self.failures[model_id]
                rows.append({
                    "model_id": model_id,
                    "status": "failed",
                    "stage": ctx.stage,
                    "error": f"{ctx.exception_type}: {ctx.exception_message}",
                    "rank": np.nan,
                    "rmse": np.nan,
                })
            else:
                rows.append({
                    "model_id": model_id,
                    "status": "ok",
                    "stage": None,
                    "error": None,
                    "rank": scored.loc[model_id, "rank"],
                    "rmse": scored.loc[model_id, "rmse"],
                })
        return pd.DataFrame(rows, columns=["model_id", "status", "stage", "error", "rank", "rmse"])


def rank_by_rmse(report: pd.DataFrame) -> pd.DataFrame:
    """
    Sort an accuracy table ascending by RMSE.

    Ties keep their input order (stable sort) and NaN RMSEs go last.
    """
    ranked = report.sort_values("rmse", kind="mergesort", na_position="last")
    ranked = ranked.reset_index(drop=True)
    ranked.insert(0, "rank", np.arange(1, len(ranked) + 1))
    return ranked


class ModelCalibrator:
    """Scores fitted forecasters on held-out windows."""

    def __init__(self, metrics_calculator: Optional[MetricsCalculator] = None):
        self.metrics_calculator = metrics_calculator or MetricsCalculator()

    def calibrate(
        self,
        fitted: Dict[str, BaseForecaster],
        validate: pd.DataFrame,
        assessment: Optional[pd.DataFrame] = None,
        failures: Optional[Dict[str, RecoveryContext]] = None,
        model_order: Optional[List[str]] = None,
        run_id: Optional[str] = None,
    ) -> CalibrationResult:
        """
        Predict every fitted forecaster over the held-out weeks and score it.

        All forecasters must have been fit on the same fit-subset. A model
        whose prediction fails is excluded from the ranking and recorded as
        a failure, like a fit failure.

        Args:
            fitted: Fitted forecasters keyed by model id, in insertion order
            validate: VALIDATE rows (``week_start``, ``total_fares``)
            assessment: Optional walk-forward assessment rows
            failures: Failures carried over from the fit stage
            model_order: Full offered order including failed models
            run_id: Identifier attached to new failure records

        Returns:
            CalibrationResult
        """
        run_id = run_id or uuid.uuid4().hex[:12]
        failures = dict(failures or {})
        model_order = list(model_order or list(fitted) + [m for m in failures if m not in fitted])

        windows = [(VALIDATION, validate)]
        if assessment is not None and not assessment.empty:
            windows.insert(0, (ASSESSMENT, assessment))

        truth = pd.concat(
            [w[[DATE_COL, TARGET_COL]].assign(window=name) for name, w in windows],
            ignore_index=True,
        ).sort_values(DATE_COL, kind="mergesort").reset_index(drop=True)

        tables: List[pd.DataFrame] = []
        for model_id, forecaster in fitted.items():
            try:
                predicted = forecaster.predict(truth[DATE_COL])
            except Exception as e:
                error = FitFailure(f"{type(e).__name__}: {e}", stage="calibration", model_id=model_id)
                error.__cause__ = e
                failures[model_id] = record_failure(run_id, error)
                continue

            forecast = predicted["forecast"].to_numpy(dtype=float)
            if not np.isfinite(forecast).all():
                bad = int((~np.isfinite(forecast)).sum())
                error = FitFailure(
                    f"{bad} non-finite predictions over the held-out weeks",
                    stage="calibration",
                    model_id=model_id,
                )
                failures[model_id] = record_failure(run_id, error)
                continue

            tables.append(pd.DataFrame({
                "model_id": model_id,
                "window": truth["window"],
                DATE_COL: truth[DATE_COL],
                "actual": truth[TARGET_COL].to_numpy(dtype=float),
                "predicted": forecast,
            }))

        columns = ["model_id", "window", DATE_COL, "actual", "predicted"]
        predictions = (
            pd.concat(tables, ignore_index=True) if tables else pd.DataFrame(columns=columns)
        )

        accuracy = self._score(predictions, VALIDATION)
        assessment_accuracy = self._score(predictions, ASSESSMENT)

        for row in accuracy.itertuples(index=False):
            logger.info(
                f"#{row.rank} {row.model_id}: rmse={row.rmse:,.0f} mape={row.mape:.2f}%",
                extra={"props": {
                    "stage": "calibration",
                    "model_id": row.model_id,
                    **{m: getattr(row, m) for m in METRIC_NAMES},
                }},
            )

        return CalibrationResult(
            accuracy=accuracy,
            assessment_accuracy=assessment_accuracy,
            predictions=predictions,
            failures=failures,
            model_order=model_order,
        )

    def _score(self, predictions: pd.DataFrame, window: str) -> pd.DataFrame:
        """AccuracyReport for one window, ranked by RMSE."""
        rows = []
        subset = predictions[predictions["window"] == window]
        # groupby(sort=False) keeps insertion order for the stable tie-break
        for model_id, group in subset.groupby("model_id", sort=False):
            metrics = self.metrics_calculator.calculate_regression_metrics(
                group["actual"].to_numpy(), group["predicted"].to_numpy()
            )
            rows.append({"model_id": model_id, **metrics})

        report = pd.DataFrame(rows, columns=["model_id"] + METRIC_NAMES)
        return rank_by_rmse(report)
