"""Accuracy metrics for point forecasts."""

from typing import Dict
import logging

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

logger = logging.getLogger(__name__)

METRIC_NAMES = ["mae", "rmse", "mape", "mase", "smape", "rsq"]


class MetricsCalculator:
    """Calculate forecast accuracy metrics."""

    def calculate_regression_metrics(
        self,
        y_true: np.ndarray,
        y_pred: np.ndarray,
        seasonality: int = 1,
    ) -> Dict[str, float]:
        """
        Calculate forecast accuracy metrics.

        * mae, rmse
        * mape: mean absolute percentage error in percent, over nonzero truths
        * mase: MAE scaled by the MAE of a lag-``seasonality`` naive forecast
          of the truth itself
        * smape: symmetric MAPE in percent
        * rsq: squared Pearson correlation of truth and prediction

        Metrics that are undefined for the input (zero denominators, constant
        series) are NaN.

        Args:
            y_true: True values
            y_pred: Predicted values
            seasonality: Lag of the naive forecast used by MASE

        Returns:
            Dictionary of metric names to values
        """
        y_true = np.asarray(y_true, dtype=float)
        y_pred = np.asarray(y_pred, dtype=float)

        if y_true.shape != y_pred.shape:
            raise ValueError(f"Shape mismatch: {y_true.shape} vs {y_pred.shape}")
        if len(y_true) == 0:
            raise ValueError("Cannot score an empty window")

        metrics: Dict[str, float] = {}
        errors = y_true - y_pred

        metrics["mae"] = float(mean_absolute_error(y_true, y_pred))
        metrics["rmse"] = float(np.sqrt(mean_squared_error(y_true, y_pred)))

        mask = y_true != 0
        if mask.any():
            metrics["mape"] = float(np.mean(np.abs(errors[mask] / y_true[mask])) * 100)
        else:
            metrics["mape"] = np.nan

        if len(y_true) > seasonality:
            naive_mae = np.mean(np.abs(y_true[seasonality:] - y_true[:-seasonality]))
            metrics["mase"] = float(metrics["mae"] / naive_mae) if naive_mae > 0 else np.nan
        else:
            metrics["mase"] = np.nan

        denom = (np.abs(y_true) + np.abs(y_pred)) / 2
        smape_mask = denom != 0
        if smape_mask.any():
            metrics["smape"] = float(
                np.mean(np.abs(errors[smape_mask]) / denom[smape_mask]) * 100
            )
        else:
            metrics["smape"] = np.nan

        if len(y_true) > 1 and np.std(y_true) > 0 and np.std(y_pred) > 0:
            metrics["rsq"] = float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)
        else:
            metrics["rsq"] = np.nan

        return metrics
