"""Refit of the selected forecaster and the counterfactual forecast."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd

from fare_loss.data.splitters import Split
from fare_loss.data.structs import DATE_COL
from fare_loss.exceptions import (
    FitFailure,
    ForecastIntegrityError,
    LeakageError,
    NoUncertaintyEstimate,
    RefitFailure,
)
from fare_loss.models.base_model import FORECAST_COLUMNS, BaseForecaster
from fare_loss.models.registry import ForecasterKind, fit_forecaster
from fare_loss.utils.config_manager import PipelineConfig

logger = logging.getLogger(__name__)


@dataclass
class Forecast:
    """
    Point forecast with interval bounds from exactly one fitted forecaster.

    Attributes:
        model_id: Forecaster that produced it
        frame: ``week_start, forecast, forecast_lo, forecast_hi`` sorted by date
        metadata: Fit window and interval level
    """
    model_id: str
    frame: pd.DataFrame
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        missing = set(FORECAST_COLUMNS) - set(self.frame.columns)
        if missing:
            raise ValueError(f"Forecast is missing columns: {sorted(missing)}")
        self.frame = self.frame[FORECAST_COLUMNS].sort_values(
            DATE_COL, kind="mergesort"
        ).reset_index(drop=True)

        point = self.frame["forecast"].to_numpy()
        lo = self.frame["forecast_lo"].to_numpy()
        hi = self.frame["forecast_hi"].to_numpy()
        if np.isnan(lo).any() or np.isnan(hi).any():
            raise NoUncertaintyEstimate(
                "Forecast has missing interval bounds", model_id=self.model_id
            )
        # Tolerance for float noise from shifting bounds by a correction term
        tol = 1e-6 * np.maximum(1.0, np.abs(point))
        bad = (lo > point + tol) | (point > hi + tol)
        if bad.any():
            first = self.frame.loc[bad, DATE_COL].iloc[0]
            raise ForecastIntegrityError(
                f"{int(bad.sum())} rows violate lower <= point <= upper (first {first.date()})",
                model_id=self.model_id,
            )

    @property
    def dates(self) -> pd.Series:
        return self.frame[DATE_COL]

    def __len__(self) -> int:
        return len(self.frame)


def refit(
    kind: Union[str, ForecasterKind],
    split: Split,
    config: Optional[PipelineConfig] = None,
) -> BaseForecaster:
    """
    Fit a fresh forecaster of the selected strategy on TRAIN + VALIDATE.

    Args:
        kind: Selected strategy or its model id
        split: Split providing the TRAIN and VALIDATE rows
        config: Pipeline configuration

    Returns:
        Fitted forecaster

    Raises:
        LeakageError: If a row on or after the test cutoff would be fitted
        RefitFailure: If the strategy fails to fit
    """
    kind = ForecasterKind.parse(kind)
    data = split.train_validate

    if not data.empty and data[DATE_COL].max() >= split.test_cutoff:
        raise LeakageError(
            f"Refit data reaches {data[DATE_COL].max().date()}, "
            f"test period starts {split.test_cutoff.date()}",
            model_id=kind.value,
        )

    logger.info(
        f"Refitting {kind.value} on {len(data)} weeks "
        f"({data[DATE_COL].min().date()} to {data[DATE_COL].max().date()})",
        extra={"props": {"stage": "refit", "model_id": kind.value}},
    )
    try:
        return fit_forecaster(kind, data, config, stage="refit")
    except FitFailure as e:
        logger.error(f"Refit of {kind.value} failed: {e.message}")
        raise RefitFailure(e.message, model_id=kind.value) from e


def forecast(fitted: BaseForecaster, horizon_dates: Sequence) -> Forecast:
    """
    Forecast the horizon with native interval bounds.

    Raises:
        NoUncertaintyEstimate: If the forecaster has no native interval
    """
    if not fitted.supports_intervals:
        raise NoUncertaintyEstimate(
            f"{fitted.model_type} has no native prediction interval",
            model_id=fitted.model_id,
        )

    frame = fitted.predict(horizon_dates)
    artifact = fitted.get_artifact()
    result = Forecast(
        model_id=fitted.model_id,
        frame=frame,
        metadata={
            "fit_start": artifact.fit_start,
            "fit_end": artifact.fit_end,
            "interval_level": 1.0 - fitted.alpha,
        },
    )
    logger.info(
        f"Forecast {len(result)} weeks with {fitted.model_id}",
        extra={"props": {"stage": "forecast", "model_id": fitted.model_id}},
    )
    return result


def refit_and_forecast(
    kind: Union[str, ForecasterKind],
    split: Split,
    config: Optional[PipelineConfig] = None,
) -> Forecast:
    """Refit the selected strategy and forecast every TEST week."""
    fitted = refit(kind, split, config)
    return forecast(fitted, split.test[DATE_COL])
