"""Base interface shared by every forecasting strategy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Sequence
import logging
import time

import numpy as np
import pandas as pd

from fare_loss.data.structs import DATE_COL, TARGET_COL

logger = logging.getLogger(__name__)

FORECAST_COLUMNS = [DATE_COL, "forecast", "forecast_lo", "forecast_hi"]


@dataclass
class ModelArtifact:
    """Container for fitted-model metadata (excludes the model object)."""
    model_id: str
    model_type: str
    hyperparameters: Dict[str, Any]
    fit_start: Optional[str] = None
    fit_end: Optional[str] = None
    n_obs: int = 0
    training_time: float = 0.0
    created_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert artifact metadata to dictionary."""
        return {
            "model_id": self.model_id,
            "model_type": self.model_type,
            "hyperparameters": self.hyperparameters,
            "fit_start": self.fit_start,
            "fit_end": self.fit_end,
            "n_obs": self.n_obs,
            "training_time": self.training_time,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }


class BaseForecaster(ABC):
    """
    Abstract base class for all forecasting strategies.

    A forecaster is fit once on a frame of ``(week_start, total_fares)`` rows
    and then behaves as a pure function from future dates to predictions.
    """

    #: Whether ``predict`` returns native prediction intervals
    supports_intervals: bool = False

    def __init__(
        self,
        model_id: str,
        hyperparameters: Optional[Dict[str, Any]] = None,
        seed: int = 123,
        alpha: float = 0.05,
    ):
        """
        Initialize base forecaster.

        Args:
            model_id: Identifier reported in accuracy tables
            hyperparameters: Strategy-specific overrides
            seed: Random seed for the underlying optimizers and samplers
            alpha: Significance level of prediction intervals
        """
        self.model_id = model_id
        self.hyperparameters = dict(hyperparameters or {})
        self.seed = seed
        self.alpha = alpha
        self.is_fitted: bool = False
        self.training_time: float = 0.0
        self.metadata: Dict[str, Any] = {}
        self._last_date: Optional[pd.Timestamp] = None
        self._fit_start: Optional[pd.Timestamp] = None
        self._n_obs: int = 0

    @property
    @abstractmethod
    def model_type(self) -> str:
        """Return the model type identifier."""

    @abstractmethod
    def _fit(self, train: pd.DataFrame) -> None:
        """Strategy-specific fitting on a validated, sorted frame."""

    @abstractmethod
    def _predict(self, dates: pd.DatetimeIndex) -> pd.DataFrame:
        """
        Strategy-specific prediction.

        Returns:
            Frame with ``forecast`` and, for interval-capable strategies,
            ``forecast_lo`` / ``forecast_hi`` columns, one row per date
        """

    def fit(self, train: pd.DataFrame) -> "BaseForecaster":
        """
        Fit the forecaster to training rows.

        Args:
            train: Frame with ``week_start`` and ``total_fares`` columns

        Returns:
            Self for method chaining
        """
        train = self._validate_input(train)
        start = time.perf_counter()
        self._fit(train)
        self.training_time = time.perf_counter() - start
        self._fit_start = train[DATE_COL].iloc[0]
        self._last_date = train[DATE_COL].iloc[-1]
        self._n_obs = len(train)
        self.is_fitted = True
        logger.debug(f"{self.model_id} fitted on {len(train)} weeks in {self.training_time:.2f}s")
        return self

    def predict(self, horizon_dates: Sequence) -> pd.DataFrame:
        """
        Generate predictions for the given dates.

        Args:
            horizon_dates: Dates to forecast

        Returns:
            Frame with columns ``week_start, forecast, forecast_lo, forecast_hi``;
            the bounds are NaN when the strategy has no native interval
        """
        if not self.is_fitted:
            raise ValueError(f"{self.model_id} is not fitted")

        dates = pd.DatetimeIndex(pd.to_datetime(horizon_dates))
        if len(dates) == 0:
            return pd.DataFrame(columns=FORECAST_COLUMNS)

        predicted = self._predict(dates)
        result = pd.DataFrame({DATE_COL: dates})
        result["forecast"] = np.asarray(predicted["forecast"], dtype=float)
        for col in ("forecast_lo", "forecast_hi"):
            if col in predicted:
                result[col] = np.asarray(predicted[col], dtype=float)
            else:
                result[col] = np.nan
        return result[FORECAST_COLUMNS]

    def get_params(self) -> Dict[str, Any]:
        """Hyperparameters plus seed and interval level."""
        return {**self.hyperparameters, "seed": self.seed, "alpha": self.alpha}

    def get_artifact(self) -> ModelArtifact:
        """
        Get model artifact containing all metadata.

        Returns:
            ModelArtifact instance
        """
        return ModelArtifact(
            model_id=self.model_id,
            model_type=self.model_type,
            hyperparameters=self.get_params(),
            fit_start=str(self._fit_start.date()) if self._fit_start is not None else None,
            fit_end=str(self._last_date.date()) if self._last_date is not None else None,
            n_obs=self._n_obs,
            training_time=self.training_time,
            metadata=dict(self.metadata),
        )

    def _steps_ahead(self, dates: pd.DatetimeIndex) -> np.ndarray:
        """
        Number of weekly steps from the last fitted week to each date.

        Raises:
            ValueError: If a date is not strictly after the training data or
                is not on the weekly grid
        """
        offsets = (dates - self._last_date) / pd.Timedelta(weeks=1)
        steps = np.rint(np.asarray(offsets, dtype=float)).astype(int)
        if (steps < 1).any():
            raise ValueError(
                f"{self.model_id} can only forecast after {self._last_date.date()}"
            )
        if not np.allclose(np.asarray(offsets, dtype=float), steps):
            raise ValueError(f"{self.model_id} horizon dates must be on the weekly grid")
        return steps

    def _validate_input(self, train: pd.DataFrame) -> pd.DataFrame:
        """Validate and sort a training frame."""
        if not isinstance(train, pd.DataFrame):
            raise TypeError("train must be a pandas DataFrame")
        if train.empty:
            raise ValueError("train cannot be empty")
        missing = {DATE_COL, TARGET_COL} - set(train.columns)
        if missing:
            raise ValueError(f"train is missing columns: {sorted(missing)}")
        if train[TARGET_COL].isnull().any():
            raise ValueError("train contains NaN fare counts")
        return train.sort_values(DATE_COL, kind="mergesort").reset_index(drop=True)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"model_id='{self.model_id}', "
            f"is_fitted={self.is_fitted})"
        )
