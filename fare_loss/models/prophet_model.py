"""Prophet additive decomposition, optionally with XGBoost residual correction."""

from typing import Any, Dict, Optional
import logging
import threading

import numpy as np
import pandas as pd
from prophet import Prophet

from fare_loss.data.structs import DATE_COL, TARGET_COL
from fare_loss.models.base_model import BaseForecaster
from fare_loss.models.xgboost_model import CalendarBooster

logger = logging.getLogger(__name__)

# Prophet samples its intervals from the global numpy RNG
_GLOBAL_RNG_LOCK = threading.Lock()


class ProphetForecaster(BaseForecaster):
    """
    Trend + yearly seasonality fit directly on the weekly series.

    Weekly and daily seasonality are disabled (the data is already weekly).
    Intervals come from Prophet's own uncertainty sampling, seeded so that
    repeated predictions are identical.
    """

    supports_intervals = True

    def __init__(
        self,
        model_id: str = "PROPHET",
        hyperparameters: Optional[Dict[str, Any]] = None,
        seed: int = 123,
        alpha: float = 0.05,
    ):
        """
        Args:
            model_id: Identifier reported in accuracy tables
            hyperparameters: ``Prophet`` constructor overrides
            seed: Seed for uncertainty sampling
            alpha: Significance level; ``interval_width = 1 - alpha``
        """
        super().__init__(model_id, hyperparameters, seed, alpha)
        self.model_object: Optional[Prophet] = None

    @property
    def model_type(self) -> str:
        return "prophet"

    def _prophet_params(self) -> Dict[str, Any]:
        params = {
            "yearly_seasonality": True,
            "weekly_seasonality": False,
            "daily_seasonality": False,
            "interval_width": 1.0 - self.alpha,
            "uncertainty_samples": 1000,
        }
        params.update({k: v for k, v in self.hyperparameters.items() if k != "xgboost"})
        return params

    def _fit(self, train: pd.DataFrame) -> None:
        history = pd.DataFrame({"ds": train[DATE_COL], "y": train[TARGET_COL]})
        self.model_object = Prophet(**self._prophet_params())
        self.model_object.fit(history)

    def _prophet_predict(self, dates: pd.Series) -> pd.DataFrame:
        """
        Seeded Prophet prediction.

        The global numpy RNG is reseeded for the call and restored afterwards;
        the lock keeps concurrent ensemble fits from interleaving draws.
        """
        future = pd.DataFrame({"ds": pd.to_datetime(dates)})
        with _GLOBAL_RNG_LOCK:
            state = np.random.get_state()
            np.random.seed(self.seed)
            try:
                return self.model_object.predict(future)
            finally:
                np.random.set_state(state)

    def _predict(self, dates: pd.DatetimeIndex) -> pd.DataFrame:
        frame = self._prophet_predict(pd.Series(dates))
        return pd.DataFrame({
            "forecast": frame["yhat"].to_numpy(),
            "forecast_lo": frame["yhat_lower"].to_numpy(),
            "forecast_hi": frame["yhat_upper"].to_numpy(),
        })


class ProphetBoostForecaster(ProphetForecaster):
    """
    Prophet plus a calendar-feature XGBoost model fit on Prophet residuals.

    The Prophet interval is shifted by the residual correction.
    """

    def __init__(
        self,
        model_id: str = "PROPHET W/ XGBOOST ERRORS",
        hyperparameters: Optional[Dict[str, Any]] = None,
        seed: int = 123,
        alpha: float = 0.05,
    ):
        super().__init__(model_id, hyperparameters, seed, alpha)
        self.booster: Optional[CalendarBooster] = None

    @property
    def model_type(self) -> str:
        return "prophet_boost"

    def _fit(self, train: pd.DataFrame) -> None:
        super()._fit(train)
        fitted = self._prophet_predict(train[DATE_COL])["yhat"].to_numpy()
        residuals = train[TARGET_COL].to_numpy(dtype=float) - fitted

        self.booster = CalendarBooster(self.hyperparameters.get("xgboost"), seed=self.seed)
        self.booster.fit(train[DATE_COL], residuals)

    def _predict(self, dates: pd.DatetimeIndex) -> pd.DataFrame:
        base = super()._predict(dates)
        correction = self.booster.predict(pd.Series(dates))
        for col in ("forecast", "forecast_lo", "forecast_hi"):
            base[col] = base[col].to_numpy() + correction
        return base
