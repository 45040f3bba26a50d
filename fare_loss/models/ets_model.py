"""Exponential smoothing with automatic (error, trend, seasonal) selection."""

from itertools import product
from typing import Any, Dict, List, Optional
import logging
import warnings

import numpy as np
import pandas as pd
from statsmodels.tsa.exponential_smoothing.ets import ETSModel

from fare_loss.data.structs import DATE_COL, TARGET_COL
from fare_loss.models.base_model import BaseForecaster

logger = logging.getLogger(__name__)


def _information_criterion(result) -> float:
    """Prefer AICc when available; fall back to AIC."""
    for name in ("aicc", "aic"):
        value = getattr(result, name, None)
        if value is not None and np.isfinite(value):
            return float(value)
    return np.inf


class ETSForecaster(BaseForecaster):
    """
    State-space exponential smoothing fit directly on the weekly series.

    Candidates span error {add, mul} x trend {none, add, damped add} x
    seasonal {none, add, mul}; the lowest AICc wins. Seasonal candidates need
    two full seasons of history, multiplicative ones strictly positive data.
    Engineered features are ignored.
    """

    supports_intervals = True

    def __init__(
        self,
        model_id: str = "ETS",
        hyperparameters: Optional[Dict[str, Any]] = None,
        seed: int = 123,
        alpha: float = 0.05,
    ):
        """
        Args:
            model_id: Identifier reported in accuracy tables
            hyperparameters: ``seasonal_periods`` (default 52),
                ``simulate_repetitions`` (default 1000)
            seed: Random seed for simulation-based intervals
            alpha: Significance level of the prediction interval
        """
        super().__init__(model_id, hyperparameters, seed, alpha)
        self.result = None
        self.spec: Dict[str, Any] = {}

    @property
    def model_type(self) -> str:
        return "ets"

    def candidate_specs(self, y: np.ndarray) -> List[Dict[str, Any]]:
        """ETS candidate specifications admissible for ``y``."""
        seasonal_periods = int(self.hyperparameters.get("seasonal_periods", 52))
        positive = bool((y > 0).all())

        errors = ["add", "mul"] if positive else ["add"]
        trends = [(None, False), ("add", False), ("add", True)]
        seasonals: List[Optional[str]] = [None]
        if len(y) >= 2 * seasonal_periods:
            seasonals.append("add")
            if positive:
                seasonals.append("mul")

        specs = []
        for error, (trend, damped), seasonal in product(errors, trends, seasonals):
            specs.append({
                "error": error,
                "trend": trend,
                "damped_trend": damped,
                "seasonal": seasonal,
                "seasonal_periods": seasonal_periods if seasonal else None,
            })
        return specs

    def _fit(self, train: pd.DataFrame) -> None:
        # statsmodels builds the prediction index from the endog index
        y = pd.Series(
            train[TARGET_COL].to_numpy(dtype=float),
            index=pd.DatetimeIndex(train[DATE_COL], freq="7D"),
        )
        best_score = np.inf
        failures = 0

        for spec in self.candidate_specs(y.to_numpy()):
            try:
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore")
                    result = ETSModel(y, initialization_method="estimated", **spec).fit(disp=False)
            except (ValueError, np.linalg.LinAlgError) as e:
                failures += 1
                logger.debug(f"{self.model_id}: candidate {spec} failed: {e}")
                continue

            score = _information_criterion(result)
            if score < best_score:
                best_score = score
                self.result = result
                self.spec = spec

        if self.result is None:
            raise ValueError(f"No ETS candidate converged ({failures} failed)")

        self.metadata["spec"] = dict(self.spec)
        self.metadata["aicc"] = best_score
        logger.info(
            f"{self.model_id}: selected ETS({self.spec['error']}, "
            f"{self.spec['trend']}{'_d' if self.spec['damped_trend'] else ''}, "
            f"{self.spec['seasonal']})"
        )

    def _predict(self, dates: pd.DatetimeIndex) -> pd.DataFrame:
        steps = self._steps_ahead(dates)
        prediction = self.result.get_prediction(
            start=self._n_obs,
            end=self._n_obs + int(steps.max()) - 1,
            simulate_repetitions=int(self.hyperparameters.get("simulate_repetitions", 1000)),
            random_state=self.seed,
        )
        frame = prediction.summary_frame(alpha=self.alpha)
        idx = steps - 1
        return pd.DataFrame({
            "forecast": frame["mean"].to_numpy()[idx],
            "forecast_lo": frame["pi_lower"].to_numpy()[idx],
            "forecast_hi": frame["pi_upper"].to_numpy()[idx],
        })
