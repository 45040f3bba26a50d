"""
XGBoost forecasters on calendar signature features, with optional Optuna
hyperparameter optimization.
"""

from typing import Dict, Any, Optional, List
import logging

import numpy as np
import optuna
import pandas as pd
import xgboost as xgb
from sklearn.metrics import mean_squared_error
from sklearn.model_selection import TimeSeriesSplit

from fare_loss.data.structs import DATE_COL, TARGET_COL
from fare_loss.features.engineering import FeatureEngineer
from fare_loss.models.base_model import BaseForecaster

logger = logging.getLogger(__name__)

DEFAULT_XGB_PARAMS: Dict[str, Any] = {
    "n_estimators": 100,
    "max_depth": 6,
    "learning_rate": 0.1,
}


class CalendarBooster:
    """
    XGBoost regressor over the calendar signature of a date column.

    Used directly by ``XGBoostForecaster`` and as the residual-correction
    component of the boosted ARIMA and Prophet strategies.
    """

    def __init__(self, hyperparameters: Optional[Dict[str, Any]] = None, seed: int = 123):
        self.hyperparameters = {**DEFAULT_XGB_PARAMS, **(hyperparameters or {})}
        self.seed = seed
        self.engineer = FeatureEngineer()
        self.feature_names: List[str] = []
        self.model_object: Optional[xgb.XGBRegressor] = None

    def features(self, dates: pd.Series) -> pd.DataFrame:
        """Calendar features for ``dates`` (the date itself is dropped)."""
        frame = self.engineer.create_calendar_features(
            pd.DataFrame({DATE_COL: pd.to_datetime(pd.Series(dates)).reset_index(drop=True)})
        )
        return frame[self.engineer.feature_columns(frame)]

    def fit(self, dates: pd.Series, target: np.ndarray) -> "CalendarBooster":
        X = self.features(dates)
        self.feature_names = X.columns.tolist()
        self.model_object = xgb.XGBRegressor(
            objective="reg:squarederror",
            random_state=self.seed,
            n_jobs=1,
            **self.hyperparameters,
        )
        self.model_object.fit(X, np.asarray(target, dtype=float), verbose=False)
        return self

    def predict(self, dates: pd.Series) -> np.ndarray:
        if self.model_object is None:
            raise ValueError("Booster not fitted")
        X = self.features(dates)[self.feature_names]
        return self.model_object.predict(X)

    def get_feature_importance(self, importance_type: str = "gain") -> Dict[str, float]:
        """Feature importance keyed by feature name (0.0 for unused features)."""
        if self.model_object is None:
            return {}
        scores = self.model_object.get_booster().get_score(importance_type=importance_type)
        return {feat: scores.get(feat, 0.0) for feat in self.feature_names}


class XGBoostForecaster(BaseForecaster):
    """
    Gradient-boosted trees on calendar features as plain tabular regression.

    Has no native prediction interval.
    """

    supports_intervals = False

    def __init__(
        self,
        model_id: str = "XGBOOST",
        hyperparameters: Optional[Dict[str, Any]] = None,
        seed: int = 123,
        alpha: float = 0.05,
        optimize: bool = False,
        optimization_params: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            model_id: Identifier reported in accuracy tables
            hyperparameters: XGBRegressor overrides
            seed: Random seed
            alpha: Unused (no native interval), kept for a uniform signature
            optimize: Run Optuna optimization before the final fit
            optimization_params: Optuna settings (n_trials, n_splits)

        ``optimize`` and ``optimization_params`` may also arrive inside
        ``hyperparameters`` (as they do from ``model_params`` in the pipeline
        config); they are taken out so they never reach XGBRegressor.
        """
        super().__init__(model_id, hyperparameters, seed, alpha)
        self.optimize = bool(self.hyperparameters.pop("optimize", optimize))
        self.optimization_params = {
            **(optimization_params or {}),
            **self.hyperparameters.pop("optimization_params", {}),
        }
        self.booster: Optional[CalendarBooster] = None

    @property
    def model_type(self) -> str:
        return "xgboost"

    def _fit(self, train: pd.DataFrame) -> None:
        if self.optimize:
            logger.info(f"Starting hyperparameter optimization for {self.model_id}...")
            best_params = self.optimize_hyperparameters(train, self.optimization_params)
            logger.info(f"Optimization complete. Best params: {best_params}")
            self.hyperparameters.update(best_params)

        self.booster = CalendarBooster(self.hyperparameters, seed=self.seed)
        self.booster.fit(train[DATE_COL], train[TARGET_COL].to_numpy())

    def _predict(self, dates: pd.DatetimeIndex) -> pd.DataFrame:
        return pd.DataFrame({"forecast": self.booster.predict(pd.Series(dates))})

    def get_feature_importance(self, importance_type: str = "gain") -> Dict[str, float]:
        if self.booster is None:
            return {}
        return self.booster.get_feature_importance(importance_type)

    def optimize_hyperparameters(
        self,
        train: pd.DataFrame,
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Run Optuna optimization with expanding-window time-series CV.

        Args:
            train: Training rows
            params: Optimization config
                - n_trials: Number of trials (default: 20)
                - n_splits: CV splits (default: 3)

        Returns:
            Best hyperparameters
        """
        n_trials = params.get("n_trials", 20)
        n_splits = params.get("n_splits", 3)

        features = CalendarBooster(seed=self.seed).features(train[DATE_COL])
        y = train[TARGET_COL].to_numpy()

        def objective(trial):
            param = {
                "max_depth": trial.suggest_int("max_depth", 3, 10),
                "learning_rate": trial.suggest_float("learning_rate", 1e-3, 0.3, log=True),
                "n_estimators": trial.suggest_int("n_estimators", 50, 500),
                "subsample": trial.suggest_float("subsample", 0.5, 1.0),
                "colsample_bytree": trial.suggest_float("colsample_bytree", 0.5, 1.0),
                "min_child_weight": trial.suggest_int("min_child_weight", 1, 10),
            }

            tscv = TimeSeriesSplit(n_splits=n_splits)
            scores = []
            for train_idx, val_idx in tscv.split(features):
                model = xgb.XGBRegressor(
                    objective="reg:squarederror", random_state=self.seed, n_jobs=1, **param
                )
                model.fit(features.iloc[train_idx], y[train_idx], verbose=False)
                preds = model.predict(features.iloc[val_idx])
                scores.append(np.sqrt(mean_squared_error(y[val_idx], preds)))

            return np.mean(scores)

        sampler = optuna.samplers.TPESampler(seed=self.seed)
        study = optuna.create_study(direction="minimize", sampler=sampler)
        study.optimize(objective, n_trials=n_trials)
        return study.best_params
