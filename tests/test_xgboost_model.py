"""
Tests for the calendar-feature XGBoost forecaster.
"""

import numpy as np
import pandas as pd
import pytest
from unittest.mock import MagicMock, patch

from fare_loss.data.structs import DATE_COL, TARGET_COL
from fare_loss.models.base_model import FORECAST_COLUMNS
from fare_loss.models.registry import create_forecaster
from fare_loss.models.xgboost_model import CalendarBooster, XGBoostForecaster
from fare_loss.utils.config_manager import PipelineConfig

# --- Unit Tests ---

def test_xgboost_fit_predict(short_history_df):
    train = short_history_df.iloc[:60]
    horizon = short_history_df[DATE_COL].iloc[60:]

    model = XGBoostForecaster(hyperparameters={"n_estimators": 20})
    model.fit(train)
    preds = model.predict(horizon)

    assert preds.columns.tolist() == FORECAST_COLUMNS
    assert len(preds) == len(horizon)
    assert preds["forecast"].notna().all()
    # No native interval
    assert preds["forecast_lo"].isna().all()
    assert preds["forecast_hi"].isna().all()
    assert not model.supports_intervals


def test_xgboost_is_deterministic(short_history_df):
    horizon = pd.date_range("2019-01-05", periods=8, freq="7D")
    first = XGBoostForecaster(hyperparameters={"n_estimators": 20}, seed=7).fit(short_history_df)
    second = XGBoostForecaster(hyperparameters={"n_estimators": 20}, seed=7).fit(short_history_df)

    np.testing.assert_array_equal(
        first.predict(horizon)["forecast"].to_numpy(),
        second.predict(horizon)["forecast"].to_numpy(),
    )


def test_xgboost_feature_importance(short_history_df):
    model = XGBoostForecaster(hyperparameters={"n_estimators": 20}).fit(short_history_df)
    imps = model.get_feature_importance()

    assert "index_num" in imps
    assert "month_lbl_January" in imps
    assert DATE_COL not in imps
    assert all(v >= 0 for v in imps.values())


def test_artifact_records_fit_window(short_history_df):
    model = XGBoostForecaster(hyperparameters={"n_estimators": 10}).fit(short_history_df)
    artifact = model.get_artifact()

    assert artifact.model_id == "XGBOOST"
    assert artifact.model_type == "xgboost"
    assert artifact.n_obs == len(short_history_df)
    assert artifact.fit_start == str(short_history_df[DATE_COL].iloc[0].date())
    assert artifact.hyperparameters["n_estimators"] == 10
    assert artifact.hyperparameters["seed"] == 123


def test_predict_before_fit():
    with pytest.raises(ValueError, match="not fitted"):
        XGBoostForecaster().predict(pd.date_range("2020-01-04", periods=2, freq="7D"))


def test_fit_rejects_nan_target(short_history_df):
    bad = short_history_df.copy()
    bad.loc[3, TARGET_COL] = np.nan
    with pytest.raises(ValueError, match="NaN"):
        XGBoostForecaster().fit(bad)


def test_booster_fits_residuals(short_history_df):
    residuals = np.sin(np.arange(len(short_history_df)))
    booster = CalendarBooster({"n_estimators": 10}).fit(short_history_df[DATE_COL], residuals)
    correction = booster.predict(short_history_df[DATE_COL])

    assert correction.shape == residuals.shape
    assert booster.feature_names[0] == "index_num"


@patch("fare_loss.models.xgboost_model.optuna.create_study")
def test_xgboost_optimization(mock_create_study, short_history_df):
    mock_study = MagicMock()
    mock_study.best_params = {"max_depth": 3, "learning_rate": 0.05, "n_estimators": 15}
    mock_create_study.return_value = mock_study

    model = XGBoostForecaster(optimize=True, optimization_params={"n_trials": 2})
    model.fit(short_history_df)

    mock_create_study.assert_called_once()
    mock_study.optimize.assert_called_once()
    assert mock_study.optimize.call_args.kwargs["n_trials"] == 2
    assert model.hyperparameters["max_depth"] == 3
    assert model.booster.model_object.get_params()["n_estimators"] == 15


def test_optimization_runs_real_trials(short_history_df):
    model = XGBoostForecaster(optimize=True, optimization_params={"n_trials": 2, "n_splits": 2})
    model.fit(short_history_df)

    assert {"max_depth", "learning_rate", "n_estimators"} <= set(model.hyperparameters)
    assert 3 <= model.hyperparameters["max_depth"] <= 10
    assert model.booster.model_object.get_params()["max_depth"] == model.hyperparameters["max_depth"]
    assert model.predict(pd.date_range("2018-07-21", periods=3, freq="7D"))["forecast"].notna().all()


def test_optimization_switch_from_pipeline_config():
    config = PipelineConfig(model_params={
        "XGBOOST": {"n_estimators": 50, "optimize": True, "optimization_params": {"n_trials": 3}},
    })
    model = create_forecaster("XGBOOST", config)

    assert model.optimize is True
    assert model.optimization_params == {"n_trials": 3}
    assert model.hyperparameters == {"n_estimators": 50}
    assert "optimize" not in model.get_params()
