"""
Tests for the forecaster registry: strategy parsing, ensemble fitting with
failure isolation, and the refit-then-forecast path.
"""

import numpy as np
import pandas as pd
import pytest

from fare_loss.data.splitters import TimeSeriesSplitter
from fare_loss.data.structs import DATE_COL
from fare_loss.exceptions import FitFailure, NoUncertaintyEstimate, RefitFailure
from fare_loss.forecasting import refit_and_forecast
from fare_loss.models import registry
from fare_loss.models.registry import ForecasterKind, create_forecaster, fit_all, fit_forecaster
from fare_loss.utils.config_manager import PipelineConfig

ALL_KINDS = [k.value for k in ForecasterKind]


@pytest.fixture
def stub_registry(monkeypatch, stub_forecasters):
    assignment = {
        ForecasterKind.XGBOOST: stub_forecasters["slow"],
        ForecasterKind.ARIMA_BOOST: stub_forecasters["broken"],
        ForecasterKind.ETS: stub_forecasters["offset"],
        ForecasterKind.PROPHET: stub_forecasters["broken"],
        ForecasterKind.PROPHET_BOOST: stub_forecasters["constant"],
    }
    for kind, cls in assignment.items():
        monkeypatch.setitem(registry.FORECASTER_CLASSES, kind, cls)


class TestForecasterKind:

    @pytest.mark.parametrize("value", ["ARIMA W/ XGBOOST ERRORS", "ARIMA_BOOST", "arima_boost"])
    def test_parse_accepts_id_and_name(self, value):
        assert ForecasterKind.parse(value) is ForecasterKind.ARIMA_BOOST

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown forecaster"):
            ForecasterKind.parse("LSTM")

    def test_create_forecaster_uses_config(self):
        config = PipelineConfig(seed=9, alpha=0.2, model_params={"ETS": {"seasonal_periods": 26}})
        model = create_forecaster("ETS", config)
        assert model.model_id == "ETS"
        assert model.seed == 9
        assert model.alpha == 0.2
        assert model.hyperparameters == {"seasonal_periods": 26}


class TestFitAll:

    def test_failures_are_isolated(self, stub_registry, short_history_df):
        fitted, failures = fit_all(ALL_KINDS, short_history_df, PipelineConfig(), run_id="r1")

        assert list(fitted) == ["XGBOOST", "ETS", "PROPHET W/ XGBOOST ERRORS"]
        assert list(failures) == ["ARIMA W/ XGBOOST ERRORS", "PROPHET"]
        assert all(m.is_fitted for m in fitted.values())
        context = failures["PROPHET"]
        assert context.run_id == "r1"
        assert context.stage == "fit"
        assert context.exception_type == "RuntimeError"

    def test_parallel_fit_matches_sequential(self, stub_registry, short_history_df):
        seq_fitted, seq_failures = fit_all(ALL_KINDS, short_history_df, PipelineConfig(n_jobs=1))
        par_fitted, par_failures = fit_all(ALL_KINDS, short_history_df, PipelineConfig(n_jobs=3))

        assert list(par_fitted) == list(seq_fitted)
        assert list(par_failures) == list(seq_failures)

        horizon = pd.date_range("2018-07-21", periods=4, freq="7D")
        for model_id in seq_fitted:
            pd.testing.assert_frame_equal(
                seq_fitted[model_id].predict(horizon), par_fitted[model_id].predict(horizon)
            )

    def test_duplicate_kinds_fitted_once(self, stub_registry, short_history_df):
        fitted, failures = fit_all(["ETS", "ETS", ForecasterKind.ETS], short_history_df)
        assert list(fitted) == ["ETS"]
        assert failures == {}

    def test_fit_forecaster_wraps_errors(self, stub_registry, short_history_df):
        with pytest.raises(FitFailure) as exc_info:
            fit_forecaster("PROPHET", short_history_df)
        assert exc_info.value.model_id == "PROPHET"
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestRefitAndForecast:

    @pytest.fixture
    def split(self, fare_history_df):
        splitter = TimeSeriesSplitter(validation_year=2019, test_year=2020)
        return splitter.calendar_split(fare_history_df)

    def test_forecasts_every_test_week(self, stub_registry, split):
        result = refit_and_forecast("ETS", split, PipelineConfig())

        assert result.model_id == "ETS"
        assert len(result) == len(split.test)
        assert result.dates.reset_index(drop=True).equals(split.test[DATE_COL].reset_index(drop=True))
        assert np.allclose(result.frame["forecast"], 900_000.0)
        assert result.metadata["fit_end"] == str(split.validate[DATE_COL].max().date())

    def test_refit_failure(self, stub_registry, split):
        with pytest.raises(RefitFailure) as exc_info:
            refit_and_forecast("PROPHET", split)
        assert exc_info.value.stage == "refit"

    def test_point_only_strategy(self, monkeypatch, stub_forecasters, split):
        monkeypatch.setitem(registry.FORECASTER_CLASSES, ForecasterKind.XGBOOST, stub_forecasters["point_only"])
        with pytest.raises(NoUncertaintyEstimate):
            refit_and_forecast("XGBOOST", split)
