"""Property tests for the loss estimator and forecast integrity."""

import numpy as np
import pandas as pd
import pytest
from hypothesis import given, settings, strategies as st

from fare_loss.data.structs import DATE_COL, TARGET_COL
from fare_loss.exceptions import ForecastIntegrityError, NoUncertaintyEstimate
from fare_loss.forecasting import Forecast
from fare_loss.loss import LOSS_COLUMNS, LossEstimator

amounts = st.floats(min_value=0, max_value=2e6, allow_nan=False, allow_infinity=False)
widths = st.floats(min_value=0, max_value=1e5, allow_nan=False, allow_infinity=False)


@st.composite
def forecast_and_actual(draw, max_weeks=60):
    n = draw(st.integers(min_value=1, max_value=max_weeks))
    rows = draw(st.lists(st.tuples(amounts, amounts, widths, widths), min_size=n, max_size=n))
    actual, point, below, above = (np.array(col) for col in zip(*rows))
    dates = pd.date_range("2020-01-04", periods=n, freq="7D")

    forecast = Forecast(
        model_id="PROPHET",
        frame=pd.DataFrame({
            DATE_COL: dates,
            "forecast": point,
            "forecast_lo": point - below,
            "forecast_hi": point + above,
        }),
    )
    actual_df = pd.DataFrame({DATE_COL: dates, TARGET_COL: actual})
    price = draw(st.sampled_from([2.00, 2.75, 1.0]))
    return forecast, actual_df, price


class TestLossProperties:

    @given(data=forecast_and_actual())
    @settings(max_examples=100, deadline=None)
    def test_cumulative_loss_is_running_sum(self, data):
        forecast, actual, price = data
        loss = LossEstimator(fare_price=price).estimate(forecast, actual)

        assert loss.columns.tolist() == LOSS_COLUMNS
        assert loss["cumulative_loss"].iloc[0] == loss["fare_gap"].iloc[0]
        for i in range(1, len(loss)):
            for suffix in ("", "_lo", "_hi"):
                assert loss[f"cumulative_loss{suffix}"].iloc[i] == (
                    loss[f"cumulative_loss{suffix}"].iloc[i - 1] + loss[f"fare_gap{suffix}"].iloc[i]
                )

    @given(data=forecast_and_actual())
    @settings(max_examples=100, deadline=None)
    def test_band_propagates(self, data):
        forecast, actual, price = data
        loss = LossEstimator(fare_price=price).estimate(forecast, actual)

        assert (loss["fare_gap_lo"] <= loss["fare_gap"]).all()
        assert (loss["fare_gap"] <= loss["fare_gap_hi"]).all()
        assert (loss["cumulative_loss_lo"] <= loss["cumulative_loss"]).all()
        assert (loss["cumulative_loss"] <= loss["cumulative_loss_hi"]).all()

    @given(data=forecast_and_actual())
    @settings(max_examples=50, deadline=None)
    def test_row_order_does_not_matter(self, data):
        forecast, actual, price = data
        shuffled = actual.sample(frac=1.0, random_state=0)
        estimator = LossEstimator(fare_price=price)

        pd.testing.assert_frame_equal(
            estimator.estimate(forecast, actual), estimator.estimate(forecast, shuffled)
        )


class TestLossExamples:

    def _forecast(self, dates, point, lo, hi):
        n = len(dates)
        return Forecast("ETS", pd.DataFrame({
            DATE_COL: dates,
            "forecast": np.full(n, point),
            "forecast_lo": np.full(n, lo),
            "forecast_hi": np.full(n, hi),
        }))

    def test_half_ridership(self):
        dates = pd.date_range("2020-01-04", periods=10, freq="7D")
        forecast = self._forecast(dates, 1_000_000.0, 950_000.0, 1_050_000.0)
        actual = pd.DataFrame({DATE_COL: dates, TARGET_COL: 500_000.0})

        estimator = LossEstimator(fare_price=2.00)
        loss = estimator.estimate(forecast, actual)

        assert loss["fare_gap"].iloc[0] == 1_000_000
        assert loss["fare_gap_lo"].iloc[0] == 900_000
        assert loss["fare_gap_hi"].iloc[0] == 1_100_000
        assert loss["cumulative_loss"].tolist() == [1_000_000 * (i + 1) for i in range(10)]

        summary = estimator.headline(loss)
        assert summary.total == 10_000_000
        assert summary.lower == 9_000_000
        assert summary.upper == 11_000_000
        assert summary.weeks == 10
        assert summary.start == "2020-01-04"

    def test_negative_gaps_are_not_floored(self):
        dates = pd.date_range("2020-01-04", periods=3, freq="7D")
        forecast = self._forecast(dates, 100.0, 90.0, 110.0)
        actual = pd.DataFrame({DATE_COL: dates, TARGET_COL: [50.0, 150.0, 100.0]})

        loss = LossEstimator(fare_price=1.0).estimate(forecast, actual)
        assert loss["fare_gap"].tolist() == [50.0, -50.0, 0.0]
        assert loss["cumulative_loss"].tolist() == [50.0, 0.0, 0.0]

    def test_mismatched_weeks_raise(self):
        dates = pd.date_range("2020-01-04", periods=4, freq="7D")
        forecast = self._forecast(dates, 1.0, 0.0, 2.0)
        actual = pd.DataFrame({DATE_COL: dates[:3], TARGET_COL: 1.0})

        with pytest.raises(ValueError):
            LossEstimator().estimate(forecast, actual)

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            LossEstimator(fare_price=-1.0)

    def test_headline_of_empty_loss(self):
        with pytest.raises(ValueError):
            LossEstimator.headline(pd.DataFrame(columns=LOSS_COLUMNS))


class TestForecastIntegrity:

    def test_missing_bounds(self):
        frame = pd.DataFrame({
            DATE_COL: pd.date_range("2020-01-04", periods=2, freq="7D"),
            "forecast": [1.0, 2.0],
            "forecast_lo": [np.nan, np.nan],
            "forecast_hi": [np.nan, np.nan],
        })
        with pytest.raises(NoUncertaintyEstimate):
            Forecast("XGBOOST", frame)

    def test_inverted_bounds(self):
        frame = pd.DataFrame({
            DATE_COL: pd.date_range("2020-01-04", periods=2, freq="7D"),
            "forecast": [1.0, 2.0],
            "forecast_lo": [0.5, 3.0],
            "forecast_hi": [1.5, 4.0],
        })
        with pytest.raises(ForecastIntegrityError) as exc_info:
            Forecast("ETS", frame)
        assert isinstance(exc_info.value, ValueError)
        assert exc_info.value.model_id == "ETS"

    def test_rows_sorted_by_date(self):
        dates = pd.date_range("2020-01-04", periods=3, freq="7D")
        frame = pd.DataFrame({
            DATE_COL: dates[::-1],
            "forecast": [3.0, 2.0, 1.0],
            "forecast_lo": [2.0, 1.0, 0.0],
            "forecast_hi": [4.0, 3.0, 2.0],
        })
        forecast = Forecast("ETS", frame)
        assert forecast.dates.is_monotonic_increasing
        assert forecast.frame["forecast"].tolist() == [1.0, 2.0, 3.0]
