"""Pytest configuration and shared fixtures."""

import time

import numpy as np
import pandas as pd
import pytest

from fare_loss.data.structs import DATE_COL, TARGET_COL, WeeklySeries
from fare_loss.models.base_model import BaseForecaster


def weekly_frame(start, end=None, periods=None, value=None, seed=42):
    """Weekly ``{week_start, total_fares}`` frame on a 7-day grid."""
    dates = pd.date_range(start=start, end=end, periods=periods, freq="7D")
    if value is None:
        rng = np.random.default_rng(seed)
        t = np.arange(len(dates))
        values = 5_000_000 + 2_000 * t + 300_000 * np.sin(2 * np.pi * t / 52) \
            + rng.normal(0, 50_000, len(dates))
    else:
        values = np.full(len(dates), float(value))
    return pd.DataFrame({DATE_COL: dates, TARGET_COL: values})


@pytest.fixture
def fare_history_df():
    """Five calendar years (2015-2019) of seasonal weekly fares plus 2020."""
    return weekly_frame("2015-01-03", "2020-12-26")


@pytest.fixture
def fare_history(fare_history_df):
    return WeeklySeries.from_frame(fare_history_df)


@pytest.fixture
def short_history_df():
    """80 weeks of seasonal weekly fares, enough for the library-backed models."""
    return weekly_frame("2017-01-07", periods=80)


@pytest.fixture
def three_year_history_df():
    """156 weeks (2015-2017), enough for seasonal ETS candidates."""
    return weekly_frame("2015-01-03", "2017-12-30")


@pytest.fixture
def covid_scenario():
    """
    Constant 1,000,000 weekly fares from 2016-01-02 through 2019-12-28,
    then 500,000 through every week of 2020.
    """
    before = weekly_frame("2016-01-02", "2019-12-28", value=1_000_000)
    during = weekly_frame("2020-01-04", "2020-12-26", value=500_000)
    return pd.concat([before, during], ignore_index=True)


class ConstantForecaster(BaseForecaster):
    """Predicts a fixed level with a symmetric band, regardless of the data."""

    supports_intervals = True
    level = 1_000_000.0
    half_width = 50_000.0

    @property
    def model_type(self) -> str:
        return "constant"

    def _fit(self, train):
        self.metadata["fit_end"] = train[DATE_COL].max()

    def _predict(self, dates):
        n = len(dates)
        return pd.DataFrame({
            "forecast": np.full(n, self.level),
            "forecast_lo": np.full(n, self.level - self.half_width),
            "forecast_hi": np.full(n, self.level + self.half_width),
        })


class OffsetForecaster(ConstantForecaster):
    level = 900_000.0


class PointOnlyForecaster(ConstantForecaster):
    supports_intervals = False

    def _predict(self, dates):
        return pd.DataFrame({"forecast": np.full(len(dates), self.level)})


class BrokenForecaster(ConstantForecaster):
    def _fit(self, train):
        raise RuntimeError("optimizer did not converge")


class SlowForecaster(ConstantForecaster):
    """Finishes last when fitted concurrently with other stubs."""

    def _fit(self, train):
        time.sleep(0.2)


class RefitOnlyBrokenForecaster(ConstantForecaster):
    """Fits on the fit-subset but fails once validation weeks are included."""

    def _fit(self, train):
        if train[DATE_COL].max().year >= 2019:
            raise RuntimeError("singular matrix on refit")


@pytest.fixture(scope="session")
def stub_forecasters():
    return {
        "constant": ConstantForecaster,
        "offset": OffsetForecaster,
        "point_only": PointOnlyForecaster,
        "broken": BrokenForecaster,
        "refit_broken": RefitOnlyBrokenForecaster,
        "slow": SlowForecaster,
    }
