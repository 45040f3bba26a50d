"""Monetary fare loss from a counterfactual forecast and actual ridership."""

from dataclasses import dataclass
from typing import Any, Dict, Union
import logging

import pandas as pd

from fare_loss.data.structs import DATE_COL, TARGET_COL, WeeklySeries
from fare_loss.forecasting import Forecast

logger = logging.getLogger(__name__)

LOSS_COLUMNS = [
    DATE_COL,
    "actual",
    "forecast",
    "forecast_lo",
    "forecast_hi",
    "fare_gap",
    "fare_gap_lo",
    "fare_gap_hi",
    "cumulative_loss",
    "cumulative_loss_lo",
    "cumulative_loss_hi",
]


@dataclass
class LossSummary:
    """Headline figures: final cumulative loss and its band."""
    total: float
    lower: float
    upper: float
    start: str
    end: str
    weeks: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "lower": self.lower,
            "upper": self.upper,
            "start": self.start,
            "end": self.end,
            "weeks": self.weeks,
        }


class LossEstimator:
    """
    Converts the counterfactual-vs-actual gap into cumulative dollars.

    ``fare_gap = (forecast - actual) * fare_price``: revenue the no-COVID
    trajectory would have earned minus what was actually earned. The lower
    and upper gaps use the forecast's lower and upper bounds. Negative
    weekly gaps are kept as is, not floored.
    """

    def __init__(self, fare_price: float = 2.00):
        if fare_price < 0:
            raise ValueError("fare_price cannot be negative")
        self.fare_price = fare_price

    def estimate(
        self,
        forecast: Union[Forecast, pd.DataFrame],
        actual: Union[WeeklySeries, pd.DataFrame],
    ) -> pd.DataFrame:
        """
        Per-week fare gaps and their running sums from the first TEST week.

        Args:
            forecast: Counterfactual forecast over the TEST weeks
            actual: True weekly totals restricted to the TEST weeks

        Returns:
            Frame with LOSS_COLUMNS, ordered by date

        Raises:
            ValueError: If the forecast and actual weeks differ
        """
        fc = forecast.frame if isinstance(forecast, Forecast) else forecast
        act = actual.frame if isinstance(actual, WeeklySeries) else actual

        fc = fc.sort_values(DATE_COL, kind="mergesort").reset_index(drop=True)
        act = act[[DATE_COL, TARGET_COL]].sort_values(DATE_COL, kind="mergesort")
        act = act.rename(columns={TARGET_COL: "actual"}).reset_index(drop=True)

        same_weeks = len(fc) == len(act) and bool(
            (pd.to_datetime(fc[DATE_COL]).to_numpy() == pd.to_datetime(act[DATE_COL]).to_numpy()).all()
        )
        if not same_weeks:
            missing = set(act[DATE_COL]).symmetric_difference(set(fc[DATE_COL]))
            raise ValueError(
                f"Forecast and actual weeks differ ({len(fc)} vs {len(act)} rows, "
                f"{len(missing)} unmatched)"
            )

        # Rows are aligned by position once both sides are date-sorted
        result = act.copy()
        for col in ("forecast", "forecast_lo", "forecast_hi"):
            result[col] = fc[col].to_numpy(dtype=float)

        result["fare_gap"] = (result["forecast"] - result["actual"]) * self.fare_price
        result["fare_gap_lo"] = (result["forecast_lo"] - result["actual"]) * self.fare_price
        result["fare_gap_hi"] = (result["forecast_hi"] - result["actual"]) * self.fare_price

        result["cumulative_loss"] = result["fare_gap"].cumsum()
        result["cumulative_loss_lo"] = result["fare_gap_lo"].cumsum()
        result["cumulative_loss_hi"] = result["fare_gap_hi"].cumsum()

        if not result.empty:
            logger.info(
                f"Cumulative fare loss through {result[DATE_COL].iloc[-1].date()}: "
                f"${result['cumulative_loss'].iloc[-1]:,.0f} "
                f"[${result['cumulative_loss_lo'].iloc[-1]:,.0f}, "
                f"${result['cumulative_loss_hi'].iloc[-1]:,.0f}]",
                extra={"props": {"stage": "loss", "weeks": len(result)}},
            )
        return result[LOSS_COLUMNS]

    @staticmethod
    def headline(loss: pd.DataFrame) -> LossSummary:
        """Final cumulative loss and band from an ``estimate`` result."""
        if loss.empty:
            raise ValueError("No TEST weeks to summarise")
        last = loss.iloc[-1]
        return LossSummary(
            total=float(last["cumulative_loss"]),
            lower=float(last["cumulative_loss_lo"]),
            upper=float(last["cumulative_loss_hi"]),
            start=str(loss[DATE_COL].iloc[0].date()),
            end=str(last[DATE_COL].date()),
            weeks=len(loss),
        )
