"""Core data structures for the fare loss pipeline."""

from dataclasses import dataclass, field
from typing import Any, Dict

import pandas as pd

from fare_loss.data.validators import WeeklySeriesValidator

DATE_COL = "week_start"
TARGET_COL = "total_fares"


@dataclass(frozen=True)
class WeeklySeries:
    """
    Validated weekly fare-swipe totals.

    Attributes:
        frame: DataFrame with ``week_start`` (datetime64) and ``total_fares``
            columns, sorted by ``week_start`` with a RangeIndex
        metadata: Dictionary of metadata (source, row counts, fills)
    """
    frame: pd.DataFrame
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate consistency after initialization."""
        result = WeeklySeriesValidator().validate(self.frame)
        if not result.is_valid:
            raise ValueError(f"Invalid weekly series: {'; '.join(result.errors)}")

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        date_col: str = DATE_COL,
        value_col: str = TARGET_COL,
        fill_gaps: bool = False,
    ) -> "WeeklySeries":
        """
        Build a WeeklySeries from a ``{week_start, total_fares}`` table.

        Args:
            df: Input table, sorted or sortable by date
            date_col: Name of the date column in ``df``
            value_col: Name of the fare count column in ``df``
            fill_gaps: Reindex onto a regular 7-day grid and linearly
                interpolate missing weeks instead of rejecting the input

        Returns:
            WeeklySeries with a private copy of the data

        Raises:
            ValueError: If ``fill_gaps`` is set and a date is off the 7-day
                grid anchored at the first week
        """
        missing = {date_col, value_col} - set(df.columns)
        if missing:
            raise ValueError(f"Missing required columns: {sorted(missing)}")

        frame = pd.DataFrame({
            DATE_COL: pd.to_datetime(df[date_col]).dt.normalize(),
            TARGET_COL: pd.to_numeric(df[value_col]).astype(float),
        })
        frame = frame.sort_values(DATE_COL, kind="mergesort").reset_index(drop=True)

        metadata: Dict[str, Any] = {"rows_in": len(df), "filled_weeks": 0}
        if fill_gaps and len(frame) > 1 and not frame[DATE_COL].duplicated().any():
            offsets = (frame[DATE_COL] - frame[DATE_COL].iloc[0]).dt.days
            off_grid = frame.loc[offsets % 7 != 0, DATE_COL]
            if not off_grid.empty:
                raise ValueError(
                    f"{len(off_grid)} dates are off the 7-day grid starting "
                    f"{frame[DATE_COL].iloc[0].date()} (first {off_grid.iloc[0].date()}); "
                    "gap filling would drop them"
                )
            grid = pd.date_range(frame[DATE_COL].iloc[0], frame[DATE_COL].iloc[-1], freq="7D")
            reindexed = frame.set_index(DATE_COL).reindex(grid)
            metadata["filled_weeks"] = int(reindexed[TARGET_COL].isna().sum())
            reindexed[TARGET_COL] = reindexed[TARGET_COL].interpolate(method="linear")
            frame = reindexed.rename_axis(DATE_COL).reset_index()

        return cls(frame=frame, metadata=metadata)

    @classmethod
    def from_long_format(
        cls,
        df: pd.DataFrame,
        date_col: str = "date",
        count_col: str = "swipes",
        fill_gaps: bool = False,
    ) -> "WeeklySeries":
        """
        Aggregate per-station / per-fare-type rows into weekly totals.

        Args:
            df: Long table with one row per (date, station, fare type)
            date_col: Column holding the week date
            count_col: Column holding swipe counts
            fill_gaps: See ``from_frame``
        """
        weekly = (
            df.groupby(pd.to_datetime(df[date_col]).dt.normalize())[count_col]
            .sum()
            .rename(TARGET_COL)
            .rename_axis(DATE_COL)
            .reset_index()
        )
        series = cls.from_frame(weekly, fill_gaps=fill_gaps)
        series.metadata["rows_in"] = len(df)
        return series

    @property
    def dates(self) -> pd.Series:
        return self.frame[DATE_COL]

    @property
    def values(self) -> pd.Series:
        return self.frame[TARGET_COL]

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying frame."""
        return self.frame.copy()

    def __len__(self) -> int:
        return len(self.frame)
