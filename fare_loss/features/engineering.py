"""Calendar signature features for weekly time series.

Builds the tabular regressors consumed by the tree-boosted forecasters from
the ``week_start`` column alone. The date column itself is left in place as a
join key; it is never a predictor.
"""

from typing import List, Optional, Dict, Any
import calendar
import logging
import re
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from fare_loss.data.structs import DATE_COL, TARGET_COL

logger = logging.getLogger(__name__)

# Components that are constant or duplicated at weekly grain. None of the
# emitted column names may match this.
EXCLUDED_PATTERN = re.compile(r"(iso)|(xts)|(hour)|(minute)|(second)|(am_?pm)|(wday)")

CALENDAR_FEATURES = [
    "index_num",
    "year",
    "half",
    "quarter",
    "month",
    "mday",
    "qday",
    "yday",
    "mweek",
    "week",
    "week2",
    "week3",
    "week4",
    "mday7",
]

MONTH_LEVELS = [calendar.month_name[m] for m in range(1, 13)]


@dataclass
class FeatureDefinitions:
    """Container for feature definitions and metadata."""
    calendar_features: List[str]
    one_hot_groups: Dict[str, List[str]]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def all_features(self) -> List[str]:
        one_hot = [c for cols in self.one_hot_groups.values() for c in cols]
        return self.calendar_features + one_hot

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "calendar_features": self.calendar_features,
            "one_hot_groups": self.one_hot_groups,
            "metadata": self.metadata,
        }


class FeatureEngineer:
    """Derives calendar signature features from a date column."""

    def __init__(self, date_col: str = DATE_COL, target_col: str = TARGET_COL):
        self.date_col = date_col
        self.target_col = target_col
        self._feature_definitions: Optional[FeatureDefinitions] = None

    def create_calendar_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Add the timeseries signature of ``date_col`` to a copy of ``df``.

        Numeric calendar positions plus an all-levels one-hot encoding of the
        month label (one indicator per month, no reference level dropped).
        Weekday components are not emitted: every ``week_start`` falls on the
        same weekday, so they would be constant.

        Args:
            df: Frame with a datetime ``date_col``

        Returns:
            Copy of ``df`` with feature columns appended
        """
        if self.date_col not in df.columns:
            raise ValueError(f"Date column '{self.date_col}' not found")

        result = df.copy()
        dates = pd.DatetimeIndex(pd.to_datetime(result[self.date_col]))

        mday = np.asarray(dates.day)
        month_start_wday = np.asarray(
            (dates - pd.to_timedelta(mday - 1, unit="D")).dayofweek
        )
        # Sunday-based weekday of the 1st, as in lubridate
        month_start_wday = (month_start_wday + 1) % 7
        quarter_start = dates.to_period("Q").start_time
        week = (np.asarray(dates.dayofyear) - 1) // 7 + 1

        result["index_num"] = (dates - pd.Timestamp("1970-01-01")) // pd.Timedelta(seconds=1)
        result["year"] = dates.year
        result["half"] = np.where(dates.month <= 6, 1, 2)
        result["quarter"] = dates.quarter
        result["month"] = dates.month
        result["mday"] = mday
        result["qday"] = np.asarray((dates - quarter_start).days) + 1
        result["yday"] = dates.dayofyear
        result["mweek"] = (mday - 1 + month_start_wday) // 7 + 1
        result["week"] = week
        result["week2"] = week % 2
        result["week3"] = week % 3
        result["week4"] = week % 4
        result["mday7"] = (mday - 1) // 7 + 1

        month_lbl = pd.Categorical(dates.month_name(), categories=MONTH_LEVELS)
        dummies = pd.get_dummies(month_lbl, prefix="month_lbl", dtype=int)
        dummies.index = result.index
        result = pd.concat([result, dummies], axis=1)

        self._feature_definitions = FeatureDefinitions(
            calendar_features=list(CALENDAR_FEATURES),
            one_hot_groups={"month_lbl": dummies.columns.tolist()},
            metadata={"n_rows": len(result)},
        )
        logger.debug(f"Created {len(self._feature_definitions.all_features)} calendar features")
        return result

    def feature_columns(self, df: pd.DataFrame) -> List[str]:
        """Predictor columns of a featurised frame (date and target excluded)."""
        return [c for c in df.columns if c not in (self.date_col, self.target_col)]

    def get_feature_definitions(self) -> Optional[FeatureDefinitions]:
        """Definitions from the last call to ``create_calendar_features``."""
        return self._feature_definitions
