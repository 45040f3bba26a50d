"""Weekly series container, validation and splitting."""

from .structs import DATE_COL, TARGET_COL, WeeklySeries
from .validators import ValidationResult, WeeklySeriesValidator
from .splitters import Split, SplitLabel, TimeSeriesSplitter

__all__ = [
    "DATE_COL",
    "TARGET_COL",
    "WeeklySeries",
    "ValidationResult",
    "WeeklySeriesValidator",
    "Split",
    "SplitLabel",
    "TimeSeriesSplitter",
]
