"""Validation of the weekly fare series handed over by the ingestion step."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np
import pandas as pd
import logging

logger = logging.getLogger(__name__)

WEEK = pd.Timedelta(days=7)


@dataclass
class ValidationResult:
    """Result of series validation."""
    is_valid: bool
    errors: List[str]
    warnings: List[str] = field(default_factory=list)
    quality: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "quality": self.quality,
        }


class WeeklySeriesValidator:
    """Checks the invariants of a weekly ``{week_start, total_fares}`` frame."""

    def __init__(self, date_col: str = "week_start", value_col: str = "total_fares"):
        self.date_col = date_col
        self.value_col = value_col

    def validate(self, df: pd.DataFrame) -> ValidationResult:
        """
        Validate a weekly series frame.

        Errors: missing columns, non-datetime dates, nulls, negative values,
        duplicate or unsorted weeks, gaps larger than one week.
        Warnings: steps shorter than a week (irregular anchoring).

        Args:
            df: Frame to validate

        Returns:
            ValidationResult with errors, warnings and quality counts
        """
        errors: List[str] = []
        warnings: List[str] = []

        missing = [c for c in (self.date_col, self.value_col) if c not in df.columns]
        if missing:
            return ValidationResult(False, [f"Missing required columns: {missing}"])

        dates = df[self.date_col]
        values = df[self.value_col]

        if not pd.api.types.is_datetime64_any_dtype(dates):
            errors.append(f"Column '{self.date_col}' must be datetime64")
            return ValidationResult(False, errors)

        if dates.isna().any():
            errors.append(f"{int(dates.isna().sum())} null dates")
        if values.isna().any():
            errors.append(f"{int(values.isna().sum())} null fare counts")
        if (values < 0).any():
            errors.append(f"{int((values < 0).sum())} negative fare counts")
        if dates.duplicated().any():
            dupes = dates[dates.duplicated()].dt.date.astype(str).tolist()
            errors.append(f"Duplicate weeks: {dupes[:5]}")
        if not dates.is_monotonic_increasing:
            errors.append("Weeks are not sorted ascending")

        steps = dates.diff().dropna()
        gaps = steps[steps > WEEK]
        if len(gaps) > 0:
            first = dates.loc[gaps.index[0]].date()
            errors.append(f"{len(gaps)} gaps longer than one week (first ending {first})")
        short = steps[(steps > pd.Timedelta(0)) & (steps < WEEK)]
        if len(short) > 0:
            warnings.append(f"{len(short)} steps shorter than one week")

        quality = {
            "row_count": len(df),
            "start": str(dates.min()) if len(df) else None,
            "end": str(dates.max()) if len(df) else None,
            "value_range": {
                "min": float(np.nanmin(values)) if len(df) else np.nan,
                "max": float(np.nanmax(values)) if len(df) else np.nan,
            },
        }

        for w in warnings:
            logger.warning(w)

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            quality=quality,
        )
