"""Calendar and walk-forward splitting of the weekly fare series."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple, Union
import logging

import pandas as pd

from fare_loss.data.structs import DATE_COL, WeeklySeries
from fare_loss.exceptions import InsufficientHistory

logger = logging.getLogger(__name__)


class SplitLabel(Enum):
    """Calendar partition a week belongs to."""
    TRAIN = "train"
    VALIDATE = "validate"
    TEST = "test"


@dataclass
class Split:
    """
    Time-contiguous partitions of a weekly series.

    ``fit_subset`` and ``assessment`` partition ``train``: the assessment
    window is the last ``assess_weeks`` TRAIN weeks and the fit-subset is
    everything before it, starting at the first week of the series.
    """
    train: pd.DataFrame
    validate: pd.DataFrame
    test: pd.DataFrame
    fit_subset: pd.DataFrame
    assessment: pd.DataFrame
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def train_validate(self) -> pd.DataFrame:
        """TRAIN and VALIDATE rows in date order, the refit dataset."""
        return pd.concat([self.train, self.validate], ignore_index=True)

    @property
    def test_cutoff(self) -> pd.Timestamp:
        """First instant of the TEST period."""
        return pd.Timestamp(year=self.metadata["test_year"], month=1, day=1)

    def to_dict(self) -> Dict[str, Any]:
        """Summary of partition sizes and bounds for logging."""
        return dict(self.metadata)


class TimeSeriesSplitter:
    """Calendar-rule TRAIN / VALIDATE / TEST splitting with a walk-forward holdout."""

    def __init__(
        self,
        validation_year: int = 2019,
        test_year: int = 2020,
        assess_weeks: int = 52,
    ):
        """
        Args:
            validation_year: Weeks in this year are VALIDATE
            test_year: Weeks in this year or later are TEST
            assess_weeks: Length of the walk-forward assessment window
        """
        if test_year <= validation_year:
            raise ValueError("test_year must be after validation_year")
        self.validation_year = validation_year
        self.test_year = test_year
        self.assess_weeks = assess_weeks

    def label(self, df: Union[pd.DataFrame, WeeklySeries]) -> pd.Series:
        """
        Assign a SplitLabel to every row by calendar year of ``week_start``.

        Weeks between the validation year and the test year (only possible
        when they are not consecutive) are labelled VALIDATE.
        """
        frame = df.frame if isinstance(df, WeeklySeries) else df
        years = frame[DATE_COL].dt.year

        labels = pd.Series(SplitLabel.VALIDATE, index=frame.index, name="split")
        labels[years < self.validation_year] = SplitLabel.TRAIN
        labels[years >= self.test_year] = SplitLabel.TEST
        return labels

    def walk_forward_split(self, train: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Split TRAIN into a cumulative fit-subset and the trailing assessment window.

        Args:
            train: TRAIN rows sorted by date

        Returns:
            Tuple of (fit_subset, assessment)

        Raises:
            InsufficientHistory: If TRAIN cannot hold a non-empty fit-subset
                plus ``assess_weeks`` weeks
        """
        if len(train) <= self.assess_weeks:
            raise InsufficientHistory(
                f"TRAIN has {len(train)} weeks; need more than {self.assess_weeks} "
                f"for the walk-forward assessment window"
            )

        cut = len(train) - self.assess_weeks
        fit_subset = train.iloc[:cut].reset_index(drop=True)
        assessment = train.iloc[cut:].reset_index(drop=True)
        return fit_subset, assessment

    def calendar_split(self, series: Union[pd.DataFrame, WeeklySeries]) -> Split:
        """
        Partition a weekly series into TRAIN / VALIDATE / TEST plus the
        walk-forward (fit-subset, assessment) pair.

        Args:
            series: WeeklySeries or a frame with a ``week_start`` column

        Returns:
            Split

        Raises:
            InsufficientHistory: If TRAIN is too short or VALIDATE is empty
        """
        frame = series.to_frame() if isinstance(series, WeeklySeries) else series.copy()
        frame = frame.sort_values(DATE_COL, kind="mergesort").reset_index(drop=True)
        labels = self.label(frame)

        train = frame[labels == SplitLabel.TRAIN].reset_index(drop=True)
        validate = frame[labels == SplitLabel.VALIDATE].reset_index(drop=True)
        test = frame[labels == SplitLabel.TEST].reset_index(drop=True)

        if validate.empty:
            raise InsufficientHistory(
                f"No VALIDATE weeks in {self.validation_year}"
            )

        fit_subset, assessment = self.walk_forward_split(train)

        metadata = {
            "validation_year": self.validation_year,
            "test_year": self.test_year,
            "assess_weeks": self.assess_weeks,
            "total_samples": len(frame),
            "train_samples": len(train),
            "fit_samples": len(fit_subset),
            "assessment_samples": len(assessment),
            "val_samples": len(validate),
            "test_samples": len(test),
        }
        for name, part in (("train", train), ("fit", fit_subset),
                           ("assessment", assessment), ("val", validate), ("test", test)):
            if not part.empty:
                metadata[f"{name}_start"] = str(part[DATE_COL].iloc[0].date())
                metadata[f"{name}_end"] = str(part[DATE_COL].iloc[-1].date())

        split = Split(
            train=train,
            validate=validate,
            test=test,
            fit_subset=fit_subset,
            assessment=assessment,
            metadata=metadata,
        )

        is_valid, issues = self.validate_no_leakage(split)
        if not is_valid:
            # Only reachable if the input was not strictly increasing
            raise ValueError("; ".join(issues))

        logger.info(
            f"Split {len(frame)} weeks: train={len(train)} "
            f"(fit={len(fit_subset)}, assess={len(assessment)}), "
            f"validate={len(validate)}, test={len(test)}",
            extra={"props": {"stage": "split", **metadata}},
        )
        return split

    def validate_no_leakage(self, split: Split) -> Tuple[bool, List[str]]:
        """
        Validate that partitions are strictly chronologically ordered.

        Args:
            split: Split to validate

        Returns:
            Tuple of (is_valid, list of issues)
        """
        issues: List[str] = []
        ordered = [
            ("fit-subset", split.fit_subset),
            ("assessment", split.assessment),
            ("validation", split.validate),
            ("test", split.test),
        ]

        for (name_a, a), (name_b, b) in zip(ordered, ordered[1:]):
            if a.empty or b.empty:
                continue
            if a[DATE_COL].max() >= b[DATE_COL].min():
                issues.append(
                    f"{name_a.capitalize()} data ({a[DATE_COL].max()}) overlaps with "
                    f"{name_b} data ({b[DATE_COL].min()})"
                )

        if not split.train.empty and not split.test.empty:
            if split.train[DATE_COL].max() >= split.test[DATE_COL].min():
                issues.append(
                    f"Training data ({split.train[DATE_COL].max()}) overlaps with "
                    f"test data ({split.test[DATE_COL].min()})"
                )

        return len(issues) == 0, issues
