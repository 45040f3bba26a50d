"""Calendar signature features for the tree-boosted forecasters."""

from fare_loss.features.engineering import (
    CALENDAR_FEATURES,
    EXCLUDED_PATTERN,
    FeatureDefinitions,
    FeatureEngineer,
)

__all__ = [
    "CALENDAR_FEATURES",
    "EXCLUDED_PATTERN",
    "FeatureDefinitions",
    "FeatureEngineer",
]
