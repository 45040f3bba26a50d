"""Forecasting strategies behind one fit / predict interface."""

from fare_loss.models.base_model import BaseForecaster, ModelArtifact
from fare_loss.models.registry import (
    FORECASTER_CLASSES,
    ForecasterKind,
    create_forecaster,
    fit_all,
    fit_forecaster,
)

__all__ = [
    "BaseForecaster",
    "ModelArtifact",
    "FORECASTER_CLASSES",
    "ForecasterKind",
    "create_forecaster",
    "fit_all",
    "fit_forecaster",
]
