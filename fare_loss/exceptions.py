"""Error taxonomy for the fare loss pipeline.

Every error carries the pipeline ``stage`` it was raised in and, where one
applies, the ``model_id`` of the forecaster involved.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    stage: str = "pipeline"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        model_id: Optional[str] = None,
    ):
        self.stage = stage or self.stage
        self.model_id = model_id
        context = f"[stage={self.stage}"
        if model_id:
            context += f", model_id={model_id}"
        context += "]"
        super().__init__(f"{context} {message}")
        self.message = message


class InsufficientHistory(PipelineError):
    """Not enough TRAIN weeks to carve out the walk-forward assessment window."""

    stage = "split"


class FitFailure(PipelineError):
    """An ensemble member failed to fit. Recoverable: the model is excluded."""

    stage = "fit"


class NoUncertaintyEstimate(PipelineError):
    """The selected forecaster has no native prediction interval."""

    stage = "forecast"


class RefitFailure(PipelineError):
    """The selected forecaster failed to refit on TRAIN + VALIDATE."""

    stage = "refit"


class NoViableModel(PipelineError):
    """Every ensemble member failed, so nothing can be selected."""

    stage = "calibration"


class LeakageError(PipelineError):
    """A TEST row reached a fitting stage."""

    stage = "refit"


class ForecastIntegrityError(PipelineError, ValueError):
    """Forecast bounds do not bracket the point estimate."""

    stage = "forecast"
