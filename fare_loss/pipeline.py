"""End-to-end composition of the fare loss stages.

split -> fit_all -> calibrate -> select_best -> refit -> forecast -> estimate_loss

Each stage takes and returns plain records; nothing is carried between runs.
Calendar features are built inside the tree-boosted forecasters from the
dates alone, so no feature frame travels between stages.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union
import logging
import uuid

import pandas as pd

from fare_loss.data.splitters import Split, TimeSeriesSplitter
from fare_loss.data.structs import WeeklySeries
from fare_loss.evaluation.calibration import CalibrationResult, ModelCalibrator
from fare_loss.exceptions import PipelineError
from fare_loss.forecasting import Forecast, refit_and_forecast
from fare_loss.loss import LossEstimator, LossSummary
from fare_loss.models.registry import ForecasterKind, fit_all
from fare_loss.utils.config_manager import ConfigManager, PipelineConfig
from fare_loss.utils.error_handling import RecoveryContext
from fare_loss.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything the presentation layer needs from one run."""
    run_id: str
    split: Split
    calibration: CalibrationResult
    selected_model_id: str
    forecast: Forecast
    loss: pd.DataFrame
    summary: LossSummary
    config: PipelineConfig
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def accuracy(self) -> pd.DataFrame:
        """AccuracyReport of the calibration stage."""
        return self.calibration.accuracy

    @property
    def failures(self) -> Dict[str, RecoveryContext]:
        return self.calibration.failures


def split_series(series: WeeklySeries, config: PipelineConfig) -> Split:
    splitter = TimeSeriesSplitter(
        validation_year=config.validation_year,
        test_year=config.test_year,
        assess_weeks=config.assess_weeks,
    )
    return splitter.calendar_split(series)


def calibrate_ensemble(
    split: Split,
    config: PipelineConfig,
    run_id: Optional[str] = None,
) -> CalibrationResult:
    """Fit every enabled strategy on the fit-subset and score it."""
    kinds = [ForecasterKind.parse(m) for m in config.enabled_models]
    fitted, failures = fit_all(kinds, split.fit_subset, config, run_id=run_id)
    return ModelCalibrator().calibrate(
        fitted,
        validate=split.validate,
        assessment=split.assessment,
        failures=failures,
        model_order=[k.value for k in kinds],
        run_id=run_id,
    )


def run_pipeline(
    series: Union[WeeklySeries, pd.DataFrame],
    config: Optional[PipelineConfig] = None,
    loss_estimator: Optional[LossEstimator] = None,
) -> PipelineResult:
    """
    Estimate the cumulative fare loss of the TEST period.

    Args:
        series: Weekly totals (WeeklySeries or a ``{week_start, total_fares}`` frame)
        config: Pipeline configuration (defaults if omitted)
        loss_estimator: Override of the loss stage (defaults to
            ``LossEstimator(config.fare_price)``)

    Returns:
        PipelineResult

    Raises:
        InsufficientHistory, NoViableModel, RefitFailure, NoUncertaintyEstimate:
            Fatal stage errors, each carrying ``stage`` and ``model_id``
    """
    config = config or PipelineConfig()
    run_id = uuid.uuid4().hex[:12]
    if not isinstance(series, WeeklySeries):
        series = WeeklySeries.from_frame(series)

    logger.info(
        f"Run {run_id}: {len(series)} weeks, models={config.enabled_models}",
        extra={"props": {"run_id": run_id, "config": config.to_dict()}},
    )

    try:
        split = split_series(series, config)
        if split.test.empty:
            raise PipelineError(
                f"No TEST weeks in or after {config.test_year}", stage="split"
            )

        calibration = calibrate_ensemble(split, config, run_id=run_id)
        selected = calibration.best_model_id()
        logger.info(
            f"Selected {selected} (validation rmse="
            f"{calibration.accuracy['rmse'].iloc[0]:,.0f})",
            extra={"props": {"stage": "selection", "model_id": selected}},
        )

        counterfactual = refit_and_forecast(selected, split, config)

        estimator = loss_estimator or LossEstimator(fare_price=config.fare_price)
        loss = estimator.estimate(counterfactual, split.test)
        summary = estimator.headline(loss)
    except PipelineError as e:
        logger.error(
            f"Run {run_id} aborted: {e}",
            extra={"props": {"run_id": run_id, "stage": e.stage, "model_id": e.model_id}},
        )
        raise

    return PipelineResult(
        run_id=run_id,
        split=split,
        calibration=calibration,
        selected_model_id=selected,
        forecast=counterfactual,
        loss=loss,
        summary=summary,
        config=config,
        metadata={"split": split.to_dict(), "series": dict(series.metadata)},
    )


def run_from_config(
    series: Union[WeeklySeries, pd.DataFrame],
    config_dir: Optional[str] = None,
    config_name: str = "pipeline_config.yaml",
    overrides: Optional[Dict[str, Any]] = None,
) -> PipelineResult:
    """Load and validate a config file, configure logging, then run the pipeline."""
    config = ConfigManager(config_dir).load_pipeline_config(
        config_name, overrides=overrides
    )
    setup_logging(config.log_level, config.log_dir)
    return run_pipeline(series, config)
