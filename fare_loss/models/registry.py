"""Closed set of forecasting strategies and ensemble fitting."""

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Type, Union
import logging
import uuid

import pandas as pd

from fare_loss.exceptions import FitFailure
from fare_loss.models.arima_boost import ArimaBoostForecaster
from fare_loss.models.base_model import BaseForecaster
from fare_loss.models.ets_model import ETSForecaster
from fare_loss.models.prophet_model import ProphetBoostForecaster, ProphetForecaster
from fare_loss.models.xgboost_model import XGBoostForecaster
from fare_loss.utils.config_manager import PipelineConfig
from fare_loss.utils.error_handling import RecoveryContext, record_failure

logger = logging.getLogger(__name__)


class ForecasterKind(str, Enum):
    """Forecasting strategies; the value is the reported model id."""
    XGBOOST = "XGBOOST"
    ARIMA_BOOST = "ARIMA W/ XGBOOST ERRORS"
    ETS = "ETS"
    PROPHET = "PROPHET"
    PROPHET_BOOST = "PROPHET W/ XGBOOST ERRORS"

    @classmethod
    def parse(cls, value: Union[str, "ForecasterKind"]) -> "ForecasterKind":
        """Accept a kind, its model id or its member name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            try:
                return cls[str(value).upper()]
            except KeyError:
                raise ValueError(f"Unknown forecaster: {value!r}") from None


FORECASTER_CLASSES: Dict[ForecasterKind, Type[BaseForecaster]] = {
    ForecasterKind.XGBOOST: XGBoostForecaster,
    ForecasterKind.ARIMA_BOOST: ArimaBoostForecaster,
    ForecasterKind.ETS: ETSForecaster,
    ForecasterKind.PROPHET: ProphetForecaster,
    ForecasterKind.PROPHET_BOOST: ProphetBoostForecaster,
}


def create_forecaster(
    kind: Union[str, ForecasterKind],
    config: Optional[PipelineConfig] = None,
) -> BaseForecaster:
    """Instantiate an unfitted forecaster configured from ``config``."""
    config = config or PipelineConfig()
    kind = ForecasterKind.parse(kind)
    return FORECASTER_CLASSES[kind](
        model_id=kind.value,
        hyperparameters=config.params_for(kind.value),
        seed=config.seed,
        alpha=config.alpha,
    )


def fit_forecaster(
    kind: Union[str, ForecasterKind],
    train: pd.DataFrame,
    config: Optional[PipelineConfig] = None,
    stage: str = "fit",
) -> BaseForecaster:
    """
    Fit one strategy on ``train``.

    Raises:
        FitFailure: If the underlying library fails for any reason
    """
    kind = ForecasterKind.parse(kind)
    forecaster = create_forecaster(kind, config)
    try:
        return forecaster.fit(train)
    except Exception as e:
        raise FitFailure(
            f"{type(e).__name__}: {e}", stage=stage, model_id=kind.value
        ) from e


def fit_all(
    kinds: Iterable[Union[str, ForecasterKind]],
    train: pd.DataFrame,
    config: Optional[PipelineConfig] = None,
    run_id: Optional[str] = None,
) -> Tuple[Dict[str, BaseForecaster], Dict[str, RecoveryContext]]:
    """
    Fit every enabled strategy on the same training rows.

    A strategy that fails is logged, recorded and excluded; the rest of the
    ensemble is still fitted. Both returned dicts follow the order of
    ``kinds`` regardless of ``config.n_jobs``.

    Args:
        kinds: Strategies to fit, in tie-break order
        train: Training rows
        config: Pipeline configuration
        run_id: Identifier attached to failure records

    Returns:
        Tuple of (fitted forecasters by model id, failures by model id)
    """
    config = config or PipelineConfig()
    run_id = run_id or uuid.uuid4().hex[:12]
    ordered: List[ForecasterKind] = list(dict.fromkeys(ForecasterKind.parse(k) for k in kinds))

    def _attempt(kind: ForecasterKind):
        try:
            return fit_forecaster(kind, train, config)
        except FitFailure as e:
            return e

    if config.n_jobs > 1 and len(ordered) > 1:
        with ThreadPoolExecutor(max_workers=config.n_jobs) as pool:
            outcomes = list(pool.map(_attempt, ordered))
    else:
        outcomes = [_attempt(kind) for kind in ordered]

    fitted: Dict[str, BaseForecaster] = {}
    failures: Dict[str, RecoveryContext] = {}
    for kind, outcome in zip(ordered, outcomes):
        if isinstance(outcome, FitFailure):
            failures[kind.value] = record_failure(run_id, outcome)
        else:
            fitted[kind.value] = outcome
            logger.info(
                f"Fitted {kind.value} in {outcome.training_time:.2f}s",
                extra={"props": {"stage": "fit", "model_id": kind.value}},
            )

    logger.info(f"Ensemble fit complete: {len(fitted)} fitted, {len(failures)} failed")
    return fitted, failures
