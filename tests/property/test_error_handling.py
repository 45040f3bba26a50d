"""Property tests for the error taxonomy and failure recording."""

import logging

import pytest
from hypothesis import given, settings, strategies as st

from fare_loss.exceptions import (
    FitFailure,
    ForecastIntegrityError,
    InsufficientHistory,
    LeakageError,
    NoUncertaintyEstimate,
    NoViableModel,
    PipelineError,
    RefitFailure,
)
from fare_loss.utils.error_handling import RecoveryContext, record_failure

ALL_ERRORS = [
    InsufficientHistory,
    FitFailure,
    NoUncertaintyEstimate,
    RefitFailure,
    NoViableModel,
    LeakageError,
    ForecastIntegrityError,
]

model_ids = st.one_of(st.none(), st.sampled_from(["XGBOOST", "ETS", "PROPHET"]))


def _raise_wrapped(model_id):
    """Raise a FitFailure chained to a library error from a nested frame."""
    def optimizer(order):
        coefficients = [0.5] * order
        raise ArithmeticError(f"non-stationary with {len(coefficients)} terms")

    try:
        optimizer(3)
    except ArithmeticError as e:
        raise FitFailure(f"{type(e).__name__}: {e}", model_id=model_id) from e


@given(error_cls=st.sampled_from(ALL_ERRORS), model_id=model_ids, message=st.text(max_size=40))
@settings(max_examples=100)
def test_errors_carry_stage_and_model(error_cls, model_id, message):
    error = error_cls(message, model_id=model_id)

    assert isinstance(error, PipelineError)
    assert error.stage == error_cls.stage
    assert error.model_id == model_id
    assert error.message == message
    assert f"stage={error.stage}" in str(error)
    if model_id:
        assert f"model_id={model_id}" in str(error)


@given(model_id=model_ids)
@settings(max_examples=25)
def test_stage_override(model_id):
    error = FitFailure("boom", stage="calibration", model_id=model_id)
    assert error.stage == "calibration"
    assert FitFailure.stage == "fit"


def test_recovery_context_uses_root_cause():
    with pytest.raises(FitFailure) as exc_info:
        _raise_wrapped("ETS")

    ctx = RecoveryContext.from_exception("run-1", exc_info.value)

    assert ctx.run_id == "run-1"
    assert ctx.stage == "fit"
    assert ctx.model_id == "ETS"
    assert ctx.exception_type == "ArithmeticError"
    assert "non-stationary" in ctx.exception_message
    assert "optimizer" in ctx.stack_trace
    assert ctx.local_variables["order"] == "3"
    assert ctx.to_dict()["exception_type"] == "ArithmeticError"


def test_recovery_context_explicit_fields_win():
    ctx = RecoveryContext.from_exception(
        "run-2", ValueError("plain"), stage="refit", model_id="PROPHET"
    )
    assert ctx.stage == "refit"
    assert ctx.model_id == "PROPHET"
    assert ctx.exception_type == "ValueError"
    assert ctx.local_variables == {}


def test_record_failure_logs_warning(caplog):
    with pytest.raises(FitFailure) as exc_info:
        _raise_wrapped("XGBOOST")

    with caplog.at_level(logging.WARNING, logger="fare_loss.utils.error_handling"):
        ctx = record_failure("run-3", exc_info.value)

    assert ctx.model_id == "XGBOOST"
    records = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(records) == 1
    assert "XGBOOST" in records[0].getMessage()
    assert records[0].props["status"] == "failed"
    assert records[0].props["stage"] == "fit"
