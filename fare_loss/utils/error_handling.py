"""Error handling utilities."""

import logging
import time
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fare_loss.exceptions import PipelineError

logger = logging.getLogger(__name__)


@dataclass
class RecoveryContext:
    """Captures context of a recoverable failure for diagnostic output."""
    run_id: str
    stage: str = ""
    model_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    exception_type: str = ""
    exception_message: str = ""
    stack_trace: str = ""
    local_variables: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls,
        run_id: str,
        exc: Exception,
        stage: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> "RecoveryContext":
        """
        Create context from an exception.
        Captures locals from the frame where the exception occurred.
        """
        if isinstance(exc, PipelineError):
            stage = stage or exc.stage
            model_id = model_id or exc.model_id

        # The root cause is more useful than the wrapping PipelineError
        root = exc.__cause__ if exc.__cause__ is not None else exc
        stack_trace = "".join(traceback.format_tb(root.__traceback__))

        locals_repr = {}
        if root.__traceback__:
            ptr = root.__traceback__
            while ptr.tb_next:
                ptr = ptr.tb_next
            frame = ptr.tb_frame

            for k, v in frame.f_locals.items():
                try:
                    val_str = str(v)
                    if len(val_str) > 500:
                        val_str = val_str[:500] + "..."
                    locals_repr[k] = val_str
                except Exception:
                    locals_repr[k] = "<unprintable>"

        return cls(
            run_id=run_id,
            stage=stage or "",
            model_id=model_id,
            exception_type=type(root).__name__,
            exception_message=str(root),
            stack_trace=stack_trace,
            local_variables=locals_repr,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": self.run_id,
            "stage": self.stage,
            "model_id": self.model_id,
            "timestamp": self.timestamp,
            "exception_type": self.exception_type,
            "exception_message": self.exception_message,
            "stack_trace": self.stack_trace,
            "local_variables": self.local_variables,
        }


def record_failure(run_id: str, exc: PipelineError) -> RecoveryContext:
    """Log a recoverable pipeline error and return its recovery context."""
    context = RecoveryContext.from_exception(run_id, exc)
    logger.warning(
        f"Excluding {context.model_id} after {context.stage} failure: "
        f"{context.exception_type}: {context.exception_message}",
        extra={"props": {
            "stage": context.stage,
            "model_id": context.model_id,
            "status": "failed",
        }},
    )
    return context
