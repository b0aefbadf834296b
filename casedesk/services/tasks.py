"""
Best-effort side effects.

Contact sync and webhook audit logging must never fail the request that
triggered them. They run through BestEffortRunner, which always returns a
TaskOutcome instead of raising, and logs every failure.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from casedesk.utils.logging_config import get_logger


@dataclass
class TaskOutcome:
    """Result of a best-effort task"""
    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class BestEffortRunner:
    """Runs side effects inline, converting any exception into a failed TaskOutcome."""

    def __init__(self):
        self.logger = get_logger("tasks")

    def run(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> TaskOutcome:
        try:
            value = fn(*args, **kwargs)
        except Exception as e:
            self.logger.warning(
                "Best-effort task failed",
                extra={"event": "task_failed", "task": name, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return TaskOutcome(name=name, ok=False, error=str(e), error_type=type(e).__name__)

        self.logger.debug("Best-effort task completed", extra={"event": "task_completed", "task": name})
        return TaskOutcome(name=name, ok=True, value=value)
