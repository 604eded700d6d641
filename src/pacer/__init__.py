from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from pacer.errors import PacerConfigError, PacerError, PacerScriptError
from pacer.limiter import (
    Debounce,
    Decision,
    Drop,
    Emission,
    RateLimiter,
    Reopen,
    ScheduleRequest,
    SettleCheck,
    State,
    Step,
    Throttle,
    TimerEvent,
    ToEmitAndClose,
    ToEnqueue,
    apply_decision,
    classify,
    create_debounce,
    create_throttle,
    handle_timer_fired,
    is_open,
    pending_values,
    submit,
    update,
)
from pacer.runtime import Pacer
from pacer.scheduler import AsyncioScheduler, ManualScheduler, Scheduler


def _package_version() -> str:
    try:
        return version("pacer")
    except PackageNotFoundError:
        # Running from a source checkout, or otherwise not installed.
        return "0.0.0"


__version__ = _package_version()

__all__ = [
    "AsyncioScheduler",
    "Debounce",
    "Decision",
    "Drop",
    "Emission",
    "ManualScheduler",
    "Pacer",
    "PacerConfigError",
    "PacerError",
    "PacerScriptError",
    "RateLimiter",
    "Reopen",
    "ScheduleRequest",
    "Scheduler",
    "SettleCheck",
    "State",
    "Step",
    "Throttle",
    "TimerEvent",
    "ToEmitAndClose",
    "ToEnqueue",
    "__version__",
    "apply_decision",
    "classify",
    "create_debounce",
    "create_throttle",
    "handle_timer_fired",
    "is_open",
    "pending_values",
    "submit",
    "update",
]
