"""Run status tracking: timing, terminal outcome and the step result log."""

import datetime
import time
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any

from .models import StepResult
from .models import StepResultStatus


class StepState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class GroupState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class StepLogEntry:
    """One attempted step, as recorded in the status log."""

    group: str
    step: str
    action: str
    state: StepState
    result: StepResult | None = None
    error: str | None = None
    on_success: str | None = None
    on_error: str | None = None

    @property
    def failed(self) -> bool:
        return self.state == StepState.FAILED

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "group": self.group,
            "step": self.step,
            "action": self.action,
            "state": self.state.value,
        }
        if self.result is not None:
            entry["status"] = self.result.status.value
            entry["message"] = self.result.message
            entry["data"] = self.result.data
        if self.error is not None:
            entry["error"] = self.error
        if self.on_success:
            entry["on_success"] = self.on_success
        if self.on_error:
            entry["on_error"] = self.on_error
        return entry


@dataclass
class Status:
    """
    Authoritative state of one recipe run.

    Created at compile time, mutated throughout execution and returned to the
    caller. Must not be shared across concurrent runs.
    """

    recipe_type: str = ""
    started_at: datetime.datetime | None = None
    stopped_at: datetime.datetime | None = None
    outcome: StepResultStatus | None = None
    message: str = ""
    steps: list[StepLogEntry] = field(default_factory=list)
    _start_clock: float | None = field(default=None, repr=False)
    _elapsed: float | None = field(default=None, repr=False)

    def start(self) -> None:
        """Start the run clock. Restarting a stopped status is an error."""
        if self.stopped_at is not None:
            raise RuntimeError("Cannot restart a status whose timer has been stopped")
        self.started_at = datetime.datetime.now(datetime.timezone.utc)
        self._start_clock = time.monotonic()

    def stop_timer(self) -> None:
        """Stop the run clock. Only the first call has an effect."""
        if self._elapsed is not None:
            return
        self.stopped_at = datetime.datetime.now(datetime.timezone.utc)
        if self._start_clock is None:
            self._elapsed = 0.0
        else:
            self._elapsed = time.monotonic() - self._start_clock

    @property
    def running(self) -> bool:
        return self._start_clock is not None and self._elapsed is None

    @property
    def elapsed(self) -> float:
        """Elapsed seconds; live while the clock is running."""
        if self._elapsed is not None:
            return self._elapsed
        if self._start_clock is None:
            return 0.0
        return time.monotonic() - self._start_clock

    def record_step(self, entry: StepLogEntry) -> None:
        self.steps.append(entry)

    @property
    def failed_steps(self) -> list[StepLogEntry]:
        return [entry for entry in self.steps if entry.failed]

    def fail(self, message: str) -> None:
        """Force the terminal outcome to error."""
        self.outcome = StepResultStatus.ERROR
        self.message = message

    def finalize(self) -> "Status":
        """Stop the clock and settle the terminal outcome."""
        self.stop_timer()
        if self.outcome is None:
            if self.failed_steps:
                self.outcome = StepResultStatus.ERROR
                self.message = f"{len(self.failed_steps)} step(s) failed"
            elif any(e.result is not None and e.result.status == StepResultStatus.WARNING for e in self.steps):
                self.outcome = StepResultStatus.WARNING
                self.message = "Completed with warnings"
            else:
                self.outcome = StepResultStatus.SUCCESS
                self.message = "Completed successfully"
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipe_type": self.recipe_type,
            "outcome": self.outcome.value if self.outcome else None,
            "message": self.message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "stopped_at": self.stopped_at.isoformat() if self.stopped_at else None,
            "elapsed_seconds": round(self.elapsed, 3),
            "steps": [entry.to_dict() for entry in self.steps],
        }
