"""Shared execution context and progress reporting."""

from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path
from typing import Any

from .models import Step
from .models import StepGroup
from .models import TargetEnvironment
from .status import Status


class ProgressKind(Enum):
    GROUP_STARTED = "group_started"
    GROUP_COMPLETED = "group_completed"
    GROUP_ABORTED = "group_aborted"
    STEP_STARTED = "step_started"
    STEP_SUCCEEDED = "step_succeeded"
    STEP_FAILED = "step_failed"
    TITLE_UPDATED = "title_updated"


@dataclass(frozen=True)
class ProgressEvent:
    """A single, discrete progress notification."""

    kind: ProgressKind
    title: str
    group: str | None = None
    step: str | None = None
    message: str = ""


ProgressSink = Callable[[ProgressEvent], None]

LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "fatal")


@dataclass
class ExecutionContext:
    """
    State shared by every step of one run.

    Created during compilation, populated by the engine variant, then read and
    selectively extended by action executors through ``shared``. Steps receive
    a reference, never a copy, so one context must never serve two concurrent
    runs.
    """

    recipe_type: str
    status: Status
    compile_options: dict[str, Any] = field(default_factory=dict)
    halt_on_error: bool = True
    target_environment: TargetEnvironment | None = None
    dev_hub_alias: str | None = None
    project_path: Path | None = None
    config_path: Path | None = None
    mdapi_source_path: Path | None = None
    sfdx_source_path: Path | None = None
    data_path: Path | None = None
    log_level: str = "error"
    progress_sink: ProgressSink | None = None
    is_executing: bool = False
    shared: dict[str, Any] = field(default_factory=dict)

    def emit(self, event: ProgressEvent) -> None:
        if self.progress_sink is not None:
            self.progress_sink(event)


class ProgressReporter:
    """Progress handle given to one step; can only post title updates."""

    def __init__(self, context: ExecutionContext, group: str, step: str):
        self._context = context
        self.group = group
        self.step = step

    def update_title(self, title: str, message: str = "") -> None:
        self._context.emit(
            ProgressEvent(
                kind=ProgressKind.TITLE_UPDATED,
                title=title,
                group=self.group,
                step=self.step,
                message=message,
            )
        )


@dataclass
class ActionContext:
    """What an action executor sees: the shared context plus step identity."""

    context: ExecutionContext
    group: StepGroup
    step: Step
    step_index: int
    progress: ProgressReporter

    @property
    def recipe_type(self) -> str:
        return self.context.recipe_type

    @property
    def project_path(self) -> Path:
        return self.context.project_path or Path.cwd()
