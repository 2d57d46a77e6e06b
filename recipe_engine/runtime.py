"""Sequential execution of compiled plans."""

import logging

from .compiler import ExecutionPlan
from .compiler import PlannedGroup
from .compiler import PlannedStep
from .context import ActionContext
from .context import ExecutionContext
from .context import ProgressEvent
from .context import ProgressKind
from .context import ProgressReporter
from .models import StepResult
from .status import GroupState
from .status import Status
from .status import StepLogEntry
from .status import StepState

logger = logging.getLogger(__name__)

DEFAULT_KILL_MESSAGE = "Unknown exception: an unknown error has occurred"


class StepExecutionError(Exception):
    """Raised when a step fails and the recipe halts on error.

    Carries the run's ``Status`` so callers can inspect the steps attempted
    up to and including the failure.
    """

    def __init__(self, message: str, group: str, step: str, action: str, recipe_type: str, status: Status):
        self.group = group
        self.step = step
        self.action = action
        self.recipe_type = recipe_type
        self.status = status
        super().__init__(
            f"Step '{step}' (action '{action}') in group '{group}' of '{recipe_type}' recipe failed: {message}"
        )


class FatalExecutionError(Exception):
    """Emergency stop. Always terminates the run, regardless of halt policy."""

    def __init__(self, message: str, status: Status | None = None):
        self.status = status
        super().__init__(message)


class ExecutionRuntime:
    """
    Walks an execution plan one step at a time.

    Groups and steps run strictly in order; each step is awaited to completion
    before the next one starts.
    """

    def __init__(self, recipe_type: str = ""):
        self.recipe_type = recipe_type
        self.group_states: dict[str, GroupState] = {}

    async def execute(self, plan: ExecutionPlan, context: ExecutionContext) -> Status:
        """
        Execute every group of the plan.

        Args:
            plan: Compiled plan
            context: Shared context for this run

        Returns:
            The finalized Status

        Raises:
            StepExecutionError: If a step fails and ``halt_on_error`` is set
            FatalExecutionError: If execution is killed
        """
        status = context.status
        if not status.running:
            status.start()

        self.group_states = {group.alias: GroupState.PENDING for group in plan}
        context.is_executing = True
        logger.info(f"Starting '{self.recipe_type}' recipe: {len(plan)} group(s), {plan.step_count} step(s)")

        try:
            for group_idx, planned_group in enumerate(plan.groups):
                logger.info(f"Group {group_idx + 1}/{len(plan)}: {planned_group.name}")
                await self._execute_group(planned_group, context)
        finally:
            context.is_executing = False

        status.finalize()
        logger.info(f"Recipe finished with outcome '{status.outcome.value}' in {status.elapsed:.2f}s")
        return status

    async def _execute_group(self, planned_group: PlannedGroup, context: ExecutionContext) -> None:
        self.group_states[planned_group.alias] = GroupState.RUNNING
        context.emit(ProgressEvent(kind=ProgressKind.GROUP_STARTED, title=planned_group.name, group=planned_group.name))

        for planned_step in planned_group.steps:
            entry, cause = await self._execute_step(planned_group, planned_step, context)
            if not entry.failed or not context.halt_on_error:
                continue

            self.group_states[planned_group.alias] = GroupState.ABORTED
            context.emit(
                ProgressEvent(
                    kind=ProgressKind.GROUP_ABORTED,
                    title=planned_group.name,
                    group=planned_group.name,
                    message=entry.error or "",
                )
            )
            context.status.fail(f"Halted on error in step '{planned_step.name}': {entry.error}")
            context.status.stop_timer()
            raise StepExecutionError(
                entry.error or "step failed",
                group=planned_group.name,
                step=planned_step.name,
                action=planned_step.action,
                recipe_type=self.recipe_type,
                status=context.status,
            ) from cause

        self.group_states[planned_group.alias] = GroupState.COMPLETED
        context.emit(
            ProgressEvent(kind=ProgressKind.GROUP_COMPLETED, title=planned_group.name, group=planned_group.name)
        )

    async def _execute_step(
        self, planned_group: PlannedGroup, planned_step: PlannedStep, context: ExecutionContext
    ) -> tuple[StepLogEntry, Exception | None]:
        step = planned_step.step
        entry = StepLogEntry(
            group=planned_group.name,
            step=step.name,
            action=step.action,
            state=StepState.RUNNING,
            on_success=step.on_success,
            on_error=step.on_error,
        )
        context.emit(
            ProgressEvent(kind=ProgressKind.STEP_STARTED, title=step.name, group=planned_group.name, step=step.name)
        )
        logger.info(f"  [{planned_step.index + 1}/{len(planned_group.group.steps)}] {step.name} ({step.action})")

        action_context = ActionContext(
            context=context,
            group=planned_group.group,
            step=step,
            step_index=planned_step.index,
            progress=ProgressReporter(context, planned_group.name, step.name),
        )

        try:
            executor = planned_step.resolve()
            result = await executor(action_context, step.options)
        except FatalExecutionError as e:
            entry.state = StepState.FAILED
            entry.error = str(e)
            context.status.record_step(entry)
            context.status.fail(str(e))
            context.status.stop_timer()
            self.group_states[planned_group.alias] = GroupState.ABORTED
            context.emit(
                ProgressEvent(
                    kind=ProgressKind.STEP_FAILED,
                    title=step.name,
                    group=planned_group.name,
                    step=step.name,
                    message=str(e),
                )
            )
            context.emit(
                ProgressEvent(
                    kind=ProgressKind.GROUP_ABORTED,
                    title=planned_group.name,
                    group=planned_group.name,
                    message=str(e),
                )
            )
            raise
        except Exception as e:
            logger.warning(f"Step '{step.name}' failed: {e}")
            entry.state = StepState.FAILED
            entry.error = str(e)
            context.status.record_step(entry)
            context.emit(
                ProgressEvent(
                    kind=ProgressKind.STEP_FAILED,
                    title=step.name,
                    group=planned_group.name,
                    step=step.name,
                    message=str(e),
                )
            )
            return entry, e

        if not isinstance(result, StepResult):
            result = StepResult.success(data=result)
        entry.result = result

        if result.failed:
            logger.warning(f"Step '{step.name}' reported an error: {result.message}")
            entry.state = StepState.FAILED
            entry.error = result.message or "action reported an error"
            kind = ProgressKind.STEP_FAILED
        else:
            entry.state = StepState.SUCCEEDED
            kind = ProgressKind.STEP_SUCCEEDED

        context.status.record_step(entry)
        context.emit(
            ProgressEvent(kind=kind, title=step.name, group=planned_group.name, step=step.name, message=result.message)
        )
        return entry, None

    def kill_execution(self, context: ExecutionContext, message: str = "") -> None:
        """
        Stop the run clock and raise a fatal error unconditionally.

        Raises:
            FatalExecutionError: Always
        """
        message = message or DEFAULT_KILL_MESSAGE
        context.status.stop_timer()
        context.status.fail(message)
        context.is_executing = False
        logger.error(f"Execution of '{self.recipe_type}' recipe killed: {message}")
        raise FatalExecutionError(message, status=context.status)
