"""Compile validated step groups into a skip-filtered, two-level execution plan."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

from .models import Step
from .models import StepGroup
from .registry import ActionExecutor
from .registry import ActionRegistry

logger = logging.getLogger(__name__)


class NoStepsError(ValueError):
    """Raised when a group reaches step compilation with no work to do."""

    def __init__(self, group_name: str):
        self.group_name = group_name
        super().__init__(f"No steps: step group '{group_name}' contains no steps to compile")


@dataclass
class PlannedStep:
    """A step bound to the registry it will be dispatched through.

    The executor is looked up at dispatch time, so an unregistered action
    fails when its step runs, not when the plan is built.
    """

    step: Step
    index: int
    registry: ActionRegistry

    @property
    def name(self) -> str:
        return self.step.name

    @property
    def action(self) -> str:
        return self.step.action

    def resolve(self) -> ActionExecutor:
        return self.registry.resolve(self.step.action)


@dataclass
class PlannedGroup:
    group: StepGroup
    steps: list[PlannedStep] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.group.name

    @property
    def alias(self) -> str:
        return self.group.alias


@dataclass
class ExecutionPlan:
    """Ordered groups, each with ordered steps, ready for sequential execution."""

    groups: list[PlannedGroup] = field(default_factory=list)

    @property
    def step_count(self) -> int:
        return sum(len(group.steps) for group in self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self):
        return iter(self.groups)


def group_has_active_steps(group: StepGroup, skip_actions: set[str]) -> bool:
    """True if at least one step's action is not on the skip list."""
    return any(step.action not in skip_actions for step in group.steps)


def compile_group(group: StepGroup, skip_actions: set[str], registry: ActionRegistry) -> PlannedGroup:
    """
    Compile the steps of one group, dropping skipped actions.

    Raises:
        NoStepsError: If the group declares no steps, or none survive filtering
    """
    if not group.steps:
        raise NoStepsError(group.name)

    planned = PlannedGroup(group=group)
    for idx, step in enumerate(group.steps):
        if step.action in skip_actions:
            logger.debug(f"Skipping step '{step.name}' in group '{group.name}': action '{step.action}' is skipped")
            continue
        planned.steps.append(PlannedStep(step=step, index=idx, registry=registry))

    if not planned.steps:
        raise NoStepsError(group.name)

    return planned


def compile_plan(
    step_groups: list[StepGroup],
    skip_groups: Iterable[str],
    skip_actions: Iterable[str],
    registry: ActionRegistry,
) -> ExecutionPlan:
    """
    Build the execution plan.

    Groups whose alias is in ``skip_groups`` are omitted, as are groups with no
    step left once ``skip_actions`` is applied. Declared order is preserved.

    Args:
        step_groups: Validated step groups, in declared order
        skip_groups: Group aliases to omit
        skip_actions: Action names to omit
        registry: Registry steps will be dispatched through

    Returns:
        ExecutionPlan
    """
    skip_group_set = set(skip_groups)
    skip_action_set = set(skip_actions)

    plan = ExecutionPlan()
    for group in step_groups:
        if group.alias in skip_group_set:
            logger.debug(f"Skipping step group '{group.name}' (alias '{group.alias}')")
            continue
        if not group_has_active_steps(group, skip_action_set):
            logger.debug(f"Dropping step group '{group.name}': no active steps")
            continue
        plan.groups.append(compile_group(group, skip_action_set, registry))

    logger.debug(f"Compiled plan: {len(plan)} group(s), {plan.step_count} step(s)")
    return plan
