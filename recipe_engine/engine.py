"""Generic recipe engine driven by a pluggable engine variant."""

import logging
from abc import ABC
from abc import abstractmethod
from typing import Any

from .compiler import ExecutionPlan
from .compiler import compile_plan
from .context import ExecutionContext
from .context import ProgressSink
from .models import Recipe
from .registry import ActionRegistry
from .runtime import ExecutionRuntime
from .status import Status
from .validator import RecipeValidationError
from .validator import validate_recipe

logger = logging.getLogger(__name__)


class EngineVariant(ABC):
    """
    What a concrete engine must supply.

    A variant binds action names to executors and fills in the
    environment-specific parts of the execution context. It holds no per-run
    state, so one variant instance may back any number of engines.
    """

    recipe_types: tuple[str, ...] = ()

    @abstractmethod
    def initialize_action_map(self, registry: ActionRegistry) -> None:
        """Register every action this variant supports."""

    @abstractmethod
    def initialize_engine_context(self, context: ExecutionContext, recipe: Recipe) -> None:
        """Populate target environment, filesystem roots and log level."""

    def accepts(self, recipe_type: str) -> bool:
        return recipe_type in self.recipe_types


class RecipeEngine:
    """Compiles one recipe against a variant and runs it."""

    def __init__(self, variant: EngineVariant):
        self.variant = variant
        self.recipe: Recipe | None = None
        self.context: ExecutionContext | None = None
        self.registry: ActionRegistry | None = None
        self.plan: ExecutionPlan | None = None
        self.runtime: ExecutionRuntime | None = None

    @property
    def compiled(self) -> bool:
        return self.plan is not None

    @property
    def status(self) -> Status | None:
        return self.context.status if self.context else None

    def compile(self, recipe: Recipe, compile_options: dict[str, Any] | None = None) -> ExecutionPlan:
        """
        Validate the recipe and build its execution plan.

        Args:
            recipe: Recipe to compile
            compile_options: Opaque options handed to the variant via the context

        Returns:
            The compiled ExecutionPlan

        Raises:
            RecipeValidationError: If the recipe is malformed or of a type this
                variant does not run
            NoStepsError: If a group ends up with no steps to compile
        """
        validate_recipe(recipe)

        if not self.variant.accepts(recipe.recipe_type):
            raise RecipeValidationError(
                f"recipe type '{recipe.recipe_type}' is not supported by {type(self.variant).__name__}",
                field="recipe_type",
                recipe_type=recipe.recipe_type,
            )

        options = recipe.options
        context = ExecutionContext(
            recipe_type=recipe.recipe_type,
            status=Status(recipe_type=recipe.recipe_type),
            compile_options=compile_options if compile_options is not None else {},
            halt_on_error=options.halt_on_error,
        )
        self.variant.initialize_engine_context(context, recipe)

        registry = ActionRegistry(recipe.recipe_type)
        self.variant.initialize_action_map(registry)
        registry.freeze()

        plan = compile_plan(recipe.step_groups, options.skip_groups, options.skip_actions, registry)

        self.recipe = recipe
        self.context = context
        self.registry = registry
        self.plan = plan
        self.runtime = ExecutionRuntime(recipe.recipe_type)
        logger.debug(f"Compiled '{recipe.recipe_type}' recipe with {len(registry)} registered action(s)")
        return plan

    async def execute(self, progress_sink: ProgressSink | None = None) -> Status:
        """
        Run the compiled plan.

        Raises:
            RuntimeError: If ``compile`` has not been called, or this
                compilation has already been executed or killed
            StepExecutionError: If a step fails and the recipe halts on error
            FatalExecutionError: If execution is killed
        """
        if self.plan is None or self.context is None or self.runtime is None:
            raise RuntimeError("Recipe engine must be compiled before it can execute")
        status = self.context.status
        if status.started_at is not None or status.stopped_at is not None:
            raise RuntimeError("Recipe engine has already executed; compile the recipe again to run it again")
        if progress_sink is not None:
            self.context.progress_sink = progress_sink
        return await self.runtime.execute(self.plan, self.context)

    def kill_execution(self, message: str = "") -> None:
        """Emergency stop: stop the clock and raise ``FatalExecutionError``."""
        if self.context is None or self.runtime is None:
            raise RuntimeError("Recipe engine must be compiled before it can be killed")
        self.runtime.kill_execution(self.context, message)
