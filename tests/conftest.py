"""Shared fixtures for recipe engine tests."""

from pathlib import Path
from typing import Any

import pytest
from recipe_engine.compiler import compile_plan
from recipe_engine.context import ExecutionContext
from recipe_engine.models import Recipe
from recipe_engine.models import StepResult
from recipe_engine.registry import ActionRegistry
from recipe_engine.status import Status


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Per-test scratch directory."""
    return tmp_path


def make_recipe_data(**overrides: Any) -> dict[str, Any]:
    """Return a well-formed recipe mapping; top-level keys can be overridden."""
    data: dict[str, Any] = {
        "recipe_type": "appx:package-recipe",
        "schema_version": "1.0",
        "name": "test-recipe",
        "options": {
            "skip_groups": [],
            "skip_actions": [],
            "halt_on_error": True,
            "target_environments": [
                {
                    "name": "Dev Scratch",
                    "alias": "dev",
                    "description": "Scratch org for development",
                    "is_ephemeral": True,
                    "ephemeral_definition": "scratch-def.json",
                }
            ],
        },
        "step_groups": [
            {
                "name": "Build",
                "alias": "build",
                "description": "Build the org",
                "steps": [
                    {"name": "Step one", "action": "first"},
                    {"name": "Step two", "action": "second"},
                ],
            },
            {
                "name": "Configure",
                "alias": "configure",
                "description": "Configure the org",
                "steps": [
                    {"name": "Step three", "action": "third"},
                ],
            },
        ],
        "handlers": [],
    }
    data.update(overrides)
    return data


@pytest.fixture
def recipe_data() -> dict[str, Any]:
    return make_recipe_data()


@pytest.fixture
def recipe(recipe_data) -> Recipe:
    return Recipe.from_dict(recipe_data)


def recording_executor(calls: list[str], result: Any = None, error: Exception | None = None):
    """Build an executor coroutine that records the step name it ran for."""

    async def executor(action_context, options):
        calls.append(action_context.step.name)
        if error is not None:
            raise error
        return result if result is not None else StepResult.success(f"{action_context.step.name} done")

    return executor


def make_registry(recipe_type: str = "appx:package-recipe", **executors) -> ActionRegistry:
    registry = ActionRegistry(recipe_type)
    for action, executor in executors.items():
        registry.register(action, executor)
    registry.freeze()
    return registry


def make_context(recipe: Recipe, events: list | None = None, **overrides: Any) -> ExecutionContext:
    """Build an execution context for ``recipe``; ``events`` collects progress."""
    context = ExecutionContext(
        recipe_type=recipe.recipe_type,
        status=Status(recipe_type=recipe.recipe_type),
        halt_on_error=recipe.options.halt_on_error,
        target_environment=recipe.options.target_environments[0],
        progress_sink=events.append if events is not None else None,
    )
    for key, value in overrides.items():
        setattr(context, key, value)
    return context


def plan_for(recipe: Recipe, registry: ActionRegistry):
    options = recipe.options
    return compile_plan(recipe.step_groups, options.skip_groups, options.skip_actions, registry)
