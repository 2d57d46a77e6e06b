"""Structural validation of recipes.

Validation is fail-fast: the first violation raises ``RecipeValidationError``
naming the offending field. Nothing here mutates the recipe, so validating the
same recipe repeatedly is safe.
"""

import logging
from typing import Any

from .models import Handler
from .models import Recipe
from .models import RecipeOptions
from .models import Step
from .models import StepGroup
from .models import TargetEnvironment

logger = logging.getLogger(__name__)


class RecipeValidationError(ValueError):
    """Raised when a recipe violates the recipe grammar."""

    def __init__(self, message: str, field: str, recipe_type: str | None = None):
        self.field = field
        self.recipe_type = recipe_type
        super().__init__(f"Invalid recipe: {message}")


def _type_name(value: Any) -> str:
    return type(value).__name__


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _require_string_list(value: Any, field: str, recipe_type: str) -> None:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise RecipeValidationError(
            f"'{field}' must be a list of strings, got {_type_name(value)}",
            field=field,
            recipe_type=recipe_type,
        )


def validate_target_environment(target: Any, index: int, recipe_type: str = "") -> None:
    """Validate one entry of ``options.target_environments``."""
    prefix = f"options.target_environments[{index}]"

    if not isinstance(target, TargetEnvironment):
        raise RecipeValidationError(
            f"'{prefix}' must be a mapping, got {_type_name(target)}", field=prefix, recipe_type=recipe_type
        )

    for attr in ("name", "alias", "description"):
        value = getattr(target, attr)
        if not _is_non_empty_string(value):
            raise RecipeValidationError(
                f"'{prefix}.{attr}' must be a non-empty string, got {_type_name(value)}",
                field=f"{prefix}.{attr}",
                recipe_type=recipe_type,
            )

    if not isinstance(target.is_ephemeral, bool):
        raise RecipeValidationError(
            f"'{prefix}.is_ephemeral' must be a boolean, got {_type_name(target.is_ephemeral)}",
            field=f"{prefix}.is_ephemeral",
            recipe_type=recipe_type,
        )

    if target.is_ephemeral and not _is_non_empty_string(target.ephemeral_definition):
        raise RecipeValidationError(
            f"'{prefix}.ephemeral_definition' must be a non-empty string when "
            f"'{prefix}.is_ephemeral' is true (target '{target.alias}')",
            field=f"{prefix}.ephemeral_definition",
            recipe_type=recipe_type,
        )

    if not target.is_ephemeral and not _is_non_empty_string(target.external_requirements_ref):
        raise RecipeValidationError(
            f"'{prefix}.external_requirements_ref' must be a non-empty string when "
            f"'{prefix}.is_ephemeral' is false (target '{target.alias}')",
            field=f"{prefix}.external_requirements_ref",
            recipe_type=recipe_type,
        )


def validate_step(step: Any, field: str, recipe_type: str = "") -> None:
    """Validate one step.

    Only what compilation and dispatch rely on is checked: a string name and
    a non-empty string action. Action-specific options are the executor's
    business.
    """
    if not isinstance(step, Step):
        raise RecipeValidationError(
            f"'{field}' must be a mapping, got {_type_name(step)}", field=field, recipe_type=recipe_type
        )

    if not isinstance(step.name, str):
        raise RecipeValidationError(
            f"'{field}.name' must be a string, got {_type_name(step.name)}",
            field=f"{field}.name",
            recipe_type=recipe_type,
        )

    if not _is_non_empty_string(step.action):
        label = f" in step '{step.name}'" if step.name else ""
        raise RecipeValidationError(
            f"'{field}.action' must be a non-empty string{label}, got {_type_name(step.action)}",
            field=f"{field}.action",
            recipe_type=recipe_type,
        )


def validate_step_group(group: Any, index: int, recipe_type: str = "") -> None:
    """Validate one entry of ``step_groups``."""
    prefix = f"step_groups[{index}]"

    if not isinstance(group, StepGroup):
        raise RecipeValidationError(
            f"'{prefix}' must be a mapping, got {_type_name(group)}", field=prefix, recipe_type=recipe_type
        )

    for attr in ("name", "alias", "description"):
        value = getattr(group, attr)
        if not _is_non_empty_string(value):
            label = f" in step group '{group.name}'" if _is_non_empty_string(group.name) else ""
            raise RecipeValidationError(
                f"'{prefix}.{attr}' must be a non-empty string{label}, got {_type_name(value)}",
                field=f"{prefix}.{attr}",
                recipe_type=recipe_type,
            )

    if not isinstance(group.steps, list):
        raise RecipeValidationError(
            f"'{prefix}.steps' must be a list in step group '{group.name}', got {_type_name(group.steps)}",
            field=f"{prefix}.steps",
            recipe_type=recipe_type,
        )

    for step_idx, step in enumerate(group.steps):
        validate_step(step, f"{prefix}.steps[{step_idx}]", recipe_type)


def validate_handler(handler: Any, index: int, recipe_type: str = "") -> None:
    """Validate one handler entry. Handlers are inert, so any parsed entry passes."""
    if not isinstance(handler, Handler):
        logger.debug(f"handlers[{index}] is a {_type_name(handler)}, not a handler mapping")


def validate_options(options: Any, recipe_type: str = "") -> None:
    """Validate the recipe ``options`` block in declared order."""
    if options is None:
        raise RecipeValidationError(
            f"recipes of type '{recipe_type}' must provide an 'options' mapping",
            field="options",
            recipe_type=recipe_type,
        )
    if not isinstance(options, RecipeOptions):
        raise RecipeValidationError(
            f"'options' must be a mapping, got {_type_name(options)}", field="options", recipe_type=recipe_type
        )

    _require_string_list(options.skip_groups, "options.skip_groups", recipe_type)
    _require_string_list(options.skip_actions, "options.skip_actions", recipe_type)

    if not isinstance(options.halt_on_error, bool):
        raise RecipeValidationError(
            f"'options.halt_on_error' must be a boolean, got {_type_name(options.halt_on_error)}",
            field="options.halt_on_error",
            recipe_type=recipe_type,
        )

    targets = options.target_environments
    if not isinstance(targets, list) or len(targets) < 1:
        raise RecipeValidationError(
            "'options.target_environments' must be a list with at least one target environment",
            field="options.target_environments",
            recipe_type=recipe_type,
        )
    for idx, target in enumerate(targets):
        validate_target_environment(target, idx, recipe_type)


def validate_recipe(recipe: Recipe) -> None:
    """
    Validate recipe structure, raising on the first violation.

    Order: options, skip lists, halt flag, target environments, step groups,
    handlers.

    Args:
        recipe: Recipe to validate

    Raises:
        RecipeValidationError: naming the first offending field
    """
    recipe_type = recipe.recipe_type if isinstance(recipe.recipe_type, str) else ""

    validate_options(recipe.options, recipe_type)

    if not isinstance(recipe.step_groups, list):
        raise RecipeValidationError(
            f"'step_groups' must be a list, got {_type_name(recipe.step_groups)}",
            field="step_groups",
            recipe_type=recipe_type,
        )
    for idx, group in enumerate(recipe.step_groups):
        validate_step_group(group, idx, recipe_type)

    if not isinstance(recipe.handlers, list):
        raise RecipeValidationError(
            f"'handlers' must be a list, got {_type_name(recipe.handlers)}",
            field="handlers",
            recipe_type=recipe_type,
        )
    for idx, handler in enumerate(recipe.handlers):
        validate_handler(handler, idx, recipe_type)

    logger.debug(f"Recipe '{recipe.name or recipe_type}' passed validation")
