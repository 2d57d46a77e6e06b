"""Concrete engine variants and the recipe-type lookup."""

import logging
from pathlib import Path
from typing import Any

from . import actions
from .context import LOG_LEVELS
from .context import ExecutionContext
from .engine import EngineVariant
from .engine import RecipeEngine
from .models import Recipe
from .registry import ActionRegistry
from .validator import validate_recipe

logger = logging.getLogger(__name__)

PACKAGE_RECIPE_TYPE = "appx:package-recipe"
DEMO_RECIPE_TYPE = "appx:demo-recipe"


class AppxVariant(EngineVariant):
    """Shared context setup for the AppX family of recipes."""

    def initialize_engine_context(self, context: ExecutionContext, recipe: Recipe) -> None:
        compile_options = context.compile_options

        project_path = Path(compile_options.get("project_path") or Path.cwd()).expanduser()
        context.project_path = project_path
        context.config_path = project_path / "config"
        context.mdapi_source_path = project_path / "mdapi-source"
        context.sfdx_source_path = project_path / "sfdx-source"
        context.data_path = project_path / "data"
        context.dev_hub_alias = compile_options.get("dev_hub_alias")

        log_level = compile_options.get("log_level", "error")
        if log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{log_level}'")
        context.log_level = log_level

        target_alias = compile_options.get("target_org_alias")
        if target_alias:
            target = recipe.get_target_environment(target_alias)
            if target is None:
                raise ValueError(f"No target environment with alias '{target_alias}' in recipe")
        else:
            target = recipe.options.target_environments[0]
        context.target_environment = target

        logger.debug(f"Engine context: project={project_path}, target={target.alias}, log_level={log_level}")


class AppxPackageVariant(AppxVariant):
    """Builds and configures environments for managed package development."""

    recipe_types = (PACKAGE_RECIPE_TYPE,)

    def initialize_action_map(self, registry: ActionRegistry) -> None:
        registry.register("create-scratch-org", actions.create_scratch_org)
        registry.register("delete-scratch-org", actions.delete_scratch_org)
        registry.register("deploy-metadata", actions.deploy_metadata)
        registry.register("install-package", actions.install_package)
        registry.register("assign-permset", actions.assign_permset)
        registry.register("import-data", actions.import_data)
        registry.register("shell-command", actions.shell_command)


class AppxDemoVariant(AppxVariant):
    """Builds demo environments from unpackaged metadata."""

    recipe_types = (DEMO_RECIPE_TYPE,)

    def initialize_action_map(self, registry: ActionRegistry) -> None:
        registry.register("create-scratch-org", actions.create_scratch_org)
        registry.register("delete-scratch-org", actions.delete_scratch_org)
        registry.register("deploy-metadata", actions.deploy_metadata)
        registry.register("assign-permset", actions.assign_permset)
        registry.register("import-data", actions.import_data)
        registry.register("shell-command", actions.shell_command)


DEFAULT_VARIANTS: tuple[EngineVariant, ...] = (AppxPackageVariant(), AppxDemoVariant())


def variant_for(recipe_type: str, variants: tuple[EngineVariant, ...] | None = None) -> EngineVariant:
    """Return the variant that runs ``recipe_type``."""
    for variant in variants or DEFAULT_VARIANTS:
        if variant.accepts(recipe_type):
            return variant
    raise ValueError(f"Unsupported recipe type: '{recipe_type}'")


def compile_recipe(
    recipe: Recipe,
    compile_options: dict[str, Any] | None = None,
    variants: tuple[EngineVariant, ...] | None = None,
) -> RecipeEngine:
    """
    Pick the variant for the recipe's type and compile the recipe with it.

    Returns:
        A compiled RecipeEngine, ready to ``execute``
    """
    validate_recipe(recipe)
    engine = RecipeEngine(variant_for(recipe.recipe_type, variants))
    engine.compile(recipe, compile_options)
    return engine
