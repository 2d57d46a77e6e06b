"""Command line entry point: validate or run a recipe file."""

import argparse
import asyncio
import json
import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import Any

import yaml

from . import summarize_status
from .compiler import NoStepsError
from .context import LOG_LEVELS
from .context import ProgressEvent
from .context import ProgressKind
from .models import Recipe
from .runtime import FatalExecutionError
from .runtime import StepExecutionError
from .validator import RecipeValidationError
from .validator import validate_recipe
from .variants import compile_recipe

logger = logging.getLogger(__name__)

_LOGGING_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the recipe engine CLI."""
    parser = argparse.ArgumentParser(
        prog="recipe-engine",
        description="Compile and run provisioning recipes",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    validate_parser = subparsers.add_parser("validate", help="Validate a recipe")
    validate_parser.add_argument("recipe", type=str, help="Path to recipe YAML or JSON file")

    run_parser = subparsers.add_parser("run", help="Run a recipe")
    run_parser.add_argument("recipe", type=str, help="Path to recipe YAML or JSON file")
    run_parser.add_argument("--project-path", type=str, help="Project root (default: current directory)")
    run_parser.add_argument("--dev-hub", type=str, help="Alias of the dev hub used to create scratch orgs")
    run_parser.add_argument("--target-org", type=str, help="Alias of the target environment to run against")
    run_parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        help="Log level handed to actions and used for console logging (default: error)",
    )
    run_parser.add_argument(
        "--option",
        action="append",
        metavar="KEY=VALUE",
        help="Extra compile option (can be specified multiple times)",
    )
    run_parser.add_argument(
        "--skip-group",
        action="append",
        default=[],
        metavar="ALIAS",
        help="Skip the step group with this alias (can be specified multiple times)",
    )
    run_parser.add_argument(
        "--skip-action",
        action="append",
        default=[],
        metavar="ACTION",
        help="Skip every step with this action (can be specified multiple times)",
    )

    return parser


def parse_options(pairs: list[str] | None) -> dict[str, Any]:
    """Parse KEY=VALUE pairs into a dict."""
    options: dict[str, Any] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"Invalid option format (expected KEY=VALUE): {pair}")
        key, value = pair.split("=", 1)
        options[key] = value
    return options


def build_compile_options(args: Namespace) -> dict[str, Any]:
    """Merge --option pairs with the dedicated flags; flags that were given win."""
    compile_options = parse_options(args.option)
    flags = {
        "project_path": args.project_path,
        "dev_hub_alias": args.dev_hub,
        "target_org_alias": args.target_org,
        "log_level": args.log_level,
    }
    compile_options.update({key: value for key, value in flags.items() if value is not None})
    compile_options.setdefault("log_level", "error")
    return compile_options


def _log_progress(event: ProgressEvent) -> None:
    if event.kind == ProgressKind.STEP_FAILED:
        logger.error(f"{event.group} > {event.title}: {event.message}")
    elif event.kind == ProgressKind.GROUP_STARTED:
        logger.info(event.title)
    elif event.kind == ProgressKind.TITLE_UPDATED:
        logger.info(f"  {event.title}")


def validate_command(args: Namespace) -> int:
    try:
        recipe = Recipe.from_yaml(Path(args.recipe))
        validate_recipe(recipe)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except (ValueError, yaml.YAMLError) as e:
        logger.error(f"Validation error: {e}")
        return 2

    print(json.dumps({"status": "valid", "recipe_type": recipe.recipe_type, "name": recipe.name}))
    return 0


def run_command(args: Namespace) -> int:
    try:
        recipe = Recipe.from_yaml(Path(args.recipe))
        validate_recipe(recipe)

        # CLI skips extend the recipe's own lists
        recipe.options.skip_groups = [*recipe.options.skip_groups, *args.skip_group]
        recipe.options.skip_actions = [*recipe.options.skip_actions, *args.skip_action]

        compile_options = build_compile_options(args)
        engine = compile_recipe(recipe, compile_options)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except (RecipeValidationError, NoStepsError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Validation error: {e}")
        return 2

    try:
        status = asyncio.run(engine.execute(progress_sink=_log_progress))
    except (StepExecutionError, FatalExecutionError) as e:
        logger.error(str(e))
        if e.status is not None:
            print(json.dumps(summarize_status(e.status), indent=2, default=str))
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1

    print(json.dumps(summarize_status(status), indent=2, default=str))
    return 1 if status.failed_steps else 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    level_name = getattr(parsed_args, "log_level", "info") or "error"
    logging.basicConfig(
        level=_LOGGING_LEVELS.get(level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if parsed_args.command == "validate":
        return validate_command(parsed_args)
    if parsed_args.command == "run":
        return run_command(parsed_args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
