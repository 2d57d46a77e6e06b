"""Recipe data models and YAML parsing."""

from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml


class StepResultStatus(Enum):
    """Outcome reported by a single step."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class StepResult:
    """Result returned by an action executor for one step."""

    status: StepResultStatus
    message: str = ""
    data: Any = None

    @property
    def failed(self) -> bool:
        return self.status == StepResultStatus.ERROR

    @classmethod
    def success(cls, message: str = "", data: Any = None) -> "StepResult":
        return cls(status=StepResultStatus.SUCCESS, message=message, data=data)

    @classmethod
    def warning(cls, message: str = "", data: Any = None) -> "StepResult":
        return cls(status=StepResultStatus.WARNING, message=message, data=data)

    @classmethod
    def error(cls, message: str = "", data: Any = None) -> "StepResult":
        return cls(status=StepResultStatus.ERROR, message=message, data=data)


@dataclass
class TargetEnvironment:
    """A deployment destination, either ephemeral (scratch) or persistent.

    Ephemeral environments carry an ``ephemeral_definition`` (path to the
    scratch definition file). Persistent environments carry an
    ``external_requirements_ref`` (path to the requirements the existing
    environment must satisfy).
    """

    name: str
    alias: str
    description: str
    is_ephemeral: bool
    ephemeral_definition: str | None = None
    external_requirements_ref: str | None = None


@dataclass
class RecipeOptions:
    """Recipe-level execution options."""

    skip_groups: list[str] | None = None
    skip_actions: list[str] | None = None
    halt_on_error: bool | None = None
    target_environments: list[TargetEnvironment] | None = None


@dataclass
class Step:
    """A single unit of work mapped to a named action."""

    name: str
    action: str
    description: str = ""
    options: dict[str, Any] = field(default_factory=dict)
    on_success: str | None = None  # Handler reference, parsed but never dispatched
    on_error: str | None = None


@dataclass
class StepGroup:
    """An ordered bundle of steps sharing a title and a skip alias."""

    name: str
    alias: str
    description: str
    steps: list[Step] = field(default_factory=list)


@dataclass
class Handler:
    """A named success/error handler. Only the name is interpreted."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)


# Keys accepted for each field, snake_case first, then the camelCase spelling
# used by JSON recipes.
_RECIPE_KEYS = {
    "recipe_type": ("recipe_type", "recipeType"),
    "schema_version": ("schema_version", "schemaVersion"),
    "name": ("name", "recipeName"),
    "description": ("description",),
    "version": ("version", "recipeVersion"),
    "step_groups": ("step_groups", "recipeStepGroups", "stepGroups"),
}
_OPTION_KEYS = {
    "skip_groups": ("skip_groups", "skipGroups"),
    "skip_actions": ("skip_actions", "skipActions"),
    "halt_on_error": ("halt_on_error", "haltOnError"),
    "target_environments": ("target_environments", "targetEnvironments", "targetOrgs"),
}
_TARGET_KEYS = {
    "name": ("name", "orgName"),
    "alias": ("alias",),
    "description": ("description",),
    "is_ephemeral": ("is_ephemeral", "isEphemeral", "isScratchOrg"),
    "ephemeral_definition": ("ephemeral_definition", "ephemeralDefinition", "scratchDefJson"),
    "external_requirements_ref": ("external_requirements_ref", "externalRequirementsRef", "orgReqsJson"),
}
_GROUP_KEYS = {
    "name": ("name", "stepGroupName"),
    "alias": ("alias",),
    "description": ("description",),
    "steps": ("steps", "recipeSteps"),
}
_STEP_KEYS = {
    "name": ("name", "stepName"),
    "description": ("description",),
    "action": ("action",),
    "options": ("options",),
    "on_success": ("on_success", "onSuccess"),
    "on_error": ("on_error", "onError"),
}


def _pick(data: dict[str, Any], keys: tuple[str, ...], default: Any = None) -> Any:
    """Return the first value present under any of ``keys``."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def _handler_ref(value: Any) -> Any:
    # JSON recipes spell handler references as {"handler": "name"}
    if isinstance(value, dict) and "handler" in value:
        return value["handler"]
    return value


@dataclass
class Recipe:
    """A complete recipe: options, target environments, step groups and handlers.

    Field types are not enforced here; ``validate_recipe`` reports the first
    offending field so a malformed recipe can still be loaded and diagnosed.
    """

    recipe_type: str
    schema_version: str
    options: RecipeOptions | None = None
    step_groups: list[StepGroup] = field(default_factory=list)
    handlers: list[Handler] = field(default_factory=list)
    name: str = ""
    description: str = ""
    version: str = ""

    @classmethod
    def _parse_target_environment(cls, data: dict[str, Any]) -> TargetEnvironment:
        """Parse a single target environment entry."""
        if not isinstance(data, dict):
            raise ValueError("Each target environment must be a dictionary")
        return TargetEnvironment(**{attr: _pick(data, keys) for attr, keys in _TARGET_KEYS.items()})

    @classmethod
    def _parse_options(cls, data: Any) -> Any:
        """Parse the options block, keeping malformed values for the validator."""
        if not isinstance(data, dict):
            return data

        targets = _pick(data, _OPTION_KEYS["target_environments"])
        if isinstance(targets, list):
            targets = [cls._parse_target_environment(td) for td in targets]

        return RecipeOptions(
            skip_groups=_pick(data, _OPTION_KEYS["skip_groups"]),
            skip_actions=_pick(data, _OPTION_KEYS["skip_actions"]),
            halt_on_error=_pick(data, _OPTION_KEYS["halt_on_error"]),
            target_environments=targets,
        )

    @classmethod
    def _parse_step(cls, step_data: dict[str, Any]) -> Step:
        """Parse a single step."""
        if not isinstance(step_data, dict):
            raise ValueError("Each step must be a dictionary")

        options = _pick(step_data, _STEP_KEYS["options"])
        return Step(
            name=_pick(step_data, _STEP_KEYS["name"], ""),
            action=_pick(step_data, _STEP_KEYS["action"], ""),
            description=_pick(step_data, _STEP_KEYS["description"], ""),
            options=options if options is not None else {},
            on_success=_handler_ref(_pick(step_data, _STEP_KEYS["on_success"])),
            on_error=_handler_ref(_pick(step_data, _STEP_KEYS["on_error"])),
        )

    @classmethod
    def _parse_step_group(cls, group_data: dict[str, Any]) -> StepGroup:
        """Parse a single step group."""
        if not isinstance(group_data, dict):
            raise ValueError("Each step group must be a dictionary")

        steps = _pick(group_data, _GROUP_KEYS["steps"])
        if isinstance(steps, list):
            steps = [cls._parse_step(sd) for sd in steps]

        return StepGroup(
            name=_pick(group_data, _GROUP_KEYS["name"]),
            alias=_pick(group_data, _GROUP_KEYS["alias"]),
            description=_pick(group_data, _GROUP_KEYS["description"]),
            steps=steps,
        )

    @classmethod
    def _parse_handler(cls, handler_data: Any) -> Any:
        if isinstance(handler_data, str):
            return Handler(name=handler_data)
        if isinstance(handler_data, dict):
            payload = dict(handler_data)
            name = payload.pop("name", None) or payload.pop("handlerName", "")
            return Handler(name=name, payload=payload)
        return handler_data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recipe":
        """Build a recipe from an already-parsed mapping."""
        if not isinstance(data, dict):
            raise ValueError("Recipe must be a dictionary")

        step_groups = _pick(data, _RECIPE_KEYS["step_groups"])
        if isinstance(step_groups, list):
            step_groups = [cls._parse_step_group(gd) for gd in step_groups]

        handlers = data.get("handlers")
        if isinstance(handlers, list):
            handlers = [cls._parse_handler(hd) for hd in handlers]

        return cls(
            recipe_type=_pick(data, _RECIPE_KEYS["recipe_type"], ""),
            schema_version=str(_pick(data, _RECIPE_KEYS["schema_version"], "")),
            options=cls._parse_options(data["options"]) if "options" in data else None,
            step_groups=step_groups,
            handlers=handlers,
            name=_pick(data, _RECIPE_KEYS["name"], ""),
            description=data.get("description", ""),
            version=str(_pick(data, _RECIPE_KEYS["version"], "")),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "Recipe":
        """Load recipe from a YAML (or JSON) file."""
        if not path.exists():
            raise FileNotFoundError(f"Recipe file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError("Recipe YAML must be a dictionary")

        return cls.from_dict(data)

    def get_step_group(self, alias: str) -> StepGroup | None:
        """Get step group by alias."""
        if not isinstance(self.step_groups, list):
            return None
        for group in self.step_groups:
            if group.alias == alias:
                return group
        return None

    def get_target_environment(self, alias: str) -> TargetEnvironment | None:
        """Get target environment by alias."""
        if not isinstance(self.options, RecipeOptions) or not self.options.target_environments:
            return None
        for target in self.options.target_environments:
            if target.alias == alias:
                return target
        return None
