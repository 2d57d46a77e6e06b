"""Action registry mapping symbolic action names to executor coroutines."""

import logging
from collections.abc import Awaitable
from collections.abc import Callable
from typing import TYPE_CHECKING
from typing import Any

from .models import StepResult

if TYPE_CHECKING:
    from .context import ActionContext

logger = logging.getLogger(__name__)

ActionExecutor = Callable[["ActionContext", dict[str, Any]], Awaitable[StepResult]]


class UnknownActionError(LookupError):
    """Raised when a step names an action no executor is registered for."""

    def __init__(self, action: str, recipe_type: str):
        self.action = action
        self.recipe_type = recipe_type
        super().__init__(f"Unknown action: '{action}' is not recognized by the '{recipe_type}' engine")


class ActionRegistry:
    """
    Registry of action executors for one engine instance.

    Populated once during engine initialization, then frozen.
    """

    def __init__(self, recipe_type: str = ""):
        self.recipe_type = recipe_type
        self._executors: dict[str, ActionExecutor] = {}
        self._frozen = False

    def register(self, action: str, executor: ActionExecutor) -> None:
        """
        Bind an action name to an executor.

        Raises:
            RuntimeError: If the registry has been frozen
            ValueError: If the action name is empty or already bound
        """
        if self._frozen:
            raise RuntimeError(f"Action registry for '{self.recipe_type}' is frozen; cannot register '{action}'")
        if not action:
            raise ValueError("Action name must be a non-empty string")
        if action in self._executors:
            raise ValueError(f"Action '{action}' is already registered for '{self.recipe_type}'")

        self._executors[action] = executor
        logger.debug(f"Registered action: {action}")

    def resolve(self, action: str) -> ActionExecutor:
        """Return the executor for ``action`` or raise ``UnknownActionError``."""
        executor = self._executors.get(action)
        if executor is None:
            raise UnknownActionError(action, self.recipe_type)
        return executor

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def actions(self) -> list[str]:
        return sorted(self._executors)

    def __contains__(self, action: object) -> bool:
        return action in self._executors

    def __len__(self) -> int:
        return len(self._executors)
