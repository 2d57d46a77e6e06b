"""Recipe engine - compile and run multi-step provisioning recipes."""

import json
from typing import Any

from .compiler import ExecutionPlan
from .compiler import NoStepsError
from .compiler import compile_plan
from .context import ActionContext
from .context import ExecutionContext
from .context import ProgressEvent
from .context import ProgressKind
from .engine import EngineVariant
from .engine import RecipeEngine
from .models import Recipe
from .models import StepResult
from .models import StepResultStatus
from .registry import ActionRegistry
from .registry import UnknownActionError
from .runtime import ExecutionRuntime
from .runtime import FatalExecutionError
from .runtime import StepExecutionError
from .status import Status
from .validator import RecipeValidationError
from .validator import validate_recipe
from .variants import AppxDemoVariant
from .variants import AppxPackageVariant
from .variants import compile_recipe

__all__ = [
    "ActionContext",
    "ActionRegistry",
    "AppxDemoVariant",
    "AppxPackageVariant",
    "EngineVariant",
    "ExecutionContext",
    "ExecutionPlan",
    "ExecutionRuntime",
    "FatalExecutionError",
    "NoStepsError",
    "ProgressEvent",
    "ProgressKind",
    "Recipe",
    "RecipeEngine",
    "RecipeValidationError",
    "Status",
    "StepExecutionError",
    "StepResult",
    "StepResultStatus",
    "UnknownActionError",
    "compile_plan",
    "compile_recipe",
    "summarize_status",
    "validate_recipe",
]

# Maximum size (in bytes) of a single step's data in a status summary
MAX_OUTPUT_SIZE_BYTES = 10_000


def _truncate_value(value: Any, max_bytes: int = MAX_OUTPUT_SIZE_BYTES) -> Any:
    """
    Truncate large values so a summary stays printable.

    Strings are cut with a marker; dicts and lists too large to print are
    replaced by a truncation marker with a short preview.
    """
    if isinstance(value, str):
        if len(value) > max_bytes:
            return value[:max_bytes] + "\n\n[... truncated]"
        return value

    if isinstance(value, (dict, list)):
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError):
            return repr(value)[:max_bytes]
        if len(serialized) > max_bytes:
            preview = serialized[:500] + "..." if len(serialized) > 500 else serialized
            return {
                "_truncated": True,
                "_type": type(value).__name__,
                "_full_size_bytes": len(serialized),
                "_preview": preview,
            }
        return value

    if value is None or isinstance(value, (bool, int, float)):
        return value
    return str(value)


def summarize_status(status: Status) -> dict[str, Any]:
    """
    Build a compact, JSON-serialisable summary of a run.

    Args:
        status: Status returned by (or attached to the error raised from) a run

    Returns:
        Summary with outcome, timing, per-step entries and failed step names
    """
    summary = status.to_dict()
    for entry in summary["steps"]:
        if "data" in entry:
            entry["data"] = _truncate_value(entry["data"])

    summary["step_count"] = len(status.steps)
    summary["failed_steps"] = [entry.step for entry in status.failed_steps]
    return summary
