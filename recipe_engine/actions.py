"""Action executors and the external-command utilities they delegate to.

Each executor is a coroutine ``(ActionContext, options) -> StepResult``.
Executors check their own options and delegate to a single utility call that
runs the packaging CLI or a shell command.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .context import ActionContext
from .models import StepResult

logger = logging.getLogger(__name__)

DEFAULT_CLI_PROGRAM = "sfdx"
DEFAULT_TIMEOUT = 600
DEFAULT_WAIT_MINUTES = 10


@dataclass
class CommandResult:
    """Result of an external command execution."""

    command: str
    stdout: str
    stderr: str
    exit_code: int
    response: Any = None


class ActionExecutionError(Exception):
    """Raised when an action cannot run or its external command fails."""

    def __init__(self, message: str, action: str = "", result: CommandResult | None = None):
        self.action = action
        self.result = result
        prefix = f"Action '{action}': " if action else ""
        super().__init__(f"{prefix}{message}")


async def _communicate(process: asyncio.subprocess.Process, command: str, timeout: int) -> CommandResult:
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ActionExecutionError(f"command timed out after {timeout}s: {command}") from None

    return CommandResult(
        command=command,
        stdout=stdout_bytes.decode("utf-8", errors="replace"),
        stderr=stderr_bytes.decode("utf-8", errors="replace"),
        exit_code=process.returncode or 0,
    )


async def run_shell_command(
    command: str,
    cwd: Path,
    env: dict[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> CommandResult:
    """
    Run a shell command and capture its output.

    Args:
        command: Shell command line
        cwd: Working directory
        env: Extra environment variables, layered over the current environment
        timeout: Seconds before the process is killed

    Returns:
        CommandResult

    Raises:
        ActionExecutionError: On timeout, launch failure or non-zero exit code
    """
    full_env = os.environ.copy()
    if env:
        full_env.update({key: str(value) for key, value in env.items()})

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
            env=full_env,
        )
    except OSError as e:
        raise ActionExecutionError(f"failed to execute command: {e}") from e

    result = await _communicate(process, command, timeout)

    if result.exit_code != 0:
        error_msg = f"command failed with exit code {result.exit_code}"
        if result.stderr.strip():
            error_msg += f"\nstderr: {result.stderr.strip()}"
        raise ActionExecutionError(error_msg, result=result)

    return result


async def run_cli_command(
    program: str,
    args: list[str],
    cwd: Path,
    timeout: int = DEFAULT_TIMEOUT,
) -> CommandResult:
    """
    Run a packaging CLI subcommand with ``--json`` and parse its response.

    The CLI answers with ``{"status": <int>, "result": ...}``; a non-zero
    status is a failure even when the process exits cleanly.

    Raises:
        ActionExecutionError: On timeout, launch failure, or a failed response
    """
    argv = [program, *args, "--json"]
    command = " ".join(argv)
    logger.debug(f"Running CLI command: {command}")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
        )
    except OSError as e:
        raise ActionExecutionError(f"failed to execute '{program}': {e}") from e

    result = await _communicate(process, command, timeout)

    stdout = result.stdout.strip()
    if stdout:
        try:
            result.response = json.loads(stdout)
        except (json.JSONDecodeError, ValueError):
            result.response = None

    response = result.response if isinstance(result.response, dict) else {}
    response_status = response.get("status", result.exit_code)
    if result.exit_code != 0 or response_status != 0:
        message = response.get("message") or result.stderr.strip() or f"exit code {result.exit_code}"
        raise ActionExecutionError(f"'{command}' failed: {message}", result=result)

    return result


def _require_option(options: dict[str, Any], key: str, action: str) -> Any:
    value = options.get(key)
    if value is None or value == "":
        raise ActionExecutionError(f"missing required option '{key}'", action=action)
    return value


def _target_alias(action_context: ActionContext, options: dict[str, Any], action: str) -> str:
    alias = options.get("target_org_alias")
    if not alias and action_context.context.target_environment is not None:
        alias = action_context.context.target_environment.alias
    if not alias:
        raise ActionExecutionError("no target environment alias available", action=action)
    return alias


def _payload(result: CommandResult) -> Any:
    if isinstance(result.response, dict):
        return result.response.get("result")
    return None


def _resolve_path(base: Path | None, value: str, fallback: Path) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return (base or fallback) / path


async def _run_cli(action_context: ActionContext, options: dict[str, Any], action: str, args: list[str]) -> CommandResult:
    program = action_context.context.compile_options.get("cli_program", DEFAULT_CLI_PROGRAM)
    timeout = options.get("timeout", DEFAULT_TIMEOUT)
    try:
        return await run_cli_command(program, args, action_context.project_path, timeout=timeout)
    except ActionExecutionError as e:
        action_context.progress.update_title(f"{action_context.step.name}... Failed", message=str(e))
        raise ActionExecutionError(str(e), action=action, result=e.result) from e


async def create_scratch_org(action_context: ActionContext, options: dict[str, Any]) -> StepResult:
    """Create an ephemeral environment from its definition file."""
    action = "create-scratch-org"
    context = action_context.context
    alias = _target_alias(action_context, options, action)

    definition = options.get("scratch_def_json")
    if not definition and context.target_environment is not None:
        definition = context.target_environment.ephemeral_definition
    if not definition:
        raise ActionExecutionError("missing required option 'scratch_def_json'", action=action)
    if not context.dev_hub_alias:
        raise ActionExecutionError("a dev hub alias is required to create scratch orgs", action=action)

    definition_path = _resolve_path(context.config_path, definition, action_context.project_path)
    args = [
        "force:org:create",
        "-f", str(definition_path),
        "-a", alias,
        "-v", context.dev_hub_alias,
        "-d", str(options.get("duration_days", 7)),
    ]
    result = await _run_cli(action_context, options, action, args)

    org_info = _payload(result) or {}
    context.shared["scratch_org_username"] = org_info.get("username")
    action_context.progress.update_title(f"{action_context.step.name}... Done!")
    return StepResult.success(f"Scratch org '{alias}' created", data=org_info)


async def delete_scratch_org(action_context: ActionContext, options: dict[str, Any]) -> StepResult:
    action = "delete-scratch-org"
    alias = _target_alias(action_context, options, action)
    args = ["force:org:delete", "-p", "-u", alias]
    if action_context.context.dev_hub_alias:
        args += ["-v", action_context.context.dev_hub_alias]

    try:
        result = await _run_cli(action_context, options, action, args)
    except ActionExecutionError as e:
        # ignore_missing downgrades a failed delete to a warning
        if options.get("ignore_missing", True):
            return StepResult.warning(f"Scratch org '{alias}' could not be deleted: {e}")
        raise

    action_context.progress.update_title(f"{action_context.step.name}... Done!")
    return StepResult.success(f"Scratch org '{alias}' deleted", data=_payload(result))


async def deploy_metadata(action_context: ActionContext, options: dict[str, Any]) -> StepResult:
    action = "deploy-metadata"
    context = action_context.context
    alias = _target_alias(action_context, options, action)
    source = _require_option(options, "mdapi_source", action)
    source_path = _resolve_path(context.mdapi_source_path, source, action_context.project_path)

    args = ["force:mdapi:deploy", "-d", str(source_path), "-u", alias, "-w", str(options.get("wait", DEFAULT_WAIT_MINUTES))]
    result = await _run_cli(action_context, options, action, args)
    action_context.progress.update_title(f"{action_context.step.name}... Done!")
    return StepResult.success(f"Deployed '{source}' to '{alias}'", data=_payload(result))


async def install_package(action_context: ActionContext, options: dict[str, Any]) -> StepResult:
    action = "install-package"
    alias = _target_alias(action_context, options, action)
    package_version_id = _require_option(options, "package_version_id", action)

    args = [
        "force:package:install",
        "-p", package_version_id,
        "-u", alias,
        "-w", str(options.get("wait", DEFAULT_WAIT_MINUTES)),
        "-r",
    ]
    if options.get("installation_key"):
        args += ["-k", options["installation_key"]]

    result = await _run_cli(action_context, options, action, args)
    action_context.progress.update_title(f"{action_context.step.name}... Done!")
    return StepResult.success(f"Installed package '{package_version_id}' in '{alias}'", data=_payload(result))


async def assign_permset(action_context: ActionContext, options: dict[str, Any]) -> StepResult:
    action = "assign-permset"
    alias = _target_alias(action_context, options, action)
    permset = _require_option(options, "permset_name", action)

    result = await _run_cli(action_context, options, action, ["force:user:permset:assign", "-n", permset, "-u", alias])
    action_context.progress.update_title(f"{action_context.step.name}... Done!")
    return StepResult.success(f"Assigned '{permset}' in '{alias}'", data=_payload(result))


async def import_data(action_context: ActionContext, options: dict[str, Any]) -> StepResult:
    action = "import-data"
    context = action_context.context
    alias = _target_alias(action_context, options, action)
    plan = _require_option(options, "plan", action)
    plan_path = _resolve_path(context.data_path, plan, action_context.project_path)

    result = await _run_cli(action_context, options, action, ["force:data:tree:import", "-p", str(plan_path), "-u", alias])
    action_context.progress.update_title(f"{action_context.step.name}... Done!")
    return StepResult.success(f"Imported data plan '{plan}' into '{alias}'", data=_payload(result))


async def shell_command(action_context: ActionContext, options: dict[str, Any]) -> StepResult:
    """Run an arbitrary shell command from the project directory."""
    action = "shell-command"
    command = _require_option(options, "command", action)
    cwd = action_context.project_path
    if options.get("cwd"):
        cwd = _resolve_path(action_context.context.project_path, options["cwd"], action_context.project_path)
        if not cwd.is_dir():
            raise ActionExecutionError(f"cwd is not a directory: {cwd}", action=action)

    try:
        result = await run_shell_command(
            command, cwd, env=options.get("env"), timeout=options.get("timeout", DEFAULT_TIMEOUT)
        )
    except ActionExecutionError as e:
        action_context.progress.update_title(f"{action_context.step.name}... Failed", message=str(e))
        raise ActionExecutionError(str(e), action=action, result=e.result) from e

    action_context.progress.update_title(f"{action_context.step.name}... Done!")
    return StepResult.success(
        f"Command exited with code {result.exit_code}",
        data={"stdout": result.stdout, "stderr": result.stderr, "exit_code": result.exit_code},
    )
