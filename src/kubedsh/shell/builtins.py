"""Built-in commands for the shell.

Every line whose first word is not a built-in is launched as a program in
the cluster.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from kubedsh.lib.dpt import NotFoundError, format_dump
from kubedsh.lib.environments import EnvRegistryError
from kubedsh.lib.gateway import GatewayError
from kubedsh.shell.interpreter import ShellError

if TYPE_CHECKING:
    from kubedsh.shell.interpreter import ExecutionContext

logger = logging.getLogger(__name__)

BuiltinFunc = Callable[[List[str], "ExecutionContext"], Optional[str]]

JUMP_POD = "curljump"
JUMP_IMAGE = "quay.io/mhausenblas/jump:v0.1"


class BuiltinCommand:
    """A named built-in command."""

    def __init__(self, name: str, description: str, func: BuiltinFunc):
        """Initialize builtin command.

        Args:
            name: Command name
            description: Help text
            func: Function taking (args, context)
        """
        self.name = name
        self.description = description
        self.func = func

    def execute(self, args: List[str], context: ExecutionContext) -> Optional[str]:
        return self.func(args, context)


class BuiltinRegistry:
    """Registry of built-in shell commands."""

    def __init__(self):
        self.commands: Dict[str, BuiltinCommand] = {}

    def register(self, name: str, description: str) -> Callable:
        """Decorator to register a built-in command.

        Args:
            name: Command name
            description: Help text

        Returns:
            Decorator function
        """
        def decorator(func: BuiltinFunc) -> BuiltinFunc:
            cmd = BuiltinCommand(name, description, func)
            self.commands[cmd.name] = cmd
            logger.debug(f"Registered builtin: {cmd.name}")
            return func
        return decorator

    def get(self, name: str) -> Optional[BuiltinCommand]:
        return self.commands.get(name)

    def list_commands(self) -> List[BuiltinCommand]:
        return sorted(self.commands.values(), key=lambda c: c.name)


_registry = BuiltinRegistry()


def get_registry() -> BuiltinRegistry:
    """Get the builtin registry."""
    return _registry


@_registry.register("help", "Show available built-in commands")
def help_command(args: List[str], context: ExecutionContext) -> str:
    lines = ["The following built-in commands are available:", ""]
    for cmd in _registry.list_commands():
        lines.append(f"  {cmd.name:<12} {cmd.description}")
    lines.extend([
        "",
        "Any other input is launched in the cluster, for example:",
        "  python app.py &     long-running process, tracked by ps",
        "  ./mytool --flag     runs to completion, output shown here",
        "",
        "Variables: FOO=bar sets a variable, echo $FOO prints it.",
    ])
    return '\n'.join(lines)


@_registry.register("exit", "Exit the shell")
def exit_command(args: List[str], context: ExecutionContext) -> None:
    """Exit the shell.

    Raises:
        SystemExit: To exit the shell
    """
    logger.debug("Exiting shell...")
    raise SystemExit(0)


@_registry.register("ps", "List distributed processes (ps all: across contexts)")
def ps_command(args: List[str], context: ExecutionContext) -> str:
    if args and args[0] == "all":
        return format_dump(context.dpt.dump(""), show_context=True)
    try:
        kube_context = context.gateway.current_context()
    except GatewayError as e:
        raise ShellError(f"Can't determine current context: {e.cause}") from e
    return format_dump(context.dpt.dump(kube_context))


@_registry.register("kill", "Stop a distributed process")
def kill_command(args: List[str], context: ExecutionContext) -> None:
    if not args:
        raise ShellError("Need a target distributed process to kill")
    dproc_id = args[0]
    try:
        context.orchestrator.kill(dproc_id)
    except NotFoundError as e:
        if not e.context:
            raise ShellError(
                f"A distributed process with the ID '{dproc_id}' does not exist "
                "in current context. Try the ps command first."
            ) from e
        raise ShellError(f"Failed to kill {dproc_id!r} due to:\n{e}") from e
    except GatewayError as e:
        raise ShellError(f"Failed to kill {dproc_id!r} due to:\n{e}") from e


@_registry.register("use", "Switch to another cluster context")
def use_command(args: List[str], context: ExecutionContext) -> str:
    if not args:
        raise ShellError("Need a target cluster context")
    try:
        output = context.gateway.use_context(args[0])
    except GatewayError as e:
        raise ShellError(f"Failed to switch contexts due to:\n{e.cause}") from e
    context.refresh_kube_context()
    return output.strip()


@_registry.register("contexts", "List available cluster contexts")
def contexts_command(args: List[str], context: ExecutionContext) -> str:
    try:
        return context.gateway.describe_contexts().rstrip()
    except GatewayError as e:
        raise ShellError(f"Failed to list contexts due to:\n{e.cause}") from e


@_registry.register("curl", "Curl a URL from within the cluster")
def curl_command(args: List[str], context: ExecutionContext) -> str:
    if not args:
        raise ShellError(
            "Need a target URL, for example `curl someservice` in the cluster "
            "or `curl http://example.com`"
        )
    try:
        return context.gateway.run_ephemeral(JUMP_POD, JUMP_IMAGE, ["curl", args[0]]).rstrip()
    except GatewayError as e:
        raise ShellError(f"Can't curl {args[0]} due to: {e.cause}") from e


@_registry.register("literally", "Run a raw kubectl command")
def literally_command(args: List[str], context: ExecutionContext) -> str:
    if not args:
        raise ShellError("Not enough input for a valid kubectl command")
    try:
        return context.gateway.raw(args).rstrip()
    except GatewayError as e:
        raise ShellError(e.cause) from e


@_registry.register("echo", "Print a value or a variable ($NAME)")
def echo_command(args: List[str], context: ExecutionContext) -> str:
    if not args:
        raise ShellError("No value to echo given")
    words = []
    for word in args:
        if word.startswith('$'):
            value = context.environments.current().get(word[1:])
            words.append(value if value else word)
        else:
            words.append(word)
    return ' '.join(words)


@_registry.register("env", "Manage environments: env [list|create|select|delete] [name]")
def env_command(args: List[str], context: ExecutionContext) -> Optional[str]:
    environments = context.environments
    if not args:
        return '\n'.join(environments.current().lines())

    action = args[0]
    if action == "list":
        current = environments.current_name
        return '\n'.join(
            f"{'*' if name == current else ' '} {name}" for name in environments.names()
        )
    if action not in ("create", "select", "delete"):
        raise ShellError(f"Unknown env action '{action}', use list, create, select or delete")
    if len(args) < 2:
        raise ShellError(f"Need an environment name for env {action}")

    name = args[1]
    try:
        if action == "create":
            environments.create(name)
        elif action == "select":
            table = environments.select(name)
            if context.watchdog is not None:
                context.watchdog.watch(table)
        else:
            environments.delete(name)
    except EnvRegistryError as e:
        raise ShellError(str(e)) from e
    return None


@_registry.register("cd", "Change the local working directory (cd - for previous)")
def cd_command(args: List[str], context: ExecutionContext) -> None:
    target = args[0] if args else os.path.expanduser("~")
    if target == "-":
        if context.previous_dir is None:
            raise ShellError("No previous directory")
        target = context.previous_dir
    current = os.getcwd()
    try:
        os.chdir(target)
    except OSError as e:
        raise ShellError(f"Can't change directory to {target}: {e.strerror}") from e
    context.previous_dir = current


@_registry.register("pwd", "Print the local working directory")
def pwd_command(args: List[str], context: ExecutionContext) -> str:
    return os.getcwd()


@_registry.register("sleep", "Pause for the given number of seconds")
def sleep_command(args: List[str], context: ExecutionContext) -> None:
    try:
        seconds = float(args[0]) if args else 1.0
    except ValueError as e:
        raise ShellError(f"Invalid duration: {args[0]}") from e
    time.sleep(seconds)


def _local_exec(name: str, args: List[str]) -> str:
    try:
        result = subprocess.run(
            [name, *args],
            capture_output=True,
            text=True,
            check=True
        )
    except subprocess.CalledProcessError as e:
        raise ShellError(f"Failed to execute {name} locally due to: {e.stderr.strip()}") from e
    except OSError as e:
        raise ShellError(f"Failed to execute {name} locally due to: {e}") from e
    return result.stdout.rstrip()


@_registry.register("ls", "List local files")
def ls_command(args: List[str], context: ExecutionContext) -> str:
    return _local_exec("ls", args)


@_registry.register("cat", "Show a local file")
def cat_command(args: List[str], context: ExecutionContext) -> str:
    return _local_exec("cat", args)


def is_builtin(command: str) -> bool:
    """Check if a command is a built-in."""
    return _registry.get(command) is not None


def execute_builtin(command: str, args: List[str], context: ExecutionContext) -> Optional[str]:
    """Execute a built-in command.

    Args:
        command: Command name
        args: Arguments following the command name
        context: Execution context

    Returns:
        Command output, if any

    Raises:
        ValueError: If command not found
        ShellError: If the command failed
    """
    cmd = _registry.get(command)
    if cmd is None:
        raise ValueError(f"Unknown built-in command: {command}")
    return cmd.execute(args, context)
