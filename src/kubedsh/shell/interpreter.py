"""Shell interpreter.

Dispatches parsed lines to built-in commands, variable assignments, or the
launch orchestrator.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from kubedsh.lib.dpt import DistributedProcessTable
from kubedsh.lib.environments import EnvironmentRegistry
from kubedsh.lib.gateway import ClusterGateway, GatewayError
from kubedsh.lib.orchestrator import InvocationError, Orchestrator
from kubedsh.lib.watchdog import ReloadWatchdog
from kubedsh.shell.parser import LineParser

logger = logging.getLogger(__name__)


class ShellError(Exception):
    """A command failed; the message is meant for the user."""
    pass


class ExecutionContext:
    """State shared by every command of one shell session.

    Holds the collaborators created at the composition root. Nothing in the
    shell reaches them through module globals.
    """

    def __init__(
        self,
        dpt: DistributedProcessTable,
        gateway: ClusterGateway,
        orchestrator: Orchestrator,
        environments: Optional[EnvironmentRegistry] = None,
        watchdog: Optional[ReloadWatchdog] = None
    ):
        self.dpt = dpt
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.environments = environments or EnvironmentRegistry()
        self.watchdog = watchdog
        self.parser = LineParser()
        self.history: List[str] = []
        self.kube_context = ""
        self.previous_dir: Optional[str] = None

    def refresh_kube_context(self) -> str:
        """Re-read the current control-plane context, empty if unknown."""
        try:
            self.kube_context = self.gateway.current_context()
        except GatewayError as e:
            logger.debug(f"Can't determine current context: {e.cause}")
            self.kube_context = ""
        return self.kube_context

    def execute(self, line: str) -> Optional[str]:
        """Execute one input line.

        Args:
            line: Line to execute

        Returns:
            Output to show the user, if any

        Raises:
            ShellError: If the command failed
            SystemExit: On ``exit``
        """
        from kubedsh.shell.builtins import execute_builtin, is_builtin

        try:
            command = self.parser.parse(line)
        except ValueError as e:
            raise ShellError(str(e)) from e
        if command is None:
            return None
        self.history.append(command.line)

        assignment = self.parser.parse_assignment(command.line)
        if assignment is not None:
            name, value = assignment
            self.environments.current().set(name, value)
            logger.debug(f"Set {name} in environment {self.environments.current_name}")
            return None

        if is_builtin(command.name):
            return execute_builtin(command.name, command.args, context=self)
        return self.launch(command.line)

    def launch(self, line: str) -> Optional[str]:
        try:
            result = self.orchestrator.launch(line)
        except (InvocationError, GatewayError) as e:
            raise ShellError(f"Failed to launch {line!r} in the cluster due to:\n{e}") from e
        return result.output or None

    def get_history(self) -> List[str]:
        return self.history.copy()
