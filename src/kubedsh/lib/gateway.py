"""Cluster control gateway.

Every interaction with the cluster control plane goes through a
:class:`ClusterGateway`. The verbs are built on a single ``run()`` call so
that tests can substitute a fake implementation.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

MANAGED_BY_LABEL = "managed-by=kubedsh"
SOURCE_ANNOTATION = "kubedsh/source"


class GatewayError(Exception):
    """Raised when a control-plane call fails.

    Attributes:
        step: Name of the step that failed (e.g. ``delete-workload``)
        cause: Raw underlying cause as reported by the control plane
    """

    def __init__(self, step: str, cause: str):
        self.step = step
        self.cause = cause
        super().__init__(f"{step} failed: {cause}")


class ClusterGateway(ABC):
    """Narrow interface to the cluster control plane."""

    @abstractmethod
    def run(self, command: str, *args: str, context: Optional[str] = None) -> str:
        """Execute a control-plane command.

        Args:
            command: Top-level command (e.g. ``get``, ``delete``, ``config``)
            *args: Remaining arguments
            context: Scope the call to this context instead of the current one

        Returns:
            Raw textual output

        Raises:
            GatewayError: If the command fails
        """

    def _step(self, step: str, command: str, *args: str, context: Optional[str] = None) -> str:
        try:
            return self.run(command, *args, context=context)
        except GatewayError as e:
            raise GatewayError(step, e.cause) from e

    def workload_exists(self, workload_id: str, context: Optional[str] = None) -> bool:
        try:
            self.run("get", "deployment", workload_id, context=context)
        except GatewayError as e:
            if _is_not_found(e.cause):
                return False
            raise GatewayError("get-workload", e.cause) from e
        return True

    def create_workload(
        self,
        workload_id: str,
        image: str,
        command: Sequence[str],
        source_tag: str
    ) -> None:
        self._step("create-workload", "create", "deployment", workload_id,
                   f"--image={image}", "--", *command)
        self._step("label-workload", "label", "deployment", workload_id, MANAGED_BY_LABEL)
        self._step("annotate-workload", "annotate", "deployment", workload_id,
                   f"{SOURCE_ANNOTATION}={source_tag}")

    def create_endpoint(self, workload_id: str, name: str, port: int) -> None:
        self._step("create-endpoint", "expose", "deployment", workload_id,
                   f"--name={name}", f"--port={port}")

    def run_ephemeral(self, workload_id: str, image: str, command: Sequence[str]) -> str:
        return self._step("run-ephemeral", "run", workload_id, "-i", "--rm",
                          "--restart=Never", f"--image={image}", "--", *command)

    def scale_workload(self, workload_id: str, replicas: int) -> None:
        self._step("scale-workload", "scale", f"--replicas={replicas}",
                   "deployment", workload_id)

    def delete_workload(self, workload_id: str) -> None:
        self._step("delete-workload", "delete", "deployment", workload_id)

    def delete_endpoint(self, name: str) -> None:
        self._step("delete-endpoint", "delete", "service", name)

    def current_context(self) -> str:
        return self._step("get-current-context", "config", "current-context").strip()

    def list_contexts(self) -> List[str]:
        output = self._step("list-contexts", "config", "get-contexts", "-o", "name")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def describe_contexts(self) -> str:
        return self._step("list-contexts", "config", "get-contexts")

    def use_context(self, context: str) -> str:
        return self._step("switch-context", "config", "use-context", context)

    def list_workloads(self, context: str) -> List[Tuple[str, str]]:
        """List workloads managed by this tool in a context.

        Returns:
            List of (workload id, source annotation) pairs; the annotation is
            empty when the workload carries none
        """
        columns = (
            "NAME:.metadata.name,"
            f"SOURCE:.metadata.annotations.{SOURCE_ANNOTATION}"
        )
        output = self._step(
            "list-workloads", "get", "deployments", "-l", MANAGED_BY_LABEL,
            "-o", f"custom-columns={columns}", "--no-headers",
            context=context
        )
        workloads = []
        for line in output.splitlines():
            fields = line.split(None, 1)
            if not fields:
                continue
            source = fields[1].strip() if len(fields) > 1 else ""
            if source == "<none>":
                source = ""
            workloads.append((fields[0], source))
        return workloads

    def raw(self, args: Sequence[str]) -> str:
        if not args:
            raise GatewayError("literally", "no command given")
        return self._step("literally", args[0], *args[1:])


def _is_not_found(cause: str) -> bool:
    return "NotFound" in cause or "not found" in cause


class KubectlGateway(ClusterGateway):
    """Gateway that shells out to the kubectl binary."""

    def __init__(self, binary: str = "kubectl"):
        """Initialize gateway.

        Args:
            binary: kubectl executable to invoke
        """
        self.binary = binary

    def run(self, command: str, *args: str, context: Optional[str] = None) -> str:
        cmd = [self.binary]
        if context:
            cmd.append(f"--context={context}")
        cmd.append(command)
        cmd.extend(args)
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            cause = (e.stderr or e.stdout or str(e)).strip()
            raise GatewayError(command, cause) from e
        except OSError as e:
            raise GatewayError(command, str(e)) from e
        return result.stdout

    def version(self) -> str:
        """Return the client version string.

        Raises:
            GatewayError: If kubectl cannot be executed
        """
        return self.run("version", "--client").strip()
