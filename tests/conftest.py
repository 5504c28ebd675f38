"""Shared fixtures: a scripted in-memory gateway."""

from typing import Dict, List, Optional, Sequence, Set

import pytest

from kubedsh.lib.dpt import DistributedProcessTable
from kubedsh.lib.gateway import ClusterGateway, GatewayError
from kubedsh.lib.orchestrator import Orchestrator
from kubedsh.shell.interpreter import ExecutionContext

MUTATING_STEPS = {
    "create-workload",
    "create-endpoint",
    "run-ephemeral",
    "scale-workload",
    "delete-workload",
    "delete-endpoint",
    "switch-context",
}


class FakeGateway(ClusterGateway):
    """Cluster stand-in holding workloads per context and recording calls."""

    def __init__(self, workloads: Optional[Dict[str, Dict[str, str]]] = None, current: str = "ctxA"):
        self.workloads: Dict[str, Dict[str, str]] = {
            ctx: dict(items) for ctx, items in (workloads or {current: {}}).items()
        }
        self.workloads.setdefault(current, {})
        self.endpoints: Dict[str, Set[str]] = {ctx: set() for ctx in self.workloads}
        self.current = current
        self.calls: List[tuple] = []
        self.failures: Dict[str, str] = {}
        self.unreachable: Set[str] = set()

    def _record(self, step: str, *args) -> None:
        self.calls.append((step, *args))
        if step in self.failures:
            raise GatewayError(step, self.failures[step])

    def mutations(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in MUTATING_STEPS]

    def steps(self) -> List[str]:
        return [call[0] for call in self.calls]

    def run(self, command: str, *args: str, context: Optional[str] = None) -> str:
        self._record("run", command, *args)
        return f"ran {command}"

    def workload_exists(self, workload_id: str, context: Optional[str] = None) -> bool:
        ctx = context or self.current
        self._record("get-workload", workload_id, ctx)
        if ctx in self.unreachable:
            raise GatewayError("get-workload", f"context {ctx} unreachable")
        return workload_id in self.workloads.get(ctx, {})

    def create_workload(self, workload_id: str, image: str, command: Sequence[str], source_tag: str) -> None:
        self._record("create-workload", workload_id, image, list(command), source_tag)
        self.workloads[self.current][workload_id] = source_tag

    def create_endpoint(self, workload_id: str, name: str, port: int) -> None:
        self._record("create-endpoint", workload_id, name, port)
        self.endpoints[self.current].add(name)

    def run_ephemeral(self, workload_id: str, image: str, command: Sequence[str]) -> str:
        self._record("run-ephemeral", workload_id, image, list(command))
        return f"output of {' '.join(command)}\n"

    def scale_workload(self, workload_id: str, replicas: int) -> None:
        self._record("scale-workload", workload_id, replicas)

    def delete_workload(self, workload_id: str) -> None:
        self._record("delete-workload", workload_id)
        self.workloads[self.current].pop(workload_id, None)

    def delete_endpoint(self, name: str) -> None:
        self._record("delete-endpoint", name)
        self.endpoints[self.current].discard(name)

    def current_context(self) -> str:
        self._record("get-current-context")
        return self.current

    def list_contexts(self) -> List[str]:
        self._record("list-contexts")
        return list(self.workloads)

    def describe_contexts(self) -> str:
        self._record("list-contexts")
        return '\n'.join(self.workloads)

    def use_context(self, context: str) -> str:
        self._record("switch-context", context)
        self.current = context
        self.workloads.setdefault(context, {})
        self.endpoints.setdefault(context, set())
        return f'Switched to context "{context}".\n'

    def list_workloads(self, context: str):
        self._record("list-workloads", context)
        if context in self.unreachable:
            raise GatewayError("list-workloads", f"context {context} unreachable")
        return sorted(self.workloads[context].items())


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dpt():
    return DistributedProcessTable()


@pytest.fixture
def orchestrator(dpt, gateway):
    return Orchestrator(dpt, gateway)


@pytest.fixture
def shell(dpt, gateway, orchestrator):
    return ExecutionContext(dpt=dpt, gateway=gateway, orchestrator=orchestrator)
