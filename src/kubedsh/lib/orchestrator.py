"""Launch and kill of distributed processes.

Creates or tears down the backing workload and network endpoint through the
gateway, then updates the DPT. Launches only touch the table once every
cluster step has succeeded; kills are not transactional and stop at the
first failing step.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List, Optional

from kubedsh.lib.config import ImagesConfig
from kubedsh.lib.dproc import DistributedProcess, DProcKind, Source
from kubedsh.lib.dpt import DistributedProcessTable, NotFoundError
from kubedsh.lib.gateway import ClusterGateway

logger = logging.getLogger(__name__)

INTERPRETERS = ("python", "node", "ruby")
BACKGROUND_MARKER = "&"


class InvocationError(ValueError):
    """Raised when a launch line can't be interpreted."""
    pass


@dataclass
class Invocation:
    """A parsed launch line: ``[interpreter] program [args...] [&]``."""

    program: str
    args: List[str] = field(default_factory=list)
    interpreter: Optional[str] = None
    background: bool = False

    @classmethod
    def parse(cls, line: str) -> Invocation:
        """Parse a launch line.

        Args:
            line: Line as typed by the user

        Returns:
            Parsed invocation

        Raises:
            InvocationError: If the line names no program
        """
        line = line.strip()
        background = line.endswith(BACKGROUND_MARKER)
        if background:
            line = line[:-len(BACKGROUND_MARKER)].rstrip()
        try:
            tokens = shlex.split(line)
        except ValueError as e:
            raise InvocationError(f"Failed to parse: {line}") from e

        interpreter = None
        if tokens and tokens[0] in INTERPRETERS:
            interpreter = tokens.pop(0)
        if not tokens:
            raise InvocationError("Need a program to launch")
        return cls(
            program=tokens[0],
            args=tokens[1:],
            interpreter=interpreter,
            background=background,
        )

    @property
    def dproc_id(self) -> str:
        """Identifier derived from the program's file name."""
        return PurePosixPath(self.program).stem

    @property
    def source(self) -> Source:
        if self.interpreter is None:
            return Source.binary(self.program)
        return Source.script(self.program, self.interpreter)

    @property
    def command(self) -> List[str]:
        prefix = [self.interpreter] if self.interpreter else []
        return [*prefix, self.program, *self.args]


@dataclass
class LaunchResult:
    """Outcome of a successful launch."""

    dproc_id: str
    kind: DProcKind
    output: str = ""


class Orchestrator:
    """State transitions of a distributed process.

    ``absent -> launching -> registered -> killing -> absent``
    """

    def __init__(
        self,
        dpt: DistributedProcessTable,
        gateway: ClusterGateway,
        images: Optional[ImagesConfig] = None,
        endpoint_port: int = 80
    ):
        """Initialize orchestrator.

        Args:
            dpt: Table to register launched processes in
            gateway: Gateway used for every cluster mutation
            images: Images per program kind
            endpoint_port: Port exposed by the network endpoint
        """
        self.dpt = dpt
        self.gateway = gateway
        self.images = images or ImagesConfig()
        self.endpoint_port = endpoint_port

    def launch(self, line: str) -> LaunchResult:
        """Launch a program in the cluster.

        A trailing ``&`` launches a long-running process that is tracked in
        the DPT; otherwise the program runs to completion in an ephemeral pod
        and its output is returned.

        Args:
            line: Launch line (e.g. ``python app.py &``)

        Returns:
            Launch result

        Raises:
            InvocationError: If the line can't be parsed
            GatewayError: If a cluster step fails; the DPT is unchanged
        """
        invocation = Invocation.parse(line)
        dproc_id = invocation.dproc_id
        image = self.images.for_interpreter(invocation.interpreter)

        if not invocation.background:
            logger.info(f"Running {dproc_id} as ephemeral process")
            output = self.gateway.run_ephemeral(dproc_id, image, invocation.command)
            return LaunchResult(dproc_id, DProcKind.EPHEMERAL, output)

        source = invocation.source
        logger.info(f"Launching {dproc_id} from {source}")
        self.gateway.create_workload(dproc_id, image, invocation.command, source.tag())
        self.gateway.create_endpoint(dproc_id, source.endpoint_name, self.endpoint_port)
        context = self.gateway.current_context()

        self.dpt.add(DistributedProcess(
            id=dproc_id,
            kind=DProcKind.LONG_RUNNING,
            context=context,
            source=source,
        ))
        return LaunchResult(dproc_id, DProcKind.LONG_RUNNING)

    def kill(self, dproc_id: str) -> None:
        """Tear down a distributed process in the current context.

        Args:
            dproc_id: Identifier of the process

        Raises:
            NotFoundError: If no such workload exists (nothing is mutated),
                or if the workload is not tracked in the DPT
            GatewayError: If a cluster step fails; earlier steps stay applied
        """
        if not self.gateway.workload_exists(dproc_id):
            raise NotFoundError(dproc_id)

        logger.info(f"Killing {dproc_id}")
        self.gateway.scale_workload(dproc_id, 0)
        self.gateway.delete_workload(dproc_id)

        context = self.gateway.current_context()
        dproc = self.dpt.get(dproc_id, context)
        self.gateway.delete_endpoint(dproc.source.endpoint_name)
        self.dpt.remove(dproc)
