"""Distributed Process Table (DPT).

Locally cached registry of known distributed processes, keyed by
(id, context). The cluster is the source of truth; the table can always be
rebuilt from it with :meth:`DistributedProcessTable.build`.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, List, Tuple

from kubedsh.lib.dproc import DistributedProcess, DProcKind, Source
from kubedsh.lib.gateway import ClusterGateway, GatewayError

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the initial table build cannot query the cluster."""
    pass


class NotFoundError(Exception):
    """Raised when a distributed process is not known."""

    def __init__(self, dproc_id: str, context: str = ""):
        self.dproc_id = dproc_id
        self.context = context
        where = f" in context '{context}'" if context else ""
        super().__init__(f"No distributed process with ID '{dproc_id}'{where}")


class DistributedProcessTable:
    """Lock-guarded mapping from (id, context) to :class:`DistributedProcess`.

    Every operation holds the lock for its full duration. Gateway calls are
    never made while the lock is held.
    """

    def __init__(self):
        """Initialize an empty table."""
        self._lock = Lock()
        self._table: Dict[Tuple[str, str], DistributedProcess] = {}

    def build(self, gateway: ClusterGateway) -> int:
        """Seed the table from the workloads visible in every reachable context.

        Args:
            gateway: Gateway to query

        Returns:
            Number of entries loaded

        Raises:
            DiscoveryError: If the cluster cannot be queried; the table is
                left empty
        """
        with self._lock:
            self._table.clear()

        try:
            contexts = gateway.list_contexts()
        except GatewayError as e:
            raise DiscoveryError(f"Can't list contexts: {e.cause}") from e

        discovered: Dict[Tuple[str, str], DistributedProcess] = {}
        reachable = 0
        for context in contexts:
            try:
                workloads = gateway.list_workloads(context)
            except GatewayError as e:
                logger.warning(f"Skipping unreachable context {context}: {e.cause}")
                continue
            reachable += 1
            for workload_id, source_tag in workloads:
                dproc = DistributedProcess(
                    id=workload_id,
                    kind=DProcKind.LONG_RUNNING,
                    context=context,
                    source=_recover_source(workload_id, source_tag),
                )
                discovered[dproc.key] = dproc

        if contexts and reachable == 0:
            raise DiscoveryError("None of the configured contexts is reachable")

        with self._lock:
            self._table.update(discovered)
        logger.debug(f"Built DPT with {len(discovered)} entries from {reachable} contexts")
        return len(discovered)

    def add(self, dproc: DistributedProcess) -> None:
        """Insert or overwrite the entry for ``dproc.key``."""
        with self._lock:
            self._table[dproc.key] = dproc
        logger.debug(f"Added dproc {dproc.id} in context {dproc.context}")

    def remove(self, dproc: DistributedProcess) -> None:
        """Delete the entry for ``dproc.key``; absent keys are ignored."""
        with self._lock:
            removed = self._table.pop(dproc.key, None)
        if removed is not None:
            logger.debug(f"Removed dproc {dproc.id} from context {dproc.context}")

    def remove_if_unchanged(self, dproc: DistributedProcess) -> bool:
        """Delete the entry for ``dproc.key`` only if it still equals ``dproc``.

        Returns:
            True if the entry was removed
        """
        with self._lock:
            if self._table.get(dproc.key) != dproc:
                return False
            del self._table[dproc.key]
        logger.debug(f"Removed dproc {dproc.id} from context {dproc.context}")
        return True

    def get(self, dproc_id: str, context: str) -> DistributedProcess:
        """Look up an entry.

        Args:
            dproc_id: Process identifier
            context: Control-plane context

        Returns:
            Matching entry

        Raises:
            NotFoundError: If no entry matches
        """
        with self._lock:
            dproc = self._table.get((dproc_id, context))
        if dproc is None:
            raise NotFoundError(dproc_id, context)
        return dproc

    def dump(self, context: str) -> List[DistributedProcess]:
        """List entries sorted by id.

        Args:
            context: Context to list, or ``""`` for every context

        Returns:
            Entries sorted by (id, context)
        """
        with self._lock:
            entries = [
                dproc for dproc in self._table.values()
                if not context or dproc.context == context
            ]
        return sorted(entries, key=lambda d: (d.id, d.context))

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)


def _recover_source(workload_id: str, source_tag: str) -> Source:
    if source_tag:
        try:
            return Source.parse(source_tag)
        except ValueError as e:
            logger.warning(f"Workload {workload_id}: {e}")
    return Source.binary(workload_id)


def format_dump(entries: List[DistributedProcess], show_context: bool = False) -> str:
    """Render table entries as aligned text columns."""
    if show_context:
        header = ("DPID", "CONTEXT", "TYPE", "SOURCE")
        rows = [(d.id, d.context, d.kind.value, d.source.tag()) for d in entries]
    else:
        header = ("DPID", "TYPE", "SOURCE")
        rows = [(d.id, d.kind.value, d.source.tag()) for d in entries]
    widths = [
        max(len(row[i]) for row in [header, *rows])
        for i in range(len(header))
    ]
    lines = [
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
        for row in [header, *rows]
    ]
    return '\n'.join(lines)
