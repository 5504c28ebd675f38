"""Garbage collection of stale distributed processes.

Evicts table entries whose backing workload no longer exists in the
cluster. Orphaned network endpoints are not collected.
"""

from __future__ import annotations

import logging
from typing import List

from kubedsh.lib.dproc import DistributedProcess
from kubedsh.lib.dpt import DistributedProcessTable
from kubedsh.lib.gateway import ClusterGateway, GatewayError

logger = logging.getLogger(__name__)


class Reconciler:
    """Diffs the DPT against the cluster's live state."""

    def __init__(self, dpt: DistributedProcessTable, gateway: ClusterGateway):
        self.dpt = dpt
        self.gateway = gateway

    def reconcile_once(self) -> List[DistributedProcess]:
        """Run one reconciliation cycle.

        Entries whose existence check fails with a gateway error are kept
        until a later cycle gets a definite answer.

        Returns:
            Entries that were evicted
        """
        snapshot = self.dpt.dump("")
        evicted = []
        for dproc in snapshot:
            try:
                exists = self.gateway.workload_exists(dproc.id, context=dproc.context)
            except GatewayError as e:
                logger.warning(
                    f"Can't check dproc {dproc.id} in context {dproc.context}: {e.cause}"
                )
                continue
            if not exists and self.dpt.remove_if_unchanged(dproc):
                evicted.append(dproc)
                logger.info(f"Collected stale dproc {dproc.id} in context {dproc.context}")
        logger.debug(f"Reconciled {len(snapshot)} dprocs, evicted {len(evicted)}")
        return evicted
