"""kubedsh library modules.

Distributed process table, reconciliation and launch/kill orchestration.
"""

__all__ = [
    "config",
    "dproc",
    "dpt",
    "environments",
    "gateway",
    "orchestrator",
    "reconciler",
    "supervisor",
    "watchdog",
]
