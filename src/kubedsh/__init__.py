"""kubedsh - a distributed shell for Kubernetes.

Launches programs as workloads in the cluster and tracks them as
distributed processes.

Features:
- Distributed process table seeded from the cluster at startup
- Background garbage collection of processes whose workload disappeared
- Named environments with hot-reload signalling
- Interactive and scripted operation
"""

__version__ = "0.1.0"

from kubedsh.cli import main

__all__ = ["main", "__version__"]
