from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

from kubedsh.lib.config import KubedshConfig, load_config
from kubedsh.lib.dpt import DiscoveryError, DistributedProcessTable
from kubedsh.lib.environments import EnvironmentRegistry
from kubedsh.lib.gateway import ClusterGateway, GatewayError, KubectlGateway
from kubedsh.lib.orchestrator import Orchestrator
from kubedsh.lib.reconciler import Reconciler
from kubedsh.lib.supervisor import SupervisedLoop
from kubedsh.lib.watchdog import ReloadWatchdog
from kubedsh.shell.interpreter import ExecutionContext, ShellError
from kubedsh.shell.repl import run_lines, run_repl, run_script


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging
        quiet: Suppress info logging
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )


def check_kubectl(gateway: KubectlGateway) -> bool:
    """Check that kubectl can be executed.

    Returns:
        True if kubectl responded
    """
    try:
        version = gateway.version()
    except GatewayError as e:
        logger.error(f"Failed to run {gateway.binary}: {e.cause}")
        return False
    logger.debug(f"kubectl: {version}")
    return True


def log_reload(variables: Dict[str, str]) -> None:
    logger.info(f"Environment changed ({len(variables)} variables), hot-reload triggered")


def create_context(config: KubedshConfig, gateway: ClusterGateway) -> ExecutionContext:
    """Build the shell's object graph.

    The DPT is seeded from the cluster; if that fails the shell starts with
    an empty table.

    Args:
        config: Validated configuration
        gateway: Gateway to the cluster

    Returns:
        Execution context wired to a fresh DPT, orchestrator and environments
    """
    dpt = DistributedProcessTable()
    try:
        count = dpt.build(gateway)
        logger.debug(f"Discovered {count} distributed processes")
    except DiscoveryError as e:
        logger.warning(f"Starting with an empty process table: {e}")

    orchestrator = Orchestrator(
        dpt,
        gateway,
        images=config.images,
        endpoint_port=config.endpoint_port
    )
    environments = EnvironmentRegistry()
    watchdog = ReloadWatchdog(environments.current())
    watchdog.subscribe(log_reload)
    return ExecutionContext(
        dpt=dpt,
        gateway=gateway,
        orchestrator=orchestrator,
        environments=environments,
        watchdog=watchdog
    )


def create_background_loops(
    context: ExecutionContext,
    config: KubedshConfig
) -> List[SupervisedLoop]:
    """Create the supervised reconciler and watchdog loops (not started)."""
    reconciler = Reconciler(context.dpt, context.gateway)
    loops = [
        SupervisedLoop(
            "dpt-reconciler",
            reconciler.reconcile_once,
            interval=config.gc_interval,
            restart_delay=config.restart_delay
        ),
    ]
    if context.watchdog is not None:
        loops.append(SupervisedLoop(
            "reload-watchdog",
            context.watchdog.check,
            interval=config.watchdog_interval,
            restart_delay=config.restart_delay
        ))
    return loops


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    from kubedsh import __version__

    parser = argparse.ArgumentParser(
        description="Interactive shell that launches programs as distributed processes in Kubernetes",
    )
    parser.add_argument(
        'script',
        nargs='?',
        type=Path,
        help='Script file to execute non-interactively'
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        default=None,
        help='Path to configuration file (default: ~/.kubedsh.yaml if present)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose (debug) logging'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress informational output'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"%(prog)s {__version__}"
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except Exception as e:
        setup_logging(args.verbose, args.quiet)
        logger.error(f"Invalid configuration: {e}")
        return 2

    setup_logging(args.verbose or config.debug, args.quiet)

    gateway = KubectlGateway(config.kubectl_binary)
    context = create_context(config, gateway)

    if args.script is not None:
        try:
            run_script(args.script, context)
        except OSError as e:
            logger.error(f"Error executing script: {e}")
            return 1
        except ShellError:
            return 1
        return 0

    if not sys.stdin.isatty():
        try:
            run_lines(sys.stdin, context)
        except ShellError:
            return 1
        return 0

    if not check_kubectl(gateway):
        logger.warning("Encountered issues during startup, cluster commands will fail")

    loops = create_background_loops(context, config)
    for loop in loops:
        loop.start()
    try:
        run_repl(context)
    finally:
        for loop in loops:
            loop.stop(timeout=1.0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
