#!/usr/bin/env python3
"""
Namespace Watcher - Entry Point

A Kubernetes controller that watches for new namespaces and gives each one a
LimitRange built from the CPU, memory and ephemeral-storage limits in the
environment. Reserved system namespaces and those listed in
EXCLUDED_NAMESPACES are skipped.

Usage:
    python run.py [--dry-run] [--in-cluster] [--verbose]
"""

import argparse
import logging
import signal
import sys

from kubernetes import config

from namespace_watcher.config import DEFAULT_LOG_LEVEL, WatchSettings
from namespace_watcher.controller import NamespaceWatcher
from namespace_watcher.exceptions import ClientInitializationError, NamespaceWatcherFatalError
from namespace_watcher.exclusion import ExclusionFilter
from namespace_watcher.limit_policy import LimitPolicy
from namespace_watcher.limit_range_client import LimitRangeClient
from namespace_watcher.reconciler import LimitRangeReconciler

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Namespace Watcher - Apply a default LimitRange to every new namespace"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (no changes made)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )
    return parser.parse_args(argv)


def configure_logging(level: str = DEFAULT_LOG_LEVEL, verbose: bool = False) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def load_kube_config(in_cluster: bool) -> None:
    """
    Load Kubernetes configuration.

    Raises:
        ClientInitializationError: if no usable configuration is found
    """
    try:
        if in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster configuration")
        else:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")
    except Exception as e:
        raise ClientInitializationError(f"Failed to load Kubernetes config: {e}") from e


def build_watcher(args, settings: WatchSettings = None) -> NamespaceWatcher:
    """Load configuration and wire the controller together."""
    if settings is None:
        settings = WatchSettings.from_env()
    policy = LimitPolicy.from_env()
    exclusion_filter = ExclusionFilter.from_env()

    load_kube_config(args.in_cluster)
    limit_client = LimitRangeClient()
    reconciler = LimitRangeReconciler(limit_client, policy, dry_run=args.dry_run)

    return NamespaceWatcher(
        limit_client,
        reconciler,
        exclusion_filter,
        queue_size=settings.queue_size,
        watch_timeout=settings.watch_timeout,
        backoff_initial=settings.backoff_initial,
        backoff_max=settings.backoff_max,
    )


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        settings = WatchSettings.from_env()
    except NamespaceWatcherFatalError as e:
        configure_logging(verbose=args.verbose)
        logger.critical(str(e))
        sys.exit(1)

    configure_logging(settings.log_level, args.verbose)

    try:
        watcher = build_watcher(args, settings)
    except NamespaceWatcherFatalError as e:
        logger.critical(str(e))
        sys.exit(1)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signal.Signals(signum).name}")
        watcher.stop()

    signal.signal(signal.SIGTERM, handle_signal)

    try:
        watcher.run()
    except NamespaceWatcherFatalError as e:
        logger.critical(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        watcher.stop()

    logger.info("Controller stopped")
    sys.exit(0)


if __name__ == "__main__":
    main()
