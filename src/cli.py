"""Console entry point for the cluster reconciler CLI."""

from __future__ import annotations

import argparse
import logging
from typing import List

from clients import ResourceGroupClient, ScaleSetClient
from config import ReconcilerConfig, load_cluster, save_cluster
from errors import ConfigurationError
from log_utils import setup_logging
from reconciler import ClusterReconciler, build_drivers

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Reconcile an Azure cluster with its declared description"
    )
    parser.add_argument(
        "--subscription", required=True, help="Azure subscription ID"
    )
    parser.add_argument(
        "--cluster-file",
        required=True,
        help="JSON file describing the cluster",
    )
    parser.add_argument(
        "--state-file",
        help="Write the updated cluster to this file (defaults to --cluster-file)",
    )
    parser.add_argument("--report-file", help="Export a JSON run report")
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete the cluster's resources instead of reconciling them",
    )
    parser.add_argument("--dry-run", action="store_true", help="Only report differences")
    parser.add_argument(
        "--timeout",
        type=int,
        default=1800,
        help="Seconds to wait for each provider operation",
    )
    parser.add_argument("--poll-interval", type=int, default=15)
    parser.add_argument("--max-retries", type=int, default=5)
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(verbose=args.verbose)

    config = ReconcilerConfig.from_args(args)
    cluster = load_cluster(config.cluster_file)

    group_client = ResourceGroupClient(
        config.subscription_id,
        max_retries=config.max_retries,
        poll_interval=config.poll_interval,
    )
    scaleset_client = ScaleSetClient(
        config.subscription_id,
        max_retries=config.max_retries,
        poll_interval=config.poll_interval,
        credential=group_client.credential,
    )
    try:
        drivers = build_drivers(
            cluster, group_client, scaleset_client, timeout=config.timeout
        )
    except ConfigurationError as e:
        logger.error(f"Invalid cluster description {config.cluster_file}: {e}")
        return 1
    runner = ClusterReconciler(drivers, dry_run=config.dry_run)

    if config.delete:
        cluster = runner.destroy(cluster)
    else:
        cluster = runner.run(cluster)

    if not config.dry_run:
        state_file = config.state_file or config.cluster_file
        save_cluster(cluster, state_file)
        logger.info(f"Cluster state written to: {state_file}")
    if config.report_file:
        runner.export_results_json(config.report_file)

    return 1 if runner.stats.get("failed", 0) > 0 else 0
