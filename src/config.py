"""
Configuration management for the cluster reconciler.
"""

import json
from dataclasses import dataclass
from typing import Optional

from models import Cluster


@dataclass
class ReconcilerConfig:
    """Configuration for reconciliation runs."""

    subscription_id: str
    cluster_file: str
    state_file: Optional[str] = None
    report_file: Optional[str] = None
    delete: bool = False
    dry_run: bool = False
    timeout: int = 1800
    poll_interval: int = 15
    max_retries: int = 5
    verbose: bool = False

    @classmethod
    def from_args(cls, args) -> "ReconcilerConfig":
        """
        Create configuration from command-line arguments.

        Args:
            args: Parsed argparse arguments

        Returns:
            ReconcilerConfig instance
        """
        return cls(
            subscription_id=args.subscription,
            cluster_file=args.cluster_file,
            state_file=args.state_file,
            report_file=args.report_file,
            delete=args.delete,
            dry_run=args.dry_run,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            max_retries=args.max_retries,
            verbose=args.verbose,
        )


def load_cluster(path: str) -> Cluster:
    """Load a cluster description from a JSON file."""
    with open(path) as f:
        return Cluster.from_dict(json.load(f))


def save_cluster(cluster: Cluster, path: str) -> None:
    """Write a cluster description to a JSON file."""
    with open(path, "w") as f:
        json.dump(cluster.to_dict(), f, indent=2)
