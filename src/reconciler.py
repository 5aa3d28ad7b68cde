"""
Cluster reconciliation: runs resource drivers in dependency order.
"""

import json
import logging
import threading
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from catalog import Catalog
from clients import ProviderClient
from compare import is_equal
from defaults import render
from errors import ReconcileError
from models import Cluster, ReconcileResult
from resources import DEFAULT_OPERATION_TIMEOUT, Resource, ResourceGroup, VMScaleSet

logger = logging.getLogger(__name__)

_locks: Dict[Tuple[str, str], threading.Lock] = {}
_locks_guard = threading.Lock()


def resource_lock(cluster_name: str, kind: str) -> threading.Lock:
    """Return the lock serializing reconciliation of one kind in one cluster."""
    with _locks_guard:
        return _locks.setdefault((cluster_name, kind), threading.Lock())


def build_drivers(
    cluster: Cluster,
    group_client: ProviderClient,
    scaleset_client: ProviderClient,
    catalog: Optional[Catalog] = None,
    timeout: float = DEFAULT_OPERATION_TIMEOUT,
) -> List[Resource]:
    """
    Build the drivers for a cluster, resource group first.

    Args:
        cluster: Declared cluster
        group_client: Client for resource groups
        scaleset_client: Client for virtual machine scale sets
        catalog: Image and size catalog
        timeout: Seconds to wait for each provider operation

    Returns:
        Drivers in dependency order
    """
    rendered = render(cluster)
    drivers: List[Resource] = [ResourceGroup(group_client, rendered.name, timeout=timeout)]
    for pool in rendered.server_pools:
        drivers.append(
            VMScaleSet(scaleset_client, pool.name, catalog=catalog, timeout=timeout)
        )
    return drivers


class ClusterReconciler:
    """Converges a cluster by running each resource driver in turn."""

    def __init__(self, drivers: Sequence[Resource], dry_run: bool = False):
        """
        Initialize the reconciler.

        Args:
            drivers: Resource drivers in dependency order
            dry_run: If True, only report differences without applying them
        """
        self.drivers = list(drivers)
        self.dry_run = dry_run

        self.stats = {
            "total": 0,
            "unchanged": 0,
            "applied": 0,
            "deleted": 0,
            "absent": 0,
            "dry_run": 0,
            "failed": 0,
        }

        self.run_start_time: Optional[float] = None
        self.run_end_time: Optional[float] = None
        self.results: List[ReconcileResult] = []

    def _record(
        self,
        driver: Resource,
        status: str,
        start: float,
        error: Optional[Exception] = None,
    ) -> None:
        end = time.time()
        self.stats[status] += 1
        self.results.append(
            ReconcileResult(
                kind=driver.KIND,
                resource=driver.name,
                status=status,
                start_time=start,
                end_time=end,
                duration_seconds=end - start,
                error_message=str(error) if error else None,
            )
        )

    def _reconcile_one(self, driver: Resource, cluster: Cluster) -> Tuple[Cluster, str]:
        with resource_lock(cluster.name, driver.KIND):
            cluster, actual = driver.actual(cluster)
            cluster, expected = driver.expected(cluster)
            if is_equal(actual, expected):
                logger.info(f"[=] {driver.KIND} {driver.name} is up to date")
                return cluster, "unchanged"
            if self.dry_run:
                logger.info(f"DRY RUN: Would apply {driver.KIND} {driver.name}")
                return cluster, "dry_run"
            logger.info(f"[>] Applying {driver.KIND} {driver.name}")
            cluster, _ = driver.apply(actual, expected, cluster)
            return cluster, "applied"

    def _destroy_one(self, driver: Resource, cluster: Cluster) -> Tuple[Cluster, str]:
        with resource_lock(cluster.name, driver.KIND):
            cluster, actual = driver.actual(cluster)
            if not actual.identifier:
                logger.info(f"[-] {driver.KIND} {driver.name} is not provisioned")
                return cluster, "absent"
            if self.dry_run:
                logger.info(f"DRY RUN: Would delete {driver.KIND} {driver.name}")
                return cluster, "dry_run"
            logger.info(f"[x] Deleting {driver.KIND} {driver.name}")
            cluster, _ = driver.delete(actual, cluster)
            return cluster, "deleted"

    def _run(self, cluster: Cluster, drivers: Sequence[Resource], step, title: str) -> Cluster:
        self.run_start_time = time.time()
        cluster = render(cluster)

        logger.info("=" * 70)
        logger.info(f"Cluster {title}: {cluster.name}")
        logger.info("=" * 70)
        logger.info(f"Location: {cluster.location}")
        logger.info(f"Resources: {len(drivers)}")
        logger.info(f"Dry run: {self.dry_run}")
        logger.info(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)

        for driver in drivers:
            self.stats["total"] += 1
            start = time.time()
            try:
                cluster, status = step(driver, cluster)
            except ReconcileError as e:
                logger.error(f"{title} FAILED for {driver.KIND} {driver.name}: {e}")
                self._record(driver, "failed", start, e)
                break
            self._record(driver, status, start)

        self.run_end_time = time.time()
        self._print_report(title)
        return cluster

    def run(self, cluster: Cluster) -> Cluster:
        """
        Reconcile every resource of the cluster.

        Stops at the first failure, since later resources depend on earlier
        ones, and returns the last consistent cluster.

        Args:
            cluster: Declared cluster

        Returns:
            Updated cluster
        """
        return self._run(cluster, self.drivers, self._reconcile_one, "Reconcile")

    def destroy(self, cluster: Cluster) -> Cluster:
        """
        Delete every provisioned resource of the cluster, in reverse order.

        Args:
            cluster: Current cluster

        Returns:
            Cluster with identifiers of deleted resources cleared
        """
        return self._run(cluster, list(reversed(self.drivers)), self._destroy_one, "Destroy")

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            mins = int(seconds // 60)
            secs = seconds % 60
            return f"{mins}m {secs:.0f}s"
        else:
            hours = int(seconds // 3600)
            mins = int((seconds % 3600) // 60)
            secs = seconds % 60
            return f"{hours}h {mins}m {secs:.0f}s"

    def _print_report(self, title: str) -> None:
        """Log timing, statistics and per-resource results."""
        total_duration = self.run_end_time - self.run_start_time

        logger.info("")
        logger.info("=" * 70)
        logger.info(f"{title.upper()} REPORT")
        logger.info("=" * 70)
        logger.info(f"Total duration:  {self._format_duration(total_duration)}")

        logger.info("")
        logger.info("STATISTICS")
        logger.info("-" * 40)
        for k, v in self.stats.items():
            logger.info(f"{k:20s}: {v}")

        if self.results:
            logger.info("")
            logger.info(f"{'Kind':<15} {'Resource':<25} {'Status':<10} {'Duration'}")
            logger.info("-" * 70)
            for r in self.results:
                logger.info(
                    f"{r.kind:<15} {r.resource:<25} {r.status:<10} {self._format_duration(r.duration_seconds or 0)}"
                )

        failed = [r for r in self.results if r.status == "failed"]
        if failed:
            logger.info("")
            logger.info("FAILURES")
            logger.info("-" * 40)
            for r in failed:
                logger.info(f"{r.kind} {r.resource}: {r.error_message or 'Unknown'}")
        logger.info("=" * 70)

    def export_results_json(self, filename: str) -> None:
        """Export results to a JSON file."""
        report = {
            "dry_run": self.dry_run,
            "start_time": datetime.fromtimestamp(self.run_start_time).isoformat(),
            "end_time": datetime.fromtimestamp(self.run_end_time).isoformat(),
            "total_duration_seconds": self.run_end_time - self.run_start_time,
            "statistics": self.stats,
            "results": [
                {
                    "kind": r.kind,
                    "resource": r.resource,
                    "status": r.status,
                    "duration_seconds": r.duration_seconds,
                    "error_message": r.error_message,
                }
                for r in self.results
            ],
        }
        with open(filename, "w") as f:
            json.dump(report, f, indent=2)
        logger.info(f"Detailed report exported to: {filename}")
