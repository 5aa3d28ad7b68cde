"""
Resource drivers.

Every resource kind implements the same four-phase protocol:

- ``actual``: observe the provider (only if the resource was created before)
- ``expected``: derive the desired state from the declared cluster
- ``apply``: converge the provider when actual and expected differ
- ``delete``: tear the resource down

Each phase returns a new, rendered ``Cluster`` together with a snapshot of
the resource. The cluster passed in is never modified, so a failing phase
leaves the caller with the last consistent cluster.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from catalog import Catalog
from clients import ProviderClient, ProviderError
from compare import is_equal
from defaults import render
from errors import (
    ApplyError,
    ConfigurationError,
    DeleteError,
    PreconditionError,
    ProviderQueryError,
    UnknownCatalogEntryError,
    UnresolvedReferenceError,
)
from models import (
    Cluster,
    GroupSnapshot,
    ScaleSetSnapshot,
    ServerPool,
    ServerPoolType,
)

logger = logging.getLogger(__name__)

DEFAULT_OPERATION_TIMEOUT = 1800.0


class Resource(ABC):
    """Reconciliation unit for one resource kind."""

    KIND = ""

    def __init__(self, client: ProviderClient, timeout: float = DEFAULT_OPERATION_TIMEOUT):
        """
        Args:
            client: Provider client scoped to this reconciliation run
            timeout: Seconds to wait for a create/update/delete to complete
        """
        self.client = client
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the resource instance this driver owns."""

    @abstractmethod
    def actual(self, cluster: Cluster) -> Tuple[Cluster, Any]:
        """Observe the resource at the provider."""

    @abstractmethod
    def expected(self, cluster: Cluster) -> Tuple[Cluster, Any]:
        """Build the desired snapshot from the declared cluster."""

    @abstractmethod
    def apply(self, actual: Any, expected: Any, cluster: Cluster) -> Tuple[Cluster, Any]:
        """Converge the provider towards ``expected``."""

    @abstractmethod
    def delete(self, actual: Any, cluster: Cluster) -> Tuple[Cluster, Any]:
        """Remove the resource from the provider."""

    @abstractmethod
    def _fold(self, snapshot: Any, cluster: Cluster) -> Cluster:
        """Record the snapshot's identifier in a copy of the cluster."""

    def _render(self, snapshot: Any, cluster: Cluster) -> Cluster:
        logger.debug(f"{self.KIND}.render {self.name}")
        return render(self._fold(snapshot, render(cluster)))

    def _error(self, cls, message: str, cluster: Cluster, cause=None):
        return cls(
            message, kind=self.KIND, resource=self.name, cluster=cluster.name, cause=cause
        )

    def _submit_and_wait(self, submit, error_cls, cluster: Cluster) -> Dict[str, Any]:
        """Submit one provider operation and block on its completion."""
        start = time.time()
        try:
            completion = submit()
        except ProviderError as e:
            raise self._error(error_cls, "request rejected", cluster, e) from e
        remaining = max(self.timeout - (time.time() - start), 0.0)
        result = completion.wait(timeout=remaining)
        if not result.ok:
            raise self._error(error_cls, "operation failed", cluster, result.error) from result.error
        return result.value or {}


class ResourceGroup(Resource):
    """Resource group named after the cluster; holds every other resource."""

    KIND = "resourcegroup"

    def __init__(
        self,
        client: ProviderClient,
        cluster_name: str,
        timeout: float = DEFAULT_OPERATION_TIMEOUT,
    ):
        super().__init__(client, timeout)
        self._name = cluster_name

    @property
    def name(self) -> str:
        return self._name

    def _fold(self, snapshot: GroupSnapshot, cluster: Cluster) -> Cluster:
        return cluster.with_group_identifier(snapshot.identifier)

    def actual(self, cluster: Cluster) -> Tuple[Cluster, GroupSnapshot]:
        logger.debug("resourcegroup.Actual")
        snapshot = GroupSnapshot(name=self.name)
        if cluster.group_identifier:
            try:
                group = self.client.get(cluster.name, self.name)
            except ProviderError as e:
                raise self._error(ProviderQueryError, "query failed", cluster, e) from e
            snapshot = GroupSnapshot(
                name=self.name,
                identifier=group.get("id", ""),
                location=group.get("location", ""),
                tags=dict(group.get("tags") or {}),
            )
        return self._render(snapshot, cluster), snapshot

    def expected(self, cluster: Cluster) -> Tuple[Cluster, GroupSnapshot]:
        logger.debug("resourcegroup.Expected")
        rendered = render(cluster)
        snapshot = GroupSnapshot(
            name=self.name,
            identifier=cluster.group_identifier,
            location=rendered.location,
            tags=dict(rendered.tags),
        )
        return self._render(snapshot, cluster), snapshot

    def apply(
        self, actual: GroupSnapshot, expected: GroupSnapshot, cluster: Cluster
    ) -> Tuple[Cluster, GroupSnapshot]:
        logger.debug("resourcegroup.Apply")
        if is_equal(actual, expected):
            return cluster, expected

        body = {"location": expected.location, "tags": dict(expected.tags)}
        group = self._submit_and_wait(
            lambda: self.client.create_or_update(cluster.name, self.name, body),
            ApplyError,
            cluster,
        )
        applied = replace(expected, identifier=group.get("id", expected.identifier))
        logger.info(f"Resource group {self.name} converged ({applied.identifier})")
        return self._render(applied, cluster), applied

    def delete(self, actual: GroupSnapshot, cluster: Cluster) -> Tuple[Cluster, GroupSnapshot]:
        logger.debug("resourcegroup.Delete")
        if not actual.identifier:
            raise self._error(
                PreconditionError, "cannot delete an unprovisioned resource", cluster
            )
        self._submit_and_wait(
            lambda: self.client.delete(cluster.name, actual.name), DeleteError, cluster
        )
        deleted = replace(actual, identifier="")
        logger.info(f"Resource group {self.name} deleted")
        return self._render(deleted, cluster), deleted


class VMScaleSet(Resource):
    """Virtual machine scale set backing one server pool."""

    KIND = "vmscaleset"

    def __init__(
        self,
        client: ProviderClient,
        pool_name: str,
        catalog: Optional[Catalog] = None,
        timeout: float = DEFAULT_OPERATION_TIMEOUT,
    ):
        super().__init__(client, timeout)
        self.pool_name = pool_name
        self.catalog = catalog or Catalog()

    @property
    def name(self) -> str:
        return self.pool_name

    def _pool(self, cluster: Cluster) -> ServerPool:
        pool = cluster.server_pool(self.pool_name)
        if pool is None:
            raise self._error(ConfigurationError, "server pool is not declared", cluster)
        return pool

    def _fold(self, snapshot: ScaleSetSnapshot, cluster: Cluster) -> Cluster:
        pool = self._pool(cluster)
        return cluster.with_server_pool(replace(pool, identifier=snapshot.identifier))

    def actual(self, cluster: Cluster) -> Tuple[Cluster, ScaleSetSnapshot]:
        logger.debug("vmscaleset.Actual")
        pool = self._pool(render(cluster))
        snapshot = ScaleSetSnapshot(name=pool.name, tags=dict(pool.tags))

        if pool.identifier:
            try:
                vmss = self.client.get(cluster.name, pool.name)
            except ProviderError as e:
                raise self._error(ProviderQueryError, "query failed", cluster, e) from e
            sku = vmss.get("sku") or {}
            profile = (vmss.get("properties") or {}).get("virtualMachineProfile") or {}
            image_ref = (profile.get("storageProfile") or {}).get("imageReference")
            snapshot = ScaleSetSnapshot(
                name=pool.name,
                identifier=vmss.get("id", ""),
                tags=dict(vmss.get("tags") or {}),
                image=self.catalog.image_name(image_ref),
                size=sku.get("name", ""),
                capacity=int(sku.get("capacity", 0)),
                plan=dict(vmss.get("plan") or {}),
            )

        return self._render(snapshot, cluster), snapshot

    def expected(self, cluster: Cluster) -> Tuple[Cluster, ScaleSetSnapshot]:
        logger.debug("vmscaleset.Expected")
        pool = self._pool(render(cluster))
        snapshot = ScaleSetSnapshot(
            name=pool.name,
            identifier=pool.identifier,
            tags=dict(pool.tags),
            image=pool.image,
            size=pool.size,
            capacity=pool.max_count,
        )
        return self._render(snapshot, cluster), snapshot

    def _ip_configurations(self, cluster: Cluster) -> List[Dict[str, Any]]:
        """
        Build one IP configuration per subnet of every master pool.

        The join runs over the whole cluster, not just this pool, so that
        changes to any master pool's network reach every scale set.

        Raises:
            UnresolvedReferenceError: If a subnet or its load balancer has not
                been created yet
        """
        ip_configs = []
        for pool in cluster.server_pools:
            if pool.type != ServerPoolType.MASTER:
                continue
            for subnet in pool.subnets:
                if not subnet.identifier:
                    raise self._error(
                        UnresolvedReferenceError,
                        f"subnet '{subnet.name}' of pool '{pool.name}' has not been created",
                        cluster,
                    )
                backend_ids: Tuple[str, ...] = ()
                nat_ids: Tuple[str, ...] = ()
                if subnet.load_balancer:
                    lb = cluster.load_balancer(subnet.load_balancer)
                    if lb is None or not lb.identifier:
                        raise self._error(
                            UnresolvedReferenceError,
                            f"load balancer '{subnet.load_balancer}' of subnet '{subnet.name}' has not been created",
                            cluster,
                        )
                    backend_ids, nat_ids = lb.backend_ids, lb.nat_ids

                ip_configs.append(
                    {
                        "name": f"{pool.name}-{subnet.name}",
                        "properties": {
                            "subnet": {"id": subnet.identifier},
                            "loadBalancerBackendAddressPools": [
                                {"id": i} for i in backend_ids
                            ],
                            "loadBalancerInboundNatPools": [{"id": i} for i in nat_ids],
                        },
                    }
                )
        return ip_configs

    def _os_profile(self, pool: ServerPool, cluster: Cluster) -> Dict[str, Any]:
        profile: Dict[str, Any] = {"computerNamePrefix": pool.name}
        if cluster.ssh:
            profile["adminUsername"] = cluster.ssh.user
            profile["linuxConfiguration"] = {
                "disablePasswordAuthentication": True,
                "ssh": {
                    "publicKeys": [
                        {
                            "path": f"/home/{cluster.ssh.user}/.ssh/authorized_keys",
                            "keyData": cluster.ssh.public_key,
                        }
                    ]
                },
            }
        return profile

    def build_request(self, expected: ScaleSetSnapshot, cluster: Cluster) -> Dict[str, Any]:
        """
        Build the ARM create/update body for this scale set.

        Raises:
            UnknownCatalogEntryError: If the image or size is not in the catalog
            UnresolvedReferenceError: If master pool wiring cannot be resolved
        """
        pool = self._pool(cluster)
        try:
            image_ref = self.catalog.image_reference(expected.image)
            tier = self.catalog.tier(expected.size)
        except UnknownCatalogEntryError as e:
            raise self._error(UnknownCatalogEntryError, e.message, cluster) from e

        return {
            "location": cluster.location,
            "tags": dict(expected.tags),
            "sku": {
                "name": expected.size,
                "tier": tier,
                "capacity": expected.capacity,
            },
            "properties": {
                "upgradePolicy": {"mode": "Automatic"},
                "virtualMachineProfile": {
                    "storageProfile": {
                        "osDisk": {"osType": "Linux", "createOption": "FromImage"},
                        "imageReference": image_ref,
                    },
                    "osProfile": self._os_profile(pool, cluster),
                    "networkProfile": {
                        "networkInterfaceConfigurations": [
                            {
                                "name": f"{pool.name}-nic",
                                "properties": {
                                    "primary": True,
                                    "ipConfigurations": self._ip_configurations(cluster),
                                },
                            }
                        ]
                    },
                },
            },
        }

    def apply(
        self, actual: ScaleSetSnapshot, expected: ScaleSetSnapshot, cluster: Cluster
    ) -> Tuple[Cluster, ScaleSetSnapshot]:
        logger.debug("vmscaleset.Apply")
        if is_equal(actual, expected):
            return cluster, expected

        request = self.build_request(expected, render(cluster))
        vmss = self._submit_and_wait(
            lambda: self.client.create_or_update(cluster.name, expected.name, request),
            ApplyError,
            cluster,
        )
        applied = replace(expected, identifier=vmss.get("id", expected.identifier))
        logger.info(f"Scale set {expected.name} converged ({applied.identifier})")
        return self._render(applied, cluster), applied

    def delete(
        self, actual: ScaleSetSnapshot, cluster: Cluster
    ) -> Tuple[Cluster, ScaleSetSnapshot]:
        logger.debug("vmscaleset.Delete")
        if not actual.identifier:
            raise self._error(
                PreconditionError, "cannot delete an unprovisioned resource", cluster
            )
        self._submit_and_wait(
            lambda: self.client.delete(cluster.name, actual.name), DeleteError, cluster
        )
        deleted = replace(actual, identifier="")
        logger.info(f"Scale set {actual.name} deleted")
        return self._render(deleted, cluster), deleted
