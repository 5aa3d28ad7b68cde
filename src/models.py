"""
Data models for the cluster reconciler.

The cluster description is immutable: every reconciliation phase builds a
new ``Cluster`` instead of changing the one it was given.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class ServerPoolType(Enum):
    """Role of a server pool."""

    MASTER = "master"
    NODE = "node"


def _freeze(mapping: Mapping[str, str]) -> Mapping[str, str]:
    """Read-only copy of a tag mapping."""
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class LoadBalancer:
    """Load balancer with its backend and inbound NAT pools."""

    name: str
    identifier: str = ""
    backend_ids: Tuple[str, ...] = ()
    nat_ids: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadBalancer":
        return cls(
            name=data["name"],
            identifier=data.get("identifier", ""),
            backend_ids=tuple(data.get("backendIds", ())),
            nat_ids=tuple(data.get("natIds", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "identifier": self.identifier,
            "backendIds": list(self.backend_ids),
            "natIds": list(self.nat_ids),
        }


@dataclass(frozen=True)
class Subnet:
    """Subnet owned by a server pool."""

    name: str = ""
    cidr: str = ""
    identifier: str = ""
    load_balancer: str = ""  # name of a LoadBalancer in the cluster, "" for none

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subnet":
        return cls(
            name=data.get("name", ""),
            cidr=data.get("cidr", ""),
            identifier=data.get("identifier", ""),
            load_balancer=data.get("loadBalancer", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "cidr": self.cidr,
            "identifier": self.identifier,
            "loadBalancer": self.load_balancer,
        }


@dataclass(frozen=True)
class ServerPool:
    """Group of instances sharing a role, image and size."""

    type: ServerPoolType
    name: str = ""
    image: str = ""
    size: str = ""
    min_count: int = 1
    max_count: int = 1
    identifier: str = ""
    subnets: Tuple[Subnet, ...] = ()
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "tags", _freeze(self.tags))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerPool":
        return cls(
            type=ServerPoolType(data["type"]),
            name=data.get("name", ""),
            image=data.get("image", ""),
            size=data.get("size", ""),
            min_count=int(data.get("minCount", 1)),
            max_count=int(data.get("maxCount", 1)),
            identifier=data.get("identifier", ""),
            subnets=tuple(Subnet.from_dict(s) for s in data.get("subnets", ())),
            tags=dict(data.get("tags", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "image": self.image,
            "size": self.size,
            "minCount": self.min_count,
            "maxCount": self.max_count,
            "identifier": self.identifier,
            "subnets": [s.to_dict() for s in self.subnets],
            "tags": dict(self.tags),
        }


@dataclass(frozen=True)
class SSH:
    """Admin account injected into every instance."""

    user: str
    public_key: str


@dataclass(frozen=True)
class Cluster:
    """Immutable description of the whole cluster."""

    name: str
    location: str = ""
    group_identifier: str = ""
    server_pools: Tuple[ServerPool, ...] = ()
    load_balancers: Tuple[LoadBalancer, ...] = ()
    ssh: Optional[SSH] = None
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "tags", _freeze(self.tags))

    def server_pool(self, name: str) -> Optional[ServerPool]:
        """Return the server pool called ``name``, or None."""
        for pool in self.server_pools:
            if pool.name == name:
                return pool
        return None

    def load_balancer(self, name: str) -> Optional[LoadBalancer]:
        """Return the load balancer called ``name``, or None."""
        for lb in self.load_balancers:
            if lb.name == name:
                return lb
        return None

    def with_server_pool(self, pool: ServerPool) -> "Cluster":
        """Return a copy of the cluster with ``pool`` replacing the pool of the same name."""
        pools = tuple(pool if p.name == pool.name else p for p in self.server_pools)
        return replace(self, server_pools=pools)

    def with_group_identifier(self, identifier: str) -> "Cluster":
        return replace(self, group_identifier=identifier)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cluster":
        """
        Build a cluster from its JSON representation.

        Args:
            data: Parsed cluster file

        Returns:
            Cluster instance

        Raises:
            KeyError: If a required field is missing
            ValueError: If a server pool type is not recognised
        """
        ssh = data.get("ssh")
        return cls(
            name=data["name"],
            location=data.get("location", ""),
            group_identifier=data.get("groupIdentifier", ""),
            server_pools=tuple(
                ServerPool.from_dict(p) for p in data.get("serverPools", ())
            ),
            load_balancers=tuple(
                LoadBalancer.from_dict(lb) for lb in data.get("loadBalancers", ())
            ),
            ssh=SSH(user=ssh["user"], public_key=ssh["publicKey"]) if ssh else None,
            tags=dict(data.get("tags", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "location": self.location,
            "groupIdentifier": self.group_identifier,
            "serverPools": [p.to_dict() for p in self.server_pools],
            "loadBalancers": [lb.to_dict() for lb in self.load_balancers],
            "tags": dict(self.tags),
        }
        if self.ssh:
            data["ssh"] = {"user": self.ssh.user, "publicKey": self.ssh.public_key}
        return data


@dataclass(frozen=True)
class GroupSnapshot:
    """Actual or expected state of the cluster's resource group."""

    name: str
    identifier: str = ""
    location: str = ""
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "tags", _freeze(self.tags))


@dataclass(frozen=True)
class ScaleSetSnapshot:
    """Actual or expected state of a virtual machine scale set."""

    name: str
    identifier: str = ""
    tags: Mapping[str, str] = field(default_factory=dict)
    image: str = ""
    size: str = ""
    capacity: int = 0
    plan: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "tags", _freeze(self.tags))
        object.__setattr__(self, "plan", _freeze(self.plan))


@dataclass
class OperationResult:
    """Terminal outcome of an asynchronous provider operation."""

    value: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReconcileResult:
    """Result of reconciling one resource."""

    kind: str
    resource: str
    status: str  # "unchanged", "applied", "deleted", "absent", "dry_run", "failed"
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None
