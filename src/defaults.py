"""
Cluster-wide defaults.

``render`` is applied after every reconciliation phase. It only derives
values from the cluster itself, never talks to the provider, and is
idempotent: ``render(render(c)) == render(c)``.
"""

from dataclasses import replace
from typing import Dict, List

from errors import ConfigurationError
from models import Cluster, ServerPool, ServerPoolType, Subnet

DEFAULT_LOCATION = "eastus"
CLUSTER_TAG = "reconciler-cluster"


def _render_subnet(subnet: Subnet, pool_name: str, index: int) -> Subnet:
    if subnet.name:
        return subnet
    return replace(subnet, name=f"{pool_name}-subnet-{index}")


def _default_pool_names(cluster: Cluster) -> List[str]:
    # The first unnamed pool of a role is "<cluster>-<role>", later ones get "-1", "-2", ...
    seen: Dict[ServerPoolType, int] = {}
    names = []
    for pool in cluster.server_pools:
        if pool.name:
            names.append(pool.name)
            continue
        count = seen.get(pool.type, 0)
        seen[pool.type] = count + 1
        name = f"{cluster.name}-{pool.type.value}"
        names.append(f"{name}-{count}" if count else name)
    return names


def _render_pool(pool: ServerPool, name: str, cluster: Cluster) -> ServerPool:
    tags = dict(cluster.tags)
    tags.update(pool.tags)
    tags[CLUSTER_TAG] = cluster.name
    return replace(
        pool,
        name=name,
        min_count=max(pool.min_count, 0),
        max_count=max(pool.max_count, pool.min_count, 0),
        subnets=tuple(
            _render_subnet(subnet, name, i) for i, subnet in enumerate(pool.subnets)
        ),
        tags=tags,
    )


def render(cluster: Cluster) -> Cluster:
    """
    Return a new, self-consistent cluster with derived defaults filled in.

    Args:
        cluster: Possibly incomplete cluster description

    Returns:
        New Cluster instance; the argument is left untouched

    Raises:
        ConfigurationError: If two server pools end up with the same name
    """
    names = _default_pool_names(cluster)
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(
            f"Duplicate server pool names: {', '.join(duplicates)}",
            cluster=cluster.name,
        )

    tags = dict(cluster.tags)
    tags[CLUSTER_TAG] = cluster.name
    base = replace(
        cluster,
        location=cluster.location or DEFAULT_LOCATION,
        tags=tags,
    )
    return replace(
        base,
        server_pools=tuple(
            _render_pool(pool, name, base)
            for pool, name in zip(cluster.server_pools, names)
        ),
    )
