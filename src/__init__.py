"""
Azure cluster reconciler.
"""

from catalog import Catalog
from clients import ArmRestClient, ResourceGroupClient, ScaleSetClient
from compare import is_equal
from config import ReconcilerConfig
from defaults import render
from log_utils import setup_logging
from models import Cluster, LoadBalancer, ServerPool, ServerPoolType, Subnet
from reconciler import ClusterReconciler, build_drivers
from resources import Resource, ResourceGroup, VMScaleSet

__all__ = [
    "Catalog",
    "ArmRestClient",
    "ResourceGroupClient",
    "ScaleSetClient",
    "is_equal",
    "ReconcilerConfig",
    "render",
    "setup_logging",
    "Cluster",
    "LoadBalancer",
    "ServerPool",
    "ServerPoolType",
    "Subnet",
    "ClusterReconciler",
    "build_drivers",
    "Resource",
    "ResourceGroup",
    "VMScaleSet",
]
