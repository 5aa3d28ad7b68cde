"""
Unit tests for data models.
"""

import unittest
from dataclasses import FrozenInstanceError, replace

from cluster_fixtures import make_cluster
from models import (
    Cluster,
    OperationResult,
    ReconcileResult,
    ScaleSetSnapshot,
    ServerPoolType,
)

CLUSTER_DATA = {
    "name": "kc",
    "location": "westeurope",
    "groupIdentifier": "/subscriptions/sub-1/resourceGroups/kc",
    "serverPools": [
        {
            "type": "master",
            "name": "kc-master",
            "image": "ubuntu_22_04",
            "size": "Standard_B2s",
            "minCount": 1,
            "maxCount": 1,
            "identifier": "",
            "subnets": [
                {
                    "name": "master-sn",
                    "cidr": "10.0.0.0/24",
                    "identifier": "/subnets/master-sn",
                    "loadBalancer": "lb-1",
                }
            ],
            "tags": {},
        }
    ],
    "loadBalancers": [
        {
            "name": "lb-1",
            "identifier": "/loadBalancers/lb-1",
            "backendIds": ["B1"],
            "natIds": ["N1"],
        }
    ],
    "tags": {"env": "dev"},
    "ssh": {"user": "kube", "publicKey": "ssh-rsa AAAA"},
}


class TestCluster(unittest.TestCase):
    """Test the Cluster model."""

    def test_from_dict(self):
        """Test loading a cluster from its JSON form."""
        cluster = Cluster.from_dict(CLUSTER_DATA)

        self.assertEqual(cluster.name, "kc")
        self.assertEqual(cluster.group_identifier, "/subscriptions/sub-1/resourceGroups/kc")
        pool = cluster.server_pool("kc-master")
        self.assertEqual(pool.type, ServerPoolType.MASTER)
        self.assertEqual(pool.subnets[0].load_balancer, "lb-1")
        self.assertEqual(cluster.load_balancer("lb-1").backend_ids, ("B1",))
        self.assertEqual(cluster.ssh.user, "kube")

    def test_to_dict_matches_source(self):
        """Test dumping a loaded cluster reproduces the file."""
        self.assertEqual(Cluster.from_dict(CLUSTER_DATA).to_dict(), CLUSTER_DATA)

    def test_unknown_pool_type(self):
        """Test an unknown role is rejected."""
        data = dict(CLUSTER_DATA, serverPools=[{"type": "bastion"}])
        with self.assertRaises(ValueError):
            Cluster.from_dict(data)

    def test_lookups_return_none_when_missing(self):
        """Test missing pools and load balancers."""
        cluster = make_cluster()
        self.assertIsNone(cluster.server_pool("missing"))
        self.assertIsNone(cluster.load_balancer("missing"))

    def test_cluster_is_immutable(self):
        """Test fields cannot be assigned."""
        cluster = make_cluster()
        with self.assertRaises(FrozenInstanceError):
            cluster.name = "other"

    def test_tags_are_read_only_copies(self):
        """Test tags cannot be changed in place or through the caller's dict."""
        tags = {"env": "dev"}
        cluster = make_cluster(tags=tags)
        snapshot = ScaleSetSnapshot(name="kc-node", tags=tags, plan={"name": "p"})
        tags["env"] = "prod"

        self.assertEqual(cluster.tags, {"env": "dev"})
        self.assertEqual(snapshot.tags, {"env": "dev"})
        for mapping in (cluster.tags, cluster.server_pool("kc-node").tags, snapshot.plan):
            with self.assertRaises(TypeError):
                mapping["env"] = "prod"
        self.assertEqual(replace(cluster, name="other").tags, {"env": "dev"})

    def test_with_server_pool_returns_copy(self):
        """Test replacing a pool leaves the original cluster untouched."""
        cluster = make_cluster()
        pool = replace(cluster.server_pool("kc-node"), max_count=9)

        updated = cluster.with_server_pool(pool)

        self.assertEqual(updated.server_pool("kc-node").max_count, 9)
        self.assertEqual(cluster.server_pool("kc-node").max_count, 3)
        self.assertIs(updated.server_pool("kc-master"), cluster.server_pool("kc-master"))

    def test_with_group_identifier(self):
        """Test setting the group identifier returns a copy."""
        cluster = make_cluster()
        updated = cluster.with_group_identifier("/rg/kc")
        self.assertEqual(updated.group_identifier, "/rg/kc")
        self.assertEqual(cluster.group_identifier, "")


class TestOperationResult(unittest.TestCase):
    """Test OperationResult."""

    def test_ok(self):
        """Test success and failure results."""
        self.assertTrue(OperationResult(value={"id": "x"}).ok)
        self.assertFalse(OperationResult(error=RuntimeError("boom")).ok)


class TestReconcileResult(unittest.TestCase):
    """Test ReconcileResult data model."""

    def test_failed_result(self):
        """Test creating a failed ReconcileResult."""
        result = ReconcileResult(
            kind="vmscaleset",
            resource="kc-master",
            status="failed",
            error_message="quota exceeded",
        )
        self.assertEqual(result.status, "failed")
        self.assertIsNone(result.duration_seconds)


if __name__ == "__main__":
    unittest.main()
