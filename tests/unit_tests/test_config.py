"""
Unit tests for configuration.
"""

import json
import os
import tempfile
import unittest
from argparse import Namespace

from cluster_fixtures import make_cluster
from config import ReconcilerConfig, load_cluster, save_cluster


class TestReconcilerConfig(unittest.TestCase):
    """Test ReconcilerConfig data model."""

    def test_config_defaults(self):
        """Test default configuration values."""
        config = ReconcilerConfig(subscription_id="sub-1", cluster_file="cluster.json")
        self.assertEqual(config.subscription_id, "sub-1")
        self.assertEqual(config.cluster_file, "cluster.json")
        self.assertIsNone(config.state_file)
        self.assertIsNone(config.report_file)
        self.assertFalse(config.delete)
        self.assertFalse(config.dry_run)
        self.assertEqual(config.timeout, 1800)
        self.assertEqual(config.poll_interval, 15)
        self.assertEqual(config.max_retries, 5)
        self.assertFalse(config.verbose)

    def test_config_from_args(self):
        """Test creating config from command-line arguments."""
        args = Namespace(
            subscription="sub-1",
            cluster_file="cluster.json",
            state_file="state.json",
            report_file="report.json",
            delete=True,
            dry_run=True,
            timeout=600,
            poll_interval=5,
            max_retries=2,
            verbose=True,
        )
        config = ReconcilerConfig.from_args(args)

        self.assertEqual(config.subscription_id, "sub-1")
        self.assertEqual(config.state_file, "state.json")
        self.assertEqual(config.report_file, "report.json")
        self.assertTrue(config.delete)
        self.assertTrue(config.dry_run)
        self.assertEqual(config.timeout, 600)
        self.assertEqual(config.poll_interval, 5)
        self.assertEqual(config.max_retries, 2)
        self.assertTrue(config.verbose)


class TestClusterFiles(unittest.TestCase):
    """Test loading and saving cluster files."""

    def test_save_then_load(self):
        """Test a saved cluster loads back unchanged."""
        cluster = make_cluster()
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "cluster.json")
            save_cluster(cluster, path)

            with open(path) as f:
                self.assertEqual(json.load(f)["name"], "kc")
            self.assertEqual(load_cluster(path), cluster)


if __name__ == "__main__":
    unittest.main()
