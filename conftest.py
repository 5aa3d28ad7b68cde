"""
Pytest configuration for test discovery and imports.

Puts src/ (the reconciler modules) and tests/unit_tests/ (shared cluster
fixtures) on sys.path so tests can import modules directly.
"""

import os
import sys

ROOT_DIR = os.path.dirname(__file__)
SRC_DIR = os.path.join(ROOT_DIR, "src")
FIXTURES_DIR = os.path.join(ROOT_DIR, "tests", "unit_tests")

for path in (FIXTURES_DIR, SRC_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)


import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_root_log_level():
    """Keep a test's setup_logging() call from leaking its root level into later tests."""
    level = logging.root.level
    yield
    logging.root.setLevel(level)
