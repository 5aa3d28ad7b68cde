"""
Structural comparison of actual and expected resource snapshots.
"""

from dataclasses import fields, is_dataclass
from typing import Any

from errors import ComparisonError


def compared_fields(snapshot: Any) -> dict:
    """Return the provider-observable fields of a snapshot."""
    return {f.name: getattr(snapshot, f.name) for f in fields(snapshot) if f.compare}


def is_equal(actual: Any, expected: Any) -> bool:
    """
    Decide whether two snapshots of the same resource kind are equal.

    Fields declared with ``compare=False`` (write-only or derived metadata)
    are ignored.

    Args:
        actual: Snapshot observed at the provider
        expected: Snapshot built from the declared cluster

    Returns:
        True if every compared field matches, False otherwise

    Raises:
        ComparisonError: If the snapshots are not of the same kind
    """
    if not (is_dataclass(actual) and is_dataclass(expected)):
        raise ComparisonError(
            f"Cannot compare {type(actual).__name__} with {type(expected).__name__}"
        )
    if type(actual) is not type(expected):
        raise ComparisonError(
            f"Snapshot kind mismatch: {type(actual).__name__} != {type(expected).__name__}",
            resource=getattr(expected, "name", ""),
        )
    return compared_fields(actual) == compared_fields(expected)
