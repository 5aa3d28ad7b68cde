"""
Error taxonomy for the cluster reconciler.

Every error raised by a resource driver carries the resource kind, the
resource name and the cluster name so the caller can tell which part of
the cluster failed to converge.
"""

from typing import Optional


class ReconcileError(Exception):
    """Base class for reconciliation failures."""

    def __init__(
        self,
        message: str,
        kind: str = "",
        resource: str = "",
        cluster: str = "",
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.kind = kind
        self.resource = resource
        self.cluster = cluster
        self.cause = cause
        super().__init__(self._format())

    def _format(self) -> str:
        where = "/".join(part for part in (self.cluster, self.kind, self.resource) if part)
        text = f"[{where}] {self.message}" if where else self.message
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class ConfigurationError(ReconcileError):
    """The declared cluster does not describe the resource."""


class ProviderQueryError(ReconcileError):
    """Reading the actual state from the provider failed."""


class UnknownCatalogEntryError(ReconcileError):
    """An abstract image or size has no provider mapping."""


class ApplyError(ReconcileError):
    """A create/update operation failed at the provider."""


class UnresolvedReferenceError(ApplyError):
    """A subnet or load balancer needed for wiring has not been created."""


class PreconditionError(ReconcileError):
    """Delete was attempted on a resource that was never provisioned."""


class DeleteError(ReconcileError):
    """A delete operation failed at the provider."""


class ComparisonError(ReconcileError):
    """Actual and expected snapshots are of different resource kinds."""
