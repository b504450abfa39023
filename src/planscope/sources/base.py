"""
External collaborator interfaces.

The dashboard never talks to a remote service directly. Everything it
needs is described here by the data handed to it; implementations return
`Ok` or `Err(SourceError)` and never raise for ordinary failures.
"""

from typing import List, Protocol

from ..core.errors import SourceError
from ..core.result import Result
from ..core.types import (
    HelmData,
    InfraProgressRecord,
    ResourceDescription,
    ResourceEntity,
    TerraformState,
    WorkflowSnapshot,
)


class PlanSource(Protocol):
    """Resource catalog for a deployment plan."""

    async def list_resources(self, instance_id: str) -> Result[List[ResourceEntity], SourceError]:
        ...

    async def describe_resource(self, instance_id: str, resource_id: str) -> Result[ResourceDescription, SourceError]:
        ...


class WorkflowSource(Protocol):
    """Categorized workflow step events."""

    async def fetch_workflow(self, instance_id: str) -> Result[WorkflowSnapshot, SourceError]:
        ...


class InfraSource(Protocol):
    """Terraform operation progress records and per-resource state stores."""

    async def fetch_progress_records(self, instance_id: str) -> Result[List[InfraProgressRecord], SourceError]:
        ...

    async def fetch_state(self, instance_id: str, resource_id: str) -> Result[TerraformState, SourceError]:
        ...


class FileSource(Protocol):
    """Rendered configuration files on the execution target."""

    async def list_files(self, instance_id: str, resource_id: str) -> Result[List[str], SourceError]:
        ...

    async def read_file(self, instance_id: str, resource_id: str, path: str) -> Result[str, SourceError]:
        ...


class HelmSource(Protocol):
    """Helm release details."""

    async def fetch_helm(self, instance_id: str, resource_id: str) -> Result[HelmData, SourceError]:
        ...


class DeploymentSource(PlanSource, WorkflowSource, InfraSource, FileSource, HelmSource, Protocol):
    """Everything the dashboard reads, from one place."""
