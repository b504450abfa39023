"""
Core type definitions for planscope.

Payload models accept the camelCase field names used by the upstream
services as well as their snake_case attribute names.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ProgressStatus(StrEnum):
    """Overall status of a node's progress."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class EventType(StrEnum):
    """Workflow step event types, as reported by the workflow service."""
    STARTED = "Started"
    COMPLETED = "Completed"
    FAILED = "Failed"
    DEBUG = "Debug"


class StepCategory(StrEnum):
    """Deployment phases that workflow events are grouped under."""
    BOOTSTRAP = "bootstrap"
    STORAGE = "storage"
    NETWORK = "network"
    COMPUTE = "compute"
    DEPLOYMENT = "deployment"
    MONITORING = "monitoring"
    UNKNOWN = "unknown"


class ResourceKind(StrEnum):
    """Resource kinds with dedicated detail views or icons."""
    TERRAFORM = "terraform"
    HELM = "helm"
    KUSTOMIZE = "kustomize"
    OTHER = "other"


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PayloadModel(BaseModel):
    """Base for models parsed from upstream JSON payloads."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# --- Graph ---

class ResourceEntity(PayloadModel):
    """A resource as listed by the plan catalog."""
    id: str
    name: str = ""
    key: str = ""
    type: str = ""


class ResourceDescription(PayloadModel):
    """The describe result for a single resource."""
    resource_id: str
    dependencies: List[str] = Field(default_factory=list)


class Node(BaseModel):
    """
    A resource in the deployment plan's dependency graph.

    Nodes are immutable; progress is overlaid through a separate index.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    key: str = ""
    name: str = ""
    type: str = ""

    @property
    def label(self) -> str:
        """Display label: key, else name, else id."""
        return self.key or self.name or self.id

    @property
    def kind(self) -> ResourceKind:
        lowered = self.type.lower()
        for kind in (ResourceKind.HELM, ResourceKind.TERRAFORM, ResourceKind.KUSTOMIZE):
            if kind.value in lowered:
                return kind
        return ResourceKind.OTHER


class Edge(BaseModel):
    """
    A dependency relationship.

    `source` is the dependency, `target` the dependent.
    """
    model_config = ConfigDict(frozen=True)

    source: str
    target: str


# --- Progress ---

class Progress(BaseModel):
    """Progress overlay for one node."""
    percent: int = 0
    status: ProgressStatus = ProgressStatus.PENDING
    completed_steps: int = 0
    total_steps: int = 0

    @field_validator("percent", mode="before")
    @classmethod
    def _clamp_percent(cls, value) -> int:
        return max(0, min(100, int(value)))

    def is_terminal(self) -> bool:
        """True once the node will not change without a new deployment."""
        if self.status in (ProgressStatus.RUNNING, ProgressStatus.PENDING):
            return False
        return not 0 < self.percent < 100


class WorkflowEvent(PayloadModel):
    """A single timestamped workflow step event."""
    event_type: EventType
    event_time: Optional[datetime] = None
    message: str = ""

    @field_validator("event_time")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)


class ResourceWorkflowEvents(PayloadModel):
    """Workflow step events for one resource, grouped by step category."""
    resource_id: str = ""
    resource_key: str = ""
    resource_name: str = ""
    workflow_status: str = ""
    steps: Dict[str, List[WorkflowEvent]] = Field(default_factory=dict)


class WorkflowSnapshot(PayloadModel):
    """The workflow feed for a whole deployment instance."""
    workflow_id: str = ""
    workflow_status: str = ""
    resources: List[ResourceWorkflowEvents] = Field(default_factory=list)


class ManagedResource(PayloadModel):
    """A resource managed by a Terraform operation."""
    address: str = ""
    type: str = ""
    name: str = ""
    mode: str = ""
    provider: str = ""
    state: str = ""


class InfraProgressRecord(PayloadModel):
    """A Terraform operation progress snapshot for one resource."""
    terraform_name: str = ""
    instance_id: str = ""
    resource_id: str = ""
    resource_version: str = ""
    operation_id: str = ""
    status: str = ""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_resources: int = 0
    in_progress_resources: int = 0
    failed_resources: int = 0
    resources: List[ManagedResource] = Field(default_factory=list)
    planned_resources: List[str] = Field(default_factory=list)

    @field_validator("started_at", "completed_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)

    @property
    def total(self) -> int:
        return self.total_resources or len(self.planned_resources)

    @property
    def ready(self) -> int:
        return sum(1 for r in self.resources if r.state.lower() == "ready")


# --- Detail payloads ---

class HistoryEntry(PayloadModel):
    """One step of a Terraform operation (diff, apply, output, destroy)."""
    operation: str = ""
    status: str = ""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    operation_id: str = ""
    error: str = ""

    @field_validator("started_at", "completed_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)


class HelmData(PayloadModel):
    """Helm release details for a Helm resource."""
    chart_repo_name: str = ""
    chart_repo_url: str = ""
    chart_version: str = ""
    chart_values: str = ""
    install_log: str = ""
    namespace: str = ""
    release_name: str = ""


class TerraformState(PayloadModel):
    """
    Terraform state store for one resource.

    `data` holds the raw entries of the store: operation logs keyed
    `<operation id>-<operation>.log`, output logs keyed
    `<operation id>-output.log`, and the like.
    """
    history: List[HistoryEntry] = Field(default_factory=list)
    data: Dict[str, str] = Field(default_factory=dict)
