"""
Snapshot Source - File-backed implementation of every source protocol.

A snapshot is a single YAML or JSON document holding what the remote
services would return for one deployment instance. The file is re-read on
every fetch, so editing it while the dashboard runs behaves like live
upstream changes.

Layout:

    instanceId: instance-abc
    resources:
      - {id: r-net, key: network, type: terraform, dependencies: []}
    workflow: {workflowId: wf-1, workflowStatus: running, resources: [...]}
    infraProgress: [...]
    terraformState: {tf-rnet: {history: [...], data: {...}}}
    files: {r-net: {main.tf: "...", modules/: null}}
    helm: {r-app: {releaseName: app, chartValues: "{...}"}}
    unavailable: [workflow]

Entries under `unavailable` name sources that answer with an error, and a
resource's `describeError` makes its describe call fail.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from ..core.errors import SnapshotError, SourceError
from ..core.identifiers import lookup_variant
from ..core.result import Err, Ok, Result
from ..core.types import (
    HelmData,
    InfraProgressRecord,
    ResourceDescription,
    ResourceEntity,
    ResourceWorkflowEvents,
    TerraformState,
    WorkflowSnapshot,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def load_snapshot(path: Path) -> Dict[str, Any]:
    """
    Parse a snapshot file.

    Raises:
        SnapshotError: If the file is missing or not a YAML/JSON mapping.
    """
    if not path.exists():
        raise SnapshotError(str(path), "file not found")
    text = path.read_text()
    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SnapshotError(str(path), f"cannot parse: {e}") from e
    if not isinstance(data, dict):
        raise SnapshotError(str(path), "expected a mapping at the top level")
    return data


def parse_each(model: Type[M], items: Any, source: str) -> List[M]:
    """Validate a list of payloads, dropping malformed entries."""
    if not isinstance(items, list):
        return []
    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {source} entry: {e.error_count()} validation errors")
    return parsed


class SnapshotSource:
    """Serves plan, progress, state, files and Helm data from a snapshot file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def instance_id(self) -> str:
        return str(load_snapshot(self.path).get("instanceId", ""))

    def _section(self, source: str, key: str, default: Any) -> Result[Any, SourceError]:
        try:
            data = load_snapshot(self.path)
        except SnapshotError as e:
            return Err(SourceError(source, e.message))
        if source in (data.get("unavailable") or []):
            return Err(SourceError(source, "service unavailable"))
        value = data.get(key)
        return Ok(default if value is None else value)

    async def _read(self, source: str, key: str, default: Any) -> Result[Any, SourceError]:
        return await asyncio.to_thread(self._section, source, key, default)

    # --- PlanSource ---

    async def list_resources(self, instance_id: str) -> Result[List[ResourceEntity], SourceError]:
        result = await self._read("plan", "resources", [])
        if result.is_err():
            return result
        return Ok(parse_each(ResourceEntity, result.value, "resource"))

    async def describe_resource(self, instance_id: str, resource_id: str) -> Result[ResourceDescription, SourceError]:
        result = await self._read("describe", "resources", [])
        if result.is_err():
            return result
        for item in result.value:
            if not isinstance(item, dict) or item.get("id") != resource_id:
                continue
            if item.get("describeError"):
                return Err(SourceError("describe", str(item["describeError"])))
            dependencies = [str(d) for d in item.get("dependencies") or []]
            return Ok(ResourceDescription(resource_id=resource_id, dependencies=dependencies))
        return Err(SourceError("describe", f"resource {resource_id} not found"))

    # --- WorkflowSource ---

    async def fetch_workflow(self, instance_id: str) -> Result[WorkflowSnapshot, SourceError]:
        result = await self._read("workflow", "workflow", {})
        if result.is_err():
            return result
        payload = result.value if isinstance(result.value, dict) else {}
        return Ok(WorkflowSnapshot(
            workflow_id=str(payload.get("workflowId", "")),
            workflow_status=str(payload.get("workflowStatus", "")),
            resources=parse_each(ResourceWorkflowEvents, payload.get("resources"), "workflow resource"),
        ))

    # --- InfraSource ---

    async def fetch_progress_records(self, instance_id: str) -> Result[List[InfraProgressRecord], SourceError]:
        result = await self._read("infra", "infraProgress", [])
        if result.is_err():
            return result
        return Ok(parse_each(InfraProgressRecord, result.value, "infra progress"))

    async def fetch_state(self, instance_id: str, resource_id: str) -> Result[TerraformState, SourceError]:
        result = await self._read("infra", "terraformState", {})
        if result.is_err():
            return result
        payload = lookup_variant(resource_id, result.value) if isinstance(result.value, dict) else None
        if payload is None:
            return Ok(TerraformState())
        try:
            return Ok(TerraformState.model_validate(payload))
        except ValidationError as e:
            return Err(SourceError("infra", f"malformed state for {resource_id}: {e.error_count()} errors"))

    # --- FileSource ---

    def _files(self, resource_id: str) -> Result[Dict[str, Any], SourceError]:
        result = self._section("files", "files", {})
        if result.is_err():
            return result
        files = result.value.get(resource_id) if isinstance(result.value, dict) else None
        return Ok(files if isinstance(files, dict) else {})

    async def list_files(self, instance_id: str, resource_id: str) -> Result[List[str], SourceError]:
        result = await asyncio.to_thread(self._files, resource_id)
        if result.is_err():
            return result
        return Ok(sorted(result.value))

    async def read_file(self, instance_id: str, resource_id: str, path: str) -> Result[str, SourceError]:
        result = await asyncio.to_thread(self._files, resource_id)
        if result.is_err():
            return result
        content = result.value.get(path)
        if path.endswith("/") or content is None:
            return Err(SourceError("files", f"{path}: not a file"))
        return Ok(str(content))

    # --- HelmSource ---

    async def fetch_helm(self, instance_id: str, resource_id: str) -> Result[HelmData, SourceError]:
        result = await self._read("helm", "helm", {})
        if result.is_err():
            return result
        payload = result.value.get(resource_id) if isinstance(result.value, dict) else None
        if not isinstance(payload, dict):
            return Err(SourceError("helm", f"no Helm data for {resource_id}"))
        try:
            return Ok(HelmData.model_validate(payload))
        except ValidationError as e:
            return Err(SourceError("helm", f"malformed Helm data: {e.error_count()} errors"))
